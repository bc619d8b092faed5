import hashlib
import hmac
from datetime import datetime, timedelta

import pytest
from bson import ObjectId
from fastapi import HTTPException

import routes.orders as orders_route
import utils.razorpay as razorpay
from utils.stock import reserve_stock


@pytest.fixture
def fill_cart(db, customer):
    async def _fill(*lines):
        await db.carts.insert_one({
            "customer_id": customer["_id"],
            "items": [{"product_id": p["_id"], "quantity": qty} for p, qty in lines],
        })
    return _fill


# -----------------------------
# Checkout
# -----------------------------

async def test_checkout_requires_address(client, customer_headers):
    res = await client.post("/api/orders", json={}, headers=customer_headers)

    assert res.status_code == 400
    assert res.json()["message"] == "Shipping address is required"


async def test_checkout_rejects_empty_cart(client, customer, customer_headers, make_address):
    address = await make_address(customer["_id"])

    res = await client.post(
        "/api/orders",
        json={"address_id": str(address["_id"])},
        headers=customer_headers,
    )

    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "Cart is empty"}


async def test_checkout_rejects_unknown_payment_method(client, customer, customer_headers, make_address):
    address = await make_address(customer["_id"])

    res = await client.post(
        "/api/orders",
        json={"address_id": str(address["_id"]), "payment_method": "barter"},
        headers=customer_headers,
    )

    assert res.status_code == 400
    assert res.json()["message"].startswith("Invalid payment method")


async def test_checkout_rejects_foreign_address(client, customer_headers, make_address, make_product, fill_cart):
    await fill_cart((await make_product(), 1))
    stranger = await make_address(ObjectId())

    res = await client.post(
        "/api/orders",
        json={"address_id": str(stranger["_id"])},
        headers=customer_headers,
    )

    assert res.status_code == 404


async def test_cod_checkout(client, db, customer, customer_headers, make_address, make_product, fill_cart):
    kurta = await make_product(price=300.0, stock=5)
    scarf = await make_product(name="Silk Scarf", price=150.0, stock=2)
    await fill_cart((kurta, 2), (scarf, 1))
    address = await make_address(customer["_id"])

    res = await client.post(
        "/api/orders",
        json={"address_id": str(address["_id"]), "payment_method": "cod"},
        headers=customer_headers,
    )

    assert res.status_code == 201
    order = res.json()["data"]
    assert order["status"] == "pending"
    assert order["payment_status"] == "pending"
    assert order["vendor_id"] is None
    assert order["return_request"] == {"type": None}
    assert order["subtotal"] == 750.0
    assert order["shipping"] == 0.0
    assert order["total"] == pytest.approx(order["subtotal"] + order["shipping"] + order["tax"])
    assert order["order_number"].startswith("ORD-")

    assert (await db.products.find_one({"_id": kurta["_id"]}))["stock"] == 3
    assert (await db.products.find_one({"_id": scarf["_id"]}))["stock"] == 1
    assert (await db.carts.find_one({"customer_id": customer["_id"]}))["items"] == []

    events = await db.order_timeline.find({"order_id": ObjectId(order["id"])}).to_list(None)
    assert [e["event"] for e in events] == ["ORDER_CREATED"]


async def test_small_order_pays_shipping(client, customer, customer_headers, make_address, make_product, fill_cart):
    await fill_cart((await make_product(price=200.0), 1))
    address = await make_address(customer["_id"])

    res = await client.post(
        "/api/orders",
        json={"address_id": str(address["_id"])},
        headers=customer_headers,
    )

    order = res.json()["data"]
    assert order["shipping"] == 50.0
    assert order["total"] == 250.0


async def test_checkout_notifies_vendors(client, db, customer, customer_headers, vendor_user,
                                         make_address, make_product, fill_cart):
    await fill_cart((await make_product(), 1))
    address = await make_address(customer["_id"])

    await client.post("/api/orders", json={"address_id": str(address["_id"])}, headers=customer_headers)

    notes = await db.notifications.find({"user_id": vendor_user["_id"]}).to_list(None)
    assert len(notes) == 1
    assert notes[0]["type"] == "new_order_available"


async def test_checkout_fails_when_stock_ran_out(client, db, customer, customer_headers,
                                                 make_address, make_product, fill_cart):
    product = await make_product(stock=1)
    await fill_cart((product, 3))
    address = await make_address(customer["_id"])

    res = await client.post("/api/orders", json={"address_id": str(address["_id"])}, headers=customer_headers)

    assert res.status_code == 400
    assert res.json()["message"] == "Insufficient stock for Cotton Kurta"
    assert await db.orders.count_documents({}) == 0
    assert (await db.products.find_one({"_id": product["_id"]}))["stock"] == 1


async def test_reserve_stock_rolls_back_earlier_lines(db, make_product):
    plenty = await make_product(stock=10)
    scarce = await make_product(name="Silk Scarf", stock=1)
    items = [
        {"product_id": plenty["_id"], "name": plenty["name"], "quantity": 4},
        {"product_id": scarce["_id"], "name": scarce["name"], "quantity": 2},
    ]

    with pytest.raises(HTTPException) as exc:
        await reserve_stock(db, items)

    assert exc.value.detail == "Insufficient stock for Silk Scarf"
    assert (await db.products.find_one({"_id": plenty["_id"]}))["stock"] == 10
    assert (await db.products.find_one({"_id": scarce["_id"]}))["stock"] == 1


async def test_online_checkout_creates_gateway_order(client, monkeypatch, customer, customer_headers,
                                                     make_address, make_product, fill_cart):
    calls = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return {"id": "order_rzp_123", "amount": kwargs["amount_paise"], "currency": "INR"}

    monkeypatch.setattr(orders_route, "create_razorpay_order", fake_create)
    await fill_cart((await make_product(price=1000.0), 1))
    address = await make_address(customer["_id"])

    res = await client.post(
        "/api/orders",
        json={"address_id": str(address["_id"]), "payment_method": "online"},
        headers=customer_headers,
    )

    assert res.status_code == 201
    body = res.json()
    assert body["data"]["payment_meta"] == {"razorpay_order_id": "order_rzp_123"}
    assert body["payment"]["razorpay_order_id"] == "order_rzp_123"
    assert calls[0]["amount_paise"] == 100000


async def test_gateway_failure_releases_stock(client, db, monkeypatch, customer, customer_headers,
                                              make_address, make_product, fill_cart):
    def failing_create(**kwargs):
        raise HTTPException(502, "Razorpay order create failed")

    monkeypatch.setattr(orders_route, "create_razorpay_order", failing_create)
    product = await make_product(stock=4)
    await fill_cart((product, 2))
    address = await make_address(customer["_id"])

    res = await client.post(
        "/api/orders",
        json={"address_id": str(address["_id"]), "payment_method": "online"},
        headers=customer_headers,
    )

    assert res.status_code == 502
    assert (await db.products.find_one({"_id": product["_id"]}))["stock"] == 4
    assert await db.orders.count_documents({}) == 0


# -----------------------------
# Listing
# -----------------------------

async def test_list_and_stats_only_show_own_orders(client, customer, customer_headers, make_order):
    await make_order(customer["_id"])
    await make_order(customer["_id"], status="delivered")
    await make_order(ObjectId())

    listing = (await client.get("/api/orders", headers=customer_headers)).json()
    stats = (await client.get("/api/orders/stats", headers=customer_headers)).json()["data"]

    assert listing["pagination"]["total"] == 2
    assert stats["total"] == 2
    assert stats["pending"] == 1
    assert stats["delivered"] == 1


async def test_get_foreign_order_is_not_found(client, customer_headers, make_order):
    order = await make_order(ObjectId())

    res = await client.get(f"/api/orders/{order['_id']}", headers=customer_headers)

    assert res.status_code == 404


async def test_invalid_order_id(client, customer_headers):
    res = await client.get("/api/orders/xyz", headers=customer_headers)

    assert res.status_code == 400
    assert res.json()["message"] == "Invalid order ID format"


# -----------------------------
# Cancel
# -----------------------------

async def test_cancel_pending_order_restores_stock(client, db, customer, customer_headers,
                                                   make_order, make_product):
    product = await make_product(stock=3)
    order = await make_order(customer["_id"], items=[{
        "product_id": product["_id"], "name": product["name"], "quantity": 2, "price": 300.0,
    }])

    res = await client.post(f"/api/orders/{order['_id']}/cancel", headers=customer_headers)

    assert res.status_code == 200
    stored = await db.orders.find_one({"_id": order["_id"]})
    assert stored["status"] == "cancelled"
    assert stored["cancelled_by"] == "customer"
    assert (await db.products.find_one({"_id": product["_id"]}))["stock"] == 5


@pytest.mark.parametrize("status", ["shipped", "delivered", "cancelled"])
async def test_cannot_cancel_late_orders(client, db, customer, customer_headers, make_order, status):
    order = await make_order(customer["_id"], status=status)

    res = await client.post(f"/api/orders/{order['_id']}/cancel", headers=customer_headers)

    assert res.status_code == 400
    assert (await db.orders.find_one({"_id": order["_id"]}))["status"] == status


# -----------------------------
# Returns
# -----------------------------

async def test_return_request_within_window(client, db, customer, customer_headers, make_order):
    order = await make_order(
        customer["_id"],
        status="delivered",
        delivered_at=datetime.utcnow() - timedelta(days=1),
    )

    res = await client.post(
        f"/api/orders/{order['_id']}/return-request",
        json={"reason": "  Wrong size  "},
        headers=customer_headers,
    )

    assert res.status_code == 200
    stored = await db.orders.find_one({"_id": order["_id"]})
    assert stored["status"] == "return_requested"
    assert stored["return_request"]["type"] == "pending"
    assert stored["return_request"]["reason"] == "Wrong size"

    status = (await client.get(f"/api/orders/{order['_id']}/return-status", headers=customer_headers)).json()
    assert status["data"]["order_status"] == "return_requested"
    assert status["data"]["return_request"]["type"] == "pending"
    assert status["data"]["return_deadline"] is not None


async def test_return_request_needs_reason(client, customer, customer_headers, make_order):
    order = await make_order(customer["_id"], status="delivered", delivered_at=datetime.utcnow())

    res = await client.post(
        f"/api/orders/{order['_id']}/return-request",
        json={"reason": "   "},
        headers=customer_headers,
    )

    assert res.status_code == 400
    assert res.json()["message"] == "Return reason is required"


async def test_return_request_after_window(client, customer, customer_headers, make_order):
    order = await make_order(
        customer["_id"],
        status="delivered",
        delivered_at=datetime.utcnow() - timedelta(days=3, minutes=1),
    )

    res = await client.post(
        f"/api/orders/{order['_id']}/return-request",
        json={"reason": "Changed my mind"},
        headers=customer_headers,
    )

    assert res.status_code == 400
    assert res.json()["message"] == "Return window expired"


async def test_return_request_before_delivery(client, customer, customer_headers, make_order):
    order = await make_order(customer["_id"], status="shipped")

    res = await client.post(
        f"/api/orders/{order['_id']}/return-request",
        json={"reason": "Too slow"},
        headers=customer_headers,
    )

    assert res.status_code == 400
    assert res.json()["message"] == "Return allowed only after delivery"


async def test_second_return_request_rejected(client, customer, customer_headers, make_order):
    order = await make_order(customer["_id"], status="delivered", delivered_at=datetime.utcnow())
    url = f"/api/orders/{order['_id']}/return-request"

    first = await client.post(url, json={"reason": "Damaged"}, headers=customer_headers)
    second = await client.post(url, json={"reason": "Damaged"}, headers=customer_headers)

    assert first.status_code == 200
    assert second.status_code == 400


async def test_timeline_lists_events_in_order(client, customer, customer_headers, make_order):
    order = await make_order(customer["_id"], status="delivered", delivered_at=datetime.utcnow())
    await client.post(
        f"/api/orders/{order['_id']}/return-request",
        json={"reason": "Damaged"},
        headers=customer_headers,
    )

    res = await client.get(f"/api/orders/{order['_id']}/timeline", headers=customer_headers)

    assert res.status_code == 200
    assert [e["event"] for e in res.json()["data"]] == ["RETURN_REQUESTED"]


# -----------------------------
# Razorpay verification
# -----------------------------

SECRET = "rzp_test_secret"


def _sign(order_id: str, payment_id: str) -> str:
    return hmac.new(SECRET.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


@pytest.fixture
def razorpay_keys(monkeypatch):
    monkeypatch.setattr(razorpay, "RAZORPAY_KEY_ID", "rzp_test_key")
    monkeypatch.setattr(razorpay, "RAZORPAY_KEY_SECRET", SECRET)


async def test_verify_payment(client, db, razorpay_keys, customer, customer_headers, make_order):
    order = await make_order(
        customer["_id"],
        payment_method="online",
        payment_meta={"razorpay_order_id": "order_rzp_1"},
    )

    res = await client.post(
        "/api/orders/payment/razorpay/verify",
        json={
            "order_id": str(order["_id"]),
            "razorpay_order_id": "order_rzp_1",
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": _sign("order_rzp_1", "pay_1"),
        },
        headers=customer_headers,
    )

    assert res.status_code == 200
    stored = await db.orders.find_one({"_id": order["_id"]})
    assert stored["payment_status"] == "paid"
    assert stored["payment_transaction_id"] == "pay_1"
    assert stored["payment_meta"]["razorpay_payment_id"] == "pay_1"


async def test_verify_payment_bad_signature(client, db, razorpay_keys, customer, customer_headers, make_order):
    order = await make_order(
        customer["_id"],
        payment_method="online",
        payment_meta={"razorpay_order_id": "order_rzp_1"},
    )

    res = await client.post(
        "/api/orders/payment/razorpay/verify",
        json={
            "order_id": str(order["_id"]),
            "razorpay_order_id": "order_rzp_1",
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": "0" * 64,
        },
        headers=customer_headers,
    )

    assert res.status_code == 401
    assert (await db.orders.find_one({"_id": order["_id"]}))["payment_status"] == "pending"


async def test_verify_payment_order_id_mismatch(client, razorpay_keys, customer, customer_headers, make_order):
    order = await make_order(
        customer["_id"],
        payment_method="online",
        payment_meta={"razorpay_order_id": "order_rzp_1"},
    )

    res = await client.post(
        "/api/orders/payment/razorpay/verify",
        json={
            "order_id": str(order["_id"]),
            "razorpay_order_id": "order_rzp_other",
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": _sign("order_rzp_other", "pay_1"),
        },
        headers=customer_headers,
    )

    assert res.status_code == 400
    assert res.json()["message"] == "Razorpay order id mismatch"
