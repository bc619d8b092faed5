from datetime import datetime, timedelta

import pytest
from bson import ObjectId

from config.constants import ROLE_VENDOR


async def test_unassigned_pool(client, customer, vendor_headers, make_order):
    await make_order(customer["_id"])
    await make_order(customer["_id"], status="confirmed")
    await make_order(customer["_id"], status="processing", vendor_id=ObjectId())
    await make_order(customer["_id"], status="cancelled")

    res = await client.get("/api/vendor/orders/unassigned", headers=vendor_headers)

    assert res.status_code == 200
    assert res.json()["pagination"]["total"] == 2


async def test_accept_order(client, db, customer, vendor, vendor_headers, make_order):
    order = await make_order(customer["_id"])

    res = await client.post(f"/api/vendor/orders/{order['_id']}/accept", headers=vendor_headers)

    assert res.status_code == 200
    stored = await db.orders.find_one({"_id": order["_id"]})
    assert stored["vendor_id"] == vendor["_id"]
    assert stored["assignment_mode"] == "accepted-by-vendor"
    assert stored["status"] == "processing"
    assert stored["accepted_at"] is not None

    notified = await db.notifications.find({"user_id": customer["_id"]}).to_list(None)
    assert [n["type"] for n in notified] == ["order_accepted"]


async def test_accepting_twice_only_first_vendor_wins(client, db, customer, vendor_headers,
                                                     headers_for, make_order):
    order = await make_order(customer["_id"])
    other_vendor = {"name": "Other", "status": "approved", "is_active": True}
    await db.vendors.insert_one(other_vendor)
    other_user = {"mobile": "9000000002", "vendor_id": other_vendor["_id"], "is_active": True}
    await db.vendor_users.insert_one(other_user)

    first = await client.post(f"/api/vendor/orders/{order['_id']}/accept", headers=vendor_headers)
    second = await client.post(
        f"/api/vendor/orders/{order['_id']}/accept",
        headers=headers_for(other_user, ROLE_VENDOR),
    )

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["message"] == "Order is already assigned to another vendor"


async def test_cannot_accept_cancelled_order(client, customer, vendor_headers, make_order):
    order = await make_order(customer["_id"], status="cancelled")

    res = await client.post(f"/api/vendor/orders/{order['_id']}/accept", headers=vendor_headers)

    assert res.status_code == 400
    assert res.json()["message"] == "Order cannot be accepted in its current status"


async def test_accept_unknown_order(client, vendor_headers):
    res = await client.post(f"/api/vendor/orders/{ObjectId()}/accept", headers=vendor_headers)
    assert res.status_code == 404


async def test_unlinked_vendor_user_is_refused(client, db, customer, headers_for, make_order):
    loose = {"mobile": "9000000003", "vendor_id": None, "is_active": True}
    await db.vendor_users.insert_one(loose)
    order = await make_order(customer["_id"])

    res = await client.post(
        f"/api/vendor/orders/{order['_id']}/accept",
        headers=headers_for(loose, ROLE_VENDOR),
    )

    assert res.status_code == 400
    assert res.json()["message"] == "Vendor account not linked. Please contact support."


async def test_suspended_vendor_is_unauthorized(client, db, vendor, vendor_headers):
    await db.vendors.update_one({"_id": vendor["_id"]}, {"$set": {"status": "suspended"}})

    res = await client.get("/api/vendor/orders", headers=vendor_headers)

    assert res.status_code == 401


async def test_vendor_sees_only_own_orders(client, customer, vendor, vendor_headers, make_order):
    mine = await make_order(customer["_id"], status="processing", vendor_id=vendor["_id"])
    theirs = await make_order(customer["_id"], status="processing", vendor_id=ObjectId())

    listing = (await client.get("/api/vendor/orders", headers=vendor_headers)).json()
    own = await client.get(f"/api/vendor/orders/{mine['_id']}", headers=vendor_headers)
    other = await client.get(f"/api/vendor/orders/{theirs['_id']}", headers=vendor_headers)

    assert [o["id"] for o in listing["data"]] == [str(mine["_id"])]
    assert own.status_code == 200
    assert other.status_code == 404
    assert other.json()["message"] == "Order not found or not assigned to you"


# -----------------------------
# Ship / deliver
# -----------------------------

async def test_ship_then_deliver(client, db, customer, vendor, vendor_headers, make_order):
    order = await make_order(customer["_id"], status="processing", vendor_id=vendor["_id"])
    url = f"/api/vendor/orders/{order['_id']}/status"

    shipped = await client.put(url, json={"status": "shipped", "awb_number": " AWB123 "}, headers=vendor_headers)
    assert shipped.status_code == 200

    stored = await db.orders.find_one({"_id": order["_id"]})
    assert stored["status"] == "shipped"
    assert stored["awb_number"] == "AWB123"
    assert stored["shipped_at"] is not None

    delivered = await client.put(url, json={"status": "delivered"}, headers=vendor_headers)
    assert delivered.status_code == 200

    stored = await db.orders.find_one({"_id": order["_id"]})
    assert stored["status"] == "delivered"
    assert stored["delivered_at"] is not None


@pytest.mark.parametrize("current,target,message", [
    ("pending", "shipped", "Can only ship orders that are in 'processing' status"),
    ("processing", "delivered", "Can only deliver orders that are in 'shipped' status"),
    ("shipped", "cancelled", "Vendors can only update status to 'shipped' or 'delivered'"),
])
async def test_invalid_transitions(client, db, customer, vendor, vendor_headers, make_order,
                                   current, target, message):
    order = await make_order(customer["_id"], status=current, vendor_id=vendor["_id"])

    res = await client.put(
        f"/api/vendor/orders/{order['_id']}/status",
        json={"status": target},
        headers=vendor_headers,
    )

    assert res.status_code == 400
    assert res.json()["message"] == message
    assert (await db.orders.find_one({"_id": order["_id"]}))["status"] == current


async def test_delivery_time_is_not_overwritten(client, db, customer, vendor, vendor_headers, make_order):
    first_delivery = datetime(2024, 1, 5, 12, 0, 0)
    order = await make_order(
        customer["_id"],
        status="shipped",
        vendor_id=vendor["_id"],
        delivered_at=first_delivery,
    )

    await client.put(
        f"/api/vendor/orders/{order['_id']}/status",
        json={"status": "delivered"},
        headers=vendor_headers,
    )

    assert (await db.orders.find_one({"_id": order["_id"]}))["delivered_at"] == first_delivery


# -----------------------------
# Dashboard
# -----------------------------

async def test_dashboard_stats(client, db, customer, vendor, vendor_headers, make_order):
    long_ago = datetime.utcnow() - timedelta(days=10)
    await make_order(customer["_id"], status="processing", vendor_id=vendor["_id"])
    await make_order(customer["_id"], status="shipped", vendor_id=vendor["_id"], subtotal=500.0)
    await make_order(customer["_id"], status="delivered", vendor_id=vendor["_id"], delivered_at=long_ago)
    await db.vendor_ledger.insert_one({
        "vendor_id": vendor["_id"],
        "entry_type": "VENDOR_PAYOUT",
        "amount": 100.0,
        "created_at": datetime.utcnow(),
    })

    res = await client.get("/api/vendor/orders/dashboard/stats", headers=vendor_headers)

    assert res.status_code == 200
    totals = res.json()["data"]["totals"]
    assert totals["orders"] == 3
    assert totals["pending"] == 1
    assert totals["shipped"] == 1
    assert totals["delivered"] == 1
    assert totals["total_earned"] == 784.0
    assert totals["pending_amount"] == 392.0
    assert totals["paid_amount"] == 100.0
    assert totals["balance_amount"] == 684.0
    assert res.json()["data"]["commission_rate"] == 20
