import asyncio
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import DESCENDING

from database import get_db
from config.env import RAZORPAY_KEY_ID
from config.constants import (
    CANCELLABLE_STATUSES,
    PAYMENT_METHODS,
    PAYMENT_ONLINE,
    RETURN_PENDING,
    ROLE_CUSTOMER,
    STATUS_CANCELLED,
    STATUS_DELIVERED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_RETURN_REQUESTED,
    STATUS_SHIPPED,
)
from models.order import OrderCreate, RazorpayVerifyPayload, ReturnRequestCreate
from utils.guards import (
    assert_cancellable,
    assert_return_requestable,
    parse_object_id,
)
from utils.notifications import notify_admin, notify_vendors_new_order
from utils.order_timeline import get_order_events, record_order_event
from utils.payouts import return_deadline
from utils.pricing import generate_order_number, order_totals
from utils.razorpay import (
    amount_to_paise,
    create_razorpay_order,
    verify_checkout_signature,
)
from utils.security import require_role
from utils.serializers import paginate, serialize_doc, serialize_docs, serialize_record
from utils.stock import release_stock, reserve_stock

router = APIRouter(
    prefix="/api/orders",
    tags=["Orders"]
)


async def _customer_order(db, order_id: str, customer: dict) -> dict:
    order = await db.orders.find_one({
        "_id": parse_object_id(order_id, "order ID"),
        "customer_id": customer["_id"],
    })
    if not order:
        raise HTTPException(404, "Order not found")
    return order


# ======================================================
# CREATE ORDER (CHECKOUT)
# ======================================================

@router.post("", status_code=201)
async def create_order(
    data: OrderCreate,
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    if not data.address_id:
        raise HTTPException(400, "Shipping address is required")

    payment_method = (data.payment_method or "").strip().lower()
    if payment_method not in PAYMENT_METHODS:
        raise HTTPException(
            400,
            f"Invalid payment method. Allowed: {', '.join(sorted(PAYMENT_METHODS))}",
        )

    cart = await db.carts.find_one({"customer_id": customer["_id"]})
    if not cart or not cart.get("items"):
        raise HTTPException(400, "Cart is empty")

    address = await db.customer_addresses.find_one({
        "_id": parse_object_id(data.address_id, "address_id"),
        "customer_id": customer["_id"],
    })
    if not address:
        raise HTTPException(404, "Address not found")

    items = []
    for line in cart["items"]:
        product = await db.products.find_one({"_id": line["product_id"]})
        if not product or product.get("active") is False:
            raise HTTPException(400, "A product in your cart is no longer available")

        if product.get("stock", 0) < line["quantity"]:
            raise HTTPException(400, f"Insufficient stock for {product.get('name')}")

        images = product.get("images") or []
        items.append({
            "product_id": product["_id"],
            "name": product.get("name"),
            "brand": product.get("brand"),
            "quantity": int(line["quantity"]),
            "price": float(product.get("price", 0)),
            "image": images[0] if images else "",
        })

    totals = order_totals(items, address.get("state"))
    now = datetime.utcnow()
    order_number = generate_order_number()

    await reserve_stock(db, items)

    razorpay_order = None
    try:
        if payment_method == PAYMENT_ONLINE:
            razorpay_order = await asyncio.to_thread(
                create_razorpay_order,
                amount_paise=amount_to_paise(totals["total"]),
                receipt=order_number[:40],
                notes={
                    "customer_id": str(customer["_id"]),
                    "order_number": order_number,
                },
            )

        order = {
            "order_number": order_number,
            "customer_id": customer["_id"],
            "items": items,
            "shipping_address_id": address["_id"],
            "shipping_state": address.get("state"),
            **totals,
            "status": STATUS_PENDING,
            "payment_method": payment_method,
            "payment_status": "pending",
            "payment_gateway": "razorpay" if razorpay_order else None,
            "payment_transaction_id": None,
            "payment_meta": {"razorpay_order_id": razorpay_order.get("id")} if razorpay_order else {},
            "refund_status": None,
            "refund_transaction_id": None,
            "vendor_id": None,
            "assignment_mode": None,
            "awb_number": None,
            "notes": data.notes,
            "return_request": {"type": None},
            "delivered_at": None,
            "created_at": now,
            "updated_at": now,
        }

        await db.orders.insert_one(order)
    except Exception:
        await release_stock(db, items)
        raise

    await db.carts.update_one(
        {"customer_id": customer["_id"]},
        {"$set": {"items": [], "updated_at": now}},
    )

    await record_order_event(
        db,
        order_id=order["_id"],
        event="ORDER_CREATED",
        actor_role=ROLE_CUSTOMER,
        actor_id=customer["_id"],
        metadata={"payment_method": payment_method, "total": totals["total"]},
    )

    await notify_admin(
        db,
        kind="new_order",
        title="New Order Placed",
        message=f"Order {order_number} was placed. Total: ₹{totals['total']:,.2f}",
        order=order,
    )
    await notify_vendors_new_order(db, order)

    response = {
        "success": True,
        "message": "Order placed successfully",
        "data": serialize_record(order),
    }

    if razorpay_order:
        response["payment"] = {
            "gateway": "razorpay",
            "key_id": RAZORPAY_KEY_ID,
            "razorpay_order_id": razorpay_order.get("id"),
            "amount_paise": razorpay_order.get("amount", amount_to_paise(totals["total"])),
            "currency": razorpay_order.get("currency", "INR"),
        }

    return response


# ======================================================
# LIST / STATS / DETAIL
# ======================================================

@router.get("")
async def list_orders(
    status: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    query = {"customer_id": customer["_id"]}
    if status:
        query["status"] = status

    total = await db.orders.count_documents(query)
    orders = await db.orders.find(query).sort(
        "created_at", DESCENDING
    ).skip((page - 1) * limit).limit(limit).to_list(limit)

    return {
        "success": True,
        "data": [serialize_record(o) for o in orders],
        "pagination": paginate(page, limit, total),
    }


@router.get("/stats")
async def order_stats(
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    stats = {"total": await db.orders.count_documents({"customer_id": customer["_id"]})}

    for status in (STATUS_PENDING, STATUS_PROCESSING, STATUS_SHIPPED, STATUS_DELIVERED, STATUS_CANCELLED):
        stats[status] = await db.orders.count_documents({
            "customer_id": customer["_id"],
            "status": status,
        })

    return {"success": True, "data": stats}


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    order = await _customer_order(db, order_id, customer)
    return {"success": True, "data": serialize_record(order)}


# ======================================================
# CANCEL
# ======================================================

@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    order = await _customer_order(db, order_id, customer)
    assert_cancellable(order)

    now = datetime.utcnow()
    result = await db.orders.update_one(
        {"_id": order["_id"], "status": {"$in": list(CANCELLABLE_STATUSES)}},
        {"$set": {
            "status": STATUS_CANCELLED,
            "cancelled_at": now,
            "cancelled_by": ROLE_CUSTOMER,
            "updated_at": now,
        }},
    )
    if result.modified_count == 0:
        raise HTTPException(409, "Order status changed. Please refresh and try again.")

    await release_stock(db, order.get("items", []))

    await record_order_event(
        db,
        order_id=order["_id"],
        event="ORDER_CANCELLED",
        actor_role=ROLE_CUSTOMER,
        actor_id=customer["_id"],
        metadata={"previous_status": order.get("status")},
    )
    await notify_admin(
        db,
        kind="order_cancelled",
        title="Order Cancelled",
        message=f"Customer cancelled order {order.get('order_number')}.",
        order=order,
    )

    return {"success": True, "message": "Order cancelled successfully"}


# ======================================================
# RETURNS
# ======================================================

@router.post("/{order_id}/return-request")
async def request_return(
    order_id: str,
    data: ReturnRequestCreate,
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    reason = (data.reason or "").strip()
    if not reason:
        raise HTTPException(400, "Return reason is required")

    order = await _customer_order(db, order_id, customer)
    now = datetime.utcnow()
    assert_return_requestable(order, now)

    result = await db.orders.update_one(
        {"_id": order["_id"], "status": STATUS_DELIVERED, "return_request.type": None},
        {"$set": {
            "status": STATUS_RETURN_REQUESTED,
            "return_request": {
                "type": RETURN_PENDING,
                "reason": reason,
                "requested_at": now,
                "reviewed_at": None,
                "reviewed_by": None,
                "admin_notes": None,
                "refund_status": None,
                "refund_transaction_id": None,
            },
            "updated_at": now,
        }},
    )
    if result.modified_count == 0:
        raise HTTPException(400, "Return already requested")

    await record_order_event(
        db,
        order_id=order["_id"],
        event="RETURN_REQUESTED",
        actor_role=ROLE_CUSTOMER,
        actor_id=customer["_id"],
        metadata={"reason": reason},
    )
    await notify_admin(
        db,
        kind="return_requested",
        title="Return Requested",
        message=f"Customer requested a return for order {order.get('order_number')}.",
        order=order,
    )

    return {"success": True, "message": "Return request submitted"}


@router.get("/{order_id}/return-status")
async def return_status(
    order_id: str,
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    order = await _customer_order(db, order_id, customer)
    delivered_at = order.get("delivered_at")

    return {
        "success": True,
        "data": {
            "order_status": order.get("status"),
            "return_request": serialize_doc(order.get("return_request") or {}),
            "return_deadline": return_deadline(delivered_at).isoformat() if delivered_at else None,
            "refund_status": order.get("refund_status"),
        },
    }


@router.get("/{order_id}/timeline")
async def order_timeline(
    order_id: str,
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    order = await _customer_order(db, order_id, customer)
    events = await get_order_events(db, order["_id"])
    return {"success": True, "data": serialize_docs(events)}


# ======================================================
# RAZORPAY VERIFY
# ======================================================

@router.post("/payment/razorpay/verify")
async def verify_razorpay_payment(
    data: RazorpayVerifyPayload,
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    order = await _customer_order(db, data.order_id, customer)

    if order.get("payment_method") != PAYMENT_ONLINE:
        raise HTTPException(400, "Order payment method is not online")

    if order.get("payment_status") == "paid":
        return {"success": True, "message": "Payment already verified", "order_id": data.order_id}

    if order.get("payment_status") != "pending":
        raise HTTPException(400, "Order is not in payable state")

    if (order.get("payment_meta") or {}).get("razorpay_order_id") != data.razorpay_order_id:
        raise HTTPException(400, "Razorpay order id mismatch")

    if not verify_checkout_signature(
        razorpay_order_id=data.razorpay_order_id,
        razorpay_payment_id=data.razorpay_payment_id,
        razorpay_signature=data.razorpay_signature,
    ):
        raise HTTPException(401, "Invalid Razorpay signature")

    now = datetime.utcnow()
    await db.orders.update_one(
        {"_id": order["_id"], "payment_status": "pending"},
        {"$set": {
            "payment_status": "paid",
            "payment_transaction_id": data.razorpay_payment_id,
            "payment_meta.razorpay_payment_id": data.razorpay_payment_id,
            "payment_meta.razorpay_signature": data.razorpay_signature,
            "payment_meta.paid_at": now,
            "updated_at": now,
        }},
    )

    await record_order_event(
        db,
        order_id=order["_id"],
        event="PAYMENT_VERIFIED",
        actor_role=ROLE_CUSTOMER,
        actor_id=customer["_id"],
        metadata={
            "gateway": "razorpay",
            "razorpay_order_id": data.razorpay_order_id,
            "razorpay_payment_id": data.razorpay_payment_id,
        },
    )

    return {
        "success": True,
        "message": "Razorpay payment verified",
        "order_id": data.order_id,
        "payment_status": "paid",
    }
