from fastapi import APIRouter, Depends, HTTPException, Query
from datetime import datetime
from pymongo import DESCENDING, ReturnDocument

from database import get_db
from config.constants import (
    ACCEPTABLE_STATUSES,
    ASSIGNED_BY_VENDOR,
    ROLE_VENDOR,
    STATUS_DELIVERED,
    STATUS_PROCESSING,
    STATUS_SHIPPED,
)
from models.order import StatusUpdate
from utils.guards import assert_vendor_transition, parse_object_id
from utils.ledger import get_paid_amount
from utils.notifications import notify_admin, notify_customer
from utils.order_timeline import record_order_event
from utils.payouts import SETTLED_STATUSES, commission_rate_for, summarize_vendor_payouts
from utils.security import require_linked_vendor, require_role
from utils.serializers import paginate, serialize_record

router = APIRouter(
    prefix="/api/vendor/orders",
    tags=["Vendor Orders"]
)

UNASSIGNED = {"$or": [{"vendor_id": None}, {"vendor_id": {"$exists": False}}]}


# ======================================================
# UNASSIGNED ORDERS (OPEN FOR ACCEPTANCE)
# ======================================================

@router.get("/unassigned")
async def list_unassigned_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    vendor_user=Depends(require_role(ROLE_VENDOR)),
    db=Depends(get_db),
):
    require_linked_vendor(vendor_user)

    query = {**UNASSIGNED, "status": {"$in": list(ACCEPTABLE_STATUSES)}}
    total = await db.orders.count_documents(query)
    orders = await db.orders.find(query).sort(
        "created_at", DESCENDING
    ).skip((page - 1) * limit).limit(limit).to_list(limit)

    return {
        "success": True,
        "data": [serialize_record(o) for o in orders],
        "pagination": paginate(page, limit, total),
    }


# ======================================================
# ACCEPT ORDER
# ======================================================

@router.post("/{order_id}/accept")
async def accept_order(
    order_id: str,
    vendor_user=Depends(require_role(ROLE_VENDOR)),
    db=Depends(get_db),
):
    vendor_id = require_linked_vendor(vendor_user)
    order_oid = parse_object_id(order_id, "order ID")

    order = await db.orders.find_one({"_id": order_oid})
    if not order:
        raise HTTPException(404, "Order not found")

    if order.get("vendor_id"):
        raise HTTPException(400, "Order is already assigned to another vendor")

    if order.get("status") not in ACCEPTABLE_STATUSES:
        raise HTTPException(400, "Order cannot be accepted in its current status")

    now = datetime.utcnow()

    # first vendor wins; the filter re-checks both conditions atomically
    accepted = await db.orders.find_one_and_update(
        {
            "_id": order_oid,
            **UNASSIGNED,
            "status": {"$in": list(ACCEPTABLE_STATUSES)},
        },
        {"$set": {
            "vendor_id": vendor_id,
            "assignment_mode": ASSIGNED_BY_VENDOR,
            "status": STATUS_PROCESSING,
            "accepted_at": now,
            "updated_at": now,
        }},
        return_document=ReturnDocument.AFTER,
    )
    if not accepted:
        raise HTTPException(400, "Order is already assigned to another vendor")

    vendor_name = (vendor_user.get("vendor") or {}).get("name") or "a vendor"

    await record_order_event(
        db,
        order_id=order_oid,
        event="ORDER_ACCEPTED",
        actor_role=ROLE_VENDOR,
        actor_id=vendor_user["_id"],
        metadata={"vendor_id": str(vendor_id)},
    )
    await notify_admin(
        db,
        kind="order_accepted",
        title="Order Accepted",
        message=f"Order {accepted['order_number']} has been accepted by {vendor_name}",
        order=accepted,
    )
    await notify_customer(
        db,
        kind="order_accepted",
        title="Order Accepted",
        message=f"Your order {accepted['order_number']} has been accepted by {vendor_name} and is now being processed",
        order=accepted,
    )

    return {
        "success": True,
        "message": "Order accepted successfully",
        "data": serialize_record(accepted),
    }


# ======================================================
# VENDOR'S OWN ORDERS
# ======================================================

@router.get("")
async def list_vendor_orders(
    status: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    vendor_user=Depends(require_role(ROLE_VENDOR)),
    db=Depends(get_db),
):
    vendor_id = require_linked_vendor(vendor_user)

    query = {"vendor_id": vendor_id}
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


@router.get("/dashboard/stats")
async def vendor_dashboard_stats(
    vendor_user=Depends(require_role(ROLE_VENDOR)),
    db=Depends(get_db),
):
    vendor_id = require_linked_vendor(vendor_user)
    vendor = vendor_user.get("vendor")

    counts = {
        "orders": await db.orders.count_documents({"vendor_id": vendor_id}),
        "pending": await db.orders.count_documents({"vendor_id": vendor_id, "status": STATUS_PROCESSING}),
        "shipped": await db.orders.count_documents({"vendor_id": vendor_id, "status": STATUS_SHIPPED}),
        "delivered": await db.orders.count_documents({"vendor_id": vendor_id, "status": STATUS_DELIVERED}),
    }

    payout_orders = await db.orders.find(
        {"vendor_id": vendor_id, "status": {"$in": [STATUS_SHIPPED, *SETTLED_STATUSES]}},
        {"subtotal": 1, "total": 1, "status": 1, "delivered_at": 1, "updated_at": 1, "return_request": 1},
    ).to_list(None)

    summary = summarize_vendor_payouts(
        payout_orders,
        commission_rate_for(vendor),
        paid=await get_paid_amount(db, vendor_id),
    )

    recent = await db.orders.find({"vendor_id": vendor_id}).sort(
        "created_at", DESCENDING
    ).limit(5).to_list(5)

    return {
        "success": True,
        "data": {
            "totals": {**counts, **summary},
            "commission_rate": commission_rate_for(vendor),
            "recent_orders": [serialize_record(o) for o in recent],
            "vendor_status": (vendor or {}).get("status"),
        },
    }


@router.get("/{order_id}")
async def get_vendor_order(
    order_id: str,
    vendor_user=Depends(require_role(ROLE_VENDOR)),
    db=Depends(get_db),
):
    vendor_id = require_linked_vendor(vendor_user)

    order = await db.orders.find_one({
        "_id": parse_object_id(order_id, "order ID"),
        "vendor_id": vendor_id,
    })
    if not order:
        raise HTTPException(404, "Order not found or not assigned to you")

    return {"success": True, "data": serialize_record(order)}


# ======================================================
# SHIP / DELIVER
# ======================================================

@router.put("/{order_id}/status")
async def update_vendor_order_status(
    order_id: str,
    data: StatusUpdate,
    vendor_user=Depends(require_role(ROLE_VENDOR)),
    db=Depends(get_db),
):
    vendor_id = require_linked_vendor(vendor_user)
    target = data.status

    # validate the target before touching the order
    if target not in (STATUS_SHIPPED, STATUS_DELIVERED):
        assert_vendor_transition(None, target)

    order = await db.orders.find_one({
        "_id": parse_object_id(order_id, "order ID"),
        "vendor_id": vendor_id,
    })
    if not order:
        raise HTTPException(404, "Order not found or not assigned to you")

    assert_vendor_transition(order.get("status"), target)

    now = datetime.utcnow()
    updates = {"status": target, "updated_at": now}
    if target == STATUS_SHIPPED:
        updates["shipped_at"] = now
        if data.awb_number:
            updates["awb_number"] = data.awb_number.strip()
    if target == STATUS_DELIVERED and not order.get("delivered_at"):
        updates["delivered_at"] = now

    result = await db.orders.update_one(
        {"_id": order["_id"], "status": order.get("status")},
        {"$set": updates},
    )
    if result.modified_count == 0:
        raise HTTPException(409, "Order status changed. Please refresh and try again.")

    await record_order_event(
        db,
        order_id=order["_id"],
        event=f"ORDER_{target.upper()}",
        actor_role=ROLE_VENDOR,
        actor_id=vendor_user["_id"],
        metadata={"awb_number": updates.get("awb_number")},
    )

    vendor_name = (vendor_user.get("vendor") or {}).get("name") or "vendor"
    number = order.get("order_number")
    if target == STATUS_SHIPPED:
        admin_message = f"Order {number} has been shipped by {vendor_name} to the customer"
        customer_message = f"Your order {number} has been shipped and is on its way to you"
    else:
        admin_message = f"Order {number} has been delivered by {vendor_name}"
        customer_message = f"Your order {number} has been delivered successfully. Thank you for your purchase!"

    await notify_admin(
        db,
        kind=f"order_{target}",
        title=f"Order {target.capitalize()}",
        message=admin_message,
        order=order,
    )
    await notify_customer(
        db,
        kind=f"order_{target}",
        title=f"Order {target.capitalize()}",
        message=customer_message,
        order=order,
    )

    return {"success": True, "message": f"Order status updated to {target}"}
