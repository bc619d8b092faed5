import re
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from database import get_db
from config.constants import (
    ACCEPTABLE_STATUSES,
    ADMIN_SETTABLE_STATUSES,
    ASSIGNED_BY_ADMIN,
    CANCELLABLE_STATUSES,
    LOCKED_STATUSES,
    PAYMENT_STATUSES,
    REFUND_COMPLETED,
    REFUND_PENDING,
    REFUND_PROCESSING,
    RETURN_ACCEPTED,
    RETURN_DENIED,
    RETURN_PENDING,
    ROLE_ADMIN,
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    STATUS_DELIVERED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_RETURN_ACCEPTED,
    STATUS_RETURN_PICKED_UP,
    STATUS_RETURN_REJECTED,
    STATUS_RETURN_REQUESTED,
    STATUS_SHIPPED,
)
from models.order import (
    AssignVendor,
    OrderUpdate,
    PaymentStatusUpdate,
    ReturnDecision,
    StatusUpdate,
)
from utils.audit import log_audit
from utils.guards import assert_cancellable, parse_object_id
from utils.notifications import notify, notify_customer, AUDIENCE_VENDOR
from utils.order_timeline import record_order_event
from utils.refunds import process_refund
from utils.security import require_role
from utils.serializers import paginate, serialize_record
from utils.stock import release_stock

router = APIRouter(prefix="/api/admin/orders", tags=["Admin Orders"])

SORT_FIELDS = {"created_at", "updated_at", "total", "order_number", "status"}


async def _get_order(db, order_id: str) -> dict:
    order = await db.orders.find_one({"_id": parse_object_id(order_id, "order ID")})
    if not order:
        raise HTTPException(404, "Order not found")
    return order


async def _search_filter(db, search: str) -> dict:
    pattern = re.escape(search.strip())
    conditions = [
        {"order_number": {"$regex": pattern, "$options": "i"}},
        {"items.name": {"$regex": pattern, "$options": "i"}},
    ]

    digits = re.sub(r"\D", "", search)
    if re.fullmatch(r"[\d\s+\-]+", search) and len(digits) >= 10:
        customers = await db.customers.find(
            {"mobile": {"$regex": digits[-10:]}}, {"_id": 1}
        ).to_list(None)
        if customers:
            conditions.append({"customer_id": {"$in": [c["_id"] for c in customers]}})

    vendors = await db.vendors.find(
        {"name": {"$regex": pattern, "$options": "i"}}, {"_id": 1}
    ).to_list(None)
    if vendors:
        conditions.append({"vendor_id": {"$in": [v["_id"] for v in vendors]}})

    return {"$or": conditions}


# =====================================================
# LIST ORDERS
# =====================================================

@router.get("")
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = Query(""),
    status: str = Query(""),
    payment_method: str = Query(""),
    payment_status: str = Query(""),
    vendor_id: str = Query(""),
    assignment_mode: str = Query(""),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    query = {}

    if search.strip():
        query.update(await _search_filter(db, search))

    for field, value in (
        ("status", status),
        ("payment_method", payment_method),
        ("payment_status", payment_status),
        ("assignment_mode", assignment_mode),
    ):
        if value and value != "all":
            query[field] = value

    if vendor_id == "unassigned":
        query["vendor_id"] = None
    elif vendor_id and vendor_id != "all":
        query["vendor_id"] = parse_object_id(vendor_id, "vendor_id")

    sort_field = sort_by if sort_by in SORT_FIELDS else "created_at"
    direction = ASCENDING if sort_order == "asc" else DESCENDING

    total = await db.orders.count_documents(query)
    orders = await db.orders.find(query).sort(
        sort_field, direction
    ).skip((page - 1) * limit).limit(limit).to_list(limit)

    return {
        "success": True,
        "data": [serialize_record(o) for o in orders],
        "pagination": paginate(page, limit, total),
    }


# =====================================================
# OVERVIEW STATS
# =====================================================

@router.get("/stats/overview")
async def order_overview(
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    stats = {"total": await db.orders.count_documents({})}
    for status in (STATUS_PENDING, STATUS_PROCESSING, STATUS_SHIPPED, STATUS_DELIVERED, STATUS_CANCELLED):
        stats[status] = await db.orders.count_documents({"status": status})

    revenue = await db.orders.aggregate([
        {"$match": {"status": STATUS_DELIVERED, "payment_status": "paid"}},
        {"$group": {"_id": None, "total": {"$sum": "$total"}}},
    ]).to_list(1)
    stats["total_revenue"] = round(revenue[0]["total"], 2) if revenue else 0

    return {"success": True, "data": stats}


# =====================================================
# RETURN REQUESTS
# =====================================================

@router.get("/returns")
async def list_return_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: str = Query(RETURN_PENDING),
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    query = {"return_request.type": {"$ne": None} if status == "all" else status}

    total = await db.orders.count_documents(query)
    orders = await db.orders.find(query).sort(
        "return_request.requested_at", DESCENDING
    ).skip((page - 1) * limit).limit(limit).to_list(limit)

    return {
        "success": True,
        "data": [serialize_record(o) for o in orders],
        "pagination": paginate(page, limit, total),
    }


# =====================================================
# SINGLE ORDER
# =====================================================

@router.get("/{order_id}")
async def get_order(
    order_id: str,
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    order = await _get_order(db, order_id)
    data = serialize_record(order)

    if order.get("vendor_id"):
        vendor = await db.vendors.find_one({"_id": order["vendor_id"]}, {"name": 1, "email": 1, "phone": 1})
        data["vendor"] = serialize_record(vendor) if vendor else None

    customer = await db.customers.find_one({"_id": order.get("customer_id")}, {"name": 1, "mobile": 1, "email": 1})
    data["customer"] = serialize_record(customer) if customer else None

    return {"success": True, "data": data}


async def _cancel(db, order: dict, admin: dict):
    assert_cancellable(order)

    now = datetime.utcnow()
    result = await db.orders.update_one(
        {"_id": order["_id"], "status": {"$in": list(CANCELLABLE_STATUSES)}},
        {"$set": {
            "status": STATUS_CANCELLED,
            "cancelled_at": now,
            "cancelled_by": ROLE_ADMIN,
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
        actor_role=ROLE_ADMIN,
        actor_id=admin["_id"],
        metadata={"previous_status": order.get("status")},
    )
    await notify_customer(
        db,
        kind="order_cancelled",
        title="Order Cancelled",
        message=f"Your order {order.get('order_number')} has been cancelled.",
        order=order,
    )


@router.put("/{order_id}/status")
async def update_order_status(
    order_id: str,
    data: StatusUpdate,
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    if not data.status:
        raise HTTPException(400, "Status is required")

    if data.status not in ADMIN_SETTABLE_STATUSES:
        raise HTTPException(400, "Invalid status")

    order = await _get_order(db, order_id)

    if data.status == STATUS_CANCELLED:
        await _cancel(db, order, admin)
    else:
        if order.get("status") in LOCKED_STATUSES:
            raise HTTPException(400, f"Cannot change status of a {order.get('status')} order")

        now = datetime.utcnow()
        updates = {"status": data.status, "updated_at": now}
        if data.status == STATUS_DELIVERED and not order.get("delivered_at"):
            updates["delivered_at"] = now
        if data.awb_number:
            updates["awb_number"] = data.awb_number.strip()

        updated = await db.orders.find_one_and_update(
            {"_id": order["_id"], "status": order.get("status")},
            {"$set": updates},
        )
        if not updated:
            raise HTTPException(409, "Order status changed. Please refresh and try again.")

        await record_order_event(
            db,
            order_id=order["_id"],
            event=f"ORDER_{data.status.upper()}",
            actor_role=ROLE_ADMIN,
            actor_id=admin["_id"],
            metadata={"previous_status": order.get("status"), "notes": data.notes},
        )
        await notify_customer(
            db,
            kind=f"order_{data.status}",
            title="Order Status Updated",
            message=f"Your order {order.get('order_number')} is now {data.status}.",
            order=order,
        )

    await log_audit(db, admin, "ORDER_STATUS_UPDATED", {
        "order_id": str(order["_id"]),
        "from": order.get("status"),
        "to": data.status,
    })

    return {"success": True, "message": "Order status updated successfully"}


@router.put("/{order_id}/payment-status")
async def update_payment_status(
    order_id: str,
    data: PaymentStatusUpdate,
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    if not data.payment_status:
        raise HTTPException(400, "Payment status is required")

    if data.payment_status not in PAYMENT_STATUSES:
        raise HTTPException(400, "Invalid payment status")

    order = await _get_order(db, order_id)

    updates = {"payment_status": data.payment_status, "updated_at": datetime.utcnow()}
    if data.transaction_id:
        updates["payment_transaction_id"] = data.transaction_id.strip()

    await db.orders.update_one({"_id": order["_id"]}, {"$set": updates})

    await record_order_event(
        db,
        order_id=order["_id"],
        event="PAYMENT_STATUS_UPDATED",
        actor_role=ROLE_ADMIN,
        actor_id=admin["_id"],
        metadata={"from": order.get("payment_status"), "to": data.payment_status},
    )
    await log_audit(db, admin, "ORDER_PAYMENT_STATUS_UPDATED", {
        "order_id": str(order["_id"]),
        "to": data.payment_status,
    })

    return {"success": True, "message": "Payment status updated successfully"}


@router.put("/{order_id}")
async def update_order(
    order_id: str,
    data: OrderUpdate,
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    order = await _get_order(db, order_id)

    updates = {}
    if data.awb_number is not None:
        updates["awb_number"] = data.awb_number.strip() or None
    if data.admin_notes is not None:
        updates["admin_notes"] = data.admin_notes.strip()
    if data.shipping_address_id:
        address = await db.customer_addresses.find_one({
            "_id": parse_object_id(data.shipping_address_id, "shipping_address_id"),
            "customer_id": order.get("customer_id"),
        })
        if not address:
            raise HTTPException(400, "Address does not belong to the order's customer")
        updates["shipping_address_id"] = address["_id"]
        updates["shipping_state"] = address.get("state")

    if not updates:
        raise HTTPException(400, "Nothing to update")

    updates["updated_at"] = datetime.utcnow()
    updated = await db.orders.find_one_and_update(
        {"_id": order["_id"]},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )

    await log_audit(db, admin, "ORDER_UPDATED", {
        "order_id": str(order["_id"]),
        "fields": sorted(k for k in updates if k != "updated_at"),
    })

    return {
        "success": True,
        "message": "Order updated successfully",
        "data": serialize_record(updated),
    }


# =====================================================
# VENDOR ASSIGNMENT
# =====================================================

@router.put("/{order_id}/assign-vendor")
async def assign_vendor(
    order_id: str,
    data: AssignVendor,
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    order = await _get_order(db, order_id)

    if order.get("status") not in CANCELLABLE_STATUSES:
        raise HTTPException(400, f"Cannot change vendor once the order is {order.get('status')}")

    now = datetime.utcnow()

    if not data.vendor_id:
        # back to the open pool
        await db.orders.update_one(
            {"_id": order["_id"]},
            {"$set": {
                "vendor_id": None,
                "assignment_mode": None,
                "status": STATUS_CONFIRMED,
                "updated_at": now,
            }},
        )
        await record_order_event(
            db,
            order_id=order["_id"],
            event="VENDOR_UNASSIGNED",
            actor_role=ROLE_ADMIN,
            actor_id=admin["_id"],
            metadata={"previous_vendor_id": str(order["vendor_id"]) if order.get("vendor_id") else None},
        )
        await log_audit(db, admin, "ORDER_VENDOR_UNASSIGNED", {"order_id": str(order["_id"])})
        return {"success": True, "message": "Vendor unassigned successfully"}

    vendor = await db.vendors.find_one({"_id": parse_object_id(data.vendor_id, "vendor_id")})
    if not vendor:
        raise HTTPException(400, "Vendor not found")

    if vendor.get("status") != "approved" or vendor.get("is_active") is False:
        raise HTTPException(400, "Vendor is not approved")

    updates = {
        "vendor_id": vendor["_id"],
        "assignment_mode": ASSIGNED_BY_ADMIN,
        "updated_at": now,
    }
    if order.get("status") in ACCEPTABLE_STATUSES:
        updates["status"] = STATUS_PROCESSING

    updated = await db.orders.find_one_and_update(
        {"_id": order["_id"]},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )

    await record_order_event(
        db,
        order_id=order["_id"],
        event="VENDOR_ASSIGNED",
        actor_role=ROLE_ADMIN,
        actor_id=admin["_id"],
        metadata={"vendor_id": str(vendor["_id"])},
    )

    vendor_user = await db.vendor_users.find_one({"vendor_id": vendor["_id"], "is_active": {"$ne": False}})
    if vendor_user:
        await notify(
            db,
            user_id=vendor_user["_id"],
            user_type=AUDIENCE_VENDOR,
            kind="order_assigned",
            title="Order Assigned",
            message=f"Order {order.get('order_number')} has been assigned to you.",
            order=updated,
        )

    await log_audit(db, admin, "ORDER_VENDOR_ASSIGNED", {
        "order_id": str(order["_id"]),
        "vendor_id": str(vendor["_id"]),
    })

    return {
        "success": True,
        "message": "Vendor assigned successfully",
        "data": serialize_record(updated),
    }


@router.delete("/{order_id}")
async def cancel_order(
    order_id: str,
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    order = await _get_order(db, order_id)
    await _cancel(db, order, admin)

    await log_audit(db, admin, "ORDER_CANCELLED", {"order_id": str(order["_id"])})

    return {"success": True, "message": "Order cancelled successfully"}


# =====================================================
# RETURN DECISIONS
# =====================================================

def _assert_pending_return(order: dict):
    if (
        order.get("status") != STATUS_RETURN_REQUESTED
        or (order.get("return_request") or {}).get("type") != RETURN_PENDING
    ):
        raise HTTPException(400, "No pending return request found for this order")


@router.post("/{order_id}/return/accept")
async def accept_return(
    order_id: str,
    data: ReturnDecision,
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    order = await _get_order(db, order_id)
    _assert_pending_return(order)

    now = datetime.utcnow()
    await db.orders.update_one(
        {"_id": order["_id"]},
        {"$set": {
            "status": STATUS_RETURN_ACCEPTED,
            "return_request.type": RETURN_ACCEPTED,
            "return_request.reviewed_at": now,
            "return_request.reviewed_by": admin["_id"],
            "return_request.admin_notes": (data.admin_notes or "").strip() or None,
            "return_request.refund_status": REFUND_PENDING,
            "refund_status": REFUND_PENDING,
            "updated_at": now,
        }},
    )

    await record_order_event(
        db,
        order_id=order["_id"],
        event="RETURN_ACCEPTED",
        actor_role=ROLE_ADMIN,
        actor_id=admin["_id"],
    )
    await notify_customer(
        db,
        kind="return_accepted",
        title="Return Request Accepted",
        message=(
            f"Your return request for order {order.get('order_number')} has been accepted. "
            "The refund will be processed once the item is picked up."
        ),
        order=order,
    )
    await log_audit(db, admin, "RETURN_ACCEPTED", {"order_id": str(order["_id"])})

    return {"success": True, "message": "Return request accepted successfully"}


@router.post("/{order_id}/return/deny")
async def deny_return(
    order_id: str,
    data: ReturnDecision,
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    notes = (data.admin_notes or "").strip()
    if not notes:
        raise HTTPException(400, "Admin notes are required when denying a return request")

    order = await _get_order(db, order_id)
    _assert_pending_return(order)

    now = datetime.utcnow()
    await db.orders.update_one(
        {"_id": order["_id"]},
        {"$set": {
            "status": STATUS_RETURN_REJECTED,
            "return_request.type": RETURN_DENIED,
            "return_request.reviewed_at": now,
            "return_request.reviewed_by": admin["_id"],
            "return_request.admin_notes": notes,
            "updated_at": now,
        }},
    )

    await record_order_event(
        db,
        order_id=order["_id"],
        event="RETURN_DENIED",
        actor_role=ROLE_ADMIN,
        actor_id=admin["_id"],
        metadata={"admin_notes": notes},
    )

    summary = notes if len(notes) <= 100 else notes[:100] + "..."
    await notify_customer(
        db,
        kind="return_denied",
        title="Return Request Denied",
        message=f"Your return request for order {order.get('order_number')} has been denied. Reason: {summary}",
        order=order,
    )
    await log_audit(db, admin, "RETURN_DENIED", {"order_id": str(order["_id"])})

    return {"success": True, "message": "Return request denied successfully"}


@router.post("/{order_id}/return/picked-up")
async def mark_return_picked_up(
    order_id: str,
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    order = await _get_order(db, order_id)

    if order.get("status") != STATUS_RETURN_ACCEPTED:
        raise HTTPException(400, "Only accepted returns can be marked as picked up")

    now = datetime.utcnow()
    await db.orders.update_one(
        {"_id": order["_id"], "status": STATUS_RETURN_ACCEPTED},
        {"$set": {
            "status": STATUS_RETURN_PICKED_UP,
            "return_request.picked_up_at": now,
            "updated_at": now,
        }},
    )

    await record_order_event(
        db,
        order_id=order["_id"],
        event="RETURN_PICKED_UP",
        actor_role=ROLE_ADMIN,
        actor_id=admin["_id"],
    )
    await log_audit(db, admin, "RETURN_PICKED_UP", {"order_id": str(order["_id"])})

    return {"success": True, "message": "Return marked as picked up. Refund will be processed shortly."}


@router.post("/{order_id}/refund")
async def refund_order(
    order_id: str,
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    order = await _get_order(db, order_id)

    if order.get("refund_status") == REFUND_COMPLETED:
        raise HTTPException(400, "Refund already completed")

    if order.get("refund_status") == REFUND_PROCESSING:
        raise HTTPException(409, "Refund is already in progress")

    if order.get("status") != STATUS_RETURN_PICKED_UP:
        raise HTTPException(400, "Refunds are issued only after the return is picked up")

    outcome = await process_refund(db, order)

    await log_audit(db, admin, "REFUND_TRIGGERED", {
        "order_id": str(order["_id"]),
        "outcome": outcome,
    })

    updated = await db.orders.find_one({"_id": order["_id"]})
    return {
        "success": True,
        "message": f"Refund {outcome}",
        "data": {
            "outcome": outcome,
            "refund_status": updated.get("refund_status"),
            "payment_status": updated.get("payment_status"),
            "status": updated.get("status"),
        },
    }
