from collections import defaultdict
from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import DESCENDING

from database import get_db
from config.constants import (
    ROLE_ADMIN,
    STATUS_CANCELLED,
    STATUS_DELIVERED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_SHIPPED,
)
from utils.guards import parse_object_id
from utils.ledger import get_all_payments
from utils.payouts import (
    SETTLED_STATUSES,
    commission_rate_for,
    delivery_reference,
    is_payout_ready,
    payout_breakdown,
    return_deadline,
    summarize_vendor_payouts,
)
from utils.security import require_role
from utils.serializers import paginate, serialize_record, serialize_value

router = APIRouter(prefix="/api/admin/reports", tags=["Admin Reports"])

BREAKDOWN_STATUSES = (STATUS_PENDING, STATUS_PROCESSING, STATUS_SHIPPED, STATUS_DELIVERED, STATUS_CANCELLED)

PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}


def created_between(start_date: date | None, end_date: date | None) -> dict:
    """created_at filter; the end date is inclusive to the end of that day."""
    if not start_date and not end_date:
        return {}

    window = {}
    if start_date:
        window["$gte"] = datetime.combine(start_date, time.min)
    if end_date:
        window["$lte"] = datetime.combine(end_date, time.max)
    return {"created_at": window}


def _order_total(order: dict) -> float:
    return float(order.get("total") or 0)


# =====================================================
# ORDERS REPORT
# =====================================================

@router.get("/orders")
async def orders_report(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    status: str = Query(""),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    query = created_between(start_date, end_date)
    if status and status != "all":
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


# =====================================================
# SUMMARY
# =====================================================

@router.get("/summary")
async def report_summary(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    if start_date or end_date:
        start = start_date or end_date
        end = end_date or start_date
    else:
        start = end = date.today() - timedelta(days=1)

    if start > end:
        raise HTTPException(400, "start_date must be on or before end_date")

    window = created_between(start, end)["created_at"]

    status_breakdown = {}
    async for row in db.orders.aggregate([{"$group": {"_id": "$status", "count": {"$sum": 1}}}]):
        status_breakdown[row["_id"]] = row["count"]

    return {
        "success": True,
        "data": {
            "total_orders": await db.orders.count_documents({}),
            "period": {
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
                "orders_received": await db.orders.count_documents({"created_at": window}),
                "orders_dispatched": await db.orders.count_documents({
                    "status": STATUS_SHIPPED,
                    "updated_at": window,
                }),
                "orders_pending": await db.orders.count_documents({"status": STATUS_PENDING}),
                "orders_delivered": await db.orders.count_documents({"status": STATUS_DELIVERED}),
            },
            "status_breakdown": status_breakdown,
        },
    }


# =====================================================
# VENDOR ANALYTICS
# =====================================================

@router.get("/vendor/{vendor_id}")
async def vendor_analytics(
    vendor_id: str,
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    vendor = await db.vendors.find_one({"_id": parse_object_id(vendor_id, "vendor_id")})
    if not vendor:
        raise HTTPException(404, "Vendor not found")

    orders = await db.orders.find(
        {"vendor_id": vendor["_id"], **created_between(start_date, end_date)}
    ).sort("created_at", DESCENDING).to_list(None)

    counts = {s: 0 for s in BREAKDOWN_STATUSES}
    revenue_by_status = {s: 0.0 for s in BREAKDOWN_STATUSES}
    revenue_by_date = defaultdict(float)
    orders_by_date = defaultdict(int)

    for order in orders:
        status = order.get("status")
        if status in counts:
            counts[status] += 1
            revenue_by_status[status] += _order_total(order)

        day = order["created_at"].date().isoformat()
        orders_by_date[day] += 1
        if status == STATUS_DELIVERED:
            revenue_by_date[day] += _order_total(order)

    total_income = sum(_order_total(o) for o in orders)
    commission = commission_rate_for(vendor)

    return {
        "success": True,
        "data": {
            "vendor": {
                "id": str(vendor["_id"]),
                "name": vendor.get("name"),
                "status": vendor.get("status"),
                "commission": commission,
            },
            "stats": {
                "total_orders": len(orders),
                **counts,
                "total_revenue": round(revenue_by_status[STATUS_DELIVERED], 2),
                "total_income": round(total_income, 2),
                "avg_order_value": round(total_income / len(orders), 2) if orders else 0,
            },
            "revenue_by_status": {k: round(v, 2) for k, v in revenue_by_status.items()},
            "timeline": [
                {
                    "date": day,
                    "orders": orders_by_date[day],
                    "revenue": round(revenue_by_date[day], 2),
                }
                for day in sorted(orders_by_date)
            ],
            "recent_orders": [serialize_record(o) for o in orders[:10]],
        },
    }


# =====================================================
# TOP VENDORS
# =====================================================

@router.get("/vendors/top")
async def top_vendors(
    period: str = Query("all"),
    limit: int = Query(10, ge=1, le=50),
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    if period != "all" and period not in PERIOD_DAYS:
        raise HTTPException(400, f"Invalid period. Allowed: all, {', '.join(PERIOD_DAYS)}")

    match = {"vendor_id": {"$ne": None}, "status": STATUS_DELIVERED}
    if period != "all":
        since = datetime.combine(date.today() - timedelta(days=PERIOD_DAYS[period]), time.min)
        match["created_at"] = {"$gte": since}

    rows = await db.orders.aggregate([
        {"$match": match},
        {"$group": {
            "_id": "$vendor_id",
            "revenue": {"$sum": "$total"},
            "orders": {"$sum": 1},
        }},
        {"$sort": {"revenue": -1}},
        {"$limit": limit},
    ]).to_list(limit)

    result = []
    for rank, row in enumerate(rows, start=1):
        vendor = await db.vendors.find_one({"_id": row["_id"]}, {"name": 1, "status": 1})
        result.append({
            "rank": rank,
            "vendor_id": str(row["_id"]),
            "name": (vendor or {}).get("name"),
            "status": (vendor or {}).get("status"),
            "delivered_orders": row["orders"],
            "revenue": round(row["revenue"], 2),
            "avg_order_value": round(row["revenue"] / row["orders"], 2) if row["orders"] else 0,
        })

    return {"success": True, "data": result, "period": period}


# =====================================================
# VENDOR PAYOUT LEDGER
# =====================================================

def ledger_row(order: dict, commission: float, now: datetime) -> dict:
    subtotal = order.get("subtotal")
    if subtotal is None:
        subtotal = order.get("total", 0)

    delivered_at = delivery_reference(order)
    return {
        "order_id": str(order["_id"]),
        "order_number": order.get("order_number"),
        "status": order.get("status"),
        "delivered_at": serialize_value(delivered_at),
        "return_deadline": serialize_value(return_deadline(delivered_at)) if delivered_at else None,
        "return_type": (order.get("return_request") or {}).get("type"),
        "is_ready": is_payout_ready(order, now),
        **payout_breakdown(subtotal, commission),
    }


@router.get("/ledger")
async def vendor_ledger_report(
    ready_only: bool = Query(True),
    vendor_id: str | None = Query(None),
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    now = datetime.utcnow()
    vendor_query = {"_id": parse_object_id(vendor_id, "vendor_id")} if vendor_id else {}
    vendors = await db.vendors.find(vendor_query).sort("name", 1).to_list(None)
    payments = await get_all_payments(db)

    ledger = []
    for vendor in vendors:
        commission = commission_rate_for(vendor)
        orders = await db.orders.find({
            "vendor_id": vendor["_id"],
            "status": {"$in": [STATUS_SHIPPED, *SETTLED_STATUSES]},
        }).sort("created_at", DESCENDING).to_list(None)

        payment = payments.get(str(vendor["_id"]), {})
        summary = summarize_vendor_payouts(orders, commission, paid=payment.get("paid", 0), now=now)

        rows = [ledger_row(o, commission, now) for o in orders]
        if ready_only:
            rows = [r for r in rows if r["is_ready"]]

        ledger.append({
            "vendor_id": str(vendor["_id"]),
            "vendor_name": vendor.get("name"),
            "commission_rate": commission,
            **summary,
            "notes": payment.get("notes", ""),
            "last_paid_at": serialize_value(payment.get("updated_at")),
            "orders": rows,
        })

    return {
        "success": True,
        "data": ledger,
        "totals": {
            "total_earned": round(sum(v["total_earned"] for v in ledger), 2),
            "pending_amount": round(sum(v["pending_amount"] for v in ledger), 2),
            "paid_amount": round(sum(v["paid_amount"] for v in ledger), 2),
            "balance_amount": round(sum(v["balance_amount"] for v in ledger), 2),
        },
    }
