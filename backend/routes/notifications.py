from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import DESCENDING

from database import get_db
from config.constants import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_VENDOR
from utils.guards import parse_object_id
from utils.notifications import AUDIENCE_ADMIN, AUDIENCE_CUSTOMER, AUDIENCE_VENDOR
from utils.security import require_role
from utils.serializers import paginate, serialize_record

router = APIRouter(
    prefix="/api/notifications",
    tags=["Notifications"]
)


async def _inbox(db, account: dict, audience: str, page: int, limit: int, unread_only: bool) -> dict:
    owner = {"user_id": account["_id"], "user_type": audience}
    query = dict(owner)
    if unread_only:
        query["is_read"] = False

    total = await db.notifications.count_documents(query)
    notifications = await db.notifications.find(query).sort(
        "created_at", DESCENDING
    ).skip((page - 1) * limit).limit(limit).to_list(limit)
    unread = await db.notifications.count_documents({**owner, "is_read": False})

    return {
        "success": True,
        "data": {
            "notifications": [serialize_record(n) for n in notifications],
            "pagination": paginate(page, limit, total),
            "unread_count": unread,
        },
    }


async def _mark_read(db, account: dict, audience: str, notification_id: str) -> dict:
    notification = await db.notifications.find_one_and_update(
        {
            "_id": parse_object_id(notification_id, "notification ID"),
            "user_id": account["_id"],
            "user_type": audience,
        },
        {"$set": {"is_read": True, "read_at": datetime.utcnow()}},
    )
    if not notification:
        raise HTTPException(404, "Notification not found")

    return {"success": True, "message": "Notification marked as read"}


async def _mark_all_read(db, account: dict, audience: str) -> dict:
    await db.notifications.update_many(
        {"user_id": account["_id"], "user_type": audience, "is_read": False},
        {"$set": {"is_read": True, "read_at": datetime.utcnow()}},
    )
    return {"success": True, "message": "All notifications marked as read"}


# ======================================================
# CUSTOMER
# ======================================================

@router.get("/customer")
async def customer_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    return await _inbox(db, customer, AUDIENCE_CUSTOMER, page, limit, unread_only)


@router.put("/customer/mark-all-read")
async def customer_mark_all_read(
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    return await _mark_all_read(db, customer, AUDIENCE_CUSTOMER)


@router.put("/customer/{notification_id}/read")
async def customer_mark_read(
    notification_id: str,
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    return await _mark_read(db, customer, AUDIENCE_CUSTOMER, notification_id)


# ======================================================
# VENDOR
# ======================================================

@router.get("/vendor")
async def vendor_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    vendor_user=Depends(require_role(ROLE_VENDOR)),
    db=Depends(get_db),
):
    return await _inbox(db, vendor_user, AUDIENCE_VENDOR, page, limit, unread_only)


@router.put("/vendor/mark-all-read")
async def vendor_mark_all_read(
    vendor_user=Depends(require_role(ROLE_VENDOR)),
    db=Depends(get_db),
):
    return await _mark_all_read(db, vendor_user, AUDIENCE_VENDOR)


@router.put("/vendor/{notification_id}/read")
async def vendor_mark_read(
    notification_id: str,
    vendor_user=Depends(require_role(ROLE_VENDOR)),
    db=Depends(get_db),
):
    return await _mark_read(db, vendor_user, AUDIENCE_VENDOR, notification_id)


# ======================================================
# ADMIN
# ======================================================

@router.get("/admin")
async def admin_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    return await _inbox(db, admin, AUDIENCE_ADMIN, page, limit, unread_only)


@router.put("/admin/mark-all-read")
async def admin_mark_all_read(
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    return await _mark_all_read(db, admin, AUDIENCE_ADMIN)


@router.put("/admin/{notification_id}/read")
async def admin_mark_read(
    notification_id: str,
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    return await _mark_read(db, admin, AUDIENCE_ADMIN, notification_id)
