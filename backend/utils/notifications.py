import logging
from datetime import datetime

logger = logging.getLogger(__name__)

AUDIENCE_CUSTOMER = "customer"
AUDIENCE_ADMIN = "admin"
AUDIENCE_VENDOR = "vendor"


def _notification(user_id, user_type: str, kind: str, title: str, message: str, order: dict | None):
    doc = {
        "user_id": user_id,
        "user_type": user_type,
        "type": kind,
        "title": title,
        "message": message,
        "is_read": False,
        "created_at": datetime.utcnow(),
    }
    if order:
        doc.update({
            "order_id": order.get("_id"),
            "order_number": order.get("order_number"),
            "customer_id": order.get("customer_id"),
            "vendor_id": order.get("vendor_id"),
        })
    return doc


async def notify(db, *, user_id, user_type: str, kind: str, title: str, message: str, order: dict | None = None):
    """Fire-and-forget: a failed notification never fails the caller."""
    try:
        await db.notifications.insert_one(
            _notification(user_id, user_type, kind, title, message, order)
        )
    except Exception:
        logger.exception("NOTIFICATION_ERROR type=%s user=%s", kind, user_id)


async def notify_admin(db, *, kind: str, title: str, message: str, order: dict | None = None):
    try:
        admin = await db.admins.find_one({"is_active": True})
    except Exception:
        logger.exception("NOTIFICATION_ERROR type=%s admin lookup", kind)
        return

    if admin:
        await notify(
            db,
            user_id=admin["_id"],
            user_type=AUDIENCE_ADMIN,
            kind=kind,
            title=title,
            message=message,
            order=order,
        )


async def notify_customer(db, *, kind: str, title: str, message: str, order: dict):
    if order.get("customer_id"):
        await notify(
            db,
            user_id=order["customer_id"],
            user_type=AUDIENCE_CUSTOMER,
            kind=kind,
            title=title,
            message=message,
            order=order,
        )


async def notify_vendors_new_order(db, order: dict) -> int:
    """Tell every approved vendor that an order is open for acceptance."""
    sent = 0
    message = (
        f"New order {order['order_number']} is available to accept. "
        f"Total: ₹{order['total']:,.2f}"
    )

    try:
        vendors = await db.vendors.find(
            {"status": "approved", "is_active": True},
            {"_id": 1},
        ).to_list(None)

        for vendor in vendors:
            vendor_user = await db.vendor_users.find_one({"vendor_id": vendor["_id"], "is_active": True})
            if not vendor_user:
                continue
            await notify(
                db,
                user_id=vendor_user["_id"],
                user_type=AUDIENCE_VENDOR,
                kind="new_order_available",
                title="New Order Available",
                message=message,
                order=order,
            )
            sent += 1
    except Exception:
        logger.exception("NOTIFICATION_ERROR vendor broadcast order=%s", order.get("_id"))

    return sent
