from datetime import datetime

from fastapi import HTTPException
from bson import ObjectId

from config.constants import (
    CANCELLABLE_STATUSES,
    STATUS_DELIVERED,
    VENDOR_TRANSITIONS,
)
from utils.payouts import return_window_open

# -------------------------------
# ObjectId Guard
# -------------------------------

def parse_object_id(value: str, name: str = "id") -> ObjectId:
    try:
        return ObjectId(value)
    except Exception:
        raise HTTPException(status_code=400, detail=f"Invalid {name} format")


# -------------------------------
# Order State Guards
# -------------------------------

def assert_cancellable(order: dict):
    status = order.get("status")
    if status not in CANCELLABLE_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Order cannot be cancelled once it is {status}",
        )


def assert_vendor_transition(current: str, target: str):
    if target not in VENDOR_TRANSITIONS:
        raise HTTPException(
            status_code=400,
            detail="Vendors can only update status to 'shipped' or 'delivered'",
        )

    required = VENDOR_TRANSITIONS[target]
    if current != required:
        verb = "ship" if target == "shipped" else "deliver"
        raise HTTPException(
            status_code=400,
            detail=f"Can only {verb} orders that are in '{required}' status",
        )


def assert_return_requestable(order: dict, now: datetime):
    if order.get("status") != STATUS_DELIVERED:
        raise HTTPException(400, "Return allowed only after delivery")

    if (order.get("return_request") or {}).get("type") is not None:
        raise HTTPException(400, "Return already requested")

    delivered_at = order.get("delivered_at")
    if not delivered_at:
        raise HTTPException(400, "Invalid delivery state")

    if not return_window_open(delivered_at, now):
        raise HTTPException(400, "Return window expired")
