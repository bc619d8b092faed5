import asyncio
import logging
from datetime import datetime

from fastapi import HTTPException
from pymongo import ReturnDocument

from config.constants import (
    PAYMENT_COD,
    PAYMENT_ONLINE,
    REFUND_COMPLETED,
    REFUND_FAILED,
    REFUND_PROCESSING,
    RETURN_COMPLETED,
    STATUS_REFUNDED,
    STATUS_RETURN_PICKED_UP,
)
from utils.notifications import notify_customer
from utils.order_timeline import record_order_event
from utils.razorpay import amount_to_paise, create_razorpay_refund

logger = logging.getLogger(__name__)

OUTCOME_COMPLETED = "completed"
OUTCOME_FAILED = "failed"
OUTCOME_SKIPPED = "skipped"


async def _mark_refunded(db, order: dict, transaction_id: str | None = None, gateway_response: dict | None = None):
    now = datetime.utcnow()
    updates = {
        "status": STATUS_REFUNDED,
        "payment_status": "refunded",
        "refund_status": REFUND_COMPLETED,
        "refund_transaction_id": transaction_id,
        "return_request.type": RETURN_COMPLETED,
        "return_request.refund_status": REFUND_COMPLETED,
        "return_request.refund_transaction_id": transaction_id,
        "updated_at": now,
    }
    if gateway_response is not None:
        updates["payment_meta.return_refund"] = gateway_response
        updates["payment_meta.refunded_at"] = now

    await db.orders.update_one({"_id": order["_id"]}, {"$set": updates})

    await record_order_event(
        db,
        order_id=order["_id"],
        event="REFUND_COMPLETED",
        actor_role="system",
        metadata={"amount": order.get("total"), "transaction_id": transaction_id},
    )
    await notify_customer(
        db,
        kind="refund_completed",
        title="Refund Completed",
        message=f"The refund for your order {order.get('order_number')} has been processed.",
        order=order,
    )


async def _mark_failed(db, order: dict, reason: str):
    await db.orders.update_one(
        {"_id": order["_id"], "refund_status": {"$ne": REFUND_COMPLETED}},
        {"$set": {
            "refund_status": REFUND_FAILED,
            "return_request.refund_status": REFUND_FAILED,
            "payment_meta.refund_error": reason,
            "payment_meta.refund_attempted_at": datetime.utcnow(),
            "updated_at": datetime.utcnow(),
        }},
    )


async def _claim(db, order: dict) -> dict | None:
    # only one caller may move a picked-up return into processing
    return await db.orders.find_one_and_update(
        {
            "_id": order["_id"],
            "status": STATUS_RETURN_PICKED_UP,
            "refund_status": {"$nin": [REFUND_COMPLETED, REFUND_PROCESSING]},
        },
        {"$set": {
            "refund_status": REFUND_PROCESSING,
            "return_request.refund_status": REFUND_PROCESSING,
            "updated_at": datetime.utcnow(),
        }},
        return_document=ReturnDocument.AFTER,
    )


async def process_refund(db, order: dict) -> str:
    """
    Refund a picked-up return.

    COD orders never reached the gateway, so they complete without money
    movement. Paid online orders are refunded in full through Razorpay.
    Anything else cannot be refunded automatically and is marked failed so
    an admin can look at it.
    """
    if order.get("refund_status") in (REFUND_COMPLETED, REFUND_PROCESSING):
        return OUTCOME_SKIPPED

    method = order.get("payment_method")
    refundable = method == PAYMENT_COD or (
        method == PAYMENT_ONLINE and order.get("payment_status") == "paid"
    )

    if not refundable:
        reason = (
            "Payment was never captured"
            if method == PAYMENT_ONLINE
            else f"Unsupported payment method: {method}"
        )
        logger.warning("REFUND_NOT_POSSIBLE order=%s reason=%s", order.get("_id"), reason)
        await _mark_failed(db, order, reason)
        return OUTCOME_FAILED

    claimed = await _claim(db, order)
    if not claimed:
        return OUTCOME_SKIPPED

    if method == PAYMENT_COD:
        await _mark_refunded(db, claimed)
        return OUTCOME_COMPLETED

    payment_id = (claimed.get("payment_meta") or {}).get("razorpay_payment_id") or claimed.get("payment_transaction_id")
    if not payment_id:
        await _mark_failed(db, claimed, "No payment ID found")
        return OUTCOME_FAILED

    try:
        refund = await asyncio.to_thread(
            create_razorpay_refund,
            payment_id=payment_id,
            amount_paise=amount_to_paise(claimed["total"]),
            notes={
                "order_id": str(claimed["_id"]),
                "order_number": claimed.get("order_number"),
                "reason": "return_picked_up",
            },
        )
    except HTTPException as e:
        await _mark_failed(db, claimed, str(e.detail))
        return OUTCOME_FAILED

    await _mark_refunded(db, claimed, refund.get("id"), refund)
    return OUTCOME_COMPLETED


async def process_pending_refunds(db) -> dict:
    counts = {OUTCOME_COMPLETED: 0, OUTCOME_FAILED: 0, OUTCOME_SKIPPED: 0}

    cursor = db.orders.find({
        "status": STATUS_RETURN_PICKED_UP,
        "refund_status": {"$nin": [REFUND_COMPLETED, REFUND_FAILED, REFUND_PROCESSING]},
    })

    async for order in cursor:
        try:
            outcome = await process_refund(db, order)
            counts[outcome] += 1
        except Exception:
            counts[OUTCOME_FAILED] += 1
            logger.exception("REFUND_ERROR order=%s", order.get("_id"))

    return counts
