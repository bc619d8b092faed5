from datetime import datetime, timedelta

from config.env import (
    DEFAULT_VENDOR_COMMISSION_PERCENT,
    GATEWAY_FEE_PERCENT,
    RETURN_WINDOW_DAYS,
)
from config.constants import (
    RETURN_DENIED,
    STATUS_DELIVERED,
    STATUS_RETURN_REJECTED,
    STATUS_SHIPPED,
)

GATEWAY_RATE = GATEWAY_FEE_PERCENT / 100

# a denied return leaves the sale standing
SETTLED_STATUSES = {STATUS_DELIVERED, STATUS_RETURN_REJECTED}


# ==============================
# Commission / gateway arithmetic
# ==============================

def _check_inputs(subtotal: float, commission_rate: float):
    if subtotal < 0:
        raise ValueError("Subtotal cannot be negative")
    if commission_rate < 0 or commission_rate > 100:
        raise ValueError("Commission rate must be between 0 and 100")


def net_payout(subtotal: float, commission_rate: float) -> float:
    """
    Amount the vendor receives for an order.

    The platform keeps ``commission_rate`` percent of the subtotal, then the
    payment gateway fee is taken from what is left.
    """
    _check_inputs(subtotal, commission_rate)
    after_commission = subtotal * (1 - commission_rate / 100)
    gateway_fee = after_commission * GATEWAY_RATE
    return max(after_commission - gateway_fee, 0)


def payout_breakdown(subtotal: float, commission_rate: float) -> dict:
    _check_inputs(subtotal, commission_rate)
    after_commission = subtotal * (1 - commission_rate / 100)
    gateway_fee = after_commission * GATEWAY_RATE
    return {
        "product_total": subtotal,
        "commission_rate": commission_rate,
        "platform_commission": subtotal - after_commission,
        "payout_before_gateway": after_commission,
        "gateway_charges": gateway_fee,
        "net_payout": max(after_commission - gateway_fee, 0),
    }


# ==============================
# Return window
# ==============================

def return_deadline(delivered_at: datetime) -> datetime:
    return delivered_at + timedelta(days=RETURN_WINDOW_DAYS)


def return_window_open(delivered_at: datetime, now: datetime | None = None) -> bool:
    now = now or datetime.utcnow()
    return now <= return_deadline(delivered_at)


def delivery_reference(order: dict) -> datetime | None:
    # older orders were delivered before delivered_at was recorded
    return order.get("delivered_at") or order.get("updated_at")


def is_payout_ready(order: dict, now: datetime | None = None) -> bool:
    if order.get("status") not in SETTLED_STATUSES:
        return False

    delivered_at = delivery_reference(order)
    if not delivered_at or return_window_open(delivered_at, now):
        return False

    return_type = (order.get("return_request") or {}).get("type")
    return return_type is None or return_type == RETURN_DENIED


def is_payout_pending(order: dict, now: datetime | None = None) -> bool:
    status = order.get("status")
    if status == STATUS_SHIPPED:
        return True
    if status not in SETTLED_STATUSES:
        return False
    delivered_at = delivery_reference(order)
    return bool(delivered_at) and return_window_open(delivered_at, now)


# ==============================
# Vendor summary
# ==============================

def summarize_vendor_payouts(
    orders,
    commission_rate: float,
    paid: float = 0,
    now: datetime | None = None,
) -> dict:
    now = now or datetime.utcnow()
    total_earned = 0.0
    pending_amount = 0.0

    for order in orders:
        subtotal = order.get("subtotal")
        if subtotal is None:
            subtotal = order.get("total", 0)

        if is_payout_ready(order, now):
            total_earned += net_payout(subtotal, commission_rate)
        elif is_payout_pending(order, now):
            pending_amount += net_payout(subtotal, commission_rate)

    paid_amount = max(float(paid or 0), 0)

    return {
        "total_earned": round(total_earned, 2),
        "pending_amount": round(pending_amount, 2),
        "paid_amount": round(paid_amount, 2),
        "balance_amount": round(max(total_earned - paid_amount, 0), 2),
    }


def commission_rate_for(vendor: dict | None) -> float:
    commission = (vendor or {}).get("commission")
    if commission is None:
        return DEFAULT_VENDOR_COMMISSION_PERCENT
    return float(commission)
