import random
import string
import time

from config.env import (
    FLAT_SHIPPING_FEE,
    FREE_SHIPPING_THRESHOLD,
    GST_PERCENT,
    SELLER_STATE,
)

ORDER_NUMBER_PREFIX = "ORD"
ORDER_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number() -> str:
    millis = int(time.time() * 1000)
    suffix = "".join(random.choices(ORDER_SUFFIX_ALPHABET, k=9))
    return f"{ORDER_NUMBER_PREFIX}-{millis}-{suffix}"


def shipping_fee(subtotal: float) -> float:
    return 0.0 if subtotal > FREE_SHIPPING_THRESHOLD else float(FLAT_SHIPPING_FEE)


def gst_split(subtotal: float, shipping_state: str | None) -> dict:
    """
    GST on the product subtotal.
    Intra-state supply is split evenly into CGST + SGST, anything else is IGST.
    """
    tax = round(subtotal * GST_PERCENT / 100, 2)
    same_state = (shipping_state or "").strip().lower() == SELLER_STATE.strip().lower()

    if same_state:
        cgst = round(tax / 2, 2)
        return {"cgst": cgst, "sgst": round(tax - cgst, 2), "igst": 0.0}

    return {"cgst": 0.0, "sgst": 0.0, "igst": tax}


def order_totals(items: list[dict], shipping_state: str | None = None) -> dict:
    subtotal = round(sum(item["price"] * item["quantity"] for item in items), 2)
    shipping = shipping_fee(subtotal)
    gst = gst_split(subtotal, shipping_state)
    tax = round(gst["cgst"] + gst["sgst"] + gst["igst"], 2)

    return {
        "subtotal": subtotal,
        "shipping": shipping,
        **gst,
        "tax": tax,
        "total": round(subtotal + shipping + tax, 2),
    }
