from datetime import datetime
from bson import ObjectId

# ==============================
# Ledger entry types
# ==============================

ENTRY_PAYOUT = "VENDOR_PAYOUT"


# ==============================
# Core: append-only payout write
# ==============================

async def add_payout_entry(
    db,
    vendor_id: ObjectId,
    amount: float,
    notes: str = "",
    recorded_by: ObjectId | None = None,
) -> dict:
    if amount < 0:
        raise ValueError("Paid amount must be a non-negative number")

    entry = {
        "vendor_id": vendor_id,
        "entry_type": ENTRY_PAYOUT,
        "amount": float(amount),
        "notes": notes or "",
        "recorded_by": recorded_by,
        "created_at": datetime.utcnow(),
    }

    await db.vendor_ledger.insert_one(entry)
    return entry


# ==============================
# Paid-to-date (derived only)
# ==============================

async def get_paid_amount(db, vendor_id: ObjectId) -> float:
    pipeline = [
        {"$match": {"vendor_id": vendor_id, "entry_type": ENTRY_PAYOUT}},
        {"$group": {"_id": None, "paid": {"$sum": "$amount"}}},
    ]

    result = await db.vendor_ledger.aggregate(pipeline).to_list(1)
    if not result:
        return 0.0

    return max(float(result[0]["paid"]), 0.0)


async def get_ledger_summary(db, vendor_id: ObjectId) -> dict:
    latest = await db.vendor_ledger.find(
        {"vendor_id": vendor_id, "entry_type": ENTRY_PAYOUT}
    ).sort("created_at", -1).limit(1).to_list(1)

    return {
        "paid": await get_paid_amount(db, vendor_id),
        "notes": latest[0].get("notes", "") if latest else "",
        "updated_at": latest[0].get("created_at") if latest else None,
    }


async def get_all_payments(db) -> dict:
    """Paid-to-date per vendor, keyed by vendor id string."""
    payments = {}

    cursor = db.vendor_ledger.find({"entry_type": ENTRY_PAYOUT}).sort("created_at", 1)
    async for entry in cursor:
        key = str(entry["vendor_id"])
        row = payments.setdefault(key, {"paid": 0.0, "notes": "", "updated_at": None})
        row["paid"] += float(entry.get("amount", 0))
        row["notes"] = entry.get("notes", "")
        row["updated_at"] = entry.get("created_at")

    return payments
