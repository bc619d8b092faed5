from fastapi import APIRouter, Depends, HTTPException

from database import get_db
from config.constants import ROLE_ADMIN, ROLE_VENDOR
from models.user import LedgerPayment
from utils.audit import log_audit
from utils.guards import parse_object_id
from utils.ledger import add_payout_entry, get_all_payments, get_ledger_summary
from utils.security import require_linked_vendor, require_role
from utils.serializers import serialize_doc

router = APIRouter(prefix="/api/vendor-ledger", tags=["Vendor Ledger"])


# =====================================================
# ADMIN: PAID-TO-DATE PER VENDOR
# =====================================================

@router.get("/admin")
async def list_vendor_payments(
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    payments = await get_all_payments(db)
    return {
        "success": True,
        "data": {"payments": serialize_doc(payments) or {}},
    }


@router.put("/admin/{vendor_id}")
async def record_vendor_payment(
    vendor_id: str,
    data: LedgerPayment,
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    vendor_oid = parse_object_id(vendor_id, "vendor_id")

    if not await db.vendors.find_one({"_id": vendor_oid}, {"_id": 1}):
        raise HTTPException(404, "Vendor not found")

    try:
        entry = await add_payout_entry(
            db,
            vendor_oid,
            data.paid,
            notes=data.notes or "",
            recorded_by=admin["_id"],
        )
    except ValueError as e:
        raise HTTPException(400, str(e))

    await log_audit(db, admin, "VENDOR_PAYOUT_RECORDED", {
        "vendor_id": vendor_id,
        "amount": entry["amount"],
    })

    return {
        "success": True,
        "message": "Vendor ledger updated",
        "data": {
            "vendor_id": vendor_id,
            "entry": serialize_doc(entry),
            "payment": serialize_doc(await get_ledger_summary(db, vendor_oid)),
        },
    }


# =====================================================
# VENDOR: OWN PAID-TO-DATE
# =====================================================

@router.get("/vendor")
async def my_ledger(
    vendor_user=Depends(require_role(ROLE_VENDOR)),
    db=Depends(get_db),
):
    vendor_id = require_linked_vendor(vendor_user)
    summary = await get_ledger_summary(db, vendor_id)
    return {"success": True, "data": serialize_doc(summary)}
