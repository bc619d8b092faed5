import re

from fastapi import APIRouter, Depends, HTTPException, Query
from datetime import datetime
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import get_db
from config.constants import ROLE_ADMIN, VENDOR_STATUSES
from models.user import LinkVendorUser, VendorCreate, VendorUpdate
from utils.audit import log_audit
from utils.guards import parse_object_id
from utils.security import require_role
from utils.serializers import paginate, serialize_record
from utils.validators import normalize_phone

router = APIRouter(prefix="/api/admin/vendors", tags=["Admin Vendors"])


def _check_status(status: str | None):
    if status is not None and status not in VENDOR_STATUSES:
        raise HTTPException(400, f"Invalid vendor status. Allowed: {', '.join(sorted(VENDOR_STATUSES))}")


def _phone_or_400(phone: str) -> str:
    try:
        return normalize_phone(phone)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("")
async def list_vendors(
    status: str | None = Query(None),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    query = {}
    if status and status != "all":
        query["status"] = status
    if search:
        query["name"] = {"$regex": re.escape(search.strip()), "$options": "i"}

    total = await db.vendors.count_documents(query)
    vendors = await db.vendors.find(query).sort(
        "created_at", DESCENDING
    ).skip((page - 1) * limit).limit(limit).to_list(limit)

    return {
        "success": True,
        "data": [serialize_record(v) for v in vendors],
        "pagination": paginate(page, limit, total),
    }


@router.post("", status_code=201)
async def create_vendor(
    data: VendorCreate,
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    _check_status(data.status)

    now = datetime.utcnow()
    vendor = {
        **data.dict(),
        "name": data.name.strip(),
        "phone": _phone_or_400(data.phone) if data.phone else None,
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }

    await db.vendors.insert_one(vendor)
    await log_audit(db, admin, "VENDOR_CREATED", {"vendor_id": str(vendor["_id"])})

    return {
        "success": True,
        "message": "Vendor created successfully",
        "data": serialize_record(vendor),
    }


@router.put("/{vendor_id}")
async def update_vendor(
    vendor_id: str,
    data: VendorUpdate,
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    _check_status(data.status)

    updates = data.dict(exclude_none=True)
    if "phone" in updates:
        updates["phone"] = _phone_or_400(updates["phone"])
    if not updates:
        raise HTTPException(400, "Nothing to update")
    updates["updated_at"] = datetime.utcnow()

    vendor = await db.vendors.find_one_and_update(
        {"_id": parse_object_id(vendor_id, "vendor_id")},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if not vendor:
        raise HTTPException(404, "Vendor not found")

    await log_audit(db, admin, "VENDOR_UPDATED", {
        "vendor_id": vendor_id,
        "fields": sorted(k for k in updates if k != "updated_at"),
    })

    return {
        "success": True,
        "message": "Vendor updated successfully",
        "data": serialize_record(vendor),
    }


@router.post("/{vendor_id}/users")
async def link_vendor_user(
    vendor_id: str,
    data: LinkVendorUser,
    admin=Depends(require_role(ROLE_ADMIN)),
    db=Depends(get_db),
):
    """
    Attach a vendor login (identified by mobile) to a vendor.
    The login is created when the mobile has never signed in before.
    """
    vendor = await db.vendors.find_one({"_id": parse_object_id(vendor_id, "vendor_id")})
    if not vendor:
        raise HTTPException(404, "Vendor not found")

    mobile = _phone_or_400(data.mobile)
    now = datetime.utcnow()

    set_fields = {"vendor_id": vendor["_id"], "is_active": True, "updated_at": now}
    if data.name:
        set_fields["name"] = data.name.strip()

    try:
        vendor_user = await db.vendor_users.find_one_and_update(
            {"mobile": mobile},
            {"$set": set_fields, "$setOnInsert": {"created_at": now}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise HTTPException(409, "Mobile number is already registered")

    await log_audit(db, admin, "VENDOR_USER_LINKED", {
        "vendor_id": vendor_id,
        "vendor_user_id": str(vendor_user["_id"]),
    })

    return {
        "success": True,
        "message": "Vendor user linked successfully",
        "data": serialize_record(vendor_user),
    }
