from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import get_db
from config.constants import ROLE_CUSTOMER
from models.address import AddressCreate, AddressUpdate
from utils.guards import parse_object_id
from utils.security import require_role
from utils.serializers import serialize_doc, serialize_docs
from utils.validators import normalize_phone

router = APIRouter(
    prefix="/api/addresses",
    tags=["Customer Addresses"]
)


def _clean_phone(phone: str) -> str:
    try:
        return normalize_phone(phone)
    except ValueError as e:
        raise HTTPException(400, str(e))


async def _clear_other_defaults(db, customer_id, keep_id=None):
    query = {"customer_id": customer_id, "is_default": True}
    if keep_id is not None:
        query["_id"] = {"$ne": keep_id}
    await db.customer_addresses.update_many(query, {"$set": {"is_default": False}})


def _default_conflict():
    return HTTPException(409, "Another default address was set at the same time. Please retry.")


# ======================================================
# LIST ADDRESSES
# ======================================================

@router.get("")
async def list_addresses(
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    addresses = await db.customer_addresses.find(
        {"customer_id": customer["_id"]}
    ).sort([("is_default", DESCENDING), ("created_at", DESCENDING)]).to_list(None)

    return {"success": True, "data": serialize_docs(addresses)}


# ======================================================
# GET ADDRESS
# ======================================================

@router.get("/{address_id}")
async def get_address(
    address_id: str,
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    address = await db.customer_addresses.find_one({
        "_id": parse_object_id(address_id, "address_id"),
        "customer_id": customer["_id"],
    })
    if not address:
        raise HTTPException(404, "Address not found")

    return {"success": True, "data": serialize_doc(address)}


# ======================================================
# ADD ADDRESS
# ======================================================

@router.post("", status_code=201)
async def add_address(
    data: AddressCreate,
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    now = datetime.utcnow()
    address = {
        **data.dict(),
        "phone": _clean_phone(data.phone),
        "customer_id": customer["_id"],
        "created_at": now,
        "updated_at": now,
    }

    if data.is_default:
        await _clear_other_defaults(db, customer["_id"])

    try:
        await db.customer_addresses.insert_one(address)
    except DuplicateKeyError:
        raise _default_conflict()

    return {
        "success": True,
        "message": "Address added successfully",
        "data": serialize_doc(address),
    }


# ======================================================
# UPDATE ADDRESS
# ======================================================

@router.put("/{address_id}")
async def update_address(
    address_id: str,
    data: AddressUpdate,
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    address_oid = parse_object_id(address_id, "address_id")
    query = {"_id": address_oid, "customer_id": customer["_id"]}

    if not await db.customer_addresses.find_one(query, {"_id": 1}):
        raise HTTPException(404, "Address not found")

    updates = data.dict(exclude_none=True)
    if "phone" in updates:
        updates["phone"] = _clean_phone(updates["phone"])
    updates["updated_at"] = datetime.utcnow()

    if data.is_default:
        await _clear_other_defaults(db, customer["_id"], keep_id=address_oid)

    try:
        address = await db.customer_addresses.find_one_and_update(
            query,
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise _default_conflict()

    return {
        "success": True,
        "message": "Address updated successfully",
        "data": serialize_doc(address),
    }


# ======================================================
# DELETE ADDRESS
# ======================================================

@router.delete("/{address_id}")
async def delete_address(
    address_id: str,
    customer=Depends(require_role(ROLE_CUSTOMER)),
    db=Depends(get_db),
):
    result = await db.customer_addresses.delete_one({
        "_id": parse_object_id(address_id, "address_id"),
        "customer_id": customer["_id"],
    })

    if result.deleted_count == 0:
        raise HTTPException(404, "Address not found")

    return {"success": True, "message": "Address deleted successfully"}
