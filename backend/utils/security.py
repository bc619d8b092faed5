from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from bson import ObjectId
from bson.errors import InvalidId
from datetime import datetime

from utils.jwt import decode_token
from database import get_db
from config.constants import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_VENDOR

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str):
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
    )


async def get_token_payload(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    if not credentials:
        raise _unauthorized("No token provided. Access denied.")

    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        raise _unauthorized("Invalid or expired token")

    if not payload.get("sub") or not payload.get("role"):
        raise _unauthorized("Invalid token payload")

    return payload


async def _load_customer(db, account_id: ObjectId):
    customer = await db.customers.find_one({"_id": account_id})
    if not customer or customer.get("is_active") is False:
        raise _unauthorized("Customer not found")

    await db.customers.update_one(
        {"_id": customer["_id"]},
        {"$set": {"last_active_at": datetime.utcnow()}}
    )
    return customer


async def _load_admin(db, account_id: ObjectId):
    admin = await db.admins.find_one({"_id": account_id}, {"password": 0})
    if not admin or not admin.get("is_active", True):
        raise _unauthorized("Invalid or inactive admin")
    return admin


async def _load_vendor_user(db, account_id: ObjectId):
    vendor_user = await db.vendor_users.find_one({"_id": account_id})
    if not vendor_user or vendor_user.get("is_active") is False:
        raise _unauthorized("Invalid vendor user")

    vendor = None
    if vendor_user.get("vendor_id"):
        vendor = await db.vendors.find_one({"_id": vendor_user["vendor_id"]})
        if not vendor or not vendor.get("is_active", True) or vendor.get("status") != "approved":
            raise _unauthorized("Vendor account is not active or approved")

    vendor_user["vendor"] = vendor
    return vendor_user


LOADERS = {
    ROLE_CUSTOMER: _load_customer,
    ROLE_ADMIN: _load_admin,
    ROLE_VENDOR: _load_vendor_user,
}


def require_role(required_role: str):
    loader = LOADERS[required_role]

    async def checker(
        payload: dict = Depends(get_token_payload),
        db=Depends(get_db),
    ):
        if payload.get("role") != required_role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

        try:
            account_id = ObjectId(payload["sub"])
        except (InvalidId, TypeError):
            raise _unauthorized("Invalid token payload")

        return await loader(db, account_id)

    return checker


def require_linked_vendor(vendor_user: dict) -> ObjectId:
    vendor_id = vendor_user.get("vendor_id")
    if not vendor_id:
        raise HTTPException(400, "Vendor account not linked. Please contact support.")
    return vendor_id
