from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime

from database import get_db
from config.constants import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_VENDOR
from models.user import AdminLogin, SendOtp, VerifyOtp
from utils.hash import verify_password
from utils.jwt import create_access_token
from utils.otp import consume_otp, issue_otp
from utils.security import require_role
from utils.serializers import serialize_record
from utils.validators import normalize_phone

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _mobile_or_400(mobile: str) -> str:
    try:
        return normalize_phone(mobile)
    except ValueError as e:
        raise HTTPException(400, str(e))


def _token_response(account: dict, role: str, **extra) -> dict:
    return {
        "success": True,
        "message": "Login successful",
        "token": create_access_token(str(account["_id"]), role),
        "token_type": "bearer",
        "role": role,
        **extra,
    }


# ======================
# Admin
# ======================

@router.post("/admin/login")
async def admin_login(data: AdminLogin, db=Depends(get_db)):
    admin = await db.admins.find_one({"email": data.email.lower()})
    if not admin:
        raise HTTPException(401, "Invalid email or password")

    if not admin.get("is_active", True):
        raise HTTPException(403, "Admin account is deactivated")

    if not verify_password(data.password, admin.get("password")):
        raise HTTPException(401, "Invalid email or password")

    await db.admins.update_one(
        {"_id": admin["_id"]},
        {"$set": {"last_login_at": datetime.utcnow()}}
    )

    return _token_response(
        admin,
        ROLE_ADMIN,
        admin={
            "id": str(admin["_id"]),
            "email": admin["email"],
            "name": admin.get("name"),
            "role": admin.get("role", ROLE_ADMIN),
        },
    )


@router.post("/admin/logout")
async def admin_logout():
    # tokens are stateless; the client drops its copy
    return {"success": True, "message": "Logout successful"}


@router.get("/admin/verify")
async def admin_verify(admin=Depends(require_role(ROLE_ADMIN))):
    return {
        "success": True,
        "admin": {
            "id": str(admin["_id"]),
            "email": admin.get("email"),
            "name": admin.get("name"),
            "role": admin.get("role", ROLE_ADMIN),
        },
    }


# ======================
# Customer OTP
# ======================

@router.post("/customer/send-otp")
async def customer_send_otp(data: SendOtp, db=Depends(get_db)):
    mobile = _mobile_or_400(data.mobile)
    await issue_otp(db, mobile=mobile, audience=ROLE_CUSTOMER)
    return {"success": True, "message": "OTP sent"}


@router.post("/customer/verify-otp")
async def customer_verify_otp(data: VerifyOtp, db=Depends(get_db)):
    mobile = _mobile_or_400(data.mobile)
    await consume_otp(db, mobile=mobile, audience=ROLE_CUSTOMER, otp=data.otp)

    now = datetime.utcnow()
    customer = await db.customers.find_one({"mobile": mobile})
    is_new = customer is None

    if is_new:
        customer = {
            "mobile": mobile,
            "name": (data.name or "").strip() or None,
            "is_active": True,
            "created_at": now,
            "last_active_at": now,
        }
        await db.customers.insert_one(customer)
    else:
        if customer.get("is_active") is False:
            raise HTTPException(403, "Customer account is deactivated")
        await db.customers.update_one(
            {"_id": customer["_id"]},
            {"$set": {"last_active_at": now}}
        )

    return _token_response(
        customer,
        ROLE_CUSTOMER,
        is_new_customer=is_new,
        customer={
            "id": str(customer["_id"]),
            "mobile": customer["mobile"],
            "name": customer.get("name"),
        },
    )


@router.get("/customer/profile")
async def customer_profile(customer=Depends(require_role(ROLE_CUSTOMER))):
    return {"success": True, "data": serialize_record(customer)}


# ======================
# Vendor OTP
# ======================

@router.post("/vendor/send-otp")
async def vendor_send_otp(data: SendOtp, db=Depends(get_db)):
    mobile = _mobile_or_400(data.mobile)

    vendor_user = await db.vendor_users.find_one({"mobile": mobile})
    if not vendor_user or vendor_user.get("is_active") is False:
        raise HTTPException(404, "No vendor account is registered with this mobile number")

    await issue_otp(db, mobile=mobile, audience=ROLE_VENDOR)
    return {"success": True, "message": "OTP sent"}


@router.post("/vendor/verify-otp")
async def vendor_verify_otp(data: VerifyOtp, db=Depends(get_db)):
    mobile = _mobile_or_400(data.mobile)
    await consume_otp(db, mobile=mobile, audience=ROLE_VENDOR, otp=data.otp)

    vendor_user = await db.vendor_users.find_one({"mobile": mobile})
    if not vendor_user or vendor_user.get("is_active") is False:
        raise HTTPException(404, "No vendor account is registered with this mobile number")

    await db.vendor_users.update_one(
        {"_id": vendor_user["_id"]},
        {"$set": {"last_login_at": datetime.utcnow()}}
    )

    vendor = None
    if vendor_user.get("vendor_id"):
        vendor = await db.vendors.find_one({"_id": vendor_user["vendor_id"]}, {"name": 1, "status": 1})

    return _token_response(
        vendor_user,
        ROLE_VENDOR,
        vendor_user={
            "id": str(vendor_user["_id"]),
            "mobile": vendor_user["mobile"],
            "name": vendor_user.get("name"),
            "vendor_id": str(vendor_user["vendor_id"]) if vendor_user.get("vendor_id") else None,
            "vendor_status": (vendor or {}).get("status"),
        },
    )


@router.get("/vendor/profile")
async def vendor_profile(vendor_user=Depends(require_role(ROLE_VENDOR))):
    vendor = vendor_user.pop("vendor", None)
    return {
        "success": True,
        "data": {
            "vendor_user": serialize_record(vendor_user),
            "vendor": serialize_record(vendor) if vendor else None,
        },
    }
