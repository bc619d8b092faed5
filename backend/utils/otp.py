import hashlib
import logging
import secrets
from datetime import datetime, timedelta

from fastapi import HTTPException

from config.env import ENV, OTP_EXPIRY_MINUTES, OTP_MAX_ATTEMPTS

logger = logging.getLogger(__name__)


def generate_otp() -> str:
    return str(secrets.randbelow(900000) + 100000)


def otp_expiry() -> datetime:
    return datetime.utcnow() + timedelta(minutes=OTP_EXPIRY_MINUTES)


def hash_otp(otp: str) -> str:
    return hashlib.sha256(otp.encode()).hexdigest()


def verify_hash(plain_otp: str, hashed_otp: str) -> bool:
    return secrets.compare_digest(hash_otp(plain_otp), hashed_otp or "")


# ===============================
# OTP SESSIONS (one per mobile + audience)
# ===============================

async def issue_otp(db, *, mobile: str, audience: str) -> str:
    otp = generate_otp()

    await db.otp_codes.update_one(
        {"mobile": mobile, "audience": audience},
        {"$set": {
            "otp_hash": hash_otp(otp),
            "expires_at": otp_expiry(),
            "attempts": 0,
            "created_at": datetime.utcnow(),
        }},
        upsert=True,
    )

    # SMS delivery is handled outside this service
    if ENV != "production":
        logger.info("OTP for %s (%s): %s", mobile, audience, otp)

    return otp


async def consume_otp(db, *, mobile: str, audience: str, otp: str):
    query = {"mobile": mobile, "audience": audience}
    otp_doc = await db.otp_codes.find_one(query)
    if not otp_doc:
        raise HTTPException(400, "OTP not found")

    if otp_doc.get("expires_at") and datetime.utcnow() > otp_doc["expires_at"]:
        await db.otp_codes.delete_one(query)
        raise HTTPException(400, "OTP expired")

    if otp_doc.get("attempts", 0) >= OTP_MAX_ATTEMPTS:
        await db.otp_codes.delete_one(query)
        raise HTTPException(429, "Too many OTP attempts. Please request a new OTP.")

    if not verify_hash(otp, otp_doc.get("otp_hash")):
        await db.otp_codes.update_one(query, {"$inc": {"attempts": 1}})
        raise HTTPException(400, "Invalid OTP")

    await db.otp_codes.delete_one(query)
