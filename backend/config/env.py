import os
from dotenv import load_dotenv

load_dotenv()

# =====================================================
# ENV
# =====================================================
ENV = os.getenv("ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# =====================================================
# DATABASE
# =====================================================
MONGO_URI = os.getenv("MONGO_URI") or os.getenv("MONGODB_URI")

# =====================================================
# JWT
# =====================================================
JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_DAYS = int(os.getenv("ACCESS_TOKEN_DAYS", 30))

# =====================================================
# OTP
# =====================================================
OTP_EXPIRY_MINUTES = int(os.getenv("OTP_EXPIRY_MINUTES", 5))
OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", 5))

# =====================================================
# PAYMENT GATEWAY
# =====================================================
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")

# =====================================================
# PRICING / PAYOUTS
# =====================================================
FREE_SHIPPING_THRESHOLD = float(os.getenv("FREE_SHIPPING_THRESHOLD", 500))
FLAT_SHIPPING_FEE = float(os.getenv("FLAT_SHIPPING_FEE", 50))
GST_PERCENT = float(os.getenv("GST_PERCENT", 0))
SELLER_STATE = os.getenv("SELLER_STATE", "Telangana")

GATEWAY_FEE_PERCENT = float(os.getenv("GATEWAY_FEE_PERCENT", 2))
DEFAULT_VENDOR_COMMISSION_PERCENT = float(os.getenv("DEFAULT_VENDOR_COMMISSION_PERCENT", 20))

# =====================================================
# RETURNS
# =====================================================
RETURN_WINDOW_DAYS = int(os.getenv("RETURN_WINDOW_DAYS", 3))

# =====================================================
# WORKERS
# =====================================================
ENABLE_WORKERS = os.getenv("ENABLE_WORKERS", "true").lower() == "true"
REFUND_CHECK_INTERVAL_SECONDS = int(os.getenv("REFUND_CHECK_INTERVAL_SECONDS", 60 * 15))

# =====================================================
# CORS
# =====================================================
CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")


def validate_production_env() -> None:
    if (ENV or "").lower() != "production":
        return

    required = {
        "JWT_SECRET": JWT_SECRET,
        "RAZORPAY_KEY_ID": RAZORPAY_KEY_ID,
        "RAZORPAY_KEY_SECRET": RAZORPAY_KEY_SECRET,
        "MONGODB_URI": MONGO_URI,
    }

    invalid = []
    for key, value in required.items():
        val = (value or "").strip()
        if not val or val.startswith("CHANGE_THIS"):
            invalid.append(key)

    if invalid:
        raise RuntimeError(f"Production env misconfigured. Invalid keys: {', '.join(sorted(invalid))}")
