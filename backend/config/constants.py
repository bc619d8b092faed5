# backend/config/constants.py

# -----------------------------
# ORDER STATUS
# -----------------------------

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_PROCESSING = "processing"
STATUS_SHIPPED = "shipped"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"
STATUS_ADMIN_REVIEW = "admin_review_required"
STATUS_RETURN_REQUESTED = "return_requested"
STATUS_RETURN_ACCEPTED = "return_accepted"
STATUS_RETURN_REJECTED = "return_rejected"
STATUS_RETURN_PICKED_UP = "return_picked_up"
STATUS_REFUNDED = "refunded"

ORDER_STATUSES = {
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_PROCESSING,
    STATUS_SHIPPED,
    STATUS_DELIVERED,
    STATUS_CANCELLED,
    STATUS_ADMIN_REVIEW,
    STATUS_RETURN_REQUESTED,
    STATUS_RETURN_ACCEPTED,
    STATUS_RETURN_REJECTED,
    STATUS_RETURN_PICKED_UP,
    STATUS_REFUNDED,
}

# statuses an admin may set directly; return states move through the return endpoints
ADMIN_SETTABLE_STATUSES = {
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_PROCESSING,
    STATUS_SHIPPED,
    STATUS_DELIVERED,
    STATUS_CANCELLED,
}

# orders in these states only move through cancel/return/refund flows
LOCKED_STATUSES = {
    STATUS_CANCELLED,
    STATUS_REFUNDED,
    STATUS_RETURN_REQUESTED,
    STATUS_RETURN_ACCEPTED,
    STATUS_RETURN_REJECTED,
    STATUS_RETURN_PICKED_UP,
}

CANCELLABLE_STATUSES = {
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_PROCESSING,
    STATUS_ADMIN_REVIEW,
}

# open for vendors to pick up
ACCEPTABLE_STATUSES = {STATUS_PENDING, STATUS_CONFIRMED}

VENDOR_TRANSITIONS = {
    STATUS_SHIPPED: STATUS_PROCESSING,
    STATUS_DELIVERED: STATUS_SHIPPED,
}

# -----------------------------
# ASSIGNMENT
# -----------------------------

ASSIGNED_BY_VENDOR = "accepted-by-vendor"
ASSIGNED_BY_ADMIN = "assigned-by-admin"

# -----------------------------
# PAYMENT
# -----------------------------

PAYMENT_COD = "cod"
PAYMENT_ONLINE = "online"
PAYMENT_WALLET = "wallet"
PAYMENT_METHODS = {PAYMENT_COD, PAYMENT_ONLINE, PAYMENT_WALLET}

PAYMENT_STATUSES = {"pending", "paid", "failed", "refunded"}

# -----------------------------
# RETURNS / REFUNDS
# -----------------------------

RETURN_PENDING = "pending"
RETURN_ACCEPTED = "accepted"
RETURN_DENIED = "denied"
RETURN_COMPLETED = "completed"
RETURN_TYPES = {RETURN_PENDING, RETURN_ACCEPTED, RETURN_DENIED, RETURN_COMPLETED}

REFUND_PENDING = "pending"
REFUND_PROCESSING = "processing"
REFUND_COMPLETED = "completed"
REFUND_FAILED = "failed"

# -----------------------------
# VENDORS
# -----------------------------

VENDOR_STATUSES = {"pending", "approved", "rejected", "suspended"}

# -----------------------------
# ROLES
# -----------------------------

ROLE_CUSTOMER = "customer"
ROLE_VENDOR = "vendor"
ROLE_ADMIN = "admin"
