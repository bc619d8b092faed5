from pymongo import ASCENDING, DESCENDING
from pymongo.errors import OperationFailure

INDEX_CONFLICT_CODES = {85, 86}


async def _create_index_safe(collection, keys, **kwargs):
    """
    Create an index, replacing an older index on the same keys whose
    options no longer match (IndexOptionsConflict / IndexKeySpecsConflict).
    """
    try:
        await collection.create_index(keys, **kwargs)
        return
    except OperationFailure as e:
        if getattr(e, "code", None) not in INDEX_CONFLICT_CODES:
            raise

    desired_name = kwargs.get("name")
    stale = []
    async for idx in collection.list_indexes():
        if list(idx.get("key", {}).items()) == list(keys) and idx.get("name") != desired_name:
            stale.append(idx["name"])

    for name in stale:
        await collection.drop_index(name)

    await collection.create_index(keys, **kwargs)


async def ensure_indexes(db):
    # Accounts
    await _create_index_safe(
        db.admins,
        [("email", ASCENDING)],
        name="admins_email_unique",
        unique=True,
    )
    await _create_index_safe(
        db.customers,
        [("mobile", ASCENDING)],
        name="customers_mobile_unique",
        unique=True,
    )
    await _create_index_safe(
        db.vendor_users,
        [("mobile", ASCENDING)],
        name="vendor_users_mobile_unique",
        unique=True,
    )
    await _create_index_safe(
        db.vendors,
        [("status", ASCENDING)],
        name="vendors_status_idx",
    )

    # OTP
    await _create_index_safe(
        db.otp_codes,
        [("mobile", ASCENDING), ("audience", ASCENDING)],
        name="otp_mobile_audience_unique",
        unique=True,
    )
    await _create_index_safe(
        db.otp_codes,
        [("expires_at", ASCENDING)],
        name="otp_expires_ttl_idx",
        expireAfterSeconds=0,
    )

    # Addresses: at most one default per customer
    await _create_index_safe(
        db.customer_addresses,
        [("customer_id", ASCENDING), ("is_default", ASCENDING)],
        name="addresses_customer_default_idx",
    )
    await _create_index_safe(
        db.customer_addresses,
        [("customer_id", ASCENDING)],
        name="addresses_single_default_unique",
        unique=True,
        partialFilterExpression={"is_default": True},
    )

    # Carts
    await _create_index_safe(
        db.carts,
        [("customer_id", ASCENDING)],
        name="carts_customer_unique",
        unique=True,
    )

    # Orders
    await _create_index_safe(
        db.orders,
        [("order_number", ASCENDING)],
        name="orders_number_unique",
        unique=True,
    )
    await _create_index_safe(
        db.orders,
        [("customer_id", ASCENDING), ("created_at", DESCENDING)],
        name="orders_customer_created_at_idx",
    )
    await _create_index_safe(
        db.orders,
        [("vendor_id", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)],
        name="orders_vendor_status_created_at_idx",
    )
    await _create_index_safe(
        db.orders,
        [("status", ASCENDING), ("refund_status", ASCENDING)],
        name="orders_refund_sweep_idx",
    )
    await _create_index_safe(
        db.orders,
        [("return_request.type", ASCENDING), ("return_request.requested_at", DESCENDING)],
        name="orders_return_requests_idx",
    )
    await _create_index_safe(
        db.orders,
        [("payment_transaction_id", ASCENDING)],
        name="orders_payment_txn_unique",
        unique=True,
        partialFilterExpression={"payment_transaction_id": {"$type": "string"}},
    )

    # Timeline / ledger / notifications
    await _create_index_safe(
        db.order_timeline,
        [("order_id", ASCENDING), ("created_at", ASCENDING)],
        name="order_timeline_order_created_idx",
    )
    await _create_index_safe(
        db.vendor_ledger,
        [("vendor_id", ASCENDING), ("created_at", DESCENDING)],
        name="vendor_ledger_vendor_created_at_idx",
    )
    await _create_index_safe(
        db.notifications,
        [("user_id", ASCENDING), ("created_at", DESCENDING)],
        name="notifications_user_created_at_idx",
    )
