from datetime import datetime


async def log_audit(
    db,
    admin: dict,
    action: str,
    metadata: dict | None = None
):
    """Record an admin-initiated change to orders, vendors or the ledger."""
    await db.audit_logs.insert_one({
        "actor_id": str(admin["_id"]) if admin else "system",
        "actor_email": admin.get("email") if admin else None,
        "action": action,
        "metadata": metadata or {},
        "created_at": datetime.utcnow()
    })
