import argparse
import asyncio
import logging
import os
from datetime import datetime

from config.constants import ROLE_ADMIN
from database import get_db
from utils.hash import hash_password

logger = logging.getLogger(__name__)


async def seed_admin(db, email: str, password: str, name: str = "Admin") -> bool:
    """Create the admin account unless the email is already taken."""
    email = email.strip().lower()
    if await db.admins.find_one({"email": email}, {"_id": 1}):
        return False

    await db.admins.insert_one({
        "email": email,
        "password": hash_password(password),
        "name": name,
        "role": ROLE_ADMIN,
        "is_active": True,
        "created_at": datetime.utcnow(),
    })
    return True


def main():
    parser = argparse.ArgumentParser(description="Create the first admin account")
    parser.add_argument("--email", default=os.getenv("ADMIN_EMAIL"))
    parser.add_argument("--password", default=os.getenv("ADMIN_PASSWORD"))
    parser.add_argument("--name", default="Admin")
    args = parser.parse_args()

    if not args.email or not args.password:
        parser.error("--email and --password (or ADMIN_EMAIL / ADMIN_PASSWORD) are required")

    logging.basicConfig(level=logging.INFO)
    created = asyncio.run(seed_admin(get_db(), args.email, args.password, args.name))
    if created:
        logger.info("Admin %s created", args.email)
    else:
        logger.info("Admin %s already exists", args.email)


if __name__ == "__main__":
    main()
