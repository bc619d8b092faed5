import os

os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/storefront_test")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["ENV"] = "test"
os.environ["ENABLE_WORKERS"] = "false"

from datetime import datetime

import httpx
import pytest
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from config.constants import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_VENDOR
from database import get_db
from main import app
from utils.hash import hash_password
from utils.jwt import create_access_token

ADMIN_PASSWORD = "s3cret-pass"


def bearer(account: dict, role: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(account['_id']), role)}"}


@pytest.fixture
def db():
    return AsyncMongoMockClient()["storefront_test"]


@pytest.fixture
async def client(db):
    app.dependency_overrides[get_db] = lambda: db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# -----------------------------
# Accounts
# -----------------------------

@pytest.fixture
async def customer(db):
    doc = {
        "mobile": "9876543210",
        "name": "Asha",
        "is_active": True,
        "created_at": datetime.utcnow(),
    }
    await db.customers.insert_one(doc)
    return doc


@pytest.fixture
def customer_headers(customer):
    return bearer(customer, ROLE_CUSTOMER)


@pytest.fixture
async def vendor(db):
    doc = {
        "name": "Acme Traders",
        "status": "approved",
        "commission": 20,
        "is_active": True,
        "created_at": datetime.utcnow(),
    }
    await db.vendors.insert_one(doc)
    return doc


@pytest.fixture
async def vendor_user(db, vendor):
    doc = {
        "mobile": "9000000001",
        "name": "Ravi",
        "vendor_id": vendor["_id"],
        "is_active": True,
        "created_at": datetime.utcnow(),
    }
    await db.vendor_users.insert_one(doc)
    return doc


@pytest.fixture
def vendor_headers(vendor_user):
    return bearer(vendor_user, ROLE_VENDOR)


@pytest.fixture
async def admin(db):
    doc = {
        "email": "admin@example.com",
        "password": hash_password(ADMIN_PASSWORD),
        "name": "Admin",
        "role": ROLE_ADMIN,
        "is_active": True,
        "created_at": datetime.utcnow(),
    }
    await db.admins.insert_one(doc)
    return doc


@pytest.fixture
def admin_headers(admin):
    return bearer(admin, ROLE_ADMIN)


# -----------------------------
# Catalogue / addresses / orders
# -----------------------------

@pytest.fixture
def make_product(db):
    async def _make(**overrides):
        doc = {
            "name": "Cotton Kurta",
            "brand": "Acme",
            "price": 300.0,
            "stock": 10,
            "images": ["https://cdn.example.com/kurta.jpg"],
            "active": True,
            **overrides,
        }
        await db.products.insert_one(doc)
        return doc
    return _make


@pytest.fixture
def make_address(db):
    async def _make(customer_id, **overrides):
        now = datetime.utcnow()
        doc = {
            "customer_id": customer_id,
            "type": "home",
            "first_name": "Asha",
            "last_name": "Rao",
            "phone": "9876543210",
            "address1": "12 MG Road",
            "city": "Hyderabad",
            "state": "Telangana",
            "postcode": "500001",
            "country": "India",
            "is_default": False,
            "created_at": now,
            "updated_at": now,
            **overrides,
        }
        await db.customer_addresses.insert_one(doc)
        return doc
    return _make


@pytest.fixture
def make_order(db):
    counter = {"n": 0}

    async def _make(customer_id, **overrides):
        counter["n"] += 1
        now = datetime.utcnow()
        doc = {
            "order_number": f"ORD-1700000000000-TEST{counter['n']:05d}",
            "customer_id": customer_id,
            "items": [{
                "product_id": ObjectId(),
                "name": "Cotton Kurta",
                "brand": "Acme",
                "quantity": 1,
                "price": 1000.0,
                "image": "",
            }],
            "shipping_address_id": ObjectId(),
            "shipping_state": "Telangana",
            "subtotal": 1000.0,
            "shipping": 0.0,
            "cgst": 0.0,
            "sgst": 0.0,
            "igst": 0.0,
            "tax": 0.0,
            "total": 1000.0,
            "status": "pending",
            "payment_method": "cod",
            "payment_status": "pending",
            "payment_gateway": None,
            "payment_transaction_id": None,
            "payment_meta": {},
            "refund_status": None,
            "refund_transaction_id": None,
            "vendor_id": None,
            "assignment_mode": None,
            "awb_number": None,
            "return_request": {"type": None},
            "delivered_at": None,
            "created_at": now,
            "updated_at": now,
            **overrides,
        }
        await db.orders.insert_one(doc)
        return doc
    return _make


@pytest.fixture
def headers_for():
    return bearer
