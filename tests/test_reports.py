from datetime import date, datetime, timedelta

import pytest
from bson import ObjectId


async def test_orders_report_date_range_is_inclusive(client, customer, admin_headers, make_order):
    await make_order(customer["_id"], created_at=datetime(2024, 5, 1, 0, 0, 0))
    await make_order(customer["_id"], created_at=datetime(2024, 5, 3, 23, 59, 59))
    await make_order(customer["_id"], created_at=datetime(2024, 5, 4, 0, 0, 1))

    res = await client.get(
        "/api/admin/reports/orders",
        params={"start_date": "2024-05-01", "end_date": "2024-05-03"},
        headers=admin_headers,
    )

    assert res.status_code == 200
    assert res.json()["pagination"]["total"] == 2


async def test_summary_defaults_to_yesterday(client, customer, admin_headers, make_order):
    yesterday = datetime.combine(date.today() - timedelta(days=1), datetime.min.time()) + timedelta(hours=10)
    await make_order(customer["_id"], created_at=yesterday)
    await make_order(customer["_id"], status="shipped", created_at=yesterday, updated_at=yesterday)
    await make_order(customer["_id"], status="delivered")

    data = (await client.get("/api/admin/reports/summary", headers=admin_headers)).json()["data"]

    assert data["total_orders"] == 3
    assert data["period"]["start_date"] == (date.today() - timedelta(days=1)).isoformat()
    assert data["period"]["orders_received"] == 2
    assert data["period"]["orders_dispatched"] == 1
    assert data["period"]["orders_pending"] == 1
    assert data["period"]["orders_delivered"] == 1
    assert data["status_breakdown"] == {"pending": 1, "shipped": 1, "delivered": 1}


async def test_summary_rejects_inverted_range(client, admin_headers):
    res = await client.get(
        "/api/admin/reports/summary",
        params={"start_date": "2024-05-05", "end_date": "2024-05-01"},
        headers=admin_headers,
    )
    assert res.status_code == 400


async def test_vendor_analytics(client, customer, vendor, admin_headers, make_order):
    day_one = datetime(2024, 6, 1, 9, 0, 0)
    day_two = datetime(2024, 6, 2, 9, 0, 0)
    await make_order(customer["_id"], vendor_id=vendor["_id"], status="delivered", total=1000.0, created_at=day_one)
    await make_order(customer["_id"], vendor_id=vendor["_id"], status="delivered", total=500.0, created_at=day_two)
    await make_order(customer["_id"], vendor_id=vendor["_id"], status="cancelled", total=300.0, created_at=day_two)
    await make_order(customer["_id"], vendor_id=ObjectId(), status="delivered", total=9999.0, created_at=day_two)

    res = await client.get(f"/api/admin/reports/vendor/{vendor['_id']}", headers=admin_headers)

    assert res.status_code == 200
    data = res.json()["data"]
    assert data["stats"]["total_orders"] == 3
    assert data["stats"]["delivered"] == 2
    assert data["stats"]["cancelled"] == 1
    assert data["stats"]["total_revenue"] == 1500.0
    assert data["stats"]["avg_order_value"] == 600.0
    assert data["timeline"] == [
        {"date": "2024-06-01", "orders": 1, "revenue": 1000.0},
        {"date": "2024-06-02", "orders": 2, "revenue": 500.0},
    ]


async def test_vendor_analytics_unknown_vendor(client, admin_headers):
    res = await client.get(f"/api/admin/reports/vendor/{ObjectId()}", headers=admin_headers)
    assert res.status_code == 404


async def test_top_vendors_ranked_by_delivered_revenue(client, db, customer, vendor, admin_headers, make_order):
    rival = {"name": "Rival Co", "status": "approved", "is_active": True}
    await db.vendors.insert_one(rival)
    await make_order(customer["_id"], vendor_id=vendor["_id"], status="delivered", total=400.0)
    await make_order(customer["_id"], vendor_id=rival["_id"], status="delivered", total=900.0)
    await make_order(customer["_id"], vendor_id=vendor["_id"], status="cancelled", total=5000.0)

    res = await client.get("/api/admin/reports/vendors/top", headers=admin_headers)

    ranking = res.json()["data"]
    assert [(r["rank"], r["name"], r["revenue"]) for r in ranking] == [
        (1, "Rival Co", 900.0),
        (2, "Acme Traders", 400.0),
    ]


async def test_top_vendors_rejects_unknown_period(client, admin_headers):
    res = await client.get("/api/admin/reports/vendors/top?period=2w", headers=admin_headers)
    assert res.status_code == 400


async def test_payout_ledger(client, db, customer, vendor, admin_headers, make_order):
    now = datetime.utcnow()
    ready = await make_order(customer["_id"], vendor_id=vendor["_id"], status="delivered",
                             delivered_at=now - timedelta(days=5))
    await make_order(customer["_id"], vendor_id=vendor["_id"], status="delivered",
                     delivered_at=now - timedelta(days=1))
    await make_order(customer["_id"], vendor_id=vendor["_id"], status="shipped")
    await db.vendor_ledger.insert_one({
        "vendor_id": vendor["_id"],
        "entry_type": "VENDOR_PAYOUT",
        "amount": 84.0,
        "notes": "partial",
        "created_at": now,
    })

    ready_only = (await client.get("/api/admin/reports/ledger", headers=admin_headers)).json()
    everything = (await client.get("/api/admin/reports/ledger?ready_only=false", headers=admin_headers)).json()

    row = ready_only["data"][0]
    assert row["vendor_name"] == "Acme Traders"
    assert row["commission_rate"] == 20
    assert row["total_earned"] == 784.0
    assert row["pending_amount"] == 1568.0
    assert row["paid_amount"] == 84.0
    assert row["balance_amount"] == 700.0
    assert row["notes"] == "partial"
    assert [o["order_id"] for o in row["orders"]] == [str(ready["_id"])]
    assert row["orders"][0]["is_ready"] is True
    assert row["orders"][0]["net_payout"] == pytest.approx(784.0)

    assert len(everything["data"][0]["orders"]) == 3
    assert everything["totals"]["balance_amount"] == 700.0
