from bson import ObjectId


async def test_create_and_list_vendors(client, db, admin_headers):
    res = await client.post(
        "/api/admin/vendors",
        json={"name": " Bright Looms ", "phone": "98480 22338", "commission": 15, "status": "approved"},
        headers=admin_headers,
    )

    assert res.status_code == 201
    data = res.json()["data"]
    assert data["name"] == "Bright Looms"
    assert data["phone"] == "9848022338"
    assert data["is_active"] is True

    listing = (await client.get("/api/admin/vendors?search=bright", headers=admin_headers)).json()
    assert [v["name"] for v in listing["data"]] == ["Bright Looms"]


async def test_create_vendor_rejects_unknown_status(client, admin_headers):
    res = await client.post("/api/admin/vendors", json={"name": "X", "status": "vip"}, headers=admin_headers)
    assert res.status_code == 400


async def test_commission_must_be_a_percentage(client, admin_headers):
    res = await client.post("/api/admin/vendors", json={"name": "X", "commission": 120}, headers=admin_headers)
    assert res.status_code == 400


async def test_update_vendor(client, vendor, admin_headers):
    url = f"/api/admin/vendors/{vendor['_id']}"

    empty = await client.put(url, json={}, headers=admin_headers)
    ok = await client.put(url, json={"status": "suspended", "commission": 12.5}, headers=admin_headers)
    missing = await client.put(f"/api/admin/vendors/{ObjectId()}", json={"status": "approved"}, headers=admin_headers)

    assert empty.status_code == 400
    assert ok.status_code == 200
    assert ok.json()["data"]["status"] == "suspended"
    assert ok.json()["data"]["commission"] == 12.5
    assert missing.status_code == 404


async def test_link_vendor_user(client, db, vendor, admin_headers):
    res = await client.post(
        f"/api/admin/vendors/{vendor['_id']}/users",
        json={"mobile": "9000000009", "name": "Kiran"},
        headers=admin_headers,
    )

    assert res.status_code == 200
    linked = await db.vendor_users.find_one({"mobile": "9000000009"})
    assert linked["vendor_id"] == vendor["_id"]
    assert linked["name"] == "Kiran"
