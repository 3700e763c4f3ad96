from storefront.extensions import db
from storefront.model import Coupon

BODY = {
    "code": " tet2025 ",
    "discountPercent": 15,
    "maxDiscount": "200000",
    "minOrderAmount": 500000,
    "startDate": "2025-01-01T00:00:00Z",
    "endDate": "2025-02-15T00:00:00+07:00",
    "usageLimit": 100,
}


def test_coupons_are_admin_only(client, auth_headers):
    assert client.get("/api/coupons").status_code == 401
    assert client.get("/api/coupons", headers=auth_headers).status_code == 403


def test_create_normalises_code_and_dates(client, admin_headers):
    r = client.post("/api/coupons", json=BODY, headers=admin_headers)
    assert r.status_code == 201, r.get_json()
    c = r.get_json()["data"]["coupon"]
    assert c["code"] == "TET2025"
    assert c["discount_percent"] == 15.0
    assert c["usage_count"] == 0
    assert c["is_active"] is True
    assert c["end_date"] == "2025-02-14T17:00:00"


def test_create_rejects_duplicate_code(client, admin_headers, make_coupon):
    make_coupon("TET2025")
    r = client.post("/api/coupons", json=BODY, headers=admin_headers)
    assert r.status_code == 409


def test_create_validation(client, admin_headers):
    cases = [
        {**BODY, "code": "ab"},
        {**BODY, "endDate": "2024-12-31T00:00:00Z"},
        {**BODY, "discountPercent": 150},
        {**BODY, "discountPercent": None},
        {**BODY, "startDate": "not a date"},
        {**BODY, "usageLimit": "many"},
    ]
    for body in cases:
        r = client.post("/api/coupons", json=body, headers=admin_headers)
        assert r.status_code == 422, body
    assert Coupon.query.count() == 0


def test_fixed_amount_coupon(client, admin_headers):
    body = {**BODY, "discountPercent": None, "discountAmount": 50000}
    r = client.post("/api/coupons", json=body, headers=admin_headers)
    assert r.status_code == 201
    assert r.get_json()["data"]["coupon"]["discount_amount"] == 50000.0


def test_update_list_and_filter(client, admin_headers, make_coupon):
    a = make_coupon("AAA1")
    make_coupon("BBB2")
    r = client.put(f"/api/coupons/{a.id}", json={"isActive": False, "description": "hết hạn"},
                   headers=admin_headers)
    assert r.status_code == 200
    assert r.get_json()["data"]["coupon"]["is_active"] is False

    inactive = client.get("/api/coupons?isActive=false", headers=admin_headers).get_json()["data"]["coupons"]
    assert [c["code"] for c in inactive] == ["AAA1"]
    assert len(client.get("/api/coupons", headers=admin_headers).get_json()["data"]["coupons"]) == 2

    r = client.put(f"/api/coupons/{a.id}", json={"code": "BBB2"}, headers=admin_headers)
    assert r.status_code == 409


def test_get_and_delete(client, admin_headers, make_coupon):
    c = make_coupon("DEL1")
    assert client.get(f"/api/coupons/{c.id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/coupons/{c.id}", headers=admin_headers).status_code == 200
    assert db.session.get(Coupon, c.id) is None
    assert client.get(f"/api/coupons/{c.id}", headers=admin_headers).status_code == 404


def test_delete_blocked_once_used(client, user, auth_headers, admin_headers, make_coupon, make_product, fill_cart):
    c = make_coupon("USED1")
    p = make_product("Phone", stock=3)
    fill_cart(user, (p, 1))
    shipping = {"fullName": "A", "address": "B", "phoneNumber": "0900000000"}
    r = client.post("/api/orders", json={"shipping_address": shipping, "couponCode": "USED1"}, headers=auth_headers)
    assert r.status_code == 201

    r = client.delete(f"/api/coupons/{c.id}", headers=admin_headers)
    assert r.status_code == 409
