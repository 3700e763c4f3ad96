from storefront.extensions import db

SHIPPING = {"fullName": "Lê Văn C", "address": "3 Hai Bà Trưng", "phoneNumber": "0987654321"}


def test_dashboard_counts_and_recent_orders(client, admin, user, auth_headers, admin_headers, make_product,
                                            fill_cart):
    speaker = make_product("Loa JBL", price="1500000")
    make_product("Tai nghe Sony", price="1990000")
    fill_cart(user, (speaker, 2))
    assert client.post("/api/orders", json={"shipping_address": SHIPPING}, headers=auth_headers).status_code == 201

    r = client.get("/api/admin/dashboard", headers=admin_headers)
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert (data["total_users"], data["total_products"], data["total_orders"]) == (2, 2, 1)
    recent = data["recent_orders"][0]
    assert (recent["customer"], recent["customer_email"]) == ("buyer", "buyer@example.com")
    assert (recent["total"], recent["status"]) == (3000000.0, "PENDING")


def test_dashboard_lists_five_latest_and_default_customer_name(client, user, auth_headers, admin_headers,
                                                               make_product, fill_cart):
    p = make_product("Sạc nhanh", price="100000", stock=50)
    for _ in range(6):
        fill_cart(user, (p, 1))
        client.post("/api/orders", json={"shipping_address": SHIPPING}, headers=auth_headers)
    user.name = None
    db.session.commit()

    recent = client.get("/api/admin/dashboard", headers=admin_headers).get_json()["data"]["recent_orders"]
    assert len(recent) == 5
    assert recent[0]["id"] > recent[-1]["id"]
    assert recent[0]["customer"] == "Khách hàng"


def test_dashboard_is_admin_only(client, auth_headers, make_user, headers_for):
    assert client.get("/api/admin/dashboard").status_code == 401
    assert client.get("/api/admin/dashboard", headers=auth_headers).status_code == 403
    manager = headers_for(make_user("mgr@example.com", role="manager"))
    assert client.get("/api/admin/dashboard", headers=manager).status_code == 403
