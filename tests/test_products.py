from io import BytesIO

import pandas as pd

from storefront.model import ProductView, Review


def test_list_filters_and_price_text(client, make_category, make_product):
    phones = make_category("Điện thoại")
    make_product("Galaxy S24", price="22990000", stock=3, category=phones)
    make_product("Nokia 105", price="590000", stock=0, category=phones)
    make_product("Loa JBL", price="1500000", stock=8)

    data = client.get(f"/api/products?category_id={phones.id}&in_stock=1").get_json()["data"]
    assert [p["name"] for p in data["items"]] == ["Galaxy S24"]
    assert data["items"][0]["price_text"] == "22.990.000 ₫"

    data = client.get("/api/products?min_price=500000&max_price=2000000&sort=price").get_json()["data"]
    assert [p["name"] for p in data["items"]] == ["Nokia 105", "Loa JBL"]

    data = client.get("/api/products?q=galaxy").get_json()["data"]
    assert data["meta"]["total"] == 1


def test_pagination_links(client, make_product):
    for i in range(3):
        make_product(f"P{i}")
    data = client.get("/api/products?per_page=2").get_json()["data"]
    assert data["meta"] == {"current_page": 1, "last_page": 2, "per_page": 2, "total": 3}
    assert data["links"]["prev"] is None
    assert "page=2" in data["links"]["next"]


def test_price_range(client, make_product):
    assert client.get("/api/products/price-range").get_json()["data"]["min"] == 0.0
    make_product("A", price="1000")
    make_product("B", price="5000")
    data = client.get("/api/products/price-range").get_json()["data"]
    assert (data["min"], data["max"]) == (1000.0, 5000.0)


def test_admin_crud(client, admin_headers, auth_headers):
    body = {"name": "Tai nghe Sony", "price": "1990000", "stock": 4,
            "images": [{"image_url": "a.jpg"}, {"image_url": "b.jpg", "main": True}]}
    assert client.post("/api/products", json=body, headers=auth_headers).status_code == 403

    r = client.post("/api/products", json=body, headers=admin_headers)
    assert r.status_code == 201
    p = r.get_json()["data"]
    assert p["slug"] == "tai-nghe-sony"
    assert p["image_url"] == "b.jpg"

    r = client.put(f"/api/products/{p['id']}", json={"stock": 9, "price": -1}, headers=admin_headers)
    assert r.status_code == 422
    r = client.put(f"/api/products/{p['id']}", json={"stock": 9}, headers=admin_headers)
    assert r.get_json()["data"]["stock"] == 9
    assert client.put(f"/api/products/{p['id']}", json={"category_id": 42},
                      headers=admin_headers).status_code == 404

    assert client.delete(f"/api/products/{p['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/products/{p['id']}").status_code == 404


def test_review_upsert(client, auth_headers, make_product):
    p = make_product("Loa")
    url = f"/api/products/{p.id}/reviews"
    assert client.post(url, json={"rating": 6, "comment": "x"}, headers=auth_headers).status_code == 422
    assert client.post(url, json={"rating": 4}, headers=auth_headers).status_code == 422

    assert client.post(url, json={"rating": 4, "comment": "Tốt"}, headers=auth_headers).status_code == 201
    assert client.post(url, json={"rating": 2, "comment": "Đổi ý"}, headers=auth_headers).status_code == 200

    data = client.get(url).get_json()["data"]
    assert data["count"] == 1
    assert data["average_rating"] == 2.0


def test_export(client, admin_headers, make_product):
    make_product("Loa", price="1500000")
    r = client.get("/api/products/export", headers=admin_headers)
    assert r.status_code == 200
    df = pd.read_excel(BytesIO(r.data))
    assert list(df["Name"]) == ["Loa"]
    assert df["Price"][0] == 1500000


def test_delete_product_clears_cart_lines(client, user, auth_headers, admin_headers, make_product, fill_cart):
    kept = make_product("Sạc nhanh", price="200000")
    gone = make_product("Loa", price="1500000")
    fill_cart(user, (kept, 1), (gone, 2))
    client.post(f"/api/products/{gone.id}/reviews", json={"rating": 5, "comment": "Hay"}, headers=auth_headers)
    client.post("/api/tracking/product-view", json={"product_id": gone.id}, headers=auth_headers)

    assert client.delete(f"/api/products/{gone.id}", headers=admin_headers).status_code == 200

    data = client.get("/api/cart", headers=auth_headers).get_json()["data"]
    assert [i["product_id"] for i in data["items"]] == [kept.id]
    assert data["subtotal"] == 200000.0
    assert Review.query.count() == 0
    assert ProductView.query.count() == 0


def test_ordered_product_cannot_be_deleted(client, user, auth_headers, admin_headers, make_product, fill_cart):
    p = make_product("Loa", stock=3)
    fill_cart(user, (p, 1))
    r = client.post("/api/orders", json={"shipping_address": {"fullName": "A", "address": "1 Lê Lợi",
                                                              "phoneNumber": "0901234567"}},
                    headers=auth_headers)
    assert r.status_code == 201

    assert client.delete(f"/api/products/{p.id}", headers=admin_headers).status_code == 409
    assert client.get(f"/api/products/{p.id}").status_code == 200


def test_deleted_product_id_is_not_reused(client, admin_headers, make_product):
    old = make_product("Loa")
    old_id = old.id
    client.delete(f"/api/products/{old_id}", headers=admin_headers)
    assert make_product("Tai nghe").id > old_id
