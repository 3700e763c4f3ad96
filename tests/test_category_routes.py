from io import BytesIO

import pandas as pd

from storefront.extensions import db
from storefront.model import Category


def test_cycle_a_b_c_is_rejected_and_nothing_changes(client, admin_headers, make_category):
    a = make_category("A")
    b = make_category("B", parent=a)
    c = make_category("C", parent=b)

    r = client.put(f"/api/categories/{a.id}", json={"parent_id": c.id, "name": "A2"}, headers=admin_headers)
    assert r.status_code == 400
    body = r.get_json()
    assert body["status"] is False
    assert "cycle" in body["message"]

    a = db.session.get(Category, a.id)
    assert a.parent_id is None
    assert a.name == "A"


def test_self_parent_rejected(client, admin_headers, make_category):
    a = make_category("A")
    r = client.put(f"/api/categories/{a.id}", json={"parent_id": a.id}, headers=admin_headers)
    assert r.status_code == 400
    assert "own parent" in r.get_json()["message"]


def test_unknown_parent_rejected(client, admin_headers, make_category):
    a = make_category("A")
    r = client.put(f"/api/categories/{a.id}", json={"parent_id": 999}, headers=admin_headers)
    assert r.status_code == 400
    assert "parent category not found" in r.get_json()["message"]


def test_reparent_to_unrelated_node(client, admin_headers, make_category):
    a = make_category("A")
    b = make_category("B")
    r = client.put(f"/api/categories/{b.id}", json={"parent_id": a.id}, headers=admin_headers)
    assert r.status_code == 200
    assert r.get_json()["data"]["category"]["parent_id"] == a.id

    r = client.put(f"/api/categories/{b.id}", json={"parent_id": None}, headers=admin_headers)
    assert r.get_json()["data"]["category"]["parent_id"] is None


def test_create_defaults_sort_order_and_rejects_duplicates(client, admin_headers, make_category):
    make_category("Phones", sort_order=4)
    r = client.post("/api/categories", json={"name": "Laptops"}, headers=admin_headers)
    assert r.status_code == 201
    assert r.get_json()["data"]["category"]["sort_order"] == 5

    r = client.post("/api/categories", json={"name": "phones"}, headers=admin_headers)
    assert r.status_code == 409


def test_create_requires_admin(client, auth_headers):
    r = client.post("/api/categories", json={"name": "X"}, headers=auth_headers)
    assert r.status_code == 403
    assert client.post("/api/categories", json={"name": "X"}).status_code == 401


def test_delete_blocked_by_products_and_children(client, admin_headers, make_category, make_product):
    parent = make_category("Parent")
    child = make_category("Child", parent=parent)
    make_product("Thing", category=child)

    assert client.delete(f"/api/categories/{child.id}", headers=admin_headers).status_code == 409
    r = client.delete(f"/api/categories/{parent.id}", headers=admin_headers)
    assert r.status_code == 409
    assert "child categories" in r.get_json()["message"]


def test_delete_empty_leaf(client, admin_headers, make_category):
    leaf = make_category("Leaf")
    assert client.delete(f"/api/categories/{leaf.id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/categories/{leaf.id}").status_code == 404


def test_reorder(client, admin_headers, make_category):
    a = make_category("A", sort_order=1)
    b = make_category("B", sort_order=2)
    r = client.put("/api/categories/reorder", headers=admin_headers, json={
        "categories": [{"id": a.id, "sort_order": 2}, {"id": b.id, "sortOrder": 1}],
    })
    assert r.status_code == 200
    names = [c["name"] for c in client.get("/api/categories").get_json()["data"]["categories"]]
    assert names == ["B", "A"]


def test_reorder_rejects_unknown_ids_and_bad_values(client, admin_headers, make_category):
    a = make_category("A", sort_order=1)
    r = client.put("/api/categories/reorder", headers=admin_headers,
                   json={"categories": [{"id": a.id, "sort_order": 3}, {"id": 999, "sort_order": 1}]})
    assert r.status_code == 400
    assert db.session.get(Category, a.id).sort_order == 1

    r = client.put("/api/categories/reorder", headers=admin_headers,
                   json={"categories": [{"id": a.id, "sort_order": 0}]})
    assert r.status_code == 422


def test_tree_and_stats(client, admin_headers, make_category, make_product):
    a = make_category("A")
    b = make_category("B", parent=a)
    make_category("C", parent=b)
    make_product("P1", category=b)

    tree = client.get("/api/categories/tree").get_json()["data"]["categories"]
    assert tree[0]["name"] == "A"
    assert tree[0]["children"][0]["children"][0]["name"] == "C"

    stats = client.get("/api/categories/stats", headers=admin_headers).get_json()["data"]
    assert stats["total_categories"] == 3
    assert stats["parent_categories"] == 1
    assert stats["depth"] == {"max_depth": 3, "count_by_depth": {"1": 1, "2": 1, "3": 1}}
    assert stats["top_categories"][0]["name"] == "B"


def test_category_products_can_include_children(client, make_category, make_product):
    a = make_category("A")
    b = make_category("B", parent=a)
    make_product("Top", category=a)
    make_product("Nested", category=b)

    only = client.get(f"/api/categories/{a.id}/products").get_json()["data"]["items"]
    assert [p["name"] for p in only] == ["Top"]
    both = client.get(f"/api/categories/{a.id}/products?include_children=1").get_json()["data"]["items"]
    assert {p["name"] for p in both} == {"Top", "Nested"}


def test_export_then_import_round_trip(client, admin_headers, make_category):
    a = make_category("A")
    make_category("B", parent=a)

    r = client.get("/api/categories/export", headers=admin_headers)
    assert r.status_code == 200
    df = pd.read_excel(BytesIO(r.data))
    assert set(df["Name"]) == {"A", "B"}

    upload = pd.DataFrame([
        {"Name": "C", "Parent": "B", "Sort Order": 1},
        {"Name": "A", "Parent": None, "Sort Order": 9},
    ])
    buf = BytesIO()
    upload.to_excel(buf, index=False)
    buf.seek(0)
    r = client.post("/api/categories/import", headers=admin_headers,
                    data={"file": (buf, "cats.xlsx")}, content_type="multipart/form-data")
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert (data["created"], data["updated"]) == (1, 1)
    c = Category.query.filter_by(name="C").one()
    assert c.parent.name == "B"
    assert Category.query.filter_by(name="A").one().sort_order == 9


def test_import_rejects_cycle(client, admin_headers, make_category):
    a = make_category("A")
    make_category("B", parent=a)
    upload = pd.DataFrame([{"Name": "A", "Parent": "B"}])
    buf = BytesIO()
    upload.to_excel(buf, index=False)
    buf.seek(0)
    r = client.post("/api/categories/import", headers=admin_headers,
                    data={"file": (buf, "cats.xlsx")}, content_type="multipart/form-data")
    assert r.status_code == 400
    assert Category.query.filter_by(name="A").one().parent_id is None
