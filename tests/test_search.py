from storefront.services.search_service import matches, normalize_text, relevance_score


def test_normalize_strips_accents_and_folds_categories():
    assert normalize_text("Điện Thoại") == "dienthoai"
    assert normalize_text("  Máy tính bảng!! ") == "maytinhbang"
    assert normalize_text("Laptop gaming") == "maytinh game"
    assert normalize_text("Loa JBL-Flip 6") == "amthanh jbl flip 6"
    assert normalize_text("sách") == "sach"
    assert normalize_text(None) == ""


def test_relevance_order_exact_prefix_substring_description():
    q = "galaxy s24"
    exact = relevance_score("Galaxy S24", q)
    prefix = relevance_score("Galaxy S24 Ultra", q)
    inside = relevance_score("Samsung Galaxy S24", q)
    described = relevance_score("Điện thoại Samsung", q, description="Dòng galaxy s24 mới")
    assert exact > prefix > inside > described > 0


def test_relevance_ignores_accents():
    assert relevance_score("Bàn phím cơ", "ban phim") > 0
    assert relevance_score("Điện thoại Galaxy", "dien thoai") > relevance_score("Loa JBL", "dien thoai")


def test_relevance_bonuses():
    base = relevance_score("Loa JBL", "jbl")
    assert relevance_score("Loa JBL", "jbl", stock=3) == base + 10
    assert relevance_score("Loa JBL", "jbl", avg_rating=5) == base + 15
    assert relevance_score("Loa JBL", "jbl", sold_count=1000) == base + 20
    assert relevance_score("Loa JBL", "") == 0


def test_matches_category_and_words(app, make_category, make_product):
    audio = make_category("Âm thanh")
    speaker = make_product("JBL Flip 6", category=audio)
    phone = make_product("Galaxy S24", description="Điện thoại Samsung")
    assert matches(speaker, "am thanh")
    assert matches(speaker, "loa")
    assert matches(phone, "dien thoai")
    assert matches(phone, "sam")
    assert not matches(phone, "tai nghe")


def test_search_endpoint_is_accent_insensitive_and_ranked(client, make_category, make_product):
    phones = make_category("Điện thoại")
    make_product("Ốp lưng điện thoại", price="150000", stock=0)
    exact = make_product("Điện thoại", price="900000", category=phones)
    galaxy = make_product("Điện thoại Galaxy A55", price="9000000", category=phones)
    make_product("Tai nghe Sony", price="1990000")

    r = client.get("/api/products/search?q=dien+thoai")
    assert r.status_code == 200
    data = r.get_json()["data"]
    ids = [p["id"] for p in data["items"]]
    assert data["total"] == 3
    assert ids[:2] == [exact.id, galaxy.id]
    assert data["items"][0]["relevance_score"] > data["items"][1]["relevance_score"]
    assert data["items"][0]["price_text"] == "900.000 ₫"


def test_search_filters_sort_and_pages(client, make_product):
    make_product("Loa JBL Go", price="800000", stock=2)
    make_product("Loa JBL Flip", price="2500000", stock=0)
    make_product("Loa Sony", price="1500000", stock=5)

    data = client.get("/api/products/search?q=loa&sort=price_asc&inStock=true").get_json()["data"]
    assert [p["name"] for p in data["items"]] == ["Loa JBL Go", "Loa Sony"]

    data = client.get("/api/products/search?q=loa&max_price=2000000&sort=price_desc").get_json()["data"]
    assert [p["name"] for p in data["items"]] == ["Loa Sony", "Loa JBL Go"]

    data = client.get("/api/products/search?q=loa&limit=2&page=2&sort=newest").get_json()["data"]
    assert (data["total"], data["total_pages"], data["page"]) == (3, 2, 2)
    assert [p["name"] for p in data["items"]] == ["Loa JBL Go"]

    assert client.get("/api/products/search?q=loa&sort=cheapest").status_code == 422


def test_search_results_are_cached(client, make_product):
    make_product("Bàn phím cơ")
    first = client.get("/api/products/search?q=ban+phim").get_json()["data"]
    make_product("Bàn phím không dây")
    again = client.get("/api/products/search?q=ban+phim").get_json()["data"]
    assert again["total"] == first["total"] == 1
