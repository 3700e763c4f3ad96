import re
from io import BytesIO

import pandas as pd
from flask import current_app, request, send_file, url_for
from sqlalchemy import asc, desc, func, or_

from . import bp
from ..errors import NotFound
from ..extensions import db
from ..model import CartItem, Category, OrderItem, Product, ProductImage, ProductView, Review
from ..services.search_service import DEFAULT_LIMIT, search_products
from ..services.suggestion_service import build_suggestions
from ..utils.api import err, ok, parse_bool, to_int
from ..utils.decorators import current_user, login_required, role_required
from ..utils.money import format_vnd, parse_money, to_float

# ---------- helpers ----------
def _ep(name: str) -> str:
    return f"{bp.name}.{name}"

def slugify(text):
    text = text.strip().lower()
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-")

def _parse_opt_int(v):
    if v is None:
        return None
    if isinstance(v, str) and v.strip().lower() in {"", "null"}:
        return None
    return to_int(v)

def _sort_products(query, sort):
    sort = (sort or "").strip()
    mapping = {
        "id": asc(Product.id), "-id": desc(Product.id),
        "name": asc(Product.name), "-name": desc(Product.name),
        "price": asc(Product.price), "-price": desc(Product.price),
        "stock": asc(Product.stock), "-stock": desc(Product.stock),
    }
    return query.order_by(mapping.get(sort, desc(Product.id)))  # default newest first

def _page_url(page, per_page):
    args = request.args.to_dict(flat=True)
    args["page"] = page
    args["per_page"] = per_page
    return url_for(_ep("list_products"), _external=True, **args)

def _product_or_404(pid) -> Product:
    p = db.session.get(Product, pid)
    if not p:
        raise NotFound("product not found")
    return p

def _check_category(category_id):
    if category_id is not None and not db.session.get(Category, category_id):
        raise NotFound("category not found")

def _apply_images(p: Product, images):
    if images is None:
        return
    if not isinstance(images, list):
        raise ValueError("images must be a list")
    p.images.clear()
    for i, img in enumerate(images):
        url = img.get("image_url") if isinstance(img, dict) else img
        if not url:
            continue
        p.images.append(ProductImage(
            image_url=url,
            name=img.get("name") if isinstance(img, dict) else None,
            main=bool(img.get("main")) if isinstance(img, dict) else i == 0,
        ))

def _with_price_text(data: dict) -> dict:
    data["price_text"] = format_vnd(data["price"] or 0, current_app.config.get("CURRENCY_SYMBOL", "₫"))
    return data


# GET /api/products
@bp.get("")
def list_products():
    """
    Query params:
      q            -> substring match on name/description
      category_id  -> int
      min_price    -> number
      max_price    -> number
      in_stock     -> bool (True = stock > 0, False = stock <= 0)
      featured     -> bool
      sort         -> id, -id, name, -name, price, -price, stock, -stock
      page         -> int, default 1
      per_page     -> int, default 15 (cap 100)
    """
    q = (request.args.get("q") or "").strip()
    category_id = _parse_opt_int(request.args.get("category_id"))
    min_price = parse_money(request.args.get("min_price"))
    max_price = parse_money(request.args.get("max_price"))
    in_stock = parse_bool(request.args.get("in_stock")) if request.args.get("in_stock") is not None else None
    featured = parse_bool(request.args.get("featured")) if request.args.get("featured") is not None else None
    page = request.args.get("page", default=1, type=int)
    per_page = request.args.get("per_page", default=15, type=int)
    per_page = max(1, min(per_page, current_app.config.get("MAX_PER_PAGE", 100)))

    query = Product.query
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Product.name.ilike(like), Product.description.ilike(like)))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)
    if in_stock is True:
        query = query.filter(Product.stock > 0)
    elif in_stock is False:
        query = query.filter(Product.stock <= 0)
    if featured is not None:
        query = query.filter(Product.is_featured.is_(featured))

    query = _sort_products(query, request.args.get("sort"))
    pagination = query.paginate(page=page, per_page=per_page, error_out=False)
    items = [_with_price_text(p.as_api()) for p in pagination.items]

    links = {
        "first": _page_url(1, per_page),
        "last": _page_url(pagination.pages or 1, per_page),
        "prev": _page_url(pagination.prev_num, per_page) if pagination.has_prev else None,
        "next": _page_url(pagination.next_num, per_page) if pagination.has_next else None,
    }
    meta = {
        "current_page": pagination.page,
        "last_page": pagination.pages or 1,
        "per_page": per_page,
        "total": pagination.total,
    }
    return ok("Products fetched", {"items": items, "links": links, "meta": meta})


@bp.get("/price-range")
def price_range():
    lo, hi = db.session.query(func.min(Product.price), func.max(Product.price)).one()
    return ok("price range", {"min": to_float(lo) or 0.0, "max": to_float(hi) or 0.0})


@bp.get("/suggestions")
def suggestions():
    cache = current_app.extensions.get("suggestions_cache")
    return ok("suggestions", {"suggestions": build_suggestions(request.args.get("q"), cache)})


# GET /api/products/search
@bp.get("/search")
def search():
    """
    Accent-insensitive ranked search.
      q, category_id, min_price, max_price, in_stock,
      sort   -> relevance (default), price_asc, price_desc, newest, popular
      page, limit (default 12, cap MAX_PER_PAGE)
    """
    args = request.args
    limit = args.get("limit", default=DEFAULT_LIMIT, type=int)
    limit = max(1, min(limit, current_app.config.get("MAX_PER_PAGE", 100)))
    result = search_products(
        args.get("q"),
        category_id=_parse_opt_int(args.get("category_id") or args.get("category")),
        min_price=parse_money(args.get("min_price") or args.get("minPrice")),
        max_price=parse_money(args.get("max_price") or args.get("maxPrice")),
        in_stock=parse_bool(args.get("in_stock") or args.get("inStock")),
        sort=(args.get("sort") or "relevance").strip().lower(),
        page=args.get("page", default=1, type=int),
        limit=limit,
        cache=current_app.extensions.get("search_cache"),
    )
    result["items"] = [_with_price_text(p) for p in result["items"]]
    return ok("search results", result)


# GET /api/products/<id>
@bp.get("/<int:pid>")
def get_product(pid):
    return ok("Product fetched", _with_price_text(_product_or_404(pid).as_api()))


@bp.post("")
@role_required("admin")
def create_product():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name:
        return err("name is required", 422)
    price = parse_money(data.get("price"))
    if price is None or price < 0:
        return err("price must be a non-negative number", 422)
    stock = to_int(data.get("stock"), 0)
    if stock is None or stock < 0:
        return err("stock must be a non-negative integer", 422)
    category_id = _parse_opt_int(data.get("category_id"))
    _check_category(category_id)

    p = Product(
        name=name,
        slug=(data.get("slug") or slugify(name)),
        description=data.get("description"),
        price=price,
        stock=stock,
        image_url=data.get("image_url"),
        is_featured=parse_bool(data.get("is_featured")),
        category_id=category_id,
    )
    _apply_images(p, data.get("images"))
    db.session.add(p)
    db.session.commit()
    return ok("Product created", p.as_api(), status=201)


@bp.put("/<int:pid>")
@role_required("admin")
def update_product(pid):
    p = _product_or_404(pid)
    data = request.get_json(silent=True) or {}

    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            return err("name cannot be empty", 422)
        p.name = name
    if "price" in data:
        price = parse_money(data.get("price"))
        if price is None or price < 0:
            return err("price must be a non-negative number", 422)
        p.price = price
    if "stock" in data:
        stock = to_int(data.get("stock"))
        if stock is None or stock < 0:
            return err("stock must be a non-negative integer", 422)
        p.stock = stock
    if "category_id" in data:
        category_id = _parse_opt_int(data.get("category_id"))
        _check_category(category_id)
        p.category_id = category_id
    for key in ("slug", "description", "image_url"):
        if key in data:
            setattr(p, key, data.get(key))
    if "is_featured" in data:
        p.is_featured = parse_bool(data.get("is_featured"))
    _apply_images(p, data.get("images"))

    db.session.commit()
    return ok("Product updated", p.as_api())


@bp.delete("/<int:pid>")
@role_required("admin")
def delete_product(pid):
    p = _product_or_404(pid)
    if db.session.query(OrderItem.id).filter(OrderItem.product_id == p.id).first():
        return err("Product has been ordered and cannot be deleted; set its stock to 0 instead", 409)

    CartItem.query.filter_by(product_id=p.id).delete()
    ProductView.query.filter_by(product_id=p.id).delete()
    Review.query.filter_by(product_id=p.id).delete()
    db.session.delete(p)
    db.session.commit()
    return ok("Product deleted")


# ---------- reviews ----------
@bp.get("/<int:pid>/reviews")
def list_reviews(pid):
    _product_or_404(pid)
    reviews = Review.query.filter_by(product_id=pid).order_by(Review.created_at.desc()).all()
    avg = (sum(r.rating for r in reviews) / len(reviews)) if reviews else 0
    return ok("reviews", {
        "reviews": [r.as_api() for r in reviews],
        "count": len(reviews),
        "average_rating": round(avg, 1),
    })


@bp.post("/<int:pid>/reviews")
@login_required
def upsert_review(pid):
    """One review per user and product; posting again rewrites it."""
    _product_or_404(pid)
    data = request.get_json(silent=True) or {}
    rating = to_int(data.get("rating"))
    comment = (data.get("comment") or "").strip()
    if rating is None or not 1 <= rating <= 5:
        return err("rating must be an integer from 1 to 5", 422)
    if not comment:
        return err("comment is required", 422)

    user = current_user()
    review = Review.query.filter_by(user_id=user.id, product_id=pid).first()
    created = review is None
    if created:
        review = Review(user_id=user.id, product_id=pid, rating=rating, comment=comment)
        db.session.add(review)
    else:
        review.rating = rating
        review.comment = comment
    db.session.commit()
    return ok("review saved", review.as_api(), status=201 if created else 200)


# ---------- export ----------
@bp.get("/export")
@role_required("admin", "manager")
def export_products():
    """
    Export all products as an Excel file.
    """
    products = Product.query.order_by(Product.id.asc()).all()
    df = pd.DataFrame([{
        "ID": p.id,
        "Slug": p.slug,
        "Name": p.name,
        "Price": to_float(p.price),
        "Stock": p.stock,
        "Featured": bool(p.is_featured),
        "Category": p.category.name if p.category else None,
    } for p in products])

    output = BytesIO()
    df.to_excel(output, index=False)
    output.seek(0)

    return send_file(
        output,
        as_attachment=True,
        download_name="products_export.xlsx",
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
