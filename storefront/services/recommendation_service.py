from __future__ import annotations

import logging
from collections import Counter

from sqlalchemy import func

from ..errors import NotFound
from ..extensions import db
from ..model import Product, ProductView, SearchQuery

logger = logging.getLogger(__name__)

TOP_CATEGORIES = 3


def record_view(user_id: int | None, product_id: int, duration_ms: int | None = None) -> ProductView | None:
    """Upsert the (user, product) view counter. Anonymous views are not stored."""
    if not user_id:
        return None
    if not db.session.get(Product, product_id):
        raise NotFound("product not found")
    view = ProductView.query.filter_by(user_id=user_id, product_id=product_id).first()
    if view:
        view.view_count = int(view.view_count or 0) + 1
        if duration_ms:
            view.duration = int(view.duration or 0) + int(duration_ms)
    else:
        view = ProductView(user_id=user_id, product_id=product_id, view_count=1,
                           duration=int(duration_ms or 0))
        db.session.add(view)
    db.session.commit()
    return view


def record_search(user_id: int | None, query: str) -> SearchQuery | None:
    query = (query or "").strip()
    if not query:
        raise ValueError("query is required")
    sq = SearchQuery(user_id=user_id, term=query[:255])
    db.session.add(sq)
    db.session.commit()
    return sq


def popular_products(limit: int, exclude_ids=()) -> list[Product]:
    views = func.coalesce(func.sum(ProductView.view_count), 0)
    q = (
        db.session.query(Product)
        .outerjoin(ProductView, ProductView.product_id == Product.id)
        .group_by(Product.id)
        .order_by(views.desc(), Product.id.asc())
    )
    if exclude_ids:
        q = q.filter(Product.id.notin_(list(exclude_ids)))
    return q.limit(limit).all()


def recommend(user_id: int | None, limit: int = 10) -> tuple[str, list[Product]]:
    """Return (type, products) where type is "popular" or "personalized"."""
    if not user_id:
        return "popular", popular_products(limit)

    views = ProductView.query.filter_by(user_id=user_id).all()
    if not views:
        return "popular", popular_products(limit)

    by_category = Counter()
    for v in views:
        if v.product and v.product.category_id is not None:
            by_category[v.product.category_id] += int(v.view_count or 0)
    top = [cid for cid, _ in by_category.most_common(TOP_CATEGORIES)]
    seen = {v.product_id for v in views}

    picks: list[Product] = []
    if top:
        picks = (
            Product.query.filter(Product.category_id.in_(top), Product.id.notin_(seen))
            .order_by(Product.id.asc())
            .limit(limit)
            .all()
        )
    if len(picks) < limit:
        picks += popular_products(limit - len(picks), exclude_ids=seen | {p.id for p in picks})
    logger.debug("user %s: %d recommendations from categories %s", user_id, len(picks), top)
    return "personalized", picks
