# storefront/services/search_service.py
"""Accent-insensitive product search with relevance ranking.

Shoppers type Vietnamese with or without diacritics ("điện thoại",
"dien thoai") and mix in English category words ("laptop"). Both sides of a
comparison go through `normalize_text`, which strips accents and folds common
category phrases onto one token, so "Loa JBL" is found by "âm thanh".

Candidate rows are narrowed with SQL (category, price, stock); matching and
scoring then run in Python because SQLite has no accent folding.
"""
from __future__ import annotations

import logging
import math
import re
import unicodedata

from sqlalchemy import func

from ..extensions import db
from ..model import OrderItem, Product, Review
from ..utils.cache import TTLCache

logger = logging.getLogger(__name__)

SORTS = ("relevance", "price_asc", "price_desc", "newest", "popular")
DEFAULT_LIMIT = 12

# Longer phrases first so "may tinh bang" is not eaten by "may tinh".
PHRASE_FOLDS = (
    ("may tinh bang", "maytinhbang"),
    ("dien thoai", "dienthoai"),
    ("smartphone", "dienthoai"),
    ("may tinh", "maytinh"),
    ("laptop", "maytinh"),
    ("tai nghe", "tainghe"),
    ("am thanh", "amthanh"),
    ("loa", "amthanh"),
    ("phu kien", "phukien"),
    ("man hinh", "manhinh"),
    ("choi game", "game"),
    ("gaming", "game"),
    ("ban phim", "banphim"),
    ("sac", "pin"),
)
_FOLD_PATTERNS = tuple((p, re.compile(rf"\b{re.escape(p)}\b"), r) for p, r in PHRASE_FOLDS)


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    out = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return out.replace("đ", "d").replace("Đ", "D")


def normalize_text(text: str | None) -> str:
    """Lower-case, accent-free, punctuation-free form of `text` with category phrases folded."""
    if not text:
        return ""
    result = strip_accents(text.lower())
    result = re.sub(r"[^\w\s]", " ", result)
    result = re.sub(r"\s+", " ", result).strip()
    for phrase, pattern, replacement in _FOLD_PATTERNS:
        if result == phrase:
            return replacement
        result = pattern.sub(replacement, result)
    return result


def _words(text: str) -> list[str]:
    return [w for w in text.split() if len(w) > 1]


def relevance_score(name: str, query: str, description: str | None = None,
                    stock: int = 0, avg_rating: float = 0.0, sold_count: int = 0) -> float:
    """Weighted relevance of a product for `query`; 0 for an empty query.

    Raw name matches outrank their accent-free counterparts, which outrank
    per-word overlap and description hits. Stock, rating and sales add small
    tie-breaking bonuses.
    """
    q = (query or "").lower().strip()
    if not q:
        return 0.0
    nq = normalize_text(q)
    name_l = (name or "").lower()
    desc_l = (description or "").lower()
    name_n = normalize_text(name_l)
    desc_n = normalize_text(desc_l)

    score = 0.0
    if name_l == q:
        score += 200
    if name_l.startswith(q):
        score += 100
    if q in name_l:
        score += 80
    if nq:
        if name_n == nq:
            score += 180
        if name_n.startswith(nq):
            score += 90
        if nq in name_n:
            score += 70

    query_words = _words(q)
    name_words = _words(name_l)
    matched = exact = 0
    for qw in query_words:
        word_matched = word_exact = False
        nqw = normalize_text(qw)
        for nw in name_words:
            if nw == qw:
                score += 50
                word_matched = word_exact = True
            elif nw.startswith(qw):
                score += 40
                word_matched = True
            elif qw in nw:
                score += 30
                word_matched = True
            if not word_matched and normalize_text(nw) == nqw:
                score += 40
                word_matched = True
        if word_matched:
            matched += 1
            if word_exact:
                exact += 1

    if len(query_words) > 1:
        if matched == len(query_words):
            score += 100
        if exact == len(query_words):
            score += 120
        score += round(matched / len(query_words) * 50)

    if q in desc_l:
        score += 25
    if nq and nq in desc_n:
        score += 20
    if desc_l:
        desc_words = _words(desc_l)
        hits = sum(1 for qw in query_words if any(qw in dw for dw in desc_words))
        if hits:
            score += min(hits * 5, 25)

    if stock > 0:
        score += 10
    if avg_rating:
        score += min(avg_rating * 3, 15)
    if sold_count:
        score += min(sold_count / 10, 20)
    return score


def matches(product: Product, query: str) -> bool:
    """True when `query` (or one of its words) hits the product's name, description or category."""
    nq = normalize_text(query)
    if not nq:
        return True
    haystacks = [normalize_text(product.name), normalize_text(product.description)]
    if product.category is not None:
        haystacks.append(normalize_text(product.category.name))
    if any(nq in h for h in haystacks if h):
        return True

    words = {normalize_text(w) for w in _words(query.lower())} - {""}
    tokens = {t for h in haystacks for t in h.split()}
    return any(t.startswith(w) for w in words for t in tokens)


def _ratings(ids) -> dict:
    rows = (
        db.session.query(Review.product_id, func.avg(Review.rating))
        .filter(Review.product_id.in_(ids))
        .group_by(Review.product_id)
        .all()
    )
    return {pid: float(avg) for pid, avg in rows}


def _sold(ids) -> dict:
    rows = (
        db.session.query(OrderItem.product_id, func.sum(OrderItem.quantity))
        .filter(OrderItem.product_id.in_(ids))
        .group_by(OrderItem.product_id)
        .all()
    )
    return {pid: int(total or 0) for pid, total in rows}


def _order(scored: list, sort: str) -> list:
    if sort == "price_asc":
        return sorted(scored, key=lambda s: (s[0].price, s[0].id))
    if sort == "price_desc":
        return sorted(scored, key=lambda s: (-s[0].price, s[0].id))
    if sort == "newest":
        return sorted(scored, key=lambda s: s[0].id, reverse=True)
    if sort == "popular":
        return sorted(scored, key=lambda s: (-s[2], s[0].id))
    return sorted(scored, key=lambda s: (-s[1], s[0].id))


def search_products(query: str | None = "", *, category_id=None, min_price=None, max_price=None,
                    in_stock: bool = False, sort: str = "relevance", page: int = 1,
                    limit: int = DEFAULT_LIMIT, cache: TTLCache | None = None) -> dict:
    query = (query or "").strip()
    if sort not in SORTS:
        raise ValueError(f"sort must be one of: {', '.join(SORTS)}")
    page = max(page or 1, 1)
    limit = max(limit or DEFAULT_LIMIT, 1)

    key = repr((query.lower(), category_id, min_price, max_price, in_stock, sort, page, limit))
    if cache is not None:
        hit = cache.get(key)
        if hit is not None:
            logger.debug("search cache hit for %r", query)
            return hit

    rows = Product.query
    if category_id is not None:
        rows = rows.filter(Product.category_id == category_id)
    if min_price is not None:
        rows = rows.filter(Product.price >= min_price)
    if max_price is not None:
        rows = rows.filter(Product.price <= max_price)
    if in_stock:
        rows = rows.filter(Product.stock > 0)
    candidates = [p for p in rows.all() if matches(p, query)]

    ids = [p.id for p in candidates]
    ratings = _ratings(ids) if ids else {}
    sold = _sold(ids) if ids else {}
    scored = [
        (p, relevance_score(p.name, query, p.description, p.stock or 0,
                            ratings.get(p.id, 0.0), sold.get(p.id, 0)), sold.get(p.id, 0))
        for p in candidates
    ]
    ordered = _order(scored, sort if query or sort != "relevance" else "newest")

    total = len(ordered)
    window = ordered[(page - 1) * limit: page * limit]
    items = []
    for p, score, _ in window:
        data = p.as_api()
        data["relevance_score"] = round(score, 2)
        data["avg_rating"] = round(ratings.get(p.id, 0.0), 2)
        items.append(data)

    result = {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }
    logger.debug("search %r matched %d products", query, total)

    if cache is not None:
        cache.cleanup()
        cache.set(key, result)
    return result
