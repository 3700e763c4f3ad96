# storefront/services/suggestion_service.py
"""Search-box suggestions: candidate gathering, relevance scoring, caching."""
from __future__ import annotations

import logging
import re

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..model import Category, Product, SearchQuery
from ..utils.cache import TTLCache

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 10

FALLBACK_SUGGESTIONS = [
    "iPhone", "Samsung Galaxy", "MacBook Pro", "Dell XPS", "iPad",
    "Apple Watch", "Điện thoại", "Laptop gaming", "Tai nghe không dây", "Máy tính bảng",
]

POPULAR_KEYWORDS = [
    "smartphone", "điện thoại", "laptop", "máy tính", "tai nghe", "máy ảnh",
    "apple", "samsung", "xiaomi", "oppo", "vivo", "asus", "dell", "hp", "lenovo",
    "gaming", "chơi game", "bluetooth", "không dây", "pin trâu", "sạc nhanh",
    "camera", "chụp ảnh", "màn hình", "bàn phím", "chuột", "loa", "âm thanh",
    "giá rẻ", "cao cấp", "mỏng nhẹ", "chống nước", "chống va đập",
]

TRENDING_KEYWORDS = [
    "iPhone 15", "Galaxy S24", "MacBook M3", "Tai nghe AirPods",
    "Laptop gaming", "Màn hình gaming", "Bàn phím cơ",
]

FEATURED_PRODUCTS = [
    "iPhone 15 Pro Max", "Samsung Galaxy S24 Ultra", "MacBook Pro 16 inch",
    "iPad Pro M2", "Apple Watch Series 9", "AirPods Pro 2", "Sony WH-1000XM5",
]

_popular_lower = [k.lower() for k in POPULAR_KEYWORDS]
_trending_lower = [k.lower() for k in TRENDING_KEYWORDS]
_featured_lower = {k.lower() for k in FEATURED_PRODUCTS}

_ws = re.compile(r"\s+")


def score_suggestion(suggestion: str, query: str) -> float:
    """Relevance of `suggestion` for what the user typed; higher is better.

    An exact (case-insensitive) match short-circuits at 1000. Otherwise a
    prefix beats a first-word prefix beats a substring beats token overlap,
    with small bonuses for known keywords and penalties for unwieldy text.
    """
    s = suggestion.lower()
    q = query.lower()

    if s == q:
        return 1000

    score = 0.0

    if s.startswith(q):
        score += 300
        diff = len(s) - len(q)
        if diff > 0:
            if diff < 10:
                score += (10 - diff) * 10
            else:
                score -= min(diff - 10, 50)

    s_words = _ws.split(s)
    if s_words and s_words[0].startswith(q):
        score += 200

    if q in s and not s.startswith(q):
        score += 150
        score += max(0, 50 - s.index(q))

    q_words = [w for w in _ws.split(q) if len(w) > 1]
    matched = 0
    for qw in q_words:
        for sw in s_words:
            if sw == qw:
                score += 40
            elif sw.startswith(qw):
                score += 30
            elif qw in sw and len(qw) > 2:
                score += 20
            else:
                continue
            matched += 1
            break
    if len(q_words) > 1 and matched == len(q_words):
        score += 100

    if any(k in s for k in _popular_lower):
        score += 40
    if any(k in s for k in _trending_lower):
        score += 80
    if s in _featured_lower:
        score += 100

    if len(s) > 30:
        score -= (len(s) - 30) * 2
    elif len(s) < 5:
        score -= (5 - len(s)) * 10

    if len(s_words) > 6:
        score -= (len(s_words) - 6) * 10

    avg_word_len = len(s) / max(1, len(s_words))
    if avg_word_len > 15:
        score -= (avg_word_len - 15) * 5

    return score


def rank(candidates, query: str, limit: int = MAX_SUGGESTIONS) -> list[str]:
    # sorted() is stable, so equal scores keep candidate order
    unique = list(dict.fromkeys(c for c in candidates if c))
    return sorted(unique, key=lambda c: score_suggestion(c, query), reverse=True)[:limit]


def keyword_variants(query: str, limit: int = 5) -> list[str]:
    out = []
    for kw in POPULAR_KEYWORDS:
        if kw in query or query in kw:
            out.append(query if kw in query else f"{query} {kw}")
    return out[:limit]


def _recent_searches(limit: int = 7) -> list[str]:
    rows = (
        db.session.query(SearchQuery.term, func.max(SearchQuery.created_at).label("last_seen"))
        .group_by(SearchQuery.term)
        .order_by(func.max(SearchQuery.created_at).desc())
        .limit(limit)
        .all()
    )
    return [r.term for r in rows]


def _matching_searches(query: str, limit: int = 15) -> list[str]:
    rows = (
        db.session.query(SearchQuery.term, func.count(SearchQuery.id).label("hits"))
        .filter(SearchQuery.term.ilike(f"%{query}%"))
        .group_by(SearchQuery.term)
        .order_by(func.count(SearchQuery.id).desc(), func.max(SearchQuery.created_at).desc())
        .limit(limit)
        .all()
    )
    return [r.term for r in rows]


def _trending(query: str) -> list[str]:
    try:
        recent = _recent_searches()
    except SQLAlchemyError:
        logger.exception("could not load recent searches")
        db.session.rollback()
        return FALLBACK_SUGGESTIONS[:7]
    combined = list(dict.fromkeys(recent + TRENDING_KEYWORDS))[:MAX_SUGGESTIONS]
    return combined or FALLBACK_SUGGESTIONS[:7]


def _candidates(query: str) -> list[str]:
    like = f"%{query}%"
    rows = (
        db.session.query(Product.name, Category.name)
        .outerjoin(Category, Product.category_id == Category.id)
        .filter(or_(Product.name.ilike(like), Product.description.ilike(like)))
        .limit(20)
        .all()
    )
    product_names = list(dict.fromkeys(name for name, _ in rows))
    category_queries = [f"{query} {c}" for c in dict.fromkeys(c for _, c in rows if c)]

    try:
        searches = _matching_searches(query)
    except SQLAlchemyError:
        logger.exception("could not load matching searches for %r", query)
        db.session.rollback()
        return product_names

    ql = query.lower()
    relevant_trending = [k for k in TRENDING_KEYWORDS if ql in k.lower()][:3]
    buying = [f"Mua {query}"] if len(query) > 3 else []
    return product_names + searches + category_queries + keyword_variants(query) + relevant_trending + buying


def _fallback(query: str) -> list[str]:
    ql = query.lower()
    matches = [s for s in FALLBACK_SUGGESTIONS if ql in s.lower()]
    return rank(matches + keyword_variants(query, limit=3), query)


def build_suggestions(query: str | None, cache: TTLCache | None = None) -> list[str]:
    """Suggestions for `query`, served from `cache` when a fresh entry exists.

    Queries shorter than two characters get trending terms instead of a
    ranked match list.
    """
    query = (query or "").strip()
    key = query.lower()
    if cache is not None:
        hit = cache.get(key)
        if hit is not None:
            logger.debug("suggestions cache hit for %r", key)
            return hit

    if len(query) < 2:
        result = _trending(query)
    else:
        try:
            result = rank(_candidates(query), query)
        except SQLAlchemyError:
            logger.exception("suggestion lookup failed for %r", query)
            db.session.rollback()
            result = _fallback(query)

    if cache is not None:
        swept = cache.cleanup()
        if swept:
            logger.debug("dropped %d stale suggestion entries", swept)
        cache.set(key, result)
    return result
