# storefront/services/category_service.py
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Mapping

from sqlalchemy import func

from ..errors import (
    CategoryNotFound,
    CyclicHierarchy,
    DuplicateName,
    HasChildren,
    HasProducts,
    ParentNotFound,
    SelfParent,
)
from ..extensions import db
from ..model import Category, Product

logger = logging.getLogger(__name__)

ParentMap = Mapping[int, "int | None"]


@dataclass
class DepthStats:
    max_depth: int = 0
    count_by_depth: dict[int, int] = field(default_factory=dict)

    def as_api(self):
        return {
            "max_depth": self.max_depth,
            "count_by_depth": {str(k): v for k, v in sorted(self.count_by_depth.items())},
        }


# ---- pure helpers over an id -> parent_id map --------------------------------

def would_create_cycle(parents: ParentMap, candidate_id, candidate_parent_id) -> bool:
    """True if making `candidate_parent_id` the parent of `candidate_id` closes a loop.

    Walks up from the proposed parent. Reaching `candidate_id`, or any node
    seen twice (a loop already in the data), counts as a cycle.
    """
    if candidate_parent_id is None:
        return False
    if candidate_parent_id == candidate_id:
        return True
    visited = set()
    node = candidate_parent_id
    while node is not None:
        if node == candidate_id or node in visited:
            return True
        visited.add(node)
        node = parents.get(node)
    return False


def compute_depth_stats(parents: ParentMap) -> DepthStats:
    """Depth of every category (roots are 1) plus a per-depth histogram.

    Depths are memoised so shared ancestors are walked once. A parent id that
    is not in `parents` counts as depth 0, as does a loop in existing data.
    """
    memo: dict = {}
    for start in parents:
        chain = []
        on_chain = set()
        node = start
        base = 0
        while True:
            if node in memo:
                base = memo[node]
                break
            if node not in parents or node in on_chain:
                break
            chain.append(node)
            on_chain.add(node)
            node = parents[node]
            if node is None:
                break
        for n in reversed(chain):
            base += 1
            memo[n] = base

    histogram = Counter(memo.values())
    return DepthStats(max_depth=max(histogram, default=0), count_by_depth=dict(histogram))


def build_tree(categories) -> list[dict]:
    """Nest `as_dict()` payloads under their parents, siblings by sort_order then name."""
    nodes = {c.id: {**c.as_dict(), "children": []} for c in categories}
    roots = []
    for c in categories:
        node = nodes[c.id]
        parent = nodes.get(c.parent_id) if c.parent_id is not None else None
        (parent["children"] if parent else roots).append(node)

    def _sort(items):
        items.sort(key=lambda n: (n["sort_order"] or 0, n["name"].lower()))
        for n in items:
            _sort(n["children"])
    _sort(roots)
    return roots


# ---- persisted-state operations ---------------------------------------------

def load_parent_map(for_update: bool = False) -> dict:
    q = db.session.query(Category.id, Category.parent_id)
    if for_update:
        q = q.with_for_update()
    return {cid: pid for cid, pid in q.all()}


def get_category(cid: int) -> Category:
    c = db.session.get(Category, cid)
    if not c:
        raise CategoryNotFound()
    return c


def ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    q = Category.query.filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    if q.first():
        raise DuplicateName()


def validate_parent_change(category_id: int | None, new_parent_id: int | None) -> None:
    """Check a parent assignment against the current table contents.

    Call inside the transaction that writes the change; the parent map is read
    with row locks so a concurrent re-parenting cannot slip in between.
    """
    if new_parent_id is None:
        return
    if category_id is not None and new_parent_id == category_id:
        raise SelfParent()
    parents = load_parent_map(for_update=True)
    if new_parent_id not in parents:
        raise ParentNotFound()
    if category_id is not None and would_create_cycle(parents, category_id, new_parent_id):
        logger.info("rejected parent change %s -> %s: cycle", category_id, new_parent_id)
        raise CyclicHierarchy()


def next_sort_order(parent_id: int | None) -> int:
    current = db.session.query(func.max(Category.sort_order)).filter(Category.parent_id.is_(parent_id)).scalar()
    return int(current or 0) + 1


def create_category(name: str, *, parent_id=None, description=None, image_url=None, sort_order=None) -> Category:
    ensure_unique_name(name)
    validate_parent_change(None, parent_id)
    c = Category(
        name=name,
        parent_id=parent_id,
        description=description,
        image_url=image_url,
        sort_order=sort_order if sort_order is not None else next_sort_order(parent_id),
    )
    db.session.add(c)
    db.session.commit()
    logger.info("category %s created (parent=%s)", c.id, parent_id)
    return c


def update_category(c: Category, changes: dict) -> Category:
    """Apply `changes` atomically; any failed check leaves the row untouched."""
    try:
        if "name" in changes:
            ensure_unique_name(changes["name"], exclude_id=c.id)
        if "parent_id" in changes and changes["parent_id"] != c.parent_id:
            validate_parent_change(c.id, changes["parent_id"])
        for key in ("name", "description", "image_url", "parent_id", "sort_order"):
            if key in changes:
                setattr(c, key, changes[key])
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return c


def delete_category(c: Category) -> None:
    if db.session.query(Product.id).filter(Product.category_id == c.id).first():
        raise HasProducts()
    if db.session.query(Category.id).filter(Category.parent_id == c.id).first():
        raise HasChildren()
    db.session.delete(c)
    db.session.commit()
    logger.info("category %s deleted", c.id)


def reorder(entries: list[tuple[int, int]]) -> None:
    ids = [cid for cid, _ in entries]
    found = {cid for (cid,) in db.session.query(Category.id).filter(Category.id.in_(ids)).all()}
    missing = sorted(set(ids) - found)
    if missing:
        raise CategoryNotFound(f"unknown categories: {', '.join(map(str, missing))}", status_code=400)
    try:
        for cid, sort_order in entries:
            db.session.query(Category).filter(Category.id == cid).update({"sort_order": sort_order})
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def descendant_ids(parents: ParentMap, root_id: int) -> set:
    """`root_id` plus every category below it."""
    children: dict = {}
    for cid, pid in parents.items():
        children.setdefault(pid, []).append(cid)
    out, stack = set(), [root_id]
    while stack:
        node = stack.pop()
        if node in out:
            continue
        out.add(node)
        stack.extend(children.get(node, []))
    return out


def category_stats() -> dict:
    parents = load_parent_map()
    total = len(parents)
    roots = sum(1 for pid in parents.values() if pid is None)
    top = (
        db.session.query(Category.id, Category.name, func.count(Product.id).label("product_count"))
        .outerjoin(Product, Product.category_id == Category.id)
        .group_by(Category.id, Category.name)
        .order_by(func.count(Product.id).desc(), Category.name.asc())
        .limit(5)
        .all()
    )
    return {
        "total_categories": total,
        "parent_categories": roots,
        "child_categories": total - roots,
        "total_products": db.session.query(func.count(Product.id)).scalar() or 0,
        "empty_categories": sum(1 for row in db.session.query(Category.id, func.count(Product.id))
                                .outerjoin(Product, Product.category_id == Category.id)
                                .group_by(Category.id).all() if row[1] == 0),
        "depth": compute_depth_stats(parents).as_api(),
        "top_categories": [{"id": r.id, "name": r.name, "product_count": r.product_count} for r in top],
    }
