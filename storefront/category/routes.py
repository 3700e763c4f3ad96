# --- category/routes.py ---
from io import BytesIO

import pandas as pd
from flask import request, send_file
from sqlalchemy import desc

from . import bp
from ..errors import CyclicHierarchy
from ..extensions import db
from ..model import Category, Product
from ..services import category_service as svc
from ..utils.api import err, ok, paginate, to_int
from ..utils.decorators import role_at_least, role_required

# ------------------------ helpers ------------------------

_UNSET = object()


def _parse_parent(v):
    if v is None or (isinstance(v, str) and v.strip().lower() in {"", "null"}):
        return None
    parent_id = to_int(v)
    if parent_id is None:
        raise ValueError("parent_id must be an integer or null")
    return parent_id


def _sort_order(data):
    v = data.get("sort_order", data.get("sortOrder", _UNSET))
    if v is _UNSET or v is None:
        return _UNSET
    n = to_int(v)
    if n is None or n < 0:
        raise ValueError("sort_order must be a non-negative integer")
    return n


def _parent_arg(data):
    if "parent_id" in data:
        return _parse_parent(data["parent_id"])
    if "parentId" in data:
        return _parse_parent(data["parentId"])
    return _UNSET


# ------------------------ CATEGORY ROUTES ------------------------

@bp.get("")
def list_categories():
    """
    q        -> substring match on name
    sort     -> sort_order (default), name, -name, id, -id
    page     -> default 1
    per_page -> default 50 (cap 100)
    """
    q = (request.args.get("q") or "").strip()
    sort = (request.args.get("sort") or "sort_order").strip()

    qry = Category.query
    if q:
        qry = qry.filter(Category.name.ilike(f"%{q}%"))

    sort_map = {
        "sort_order": (Category.sort_order.asc(), Category.name.asc()),
        "id": (Category.id,),
        "-id": (desc(Category.id),),
        "name": (Category.name,),
        "-name": (desc(Category.name),),
    }
    qry = qry.order_by(*sort_map.get(sort, sort_map["sort_order"]))
    page_data = paginate(qry, request.args.get("page"), request.args.get("per_page"), default_per_page=50)

    return ok("categories", {
        "meta": page_data["meta"],
        "categories": [c.as_dict() for c in page_data["items"]],
    })


@bp.get("/tree")
def category_tree():
    return ok("category tree", {"categories": svc.build_tree(Category.query.all())})


@bp.get("/stats")
@role_at_least("manager")
def category_stats():
    return ok("category stats", svc.category_stats())


@bp.get("/<int:cid>")
def get_category(cid):
    c = svc.get_category(cid)
    data = c.as_dict()
    data["parent"] = c.parent.as_dict() if c.parent else None
    data["children"] = [ch.as_dict() for ch in sorted(c.children, key=lambda x: (x.sort_order, x.name))]
    data["product_count"] = db.session.query(Product.id).filter(Product.category_id == c.id).count()
    return ok("category", {"category": data})


@bp.get("/<int:cid>/products")
def category_products(cid):
    """Products of this category; `include_children=1` also walks sub-categories."""
    svc.get_category(cid)
    ids = {cid}
    if request.args.get("include_children") in {"1", "true", "yes"}:
        ids = svc.descendant_ids(svc.load_parent_map(), cid)
    qry = Product.query.filter(Product.category_id.in_(ids)).order_by(desc(Product.id))
    page_data = paginate(qry, request.args.get("page"), request.args.get("per_page"), default_per_page=20)
    return ok("products", {
        "meta": page_data["meta"],
        "items": [p.as_api() for p in page_data["items"]],
    })


@bp.post("")
@role_required("admin")
def create_category():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name:
        return err("name required", 422)
    parent_id = _parent_arg(data)
    sort_order = _sort_order(data)
    c = svc.create_category(
        name,
        parent_id=None if parent_id is _UNSET else parent_id,
        description=data.get("description"),
        image_url=data.get("image_url"),
        sort_order=None if sort_order is _UNSET else sort_order,
    )
    return ok("category created", {"category": c.as_dict()}, status=201)


@bp.put("/<int:cid>")
@role_required("admin")
def update_category(cid):
    c = svc.get_category(cid)
    data = request.get_json(silent=True) or {}

    changes = {}
    if "name" in data:
        new_name = (data.get("name") or "").strip()
        if not new_name:
            return err("name cannot be empty", 422)
        changes["name"] = new_name
    for key in ("description", "image_url"):
        if key in data:
            changes[key] = data[key]
    parent_id = _parent_arg(data)
    if parent_id is not _UNSET:
        changes["parent_id"] = parent_id
    sort_order = _sort_order(data)
    if sort_order is not _UNSET:
        changes["sort_order"] = sort_order

    svc.update_category(c, changes)
    return ok("category updated", {"category": c.as_dict()})


@bp.delete("/<int:cid>")
@role_required("admin")
def delete_category(cid):
    svc.delete_category(svc.get_category(cid))
    return ok("deleted")


@bp.put("/reorder")
@role_required("admin")
def reorder_categories():
    """Body: {"categories": [{"id": 1, "sort_order": 1}, ...]}"""
    data = request.get_json(silent=True) or {}
    entries = data.get("categories")
    if not isinstance(entries, list) or not entries:
        return err("categories must be a non-empty list", 422)

    parsed = []
    for e in entries:
        if not isinstance(e, dict):
            return err("each entry needs id and sort_order", 422)
        cid = to_int(e.get("id"))
        sort_order = to_int(e.get("sort_order", e.get("sortOrder")))
        if cid is None or sort_order is None or sort_order < 1:
            return err("each entry needs an integer id and a positive sort_order", 422)
        parsed.append((cid, sort_order))

    svc.reorder(parsed)
    return ok("categories reordered", {"updated": len(parsed)})


# ------------------------ spreadsheet I/O ------------------------

EXPORT_COLUMNS = ["ID", "Name", "Description", "Image URL", "Parent", "Sort Order"]


@bp.get("/export")
@role_at_least("manager")
def export_categories():
    """
    Export all categories as an Excel file. Parents are written by name so the
    file can be re-imported into another database.
    """
    cats = Category.query.order_by(Category.sort_order.asc(), Category.id.asc()).all()
    names = {c.id: c.name for c in cats}
    df = pd.DataFrame([{
        "ID": c.id,
        "Name": c.name,
        "Description": c.description,
        "Image URL": c.image_url,
        "Parent": names.get(c.parent_id),
        "Sort Order": c.sort_order,
    } for c in cats], columns=EXPORT_COLUMNS)

    output = BytesIO()
    df.to_excel(output, index=False)
    output.seek(0)

    return send_file(
        output,
        as_attachment=True,
        download_name="categories_export.xlsx",
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


def _cell(row, col):
    v = row.get(col)
    if v is None or pd.isna(v):
        return None
    return str(v).strip() or None


def _int_cell(row, col):
    v = row.get(col)
    if v is None or pd.isna(v):
        return None
    try:
        return int(float(v))
    except (TypeError, ValueError):
        raise ValueError(f"{col} must be a number, got {v!r}")


@bp.post("/import")
@role_required("admin")
def import_categories():
    """
    Import categories from an uploaded .xlsx file (columns: Name, Description,
    Image URL, Parent, Sort Order). Existing names are updated in place.
    """
    file = request.files.get("file")
    if not file or file.filename == "":
        return err("No file uploaded", 400)
    if not file.filename.lower().endswith(".xlsx"):
        return err("Only .xlsx files are allowed", 400)

    df = pd.read_excel(file)
    if "Name" not in df.columns:
        return err("Missing required column: Name", 400)

    rows = [r for r in df.to_dict(orient="records") if _cell(r, "Name")]
    by_name = {c.name.lower(): c for c in Category.query.all()}
    created = updated = 0
    try:
        # pass 1: upsert rows by name
        for r in rows:
            name = _cell(r, "Name")
            c = by_name.get(name.lower())
            if c is None:
                c = Category(name=name)
                db.session.add(c)
                by_name[name.lower()] = c
                created += 1
            else:
                updated += 1
            c.description = _cell(r, "Description") or c.description
            c.image_url = _cell(r, "Image URL") or c.image_url
            sort_order = _int_cell(r, "Sort Order")
            if sort_order is not None:
                c.sort_order = sort_order
            elif c.sort_order is None:
                c.sort_order = 0
        db.session.flush()

        # pass 2: resolve parents by name, rejecting loops
        parents = {c.id: c.parent_id for c in by_name.values()}
        for r in rows:
            c = by_name[_cell(r, "Name").lower()]
            parent_name = _cell(r, "Parent")
            if not parent_name:
                continue
            parent = by_name.get(parent_name.lower())
            if parent is None:
                raise ValueError(f"unknown parent '{parent_name}' for '{c.name}'")
            if svc.would_create_cycle(parents, c.id, parent.id):
                raise CyclicHierarchy(f"'{parent_name}' cannot be the parent of '{c.name}'")
            parents[c.id] = parent.id
            c.parent_id = parent.id
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return ok("categories imported", {"created": created, "updated": updated})
