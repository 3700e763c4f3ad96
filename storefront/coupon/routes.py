# storefront/coupon/routes.py
from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import request

from . import bp
from ..errors import Conflict, NotFound
from ..extensions import db
from ..model import Coupon, Order
from ..services.coupon_service import CouponTerms
from ..utils.api import err, ok, parse_bool, to_int
from ..utils.decorators import role_required
from ..utils.money import parse_money

logger = logging.getLogger(__name__)

_FIELDS = {
    # snake_case -> camelCase alias accepted from older clients
    "code": "code",
    "description": "description",
    "discount_percent": "discountPercent",
    "discount_amount": "discountAmount",
    "min_order_amount": "minOrderAmount",
    "max_discount": "maxDiscount",
    "is_active": "isActive",
    "start_date": "startDate",
    "end_date": "endDate",
    "usage_limit": "usageLimit",
}


def _parse_iso8601(s: str | None):
    if not s:
        return None
    s = str(s).strip()
    # support trailing 'Z' (UTC)
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        raise ValueError(f"invalid datetime: {s!r}")
    if dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)  # store naive UTC
    return dt


def _payload(data: dict) -> dict:
    """Pick known fields (either spelling) and coerce them to column types."""
    out = {}
    for snake, camel in _FIELDS.items():
        if snake in data:
            out[snake] = data[snake]
        elif camel in data:
            out[snake] = data[camel]

    if "code" in out:
        out["code"] = Coupon.normalize_code(out["code"])
    for key in ("discount_percent", "discount_amount", "min_order_amount", "max_discount"):
        if key in out:
            out[key] = parse_money(out[key])
    for key in ("start_date", "end_date"):
        if key in out:
            out[key] = _parse_iso8601(out[key])
    if "usage_limit" in out:
        v = out["usage_limit"]
        out["usage_limit"] = None if v in (None, "") else to_int(v)
        if v not in (None, "") and out["usage_limit"] is None:
            raise ValueError("usage_limit must be an integer")
    if "is_active" in out:
        out["is_active"] = parse_bool(out["is_active"], default=True)
    return out


def _validate(fields: dict, coupon_id=None):
    code = fields.get("code") or ""
    if len(code) < 3:
        raise ValueError("code must be at least 3 characters")
    if not fields.get("start_date") or not fields.get("end_date"):
        raise ValueError("start_date and end_date are required")
    if fields["start_date"] >= fields["end_date"]:
        raise ValueError("end_date must be after start_date")
    # raises ValueError on bad discount shape
    CouponTerms(**{k: fields.get(k) for k in (
        "code", "discount_percent", "discount_amount", "min_order_amount",
        "max_discount", "start_date", "end_date", "usage_limit",
    )})
    q = Coupon.query.filter(Coupon.code == code)
    if coupon_id is not None:
        q = q.filter(Coupon.id != coupon_id)
    if q.first():
        raise Conflict("Coupon code already exists")


def _coupon_or_404(cid) -> Coupon:
    c = db.session.get(Coupon, cid)
    if not c:
        raise NotFound("coupon not found")
    return c


@bp.get("")
@role_required("admin")
def list_coupons():
    q = Coupon.query
    active = request.args.get("isActive", request.args.get("is_active"))
    if active is not None:
        q = q.filter(Coupon.is_active.is_(parse_bool(active)))
    items = q.order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()
    return ok("coupons", {"coupons": [c.as_dict() for c in items]})


@bp.get("/<int:cid>")
@role_required("admin")
def get_coupon(cid):
    return ok("coupon", {"coupon": _coupon_or_404(cid).as_dict()})


@bp.post("")
@role_required("admin")
def create_coupon():
    fields = _payload(request.get_json(silent=True) or {})
    fields.setdefault("is_active", True)
    _validate(fields)

    c = Coupon(**fields)
    c.usage_count = 0
    db.session.add(c)
    db.session.commit()
    logger.info("coupon %s created", c.code)
    return ok("Coupon created", {"coupon": c.as_dict()}, status=201)


@bp.put("/<int:cid>")
@role_required("admin")
def update_coupon(cid):
    c = _coupon_or_404(cid)
    changes = _payload(request.get_json(silent=True) or {})
    merged = {k: getattr(c, k) for k in _FIELDS}
    merged.update(changes)
    _validate(merged, coupon_id=c.id)

    for k, v in changes.items():
        setattr(c, k, v)
    db.session.commit()
    return ok("Coupon updated", {"coupon": c.as_dict()})


@bp.delete("/<int:cid>")
@role_required("admin")
def delete_coupon(cid):
    c = _coupon_or_404(cid)
    if db.session.query(Order.id).filter(Order.coupon_id == c.id).first():
        return err("coupon has been used by orders; deactivate it instead", 409)
    db.session.delete(c)
    db.session.commit()
    return ok("Coupon deleted")
