# storefront/services/coupon_service.py
"""Coupon eligibility and discount computation.

`evaluate_coupon` is a pure function over a `CouponTerms` snapshot so the
same rules run for the cart preview, the coupon "apply" call and the checkout
transaction. Checkout additionally calls `verify_client_amounts` to reject a
client that submitted a discount or total the server cannot reproduce.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from ..errors import (
    CouponExhausted,
    CouponExpired,
    CouponInactive,
    CouponMinimumNotMet,
    CouponNotFound,
    DiscountTampering,
)
from ..extensions import db
from ..model import Coupon
from ..utils.money import D, ZERO, round_money

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def _now_utc() -> datetime:
    # coupon windows are stored as naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class CouponTerms:
    code: str
    discount_percent: Decimal | None = None
    discount_amount: Decimal | None = None
    min_order_amount: Decimal | None = None
    max_discount: Decimal | None = None
    is_active: bool = True
    start_date: datetime | None = None
    end_date: datetime | None = None
    usage_limit: int | None = None
    usage_count: int = 0

    def __post_init__(self):
        if self.discount_percent is None and self.discount_amount is None:
            raise ValueError("coupon needs a discount percent or a fixed discount amount")
        if self.discount_percent is not None and not (ZERO <= D(self.discount_percent) <= HUNDRED):
            raise ValueError("discount percent must be between 0 and 100")
        for name in ("discount_amount", "min_order_amount", "max_discount"):
            value = getattr(self, name)
            if value is not None and D(value) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.usage_limit is not None and self.usage_limit < 0:
            raise ValueError("usage limit must not be negative")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start date must not be after end date")

    @classmethod
    def from_model(cls, c: Coupon) -> CouponTerms:
        return cls(
            code=c.code,
            discount_percent=_opt_dec(c.discount_percent),
            discount_amount=_opt_dec(c.discount_amount),
            min_order_amount=_opt_dec(c.min_order_amount),
            max_discount=_opt_dec(c.max_discount),
            is_active=bool(c.is_active),
            start_date=c.start_date,
            end_date=c.end_date,
            usage_limit=c.usage_limit,
            usage_count=int(c.usage_count or 0),
        )


@dataclass(frozen=True)
class DiscountOutcome:
    discount_value: Decimal
    total: Decimal

    def as_api(self):
        return {"discount_value": float(self.discount_value), "total": float(self.total)}


def _opt_dec(v) -> Decimal | None:
    return None if v is None else D(v)


def check_eligibility(terms: CouponTerms, subtotal: Decimal, now: datetime) -> None:
    """Raise the first rule the coupon breaks; order matters."""
    if not terms.is_active:
        raise CouponInactive()
    if (terms.start_date and now < terms.start_date) or (terms.end_date and now > terms.end_date):
        raise CouponExpired()
    if terms.usage_limit is not None and terms.usage_count >= terms.usage_limit:
        raise CouponExhausted()
    if terms.min_order_amount is not None and subtotal < terms.min_order_amount:
        raise CouponMinimumNotMet(terms.min_order_amount)


def compute_discount(terms: CouponTerms, subtotal: Decimal) -> Decimal:
    if terms.discount_percent is not None:
        discount = round_money(subtotal * terms.discount_percent / HUNDRED)
        if terms.max_discount is not None and discount > terms.max_discount:
            discount = round_money(terms.max_discount)
        return discount
    # fixed amounts are applied as-is, even above the subtotal
    return round_money(terms.discount_amount)


def evaluate_coupon(coupon, subtotal, now: datetime | None = None) -> DiscountOutcome:
    """Validate `coupon` against `subtotal` at `now` and price the discount.

    `coupon` may be a `Coupon` row or a `CouponTerms`. Raises a `CouponError`
    subclass on the first failed rule. The returned total is floored at zero;
    the raw `subtotal - discount` may be negative for large fixed coupons.
    """
    terms = coupon if isinstance(coupon, CouponTerms) else CouponTerms.from_model(coupon)
    subtotal = D(subtotal)
    if subtotal < 0:
        raise ValueError("subtotal must not be negative")
    now = now or _now_utc()

    check_eligibility(terms, subtotal, now)
    discount = compute_discount(terms, subtotal)
    total = subtotal - discount
    if total < 0:
        total = ZERO
    return DiscountOutcome(discount_value=discount, total=round_money(total))


def verify_client_amounts(outcome: DiscountOutcome, tolerance: Decimal,
                          client_discount=None, client_total=None) -> None:
    """Reject client-side discount/total that drift more than `tolerance` from ours."""
    if client_discount is not None and abs(D(client_discount) - outcome.discount_value) > tolerance:
        logger.warning("discount mismatch: client=%s server=%s", client_discount, outcome.discount_value)
        raise DiscountTampering("submitted discount does not match the coupon")
    if client_total is not None and abs(D(client_total) - outcome.total) > tolerance:
        logger.warning("total mismatch: client=%s server=%s", client_total, outcome.total)
        raise DiscountTampering("submitted order total does not match")


def find_coupon(code: str, *, for_update: bool = False) -> Coupon:
    code = Coupon.normalize_code(code)
    if not code:
        raise CouponNotFound("coupon code is required")
    q = db.session.query(Coupon).filter(Coupon.code == code)
    if for_update:
        q = q.with_for_update()
    coupon = q.first()
    if not coupon:
        raise CouponNotFound()
    return coupon


def apply_coupon_code(code: str, subtotal, now: datetime | None = None) -> tuple[Coupon, DiscountOutcome]:
    coupon = find_coupon(code)
    try:
        outcome = evaluate_coupon(coupon, subtotal, now)
    except CouponMinimumNotMet:
        logger.info("coupon %s rejected: subtotal %s below minimum", coupon.code, subtotal)
        raise
    return coupon, outcome


def applied_coupon_payload(coupon: Coupon, outcome: DiscountOutcome) -> dict:
    return {
        "code": coupon.code,
        "discount_percent": float(coupon.discount_percent) if coupon.discount_percent is not None else None,
        "discount_amount": float(coupon.discount_amount) if coupon.discount_amount is not None else None,
        "discount_value": float(outcome.discount_value),
    }
