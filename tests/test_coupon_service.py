from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from storefront.errors import (
    CouponExhausted,
    CouponExpired,
    CouponInactive,
    CouponMinimumNotMet,
    DiscountTampering,
)
from storefront.services.coupon_service import (
    CouponTerms,
    DiscountOutcome,
    evaluate_coupon,
    verify_client_amounts,
)

NOW = datetime(2025, 6, 1, 12, 0, 0)


def terms(**kw):
    base = dict(
        code="TEST",
        start_date=NOW - timedelta(days=7),
        end_date=NOW + timedelta(days=7),
    )
    base.update(kw)
    return CouponTerms(**base)


def test_terms_need_some_discount():
    with pytest.raises(ValueError):
        terms()


@pytest.mark.parametrize("pct", ["-1", "100.01"])
def test_terms_reject_percent_out_of_range(pct):
    with pytest.raises(ValueError):
        terms(discount_percent=Decimal(pct))


def test_terms_reject_reversed_window():
    with pytest.raises(ValueError):
        terms(discount_amount=Decimal("1000"), start_date=NOW, end_date=NOW - timedelta(seconds=1))


@pytest.mark.parametrize("subtotal, expected", [
    ("100000", "20000.00"),
    ("1000000", "200000.00"),
    ("5000000", "300000.00"),  # capped
])
def test_percent_discount_is_capped_by_max_discount(subtotal, expected):
    t = terms(discount_percent=Decimal("20"), max_discount=Decimal("300000"))
    out = evaluate_coupon(t, Decimal(subtotal), NOW)
    assert out.discount_value == Decimal(expected)
    assert out.discount_value <= Decimal("300000")
    assert out.total == Decimal(subtotal) - out.discount_value


def test_percent_wins_when_both_kinds_set():
    t = terms(discount_percent=Decimal("10"), discount_amount=Decimal("99999"))
    assert evaluate_coupon(t, Decimal("200000"), NOW).discount_value == Decimal("20000.00")


def test_fixed_amount_is_applied_verbatim_and_total_floors_at_zero():
    t = terms(discount_amount=Decimal("50000"))
    assert evaluate_coupon(t, Decimal("30000"), NOW) == DiscountOutcome(Decimal("50000.00"), Decimal("0.00"))
    assert evaluate_coupon(t, Decimal("80000"), NOW).total == Decimal("30000.00")


@pytest.mark.parametrize("now", [
    NOW - timedelta(days=8),
    NOW + timedelta(days=8),
])
def test_outside_window_is_expired(now):
    # the other failing rules do not change the outcome
    t = terms(discount_percent=Decimal("5"), usage_limit=1, usage_count=5, min_order_amount=Decimal("1"))
    with pytest.raises(CouponExpired):
        evaluate_coupon(t, Decimal("100"), now)


def test_window_bounds_are_inclusive():
    t = terms(discount_percent=Decimal("5"))
    evaluate_coupon(t, Decimal("100"), t.start_date)
    evaluate_coupon(t, Decimal("100"), t.end_date)


def test_inactive_is_checked_first():
    t = terms(discount_percent=Decimal("5"), is_active=False)
    with pytest.raises(CouponInactive):
        evaluate_coupon(t, Decimal("100"), NOW + timedelta(days=30))


def test_usage_limit_reached_is_exhausted():
    t = terms(discount_percent=Decimal("5"), usage_limit=3, usage_count=3)
    with pytest.raises(CouponExhausted):
        evaluate_coupon(t, Decimal("100"), NOW)


def test_unlimited_usage_when_limit_unset():
    t = terms(discount_percent=Decimal("5"), usage_count=10_000)
    assert evaluate_coupon(t, Decimal("100"), NOW).discount_value == Decimal("5.00")


def test_scenario_percent_under_cap():
    t = terms(discount_percent=Decimal("20"), max_discount=Decimal("500000"),
              min_order_amount=Decimal("1000000"))
    out = evaluate_coupon(t, Decimal("1200000"), NOW)
    assert out.discount_value == Decimal("240000")
    assert out.total == Decimal("960000")


def test_scenario_minimum_not_met_carries_required_amount():
    t = terms(discount_amount=Decimal("50000"), min_order_amount=Decimal("500000"))
    with pytest.raises(CouponMinimumNotMet) as exc:
        evaluate_coupon(t, Decimal("400000"), NOW)
    assert exc.value.required == Decimal("500000")
    assert exc.value.data == {"required": 500000.0}


def test_negative_subtotal_rejected():
    with pytest.raises(ValueError):
        evaluate_coupon(terms(discount_amount=Decimal("1")), Decimal("-1"), NOW)


def test_client_amounts_within_tolerance_pass():
    out = DiscountOutcome(Decimal("240000.00"), Decimal("960000.00"))
    verify_client_amounts(out, Decimal("1"), client_discount="240000.6", client_total="959999")


@pytest.mark.parametrize("discount, total", [("239998", None), (None, "960002")])
def test_client_amounts_off_by_more_than_tolerance(discount, total):
    out = DiscountOutcome(Decimal("240000.00"), Decimal("960000.00"))
    with pytest.raises(DiscountTampering):
        verify_client_amounts(out, Decimal("1"), client_discount=discount, client_total=total)
