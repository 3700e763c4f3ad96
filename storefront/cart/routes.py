# storefront/cart/routes.py
from __future__ import annotations

from flask import request

from . import bp
from ..errors import EmptyCart
from ..services import cart_service
from ..utils.api import err, ok, to_int
from ..utils.decorators import current_user, login_required


def _coupon_code(data=None) -> str | None:
    code = request.args.get("couponCode") or request.args.get("coupon_code")
    if data:
        code = data.get("couponCode") or data.get("coupon_code") or code
    return (code or "").strip() or None


def _body_qty(data, default=None):
    if "quantity" not in data and "qty" not in data:
        return default
    qty = to_int(data.get("quantity", data.get("qty")))
    if qty is None:
        raise ValueError("quantity must be an integer")
    return qty


@bp.get("")
@login_required
def get_cart():
    """Cart with totals; `?couponCode=` previews a coupon without applying it."""
    cart = cart_service.get_or_create_cart(current_user().id)
    return ok("cart", cart_service.summarize(cart, _coupon_code()))


@bp.post("")
@login_required
def add_item():
    """
    Body: { "product_id": int, "quantity": int (default 1) }
    """
    data = request.get_json(silent=True) or {}
    product_id = to_int(data.get("product_id", data.get("productId")))
    if not product_id:
        return err("product_id is required", 422)
    qty = _body_qty(data, default=1)

    cart = cart_service.get_or_create_cart(current_user().id)
    cart_service.add_item(cart, product_id, qty)
    return ok("item added", cart_service.summarize(cart), status=201)


@bp.put("")
@login_required
def update_item():
    """
    Body: { "product_id": int, "quantity": int }
    quantity <= 0 removes the line.
    """
    data = request.get_json(silent=True) or {}
    product_id = to_int(data.get("product_id", data.get("productId")))
    if not product_id:
        return err("product_id is required", 422)
    qty = _body_qty(data)
    if qty is None:
        return err("quantity is required", 422)

    cart = cart_service.get_or_create_cart(current_user().id)
    cart_service.set_quantity(cart, product_id, qty)
    return ok("item updated" if qty > 0 else "item removed", cart_service.summarize(cart))


@bp.patch("")
@login_required
def apply_coupon():
    """
    Body: { "couponCode": str }
    Validates the coupon against the current cart and returns the priced cart.
    """
    data = request.get_json(silent=True) or {}
    code = _coupon_code(data)
    if not code:
        return err("couponCode is required", 422)

    cart = cart_service.get_or_create_cart(current_user().id)
    if not cart.items:
        raise EmptyCart()
    return ok("coupon applied", cart_service.summarize(cart, code, ignore_unknown=False))


@bp.delete("")
@login_required
def clear_cart():
    cart = cart_service.get_or_create_cart(current_user().id)
    cart_service.clear(cart)
    return ok("all items removed", cart_service.summarize(cart))
