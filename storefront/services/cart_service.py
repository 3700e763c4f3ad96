from __future__ import annotations

import logging

from ..errors import CouponNotFound, InsufficientStock, NotFound
from ..extensions import db
from ..model import Cart, CartItem, Product
from ..utils.money import ZERO, to_float
from .coupon_service import applied_coupon_payload, apply_coupon_code

logger = logging.getLogger(__name__)


def get_or_create_cart(user_id: int) -> Cart:
    cart = Cart.query.filter_by(user_id=user_id).first()
    if not cart:
        cart = Cart(user_id=user_id)
        db.session.add(cart)
        db.session.commit()
    return cart


def _product_or_404(product_id) -> Product:
    product = db.session.get(Product, product_id) if product_id else None
    if not product:
        raise NotFound("product not found")
    return product


def add_item(cart: Cart, product_id: int, qty: int) -> CartItem:
    """Add `qty` of a product; an existing line is incremented."""
    if qty < 1:
        raise ValueError("quantity must be >= 1")
    product = _product_or_404(product_id)

    item = cart.find_item(product.id)
    new_qty = (item.quantity if item else 0) + qty
    if new_qty > int(product.stock or 0):
        raise InsufficientStock(product.name, int(product.stock or 0), new_qty)

    if item:
        item.quantity = new_qty
    else:
        item = CartItem(product_id=product.id, quantity=new_qty)
        cart.items.append(item)
    db.session.commit()
    return item


def set_quantity(cart: Cart, product_id: int, qty: int) -> None:
    """Set the line quantity; zero or below removes the line."""
    item = cart.find_item(product_id)
    if qty <= 0:
        if not item:
            raise NotFound("item not found in this cart")
        cart.items.remove(item)
        db.session.commit()
        return

    product = _product_or_404(product_id)
    if qty > int(product.stock or 0):
        raise InsufficientStock(product.name, int(product.stock or 0), qty)
    if item:
        item.quantity = qty
    else:
        cart.items.append(CartItem(product_id=product.id, quantity=qty))
    db.session.commit()


def clear(cart: Cart) -> None:
    # delete-orphan cascade removes the rows
    cart.items.clear()
    db.session.commit()


def summarize(cart: Cart, coupon_code: str | None = None, *, ignore_unknown: bool = True) -> dict:
    """Cart payload with money totals, priced with `coupon_code` when given.

    An unknown code is ignored for previews; a known but ineligible coupon
    raises its `CouponError`.
    """
    subtotal = cart.subtotal_dec()
    discount = ZERO
    total = subtotal
    applied = None

    if coupon_code and cart.items:
        try:
            coupon, outcome = apply_coupon_code(coupon_code, subtotal)
        except CouponNotFound:
            if not ignore_unknown:
                raise
            logger.debug("ignoring unknown coupon %r on cart %s", coupon_code, cart.id)
        else:
            discount, total = outcome.discount_value, outcome.total
            applied = applied_coupon_payload(coupon, outcome)

    return {
        "id": cart.id,
        "items": [i.as_api() for i in cart.items],
        "item_count": cart.item_count(),
        "subtotal": to_float(subtotal),
        "discount": to_float(discount),
        "total": to_float(total),
        "coupon": applied,
    }
