# storefront/services/order_service.py
"""Checkout and post-checkout order actions.

`place_order` is the only writer of stock and coupon usage at checkout; every
step of it shares one transaction and any failure rolls all of them back.
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import (
    ApiError,
    EmptyCart,
    Forbidden,
    InsufficientStock,
    InternalError,
    InvalidOrderState,
    NotFound,
)
from ..extensions import db
from ..model import ORDER_STATUSES, Cart, CartItem, Order, OrderItem, Product
from ..utils.decorators import is_admin
from ..utils.money import D, ZERO, format_vnd, round_money
from .coupon_service import DiscountOutcome, evaluate_coupon, find_coupon, verify_client_amounts

logger = logging.getLogger(__name__)

CANCELLABLE = ("PENDING", "PROCESSING")
RETURNABLE = ("DELIVERED", "COMPLETED")


def new_tracking_number() -> str:
    return f"TRK-{datetime.utcnow():%Y%m%d%H%M%S}-{secrets.token_hex(3).upper()}"


def _lock_products(product_ids) -> dict:
    rows = Product.query.filter(Product.id.in_(product_ids)).with_for_update().all()
    return {p.id: p for p in rows}


def place_order(user_id: int, *, shipping_address=None, payment_method="COD", notes=None,
                coupon_code=None, client_discount=None, client_total=None) -> Order:
    """Turn the user's cart into an order.

    Lines are priced from the locked product rows, never from client input.
    When the client sent its own discount/total they must agree with ours
    within DISCOUNT_TOLERANCE.
    """
    tolerance = D(current_app.config.get("DISCOUNT_TOLERANCE", 1))
    try:
        cart = Cart.query.filter_by(user_id=user_id).first()
        if not cart or not cart.items:
            raise EmptyCart()

        products = _lock_products([i.product_id for i in cart.items])
        lines = []
        for item in cart.items:
            p = products.get(item.product_id)
            if not p:
                raise NotFound(f"product {item.product_id} no longer exists")
            if int(p.stock or 0) < item.quantity:
                raise InsufficientStock(p.name, int(p.stock or 0), item.quantity)
            unit = round_money(D(p.price))
            lines.append((p, item.quantity, unit, round_money(unit * item.quantity)))

        subtotal = round_money(sum((lt for *_, lt in lines), ZERO))

        coupon = None
        if coupon_code:
            coupon = find_coupon(coupon_code, for_update=True)
            outcome = evaluate_coupon(coupon, subtotal)
        else:
            outcome = DiscountOutcome(discount_value=ZERO, total=subtotal)
        verify_client_amounts(outcome, tolerance, client_discount, client_total)

        order = Order(
            tracking_number=new_tracking_number(),
            user_id=user_id,
            status="PENDING",
            payment_method=payment_method or "COD",
            shipping_address=shipping_address,
            subtotal=subtotal,
            discount=outcome.discount_value,
            total=outcome.total,
            notes=notes,
        )
        for p, qty, unit, line_total in lines:
            order.items.append(OrderItem(
                product_id=p.id,
                name=p.name,
                image_url=p.main_image(),
                unit_price=unit,
                quantity=qty,
                line_total=line_total,
            ))
            p.stock = int(p.stock) - qty

        if coupon:
            coupon.usage_count = int(coupon.usage_count or 0) + 1
            order.coupon_id = coupon.id
            order.coupon_code = coupon.code
            order.append_note(
                f"Coupon {coupon.code} applied: -{format_vnd(outcome.discount_value, current_app.config.get('CURRENCY_SYMBOL', '₫'))}"
            )

        db.session.add(order)
        cart.items.clear()
        db.session.commit()
    except ApiError:
        db.session.rollback()
        raise
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("order placement failed for user %s", user_id)
        raise InternalError("could not place order")

    logger.info("order %s placed by user %s total=%s coupon=%s",
                order.tracking_number, user_id, order.total, order.coupon_code)
    return order


def get_order_for(user, order_id: int) -> Order:
    o = db.session.get(Order, order_id)
    if not o:
        raise NotFound("order not found")
    if o.user_id != user.id and not is_admin(user):
        raise Forbidden("access denied")
    return o


def cancel_order(order: Order, reason: str | None = None) -> Order:
    if order.status not in CANCELLABLE:
        raise InvalidOrderState("only pending or processing orders can be cancelled")
    try:
        products = _lock_products([i.product_id for i in order.items if i.product_id])
        for item in order.items:
            p = products.get(item.product_id)
            if p:
                p.stock = int(p.stock or 0) + item.quantity
        order.status = "CANCELLED"
        order.append_note(f"Order cancelled: {reason or 'No reason provided'}")
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("cancel failed for order %s", order.id)
        raise InternalError("could not cancel order")
    logger.info("order %s cancelled", order.id)
    return order


def reorder_to_cart(order: Order, user_id: int) -> tuple[Cart, list[dict]]:
    """Copy the order's lines back into the cart; lines without stock are skipped."""
    cart = Cart.query.filter_by(user_id=user_id).first()
    if not cart:
        cart = Cart(user_id=user_id)
        db.session.add(cart)

    skipped = []
    for line in order.items:
        p = db.session.get(Product, line.product_id) if line.product_id else None
        existing = cart.find_item(line.product_id) if p else None
        wanted = line.quantity + (existing.quantity if existing else 0)
        if not p or int(p.stock or 0) < wanted:
            skipped.append({"product_id": line.product_id, "name": line.name})
            continue
        if existing:
            existing.quantity = wanted
        else:
            cart.items.append(CartItem(product_id=p.id, quantity=line.quantity))
    db.session.commit()
    return cart, skipped


def update_status(order: Order, status: str, note: str | None = None) -> Order:
    status = (status or "").upper()
    if status not in ORDER_STATUSES:
        raise ValueError(f"status must be one of: {', '.join(ORDER_STATUSES)}")
    if status == "CANCELLED" and order.status in CANCELLABLE:
        return cancel_order(order, note)
    previous = order.status
    order.status = status
    if note:
        order.append_note(note)
    db.session.commit()
    logger.info("order %s status %s -> %s", order.id, previous, status)
    return order
