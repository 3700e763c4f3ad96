# storefront/order/routes.py
from datetime import datetime, timedelta

from flask import request

from . import bp
from ..model import ORDER_STATUSES, Order
from ..services import order_service, return_service
from ..services.cart_service import summarize
from ..utils.api import err, ok, paginate
from ..utils.decorators import current_user, is_admin, login_required, role_required
from ..utils.money import parse_money

SHIPPING_REQUIRED = ("fullName", "address", "phoneNumber")
PAYMENT_METHODS = ("COD", "BANK_TRANSFER", "CARD")


def _client_coupon(data):
    """(code, discount) from either {"coupon": {...}} or flat keys."""
    coupon = data.get("coupon")
    if isinstance(coupon, dict):
        code = coupon.get("code")
        discount = coupon.get("discountValue", coupon.get("discount_value"))
    else:
        code = data.get("couponCode") or data.get("coupon_code")
        discount = data.get("discountValue", data.get("discount_value"))
    code = (code or "").strip() or None
    return code, parse_money(discount)


@bp.post("")
@login_required
def create_order():
    """
    Body:
      shipping_address: {fullName, address, city, phoneNumber, ...}
      payment_method:   COD (default) | BANK_TRANSFER | CARD
      coupon:           {code, discountValue}   (optional)
      total:            client-side total, checked against ours (optional)
      notes:            free text (optional)
    """
    data = request.get_json(silent=True) or {}
    shipping = data.get("shipping_address", data.get("shippingAddress"))
    if not isinstance(shipping, dict):
        return err("shipping_address is required", 422)
    missing = [k for k in SHIPPING_REQUIRED if not str(shipping.get(k) or "").strip()]
    if missing:
        return err(f"shipping_address missing: {', '.join(missing)}", 422)

    payment_method = (data.get("payment_method") or data.get("paymentMethod") or "COD").upper()
    if payment_method not in PAYMENT_METHODS:
        return err(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}", 422)

    code, client_discount = _client_coupon(data)
    order = order_service.place_order(
        current_user().id,
        shipping_address=shipping,
        payment_method=payment_method,
        notes=(data.get("notes") or "").strip() or None,
        coupon_code=code,
        client_discount=client_discount,
        client_total=parse_money(data.get("total")),
    )
    return ok("Order created", {"order": order.as_api()}, status=201)


@bp.get("")
@login_required
def list_orders():
    """
    Query params:
      - page, per_page
      - status=PENDING|PROCESSING|...
      - all=1        (admins: every user's orders)
      - start=YYYY-MM-DD
      - end=YYYY-MM-DD (inclusive)
    """
    user = current_user()
    q = Order.query
    if not (is_admin(user) and request.args.get("all") in {"1", "true"}):
        q = q.filter(Order.user_id == user.id)

    status = (request.args.get("status") or "").upper()
    start = request.args.get("start")
    end = request.args.get("end")
    if status:
        q = q.filter(Order.status == status)
    if start:
        q = q.filter(Order.created_at >= datetime.fromisoformat(start))
    if end:
        # make end inclusive for the whole day
        q = q.filter(Order.created_at < datetime.fromisoformat(end) + timedelta(days=1))

    q = q.order_by(Order.created_at.desc(), Order.id.desc())
    page_data = paginate(q, request.args.get("page"), request.args.get("per_page"), default_per_page=20)
    return ok("orders", {
        "meta": page_data["meta"],
        "items": [o.as_api() for o in page_data["items"]],
    })


@bp.get("/<int:order_id>")
@login_required
def get_order(order_id: int):
    return ok("order", {"order": order_service.get_order_for(current_user(), order_id).as_api()})


@bp.post("/<int:order_id>/actions")
@login_required
def order_action(order_id: int):
    """
    Body: {"action": "cancel" | "return" | "reorder", "reason": str,
           "returnItems": [{"order_item_id", "quantity", "reason"}]}
    """
    user = current_user()
    order = order_service.get_order_for(user, order_id)
    data = request.get_json(silent=True) or {}
    action = (data.get("action") or "").strip().lower()
    reason = data.get("reason")

    if action == "cancel":
        order_service.cancel_order(order, reason)
        return ok("Order cancelled successfully", {"order": order.as_api()})

    if action == "return":
        if order.user_id != user.id:
            return err("only the customer can request a return", 403)
        items = data.get("returnItems", data.get("items"))
        rr = return_service.create_return(user, order.id, reason, items)
        return ok("Return request submitted successfully", {"return_request": rr.as_api()}, status=201)

    if action == "reorder":
        cart, skipped = order_service.reorder_to_cart(order, user.id)
        return ok("Items added to cart", {"cart": summarize(cart), "skipped": skipped})

    return err("action must be one of: cancel, return, reorder", 422)


@bp.patch("/<int:order_id>/status")
@role_required("admin")
def update_order_status(order_id: int):
    data = request.get_json(silent=True) or {}
    status = (data.get("status") or "").upper()
    if status not in ORDER_STATUSES:
        return err(f"status must be one of: {', '.join(ORDER_STATUSES)}", 422)
    order = order_service.get_order_for(current_user(), order_id)
    order_service.update_status(order, status, data.get("note"))
    return ok("Order status updated", {"order": order.as_api()})
