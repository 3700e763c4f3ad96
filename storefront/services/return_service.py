from __future__ import annotations

import logging

from ..errors import Forbidden, InvalidOrderState, NotFound
from ..extensions import db
from ..model import Order, ReturnItem, ReturnRequest
from ..model.returns import OPEN_RETURN_STATUSES, RETURN_STATUSES
from ..utils.decorators import is_admin
from .order_service import RETURNABLE

logger = logging.getLogger(__name__)


def _parse_items(order: Order, items) -> list[ReturnItem]:
    if not isinstance(items, list) or not items:
        raise ValueError("items must be a non-empty list")
    by_id = {i.id: i for i in order.items}
    out = []
    for raw in items:
        if not isinstance(raw, dict):
            raise ValueError("each item must be an object")
        try:
            oid = int(raw.get("order_item_id"))
            qty = int(raw.get("quantity"))
        except (TypeError, ValueError):
            raise ValueError("order_item_id and quantity must be integers")
        line = by_id.get(oid)
        if not line:
            raise ValueError(f"order item {oid} does not belong to this order")
        if qty < 1 or qty > line.quantity:
            raise ValueError(f"quantity for item {oid} must be between 1 and {line.quantity}")
        out.append(ReturnItem(order_item_id=oid, quantity=qty, reason=raw.get("reason") or "Customer return"))
    return out


def create_return(user, order_id: int, reason: str | None, items) -> ReturnRequest:
    order = db.session.get(Order, order_id)
    if not order or order.user_id != user.id:
        raise NotFound("order not found or does not belong to this user")
    if order.status not in RETURNABLE:
        raise InvalidOrderState("only delivered or completed orders can be returned")
    open_request = ReturnRequest.query.filter(
        ReturnRequest.order_id == order.id,
        ReturnRequest.status.in_(OPEN_RETURN_STATUSES),
    ).first()
    if open_request:
        raise InvalidOrderState("a return request already exists for this order")

    rr = ReturnRequest(
        order_id=order.id,
        user_id=user.id,
        reason=(reason or "").strip() or "Return requested by customer",
        status="PENDING",
        items=_parse_items(order, items),
    )
    db.session.add(rr)
    order.status = "RETURN_REQUESTED"
    order.append_note(f"Return requested: {rr.reason}")
    db.session.commit()
    logger.info("return request %s opened for order %s", rr.id, order.id)
    return rr


def get_return_for(user, rid: int) -> ReturnRequest:
    rr = db.session.get(ReturnRequest, rid)
    if not rr:
        raise NotFound("return request not found")
    if rr.user_id != user.id and not is_admin(user):
        raise Forbidden("you do not have permission to view this return request")
    return rr


def update_return(user, rr: ReturnRequest, status: str, admin_notes: str | None = None) -> ReturnRequest:
    status = (status or "").upper()
    if status not in RETURN_STATUSES:
        raise ValueError(f"status must be one of: {', '.join(RETURN_STATUSES)}")
    admin = is_admin(user)
    if not admin and (status != "CANCELLED" or rr.user_id != user.id):
        raise Forbidden("you do not have permission to update this return request")
    if not admin and rr.status != "PENDING":
        raise InvalidOrderState("only pending return requests can be cancelled")

    rr.status = status
    if admin and admin_notes is not None:
        rr.admin_notes = admin_notes

    order = rr.order
    if status == "APPROVED" and admin:
        for item in rr.items:
            item.status = "APPROVED"
    if status in ("REJECTED", "CANCELLED") and order.status == "RETURN_REQUESTED":
        order.status = "DELIVERED"
    if status == "COMPLETED" and admin:
        order.status = "RETURNED"
    db.session.commit()
    logger.info("return request %s -> %s", rr.id, status)
    return rr


def cancel_return(user, rr: ReturnRequest) -> ReturnRequest:
    if rr.user_id != user.id and not is_admin(user):
        raise Forbidden("you do not have permission to cancel this return request")
    if rr.status != "PENDING":
        raise InvalidOrderState("only pending return requests can be cancelled")
    rr.status = "CANCELLED"
    rr.order.status = "DELIVERED"
    db.session.commit()
    return rr
