from flask import request

from . import bp
from ..model import ReturnRequest
from ..services import return_service
from ..utils.api import err, ok
from ..utils.decorators import current_user, is_admin, login_required


@bp.post("")
@login_required
def create_return():
    """
    Body: {"order_id": int, "reason": str,
           "items": [{"order_item_id": int, "quantity": int, "reason": str}]}
    """
    data = request.get_json(silent=True) or {}
    order_id = data.get("order_id", data.get("orderId"))
    reason = (data.get("reason") or "").strip()
    if not order_id or not reason or not data.get("items"):
        return err("Missing required fields: order_id, reason and items", 422)
    rr = return_service.create_return(current_user(), int(order_id), reason, data.get("items"))
    return ok("Return request created", {"return_request": rr.as_api()}, status=201)


@bp.get("")
@login_required
def list_returns():
    user = current_user()
    q = ReturnRequest.query
    if not is_admin(user):
        q = q.filter(ReturnRequest.user_id == user.id)
    status = (request.args.get("status") or "").upper()
    if status:
        q = q.filter(ReturnRequest.status == status)
    items = q.order_by(ReturnRequest.created_at.desc(), ReturnRequest.id.desc()).all()
    return ok("return requests", {"items": [r.as_api() for r in items]})


@bp.get("/<int:rid>")
@login_required
def get_return(rid: int):
    rr = return_service.get_return_for(current_user(), rid)
    return ok("return request", {"return_request": rr.as_api(with_order=True)})


@bp.patch("/<int:rid>")
@login_required
def update_return(rid: int):
    """Admins may set any status; customers may only cancel their own request."""
    user = current_user()
    data = request.get_json(silent=True) or {}
    if not data.get("status"):
        return err("Missing required field: status", 422)
    rr = return_service.get_return_for(user, rid)
    return_service.update_return(user, rr, data["status"], data.get("admin_notes", data.get("adminNotes")))
    return ok("Return request updated", {"return_request": rr.as_api()})


@bp.delete("/<int:rid>")
@login_required
def cancel_return(rid: int):
    user = current_user()
    rr = return_service.get_return_for(user, rid)
    return_service.cancel_return(user, rr)
    return ok("Return request cancelled", {"return_request": rr.as_api()})
