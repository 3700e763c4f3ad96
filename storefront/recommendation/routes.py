from flask import request

from . import bp
from ..services.recommendation_service import recommend
from ..utils.api import ok, to_int
from ..utils.decorators import current_user, login_optional


@bp.get("")
@login_optional
def recommendations():
    limit = min(max(to_int(request.args.get("limit"), 10) or 10, 1), 50)
    user = current_user()
    kind, products = recommend(user.id if user else None, limit)
    return ok("recommendations", {"type": kind, "products": [p.as_api() for p in products]})
