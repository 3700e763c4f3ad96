import logging

from flask import request

from . import bp
from ..services import recommendation_service
from ..utils.api import err, ok, to_int
from ..utils.decorators import current_user, login_optional

logger = logging.getLogger(__name__)


@bp.post("/product-view")
@login_optional
def product_view():
    """
    Body: {"product_id": int, "view_duration": int (ms, optional)}
    Anonymous calls succeed without storing anything.
    """
    data = request.get_json(silent=True) or {}
    product_id = to_int(data.get("product_id", data.get("productId")))
    if not product_id:
        return err("product_id is required", 422)
    duration = to_int(data.get("view_duration", data.get("viewDuration")), 0) or 0
    if duration < 0:
        return err("view_duration must not be negative", 422)

    user = current_user()
    view = recommendation_service.record_view(user.id if user else None, product_id, duration)
    if view is None:
        logger.debug("anonymous view of product %s not recorded", product_id)
        return ok("skipped", {"recorded": False})
    return ok("view recorded", {
        "recorded": True,
        "view_count": view.view_count,
        "duration": view.duration,
    })


@bp.post("/search-query")
@login_optional
def search_query():
    data = request.get_json(silent=True) or {}
    user = current_user()
    sq = recommendation_service.record_search(user.id if user else None, data.get("query"))
    return ok("search recorded", {"id": sq.id, "query": sq.term}, status=201)
