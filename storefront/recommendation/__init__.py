from flask import Blueprint

bp = Blueprint("recommendation", __name__, url_prefix="/api/recommendations")

from . import routes  # noqa: E402,F401
