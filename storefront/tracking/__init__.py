from flask import Blueprint

bp = Blueprint("tracking", __name__, url_prefix="/api/tracking")

from . import routes  # noqa: E402,F401
