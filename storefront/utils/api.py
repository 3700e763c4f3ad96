# --- storefront/utils/api.py ---
from datetime import datetime, timedelta, timezone
from flask import jsonify


def _api_time_human() -> str:
    now = datetime.now(timezone.utc) + timedelta(hours=7)  # UTC+7 (Asia/Ho_Chi_Minh)
    return now.strftime("%Y-%m-%d %H:%M:%S")

def api_ok(message, data=None):
    return {
        "status": True,
        "message": message,
        "data": {
            **(data or {}),
            "API_TIME_HUMAN": _api_time_human(),
        }
    }

def api_error(message, data=None):
    return {
        "status": False,
        "message": message,
        "data": {
            **(data or {}),
            "API_TIME_HUMAN": _api_time_human(),
        }
    }

# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r

def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r

# ---- request parsing helpers -----------------------------------------------
def to_int(v, default=None):
    try:
        return int(v)
    except (TypeError, ValueError):
        return default

def parse_bool(v, default=False):
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}

def paginate(query, page, per_page, max_per_page=100, default_per_page=10):
    page = max(to_int(page, 1) or 1, 1)
    per_page = min(max(to_int(per_page, default_per_page) or default_per_page, 1), max_per_page)
    items = query.paginate(page=page, per_page=per_page, error_out=False)
    return {
        "meta": {
            "page": items.page,
            "pages": items.pages or 1,
            "per_page": per_page,
            "total": items.total,
        },
        "items": items.items,
    }
