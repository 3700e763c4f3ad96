# --- storefront/errors.py ---
import logging
from flask import jsonify
from werkzeug.exceptions import HTTPException

from .utils.api import api_error

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 400
    message = "bad request"

    def __init__(self, message=None, status_code=None, data=None):
        super().__init__(message or self.message)
        self.message = message or self.message
        if status_code is not None:
            self.status_code = status_code
        self.data = data

    def to_response(self):
        r = jsonify(api_error(self.message, self.data)); r.status_code = self.status_code; return r


class NotFound(ApiError):
    status_code = 404
    message = "not found"

class Forbidden(ApiError):
    status_code = 403
    message = "forbidden"

class Conflict(ApiError):
    status_code = 409
    message = "conflict"

class InternalError(ApiError):
    status_code = 500
    message = "internal error"


# ---- coupons ---------------------------------------------------------------
class CouponError(ApiError):
    message = "coupon cannot be applied"

class CouponNotFound(CouponError):
    status_code = 404
    message = "coupon not found"

class CouponInactive(CouponError):
    message = "coupon is not active"

class CouponExpired(CouponError):
    message = "coupon is expired or not yet valid"

class CouponExhausted(CouponError):
    message = "coupon usage limit reached"

class CouponMinimumNotMet(CouponError):
    message = "order subtotal is below the coupon minimum"

    def __init__(self, required, message=None):
        self.required = required
        super().__init__(
            message or f"minimum order amount for this coupon is {required}",
            data={"required": float(required)},
        )

class DiscountTampering(CouponError):
    message = "submitted discount or total does not match"


# ---- categories ------------------------------------------------------------
class CategoryError(ApiError):
    message = "invalid category"

class CategoryNotFound(CategoryError):
    status_code = 404
    message = "category not found"

class SelfParent(CategoryError):
    message = "category cannot be its own parent"

class CyclicHierarchy(CategoryError):
    message = "parent assignment would create a cycle"

class ParentNotFound(CategoryError):
    message = "parent category not found"

class DuplicateName(CategoryError):
    status_code = 409
    message = "category name already exists"

class HasChildren(CategoryError):
    status_code = 409
    message = "cannot delete: category has child categories"

class HasProducts(CategoryError):
    status_code = 409
    message = "cannot delete: category has products"


# ---- orders / stock --------------------------------------------------------
class EmptyCart(ApiError):
    status_code = 422
    message = "cart is empty"

class InsufficientStock(ApiError):
    status_code = 409
    message = "not enough stock"

    def __init__(self, product_name, available, requested):
        super().__init__(
            f"{product_name}: only {available} left, {requested} requested",
            data={"available": available, "requested": requested},
        )

class InvalidOrderState(ApiError):
    message = "action not allowed for the current order status"


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e):
        if e.status_code >= 500:
            logger.error("request failed: %s", e.message)
        return e.to_response()

    @app.errorhandler(ValueError)
    def handle_value_error(e):
        r = jsonify(api_error(str(e)))
        r.status_code = 422
        return r

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        r = jsonify(api_error(e.description or e.name))
        r.status_code = e.code or 500
        return r
