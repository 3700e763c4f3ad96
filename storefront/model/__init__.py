# ------ storefront/model/__init__.py ------

from .user import User, RefreshToken
from .category import Category
from .product import Product, ProductImage
from .cart import Cart, CartItem
from .coupon import Coupon
from .order import Order, OrderItem, ORDER_STATUSES
from .review import Review
from .returns import ReturnRequest, ReturnItem, RETURN_STATUSES
from .tracking import ProductView, SearchQuery

__all__ = [
    "User",
    "RefreshToken",
    "Category",
    "Product",
    "ProductImage",
    "Cart",
    "CartItem",
    "Coupon",
    "Order",
    "OrderItem",
    "ORDER_STATUSES",
    "Review",
    "ReturnRequest",
    "ReturnItem",
    "RETURN_STATUSES",
    "ProductView",
    "SearchQuery",
]
