# storefront/model/cart.py
from __future__ import annotations
from decimal import Decimal
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.money import round_money, to_float


class Cart(db.Model):
    __tablename__ = "cart"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    items = db.relationship(
        "CartItem",
        backref="cart",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CartItem.id.asc()"
    )

    # --------- money helpers ----------
    def subtotal_dec(self) -> Decimal:
        # sum of current unit price * qty
        return round_money(sum((i.line_total_dec() for i in self.items), Decimal("0")))

    def item_count(self) -> int:
        return sum(int(i.quantity or 0) for i in self.items)

    def find_item(self, product_id: int) -> CartItem | None:
        return next((i for i in self.items if i.product_id == product_id), None)


class CartItem(db.Model):
    __tablename__ = "cart_item"
    __table_args__ = (db.UniqueConstraint("cart_id", "product_id", name="uq_cart_item_product"),)

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("cart.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    product = db.relationship("Product", lazy="joined")

    def unit_price_dec(self) -> Decimal:
        return Decimal(str(self.product.price or 0)) if self.product else Decimal("0")

    def line_total_dec(self) -> Decimal:
        return round_money(self.unit_price_dec() * Decimal(int(self.quantity or 0)))

    def as_api(self):
        p = self.product
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": p.name if p else None,
            "price": to_float(self.unit_price_dec()),
            "quantity": self.quantity,
            "line_total": to_float(self.line_total_dec()),
            "image_url": p.main_image() if p else None,
            "stock": p.stock if p else 0,
            "category": p.category.as_dict() if p and p.category else None,
        }
