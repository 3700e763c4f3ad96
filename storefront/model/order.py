from datetime import datetime
from ..extensions import db
from ..utils.money import to_float

ORDER_STATUSES = (
    "PENDING", "PROCESSING", "SHIPPED", "DELIVERED", "COMPLETED",
    "CANCELLED", "RETURN_REQUESTED", "RETURNED",
)

class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    tracking_number = db.Column(db.String(40), unique=True, index=True)  # e.g., "TRK-20251022101500-A1B2C3"
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    status = db.Column(db.String(20), default="PENDING", index=True)
    payment_method = db.Column(db.String(32), default="COD")

    # shipping snapshot: fullName, address, city, state, postalCode, country, phoneNumber
    shipping_address = db.Column(db.JSON)

    # Money snapshot
    subtotal = db.Column(db.Numeric(14, 2), nullable=False)
    discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(14, 2), nullable=False)

    coupon_id = db.Column(db.Integer, db.ForeignKey("coupon.id"), nullable=True, index=True)
    coupon_code = db.Column(db.String(64))
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="selectin"
    )
    user = db.relationship("User", lazy="joined")

    def append_note(self, line: str):
        self.notes = f"{self.notes}\n\n{line}" if self.notes else line

    def as_api(self):
        return {
            "id": self.id,
            "tracking_number": self.tracking_number,
            "user_id": self.user_id,
            "status": self.status,
            "payment_method": self.payment_method,
            "shipping_address": self.shipping_address,
            "money": {
                "subtotal": to_float(self.subtotal),
                "discount": to_float(self.discount),
                "total": to_float(self.total),
            },
            "coupon_code": self.coupon_code,
            "notes": self.notes,
            "items": [i.as_api() for i in self.items],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), index=True)
    name = db.Column(db.String(255))
    image_url = db.Column(db.String(1024))

    unit_price = db.Column(db.Numeric(14, 2), nullable=False)   # price at time of order
    quantity = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Numeric(14, 2), nullable=False)

    def as_api(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "image_url": self.image_url,
            "unit_price": to_float(self.unit_price),
            "quantity": self.quantity,
            "line_total": to_float(self.line_total),
        }
