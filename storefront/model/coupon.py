# --- storefront/model/coupon.py ---

from ..extensions import db
from ..utils.money import to_float
from sqlalchemy.sql import func

class Coupon(db.Model):
    __tablename__ = "coupon"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)  # stored upper-case
    description = db.Column(db.String(255))

    # at least one of the two; percent wins when both are set
    discount_percent = db.Column(db.Numeric(5, 2), nullable=True)
    discount_amount = db.Column(db.Numeric(14, 2), nullable=True)

    min_order_amount = db.Column(db.Numeric(14, 2), nullable=True)
    max_discount = db.Column(db.Numeric(14, 2), nullable=True)   # cap for percent coupons

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    start_date = db.Column(db.DateTime, nullable=False)   # naive UTC
    end_date = db.Column(db.DateTime, nullable=False)

    usage_limit = db.Column(db.Integer, nullable=True)
    usage_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    @staticmethod
    def normalize_code(code) -> str:
        return (code or "").strip().upper()

    def as_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "discount_percent": to_float(self.discount_percent),
            "discount_amount": to_float(self.discount_amount),
            "min_order_amount": to_float(self.min_order_amount),
            "max_discount": to_float(self.max_discount),
            "is_active": self.is_active,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "usage_limit": self.usage_limit,
            "usage_count": self.usage_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
