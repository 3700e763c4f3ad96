# storefront/model/returns.py
from datetime import datetime
from ..extensions import db

RETURN_STATUSES = ("PENDING", "APPROVED", "REJECTED", "COMPLETED", "CANCELLED")
OPEN_RETURN_STATUSES = ("PENDING", "APPROVED", "COMPLETED")

class ReturnRequest(db.Model):
    __tablename__ = "return_request"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    reason = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)
    admin_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship("ReturnItem", backref="return_request", cascade="all, delete-orphan", lazy="selectin")
    order = db.relationship("Order", lazy="joined")
    user = db.relationship("User", lazy="joined")

    def as_api(self, with_order: bool = False):
        data = {
            "id": self.id,
            "order_id": self.order_id,
            "user": {"id": self.user.id, "name": self.user.name, "email": self.user.email} if self.user else None,
            "reason": self.reason,
            "status": self.status,
            "admin_notes": self.admin_notes,
            "items": [i.as_api() for i in self.items],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if with_order and self.order:
            data["order"] = self.order.as_api()
        return data

class ReturnItem(db.Model):
    __tablename__ = "return_item"

    id = db.Column(db.Integer, primary_key=True)
    return_request_id = db.Column(db.Integer, db.ForeignKey("return_request.id"), nullable=False, index=True)
    order_item_id = db.Column(db.Integer, db.ForeignKey("order_items.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default="PENDING")

    order_item = db.relationship("OrderItem", lazy="joined")

    def as_api(self):
        return {
            "id": self.id,
            "order_item_id": self.order_item_id,
            "name": self.order_item.name if self.order_item else None,
            "quantity": self.quantity,
            "reason": self.reason,
            "status": self.status,
        }
