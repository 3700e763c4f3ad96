# storefront/model/review.py
from datetime import datetime
from ..extensions import db

class Review(db.Model):
    __tablename__ = "review"
    __table_args__ = (db.UniqueConstraint("user_id", "product_id", name="uq_review_user_product"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    rating = db.Column(db.Integer, nullable=False)   # 1..5
    comment = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", lazy="joined")

    def as_api(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "rating": self.rating,
            "comment": self.comment,
            "user": {"id": self.user.id, "name": self.user.name} if self.user else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
