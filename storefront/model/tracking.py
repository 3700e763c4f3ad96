#  --- storefront/model/tracking.py ---
from datetime import datetime
from ..extensions import db

class ProductView(db.Model):
    __tablename__ = "product_view"
    __table_args__ = (db.UniqueConstraint("user_id", "product_id", name="uq_product_view_user_product"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    view_count = db.Column(db.Integer, nullable=False, default=1)
    duration = db.Column(db.Integer, nullable=False, default=0)  # milliseconds, accumulated
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = db.relationship("Product", lazy="joined")

class SearchQuery(db.Model):
    __tablename__ = "search_query"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)
    term = db.Column("query", db.String(255), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
