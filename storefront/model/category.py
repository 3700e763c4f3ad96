# --- storefront/model/category.py ---
from sqlalchemy.sql import func
from ..extensions import db

# ---------------- CATEGORY ----------------
class Category(db.Model):
    __tablename__ = "category"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text)
    image_url = db.Column(db.String(1024))
    parent_id = db.Column(db.Integer, db.ForeignKey("category.id"), nullable=True, index=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    parent = db.relationship("Category", remote_side=[id], backref=db.backref("children", lazy=True))
    products = db.relationship(
        "Product",
        backref="category",
        lazy=True
        )

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "image_url": self.image_url,
            "parent_id": self.parent_id,
            "sort_order": self.sort_order,
            }
