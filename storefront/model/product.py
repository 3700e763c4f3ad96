# storefront/model/product.py
from ..extensions import db
from ..utils.money import to_float
from sqlalchemy.sql import func

class Product(db.Model):
    __tablename__ = "product"
    __table_args__ = {"sqlite_autoincrement": True}
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    slug = db.Column(db.String(255), index=True)
    description = db.Column(db.Text)

    price = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)
    image_url = db.Column(db.String(1024))
    is_featured = db.Column(db.Boolean, default=False)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    images = db.relationship(
        "ProductImage",
        backref="product",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductImage.id.asc()",
    )
    category_id = db.Column(
        db.Integer,
        db.ForeignKey("category.id"),
        nullable=True,
        index=True,
    )

    def main_image(self):
        for img in self.images:
            if img.main:
                return img.image_url
        if self.images:
            return self.images[0].image_url
        return self.image_url

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "price": to_float(self.price),
            "stock": self.stock,
            "image_url": self.main_image(),
            "is_featured": self.is_featured,
            "images": [img.as_api() for img in self.images],
            "category": self.category.as_dict() if self.category else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

class ProductImage(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    name = db.Column(db.String(255))
    main = db.Column(db.Boolean, default=False)
    image_url = db.Column(db.String(1024))

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "main": self.main,
            "image_url": self.image_url,
        }
