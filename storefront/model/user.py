# --- storefront/model/user.py ---

from datetime import datetime
from ..extensions import db

class User(db.Model):
    __table_args__ = {"sqlite_autoincrement": True}  # deleted ids are never handed out again

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(180), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False, default="")
    phone = db.Column(db.String(32))
    address = db.Column(db.String(500))
    image_url = db.Column(db.String(1024))
    role = db.Column(db.String(50), nullable=False, default="user", index=True) # roles: user, manager, admin
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def as_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role
            }

    def profile_dict(self):
        return {
            **self.as_dict(),
            "phone": self.phone,
            "address": self.address,
            "image_url": self.image_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

class RefreshToken(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    expires_at = db.Column(db.DateTime, nullable=False)
