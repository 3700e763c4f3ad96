import logging
import uuid
from datetime import datetime, timedelta

from flask import current_app, jsonify, request
from flask_jwt_extended import create_access_token
from werkzeug.security import check_password_hash, generate_password_hash

from . import bp
from ..extensions import db
from ..model import Cart, Order, ProductView, RefreshToken, Review, SearchQuery, User
from ..utils.api import api_error, api_ok
from ..utils.decorators import (
    ROLE_LEVEL,
    current_user,
    login_optional,
    login_required,
    role_at_least,
    role_required,
)

logger = logging.getLogger(__name__)


# --- helper: create & persist a token pair ---
def _issue_tokens(user_id: int):
    access_token = create_access_token(identity=str(user_id))
    refresh_token_str = str(uuid.uuid4())
    ttl_days = current_app.config.get("REFRESH_TOKEN_TTL_DAYS", 7)
    db.session.add(RefreshToken(
        user_id=user_id,
        token=refresh_token_str,
        expires_at=datetime.utcnow() + timedelta(days=ttl_days),
    ))
    return access_token, refresh_token_str


def _admin_count() -> int:
    return db.session.query(User).filter_by(role="admin").count()


@bp.post("/register")
@login_optional   # public signups; a privileged caller may pick the role
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    name = (data.get("name") or "").strip()

    if not email:
        return jsonify(api_error("Email required")), 400
    if not password or len(password) < 6:
        return jsonify(api_error("Password required, min 6 chars")), 400
    if not name:
        return jsonify(api_error("Name required")), 400
    if User.query.filter_by(email=email).first():
        return jsonify(api_error("Email already registered")), 409

    # Bootstrap: very first account becomes admin
    is_first_user = db.session.query(User.id).count() == 0
    role = "admin" if is_first_user else "user"

    requested_role = (data.get("role") or "user").strip().lower()
    caller = current_user()
    if not is_first_user and caller and caller.role == "admin" and requested_role in ROLE_LEVEL:
        role = requested_role

    user = User(email=email, password_hash=generate_password_hash(password), name=name, role=role)
    db.session.add(user)
    db.session.commit()
    logger.info("user %s registered with role %s", user.id, role)

    return jsonify(api_ok("Account created successfully", data={"user": user.as_dict()})), 201


@bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        return jsonify(api_error("Email and password are required")), 400
    user = User.query.filter_by(email=email).first()
    if not user or not check_password_hash(user.password_hash, password):
        return jsonify(api_error("Invalid email or password")), 401

    access_token, token_str = _issue_tokens(user.id)
    db.session.commit()

    return jsonify(api_ok(
        "You've logged in successfully",
        data={
            "user": user.as_dict(),
            "user_logged_in": True,
            "token": access_token,
            "refresh_token": token_str,
        }
    )), 200


@bp.get("/me")
@login_required
def me():
    return jsonify(api_ok("OK", data={"user": current_user().as_dict()})), 200


@bp.get("/profile")
@login_required
def get_profile():
    return jsonify(api_ok("OK", data={"user": current_user().profile_dict()})), 200


_PROFILE_LIMITS = {"phone": 32, "address": 500, "image_url": 1024}


@bp.put("/profile")
@login_required
def update_profile():
    user = current_user()
    data = request.get_json(silent=True) or {}
    changes = {}

    if "name" in data:
        name = (data.get("name") or "").strip()
        if len(name) < 2:
            return jsonify(api_error("Name must be at least 2 chars")), 422
        changes["name"] = name

    for field, limit in _PROFILE_LIMITS.items():
        if field not in data:
            continue
        value = data.get(field)
        if value is not None and not isinstance(value, str):
            return jsonify(api_error(f"{field} must be a string")), 422
        value = (value or "").strip() or None
        if value and len(value) > limit:
            return jsonify(api_error(f"{field} must be at most {limit} chars")), 422
        changes[field] = value

    if not changes:
        return jsonify(api_error("No changes to update")), 400

    for field, value in changes.items():
        setattr(user, field, value)
    db.session.commit()
    return jsonify(api_ok("Profile updated", data={"user": user.profile_dict()})), 200


@bp.post("/refresh")
def refresh():
    data = request.get_json(silent=True) or {}
    token_str = data.get("refresh_token")
    if not token_str:
        return jsonify(api_error("refresh_token is required")), 400

    refresh_row = RefreshToken.query.filter_by(token=token_str).first()
    if not refresh_row or refresh_row.expires_at < datetime.utcnow():
        return jsonify(api_error("Invalid or expired refresh token")), 401

    user_id = refresh_row.user_id

    # ROTATE: the presented refresh token is single-use
    db.session.delete(refresh_row)
    db.session.flush()

    new_access, new_refresh = _issue_tokens(user_id)
    db.session.commit()

    return jsonify(api_ok("Token refreshed", data={"token": new_access, "refresh_token": new_refresh})), 200


@bp.post("/change-password")
@login_required
def change_password():
    user = current_user()
    data = request.get_json(silent=True) or {}
    current_pw = data.get("current_password") or ""
    new_pw = data.get("new_password") or ""
    if not check_password_hash(user.password_hash, current_pw):
        return jsonify(api_error("Current password is incorrect")), 400
    if len(new_pw) < 6:
        return jsonify(api_error("New password must be at least 6 chars")), 400

    user.password_hash = generate_password_hash(new_pw)
    # sign out other sessions
    RefreshToken.query.filter_by(user_id=user.id).delete()
    db.session.commit()
    return jsonify(api_ok("Password changed")), 200


@bp.get("/users")
@role_at_least("manager", message="Only managers and admins can list users")
def list_users():
    actor = current_user()
    q = User.query
    if actor.role == "manager":
        q = q.filter(User.role == "user")
    items = [u.as_dict() for u in q.order_by(User.id.asc()).all()]
    return jsonify(api_ok("OK", data={"users": items})), 200


@bp.patch("/users/<int:user_id>/role")
@role_required("admin")
def update_user_role(user_id):
    body = request.get_json(silent=True) or {}
    new_role = (body.get("role") or "").strip().lower()
    if new_role not in ROLE_LEVEL:
        return jsonify(api_error("Invalid role")), 400

    target = db.session.get(User, user_id)
    if not target:
        return jsonify(api_error("User not found")), 404

    # Prevent demoting the LAST admin
    if target.role == "admin" and new_role != "admin" and _admin_count() <= 1:
        return jsonify(api_error("Cannot demote the last admin")), 400

    target.role = new_role
    db.session.commit()
    return jsonify(api_ok("Role updated", data={"user": target.as_dict()})), 200


@bp.delete("/users/<int:user_id>")
@role_at_least("manager")
def delete_user(user_id):
    actor = current_user()
    target = db.session.get(User, user_id)
    if not target:
        return jsonify(api_error("User not found")), 404

    # Managers can manage only users
    if actor.role == "manager" and target.role != "user":
        return jsonify(api_error("Forbidden: managers may delete users only")), 403

    if target.role == "admin" and _admin_count() <= 1:
        return jsonify(api_error("Cannot delete the last admin")), 400

    if db.session.query(Order.id).filter(Order.user_id == target.id).first():
        return jsonify(api_error("Cannot delete a user who has orders")), 409

    cart = Cart.query.filter_by(user_id=target.id).first()
    if cart:
        db.session.delete(cart)
    Review.query.filter_by(user_id=target.id).delete()
    ProductView.query.filter_by(user_id=target.id).delete()
    # search history stays for trending suggestions, detached from the account
    SearchQuery.query.filter_by(user_id=target.id).update({"user_id": None})
    RefreshToken.query.filter_by(user_id=target.id).delete()
    db.session.delete(target)
    db.session.commit()
    logger.info("user %s deleted by %s", user_id, actor.id)
    return jsonify(api_ok("User deleted")), 200
