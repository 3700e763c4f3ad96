from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

from storefront import create_app
from storefront.config import TestingConfig
from storefront.extensions import db as _db
from storefront.model import Cart, CartItem, Category, Coupon, Product, User


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    return _db.session


def _make_user(email, role="user", password="secret123"):
    u = User(email=email, name=email.split("@")[0], role=role,
             password_hash=generate_password_hash(password))
    _db.session.add(u)
    _db.session.commit()
    return u


@pytest.fixture
def make_user(app):
    return _make_user


@pytest.fixture
def admin(app):
    return _make_user("admin@example.com", role="admin")


@pytest.fixture
def user(app):
    return _make_user("buyer@example.com")


def auth_headers_for(user):
    token = create_access_token(identity=str(user.id))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for(app):
    return auth_headers_for


@pytest.fixture
def auth_headers(user):
    return auth_headers_for(user)


@pytest.fixture
def admin_headers(admin):
    return auth_headers_for(admin)


@pytest.fixture
def make_category(app):
    def factory(name, parent=None, sort_order=0):
        c = Category(name=name, parent_id=parent.id if parent else None, sort_order=sort_order)
        _db.session.add(c)
        _db.session.commit()
        return c
    return factory


@pytest.fixture
def make_product(app):
    def factory(name, price="100000", stock=10, category=None, description=None):
        p = Product(name=name, price=Decimal(str(price)), stock=stock, description=description,
                    category_id=category.id if category else None)
        _db.session.add(p)
        _db.session.commit()
        return p
    return factory


@pytest.fixture
def make_coupon(app):
    def factory(code="SALE20", **kw):
        now = datetime.utcnow()
        fields = {
            "discount_percent": Decimal("20"),
            "is_active": True,
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=1),
            "usage_count": 0,
        }
        fields.update(kw)
        c = Coupon(code=code, **fields)
        _db.session.add(c)
        _db.session.commit()
        return c
    return factory


@pytest.fixture
def fill_cart(app):
    def factory(user, *lines):
        cart = Cart.query.filter_by(user_id=user.id).first()
        if not cart:
            cart = Cart(user_id=user.id)
            _db.session.add(cart)
        for product, qty in lines:
            cart.items.append(CartItem(product_id=product.id, quantity=qty))
        _db.session.commit()
        return cart
    return factory
