# --- storefront/__init__.py ---
import logging

from flask import Flask, jsonify

from .config import Config
from .extensions import cors, db, jwt, migrate
from .utils.cache import TTLCache


def _configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(level)
    logging.getLogger("storefront").setLevel(level)


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)
    (config_object or Config).init_app(app)

    _configure_logging(app)

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})
    migrate.init_app(app, db)

    # models must be imported before create_all
    from . import model  # noqa: F401

    # Register blueprints
    from .auth import bp as auth_bp; app.register_blueprint(auth_bp)
    from .category import bp as category_bp; app.register_blueprint(category_bp)
    from .product import bp as product_bp; app.register_blueprint(product_bp)
    from .cart import bp as cart_bp; app.register_blueprint(cart_bp)
    from .coupon import bp as coupon_bp; app.register_blueprint(coupon_bp)
    from .order import bp as order_bp; app.register_blueprint(order_bp)
    from .returns import bp as returns_bp; app.register_blueprint(returns_bp)
    from .tracking import bp as tracking_bp; app.register_blueprint(tracking_bp)
    from .recommendation import bp as recommendation_bp; app.register_blueprint(recommendation_bp)
    from .admin import bp as admin_bp; app.register_blueprint(admin_bp)

    from .errors import register_error_handlers
    register_error_handlers(app)

    from .cli import register_cli
    register_cli(app)

    app.extensions["suggestions_cache"] = TTLCache(app.config.get("SUGGESTIONS_CACHE_TTL", 30 * 60))
    app.extensions["search_cache"] = TTLCache(app.config.get("SEARCH_CACHE_TTL", 10 * 60))

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="API running")

    with app.app_context():
        db.create_all()

    app.logger.info("storefront ready (%d routes)", len(list(app.url_map.iter_rules())))
    return app
