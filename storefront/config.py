import os
from datetime import timedelta
from decimal import Decimal


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    ENV = os.getenv("FLASK_ENV", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=1)
    REFRESH_TOKEN_TTL_DAYS = int(os.getenv("REFRESH_TOKEN_TTL_DAYS", "7"))

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "₫")

    # client totals may differ from the recomputed ones by one currency unit
    DISCOUNT_TOLERANCE = Decimal(os.getenv("DISCOUNT_TOLERANCE", "1"))
    SUGGESTIONS_CACHE_TTL = int(os.getenv("SUGGESTIONS_CACHE_TTL", str(30 * 60)))
    SEARCH_CACHE_TTL = int(os.getenv("SEARCH_CACHE_TTL", str(10 * 60)))
    MAX_PER_PAGE = 100

    @staticmethod
    def init_app(app):
        if app.config.get("SQLALCHEMY_DATABASE_URI"):
            return
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'app.db')}"
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-secret-key-with-enough-length-0123456789"
    LOG_LEVEL = "WARNING"
