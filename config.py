import os
from datetime import timedelta


class Config:
    """Settings read from the environment, with development defaults."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "parfaite-shop-dev-secret-change-me")

    # None means "SQLite file in the instance folder", resolved by create_app
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upload configuration
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER")  # defaults to static/uploads
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024  # 5MB max file size

    PERMANENT_SESSION_LIFETIME = timedelta(hours=6)

    ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "admin")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "admin123")

    SITE_NAME = os.environ.get("SITE_NAME", "Parfaite Shop")
    BRAND_TAGLINE = os.environ.get("BRAND_TAGLINE", "Tout ce qu’il vous faut, à un message près")
    COMPANY_SIGNATURE = os.environ.get("COMPANY_SIGNATURE", "Parfaite Shop")
    WHATSAPP_NUMBER = os.environ.get("WHATSAPP_NUMBER", "22500000000")
    WHATSAPP_GROUP_URL = os.environ.get("WHATSAPP_GROUP_URL", "")

    PORT = int(os.environ.get("PORT", "3000"))

    PRODUCTS_PER_PAGE = 24
    HOME_PRODUCTS = 12
    ADMIN_PRODUCTS = 100


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "testing"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    ADMIN_USERNAME = "admin"
    ADMIN_PASSWORD = "s3cret-pass"
    WHATSAPP_NUMBER = "22512345678"
