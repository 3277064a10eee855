"""
Application configuration.

This module defines the configuration settings for the Flask application, including database connection, secret key,
pagination and logging. It uses environment variables for sensitive information and defaults for development.
In production, DATABASE_URL and SECRET_KEY must be set or the app refuses to start.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    DEBUG = False
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'supplies.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection; JSON clients send the token in the X-CSRFToken header
    WTF_CSRF_ENABLED = True

    # List endpoints
    PAGE_SIZE_DEFAULT = int(os.environ.get("PAGE_SIZE_DEFAULT", "10"))
    PAGE_SIZE_MAX = int(os.environ.get("PAGE_SIZE_MAX", "100"))

    # Role -> feature permission matrix. None means supplies.policy.DEFAULT_POLICY.
    ACCESS_POLICY = None

    APP_NAME = "Office Supplies Management"


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite:///:memory:")
    WTF_CSRF_ENABLED = False


class ProductionConfig(Config):
    """Production environment configuration."""

    _raw_db_url = os.environ.get("DATABASE_URL", "")
    # Heroku-style URLs use postgres:// but SQLAlchemy requires postgresql://
    SQLALCHEMY_DATABASE_URI = _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else None

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.environ.get("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
