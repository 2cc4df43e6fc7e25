"""Centralized application configuration for the delivery API."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Final

from dotenv import load_dotenv

BASE_DIR: Final[Path] = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"

# Runtime environment wins over values from the .env file
load_dotenv(dotenv_path=ENV_PATH, override=False)


def _str_to_bool(value: str | bool | None, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _str_to_tuple(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if not value:
        return default
    items = tuple(item.strip().lower() for item in value.split(",") if item.strip())
    return items or default


def _determine_database_url() -> str:
    """
    Return a connection string using the following precedence:
    1. Explicit DATABASE_URL
    2. Individual DB_* components (for PostgreSQL)
    3. Local SQLite fallback (for onboarding / tests)
    """
    explicit_url = os.getenv("DATABASE_URL")
    if explicit_url:
        return explicit_url

    username = os.getenv("DB_USERNAME")
    password = os.getenv("DB_PASSWORD")
    host = os.getenv("DB_HOST")
    port = os.getenv("DB_PORT")
    name = os.getenv("DB_NAME")

    if all([username, password, host, port, name]):
        driver = os.getenv("DB_DRIVER", "postgresql+psycopg2")
        return f"{driver}://{username}:{password}@{host}:{port}/{name}"

    fallback_path = BASE_DIR / "db" / "giftscart.db"
    fallback_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{fallback_path.as_posix()}"


class Config:
    """Runtime configuration shared by the Flask app, services and scripts."""

    APP_NAME: Final[str] = os.getenv("APP_NAME", "GiftsCart Delivery API")
    APP_ENV: Final[str] = os.getenv("APP_ENV", "development")

    SECRET_KEY: Final[str] = os.getenv("SECRET_KEY", "dev-secret-change-me")
    DEBUG: Final[bool] = _str_to_bool(os.getenv("FLASK_DEBUG"), default=APP_ENV == "development")
    TESTING: Final[bool] = _str_to_bool(os.getenv("FLASK_TESTING"), default=False)

    FLASK_RUN_HOST: Final[str] = os.getenv("FLASK_RUN_HOST", "0.0.0.0")
    FLASK_RUN_PORT: Final[int] = int(os.getenv("FLASK_RUN_PORT", "5000"))

    # Database
    DATABASE_URL: Final[str] = _determine_database_url()
    SQL_ECHO: Final[bool] = _str_to_bool(os.getenv("SQL_ECHO"), default=False)
    DB_POOL_SIZE: Final[int] = int(os.getenv("DB_POOL_SIZE", "10"))
    DB_MAX_OVERFLOW: Final[int] = int(os.getenv("DB_MAX_OVERFLOW", "20"))

    # Session cookie (signed by Flask with SECRET_KEY)
    SESSION_COOKIE_NAME: Final[str] = os.getenv("SESSION_COOKIE_NAME", "giftscart_session")
    SESSION_LIFETIME_DAYS: Final[int] = int(os.getenv("SESSION_LIFETIME_DAYS", "30"))
    SESSION_COOKIE_SECURE: Final[bool] = _str_to_bool(
        os.getenv("SESSION_COOKIE_SECURE"), default=APP_ENV == "production"
    )

    # Delivery rules
    DEFAULT_TIMEZONE: Final[str] = os.getenv("DEFAULT_TIMEZONE", "Asia/Kolkata")
    DEFAULT_CUTOFF_HOURS: Final[int] = int(os.getenv("DEFAULT_CUTOFF_HOURS", "4"))
    DEFAULT_EXPRESS_CHARGE: Final[float] = float(os.getenv("DEFAULT_EXPRESS_CHARGE", "200"))
    DEFAULT_EXPRESS_CUTOFF_HOURS: Final[int] = int(os.getenv("DEFAULT_EXPRESS_CUTOFF_HOURS", "3"))
    DEFAULT_PREPARATION_MINUTES: Final[int] = int(os.getenv("DEFAULT_PREPARATION_MINUTES", "120"))
    SAME_DAY_CUTOFF_HOUR: Final[int] = int(os.getenv("SAME_DAY_CUTOFF_HOUR", "18"))
    SERVICE_AREA_SEARCH_RADIUS_KM: Final[float] = float(os.getenv("SERVICE_AREA_SEARCH_RADIUS_KM", "15"))

    # Nominatim (OpenStreetMap) geocoding
    NOMINATIM_BASE_URL: Final[str] = os.getenv("NOMINATIM_BASE_URL", "https://nominatim.openstreetmap.org")
    NOMINATIM_USER_AGENT: Final[str] = os.getenv("NOMINATIM_USER_AGENT", "GiftsCart/1.0 (giftscart.in)")
    NOMINATIM_TIMEOUT_SECONDS: Final[float] = float(os.getenv("NOMINATIM_TIMEOUT_SECONDS", "5"))

    # Mappls (MapmyIndia) OAuth
    MAPPLS_CLIENT_ID: Final[str | None] = os.getenv("MAPPLS_CLIENT_ID")
    MAPPLS_CLIENT_SECRET: Final[str | None] = os.getenv("MAPPLS_CLIENT_SECRET")
    MAPPLS_TOKEN_URL: Final[str] = os.getenv(
        "MAPPLS_TOKEN_URL", "https://outpost.mapmyindia.com/api/security/oauth/token"
    )
    MAPPLS_TIMEOUT_SECONDS: Final[float] = float(os.getenv("MAPPLS_TIMEOUT_SECONDS", "10"))

    # Partner storefronts
    PLATFORM_HOSTS: Final[tuple[str, ...]] = _str_to_tuple(
        os.getenv("PLATFORM_HOSTS"),
        ("giftscart.netlify.app", "giftscart.in", "www.giftscart.in", "localhost", "127.0.0.1"),
    )
    PARTNER_SUBDOMAIN_ROOTS: Final[tuple[str, ...]] = _str_to_tuple(
        os.getenv("PARTNER_SUBDOMAIN_ROOTS"), ("giftscart.in", "giftscart.netlify.app")
    )
    DEFAULT_PARTNER_COLOR: Final[str] = os.getenv("DEFAULT_PARTNER_COLOR", "#E91E63")

    # Observability
    STRUCTURED_LOGS_ENABLED: Final[bool] = _str_to_bool(os.getenv("STRUCTURED_LOGS_ENABLED"), default=True)
    LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")
    REQUEST_ID_HEADER: Final[str] = os.getenv("REQUEST_ID_HEADER", "X-Request-ID")

    @classmethod
    def configure_app(cls, app: Any) -> None:
        """Apply core configuration to a Flask app instance."""
        from datetime import timedelta

        app.config["SECRET_KEY"] = cls.SECRET_KEY
        app.config["ENV"] = cls.APP_ENV
        app.config["DEBUG"] = cls.DEBUG
        app.config["TESTING"] = cls.TESTING
        app.config["SQLALCHEMY_DATABASE_URI"] = cls.DATABASE_URL
        app.config["SESSION_COOKIE_NAME"] = cls.SESSION_COOKIE_NAME
        app.config["SESSION_COOKIE_HTTPONLY"] = True
        app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
        app.config["SESSION_COOKIE_SECURE"] = cls.SESSION_COOKIE_SECURE
        app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(days=cls.SESSION_LIFETIME_DAYS)
        app.config["STRUCTURED_LOGS_ENABLED"] = cls.STRUCTURED_LOGS_ENABLED
