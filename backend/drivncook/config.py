# backend/drivncook/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the backend by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///drivncook.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Public URL of the web front (links in emails, Stripe redirects)
    APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:3000")
    CORS_ORIGINS = [
        o.strip()
        for o in os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
        if o.strip()
    ]

    # Sessions
    SESSION_ABSOLUTE_HOURS = int(os.environ.get("SESSION_ABSOLUTE_HOURS", "24"))
    SESSION_IDLE_HOURS = int(os.environ.get("SESSION_IDLE_HOURS", "2"))
    AUTH_COOKIE_NAME = "drivncook_session"
    AUTH_COOKIE_SECURE = _env_bool("AUTH_COOKIE_SECURE", False)
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Stripe
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY", "")
    STRIPE_ENTRY_FEE_WEBHOOK_SECRET = os.environ.get(
        "STRIPE_ENTRY_FEE_WEBHOOK_SECRET", os.environ.get("STRIPE_WEBHOOK_SECRET", "")
    )
    STRIPE_ORDERS_WEBHOOK_SECRET = os.environ.get(
        "STRIPE_ORDERS_WEBHOOK_SECRET", os.environ.get("STRIPE_WEBHOOK_SECRET", "")
    )
    STRIPE_CURRENCY = os.environ.get("STRIPE_CURRENCY", "eur")

    # Outbound email (SMTP)
    MAIL_ENABLED = _env_bool("MAIL_ENABLED", True)
    SMTP_HOST = os.environ.get("SMTP_HOST", "")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))
    SMTP_USER = os.environ.get("SMTP_USER", "")
    SMTP_PASS = os.environ.get("SMTP_PASS", "")
    SMTP_USE_TLS = _env_bool("SMTP_USE_TLS", True)
    MAIL_FROM = os.environ.get("MAIL_FROM", "no-reply@drivncook.local")
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "")

    # Franchise defaults
    DEFAULT_ENTRY_FEE_CENTS = 5_000_000  # 50 000 EUR
    DEFAULT_ROYALTY_RATE = 4.0  # percent of daily sales
