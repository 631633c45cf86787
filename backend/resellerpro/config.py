# backend/resellerpro/config.py
from __future__ import annotations
import os

from dotenv import load_dotenv

# Optional backend/.env for local development
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env"))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/resellerpro.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///resellerpro.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))

    # Public URL of the dashboard, used in emails and referral links
    APP_URL = os.environ.get("APP_URL", "http://localhost:3000")

    # Payment gateway. Key id "mock" fabricates orders locally.
    RAZORPAY_KEY_ID = os.environ.get("RAZORPAY_KEY_ID", "mock")
    RAZORPAY_KEY_SECRET = os.environ.get("RAZORPAY_KEY_SECRET", "")
    RAZORPAY_WEBHOOK_SECRET = os.environ.get("RAZORPAY_WEBHOOK_SECRET", "")

    CRON_SECRET = os.environ.get("CRON_SECRET", "")

    # Flask-Mail
    MAIL_SERVER = os.environ.get("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", "587"))
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
    MAIL_USE_SSL = _env_bool("MAIL_USE_SSL", False)
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", "ResellerPro <no-reply@resellerpro.in>")
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND", False)
    EMAIL_DAILY_LIMIT = int(os.environ.get("EMAIL_DAILY_LIMIT", "300"))

    # Back-office credentials (password stored as a bcrypt hash)
    ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "admin")
    ADMIN_PASSWORD_HASH = os.environ.get("ADMIN_PASSWORD_HASH", "")
    ADMIN_SESSION_SECRET = os.environ.get("ADMIN_SESSION_SECRET") or SECRET_KEY
    ADMIN_SESSION_HOURS = int(os.environ.get("ADMIN_SESSION_HOURS", "24"))

    REFERRAL_REWARD_PAISE = int(os.environ.get("REFERRAL_REWARD_PAISE", "7500"))
    REFERRAL_SIGNUP_BONUS_PAISE = int(os.environ.get("REFERRAL_SIGNUP_BONUS_PAISE", "5000"))

    CORS_ALLOWED_ORIGINS = {
        o.strip()
        for o in os.environ.get("CORS_ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
        if o.strip()
    }
