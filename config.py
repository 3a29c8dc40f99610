import os
from dataclasses import dataclass
from datetime import timedelta

from security.rate_limit import ActionKind, RateLimitRule, freeze_rules


BASE_DIR = os.path.abspath(os.path.dirname(__file__))


@dataclass(frozen=True)
class OverrideAccount:
    """Fixed phone/code pair for store-review accounts (staging only)."""
    phone: str
    code: str


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to app.py as barberslot.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "barberslot.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Admin bearer sessions: 8 hours absolute, 20 minutes idle
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60
    IDLE_TIMEOUT_SECONDS = 20 * 60

    # One-time SMS codes
    VERIFICATION_CODE_TTL_SECONDS = int(os.getenv("VERIFICATION_CODE_TTL_SECONDS", "300"))

    # Booking policy
    BOOKING_HORIZON_DAYS = 60
    CANCEL_LEAD_HOURS = 3
    CANCEL_COMMAND = "0"
    BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "Asia/Jerusalem")

    # Sliding-window limits per action kind
    RATE_LIMITS = freeze_rules({
        ActionKind.SMS_SEND: RateLimitRule(max_attempts=3, window=timedelta(minutes=60)),
        ActionKind.VERIFY_ATTEMPT: RateLimitRule(max_attempts=10, window=timedelta(minutes=15)),
        ActionKind.VERIFY_FAIL: RateLimitRule(max_attempts=5, window=timedelta(minutes=15)),
        ActionKind.LOGIN_FAIL: RateLimitRule(max_attempts=5, window=timedelta(minutes=15)),
    })

    # SMS (Twilio)
    TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
    TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")
    TWILIO_VALIDATE_SIGNATURE = os.getenv("TWILIO_VALIDATE_SIGNATURE", "true").lower() == "true"
    SMS_SIGNATURE = os.getenv("SMS_SIGNATURE", "BARBERSHOP")

    # First origin is the fallback for unknown callers
    CORS_ALLOWED_ORIGINS = [
        o.strip()
        for o in os.getenv("CORS_ALLOWED_ORIGINS", "https://mea-barber.com,https://www.mea-barber.com").split(",")
        if o.strip()
    ]

    # Insert missing roles when the app starts
    SEED_ON_STARTUP = True

    # Staging-only test account; never set in production
    TEST_OVERRIDE = None

    DEBUG = False


class StagingConfig(Config):
    CORS_ALLOWED_ORIGINS = Config.CORS_ALLOWED_ORIGINS + [
        "http://localhost:8080",
        "http://localhost:5173",
    ]

    TEST_OVERRIDE = (
        OverrideAccount(phone=os.getenv("TEST_PHONE"), code=os.getenv("TEST_CODE"))
        if os.getenv("TEST_PHONE") and os.getenv("TEST_CODE")
        else None
    )


def config_for_env(name=None):
    name = (name or os.getenv("APP_ENV") or "production").lower()
    if name == "staging":
        return StagingConfig
    return Config
