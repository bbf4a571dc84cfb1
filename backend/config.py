"""
Configuration management for the Elegant Limo booking backend.
"""
from datetime import datetime
from functools import lru_cache
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings

# Pickup dates and times are Swiss local time
LOCAL_TZ = ZoneInfo("Europe/Zurich")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Stripe configuration
    stripe_secret_key: str = ""
    stripe_publishable_key: str = ""

    # Maximum amount a single checkout may charge (CHF)
    max_charge_chf: float = 15000.0

    # Transactional email (SendGrid)
    sendgrid_api_key: str = ""
    sender_email: str = "noreply@elegant-limo.ch"
    sender_name: str = "Elegant Limo Switzerland"
    admin_email: str = "booking@elegant-limo.ch"

    # Digits only, used for wa.me links
    whatsapp_number: str = "38348263151"

    # Ops dashboard password (empty = unprotected)
    ops_password: str = ""

    # Environment
    environment: str = "development"

    # Frontend URL (for CORS and redirects)
    frontend_url: str = "http://localhost:5173"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def is_stripe_configured() -> bool:
    """Check if Stripe is properly configured."""
    settings = get_settings()
    return bool(
        settings.stripe_secret_key
        and settings.stripe_secret_key.startswith(("sk_test_", "sk_live_"))
    )


def is_email_enabled() -> bool:
    """Check if email sending is enabled (API key is configured)."""
    return bool(get_settings().sendgrid_api_key)


def local_now() -> datetime:
    """Current Swiss local time as a naive datetime, comparable with stored pickups."""
    return datetime.now(LOCAL_TZ).replace(tzinfo=None)
