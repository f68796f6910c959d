"""
Configuration module for Deal Hunter.

Loads environment variables and provides configuration constants.
All sensitive values should be in .env file (never commit to git).
"""

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class EmailConfig:
    """Email sending configuration for the daily digest (SMTP or SendGrid)."""
    provider: str  # "smtp" or "sendgrid"
    # SMTP settings
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    # SendGrid settings
    sendgrid_api_key: str
    # Common
    from_email: str
    from_name: str
    # Digest settings
    digest_recipient: str
    digest_hour: int
    digest_top_n: int

    @classmethod
    def from_env(cls) -> "EmailConfig":
        return cls(
            provider=os.getenv("EMAIL_PROVIDER", "smtp"),
            smtp_host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_user=os.getenv("SMTP_USER", ""),
            smtp_password=os.getenv("SMTP_PASSWORD", ""),
            sendgrid_api_key=os.getenv("SENDGRID_API_KEY", ""),
            from_email=os.getenv("FROM_EMAIL", "digest@dealhunter.local"),
            from_name=os.getenv("FROM_NAME", "Deal Hunter"),
            digest_recipient=os.getenv("DIGEST_RECIPIENT", ""),
            digest_hour=int(os.getenv("DIGEST_HOUR", "8")),
            digest_top_n=int(os.getenv("DIGEST_TOP_N", "10")),
        )


@dataclass
class AppConfig:
    """Main application configuration."""
    # HTTP server
    host: str = "0.0.0.0"
    port: int = 3001

    # Extraction target and budget
    target_url: str = "https://carsandbids.com/auctions/"
    extract_timeout_seconds: float = 90.0
    headless: bool = True

    # Cache policy
    refresh_interval_minutes: float = 20.0
    stale_after_minutes: float = 20.0
    empty_cache_wait_seconds: float = 60.0

    # Drop records with a missing or zero bid before normalizing
    strict_normalization: bool = False

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3001")),
            target_url=os.getenv("TARGET_URL", "https://carsandbids.com/auctions/"),
            extract_timeout_seconds=float(os.getenv("EXTRACT_TIMEOUT_SECONDS", "90")),
            headless=_env_bool("HEADLESS", True),
            refresh_interval_minutes=float(os.getenv("REFRESH_INTERVAL_MINUTES", "20")),
            stale_after_minutes=float(os.getenv("STALE_AFTER_MINUTES", "20")),
            empty_cache_wait_seconds=float(os.getenv("EMPTY_CACHE_WAIT_SECONDS", "60")),
            strict_normalization=_env_bool("STRICT_NORMALIZATION", False),
        )


# Global configuration instances (lazy loaded)
_email_config: Optional[EmailConfig] = None
_app_config: Optional[AppConfig] = None


def get_email_config() -> EmailConfig:
    """Get email configuration (cached)."""
    global _email_config
    if _email_config is None:
        _email_config = EmailConfig.from_env()
    return _email_config


def get_app_config() -> AppConfig:
    """Get app configuration (cached)."""
    global _app_config
    if _app_config is None:
        _app_config = AppConfig.from_env()
    return _app_config
