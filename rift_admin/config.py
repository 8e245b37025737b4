import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./rift_admin.db")

# Public URL of the admin app, used for unsubscribe / view-in-browser links
APP_URL = os.getenv("APP_URL", "http://localhost:3000")

# All session wall-clock times are interpreted in this zone
ORG_TIMEZONE = "America/New_York"

# Unsubscribe tokens must be signed with at least this many characters of secret
MIN_SECRET_LENGTH = 32


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing or unusable. Never retried."""


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class SmtpRouteSettings:
    """Connection settings for one outbound SMTP route"""

    host: str
    port: int
    user: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    use_ssl: bool = False
    require_tls: bool = True


@dataclass(frozen=True)
class TwilioSettings:
    account_sid: Optional[str] = None
    auth_token: Optional[str] = field(default=None, repr=False)
    from_number: Optional[str] = None


@dataclass(frozen=True)
class Settings:
    """
    Immutable process configuration.

    Built once from the environment and handed to each component's
    constructor. Nothing mutates it at runtime.
    """

    gmail: SmtpRouteSettings
    relay: SmtpRouteSettings
    marketing: SmtpRouteSettings
    default_provider: str = "gmail"
    unsubscribe_secret: Optional[str] = field(default=None, repr=False)
    unsubscribe_url_base: str = APP_URL
    unsubscribe_mailto: str = "unsubscribe@disciplinerift.com"
    list_id: str = "Newsletter.DisciplineRift"
    app_url: str = APP_URL
    batch_size: int = 50
    concurrency: int = 3
    batch_delay_seconds: float = 5.0
    twilio: TwilioSettings = field(default_factory=TwilioSettings)
    reminder_from_address: Optional[str] = None
    reminder_from_name: str = "Discipline Rift"

    @classmethod
    def from_env(cls) -> "Settings":
        gmail_port = _env_int("GMAIL_PORT", 465)
        relay_port = _env_int("RELAY_PORT", 587)
        marketing_port = _env_int("MARKETING_SMTP_PORT", 587)

        gmail = SmtpRouteSettings(
            host=os.getenv("GMAIL_HOST", "smtp.gmail.com"),
            port=gmail_port,
            user=os.getenv("GMAIL_USER"),
            password=os.getenv("GMAIL_APP_PASSWORD"),
            use_ssl=gmail_port == 465,
            require_tls=False,
        )
        relay = SmtpRouteSettings(
            host=os.getenv("RELAY_HOST", "smtp-relay.gmail.com"),
            port=relay_port,
            user=os.getenv("RELAY_USER"),
            password=os.getenv("RELAY_PASS"),
            use_ssl=relay_port == 465,
            require_tls=_env_bool("RELAY_REQUIRE_TLS", True),
        )
        marketing = SmtpRouteSettings(
            host=os.getenv("MARKETING_SMTP_HOST", "smtp.gmail.com"),
            port=marketing_port,
            user=os.getenv("MARKETING_SMTP_USER"),
            password=os.getenv("MARKETING_SMTP_PASS"),
            use_ssl=marketing_port == 465,
            require_tls=_env_bool("MARKETING_SMTP_REQUIRE_TLS", True),
        )

        app_url = os.getenv("APP_URL", APP_URL)
        return cls(
            gmail=gmail,
            relay=relay,
            marketing=marketing,
            default_provider=os.getenv("SMTP_PROVIDER_DEFAULT", "gmail").strip().lower(),
            unsubscribe_secret=os.getenv("UNSUBSCRIBE_JWT_SECRET"),
            unsubscribe_url_base=os.getenv("UNSUBSCRIBE_URL_BASE") or app_url,
            unsubscribe_mailto=os.getenv("UNSUBSCRIBE_MAILTO", "unsubscribe@disciplinerift.com"),
            list_id=os.getenv("LIST_ID", "Newsletter.DisciplineRift"),
            app_url=app_url,
            batch_size=max(1, _env_int("BATCH_SIZE", 50)),
            concurrency=max(1, _env_int("CONCURRENCY", 3)),
            batch_delay_seconds=_env_int("DELAY_BETWEEN_BATCH_MS", 5000) / 1000,
            twilio=TwilioSettings(
                account_sid=os.getenv("TWILIO_ACCOUNT_SID"),
                auth_token=os.getenv("TWILIO_AUTH_TOKEN"),
                from_number=os.getenv("TWILIO_PHONE_NUMBER"),
            ),
            reminder_from_address=os.getenv("REMINDER_FROM_EMAIL") or gmail.user,
            reminder_from_name=os.getenv("REMINDER_FROM_NAME", "Discipline Rift"),
        )


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, read from the environment on first use"""
    return Settings.from_env()
