"""
Centralized configuration with environment variable overrides.

Platform-wide pricing rules, calendar defaults, and payment settings are
configurable here. Per-boat values (rates, deposit percentage, blocks)
live on the boat record, never in this module.
"""

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

from harbourlux.logging_context import booking_log_handler

load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] [%(booking_id)s] %(levelname)s: %(message)s"


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_decimal(env_var: str, default: str) -> Decimal:
    """Parse a Decimal from an env var. Money and rates never go through float."""
    raw = os.getenv(env_var, default)
    try:
        return Decimal(raw)
    except (InvalidOperation, TypeError):
        raise ValueError(
            f"Invalid decimal for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class PricingConfig:
    """Platform-wide pricing rules shared by every boat."""

    commission_rate: Decimal = _safe_decimal("COMMISSION_RATE", "0.10")
    min_deposit_percentage: Decimal = _safe_decimal("MIN_DEPOSIT_PERCENTAGE", "10")
    default_deposit_percentage: Decimal = _safe_decimal("DEFAULT_DEPOSIT_PERCENTAGE", "25")
    currency: str = os.getenv("CURRENCY", "aud")


@dataclass(frozen=True)
class BookingConfig:
    """Booking submission defaults."""

    reference_prefix: str = os.getenv("BOOKING_REFERENCE_PREFIX", "BK")
    guest_customer_id: str = os.getenv("GUEST_CUSTOMER_ID", "guest-user")
    default_balance_days_before: int = _safe_int("DEFAULT_BALANCE_DAYS_BEFORE", "7")
    data_dir: str = os.getenv("BOOKING_DATA_DIR", "")


@dataclass(frozen=True)
class CalendarConfig:
    """External calendar integration settings."""

    timezone: str = os.getenv("CALENDAR_TIMEZONE", "Australia/Sydney")
    reminder_email_minutes: int = _safe_int("CALENDAR_REMINDER_EMAIL_MINUTES", "1440")
    reminder_popup_minutes: int = _safe_int("CALENDAR_REMINDER_POPUP_MINUTES", "60")
    event_color_id: str = os.getenv("CALENDAR_EVENT_COLOR_ID", "1")
    google_access_token: str = os.getenv("GOOGLE_CALENDAR_ACCESS_TOKEN", "")
    google_api_base: str = os.getenv("GOOGLE_CALENDAR_API_BASE", "https://www.googleapis.com/calendar/v3")
    request_timeout_seconds: int = _safe_int("CALENDAR_REQUEST_TIMEOUT_SECONDS", "10")


@dataclass(frozen=True)
class PaymentConfig:
    """Payment processor settings."""

    stripe_secret_key: str = os.getenv("STRIPE_SECRET_KEY", "")
    max_network_retries: int = _safe_int("STRIPE_MAX_NETWORK_RETRIES", "2")
    stripe_webhook_secret: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    pricing: PricingConfig = field(default_factory=PricingConfig)
    booking: BookingConfig = field(default_factory=BookingConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    payment: PaymentConfig = field(default_factory=PaymentConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "Harbour Lux")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not Decimal("0") <= config.pricing.commission_rate < Decimal("1"):
        raise ValueError(
            f"COMMISSION_RATE must be between 0 and 1, got {config.pricing.commission_rate}"
        )

    for name, value in [
        ("MIN_DEPOSIT_PERCENTAGE", config.pricing.min_deposit_percentage),
        ("DEFAULT_DEPOSIT_PERCENTAGE", config.pricing.default_deposit_percentage),
    ]:
        if not Decimal("0") <= value <= Decimal("100"):
            raise ValueError(f"{name} must be between 0 and 100, got {value}")

    if config.pricing.default_deposit_percentage < config.pricing.min_deposit_percentage:
        raise ValueError(
            "DEFAULT_DEPOSIT_PERCENTAGE must be >= MIN_DEPOSIT_PERCENTAGE, "
            f"got {config.pricing.default_deposit_percentage}"
        )
    if len(config.pricing.currency) != 3:
        raise ValueError(
            f"CURRENCY must be a three-letter code, got {config.pricing.currency!r}"
        )
    if config.booking.default_balance_days_before < 0:
        raise ValueError(
            "DEFAULT_BALANCE_DAYS_BEFORE must be >= 0, "
            f"got {config.booking.default_balance_days_before}"
        )
    if config.calendar.reminder_popup_minutes < 0 or config.calendar.reminder_email_minutes < 0:
        raise ValueError("Calendar reminder offsets must be >= 0")
    if config.calendar.request_timeout_seconds <= 0:
        raise ValueError(
            f"CALENDAR_REQUEST_TIMEOUT_SECONDS must be > 0, got {config.calendar.request_timeout_seconds}"
        )
    if config.payment.max_network_retries < 0:
        raise ValueError(
            f"STRIPE_MAX_NETWORK_RETRIES must be >= 0, got {config.payment.max_network_retries}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        handlers=[booking_log_handler(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")],
    )
    logger.info("Configuration loaded for '%s'", config.app_name)
    return config


# Singleton instance
settings = load_config()
