"""Tests for configuration loading and validation."""

from dataclasses import replace
from decimal import Decimal

import pytest

from harbourlux.config import (
    AppConfig,
    BookingConfig,
    CalendarConfig,
    PaymentConfig,
    PricingConfig,
    _safe_decimal,
    _safe_int,
    _validate_config,
)


def config_with(**sections) -> AppConfig:
    return replace(AppConfig(), **sections)


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        _validate_config(AppConfig())  # should not raise

    def test_defaults(self):
        config = AppConfig()
        assert config.pricing.commission_rate == Decimal("0.10")
        assert config.pricing.min_deposit_percentage == Decimal("10")
        assert config.booking.reference_prefix == "BK"

    @pytest.mark.parametrize("rate", ["1", "1.5", "-0.1"])
    def test_invalid_commission_rate(self, rate):
        config = config_with(pricing=replace(PricingConfig(), commission_rate=Decimal(rate)))
        with pytest.raises(ValueError, match="COMMISSION_RATE"):
            _validate_config(config)

    def test_deposit_percentage_above_hundred(self):
        config = config_with(pricing=replace(
            PricingConfig(), min_deposit_percentage=Decimal("10"), default_deposit_percentage=Decimal("120"),
        ))
        with pytest.raises(ValueError, match="DEFAULT_DEPOSIT_PERCENTAGE"):
            _validate_config(config)

    def test_default_deposit_below_minimum(self):
        config = config_with(pricing=replace(
            PricingConfig(), min_deposit_percentage=Decimal("30"), default_deposit_percentage=Decimal("20"),
        ))
        with pytest.raises(ValueError, match="MIN_DEPOSIT_PERCENTAGE"):
            _validate_config(config)

    def test_invalid_currency(self):
        config = config_with(pricing=replace(PricingConfig(), currency="dollars"))
        with pytest.raises(ValueError, match="CURRENCY"):
            _validate_config(config)

    def test_negative_balance_days(self):
        config = config_with(booking=replace(BookingConfig(), default_balance_days_before=-1))
        with pytest.raises(ValueError, match="DEFAULT_BALANCE_DAYS_BEFORE"):
            _validate_config(config)

    def test_negative_reminder(self):
        config = config_with(calendar=replace(CalendarConfig(), reminder_popup_minutes=-5))
        with pytest.raises(ValueError, match="reminder"):
            _validate_config(config)

    def test_negative_retries(self):
        config = config_with(payment=replace(PaymentConfig(), max_network_retries=-1))
        with pytest.raises(ValueError, match="STRIPE_MAX_NETWORK_RETRIES"):
            _validate_config(config)


class TestEnvParsing:
    def test_safe_int_parsing(self):
        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_int_bad_value(self, monkeypatch):
        monkeypatch.setenv("HARBOUR_TEST_INT", "seven")
        with pytest.raises(ValueError, match="HARBOUR_TEST_INT"):
            _safe_int("HARBOUR_TEST_INT", "7")

    def test_safe_decimal_parsing(self):
        assert _safe_decimal("NONEXISTENT_VAR_12345", "0.15") == Decimal("0.15")

    def test_safe_decimal_from_env(self, monkeypatch):
        monkeypatch.setenv("HARBOUR_TEST_DECIMAL", "12.5")
        assert _safe_decimal("HARBOUR_TEST_DECIMAL", "0") == Decimal("12.5")

    def test_safe_decimal_bad_value(self, monkeypatch):
        monkeypatch.setenv("HARBOUR_TEST_DECIMAL", "ten")
        with pytest.raises(ValueError, match="HARBOUR_TEST_DECIMAL"):
            _safe_decimal("HARBOUR_TEST_DECIMAL", "0")
