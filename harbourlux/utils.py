"""Shared utilities: clock-time arithmetic, money rounding, phone cleanup."""

import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

MINUTES_PER_DAY = 24 * 60
MONEY_PLACES = Decimal("0.01")


def parse_clock(value: str) -> int:
    """Parse an ``HH:MM`` string into minutes after midnight.

    Raises ValueError for anything that is not a valid 24-hour clock time.

    Examples:
        >>> parse_clock("09:30")
        570
    """
    parsed = datetime.strptime(value.strip(), "%H:%M")
    return parsed.hour * 60 + parsed.minute


def try_parse_clock(value: Optional[str]) -> Optional[int]:
    """Like parse_clock, but returns None for missing or malformed input."""
    if not value:
        return None
    try:
        return parse_clock(value)
    except (ValueError, TypeError):
        return None


def span_minutes(start: str, end: str) -> int:
    """Length of a clock range in minutes, modulo 24h.

    An end earlier than the start wraps past midnight, so 22:00 -> 02:00
    is 240 minutes. Equal times give 0.
    """
    return (parse_clock(end) - parse_clock(start)) % MINUTES_PER_DAY


def to_money(value: Union[Decimal, int, float, str]) -> Decimal:
    """Round a value to cents, half-up."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def to_cents(amount: Decimal) -> int:
    """Convert a money amount to integer minor units."""
    return int((to_money(amount) * 100).to_integral_value())


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("0412 345 678")
        '0412345678'
        >>> normalize_phone("+61 (412) 345-678")
        '+61412345678'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)
