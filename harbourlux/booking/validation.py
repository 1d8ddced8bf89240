"""
Submission checks for a booking and configuration checks for a listing.

Every rule runs independently and contributes its own message, so the
customer sees all problems at once instead of fixing them one by one.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional, Union

from harbourlux.schemas.boat_schema import AvailabilityBlock, Boat
from harbourlux.schemas.booking_schema import Slot
from harbourlux.schemas.customer_schema import CustomerDetails, RawCardEntry, TokenizedPaymentMethod
from harbourlux.utils import MINUTES_PER_DAY, try_parse_clock

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_GUESTS = 1


@dataclass
class ValidationResult:
    """Outcome of a validation pass."""
    valid: bool
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors)}


def _blank(value: Optional[str]) -> bool:
    return not value or not value.strip()


def _slot_errors(slot: Optional[Slot]) -> list[str]:
    if slot is None:
        return ["Please select a time slot."]
    if slot.duration_minutes <= 0:
        return ["The selected time range must be longer than zero minutes."]
    return []


def _guest_errors(boat: Boat, guests: int) -> list[str]:
    if guests < MIN_GUESTS:
        return ["At least one guest is required."]
    if guests > boat.max_guests:
        return [f"This boat takes at most {boat.max_guests} guests; {guests} requested."]
    return []


def _customer_errors(customer: Optional[CustomerDetails]) -> list[str]:
    if customer is None:
        return ["Your name is required.", "Your email address is required."]
    errors = []
    if _blank(customer.name):
        errors.append("Your name is required.")
    if _blank(customer.email):
        errors.append("Your email address is required.")
    elif not EMAIL_PATTERN.match(customer.email.strip()):
        errors.append(f"'{customer.email}' is not a valid email address.")
    return errors


def _payment_errors(payment: Union[TokenizedPaymentMethod, RawCardEntry, None]) -> list[str]:
    if payment is None:
        return ["A payment method is required."]
    if isinstance(payment, TokenizedPaymentMethod):
        if _blank(payment.handle):
            return ["The payment method could not be verified."]
        return []

    errors = []
    for attr, label in [
        ("cardholder_name", "Cardholder name"),
        ("number", "Card number"),
        ("expiry", "Card expiry"),
        ("cvv", "Card CVV"),
    ]:
        if _blank(getattr(payment, attr)):
            errors.append(f"{label} is required.")
    return errors


def validate_booking(
    boat: Boat,
    day: Optional[date],
    slot: Optional[Slot],
    guests: int,
    customer: Optional[CustomerDetails],
    payment: Union[TokenizedPaymentMethod, RawCardEntry, None],
) -> ValidationResult:
    """Check a booking submission. Collects every applicable error."""
    errors: list[str] = []
    if day is None:
        errors.append("Please select a date.")
    errors.extend(_slot_errors(slot))
    errors.extend(_guest_errors(boat, guests))
    errors.extend(_customer_errors(customer))
    errors.extend(_payment_errors(payment))

    if errors:
        logger.debug("Booking for boat %s failed validation: %s", boat.id, errors)
    return ValidationResult(valid=not errors, errors=errors)


def block_errors(block: AvailabilityBlock) -> list[str]:
    """Configuration problems with a single availability block."""
    errors = []
    start = try_parse_clock(block.start_time)
    end = try_parse_clock(block.end_time)
    if start is None:
        errors.append(f"Start time '{block.start_time}' is not a valid HH:MM time.")
    if end is None:
        errors.append(f"End time '{block.end_time}' is not a valid HH:MM time.")
    if start is not None and end is not None:
        minutes = (end - start) % MINUTES_PER_DAY
        if not 0 < minutes <= MINUTES_PER_DAY:
            errors.append("Block duration must be greater than zero.")
    return errors


def validate_availability_blocks(blocks: Iterable[AvailabilityBlock]) -> dict[int, list[str]]:
    """Per-block errors keyed by position. Valid blocks are omitted."""
    report = {}
    for index, block in enumerate(blocks):
        errors = block_errors(block)
        if errors:
            report[index] = errors
    return report
