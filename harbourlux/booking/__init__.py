from harbourlux.booking.availability import custom_slot, resolve_slots
from harbourlux.booking.pricing import price_for, resolve_rate
from harbourlux.booking.status import (
    BookingTrigger,
    InvalidTransitionError,
    PaymentTrigger,
    next_booking_status,
    next_payment_status,
)
from harbourlux.booking.validation import ValidationResult, validate_booking

__all__ = [
    "resolve_slots",
    "custom_slot",
    "price_for",
    "resolve_rate",
    "validate_booking",
    "ValidationResult",
    "BookingTrigger",
    "PaymentTrigger",
    "InvalidTransitionError",
    "next_booking_status",
    "next_payment_status",
]
