"""
Explicit transition tables for booking and payment status.

A submitted booking starts in PENDING_APPROVAL and the owner moves it to
CONFIRMED or REJECTED exactly once. Payment status is tracked on its own
axis. Any move not listed here raises InvalidTransitionError.

Usage:
    new_status = next_booking_status(BookingStatus.PENDING_APPROVAL, BookingTrigger.APPROVE)
    assert new_status == BookingStatus.CONFIRMED
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from harbourlux.schemas.booking_schema import BookingStatus, PaymentStatus

logger = logging.getLogger(__name__)

S = TypeVar("S")
T = TypeVar("T")


class BookingTrigger(str, Enum):
    """Owner actions on a booking request."""
    APPROVE = "approve"
    REJECT = "reject"


class PaymentTrigger(str, Enum):
    """Payment processor outcomes."""
    DEPOSIT_CAPTURED = "deposit_captured"
    DEPOSIT_FAILED = "deposit_failed"


@dataclass(frozen=True)
class Transition(Generic[S, T]):
    """A single valid status transition."""
    from_state: S
    to_state: S
    trigger: T


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current status."""


BOOKING_TRANSITIONS: list[Transition[BookingStatus, BookingTrigger]] = [
    Transition(BookingStatus.PENDING_APPROVAL, BookingStatus.CONFIRMED, BookingTrigger.APPROVE),
    Transition(BookingStatus.PENDING_APPROVAL, BookingStatus.REJECTED, BookingTrigger.REJECT),
]

PAYMENT_TRANSITIONS: list[Transition[PaymentStatus, PaymentTrigger]] = [
    Transition(PaymentStatus.PENDING, PaymentStatus.DEPOSIT_PAID, PaymentTrigger.DEPOSIT_CAPTURED),
    Transition(PaymentStatus.PENDING, PaymentStatus.FAILED, PaymentTrigger.DEPOSIT_FAILED),
    # A declined deposit can be retried with another card.
    Transition(PaymentStatus.FAILED, PaymentStatus.DEPOSIT_PAID, PaymentTrigger.DEPOSIT_CAPTURED),
]


def _advance(table: list[Transition], current, trigger):
    for t in table:
        if t.from_state == current and t.trigger == trigger:
            logger.debug("Status transition: %s -> %s (trigger: %s)",
                         current.value, t.to_state.value, trigger.value)
            return t.to_state

    valid = [t.trigger.value for t in table if t.from_state == current]
    raise InvalidTransitionError(
        f"No valid transition from '{current.value}' "
        f"with trigger '{trigger.value}'. Valid triggers: {valid}"
    )


def next_booking_status(current: BookingStatus, trigger: BookingTrigger) -> BookingStatus:
    return _advance(BOOKING_TRANSITIONS, current, trigger)


def next_payment_status(current: PaymentStatus, trigger: PaymentTrigger) -> PaymentStatus:
    return _advance(PAYMENT_TRANSITIONS, current, trigger)


def valid_booking_triggers(current: BookingStatus) -> list[BookingTrigger]:
    """Return all owner actions valid from the current status."""
    return [t.trigger for t in BOOKING_TRANSITIONS if t.from_state == current]


def is_terminal(status: BookingStatus) -> bool:
    """Confirmed and rejected bookings accept no further owner action."""
    return not valid_booking_triggers(status)
