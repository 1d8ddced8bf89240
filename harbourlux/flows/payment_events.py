"""
Deposit status updates driven by the payment processor.

Stripe reports the outcome of a deposit charge asynchronously through
``payment_intent.succeeded`` and ``payment_intent.payment_failed`` events.
Every intent carries the booking id in its metadata, which is how an event
finds its booking. Deliveries may repeat or arrive after the approval flow
already recorded the outcome, so applying an event twice changes nothing.
"""

from __future__ import annotations

from typing import Any, Optional

from harbourlux.booking.status import InvalidTransitionError
from harbourlux.logging_context import booking_scope, get_booking_logger
from harbourlux.schemas.booking_schema import Booking, PaymentStatus
from harbourlux.stores.bookings import BookingStore
from harbourlux.stores.payments import PaymentProvider, construct_webhook_event
from harbourlux.stores.repository import RecordNotFoundError

logger = get_booking_logger(__name__)

DEPOSIT_OUTCOMES = {
    "payment_intent.succeeded": True,
    "payment_intent.payment_failed": False,
}

# Intent statuses that settle a deposit. Anything else is still in flight.
SETTLED_INTENT_STATUSES = {
    "succeeded": True,
    "requires_payment_method": False,
    "canceled": False,
}


def _field(obj: Any, name: str) -> Any:
    return getattr(obj, name, None)


class PaymentEventHandler:
    """Apply processor callbacks and status lookups to booking payment status."""

    def __init__(self, bookings: BookingStore, payments: Optional[PaymentProvider] = None) -> None:
        self._bookings = bookings
        self._payments = payments

    def handle_webhook(self, payload: bytes, signature: str, secret: Optional[str] = None) -> Optional[Booking]:
        """Verify a raw webhook delivery, then apply it."""
        return self.handle_event(construct_webhook_event(payload, signature, secret))

    def handle_event(self, event: Any) -> Optional[Booking]:
        """Apply a verified event. Returns the affected booking, or None when ignored."""
        event_type = _field(event, "type")
        if event_type not in DEPOSIT_OUTCOMES:
            logger.info("Ignoring payment event %s (%s)", _field(event, "id"), event_type)
            return None

        intent = event.data.object
        metadata = _field(intent, "metadata")
        booking_id = _field(metadata, "booking_id") if metadata is not None else None
        if not booking_id:
            logger.warning("Payment event %s has no booking_id in its metadata", _field(event, "id"))
            return None
        if _field(metadata, "payment_type") != "deposit":
            logger.info("Payment event %s is for a %s intent, not a deposit",
                        _field(event, "id"), _field(metadata, "payment_type"))
            return None

        if not DEPOSIT_OUTCOMES[event_type]:
            error = _field(intent, "last_payment_error")
            logger.warning("Deposit intent %s failed: %s", intent.id, _field(error, "message") if error else "unknown")
        return self.apply_deposit_outcome(booking_id, intent.id, DEPOSIT_OUTCOMES[event_type])

    def apply_deposit_outcome(self, booking_id: str, intent_id: str, succeeded: bool) -> Optional[Booking]:
        try:
            booking = self._bookings.get(booking_id)
        except RecordNotFoundError:
            logger.warning("Payment outcome for unknown booking %s (intent %s)", booking_id, intent_id)
            return None

        target = PaymentStatus.DEPOSIT_PAID if succeeded else PaymentStatus.FAILED
        with booking_scope(booking.booking_reference):
            if booking.payment_status == target:
                logger.debug("Deposit outcome already recorded for %s", booking.booking_reference)
                return booking
            try:
                return self._bookings.record_deposit(booking_id, intent_id, succeeded)
            except InvalidTransitionError:
                logger.warning(
                    "Stale deposit outcome for %s: %s cannot become %s",
                    booking.booking_reference, booking.payment_status.value, target.value,
                )
                return booking

    async def sync_deposit_status(self, booking_id: str) -> Booking:
        """Look up the booking's deposit intent and record a settled outcome.

        Raises:
            PaymentError: the processor cannot return the intent.
            ValueError: no payment provider, or the booking has no intent.
        """
        booking = self._bookings.get(booking_id)
        if self._payments is None:
            raise ValueError("A payment provider is required to look up intent status")
        if not booking.payment_intent_id:
            raise ValueError(f"Booking {booking_id} has no payment intent")

        intent = await self._payments.retrieve_intent(booking.payment_intent_id)
        outcome = SETTLED_INTENT_STATUSES.get(intent.status)
        if outcome is None:
            logger.info("Deposit intent %s still %s", intent.id, intent.status)
            return booking
        return self.apply_deposit_outcome(booking_id, intent.id, outcome) or booking
