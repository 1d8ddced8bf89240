"""
Owner-side handling of booking requests.

Approval re-checks the slot (including the owner's calendar), confirms
the booking, then publishes the calendar event and charges the deposit.
The confirm is the only step that decides the booking's fate; calendar or
payment trouble afterwards is logged and recorded, never rolled back.
"""

from __future__ import annotations

from typing import Optional

from harbourlux.logging_context import booking_scope, get_booking_logger
from harbourlux.schemas.boat_schema import Boat
from harbourlux.schemas.booking_schema import Booking, BookingStatus
from harbourlux.stores.boats import BoatStore
from harbourlux.stores.bookings import BookingStore, SlotConflictError
from harbourlux.stores.calendar import CalendarError, CalendarProvider, build_booking_event
from harbourlux.stores.payments import PaymentError, PaymentProvider

logger = get_booking_logger(__name__)


class OwnerDesk:
    """Approve or reject incoming booking requests for an owner's boats."""

    def __init__(
        self,
        boats: BoatStore,
        bookings: BookingStore,
        calendar: Optional[CalendarProvider] = None,
        payments: Optional[PaymentProvider] = None,
    ) -> None:
        self._boats = boats
        self._bookings = bookings
        self._calendar = calendar
        self._payments = payments

    def pending_for_owner(self, owner_id: str) -> list[Booking]:
        """Booking requests awaiting a decision, oldest first."""
        pending = []
        for boat in self._boats.list_for_owner(owner_id):
            pending.extend(
                self._bookings.filter(boat_id=boat.id, status=BookingStatus.PENDING_APPROVAL)
            )
        return sorted(pending, key=lambda b: b.created_at)

    async def approve(self, booking_id: str) -> Booking:
        """Confirm a booking, then publish it and take the deposit.

        Raises:
            SlotConflictError: the slot is taken by a confirmed booking or
                busy on the owner's calendar. The booking stays pending.
            InvalidTransitionError: the booking was already decided.
        """
        booking = self._bookings.get(booking_id)
        with booking_scope(booking.booking_reference):
            boat = self._boats.get(booking.boat_id)

            check = await self._bookings.check_availability_with_calendar(
                boat.id, booking.start_date, booking.end_date,
                booking.start_time, booking.end_time, exclude_id=booking.id,
            )
            if not check.available:
                logger.warning("Cannot approve %s: %s", booking.booking_reference, check.reason)
                raise SlotConflictError(booking.id, check.conflicts)

            confirmed = self._bookings.approve(booking_id)
            confirmed = await self._publish_event(confirmed, boat)
            confirmed = await self._charge_deposit(confirmed, boat)
        return confirmed

    async def reject(self, booking_id: str, reason: Optional[str] = None) -> Booking:
        booking = self._bookings.get(booking_id)
        with booking_scope(booking.booking_reference):
            return self._bookings.reject(booking_id, reason)

    async def _publish_event(self, booking: Booking, boat: Boat) -> Booking:
        if self._calendar is None or not boat.calendar_integration_enabled or not boat.google_calendar_id:
            return booking
        try:
            event_id = await self._calendar.create_event(
                boat.google_calendar_id, build_booking_event(booking, boat)
            )
        except CalendarError as exc:
            logger.warning("Calendar event not created for %s: %s", booking.booking_reference, exc)
            return booking
        return self._bookings.attach_calendar_event(booking.id, event_id)

    async def _charge_deposit(self, booking: Booking, boat: Boat) -> Booking:
        if self._payments is None or not self._payments.available or not booking.payment_method_handle:
            logger.info("No processor charge for %s; deposit collected offline", booking.booking_reference)
            return booking
        try:
            intent = await self._payments.create_deposit_intent(booking, boat)
        except PaymentError as exc:
            logger.error("Deposit failed for %s: %s", booking.booking_reference, exc)
            return self._bookings.record_deposit(booking.id, None, succeeded=False)

        updated = self._bookings.record_deposit(booking.id, intent.id, succeeded=intent.succeeded)
        if intent.succeeded and updated.remaining_balance > 0:
            try:
                await self._payments.schedule_balance_payment(updated, boat)
            except PaymentError as exc:
                logger.warning("Balance payment not scheduled for %s: %s", updated.booking_reference, exc)
        return updated
