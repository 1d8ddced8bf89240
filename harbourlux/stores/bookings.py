"""
Booking records: submission, owner decisions, payment outcomes.

Customers may both see a slot as free before either request is approved.
The race is closed at approval time: ``approve`` re-checks the slot
against every confirmed booking and flips the status with a
compare-and-swap update, all under one lock.
"""

import logging
import threading
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from harbourlux.booking.availability import (
    Interval,
    booking_interval,
    intervals_overlap,
    requested_interval,
)
from harbourlux.booking.status import (
    BookingTrigger,
    PaymentTrigger,
    next_booking_status,
    next_payment_status,
)
from harbourlux.config import settings
from harbourlux.schemas.booking_schema import (
    AvailabilityCheck,
    Booking,
    BookingStatus,
    PaymentStatus,
)
from harbourlux.stores.boats import BoatStore
from harbourlux.stores.calendar import CalendarError, CalendarProvider, day_window
from harbourlux.stores.repository import InMemoryRepository, RecordNotFoundError, Repository

logger = logging.getLogger(__name__)


class SlotConflictError(RuntimeError):
    """Raised when approving a booking would double-book its slot."""

    def __init__(self, booking_id: str, conflicts: list[Booking]) -> None:
        refs = ", ".join(b.booking_reference or b.id for b in conflicts)
        super().__init__(f"Booking {booking_id} overlaps confirmed booking(s): {refs}")
        self.booking_id = booking_id
        self.conflicts = conflicts


def new_booking_reference() -> str:
    return f"{settings.booking.reference_prefix}{uuid.uuid4().hex[:8].upper()}"


class BookingStore:
    """Booking CRUD plus the owner and payment status transitions."""

    def __init__(
        self,
        boats: BoatStore,
        repository: Optional[Repository[Booking]] = None,
        calendar: Optional[CalendarProvider] = None,
    ) -> None:
        self._boats = boats
        self._repo = repository if repository is not None else InMemoryRepository(Booking)
        self._calendar = calendar
        self._approval_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # CRUD
    # ------------------------------------------------------------------ #

    def create(self, booking: Booking) -> Booking:
        """Store a new booking request. It always starts pending approval."""
        booking = booking.model_copy(update={
            "booking_reference": booking.booking_reference or new_booking_reference(),
            "status": BookingStatus.PENDING_APPROVAL,
            "payment_status": PaymentStatus.PENDING,
            "created_at": datetime.now(timezone.utc),
        })
        created = self._repo.create(booking)
        logger.info(
            "Booking request %s for boat %s on %s %s-%s, awaiting owner approval",
            created.booking_reference, created.boat_id, created.start_date,
            created.start_time, created.end_time,
        )
        return created

    def filter(self, **predicate: Any) -> list[Booking]:
        if isinstance(predicate.get("start_date"), str):
            predicate["start_date"] = date.fromisoformat(predicate["start_date"])
        return self._repo.filter(**predicate)

    def get(self, booking_id: str) -> Booking:
        return self._repo.get(booking_id)

    def update(self, booking_id: str, patch: dict[str, Any]) -> Booking:
        """Generic field update. Status fields must go through approve/reject/record_deposit."""
        blocked = {"status", "payment_status"} & set(patch)
        if blocked:
            raise ValueError(f"Use the status transitions to change {sorted(blocked)}")
        return self._repo.update(booking_id, {**patch, "updated_at": datetime.now(timezone.utc)})

    def confirmed_for_boat(self, boat_id: str) -> list[Booking]:
        return self._repo.filter(boat_id=boat_id, status=BookingStatus.CONFIRMED)

    def conflicts_for(
        self, boat_id: str, on_date: date, interval: Interval, exclude_id: Optional[str] = None
    ) -> list[Booking]:
        """Confirmed bookings of ``boat_id`` overlapping ``interval`` on ``on_date``."""
        conflicts = []
        for booking in self.confirmed_for_boat(boat_id):
            if booking.id == exclude_id:
                continue
            other = booking_interval(booking, on_date)
            if other is not None and intervals_overlap(interval, other):
                conflicts.append(booking)
        return conflicts

    # ------------------------------------------------------------------ #
    # Owner decisions
    # ------------------------------------------------------------------ #

    def approve(self, booking_id: str) -> Booking:
        """Confirm a pending booking if its slot is still free.

        Raises:
            InvalidTransitionError: the booking is no longer pending.
            SlotConflictError: another confirmed booking now holds the slot.
        """
        with self._approval_lock:
            booking = self.get(booking_id)
            new_status = next_booking_status(booking.status, BookingTrigger.APPROVE)
            interval = requested_interval(
                booking.start_date, booking.end_date, booking.start_time, booking.end_time
            )
            if interval is not None:
                conflicts = self.conflicts_for(booking.boat_id, booking.start_date, interval, booking_id)
                if conflicts:
                    logger.warning("Approval of %s blocked by %d conflict(s)", booking_id, len(conflicts))
                    raise SlotConflictError(booking_id, conflicts)

            now = datetime.now(timezone.utc)
            confirmed = self._repo.update(
                booking_id,
                {"status": new_status, "approved_at": now, "updated_at": now},
                expect={"status": booking.status},
            )
        logger.info("Booking approved: %s", confirmed.booking_reference)
        return confirmed

    def reject(self, booking_id: str, reason: Optional[str] = None) -> Booking:
        booking = self.get(booking_id)
        new_status = next_booking_status(booking.status, BookingTrigger.REJECT)
        now = datetime.now(timezone.utc)
        rejected = self._repo.update(
            booking_id,
            {"status": new_status, "rejection_reason": reason, "rejected_at": now, "updated_at": now},
            expect={"status": booking.status},
        )
        logger.info("Booking rejected: %s (%s)", rejected.booking_reference, reason or "no reason given")
        return rejected

    # ------------------------------------------------------------------ #
    # Payment and calendar callbacks
    # ------------------------------------------------------------------ #

    def record_deposit(self, booking_id: str, intent_id: Optional[str], succeeded: bool) -> Booking:
        booking = self.get(booking_id)
        trigger = PaymentTrigger.DEPOSIT_CAPTURED if succeeded else PaymentTrigger.DEPOSIT_FAILED
        new_status = next_payment_status(booking.payment_status, trigger)
        patch: dict[str, Any] = {"payment_status": new_status, "updated_at": datetime.now(timezone.utc)}
        if intent_id:
            patch["payment_intent_id"] = intent_id
        updated = self._repo.update(booking_id, patch, expect={"payment_status": booking.payment_status})
        logger.info("Booking %s payment status: %s", updated.booking_reference, new_status.value)
        return updated

    def attach_calendar_event(self, booking_id: str, event_id: str) -> Booking:
        return self.update(booking_id, {"calendar_event_id": event_id})

    # ------------------------------------------------------------------ #
    # Availability
    # ------------------------------------------------------------------ #

    async def check_availability_with_calendar(
        self,
        boat_id: str,
        start_date: date,
        end_date: date,
        start_time: str,
        end_time: str,
        exclude_id: Optional[str] = None,
    ) -> AvailabilityCheck:
        """Check one time range against confirmed bookings and the owner's calendar.

        A calendar outage degrades to the local answer; the reason says so.
        """
        try:
            boat = self._boats.get(boat_id)
        except RecordNotFoundError:
            return AvailabilityCheck(available=False, reason=f"Boat {boat_id} not found")

        interval = requested_interval(start_date, end_date, start_time, end_time)
        if interval is None:
            return AvailabilityCheck(
                available=False, reason=f"Invalid time range {start_time}-{end_time}"
            )

        conflicts = self.conflicts_for(boat_id, start_date, interval, exclude_id)
        busy = []
        calendar_note = ""
        if self._calendar is not None and boat.calendar_integration_enabled and boat.google_calendar_id:
            midnight, _ = day_window(start_date)
            time_min = midnight + timedelta(minutes=interval[0])
            time_max = midnight + timedelta(minutes=interval[1])
            try:
                busy = await self._calendar.check_availability(boat.google_calendar_id, time_min, time_max)
            except CalendarError as exc:
                logger.warning("Calendar check failed for boat %s: %s", boat_id, exc)
                calendar_note = " (calendar unavailable, checked local bookings only)"

        reasons = []
        if conflicts:
            reasons.append(f"Conflicts with {len(conflicts)} confirmed booking(s)")
        if busy:
            reasons.append(f"Conflicts with {len(busy)} calendar event(s)")
        available = not reasons
        reason = ("Available" if available else "; ".join(reasons)) + calendar_note

        return AvailabilityCheck(available=available, conflicts=conflicts, busy=busy, reason=reason)
