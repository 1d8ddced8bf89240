"""
Customer checkout: pick a date, pick a slot, add services, pay, submit.

Each step maps to one method so a UI can drive it incrementally. Quotes
can be requested at any point; validation only gates ``submit``. The
payment mode (tokenized vs. raw card entry) is fixed when the session
starts and never re-checked.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Optional, Union

from harbourlux.booking.availability import custom_slot, resolve_slots
from harbourlux.booking.pricing import price_for
from harbourlux.booking.services import snapshot_services
from harbourlux.booking.validation import ValidationResult, validate_booking
from harbourlux.config import settings
from harbourlux.logging_context import booking_scope, get_booking_logger
from harbourlux.schemas.boat_schema import Boat, Service
from harbourlux.schemas.booking_schema import Booking, PriceBreakdown, Slot
from harbourlux.schemas.customer_schema import CustomerDetails, RawCardEntry, TokenizedPaymentMethod
from harbourlux.stores.bookings import BookingStore
from harbourlux.stores.calendar import CalendarProvider, busy_periods_for_date
from harbourlux.stores.payments import (
    PaymentMode,
    PaymentProvider,
    collect_payment_method,
    resolve_payment_mode,
)
from harbourlux.stores.repository import RecordNotFoundError
from harbourlux.utils import normalize_phone, parse_clock

logger = get_booking_logger(__name__)


class BookingValidationError(ValueError):
    """Raised by submit when the booking fails validation."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


class CheckoutSession:
    """One customer's booking attempt for one boat."""

    def __init__(
        self,
        boat: Boat,
        bookings: BookingStore,
        calendar: Optional[CalendarProvider] = None,
        payments: Optional[PaymentProvider] = None,
        customer_id: Optional[str] = None,
    ) -> None:
        self.boat = boat
        self._bookings = bookings
        self._calendar = calendar
        self._payments = payments
        self.customer_id = customer_id or settings.booking.guest_customer_id
        self.payment_mode: PaymentMode = resolve_payment_mode(payments)

        self.date: Optional[date] = None
        self.available_slots: list[Slot] = []
        self.slot: Optional[Slot] = None
        self.guests: int = 1
        self.services: list[Service] = []
        self.customer: Optional[CustomerDetails] = None
        self.payment_method: Union[TokenizedPaymentMethod, RawCardEntry, None] = None

    # ------------------------------------------------------------------ #
    # Date and time
    # ------------------------------------------------------------------ #

    async def select_date(self, day: date) -> list[Slot]:
        """Set the date and refresh the free slots. Clears any chosen slot."""
        self.date = day
        self.slot = None
        try:
            confirmed = self._bookings.confirmed_for_boat(self.boat.id)
        except (RecordNotFoundError, OSError) as exc:
            logger.error("Could not load bookings for boat %s: %s", self.boat.id, exc)
            self.available_slots = []
            return []
        busy = await busy_periods_for_date(self._calendar, self.boat, day)
        self.available_slots = resolve_slots(self.boat, day, confirmed, busy)
        logger.info("%d slot(s) available for boat %s on %s",
                    len(self.available_slots), self.boat.id, day.isoformat())
        return list(self.available_slots)

    def select_slot(self, name_or_slot: Union[str, Slot]) -> Slot:
        """Choose one of the listed slots, by name or by value."""
        for slot in self.available_slots:
            if slot == name_or_slot or slot.name == name_or_slot:
                self.slot = slot
                return slot
        raise ValueError(f"Slot {name_or_slot!r} is not available on {self.date}")

    def set_custom_time(self, start_time: str, end_time: str) -> Optional[Slot]:
        """Use a customer-chosen range instead of a listed slot."""
        self.slot = custom_slot(start_time, end_time)
        return self.slot

    # ------------------------------------------------------------------ #
    # Extras, customer, payment
    # ------------------------------------------------------------------ #

    def set_guests(self, guests: int) -> None:
        self.guests = guests

    def choose_services(self, names: Iterable[str]) -> list[Service]:
        self.services = snapshot_services(self.boat.additional_services, names)
        return list(self.services)

    def set_customer(self, customer: CustomerDetails) -> None:
        if customer.phone:
            customer = customer.model_copy(update={"phone": normalize_phone(customer.phone)})
        self.customer = customer

    async def enter_card(self, cardholder_name: str, number: str, expiry: str, cvv: str):
        """Record the card in the form this session's payment mode requires."""
        self.payment_method = await collect_payment_method(
            self.payment_mode,
            self._payments,
            cardholder_name=cardholder_name,
            number=number,
            expiry=expiry,
            cvv=cvv,
        )
        return self.payment_method

    # ------------------------------------------------------------------ #
    # Quote, validate, submit
    # ------------------------------------------------------------------ #

    def quote(self) -> PriceBreakdown:
        return price_for(self.boat, self.date, self.slot, self.guests, self.services)

    def validate(self) -> ValidationResult:
        return validate_booking(
            self.boat, self.date, self.slot, self.guests, self.customer, self.payment_method
        )

    def _end_date(self) -> date:
        start = parse_clock(self.slot.start_time)
        end = parse_clock(self.slot.end_time)
        # Ranges that end at or before their start run past midnight.
        return self.date + timedelta(days=1) if end <= start else self.date

    async def submit(self) -> Booking:
        """Validate and store the booking request.

        Raises:
            BookingValidationError: listing every failed rule.
        """
        result = self.validate()
        if not result.valid:
            raise BookingValidationError(result.errors)

        price = self.quote()
        payment = self.payment_method
        booking = Booking(
            boat_id=self.boat.id,
            customer_id=self.customer_id,
            customer_name=self.customer.name.strip(),
            customer_email=self.customer.email.strip(),
            customer_phone=self.customer.phone or "",
            special_requests=self.customer.special_requests or "",
            start_date=self.date,
            end_date=self._end_date(),
            start_time=self.slot.start_time,
            end_time=self.slot.end_time,
            is_custom_time=self.slot.is_custom,
            guests=self.guests,
            total_hours=price.hours,
            base_price=price.rate,
            pricing_type=price.pricing_type,
            additional_services=price.service_lines,
            total_amount=price.total_amount,
            commission_amount=price.commission_amount,
            down_payment=price.down_payment,
            remaining_balance=price.remaining_balance,
            payment_method_kind=payment.kind,
            payment_method_handle=payment.handle if isinstance(payment, TokenizedPaymentMethod) else None,
            card_last4=payment.last4 or None,
        )
        created = self._bookings.create(booking)
        with booking_scope(created.booking_reference):
            logger.info("Booking %s submitted: total %s, deposit %s",
                        created.booking_reference, created.total_amount, created.down_payment)
        return created
