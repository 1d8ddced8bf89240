"""Shared test fixtures and helpers."""

from datetime import date
from decimal import Decimal
from typing import Optional

import pytest

from harbourlux.schemas.boat_schema import AvailabilityBlock, Boat, Service, ServicePricingType
from harbourlux.schemas.booking_schema import Booking, BookingStatus
from harbourlux.stores.boats import BoatStore
from harbourlux.stores.bookings import BookingStore
from harbourlux.stores.calendar import MockCalendarProvider
from harbourlux.stores.payments import MockPaymentProvider
from harbourlux.stores.repository import InMemoryRepository

SATURDAY = date(2025, 3, 15)
SUNDAY = date(2025, 3, 16)
MONDAY = date(2025, 3, 17)


def make_boat(**overrides) -> Boat:
    """A boat with three four-hour blocks, 100/h weekdays and 150/h weekends."""
    data = dict(
        id="b1",
        name="Sea Breeze",
        owner_id="owner-1",
        status="approved",
        location="Darling Harbour",
        price_per_hour=Decimal("100"),
        weekend_price=Decimal("150"),
        max_guests=10,
        down_payment_percentage=Decimal("25"),
        balance_payment_days_before=7,
        availability_blocks=[
            AvailabilityBlock(name="Morning", start_time="09:00", end_time="13:00"),
            AvailabilityBlock(name="Afternoon", start_time="14:00", end_time="18:00"),
            AvailabilityBlock(name="Evening", start_time="19:00", end_time="23:00"),
        ],
        additional_services=[
            Service(name="Catering", price=Decimal("45"), pricing_type=ServicePricingType.PER_PERSON),
            Service(name="Skipper overtime", price=Decimal("80"), pricing_type=ServicePricingType.PER_HOUR),
            Service(name="Decorations", price=Decimal("150"), pricing_type=ServicePricingType.FIXED),
        ],
        google_calendar_id="primary",
        calendar_integration_enabled=True,
        stripe_account_id="acct_test_1",
        owner_email="owner@example.com",
    )
    data.update(overrides)
    return Boat(**data)


def make_booking(
    start_time: str = "09:00",
    end_time: str = "13:00",
    start_date: date = MONDAY,
    end_date: Optional[date] = None,
    status: BookingStatus = BookingStatus.CONFIRMED,
    boat_id: str = "b1",
    **overrides,
) -> Booking:
    """A booking with zeroed prices; only the time range matters to most tests."""
    data = dict(
        boat_id=boat_id,
        customer_id="cust-1",
        customer_name="Jamie Lee",
        customer_email="jamie@example.com",
        start_date=start_date,
        end_date=end_date or start_date,
        start_time=start_time,
        end_time=end_time,
        guests=2,
        total_hours=Decimal("4"),
        base_price=Decimal("100"),
        total_amount=Decimal("400"),
        commission_amount=Decimal("40"),
        down_payment=Decimal("100"),
        remaining_balance=Decimal("300"),
        status=status,
    )
    data.update(overrides)
    return Booking(**data)


@pytest.fixture
def boat():
    return make_boat()


@pytest.fixture
def boat_store(boat):
    store = BoatStore()
    store.create(boat)
    return store


@pytest.fixture
def calendar():
    return MockCalendarProvider()


@pytest.fixture
def payments():
    return MockPaymentProvider()


@pytest.fixture
def booking_store(boat_store, calendar):
    return BookingStore(boat_store, InMemoryRepository(Booking), calendar)
