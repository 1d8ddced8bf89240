"""Tests for slot resolution."""

from datetime import datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

from harbourlux.booking.availability import (
    booking_interval,
    clock_interval,
    custom_slot,
    intervals_overlap,
    resolve_slots,
)
from harbourlux.config import settings
from harbourlux.schemas.boat_schema import AvailabilityBlock, RateType, SpecialPricingEntry
from harbourlux.schemas.booking_schema import BookingStatus, BusyPeriod, SlotSource
from tests.conftest import MONDAY, make_boat, make_booking


def names(slots):
    return [s.name for s in slots]


def local(day, hour, minute=0):
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=ZoneInfo(settings.calendar.timezone))


class TestIntervals:
    def test_clock_interval_same_day(self):
        assert clock_interval("09:00", "13:00") == (540, 780)

    def test_clock_interval_overnight_runs_past_midnight(self):
        assert clock_interval("22:00", "02:00") == (1320, 1560)

    def test_clock_interval_with_day_offset(self):
        assert clock_interval("01:00", "03:00", day_offset=1) == (1500, 1620)
        assert clock_interval("22:00", "02:00", day_offset=-1) == (-120, 120)

    def test_clock_interval_rejects_bad_input(self):
        assert clock_interval("10:00", "10:00") is None
        assert clock_interval("25:00", "26:00") is None
        assert clock_interval(None, "10:00") is None

    def test_touching_intervals_do_not_overlap(self):
        assert not intervals_overlap((540, 780), (780, 840))
        assert not intervals_overlap((780, 840), (540, 780))

    def test_nested_interval_overlaps(self):
        assert intervals_overlap((540, 780), (600, 660))

    def test_booking_interval_relative_to_date(self):
        booking = make_booking("22:00", "06:00", start_date=MONDAY - timedelta(days=1), end_date=MONDAY)
        assert booking_interval(booking, MONDAY) == (-120, 360)

    def test_booking_interval_covers_end_date(self):
        booking = make_booking("09:00", "17:00", end_date=MONDAY + timedelta(days=2))
        assert booking_interval(booking, MONDAY + timedelta(days=1)) == (-900, 2460)


class TestResolveSlots:
    def test_all_blocks_free(self, boat):
        slots = resolve_slots(boat, MONDAY, [])
        assert names(slots) == ["Morning", "Afternoon", "Evening"]
        assert all(s.source == SlotSource.BLOCK for s in slots)
        assert slots[0].duration_minutes == 240

    def test_confirmed_booking_removes_overlapping_block(self, boat):
        booking = make_booking("10:00", "12:00")
        assert names(resolve_slots(boat, MONDAY, [booking])) == ["Afternoon", "Evening"]

    def test_booking_spanning_two_blocks_removes_both(self, boat):
        booking = make_booking("12:00", "15:00")
        assert names(resolve_slots(boat, MONDAY, [booking])) == ["Evening"]

    def test_pending_and_rejected_bookings_do_not_block(self, boat):
        bookings = [
            make_booking("09:00", "13:00", status=BookingStatus.PENDING_APPROVAL),
            make_booking("14:00", "18:00", status=BookingStatus.REJECTED),
        ]
        assert len(resolve_slots(boat, MONDAY, bookings)) == 3

    def test_touching_booking_leaves_neighbours_free(self, boat):
        booking = make_booking("13:00", "14:00")
        assert names(resolve_slots(boat, MONDAY, [booking])) == ["Morning", "Afternoon", "Evening"]

    def test_other_boats_and_other_days_ignored(self, boat):
        bookings = [
            make_booking("09:00", "13:00", boat_id="other"),
            make_booking("14:00", "18:00", start_date=MONDAY + timedelta(days=1)),
        ]
        assert len(resolve_slots(boat, MONDAY, bookings)) == 3

    def test_overnight_booking_from_previous_day_blocks_morning(self, boat):
        booking = make_booking(
            "22:00", "10:00", start_date=MONDAY - timedelta(days=1), end_date=MONDAY
        )
        assert names(resolve_slots(boat, MONDAY, [booking])) == ["Afternoon", "Evening"]

    def test_multi_day_booking_blocks_every_day_it_spans(self, boat):
        charter = make_booking("09:00", "17:00", end_date=MONDAY + timedelta(days=2))
        assert resolve_slots(boat, MONDAY + timedelta(days=1), [charter]) == []
        assert resolve_slots(boat, MONDAY, [charter]) == []
        assert names(resolve_slots(boat, MONDAY + timedelta(days=2), [charter])) == ["Evening"]
        assert len(resolve_slots(boat, MONDAY + timedelta(days=3), [charter])) == 3

    def test_overnight_block_blocked_by_next_day_booking(self):
        boat = make_boat(availability_blocks=[
            AvailabilityBlock(name="Day", start_time="08:00", end_time="18:00"),
            AvailabilityBlock(name="Night", start_time="18:00", end_time="02:00"),
        ])
        slots = resolve_slots(boat, MONDAY, [])
        assert [s.duration_minutes for s in slots] == [600, 480]

        early = make_booking("01:00", "03:00", start_date=MONDAY + timedelta(days=1))
        assert names(resolve_slots(boat, MONDAY, [early])) == ["Day"]

    def test_invalid_blocks_never_listed(self):
        boat = make_boat(availability_blocks=[
            AvailabilityBlock(name="Broken", start_time="25:00", end_time="26:00"),
            AvailabilityBlock(name="Empty", start_time="10:00", end_time="10:00"),
            AvailabilityBlock(name="Good", start_time="10:00", end_time="12:00"),
        ])
        assert names(resolve_slots(boat, MONDAY, [])) == ["Good"]

    def test_fully_booked_day_is_empty(self, boat):
        booking = make_booking("08:00", "23:30")
        assert resolve_slots(boat, MONDAY, [booking]) == []

    def test_listed_slots_never_overlap_confirmed_bookings(self, boat):
        bookings = [
            make_booking("08:30", "09:30"),
            make_booking("17:59", "18:30"),
            make_booking("23:00", "01:00"),
        ]
        for slot in resolve_slots(boat, MONDAY, bookings):
            slot_range = clock_interval(slot.start_time, slot.end_time)
            for booking in bookings:
                assert not intervals_overlap(slot_range, booking_interval(booking, MONDAY))


class TestSpecialPricingSlots:
    def test_daily_special_replaces_blocks(self, boat):
        boat.special_pricing = [SpecialPricingEntry(
            date=MONDAY, pricing_type=RateType.DAILY, price_per_day=Decimal("2000"),
            name="Harbour Fireworks", start_time="17:00", end_time="23:59",
        )]
        slots = resolve_slots(boat, MONDAY, [])
        assert len(slots) == 1
        assert slots[0].name == "Harbour Fireworks"
        assert slots[0].source == SlotSource.SPECIAL
        assert slots[0].duration_minutes == 419

    def test_daily_special_without_window_has_no_slot(self, boat):
        boat.special_pricing = [SpecialPricingEntry(
            date=MONDAY, pricing_type=RateType.DAILY, price_per_day=Decimal("2000"),
        )]
        assert resolve_slots(boat, MONDAY, []) == []

    def test_daily_special_slot_still_checks_bookings(self, boat):
        boat.special_pricing = [SpecialPricingEntry(
            date=MONDAY, pricing_type=RateType.DAILY, price_per_day=Decimal("2000"),
            start_time="10:00", end_time="16:00",
        )]
        assert resolve_slots(boat, MONDAY, [make_booking("15:00", "17:00")]) == []

    def test_hourly_special_keeps_blocks(self, boat):
        boat.special_pricing = [SpecialPricingEntry(
            date=MONDAY, pricing_type=RateType.HOURLY, price_per_hour=Decimal("200"),
        )]
        assert len(resolve_slots(boat, MONDAY, [])) == 3

    def test_special_for_another_date_ignored(self, boat):
        boat.special_pricing = [SpecialPricingEntry(
            date=MONDAY + timedelta(days=1), pricing_type=RateType.DAILY,
            price_per_day=Decimal("2000"), start_time="10:00", end_time="16:00",
        )]
        assert len(resolve_slots(boat, MONDAY, [])) == 3


class TestCalendarBusy:
    def test_busy_period_blocks_slot(self, boat):
        busy = [BusyPeriod(start=local(MONDAY, 10), end=local(MONDAY, 11))]
        assert names(resolve_slots(boat, MONDAY, [], busy)) == ["Afternoon", "Evening"]

    def test_busy_period_ignored_without_integration(self):
        boat = make_boat(calendar_integration_enabled=False)
        busy = [BusyPeriod(start=local(MONDAY, 10), end=local(MONDAY, 11))]
        assert len(resolve_slots(boat, MONDAY, [], busy)) == 3

    def test_utc_busy_period_converted_to_local_time(self, boat):
        start = local(MONDAY, 14, 30).astimezone(ZoneInfo("UTC"))
        busy = [BusyPeriod(start=start, end=start + timedelta(minutes=30))]
        assert names(resolve_slots(boat, MONDAY, [], busy)) == ["Morning", "Evening"]

    def test_busy_period_from_previous_evening(self, boat):
        yesterday = MONDAY - timedelta(days=1)
        busy = [BusyPeriod(start=local(yesterday, 20), end=local(MONDAY, 9, 30))]
        assert names(resolve_slots(boat, MONDAY, [], busy)) == ["Afternoon", "Evening"]


class TestCustomSlot:
    def test_custom_slot(self):
        slot = custom_slot("07:00", "10:30")
        assert slot.duration_minutes == 210
        assert slot.is_custom

    def test_custom_slot_overnight(self):
        assert custom_slot("22:00", "01:00").duration_minutes == 180

    def test_custom_slot_unparsable(self):
        assert custom_slot("7am", "10:30") is None
