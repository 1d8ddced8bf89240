"""
Slot resolution for a boat on a given day.

Every interval is expressed in minutes from midnight of the target date.
Intervals are half-open, so a booking ending at 13:00 does not collide
with a block starting at 13:00. Overnight ranges run past 1440, and a
booking spanning several days covers each of them.
"""

import logging
from datetime import date, datetime, time
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from harbourlux.config import settings
from harbourlux.schemas.boat_schema import AvailabilityBlock, Boat, RateType
from harbourlux.schemas.booking_schema import Booking, BookingStatus, BusyPeriod, Slot, SlotSource
from harbourlux.utils import MINUTES_PER_DAY, span_minutes, try_parse_clock

logger = logging.getLogger(__name__)

Interval = tuple[int, int]


def clock_interval(start_time: Optional[str], end_time: Optional[str], day_offset: int = 0) -> Optional[Interval]:
    """Interval for a clock range starting ``day_offset`` days after the target date.

    Returns None for unparsable times or a zero-length range.
    """
    start = try_parse_clock(start_time)
    if start is None or try_parse_clock(end_time) is None:
        return None
    length = span_minutes(start_time, end_time)
    if length == 0:
        return None
    origin = day_offset * MINUTES_PER_DAY + start
    return origin, origin + length


def requested_interval(
    start_date: date,
    end_date: date,
    start_time: str,
    end_time: str,
    on_date: Optional[date] = None,
) -> Optional[Interval]:
    """Interval from ``start_date start_time`` to ``end_date end_time``.

    Placed relative to ``on_date``, which defaults to ``start_date``. A
    same-day range whose end is not after its start runs overnight. Returns
    None for unparsable times or an end before the start.
    """
    start = try_parse_clock(start_time)
    end = try_parse_clock(end_time)
    if start is None or end is None:
        return None
    end += (end_date - start_date).days * MINUTES_PER_DAY
    if end <= start and end_date == start_date:
        end += MINUTES_PER_DAY
    if end <= start:
        return None
    offset = (start_date - (on_date or start_date)).days * MINUTES_PER_DAY
    return start + offset, end + offset


def booking_interval(booking: Booking, on_date: date) -> Optional[Interval]:
    """Place a booking's full range, start day through end day, relative to ``on_date``."""
    return requested_interval(
        booking.start_date, booking.end_date, booking.start_time, booking.end_time, on_date
    )


def busy_interval(period: BusyPeriod, on_date: date) -> Interval:
    """Place an external busy period relative to ``on_date``'s local midnight."""
    midnight = datetime.combine(on_date, time.min)
    start, end = period.start, period.end
    if start.tzinfo is not None:
        local = ZoneInfo(settings.calendar.timezone)
        start = start.astimezone(local).replace(tzinfo=None)
        end = end.astimezone(local).replace(tzinfo=None)
    return (
        int((start - midnight).total_seconds() // 60),
        int((end - midnight).total_seconds() // 60),
    )


def intervals_overlap(a: Interval, b: Interval) -> bool:
    """Strict intersection test. Touching endpoints do not overlap."""
    return a[0] < b[1] and b[0] < a[1]


def slot_from_block(block: AvailabilityBlock) -> Optional[Slot]:
    if not block.is_valid:
        return None
    return Slot(
        name=block.name,
        start_time=block.start_time,
        end_time=block.end_time,
        duration_minutes=block.duration_minutes,
        source=SlotSource.BLOCK,
    )


def custom_slot(start_time: str, end_time: str, name: str = "Custom time") -> Optional[Slot]:
    """Build a customer-specified slot. Returns None when a time is unparsable."""
    start = try_parse_clock(start_time)
    end = try_parse_clock(end_time)
    if start is None or end is None:
        return None
    return Slot(
        name=name,
        start_time=start_time,
        end_time=end_time,
        duration_minutes=span_minutes(start_time, end_time),
        source=SlotSource.CUSTOM,
    )


def _candidate_slots(boat: Boat, day: date) -> list[Slot]:
    special = boat.special_pricing_for(day)
    if special is not None and special.pricing_type == RateType.DAILY:
        window = clock_interval(special.start_time, special.end_time)
        if window is None:
            logger.debug("Daily special on %s for boat %s has no usable window", day, boat.id)
            return []
        return [
            Slot(
                name=special.name or "Full day",
                start_time=special.start_time,
                end_time=special.end_time,
                duration_minutes=window[1] - window[0],
                source=SlotSource.SPECIAL,
            )
        ]

    slots = []
    for block in boat.availability_blocks:
        slot = slot_from_block(block)
        if slot is not None:
            slots.append(slot)
    return slots


def occupied_intervals(
    boat: Boat,
    day: date,
    confirmed_bookings: Iterable[Booking],
    external_busy_periods: Optional[Iterable[BusyPeriod]] = None,
) -> list[Interval]:
    """Intervals on ``day`` that no new booking may overlap."""
    occupied: list[Interval] = []
    for booking in confirmed_bookings:
        if booking.boat_id != boat.id or booking.status != BookingStatus.CONFIRMED:
            continue
        interval = booking_interval(booking, day)
        if interval is not None:
            occupied.append(interval)

    if boat.calendar_integration_enabled and external_busy_periods:
        occupied.extend(busy_interval(period, day) for period in external_busy_periods)
    return occupied


def is_slot_free(slot: Slot, occupied: Iterable[Interval]) -> bool:
    interval = clock_interval(slot.start_time, slot.end_time)
    if interval is None:
        return False
    return not any(intervals_overlap(interval, other) for other in occupied)


def resolve_slots(
    boat: Boat,
    day: date,
    confirmed_bookings: Iterable[Booking],
    external_busy_periods: Optional[Iterable[BusyPeriod]] = None,
) -> list[Slot]:
    """
    List the bookable slots for ``boat`` on ``day``.

    Blocks overlapping a confirmed booking, or an external busy period when
    the boat has calendar integration enabled, are dropped. A daily special
    for the date replaces the blocks with one slot. Invalid blocks never
    appear. An empty list means the day is fully booked.
    """
    occupied = occupied_intervals(boat, day, confirmed_bookings, external_busy_periods)
    free = [slot for slot in _candidate_slots(boat, day) if is_slot_free(slot, occupied)]
    logger.debug("Boat %s on %s: %d slot(s) free", boat.id, day.isoformat(), len(free))
    return free
