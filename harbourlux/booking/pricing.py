"""
Price calculation for a charter booking.

Rate priority is special-date entry, then weekend rate, then base rate.
Everything is computed in unrounded Decimal and rounded to cents once,
when the breakdown is assembled. The balance is derived from the rounded
total and deposit so the two always add up to the total.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from harbourlux.config import settings
from harbourlux.schemas.boat_schema import Boat, RateType, Service, ServicePricingType
from harbourlux.schemas.booking_schema import Booking, PriceBreakdown, RateSource, ServiceLine, Slot
from harbourlux.utils import to_money

logger = logging.getLogger(__name__)

WEEKEND_DAYS = (5, 6)  # Saturday, Sunday
ZERO = Decimal("0")


@dataclass(frozen=True)
class ResolvedRate:
    """The rate that applies on a date and where it came from."""
    amount: Decimal
    pricing_type: RateType
    source: RateSource
    label: Optional[str] = None


def _as_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def resolve_rate(boat: Boat, day: Optional[date]) -> ResolvedRate:
    """Pick the applicable rate. First match wins: special, weekend, base."""
    if day is not None:
        special = boat.special_pricing_for(day)
        if special is not None:
            return ResolvedRate(special.rate, special.pricing_type, RateSource.SPECIAL, special.name)
        if day.weekday() in WEEKEND_DAYS and boat.weekend_price:
            return ResolvedRate(_as_decimal(boat.weekend_price), RateType.HOURLY, RateSource.WEEKEND)
    return ResolvedRate(_as_decimal(boat.price_per_hour), RateType.HOURLY, RateSource.BASE)


def slot_hours(slot: Optional[Slot]) -> Decimal:
    if slot is None:
        return ZERO
    return Decimal(slot.duration_minutes) / Decimal(60)


def service_quantity(service: Service, guests: int, hours: Decimal) -> Decimal:
    if service.pricing_type == ServicePricingType.PER_PERSON:
        return Decimal(max(guests, 0))
    if service.pricing_type == ServicePricingType.PER_HOUR:
        return hours
    return Decimal(1)


def service_cost(service: Service, guests: int, hours: Decimal) -> Decimal:
    """Unrounded cost of one add-on service."""
    return _as_decimal(service.price) * service_quantity(service, guests, hours)


def price_for(
    boat: Boat,
    day: Optional[date],
    slot: Optional[Slot],
    guests: int,
    selected_services: Iterable[Service] = (),
) -> PriceBreakdown:
    """
    Compute the full price breakdown for a prospective booking.

    Never raises for incomplete input: a missing slot prices as zero
    hours and zero guests just zeroes per-person services. The validator
    decides whether the booking may be submitted.
    """
    rate = resolve_rate(boat, day)
    hours = slot_hours(slot)

    if rate.pricing_type == RateType.DAILY:
        base = rate.amount
    else:
        base = rate.amount * hours

    lines = []
    services_total = ZERO
    for service in selected_services:
        cost = service_cost(service, guests, hours)
        services_total += cost
        lines.append(ServiceLine(
            name=service.name,
            pricing_type=service.pricing_type,
            unit_price=to_money(_as_decimal(service.price)),
            quantity=service_quantity(service, guests, hours),
            amount=to_money(cost),
        ))

    total = base + services_total
    percentage = _as_decimal(boat.down_payment_percentage)
    deposit = total * percentage / Decimal(100)
    commission = total * settings.pricing.commission_rate

    total_rounded = to_money(total)
    deposit_rounded = to_money(deposit)
    commission_rounded = to_money(commission)

    logger.debug(
        "Priced boat %s on %s: rate %s (%s), %s h, total %s",
        boat.id, day, rate.amount, rate.source.value, hours, total_rounded,
    )

    return PriceBreakdown(
        rate=to_money(rate.amount),
        rate_source=rate.source,
        pricing_type=rate.pricing_type,
        hours=hours,
        base_amount=to_money(base),
        service_lines=lines,
        services_total=to_money(services_total),
        total_amount=total_rounded,
        deposit_percentage=percentage,
        down_payment=deposit_rounded,
        remaining_balance=total_rounded - deposit_rounded,
        commission_amount=commission_rounded,
        owner_payout=total_rounded - commission_rounded,
        special_label=rate.label,
    )


def balance_due_date(booking: Booking, boat: Boat) -> date:
    """Date the remaining balance falls due: the charter date minus the boat's lead days."""
    return booking.start_date - timedelta(days=max(boat.balance_payment_days_before, 0))
