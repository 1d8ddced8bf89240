"""Boat listing data models: availability blocks, special pricing, services."""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from harbourlux.config import settings
from harbourlux.utils import MINUTES_PER_DAY, span_minutes, try_parse_clock


class ListingStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RateType(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"


class ServicePricingType(str, Enum):
    FIXED = "fixed"
    PER_PERSON = "per_person"
    PER_HOUR = "per_hour"


class AvailabilityBlock(BaseModel):
    """An owner-defined recurring window, e.g. "Morning 09:00-13:00".

    Duration is derived from the clock times modulo 24h so overnight
    blocks wrap. A block with unparsable times or zero length is kept as
    entered and reported invalid.
    """
    name: str = ""
    start_time: str
    end_time: str

    @property
    def duration_minutes(self) -> Optional[int]:
        if try_parse_clock(self.start_time) is None or try_parse_clock(self.end_time) is None:
            return None
        return span_minutes(self.start_time, self.end_time)

    @property
    def duration_hours(self) -> Optional[float]:
        minutes = self.duration_minutes
        return None if minutes is None else minutes / 60

    @property
    def is_valid(self) -> bool:
        minutes = self.duration_minutes
        return minutes is not None and 0 < minutes <= MINUTES_PER_DAY


class SpecialPricingEntry(BaseModel):
    """Per-date override of the boat's rate, optionally with its own time window."""
    date: date
    pricing_type: RateType = RateType.HOURLY
    price_per_hour: Optional[Decimal] = None
    price_per_day: Optional[Decimal] = None
    name: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    @property
    def rate(self) -> Decimal:
        if self.pricing_type == RateType.DAILY:
            return self.price_per_day or Decimal("0")
        return self.price_per_hour or Decimal("0")


class Service(BaseModel):
    """Add-on service offered with a boat."""
    name: str
    price: Decimal = Decimal("0")
    pricing_type: ServicePricingType
    description: str = ""


class Boat(BaseModel):
    """Boat listing as stored by the marketplace."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    name: str
    owner_id: str
    status: ListingStatus = ListingStatus.PENDING
    description: str = ""
    location: str = ""
    boat_type: str = ""
    with_captain: bool = False
    price_per_hour: Decimal = Decimal("0")
    weekend_price: Optional[Decimal] = None
    max_guests: int = 1
    down_payment_percentage: Decimal = Field(default_factory=lambda: settings.pricing.default_deposit_percentage)
    balance_payment_days_before: int = Field(default_factory=lambda: settings.booking.default_balance_days_before)
    availability_blocks: list[AvailabilityBlock] = Field(default_factory=list)
    special_pricing: list[SpecialPricingEntry] = Field(default_factory=list)
    additional_services: list[Service] = Field(default_factory=list)
    amenities: list[str] = Field(default_factory=list)
    google_calendar_id: Optional[str] = None
    calendar_integration_enabled: bool = False
    stripe_account_id: Optional[str] = None
    owner_email: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    approved_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("special_pricing")
    @classmethod
    def _last_entry_per_date(cls, entries: list[SpecialPricingEntry]) -> list[SpecialPricingEntry]:
        """One entry per date; a later entry replaces an earlier one."""
        by_date = {entry.date: entry for entry in entries}
        return sorted(by_date.values(), key=lambda entry: entry.date)

    def special_pricing_for(self, day: date) -> Optional[SpecialPricingEntry]:
        for entry in self.special_pricing:
            if entry.date == day:
                return entry
        return None
