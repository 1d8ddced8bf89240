"""Booking, slot and price breakdown data models."""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from harbourlux.schemas.boat_schema import RateType, ServicePricingType


class BookingStatus(str, Enum):
    PENDING_APPROVAL = "pending_approval"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    DEPOSIT_PAID = "deposit_paid"
    FAILED = "failed"


class SlotSource(str, Enum):
    BLOCK = "block"
    SPECIAL = "special"
    CUSTOM = "custom"


class RateSource(str, Enum):
    SPECIAL = "special"
    WEEKEND = "weekend"
    BASE = "base"


class Slot(BaseModel):
    """A bookable time range on a specific date."""
    name: str = ""
    start_time: str
    end_time: str
    duration_minutes: int
    source: SlotSource = SlotSource.BLOCK

    @property
    def duration_hours(self) -> float:
        return self.duration_minutes / 60

    @property
    def is_custom(self) -> bool:
        return self.source == SlotSource.CUSTOM


class BusyPeriod(BaseModel):
    """A busy interval reported by an external calendar."""
    start: datetime
    end: datetime


class ServiceLine(BaseModel):
    """Priced snapshot of one selected add-on service."""
    name: str
    pricing_type: ServicePricingType
    unit_price: Decimal
    quantity: Decimal
    amount: Decimal


class PriceBreakdown(BaseModel):
    """Full price of a booking, rounded to cents."""
    rate: Decimal
    rate_source: RateSource
    pricing_type: RateType
    hours: Decimal
    base_amount: Decimal
    service_lines: list[ServiceLine] = Field(default_factory=list)
    services_total: Decimal
    total_amount: Decimal
    deposit_percentage: Decimal
    down_payment: Decimal
    remaining_balance: Decimal
    commission_amount: Decimal
    owner_payout: Decimal
    special_label: Optional[str] = None


class Booking(BaseModel):
    """Booking record. Prices are frozen at creation time."""
    id: str = Field(default_factory=lambda: f"booking-{uuid.uuid4().hex[:12]}")
    booking_reference: str = ""
    boat_id: str
    customer_id: str
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""
    special_requests: str = ""
    start_date: date
    end_date: date
    start_time: str
    end_time: str
    guests: int
    total_hours: Decimal
    base_price: Decimal
    pricing_type: RateType = RateType.HOURLY
    additional_services: list[ServiceLine] = Field(default_factory=list)
    total_amount: Decimal
    commission_amount: Decimal
    down_payment: Decimal
    remaining_balance: Decimal
    status: BookingStatus = BookingStatus.PENDING_APPROVAL
    payment_status: PaymentStatus = PaymentStatus.PENDING
    is_custom_time: bool = False
    payment_method_kind: Optional[str] = None
    payment_method_handle: Optional[str] = None
    card_last4: Optional[str] = None
    payment_intent_id: Optional[str] = None
    calendar_event_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AvailabilityCheck(BaseModel):
    """Result of a calendar-aware availability check for one time range."""
    available: bool
    conflicts: list[Booking] = Field(default_factory=list)
    busy: list[BusyPeriod] = Field(default_factory=list)
    reason: str = ""
    metadata: Optional[dict[str, Any]] = None
