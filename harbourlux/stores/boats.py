"""
Boat listings: lookup, owner edits to pricing and availability, admin review.

Deposit percentages are clamped when the owner sets them, so the pricing
code can use the stored value as-is.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional

from harbourlux.booking.availability import resolve_slots
from harbourlux.config import settings
from harbourlux.schemas.boat_schema import (
    AvailabilityBlock,
    Boat,
    ListingStatus,
    Service,
    SpecialPricingEntry,
)
from harbourlux.schemas.booking_schema import Booking
from harbourlux.stores.repository import InMemoryRepository, Repository

logger = logging.getLogger(__name__)

MAX_DEPOSIT_PERCENTAGE = Decimal("100")


def clamp_deposit_percentage(value: Any) -> Decimal:
    """Clamp a deposit percentage into [minimum deposit, 100]."""
    percentage = Decimal(str(value))
    return min(max(percentage, settings.pricing.min_deposit_percentage), MAX_DEPOSIT_PERCENTAGE)


class BoatStore:
    """Boat CRUD plus the listing edits an owner makes in the pricing step."""

    def __init__(self, repository: Optional[Repository[Boat]] = None) -> None:
        self._repo = repository if repository is not None else InMemoryRepository(Boat)

    # ------------------------------------------------------------------ #
    # CRUD
    # ------------------------------------------------------------------ #

    def filter(self, **predicate: Any) -> list[Boat]:
        return self._repo.filter(**predicate)

    def get(self, boat_id: str) -> Boat:
        return self._repo.get(boat_id)

    def create(self, boat: Boat) -> Boat:
        boat = boat.model_copy(update={
            "down_payment_percentage": clamp_deposit_percentage(boat.down_payment_percentage),
        })
        created = self._repo.create(boat)
        logger.info("Boat listed: %s '%s' (owner %s)", created.id, created.name, created.owner_id)
        return created

    def update(self, boat_id: str, patch: dict[str, Any]) -> Boat:
        patch = dict(patch)
        if "down_payment_percentage" in patch:
            patch["down_payment_percentage"] = clamp_deposit_percentage(patch["down_payment_percentage"])
        patch["updated_at"] = datetime.now(timezone.utc)
        return self._repo.update(boat_id, patch)

    def list_approved(self) -> list[Boat]:
        return self._repo.filter(status=ListingStatus.APPROVED)

    def list_for_owner(self, owner_id: str) -> list[Boat]:
        return self._repo.filter(owner_id=owner_id)

    def search(
        self,
        *,
        text: Optional[str] = None,
        boat_type: Optional[str] = None,
        guests: Optional[int] = None,
        with_captain: Optional[bool] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        on_date: Optional[date] = None,
        confirmed_bookings: Iterable[Booking] = (),
    ) -> list[Boat]:
        """
        Approved boats matching every filter that is set.

        ``text`` matches the name or location, case-insensitively.
        ``guests`` keeps boats that can carry that many. The price range
        applies to the hourly base rate, both ends inclusive. With
        ``on_date``, only boats with at least one free slot that day are
        kept, judged against ``confirmed_bookings``.
        """
        needle = text.strip().lower() if text else ""
        bookings = list(confirmed_bookings) if on_date is not None else []
        matches = []
        for boat in self.list_approved():
            if needle and needle not in boat.name.lower() and needle not in boat.location.lower():
                continue
            if boat_type and boat.boat_type != boat_type:
                continue
            if guests is not None and boat.max_guests < guests:
                continue
            if with_captain is not None and boat.with_captain != with_captain:
                continue
            if min_price is not None and boat.price_per_hour < min_price:
                continue
            if max_price is not None and boat.price_per_hour > max_price:
                continue
            if on_date is not None and not resolve_slots(boat, on_date, bookings):
                continue
            matches.append(boat)
        logger.debug("Boat search matched %d of the approved listings", len(matches))
        return matches

    def list_pending(self) -> list[Boat]:
        return self._repo.filter(status=ListingStatus.PENDING)

    def approve_listing(self, boat_id: str) -> Boat:
        boat = self.update(boat_id, {
            "status": ListingStatus.APPROVED,
            "approved_at": datetime.now(timezone.utc),
        })
        logger.info("Listing approved: %s", boat_id)
        return boat

    def reject_listing(self, boat_id: str) -> Boat:
        boat = self.update(boat_id, {"status": ListingStatus.REJECTED})
        logger.info("Listing rejected: %s", boat_id)
        return boat

    # ------------------------------------------------------------------ #
    # Availability blocks
    # ------------------------------------------------------------------ #

    def add_availability_block(self, boat_id: str, block: AvailabilityBlock) -> Boat:
        boat = self.get(boat_id)
        return self.update(boat_id, {"availability_blocks": [*boat.availability_blocks, block]})

    def update_availability_block(self, boat_id: str, index: int, **changes: str) -> Boat:
        """Edit one block in place. Invalid times are stored as entered."""
        boat = self.get(boat_id)
        blocks = list(boat.availability_blocks)
        if not 0 <= index < len(blocks):
            raise IndexError(f"Boat {boat_id} has no availability block {index}")
        blocks[index] = blocks[index].model_copy(update=changes)
        if not blocks[index].is_valid:
            logger.warning("Boat %s block %d is invalid after edit: %s", boat_id, index, changes)
        return self.update(boat_id, {"availability_blocks": blocks})

    def remove_availability_block(self, boat_id: str, index: int) -> Boat:
        boat = self.get(boat_id)
        blocks = [b for i, b in enumerate(boat.availability_blocks) if i != index]
        return self.update(boat_id, {"availability_blocks": blocks})

    # ------------------------------------------------------------------ #
    # Pricing
    # ------------------------------------------------------------------ #

    def set_special_pricing(self, boat_id: str, entry: SpecialPricingEntry) -> Boat:
        """Add a special-date entry, replacing any existing entry for that date."""
        boat = self.get(boat_id)
        entries = [e for e in boat.special_pricing if e.date != entry.date]
        entries.append(entry)
        entries.sort(key=lambda e: e.date)
        logger.info("Boat %s special pricing set for %s", boat_id, entry.date.isoformat())
        return self.update(boat_id, {"special_pricing": entries})

    def remove_special_pricing(self, boat_id: str, day: date) -> Boat:
        boat = self.get(boat_id)
        entries = [e for e in boat.special_pricing if e.date != day]
        return self.update(boat_id, {"special_pricing": entries})

    def set_down_payment_percentage(self, boat_id: str, percentage: Any) -> Boat:
        return self.update(boat_id, {"down_payment_percentage": percentage})

    def set_services(self, boat_id: str, services: Iterable[Service]) -> Boat:
        return self.update(boat_id, {"additional_services": list(services)})


def _blocks(*specs: tuple[str, str, str]) -> list[dict[str, str]]:
    return [{"name": n, "start_time": s, "end_time": e} for n, s, e in specs]


SEED_BOATS: list[dict[str, Any]] = [
    {
        "id": "1",
        "name": "Luxury Yacht Experience",
        "owner_id": "owner-1",
        "status": "approved",
        "location": "Darling Harbour",
        "boat_type": "yacht",
        "with_captain": True,
        "price_per_hour": "450",
        "weekend_price": "550",
        "max_guests": 12,
        "down_payment_percentage": "25",
        "balance_payment_days_before": 7,
        "availability_blocks": _blocks(
            ("Morning", "09:00", "13:00"),
            ("Afternoon", "14:00", "18:00"),
            ("Evening", "19:00", "23:00"),
        ),
        "additional_services": [
            {"name": "Catering", "price": "45", "pricing_type": "per_person",
             "description": "Canapés and drinks, per person"},
            {"name": "Skipper overtime", "price": "80", "pricing_type": "per_hour",
             "description": "Extra crew time, per hour"},
            {"name": "Decorations", "price": "150", "pricing_type": "fixed",
             "description": "Balloons and banners"},
        ],
        "google_calendar_id": "primary",
        "calendar_integration_enabled": True,
        "stripe_account_id": "acct_test_123456789",
    },
    {
        "id": "2",
        "name": "Adventure Fishing Charter",
        "owner_id": "owner-2",
        "status": "approved",
        "location": "Circular Quay",
        "boat_type": "fishing",
        "with_captain": True,
        "price_per_hour": "180",
        "weekend_price": "220",
        "max_guests": 6,
        "down_payment_percentage": "30",
        "balance_payment_days_before": 14,
        "availability_blocks": _blocks(
            ("Early Morning", "06:00", "12:00"),
            ("Afternoon", "13:00", "19:00"),
        ),
        "additional_services": [
            {"name": "Bait and tackle", "price": "25", "pricing_type": "per_person",
             "description": "Full fishing kit per guest"},
        ],
        "stripe_account_id": "acct_test_987654321",
    },
    {
        "id": "3",
        "name": "Family Day Cruiser",
        "owner_id": "owner-3",
        "status": "approved",
        "location": "Rose Bay",
        "boat_type": "cruiser",
        "price_per_hour": "120",
        "weekend_price": "150",
        "max_guests": 8,
        "down_payment_percentage": "20",
        "balance_payment_days_before": 3,
        "availability_blocks": _blocks(
            ("Morning", "09:00", "13:00"),
            ("Afternoon", "14:00", "18:00"),
        ),
    },
    {
        "id": "6",
        "name": "Corporate Event Pontoon",
        "owner_id": "owner-5",
        "status": "pending",
        "location": "Pyrmont Bay",
        "boat_type": "pontoon",
        "with_captain": True,
        "price_per_hour": "400",
        "weekend_price": "500",
        "max_guests": 25,
        "down_payment_percentage": "30",
        "balance_payment_days_before": 14,
        "availability_blocks": _blocks(
            ("Business Hours", "08:00", "18:00"),
            ("Evening Events", "18:00", "02:00"),
        ),
    },
]


def seed_boat_store(repository: Optional[Repository[Boat]] = None) -> BoatStore:
    """Build a BoatStore holding the demo fleet. Boats already stored are kept."""
    store = BoatStore(repository)
    for raw in SEED_BOATS:
        if not store.filter(id=raw["id"]):
            store.create(Boat.model_validate(raw))
    return store
