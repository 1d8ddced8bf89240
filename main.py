"""
Command-line entry point for the booking engine.

Runs against the seeded demo fleet. When BOOKING_DATA_DIR is set, boats
and bookings persist as JSON files in that directory between runs.

Usage:
    python main.py slots --boat 1 --date 2025-03-15
    python main.py quote --boat 1 --date 2025-03-15 --block Morning --guests 6 --service Catering
    python main.py quote --boat 2 --date 2025-03-17 --start 07:00 --end 10:30 --guests 2
    python main.py search --date 2025-03-15 --guests 8 --captain
    python main.py demo
"""

import argparse
import asyncio
import logging
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Optional

from harbourlux.booking.availability import custom_slot, resolve_slots
from harbourlux.booking.pricing import price_for
from harbourlux.booking.services import snapshot_services
from harbourlux.config import settings
from harbourlux.flows.approvals import OwnerDesk
from harbourlux.flows.checkout import BookingValidationError, CheckoutSession
from harbourlux.schemas.boat_schema import Boat
from harbourlux.schemas.booking_schema import Booking, BookingStatus, PriceBreakdown
from harbourlux.schemas.customer_schema import CustomerDetails
from harbourlux.stores.boats import BoatStore, seed_boat_store
from harbourlux.stores.bookings import BookingStore
from harbourlux.stores.calendar import MockCalendarProvider
from harbourlux.stores.payments import MockPaymentProvider
from harbourlux.stores.repository import JsonFileRepository, RecordNotFoundError

logger = logging.getLogger(__name__)


def build_stores(calendar: Optional[MockCalendarProvider] = None) -> tuple[BoatStore, BookingStore]:
    """Seeded stores, file-backed when a data directory is configured."""
    boat_repo = booking_repo = None
    if settings.booking.data_dir:
        data_dir = Path(settings.booking.data_dir)
        boat_repo = JsonFileRepository(Boat, data_dir / "boats.json")
        booking_repo = JsonFileRepository(Booking, data_dir / "bookings.json")
        logger.info("Using data directory %s", data_dir)
    boats = seed_boat_store(boat_repo)
    return boats, BookingStore(boats, booking_repo, calendar)


def format_breakdown(price: PriceBreakdown) -> str:
    lines = [
        f"  Rate:        ${price.rate} ({price.rate_source.value}, {price.pricing_type.value})",
        f"  Hours:       {price.hours.normalize()}",
        f"  Charter:     ${price.base_amount}",
    ]
    for line in price.service_lines:
        lines.append(f"  + {line.name}: ${line.amount}")
    lines += [
        f"  Total:       ${price.total_amount}",
        f"  Deposit:     ${price.down_payment} ({price.deposit_percentage.normalize()}%)",
        f"  Balance:     ${price.remaining_balance}",
        f"  Commission:  ${price.commission_amount}",
        f"  Owner payout ${price.owner_payout}",
    ]
    return "\n".join(lines)


def cmd_slots(args: argparse.Namespace) -> int:
    boats, bookings = build_stores()
    boat = boats.get(args.boat)
    slots = resolve_slots(boat, args.date, bookings.confirmed_for_boat(boat.id))
    if not slots:
        print(f"{boat.name} is fully booked on {args.date.isoformat()}.")
        return 0
    print(f"{boat.name} on {args.date.isoformat()}:")
    for slot in slots:
        print(f"  {slot.name or 'Slot'}: {slot.start_time}-{slot.end_time} ({slot.duration_hours:g} h)")
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    boats, bookings = build_stores()
    found = boats.search(
        text=args.text,
        boat_type=args.type,
        guests=args.guests,
        with_captain=args.captain,
        min_price=args.min_price,
        max_price=args.max_price,
        on_date=args.date,
        confirmed_bookings=bookings.filter(status=BookingStatus.CONFIRMED),
    )
    if not found:
        print("No boats match.")
        return 0
    for boat in found:
        print(f"  {boat.id}: {boat.name}, {boat.location}, up to {boat.max_guests} guests, ${boat.price_per_hour}/h")
    return 0


def cmd_quote(args: argparse.Namespace) -> int:
    boats, bookings = build_stores()
    boat = boats.get(args.boat)
    if args.start and args.end:
        slot = custom_slot(args.start, args.end)
        if slot is None:
            logger.error("Invalid custom time %s-%s", args.start, args.end)
            return 1
    else:
        slots = resolve_slots(boat, args.date, bookings.confirmed_for_boat(boat.id))
        matches = [s for s in slots if args.block is None or s.name.lower() == args.block.lower()]
        if not matches:
            logger.error("No free slot %r for boat %s on %s", args.block, boat.id, args.date)
            return 1
        slot = matches[0]
    services = snapshot_services(boat.additional_services, args.service or [])
    price = price_for(boat, args.date, slot, args.guests, services)
    print(f"{boat.name}, {args.date.isoformat()} {slot.start_time}-{slot.end_time}, {args.guests} guest(s)")
    print(format_breakdown(price))
    return 0


async def run_demo() -> int:
    """Walk one booking from checkout through owner approval on mock providers."""
    calendar = MockCalendarProvider()
    payments = MockPaymentProvider()
    boats, bookings = build_stores(calendar)
    boat = boats.get("1")
    day = date.today().replace(day=1)

    session = CheckoutSession(boat, bookings, calendar, payments)
    slots = await session.select_date(day)
    print(f"{len(slots)} slot(s) free on {day.isoformat()}: {', '.join(s.name for s in slots)}")
    if not slots:
        return 1
    session.select_slot(slots[0])
    session.set_guests(4)
    session.choose_services(["Catering", "Decorations"])
    session.set_customer(CustomerDetails(name="Alex Rivers", email="alex@example.com", phone="0412 345 678"))
    await session.enter_card("Alex Rivers", "4242 4242 4242 4242", "12/30", "123")
    print(format_breakdown(session.quote()))

    try:
        booking = await session.submit()
    except BookingValidationError as exc:
        for error in exc.errors:
            print(f"  ! {error}")
        return 1
    print(f"Submitted {booking.booking_reference} ({booking.status.value})")

    desk = OwnerDesk(boats, bookings, calendar, payments)
    confirmed = await desk.approve(booking.id)
    print(
        f"Approved {confirmed.booking_reference}: status {confirmed.status.value}, "
        f"payment {confirmed.payment_status.value}, event {confirmed.calendar_event_id}"
    )
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description=f"{settings.app_name} booking engine.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    slots = sub.add_parser("slots", help="List free slots for a boat on a date.")
    slots.add_argument("--boat", required=True, help="Boat id.")
    slots.add_argument("--date", required=True, type=date.fromisoformat, help="YYYY-MM-DD.")
    slots.set_defaults(handler=cmd_slots)

    quote = sub.add_parser("quote", help="Price a booking.")
    quote.add_argument("--boat", required=True, help="Boat id.")
    quote.add_argument("--date", required=True, type=date.fromisoformat, help="YYYY-MM-DD.")
    quote.add_argument("--block", default=None, help="Slot name (default: first free slot).")
    quote.add_argument("--start", default=None, help="Custom start time, HH:MM.")
    quote.add_argument("--end", default=None, help="Custom end time, HH:MM.")
    quote.add_argument("--guests", type=int, default=1)
    quote.add_argument("--service", action="append", help="Add-on service name (repeatable).")
    quote.set_defaults(handler=cmd_quote)

    search = sub.add_parser("search", help="Find approved boats.")
    search.add_argument("--text", default=None, help="Match boat name or location.")
    search.add_argument("--type", default=None, help="Boat type, e.g. yacht.")
    search.add_argument("--guests", type=int, default=None)
    captain = search.add_mutually_exclusive_group()
    captain.add_argument("--captain", dest="captain", action="store_true", default=None, help="Only boats with a captain.")
    captain.add_argument("--self-drive", dest="captain", action="store_false", help="Only boats without a captain.")
    search.add_argument("--min-price", type=Decimal, default=None)
    search.add_argument("--max-price", type=Decimal, default=None)
    search.add_argument("--date", type=date.fromisoformat, default=None, help="Only boats with a free slot, YYYY-MM-DD.")
    search.set_defaults(handler=cmd_search)

    demo = sub.add_parser("demo", help="Run a full checkout and approval on mock providers.")
    demo.set_defaults(handler=lambda _args: asyncio.run(run_demo()))

    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        code = args.handler(args)
    except RecordNotFoundError as exc:
        logger.error("%s", exc.args[0] if exc.args else exc)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
