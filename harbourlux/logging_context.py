"""Booking reference on every log line.

The checkout and approval flows mark the booking they are working on with
``booking_scope``. The handler built by ``booking_log_handler`` stamps each
record with that reference, so its format string may use
``%(booking_id)s`` even for loggers outside this package.

Usage:
    from harbourlux.logging_context import booking_scope, get_booking_logger

    logger = get_booking_logger(__name__)
    with booking_scope("BK12345678"):
        logger.info("Deposit captured")  # ... [BK12345678] Deposit captured
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

NO_BOOKING = "-"

_booking_id: ContextVar[str] = ContextVar("booking_id", default=NO_BOOKING)


def set_booking_id(booking_id: Optional[str]) -> None:
    _booking_id.set(booking_id or NO_BOOKING)


def get_booking_id() -> str:
    return _booking_id.get()


@contextmanager
def booking_scope(booking_id: Optional[str]) -> Iterator[str]:
    """Tag log records with ``booking_id`` until the block exits."""
    token = _booking_id.set(booking_id or NO_BOOKING)
    try:
        yield _booking_id.get()
    finally:
        _booking_id.reset(token)


class BookingIdFilter(logging.Filter):
    """Copies the current booking reference onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "booking_id"):
            record.booking_id = _booking_id.get()  # type: ignore[attr-defined]
        return True


def booking_log_handler(fmt: str, datefmt: Optional[str] = None) -> logging.Handler:
    """Stream handler whose records always carry ``booking_id``."""
    handler = logging.StreamHandler()
    handler.addFilter(BookingIdFilter())
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def get_booking_logger(name: str) -> logging.Logger:
    """Module logger with the filter attached, for handlers installed elsewhere."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, BookingIdFilter) for f in logger.filters):
        logger.addFilter(BookingIdFilter())
    return logger
