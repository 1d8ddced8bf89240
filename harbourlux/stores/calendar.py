"""
Owner calendar integration.

Boats with calendar integration enabled publish confirmed bookings as
events and expose busy time that blocks slots. ``GoogleCalendarProvider``
talks to the Google Calendar API. ``MockCalendarProvider`` keeps everything
in memory for tests and the demo.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Protocol
from urllib.parse import quote
from zoneinfo import ZoneInfo

import httpx

from harbourlux.config import settings
from harbourlux.schemas.boat_schema import Boat
from harbourlux.schemas.booking_schema import Booking, BusyPeriod

logger = logging.getLogger(__name__)


class CalendarError(RuntimeError):
    """Raised when the calendar provider cannot be reached or rejects a call."""


@dataclass(frozen=True)
class CalendarInfo:
    """A calendar the owner can pick for a boat."""
    id: str
    summary: str
    primary: bool = False


class CalendarProvider(Protocol):
    """Calendar operations the booking engine relies on."""

    async def get_calendar_list(self) -> list[CalendarInfo]: ...

    async def check_availability(
        self, calendar_id: str, time_min: datetime, time_max: datetime
    ) -> list[BusyPeriod]: ...

    async def create_event(self, calendar_id: str, event: dict[str, Any]) -> str: ...

    async def update_event(self, calendar_id: str, event_id: str, event: dict[str, Any]) -> None: ...

    async def delete_event(self, calendar_id: str, event_id: str) -> None: ...


class MockCalendarProvider:
    """In-memory calendar. Set ``fail`` to simulate an outage."""

    def __init__(self, calendars: Optional[list[CalendarInfo]] = None) -> None:
        self.calendars = calendars or [CalendarInfo(id="primary", summary="Primary", primary=True)]
        self.busy: dict[str, list[BusyPeriod]] = {}
        self.events: dict[str, dict[str, dict[str, Any]]] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise CalendarError("Calendar provider unavailable")

    def add_busy(self, calendar_id: str, start: datetime, end: datetime) -> None:
        """Register busy time. Naive datetimes are read as calendar-local time."""
        tz = ZoneInfo(settings.calendar.timezone)
        if start.tzinfo is None:
            start = start.replace(tzinfo=tz)
        if end.tzinfo is None:
            end = end.replace(tzinfo=tz)
        self.busy.setdefault(calendar_id, []).append(BusyPeriod(start=start, end=end))

    async def get_calendar_list(self) -> list[CalendarInfo]:
        self._check()
        return list(self.calendars)

    async def check_availability(
        self, calendar_id: str, time_min: datetime, time_max: datetime
    ) -> list[BusyPeriod]:
        self._check()
        return [
            period for period in self.busy.get(calendar_id, [])
            if period.start < time_max and time_min < period.end
        ]

    async def create_event(self, calendar_id: str, event: dict[str, Any]) -> str:
        self._check()
        event_id = f"event_{uuid.uuid4().hex[:12]}"
        self.events.setdefault(calendar_id, {})[event_id] = dict(event, id=event_id)
        logger.info("Calendar event created: %s on %s", event_id, calendar_id)
        return event_id

    async def update_event(self, calendar_id: str, event_id: str, event: dict[str, Any]) -> None:
        self._check()
        events = self.events.get(calendar_id, {})
        if event_id not in events:
            raise CalendarError(f"Event {event_id} not found on {calendar_id}")
        events[event_id].update(event)

    async def delete_event(self, calendar_id: str, event_id: str) -> None:
        self._check()
        if self.events.get(calendar_id, {}).pop(event_id, None) is None:
            raise CalendarError(f"Event {event_id} not found on {calendar_id}")
        logger.info("Calendar event deleted: %s on %s", event_id, calendar_id)


class GoogleCalendarProvider:
    """Google Calendar v3 REST client authenticated with an OAuth access token.

    Every HTTP or transport failure surfaces as ``CalendarError``. The
    ``transport`` argument lets tests route requests to an
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._access_token = access_token if access_token is not None else settings.calendar.google_access_token
        self._base_url = (base_url or settings.calendar.google_api_base).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.calendar.request_timeout_seconds
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._access_token)

    @staticmethod
    def _events_path(calendar_id: str, event_id: Optional[str] = None) -> str:
        path = f"/calendars/{quote(calendar_id, safe='')}/events"
        if event_id:
            path += f"/{quote(event_id, safe='')}"
        return path

    async def _request(
        self, method: str, path: str, json: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        if not self.configured:
            raise CalendarError("Google Calendar access token is not configured")
        async with httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            try:
                resp = await client.request(
                    method, path, json=json,
                    headers={"Authorization": f"Bearer {self._access_token}"},
                )
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise CalendarError(
                    f"Google Calendar {method} {path} failed with HTTP {exc.response.status_code}"
                ) from exc
            except httpx.HTTPError as exc:
                raise CalendarError(f"Google Calendar {method} {path} failed: {exc}") from exc
        if not resp.content:
            return {}
        return resp.json()

    async def get_calendar_list(self) -> list[CalendarInfo]:
        data = await self._request("GET", "/users/me/calendarList")
        return [
            CalendarInfo(id=item["id"], summary=item.get("summary", ""), primary=bool(item.get("primary")))
            for item in data.get("items", [])
        ]

    async def check_availability(
        self, calendar_id: str, time_min: datetime, time_max: datetime
    ) -> list[BusyPeriod]:
        data = await self._request("POST", "/freeBusy", json={
            "timeMin": time_min.isoformat(),
            "timeMax": time_max.isoformat(),
            "timeZone": settings.calendar.timezone,
            "items": [{"id": calendar_id}],
        })
        entry = data.get("calendars", {}).get(calendar_id, {})
        if entry.get("errors"):
            reasons = ", ".join(err.get("reason", "unknown") for err in entry["errors"])
            raise CalendarError(f"Free/busy lookup for {calendar_id} failed: {reasons}")
        busy = [BusyPeriod.model_validate(item) for item in entry.get("busy", [])]
        logger.debug("Calendar %s: %d busy period(s) in window", calendar_id, len(busy))
        return busy

    async def create_event(self, calendar_id: str, event: dict[str, Any]) -> str:
        data = await self._request("POST", self._events_path(calendar_id), json=event)
        logger.info("Google Calendar event created: %s on %s", data.get("id"), calendar_id)
        return data["id"]

    async def update_event(self, calendar_id: str, event_id: str, event: dict[str, Any]) -> None:
        await self._request("PATCH", self._events_path(calendar_id, event_id), json=event)
        logger.info("Google Calendar event updated: %s on %s", event_id, calendar_id)

    async def delete_event(self, calendar_id: str, event_id: str) -> None:
        await self._request("DELETE", self._events_path(calendar_id, event_id))
        logger.info("Google Calendar event deleted: %s on %s", event_id, calendar_id)


def day_window(day: date) -> tuple[datetime, datetime]:
    """Local midnight-to-midnight window for ``day`` in the calendar timezone."""
    tz = ZoneInfo(settings.calendar.timezone)
    start = datetime.combine(day, time.min, tzinfo=tz)
    return start, start + timedelta(days=1)


async def busy_periods_for_date(
    provider: Optional[CalendarProvider], boat: Boat, day: date
) -> list[BusyPeriod]:
    """Busy time on ``day`` for a boat's calendar.

    Returns an empty list when the boat has no integration or the provider
    fails, so slot listing keeps working on local bookings alone.
    """
    if provider is None or not boat.calendar_integration_enabled or not boat.google_calendar_id:
        return []
    time_min, time_max = day_window(day)
    # Include the previous evening so overnight events spilling past midnight are seen.
    time_min -= timedelta(days=1)
    try:
        return await provider.check_availability(boat.google_calendar_id, time_min, time_max)
    except CalendarError as exc:
        logger.warning("Calendar check failed for boat %s on %s: %s", boat.id, day, exc)
        return []


def build_booking_event(booking: Booking, boat: Boat) -> dict[str, Any]:
    """Calendar event payload for a confirmed booking."""
    tz = settings.calendar.timezone
    start = datetime.combine(booking.start_date, datetime.strptime(booking.start_time, "%H:%M").time())
    end = datetime.combine(booking.end_date, datetime.strptime(booking.end_time, "%H:%M").time())
    description = "\n".join([
        f"Boat: {boat.name}",
        f"Customer: {booking.customer_name} ({booking.customer_email})",
        f"Guests: {booking.guests}",
        f"Location: {boat.location}",
        f"Total: ${booking.total_amount}",
        "",
        f"Special Requests: {booking.special_requests or 'None'}",
    ])
    attendees = [{"email": booking.customer_email}] if booking.customer_email else []
    if boat.owner_email:
        attendees.append({"email": boat.owner_email})

    return {
        "summary": f"{boat.name} - Booking #{booking.booking_reference or booking.id}",
        "description": description,
        "start": {"dateTime": start.isoformat(), "timeZone": tz},
        "end": {"dateTime": end.isoformat(), "timeZone": tz},
        "location": boat.location,
        "attendees": attendees,
        "reminders": {
            "useDefault": False,
            "overrides": [
                {"method": "email", "minutes": settings.calendar.reminder_email_minutes},
                {"method": "popup", "minutes": settings.calendar.reminder_popup_minutes},
            ],
        },
        "colorId": settings.calendar.event_color_id,
        "extendedProperties": {
            "private": {
                "bookingId": booking.id,
                "boatId": boat.id,
                "totalPrice": str(booking.total_amount),
            }
        },
    }
