"""Tests for the in-memory and JSON file repositories."""

import json
from decimal import Decimal

import pytest

from harbourlux.schemas.booking_schema import Booking, BookingStatus
from harbourlux.stores.repository import (
    InMemoryRepository,
    JsonFileRepository,
    RecordNotFoundError,
    StaleRecordError,
)
from tests.conftest import MONDAY, make_booking


@pytest.fixture
def repo():
    return InMemoryRepository(Booking, [
        make_booking("09:00", "13:00", id="a"),
        make_booking("14:00", "18:00", id="b", status=BookingStatus.PENDING_APPROVAL),
        make_booking("19:00", "23:00", id="c", boat_id="b2"),
    ])


class TestInMemoryRepository:
    def test_empty_filter_returns_everything_in_order(self, repo):
        assert [b.id for b in repo.filter()] == ["a", "b", "c"]

    def test_filter_matches_every_field(self, repo):
        found = repo.filter(boat_id="b1", status=BookingStatus.CONFIRMED)
        assert [b.id for b in found] == ["a"]

    def test_filter_by_date(self, repo):
        assert len(repo.filter(start_date=MONDAY)) == 3

    def test_get_missing_raises(self, repo):
        with pytest.raises(RecordNotFoundError):
            repo.get("nope")

    def test_not_found_is_a_key_error(self, repo):
        with pytest.raises(KeyError):
            repo.get("nope")

    def test_returned_records_are_copies(self, repo):
        record = repo.get("a")
        record.guests = 99
        assert repo.get("a").guests == 2

    def test_create_duplicate_id_rejected(self, repo):
        with pytest.raises(ValueError, match="already exists"):
            repo.create(make_booking(id="a"))

    def test_update_applies_patch(self, repo):
        updated = repo.update("b", {"guests": 5, "special_requests": "Birthday"})
        assert updated.guests == 5
        assert repo.get("b").special_requests == "Birthday"

    def test_update_validates_patch(self, repo):
        updated = repo.update("a", {"total_amount": "123.40"})
        assert updated.total_amount == Decimal("123.40")

    def test_update_with_matching_expectation(self, repo):
        updated = repo.update(
            "b", {"status": BookingStatus.CONFIRMED}, expect={"status": BookingStatus.PENDING_APPROVAL}
        )
        assert updated.status == BookingStatus.CONFIRMED

    def test_stale_expectation_writes_nothing(self, repo):
        with pytest.raises(StaleRecordError):
            repo.update("a", {"status": BookingStatus.REJECTED}, expect={"status": BookingStatus.PENDING_APPROVAL})
        assert repo.get("a").status == BookingStatus.CONFIRMED

    def test_update_missing_raises(self, repo):
        with pytest.raises(RecordNotFoundError):
            repo.update("nope", {"guests": 1})

    def test_len(self, repo):
        assert len(repo) == 3


class TestJsonFileRepository:
    def test_records_survive_reload(self, tmp_path):
        path = tmp_path / "bookings.json"
        repo = JsonFileRepository(Booking, path)
        repo.create(make_booking(id="a"))
        repo.update("a", {"guests": 7})

        reloaded = JsonFileRepository(Booking, path)
        booking = reloaded.get("a")
        assert booking.guests == 7
        assert booking.start_date == MONDAY
        assert booking.total_amount == Decimal("400")

    def test_file_is_a_json_array(self, tmp_path):
        path = tmp_path / "data" / "bookings.json"
        repo = JsonFileRepository(Booking, path)
        repo.create(make_booking(id="a"))
        payload = json.loads(path.read_text(encoding="utf-8"))
        assert [item["id"] for item in payload] == ["a"]
        assert not path.with_suffix(".json.tmp").exists()

    def test_missing_file_starts_empty(self, tmp_path):
        repo = JsonFileRepository(Booking, tmp_path / "none.json")
        assert repo.filter() == []


class TestFilterProperties:
    def test_filtering_twice_equals_filtering_once(self, repo):
        once = repo.filter(boat_id="b1")
        again = [b for b in once if b.boat_id == "b1"]
        assert [b.id for b in again] == [b.id for b in once]
        assert repo.filter(boat_id="b1") == once
