"""Unit tests for CalendarGate.

The local blockout store decides availability; the mirror is best effort.
Run with: pytest tests/test_calendar_gate.py -v
"""

from datetime import date

import pytest

from fakes import FakeCalendarMirror
from registration.domain.errors import ValidationError
from registration.services import CalendarGate

DAY = date(2026, 10, 17)


class TestAvailability:
    """Tests for is_date_available and is_range_available."""

    def test_unblocked_date_is_available(self, calendar):
        assert calendar.is_date_available(DAY)

    def test_blocked_date_is_unavailable(self, calendar):
        calendar.block_date(DAY, "Holiday")
        assert not calendar.is_date_available(DAY)

    def test_range_checks_every_day(self, calendar):
        calendar.block_date(date(2026, 10, 19), "Venue closed")
        assert not calendar.is_range_available(DAY, days=3)
        assert calendar.is_range_available(DAY, days=2)

    def test_blocked_dates_lists_days_in_window(self, calendar):
        calendar.block_date_range(date(2026, 10, 16), date(2026, 10, 18), "Maintenance")
        calendar.block_date(date(2026, 10, 25))
        assert calendar.blocked_dates(DAY, date(2026, 10, 20)) == [DAY, date(2026, 10, 18)]


class TestBlocking:
    """Tests for block_date_range and unblock_date."""

    def test_block_records_mirror_event(self, calendar, mirror, blockout_store):
        block = calendar.block_date(DAY, "Holiday")
        assert block.external_event_id == "evt-1"
        assert blockout_store.blocks[block.id].external_event_id == "evt-1"

    def test_mirror_failure_keeps_local_block(self, blockout_store, clock):
        gate = CalendarGate(blockout_store, FakeCalendarMirror(fail=True), clock=clock)
        block = gate.block_date(DAY, "Holiday")
        assert block.external_event_id == ""
        assert not gate.is_date_available(DAY)

    def test_works_without_mirror(self, blockout_store, clock):
        gate = CalendarGate(blockout_store, clock=clock)
        gate.block_date(DAY)
        assert not gate.is_date_available(DAY)

    def test_reversed_range_is_rejected(self, calendar):
        with pytest.raises(ValidationError):
            calendar.block_date_range(date(2026, 10, 18), DAY)

    def test_unblock_removes_every_covering_block(self, calendar, mirror):
        calendar.block_date(DAY, "One")
        calendar.block_date_range(DAY, date(2026, 10, 19), "Two")
        assert calendar.unblock_date(DAY) == 2
        assert calendar.is_range_available(DAY, days=3)
        assert sorted(mirror.deleted) == ["evt-1", "evt-2"]

    def test_unblock_when_nothing_blocked(self, calendar):
        assert calendar.unblock_date(DAY) == 0

    def test_unblock_survives_mirror_failure(self, blockout_store, clock):
        mirror = FakeCalendarMirror()
        gate = CalendarGate(blockout_store, mirror, clock=clock)
        gate.block_date(DAY)
        mirror.fail = True
        assert gate.unblock_date(DAY) == 1
        assert gate.is_date_available(DAY)
