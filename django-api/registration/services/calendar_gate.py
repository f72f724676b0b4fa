"""Calendar availability gate.

The local blockout table is the source of truth. The external calendar is
only a mirror: failing to mirror never fails a local block or unblock.
"""

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Callable
from uuid import uuid4

from django.utils import timezone

from registration.domain import CalendarBlock, DateRange
from registration.domain.errors import ValidationError
from registration.gateways.interfaces import CalendarMirror
from registration.stores.interfaces import BlockoutStore

logger = logging.getLogger(__name__)


class CalendarGate:
    """Answers whether dates are bookable and maintains blockouts."""

    def __init__(
        self,
        store: BlockoutStore,
        mirror: CalendarMirror | None = None,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._store = store
        self._mirror = mirror
        self._clock = clock

    def is_date_available(self, day: date) -> bool:
        return not self._store.covering(day)

    def is_range_available(self, start: date, days: int = 1) -> bool:
        """True when no day of a workshop starting on start is blocked."""
        return not self._store.overlapping(DateRange.spanning(start, days))

    def block_date(self, day: date, reason: str = "") -> CalendarBlock:
        return self.block_date_range(day, day, reason)

    def block_date_range(self, start: date, end: date, reason: str = "") -> CalendarBlock:
        """Persist a blockout and mirror it to the external calendar when one is configured.

        Raises:
            ValidationError: If end is before start.
        """
        try:
            dates = DateRange(start=start, end=end)
        except ValueError as exc:
            raise ValidationError({"end_date": str(exc)}) from exc

        block = self._store.add(
            CalendarBlock(id=uuid4(), dates=dates, reason=reason, created_at=self._clock())
        )
        logger.info(f"Blocked {dates.start} to {dates.end}: {reason}")

        event_id = self._mirror_block(block)
        if event_id:
            self._store.set_external_event_id(block.id, event_id)
            block = replace(block, external_event_id=event_id)
        return block

    def unblock_date(self, day: date) -> int:
        """Remove every blockout covering day. Returns how many were removed."""
        removed = 0
        for block in self._store.covering(day):
            if self._store.remove(block.id):
                removed += 1
                self._unmirror_block(block)
        logger.info(f"Unblocked {day}: {removed} blockout(s) removed")
        return removed

    def blocked_dates(self, start: date, end: date) -> list[date]:
        """Every blocked day between start and end, inclusive and sorted."""
        window = DateRange(start=start, end=end)
        days: set[date] = set()
        for block in self._store.overlapping(window):
            days.update(day for day in block.dates.days() if window.contains(day))
        return sorted(days)

    def _mirror_block(self, block: CalendarBlock) -> str:
        if self._mirror is None:
            return ""
        try:
            return self._mirror.create_block_event(block.dates, block.reason)
        except Exception:
            logger.warning(f"Calendar mirror failed for blockout {block.id}; local block kept", exc_info=True)
            return ""

    def _unmirror_block(self, block: CalendarBlock) -> None:
        if self._mirror is None or not block.external_event_id:
            return
        try:
            self._mirror.delete_event(block.external_event_id)
        except Exception:
            logger.warning(
                f"Calendar mirror could not delete event {block.external_event_id}", exc_info=True
            )
