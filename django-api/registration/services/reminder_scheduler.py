"""Reminder scheduler - turns a confirmed booking into reminder jobs."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable
from uuid import UUID, uuid4

from django.utils import timezone

from registration.domain import Booking, BookingStatus, ReminderJob, ReminderKind, ReminderOffset
from registration.domain.errors import BookingNotFoundError, InvalidStateError
from registration.services.booking_ledger import parse_booking_id
from registration.stores.interfaces import BookingStore, ReminderStore

logger = logging.getLogger(__name__)

DEFAULT_OFFSETS: tuple[ReminderOffset, ...] = (
    ReminderOffset(ReminderKind.REMINDER_48H, timedelta(hours=-48)),
    ReminderOffset(ReminderKind.REMINDER_24H, timedelta(hours=-24)),
    ReminderOffset(ReminderKind.REMINDER_2H, timedelta(hours=-2)),
    ReminderOffset(ReminderKind.POST_EVENT, timedelta(hours=2), anchor="end"),
)


class ReminderScheduler:
    """Creates and cancels the reminder jobs of a booking."""

    def __init__(
        self,
        bookings: BookingStore,
        reminders: ReminderStore,
        offsets: Iterable[ReminderOffset] = DEFAULT_OFFSETS,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._bookings = bookings
        self._reminders = reminders
        self._offsets = tuple(offsets)
        self._clock = clock

    def schedule_reminders_for_booking(self, booking_id: UUID | str) -> list[ReminderJob]:
        """Create one scheduled job per configured offset.

        A booking gets exactly one set of jobs; calling this again returns
        the existing set.

        Raises:
            BookingNotFoundError: If the booking does not exist.
            InvalidStateError: If the booking is not confirmed.
        """
        booking = self._get_booking(booking_id)
        if booking.status is not BookingStatus.CONFIRMED:
            raise InvalidStateError(
                "Reminders are only scheduled for confirmed bookings", current=booking.status.value
            )

        existing = self._reminders.list_for_booking(booking.id)
        if existing:
            return existing

        now = self._clock()
        jobs = self._reminders.add_many(self._build_job(booking, offset, now) for offset in self._offsets)
        logger.info(f"Scheduled {len(jobs)} reminders for booking {booking.id}")
        return sorted(jobs, key=lambda job: job.scheduled_for)

    def cancel_reminders_for_booking(self, booking_id: UUID | str) -> int:
        """Cancel the booking's scheduled and in-flight jobs. Sent and failed jobs are kept as history."""
        parsed = parse_booking_id(booking_id)
        if parsed is None:
            raise BookingNotFoundError(str(booking_id))
        cancelled = self._reminders.cancel_for_booking(parsed)
        logger.info(f"Cancelled {cancelled} reminders for booking {parsed}")
        return cancelled

    def reminder_history(self, booking_id: UUID | str) -> list[ReminderJob]:
        booking = self._get_booking(booking_id)
        return self._reminders.list_for_booking(booking.id)

    def _get_booking(self, booking_id: UUID | str) -> Booking:
        parsed = parse_booking_id(booking_id)
        booking = self._bookings.get(parsed) if parsed else None
        if booking is None:
            raise BookingNotFoundError(str(booking_id))
        return booking

    def _build_job(self, booking: Booking, offset: ReminderOffset, now: datetime) -> ReminderJob:
        anchor = booking.event_starts_at if offset.anchor == "start" else booking.event_ends_at
        return ReminderJob(
            id=uuid4(),
            booking_id=booking.id,
            workshop_id=booking.workshop_id,
            recipient_email=booking.point_of_contact.email,
            event_at=booking.event_starts_at,
            kind=offset.kind,
            scheduled_for=anchor + offset.delta,
            created_at=now,
        )
