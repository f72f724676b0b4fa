"""Store interfaces (repository pattern).

Stores must be swappable and return domain models. The Django ORM
implementations are the single storage-backed version; in-memory fakes
implementing the same interfaces exist only in the test suite.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable
from uuid import UUID

from registration.domain import (
    Booking,
    BookingStatus,
    CalendarBlock,
    Coupon,
    CouponUsage,
    DateRange,
    Money,
    ReminderJob,
)


class RedemptionOutcome(Enum):
    """Result of recording a coupon usage against a booking."""

    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    LIMIT_REACHED = "limit_reached"
    NOT_FOUND = "not_found"


class BookingStore(ABC):
    """Interface for booking persistence operations."""

    @abstractmethod
    def add(self, booking: Booking) -> Booking:
        """Persist a new booking with its attendees and point of contact.

        Raises:
            DuplicateRequestError: If another booking already holds its request_key.
        """
        ...

    @abstractmethod
    def get(self, booking_id: UUID) -> Booking | None:
        """Return a booking by ID, or None if not found."""
        ...

    @abstractmethod
    def get_by_request_key(self, request_key: str) -> Booking | None:
        """Return the booking created for a client request key, if any."""
        ...

    @abstractmethod
    def list_for_workshop(self, workshop_id: str) -> list[Booking]:
        """Return all bookings for a workshop ordered by created_at ascending."""
        ...

    @abstractmethod
    def list_pending(self, created_before: datetime) -> list[Booking]:
        """Return bookings still pending that were created before created_before, oldest first."""
        ...

    @abstractmethod
    def transition(
        self, booking_id: UUID, expected: Iterable[BookingStatus], **changes: Any
    ) -> Booking | None:
        """Apply changes only if the current status is one of expected.

        Returns the updated booking, or None when the status did not match.
        """
        ...

    @abstractmethod
    def update(self, booking_id: UUID, **changes: Any) -> Booking | None:
        """Apply field changes unconditionally."""
        ...

    @abstractmethod
    def delete(self, booking_id: UUID) -> bool:
        """Delete a booking and its attendees. Returns False if absent."""
        ...

    @abstractmethod
    def locked(self, booking_id: UUID) -> AbstractContextManager[None]:
        """Hold an exclusive per-booking lock for the duration of the block."""
        ...


class CouponStore(ABC):
    """Interface for coupon persistence operations."""

    @abstractmethod
    def get_by_code(self, code: str) -> Coupon | None:
        """Return a coupon by case-insensitive code, or None if not found."""
        ...

    @abstractmethod
    def add(self, coupon: Coupon) -> Coupon:
        """Persist a new coupon."""
        ...

    @abstractmethod
    def redeem(self, code: str, booking_id: UUID, discount: Money) -> RedemptionOutcome:
        """Record one usage for booking_id, at most once per booking."""
        ...

    @abstractmethod
    def usage(self, code: str) -> CouponUsage | None:
        """Return usage totals for a coupon, or None if not found."""
        ...


class BlockoutStore(ABC):
    """Interface for calendar blockout persistence operations."""

    @abstractmethod
    def add(self, block: CalendarBlock) -> CalendarBlock:
        """Persist a new blockout."""
        ...

    @abstractmethod
    def overlapping(self, dates: DateRange) -> list[CalendarBlock]:
        """Return blockouts intersecting the range, ordered by start date."""
        ...

    @abstractmethod
    def covering(self, day: date) -> list[CalendarBlock]:
        """Return blockouts whose range includes day."""
        ...

    @abstractmethod
    def set_external_event_id(self, block_id: UUID, event_id: str) -> None:
        """Record the mirrored calendar event for a blockout."""
        ...

    @abstractmethod
    def remove(self, block_id: UUID) -> bool:
        """Delete a blockout. Returns False if absent."""
        ...


class ReminderStore(ABC):
    """Interface for reminder job persistence operations."""

    @abstractmethod
    def add_many(self, jobs: Iterable[ReminderJob]) -> list[ReminderJob]:
        """Persist new reminder jobs."""
        ...

    @abstractmethod
    def get(self, job_id: UUID) -> ReminderJob | None:
        """Return a job by ID, or None if not found."""
        ...

    @abstractmethod
    def list_for_booking(self, booking_id: UUID) -> list[ReminderJob]:
        """Return all jobs for a booking ordered by scheduled_for ascending."""
        ...

    @abstractmethod
    def due(self, now: datetime, max_attempts: int, limit: int) -> list[ReminderJob]:
        """Return scheduled jobs due at now with attempts below max_attempts.

        Ordered earliest first and capped at limit.
        """
        ...

    @abstractmethod
    def claim(self, job_id: UUID, now: datetime) -> ReminderJob | None:
        """Atomically move a job from scheduled to sending.

        Returns None if another worker already claimed it or it left the
        scheduled state.
        """
        ...

    @abstractmethod
    def release_stale_claims(self, claimed_before: datetime) -> int:
        """Return jobs stuck in sending since before claimed_before to scheduled."""
        ...

    @abstractmethod
    def mark_sent(self, job_id: UUID, now: datetime, message_id: str) -> ReminderJob | None:
        """Record a successful delivery."""
        ...

    @abstractmethod
    def record_failure(
        self, job_id: UUID, now: datetime, error: str, max_attempts: int
    ) -> ReminderJob | None:
        """Count a failed attempt; the job becomes failed once attempts reach max_attempts."""
        ...

    @abstractmethod
    def cancel_for_booking(self, booking_id: UUID) -> int:
        """Cancel every scheduled or in-flight job for a booking. Returns the number cancelled."""
        ...

    @abstractmethod
    def cancel(self, job_id: UUID, now: datetime) -> ReminderJob | None:
        """Cancel one scheduled or in-flight job. Returns None if it already finished."""
        ...
