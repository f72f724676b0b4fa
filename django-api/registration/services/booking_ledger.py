"""Booking ledger - the only writer of booking state.

Services:
- Depend only on interfaces (stores)
- Validate domain invariants
- Perform orchestration and error mapping
- Return domain models or domain errors

Status moves only along pending -> confirmed -> {cancelled, completed},
plus pending -> cancelled when payment fails. A cancelled booking is never
resurrected.
"""

import logging
from contextlib import AbstractContextManager
from datetime import date, datetime, timedelta
from typing import Callable
from uuid import UUID, uuid4

from django.utils import timezone

from registration.domain import (
    Attendee,
    Booking,
    BookingStatus,
    Money,
    PaymentStatus,
    PointOfContact,
)
from registration.domain.errors import BookingNotFoundError, InvalidStateError
from registration.stores.interfaces import BookingStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}


def workshop_id_for(product_id: str, start_date: date) -> str:
    return f"workshop-{product_id}-{start_date.isoformat()}"


def parse_booking_id(value: UUID | str) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class BookingLedger:
    """Creates bookings and moves them through their lifecycle."""

    def __init__(self, store: BookingStore, clock: Callable[[], datetime] = timezone.now) -> None:
        self._store = store
        self._clock = clock

    def create_pending(
        self,
        *,
        product_id: str,
        start_date: date,
        event_starts_at: datetime,
        event_ends_at: datetime,
        attendees: tuple[Attendee, ...],
        point_of_contact: PointOfContact,
        base_amount: Money,
        discount_amount: Money,
        coupon_code: str = "",
        request_key: str | None = None,
    ) -> Booking:
        """Persist a new pending booking whose total is base minus discount."""
        booking = Booking(
            id=uuid4(),
            product_id=product_id,
            workshop_id=workshop_id_for(product_id, start_date),
            start_date=start_date,
            event_starts_at=event_starts_at,
            event_ends_at=event_ends_at,
            attendees=tuple(attendees),
            point_of_contact=point_of_contact,
            base_amount=base_amount,
            discount_amount=discount_amount,
            total_amount=base_amount - discount_amount,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            created_at=self._clock(),
            coupon_code=coupon_code,
            request_key=request_key,
        )
        created = self._store.add(booking)
        logger.info(f"Booking {created.id} created for {created.workshop_id} ({created.total_amount})")
        return created

    def get(self, booking_id: UUID | str) -> Booking:
        """Return a booking by ID.

        Raises:
            BookingNotFoundError: If the id is malformed or the booking does not exist.
        """
        parsed = parse_booking_id(booking_id)
        booking = self._store.get(parsed) if parsed else None
        if booking is None:
            raise BookingNotFoundError(str(booking_id))
        return booking

    def find_by_request_key(self, request_key: str) -> Booking | None:
        return self._store.get_by_request_key(request_key)

    def list_for_workshop(self, workshop_id: str) -> list[Booking]:
        return self._store.list_for_workshop(workshop_id)

    def stale_pending(self, older_than: timedelta) -> list[Booking]:
        """Return pending bookings created more than older_than ago."""
        return self._store.list_pending(self._clock() - older_than)

    def confirm(self, booking_id: UUID, *, payment_id: str, confirmation_code: str) -> Booking:
        return self._transition(
            booking_id,
            BookingStatus.CONFIRMED,
            payment_status=PaymentStatus.COMPLETED,
            payment_id=payment_id,
            confirmation_code=confirmation_code,
            confirmed_at=self._clock(),
        )

    def fail(
        self,
        booking_id: UUID,
        *,
        reason: str,
        payment_id: str = "",
        payment_status: PaymentStatus = PaymentStatus.FAILED,
    ) -> Booking:
        """Close a booking whose purchase did not go through.

        payment_status records what happened to any captured money, for
        example REFUNDED when the charge was reversed.
        """
        return self._transition(
            booking_id,
            BookingStatus.CANCELLED,
            payment_status=payment_status,
            payment_id=payment_id,
            failure_reason=reason[:255],
            cancelled_at=self._clock(),
        )

    def cancel(self, booking_id: UUID, *, payment_status: PaymentStatus) -> Booking:
        return self._transition(
            booking_id,
            BookingStatus.CANCELLED,
            payment_status=payment_status,
            cancelled_at=self._clock(),
        )

    def complete(self, booking_id: UUID) -> Booking:
        return self._transition(booking_id, BookingStatus.COMPLETED)

    def delete(self, booking_id: UUID) -> None:
        """Delete a booking together with its attendees."""
        if not self._store.delete(booking_id):
            raise BookingNotFoundError(str(booking_id))

    def locked(self, booking_id: UUID) -> AbstractContextManager[None]:
        return self._store.locked(booking_id)

    def _transition(self, booking_id: UUID, target: BookingStatus, **changes) -> Booking:
        sources = [source for source, targets in ALLOWED_TRANSITIONS.items() if target in targets]
        updated = self._store.transition(booking_id, sources, status=target, **changes)
        if updated is not None:
            logger.info(f"Booking {booking_id} is now {target.value}")
            return updated
        current = self._store.get(booking_id)
        if current is None:
            raise BookingNotFoundError(str(booking_id))
        raise InvalidStateError(
            f"Booking cannot move from {current.status.value} to {target.value}",
            current=current.status.value,
        )
