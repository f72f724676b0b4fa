"""Django ORM implementation of the registration stores.

Every state change that can race (booking transitions, coupon usage,
reminder claims) is a conditional UPDATE so the database decides the winner.
"""

from contextlib import contextmanager
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Iterator
from uuid import UUID

from django.db import IntegrityError, transaction
from django.db.models import Case, F, Q, Value, When
from django.utils import timezone

from registration import models
from registration.domain import (
    Attendee,
    Booking,
    BookingStatus,
    CalendarBlock,
    Coupon,
    CouponUsage,
    DateRange,
    DiscountType,
    Money,
    PaymentStatus,
    PointOfContact,
    ReminderJob,
    ReminderKind,
    ReminderStatus,
)
from registration.domain.errors import DuplicateRequestError
from registration.stores.interfaces import (
    BlockoutStore,
    BookingStore,
    CouponStore,
    RedemptionOutcome,
    ReminderStore,
)


def _column(value: Any) -> Any:
    if isinstance(value, Money):
        return value.amount
    if isinstance(value, Enum):
        return value.value
    return value


def _columns(changes: dict[str, Any]) -> dict[str, Any]:
    return {name: _column(value) for name, value in changes.items()}


class DjangoBookingStore(BookingStore):
    """Relational booking store using Django ORM."""

    def _query(self):
        return models.Booking.objects.select_related("point_of_contact").prefetch_related("attendees")

    def _to_domain(self, row: models.Booking) -> Booking:
        contact = row.point_of_contact
        return Booking(
            id=row.id,
            product_id=row.product_id,
            workshop_id=row.workshop_id,
            start_date=row.start_date,
            event_starts_at=row.event_starts_at,
            event_ends_at=row.event_ends_at,
            attendees=tuple(
                Attendee(
                    name=attendee.name,
                    email=attendee.email,
                    phone=attendee.phone,
                    dietary_requirements=attendee.dietary_requirements,
                    accessibility_needs=attendee.accessibility_needs,
                )
                for attendee in row.attendees.all()
            ),
            point_of_contact=PointOfContact(
                name=contact.name, email=contact.email, phone=contact.phone, company=contact.company
            ),
            base_amount=Money(row.base_amount),
            discount_amount=Money(row.discount_amount),
            total_amount=Money(row.total_amount),
            status=BookingStatus(row.status),
            payment_status=PaymentStatus(row.payment_status),
            created_at=row.created_at,
            coupon_code=row.coupon_code,
            payment_id=row.payment_id,
            confirmation_code=row.confirmation_code,
            failure_reason=row.failure_reason,
            request_key=row.request_key,
            updated_at=row.updated_at,
            confirmed_at=row.confirmed_at,
            cancelled_at=row.cancelled_at,
        )

    def add(self, booking: Booking) -> Booking:
        try:
            self._insert(booking)
        except IntegrityError:
            if booking.request_key and self.get_by_request_key(booking.request_key) is not None:
                raise DuplicateRequestError(booking.request_key)
            raise
        return self.get(booking.id)

    def _insert(self, booking: Booking) -> None:
        with transaction.atomic():
            row = models.Booking.objects.create(
                id=booking.id,
                request_key=booking.request_key,
                product_id=booking.product_id,
                workshop_id=booking.workshop_id,
                start_date=booking.start_date,
                event_starts_at=booking.event_starts_at,
                event_ends_at=booking.event_ends_at,
                attendee_count=booking.attendee_count,
                base_amount=booking.base_amount.amount,
                discount_amount=booking.discount_amount.amount,
                total_amount=booking.total_amount.amount,
                coupon_code=booking.coupon_code,
                status=booking.status.value,
                payment_status=booking.payment_status.value,
                payment_id=booking.payment_id,
                confirmation_code=booking.confirmation_code,
                failure_reason=booking.failure_reason,
            )
            contact = booking.point_of_contact
            models.PointOfContact.objects.create(
                booking=row,
                name=contact.name,
                email=contact.email,
                phone=contact.phone,
                company=contact.company,
            )
            models.Attendee.objects.bulk_create(
                models.Attendee(
                    booking=row,
                    position=position,
                    name=attendee.name,
                    email=attendee.email,
                    phone=attendee.phone,
                    dietary_requirements=attendee.dietary_requirements,
                    accessibility_needs=attendee.accessibility_needs,
                )
                for position, attendee in enumerate(booking.attendees)
            )

    def get(self, booking_id: UUID) -> Booking | None:
        row = self._query().filter(pk=booking_id).first()
        return self._to_domain(row) if row else None

    def get_by_request_key(self, request_key: str) -> Booking | None:
        row = self._query().filter(request_key=request_key).first()
        return self._to_domain(row) if row else None

    def list_for_workshop(self, workshop_id: str) -> list[Booking]:
        rows = self._query().filter(workshop_id=workshop_id).order_by("created_at")
        return [self._to_domain(row) for row in rows]

    def list_pending(self, created_before: datetime) -> list[Booking]:
        rows = self._query().filter(
            status=BookingStatus.PENDING.value, created_at__lt=created_before
        ).order_by("created_at")
        return [self._to_domain(row) for row in rows]

    def transition(
        self, booking_id: UUID, expected: Iterable[BookingStatus], **changes: Any
    ) -> Booking | None:
        updated = models.Booking.objects.filter(
            pk=booking_id, status__in=[status.value for status in expected]
        ).update(updated_at=timezone.now(), **_columns(changes))
        return self.get(booking_id) if updated else None

    def update(self, booking_id: UUID, **changes: Any) -> Booking | None:
        updated = models.Booking.objects.filter(pk=booking_id).update(
            updated_at=timezone.now(), **_columns(changes)
        )
        return self.get(booking_id) if updated else None

    def delete(self, booking_id: UUID) -> bool:
        deleted, _ = models.Booking.objects.filter(pk=booking_id).delete()
        return deleted > 0

    @contextmanager
    def locked(self, booking_id: UUID) -> Iterator[None]:
        with transaction.atomic():
            list(models.Booking.objects.select_for_update().filter(pk=booking_id).values_list("pk"))
            yield


class DjangoCouponStore(CouponStore):
    """Relational coupon store using Django ORM."""

    def _to_domain(self, row: models.Coupon) -> Coupon:
        return Coupon(
            code=row.code,
            discount_type=DiscountType(row.discount_type),
            value=row.value,
            is_active=row.is_active,
            usage_count=row.usage_count,
            usage_limit=row.usage_limit,
            expires_at=row.expires_at,
            minimum_amount=Money(row.minimum_amount) if row.minimum_amount is not None else None,
            description=row.description,
        )

    def get_by_code(self, code: str) -> Coupon | None:
        row = models.Coupon.objects.filter(code=code.strip().upper()).first()
        return self._to_domain(row) if row else None

    def add(self, coupon: Coupon) -> Coupon:
        row = models.Coupon.objects.create(
            code=coupon.code,
            description=coupon.description,
            discount_type=coupon.discount_type.value,
            value=coupon.value,
            minimum_amount=coupon.minimum_amount.amount if coupon.minimum_amount else None,
            expires_at=coupon.expires_at,
            usage_limit=coupon.usage_limit,
            usage_count=coupon.usage_count,
            is_active=coupon.is_active,
        )
        return self._to_domain(row)

    def redeem(self, code: str, booking_id: UUID, discount: Money) -> RedemptionOutcome:
        try:
            with transaction.atomic():
                coupon = models.Coupon.objects.select_for_update().filter(code=code.strip().upper()).first()
                if coupon is None:
                    return RedemptionOutcome.NOT_FOUND
                if coupon.redemptions.filter(booking_id=booking_id).exists():
                    return RedemptionOutcome.ALREADY_APPLIED
                models.CouponRedemption.objects.create(
                    coupon=coupon, booking_id=booking_id, discount_amount=discount.amount
                )
                counted = (
                    models.Coupon.objects.filter(pk=coupon.pk)
                    .filter(Q(usage_limit__isnull=True) | Q(usage_count__lt=F("usage_limit")))
                    .update(usage_count=F("usage_count") + 1)
                )
                if not counted:
                    transaction.set_rollback(True)
                    return RedemptionOutcome.LIMIT_REACHED
        except IntegrityError:
            return RedemptionOutcome.ALREADY_APPLIED
        return RedemptionOutcome.APPLIED

    def usage(self, code: str) -> CouponUsage | None:
        row = models.Coupon.objects.filter(code=code.strip().upper()).first()
        if row is None:
            return None
        return CouponUsage(
            code=row.code,
            total_usage=row.usage_count,
            usage_limit=row.usage_limit,
            booking_ids=tuple(row.redemptions.order_by("redeemed_at").values_list("booking_id", flat=True)),
        )


class DjangoBlockoutStore(BlockoutStore):
    """Relational calendar blockout store using Django ORM."""

    def _to_domain(self, row: models.CalendarBlockout) -> CalendarBlock:
        return CalendarBlock(
            id=row.id,
            dates=DateRange(start=row.start_date, end=row.end_date),
            reason=row.reason,
            created_at=row.created_at,
            external_event_id=row.external_event_id,
        )

    def add(self, block: CalendarBlock) -> CalendarBlock:
        row = models.CalendarBlockout.objects.create(
            id=block.id,
            start_date=block.dates.start,
            end_date=block.dates.end,
            reason=block.reason,
            external_event_id=block.external_event_id,
        )
        return self._to_domain(row)

    def overlapping(self, dates: DateRange) -> list[CalendarBlock]:
        rows = models.CalendarBlockout.objects.filter(
            start_date__lte=dates.end, end_date__gte=dates.start
        ).order_by("start_date")
        return [self._to_domain(row) for row in rows]

    def covering(self, day: date) -> list[CalendarBlock]:
        return self.overlapping(DateRange.single(day))

    def set_external_event_id(self, block_id: UUID, event_id: str) -> None:
        models.CalendarBlockout.objects.filter(pk=block_id).update(external_event_id=event_id)

    def remove(self, block_id: UUID) -> bool:
        deleted, _ = models.CalendarBlockout.objects.filter(pk=block_id).delete()
        return deleted > 0


class DjangoReminderStore(ReminderStore):
    """Relational reminder job store using Django ORM."""

    _open = [ReminderStatus.SCHEDULED.value, ReminderStatus.SENDING.value]

    def _to_domain(self, row: models.ReminderJob) -> ReminderJob:
        return ReminderJob(
            id=row.id,
            booking_id=row.booking_id,
            workshop_id=row.workshop_id,
            recipient_email=row.recipient_email,
            event_at=row.event_at,
            kind=ReminderKind(row.kind),
            scheduled_for=row.scheduled_for,
            status=ReminderStatus(row.status),
            attempts=row.attempts,
            last_attempt_at=row.last_attempt_at,
            last_error=row.last_error,
            claimed_at=row.claimed_at,
            sent_at=row.sent_at,
            message_id=row.message_id,
            created_at=row.created_at,
        )

    def add_many(self, jobs: Iterable[ReminderJob]) -> list[ReminderJob]:
        rows = models.ReminderJob.objects.bulk_create(
            models.ReminderJob(
                id=job.id,
                booking_id=job.booking_id,
                workshop_id=job.workshop_id,
                recipient_email=job.recipient_email,
                event_at=job.event_at,
                kind=job.kind.value,
                scheduled_for=job.scheduled_for,
                status=job.status.value,
                attempts=job.attempts,
            )
            for job in jobs
        )
        return [self._to_domain(row) for row in rows]

    def get(self, job_id: UUID) -> ReminderJob | None:
        row = models.ReminderJob.objects.filter(pk=job_id).first()
        return self._to_domain(row) if row else None

    def list_for_booking(self, booking_id: UUID) -> list[ReminderJob]:
        rows = models.ReminderJob.objects.filter(booking_id=booking_id).order_by("scheduled_for")
        return [self._to_domain(row) for row in rows]

    def due(self, now: datetime, max_attempts: int, limit: int) -> list[ReminderJob]:
        rows = models.ReminderJob.objects.filter(
            status=ReminderStatus.SCHEDULED.value,
            scheduled_for__lte=now,
            attempts__lt=max_attempts,
        ).order_by("scheduled_for")[:limit]
        return [self._to_domain(row) for row in rows]

    def claim(self, job_id: UUID, now: datetime) -> ReminderJob | None:
        claimed = models.ReminderJob.objects.filter(
            pk=job_id, status=ReminderStatus.SCHEDULED.value
        ).update(status=ReminderStatus.SENDING.value, claimed_at=now, updated_at=now)
        return self.get(job_id) if claimed else None

    def release_stale_claims(self, claimed_before: datetime) -> int:
        return models.ReminderJob.objects.filter(
            status=ReminderStatus.SENDING.value, claimed_at__lt=claimed_before
        ).update(status=ReminderStatus.SCHEDULED.value, claimed_at=None, updated_at=timezone.now())

    def mark_sent(self, job_id: UUID, now: datetime, message_id: str) -> ReminderJob | None:
        updated = models.ReminderJob.objects.filter(pk=job_id, status__in=self._open).update(
            status=ReminderStatus.SENT.value,
            sent_at=now,
            last_attempt_at=now,
            message_id=message_id,
            claimed_at=None,
            updated_at=now,
        )
        return self.get(job_id) if updated else None

    def record_failure(
        self, job_id: UUID, now: datetime, error: str, max_attempts: int
    ) -> ReminderJob | None:
        # Case() sees the pre-update attempts value.
        updated = models.ReminderJob.objects.filter(pk=job_id, status__in=self._open).update(
            attempts=F("attempts") + 1,
            status=Case(
                When(attempts__gte=max_attempts - 1, then=Value(ReminderStatus.FAILED.value)),
                default=Value(ReminderStatus.SCHEDULED.value),
            ),
            last_attempt_at=now,
            last_error=error,
            claimed_at=None,
            updated_at=now,
        )
        return self.get(job_id) if updated else None

    def cancel_for_booking(self, booking_id: UUID) -> int:
        return models.ReminderJob.objects.filter(booking_id=booking_id, status__in=self._open).update(
            status=ReminderStatus.CANCELLED.value, claimed_at=None, updated_at=timezone.now()
        )

    def cancel(self, job_id: UUID, now: datetime) -> ReminderJob | None:
        updated = models.ReminderJob.objects.filter(pk=job_id, status__in=self._open).update(
            status=ReminderStatus.CANCELLED.value, claimed_at=None, updated_at=now
        )
        return self.get(job_id) if updated else None
