"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/models.py.
"""

import uuid

from django.db import models
from django.db.models import F, Q

from registration.domain.value_objects import (
    BookingStatus,
    DiscountType,
    NoticeKind,
    PaymentStatus,
    ReminderKind,
    ReminderStatus,
)


def _choices(enum_cls) -> list[tuple[str, str]]:
    return [(member.value, member.value.replace("_", " ").title()) for member in enum_cls]


class Booking(models.Model):
    """Persistence model for bookings."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    request_key = models.CharField(max_length=128, unique=True, null=True, blank=True)
    product_id = models.CharField(max_length=64)
    workshop_id = models.CharField(max_length=128, db_index=True)
    start_date = models.DateField()
    event_starts_at = models.DateTimeField()
    event_ends_at = models.DateTimeField()
    attendee_count = models.PositiveIntegerField()
    base_amount = models.DecimalField(max_digits=10, decimal_places=2)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)
    coupon_code = models.CharField(max_length=64, blank=True)
    status = models.CharField(
        max_length=16, choices=_choices(BookingStatus), default=BookingStatus.PENDING.value
    )
    payment_status = models.CharField(
        max_length=16, choices=_choices(PaymentStatus), default=PaymentStatus.PENDING.value
    )
    payment_id = models.CharField(max_length=128, blank=True)
    confirmation_code = models.CharField(max_length=32, blank=True)
    failure_reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "-created_at"]),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(total_amount__gte=0), name="booking_total_non_negative"),
        ]

    def __str__(self) -> str:
        return f"{self.workshop_id} - {self.status}"


class PointOfContact(models.Model):
    """Persistence model for a booking's point of contact."""

    booking = models.OneToOneField(
        Booking, on_delete=models.CASCADE, related_name="point_of_contact"
    )
    name = models.CharField(max_length=255)
    email = models.EmailField()
    phone = models.CharField(max_length=50, blank=True)
    company = models.CharField(max_length=255, blank=True)

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"


class Attendee(models.Model):
    """Persistence model for attendees."""

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="attendees")
    position = models.PositiveIntegerField(default=0)
    name = models.CharField(max_length=255)
    email = models.EmailField()
    phone = models.CharField(max_length=50, blank=True)
    dietary_requirements = models.TextField(blank=True)
    accessibility_needs = models.TextField(blank=True)

    class Meta:
        ordering = ["booking", "position"]

    def __str__(self) -> str:
        return self.name


class Coupon(models.Model):
    """Persistence model for discount codes. Codes are stored upper-case."""

    code = models.CharField(max_length=64, unique=True)
    description = models.CharField(max_length=255, blank=True)
    discount_type = models.CharField(max_length=16, choices=_choices(DiscountType))
    value = models.DecimalField(max_digits=10, decimal_places=2)
    minimum_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(usage_limit__isnull=True) | Q(usage_count__lte=F("usage_limit")),
                name="coupon_usage_within_limit",
            ),
        ]

    def save(self, *args, **kwargs):
        self.code = self.code.upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.code


class CouponRedemption(models.Model):
    """One coupon usage, keyed by booking so retries cannot double count."""

    coupon = models.ForeignKey(Coupon, on_delete=models.CASCADE, related_name="redemptions")
    booking_id = models.UUIDField()
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    redeemed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["coupon", "booking_id"], name="coupon_once_per_booking"),
        ]

    def __str__(self) -> str:
        return f"{self.coupon.code} - {self.booking_id}"


class CalendarBlockout(models.Model):
    """Persistence model for blocked date ranges. This table is the source of truth."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    start_date = models.DateField()
    end_date = models.DateField()
    reason = models.CharField(max_length=255, blank=True)
    external_event_id = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["start_date"]
        indexes = [
            models.Index(fields=["start_date", "end_date"]),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(end_date__gte=F("start_date")), name="blockout_range_ordered"),
        ]

    def __str__(self) -> str:
        return f"{self.start_date} - {self.end_date}"


class ReminderJob(models.Model):
    """Persistence model for scheduled reminder notifications."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="reminder_jobs")
    workshop_id = models.CharField(max_length=128, db_index=True)
    recipient_email = models.EmailField()
    event_at = models.DateTimeField()
    kind = models.CharField(max_length=16, choices=_choices(ReminderKind))
    scheduled_for = models.DateTimeField()
    status = models.CharField(
        max_length=16, choices=_choices(ReminderStatus), default=ReminderStatus.SCHEDULED.value
    )
    attempts = models.PositiveSmallIntegerField(default=0)
    claimed_at = models.DateTimeField(null=True, blank=True)
    last_attempt_at = models.DateTimeField(null=True, blank=True)
    last_error = models.TextField(blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    message_id = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["scheduled_for"]
        indexes = [
            models.Index(fields=["status", "scheduled_for"]),
        ]

    def __str__(self) -> str:
        return f"{self.kind} - {self.recipient_email} - {self.status}"


class ReminderTemplate(models.Model):
    """Editable email template for one reminder or purchase notice kind.

    Subject and bodies use Django template syntax. The HTML body is
    autoescaped, the subject and text body are not.
    """

    kind = models.CharField(
        max_length=32, choices=_choices(ReminderKind) + _choices(NoticeKind), unique=True
    )
    subject = models.CharField(max_length=255)
    html_body = models.TextField()
    text_body = models.TextField()
    is_active = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.kind
