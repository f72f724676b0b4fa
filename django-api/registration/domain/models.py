"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in registration/models.py (persistence layer).
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from registration.domain.value_objects import (
    BookingStatus,
    DateRange,
    DiscountType,
    Money,
    PaymentStatus,
    ReminderKind,
    ReminderStatus,
)


@dataclass(frozen=True)
class Attendee:
    """A person attending a booked workshop. Owned by exactly one booking."""

    name: str
    email: str
    phone: str = ""
    dietary_requirements: str = ""
    accessibility_needs: str = ""


@dataclass(frozen=True)
class PointOfContact:
    """The person responsible for a booking; receives all notifications."""

    name: str
    email: str
    phone: str = ""
    company: str = ""


@dataclass(frozen=True)
class Booking:
    """Domain representation of a Booking."""

    id: UUID
    product_id: str
    workshop_id: str
    start_date: date
    event_starts_at: datetime
    event_ends_at: datetime
    attendees: tuple[Attendee, ...]
    point_of_contact: PointOfContact
    base_amount: Money
    discount_amount: Money
    total_amount: Money
    status: BookingStatus
    payment_status: PaymentStatus
    created_at: datetime
    coupon_code: str = ""
    payment_id: str = ""
    confirmation_code: str = ""
    failure_reason: str = ""
    request_key: str | None = None
    updated_at: datetime | None = None
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.attendees:
            raise ValueError("A booking needs at least one attendee")

    @property
    def attendee_count(self) -> int:
        return len(self.attendees)

    @property
    def is_terminal(self) -> bool:
        return self.status in (BookingStatus.CANCELLED, BookingStatus.COMPLETED)


@dataclass(frozen=True)
class Coupon:
    """Domain representation of a discount code."""

    code: str
    discount_type: DiscountType
    value: Decimal
    is_active: bool = True
    usage_count: int = 0
    usage_limit: int | None = None
    expires_at: datetime | None = None
    minimum_amount: Money | None = None
    description: str = ""

    def __post_init__(self) -> None:
        if self.value <= 0:
            raise ValueError("Coupon value must be positive")
        if self.discount_type is DiscountType.PERCENTAGE and self.value > 100:
            raise ValueError("Percentage coupons cannot exceed 100")
        if self.usage_limit is not None and self.usage_count > self.usage_limit:
            raise ValueError("Coupon usage cannot exceed its limit")

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.usage_count >= self.usage_limit

    def discount_for(self, amount: Money) -> Money:
        if self.discount_type is DiscountType.PERCENTAGE:
            discount = amount.percentage(self.value)
        else:
            discount = Money(self.value)
        return min(discount, amount)


@dataclass(frozen=True)
class CalendarBlock:
    """A blocked range of days, mirrored to the external calendar when possible."""

    id: UUID
    dates: DateRange
    reason: str
    created_at: datetime
    external_event_id: str = ""


@dataclass(frozen=True)
class ReminderJob:
    """A single scheduled notification for a booking."""

    id: UUID
    booking_id: UUID
    workshop_id: str
    recipient_email: str
    event_at: datetime
    kind: ReminderKind
    scheduled_for: datetime
    status: ReminderStatus = ReminderStatus.SCHEDULED
    attempts: int = 0
    last_attempt_at: datetime | None = None
    last_error: str = ""
    claimed_at: datetime | None = None
    sent_at: datetime | None = None
    message_id: str = ""
    created_at: datetime | None = None


@dataclass(frozen=True)
class CouponUsage:
    """Usage summary for a coupon code."""

    code: str
    total_usage: int
    usage_limit: int | None
    booking_ids: tuple[UUID, ...] = field(default_factory=tuple)

    @property
    def remaining_uses(self) -> int | None:
        if self.usage_limit is None:
            return None
        return max(self.usage_limit - self.total_usage, 0)
