from registration.domain.models import (
    Attendee,
    Booking,
    CalendarBlock,
    Coupon,
    CouponUsage,
    PointOfContact,
    ReminderJob,
)
from registration.domain.value_objects import (
    BookingStatus,
    DateRange,
    DiscountType,
    Money,
    NoticeKind,
    PaymentStatus,
    ReminderKind,
    ReminderOffset,
    ReminderStatus,
)

__all__ = [
    "Attendee",
    "Booking",
    "CalendarBlock",
    "Coupon",
    "CouponUsage",
    "PointOfContact",
    "ReminderJob",
    "BookingStatus",
    "DateRange",
    "DiscountType",
    "Money",
    "NoticeKind",
    "PaymentStatus",
    "ReminderKind",
    "ReminderOffset",
    "ReminderStatus",
]
