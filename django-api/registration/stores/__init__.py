from registration.stores.django_store import (
    DjangoBlockoutStore,
    DjangoBookingStore,
    DjangoCouponStore,
    DjangoReminderStore,
)
from registration.stores.interfaces import (
    BlockoutStore,
    BookingStore,
    CouponStore,
    RedemptionOutcome,
    ReminderStore,
)

__all__ = [
    "BlockoutStore",
    "BookingStore",
    "CouponStore",
    "RedemptionOutcome",
    "ReminderStore",
    "DjangoBlockoutStore",
    "DjangoBookingStore",
    "DjangoCouponStore",
    "DjangoReminderStore",
]
