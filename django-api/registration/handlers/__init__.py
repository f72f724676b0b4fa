from registration.handlers.views import (
    AvailabilityView,
    BlockDatesView,
    CouponValidateView,
    ProcessRemindersView,
    PurchaseCancelView,
    PurchaseCreateView,
    PurchaseDetailView,
    UnblockDateView,
)

__all__ = [
    "AvailabilityView",
    "BlockDatesView",
    "CouponValidateView",
    "ProcessRemindersView",
    "PurchaseCancelView",
    "PurchaseCreateView",
    "PurchaseDetailView",
    "UnblockDateView",
]
