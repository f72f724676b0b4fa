from registration.services.booking_ledger import BookingLedger
from registration.services.calendar_gate import CalendarGate
from registration.services.coupon_service import CouponReason, CouponService, CouponValidation
from registration.services.purchase_notifier import PurchaseNotifier
from registration.services.purchase_service import (
    PurchaseOutcome,
    PurchaseRequest,
    PurchaseResult,
    PurchaseService,
    PurchaseStatus,
)
from registration.services.reminder_dispatcher import DispatchPolicy, ReminderDispatcher
from registration.services.reminder_scheduler import DEFAULT_OFFSETS, ReminderScheduler

__all__ = [
    "BookingLedger",
    "CalendarGate",
    "CouponReason",
    "CouponService",
    "CouponValidation",
    "DEFAULT_OFFSETS",
    "DispatchPolicy",
    "PurchaseNotifier",
    "PurchaseOutcome",
    "PurchaseRequest",
    "PurchaseResult",
    "PurchaseService",
    "PurchaseStatus",
    "ReminderDispatcher",
    "ReminderScheduler",
]
