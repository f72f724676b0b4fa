from django.urls import path

from registration.handlers import (
    AvailabilityView,
    BlockDatesView,
    CouponValidateView,
    ProcessRemindersView,
    PurchaseCancelView,
    PurchaseCreateView,
    PurchaseDetailView,
    UnblockDateView,
)

urlpatterns = [
    path("purchases", PurchaseCreateView.as_view(), name="purchase-create"),
    path("purchases/<str:purchase_id>", PurchaseDetailView.as_view(), name="purchase-detail"),
    path(
        "purchases/<str:purchase_id>/cancel",
        PurchaseCancelView.as_view(),
        name="purchase-cancel",
    ),
    path("coupons/validate", CouponValidateView.as_view(), name="coupon-validate"),
    path("calendar/availability", AvailabilityView.as_view(), name="calendar-availability"),
    path("admin/calendar/block", BlockDatesView.as_view(), name="calendar-block"),
    path("admin/calendar/unblock", UnblockDateView.as_view(), name="calendar-unblock"),
    path("admin/reminders/process", ProcessRemindersView.as_view(), name="reminders-process"),
]
