"""Wires stores, collaborators and services from settings.REGISTRATION."""

from dataclasses import dataclass
from datetime import time, timedelta
from functools import cache
from typing import Any

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from registration.domain import ReminderKind, ReminderOffset
from registration.services import (
    DEFAULT_OFFSETS,
    BookingLedger,
    CalendarGate,
    CouponService,
    DispatchPolicy,
    PurchaseNotifier,
    PurchaseService,
    ReminderDispatcher,
    ReminderScheduler,
)
from registration.stores import (
    DjangoBlockoutStore,
    DjangoBookingStore,
    DjangoCouponStore,
    DjangoReminderStore,
)


@dataclass(frozen=True)
class Container:
    ledger: BookingLedger
    coupons: CouponService
    calendar: CalendarGate
    scheduler: ReminderScheduler
    purchases: PurchaseService
    dispatcher: ReminderDispatcher


def _config() -> dict[str, Any]:
    return getattr(settings, "REGISTRATION", {})


def _collaborator(key: str, required: bool = True):
    spec = _config().get(key)
    if not spec:
        if required:
            raise ImproperlyConfigured(f"REGISTRATION['{key}'] must name a class")
        return None
    if isinstance(spec, dict):
        return import_string(spec["CLASS"])(**spec.get("OPTIONS", {}))
    return import_string(spec)()


def reminder_offsets() -> tuple[ReminderOffset, ...]:
    """Parse REMINDER_OFFSETS entries of (kind, hours, anchor)."""
    entries = _config().get("REMINDER_OFFSETS")
    if not entries:
        return DEFAULT_OFFSETS
    return tuple(
        ReminderOffset(ReminderKind(kind), timedelta(hours=hours), anchor)
        for kind, hours, anchor in entries
    )


def dispatch_policy() -> DispatchPolicy:
    config = _config()
    return DispatchPolicy(
        max_attempts=config.get("REMINDER_MAX_ATTEMPTS", 3),
        batch_size=config.get("REMINDER_BATCH_SIZE", 50),
        send_delay_seconds=config.get("REMINDER_SEND_DELAY_SECONDS", 1.0),
        claim_timeout=timedelta(minutes=config.get("REMINDER_CLAIM_TIMEOUT_MINUTES", 15)),
    )


def pending_lease() -> timedelta:
    """How long a purchase may stay pending before reconciliation closes it."""
    return timedelta(minutes=_config().get("PENDING_LEASE_MINUTES", 30))


def build_container(**overrides: Any) -> Container:
    """Build every service. Collaborators can be replaced by keyword, e.g. payments=..."""
    config = _config()
    bookings = overrides.get("bookings") or DjangoBookingStore()
    reminders = overrides.get("reminders") or DjangoReminderStore()
    catalog = overrides.get("catalog") or _collaborator("PRODUCT_CATALOG")
    payments = overrides.get("payments") or _collaborator("PAYMENT_GATEWAY")
    email = overrides.get("email") or _collaborator("EMAIL_GATEWAY")
    templates = overrides.get("templates") or _collaborator("TEMPLATE_PROVIDER")
    mirror = overrides.get("mirror") or _collaborator("CALENDAR_MIRROR", required=False)

    ledger = BookingLedger(bookings)
    coupons = CouponService(overrides.get("coupons") or DjangoCouponStore())
    calendar = CalendarGate(overrides.get("blockouts") or DjangoBlockoutStore(), mirror)
    scheduler = ReminderScheduler(bookings, reminders, offsets=reminder_offsets())
    purchases = PurchaseService(
        ledger,
        coupons,
        calendar,
        catalog,
        payments,
        scheduler,
        event_start=time.fromisoformat(config.get("EVENT_START_TIME", "09:00")),
        event_end=time.fromisoformat(config.get("EVENT_END_TIME", "17:00")),
        confirmation_prefix=config.get("CONFIRMATION_PREFIX", "YOLO"),
        notifier=PurchaseNotifier(email, templates, catalog),
    )
    dispatcher = ReminderDispatcher(
        reminders, ledger, catalog, templates, email, policy=dispatch_policy()
    )
    return Container(
        ledger=ledger,
        coupons=coupons,
        calendar=calendar,
        scheduler=scheduler,
        purchases=purchases,
        dispatcher=dispatcher,
    )


@cache
def get_container() -> Container:
    return build_container()
