"""Pytest configuration and shared fixtures."""

from datetime import date, datetime, time, timezone as dt_timezone
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from fakes import (
    FakeCalendarMirror,
    FakeCatalog,
    FakeEmailGateway,
    FakePaymentGateway,
    FakeTemplateProvider,
    FixedClock,
    InMemoryBlockoutStore,
    InMemoryBookingStore,
    InMemoryCouponStore,
    InMemoryReminderStore,
)
from registration.domain import Attendee, Coupon, DiscountType, Money, PointOfContact
from registration.gateways.interfaces import Product
from registration.services import (
    BookingLedger,
    CalendarGate,
    CouponService,
    DispatchPolicy,
    PurchaseNotifier,
    PurchaseRequest,
    PurchaseService,
    ReminderDispatcher,
    ReminderScheduler,
)

WORKSHOP_DAY = date(2026, 10, 17)


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture(autouse=True)
def pacific_time(settings):
    settings.TIME_ZONE = "America/Los_Angeles"


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 10, 1, 17, 0, tzinfo=dt_timezone.utc))


@pytest.fixture
def booking_store() -> InMemoryBookingStore:
    return InMemoryBookingStore()


@pytest.fixture
def reminder_store() -> InMemoryReminderStore:
    return InMemoryReminderStore()


@pytest.fixture
def blockout_store() -> InMemoryBlockoutStore:
    return InMemoryBlockoutStore()


@pytest.fixture
def coupon_store() -> InMemoryCouponStore:
    return InMemoryCouponStore(
        Coupon(code="BETATEST100", discount_type=DiscountType.PERCENTAGE, value=Decimal("100")),
        Coupon(code="ADMINTEST25", discount_type=DiscountType.FIXED, value=Decimal("25"), usage_limit=2),
    )


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog(
        Product(
            id="prod-3day",
            name="3-Day AI Workshop",
            price=Money.of("3000"),
            duration_days=3,
            location="Innovation Hub, Room 4",
        ),
        Product(id="prod-1day", name="Intro Day", price=Money.of("500"), duration_days=1),
    )


@pytest.fixture
def payments() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def email() -> FakeEmailGateway:
    return FakeEmailGateway()


@pytest.fixture
def mirror() -> FakeCalendarMirror:
    return FakeCalendarMirror()


@pytest.fixture
def ledger(booking_store, clock) -> BookingLedger:
    return BookingLedger(booking_store, clock=clock)


@pytest.fixture
def coupons(coupon_store, clock) -> CouponService:
    return CouponService(coupon_store, clock=clock)


@pytest.fixture
def calendar(blockout_store, mirror, clock) -> CalendarGate:
    return CalendarGate(blockout_store, mirror, clock=clock)


@pytest.fixture
def scheduler(booking_store, reminder_store, clock) -> ReminderScheduler:
    return ReminderScheduler(booking_store, reminder_store, clock=clock)


@pytest.fixture
def notifier(email, catalog) -> PurchaseNotifier:
    return PurchaseNotifier(email, FakeTemplateProvider(), catalog)


@pytest.fixture
def purchases(ledger, coupons, calendar, catalog, payments, scheduler, notifier, clock) -> PurchaseService:
    return PurchaseService(
        ledger,
        coupons,
        calendar,
        catalog,
        payments,
        scheduler,
        event_start=time(9, 0),
        event_end=time(17, 0),
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def dispatcher(reminder_store, ledger, catalog, email, clock) -> ReminderDispatcher:
    return ReminderDispatcher(
        reminder_store,
        ledger,
        catalog,
        FakeTemplateProvider(),
        email,
        policy=DispatchPolicy(send_delay_seconds=0),
        clock=clock,
    )


@pytest.fixture
def make_request():
    """Factory for purchase requests on the default workshop day."""

    def factory(**overrides) -> PurchaseRequest:
        fields = {
            "product_id": "prod-3day",
            "start_date": WORKSHOP_DAY,
            "attendees": (Attendee(name="Ada Lovelace", email="ada@example.com"),),
            "payment_method": "card-nonce-ok",
            "point_of_contact": PointOfContact(name="Grace Hopper", email="grace@example.com"),
        }
        fields.update(overrides)
        return PurchaseRequest(**fields)

    return factory
