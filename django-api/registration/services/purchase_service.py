"""Purchase orchestrator - booking, discount and payment as one unit.

A purchase runs availability -> coupon -> pending booking -> charge ->
confirmation. The charge is an external call, so there is no transaction
spanning the whole sequence. Instead every step after booking creation
has a compensating path, and a purchase always ends in one of two
consistent states: confirmed with reminders scheduled, or cancelled with
no reminders and no coupon usage.

If the steps after a successful charge fail, the charge is refunded and the
booking is closed before the result is returned. Bookings that a crash left
pending are closed later by reconcile_pending_purchases.

Purchase failures are returned as PurchaseResult data. Status queries and
cancellation raise domain errors.
"""

import logging
import secrets
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Callable
from uuid import UUID

from django.utils import timezone

from registration.domain import (
    Attendee,
    Booking,
    BookingStatus,
    Money,
    PaymentStatus,
    PointOfContact,
)
from registration.domain.errors import (
    BookingNotFoundError,
    DuplicateRequestError,
    InvalidStateError,
    ProductNotFoundError,
    PurchaseNotFoundError,
    UpstreamError,
)
from registration.gateways.interfaces import (
    ChargeResult,
    PaymentGateway,
    PaymentRecord,
    Product,
    ProductCatalog,
)
from registration.services.booking_ledger import BookingLedger
from registration.services.calendar_gate import CalendarGate
from registration.services.coupon_service import CouponService, CouponValidation
from registration.services.purchase_notifier import PurchaseNotifier
from registration.services.reminder_scheduler import ReminderScheduler
from registration.stores.interfaces import RedemptionOutcome

logger = logging.getLogger(__name__)

PAYMENT_GATEWAY = "payment gateway"
INTERRUPTED = "Purchase was interrupted before confirmation"


class PurchaseOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    PENDING = "pending"


class FailureReason(str, Enum):
    VALIDATION_ERROR = "validation_error"
    PRODUCT_NOT_FOUND = "product_not_found"
    DATE_UNAVAILABLE = "date_unavailable"
    PAYMENT_DECLINED = "payment_declined"
    PAYMENT_ERROR = "payment_error"
    CONFIRMATION_ERROR = "confirmation_error"


@dataclass(frozen=True)
class PurchaseRequest:
    """Everything needed to buy a workshop."""

    product_id: str
    start_date: date | None
    attendees: tuple[Attendee, ...]
    payment_method: str
    point_of_contact: PointOfContact | None = None
    coupon_code: str = ""
    request_key: str | None = None


@dataclass(frozen=True)
class PurchaseResult:
    status: PurchaseOutcome
    purchase_id: str = ""
    booking_id: str = ""
    payment_id: str = ""
    confirmation_code: str = ""
    base_amount: Money = field(default_factory=Money.zero)
    discount_amount: Money = field(default_factory=Money.zero)
    total_amount: Money = field(default_factory=Money.zero)
    coupon_code: str = ""
    coupon_applied: bool = False
    coupon_reason: str = ""
    reason: str = ""
    message: str = ""
    errors: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PurchaseStatus:
    """Booking and payment joined into one view. Never stored."""

    purchase_id: str
    booking_id: str
    booking_status: BookingStatus
    payment_status: PaymentStatus
    total_amount: Money
    discount_amount: Money
    paid_amount: Money
    refunded_amount: Money
    confirmation_code: str
    payment_verified: bool
    created_at: datetime
    updated_at: datetime | None
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None


class PurchaseService:
    """Runs purchases, reports their status and cancels them with a refund."""

    def __init__(
        self,
        ledger: BookingLedger,
        coupons: CouponService,
        calendar: CalendarGate,
        catalog: ProductCatalog,
        payments: PaymentGateway,
        scheduler: ReminderScheduler,
        *,
        event_start: time = time(9, 0),
        event_end: time = time(17, 0),
        confirmation_prefix: str = "YOLO",
        notifier: PurchaseNotifier | None = None,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._ledger = ledger
        self._coupons = coupons
        self._calendar = calendar
        self._catalog = catalog
        self._payments = payments
        self._scheduler = scheduler
        self._event_start = event_start
        self._event_end = event_end
        self._confirmation_prefix = confirmation_prefix
        self._notifier = notifier
        self._clock = clock

    def process_purchase(self, request: PurchaseRequest) -> PurchaseResult:
        errors = self._validate(request)
        if errors:
            return PurchaseResult(
                status=PurchaseOutcome.FAILED,
                reason=FailureReason.VALIDATION_ERROR.value,
                message="Purchase request is incomplete",
                errors=errors,
            )

        if request.request_key:
            existing = self._ledger.find_by_request_key(request.request_key)
            if existing is not None:
                logger.info(f"Repeated purchase request {request.request_key} maps to booking {existing.id}")
                return self._result_for(existing)

        try:
            product = self._require_product(request.product_id)
        except ProductNotFoundError:
            return PurchaseResult(
                status=PurchaseOutcome.FAILED,
                reason=FailureReason.PRODUCT_NOT_FOUND.value,
                message=f"Unknown product {request.product_id}",
            )

        if not self._calendar.is_range_available(request.start_date, product.duration_days):
            logger.info(f"Purchase rejected: {request.start_date} is unavailable for {product.id}")
            return PurchaseResult(
                status=PurchaseOutcome.FAILED,
                reason=FailureReason.DATE_UNAVAILABLE.value,
                message="The requested dates are not available",
            )

        base_amount = product.price * len(request.attendees)
        validation = None
        if request.coupon_code.strip():
            validation = self._coupons.validate_coupon(request.coupon_code, base_amount)
        discount = validation.discount if validation and validation.is_valid else Money.zero()

        starts_at, ends_at = self._event_window(request.start_date, product.duration_days)
        try:
            booking = self._ledger.create_pending(
                product_id=product.id,
                start_date=request.start_date,
                event_starts_at=starts_at,
                event_ends_at=ends_at,
                attendees=request.attendees,
                point_of_contact=request.point_of_contact or self._contact_from(request.attendees[0]),
                base_amount=base_amount,
                discount_amount=discount,
                coupon_code=validation.code if validation and validation.is_valid else "",
                request_key=request.request_key,
            )
        except DuplicateRequestError:
            existing = self._ledger.find_by_request_key(request.request_key)
            if existing is None:
                raise
            logger.info(f"Concurrent purchase request {request.request_key} maps to booking {existing.id}")
            return self._result_for(existing)
        return self._capture(booking, request.payment_method, validation)

    def get_purchase_status(self, purchase_id: str) -> PurchaseStatus:
        """Return the current booking and payment state of a purchase.

        Raises:
            PurchaseNotFoundError: If no booking backs the purchase id.
        """
        booking = self._get_booking(purchase_id)
        record = None
        if booking.payment_id:
            try:
                record = self._payments.get_payment(booking.payment_id)
            except Exception:
                logger.warning(
                    f"Payment lookup failed for {booking.payment_id}; reporting ledger amounts",
                    exc_info=True,
                )
        return self._status_for(booking, record)

    def cancel_purchase(self, purchase_id: str) -> PurchaseStatus:
        """Refund a confirmed purchase, cancel its booking and its reminders.

        The refund completes before any state changes.

        Raises:
            PurchaseNotFoundError: If no booking backs the purchase id.
            InvalidStateError: If the purchase is not confirmed.
            UpstreamError: If the refund is rejected or errors; nothing is changed.
        """
        booking = self._get_booking(purchase_id)
        with self._ledger.locked(booking.id):
            booking = self._get_booking(purchase_id)
            if booking.status is BookingStatus.CANCELLED:
                raise InvalidStateError("Purchase is already cancelled", current=booking.status.value)
            if booking.status is not BookingStatus.CONFIRMED:
                raise InvalidStateError(
                    "Only confirmed purchases can be cancelled", current=booking.status.value
                )

            refunded = Money.zero()
            if booking.payment_id and not booking.total_amount.is_zero:
                self._refund(booking.id, booking.payment_id, booking.total_amount)
                refunded = booking.total_amount
            booking = self._ledger.cancel(booking.id, payment_status=PaymentStatus.REFUNDED)

        self._scheduler.cancel_reminders_for_booking(booking.id)
        logger.info(f"Purchase {booking.id} cancelled and refunded ({refunded})")
        if self._notifier is not None:
            self._notifier.purchase_cancelled(booking, refunded)
        return self._status_for(booking, None)

    def reconcile_pending_purchases(self, older_than: timedelta = timedelta(minutes=30)) -> int:
        """Close purchases left pending longer than older_than. Returns the number closed.

        The gateway is asked for a charge made under the booking's idempotency
        key. A captured charge is refunded before the booking is closed, so a
        purchase that never got confirmed never keeps the customer's money.
        Bookings whose refund or lookup fails stay pending for the next run.
        """
        closed = 0
        for booking in self._ledger.stale_pending(older_than):
            try:
                if self._close_interrupted(booking.id):
                    closed += 1
            except Exception:
                logger.exception(f"Could not reconcile pending purchase {booking.id}")
        if closed:
            logger.warning(f"Closed {closed} interrupted purchase(s)")
        return closed

    def _close_interrupted(self, booking_id: UUID) -> bool:
        with self._ledger.locked(booking_id):
            booking = self._ledger.get(booking_id)
            if booking.status is not BookingStatus.PENDING:
                return False
            record = None
            if not booking.total_amount.is_zero:
                record = self._payments.find_payment(str(booking.id))
            payment_id, payment_status = "", PaymentStatus.FAILED
            if record is not None:
                payment_id = record.id
                if record.status == "completed" and record.refunded_amount < record.amount:
                    self._refund(booking.id, record.id, record.amount - record.refunded_amount)
                    payment_status = PaymentStatus.REFUNDED
                elif record.status == "refunded":
                    payment_status = PaymentStatus.REFUNDED
            booking = self._ledger.fail(
                booking.id, reason=INTERRUPTED, payment_id=payment_id, payment_status=payment_status
            )
        self._scheduler.cancel_reminders_for_booking(booking.id)
        logger.warning(f"Pending purchase {booking.id} closed by reconciliation ({payment_status.value})")
        if self._notifier is not None:
            self._notifier.purchase_failed(booking, INTERRUPTED)
        return True

    def _capture(
        self, booking: Booking, payment_method: str, validation: CouponValidation | None
    ) -> PurchaseResult:
        if booking.total_amount.is_zero:
            charge = ChargeResult(id="", status="completed")
        else:
            try:
                charge = self._payments.charge(
                    booking.total_amount, idempotency_key=str(booking.id), method=payment_method
                )
            except Exception as exc:
                logger.warning(f"Charge for booking {booking.id} errored: {exc}", exc_info=True)
                reason = exc.reason if isinstance(exc, UpstreamError) else str(exc)
                return self._abandon(booking, validation, FailureReason.PAYMENT_ERROR, reason)

        if not charge.succeeded:
            return self._abandon(
                booking,
                validation,
                FailureReason.PAYMENT_DECLINED,
                charge.reason or f"Payment {charge.status}",
                payment_id=charge.id,
            )
        return self._finalize(booking, charge, validation)

    def _finalize(
        self, booking: Booking, charge: ChargeResult, validation: CouponValidation | None
    ) -> PurchaseResult:
        try:
            confirmed = self._ledger.confirm(
                booking.id, payment_id=charge.id, confirmation_code=self._confirmation_code()
            )
            self._scheduler.schedule_reminders_for_booking(confirmed.id)
            coupon_applied = self._record_coupon(confirmed, validation)
        except Exception as exc:
            logger.exception(f"Purchase {booking.id} could not be confirmed after payment")
            return self._unwind(booking, charge, validation, str(exc) or exc.__class__.__name__)

        logger.info(f"Purchase {confirmed.id} completed ({confirmed.confirmation_code})")
        if self._notifier is not None:
            self._notifier.purchase_confirmed(confirmed)
        return self._result_for(confirmed, validation, coupon_applied=coupon_applied)

    def _record_coupon(self, booking: Booking, validation: CouponValidation | None) -> bool:
        if validation is None or not validation.is_valid:
            return False
        application = self._coupons.apply_coupon(validation.code, booking.id, validation.discount)
        if application.outcome is RedemptionOutcome.LIMIT_REACHED:
            logger.warning(
                f"Coupon {validation.code} hit its limit while booking {booking.id} was paying; "
                "discount honoured without counting usage"
            )
        return application.outcome in (RedemptionOutcome.APPLIED, RedemptionOutcome.ALREADY_APPLIED)

    def _unwind(
        self,
        booking: Booking,
        charge: ChargeResult,
        validation: CouponValidation | None,
        error: str,
    ) -> PurchaseResult:
        """Refund a captured charge and close a booking that could not be confirmed."""
        current = self._ledger.get(booking.id)
        if current.status is BookingStatus.CANCELLED:
            logger.warning(f"Booking {booking.id} was already closed during compensation")
            return self._result_for(current, validation)

        captured = bool(charge.id) and not booking.total_amount.is_zero
        payment_status = PaymentStatus.COMPLETED if captured else PaymentStatus.FAILED
        if captured:
            try:
                self._refund(booking.id, charge.id, booking.total_amount)
                payment_status = PaymentStatus.REFUNDED
            except UpstreamError as exc:
                logger.error(
                    f"Refund of {charge.id} for unconfirmed booking {booking.id} failed, "
                    f"manual refund required: {exc.reason}"
                )

        closed = self._ledger.fail(
            booking.id, reason=error, payment_id=charge.id, payment_status=payment_status
        )
        try:
            self._scheduler.cancel_reminders_for_booking(closed.id)
        except Exception:
            logger.exception(f"Could not cancel reminders for unconfirmed booking {closed.id}")
        if self._notifier is not None:
            self._notifier.purchase_failed(closed, "We could not confirm your booking")
        return replace(
            self._result_for(closed, validation),
            reason=FailureReason.CONFIRMATION_ERROR.value,
            message="Payment was taken but the booking could not be confirmed",
        )

    def _abandon(
        self,
        booking: Booking,
        validation: CouponValidation | None,
        reason: FailureReason,
        message: str,
        payment_id: str = "",
    ) -> PurchaseResult:
        logger.warning(f"Payment for booking {booking.id} failed ({reason.value}): {message}")
        try:
            booking = self._ledger.fail(booking.id, reason=message, payment_id=payment_id)
        except InvalidStateError:
            logger.warning(f"Booking {booking.id} was already closed during compensation")
            booking = self._ledger.get(booking.id)
        if self._notifier is not None:
            self._notifier.purchase_failed(booking, message)
        return replace(
            self._result_for(booking, validation),
            reason=reason.value,
            message=message,
            payment_id=payment_id,
        )

    def _refund(self, booking_id: UUID, payment_id: str, amount: Money) -> None:
        try:
            refund = self._payments.refund(payment_id, amount)
        except UpstreamError:
            raise
        except Exception as exc:
            raise UpstreamError(PAYMENT_GATEWAY, str(exc)) from exc
        if not refund.succeeded:
            raise UpstreamError(PAYMENT_GATEWAY, refund.reason or f"refund {refund.status}")
        logger.info(f"Refund {refund.id} issued for booking {booking_id}")

    def _result_for(
        self,
        booking: Booking,
        validation: CouponValidation | None = None,
        coupon_applied: bool | None = None,
    ) -> PurchaseResult:
        outcome = {
            BookingStatus.PENDING: PurchaseOutcome.PENDING,
            BookingStatus.CONFIRMED: PurchaseOutcome.COMPLETED,
            BookingStatus.COMPLETED: PurchaseOutcome.COMPLETED,
            BookingStatus.CANCELLED: PurchaseOutcome.FAILED,
        }[booking.status]
        if coupon_applied is None:
            coupon_applied = bool(booking.coupon_code) and outcome is PurchaseOutcome.COMPLETED
        return PurchaseResult(
            status=outcome,
            purchase_id=str(booking.id),
            booking_id=str(booking.id),
            payment_id=booking.payment_id,
            confirmation_code=booking.confirmation_code,
            base_amount=booking.base_amount,
            discount_amount=booking.discount_amount,
            total_amount=booking.total_amount,
            coupon_code=validation.code if validation else booking.coupon_code,
            coupon_applied=coupon_applied,
            coupon_reason=validation.reason.value if validation and validation.reason else "",
            message=booking.failure_reason,
        )

    def _status_for(self, booking: Booking, record: PaymentRecord | None) -> PurchaseStatus:
        if record is not None:
            paid, refunded = record.amount, record.refunded_amount
        else:
            captured = booking.payment_status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED)
            paid = booking.total_amount if captured else Money.zero()
            refunded = booking.total_amount if booking.payment_status is PaymentStatus.REFUNDED else Money.zero()
        return PurchaseStatus(
            purchase_id=str(booking.id),
            booking_id=str(booking.id),
            booking_status=booking.status,
            payment_status=booking.payment_status,
            total_amount=booking.total_amount,
            discount_amount=booking.discount_amount,
            paid_amount=paid,
            refunded_amount=refunded,
            confirmation_code=booking.confirmation_code,
            payment_verified=record is not None,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
            confirmed_at=booking.confirmed_at,
            cancelled_at=booking.cancelled_at,
        )

    def _validate(self, request: PurchaseRequest) -> dict[str, str]:
        errors: dict[str, str] = {}
        if not (request.product_id or "").strip():
            errors["product_id"] = "This field is required."
        if request.start_date is None:
            errors["start_date"] = "This field is required."
        elif request.start_date < timezone.localdate(self._clock()):
            errors["start_date"] = "Start date cannot be in the past."
        if not request.attendees:
            errors["attendees"] = "At least one attendee is required."
        for index, attendee in enumerate(request.attendees):
            if not attendee.name.strip():
                errors[f"attendees[{index}].name"] = "This field is required."
            if "@" not in attendee.email:
                errors[f"attendees[{index}].email"] = "Enter a valid email address."
        if request.point_of_contact is not None and "@" not in request.point_of_contact.email:
            errors["point_of_contact.email"] = "Enter a valid email address."
        if not (request.payment_method or "").strip():
            errors["payment_method"] = "This field is required."
        return errors

    def _require_product(self, product_id: str) -> Product:
        product = self._catalog.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def _get_booking(self, purchase_id: str | UUID) -> Booking:
        try:
            return self._ledger.get(purchase_id)
        except BookingNotFoundError as exc:
            raise PurchaseNotFoundError(str(purchase_id)) from exc

    def _event_window(self, start_date: date, duration_days: int) -> tuple[datetime, datetime]:
        tz = timezone.get_current_timezone()
        starts_at = datetime.combine(start_date, self._event_start, tzinfo=tz)
        last_day = start_date + timedelta(days=max(duration_days, 1) - 1)
        ends_at = datetime.combine(last_day, self._event_end, tzinfo=tz)
        return starts_at, ends_at

    def _contact_from(self, attendee: Attendee) -> PointOfContact:
        return PointOfContact(name=attendee.name, email=attendee.email, phone=attendee.phone)

    def _confirmation_code(self) -> str:
        return f"{self._confirmation_prefix}-{secrets.token_hex(4).upper()}"
