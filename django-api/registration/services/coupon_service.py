"""Coupon engine.

Ineligible coupons are data, not exceptions: every validation carries a
reason code callers can branch on.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable
from uuid import UUID

from django.utils import timezone

from registration.domain import Coupon, CouponUsage, DiscountType, Money
from registration.domain.errors import CouponNotFoundError, ValidationError
from registration.stores.interfaces import CouponStore, RedemptionOutcome

logger = logging.getLogger(__name__)


class CouponReason(str, Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    USAGE_EXCEEDED = "usage_exceeded"
    BELOW_MINIMUM = "below_minimum"


@dataclass(frozen=True)
class CouponValidation:
    """Outcome of checking a code against an order amount."""

    code: str
    amount: Money
    discount: Money
    reason: CouponReason | None = None
    coupon: Coupon | None = None

    @property
    def is_valid(self) -> bool:
        return self.reason is None

    @property
    def final_amount(self) -> Money:
        return self.amount - self.discount


@dataclass(frozen=True)
class CouponApplication:
    code: str
    booking_id: UUID
    outcome: RedemptionOutcome

    @property
    def applied(self) -> bool:
        return self.outcome is RedemptionOutcome.APPLIED


class CouponService:
    """Validates discount codes and records their usage."""

    def __init__(self, store: CouponStore, clock: Callable[[], datetime] = timezone.now) -> None:
        self._store = store
        self._clock = clock

    def validate_coupon(self, code: str, amount: Money) -> CouponValidation:
        normalized = (code or "").strip().upper()
        coupon = self._store.get_by_code(normalized) if normalized else None
        reason = self._ineligibility(coupon, amount)
        if reason is not None:
            logger.info(f"Coupon {normalized or '<blank>'} rejected: {reason.value}")
            return CouponValidation(
                code=normalized, amount=amount, discount=Money.zero(), reason=reason, coupon=coupon
            )
        return CouponValidation(
            code=coupon.code, amount=amount, discount=coupon.discount_for(amount), coupon=coupon
        )

    def apply_coupon(self, code: str, booking_id: UUID, discount: Money | None = None) -> CouponApplication:
        """Count one usage of code for booking_id.

        Repeated calls for the same booking are no-ops.
        """
        normalized = code.strip().upper()
        outcome = self._store.redeem(normalized, booking_id, discount or Money.zero())
        if outcome is RedemptionOutcome.APPLIED:
            logger.info(f"Coupon {normalized} applied to booking {booking_id}")
        else:
            logger.info(f"Coupon {normalized} not counted for booking {booking_id}: {outcome.value}")
        return CouponApplication(code=normalized, booking_id=booking_id, outcome=outcome)

    def get_usage(self, code: str) -> CouponUsage:
        """Return usage totals.

        Raises:
            CouponNotFoundError: If the code is unknown.
        """
        usage = self._store.usage(code.strip().upper())
        if usage is None:
            raise CouponNotFoundError(code)
        return usage

    def create_coupon(
        self,
        code: str,
        discount_type: DiscountType | str,
        value: Decimal | int | str,
        *,
        usage_limit: int | None = None,
        expires_at: datetime | None = None,
        minimum_amount: Money | None = None,
        description: str = "",
        is_active: bool = True,
    ) -> Coupon:
        normalized = code.strip().upper()
        if not normalized:
            raise ValidationError({"code": "This field is required."})
        if self._store.get_by_code(normalized) is not None:
            raise ValidationError({"code": f"Coupon {normalized} already exists."})
        try:
            coupon = Coupon(
                code=normalized,
                discount_type=DiscountType(discount_type),
                value=Decimal(str(value)),
                usage_limit=usage_limit,
                expires_at=expires_at,
                minimum_amount=minimum_amount,
                description=description,
                is_active=is_active,
            )
        except (ValueError, ArithmeticError) as exc:
            raise ValidationError({"coupon": str(exc)}) from exc
        return self._store.add(coupon)

    def _ineligibility(self, coupon: Coupon | None, amount: Money) -> CouponReason | None:
        if coupon is None:
            return CouponReason.NOT_FOUND
        if not coupon.is_active:
            return CouponReason.INACTIVE
        if coupon.expires_at is not None and coupon.expires_at <= self._clock():
            return CouponReason.EXPIRED
        if coupon.is_exhausted:
            return CouponReason.USAGE_EXCEEDED
        if coupon.minimum_amount is not None and amount < coupon.minimum_amount:
            return CouponReason.BELOW_MINIMUM
        return None
