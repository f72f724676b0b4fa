"""Domain error codes for the registration module."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    BOOKING_NOT_FOUND = "BOOKING_NOT_FOUND"
    PURCHASE_NOT_FOUND = "PURCHASE_NOT_FOUND"
    COUPON_NOT_FOUND = "COUPON_NOT_FOUND"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    DUPLICATE_REQUEST = "DUPLICATE_REQUEST"
    UPSTREAM_FAILURE = "UPSTREAM_FAILURE"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(DomainError):
    """Raised when request fields are missing or malformed. Never retried."""

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message="; ".join(f"{field}: {reason}" for field, reason in errors.items()),
        )
        self.errors = errors


class NotFoundError(DomainError):
    """Base for unknown booking, purchase, coupon or product ids."""


class BookingNotFoundError(NotFoundError):
    """Raised when a booking is not found."""

    def __init__(self, booking_id: str) -> None:
        super().__init__(
            code=ErrorCode.BOOKING_NOT_FOUND,
            message="Booking not found",
        )
        self.booking_id = booking_id


class PurchaseNotFoundError(NotFoundError):
    """Raised when no booking backs the requested purchase."""

    def __init__(self, purchase_id: str) -> None:
        super().__init__(
            code=ErrorCode.PURCHASE_NOT_FOUND,
            message="Purchase not found",
        )
        self.purchase_id = purchase_id


class CouponNotFoundError(NotFoundError):
    """Raised when a coupon code is unknown."""

    def __init__(self, code: str) -> None:
        super().__init__(
            code=ErrorCode.COUPON_NOT_FOUND,
            message="Coupon not found",
        )
        self.coupon_code = code


class ProductNotFoundError(NotFoundError):
    """Raised when the catalog has no such product."""

    def __init__(self, product_id: str) -> None:
        super().__init__(
            code=ErrorCode.PRODUCT_NOT_FOUND,
            message="Product not found",
        )
        self.product_id = product_id


class InvalidStateError(DomainError):
    """Raised when an operation conflicts with the current status."""

    def __init__(self, message: str, current: str | None = None) -> None:
        super().__init__(code=ErrorCode.INVALID_STATE, message=message)
        self.current = current


class UpstreamError(DomainError):
    """Raised when a payment, email or calendar collaborator fails."""

    def __init__(self, service: str, reason: str, code: ErrorCode = ErrorCode.UPSTREAM_FAILURE) -> None:
        super().__init__(code=code, message=f"{service} failed: {reason}")
        self.service = service
        self.reason = reason


class UpstreamTimeoutError(UpstreamError):
    """Raised by collaborators whose call exceeded its timeout."""

    def __init__(self, service: str, timeout: float) -> None:
        super().__init__(
            service=service,
            reason=f"timed out after {timeout:g}s",
            code=ErrorCode.UPSTREAM_TIMEOUT,
        )
        self.timeout = timeout


class DuplicateRequestError(DomainError):
    """Raised by a store when a booking already exists for a client request key."""

    def __init__(self, request_key: str) -> None:
        super().__init__(
            code=ErrorCode.DUPLICATE_REQUEST,
            message="A booking already exists for this request",
        )
        self.request_key = request_key
