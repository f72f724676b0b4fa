"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses
- Never contain business logic
- Never expose internal error details
"""

import logging
from datetime import timedelta

from rest_framework import status
from rest_framework.permissions import IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from registration.container import get_container
from registration.domain import Money
from registration.domain.errors import (
    DomainError,
    DuplicateRequestError,
    ErrorCode,
    InvalidStateError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from registration.handlers.serializers import (
    AvailabilityQuerySerializer,
    BlockDatesInputSerializer,
    CalendarBlockSerializer,
    CouponValidateInputSerializer,
    CouponValidationSerializer,
    PurchaseInputSerializer,
    PurchaseResultSerializer,
    PurchaseStatusSerializer,
    UnblockDateInputSerializer,
)
from registration.services.purchase_service import FailureReason, PurchaseOutcome

logger = logging.getLogger(__name__)

FAILURE_STATUS = {
    FailureReason.VALIDATION_ERROR.value: status.HTTP_400_BAD_REQUEST,
    FailureReason.PRODUCT_NOT_FOUND.value: status.HTTP_400_BAD_REQUEST,
    FailureReason.DATE_UNAVAILABLE.value: status.HTTP_409_CONFLICT,
    FailureReason.PAYMENT_DECLINED.value: status.HTTP_402_PAYMENT_REQUIRED,
    FailureReason.PAYMENT_ERROR.value: status.HTTP_402_PAYMENT_REQUIRED,
    FailureReason.CONFIRMATION_ERROR.value: status.HTTP_502_BAD_GATEWAY,
}


def error_body(code: ErrorCode, message: str, details: dict | None = None) -> dict:
    body = {"code": code.value, "message": message}
    if details:
        body["details"] = details
    return {"error": body}


def invalid_input(errors: dict) -> Response:
    return Response(
        error_body(ErrorCode.VALIDATION_ERROR, "Invalid request", errors),
        status=status.HTTP_400_BAD_REQUEST,
    )


def domain_error_response(error: DomainError) -> Response:
    """Map a domain error to its HTTP status with a user-safe body."""
    if isinstance(error, ValidationError):
        return invalid_input(error.errors)
    if isinstance(error, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, (InvalidStateError, DuplicateRequestError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(error, UpstreamError):
        logger.warning(f"Upstream failure surfaced to client: {error}")
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_400_BAD_REQUEST
    return Response(error_body(error.code, error.message), status=code)


class PurchaseCreateView(APIView):
    """Handler for POST /api/purchases"""

    def post(self, request: Request) -> Response:
        serializer = PurchaseInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        purchase = serializer.to_request(request_key=request.headers.get("Idempotency-Key"))
        try:
            result = get_container().purchases.process_purchase(purchase)
        except DomainError as e:
            return domain_error_response(e)
        body = PurchaseResultSerializer(result).data

        if result.status is PurchaseOutcome.COMPLETED:
            return Response(body, status=status.HTTP_201_CREATED)
        if result.status is PurchaseOutcome.PENDING:
            return Response(body, status=status.HTTP_202_ACCEPTED)
        return Response(body, status=FAILURE_STATUS.get(result.reason, status.HTTP_400_BAD_REQUEST))


class PurchaseDetailView(APIView):
    """Handler for GET /api/purchases/{purchase_id}"""

    def get(self, request: Request, purchase_id: str) -> Response:
        try:
            purchase = get_container().purchases.get_purchase_status(purchase_id)
        except DomainError as e:
            return domain_error_response(e)
        return Response(PurchaseStatusSerializer(purchase).data)


class PurchaseCancelView(APIView):
    """Handler for POST /api/purchases/{purchase_id}/cancel"""

    def post(self, request: Request, purchase_id: str) -> Response:
        try:
            purchase = get_container().purchases.cancel_purchase(purchase_id)
        except DomainError as e:
            return domain_error_response(e)
        return Response(PurchaseStatusSerializer(purchase).data)


class CouponValidateView(APIView):
    """Handler for POST /api/coupons/validate"""

    def post(self, request: Request) -> Response:
        serializer = CouponValidateInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        validation = get_container().coupons.validate_coupon(
            serializer.validated_data["code"], Money(serializer.validated_data["amount"])
        )
        return Response(CouponValidationSerializer(validation).data)


class AvailabilityView(APIView):
    """Handler for GET /api/calendar/availability?date=YYYY-MM-DD&days=N"""

    def get(self, request: Request) -> Response:
        serializer = AvailabilityQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        start = serializer.validated_data["date"]
        days = serializer.validated_data["days"]
        calendar = get_container().calendar
        return Response(
            {
                "date": start.isoformat(),
                "days": days,
                "available": calendar.is_range_available(start, days),
                "blocked_dates": [
                    day.isoformat()
                    for day in calendar.blocked_dates(start, start + timedelta(days=days - 1))
                ],
            }
        )


class BlockDatesView(APIView):
    """Handler for POST /api/admin/calendar/block"""

    permission_classes = [IsAdminUser]

    def post(self, request: Request) -> Response:
        serializer = BlockDatesInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        data = serializer.validated_data
        try:
            block = get_container().calendar.block_date_range(
                data["start_date"], data.get("end_date") or data["start_date"], data["reason"]
            )
        except DomainError as e:
            return domain_error_response(e)
        return Response(CalendarBlockSerializer(block).data, status=status.HTTP_201_CREATED)


class UnblockDateView(APIView):
    """Handler for POST /api/admin/calendar/unblock"""

    permission_classes = [IsAdminUser]

    def post(self, request: Request) -> Response:
        serializer = UnblockDateInputSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        removed = get_container().calendar.unblock_date(serializer.validated_data["date"])
        return Response({"removed": removed})


class ProcessRemindersView(APIView):
    """Handler for POST /api/admin/reminders/process"""

    permission_classes = [IsAdminUser]

    def post(self, request: Request) -> Response:
        sent = get_container().dispatcher.process_pending_reminders()
        return Response({"sent": sent})
