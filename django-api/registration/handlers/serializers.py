"""Serializers for request input and for domain results returned by the API.

Input serializers only check format. Business rules stay in the services.
"""

from rest_framework import serializers

from registration.domain import Attendee, PointOfContact
from registration.services import PurchaseRequest


class AttendeeInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    dietary_requirements = serializers.CharField(required=False, allow_blank=True, default="")
    accessibility_needs = serializers.CharField(required=False, allow_blank=True, default="")


class PointOfContactInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    company = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class PurchaseInputSerializer(serializers.Serializer):
    """Input for POST /api/purchases."""

    product_id = serializers.CharField(max_length=64)
    start_date = serializers.DateField()
    attendees = AttendeeInputSerializer(many=True, allow_empty=False)
    point_of_contact = PointOfContactInputSerializer(required=False)
    payment_method = serializers.CharField(max_length=255)
    coupon_code = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    request_key = serializers.CharField(max_length=128, required=False, allow_null=True, default=None)

    def to_request(self, request_key: str | None = None) -> PurchaseRequest:
        data = self.validated_data
        contact = data.get("point_of_contact")
        return PurchaseRequest(
            product_id=data["product_id"],
            start_date=data["start_date"],
            attendees=tuple(Attendee(**attendee) for attendee in data["attendees"]),
            payment_method=data["payment_method"],
            point_of_contact=PointOfContact(**contact) if contact else None,
            coupon_code=data["coupon_code"],
            request_key=data["request_key"] or request_key,
        )


class PurchaseResultSerializer(serializers.Serializer):
    status = serializers.CharField(source="status.value")
    purchase_id = serializers.CharField()
    booking_id = serializers.CharField()
    payment_id = serializers.CharField()
    confirmation_code = serializers.CharField()
    base_amount = serializers.CharField()
    discount_amount = serializers.CharField()
    total_amount = serializers.CharField()
    coupon_code = serializers.CharField()
    coupon_applied = serializers.BooleanField()
    coupon_reason = serializers.CharField()
    reason = serializers.CharField()
    message = serializers.CharField()
    errors = serializers.DictField(child=serializers.CharField())


class PurchaseStatusSerializer(serializers.Serializer):
    purchase_id = serializers.CharField()
    booking_id = serializers.CharField()
    booking_status = serializers.CharField(source="booking_status.value")
    payment_status = serializers.CharField(source="payment_status.value")
    total_amount = serializers.CharField()
    discount_amount = serializers.CharField()
    paid_amount = serializers.CharField()
    refunded_amount = serializers.CharField()
    confirmation_code = serializers.CharField()
    payment_verified = serializers.BooleanField()
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()
    confirmed_at = serializers.DateTimeField()
    cancelled_at = serializers.DateTimeField()


class CouponValidateInputSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=64, allow_blank=True)
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)


class CouponValidationSerializer(serializers.Serializer):
    code = serializers.CharField()
    valid = serializers.BooleanField(source="is_valid")
    reason = serializers.SerializerMethodField()
    amount = serializers.CharField()
    discount = serializers.CharField()
    final_amount = serializers.CharField()

    def get_reason(self, validation) -> str | None:
        return validation.reason.value if validation.reason else None


class AvailabilityQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
    days = serializers.IntegerField(min_value=1, max_value=31, required=False, default=1)


class BlockDatesInputSerializer(serializers.Serializer):
    start_date = serializers.DateField()
    end_date = serializers.DateField(required=False)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class UnblockDateInputSerializer(serializers.Serializer):
    date = serializers.DateField()


class CalendarBlockSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    start_date = serializers.DateField(source="dates.start")
    end_date = serializers.DateField(source="dates.end")
    reason = serializers.CharField()
    external_event_id = serializers.CharField()
    created_at = serializers.DateTimeField()
