"""Integration tests for the registration HTTP API.

Services run on the Django stores; payment and email are in-memory fakes.
Run with: pytest tests/test_api.py -v
"""

from datetime import timedelta
from unittest import mock

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from fakes import FakeEmailGateway, FakePaymentGateway
from registration.container import build_container
from registration.domain.errors import UpstreamTimeoutError
from registration.gateways.interfaces import ProductCatalog


class UnreachableCatalog(ProductCatalog):
    def get_product(self, product_id):
        raise UpstreamTimeoutError("product catalog", 5)


@pytest.fixture
def payments() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def container(payments, monkeypatch):
    container = build_container(payments=payments, email=FakeEmailGateway())
    monkeypatch.setattr("registration.handlers.views.get_container", lambda: container)
    return container


@pytest.fixture
def start_date():
    return timezone.localdate() + timedelta(days=30)


@pytest.fixture
def purchase_payload(start_date):
    return {
        "product_id": "prod-3day",
        "start_date": start_date.isoformat(),
        "attendees": [{"name": "Ada Lovelace", "email": "ada@example.com"}],
        "point_of_contact": {"name": "Grace Hopper", "email": "grace@example.com"},
        "payment_method": "card-nonce-ok",
    }


@pytest.fixture
def admin_client(api_client: APIClient, admin_user) -> APIClient:
    api_client.force_authenticate(user=admin_user)
    return api_client


@pytest.mark.django_db
class TestCreatePurchase:
    """Tests for POST /api/purchases"""

    def test_completed_purchase(self, api_client: APIClient, container, purchase_payload):
        """Given a valid request, returns 201 with the confirmation."""
        response = api_client.post("/api/purchases", purchase_payload, format="json")

        assert response.status_code == 201
        assert response.data["status"] == "completed"
        assert response.data["total_amount"] == "3000.00"
        assert response.data["confirmation_code"].startswith("YOLO-")
        assert len(container.scheduler.reminder_history(response.data["purchase_id"])) == 4

    def test_missing_attendees(self, api_client: APIClient, container, purchase_payload):
        """Given no attendees, returns 400 with field errors."""
        purchase_payload["attendees"] = []

        response = api_client.post("/api/purchases", purchase_payload, format="json")

        assert response.status_code == 400
        assert response.data["error"]["code"] == "VALIDATION_ERROR"
        assert "attendees" in response.data["error"]["details"]

    def test_declined_payment(self, api_client: APIClient, container, payments, purchase_payload):
        """Given a declined card, returns 402 and the booking is cancelled."""
        payments.decline_reason = "Card declined"

        response = api_client.post("/api/purchases", purchase_payload, format="json")

        assert response.status_code == 402
        assert response.data["reason"] == "payment_declined"
        status = container.purchases.get_purchase_status(response.data["purchase_id"])
        assert status.booking_status.value == "cancelled"

    def test_blocked_date(self, api_client: APIClient, container, purchase_payload, start_date):
        """Given a blocked workshop day, returns 409."""
        container.calendar.block_date(start_date + timedelta(days=1), "Venue closed")

        response = api_client.post("/api/purchases", purchase_payload, format="json")

        assert response.status_code == 409
        assert response.data["reason"] == "date_unavailable"

    def test_idempotency_key_header(self, api_client: APIClient, container, payments, purchase_payload):
        """Given the same Idempotency-Key twice, charges once."""
        first = api_client.post("/api/purchases", purchase_payload, format="json", HTTP_IDEMPOTENCY_KEY="abc")
        second = api_client.post("/api/purchases", purchase_payload, format="json", HTTP_IDEMPOTENCY_KEY="abc")

        assert second.data["purchase_id"] == first.data["purchase_id"]
        assert len(payments.charges) == 1

    def test_catalog_outage_returns_502(self, api_client: APIClient, payments, purchase_payload, monkeypatch):
        """Given an unreachable product catalog, returns 502 instead of a server error."""
        container = build_container(payments=payments, email=FakeEmailGateway(), catalog=UnreachableCatalog())
        monkeypatch.setattr("registration.handlers.views.get_container", lambda: container)

        response = api_client.post("/api/purchases", purchase_payload, format="json")

        assert response.status_code == 502
        assert response.data["error"]["code"] == "UPSTREAM_TIMEOUT"
        assert payments.charges == []

    def test_same_key_racing_past_the_lookup(self, api_client: APIClient, container, payments, purchase_payload):
        """Given two requests with one key that both miss the lookup, the second replays the first."""
        first = api_client.post("/api/purchases", purchase_payload, format="json", HTTP_IDEMPOTENCY_KEY="race")
        winner = container.ledger.find_by_request_key("race")

        with mock.patch.object(container.ledger, "find_by_request_key", side_effect=[None, winner]):
            second = api_client.post("/api/purchases", purchase_payload, format="json", HTTP_IDEMPOTENCY_KEY="race")

        assert second.status_code == 201
        assert second.data["purchase_id"] == first.data["purchase_id"]
        assert len(payments.charges) == 1

    def test_unconfirmable_purchase_is_refunded(self, api_client: APIClient, container, payments, purchase_payload):
        """Given a failure after the charge, returns 502 and the charge is refunded."""
        with mock.patch.object(
            container.scheduler, "schedule_reminders_for_booking", side_effect=RuntimeError("db down")
        ):
            response = api_client.post("/api/purchases", purchase_payload, format="json")

        assert response.status_code == 502
        assert response.data["reason"] == "confirmation_error"
        assert len(payments.refunds) == 1
        status = container.purchases.get_purchase_status(response.data["purchase_id"])
        assert status.booking_status.value == "cancelled"

    def test_coupon_applied(self, api_client: APIClient, container, purchase_payload):
        """Given a valid coupon, the discount is charged."""
        container.coupons.create_coupon("ADMINTEST25", "fixed", 25)
        purchase_payload["coupon_code"] = "admintest25"

        response = api_client.post("/api/purchases", purchase_payload, format="json")

        assert response.data["total_amount"] == "2975.00"
        assert response.data["coupon_applied"] is True
        assert container.coupons.get_usage("ADMINTEST25").total_usage == 1


@pytest.mark.django_db
class TestPurchaseDetail:
    """Tests for GET /api/purchases/{id} and POST /api/purchases/{id}/cancel"""

    @pytest.fixture
    def purchase_id(self, api_client: APIClient, container, purchase_payload):
        return api_client.post("/api/purchases", purchase_payload, format="json").data["purchase_id"]

    def test_get_purchase(self, api_client: APIClient, purchase_id):
        response = api_client.get(f"/api/purchases/{purchase_id}")

        assert response.status_code == 200
        assert response.data["booking_status"] == "confirmed"
        assert response.data["payment_status"] == "completed"
        assert response.data["payment_verified"] is True
        assert response.data["cancelled_at"] is None

    def test_get_unknown_purchase(self, api_client: APIClient, container):
        response = api_client.get("/api/purchases/not-a-purchase")

        assert response.status_code == 404
        assert response.data == {"error": {"code": "PURCHASE_NOT_FOUND", "message": "Purchase not found"}}

    def test_cancel_then_cancel_again(self, api_client: APIClient, payments, purchase_id):
        first = api_client.post(f"/api/purchases/{purchase_id}/cancel")
        second = api_client.post(f"/api/purchases/{purchase_id}/cancel")

        assert first.status_code == 200
        assert first.data["booking_status"] == "cancelled"
        assert first.data["refunded_amount"] == "3000.00"
        assert second.status_code == 409
        assert second.data["error"]["code"] == "INVALID_STATE"
        assert len(payments.refunds) == 1

    def test_cancel_with_failed_refund(self, api_client: APIClient, payments, purchase_id):
        payments.refund_status = "failed"

        response = api_client.post(f"/api/purchases/{purchase_id}/cancel")

        assert response.status_code == 502
        assert response.data["error"]["code"] == "UPSTREAM_FAILURE"
        assert api_client.get(f"/api/purchases/{purchase_id}").data["booking_status"] == "confirmed"


@pytest.mark.django_db
class TestCoupons:
    """Tests for POST /api/coupons/validate"""

    def test_valid_coupon(self, api_client: APIClient, container):
        container.coupons.create_coupon("BETATEST100", "percentage", 100)

        response = api_client.post("/api/coupons/validate", {"code": "betatest100", "amount": "3000"}, format="json")

        assert response.status_code == 200
        assert response.data["valid"] is True
        assert response.data["discount"] == "3000.00"
        assert response.data["final_amount"] == "0.00"

    def test_unknown_coupon_is_not_an_error(self, api_client: APIClient, container):
        response = api_client.post("/api/coupons/validate", {"code": "NOPE", "amount": "3000"}, format="json")

        assert response.status_code == 200
        assert response.data["valid"] is False
        assert response.data["reason"] == "not_found"


@pytest.mark.django_db
class TestCalendar:
    """Tests for availability and the staff-only blockout endpoints."""

    def test_availability(self, api_client: APIClient, container, start_date):
        container.calendar.block_date(start_date + timedelta(days=2))

        response = api_client.get("/api/calendar/availability", {"date": start_date.isoformat(), "days": 3})

        assert response.status_code == 200
        assert response.data["available"] is False
        assert response.data["blocked_dates"] == [(start_date + timedelta(days=2)).isoformat()]

    def test_availability_requires_date(self, api_client: APIClient, container):
        assert api_client.get("/api/calendar/availability").status_code == 400

    def test_block_requires_staff(self, api_client: APIClient, container, start_date):
        response = api_client.post("/api/admin/calendar/block", {"start_date": start_date.isoformat()}, format="json")
        assert response.status_code == 403

    def test_block_and_unblock(self, admin_client: APIClient, container, start_date):
        blocked = admin_client.post(
            "/api/admin/calendar/block",
            {"start_date": start_date.isoformat(), "reason": "Holiday"},
            format="json",
        )
        assert blocked.status_code == 201
        assert blocked.data["end_date"] == start_date.isoformat()
        assert not container.calendar.is_date_available(start_date)

        unblocked = admin_client.post("/api/admin/calendar/unblock", {"date": start_date.isoformat()}, format="json")
        assert unblocked.data == {"removed": 1}
        assert container.calendar.is_date_available(start_date)

    def test_block_reversed_range(self, admin_client: APIClient, container, start_date):
        response = admin_client.post(
            "/api/admin/calendar/block",
            {"start_date": start_date.isoformat(), "end_date": (start_date - timedelta(days=1)).isoformat()},
            format="json",
        )
        assert response.status_code == 400


@pytest.mark.django_db
class TestProcessReminders:
    """Tests for POST /api/admin/reminders/process"""

    def test_requires_staff(self, api_client: APIClient, container):
        assert api_client.post("/api/admin/reminders/process").status_code == 403

    def test_reports_sent_count(self, admin_client: APIClient, container):
        response = admin_client.post("/api/admin/reminders/process")
        assert response.status_code == 200
        assert response.data == {"sent": 0}
