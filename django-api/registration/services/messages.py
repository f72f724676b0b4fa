"""Template data shared by reminder and purchase notice emails."""

from datetime import datetime
from typing import Any

from django.utils import timezone

from registration.domain import Booking
from registration.gateways.interfaces import Product


def format_event_date(moment: datetime) -> str:
    local = timezone.localtime(moment)
    return f"{local:%A, %B} {local.day}, {local.year}"


def format_event_time(moment: datetime) -> str:
    local = timezone.localtime(moment)
    return f"{local.hour % 12 or 12}:{local:%M %p}"


def message_context(
    booking: Booking, product: Product | None, event_at: datetime | None = None
) -> dict[str, Any]:
    """Build template data for a booking. event_at defaults to the event start."""
    moment = event_at or booking.event_starts_at
    return {
        "attendee_name": booking.point_of_contact.name,
        "event_name": product.name if product else booking.product_id,
        "event_date": format_event_date(moment),
        "event_time": format_event_time(moment),
        "location": product.location if product else "",
        "meeting_link": product.meeting_link if product else "",
        "confirmation_code": booking.confirmation_code,
        "purchase_id": str(booking.id),
        "attendee_count": booking.attendee_count,
        "total_amount": str(booking.total_amount),
    }
