"""Email templates stored in the database, with built-in defaults.

Templates use Django template syntax, for example ``{{ attendee_name }}``
and ``{% if location %}...{% endif %}``. HTML bodies are rendered with
autoescaping; subjects and text bodies are rendered as plain text.
"""

import logging
from typing import Any, Mapping

from django.db import DatabaseError
from django.template import Context, Engine

from registration.domain import NoticeKind, ReminderKind
from registration.gateways.interfaces import EmailTemplate, TemplateProvider
from registration.models import ReminderTemplate

logger = logging.getLogger(__name__)

_ENGINE = Engine()

_DETAILS_HTML = (
    "<p><strong>Date:</strong> {{ event_date }}<br>"
    "<strong>Time:</strong> {{ event_time }}<br>"
    "{% if location %}<strong>Location:</strong> {{ location }}<br>{% endif %}"
    '{% if meeting_link %}<strong>Join online:</strong> <a href="{{ meeting_link }}">{{ meeting_link }}</a>{% endif %}</p>'
)
_DETAILS_TEXT = (
    "Date: {{ event_date }}\n"
    "Time: {{ event_time }}\n"
    "{% if location %}Location: {{ location }}\n{% endif %}"
    "{% if meeting_link %}Join online: {{ meeting_link }}\n{% endif %}"
)

DEFAULT_TEMPLATES: dict[ReminderKind | NoticeKind, EmailTemplate] = {
    ReminderKind.REMINDER_48H: EmailTemplate(
        subject="Get ready! {{ event_name }} is in 2 days",
        html=(
            "<h1>Get ready!</h1><p>Hi {{ attendee_name }},</p>"
            "<p>Your <strong>{{ event_name }}</strong> is coming up in just 2 days.</p>"
            + _DETAILS_HTML
            + "<p>We can't wait to see you there.</p>"
        ),
        text=(
            "Hi {{ attendee_name }},\n\nYour {{ event_name }} is coming up in just 2 days.\n\n"
            + _DETAILS_TEXT
            + "\nWe can't wait to see you there.\n"
        ),
    ),
    ReminderKind.REMINDER_24H: EmailTemplate(
        subject="Tomorrow is the day: {{ event_name }}",
        html=(
            "<h1>See you tomorrow!</h1><p>Hi {{ attendee_name }},</p>"
            "<p>Your <strong>{{ event_name }}</strong> is tomorrow.</p>"
            + _DETAILS_HTML
        ),
        text=(
            "Hi {{ attendee_name }},\n\nYour {{ event_name }} is tomorrow.\n\n"
            + _DETAILS_TEXT
        ),
    ),
    ReminderKind.REMINDER_2H: EmailTemplate(
        subject="Starting soon: {{ event_name }}",
        html=(
            "<h1>Starting in 2 hours</h1><p>Hi {{ attendee_name }},</p>"
            "<p>Your <strong>{{ event_name }}</strong> starts in 2 hours.</p>"
            + _DETAILS_HTML
        ),
        text=(
            "Hi {{ attendee_name }},\n\nYour {{ event_name }} starts in 2 hours.\n\n"
            + _DETAILS_TEXT
        ),
    ),
    ReminderKind.POST_EVENT: EmailTemplate(
        subject="Thank you for joining {{ event_name }}",
        html=(
            "<h1>Thank you!</h1><p>Hi {{ attendee_name }},</p>"
            "<p>Thank you for being part of <strong>{{ event_name }}</strong>.</p>"
            "<p>We'd love to hear your feedback. Just reply to this email.</p>"
        ),
        text=(
            "Hi {{ attendee_name }},\n\nThank you for being part of {{ event_name }}.\n\n"
            "We'd love to hear your feedback. Just reply to this email.\n"
        ),
    ),
    NoticeKind.PURCHASE_CONFIRMED: EmailTemplate(
        subject="Booking confirmed: {{ event_name }} ({{ confirmation_code }})",
        html=(
            "<h1>You're booked!</h1><p>Hi {{ attendee_name }},</p>"
            "<p>Your purchase of <strong>{{ event_name }}</strong> has been processed.</p>"
            "<p><strong>Confirmation:</strong> {{ confirmation_code }}<br>"
            "<strong>Attendees:</strong> {{ attendee_count }}<br>"
            "<strong>Total paid:</strong> ${{ total_amount }}</p>"
            + _DETAILS_HTML
            + "<p>Thank you for your purchase!</p>"
        ),
        text=(
            "Hi {{ attendee_name }},\n\nYour purchase of {{ event_name }} has been processed.\n\n"
            "Confirmation: {{ confirmation_code }}\n"
            "Attendees: {{ attendee_count }}\n"
            "Total paid: ${{ total_amount }}\n\n"
            + _DETAILS_TEXT
            + "\nThank you for your purchase!\n"
        ),
    ),
    NoticeKind.PURCHASE_FAILED: EmailTemplate(
        subject="We could not complete your {{ event_name }} purchase",
        html=(
            "<p>Hi {{ attendee_name }},</p>"
            "<p>Your purchase of <strong>{{ event_name }}</strong> on {{ event_date }} "
            "could not be completed and no booking was made.</p>"
            "{% if failure_reason %}<p><strong>Reason:</strong> {{ failure_reason }}</p>{% endif %}"
            "<p>Please try again with a different payment method.</p>"
        ),
        text=(
            "Hi {{ attendee_name }},\n\nYour purchase of {{ event_name }} on {{ event_date }} "
            "could not be completed and no booking was made.\n\n"
            "{% if failure_reason %}Reason: {{ failure_reason }}\n\n{% endif %}"
            "Please try again with a different payment method.\n"
        ),
    ),
    NoticeKind.PURCHASE_CANCELLED: EmailTemplate(
        subject="Your {{ event_name }} booking has been cancelled",
        html=(
            "<p>Hi {{ attendee_name }},</p>"
            "<p>Your booking for <strong>{{ event_name }}</strong> on {{ event_date }} has been cancelled.</p>"
            "<p><strong>Purchase:</strong> {{ purchase_id }}<br>"
            "<strong>Refund amount:</strong> ${{ refund_amount }}</p>"
            "<p>Thank you for your understanding.</p>"
        ),
        text=(
            "Hi {{ attendee_name }},\n\nYour booking for {{ event_name }} on {{ event_date }} has been cancelled.\n\n"
            "Purchase: {{ purchase_id }}\n"
            "Refund amount: ${{ refund_amount }}\n\n"
            "Thank you for your understanding.\n"
        ),
    ),
}


def render_template(template: str, data: Mapping[str, Any], *, html: bool = False) -> str:
    """Render a template string. Missing variables render as an empty string."""
    # Escaping is decided by the Context, not by the Engine.
    return _ENGINE.from_string(template).render(Context(dict(data), autoescape=html))


class DatabaseTemplateProvider(TemplateProvider):
    """Reads active ReminderTemplate rows, falling back to DEFAULT_TEMPLATES."""

    def get_template(self, kind: ReminderKind | NoticeKind) -> EmailTemplate:
        try:
            row = ReminderTemplate.objects.filter(kind=kind.value, is_active=True).first()
        except DatabaseError:
            logger.exception(f"Failed to load {kind.value} template, using default")
            row = None
        if row is None:
            return DEFAULT_TEMPLATES[kind]
        return EmailTemplate(subject=row.subject, html=row.html_body, text=row.text_body)

    def populate(self, template: str, data: Mapping[str, Any], *, html: bool = False) -> str:
        return render_template(template, data, html=html)
