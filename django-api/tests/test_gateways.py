"""Tests for the collaborators shipped with the app.

Run with: pytest tests/test_gateways.py -v
"""

import pytest
from django.core import mail

from registration.domain import Money, NoticeKind, ReminderKind
from registration.domain.errors import ProductNotFoundError
from registration.gateways.catalog import SettingsProductCatalog
from registration.gateways.email import DjangoEmailGateway
from registration.gateways.templates import DEFAULT_TEMPLATES, DatabaseTemplateProvider, render_template
from registration.models import ReminderTemplate


class TestRenderTemplate:
    """Tests for rendering templates with the Django template engine."""

    def test_fills_variables(self):
        assert render_template("Hi {{ attendee_name }}!", {"attendee_name": "Ada"}) == "Hi Ada!"

    def test_missing_variable_renders_blank(self):
        assert render_template("Room: {{ location }}.", {}) == "Room: ."

    def test_if_block_kept_only_when_value_set(self):
        template = "A{% if meeting_link %} join {{ meeting_link }}{% endif %}B"
        link = {"meeting_link": "https://meet.example.com/x"}
        assert render_template(template, link) == "A join https://meet.example.com/xB"
        assert render_template(template, {"meeting_link": ""}) == "AB"

    def test_html_escapes_values(self):
        rendered = render_template("<p>{{ attendee_name }}</p>", {"attendee_name": "<Grace & Co>"}, html=True)
        assert rendered == "<p>&lt;Grace &amp; Co&gt;</p>"

    def test_text_keeps_values_raw(self):
        assert render_template("Hi {{ attendee_name }}", {"attendee_name": "<Grace & Co>"}) == "Hi <Grace & Co>"

    def test_every_kind_has_a_default(self):
        assert set(DEFAULT_TEMPLATES) == set(ReminderKind) | set(NoticeKind)

    def test_defaults_render_without_errors(self):
        data = {"attendee_name": "Ada", "event_name": "3-Day AI Workshop", "event_date": "Saturday"}
        for template in DEFAULT_TEMPLATES.values():
            assert "Ada" in render_template(template.text, data)
            assert "3-Day AI Workshop" in render_template(template.subject, data)


@pytest.mark.django_db
class TestDatabaseTemplateProvider:
    """Tests for DatabaseTemplateProvider."""

    def test_falls_back_to_default(self):
        provider = DatabaseTemplateProvider()
        assert provider.get_template(ReminderKind.REMINDER_24H) == DEFAULT_TEMPLATES[ReminderKind.REMINDER_24H]

    def test_active_row_overrides_default(self):
        ReminderTemplate.objects.create(
            kind=ReminderKind.REMINDER_2H.value,
            subject="Soon: {{ event_name }}",
            html_body="<p>{{ event_name }}</p>",
            text_body="{{ event_name }}",
        )
        provider = DatabaseTemplateProvider()
        template = provider.get_template(ReminderKind.REMINDER_2H)
        assert provider.populate(template.subject, {"event_name": "Intro & Basics"}) == "Soon: Intro & Basics"
        assert provider.populate(template.html, {"event_name": "Intro & Basics"}, html=True) == "<p>Intro &amp; Basics</p>"

    def test_notice_kinds_can_be_overridden(self):
        ReminderTemplate.objects.create(
            kind=NoticeKind.PURCHASE_CONFIRMED.value, subject="Paid", html_body="", text_body=""
        )
        assert DatabaseTemplateProvider().get_template(NoticeKind.PURCHASE_CONFIRMED).subject == "Paid"

    def test_inactive_row_is_ignored(self):
        ReminderTemplate.objects.create(
            kind=ReminderKind.POST_EVENT.value, subject="Old", html_body="", text_body="", is_active=False
        )
        template = DatabaseTemplateProvider().get_template(ReminderKind.POST_EVENT)
        assert template == DEFAULT_TEMPLATES[ReminderKind.POST_EVENT]


class TestDjangoEmailGateway:
    """Tests for DjangoEmailGateway against the locmem backend."""

    def test_sends_text_and_html(self):
        result = DjangoEmailGateway(from_email="hello@example.com").send(
            "ada@example.com", "Subject", "<p>Hi</p>", "Hi", idempotency_key="job-1"
        )

        assert result.success
        assert result.message_id.startswith("<job-1@")
        message = mail.outbox[0]
        assert message.to == ["ada@example.com"]
        assert message.from_email == "hello@example.com"
        assert message.body == "Hi"
        assert message.alternatives[0][0] == "<p>Hi</p>"
        assert message.extra_headers["Message-ID"] == result.message_id


class TestSettingsProductCatalog:
    """Tests for SettingsProductCatalog."""

    @pytest.fixture
    def catalog(self):
        return SettingsProductCatalog(
            {"prod-5day": {"name": "5-Day AI Workshop", "price": "4500.00", "duration_days": 5}}
        )

    def test_reads_price_and_duration(self, catalog):
        assert catalog.get_product_price("prod-5day") == Money.of("4500")
        assert catalog.get_product_duration("prod-5day") == 5

    def test_unknown_product(self, catalog):
        assert catalog.get_product("prod-x") is None
        with pytest.raises(ProductNotFoundError):
            catalog.get_product_price("prod-x")

    def test_defaults_to_settings(self, settings):
        settings.REGISTRATION = {"PRODUCTS": {"solo": {"name": "Solo", "price": 100}}}
        assert SettingsProductCatalog().get_product("solo").duration_days == 1
