"""Email gateway backed by Django's email framework."""

import logging
import uuid
from smtplib import SMTPException

from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection
from django.core.mail.utils import DNS_NAME

from registration.gateways.interfaces import EmailGateway, SendResult

logger = logging.getLogger(__name__)


class DjangoEmailGateway(EmailGateway):
    """Sends multipart (text + HTML) mail through the configured EMAIL_BACKEND."""

    def __init__(self, from_email: str | None = None, timeout: float | None = None) -> None:
        self._from_email = from_email or settings.DEFAULT_FROM_EMAIL
        self._timeout = timeout

    def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
        idempotency_key: str | None = None,
    ) -> SendResult:
        message_id = f"<{idempotency_key or uuid.uuid4()}@{DNS_NAME}>"
        message = EmailMultiAlternatives(
            subject=subject,
            body=text_body,
            from_email=self._from_email,
            to=[to],
            headers={"Message-ID": message_id},
            connection=get_connection(timeout=self._timeout) if self._timeout else None,
        )
        message.attach_alternative(html_body, "text/html")
        try:
            sent = message.send()
        except (SMTPException, OSError) as exc:
            logger.warning(f"Email to {to} failed: {exc}")
            return SendResult(success=False, error=str(exc))
        if not sent:
            return SendResult(success=False, error="Email backend accepted no messages")
        logger.info(f"Email sent to {to}: {subject}")
        return SendResult(success=True, message_id=message_id)
