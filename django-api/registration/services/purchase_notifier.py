"""Transactional purchase emails: confirmed, failed and cancelled.

Notices are best effort. A rendering or delivery failure is logged and
never changes the outcome of the purchase that triggered it.
"""

import logging

from registration.domain import Booking, Money, NoticeKind
from registration.gateways.interfaces import EmailGateway, ProductCatalog, TemplateProvider
from registration.services.messages import message_context

logger = logging.getLogger(__name__)


class PurchaseNotifier:
    """Emails the point of contact when a purchase changes state."""

    def __init__(self, email: EmailGateway, templates: TemplateProvider, catalog: ProductCatalog) -> None:
        self._email = email
        self._templates = templates
        self._catalog = catalog

    def purchase_confirmed(self, booking: Booking) -> bool:
        return self._notify(NoticeKind.PURCHASE_CONFIRMED, booking)

    def purchase_failed(self, booking: Booking, reason: str = "") -> bool:
        return self._notify(NoticeKind.PURCHASE_FAILED, booking, failure_reason=reason)

    def purchase_cancelled(self, booking: Booking, refund_amount: Money | None = None) -> bool:
        refund = refund_amount if refund_amount is not None else Money.zero()
        return self._notify(NoticeKind.PURCHASE_CANCELLED, booking, refund_amount=str(refund))

    def _notify(self, kind: NoticeKind, booking: Booking, **extra: str) -> bool:
        recipient = booking.point_of_contact.email
        try:
            data = message_context(booking, self._catalog.get_product(booking.product_id))
            data.update(extra)
            template = self._templates.get_template(kind)
            result = self._email.send(
                recipient,
                self._templates.populate(template.subject, data),
                self._templates.populate(template.html, data, html=True),
                self._templates.populate(template.text, data),
                idempotency_key=f"{kind.value}-{booking.id}",
            )
        except Exception:
            logger.warning(f"Could not send {kind.value} notice for booking {booking.id}", exc_info=True)
            return False
        if not result.success:
            logger.warning(f"{kind.value} notice for booking {booking.id} rejected: {result.error}")
            return False
        logger.info(f"Sent {kind.value} notice to {recipient}")
        return True
