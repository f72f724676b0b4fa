"""Collaborator interfaces consumed by the registration services.

Vendor SDKs (payment, email, calendar) live behind these so the services
can be exercised without network access. Implementations are expected to
enforce their own timeouts and raise UpstreamTimeoutError when they expire.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping

from registration.domain import DateRange, Money, NoticeKind, ReminderKind
from registration.domain.errors import ProductNotFoundError


@dataclass(frozen=True)
class Product:
    """Catalog entry for a bookable workshop."""

    id: str
    name: str
    price: Money
    duration_days: int
    location: str = ""
    meeting_link: str = ""


@dataclass(frozen=True)
class ChargeResult:
    """Gateway response to a charge request."""

    id: str
    status: str
    reason: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"


@dataclass(frozen=True)
class RefundResult:
    """Gateway response to a refund request."""

    id: str
    status: str
    reason: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status in ("completed", "pending")


@dataclass(frozen=True)
class PaymentRecord:
    """The gateway's view of a payment."""

    id: str
    status: str
    amount: Money
    refunded_amount: Money


@dataclass(frozen=True)
class SendResult:
    """Email gateway response."""

    success: bool
    message_id: str = ""
    error: str = ""


@dataclass(frozen=True)
class EmailTemplate:
    """Unpopulated subject and bodies for one reminder or notice kind."""

    subject: str
    html: str
    text: str


class ProductCatalog(ABC):
    """Interface for the product catalog's pricing data."""

    @abstractmethod
    def get_product(self, product_id: str) -> Product | None:
        """Return a product by ID, or None if not found."""
        ...

    def get_product_price(self, product_id: str) -> Money:
        return self._require(product_id).price

    def get_product_duration(self, product_id: str) -> int:
        """Return the workshop length in days."""
        return self._require(product_id).duration_days

    def _require(self, product_id: str) -> Product:
        product = self.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product


class PaymentGateway(ABC):
    """Interface for the payment processor."""

    @abstractmethod
    def charge(self, amount: Money, idempotency_key: str, method: str) -> ChargeResult:
        """Charge amount once per idempotency_key."""
        ...

    @abstractmethod
    def refund(self, payment_id: str, amount: Money) -> RefundResult:
        """Refund amount against an earlier charge."""
        ...

    @abstractmethod
    def get_payment(self, payment_id: str) -> PaymentRecord | None:
        """Return the gateway's record of a payment, or None if unknown."""
        ...

    @abstractmethod
    def find_payment(self, idempotency_key: str) -> PaymentRecord | None:
        """Return the payment created for idempotency_key, or None if no charge was made."""
        ...


class EmailGateway(ABC):
    """Interface for transactional email delivery."""

    @abstractmethod
    def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
        idempotency_key: str | None = None,
    ) -> SendResult:
        """Send one message. Failures are reported in the result, not raised."""
        ...


class CalendarMirror(ABC):
    """Interface for the external calendar that mirrors blocked dates."""

    @abstractmethod
    def create_block_event(self, dates: DateRange, reason: str) -> str:
        """Create an all-day blocking event and return its id."""
        ...

    @abstractmethod
    def delete_event(self, event_id: str) -> None:
        ...


class TemplateProvider(ABC):
    """Interface for reminder and purchase notice email templates."""

    @abstractmethod
    def get_template(self, kind: ReminderKind | NoticeKind) -> EmailTemplate:
        ...

    @abstractmethod
    def populate(self, template: str, data: Mapping[str, Any], *, html: bool = False) -> str:
        """Render template with data. Values are HTML-escaped only when html is set."""
        ...
