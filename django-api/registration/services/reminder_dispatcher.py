"""Reminder dispatcher - the periodic batch job that sends due reminders.

Per-job state machine:
    scheduled -> sending -> sent
    scheduled -> sending -> scheduled   (failed attempt, retried next run)
    scheduled -> sending -> failed      (attempt ceiling reached)
    scheduled | sending -> cancelled    (booking cancelled)

Each job is claimed with a conditional update before it is sent, so two
overlapping runs can never deliver the same job twice. A claimed job whose
booking is no longer confirmed is cancelled instead of sent. Once the
post-event job is finished the booking is marked completed.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from django.utils import timezone

from registration.domain import Booking, BookingStatus, ReminderJob, ReminderKind, ReminderStatus
from registration.domain.errors import BookingNotFoundError, InvalidStateError
from registration.gateways.interfaces import EmailGateway, ProductCatalog, TemplateProvider
from registration.services.booking_ledger import BookingLedger
from registration.services.messages import message_context
from registration.stores.interfaces import ReminderStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchPolicy:
    """Retry and pacing knobs for one dispatcher."""

    max_attempts: int = 3
    batch_size: int = 50
    send_delay_seconds: float = 1.0
    claim_timeout: timedelta = timedelta(minutes=15)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")


class ReminderDispatcher:
    """Sends due reminder jobs through the email gateway with bounded retries."""

    def __init__(
        self,
        reminders: ReminderStore,
        ledger: BookingLedger,
        catalog: ProductCatalog,
        templates: TemplateProvider,
        email: EmailGateway,
        policy: DispatchPolicy = DispatchPolicy(),
        clock: Callable[[], datetime] = timezone.now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._reminders = reminders
        self._ledger = ledger
        self._catalog = catalog
        self._templates = templates
        self._email = email
        self._policy = policy
        self._clock = clock
        self._sleep = sleep

    def process_pending_reminders(self) -> int:
        """Send every due job in one bounded batch. Returns the number sent."""
        now = self._clock()
        released = self._reminders.release_stale_claims(now - self._policy.claim_timeout)
        if released:
            logger.warning(f"Released {released} stale reminder claim(s)")

        jobs = self._reminders.due(now, self._policy.max_attempts, self._policy.batch_size)
        logger.info(f"Found {len(jobs)} due reminder(s)")

        sent = failed = 0
        for index, job in enumerate(jobs):
            if index and self._policy.send_delay_seconds > 0:
                self._sleep(self._policy.send_delay_seconds)
            try:
                delivered = self.process_job(job)
            except Exception:
                logger.exception(f"Unexpected error dispatching reminder {job.id}")
                delivered = False
            if delivered:
                sent += 1
            else:
                failed += 1

        logger.info(f"Reminder run complete: {sent} sent, {failed} not sent")
        return sent

    def process_job(self, job: ReminderJob) -> bool:
        """Claim, render and send one job. Returns True if it was delivered."""
        claimed = self._reminders.claim(job.id, self._clock())
        if claimed is None:
            logger.info(f"Reminder {job.id} already claimed or no longer scheduled")
            return False

        booking = self._booking_for(claimed)
        if booking is None or booking.status is not BookingStatus.CONFIRMED:
            self._reminders.cancel(claimed.id, self._clock())
            state = booking.status.value if booking else "missing"
            logger.info(f"Reminder {claimed.id} cancelled: booking {claimed.booking_id} is {state}")
            return False

        try:
            subject, html_body, text_body = self._render(claimed, booking)
            result = self._email.send(
                claimed.recipient_email,
                subject,
                html_body,
                text_body,
                idempotency_key=str(claimed.id),
            )
        except Exception as exc:
            logger.exception(f"Reminder {claimed.id} could not be sent")
            error = str(exc) or exc.__class__.__name__
        else:
            if result.success:
                if self._reminders.mark_sent(claimed.id, self._clock(), result.message_id) is None:
                    logger.warning(f"Reminder {claimed.id} was cancelled while it was being sent")
                    return True
                logger.info(f"Sent {claimed.kind.value} reminder to {claimed.recipient_email}")
                self._complete_after_event(claimed)
                return True
            error = result.error or "Email gateway rejected the message"

        updated = self._reminders.record_failure(
            claimed.id, self._clock(), error, self._policy.max_attempts
        )
        if updated is not None and updated.status is ReminderStatus.FAILED:
            logger.error(
                f"Reminder {claimed.id} failed permanently after {updated.attempts} attempts: {error}"
            )
            self._complete_after_event(updated)
        else:
            logger.warning(f"Reminder {claimed.id} failed, will retry: {error}")
        return False

    def _booking_for(self, job: ReminderJob) -> Booking | None:
        try:
            return self._ledger.get(job.booking_id)
        except BookingNotFoundError:
            return None

    def _complete_after_event(self, job: ReminderJob) -> None:
        # The post-event email is the last job of a booking.
        if job.kind is not ReminderKind.POST_EVENT:
            return
        try:
            self._ledger.complete(job.booking_id)
        except (BookingNotFoundError, InvalidStateError) as exc:
            logger.info(f"Booking {job.booking_id} not completed after its post-event reminder: {exc}")

    def _render(self, job: ReminderJob, booking: Booking) -> tuple[str, str, str]:
        product = self._catalog.get_product(booking.product_id)
        data = message_context(booking, product, job.event_at)
        template = self._templates.get_template(job.kind)
        return (
            self._templates.populate(template.subject, data),
            self._templates.populate(template.html, data, html=True),
            self._templates.populate(template.text, data),
        )
