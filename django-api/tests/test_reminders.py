"""Unit tests for ReminderScheduler and ReminderDispatcher.

Run with: pytest tests/test_reminders.py -v
"""

from datetime import date, datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest

from registration.domain import (
    Attendee,
    BookingStatus,
    Money,
    PaymentStatus,
    PointOfContact,
    ReminderKind,
    ReminderStatus,
)
from registration.domain.errors import BookingNotFoundError, InvalidStateError
from registration.services import DispatchPolicy, ReminderDispatcher
from registration.services.messages import format_event_date, format_event_time

from fakes import FakeTemplateProvider

# 09:00 and 17:00 Pacific
STARTS_AT = datetime(2026, 10, 17, 16, 0, tzinfo=timezone.utc)
ENDS_AT = datetime(2026, 10, 20, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_booking(ledger):
    def factory(contact_email="grace@example.com", contact_name="Grace Hopper", confirm=True):
        booking = ledger.create_pending(
            product_id="prod-3day",
            start_date=date(2026, 10, 17),
            event_starts_at=STARTS_AT,
            event_ends_at=ENDS_AT,
            attendees=(Attendee(name="Ada", email="ada@example.com"),),
            point_of_contact=PointOfContact(name=contact_name, email=contact_email),
            base_amount=Money.of("3000"),
            discount_amount=Money.zero(),
        )
        if confirm:
            booking = ledger.confirm(booking.id, payment_id="pay-1", confirmation_code="YOLO-TEST0001")
        return booking

    return factory


class TestScheduleReminders:
    """Tests for ReminderScheduler.schedule_reminders_for_booking."""

    def test_creates_one_job_per_offset(self, scheduler, make_booking):
        booking = make_booking()

        jobs = scheduler.schedule_reminders_for_booking(booking.id)

        assert [(job.kind, job.scheduled_for) for job in jobs] == [
            (ReminderKind.REMINDER_48H, STARTS_AT - timedelta(hours=48)),
            (ReminderKind.REMINDER_24H, STARTS_AT - timedelta(hours=24)),
            (ReminderKind.REMINDER_2H, STARTS_AT - timedelta(hours=2)),
            (ReminderKind.POST_EVENT, ENDS_AT + timedelta(hours=2)),
        ]
        assert {job.status for job in jobs} == {ReminderStatus.SCHEDULED}
        assert {job.recipient_email for job in jobs} == {"grace@example.com"}
        assert {job.workshop_id for job in jobs} == {booking.workshop_id}

    def test_scheduling_twice_keeps_one_set(self, scheduler, make_booking, reminder_store):
        booking = make_booking()
        first = scheduler.schedule_reminders_for_booking(booking.id)
        second = scheduler.schedule_reminders_for_booking(str(booking.id))

        assert {job.id for job in second} == {job.id for job in first}
        assert len(reminder_store.jobs) == 4

    def test_pending_booking_is_rejected(self, scheduler, make_booking):
        booking = make_booking(confirm=False)
        with pytest.raises(InvalidStateError):
            scheduler.schedule_reminders_for_booking(booking.id)

    def test_unknown_booking(self, scheduler):
        with pytest.raises(BookingNotFoundError):
            scheduler.schedule_reminders_for_booking(uuid4())

    def test_cancel_keeps_sent_jobs(self, scheduler, make_booking, reminder_store, clock):
        booking = make_booking()
        jobs = scheduler.schedule_reminders_for_booking(booking.id)
        reminder_store.mark_sent(jobs[0].id, clock(), "msg-1")

        assert scheduler.cancel_reminders_for_booking(booking.id) == 3

        history = scheduler.reminder_history(booking.id)
        assert [job.status for job in history] == [
            ReminderStatus.SENT,
            ReminderStatus.CANCELLED,
            ReminderStatus.CANCELLED,
            ReminderStatus.CANCELLED,
        ]


class TestDispatcher:
    """Tests for ReminderDispatcher.process_pending_reminders."""

    def test_nothing_due_sends_nothing(self, dispatcher, scheduler, make_booking, email):
        scheduler.schedule_reminders_for_booking(make_booking().id)
        assert dispatcher.process_pending_reminders() == 0
        assert email.sent == []

    def test_due_job_is_sent_exactly_once(self, dispatcher, scheduler, make_booking, email, clock, reminder_store):
        jobs = scheduler.schedule_reminders_for_booking(make_booking().id)
        clock.now = STARTS_AT - timedelta(hours=47)

        assert dispatcher.process_pending_reminders() == 1
        assert dispatcher.process_pending_reminders() == 0

        assert len(email.sent) == 1
        assert email.sent[0]["key"] == str(jobs[0].id)
        sent = reminder_store.get(jobs[0].id)
        assert sent.status is ReminderStatus.SENT
        assert sent.message_id == "msg-1"

    def test_failing_job_gives_up_after_max_attempts(
        self, dispatcher, scheduler, make_booking, email, clock, reminder_store
    ):
        jobs = scheduler.schedule_reminders_for_booking(make_booking().id)
        email.failing.add("grace@example.com")
        clock.now = STARTS_AT - timedelta(hours=47)

        for _ in range(3):
            assert dispatcher.process_pending_reminders() == 0

        failed = reminder_store.get(jobs[0].id)
        assert failed.status is ReminderStatus.FAILED
        assert failed.attempts == 3
        assert failed.last_error == "Mailbox unavailable"
        assert reminder_store.due(clock(), 3, 50) == []

    def test_one_failure_does_not_block_the_batch(self, dispatcher, scheduler, make_booking, email, clock):
        scheduler.schedule_reminders_for_booking(make_booking(contact_email="broken@example.com").id)
        scheduler.schedule_reminders_for_booking(make_booking(contact_email="ok@example.com").id)
        email.failing.add("broken@example.com")
        clock.now = STARTS_AT - timedelta(hours=47)

        assert dispatcher.process_pending_reminders() == 1
        assert [message["to"] for message in email.sent] == ["ok@example.com"]

    def test_cancelled_jobs_are_not_sent(self, dispatcher, scheduler, make_booking, email, clock):
        booking = make_booking()
        scheduler.schedule_reminders_for_booking(booking.id)
        scheduler.cancel_reminders_for_booking(booking.id)
        clock.now = ENDS_AT + timedelta(days=1)

        assert dispatcher.process_pending_reminders() == 0
        assert email.sent == []

    def test_stale_claim_is_released_and_sent(self, dispatcher, scheduler, make_booking, email, clock, reminder_store):
        jobs = scheduler.schedule_reminders_for_booking(make_booking().id)
        clock.now = STARTS_AT - timedelta(hours=47)
        reminder_store.claim(jobs[0].id, clock())

        assert dispatcher.process_pending_reminders() == 0
        clock.advance(minutes=20)
        assert dispatcher.process_pending_reminders() == 1
        assert len(email.sent) == 1

    def test_sends_are_spaced_by_delay(self, reminder_store, ledger, catalog, email, clock, scheduler, make_booking):
        pauses = []
        dispatcher = ReminderDispatcher(
            reminder_store,
            ledger,
            catalog,
            FakeTemplateProvider(),
            email,
            policy=DispatchPolicy(send_delay_seconds=1.0),
            clock=clock,
            sleep=pauses.append,
        )
        scheduler.schedule_reminders_for_booking(make_booking().id)
        clock.now = STARTS_AT - timedelta(hours=1)

        assert dispatcher.process_pending_reminders() == 3
        assert pauses == [1.0, 1.0]

    def test_message_content(self, dispatcher, scheduler, make_booking, email, clock):
        scheduler.schedule_reminders_for_booking(make_booking(contact_name="<Grace & Co>").id)
        clock.now = STARTS_AT - timedelta(hours=47)

        dispatcher.process_pending_reminders()

        message = email.sent[0]
        assert message["subject"] == "Get ready! 3-Day AI Workshop is in 2 days"
        assert "Saturday, October 17, 2026" in message["text"]
        assert "9:00 AM" in message["text"]
        assert "Innovation Hub, Room 4" in message["text"]
        assert "Hi <Grace & Co>," in message["text"]
        assert "&lt;Grace &amp; Co&gt;" in message["html"]
        assert "Join online" not in message["text"]

    def test_job_for_missing_booking_is_cancelled(
        self, dispatcher, scheduler, make_booking, booking_store, reminder_store, clock, email
    ):
        booking = make_booking()
        jobs = scheduler.schedule_reminders_for_booking(booking.id)
        booking_store.delete(booking.id)
        clock.now = STARTS_AT - timedelta(hours=47)

        assert dispatcher.process_pending_reminders() == 0
        job = reminder_store.get(jobs[0].id)
        assert job.status is ReminderStatus.CANCELLED
        assert job.attempts == 0
        assert email.sent == []


    def test_reminder_for_cancelled_booking_is_cancelled_not_sent(
        self, dispatcher, scheduler, make_booking, ledger, reminder_store, email, clock
    ):
        booking = make_booking()
        jobs = scheduler.schedule_reminders_for_booking(booking.id)
        ledger.cancel(booking.id, payment_status=PaymentStatus.REFUNDED)
        clock.now = STARTS_AT - timedelta(hours=47)

        assert dispatcher.process_pending_reminders() == 0
        assert reminder_store.get(jobs[0].id).status is ReminderStatus.CANCELLED
        assert email.sent == []

    def test_post_event_reminder_completes_booking(self, dispatcher, scheduler, make_booking, ledger, clock):
        booking = make_booking()
        scheduler.schedule_reminders_for_booking(booking.id)
        clock.now = ENDS_AT + timedelta(hours=3)

        assert dispatcher.process_pending_reminders() == 4
        assert ledger.get(booking.id).status is BookingStatus.COMPLETED

    def test_post_event_failure_still_completes_booking(
        self, dispatcher, scheduler, make_booking, ledger, email, clock
    ):
        booking = make_booking()
        scheduler.schedule_reminders_for_booking(booking.id)
        email.failing.add("grace@example.com")
        clock.now = ENDS_AT + timedelta(hours=3)

        dispatcher.process_pending_reminders()
        assert ledger.get(booking.id).status is BookingStatus.CONFIRMED
        dispatcher.process_pending_reminders()
        dispatcher.process_pending_reminders()

        assert ledger.get(booking.id).status is BookingStatus.COMPLETED


class TestCancellationDuringDispatch:
    """A purchase cancelled while one of its reminders is being sent."""

    def test_in_flight_reminder_is_never_sent_after_cancel(
        self, purchases, make_request, dispatcher, reminder_store, email, clock
    ):
        result = purchases.process_purchase(make_request())
        job = reminder_store.list_for_booking(UUID(result.booking_id))[0]
        clock.now = STARTS_AT - timedelta(hours=47)
        assert reminder_store.claim(job.id, clock()) is not None

        purchases.cancel_purchase(result.purchase_id)
        assert reminder_store.get(job.id).status is ReminderStatus.CANCELLED

        # The worker that held the claim reports its failed attempt late.
        assert reminder_store.record_failure(job.id, clock(), "SMTP timeout", 3) is None
        assert reminder_store.mark_sent(job.id, clock(), "msg-late") is None

        assert dispatcher.process_pending_reminders() == 0
        clock.advance(minutes=20)
        assert dispatcher.process_pending_reminders() == 0

        assert reminder_store.get(job.id).status is ReminderStatus.CANCELLED
        assert [message for message in email.sent if message["key"] == str(job.id)] == []

    def test_cancel_covers_every_open_job(self, purchases, make_request, reminder_store, clock):
        result = purchases.process_purchase(make_request())
        jobs = reminder_store.list_for_booking(UUID(result.booking_id))
        reminder_store.claim(jobs[1].id, clock())

        purchases.cancel_purchase(result.purchase_id)

        statuses = {job.status for job in reminder_store.list_for_booking(UUID(result.booking_id))}
        assert statuses == {ReminderStatus.CANCELLED}



class TestFormatting:
    """Tests for reminder date and time formatting."""

    def test_event_date_in_local_time(self):
        assert format_event_date(STARTS_AT) == "Saturday, October 17, 2026"

    def test_event_time_in_local_time(self):
        assert format_event_time(STARTS_AT) == "9:00 AM"
        assert format_event_time(STARTS_AT + timedelta(hours=4, minutes=30)) == "1:30 PM"

