from datetime import timedelta

from django.core.management.base import BaseCommand

from registration.container import get_container, pending_lease


class Command(BaseCommand):
    help = "Close purchases left pending by an interrupted request, refunding any captured charge."

    def add_arguments(self, parser):
        parser.add_argument(
            "--older-than-minutes",
            type=int,
            default=None,
            help="Only close bookings pending for longer than this. Defaults to PENDING_LEASE_MINUTES.",
        )

    def handle(self, *args, **options):
        minutes = options["older_than_minutes"]
        lease = timedelta(minutes=minutes) if minutes is not None else pending_lease()
        closed = get_container().purchases.reconcile_pending_purchases(lease)
        self.stdout.write(self.style.SUCCESS(f"Closed {closed} pending purchase(s)"))
