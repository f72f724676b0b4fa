from django.core.management.base import BaseCommand

from registration.container import get_container


class Command(BaseCommand):
    help = "Send every reminder that is due. Meant to run from cron every few minutes."

    def handle(self, *args, **options):
        sent = get_container().dispatcher.process_pending_reminders()
        self.stdout.write(self.style.SUCCESS(f"Sent {sent} reminder(s)"))
