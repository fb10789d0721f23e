from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError

from clinic.services.reminders import send_appointment_reminders


class Command(BaseCommand):
    help = "Send SMS reminders for tomorrow's scheduled appointments (run once per day)."

    def handle(self, *args, **options):
        try:
            run = send_appointment_reminders()
        except DatabaseError as exc:
            raise CommandError(f"Reminder run failed: {exc}") from exc

        for outcome in run.outcomes:
            if outcome.status == 'failed':
                self.stderr.write(f"appointment {outcome.appointment_id}: failed ({outcome.error})")
        self.stdout.write(self.style.SUCCESS(
            f"Reminders for {run.target_date:%Y-%m-%d}: {run.sent} sent, {run.failed} failed"
        ))
