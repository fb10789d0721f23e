import logging

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger
from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import close_old_connections

from clinic.services.reminders import send_appointment_reminders

logger = logging.getLogger(__name__)


def _run_job():
    # Long-lived process: drop connections the database may have timed out.
    close_old_connections()
    try:
        run = send_appointment_reminders()
    finally:
        close_old_connections()
    logger.info("Reminder job done for %s: %d sent, %d failed", run.target_date, run.sent, run.failed)


class Command(BaseCommand):
    help = "Run the appointment reminder job in-process every REMINDER_INTERVAL_HOURS."

    def add_arguments(self, parser):
        parser.add_argument('--run-now', action='store_true', help='Also run the job once at start-up.')

    def handle(self, *args, **options):
        scheduler = BlockingScheduler(timezone=settings.TIME_ZONE)
        scheduler.add_job(
            _run_job,
            IntervalTrigger(hours=settings.REMINDER_INTERVAL_HOURS),
            id='appointment_reminders',
            name='Appointment SMS reminders',
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if options['run_now']:
            _run_job()
        self.stdout.write(self.style.SUCCESS(
            f"Reminder scheduler started (every {settings.REMINDER_INTERVAL_HOURS}h, tz={settings.TIME_ZONE})"
        ))
        try:
            scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            scheduler.shutdown(wait=False)
            self.stdout.write("Reminder scheduler stopped")
