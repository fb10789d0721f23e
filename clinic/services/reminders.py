"""
Appointment reminder job.

One run picks the scheduled appointments dated ``REMINDER_LEAD_HOURS``
from now, sends each patient a reminder SMS and appends one ``SmsLog``
row per attempt.  Sends run concurrently on a thread pool and are all
joined before any log row is written; database access stays on the
calling thread.  A failed send or log write only affects its own
appointment.  A failed appointment query fails the whole run.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from clinic.models import Appointment, SmsLog
from clinic.services.sms import SmsGateway, get_gateway

logger = logging.getLogger(__name__)

REMINDER_TEMPLATE = (
    "Reminder: You have an appointment tomorrow at {time}. "
    "Please arrive 15 minutes early. Reply 'CANCEL' to cancel your appointment."
)


@dataclass
class ReminderOutcome:
    appointment_id: int
    phone_number: str
    status: str
    error: str = ''
    provider_sid: str = ''
    logged: bool = False


@dataclass
class ReminderRun:
    target_date: date
    outcomes: list[ReminderOutcome] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for o in self.outcomes if o.status == SmsLog.STATUS_SENT)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status == SmsLog.STATUS_FAILED)


def reminder_target_date(now: Optional[datetime] = None) -> date:
    """Local calendar date ``REMINDER_LEAD_HOURS`` after ``now``."""
    now = now or timezone.now()
    return timezone.localdate(now + timedelta(hours=settings.REMINDER_LEAD_HOURS))


def build_reminder_message(appointment: Appointment) -> str:
    return REMINDER_TEMPLATE.format(time=appointment.time.strftime('%H:%M'))


def _dispatch(gateway: SmsGateway, appointment_id: int, phone: str, body: str) -> ReminderOutcome:
    try:
        sid = gateway.send(body, phone)
    except Exception as exc:
        logger.error("Failed to send SMS for appointment %s: %s", appointment_id, exc)
        return ReminderOutcome(appointment_id, phone, SmsLog.STATUS_FAILED, error=str(exc) or exc.__class__.__name__)
    return ReminderOutcome(appointment_id, phone, SmsLog.STATUS_SENT, provider_sid=sid or '')


def send_appointment_reminders(now: Optional[datetime] = None, gateway: Optional[SmsGateway] = None) -> ReminderRun:
    """Run the reminder job once and return the per-appointment outcomes."""
    gateway = gateway or get_gateway()
    target = reminder_target_date(now)
    run = ReminderRun(target_date=target)

    try:
        appointments = list(
            Appointment.objects.filter(date=target, status=Appointment.STATUS_SCHEDULED).order_by('time', 'id')
        )
    except DatabaseError:
        logger.exception("Error querying appointments for %s", target)
        raise

    if not appointments:
        logger.info("No scheduled appointments on %s", target)
        return run

    logger.info("Sending %d reminders for %s", len(appointments), target)
    messages = {a.id: build_reminder_message(a) for a in appointments}
    workers = max(1, min(settings.REMINDER_DISPATCH_WORKERS, len(appointments)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='sms-reminder') as pool:
        futures = [
            pool.submit(_dispatch, gateway, a.id, a.patient_phone, messages[a.id])
            for a in appointments
        ]
        run.outcomes = [f.result() for f in futures]

    by_id = {a.id: a for a in appointments}
    for outcome in run.outcomes:
        appointment = by_id[outcome.appointment_id]
        try:
            with transaction.atomic():
                SmsLog.objects.create(
                    appointment=appointment,
                    patient_id=appointment.patient_id,
                    phone_number=outcome.phone_number,
                    message=messages[appointment.id],
                    status=outcome.status,
                    error=outcome.error,
                    provider_sid=outcome.provider_sid,
                )
            outcome.logged = True
        except DatabaseError:
            logger.exception("Failed to write SMS log for appointment %s", appointment.id)

    logger.info("Reminder run for %s finished: %d sent, %d failed", target, run.sent, run.failed)
    return run
