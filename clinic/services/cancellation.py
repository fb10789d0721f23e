"""
Appointment cancellation, by SMS reply or by an administrator.

The status change is a single conditional update (``WHERE status='scheduled'``)
so two concurrent cancellations of the same appointment cannot both
succeed, and a reply can never resurrect or overwrite a completed visit.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

from clinic.models import Appointment, User
from clinic.services.audit import log_action
from clinic.services.sms import SmsGateway, get_gateway

logger = logging.getLogger(__name__)

CANCEL_KEYWORD = 'CANCEL'
NOT_FOUND_MESSAGE = 'No upcoming appointments found to cancel.'
CANCELLED_MESSAGE = 'Your appointment has been cancelled. Please contact the clinic to reschedule.'


class CancellationStatus(enum.Enum):
    CANCELLED = 'cancelled'
    NOT_FOUND = 'not_found'


@dataclass
class CancellationOutcome:
    status: CancellationStatus
    appointment: Optional[Appointment] = None


def is_cancel_request(body: Optional[str]) -> bool:
    return (body or '').strip().upper() == CANCEL_KEYWORD


def next_scheduled_appointment(phone: str) -> Optional[Appointment]:
    """Earliest scheduled appointment booked under ``phone``."""
    return (
        Appointment.objects.filter(patient_phone=phone, status=Appointment.STATUS_SCHEDULED)
        .order_by('date', 'time', 'id')
        .first()
    )


def _broadcast_cancelled(appointment: Appointment, source: str) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    event = {
        "type": "appointment.cancelled",
        "appointmentId": appointment.id,
        "date": appointment.date.isoformat(),
        "source": source,
        "ts": timezone.now().isoformat(),
    }
    try:
        async_to_sync(channel_layer.group_send)("updates", event)
    except Exception:
        logger.warning("Could not broadcast cancellation of appointment %s", appointment.id, exc_info=True)


def cancel_appointment(appointment: Appointment, *, source: str, actor: Optional[User] = None) -> bool:
    """Move ``appointment`` from scheduled to cancelled.

    Returns False without writing anything when the appointment is no
    longer scheduled.  On success the instance is updated in place.
    """
    now = timezone.now()
    updated = Appointment.objects.filter(
        pk=appointment.pk, status=Appointment.STATUS_SCHEDULED
    ).update(status=Appointment.STATUS_CANCELLED, cancelled_at=now, updated_at=now)
    if not updated:
        return False
    appointment.status = Appointment.STATUS_CANCELLED
    appointment.cancelled_at = now
    log_action(
        user=actor, action='appointment_cancel', object_type='appointment', object_id=appointment.pk,
        detail={'source': source, 'date': appointment.date.isoformat()},
    )
    _broadcast_cancelled(appointment, source)
    logger.info("Appointment %s cancelled via %s", appointment.pk, source)
    return True


def cancel_by_sms(phone: str, gateway: Optional[SmsGateway] = None) -> CancellationOutcome:
    """Cancel the sender's next scheduled appointment and text them the result.

    Only the appointment that was nearest when the message arrived is
    ever touched.  If another request cancelled it in the meantime the
    sender still gets the confirmation; if it was completed instead they
    are told nothing was found.
    """
    gateway = gateway or get_gateway()
    appointment = next_scheduled_appointment(phone)
    if appointment is not None and not cancel_appointment(appointment, source='sms'):
        appointment.refresh_from_db(fields=['status', 'cancelled_at'])
        logger.info("Appointment %s changed to %s before SMS cancellation", appointment.pk, appointment.status)
        if appointment.status != Appointment.STATUS_CANCELLED:
            appointment = None
    if appointment is None:
        gateway.send(NOT_FOUND_MESSAGE, phone)
        return CancellationOutcome(CancellationStatus.NOT_FOUND)
    gateway.send(CANCELLED_MESSAGE, phone)
    return CancellationOutcome(CancellationStatus.CANCELLED, appointment)
