"""
Inbound SMS webhook.

Twilio posts every reply a patient sends to the clinic number here.  A
reply of ``CANCEL`` (any case, surrounding whitespace ignored) cancels
the sender's next scheduled appointment; anything else is just
acknowledged.  Responses are plain text because Twilio only logs them.
Errors are not retried here; Twilio decides whether to redeliver.
"""
from __future__ import annotations

import logging

from django.conf import settings
from django.http import HttpResponse
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny

from clinic.serializers.sms import InboundSmsSerializer
from clinic.services.cancellation import CancellationStatus, cancel_by_sms, is_cancel_request
from clinic.services.sms import validate_twilio_signature

logger = logging.getLogger(__name__)


def _text(body: str, status: int = 200) -> HttpResponse:
    return HttpResponse(body, status=status, content_type='text/plain; charset=utf-8')


@api_view(['GET', 'POST', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([AllowAny])
@throttle_classes([])
def inbound_sms(request):
    if request.method != 'POST':
        return _text('Method Not Allowed', status=405)
    if settings.TWILIO_VALIDATE_SIGNATURE and not validate_twilio_signature(request):
        logger.warning("Rejected inbound SMS with invalid signature from %s", request.META.get('REMOTE_ADDR'))
        return _text('Invalid signature', status=403)

    s = InboundSmsSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    body = s.validated_data['Body']
    sender = s.validated_data['From'].strip()

    if not is_cancel_request(body):
        return _text('Message received')
    if not sender:
        return _text('Missing sender', status=400)

    try:
        outcome = cancel_by_sms(sender)
    except Exception:
        logger.exception("Error handling SMS response from %s", sender)
        return _text('Error processing request', status=500)

    if outcome.status is CancellationStatus.NOT_FOUND:
        return _text('No appointments found')
    return _text('Appointment cancelled')
