"""
Outbound and inbound SMS plumbing around Twilio.

Callers depend on the small ``SmsGateway`` protocol rather than on the
Twilio client, so tests can hand a fake gateway to the reminder job and
the cancellation flow.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from django.conf import settings
from twilio.base.exceptions import TwilioException
from twilio.request_validator import RequestValidator
from twilio.rest import Client

logger = logging.getLogger(__name__)


class SmsGatewayError(Exception):
    """The gateway refused or failed to deliver a message."""


class SmsGateway(Protocol):
    def send(self, body: str, to: str) -> str:
        """Send ``body`` to ``to`` and return the provider message id."""
        ...


class TwilioGateway:
    def __init__(self, account_sid: str, auth_token: str, from_number: str, *, enabled: bool = True):
        self.from_number = from_number
        self.enabled = enabled
        self._client: Optional[Client] = None
        if enabled and account_sid and auth_token:
            self._client = Client(account_sid, auth_token)

    def send(self, body: str, to: str) -> str:
        if not self.enabled:
            raise SmsGatewayError('SMS sending not enabled on server')
        if self._client is None or not self.from_number:
            raise SmsGatewayError('Twilio credentials or sender number not configured')
        try:
            message = self._client.messages.create(body=body, to=to, from_=self.from_number)
        except TwilioException as exc:
            raise SmsGatewayError(str(exc)) from exc
        logger.info("SMS sent to %s (sid=%s)", to, message.sid)
        return message.sid


_gateway: Optional[SmsGateway] = None


def get_gateway() -> SmsGateway:
    """Return the process-wide gateway, building it from settings on first use."""
    global _gateway
    if _gateway is None:
        _gateway = TwilioGateway(
            settings.TWILIO_ACCOUNT_SID,
            settings.TWILIO_AUTH_TOKEN,
            settings.TWILIO_PHONE_NUMBER,
            enabled=settings.SMS_ENABLE,
        )
    return _gateway


def validate_twilio_signature(request) -> bool:
    """Check ``X-Twilio-Signature`` against the full request URL and POST params."""
    signature = request.META.get('HTTP_X_TWILIO_SIGNATURE', '')
    if not signature or not settings.TWILIO_AUTH_TOKEN:
        return False
    validator = RequestValidator(settings.TWILIO_AUTH_TOKEN)
    url = request.build_absolute_uri()
    return validator.validate(url, request.POST.dict(), signature)
