from datetime import date, time

import pytest
from django.urls import reverse
from rest_framework.test import APIClient
from twilio.request_validator import RequestValidator

from clinic.models import Appointment, AuditEvent
from clinic.services import cancellation
from clinic.services.cancellation import (
    CANCELLED_MESSAGE,
    NOT_FOUND_MESSAGE,
    CancellationStatus,
    cancel_appointment,
    cancel_by_sms,
    is_cancel_request,
)
from clinic.tests.factories import FakeGateway, make_appointment, make_patient

pytestmark = pytest.mark.django_db

PHONE = '+15551230001'


@pytest.fixture(autouse=True)
def _no_signature_check(settings):
    settings.TWILIO_VALIDATE_SIGNATURE = False


@pytest.fixture
def client():
    return APIClient()


def inbound(client, body, sender=PHONE, **extra):
    data = {'Body': body}
    if sender is not None:
        data['From'] = sender
    return client.post(reverse('sms_inbound'), data, **extra)


@pytest.mark.parametrize('body', ['CANCEL', 'cancel', '  Cancel \n', 'cAnCeL'])
def test_cancel_keyword_is_case_and_whitespace_insensitive(body):
    assert is_cancel_request(body)


@pytest.mark.parametrize('body', ['', None, 'cancel please', 'STOP', 'CANCELLED'])
def test_other_bodies_are_not_cancel_requests(body):
    assert not is_cancel_request(body)


def test_cancel_reply_cancels_earliest_appointment_only(client, gateway):
    patient = make_patient(phone=PHONE)
    later = make_appointment(patient, on=date(2024, 5, 3))
    earlier = make_appointment(patient, on=date(2024, 5, 1))

    r = inbound(client, ' cancel ')

    assert r.status_code == 200
    assert r.content == b'Appointment cancelled'
    earlier.refresh_from_db()
    later.refresh_from_db()
    assert earlier.status == Appointment.STATUS_CANCELLED
    assert earlier.cancelled_at is not None
    assert later.status == Appointment.STATUS_SCHEDULED
    assert gateway.sent == [(PHONE, CANCELLED_MESSAGE)]
    assert AuditEvent.objects.filter(action='appointment_cancel', object_id=earlier.id).exists()


def test_same_day_appointments_are_ordered_by_time(client, gateway):
    patient = make_patient(phone=PHONE)
    afternoon = make_appointment(patient, on=date(2024, 5, 1), at=time(15, 0))
    morning = make_appointment(patient, on=date(2024, 5, 1), at=time(8, 0))

    inbound(client, 'CANCEL')

    assert Appointment.objects.get(pk=morning.pk).status == Appointment.STATUS_CANCELLED
    assert Appointment.objects.get(pk=afternoon.pk).status == Appointment.STATUS_SCHEDULED


def test_cancel_with_no_scheduled_appointment(client, gateway):
    patient = make_patient(phone=PHONE)
    done = make_appointment(patient, on=date(2024, 5, 1), status=Appointment.STATUS_COMPLETED)
    other = make_appointment(make_patient(phone='+15551230002'), on=date(2024, 5, 1))

    r = inbound(client, 'CANCEL')

    assert r.status_code == 200
    assert r.content == b'No appointments found'
    assert gateway.sent == [(PHONE, NOT_FOUND_MESSAGE)]
    assert Appointment.objects.get(pk=done.pk).status == Appointment.STATUS_COMPLETED
    assert Appointment.objects.get(pk=other.pk).status == Appointment.STATUS_SCHEDULED


def test_non_cancel_message_is_acknowledged(client, gateway):
    appt = make_appointment(make_patient(phone=PHONE), on=date(2024, 5, 1))

    r = inbound(client, 'See you tomorrow')

    assert r.status_code == 200
    assert r.content == b'Message received'
    assert r['Content-Type'].startswith('text/plain')
    assert gateway.sent == []
    assert Appointment.objects.get(pk=appt.pk).status == Appointment.STATUS_SCHEDULED


def test_missing_body_is_acknowledged(client, gateway):
    r = client.post(reverse('sms_inbound'), {'From': PHONE})
    assert r.status_code == 200
    assert r.content == b'Message received'


def test_cancel_without_sender_is_rejected(client, gateway):
    r = inbound(client, 'CANCEL', sender=None)
    assert r.status_code == 400
    assert gateway.sent == []


@pytest.mark.parametrize('method', ['get', 'put', 'delete'])
def test_other_methods_are_not_allowed(client, gateway, method):
    make_appointment(make_patient(phone=PHONE), on=date(2024, 5, 1))
    r = getattr(client, method)(reverse('sms_inbound'), {'Body': 'CANCEL', 'From': PHONE})
    assert r.status_code == 405
    assert r.content == b'Method Not Allowed'
    assert gateway.sent == []
    assert Appointment.objects.get().status == Appointment.STATUS_SCHEDULED


def test_gateway_failure_returns_500(client, monkeypatch):
    monkeypatch.setattr('clinic.services.sms._gateway', FakeGateway(fail_for={PHONE}))
    make_appointment(make_patient(phone=PHONE), on=date(2024, 5, 1))

    r = inbound(client, 'CANCEL')

    assert r.status_code == 500
    assert r.content == b'Error processing request'


def test_invalid_signature_is_rejected(client, gateway, settings):
    settings.TWILIO_VALIDATE_SIGNATURE = True
    settings.TWILIO_AUTH_TOKEN = 'secret-token'
    appt = make_appointment(make_patient(phone=PHONE), on=date(2024, 5, 1))

    r = inbound(client, 'CANCEL', HTTP_X_TWILIO_SIGNATURE='bogus')

    assert r.status_code == 403
    assert gateway.sent == []
    assert Appointment.objects.get(pk=appt.pk).status == Appointment.STATUS_SCHEDULED


def test_valid_signature_is_accepted(client, gateway, settings):
    settings.TWILIO_VALIDATE_SIGNATURE = True
    settings.TWILIO_AUTH_TOKEN = 'secret-token'
    params = {'Body': 'hello', 'From': PHONE}
    url = 'http://testserver' + reverse('sms_inbound')
    signature = RequestValidator('secret-token').compute_signature(url, params)

    r = client.post(reverse('sms_inbound'), params, HTTP_X_TWILIO_SIGNATURE=signature)

    assert r.status_code == 200
    assert r.content == b'Message received'


def test_cancel_appointment_only_moves_scheduled():
    appt = make_appointment(make_patient(), on=date(2024, 5, 1))
    assert cancel_appointment(appt, source='admin')
    first_cancelled_at = Appointment.objects.get(pk=appt.pk).cancelled_at

    assert not cancel_appointment(appt, source='admin')
    assert Appointment.objects.get(pk=appt.pk).cancelled_at == first_cancelled_at

    done = make_appointment(make_patient(phone='+15551230002'), on=date(2024, 5, 1), status=Appointment.STATUS_COMPLETED)
    assert not cancel_appointment(done, source='sms')
    assert Appointment.objects.get(pk=done.pk).status == Appointment.STATUS_COMPLETED


def _interleave(monkeypatch, change):
    """Apply ``change`` to the appointment between the SMS lookup and its update."""
    real_lookup = cancellation.next_scheduled_appointment

    def lookup(phone):
        appointment = real_lookup(phone)
        change(Appointment.objects.get(pk=appointment.pk))
        return appointment

    monkeypatch.setattr(cancellation, 'next_scheduled_appointment', lookup)


def test_admin_cancel_during_reply_leaves_later_appointment_alone(monkeypatch):
    patient = make_patient(phone=PHONE)
    first = make_appointment(patient, on=date(2024, 5, 1))
    second = make_appointment(patient, on=date(2024, 5, 3))
    _interleave(monkeypatch, lambda appt: cancel_appointment(appt, source='admin'))
    gateway = FakeGateway()

    outcome = cancel_by_sms(PHONE, gateway=gateway)

    assert outcome.status is CancellationStatus.CANCELLED
    assert outcome.appointment.pk == first.pk
    assert Appointment.objects.get(pk=first.pk).status == Appointment.STATUS_CANCELLED
    assert Appointment.objects.get(pk=second.pk).status == Appointment.STATUS_SCHEDULED
    assert gateway.sent == [(PHONE, CANCELLED_MESSAGE)]
    assert AuditEvent.objects.filter(action='appointment_cancel').count() == 1


def test_completed_during_reply_is_reported_not_found(monkeypatch):
    patient = make_patient(phone=PHONE)
    first = make_appointment(patient, on=date(2024, 5, 1))
    second = make_appointment(patient, on=date(2024, 5, 3))

    def complete(appt):
        Appointment.objects.filter(pk=appt.pk).update(status=Appointment.STATUS_COMPLETED)

    _interleave(monkeypatch, complete)
    gateway = FakeGateway()

    outcome = cancel_by_sms(PHONE, gateway=gateway)

    assert outcome.status is CancellationStatus.NOT_FOUND
    assert Appointment.objects.get(pk=first.pk).status == Appointment.STATUS_COMPLETED
    assert Appointment.objects.get(pk=second.pk).status == Appointment.STATUS_SCHEDULED
    assert gateway.sent == [(PHONE, NOT_FOUND_MESSAGE)]


def test_cancellation_is_broadcast(monkeypatch):
    events = []

    class Layer:
        async def group_send(self, group, message):
            events.append((group, message))

    monkeypatch.setattr(cancellation, 'get_channel_layer', lambda: Layer())
    appt = make_appointment(make_patient(), on=date(2024, 5, 1))

    cancel_appointment(appt, source='sms')

    (group, message), = events
    assert group == 'updates'
    assert message['type'] == 'appointment.cancelled'
    assert message['appointmentId'] == appt.id
    assert message['source'] == 'sms'
