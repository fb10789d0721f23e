"""
Integration tests for the clinic API.

These tests exercise registration and its validation, the symptom
checker, staff login and the administrator endpoints (access control,
appointment listing and cancellation, the dashboard).  They use Django
REST Framework's APIClient within the APITestCase base class.

To run the tests:

```
pytest -q clinic/tests
```
"""
import copy
from datetime import date, time, timedelta

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from ..models import Appointment, AuditEvent, Patient, SmsLog, User
from .factories import make_appointment, make_patient

REGISTRATION = {
    'personalInfo': {
        'firstName': 'Maria',
        'lastName': 'Santos',
        'dateOfBirth': '1988-03-14',
        'gender': 'female',
        'nationality': 'Brazilian',
        'address': {'street': '42 King Street W', 'city': 'Toronto', 'province': 'ON', 'postalCode': 'M5H 1A1'},
        'contactInfo': {
            'phone': '+14165550101',
            'email': 'maria@example.com',
            'emergencyContact': {'name': 'Joao Santos', 'relationship': 'Spouse', 'phone': '+14165550102'},
        },
    },
    'medicalInfo': {
        'bloodType': 'A+',
        'allergies': ['Penicillin'],
        'chronicConditions': [],
        'insuranceInfo': {'provider': 'Sun Life', 'policyNumber': 'SL-123456', 'coverageDetails': 'Basic'},
    },
}


class RegistrationTests(APITestCase):
    def test_valid_registration_creates_patient(self):
        r = self.client.post(reverse('patient_register'), REGISTRATION, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertTrue(r.data['ok'])
        patient = Patient.objects.get(id=r.data['id'])
        self.assertEqual(patient.full_name, 'Maria Santos')
        self.assertEqual(patient.phone, '+14165550101')
        self.assertEqual(patient.allergies, ['Penicillin'])
        self.assertEqual(patient.emergency_contact['relationship'], 'Spouse')
        self.assertEqual(patient.insurance['policyNumber'], 'SL-123456')
        self.assertTrue(AuditEvent.objects.filter(action='patient_create', object_id=patient.id).exists())

    def test_markup_is_stripped_from_text_fields(self):
        payload = copy.deepcopy(REGISTRATION)
        payload['personalInfo']['firstName'] = '<b>Maria</b>'
        r = self.client.post(reverse('patient_register'), payload, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Patient.objects.get(id=r.data['id']).first_name, 'Maria')

    def test_links_and_inline_tags_are_stripped(self):
        payload = copy.deepcopy(REGISTRATION)
        payload['personalInfo']['lastName'] = '<a href="http://evil.example/x" title="t">Santos</a>'
        payload['personalInfo']['address']['street'] = '<strong>42</strong> King <i>Street</i> W'
        payload['medicalInfo']['allergies'] = ['<em>Latex</em>', '<script>alert(1)</script>Peanuts']
        r = self.client.post(reverse('patient_register'), payload, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        patient = Patient.objects.get(id=r.data['id'])
        self.assertEqual(patient.last_name, 'Santos')
        self.assertEqual(patient.address['street'], '42 King Street W')
        self.assertEqual(patient.allergies[0], 'Latex')
        self.assertNotIn('<', patient.allergies[1])

    def test_invalid_fields_are_reported_and_nothing_is_written(self):
        payload = copy.deepcopy(REGISTRATION)
        payload['personalInfo']['firstName'] = 'M'
        payload['personalInfo']['contactInfo']['phone'] = '12ab'
        payload['medicalInfo']['bloodType'] = 'Z+'
        r = self.client.post(reverse('patient_register'), payload, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(r.data['ok'])
        errors = r.data['error']['message']
        self.assertIn('firstName', errors['personalInfo'])
        self.assertEqual(
            [str(m) for m in errors['personalInfo']['contactInfo']['phone']],
            ['Please enter a valid phone number'],
        )
        self.assertIn('bloodType', errors['medicalInfo'])
        self.assertEqual(Patient.objects.count(), 0)

    def test_implausible_birth_date_is_rejected(self):
        payload = copy.deepcopy(REGISTRATION)
        payload['personalInfo']['dateOfBirth'] = (date.today() + timedelta(days=400)).isoformat()
        r = self.client.post(reverse('patient_register'), payload, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('dateOfBirth', r.data['error']['message']['personalInfo'])


class SymptomCheckerTests(APITestCase):
    def test_catalog_is_public(self):
        r = self.client.get(reverse('symptom_list'))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        ids = [s['id'] for s in r.data['data']]
        self.assertEqual(len(ids), 10)
        self.assertIn('sore_throat', ids)

    def test_check_ranks_conditions(self):
        r = self.client.post(reverse('symptom_check'), {'symptoms': ['fever', 'cough', 'sore_throat']}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        top = r.data['data'][0]
        self.assertEqual(top['condition'], 'Common Cold')
        self.assertEqual(top['matchPercent'], 75)
        self.assertIn('disclaimer', r.data)

    def test_empty_selection_returns_empty_list(self):
        r = self.client.post(reverse('symptom_check'), {'symptoms': []}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data'], [])

    def test_unknown_symptom_is_rejected(self):
        r = self.client.post(reverse('symptom_check'), {'symptoms': ['fever', 'hiccups']}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)


class AuthTests(APITestCase):
    def setUp(self) -> None:
        self.user = User.objects.create_user(username='reception', password='Str0ngPass!', role=User.ROLE_ADMIN)

    def test_login_returns_token_and_role(self):
        r = self.client.post(reverse('login_view'), {'username': 'reception', 'password': 'Str0ngPass!'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['role'], 'admin')
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
        self.assertEqual(self.client.get(reverse('admin_dashboard')).status_code, status.HTTP_200_OK)

    def test_wrong_password(self):
        r = self.client.post(reverse('login_view'), {'username': 'reception', 'password': 'nope'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(r.data['ok'])

    def test_role_in_payload_is_ignored(self):
        User.objects.create_user(username='drx', password='Str0ngPass!', role=User.ROLE_DOCTOR)
        r = self.client.post(reverse('login_view'), {'username': 'drx', 'password': 'Str0ngPass!', 'role': 'admin'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['role'], 'doctor')


class AdminEndpointTests(APITestCase):
    def setUp(self) -> None:
        self.admin = User.objects.create_user(username='admin1', password='adminpass', role=User.ROLE_ADMIN)
        self.doctor = User.objects.create_user(username='doctor1', password='doctorpass', role=User.ROLE_DOCTOR)
        self.patient = make_patient(phone='+15551230001')
        self.today = timezone.localdate()
        self.appt = make_appointment(self.patient, on=self.today + timedelta(days=1), at=time(9, 0))
        self.done = make_appointment(
            self.patient, on=self.today - timedelta(days=3), status=Appointment.STATUS_COMPLETED,
        )

    def test_anonymous_and_doctor_are_denied(self):
        for name in ('admin_dashboard', 'admin_appointment_list', 'admin_patient_list'):
            self.client.force_authenticate(user=None)
            self.assertEqual(self.client.get(reverse(name)).status_code, status.HTTP_401_UNAUTHORIZED)
            self.client.force_authenticate(user=self.doctor)
            self.assertEqual(self.client.get(reverse(name)).status_code, status.HTTP_403_FORBIDDEN)

    def test_list_appointments_filters_by_status(self):
        self.client.force_authenticate(user=self.admin)
        r = self.client.get(reverse('admin_appointment_list'), {'status': 'scheduled'})
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual([a['id'] for a in r.data['data']], [self.appt.id])
        self.assertEqual(r.data['data'][0]['time'], '09:00')
        self.assertEqual(r.data['pagination']['total'], 1)

    def test_cancel_then_conflict(self):
        self.client.force_authenticate(user=self.admin)
        url = reverse('admin_appointment_cancel')
        r = self.client.post(url, {'id': self.appt.id}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data']['status'], 'cancelled')
        event = AuditEvent.objects.get(action='appointment_cancel', object_id=self.appt.id)
        self.assertEqual(event.user, self.admin)
        self.assertEqual(event.detail['source'], 'admin')

        r = self.client.post(url, {'id': self.appt.id}, format='json')
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(r.data['error']['code'], 'conflict')

        r = self.client.post(url, {'id': self.done.id}, format='json')
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.done.refresh_from_db()
        self.assertEqual(self.done.status, Appointment.STATUS_COMPLETED)

    def test_cancel_unknown_appointment(self):
        self.client.force_authenticate(user=self.admin)
        r = self.client.post(reverse('admin_appointment_cancel'), {'id': 999999}, format='json')
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_and_update_patient(self):
        self.client.force_authenticate(user=self.admin)
        r = self.client.get(reverse('admin_patient_list'))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data'][0]['name'], 'Ana Lopez')

        r = self.client.post(reverse('admin_patient_update'), {'id': self.patient.id, 'phone': '+15559998888'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.patient.refresh_from_db()
        self.assertEqual(self.patient.phone, '+15559998888')
        self.assertEqual(self.patient.first_name, 'Ana')

        r = self.client.post(reverse('admin_patient_update'), {'id': 999999, 'phone': '+15559998888'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)

    def test_dashboard_counts(self):
        SmsLog.objects.create(appointment=self.appt, phone_number='+15551230001', message='m', status=SmsLog.STATUS_SENT)
        SmsLog.objects.create(appointment=self.appt, phone_number='+15551230001', message='m', status=SmsLog.STATUS_FAILED)
        self.client.force_authenticate(user=self.admin)
        r = self.client.get(reverse('admin_dashboard'))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['patients'], 1)
        self.assertEqual(r.data['appointments'], {'scheduled': 1, 'completed': 1, 'cancelled': 0})
        self.assertEqual(r.data['upcoming'], 1)
        self.assertEqual(r.data['sms'], {'sent': 1, 'failed': 1})


class HealthTests(APITestCase):
    def test_healthz(self):
        r = self.client.get(reverse('healthz'))
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertTrue(r.json()['db'])
