"""
Management command to populate the database with demo data.
"""
from datetime import date, time, timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from clinic.models import Appointment, Patient, User

DEMO_PASSWORD = 'ClinicDemo!2024'

DEMO_PATIENTS = [
    ('Ana', 'Lopez', '+15550000001', 'female', 'O+'),
    ('Ben', 'Carter', '+15550000002', 'male', 'A-'),
    ('Chen', 'Wei', '+15550000003', 'other', 'B+'),
]


class Command(BaseCommand):
    help = 'Populate database with demo staff, patients and appointments'

    def add_arguments(self, parser):
        parser.add_argument('--reset', action='store_true', help='Delete existing patients and appointments first.')

    def handle(self, *args, **options):
        if options['reset']:
            Appointment.objects.all().delete()
            Patient.objects.all().delete()

        admin = self.ensure_user('admin', User.ROLE_ADMIN, is_staff=True, is_superuser=True)
        doctor = self.ensure_user('doctor1', User.ROLE_DOCTOR, first_name='Grace', last_name='Hopper')
        patients = self.create_patients()
        created = self.create_appointments(patients, doctor)

        self.stdout.write(self.style.SUCCESS(
            f"Demo data ready: admin={admin.username} doctor={doctor.username} "
            f"patients={len(patients)} appointments={created} (password {DEMO_PASSWORD})"
        ))

    def ensure_user(self, username, role, **extra):
        user, created = User.objects.get_or_create(username=username, defaults={'role': role, **extra})
        if created:
            user.set_password(DEMO_PASSWORD)
            user.save()
        return user

    def create_patients(self):
        patients = []
        for first, last, phone, gender, blood in DEMO_PATIENTS:
            patient, _ = Patient.objects.get_or_create(
                phone=phone,
                defaults={
                    'first_name': first,
                    'last_name': last,
                    'date_of_birth': date(1985, 6, 15),
                    'gender': gender,
                    'nationality': 'Canadian',
                    'address': {'street': '100 Main Street', 'city': 'Toronto', 'province': 'ON', 'postalCode': 'M5V 2T6'},
                    'email': f"{first.lower()}.{last.lower()}@example.com",
                    'emergency_contact': {'name': 'Sam Doe', 'relationship': 'Sibling', 'phone': '+15550009999'},
                    'blood_type': blood,
                    'insurance': {'provider': 'Acme Health', 'policyNumber': f"POL-{phone[-4:]}", 'coverageDetails': ''},
                },
            )
            patients.append(patient)
        return patients

    def create_appointments(self, patients, doctor):
        today = timezone.localdate()
        created = 0
        # tomorrow's visits are what the next reminder run will pick up
        plan = [
            (patients[0], today + timedelta(days=1), time(9, 30)),
            (patients[1], today + timedelta(days=1), time(14, 0)),
            (patients[0], today + timedelta(days=7), time(10, 0)),
            (patients[2], today + timedelta(days=3), time(16, 15)),
        ]
        for patient, day, at in plan:
            _, was_created = Appointment.objects.get_or_create(
                patient=patient, date=day, time=at,
                defaults={
                    'patient_name': patient.full_name,
                    'patient_phone': patient.phone,
                    'doctor': doctor,
                },
            )
            created += int(was_created)
        return created
