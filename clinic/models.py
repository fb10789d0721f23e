"""
Database models for the clinic backend.

These models capture the records the clinic keeps: staff users,
registered patients, their appointments and the SMS log written by the
reminder job.  Nested registration data (address, emergency contact,
insurance) is stored as JSON so the API can round-trip the same shape
the registration form submits.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Staff account with a role.

    Doctors are referenced by appointments; admins may manage patients
    and appointments through the API.
    """
    ROLE_DOCTOR = 'doctor'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_ADMIN, 'Administrator'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_DOCTOR)

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Patient(models.Model):
    """A patient registered through the public registration form."""
    GENDER_CHOICES = [
        ('male', 'Male'),
        ('female', 'Female'),
        ('other', 'Other'),
    ]
    BLOOD_TYPES = ['A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-']
    BLOOD_TYPE_CHOICES = [(b, b) for b in BLOOD_TYPES]

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    date_of_birth = models.DateField()
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES)
    nationality = models.CharField(max_length=100)
    # {"street", "city", "province", "postalCode"}
    address = models.JSONField(default=dict)
    phone = models.CharField(max_length=20, db_index=True)
    email = models.EmailField()
    # {"name", "relationship", "phone"}
    emergency_contact = models.JSONField(default=dict)
    blood_type = models.CharField(max_length=3, choices=BLOOD_TYPE_CHOICES)
    allergies = models.JSONField(default=list, blank=True)
    chronic_conditions = models.JSONField(default=list, blank=True)
    # {"provider", "policyNumber", "coverageDetails"}
    insurance = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return f"{self.full_name} ({self.phone})"


class Appointment(models.Model):
    """A booked visit.

    ``patient_name`` and ``patient_phone`` are copied from the patient at
    booking time; reminders and SMS replies are matched on the phone
    number stored here.
    """
    STATUS_SCHEDULED = 'scheduled'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    patient = models.ForeignKey(Patient, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments')
    patient_name = models.CharField(max_length=255, blank=True)
    patient_phone = models.CharField(max_length=20, blank=True)
    doctor = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments')
    date = models.DateField()
    time = models.TimeField()
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_SCHEDULED, db_index=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['status', 'date'], name='appt_status_date_idx'),
            models.Index(fields=['patient_phone', 'status', 'date'], name='appt_phone_status_date_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.patient_name} {self.date:%Y-%m-%d} {self.time:%H:%M} [{self.status}]"


class SmsLog(models.Model):
    """One reminder dispatch attempt.  Rows are only ever appended."""
    STATUS_SENT = 'sent'
    STATUS_FAILED = 'failed'
    STATUS_CHOICES = [
        (STATUS_SENT, 'Sent'),
        (STATUS_FAILED, 'Failed'),
    ]

    appointment = models.ForeignKey(Appointment, null=True, on_delete=models.SET_NULL, related_name='sms_logs')
    patient = models.ForeignKey(Patient, null=True, blank=True, on_delete=models.SET_NULL, related_name='sms_logs')
    phone_number = models.CharField(max_length=20)
    message = models.TextField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES)
    error = models.TextField(blank=True)
    provider_sid = models.CharField(max_length=64, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['status', 'timestamp'], name='smslog_status_ts_idx'),
        ]

    def __str__(self) -> str:
        return f"sms {self.status} -> {self.phone_number} @ {self.timestamp:%F %T}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.object_type}#{self.object_id}"
