"""
URL mappings for the clinic API.

This module registers all API endpoints with their corresponding view
functions.  Trailing slashes are deliberately omitted to match the
front-end; ``APPEND_SLASH`` is off.
"""
from django.urls import path, include

from .auth_views import login_view
from .views import appointments, dashboard, health, patients, sms, symptoms

urlpatterns = [
    # exposes /metrics
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    # Symptom checker
    path('api/symptoms', symptoms.list_symptoms, name='symptom_list'),
    path('api/symptoms/check', symptoms.check_symptoms, name='symptom_check'),
    # Twilio messaging webhook
    path('api/sms/inbound', sms.inbound_sms, name='sms_inbound'),
    # Patients
    path('api/patients/register', patients.register_patient, name='patient_register'),
    path('api/admin/patients', patients.list_patients, name='admin_patient_list'),
    path('api/admin/patients/update', patients.update_patient, name='admin_patient_update'),
    # Appointments
    path('api/admin/appointments', appointments.list_appointments, name='admin_appointment_list'),
    path('api/admin/appointments/cancel', appointments.admin_cancel_appointment, name='admin_appointment_cancel'),
    # Dashboard
    path('api/admin/dashboard', dashboard.admin_dashboard, name='admin_dashboard'),
]
