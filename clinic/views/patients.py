"""
Patient endpoints.

Patients register themselves through the public registration form;
administrators can list registered patients and correct their name and
contact details.  Validation errors are reported per field and nothing
is written when any field fails.
"""
from __future__ import annotations

from django.db import transaction
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle

from clinic.models import Patient
from clinic.permissions import IsAdminRole
from clinic.serializers.patient import (
    PatientListQuerySerializer,
    PatientRegistrationSerializer,
    PatientUpdateSerializer,
)
from clinic.services.audit import log_action


def _format_patient(p: Patient) -> dict:
    return {
        'id': p.id,
        'name': p.full_name,
        'firstName': p.first_name,
        'lastName': p.last_name,
        'email': p.email,
        'phone': p.phone,
    }


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([ScopedRateThrottle])
def register_patient(request):
    """Register a new patient from the nested registration form payload."""
    s = PatientRegistrationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    with transaction.atomic():
        patient = s.save()
        log_action(user=None, action='patient_create', object_type='patient', object_id=patient.id)
    return Response({'ok': True, 'id': patient.id}, status=201)

register_patient.cls.throttle_scope = 'patient_write'


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def list_patients(request):
    q = PatientListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = Patient.objects.order_by('last_name', 'first_name', 'id')
    total = qs.count()
    page = q.validated_data.get('page') or 1
    page_size = q.validated_data.get('pageSize') or 0
    if page_size:
        start = (page-1)*page_size
        qs = qs[start:start + page_size]
    return Response({
        'ok': True,
        'data': [_format_patient(p) for p in qs],
        'pagination': {'total': total, 'page': page, 'pageSize': page_size or total},
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def update_patient(request):
    """Update a patient's name, email or phone.  Omitted fields are left alone."""
    s = PatientUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    patient = Patient.objects.filter(id=vd['id']).first()
    if not patient:
        raise NotFound('patient not found')
    changed = []
    for field, key in [
        ('first_name', 'firstName'),
        ('last_name', 'lastName'),
        ('email', 'email'),
        ('phone', 'phone'),
    ]:
        if key in vd:
            setattr(patient, field, vd[key])
            changed.append(field)
    if changed:
        patient.save(update_fields=changed + ['updated_at'])
        log_action(user=request.user, action='patient_update', object_type='patient', object_id=patient.id,
                   detail={'fields': changed})
    return Response({'ok': True, 'data': _format_patient(patient)})
