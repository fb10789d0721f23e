"""
Administrative appointment endpoints.

Appointments are booked by staff through the Django admin; these
endpoints let the dashboard list them and cancel one.  Cancelling uses
the same conditional update as SMS cancellation, so an appointment that
is already cancelled or completed is reported as a conflict rather than
silently overwritten.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.models import Appointment
from clinic.permissions import IsAdminRole
from clinic.serializers.appointment import (
    AppointmentCancelSerializer,
    AppointmentListQuerySerializer,
    format_appointment,
)
from clinic.services.cancellation import cancel_appointment


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def list_appointments(request):
    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = Appointment.objects.all()
    if vd.get('status'):
        qs = qs.filter(status=vd['status'])
    if vd.get('date'):
        qs = qs.filter(date=vd['date'])
    qs = qs.order_by('date', 'time', 'id')
    total = qs.count()
    page = vd.get('page') or 1
    page_size = vd.get('pageSize') or 0
    if page_size:
        start = (page-1)*page_size
        qs = qs[start:start + page_size]
    return Response({
        'ok': True,
        'data': [format_appointment(a) for a in qs],
        'pagination': {'total': total, 'page': page, 'pageSize': page_size or total},
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_cancel_appointment(request):
    s = AppointmentCancelSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    appointment = Appointment.objects.filter(id=s.validated_data['id']).first()
    if not appointment:
        raise NotFound('appointment not found')
    if not cancel_appointment(appointment, source='admin', actor=request.user):
        appointment.refresh_from_db(fields=['status'])
        return Response(
            {'ok': False, 'error': {'code': 'conflict', 'message': f'appointment is {appointment.status}'}},
            status=status.HTTP_409_CONFLICT,
        )
    return Response({'ok': True, 'data': format_appointment(appointment)})
