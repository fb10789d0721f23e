"""
Administrative dashboard endpoint.

Provides a high level overview of patients, appointments and reminder
delivery.  Only administrators may access this endpoint.
"""
from __future__ import annotations

from datetime import timedelta

from django.db.models import Count
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Appointment, Patient, SmsLog
from ..permissions import IsAdminRole


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_dashboard(request):
    """Return dashboard metrics for administrators.

    ``appointments`` holds a count per status (every status is present,
    zero when unused).  ``upcoming`` counts scheduled appointments from
    today on, and ``sms`` summarises reminder delivery over the last 24
    hours.
    """
    now = timezone.now()
    by_status = {key: 0 for key, _ in Appointment.STATUS_CHOICES}
    for row in Appointment.objects.values('status').annotate(n=Count('id')):
        by_status[row['status']] = row['n']
    upcoming = Appointment.objects.filter(
        status=Appointment.STATUS_SCHEDULED, date__gte=timezone.localdate(now)
    ).count()
    recent_sms = SmsLog.objects.filter(timestamp__gte=now - timedelta(hours=24))
    sms = {key: 0 for key, _ in SmsLog.STATUS_CHOICES}
    for row in recent_sms.values('status').annotate(n=Count('id')):
        sms[row['status']] = row['n']
    return Response({
        'ok': True,
        'patients': Patient.objects.count(),
        'appointments': by_status,
        'upcoming': upcoming,
        'sms': sms,
        'generatedAt': now.strftime('%Y-%m-%d %H:%M:%S'),
    })
