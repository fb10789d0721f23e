from rest_framework import serializers

from clinic.models import Appointment


class AppointmentListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c[0] for c in Appointment.STATUS_CHOICES], required=False)
    date = serializers.DateField(required=False)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200)


class AppointmentCancelSerializer(serializers.Serializer):
    id = serializers.IntegerField()


def format_appointment(a: Appointment) -> dict:
    return {
        'id': a.id,
        'patientId': a.patient_id,
        'patientName': a.patient_name,
        'patientPhone': a.patient_phone,
        'doctorId': a.doctor_id,
        'date': a.date.isoformat(),
        'time': a.time.strftime('%H:%M'),
        'status': a.status,
        'cancelledAt': a.cancelled_at.isoformat() if a.cancelled_at else None,
    }
