"""
Django admin registrations for the clinic models.

Staff book and edit appointments through the built-in admin at
``/admin/``.  Booking copies the patient's name and phone onto the
appointment so reminders and SMS replies can be matched on them.
The SMS log is read-only here since rows are only ever appended by the
reminder job.
"""

from django.contrib import admin

from .models import Appointment, AuditEvent, Patient, SmsLog, User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'is_staff', 'is_superuser')
    list_filter = ('role',)
    search_fields = ('username', 'first_name', 'last_name')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('id', 'first_name', 'last_name', 'phone', 'email', 'created_at')
    search_fields = ('first_name', 'last_name', 'phone', 'email')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient_name', 'patient_phone', 'date', 'time', 'status', 'doctor')
    list_filter = ('status', 'date')
    search_fields = ('patient_name', 'patient_phone')
    readonly_fields = ('cancelled_at',)

    def save_model(self, request, obj, form, change):
        if obj.patient_id:
            obj.patient_name = obj.patient_name or obj.patient.full_name
            obj.patient_phone = obj.patient_phone or obj.patient.phone
        super().save_model(request, obj, form, change)


@admin.register(SmsLog)
class SmsLogAdmin(admin.ModelAdmin):
    list_display = ('timestamp', 'appointment', 'phone_number', 'status')
    list_filter = ('status',)
    search_fields = ('phone_number',)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'action', 'object_type', 'object_id', 'user')
    list_filter = ('action',)
