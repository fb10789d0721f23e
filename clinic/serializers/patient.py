import bleach
from datetime import date
from rest_framework import serializers

from clinic.models import Patient

PHONE_REGEX = r'^\+?[0-9]{10,15}$'
PHONE_ERROR = 'Please enter a valid phone number'


def _clean(v):
    # no tags or attributes survive; markup is dropped, text is kept
    return bleach.clean((v or '').strip(), tags=set(), attributes={}, strip=True)


class CleanCharField(serializers.CharField):
    """CharField that strips markup before length validation."""

    def to_internal_value(self, data):
        if isinstance(data, str):
            data = _clean(data)
        return super().to_internal_value(data)


class AddressSerializer(serializers.Serializer):
    street = CleanCharField(min_length=5, error_messages={'min_length': 'Please enter a valid street address'})
    city = CleanCharField(min_length=2, error_messages={'min_length': 'Please enter a valid city'})
    province = CleanCharField(min_length=2, error_messages={'min_length': 'Please enter a valid province'})
    postalCode = CleanCharField(min_length=4, error_messages={'min_length': 'Please enter a valid postal code'})


class EmergencyContactSerializer(serializers.Serializer):
    name = CleanCharField(min_length=2, error_messages={'min_length': 'Emergency contact name must be at least 2 characters'})
    relationship = CleanCharField(min_length=2, error_messages={'min_length': 'Please specify the relationship'})
    phone = serializers.RegexField(PHONE_REGEX, error_messages={'invalid': PHONE_ERROR})


class ContactInfoSerializer(serializers.Serializer):
    phone = serializers.RegexField(PHONE_REGEX, error_messages={'invalid': PHONE_ERROR})
    email = serializers.EmailField(error_messages={'invalid': 'Please enter a valid email address'})
    emergencyContact = EmergencyContactSerializer()


class PersonalInfoSerializer(serializers.Serializer):
    firstName = CleanCharField(min_length=2, error_messages={'min_length': 'First name must be at least 2 characters'})
    lastName = CleanCharField(min_length=2, error_messages={'min_length': 'Last name must be at least 2 characters'})
    dateOfBirth = serializers.DateField()
    gender = serializers.ChoiceField(choices=[c[0] for c in Patient.GENDER_CHOICES])
    nationality = CleanCharField(min_length=2, error_messages={'min_length': 'Please enter a valid nationality'})
    address = AddressSerializer()
    contactInfo = ContactInfoSerializer()

    def validate_dateOfBirth(self, v):
        age = date.today().year - v.year
        if age < 0 or age > 120:
            raise serializers.ValidationError('Please enter a valid date of birth')
        return v


class InsuranceInfoSerializer(serializers.Serializer):
    provider = CleanCharField(min_length=2, error_messages={'min_length': 'Please enter insurance provider'})
    policyNumber = CleanCharField(min_length=2, error_messages={'min_length': 'Please enter policy number'})
    coverageDetails = CleanCharField(required=False, allow_blank=True, default='')


class MedicalInfoSerializer(serializers.Serializer):
    bloodType = serializers.ChoiceField(choices=Patient.BLOOD_TYPES)
    allergies = serializers.ListField(child=CleanCharField(), required=False, default=list)
    chronicConditions = serializers.ListField(child=CleanCharField(), required=False, default=list)
    insuranceInfo = InsuranceInfoSerializer()


class PatientRegistrationSerializer(serializers.Serializer):
    personalInfo = PersonalInfoSerializer()
    medicalInfo = MedicalInfoSerializer()

    def create(self, validated_data):
        personal = validated_data['personalInfo']
        contact = personal['contactInfo']
        medical = validated_data['medicalInfo']
        return Patient.objects.create(
            first_name=personal['firstName'],
            last_name=personal['lastName'],
            date_of_birth=personal['dateOfBirth'],
            gender=personal['gender'],
            nationality=personal['nationality'],
            address=dict(personal['address']),
            phone=contact['phone'],
            email=contact['email'],
            emergency_contact=dict(contact['emergencyContact']),
            blood_type=medical['bloodType'],
            allergies=list(medical.get('allergies') or []),
            chronic_conditions=list(medical.get('chronicConditions') or []),
            insurance=dict(medical['insuranceInfo']),
        )


class PatientUpdateSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    firstName = CleanCharField(required=False, min_length=2)
    lastName = CleanCharField(required=False, min_length=2)
    email = serializers.EmailField(required=False)
    phone = serializers.RegexField(PHONE_REGEX, required=False, error_messages={'invalid': PHONE_ERROR})


class PatientListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=200)
