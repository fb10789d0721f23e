from rest_framework import serializers

from clinic.services.diagnosis import SYMPTOMS_BY_ID


class SymptomCheckSerializer(serializers.Serializer):
    symptoms = serializers.ListField(child=serializers.CharField(), allow_empty=True)

    def validate_symptoms(self, v):
        unknown = sorted({s for s in v if s not in SYMPTOMS_BY_ID})
        if unknown:
            raise serializers.ValidationError(f"Unknown symptom(s): {', '.join(unknown)}")
        return v
