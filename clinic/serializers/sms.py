from rest_framework import serializers


class InboundSmsSerializer(serializers.Serializer):
    """Fields Twilio posts to a messaging webhook; only these two are used."""
    Body = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False, default='')
    From = serializers.CharField(required=False, allow_blank=True, default='')
