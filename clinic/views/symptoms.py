"""
Symptom checker endpoints.

The catalog and the condition rules live in
:mod:`clinic.services.diagnosis`; these views only validate the
selection and serialise the ranked result.  Both endpoints are public.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from clinic.serializers.symptoms import SymptomCheckSerializer
from clinic.services.diagnosis import DISCLAIMER, SYMPTOM_CATALOG, match_conditions


@api_view(['GET'])
@permission_classes([AllowAny])
def list_symptoms(request):
    """Return the symptoms a patient can pick from."""
    return Response({'ok': True, 'data': [{'id': s.id, 'name': s.name} for s in SYMPTOM_CATALOG]})


@api_view(['POST'])
@permission_classes([AllowAny])
def check_symptoms(request):
    """Rank possible conditions for the selected symptom ids.

    Body: ``{"symptoms": ["fever", "cough"]}``.  Unknown ids are a 400.
    An empty selection returns an empty list.
    """
    s = SymptomCheckSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    results = match_conditions(s.validated_data['symptoms'])
    return Response({
        'ok': True,
        'data': [
            {
                'condition': r.condition,
                'score': r.score,
                'matchPercent': r.match_percent,
                'description': r.description,
            }
            for r in results
        ],
        'disclaimer': DISCLAIMER,
    })
