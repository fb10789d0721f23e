"""
Rule-based symptom checker.

The symptom catalog and the condition rules are immutable tables built
once at import time.  ``match_conditions`` scores every rule against a
selection of symptom ids: the score is the share of the rule's symptoms
that were selected, as a percentage, so rules with different numbers of
symptoms land on the same 0-100 scale.  Nothing here touches the
database or the request, which keeps the matcher usable from views,
commands and tests alike.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Sequence


@dataclass(frozen=True)
class Symptom:
    id: str
    name: str


@dataclass(frozen=True)
class ConditionRule:
    name: str
    symptoms: tuple[str, ...]
    description: str


@dataclass(frozen=True)
class DiagnosisResult:
    condition: str
    score: float
    description: str

    @property
    def match_percent(self) -> int:
        return round(self.score)


SYMPTOM_CATALOG: tuple[Symptom, ...] = (
    Symptom('fever', 'Fever'),
    Symptom('cough', 'Cough'),
    Symptom('headache', 'Headache'),
    Symptom('fatigue', 'Fatigue'),
    Symptom('nausea', 'Nausea'),
    Symptom('dizziness', 'Dizziness'),
    Symptom('chest_pain', 'Chest Pain'),
    Symptom('shortness_breath', 'Shortness of Breath'),
    Symptom('muscle_pain', 'Muscle Pain'),
    Symptom('sore_throat', 'Sore Throat'),
)

SYMPTOMS_BY_ID: Mapping[str, Symptom] = MappingProxyType({s.id: s for s in SYMPTOM_CATALOG})

CONDITION_RULES: tuple[ConditionRule, ...] = (
    ConditionRule(
        'Common Cold',
        ('fever', 'cough', 'sore_throat', 'fatigue'),
        'A viral infection of the upper respiratory tract.',
    ),
    ConditionRule(
        'Flu',
        ('fever', 'cough', 'headache', 'fatigue', 'muscle_pain'),
        'A contagious respiratory illness caused by influenza viruses.',
    ),
    ConditionRule(
        'COVID-19',
        ('fever', 'cough', 'shortness_breath', 'fatigue', 'muscle_pain'),
        'A respiratory illness caused by the SARS-CoV-2 virus.',
    ),
    ConditionRule(
        'Migraine',
        ('headache', 'nausea', 'dizziness'),
        'A neurological condition characterized by severe headaches.',
    ),
    ConditionRule(
        'Anxiety',
        ('chest_pain', 'shortness_breath', 'dizziness', 'fatigue'),
        'A mental health condition characterized by excessive worry and fear.',
    ),
)

DISCLAIMER = (
    'Note: This is a basic symptom checker and should not replace professional medical advice. '
    'Please consult a healthcare provider for proper diagnosis and treatment.'
)


def get_symptom(symptom_id: str) -> Symptom:
    """Return the catalog entry for ``symptom_id``; raises ``KeyError`` if unknown."""
    return SYMPTOMS_BY_ID[symptom_id]


def toggle_symptom(selected: Iterable[str], symptom_id: str) -> frozenset[str]:
    """Return a new selection with ``symptom_id`` added or removed."""
    get_symptom(symptom_id)
    current = frozenset(selected)
    if symptom_id in current:
        return current - {symptom_id}
    return current | {symptom_id}


def match_conditions(
    selected: Iterable[str],
    rules: Sequence[ConditionRule] = CONDITION_RULES,
) -> list[DiagnosisResult]:
    """Rank ``rules`` by how much of each one the selection covers.

    Rules with no selected symptom are dropped.  The sort is stable, so
    rules with equal scores keep their table order.
    """
    chosen = frozenset(selected)
    if not chosen:
        return []
    results: list[DiagnosisResult] = []
    for rule in rules:
        if not rule.symptoms:
            continue
        matched = sum(1 for s in rule.symptoms if s in chosen)
        if matched == 0:
            continue
        score = matched / len(rule.symptoms) * 100
        results.append(DiagnosisResult(rule.name, score, rule.description))
    results.sort(key=lambda r: r.score, reverse=True)
    return results
