"""
Adaptive scoring weights.

Selects the weight vector the scorer uses for one query: a base vector per
query type, additive adjustments per medical domain, then multipliers from
the caller's preferences. Every step clamps weights to [0, 1] and
renormalizes so the vector always sums to 1.
"""
from typing import Dict, Optional

from medsearch.core.logging import get_logger
from medsearch.schemas.analysis import MedicalDomain, QueryAnalysis, QueryType
from medsearch.schemas.records import WeightVector
from medsearch.schemas.research import ScoringPreferences

logger = get_logger(__name__)

BASE_WEIGHTS: Dict[QueryType, Dict[str, float]] = {
    QueryType.TREATMENT: {"semantic": 0.30, "evidence": 0.40, "recency": 0.20, "citations": 0.10},
    QueryType.DIAGNOSIS: {
        "semantic": 0.40, "evidence": 0.30, "recency": 0.10, "citations": 0.10,
        "diagnostic": 0.05, "accuracy": 0.05,
    },
    QueryType.MECHANISM: {
        "semantic": 0.35, "evidence": 0.20, "recency": 0.30, "citations": 0.05,
        "mechanistic": 0.05, "methodology": 0.05,
    },
    QueryType.PROGNOSIS: {"semantic": 0.35, "evidence": 0.35, "recency": 0.15, "citations": 0.15},
    QueryType.EPIDEMIOLOGY: {
        "semantic": 0.30, "evidence": 0.25, "recency": 0.15, "citations": 0.20,
        "methodology": 0.10,
    },
    QueryType.GENERAL: {"semantic": 0.40, "evidence": 0.30, "recency": 0.20, "citations": 0.10},
}

DOMAIN_MODIFIERS: Dict[MedicalDomain, Dict[str, float]] = {
    MedicalDomain.CARDIOLOGY: {"evidence": 0.05, "citations": 0.02},
    MedicalDomain.ONCOLOGY: {"recency": 0.10, "evidence": 0.05},
    MedicalDomain.NEUROLOGY: {"recency": 0.05, "methodology": 0.05},
    MedicalDomain.PSYCHIATRY: {"evidence": -0.05, "methodology": 0.05},
    MedicalDomain.INFECTIOUS_DISEASE: {"recency": 0.15, "evidence": 0.05},
    MedicalDomain.ENDOCRINOLOGY: {"evidence": 0.05, "citations": 0.02},
    MedicalDomain.PEDIATRICS: {"evidence": -0.10, "methodology": 0.05, "recency": 0.05},
    MedicalDomain.SURGERY: {"evidence": -0.10, "methodology": 0.10, "citations": 0.05},
    MedicalDomain.EMERGENCY_MEDICINE: {"recency": 0.10, "methodology": 0.05},
    MedicalDomain.GENERAL_MEDICINE: {},
}


def normalize_weights(weights: Dict[str, float]) -> Dict[str, float]:
    """Clamp each weight to [0, 1] and rescale so the vector sums to 1."""
    clamped = {name: min(1.0, max(0.0, value)) for name, value in weights.items()}
    total = sum(clamped.values())
    if total <= 0:
        # Degenerate input; fall back to the general-purpose vector
        return dict(BASE_WEIGHTS[QueryType.GENERAL])
    return {name: value / total for name, value in clamped.items()}


class AdaptiveWeightEngine:
    """Produces a normalized WeightVector for an analysis and caller preferences."""

    def weights_for(
        self,
        analysis: QueryAnalysis,
        preferences: Optional[ScoringPreferences] = None,
    ) -> WeightVector:
        weights = dict(BASE_WEIGHTS[analysis.query_type])

        for component, delta in DOMAIN_MODIFIERS.get(analysis.domain, {}).items():
            weights[component] = weights.get(component, 0.0) + delta
        weights = normalize_weights(weights)

        if preferences is not None:
            weights = self._apply_preferences(weights, analysis, preferences)
            weights = normalize_weights(weights)

        logger.debug(
            "Weights for %s/%s: %s",
            analysis.query_type.value,
            analysis.domain.value,
            ", ".join(f"{k}={v:.3f}" for k, v in weights.items()),
        )
        return WeightVector(weights=weights)

    @staticmethod
    def _apply_preferences(
        weights: Dict[str, float],
        analysis: QueryAnalysis,
        preferences: ScoringPreferences,
    ) -> Dict[str, float]:
        adjusted = dict(weights)

        if preferences.prioritize_recency:
            adjusted["recency"] = min(0.4, adjusted.get("recency", 0.0) * 1.5)
            adjusted["citations"] = max(0.05, adjusted.get("citations", 0.0) * 0.8)

        if preferences.evidence_hierarchy == "strict":
            adjusted["evidence"] = min(0.5, adjusted.get("evidence", 0.0) * 1.3)
        elif preferences.evidence_hierarchy == "relaxed":
            adjusted["evidence"] = max(0.1, adjusted.get("evidence", 0.0) * 0.8)
            adjusted["methodology"] = adjusted.get("methodology", 0.0) + 0.1

        focus = (preferences.specialty_focus or "").strip().lower()
        if focus and focus != analysis.domain.value:
            adjusted["semantic"] = max(0.2, adjusted.get("semantic", 0.0) * 0.9)

        return adjusted
