"""
Record Schemas

Shapes a literature record passes through: the raw payload from one
source, the unified record, and the scored record returned to callers.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .analysis import CamelModel


class RawRecord(BaseModel):
    """
    Source-specific payload as returned by a connector.

    Only the source gateway and the unifier work with this shape.
    """
    model_config = ConfigDict(extra="ignore")

    title: str = ""
    abstract: Optional[str] = None
    authors: Optional[List[str]] = None
    journal: Optional[str] = None
    year: Optional[int] = None
    doi: Optional[str] = None
    pmid: Optional[str] = None
    url: Optional[str] = None
    source: str
    citation_count: Optional[int] = None
    is_open_access: bool = False
    publication_types: List[str] = Field(default_factory=list)

    # "paper", "clinical_trial" or "drug_label"
    record_type: str = "paper"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class UnifiedRecord(CamelModel):
    """Canonical record shape shared by every source."""
    title: str
    abstract: str = ""
    authors: List[str] = Field(default_factory=list)
    journal: str = ""
    year: int = 0
    url: str = ""
    doi: Optional[str] = None
    pmid: Optional[str] = None
    source_name: str
    citation_count: int = 0
    is_open_access: bool = False
    study_type: str = ""
    record_type: str = "paper"


class ScoreComponents(CamelModel):
    """Independent sub-scores, each in [0, 1]."""
    semantic: float = Field(ge=0, le=1)
    evidence: float = Field(ge=0, le=1)
    recency: float = Field(ge=0, le=1)
    citations: float = Field(ge=0, le=1)

    diagnostic: Optional[float] = Field(default=None, ge=0, le=1)
    accuracy: Optional[float] = Field(default=None, ge=0, le=1)
    mechanistic: Optional[float] = Field(default=None, ge=0, le=1)
    methodology: Optional[float] = Field(default=None, ge=0, le=1)

    # Inputs to the semantic component, kept for filtering and explanation
    medical_relevance: float = Field(default=0.0, ge=0, le=1)
    query_alignment: float = Field(default=0.0, ge=0, le=1)

    def weighted_values(self) -> Dict[str, float]:
        """Components that take part in the weighted sum."""
        values = {
            "semantic": self.semantic,
            "evidence": self.evidence,
            "recency": self.recency,
            "citations": self.citations,
        }
        for name in ("diagnostic", "accuracy", "mechanistic", "methodology"):
            value = getattr(self, name)
            if value is not None:
                values[name] = value
        return values


class WeightVector(CamelModel):
    """Component name to weight; non-negative and summing to 1."""
    weights: Dict[str, float]

    def get(self, component: str) -> float:
        return self.weights.get(component, 0.0)

    @property
    def total(self) -> float:
        return sum(self.weights.values())


class DomainRating(str, Enum):
    NOT_SERIOUS = "not_serious"
    SERIOUS = "serious"
    VERY_SERIOUS = "very_serious"


class PublicationBiasRating(str, Enum):
    UNDETECTED = "undetected"
    UNRATED = "unrated"
    SUSPECTED = "suspected"


class Confidence(str, Enum):
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"
    VERY_LOW = "very-low"


class GradeAssessment(CamelModel):
    """GRADE rating for a meta-analysis or systematic review."""
    starting_confidence: Confidence
    risk_of_bias: DomainRating
    inconsistency: DomainRating
    indirectness: DomainRating
    imprecision: DomainRating
    publication_bias: PublicationBiasRating

    large_effect: bool = False
    dose_response: bool = False
    plausible_confounding: bool = False

    confidence: Confidence
    reasons: List[str] = Field(default_factory=list)
    summary: str = ""


class ScoredRecord(UnifiedRecord):
    """Unified record with its composite score and explanation."""
    score: float = Field(ge=0, le=1)
    components: ScoreComponents
    study_design: str = "unclear"
    rationale: str = ""
    grade: Optional[GradeAssessment] = None
    is_emergency: bool = False
