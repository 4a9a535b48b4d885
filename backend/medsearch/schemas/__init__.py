"""
Schemas Module

Contains all Pydantic models (DTOs) for:
- Query analysis and search plans
- Raw, unified and scored literature records
- API request/response validation
- SSE streaming events
"""
from .analysis import (
    QueryType,
    MedicalDomain,
    Complexity,
    PopulationFocus,
    EvidenceFocus,
    PicoElements,
    QueryAnalysis,
    SearchTier,
    SearchStrategy,
)
from .records import (
    RawRecord,
    UnifiedRecord,
    ScoreComponents,
    WeightVector,
    DomainRating,
    PublicationBiasRating,
    Confidence,
    GradeAssessment,
    ScoredRecord,
)
from .research import (
    ScoringPreferences,
    ResearchRequest,
    ResultInsights,
    TierOutcome,
    RankedResultSet,
)
from .events import (
    ProgressStep,
    ProgressEvent,
    ErrorEvent,
    STEP_CONFIG,
)

__all__ = [
    "QueryType",
    "MedicalDomain",
    "Complexity",
    "PopulationFocus",
    "EvidenceFocus",
    "PicoElements",
    "QueryAnalysis",
    "SearchTier",
    "SearchStrategy",
    "RawRecord",
    "UnifiedRecord",
    "ScoreComponents",
    "WeightVector",
    "DomainRating",
    "PublicationBiasRating",
    "Confidence",
    "GradeAssessment",
    "ScoredRecord",
    "ScoringPreferences",
    "ResearchRequest",
    "ResultInsights",
    "TierOutcome",
    "RankedResultSet",
    "ProgressStep",
    "ProgressEvent",
    "ErrorEvent",
    "STEP_CONFIG",
]
