"""
Research Request/Response Schemas

Contract between callers (HTTP API, other services) and the search pipeline.
"""
from typing import Dict, List, Literal, Optional

from pydantic import Field, field_validator

from .analysis import CamelModel, QueryAnalysis
from .records import ScoredRecord


class ScoringPreferences(CamelModel):
    """Caller preferences that adjust the adaptive weights."""
    prioritize_recency: bool = Field(default=False, description="Weight recent publications more heavily")
    evidence_hierarchy: Literal["strict", "standard", "relaxed"] = Field(
        default="standard",
        description="How strongly study design drives the score"
    )
    specialty_focus: Optional[str] = Field(
        default=None,
        description="Caller's specialty; a mismatch with the query domain softens the semantic weight"
    )
    minimum_evidence_level: Optional[str] = Field(
        default=None,
        description="Drop records below this study design (e.g. 'cohort', 'randomized_controlled_trial')"
    )


class ResearchRequest(CamelModel):
    """Request body for a literature search."""
    query: str = Field(min_length=1, max_length=1000, description="Free-text clinical or research question")
    max_results: int = Field(default=10, ge=1, le=100, description="Number of ranked records to return")
    sources: Optional[List[str]] = Field(default=None, description="Restrict the search to these source names")
    preferences: Optional[ScoringPreferences] = None

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("query must not be blank")
        return value


class ResultInsights(CamelModel):
    """Aggregate figures over the returned records."""
    total_results: int = 0
    total_candidates: int = 0
    high_confidence_count: int = 0
    recent_count: int = 0
    open_access_count: int = 0
    average_citation_count: float = 0.0
    average_score: float = 0.0
    source_breakdown: Dict[str, int] = Field(default_factory=dict)


class TierOutcome(CamelModel):
    """What happened when one tier (or the emergency query) ran."""
    name: str
    state: str
    record_count: int = 0
    mean_score: float = 0.0
    threshold: Optional[float] = None


class RankedResultSet(CamelModel):
    """Final ordered records plus insights and provenance."""
    results: List[ScoredRecord] = Field(default_factory=list)
    insights: ResultInsights = Field(default_factory=ResultInsights)
    strategy_used: str
    fallback_tier_reached: int = 0
    query_analysis: Optional[QueryAnalysis] = None
    tiers: List[TierOutcome] = Field(default_factory=list)
