"""
SSE Event Schemas

Pydantic models for Server-Sent Events emitted while a search runs.
"""
from pydantic import BaseModel, Field
from typing import Literal, Optional
from enum import Enum


class ProgressStep(str, Enum):
    """All possible steps in the search pipeline."""
    ANALYZING = "analyzing"
    PLANNING = "planning"
    SEARCHING_TIER = "searching_tier"
    SCORING = "scoring"
    ESCALATING = "escalating"
    EMERGENCY = "emergency"
    RANKING = "ranking"
    COMPLETE = "complete"


class ProgressEvent(BaseModel):
    """Progress update during a search."""
    type: Literal["progress"] = "progress"
    step: ProgressStep
    message: str = Field(description="Human-readable status message")
    detail: Optional[str] = Field(default=None, description="Additional detail like 'Found 25 records'")
    progress_percent: int = Field(ge=0, le=100, description="Overall progress percentage")


class ErrorEvent(BaseModel):
    """Error event when something fails."""
    type: Literal["error"] = "error"
    message: str
    step: Optional[ProgressStep] = None


STEP_CONFIG = {
    ProgressStep.ANALYZING: {"label": "Analyzing query", "progress": 5},
    ProgressStep.PLANNING: {"label": "Planning search tiers", "progress": 10},
    ProgressStep.SEARCHING_TIER: {"label": "Searching sources", "progress": 30},
    ProgressStep.SCORING: {"label": "Scoring records", "progress": 55},
    ProgressStep.ESCALATING: {"label": "Escalating to a broader tier", "progress": 60},
    ProgressStep.EMERGENCY: {"label": "Running emergency search", "progress": 80},
    ProgressStep.RANKING: {"label": "Ranking results", "progress": 90},
    ProgressStep.COMPLETE: {"label": "Complete", "progress": 100},
}
