"""
Common types and utilities for the retrieval pipeline.
"""
from typing import Callable, Optional
from medsearch.schemas.events import ProgressStep

# Type alias for progress callbacks
ProgressCallback = Callable[[ProgressStep, str, Optional[str]], None]

# Composite score at or above which a record counts as high-confidence
HIGH_CONFIDENCE_SCORE = 0.7

# A tier needs at least this many records (or the requested limit, if smaller)
MIN_SATISFYING_RESULTS = 5

EMERGENCY_STRATEGY = "Emergency Fallback"


def _noop_callback(step: ProgressStep, message: str, detail: Optional[str] = None):
    """Default no-op callback when none provided."""
    pass
