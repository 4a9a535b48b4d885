"""
Final ranking and result insights.

Orders the scored records for the caller and summarizes the returned set.
"""
from collections import Counter
from datetime import datetime
from typing import List, Optional, Tuple

from medsearch.core.logging import get_logger
from medsearch.schemas.records import ScoredRecord
from medsearch.schemas.research import ResultInsights

from .types import HIGH_CONFIDENCE_SCORE

logger = get_logger(__name__)

RECENT_YEARS = 2


def rank_records(records: List[ScoredRecord], max_results: int) -> List[ScoredRecord]:
    """
    Sort by composite score, then citation count, then year (all descending)
    and keep the first max_results.
    """
    ordered = sorted(records, key=lambda r: (-r.score, -r.citation_count, -r.year))
    return ordered[:max(0, max_results)]


def build_insights(
    results: List[ScoredRecord],
    total_candidates: Optional[int] = None,
    current_year: Optional[int] = None,
) -> ResultInsights:
    """
    Aggregate figures over the returned records.

    Args:
        results: The ranked, truncated records
        total_candidates: Size of the pool before truncation
        current_year: Reference year for the recency count
    """
    current_year = current_year or datetime.now().year
    count = len(results)
    if not count:
        return ResultInsights(total_candidates=total_candidates or 0)

    recent = sum(1 for r in results if 0 < r.year <= current_year and current_year - r.year <= RECENT_YEARS)
    breakdown = Counter(r.source_name for r in results)

    return ResultInsights(
        total_results=count,
        total_candidates=total_candidates if total_candidates is not None else count,
        high_confidence_count=sum(1 for r in results if r.score >= HIGH_CONFIDENCE_SCORE),
        recent_count=recent,
        open_access_count=sum(1 for r in results if r.is_open_access),
        average_citation_count=round(sum(r.citation_count for r in results) / count, 1),
        average_score=round(sum(r.score for r in results) / count, 3),
        source_breakdown=dict(breakdown),
    )


def rank_and_summarize(
    records: List[ScoredRecord],
    max_results: int,
    current_year: Optional[int] = None,
) -> Tuple[List[ScoredRecord], ResultInsights]:
    results = rank_records(records, max_results)
    insights = build_insights(results, total_candidates=len(records), current_year=current_year)
    logger.info(
        f"Ranked {len(records)} candidates -> {len(results)} results "
        f"({insights.high_confidence_count} high-confidence)"
    )
    return results, insights
