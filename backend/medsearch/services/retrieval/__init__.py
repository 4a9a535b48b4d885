"""
Tiered Biomedical Literature Retrieval

This package turns a free-text clinical question into a ranked,
evidence-graded record set by:
1. Classifying the query (type, specialty, complexity, PICO)
2. Planning 3-4 search tiers from precise to broad
3. Fanning each tier out across sources in parallel
4. Unifying and de-duplicating records across sources
5. Scoring relevance and evidence with adaptive weights
6. Escalating through tiers, with an emergency query as a last resort
7. Rating syntheses with GRADE and ranking the final set

Package Structure:
- pipeline.py: ResearchPipeline orchestration
- query_analyzer.py: Rule-based query classification
- strategy.py: Tier planning
- fallback.py: Tier state machine and fan-out
- normalizers.py: Record unification and de-duplication
- weights.py: Adaptive weight vectors
- scoring.py: Relevance and evidence sub-scores, composite score
- grade.py: GRADE certainty assessment
- ranking.py: Final ordering and insights
- types.py: Common types and constants
"""

# Main pipeline - primary public interface
from .pipeline import ResearchPipeline

# Individual components for advanced usage
from .query_analyzer import QueryAnalyzer, analyze_query, extract_key_terms
from .strategy import StrategyPlanner, plan_strategy
from .fallback import FallbackController, FallbackResult, TierState
from .normalizers import deduplicate_records, normalize_record, unify_records
from .weights import AdaptiveWeightEngine
from .scoring import RelevanceScorer, filter_by_evidence_level, filter_by_relevance
from .grade import GradeInputs, apply_grade, assess_grade, extract_grade_inputs
from .ranking import build_insights, rank_records

# Types for callers
from .types import EMERGENCY_STRATEGY, ProgressCallback, _noop_callback

__all__ = [
    # Main pipeline
    "ResearchPipeline",

    # Components
    "QueryAnalyzer",
    "analyze_query",
    "extract_key_terms",
    "StrategyPlanner",
    "plan_strategy",
    "FallbackController",
    "FallbackResult",
    "TierState",
    "deduplicate_records",
    "normalize_record",
    "unify_records",
    "AdaptiveWeightEngine",
    "RelevanceScorer",
    "filter_by_evidence_level",
    "filter_by_relevance",
    "GradeInputs",
    "apply_grade",
    "assess_grade",
    "extract_grade_inputs",
    "build_insights",
    "rank_records",

    # Types
    "EMERGENCY_STRATEGY",
    "ProgressCallback",
]
