"""
Tiered search execution with fallback.

Runs a SearchStrategy one tier at a time. Inside a tier every
(source x query variant) call is issued concurrently and joined; the tier
is then unified, scored and judged against its threshold. An unsatisfied
tier escalates to the next one, and when every tier is exhausted a single
best-effort emergency query is run so the caller always gets something.
"""
import asyncio
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from medsearch.core.logging import get_logger
from medsearch.schemas.analysis import SearchStrategy, SearchTier
from medsearch.schemas.events import ProgressStep
from medsearch.schemas.records import RawRecord, ScoredRecord
from medsearch.schemas.research import TierOutcome
from medsearch.services.sources.gateway import SourceGateway

from .normalizers import deduplicate_records, unify_records
from .scoring import RelevanceScorer, filter_by_evidence_level, filter_by_relevance
from .types import EMERGENCY_STRATEGY, MIN_SATISFYING_RESULTS, ProgressCallback, _noop_callback

logger = get_logger(__name__)


class TierState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SATISFIED = "satisfied"
    ESCALATE = "escalate"
    EXHAUSTED = "exhausted"
    EMERGENCY = "emergency"
    DONE = "done"


@dataclass
class FallbackResult:
    """Everything the controller produced for one request."""
    records: List[ScoredRecord]
    strategy_used: str
    fallback_tier_reached: int
    tiers: List[TierOutcome] = field(default_factory=list)
    transitions: List[TierState] = field(default_factory=list)

    @property
    def final_state(self) -> TierState:
        return self.transitions[-1] if self.transitions else TierState.PENDING


def per_call_limit(max_results: int, source_count: int, cap: int) -> int:
    """Records requested from each source call so a tier can over-fetch about twice the target."""
    if source_count <= 0:
        return 0
    return min(cap, max(5, math.ceil(2 * max_results / source_count)))


def mean_top_score(records: List[ScoredRecord], limit: int) -> float:
    top = sorted((r.score for r in records), reverse=True)[:max(1, limit)]
    return sum(top) / len(top) if top else 0.0


class FallbackController:
    """
    Drives the tier state machine for one request.

    The controller owns the cross-tier accumulator for the duration of a
    request; nothing else writes to it.
    """

    def __init__(
        self,
        gateways: Dict[str, SourceGateway],
        scorer: RelevanceScorer,
        max_results: int,
        max_results_per_source: int = 25,
        relevance_gate: float = 0.2,
        minimum_evidence_level: Optional[str] = None,
        on_progress: ProgressCallback = _noop_callback,
    ):
        self.gateways = gateways
        self.scorer = scorer
        self.max_results = max_results
        self.max_results_per_source = max_results_per_source
        self.relevance_gate = relevance_gate
        self.minimum_evidence_level = minimum_evidence_level
        self.on_progress = on_progress

        self.state = TierState.PENDING
        self.transitions: List[TierState] = [TierState.PENDING]
        self.outcomes: List[TierOutcome] = []
        self._accumulated: List[ScoredRecord] = []

    def _transition(self, state: TierState):
        logger.debug(f"Fallback state {self.state.value} -> {state.value}")
        self.state = state
        self.transitions.append(state)

    @property
    def required_count(self) -> int:
        return min(MIN_SATISFYING_RESULTS, self.max_results)

    async def _fan_out(self, sources: List[str], variants: List[str], limit: int) -> List[RawRecord]:
        calls = []
        labels = []
        for name in sources:
            gateway = self.gateways.get(name)
            if gateway is None:
                continue
            for variant in variants:
                calls.append(gateway.search(variant, limit))
                labels.append(f"{name}: {variant[:50]}")

        if not calls:
            return []

        results = await asyncio.gather(*calls, return_exceptions=True)

        records: List[RawRecord] = []
        for label, result in zip(labels, results):
            if isinstance(result, Exception):
                # Gateways swallow source errors; this only catches bugs in them
                logger.error(f"{label} raised {type(result).__name__}: {result}")
                continue
            logger.debug(f"{label} -> {len(result)} records")
            records.extend(result)
        return records

    def _score_and_gate(self, raw: List[RawRecord]) -> List[ScoredRecord]:
        scored = self.scorer.score_records(unify_records(raw))
        gated = filter_by_relevance(scored, self.relevance_gate)
        return filter_by_evidence_level(gated, self.minimum_evidence_level, self.scorer.vocabulary)

    def is_satisfied(self, records: List[ScoredRecord], threshold: float) -> bool:
        if len(records) < self.required_count:
            return False
        return mean_top_score(records, self.max_results) * 100 >= threshold

    async def run_tier(self, index: int, tier: SearchTier) -> bool:
        """Run one tier; returns True when it satisfied its threshold."""
        self._transition(TierState.RUNNING)
        self.on_progress(
            ProgressStep.SEARCHING_TIER,
            f"Tier {index + 1}: {tier.name}",
            f"{len(tier.sources)} sources x {len(tier.query_variants)} queries",
        )

        limit = per_call_limit(self.max_results, len(tier.sources), self.max_results_per_source)
        raw = await self._fan_out(tier.sources, tier.query_variants, limit)

        self.on_progress(ProgressStep.SCORING, f"Scoring {len(raw)} records from {tier.name}", None)
        records = self._score_and_gate(raw)
        self._accumulated.extend(records)

        satisfied = self.is_satisfied(records, tier.relevance_threshold)
        mean = mean_top_score(records, self.max_results) if records else 0.0
        state = TierState.SATISFIED if satisfied else TierState.ESCALATE
        self._transition(state)
        self.outcomes.append(TierOutcome(
            name=tier.name,
            state=state.value,
            record_count=len(records),
            mean_score=round(mean, 3),
            threshold=tier.relevance_threshold,
        ))

        logger.info(
            f"Tier {index + 1} '{tier.name}': {len(raw)} raw, {len(records)} relevant, "
            f"mean {mean * 100:.1f} vs threshold {tier.relevance_threshold:.0f} -> {state.value}"
        )
        return satisfied

    async def run_emergency(self, strategy: SearchStrategy) -> List[ScoredRecord]:
        """One simplified query against the most reliable source; results are kept ungated."""
        self._transition(TierState.EMERGENCY)
        source = strategy.emergency_source
        self.on_progress(
            ProgressStep.EMERGENCY,
            "All tiers exhausted, running emergency search",
            f"{source}: {strategy.emergency_query}" if source else "No source available",
        )

        raw: List[RawRecord] = []
        if source and source in self.gateways:
            limit = min(self.max_results_per_source, max(self.max_results, MIN_SATISFYING_RESULTS))
            raw = await self._fan_out([source], [strategy.emergency_query], limit)
        else:
            logger.warning("No emergency source available")

        records = self.scorer.score_records(unify_records(raw), is_emergency=True)
        self.outcomes.append(TierOutcome(
            name=EMERGENCY_STRATEGY,
            state=TierState.EMERGENCY.value,
            record_count=len(records),
            mean_score=round(mean_top_score(records, self.max_results), 3) if records else 0.0,
        ))
        logger.info(f"Emergency search on {source}: {len(records)} records")
        return records

    async def run(self, strategy: SearchStrategy) -> FallbackResult:
        for index, tier in enumerate(strategy.tiers):
            if await self.run_tier(index, tier):
                self._transition(TierState.DONE)
                return FallbackResult(
                    records=deduplicate_records(self._accumulated),
                    strategy_used=tier.name,
                    fallback_tier_reached=index,
                    tiers=self.outcomes,
                    transitions=self.transitions,
                )
            if index + 1 < len(strategy.tiers):
                self.on_progress(
                    ProgressStep.ESCALATING,
                    f"Tier {index + 1} insufficient, escalating to {strategy.tiers[index + 1].name}",
                    None,
                )

        self._transition(TierState.EXHAUSTED)
        emergency = await self.run_emergency(strategy)
        self._accumulated.extend(emergency)
        self._transition(TierState.DONE)

        return FallbackResult(
            records=deduplicate_records(self._accumulated),
            strategy_used=EMERGENCY_STRATEGY,
            fallback_tier_reached=len(strategy.tiers),
            tiers=self.outcomes,
            transitions=self.transitions,
        )
