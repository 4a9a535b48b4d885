"""
Main research pipeline.

Orchestrates one literature search end to end:
1. Query analysis
2. Tier planning
3. Tiered fan-out with fallback (unify, score, gate per tier)
4. GRADE assessment of syntheses
5. Ranking and insights

The pipeline boundary never raises: whatever happens, the caller gets a
RankedResultSet annotated with the strategy that produced it.
"""
import asyncio
import time
from typing import Dict, List, Optional, Sequence

from medsearch.core.config import Settings, settings as default_settings
from medsearch.core.exceptions import PipelineError
from medsearch.core.logging import get_logger
from medsearch.schemas.events import ProgressStep
from medsearch.schemas.research import RankedResultSet, ResearchRequest
from medsearch.services.cache import SearchCache
from medsearch.services.sources.base import BaseSource
from medsearch.services.sources.gateway import RetryPolicy, SourceGateway
from medsearch.services.vocabulary import Vocabulary, get_vocabulary

from .fallback import FallbackController
from .grade import apply_grade
from .query_analyzer import QueryAnalyzer
from .ranking import rank_and_summarize
from .scoring import RelevanceScorer
from .strategy import StrategyPlanner
from .types import EMERGENCY_STRATEGY, ProgressCallback, _noop_callback

logger = get_logger(__name__)


class ResearchPipeline:
    """
    Search pipeline with its sources, settings and cache injected.

    Args:
        sources: Source implementations, keyed internally by their name
        settings: Tuning knobs; the process-wide settings when None
        cache: Optional SearchCache shared by every source gateway
        retry_policy: Retry behaviour for source calls; derived from settings when None
        vocabulary: Keyword tables; loaded from settings.vocabulary_path when None
    """

    def __init__(
        self,
        sources: Sequence[BaseSource],
        settings: Optional[Settings] = None,
        cache: Optional[SearchCache] = None,
        retry_policy: Optional[RetryPolicy] = None,
        vocabulary: Optional[Vocabulary] = None,
    ):
        self.settings = settings or default_settings
        self.vocabulary = vocabulary or get_vocabulary(self.settings.vocabulary_path)
        policy = retry_policy or RetryPolicy.from_settings(self.settings)

        self.gateways: Dict[str, SourceGateway] = {}
        for source in sources:
            if source.name in self.gateways:
                logger.warning(f"Duplicate source '{source.name}', keeping the first")
                continue
            self.gateways[source.name] = SourceGateway(
                source,
                retry_policy=policy,
                timeout_seconds=self.settings.source_timeout_seconds,
                cache=cache,
            )

        self.analyzer = QueryAnalyzer(self.vocabulary)
        self.planner = StrategyPlanner(self.vocabulary, self.settings.emergency_source)

    @property
    def source_names(self) -> List[str]:
        return list(self.gateways)

    def select_gateways(self, requested: Optional[List[str]]) -> Dict[str, SourceGateway]:
        """Restrict to the requested source names (case-insensitive); unknown names are ignored."""
        if not requested:
            return dict(self.gateways)
        wanted = {name.strip().lower() for name in requested}
        selected = {name: g for name, g in self.gateways.items() if name.lower() in wanted}
        ignored = wanted - {name.lower() for name in selected}
        if ignored:
            logger.warning(f"Ignoring unknown sources: {', '.join(sorted(ignored))}")
        return selected

    async def search(
        self,
        request: ResearchRequest,
        on_progress: ProgressCallback = _noop_callback,
    ) -> RankedResultSet:
        try:
            return await self._search(request, on_progress)
        except Exception as e:
            logger.exception(f"Research pipeline failed for '{request.query[:80]}': {e}")
            return RankedResultSet(strategy_used=EMERGENCY_STRATEGY, fallback_tier_reached=0)

    async def _search(self, request: ResearchRequest, on_progress: ProgressCallback) -> RankedResultSet:
        start_time = time.time()
        preferences = request.preferences

        logger.info(f"\n{'='*60}")
        logger.info(f"RESEARCH: {request.query}")
        logger.info(f"{'='*60}")

        on_progress(ProgressStep.ANALYZING, "Analyzing query...", None)
        analysis = self.analyzer.analyze(request.query)
        on_progress(
            ProgressStep.ANALYZING,
            "Query analyzed",
            f"{analysis.query_type.value} / {analysis.domain.value} / {analysis.complexity.value}",
        )

        gateways = self.select_gateways(request.sources)
        on_progress(ProgressStep.PLANNING, "Planning search tiers...", f"{len(gateways)} sources available")
        strategy = self.planner.plan(analysis, request.query, list(gateways))
        if not strategy.tiers:
            raise PipelineError("planning", "strategy has no tiers")

        scorer = RelevanceScorer(
            analysis,
            request.query,
            vocabulary=self.vocabulary,
            preferences=preferences,
        )
        controller = FallbackController(
            gateways,
            scorer,
            max_results=request.max_results,
            max_results_per_source=self.settings.max_results_per_source,
            relevance_gate=self.settings.min_medical_relevance,
            minimum_evidence_level=preferences.minimum_evidence_level if preferences else None,
            on_progress=on_progress,
        )
        outcome = await controller.run(strategy)

        on_progress(ProgressStep.RANKING, "Ranking results...", f"{len(outcome.records)} candidates")
        results, insights = rank_and_summarize(outcome.records, request.max_results)
        results = apply_grade(results, self.vocabulary)

        elapsed = time.time() - start_time
        logger.info(
            f"---DONE: {len(results)} results via '{outcome.strategy_used}' "
            f"(tier {outcome.fallback_tier_reached}) in {elapsed:.1f}s---"
        )
        on_progress(ProgressStep.COMPLETE, "Search complete", f"{len(results)} results")

        return RankedResultSet(
            results=results,
            insights=insights,
            strategy_used=outcome.strategy_used,
            fallback_tier_reached=outcome.fallback_tier_reached,
            query_analysis=analysis,
            tiers=outcome.tiers,
        )

    def search_sync(
        self,
        request: ResearchRequest,
        on_progress: ProgressCallback = _noop_callback,
    ) -> RankedResultSet:
        """
        Sync wrapper around search().

        Uses asyncio.run(), so call it from a thread without a running
        event loop (the streaming endpoint's worker thread, a CLI).
        """
        return asyncio.run(self.search(request, on_progress))
