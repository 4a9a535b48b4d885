"""
Search strategy planning.

Turns a QueryAnalysis into an ordered list of search tiers. Each tier is
broader than the one before it: more sources, looser query variants and a
lower relevance threshold. Planning is declarative; nothing here runs a
search.
"""
from typing import Dict, List, Optional, Sequence

from medsearch.core.logging import get_logger
from medsearch.schemas.analysis import (
    Complexity,
    QueryAnalysis,
    QueryType,
    SearchStrategy,
    SearchTier,
)
from medsearch.services.sources.base import (
    CLINICAL_TRIALS,
    CROSSREF,
    EUROPE_PMC,
    OPENALEX,
    OPENFDA,
    PUBMED,
    SEMANTIC_SCHOLAR,
)
from medsearch.services.vocabulary import Vocabulary, find_terms, get_vocabulary

from .query_analyzer import extract_key_terms

logger = get_logger(__name__)

TIER_NAMES = (
    "Expert Medical Terminology",
    "Balanced Search",
    "Broad Semantic Expansion",
    "Specialized Fallback",
)

# Thresholds (0-100) per tier, lowered as queries get harder
TIER_THRESHOLDS: Dict[Complexity, Sequence[float]] = {
    Complexity.SIMPLE: (85, 75, 65, 50),
    Complexity.MODERATE: (85, 75, 65, 50),
    Complexity.COMPLEX: (80, 70, 60, 45),
    Complexity.EXPERT: (70, 60, 50, 40),
}

PRECISION_SOURCES = (PUBMED, EUROPE_PMC)
BALANCED_SOURCES = (PUBMED, EUROPE_PMC, SEMANTIC_SCHOLAR, CROSSREF)
SPECIALIZED_PREFERENCE = (SEMANTIC_SCHOLAR, OPENALEX, EUROPE_PMC, PUBMED, CROSSREF)
# Most to least dependable for the one-shot emergency query
RELIABILITY_ORDER = (PUBMED, EUROPE_PMC, SEMANTIC_SCHOLAR, OPENALEX, CROSSREF, CLINICAL_TRIALS, OPENFDA)

TREATMENT_ONLY_SOURCES = (CLINICAL_TRIALS, OPENFDA)


def _intersect(preferred: Sequence[str], available: Sequence[str]) -> List[str]:
    return [name for name in preferred if name in available]


def _unique(values: List[str]) -> List[str]:
    result = []
    for value in values:
        if value and value not in result:
            result.append(value)
    return result


class StrategyPlanner:
    """Builds 3-4 tier search strategies from a query analysis."""

    def __init__(self, vocabulary: Optional[Vocabulary] = None, emergency_source: Optional[str] = None):
        self.vocabulary = vocabulary or get_vocabulary()
        self.emergency_source = emergency_source

    def plan(self, analysis: QueryAnalysis, query: str, available_sources: Sequence[str]) -> SearchStrategy:
        available = list(available_sources)
        thresholds = TIER_THRESHOLDS[analysis.complexity]
        key_terms = list(analysis.key_terms) or extract_key_terms(query, self.vocabulary.stop_words)
        is_treatment = analysis.query_type == QueryType.TREATMENT

        broad = [s for s in available if is_treatment or s not in TREATMENT_ONLY_SOURCES] or available
        balanced = _intersect(BALANCED_SOURCES, available)
        if is_treatment and CLINICAL_TRIALS in available:
            balanced.append(CLINICAL_TRIALS)

        tiers = [
            SearchTier(
                name=TIER_NAMES[0],
                sources=_intersect(PRECISION_SOURCES, available) or broad,
                query_variants=self._precision_variants(analysis, query, key_terms),
                relevance_threshold=thresholds[0],
            ),
            SearchTier(
                name=TIER_NAMES[1],
                sources=balanced or broad,
                query_variants=self._balanced_variants(query, key_terms),
                relevance_threshold=thresholds[1],
            ),
            SearchTier(
                name=TIER_NAMES[2],
                sources=broad,
                query_variants=_unique([" ".join(key_terms) or query]),
                relevance_threshold=thresholds[2],
            ),
        ]

        # A single-source tier would repeat tier three when only one source exists
        if len(available) >= 2:
            specialized = _intersect(SPECIALIZED_PREFERENCE, available) or available
            tiers.append(SearchTier(
                name=TIER_NAMES[3],
                sources=specialized[:1],
                query_variants=_unique([" ".join(key_terms[:3]) or query]),
                relevance_threshold=thresholds[3],
            ))

        strategy = SearchStrategy(
            tiers=tiers,
            emergency_source=self.pick_emergency_source(available),
            emergency_query=" ".join(key_terms[:3]) or query,
        )
        logger.info(
            f"Planned {len(tiers)} tiers for {analysis.complexity.value} query: "
            + ", ".join(f"{t.name}({t.relevance_threshold:.0f})" for t in tiers)
        )
        return strategy

    def pick_emergency_source(self, available: Sequence[str]) -> Optional[str]:
        if self.emergency_source and self.emergency_source in available:
            return self.emergency_source
        ranked = _intersect(RELIABILITY_ORDER, available)
        if ranked:
            return ranked[0]
        return available[0] if available else None

    def _mesh_headings(self, query: str) -> List[tuple]:
        """(term, MeSH heading) pairs for concepts in the query, longest terms first."""
        lowered = query.lower()
        matched = find_terms(lowered, sorted(self.vocabulary.mesh_map, key=len, reverse=True))
        pairs = []
        for term in matched:
            if any(term != other and term in other for other in matched):
                continue
            pairs.append((term, self.vocabulary.mesh_map[term]))
        return pairs

    def _precision_variants(self, analysis: QueryAnalysis, query: str, key_terms: List[str]) -> List[str]:
        pairs = self._mesh_headings(query)
        if pairs:
            groups = [f'("{heading}"[MeSH Terms] OR "{term}"[tiab])' for term, heading in pairs]
        else:
            groups = [f'"{term}"[tiab]' for term in key_terms[:4]]
        if not groups:
            return [query]

        base = " AND ".join(groups)
        variants = [base]
        publication_filter = self.vocabulary.publication_filters.get(analysis.query_type.value)
        if publication_filter:
            variants.append(f"{base} AND {publication_filter}")
        return _unique(variants)

    def _balanced_variants(self, query: str, key_terms: List[str]) -> List[str]:
        pairs = self._mesh_headings(query)
        mixed = [f'"{heading}"' for _, heading in pairs]
        covered = {word for term, _ in pairs for word in term.split()}
        mixed += [term for term in key_terms if term not in covered]

        lowered = query.lower()
        for term, synonyms in self.vocabulary.synonyms.items():
            if find_terms(lowered, [term]):
                mixed.append("(" + " OR ".join([term] + synonyms[:2]) + ")")
                break

        return _unique([query, " ".join(mixed)])


def plan_strategy(
    analysis: QueryAnalysis,
    query: str,
    available_sources: Sequence[str],
    vocabulary: Optional[Vocabulary] = None,
) -> SearchStrategy:
    """Convenience wrapper around StrategyPlanner.plan."""
    return StrategyPlanner(vocabulary).plan(analysis, query, available_sources)
