"""
Relevance and evidence scoring.

One scorer computes every sub-score for a UnifiedRecord (medical relevance,
query alignment, study-design evidence, recency, citation impact and the
optional query-type specific densities), then combines them with the
adaptive weight vector into a composite score in [0, 1].
"""
import re
from datetime import datetime
from typing import Iterable, List, Optional, Set

from medsearch.core.logging import get_logger
from medsearch.schemas.analysis import Complexity, QueryAnalysis
from medsearch.schemas.records import ScoreComponents, ScoredRecord, UnifiedRecord, WeightVector
from medsearch.schemas.research import ScoringPreferences
from medsearch.services.vocabulary import Vocabulary, find_terms, get_vocabulary, term_pattern

from .weights import AdaptiveWeightEngine

logger = get_logger(__name__)

HIGH_IMPACT_BONUS = 1.1
MISSING_YEAR_RECENCY = 0.3

# (max age in years, score), checked in order
RECENCY_BUCKETS = ((1, 1.0), (2, 0.9), (3, 0.8), (5, 0.7), (10, 0.5), (15, 0.3))
OLD_RECENCY = 0.1

# (citation count upper bound, score), checked in order
CITATION_BUCKETS = ((1, 0.1), (5, 0.3), (20, 0.5), (50, 0.7), (100, 0.8), (500, 0.9))
TOP_CITATION_SCORE = 1.0

# Per-hit increments for the optional density sub-scores
DENSITY_STEP = {
    "diagnostic": 0.2,
    "accuracy": 0.3,
    "mechanistic": 0.15,
    "methodology": 0.12,
}

_WORD_RE = re.compile(r"[a-z][a-z0-9\-]*")


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def recency_score(year: int, current_year: Optional[int] = None) -> float:
    """Piecewise decay by publication age; 0.3 when the year is missing or in the future."""
    current_year = current_year or datetime.now().year
    if not year or year <= 0 or year > current_year:
        return MISSING_YEAR_RECENCY
    age = current_year - year
    for max_age, score in RECENCY_BUCKETS:
        if age <= max_age:
            return score
    return OLD_RECENCY


def citation_score(citations: int) -> float:
    """Log-scale bucket of the citation count."""
    for upper, score in CITATION_BUCKETS:
        if citations < upper:
            return score
    return TOP_CITATION_SCORE


def query_terms(text: str, stop_words: Iterable[str]) -> List[str]:
    """Distinct lower-case content words of text, in order."""
    stops = set(stop_words)
    terms = []
    for word in _WORD_RE.findall(text.lower()):
        word = word.strip("-")
        if len(word) > 2 and word not in stops and word not in terms:
            terms.append(word)
    return terms


def _stem(term: str) -> str:
    return term[:max(3, len(term) - 2)]


class RelevanceScorer:
    """
    Scores unified records against one analyzed query.

    A scorer is built per query: it holds the weight vector chosen for the
    analysis so every record in the request is weighted the same way.
    """

    def __init__(
        self,
        analysis: QueryAnalysis,
        query: str,
        vocabulary: Optional[Vocabulary] = None,
        preferences: Optional[ScoringPreferences] = None,
        current_year: Optional[int] = None,
        weight_engine: Optional[AdaptiveWeightEngine] = None,
    ):
        self.analysis = analysis
        self.query = query
        self.vocabulary = vocabulary or get_vocabulary()
        self.preferences = preferences
        self.current_year = current_year or datetime.now().year
        self.weights: WeightVector = (weight_engine or AdaptiveWeightEngine()).weights_for(analysis, preferences)
        self._terms = query_terms(query, self.vocabulary.stop_words)

    # Sub-scores

    def medical_relevance(self, record: UnifiedRecord) -> float:
        vocab = self.vocabulary
        text = f"{record.title} {record.abstract}"
        journal = record.journal.lower()

        score = 0.3
        if journal and any(name in journal for name in vocab.top_medical_journals):
            score += 0.4

        medical_hits = find_terms(text, vocab.medical_context)
        score += min(0.3, 0.05 * len(medical_hits))

        if not medical_hits and find_terms(text, vocab.non_medical):
            score -= 0.4
        if find_terms(text, vocab.animal_terms):
            score -= 0.2
        return _clamp(score)

    def query_alignment(self, record: UnifiedRecord) -> float:
        """
        Overlap between query terms and the record text.

        Exact term matches count most, stem matches less, title matches add
        a bonus, and Jaccard overlap of the word sets stands in for
        semantic similarity.
        """
        terms = self._terms
        if not terms:
            return 0.5

        title = record.title.lower()
        text = f"{title} {record.abstract.lower()}"
        words: Set[str] = set(query_terms(text, self.vocabulary.stop_words))

        exact = [t for t in terms if term_pattern(t).search(text)]
        partial = [t for t in terms if t not in exact and _stem(t) in text]
        in_title = [t for t in terms if term_pattern(t).search(title)]

        union = words | set(terms)
        jaccard = len(words & set(terms)) / len(union) if union else 0.0

        n = len(terms)
        score = (len(exact) / n) * 0.8 + (len(partial) / n) * 0.3 + (len(in_title) / n) * 0.2 + jaccard * 0.3
        return _clamp(score)

    def classify_study_design(self, record: UnifiedRecord) -> str:
        """
        Study design name from the evidence hierarchy.

        Designs are tried strongest first. Each design is looked for in the
        source's study-type label, then the title, then the abstract, and
        the first design found anywhere wins.
        """
        for entry in self.vocabulary.study_types:
            for field in (record.study_type, record.title, record.abstract):
                if field and find_terms(field, entry.terms):
                    return entry.name
        return "unclear"

    def evidence_score(self, design: str) -> float:
        score = self.vocabulary.study_type_score(design)
        return self.vocabulary.unclear_evidence_score if score is None else score

    def _density(self, name: str, text: str) -> float:
        terms = getattr(self.vocabulary, f"{name}_terms")
        return _clamp(len(find_terms(text, terms)) * DENSITY_STEP[name])

    # Composite

    def score_record(self, record: UnifiedRecord, is_emergency: bool = False) -> ScoredRecord:
        text = f"{record.title} {record.abstract}"
        design = self.classify_study_design(record)
        relevance = self.medical_relevance(record)
        alignment = self.query_alignment(record)

        optional = {
            name: self._density(name, text)
            for name in DENSITY_STEP
            if self.weights.get(name) > 0
        }
        components = ScoreComponents(
            semantic=(relevance + alignment) / 2,
            evidence=self.evidence_score(design),
            recency=recency_score(record.year, self.current_year),
            citations=citation_score(record.citation_count),
            medical_relevance=relevance,
            query_alignment=alignment,
            **optional,
        )

        values = components.weighted_values()
        composite = sum(value * self.weights.get(name) for name, value in values.items())
        high_impact = self._is_high_impact(record.journal)
        if high_impact and self.analysis.complexity == Complexity.EXPERT:
            composite = min(1.0, composite * HIGH_IMPACT_BONUS)
        composite = _clamp(composite)

        return ScoredRecord(
            **record.model_dump(include=set(UnifiedRecord.model_fields)),
            score=composite,
            components=components,
            study_design=design,
            rationale=self._rationale(composite, values, design),
            is_emergency=is_emergency,
        )

    def score_records(self, records: Iterable[UnifiedRecord], is_emergency: bool = False) -> List[ScoredRecord]:
        scored = [self.score_record(r, is_emergency=is_emergency) for r in records]
        logger.debug(f"Scored {len(scored)} records")
        return scored

    def _is_high_impact(self, journal: str) -> bool:
        lowered = journal.lower()
        return bool(lowered) and any(term_pattern(name).search(lowered) for name in self.vocabulary.high_impact_journals)

    def _rationale(self, composite: float, values: dict, design: str) -> str:
        parts = [f"Final Score: {composite:.0%}"]
        for name, value in values.items():
            parts.append(f"{name.capitalize()}: {value:.0%} (weight: {self.weights.get(name):.0%})")
        parts.append(f"Study design: {design.replace('_', ' ')}")
        return " | ".join(parts)


def filter_by_relevance(records: Iterable[ScoredRecord], threshold: float) -> List[ScoredRecord]:
    """Drop records whose medical-relevance sub-score is below threshold."""
    return [r for r in records if r.components.medical_relevance >= threshold]


def filter_by_evidence_level(
    records: Iterable[ScoredRecord],
    minimum_level: Optional[str],
    vocabulary: Optional[Vocabulary] = None,
) -> List[ScoredRecord]:
    """
    Drop records whose evidence score falls below the named study design.

    Unknown level names disable the filter.
    """
    records = list(records)
    if not minimum_level:
        return records
    vocabulary = vocabulary or get_vocabulary()
    floor = vocabulary.study_type_score(minimum_level.strip().lower().replace(" ", "_"))
    if floor is None:
        logger.warning(f"Unknown minimum evidence level '{minimum_level}', not filtering")
        return records
    return [r for r in records if r.components.evidence >= floor]
