"""
Query analysis.

Classifies a free-text question by intent, medical specialty, complexity
and population/evidence hints using the vocabulary tables. Pure function
of the query text: no I/O and no error path.
"""
import re
from typing import List, Optional, Tuple

from medsearch.core.logging import get_logger
from medsearch.schemas.analysis import (
    Complexity,
    EvidenceFocus,
    MedicalDomain,
    PicoElements,
    PopulationFocus,
    QueryAnalysis,
    QueryType,
)
from medsearch.services.vocabulary import (
    Vocabulary,
    count_pattern_hits,
    find_terms,
    get_vocabulary,
)

logger = get_logger(__name__)

MAX_KEY_TERMS = 5

# Query words delimiting PICO fragments
_BOUNDARY = r"(?=\s+(?:in|among|for|on|versus|vs\.?|compared|treated|receiving|taking|using)\b|[,.;?]|$)"

PICO_PATTERNS = {
    "population": re.compile(
        r"\b(?:in|among)\s+((?:adult |elderly |older |pediatric |paediatric |pregnant )?"
        r"(?:patients|adults|children|women|men|people|individuals|infants|adolescents)"
        r"(?:\s+with\s+[\w\s-]+?)?)" + _BOUNDARY,
        re.IGNORECASE,
    ),
    "intervention": re.compile(
        r"\b(?:effect|effects|efficacy|effectiveness|impact|safety|use|role)\s+of\s+([\w\s-]+?)" + _BOUNDARY,
        re.IGNORECASE,
    ),
    "comparator": re.compile(
        r"\b(?:versus|vs\.?|compared\s+(?:with|to))\s+([\w\s-]+?)" + _BOUNDARY,
        re.IGNORECASE,
    ),
    "outcome": re.compile(
        r"\bon\s+([\w\s-]+?)" + _BOUNDARY,
        re.IGNORECASE,
    ),
}

COMPLEXITY_BY_LEVEL = {
    1: Complexity.SIMPLE,
    2: Complexity.MODERATE,
    3: Complexity.COMPLEX,
    4: Complexity.EXPERT,
    5: Complexity.EXPERT,
}


def extract_key_terms(query: str, stop_words, limit: int = MAX_KEY_TERMS) -> List[str]:
    """
    Simplified keyword extraction used by the broad tiers.

    Keeps alphabetic words longer than three characters that are not stop
    words, in query order, without repeats.
    """
    stop = set(stop_words)
    terms: List[str] = []
    for word in re.findall(r"[a-z][a-z0-9-]*", query.lower()):
        if len(word) <= 3 or word in stop or word in terms:
            continue
        terms.append(word)
        if len(terms) >= limit:
            break
    return terms


def _drop_contained(terms: List[str]) -> List[str]:
    """Drop terms contained in a longer matched term ("diabetes" inside "type 2 diabetes")."""
    kept = []
    for term in terms:
        if any(term != other and term in other for other in terms):
            continue
        kept.append(term)
    return kept


class QueryAnalyzer:
    """Rule-based query classifier backed by the vocabulary tables."""

    def __init__(self, vocabulary: Optional[Vocabulary] = None):
        self.vocabulary = vocabulary or get_vocabulary()

    def analyze(self, query: str) -> QueryAnalysis:
        text = (query or "").strip()
        if not text:
            return QueryAnalysis()

        lowered = text.lower()

        query_type = self._classify_type(lowered)
        domain, domains_detected = self._classify_domain(lowered)
        concepts = self._find_concepts(lowered)
        level = self._complexity_level(lowered, concepts, domains_detected)

        analysis = QueryAnalysis(
            query_type=query_type,
            domain=domain,
            complexity=COMPLEXITY_BY_LEVEL[level],
            complexity_level=level,
            population_focus=self._population_focus(lowered),
            evidence_focus=self._evidence_focus(lowered),
            concepts=tuple(concepts),
            domains_detected=tuple(domains_detected),
            key_terms=tuple(extract_key_terms(text, self.vocabulary.stop_words)),
            pico=self._extract_pico(text),
        )
        logger.debug(
            f"Analyzed query: type={analysis.query_type.value} domain={analysis.domain.value} "
            f"complexity={analysis.complexity.value} ({level})"
        )
        return analysis

    def _classify_type(self, lowered: str) -> QueryType:
        best_type = QueryType.GENERAL
        best_hits = 0
        # Strict ">" keeps the earlier table entry on ties
        for name, expressions in self.vocabulary.query_types.items():
            hits = count_pattern_hits(lowered, expressions)
            if hits > best_hits:
                best_type, best_hits = QueryType(name), hits
        return best_type

    def _classify_domain(self, lowered: str) -> Tuple[MedicalDomain, List[MedicalDomain]]:
        best_domain = MedicalDomain.GENERAL_MEDICINE
        best_hits = 0
        detected = []
        for name, terms in self.vocabulary.domains.items():
            hits = len(find_terms(lowered, terms))
            if not hits:
                continue
            detected.append(MedicalDomain(name))
            if hits > best_hits:
                best_domain, best_hits = MedicalDomain(name), hits
        return best_domain, detected

    def _find_concepts(self, lowered: str) -> List[str]:
        population_terms = {term for terms in self.vocabulary.population.values() for term in terms}
        candidates = list(self.vocabulary.medical_concepts)
        candidates += [
            term for term in self.vocabulary.mesh_map
            if term not in candidates and term not in population_terms
        ]
        return _drop_contained(find_terms(lowered, candidates))

    def _complexity_level(self, lowered: str, concepts: List[str], domains: List[MedicalDomain]) -> int:
        level = 1
        if len(concepts) >= 3:
            level += 1
        if len(domains) >= 2:
            level += 1
        if count_pattern_hits(lowered, self.vocabulary.relational_patterns):
            level += 1
        if find_terms(lowered, self.vocabulary.comparative_terms):
            level += 1
        return min(level, 5)

    def _population_focus(self, lowered: str) -> Optional[PopulationFocus]:
        for name, terms in self.vocabulary.population.items():
            if find_terms(lowered, terms):
                return PopulationFocus(name)
        return None

    def _evidence_focus(self, lowered: str) -> Optional[EvidenceFocus]:
        kinds = [name for name, terms in self.vocabulary.evidence_focus.items() if find_terms(lowered, terms)]
        if not kinds:
            return None
        if len(kinds) > 1:
            return EvidenceFocus.MIXED
        return EvidenceFocus(kinds[0])

    def _extract_pico(self, text: str) -> PicoElements:
        elements = {}
        for element, pattern in PICO_PATTERNS.items():
            match = pattern.search(text)
            if match:
                elements[element] = match.group(1).strip()
        return PicoElements(**elements)


def analyze_query(query: str, vocabulary: Optional[Vocabulary] = None) -> QueryAnalysis:
    """Convenience wrapper around QueryAnalyzer.analyze."""
    return QueryAnalyzer(vocabulary).analyze(query)
