"""
Vocabulary tables.

Keyword lists and regex patterns used by the query analyzer, the scorer
and the GRADE assessor live in a versioned YAML file so they can be tuned
without code changes. This module loads and validates that file and
provides the term-matching helpers every consumer shares.
"""
import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Pattern, Sequence

import yaml
from pydantic import BaseModel, Field, ValidationError

from medsearch.core.exceptions import VocabularyError
from medsearch.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_VOCABULARY_PATH = Path(__file__).resolve().parents[1] / "data" / "vocabulary.yaml"


class StudyTypeEntry(BaseModel):
    name: str
    score: float = Field(ge=0, le=1)
    terms: List[str]


class GradeVocabulary(BaseModel):
    rct_terms: List[str]
    bias_tools: List[str]
    publication_bias_tests: List[str]
    registration_terms: List[str]
    publication_bias_suspected: List[str]
    indirectness_terms: List[str]
    large_effect_terms: List[str]
    dose_response_terms: List[str]
    confounding_terms: List[str]


class Vocabulary(BaseModel):
    """Validated contents of the vocabulary file."""
    version: str

    query_types: Dict[str, List[str]]
    domains: Dict[str, List[str]]
    medical_concepts: List[str]
    mesh_map: Dict[str, str]
    synonyms: Dict[str, List[str]] = Field(default_factory=dict)
    population: Dict[str, List[str]]
    evidence_focus: Dict[str, List[str]]
    relational_patterns: List[str]
    comparative_terms: List[str]
    stop_words: List[str]

    top_medical_journals: List[str]
    high_impact_journals: List[str]
    medical_context: List[str]
    non_medical: List[str]
    animal_terms: List[str]

    study_types: List[StudyTypeEntry]
    unclear_evidence_score: float = Field(default=0.5, ge=0, le=1)

    diagnostic_terms: List[str]
    accuracy_terms: List[str]
    mechanistic_terms: List[str]
    methodology_terms: List[str]

    publication_filters: Dict[str, str] = Field(default_factory=dict)
    grade: GradeVocabulary

    def study_type_score(self, name: str) -> Optional[float]:
        for entry in self.study_types:
            if entry.name == name:
                return entry.score
        return None


@lru_cache(maxsize=None)
def term_pattern(term: str) -> Pattern:
    """
    Compile a whole-term matcher for a vocabulary entry.

    Tolerates a plural suffix and treats hyphens and punctuation as
    boundaries, so "statin" matches "statins" and "covid" matches "covid-19".
    """
    escaped = re.escape(term.lower())
    return re.compile(rf"(?<![a-z0-9]){escaped}(?:s|es)?(?![a-z0-9])")


@lru_cache(maxsize=None)
def regex_pattern(expression: str) -> Pattern:
    return re.compile(expression, re.IGNORECASE)


def find_terms(text: str, terms: Sequence[str]) -> List[str]:
    """Return the vocabulary terms present in text, in table order."""
    lowered = text.lower()
    return [term for term in terms if term_pattern(term).search(lowered)]


def contains_any(text: str, terms: Sequence[str]) -> bool:
    lowered = text.lower()
    return any(term_pattern(term).search(lowered) for term in terms)


def count_pattern_hits(text: str, expressions: Sequence[str]) -> int:
    """Number of regex expressions with at least one match in text."""
    return sum(1 for expression in expressions if regex_pattern(expression).search(text))


def load_vocabulary_file(path: Path) -> Vocabulary:
    """Read and validate a vocabulary YAML file."""
    try:
        with open(path, "r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle)
    except OSError as e:
        raise VocabularyError(str(path), f"cannot read file: {e}") from e
    except yaml.YAMLError as e:
        raise VocabularyError(str(path), f"invalid YAML: {e}") from e

    if not isinstance(raw, dict):
        raise VocabularyError(str(path), "top level must be a mapping")

    try:
        vocabulary = Vocabulary.model_validate(raw)
    except ValidationError as e:
        raise VocabularyError(str(path), str(e)) from e

    for expressions in list(vocabulary.query_types.values()) + [vocabulary.relational_patterns]:
        for expression in expressions:
            try:
                regex_pattern(expression)
            except re.error as e:
                raise VocabularyError(str(path), f"bad pattern {expression!r}: {e}") from e

    logger.info(f"Loaded vocabulary version {vocabulary.version} from {path}")
    return vocabulary


@lru_cache()
def get_vocabulary(path: Optional[str] = None) -> Vocabulary:
    """
    Load the vocabulary once per path.

    Args:
        path: Alternative YAML file; the packaged tables when None
    """
    return load_vocabulary_file(Path(path) if path else DEFAULT_VOCABULARY_PATH)
