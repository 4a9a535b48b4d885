"""
Query Analysis Schemas

Classification of a free-text query and the tiered search plan built from it.
"""
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QueryType(str, Enum):
    TREATMENT = "treatment"
    DIAGNOSIS = "diagnosis"
    PROGNOSIS = "prognosis"
    MECHANISM = "mechanism"
    EPIDEMIOLOGY = "epidemiology"
    GENERAL = "general"


class MedicalDomain(str, Enum):
    CARDIOLOGY = "cardiology"
    ONCOLOGY = "oncology"
    NEUROLOGY = "neurology"
    PSYCHIATRY = "psychiatry"
    INFECTIOUS_DISEASE = "infectious_disease"
    ENDOCRINOLOGY = "endocrinology"
    PEDIATRICS = "pediatrics"
    SURGERY = "surgery"
    EMERGENCY_MEDICINE = "emergency_medicine"
    GENERAL_MEDICINE = "general_medicine"


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    EXPERT = "expert"


class PopulationFocus(str, Enum):
    PEDIATRIC = "pediatric"
    ADULT = "adult"
    ELDERLY = "elderly"


class EvidenceFocus(str, Enum):
    EXPERIMENTAL = "experimental"
    OBSERVATIONAL = "observational"
    REVIEW = "review"
    MIXED = "mixed"


class PicoElements(CamelModel):
    """Population / Intervention / Comparator / Outcome pulled from the query text."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    population: Optional[str] = None
    intervention: Optional[str] = None
    comparator: Optional[str] = None
    outcome: Optional[str] = None


class QueryAnalysis(CamelModel):
    """
    Rule-based classification of a query.

    Frozen: once produced by the analyzer nothing downstream may alter it.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    query_type: QueryType = QueryType.GENERAL
    domain: MedicalDomain = MedicalDomain.GENERAL_MEDICINE
    complexity: Complexity = Complexity.SIMPLE
    complexity_level: int = Field(default=1, ge=1, le=5)
    population_focus: Optional[PopulationFocus] = None
    evidence_focus: Optional[EvidenceFocus] = None

    concepts: Tuple[str, ...] = ()
    domains_detected: Tuple[MedicalDomain, ...] = ()
    key_terms: Tuple[str, ...] = ()
    pico: PicoElements = Field(default_factory=PicoElements)


class SearchTier(CamelModel):
    """One step of an escalating search strategy."""
    name: str
    sources: List[str] = Field(default_factory=list)
    query_variants: List[str] = Field(default_factory=list)
    relevance_threshold: float = Field(ge=0, le=100)


class SearchStrategy(CamelModel):
    """Ordered tiers, each broader than the one before it."""
    tiers: List[SearchTier]
    emergency_source: Optional[str] = None
    emergency_query: str = ""
