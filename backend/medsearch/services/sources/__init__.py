"""
Data sources for biomedical literature retrieval.

Each source is implemented in its own module. All searches are async so
a tier can fan out across sources in parallel.

To add a new source:
1. Create a new module with a BaseSource subclass
2. Export it here
3. Add it to build_default_sources (wrapped with a query rewriter if it
   does not understand PubMed syntax)
"""
from typing import List, Optional

from medsearch.core.config import Settings
from medsearch.core.logging import get_logger

from .base import (
    BaseSource,
    HttpSource,
    PUBMED,
    EUROPE_PMC,
    SEMANTIC_SCHOLAR,
    CROSSREF,
    OPENALEX,
    CLINICAL_TRIALS,
    OPENFDA,
)
from .gateway import (
    RetryPolicy,
    SourceGateway,
    QueryRewritingSource,
    strip_field_tags,
    to_plain_keywords,
)
from .pubmed import PubMedSource
from .europe_pmc import EuropePMCSource
from .semantic_scholar import SemanticScholarSource
from .crossref import CrossRefSource
from .openalex import OpenAlexSource
from .clinicaltrials import ClinicalTrialsSource
from .openfda import OpenFDASource

logger = get_logger(__name__)


def build_default_sources(settings: Settings, enabled: Optional[List[str]] = None) -> List[BaseSource]:
    """
    Construct the configured sources with their credentials injected.

    Only PubMed receives field-tagged queries unchanged; Europe PMC keeps
    boolean syntax without tags, and the rest receive plain keywords.
    """
    email = settings.API_CONTACT_EMAIL
    timeout = settings.source_timeout_seconds
    factories = {
        PUBMED: lambda: PubMedSource(email, api_key=settings.NCBI_API_KEY),
        EUROPE_PMC: lambda: QueryRewritingSource(EuropePMCSource(email, timeout), strip_field_tags),
        SEMANTIC_SCHOLAR: lambda: QueryRewritingSource(
            SemanticScholarSource(email, timeout, api_key=settings.SEMANTIC_SCHOLAR_API_KEY),
            to_plain_keywords,
        ),
        CROSSREF: lambda: QueryRewritingSource(CrossRefSource(email, timeout), to_plain_keywords),
        OPENALEX: lambda: QueryRewritingSource(OpenAlexSource(email, timeout), to_plain_keywords),
        CLINICAL_TRIALS: lambda: QueryRewritingSource(ClinicalTrialsSource(timeout), to_plain_keywords),
        OPENFDA: lambda: QueryRewritingSource(
            OpenFDASource(email, timeout, api_key=settings.OPENFDA_API_KEY),
            to_plain_keywords,
        ),
    }

    names = enabled if enabled is not None else settings.enabled_sources
    sources = []
    for name in names:
        factory = factories.get(name)
        if factory is None:
            logger.warning(f"Unknown source '{name}' in configuration, skipping")
            continue
        sources.append(factory())
    return sources


__all__ = [
    "BaseSource",
    "HttpSource",
    "PUBMED",
    "EUROPE_PMC",
    "SEMANTIC_SCHOLAR",
    "CROSSREF",
    "OPENALEX",
    "CLINICAL_TRIALS",
    "OPENFDA",
    "RetryPolicy",
    "SourceGateway",
    "QueryRewritingSource",
    "strip_field_tags",
    "to_plain_keywords",
    "PubMedSource",
    "EuropePMCSource",
    "SemanticScholarSource",
    "CrossRefSource",
    "OpenAlexSource",
    "ClinicalTrialsSource",
    "OpenFDASource",
    "build_default_sources",
]
