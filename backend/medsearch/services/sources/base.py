"""
Base types and interfaces for data sources.

Every source implements one capability, ``search(query, max_results)``,
returning RawRecord objects. Connectors raise the typed SourceError family
on failure; SourceGateway turns those into an empty result so nothing
escapes into the pipeline.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import httpx

from medsearch.core.exceptions import (
    SourceConnectionError,
    SourceHTTPError,
    SourceParseError,
    SourceRateLimitError,
    SourceTimeoutError,
)
from medsearch.schemas.records import RawRecord

PUBMED = "PubMed"
EUROPE_PMC = "EuropePMC"
SEMANTIC_SCHOLAR = "SemanticScholar"
CROSSREF = "CrossRef"
OPENALEX = "OpenAlex"
CLINICAL_TRIALS = "ClinicalTrials.gov"
OPENFDA = "openFDA"


class BaseSource(ABC):
    """
    Abstract base class for all data sources.

    To add a new source:
    1. Create a class that inherits from BaseSource
    2. Implement the name property and search method
    3. Register it in build_default_sources

    Example:
        class NewSource(BaseSource):
            @property
            def name(self) -> str:
                return "NewSource"

            async def search(self, query: str, max_results: int = 25) -> List[RawRecord]:
                ...
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of the data source."""
        pass

    @abstractmethod
    async def search(self, query: str, max_results: int = 25) -> List[RawRecord]:
        """
        Search this source for records matching the query.

        Args:
            query: Search query string
            max_results: Maximum number of results to return

        Returns:
            List of RawRecord objects

        Raises:
            SourceError: on network, rate-limit, HTTP or parse failures
        """
        pass


class HttpSource(BaseSource):
    """Shared request handling for the sources that speak JSON over HTTP."""

    def __init__(self, contact_email: str = "researcher@example.com", timeout: float = 15.0):
        self.contact_email = contact_email
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {"User-Agent": f"MedSearch/1.0 (mailto:{self.contact_email})"}

    async def _get_json(self, url: str, params: Dict, headers: Optional[Dict[str, str]] = None) -> Dict:
        """GET a JSON document, mapping transport and status failures to SourceErrors."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=params, headers=headers or self._headers())
        except httpx.TimeoutException as e:
            raise SourceTimeoutError(self.name, self.timeout) from e
        except httpx.RequestError as e:
            raise SourceConnectionError(self.name, str(e)) from e

        check_status(self.name, response.status_code, response.headers.get("Retry-After"))

        try:
            return response.json()
        except ValueError as e:
            raise SourceParseError(self.name, str(e)) from e


def check_status(source_name: str, status_code: int, retry_after: Optional[str] = None) -> None:
    """Raise the matching SourceError for a non-success HTTP status."""
    if status_code == 429:
        seconds = int(retry_after) if retry_after and retry_after.isdigit() else None
        raise SourceRateLimitError(source_name, seconds)
    if status_code >= 400:
        raise SourceHTTPError(source_name, status_code)
