"""
Semantic Scholar data source.

Graph API paper search over 200M+ papers. Works without a key at a shared
rate limit; an API key raises the limit.
"""
from typing import Dict, List, Optional

from medsearch.core.exceptions import SourceParseError
from medsearch.core.logging import get_logger
from medsearch.schemas.records import RawRecord

from .base import SEMANTIC_SCHOLAR, HttpSource

logger = get_logger(__name__)

SEARCH_URL = "https://api.semanticscholar.org/graph/v1/paper/search"
DEFAULT_FIELDS = [
    "paperId",
    "title",
    "abstract",
    "year",
    "authors",
    "venue",
    "publicationVenue",
    "citationCount",
    "isOpenAccess",
    "publicationTypes",
    "externalIds",
    "url",
]


def _parse_semantic_scholar(data: Dict) -> List[RawRecord]:
    """Convert a Semantic Scholar search response into RawRecords."""
    if not isinstance(data, dict):
        raise SourceParseError(SEMANTIC_SCHOLAR, "response is not a JSON object")

    records = []
    for paper in data.get("data", []) or []:
        title = (paper.get("title") or "").strip()
        if not title:
            continue

        external_ids = paper.get("externalIds") or {}
        venue = paper.get("publicationVenue") or {}
        journal = venue.get("name") if isinstance(venue, dict) else ""
        records.append(RawRecord(
            title=title,
            abstract=paper.get("abstract"),
            authors=[a.get("name", "") for a in paper.get("authors", []) or [] if a.get("name")],
            journal=journal or paper.get("venue") or "",
            year=paper.get("year"),
            doi=external_ids.get("DOI"),
            pmid=external_ids.get("PubMed"),
            url=paper.get("url"),
            source=SEMANTIC_SCHOLAR,
            citation_count=paper.get("citationCount", 0) or 0,
            is_open_access=bool(paper.get("isOpenAccess")),
            publication_types=paper.get("publicationTypes") or [],
        ))
    return records


class SemanticScholarSource(HttpSource):
    """Semantic Scholar Graph API search."""

    def __init__(self, contact_email: str = "researcher@example.com", timeout: float = 15.0,
                 api_key: Optional[str] = None):
        super().__init__(contact_email, timeout)
        self.api_key = api_key

    @property
    def name(self) -> str:
        return SEMANTIC_SCHOLAR

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    async def search(self, query: str, max_results: int = 25) -> List[RawRecord]:
        logger.info(f"Searching Semantic Scholar: {query[:50]}...")
        params = {
            "query": query,
            "limit": min(max_results, 100),
            "fields": ",".join(DEFAULT_FIELDS),
        }
        data = await self._get_json(SEARCH_URL, params)
        records = _parse_semantic_scholar(data)
        logger.info(f"Semantic Scholar: Returned {len(records)} records")
        return records
