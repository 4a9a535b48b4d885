"""
OpenAlex data source.

OpenAlex provides access to 250M+ scholarly works.
- 100,000 calls per day, 10 requests per second
- No API key required
"""
from typing import Dict, List, Optional

from medsearch.core.exceptions import SourceParseError
from medsearch.core.logging import get_logger
from medsearch.schemas.records import RawRecord

from .base import OPENALEX, HttpSource

logger = get_logger(__name__)

WORKS_URL = "https://api.openalex.org/works"
SELECT_FIELDS = (
    "id,title,display_name,abstract_inverted_index,publication_year,cited_by_count,"
    "primary_location,authorships,ids,open_access,type"
)


def _reconstruct_abstract(inverted_index: Optional[Dict[str, List[int]]]) -> str:
    """Rebuild abstract text from OpenAlex's word -> positions index."""
    if not inverted_index:
        return ""
    positioned = [(pos, word) for word, positions in inverted_index.items() for pos in positions]
    positioned.sort(key=lambda item: item[0])
    return " ".join(word for _, word in positioned)


def _parse_openalex(data: Dict) -> List[RawRecord]:
    """Convert an OpenAlex works response into RawRecords."""
    if not isinstance(data, dict):
        raise SourceParseError(OPENALEX, "response is not a JSON object")

    records = []
    for work in data.get("results", []):
        title = (work.get("title") or work.get("display_name") or "").strip()
        if not title:
            continue

        primary_location = work.get("primary_location") or {}
        venue = primary_location.get("source") or {}
        ids = work.get("ids") or {}
        pmid = (ids.get("pmid") or "").replace("https://pubmed.ncbi.nlm.nih.gov/", "").strip("/")
        doi = (ids.get("doi") or "").replace("https://doi.org/", "")
        authors = [
            (a.get("author") or {}).get("display_name", "")
            for a in work.get("authorships", []) or []
        ]

        records.append(RawRecord(
            title=title,
            abstract=_reconstruct_abstract(work.get("abstract_inverted_index")) or None,
            authors=[a for a in authors if a],
            journal=venue.get("display_name", "") or "",
            year=work.get("publication_year"),
            doi=doi or None,
            pmid=pmid or None,
            url=work.get("id"),
            source=OPENALEX,
            citation_count=work.get("cited_by_count", 0) or 0,
            is_open_access=bool((work.get("open_access") or {}).get("is_oa")),
            publication_types=[work["type"]] if work.get("type") else [],
        ))
    return records


class OpenAlexSource(HttpSource):
    """OpenAlex works search."""

    @property
    def name(self) -> str:
        return OPENALEX

    async def search(self, query: str, max_results: int = 25) -> List[RawRecord]:
        logger.info(f"Searching OpenAlex: {query[:50]}...")
        params = {
            "search": query,
            "per_page": min(max_results, 100),
            "filter": "has_abstract:true",
            "select": SELECT_FIELDS,
            "mailto": self.contact_email,
        }
        data = await self._get_json(WORKS_URL, params)
        records = _parse_openalex(data)
        logger.info(f"OpenAlex: Returned {len(records)} records")
        return records
