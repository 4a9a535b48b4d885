"""
CrossRef data source.

CrossRef provides DOI metadata for 140M+ works.
- No API key required (use polite pool with email)
- Good coverage of citation counts
"""
import re
from typing import Dict, List

from medsearch.core.exceptions import SourceParseError
from medsearch.core.logging import get_logger
from medsearch.schemas.records import RawRecord

from .base import CROSSREF, HttpSource

logger = get_logger(__name__)

WORKS_URL = "https://api.crossref.org/works"


def _strip_jats(text: str) -> str:
    """CrossRef abstracts arrive as JATS XML fragments."""
    return re.sub(r"\s+", " ", re.sub(r"<[^>]+>", " ", text)).strip()


def _parse_crossref(data: Dict) -> List[RawRecord]:
    """Convert a CrossRef works response into RawRecords."""
    if not isinstance(data, dict):
        raise SourceParseError(CROSSREF, "response is not a JSON object")

    records = []
    for item in data.get("message", {}).get("items", []):
        titles = item.get("title") or []
        title = titles[0].strip() if titles else ""
        if not title:
            continue

        abstract = item.get("abstract")
        container = item.get("container-title") or []
        published = (item.get("published") or item.get("issued") or {}).get("date-parts", [[None]])
        year = published[0][0] if published and published[0] else None

        authors = []
        for author in item.get("author", []) or []:
            name = " ".join(part for part in (author.get("given"), author.get("family")) if part)
            if name:
                authors.append(name)

        doi = item.get("DOI")
        licenses = item.get("license") or []
        records.append(RawRecord(
            title=title,
            abstract=_strip_jats(abstract) if abstract else None,
            authors=authors,
            journal=container[0] if container else "",
            year=year,
            doi=doi,
            url=item.get("URL") or (f"https://doi.org/{doi}" if doi else None),
            source=CROSSREF,
            citation_count=item.get("is-referenced-by-count", 0) or 0,
            is_open_access=any("creativecommons" in (lic.get("URL") or "") for lic in licenses),
            publication_types=[item["type"]] if item.get("type") else [],
        ))
    return records


class CrossRefSource(HttpSource):
    """CrossRef works search via the polite pool."""

    def __init__(self, contact_email: str = "researcher@example.com", timeout: float = 20.0):
        # CrossRef can be slow, use longer timeout
        super().__init__(contact_email, timeout)

    @property
    def name(self) -> str:
        return CROSSREF

    async def search(self, query: str, max_results: int = 25) -> List[RawRecord]:
        logger.info(f"Searching CrossRef: {query[:50]}...")
        params = {
            "query": query,
            "rows": min(max_results, 100),
            "filter": "type:journal-article",
            "mailto": self.contact_email,
        }
        data = await self._get_json(WORKS_URL, params)
        records = _parse_crossref(data)
        logger.info(f"CrossRef: Returned {len(records)} records")
        return records
