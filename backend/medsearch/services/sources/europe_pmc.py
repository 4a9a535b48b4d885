"""
Europe PMC data source.

Europe PMC provides access to 43M+ life science articles.
- No API key required
- Includes preprints from bioRxiv/medRxiv
- Understands boolean operators but not PubMed field tags

Uses httpx.AsyncClient for non-blocking HTTP requests.
"""
from typing import Dict, List

from medsearch.core.exceptions import SourceParseError
from medsearch.core.logging import get_logger
from medsearch.schemas.records import RawRecord

from .base import EUROPE_PMC, HttpSource

logger = get_logger(__name__)

SEARCH_URL = "https://www.ebi.ac.uk/europepmc/webservices/rest/search"


def _journal_title(result: Dict) -> str:
    if result.get("journalTitle"):
        return result["journalTitle"]
    journal_info = result.get("journalInfo") or {}
    return (journal_info.get("journal") or {}).get("title", "")


def _parse_europe_pmc(data: Dict) -> List[RawRecord]:
    """Convert a Europe PMC search response into RawRecords."""
    if not isinstance(data, dict):
        raise SourceParseError(EUROPE_PMC, "response is not a JSON object")

    records = []
    for result in data.get("resultList", {}).get("result", []):
        title = (result.get("title") or "").strip()
        if not title:
            continue

        pmid = result.get("pmid") or None
        author_string = result.get("authorString") or ""
        authors = [a.strip().rstrip(".") for a in author_string.split(",") if a.strip()]
        pub_types = (result.get("pubTypeList") or {}).get("pubType", [])
        if isinstance(pub_types, str):
            pub_types = [pub_types]

        year = result.get("pubYear")
        records.append(RawRecord(
            title=title,
            abstract=result.get("abstractText"),
            authors=authors,
            journal=_journal_title(result),
            year=int(year) if year and str(year).isdigit() else None,
            doi=result.get("doi"),
            pmid=pmid,
            url=f"https://europepmc.org/article/MED/{pmid}" if pmid else None,
            source=EUROPE_PMC,
            citation_count=int(result.get("citedByCount", 0) or 0),
            is_open_access=result.get("isOpenAccess") == "Y",
            publication_types=list(pub_types),
        ))
    return records


class EuropePMCSource(HttpSource):
    """Europe PMC REST search."""

    @property
    def name(self) -> str:
        return EUROPE_PMC

    async def search(self, query: str, max_results: int = 25) -> List[RawRecord]:
        logger.info(f"Searching Europe PMC: {query[:50]}...")
        params = {
            "query": query,
            "format": "json",
            "pageSize": min(max_results, 100),
            "resultType": "core",
        }
        data = await self._get_json(SEARCH_URL, params)
        records = _parse_europe_pmc(data)
        logger.info(f"Europe PMC: Returned {len(records)} records")
        return records
