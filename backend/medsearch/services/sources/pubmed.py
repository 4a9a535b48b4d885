"""
PubMed data source.

PubMed provides access to 36M+ biomedical literature citations through
NCBI Entrez, and is the only source that understands MeSH field tags.

Biopython's Entrez library is synchronous. The search runs in a
ThreadPoolExecutor so it does not block the event loop while other
sources are fetched in parallel.
"""
import asyncio
import re
import socket
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional
from urllib.error import HTTPError, URLError

from Bio import Entrez

from medsearch.core.exceptions import (
    SourceConnectionError,
    SourceParseError,
    SourceTimeoutError,
)
from medsearch.core.logging import get_logger
from medsearch.schemas.records import RawRecord

from .base import PUBMED, BaseSource, check_status

logger = get_logger(__name__)

_executor = ThreadPoolExecutor(max_workers=2)


def _article_year(article: Dict[str, Any]) -> Optional[int]:
    pub_date = article.get("Journal", {}).get("JournalIssue", {}).get("PubDate", {})
    year = pub_date.get("Year")
    if year and str(year).isdigit():
        return int(year)
    # Older records only carry MedlineDate, e.g. "1998 Dec-1999 Jan"
    match = re.match(r"(\d{4})", str(pub_date.get("MedlineDate", "")))
    return int(match.group(1)) if match else None


def _article_doi(article: Dict[str, Any]) -> Optional[str]:
    for eid in article.get("ELocationID", []) or []:
        attributes = getattr(eid, "attributes", {}) or {}
        if attributes.get("EIdType") == "doi":
            return str(eid)
    return None


def _article_authors(article: Dict[str, Any]) -> List[str]:
    authors = []
    for author in article.get("AuthorList", []) or []:
        last = author.get("LastName")
        if last:
            initials = author.get("Initials", "")
            authors.append(f"{last} {initials}".strip())
        elif author.get("CollectiveName"):
            authors.append(str(author["CollectiveName"]))
    return authors


def _parse_pubmed_articles(records: Dict[str, Any]) -> List[RawRecord]:
    """Convert an Entrez efetch result into RawRecords."""
    parsed = []
    for paper in records.get("PubmedArticle", []):
        try:
            citation = paper["MedlineCitation"]
            article = citation["Article"]
            pmid = str(citation["PMID"])
        except (KeyError, TypeError) as e:
            logger.debug(f"Skipping malformed PubMed article: {e}")
            continue

        abstract_parts = article.get("Abstract", {}).get("AbstractText", [])
        title = str(article.get("ArticleTitle", "")).strip()
        if not title:
            continue

        parsed.append(RawRecord(
            title=title,
            abstract=" ".join(str(part) for part in abstract_parts) or None,
            authors=_article_authors(article),
            journal=str(article.get("Journal", {}).get("Title", "")),
            year=_article_year(article),
            doi=_article_doi(article),
            pmid=pmid,
            url=f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/",
            source=PUBMED,
            # PubMed doesn't provide citation counts
            citation_count=0,
            publication_types=[str(pt) for pt in article.get("PublicationTypeList", [])],
        ))
    return parsed


class PubMedSource(BaseSource):
    """NCBI Entrez esearch + efetch."""

    def __init__(self, contact_email: str = "researcher@example.com", api_key: Optional[str] = None):
        self.contact_email = contact_email
        self.api_key = api_key

    @property
    def name(self) -> str:
        return PUBMED

    def _search_sync(self, query: str, max_results: int) -> List[RawRecord]:
        Entrez.email = self.contact_email
        Entrez.api_key = self.api_key

        try:
            handle = Entrez.esearch(db="pubmed", term=query, retmax=max_results, sort="relevance")
            result = Entrez.read(handle)
            handle.close()

            ids = result.get("IdList", [])
            if not ids:
                return []

            handle = Entrez.efetch(db="pubmed", id=",".join(ids), retmode="xml")
            records = Entrez.read(handle)
            handle.close()
        except HTTPError as e:
            check_status(self.name, e.code, e.headers.get("Retry-After") if e.headers else None)
            raise SourceConnectionError(self.name, str(e)) from e
        except socket.timeout as e:
            raise SourceTimeoutError(self.name, socket.getdefaulttimeout() or 0) from e
        except URLError as e:
            raise SourceConnectionError(self.name, str(e.reason)) from e
        except (RuntimeError, ValueError) as e:
            # Entrez.read raises these for error payloads and malformed XML
            raise SourceParseError(self.name, str(e)) from e

        return _parse_pubmed_articles(records)

    async def search(self, query: str, max_results: int = 25) -> List[RawRecord]:
        logger.info(f"Searching PubMed: {query[:50]}...")
        loop = asyncio.get_event_loop()
        records = await loop.run_in_executor(_executor, self._search_sync, query, max_results)
        logger.info(f"PubMed: Returned {len(records)} records")
        return records
