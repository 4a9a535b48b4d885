"""
openFDA drug label data source.

Regulatory-safety feed: FDA structured product labels searched by brand
name, generic name, indication and active ingredient. Each label becomes
one record so warnings and contraindications reach the ranked output.
"""
import re
from typing import Dict, List, Optional

from medsearch.core.exceptions import SourceHTTPError, SourceParseError
from medsearch.core.logging import get_logger
from medsearch.schemas.records import RawRecord

from .base import OPENFDA, HttpSource

logger = get_logger(__name__)

LABEL_URL = "https://api.fda.gov/drug/label.json"
LABEL_FIELDS = (
    "openfda.brand_name",
    "openfda.generic_name",
    "indications_and_usage",
    "active_ingredient",
    "purpose",
)
LABEL_JOURNAL = "FDA Drug Labels Database"


def build_label_query(query: str) -> str:
    """OR each term across the label fields, AND across terms."""
    cleaned = re.sub(r"[^\w\s-]", " ", query.lower())
    terms = [term for term in cleaned.split() if len(term) > 2]
    if not terms:
        return cleaned.strip()
    groups = [" OR ".join(f'{field}:"{term}"' for field in LABEL_FIELDS) for term in terms]
    return "(" + ") AND (".join(groups) + ")"


def _first(label: Dict, key: str) -> str:
    values = label.get(key) or []
    return values[0] if values else ""


def _label_abstract(label: Dict) -> str:
    parts = []
    for key, title, limit in (
        ("purpose", "Purpose", None),
        ("active_ingredient", "Active Ingredient", None),
        ("indications_and_usage", "Indications", 400),
        ("warnings", "Warnings", 300),
        ("contraindications", "Contraindications", 300),
    ):
        value = _first(label, key)
        if value:
            parts.append(f"{title}: {value[:limit] if limit else value}")
    return " | ".join(parts) or "FDA-approved drug labeling information."


def _parse_labels(data: Dict) -> List[RawRecord]:
    """Convert an openFDA drug label response into RawRecords."""
    if not isinstance(data, dict):
        raise SourceParseError(OPENFDA, "response is not a JSON object")

    records = []
    for label in data.get("results", []) or []:
        openfda = label.get("openfda") or {}
        brand = (openfda.get("brand_name") or ["Unknown Drug"])[0]
        generic = (openfda.get("generic_name") or [""])[0]
        manufacturer = (openfda.get("manufacturer_name") or [""])[0]
        if generic and generic.lower() != brand.lower():
            title = f"{brand} ({generic}) - FDA Drug Label"
        else:
            title = f"{brand} - FDA Drug Label"

        effective = label.get("effective_time") or ""
        set_id = label.get("set_id")
        records.append(RawRecord(
            title=title,
            abstract=_label_abstract(label),
            authors=[manufacturer] if manufacturer else [],
            journal=LABEL_JOURNAL,
            year=int(effective[:4]) if effective[:4].isdigit() else None,
            url=f"https://dailymed.nlm.nih.gov/dailymed/lookup.cfm?setid={set_id}" if set_id else None,
            source=OPENFDA,
            is_open_access=True,
            record_type="drug_label",
            metadata={"set_id": set_id, "label_id": label.get("id")},
        ))
    return records


class OpenFDASource(HttpSource):
    """openFDA drug label search."""

    def __init__(self, contact_email: str = "researcher@example.com", timeout: float = 15.0,
                 api_key: Optional[str] = None):
        super().__init__(contact_email, timeout)
        self.api_key = api_key

    @property
    def name(self) -> str:
        return OPENFDA

    async def search(self, query: str, max_results: int = 25) -> List[RawRecord]:
        logger.info(f"Searching openFDA labels: {query[:50]}...")
        params = {"search": build_label_query(query), "limit": min(max_results, 100)}
        if self.api_key:
            params["api_key"] = self.api_key
        try:
            data = await self._get_json(LABEL_URL, params)
        except SourceHTTPError as e:
            # openFDA answers 404 when nothing matches
            if e.status_code == 404:
                return []
            raise
        records = _parse_labels(data)
        logger.info(f"openFDA: Returned {len(records)} labels")
        return records
