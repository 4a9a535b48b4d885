"""
ClinicalTrials.gov API v2.0 data source.

Provides access to 400k+ clinical trials with:
- Modern REST API with JSON responses
- Structured fields (enums, ISO dates)
- No authentication required
- Rate limit: ~50 requests/minute

API Documentation: https://clinicaltrials.gov/data-api/api

The API rejects some async HTTP stacks, so requests runs in a thread pool.
"""
import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

import requests

from medsearch.core.exceptions import (
    SourceConnectionError,
    SourceParseError,
    SourceTimeoutError,
)
from medsearch.core.logging import get_logger
from medsearch.schemas.records import RawRecord

from .base import CLINICAL_TRIALS, BaseSource, check_status

logger = get_logger(__name__)

BASE_URL = "https://clinicaltrials.gov/api/v2"

_executor = ThreadPoolExecutor(max_workers=2)


def _normalize_trial(study: Dict) -> Optional[RawRecord]:
    """Convert one API study into a RawRecord carrying trial metadata."""
    protocol = study.get("protocolSection", {})

    id_module = protocol.get("identificationModule", {})
    nct_id = id_module.get("nctId", "")
    if not nct_id:
        return None

    status_module = protocol.get("statusModule", {})
    design_module = protocol.get("designModule", {})
    desc_module = protocol.get("descriptionModule", {})
    conditions = protocol.get("conditionsModule", {}).get("conditions", [])
    interventions = protocol.get("armsInterventionsModule", {}).get("interventions", [])
    primary_outcomes = protocol.get("outcomesModule", {}).get("primaryOutcomes", [])
    sponsor = protocol.get("sponsorCollaboratorsModule", {}).get("leadSponsor", {})

    start_date = status_module.get("startDateStruct", {}).get("date", "")
    year = int(start_date[:4]) if start_date[:4].isdigit() else None

    phases = design_module.get("phases", [])
    allocation = design_module.get("designInfo", {}).get("allocation", "")
    publication_types = ["Clinical Trial"]
    if allocation == "RANDOMIZED":
        publication_types.insert(0, "Randomized Controlled Trial")

    return RawRecord(
        title=id_module.get("briefTitle", "") or id_module.get("officialTitle", ""),
        abstract=desc_module.get("briefSummary"),
        authors=[sponsor["name"]] if sponsor.get("name") else [],
        journal=CLINICAL_TRIALS,
        year=year,
        pmid=None,
        url=f"https://clinicaltrials.gov/study/{nct_id}",
        source=CLINICAL_TRIALS,
        is_open_access=True,
        publication_types=publication_types,
        record_type="clinical_trial",
        metadata={
            "nct_id": nct_id,
            "status": status_module.get("overallStatus", ""),
            "phase": ", ".join(phases) if phases else "N/A",
            "conditions": conditions,
            "interventions": [i.get("name", "") for i in interventions],
            "primary_outcomes": [o.get("measure", "") for o in primary_outcomes],
            "enrollment": design_module.get("enrollmentInfo", {}).get("count", 0),
            "has_results": study.get("hasResults", False),
        },
    )


def _parse_studies(data: Dict) -> List[RawRecord]:
    if not isinstance(data, dict):
        raise SourceParseError(CLINICAL_TRIALS, "response is not a JSON object")
    records = []
    for study in data.get("studies", []):
        record = _normalize_trial(study)
        if record and record.title:
            records.append(record)
    return records


class ClinicalTrialsSource(BaseSource):
    """ClinicalTrials.gov v2 study search."""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    @property
    def name(self) -> str:
        return CLINICAL_TRIALS

    def _search_sync(self, query: str, max_results: int) -> List[RawRecord]:
        params = {
            "query.term": query,
            "pageSize": min(max_results, 100),
            "sort": "LastUpdatePostDate:desc",
        }
        headers = {"User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"}
        try:
            response = requests.get(f"{BASE_URL}/studies", params=params, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise SourceTimeoutError(self.name, self.timeout) from e
        except requests.exceptions.RequestException as e:
            raise SourceConnectionError(self.name, str(e)) from e

        check_status(self.name, response.status_code, response.headers.get("Retry-After"))

        try:
            data = response.json()
        except ValueError as e:
            raise SourceParseError(self.name, str(e)) from e
        return _parse_studies(data)

    async def search(self, query: str, max_results: int = 25) -> List[RawRecord]:
        logger.info(f"Searching ClinicalTrials.gov: {query[:50]}...")
        loop = asyncio.get_event_loop()
        records = await loop.run_in_executor(_executor, self._search_sync, query, max_results)
        logger.info(f"ClinicalTrials.gov: Found {len(records)} trials")
        return records
