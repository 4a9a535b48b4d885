"""
Record unification and de-duplication.

Normalizes heterogeneous RawRecords into UnifiedRecords and removes the
duplicates that appear when the same paper is returned by several
sources. The first-seen record wins; duplicates are dropped, not merged.
"""
import re
from typing import Iterable, List, Optional, Union

from medsearch.core.logging import get_logger
from medsearch.schemas.records import RawRecord, UnifiedRecord

logger = get_logger(__name__)

_DOI_PREFIXES = ("https://doi.org/", "http://doi.org/", "https://dx.doi.org/", "http://dx.doi.org/", "doi:")


def normalize_doi(doi: Optional[str]) -> Optional[str]:
    """Lower-case a DOI and strip resolver prefixes."""
    if not doi:
        return None
    value = doi.strip().lower()
    for prefix in _DOI_PREFIXES:
        if value.startswith(prefix):
            value = value[len(prefix):]
            break
    return value.strip() or None


def normalize_text(value: str) -> str:
    """Lower-case, punctuation-free, single-spaced form used for identity keys."""
    return re.sub(r"\s+", " ", re.sub(r"[^a-z0-9]+", " ", (value or "").lower())).strip()


def record_key(record: UnifiedRecord) -> str:
    """Identity key: DOI when present, else normalized title|journal."""
    doi = normalize_doi(record.doi)
    if doi:
        return f"doi:{doi}"
    return f"{normalize_text(record.title)}|{normalize_text(record.journal)}"


def _trial_abstract(raw: RawRecord) -> str:
    """
    Build an abstract for a clinical trial so it can be scored like a paper.

    Combines the brief summary with conditions, interventions, outcomes,
    enrollment and phase.
    """
    meta = raw.metadata
    parts = []
    if raw.abstract:
        parts.append(raw.abstract)
    if meta.get("conditions"):
        parts.append(f"Conditions: {', '.join(meta['conditions'][:3])}")
    if meta.get("interventions"):
        parts.append(f"Interventions: {', '.join(meta['interventions'][:3])}")
    if meta.get("primary_outcomes"):
        parts.append(f"Primary outcomes: {', '.join(meta['primary_outcomes'][:2])}")
    if meta.get("enrollment"):
        parts.append(f"Enrollment: {meta['enrollment']} participants")
    if meta.get("phase") and meta["phase"] != "N/A":
        parts.append(f"Phase: {meta['phase']}")
    return " | ".join(parts)


def _default_url(raw: RawRecord, doi: Optional[str]) -> str:
    if raw.url:
        return raw.url
    if doi:
        return f"https://doi.org/{doi}"
    if raw.pmid:
        return f"https://pubmed.ncbi.nlm.nih.gov/{raw.pmid}/"
    return ""


def normalize_record(record: Union[RawRecord, UnifiedRecord]) -> UnifiedRecord:
    """
    Convert a RawRecord to the unified shape, filling defaults for missing fields.

    UnifiedRecords pass through unchanged so the unifier can be re-applied
    to its own output.
    """
    if isinstance(record, UnifiedRecord):
        return record

    doi = normalize_doi(record.doi)
    abstract = _trial_abstract(record) if record.record_type == "clinical_trial" else (record.abstract or "")
    year = record.year if record.year and record.year > 0 else 0

    return UnifiedRecord(
        title=record.title.strip(),
        abstract=abstract.strip(),
        authors=[a for a in (record.authors or []) if a],
        journal=(record.journal or "").strip(),
        year=year,
        url=_default_url(record, doi),
        doi=doi,
        pmid=record.pmid or None,
        source_name=record.source,
        citation_count=max(0, record.citation_count or 0),
        is_open_access=record.is_open_access,
        study_type="; ".join(record.publication_types).lower(),
        record_type=record.record_type,
    )


def deduplicate_records(records: Iterable[UnifiedRecord]) -> List[UnifiedRecord]:
    """Keep the first record for each identity key, in input order."""
    seen = set()
    unique = []
    for record in records:
        key = record_key(record)
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def unify_records(records: Iterable[Union[RawRecord, UnifiedRecord]]) -> List[UnifiedRecord]:
    """Normalize then de-duplicate. Idempotent: unify(unify(x)) == unify(x)."""
    normalized = [normalize_record(r) for r in records if (r.title or "").strip()]
    unique = deduplicate_records(normalized)
    if len(unique) < len(normalized):
        logger.debug(f"Removed {len(normalized) - len(unique)} duplicate records")
    return unique
