"""
GRADE certainty-of-evidence assessment.

Rates meta-analyses and systematic reviews from the evidence their text
reports. Extraction (regexes and vocabulary lookups over the abstract) is
kept apart from the rating itself so the rating is a pure function of a
small, explicit set of inputs.
"""
import re
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from medsearch.core.logging import get_logger
from medsearch.schemas.records import (
    Confidence,
    DomainRating,
    GradeAssessment,
    PublicationBiasRating,
    ScoredRecord,
    UnifiedRecord,
)
from medsearch.services.vocabulary import Vocabulary, contains_any, get_vocabulary

logger = get_logger(__name__)

GRADED_DESIGNS = ("meta_analysis", "systematic_review")

CONFIDENCE_LADDER = (Confidence.HIGH, Confidence.MODERATE, Confidence.LOW, Confidence.VERY_LOW)

DOWNGRADE_STEPS = {
    DomainRating.NOT_SERIOUS: 0,
    DomainRating.SERIOUS: 1,
    DomainRating.VERY_SERIOUS: 2,
}

IMPRECISION_PARTICIPANTS = 300

_I_SQUARED_RE = re.compile(r"\bI\s*(?:\^?2|²|-squared|squared)\s*(?:=|:|of|was|was\s+estimated\s+at)?\s*(\d{1,3}(?:\.\d+)?)\s*%?", re.IGNORECASE)
_PARTICIPANTS_RE = re.compile(
    r"(\d{1,3}(?:,\d{3})+|\d+)\s+(?:total\s+)?(?:participants|patients|subjects|individuals|adults|children|women|men)",
    re.IGNORECASE,
)
_N_EQUALS_RE = re.compile(r"\bn\s*=\s*(\d{1,3}(?:,\d{3})+|\d+)", re.IGNORECASE)
_RATIO_RE = re.compile(r"\b(?:(?-i:RR|OR|HR)|relative risk|odds ratio|hazard ratio)\s*[=:,]?\s*(\d+(?:\.\d+)?)", re.IGNORECASE)

LARGE_EFFECT_RATIO = 2.0


class GradeInputs(BaseModel):
    """Everything the rating depends on; nothing else is consulted."""
    model_config = ConfigDict(frozen=True)

    rct_based: bool = False
    bias_tool_named: bool = False
    i_squared: Optional[float] = None
    participants: Optional[int] = None
    indirect_evidence: bool = False
    bias_test_reported: bool = False
    protocol_registered: bool = False
    publication_bias_reported: bool = False
    large_effect: bool = False
    dose_response: bool = False
    plausible_confounding: bool = False


def _to_int(value: str) -> int:
    return int(value.replace(",", ""))


def _max_i_squared(text: str) -> Optional[float]:
    values = [float(m.group(1)) for m in _I_SQUARED_RE.finditer(text)]
    values = [v for v in values if 0 <= v <= 100]
    return max(values) if values else None


def _max_participants(text: str) -> Optional[int]:
    values = [_to_int(m.group(1)) for m in _PARTICIPANTS_RE.finditer(text)]
    values += [_to_int(m.group(1)) for m in _N_EQUALS_RE.finditer(text)]
    return max(values) if values else None


def _has_large_ratio(text: str) -> bool:
    for match in _RATIO_RE.finditer(text):
        ratio = float(match.group(1))
        if ratio >= LARGE_EFFECT_RATIO or 0 < ratio <= 1 / LARGE_EFFECT_RATIO:
            return True
    return False


def extract_grade_inputs(record: UnifiedRecord, vocabulary: Optional[Vocabulary] = None) -> GradeInputs:
    """Pull the GRADE inputs out of a record's title and abstract."""
    grade = (vocabulary or get_vocabulary()).grade
    text = f"{record.title} {record.abstract}"

    return GradeInputs(
        rct_based=contains_any(text, grade.rct_terms),
        bias_tool_named=contains_any(text, grade.bias_tools),
        i_squared=_max_i_squared(text),
        participants=_max_participants(text),
        indirect_evidence=contains_any(text, grade.indirectness_terms),
        bias_test_reported=contains_any(text, grade.publication_bias_tests),
        protocol_registered=contains_any(text, grade.registration_terms),
        publication_bias_reported=contains_any(text, grade.publication_bias_suspected),
        large_effect=contains_any(text, grade.large_effect_terms) or _has_large_ratio(text),
        dose_response=contains_any(text, grade.dose_response_terms),
        plausible_confounding=contains_any(text, grade.confounding_terms),
    )


def _rate_inconsistency(i_squared: Optional[float]) -> DomainRating:
    if i_squared is None:
        return DomainRating.NOT_SERIOUS
    if i_squared > 75:
        return DomainRating.VERY_SERIOUS
    if i_squared > 50:
        return DomainRating.SERIOUS
    return DomainRating.NOT_SERIOUS


def _rate_publication_bias(inputs: GradeInputs) -> PublicationBiasRating:
    # A reported asymmetry outweighs having run the test
    if inputs.publication_bias_reported:
        return PublicationBiasRating.SUSPECTED
    if inputs.bias_test_reported or inputs.protocol_registered:
        return PublicationBiasRating.UNDETECTED
    return PublicationBiasRating.UNRATED


def assess_grade(inputs: GradeInputs) -> GradeAssessment:
    """
    Rate certainty of evidence from extracted inputs.

    Starts at high for RCT-based syntheses and low otherwise, subtracts one
    level per serious domain (two for very serious, one for suspected
    publication bias), lets any upgrade factor win back one level, and
    floors at very-low.
    """
    start = 0 if inputs.rct_based else 2
    reasons: List[str] = []

    risk_of_bias = DomainRating.NOT_SERIOUS if inputs.bias_tool_named else DomainRating.SERIOUS
    inconsistency = _rate_inconsistency(inputs.i_squared)
    imprecision = (
        DomainRating.SERIOUS
        if inputs.participants is not None and inputs.participants < IMPRECISION_PARTICIPANTS
        else DomainRating.NOT_SERIOUS
    )
    indirectness = DomainRating.SERIOUS if inputs.indirect_evidence else DomainRating.NOT_SERIOUS
    publication_bias = _rate_publication_bias(inputs)

    downgrades = 0
    for label, rating in (
        ("risk of bias", risk_of_bias),
        ("inconsistency", inconsistency),
        ("indirectness", indirectness),
        ("imprecision", imprecision),
    ):
        steps = DOWNGRADE_STEPS[rating]
        if steps:
            downgrades += steps
            reasons.append(f"{label} {rating.value.replace('_', ' ')} (-{steps})")
    if publication_bias == PublicationBiasRating.SUSPECTED:
        downgrades += 1
        reasons.append("publication bias suspected (-1)")

    upgrade = inputs.large_effect or inputs.dose_response or inputs.plausible_confounding
    if upgrade and downgrades > 0:
        downgrades -= 1
        reasons.append("upgrade factor present (+1)")

    level = min(start + downgrades, len(CONFIDENCE_LADDER) - 1)
    confidence = CONFIDENCE_LADDER[level]
    starting = CONFIDENCE_LADDER[start]

    summary = f"Overall confidence in the evidence: {confidence.value.upper()}."
    if reasons:
        summary += f" Starting from {starting.value}: " + "; ".join(reasons) + "."
    else:
        summary += f" No serious concerns from a {starting.value} starting point."

    return GradeAssessment(
        starting_confidence=starting,
        risk_of_bias=risk_of_bias,
        inconsistency=inconsistency,
        indirectness=indirectness,
        imprecision=imprecision,
        publication_bias=publication_bias,
        large_effect=inputs.large_effect,
        dose_response=inputs.dose_response,
        plausible_confounding=inputs.plausible_confounding,
        confidence=confidence,
        reasons=reasons,
        summary=summary,
    )


def apply_grade(records: List[ScoredRecord], vocabulary: Optional[Vocabulary] = None) -> List[ScoredRecord]:
    """Attach GRADE assessments to meta-analysis and systematic-review records."""
    graded = []
    for record in records:
        if record.study_design in GRADED_DESIGNS and record.grade is None:
            assessment = assess_grade(extract_grade_inputs(record, vocabulary))
            record = record.model_copy(update={"grade": assessment})
        graded.append(record)
    return graded
