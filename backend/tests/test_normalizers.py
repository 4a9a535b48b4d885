"""Tests for services/retrieval/normalizers.py - Unification and de-duplication."""
import pytest


class TestNormalizeRecord:
    """Test normalization to the unified shape."""

    def test_defaults_filled(self):
        """Missing fields should receive defaults."""
        from medsearch.schemas.records import RawRecord
        from medsearch.services.retrieval.normalizers import normalize_record

        record = normalize_record(RawRecord(title="  Aspirin and stroke  ", source="CrossRef", pmid="999"))

        assert record.title == "Aspirin and stroke"
        assert record.authors == []
        assert record.abstract == ""
        assert record.year == 0
        assert record.citation_count == 0
        assert record.url == "https://pubmed.ncbi.nlm.nih.gov/999/"
        assert record.source_name == "CrossRef"

    def test_doi_normalized_and_used_for_url(self):
        """DOIs should be lower-cased with resolver prefixes stripped."""
        from medsearch.schemas.records import RawRecord
        from medsearch.services.retrieval.normalizers import normalize_record

        record = normalize_record(RawRecord(title="X", source="OpenAlex", doi="https://doi.org/10.1000/ABC"))

        assert record.doi == "10.1000/abc"
        assert record.url == "https://doi.org/10.1000/abc"

    def test_trial_abstract_composed(self):
        """Clinical trials should get an abstract built from registry fields."""
        from medsearch.schemas.records import RawRecord
        from medsearch.services.retrieval.normalizers import normalize_record

        trial = RawRecord(
            title="Metformin in prediabetes",
            abstract="A phase 3 trial.",
            source="ClinicalTrials.gov",
            record_type="clinical_trial",
            metadata={
                "conditions": ["Prediabetes"],
                "interventions": ["Metformin"],
                "enrollment": 400,
                "phase": "PHASE3",
            },
        )

        record = normalize_record(trial)

        assert "Conditions: Prediabetes" in record.abstract
        assert "Interventions: Metformin" in record.abstract
        assert "Enrollment: 400 participants" in record.abstract
        assert record.record_type == "clinical_trial"

    def test_study_type_from_publication_types(self):
        """Publication types should become the lower-cased study-type label."""
        from medsearch.schemas.records import RawRecord
        from medsearch.services.retrieval.normalizers import normalize_record

        record = normalize_record(RawRecord(
            title="X", source="PubMed", publication_types=["Meta-Analysis", "Review"],
        ))

        assert record.study_type == "meta-analysis; review"


class TestUnifyRecords:
    """Test de-duplication across sources."""

    def test_same_doi_from_two_sources_unified(self, make_raw):
        """Two records sharing a DOI should collapse to one, first seen wins."""
        from medsearch.services.retrieval.normalizers import unify_records

        first = make_raw(source="PubMed", doi="10.1000/XYZ")
        second = make_raw(source="CrossRef", doi="https://doi.org/10.1000/xyz", title="Different title")

        unified = unify_records([first, second])

        assert len(unified) == 1
        assert unified[0].source_name == "PubMed"

    def test_title_journal_key_without_doi(self, make_raw):
        """Without DOIs, title and journal should identify duplicates."""
        from medsearch.services.retrieval.normalizers import unify_records

        a = make_raw(doi=None, title="Aspirin, and Stroke!", journal="BMJ")
        b = make_raw(doi=None, title="aspirin and stroke", journal="bmj", source="EuropePMC")
        c = make_raw(doi=None, title="aspirin and stroke", journal="JAMA")

        assert len(unify_records([a, b, c])) == 2

    def test_untitled_records_dropped(self, make_raw):
        """Records without a title should be skipped."""
        from medsearch.services.retrieval.normalizers import unify_records

        assert unify_records([make_raw(title="   ")]) == []

    def test_idempotent(self, make_raw, strong_records):
        """Unifying the unifier's own output should change nothing."""
        from medsearch.services.retrieval.normalizers import unify_records

        raw = strong_records + [make_raw(doi="10.1000/metformin.0", source="CrossRef")]

        once = unify_records(raw)
        twice = unify_records(once)

        assert once == twice
        assert len(once) == 6
