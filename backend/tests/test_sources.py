"""Tests for services/sources - Connector parsing, gateway and query rewriting."""
import asyncio

import pytest


class TestEuropePMCParsing:
    """Test Europe PMC response parsing."""

    def test_parse_result(self):
        """A Europe PMC hit should map onto a RawRecord."""
        from medsearch.services.sources.europe_pmc import _parse_europe_pmc

        data = {"resultList": {"result": [{
            "title": "Aspirin for secondary prevention",
            "abstractText": "A trial of aspirin.",
            "authorString": "Smith J, Doe A.",
            "journalTitle": "BMJ",
            "pubYear": "2021",
            "doi": "10.1136/bmj.1",
            "pmid": "123",
            "citedByCount": 42,
            "isOpenAccess": "Y",
            "pubTypeList": {"pubType": "Randomized Controlled Trial"},
        }]}}

        records = _parse_europe_pmc(data)

        assert len(records) == 1
        record = records[0]
        assert record.authors == ["Smith J", "Doe A"]
        assert record.year == 2021
        assert record.citation_count == 42
        assert record.is_open_access is True
        assert record.publication_types == ["Randomized Controlled Trial"]
        assert record.url == "https://europepmc.org/article/MED/123"

    def test_untitled_skipped(self):
        """Hits without a title should be dropped."""
        from medsearch.services.sources.europe_pmc import _parse_europe_pmc

        assert _parse_europe_pmc({"resultList": {"result": [{"title": "  "}]}}) == []

    def test_non_object_raises_parse_error(self):
        """A non-object payload should raise SourceParseError."""
        from medsearch.core.exceptions import SourceParseError
        from medsearch.services.sources.europe_pmc import _parse_europe_pmc

        with pytest.raises(SourceParseError):
            _parse_europe_pmc(["not", "a", "dict"])


class TestCrossRefParsing:
    """Test CrossRef response parsing."""

    def test_parse_item(self):
        """JATS markup should be stripped and licenses mapped to open access."""
        from medsearch.services.sources.crossref import _parse_crossref

        data = {"message": {"items": [{
            "title": ["Statins and mortality"],
            "abstract": "<jats:p>Statins <jats:italic>reduce</jats:italic> mortality.</jats:p>",
            "container-title": ["JAMA"],
            "published": {"date-parts": [[2019, 5]]},
            "author": [{"given": "Ann", "family": "Lee"}, {"family": "Chen"}],
            "DOI": "10.1001/jama.1",
            "is-referenced-by-count": 88,
            "license": [{"URL": "https://creativecommons.org/licenses/by/4.0/"}],
            "type": "journal-article",
        }]}}

        record = _parse_crossref(data)[0]

        assert record.abstract == "Statins reduce mortality."
        assert record.journal == "JAMA"
        assert record.year == 2019
        assert record.authors == ["Ann Lee", "Chen"]
        assert record.url == "https://doi.org/10.1001/jama.1"
        assert record.is_open_access is True


class TestOpenAlexParsing:
    """Test OpenAlex response parsing."""

    def test_reconstruct_abstract(self):
        """The inverted index should be rebuilt in position order."""
        from medsearch.services.sources.openalex import _reconstruct_abstract

        index = {"trial": [2], "A": [0], "randomized": [1], "of": [3], "aspirin": [4]}

        assert _reconstruct_abstract(index) == "A randomized trial of aspirin"
        assert _reconstruct_abstract(None) == ""

    def test_parse_work(self):
        """Identifier URLs should be reduced to bare DOI and PMID."""
        from medsearch.services.sources.openalex import _parse_openalex

        data = {"results": [{
            "id": "https://openalex.org/W1",
            "title": "Exercise and depression",
            "publication_year": 2020,
            "cited_by_count": 15,
            "primary_location": {"source": {"display_name": "Lancet Psychiatry"}},
            "ids": {"doi": "https://doi.org/10.1016/x", "pmid": "https://pubmed.ncbi.nlm.nih.gov/555"},
            "authorships": [{"author": {"display_name": "R Gomez"}}],
            "open_access": {"is_oa": True},
        }]}

        record = _parse_openalex(data)[0]

        assert record.doi == "10.1016/x"
        assert record.pmid == "555"
        assert record.journal == "Lancet Psychiatry"
        assert record.abstract is None
        assert record.is_open_access is True


class TestSemanticScholarParsing:
    """Test Semantic Scholar response parsing."""

    def test_parse_paper(self):
        """External IDs and the publication venue should be used."""
        from medsearch.services.sources.semantic_scholar import _parse_semantic_scholar

        data = {"data": [{
            "title": "Vitamin D and fractures",
            "abstract": "Meta-analysis.",
            "year": 2018,
            "authors": [{"name": "K Patel"}, {}],
            "venue": "NEJM",
            "publicationVenue": {"name": "New England Journal of Medicine"},
            "citationCount": 300,
            "isOpenAccess": False,
            "publicationTypes": ["Review"],
            "externalIds": {"DOI": "10.1056/x", "PubMed": "777"},
        }]}

        record = _parse_semantic_scholar(data)[0]

        assert record.journal == "New England Journal of Medicine"
        assert record.authors == ["K Patel"]
        assert record.doi == "10.1056/x"
        assert record.pmid == "777"

    def test_missing_data_is_empty(self):
        """A response with null data should parse to nothing."""
        from medsearch.services.sources.semantic_scholar import _parse_semantic_scholar

        assert _parse_semantic_scholar({"data": None}) == []


class TestClinicalTrialsParsing:
    """Test ClinicalTrials.gov v2 parsing."""

    def test_parse_randomized_study(self):
        """A randomized study should be tagged as an RCT clinical trial."""
        from medsearch.services.sources.clinicaltrials import _parse_studies

        data = {"studies": [{
            "protocolSection": {
                "identificationModule": {"nctId": "NCT01234567", "briefTitle": "Metformin in prediabetes"},
                "statusModule": {"overallStatus": "COMPLETED", "startDateStruct": {"date": "2016-03"}},
                "designModule": {
                    "phases": ["PHASE3"],
                    "designInfo": {"allocation": "RANDOMIZED"},
                    "enrollmentInfo": {"count": 400},
                },
                "conditionsModule": {"conditions": ["Prediabetes"]},
                "armsInterventionsModule": {"interventions": [{"name": "Metformin"}]},
            },
        }]}

        record = _parse_studies(data)[0]

        assert record.record_type == "clinical_trial"
        assert record.year == 2016
        assert record.journal == "ClinicalTrials.gov"
        assert record.url == "https://clinicaltrials.gov/study/NCT01234567"
        assert record.publication_types[0] == "Randomized Controlled Trial"
        assert record.metadata["phase"] == "PHASE3"
        assert record.metadata["enrollment"] == 400

    def test_study_without_id_skipped(self):
        """Studies without an NCT id should be dropped."""
        from medsearch.services.sources.clinicaltrials import _parse_studies

        assert _parse_studies({"studies": [{"protocolSection": {}}]}) == []

    def test_non_object_raises_parse_error(self):
        """A non-object payload should raise SourceParseError."""
        from medsearch.core.exceptions import SourceParseError
        from medsearch.services.sources.clinicaltrials import _parse_studies

        with pytest.raises(SourceParseError):
            _parse_studies("error")


class TestOpenFDAParsing:
    """Test openFDA label query building and parsing."""

    def test_build_label_query(self):
        """Each term should be OR-ed across fields and terms AND-ed together."""
        from medsearch.services.sources.openfda import LABEL_FIELDS, build_label_query

        query = build_label_query("Metformin, of kidney")

        assert query.count(" AND ") == 1
        assert query.count('"metformin"') == len(LABEL_FIELDS)
        assert '"of"' not in query
        assert query.startswith("(") and query.endswith(")")

    def test_parse_label(self):
        """A label should become a drug_label record with a composed abstract."""
        from medsearch.services.sources.openfda import _parse_labels

        data = {"results": [{
            "id": "abc",
            "set_id": "set-1",
            "effective_time": "20230115",
            "openfda": {
                "brand_name": ["Glucophage"],
                "generic_name": ["metformin hydrochloride"],
                "manufacturer_name": ["Acme Pharma"],
            },
            "indications_and_usage": ["Adjunct to diet and exercise in type 2 diabetes."],
            "warnings": ["Lactic acidosis."],
        }]}

        record = _parse_labels(data)[0]

        assert record.title == "Glucophage (metformin hydrochloride) - FDA Drug Label"
        assert record.journal == "FDA Drug Labels Database"
        assert record.year == 2023
        assert record.record_type == "drug_label"
        assert "Indications: Adjunct" in record.abstract
        assert "Warnings: Lactic acidosis." in record.abstract
        assert record.authors == ["Acme Pharma"]


class TestPubMedParsing:
    """Test Entrez efetch parsing."""

    def test_parse_article(self):
        """Article fields, authors and MedlineDate years should be parsed."""
        from medsearch.services.sources.pubmed import _parse_pubmed_articles

        records = {"PubmedArticle": [{
            "MedlineCitation": {
                "PMID": "31000001",
                "Article": {
                    "ArticleTitle": "Metformin and cancer risk",
                    "Abstract": {"AbstractText": ["Background.", "Results."]},
                    "AuthorList": [
                        {"LastName": "Nguyen", "Initials": "T"},
                        {"CollectiveName": "Diabetes Study Group"},
                    ],
                    "Journal": {
                        "Title": "Diabetes Care",
                        "JournalIssue": {"PubDate": {"MedlineDate": "1998 Dec-1999 Jan"}},
                    },
                    "PublicationTypeList": ["Journal Article", "Meta-Analysis"],
                },
            },
        }, {"MedlineCitation": {}}]}

        parsed = _parse_pubmed_articles(records)

        assert len(parsed) == 1
        record = parsed[0]
        assert record.abstract == "Background. Results."
        assert record.authors == ["Nguyen T", "Diabetes Study Group"]
        assert record.year == 1998
        assert record.url == "https://pubmed.ncbi.nlm.nih.gov/31000001/"
        assert record.publication_types == ["Journal Article", "Meta-Analysis"]


class TestCheckStatus:
    """Test HTTP status mapping."""

    def test_rate_limit(self):
        """429 should raise SourceRateLimitError with the Retry-After value."""
        from medsearch.core.exceptions import SourceRateLimitError
        from medsearch.services.sources.base import check_status

        with pytest.raises(SourceRateLimitError) as exc_info:
            check_status("PubMed", 429, "7")

        assert exc_info.value.retry_after == 7

    def test_http_error(self):
        """Other 4xx/5xx codes should raise SourceHTTPError."""
        from medsearch.core.exceptions import SourceHTTPError
        from medsearch.services.sources.base import check_status

        with pytest.raises(SourceHTTPError) as exc_info:
            check_status("CrossRef", 503)

        assert exc_info.value.status_code == 503

    def test_success_passes(self):
        """2xx codes should not raise."""
        from medsearch.services.sources.base import check_status

        check_status("CrossRef", 200)


class _SlowSource:
    name = "Slow"

    def __init__(self):
        self.calls = 0

    async def search(self, query, max_results=25):
        self.calls += 1
        await asyncio.sleep(1)
        return []


class TestSourceGateway:
    """Test retry, timeout and caching around a source."""

    def test_transient_failures_retried(self, fake_source, make_raw):
        """Timeouts should be retried until the source succeeds."""
        from medsearch.core.exceptions import SourceTimeoutError
        from medsearch.services.sources.gateway import RetryPolicy, SourceGateway

        source = fake_source(
            "PubMed",
            records=[make_raw()],
            error=SourceTimeoutError("PubMed", 5),
            fail_times=2,
        )
        gateway = SourceGateway(source, retry_policy=RetryPolicy(max_attempts=3, backoff_seconds=0))

        records = asyncio.run(gateway.search("metformin"))

        assert len(records) == 1
        assert len(source.calls) == 3

    def test_client_error_not_retried(self, fake_source):
        """A 404 should fail immediately with an empty result."""
        from medsearch.core.exceptions import SourceHTTPError
        from medsearch.services.sources.gateway import RetryPolicy, SourceGateway

        source = fake_source("CrossRef", error=SourceHTTPError("CrossRef", 404))
        gateway = SourceGateway(source, retry_policy=RetryPolicy(max_attempts=3, backoff_seconds=0))

        assert asyncio.run(gateway.search("aspirin")) == []
        assert len(source.calls) == 1

    def test_attempts_exhausted_returns_empty(self, fake_source):
        """A persistently failing source should give an empty list, not raise."""
        from medsearch.core.exceptions import SourceConnectionError
        from medsearch.services.sources.gateway import RetryPolicy, SourceGateway

        source = fake_source("OpenAlex", error=SourceConnectionError("OpenAlex", "refused"))
        gateway = SourceGateway(source, retry_policy=RetryPolicy(max_attempts=2, backoff_seconds=0))

        assert asyncio.run(gateway.search("aspirin")) == []
        assert len(source.calls) == 2

    def test_unexpected_exception_absorbed(self, fake_source):
        """Non-source exceptions should also be absorbed without retry."""
        from medsearch.services.sources.gateway import RetryPolicy, SourceGateway

        source = fake_source("OpenAlex", error=KeyError("oops"))
        gateway = SourceGateway(source, retry_policy=RetryPolicy(max_attempts=3, backoff_seconds=0))

        assert asyncio.run(gateway.search("aspirin")) == []
        assert len(source.calls) == 1

    def test_timeout(self):
        """A call exceeding the timeout should give an empty list."""
        from medsearch.services.sources.gateway import RetryPolicy, SourceGateway

        source = _SlowSource()
        gateway = SourceGateway(
            source,
            retry_policy=RetryPolicy(max_attempts=1, backoff_seconds=0),
            timeout_seconds=0.01,
        )

        assert asyncio.run(gateway.search("aspirin")) == []
        assert source.calls == 1

    def test_cache_hit_skips_source(self, fake_source, make_raw):
        """A second identical call should be served from cache."""
        from medsearch.services.cache import SearchCache
        from medsearch.services.sources.gateway import RetryPolicy, SourceGateway

        source = fake_source("PubMed", records=[make_raw()])
        cache = SearchCache(use_redis=False)
        gateway = SourceGateway(source, retry_policy=RetryPolicy(max_attempts=1), cache=cache)

        first = asyncio.run(gateway.search("metformin", 10))
        second = asyncio.run(gateway.search("metformin", 10))

        assert first == second
        assert len(source.calls) == 1

    def test_slow_cache_does_not_block_other_sources(self, fake_source, make_raw):
        """Blocking cache lookups should overlap across concurrent source calls."""
        import time
        from unittest.mock import MagicMock, patch

        from medsearch.services.cache import SearchCache
        from medsearch.services.sources.gateway import RetryPolicy, SourceGateway

        def slow_get(key):
            time.sleep(0.3)
            return None

        with patch("medsearch.services.cache.redis.Redis") as mock_redis:
            client = MagicMock()
            client.get.side_effect = slow_get
            mock_redis.return_value = client
            cache = SearchCache()

        gateways = [
            SourceGateway(fake_source(name, records=[make_raw()]), retry_policy=RetryPolicy(max_attempts=1), cache=cache)
            for name in ("PubMed", "EuropePMC", "OpenAlex", "CrossRef")
        ]

        async def fan_out():
            return await asyncio.gather(*(gateway.search("metformin", 10) for gateway in gateways))

        started = time.perf_counter()
        results = asyncio.run(fan_out())
        elapsed = time.perf_counter() - started

        assert [len(records) for records in results] == [1, 1, 1, 1]
        assert client.get.call_count == 4
        assert client.setex.call_count == 4
        assert elapsed < 0.9

    def test_retry_policy_from_settings(self):
        """RetryPolicy should read its values from Settings."""
        from medsearch.core.config import Settings
        from medsearch.services.sources.gateway import RetryPolicy

        settings = Settings(retry_max_attempts=5, retry_backoff_seconds=0.1)
        policy = RetryPolicy.from_settings(settings)

        assert policy.max_attempts == 5
        assert policy.backoff_seconds == 0.1

    def test_retryable_classification(self):
        """Server errors are retryable; client and parse errors are not."""
        from medsearch.core.exceptions import SourceHTTPError, SourceParseError, SourceRateLimitError
        from medsearch.services.sources.gateway import RetryPolicy

        assert RetryPolicy.is_retryable(SourceHTTPError("X", 502)) is True
        assert RetryPolicy.is_retryable(SourceRateLimitError("X")) is True
        assert RetryPolicy.is_retryable(SourceHTTPError("X", 400)) is False
        assert RetryPolicy.is_retryable(SourceParseError("X")) is False


class TestQueryRewriting:
    """Test the per-source query rewriters."""

    def test_strip_field_tags(self):
        """Field tags should go but boolean structure stays."""
        from medsearch.services.sources.gateway import strip_field_tags

        query = '("Diabetes Mellitus, Type 2"[MeSH Terms] OR diabetes[tiab]) AND metformin[tiab]'

        assert strip_field_tags(query) == '("Diabetes Mellitus, Type 2" OR diabetes) AND metformin'

    def test_to_plain_keywords(self):
        """Booleans, quotes and duplicates should be removed."""
        from medsearch.services.sources.gateway import to_plain_keywords

        query = '("heart failure"[tiab] OR Heart[tiab]) AND failure[tiab] NOT children'

        assert to_plain_keywords(query) == "heart failure children"

    def test_rewriting_source_delegates(self, fake_source):
        """The wrapper should pass the rewritten query on and keep the name."""
        from medsearch.services.sources.gateway import QueryRewritingSource, to_plain_keywords

        inner = fake_source("CrossRef")
        wrapped = QueryRewritingSource(inner, to_plain_keywords)

        asyncio.run(wrapped.search("aspirin[tiab] AND stroke[tiab]", 5))

        assert wrapped.name == "CrossRef"
        assert inner.calls == [("aspirin stroke", 5)]


class TestBuildDefaultSources:
    """Test source construction from settings."""

    def test_all_configured_sources_built(self):
        """Every configured source should be constructed in order."""
        from medsearch.core.config import Settings
        from medsearch.services.sources import build_default_sources

        settings = Settings()
        sources = build_default_sources(settings)

        assert [s.name for s in sources] == list(settings.enabled_sources)

    def test_unknown_source_skipped(self):
        """Unknown names should be skipped with a warning."""
        from medsearch.services.sources import PubMedSource, build_default_sources
        from medsearch.core.config import Settings

        sources = build_default_sources(Settings(), enabled=["PubMed", "Nope"])

        assert len(sources) == 1
        assert isinstance(sources[0], PubMedSource)

    def test_non_pubmed_sources_rewrite_queries(self):
        """Only PubMed should receive field-tagged queries unchanged."""
        from medsearch.core.config import Settings
        from medsearch.services.sources import QueryRewritingSource, build_default_sources

        sources = build_default_sources(Settings(), enabled=["PubMed", "EuropePMC", "CrossRef"])

        assert not isinstance(sources[0], QueryRewritingSource)
        assert isinstance(sources[1], QueryRewritingSource)
        assert isinstance(sources[2], QueryRewritingSource)
