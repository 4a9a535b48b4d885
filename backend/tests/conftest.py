"""
Pytest fixtures and configuration for backend tests.

Provides reusable fixtures for testing the API, the search pipeline and
its components without touching the network.
"""
import os
import sys
from datetime import datetime
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

CURRENT_YEAR = datetime.now().year


@pytest.fixture(scope="session", autouse=True)
def set_test_environment():
    """Set environment variables for testing."""
    os.environ["RATE_LIMIT_ENABLED"] = "false"
    os.environ["USE_REDIS_CACHE"] = "false"
    os.environ["REDIS_HOST"] = "localhost"
    os.environ["REDIS_PORT"] = "6379"
    os.environ["API_CONTACT_EMAIL"] = "tests@example.com"
    yield


class FakeSource:
    """
    In-memory source for pipeline tests.

    Returns the same records for every query unless a per-query mapping is
    given, and raises `error` on the first `fail_times` calls.
    """

    def __init__(
        self,
        name: str = "PubMed",
        records: Optional[List] = None,
        by_query: Optional[Dict[str, List]] = None,
        error: Optional[Exception] = None,
        fail_times: int = 0,
    ):
        self._name = name
        self.records = records or []
        self.by_query = by_query
        self.error = error
        self.fail_times = fail_times
        self.calls: List[tuple] = []

    @property
    def name(self) -> str:
        return self._name

    async def search(self, query: str, max_results: int = 25):
        self.calls.append((query, max_results))
        if self.error is not None and (self.fail_times == 0 or len(self.calls) <= self.fail_times):
            raise self.error
        if self.by_query is not None:
            return list(self.by_query.get(query, []))[:max_results]
        return list(self.records)[:max_results]


@pytest.fixture
def fake_source():
    """Factory for FakeSource instances."""
    return FakeSource


@pytest.fixture
def vocabulary():
    """The packaged vocabulary tables."""
    from medsearch.services.vocabulary import get_vocabulary
    return get_vocabulary()


@pytest.fixture
def make_raw():
    """Factory for RawRecord objects with sensible defaults."""
    from medsearch.schemas.records import RawRecord

    def _make(**overrides):
        data = {
            "title": "Metformin for type 2 diabetes treatment: a randomized controlled trial",
            "abstract": (
                "In this randomized controlled trial of 1200 patients with type 2 diabetes, "
                "metformin treatment reduced HbA1c compared with placebo. Heterogeneity was low (I2 = 10%)."
            ),
            "authors": ["Smith J", "Doe A"],
            "journal": "The Lancet",
            "year": CURRENT_YEAR,
            "doi": "10.1016/s0140-6736(00)00001-1",
            "source": "PubMed",
            "citation_count": 300,
            "publication_types": ["Randomized Controlled Trial"],
        }
        data.update(overrides)
        return RawRecord(**data)

    return _make


@pytest.fixture
def strong_records(make_raw):
    """Six distinct, highly relevant recent RCT records."""
    return [
        make_raw(
            title=f"Metformin for type 2 diabetes treatment: a randomized controlled trial (site {i})",
            doi=f"10.1000/metformin.{i}",
        )
        for i in range(6)
    ]


@pytest.fixture
def non_medical_records(make_raw):
    """Records that carry only non-medical indicators."""
    return [
        make_raw(
            title=f"Machine learning for business model optimization {i}",
            abstract="We apply machine learning to business model design in retail settings.",
            journal="Journal of Business Research",
            doi=f"10.2000/business.{i}",
            citation_count=3,
            publication_types=[],
        )
        for i in range(3)
    ]


@pytest.fixture
def treatment_analysis():
    """Analysis of a simple endocrine treatment question."""
    from medsearch.services.retrieval.query_analyzer import analyze_query
    return analyze_query("metformin type 2 diabetes treatment")


@pytest.fixture
def test_client():
    """Create a test client for API testing."""
    # Import here so the test environment is set first
    from medsearch.main import app

    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
