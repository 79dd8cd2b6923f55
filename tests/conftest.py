"""
Pytest fixtures shared by the claims test suite.

Provides isolated settings, a rule-only pipeline, a temporary SQLite store
and a scriptable fake oracle.
"""

import asyncio
from typing import Optional

import pytest

from src.claims.config import OracleConfig
from src.claims.oracle import ExtractionOracle
from src.claims.pipeline import ClaimPipeline
from src.claims.schema import Classification, Extraction
from src.storage.claim_store import ClaimStore
from src.utils.config import Settings
from src.workflow.claim_service import ClaimService


class FakeOracle(ExtractionOracle):
    """Oracle returning canned results, optionally slow or failing."""

    def __init__(
        self,
        extraction: Optional[Extraction] = None,
        classification: Optional[Classification] = None,
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ):
        self.extraction = extraction
        self.classification = classification
        self.delay = delay
        self.error = error
        self.extract_calls = 0
        self.classify_calls = 0

    async def try_extract(self, raw_text: str) -> Optional[Extraction]:
        self.extract_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.extraction

    async def try_classify(self, extraction: Extraction) -> Optional[Classification]:
        self.classify_calls += 1
        return self.classification


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, llm_provider="mock", claims_db_path=tmp_path / "claims.db")


@pytest.fixture
def mock_config():
    """Oracle configuration without a provider (no API keys needed)."""
    return OracleConfig(llm_provider="mock", timeout=0.2, min_confidence=0.5)


@pytest.fixture
def pipeline(mock_config, settings):
    """Rule-based pipeline."""
    return ClaimPipeline(mock_config, settings=settings)


@pytest.fixture
def store(tmp_path):
    """Empty claim store in a temporary directory."""
    return ClaimStore(tmp_path / "claims.db")


@pytest.fixture
def service(store, pipeline, settings):
    return ClaimService(store, pipeline=pipeline, settings=settings)


@pytest.fixture
def fake_oracle():
    """Factory for scripted oracles."""
    return FakeOracle
