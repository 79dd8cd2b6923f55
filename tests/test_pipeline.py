"""
Tests for the claim creation pipeline.

Verifies that create_claim_record():
- Falls back to rules whenever the oracle is slow, failing, empty or unsure
- Applies the charterer filter to oracle classifications too
- Assembles claim number, actions, finance and history
- Rejects empty notifications before any oracle call
"""

import asyncio
import logging
from datetime import datetime, timezone

import pytest

from src.claims.errors import ClaimValidationError
from src.claims.pipeline import ORACLE_FALLBACK_WARNING, ClaimPipeline, create_claim_record
from src.claims.schema import (
    INITIAL_PROGRESS_STATUS,
    BusinessRole,
    Classification,
    CoverAssessment,
    CoverType,
    Extraction,
    ExtractionSource,
)

NOVA_STAR_TEXT = "MV Nova Star collided with a tug near Singapore, minor injuries reported"
CHARTERER_TEXT = "As charterer under time charter, cargo hold sustained wet damage at berth"


def oracle_extraction(confidence=0.9, **fields):
    return Extraction(
        raw_text="as seen by the oracle",
        vessel_name=fields.pop("vessel_name", "MV Nova Star"),
        incident_keywords=fields.pop("incident_keywords", ["collision"]),
        source=ExtractionSource.ORACLE,
        confidence=confidence,
        **fields,
    )


def oracle_classification(*covers, role=BusinessRole.VESSEL_OWNER):
    return Classification(
        covers=[CoverAssessment(type=t, confidence=c, reasoning="oracle") for t, c in covers],
        business_role=role,
        source=ExtractionSource.ORACLE,
    )


@pytest.fixture
def oracle_pipeline(mock_config, settings):
    """Build a pipeline around a scripted oracle."""
    def build(oracle):
        return ClaimPipeline(mock_config, oracle=oracle, settings=settings)
    return build


# ============================================================================
# Test: Rule-based path
# ============================================================================


class TestRuleBased:

    def test_no_oracle_configured(self, pipeline):
        assert pipeline.oracle is None

        claim = pipeline.create_claim_record("j.smith", NOVA_STAR_TEXT)

        assert claim.extraction.source == ExtractionSource.RULES
        assert claim.classification.source == ExtractionSource.RULES
        assert ORACLE_FALLBACK_WARNING not in claim.extraction.warnings
        assert claim.cover_types() == ["P&I"]

    def test_charterer_notification(self, pipeline):
        claim = pipeline.create_claim_record("j.smith", CHARTERER_TEXT)

        assert claim.classification.business_role == BusinessRole.CHARTERER
        assert claim.cover_types()[0] == "Charterers' Liability"
        assert "H&M" not in claim.cover_types()


# ============================================================================
# Test: Oracle fallback
# ============================================================================


class TestOracleFallback:

    def test_oracle_success(self, oracle_pipeline, fake_oracle):
        oracle = fake_oracle(
            extraction=oracle_extraction(),
            classification=oracle_classification((CoverType.PI, 0.9)),
        )
        claim = oracle_pipeline(oracle).create_claim_record("j.smith", "  MV Nova Star   collided with a tug  ")

        assert claim.extraction.source == ExtractionSource.ORACLE
        assert claim.extraction.raw_text == "MV Nova Star collided with a tug"
        assert claim.classification.source == ExtractionSource.ORACLE
        assert claim.cover_types() == ["P&I"]
        assert ORACLE_FALLBACK_WARNING not in claim.extraction.warnings
        assert oracle.extract_calls == 1
        assert oracle.classify_calls == 1

    @pytest.mark.parametrize("oracle_kwargs", [
        {"extraction": None},
        {"extraction": oracle_extraction(), "delay": 2.0},
        {"extraction": oracle_extraction(), "error": RuntimeError("upstream 503")},
        {"extraction": oracle_extraction(confidence=0.3)},
    ], ids=["empty", "timeout", "error", "low_confidence"])
    def test_falls_back_to_rules(self, oracle_pipeline, fake_oracle, oracle_kwargs):
        oracle = fake_oracle(**oracle_kwargs)
        claim = oracle_pipeline(oracle).create_claim_record("j.smith", NOVA_STAR_TEXT)

        assert claim.extraction.source == ExtractionSource.RULES
        assert claim.extraction.vessel_name == "MV Nova Star"
        assert ORACLE_FALLBACK_WARNING in claim.extraction.warnings
        assert claim.classification.source == ExtractionSource.RULES
        assert oracle.classify_calls == 0

    def test_classification_falls_back_separately(self, oracle_pipeline, fake_oracle):
        oracle = fake_oracle(extraction=oracle_extraction(), classification=None)
        claim = oracle_pipeline(oracle).create_claim_record("j.smith", NOVA_STAR_TEXT)

        assert claim.extraction.source == ExtractionSource.ORACLE
        assert claim.classification.source == ExtractionSource.RULES
        assert claim.cover_types() == ["P&I"]

    def test_charterer_filter_applied_to_oracle(self, oracle_pipeline, fake_oracle):
        oracle = fake_oracle(
            extraction=oracle_extraction(incident_keywords=["cargo damage"]),
            classification=oracle_classification((CoverType.HM, 0.9), (CoverType.CARGO, 0.6)),
        )
        claim = oracle_pipeline(oracle).create_claim_record("j.smith", CHARTERER_TEXT)

        assert claim.classification.business_role == BusinessRole.CHARTERER
        assert claim.cover_types() == ["Charterers' Liability", "Cargo"]
        assert claim.classification.covers[0].confidence == pytest.approx(0.6)

    def test_unclear_dropped_next_to_concrete_cover(self, oracle_pipeline, fake_oracle):
        oracle = fake_oracle(
            extraction=oracle_extraction(),
            classification=oracle_classification((CoverType.UNCLEAR, 0.5), (CoverType.PI, 0.4)),
        )
        claim = oracle_pipeline(oracle).create_claim_record("j.smith", NOVA_STAR_TEXT)

        assert claim.cover_types() == ["P&I"]

    def test_unclear_alone_kept(self, oracle_pipeline, fake_oracle):
        oracle = fake_oracle(
            extraction=oracle_extraction(),
            classification=oracle_classification((CoverType.UNCLEAR, 0.6)),
        )
        claim = oracle_pipeline(oracle).create_claim_record("j.smith", NOVA_STAR_TEXT)

        assert claim.cover_types() == ["Unclear / Needs Review"]

    def test_unsure_classification_falls_back(self, oracle_pipeline, fake_oracle, caplog):
        oracle = fake_oracle(
            extraction=oracle_extraction(),
            classification=oracle_classification((CoverType.FDD, 0.01)),
        )
        with caplog.at_level(logging.WARNING, logger="src.claims.pipeline"):
            claim = oracle_pipeline(oracle).create_claim_record("j.smith", NOVA_STAR_TEXT)

        assert claim.extraction.source == ExtractionSource.ORACLE
        assert claim.classification.source == ExtractionSource.RULES
        assert claim.cover_types() == ["P&I"]
        assert "Oracle classification discarded" in caplog.text

    def test_called_from_running_event_loop(self, oracle_pipeline, fake_oracle):
        oracle = fake_oracle(
            extraction=oracle_extraction(),
            classification=oracle_classification((CoverType.PI, 0.9)),
        )
        pipeline = oracle_pipeline(oracle)

        async def create_from_handler():
            return pipeline.create_claim_record("j.smith", NOVA_STAR_TEXT)

        claim = asyncio.run(create_from_handler())

        assert claim.extraction.source == ExtractionSource.ORACLE
        assert claim.classification.source == ExtractionSource.ORACLE
        assert oracle.extract_calls == 1


# ============================================================================
# Test: Validation
# ============================================================================


class TestValidation:

    @pytest.mark.parametrize("text", ["", "   \n\t ", None])
    def test_empty_text_rejected_before_oracle(self, oracle_pipeline, fake_oracle, text):
        oracle = fake_oracle(extraction=oracle_extraction())

        with pytest.raises(ClaimValidationError):
            oracle_pipeline(oracle).create_claim_record("j.smith", text)
        assert oracle.extract_calls == 0

    def test_module_function_rejects_empty_text(self):
        with pytest.raises(ClaimValidationError, match="required"):
            create_claim_record("j.smith", "  ")


# ============================================================================
# Test: Assembly
# ============================================================================


class TestAssembly:

    def test_claim_fields(self, pipeline):
        created_at = datetime(2026, 5, 1, 9, 30, tzinfo=timezone.utc)
        claim = pipeline.create_claim_record(
            "j.smith", NOVA_STAR_TEXT,
            existing_claim_numbers=["MC-NOVA-2026-0003", "MC-NOVA-2025-0100"],
            created_at=created_at,
        )

        assert claim.claim_number == "MC-NOVA-2026-0004"
        assert claim.company == "Nova Carriers"
        assert claim.created_by == "j.smith"
        assert claim.created_at == claim.updated_at == created_at
        assert claim.progress_status == INITIAL_PROGRESS_STATUS
        assert len(claim.actions) == 9
        assert all(a.created_at == created_at for a in claim.actions)

    def test_fresh_finance(self, pipeline):
        finance = pipeline.create_claim_record("j.smith", NOVA_STAR_TEXT).finance

        assert finance.currency == "USD"
        assert finance.reserve_estimated == finance.cash_out == finance.recovered == 0
        assert finance.outstanding_recovery == 0

    def test_initial_history(self, pipeline):
        claim = pipeline.create_claim_record("j.smith", NOVA_STAR_TEXT)

        assert len(claim.status_log) == 1
        assert claim.status_log[0].status == INITIAL_PROGRESS_STATUS
        assert claim.status_log[0].by == "j.smith"
        assert [e.action for e in claim.audit_trail] == ["CLAIM_CREATED", "CLASSIFICATION_RECORDED"]
        assert claim.claim_number in claim.audit_trail[0].note
        assert "P&I (0.85)" in claim.audit_trail[1].note

    def test_blank_creator_is_system(self, pipeline):
        claim = pipeline.create_claim_record("  ", NOVA_STAR_TEXT)

        assert claim.created_by == "system"
        assert claim.audit_trail[0].by == "system"

    def test_company_code_from_settings(self, mock_config, settings):
        settings.company_code = "ACME"
        pipeline = ClaimPipeline(mock_config, settings=settings)

        claim = pipeline.create_claim_record("j.smith", NOVA_STAR_TEXT)

        assert claim.claim_number.startswith("MC-ACME-")

    def test_metrics_logged(self, pipeline, caplog):
        with caplog.at_level(logging.INFO, logger="src.claims.pipeline"):
            pipeline.create_claim_record("j.smith", NOVA_STAR_TEXT)

        assert "Pipeline metrics" in caplog.text
        assert "total_time=" in caplog.text
