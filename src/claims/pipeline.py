"""
Notification understanding and claim bootstrap pipeline.

Public API: create_claim_record(created_by, raw_text) -> Claim

Flow: normalize -> oracle extraction (else rules) -> oracle classification
(else rule table) -> business-role filter -> action plan -> assembled Claim.
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from ..utils.config import Settings, get_settings
from .claim_number import allocate
from .classifier import (
    CoverClassifier,
    apply_business_role,
    detect_business_role,
    has_third_party_liability,
)
from .config import OracleConfig
from .errors import ClaimValidationError
from .finance import FinanceReconciler
from .normalizer import normalize_text
from .oracle import ExtractionOracle, create_oracle
from .planner import plan
from .schema import (
    INITIAL_PROGRESS_STATUS,
    Action,
    BusinessRole,
    Claim,
    Classification,
    CoverType,
    Extraction,
    FinanceState,
    StatusLogEntry,
    utc_now,
)
from .text_extractor import FieldExtractor

logger = logging.getLogger(__name__)

ORACLE_FALLBACK_WARNING = "Oracle not used; rule-based extraction applied."


class ClaimPipeline:
    """
    Turns a raw first notification into a fully assembled Claim.

    The oracle is optional and never trusted: timeouts, errors, empty output
    and low-confidence output all fall back to the deterministic path.
    """

    def __init__(
        self,
        config: Optional[OracleConfig] = None,
        oracle: Optional[ExtractionOracle] = None,
        extractor: Optional[FieldExtractor] = None,
        classifier: Optional[CoverClassifier] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Oracle configuration (from environment if None)
            oracle: Oracle to consult (built from config if None)
            extractor: Rule-based extractor
            classifier: Rule-based classifier
            settings: Application settings (company, currency)
        """
        self.settings = settings or get_settings()
        self.config = config or OracleConfig.from_env()
        self.oracle = oracle if oracle is not None else create_oracle(self.config)
        self.extractor = extractor or FieldExtractor()
        self.classifier = classifier or CoverClassifier()

        logger.info(
            f"Initialized claim pipeline with "
            f"oracle: {type(self.oracle).__name__ if self.oracle else 'none'}, "
            f"provider: {self.config.llm_provider}"
        )

    # ------------------------------------------------------------------
    # Understanding
    # ------------------------------------------------------------------

    def understand(self, raw_text: str) -> Tuple[Extraction, Classification]:
        """Extract and classify; no store access, safe outside any lock."""
        text = normalize_text(raw_text)
        if self.oracle is None:
            extraction = self.extractor.extract(text)
            return extraction, self.classifier.classify(extraction)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.understand_async(text))
        # Called from async code: run the oracle on a private loop in a worker thread.
        with ThreadPoolExecutor(max_workers=1) as executor:
            return executor.submit(asyncio.run, self.understand_async(text)).result()

    async def understand_async(self, text: str) -> Tuple[Extraction, Classification]:
        extraction = await self._oracle_extract(text)
        if extraction is None:
            extraction = self.extractor.extract(text)
            extraction = extraction.model_copy(
                update={"warnings": [*extraction.warnings, ORACLE_FALLBACK_WARNING]}
            )
            return extraction, self.classifier.classify(extraction)

        classification = await self._oracle_classify(extraction)
        if classification is None:
            classification = self.classifier.classify(extraction)
        return extraction, classification

    async def _oracle_extract(self, text: str) -> Optional[Extraction]:
        try:
            extraction = await asyncio.wait_for(self.oracle.try_extract(text), timeout=self.config.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Oracle extraction timed out after {self.config.timeout}s")
            return None
        except Exception as e:
            logger.warning(f"Oracle extraction raised: {e}")
            return None

        if extraction is None:
            logger.warning("Oracle returned no extraction")
            return None
        if extraction.confidence < self.config.min_confidence:
            logger.warning(
                f"Oracle extraction discarded: confidence {extraction.confidence:.2f} "
                f"< {self.config.min_confidence:.2f}"
            )
            return None
        if extraction.raw_text != text:
            extraction = extraction.model_copy(update={"raw_text": text})
        return extraction

    async def _oracle_classify(self, extraction: Extraction) -> Optional[Classification]:
        try:
            classification = await asyncio.wait_for(
                self.oracle.try_classify(extraction), timeout=self.config.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"Oracle classification timed out after {self.config.timeout}s")
            return None
        except Exception as e:
            logger.warning(f"Oracle classification raised: {e}")
            return None

        if classification is None:
            logger.warning("Oracle returned no classification")
            return None
        best = max(c.confidence for c in classification.covers)
        if best < self.config.min_confidence:
            logger.warning(
                f"Oracle classification discarded: confidence {best:.2f} "
                f"< {self.config.min_confidence:.2f}"
            )
            return None
        return self.enforce_business_role(classification, extraction)

    @staticmethod
    def enforce_business_role(classification: Classification, extraction: Extraction) -> Classification:
        """Apply the charterer filter to a classification from outside the rule table."""
        role = classification.business_role
        if detect_business_role(extraction) == BusinessRole.CHARTERER:
            role = BusinessRole.CHARTERER

        covers = apply_business_role(classification.covers, role, has_third_party_liability(extraction))
        concrete = [c for c in covers if c.type != CoverType.UNCLEAR]
        if concrete:
            covers = concrete
        return Classification(covers=covers, business_role=role, source=classification.source)

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def assemble(
        self,
        created_by: Optional[str],
        extraction: Extraction,
        classification: Classification,
        claim_number: str,
        created_at: Optional[datetime] = None,
    ) -> Claim:
        """Build the Claim with planned actions, fresh finance and initial history."""
        created_at = created_at or utc_now()
        by = (created_by or "").strip() or "system"

        claim = Claim(
            claim_number=claim_number,
            company=self.settings.company_name,
            created_at=created_at,
            updated_at=created_at,
            created_by=by,
            progress_status=INITIAL_PROGRESS_STATUS,
            extraction=extraction,
            classification=classification,
            actions=plan(classification, created_at),
            finance=FinanceState(currency=self.settings.default_currency),
            status_log=[
                StatusLogEntry(
                    at=created_at, by=by, status=INITIAL_PROGRESS_STATUS,
                    note="Claim created from first notification.",
                )
            ],
        )
        claim.add_audit(
            by, "CLAIM_CREATED",
            f"Claim {claim_number} created ({extraction.source.value} extraction)",
            at=created_at,
        )
        covers = ", ".join(f"{c.type.value} ({c.confidence:.2f})" for c in classification.covers)
        claim.add_audit(
            by, "CLASSIFICATION_RECORDED",
            f"{classification.business_role.value}: {covers}",
            at=created_at,
        )
        return claim

    def create_claim_record(
        self,
        created_by: Optional[str],
        raw_text: Optional[str],
        existing_claim_numbers: Iterable[str] = (),
        created_at: Optional[datetime] = None,
    ) -> Claim:
        """
        Create a claim from a raw first notification.

        Args:
            created_by: User recording the notification
            raw_text: Notification text as received
            existing_claim_numbers: Claim numbers already allocated
            created_at: Creation time (now if None)

        Returns:
            Assembled Claim with number, actions, finance and history

        Raises:
            ClaimValidationError: If the text is empty or whitespace
        """
        validate_notification_text(raw_text)
        start_time = time.perf_counter()

        logger.info(f"Starting claim creation: {len(raw_text)} chars text")
        extraction, classification = self.understand(raw_text)

        created_at = created_at or utc_now()
        claim_number = allocate(existing_claim_numbers, created_at.year, self.settings.company_code)
        claim = self.assemble(created_by, extraction, classification, claim_number, created_at)

        total_time_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Claim creation complete: "
            f"claim_number={claim.claim_number}, "
            f"total_time={total_time_ms:.0f}ms"
        )
        self._log_metrics(claim, total_time_ms)
        return claim

    def _log_metrics(self, claim: Claim, total_time_ms: float):
        """Log performance and quality metrics."""
        metrics = {
            'total_time_ms': round(total_time_ms, 1),
            'extraction_source': claim.extraction.source.value,
            'classification_source': claim.classification.source.value,
            'business_role': claim.classification.business_role.value,
            'cover_types': claim.cover_types(),
            'has_vessel': claim.extraction.vessel_name is not None,
            'keyword_count': len(claim.extraction.incident_keywords),
            'action_count': len(claim.actions),
            'warning_count': len(claim.extraction.warnings),
        }

        logger.info(f"Pipeline metrics: {metrics}")


def validate_notification_text(raw_text: Optional[str]) -> str:
    if raw_text is None or not str(raw_text).strip():
        raise ClaimValidationError("First notification text is required")
    return raw_text


# Singleton instance for convenience
_default_pipeline: Optional[ClaimPipeline] = None


def get_pipeline() -> ClaimPipeline:
    global _default_pipeline
    if _default_pipeline is None:
        _default_pipeline = ClaimPipeline()
    return _default_pipeline


def create_claim_record(
    created_by: Optional[str],
    raw_text: Optional[str],
    existing_claim_numbers: Iterable[str] = (),
    config: Optional[OracleConfig] = None,
) -> Claim:
    """
    Create a claim from a first notification (convenience function).

    Example:
        ```python
        from src.claims.pipeline import create_claim_record

        claim = create_claim_record(
            "j.smith",
            "MV Nova Star collided with a tug near Singapore, minor injuries reported",
        )
        print(claim.claim_number, claim.cover_types())
        ```
    """
    # Validated before any pipeline or oracle client is built.
    validate_notification_text(raw_text)
    pipeline = ClaimPipeline(config) if config is not None else get_pipeline()
    return pipeline.create_claim_record(created_by, raw_text, existing_claim_numbers)


def reconcile_finance(claim: Claim, finance_patch: Optional[Mapping[str, Any]], by: Optional[str] = None) -> FinanceState:
    """Merge a finance patch into the claim and record it in the audit trail."""
    return FinanceReconciler().apply(claim, finance_patch, by)


def plan_actions(classification: Optional[Classification], created_at: Optional[datetime] = None) -> List[Action]:
    """Default action list for a classification."""
    return plan(classification, created_at)
