"""
Marine claims module.

First-notification understanding and claim bootstrap for marine incidents.
"""

from .classifier import CoverClassifier, classify
from .config import OracleConfig
from .errors import (
    ActionNotFoundError,
    ClaimError,
    ClaimNotFoundError,
    ClaimValidationError,
    NotFoundError,
)
from .finance import FinanceReconciler, reconcile
from .oracle import ExtractionOracle, LLMExtractionOracle, create_oracle
from .pipeline import ClaimPipeline, create_claim_record, plan_actions, reconcile_finance
from .schema import (
    # Enums
    ActionStatus,
    BusinessRole,
    CoverType,
    ExtractionSource,
    OwnerRole,
    # Models
    Action,
    AuditEntry,
    Claim,
    Classification,
    CoverAssessment,
    Extraction,
    FinanceState,
    StatusLogEntry,
)
from .text_extractor import FieldExtractor, extract

__all__ = [
    # Pipeline functions
    "create_claim_record",
    "reconcile_finance",
    "plan_actions",
    "extract",
    "classify",
    "reconcile",
    "create_oracle",
    # Classes
    "ClaimPipeline",
    "FieldExtractor",
    "CoverClassifier",
    "FinanceReconciler",
    "OracleConfig",
    "ExtractionOracle",
    "LLMExtractionOracle",
    # Errors
    "ClaimError",
    "ClaimValidationError",
    "NotFoundError",
    "ClaimNotFoundError",
    "ActionNotFoundError",
    # Enums
    "ActionStatus",
    "BusinessRole",
    "CoverType",
    "ExtractionSource",
    "OwnerRole",
    # Models
    "Action",
    "AuditEntry",
    "Claim",
    "Classification",
    "CoverAssessment",
    "Extraction",
    "FinanceState",
    "StatusLogEntry",
]
