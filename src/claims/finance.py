"""
Finance reconciliation for claims.

Merges an owner-entered patch into the current finance state. Recoverable
and outstanding amounts are never taken from input; FinanceState derives
them from cash-out, deductible and recovered.
"""

import logging
import math
from typing import Any, Mapping, Optional

from .schema import Claim, FinanceState, utc_now

logger = logging.getLogger(__name__)

NUMERIC_FIELDS = ("reserve_estimated", "cash_out", "deductible", "recovered")
TEXT_FIELDS = ("notes",)
DERIVED_FIELDS = ("recoverable_expected", "outstanding_recovery")


def to_number(value: Any) -> float:
    """
    Coerce input to a finite float; anything unusable becomes 0.

    Accepts numbers and numeric strings with currency symbols or thousands
    separators ("$12,000").
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.replace("$", "").replace("€", "").replace("£", "").replace(",", "").strip()
        if not value:
            return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def reconcile(current: Optional[FinanceState], patch: Optional[Mapping[str, Any]]) -> FinanceState:
    """
    Merge a finance patch into the current state.

    Args:
        current: Stored finance state (None means a fresh USD state)
        patch: Fields to overwrite; absent fields keep their value

    Returns:
        New FinanceState with derived fields recomputed
    """
    current = current or FinanceState()
    patch = patch or {}
    merged = current.model_dump(include={"currency", "notes", *NUMERIC_FIELDS})

    for key, value in patch.items():
        if key in NUMERIC_FIELDS:
            merged[key] = to_number(value)
        elif key == "currency":
            currency = str(value).strip().upper() if value is not None else ""
            if currency:
                merged["currency"] = currency
        elif key in TEXT_FIELDS:
            merged[key] = "" if value is None else str(value)
        elif key in DERIVED_FIELDS:
            logger.debug(f"Ignoring derived finance field in patch: {key}")
        else:
            logger.debug(f"Ignoring unknown finance field in patch: {key}")

    return FinanceState(**merged)


def finance_summary(finance: FinanceState) -> str:
    return (
        f"Finance updated (reserve={finance.reserve_estimated:g}, cashOut={finance.cash_out:g}, "
        f"recovered={finance.recovered:g}, outstanding={finance.outstanding_recovery:g})"
    )


class FinanceReconciler:
    """Applies finance patches to claims and records them in the audit trail."""

    audit_action = "FINANCE_UPDATED"

    def apply(self, claim: Claim, patch: Optional[Mapping[str, Any]], by: Optional[str] = None) -> FinanceState:
        """Reconcile `patch` into `claim.finance` and append one audit entry."""
        finance = reconcile(claim.finance, patch)
        now = utc_now()
        claim.finance = finance
        claim.updated_at = now
        claim.add_audit(by, self.audit_action, finance_summary(finance), at=now)
        logger.info(
            f"Finance reconciled for {claim.claim_number}: "
            f"recoverable={finance.recoverable_expected:g}, outstanding={finance.outstanding_recovery:g}"
        )
        return finance
