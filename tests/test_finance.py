"""
Tests for finance reconciliation.

Recoverable and outstanding amounts are always derived; patches can only
move the inputs.
"""

import pytest

from src.claims.finance import FinanceReconciler, reconcile, to_number
from src.claims.schema import FinanceState


# ============================================================================
# Test: Derived amounts
# ============================================================================


class TestDerivedAmounts:

    def test_deductible_exceeds_cash_out(self):
        finance = reconcile(FinanceState(), {"cash_out": 12000, "deductible": 25000, "recovered": 0})

        assert finance.recoverable_expected == 0
        assert finance.outstanding_recovery == 0

    def test_partial_recovery(self):
        finance = reconcile(FinanceState(), {"cash_out": "$50,000", "deductible": 10000, "recovered": 15000})

        assert finance.cash_out == 50000
        assert finance.recoverable_expected == 40000
        assert finance.outstanding_recovery == 25000

    def test_over_recovery_clamped(self):
        finance = reconcile(FinanceState(), {"cash_out": 1000, "recovered": 5000})

        assert finance.outstanding_recovery == 0

    def test_derived_fields_in_patch_ignored(self):
        finance = reconcile(
            FinanceState(cash_out=100),
            {"recoverable_expected": 999999, "outstanding_recovery": 5, "bogus": 1},
        )

        assert finance.recoverable_expected == 100
        assert finance.outstanding_recovery == 100

    def test_derived_fields_dumped(self):
        dumped = FinanceState(cash_out=300, deductible=100, recovered=50).model_dump()

        assert dumped["recoverable_expected"] == 200
        assert dumped["outstanding_recovery"] == 150


# ============================================================================
# Test: Patch merging
# ============================================================================


class TestPatchMerging:

    def test_absent_fields_kept(self):
        current = FinanceState(currency="EUR", reserve_estimated=80000, cash_out=2000, notes="Survey fee")
        finance = reconcile(current, {"recovered": 500})

        assert finance.reserve_estimated == 80000
        assert finance.cash_out == 2000
        assert finance.currency == "EUR"
        assert finance.notes == "Survey fee"
        assert finance.recovered == 500

    def test_currency_normalized(self):
        assert reconcile(FinanceState(), {"currency": " eur "}).currency == "EUR"

    @pytest.mark.parametrize("currency", ["", "   ", None])
    def test_blank_currency_keeps_current(self, currency):
        assert reconcile(FinanceState(currency="GBP"), {"currency": currency}).currency == "GBP"

    def test_notes_cleared_by_none(self):
        assert reconcile(FinanceState(notes="old"), {"notes": None}).notes == ""

    def test_none_inputs(self):
        finance = reconcile(None, None)

        assert finance == FinanceState()
        assert finance.currency == "USD"

    def test_current_state_unchanged(self):
        current = FinanceState(cash_out=10)
        reconcile(current, {"cash_out": 20})

        assert current.cash_out == 10

    def test_oversized_integer_becomes_zero(self):
        finance = reconcile(FinanceState(deductible=500), {"cash_out": 10 ** 400})

        assert finance.cash_out == 0
        assert finance.recoverable_expected == 0


@pytest.mark.parametrize("value,expected", [
    (None, 0.0),
    (True, 0.0),
    ("", 0.0),
    ("abc", 0.0),
    ("nan", 0.0),
    ("inf", 0.0),
    (float("-inf"), 0.0),
    ([], 0.0),
    (10 ** 400, 0.0),
    (7, 7.0),
    (-250.5, -250.5),
    ("12,000", 12000.0),
    ("€1,250.50", 1250.5),
    (" £ 90 ", 90.0),
])
def test_to_number(value, expected):
    assert to_number(value) == expected


def test_reconciler_records_audit(service):
    claim = service.pipeline.create_claim_record(
        "j.smith", "MV Nova Star collided with a tug near Singapore"
    )
    audit_count = len(claim.audit_trail)

    finance = FinanceReconciler().apply(claim, {"cash_out": 40000, "deductible": 10000}, by="finance.desk")

    assert claim.finance is finance
    assert finance.outstanding_recovery == 30000
    assert len(claim.audit_trail) == audit_count + 1
    entry = claim.audit_trail[-1]
    assert entry.action == "FINANCE_UPDATED"
    assert entry.by == "finance.desk"
    assert "outstanding=30000" in entry.note
    assert claim.updated_at == entry.at
