"""
Tests for claim number allocation.
"""

import pytest

from src.claims.claim_number import allocate, format_claim_number


def test_next_in_sequence():
    existing = [f"MC-NOVA-2026-{n:04d}" for n in range(1, 8)]
    assert allocate(existing, 2026) == "MC-NOVA-2026-0008"


def test_sequence_restarts_each_year():
    existing = [f"MC-NOVA-2025-{n:04d}" for n in range(1, 40)]
    assert allocate(existing, 2026) == "MC-NOVA-2026-0001"


def test_empty_store():
    assert allocate([], 2026) == "MC-NOVA-2026-0001"


def test_gaps_use_highest():
    assert allocate(["MC-NOVA-2026-0002", "MC-NOVA-2026-0009"], 2026) == "MC-NOVA-2026-0010"


@pytest.mark.parametrize("noise", [
    "MC-ACME-2026-0042",
    "MC-NOVA-2026-12",
    "MC-NOVA-2026-00x5",
    "nonsense",
    "",
    None,
])
def test_foreign_and_malformed_numbers_ignored(noise):
    assert allocate(["MC-NOVA-2026-0003", noise], 2026) == "MC-NOVA-2026-0004"


def test_other_org():
    assert allocate(["MC-NOVA-2026-0005"], 2026, org="ACME") == "MC-ACME-2026-0001"


def test_grows_past_four_digits():
    assert allocate(["MC-NOVA-2026-9999"], 2026) == "MC-NOVA-2026-10000"


def test_format():
    assert format_claim_number("NOVA", 2026, 7) == "MC-NOVA-2026-0007"
