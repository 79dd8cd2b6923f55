"""
Sequential claim numbers: MC-<ORG>-<YEAR>-<NNNN>, restarting every year.

Allocation is only collision-free when callers serialize it against the
claim store (see ClaimStore.transaction).
"""

import re
from typing import Iterable

PREFIX = "MC"
DEFAULT_ORG = "NOVA"


def format_claim_number(org: str, year: int, seq: int) -> str:
    return f"{PREFIX}-{org}-{year}-{seq:04d}"


def allocate(existing_claim_numbers: Iterable[str], year: int, org: str = DEFAULT_ORG) -> str:
    """
    Next claim number for `org` in `year`.

    Args:
        existing_claim_numbers: Claim numbers already in the store
        year: Calendar year of the new claim
        org: Organisation code

    Returns:
        Highest existing sequence for that org/year plus one, zero-padded
    """
    pattern = re.compile(rf"^{PREFIX}-{re.escape(org)}-{year}-(\d{{4,}})$")
    highest = 0
    for number in existing_claim_numbers or []:
        match = pattern.match(str(number or "").strip())
        if match:
            highest = max(highest, int(match.group(1)))
    return format_claim_number(org, year, highest + 1)
