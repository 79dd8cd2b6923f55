"""Claim lifecycle workflow: creation, progress, actions, finance and reminders."""

from .claim_service import (
    UNSET,
    ClaimService,
    ClaimSummary,
    ReminderItem,
    parse_datetime,
)

__all__ = [
    "UNSET",
    "ClaimService",
    "ClaimSummary",
    "ReminderItem",
    "parse_datetime",
]
