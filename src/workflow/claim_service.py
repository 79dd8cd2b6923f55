"""
Claim lifecycle service.

Creates claims from first notifications and applies the post-creation
mutations (progress, actions, finance, reminders). Every mutation is a
read-modify-write inside one store transaction and leaves an audit entry.
"""

import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterator, List, Mapping, Optional, Union

from ..claims.claim_number import allocate
from ..claims.errors import ActionNotFoundError, ClaimNotFoundError, ClaimValidationError
from ..claims.finance import FinanceReconciler
from ..claims.pipeline import ClaimPipeline, validate_notification_text
from ..claims.planner import plan
from ..claims.schema import (
    Action,
    ActionStatus,
    Claim,
    FinanceState,
    StatusLogEntry,
    as_utc,
    utc_now,
)
from ..storage.claim_store import ClaimStore, ClaimStoreSession
from ..utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Marks an argument the caller did not pass (distinct from an explicit None).
UNSET: Any = _Unset()

# Reminder offsets (snooze, look-ahead window) are capped at ten years.
MAX_REMINDER_DAYS = 3650


# =============================================================================
# Read models
# =============================================================================


@dataclass
class ClaimSummary:
    """One row of the claim list."""
    id: str
    claim_number: str
    vessel_name: Optional[str]
    event_date_text: Optional[str]
    location_text: Optional[str]
    progress_status: str
    cover_types: list[str] = field(default_factory=list)
    currency: str = "USD"
    reserve_estimated: float = 0.0
    recovered: float = 0.0
    outstanding_recovery: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_claim(cls, claim: Claim) -> "ClaimSummary":
        return cls(
            id=claim.id,
            claim_number=claim.claim_number,
            vessel_name=claim.extraction.vessel_name,
            event_date_text=claim.extraction.event_date_text,
            location_text=claim.extraction.location_text,
            progress_status=claim.progress_status,
            cover_types=claim.cover_types(),
            currency=claim.finance.currency,
            reserve_estimated=claim.finance.reserve_estimated,
            recovered=claim.finance.recovered,
            outstanding_recovery=claim.finance.outstanding_recovery,
            created_at=claim.created_at,
            updated_at=claim.updated_at,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "claim_number": self.claim_number,
            "vessel_name": self.vessel_name,
            "event_date_text": self.event_date_text,
            "location_text": self.location_text,
            "progress_status": self.progress_status,
            "cover_types": self.cover_types,
            "currency": self.currency,
            "reserve_estimated": self.reserve_estimated,
            "recovered": self.recovered,
            "outstanding_recovery": self.outstanding_recovery,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class ReminderItem:
    """An open action whose reminder is due."""
    claim_id: str
    claim_number: str
    vessel_name: Optional[str]
    progress_status: str
    cover_types: list[str]
    action_id: str
    action_title: str
    owner_role: str
    reminder_at: datetime
    due_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "claim_id": self.claim_id,
            "claim_number": self.claim_number,
            "vessel_name": self.vessel_name,
            "progress_status": self.progress_status,
            "cover_types": self.cover_types,
            "action_id": self.action_id,
            "action_title": self.action_title,
            "owner_role": self.owner_role,
            "reminder_at": self.reminder_at.isoformat(),
            "due_at": self.due_at.isoformat() if self.due_at else None,
        }


# =============================================================================
# Helper Functions
# =============================================================================


def _require_by(by: Optional[str]) -> str:
    by = (by or "").strip()
    if not by:
        raise ClaimValidationError("'by' is required")
    return by


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Datetime or ISO-8601 string (trailing 'Z' allowed) to aware UTC; None if unparsable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    text = str(value).strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def _as_days(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return math.nan


def _snooze_days(snooze_days: Any) -> float:
    days = _as_days(snooze_days)
    if not math.isfinite(days) or days <= 0 or days > MAX_REMINDER_DAYS:
        raise ClaimValidationError(f"snooze_days must be a positive number up to {MAX_REMINDER_DAYS}")
    return days


def _window_days(days_ahead: Any) -> float:
    days = _as_days(days_ahead)
    if not math.isfinite(days) or days < 0 or days > MAX_REMINDER_DAYS:
        raise ClaimValidationError(f"days_ahead must be between 0 and {MAX_REMINDER_DAYS}")
    return days


# =============================================================================
# Service
# =============================================================================


class ClaimService:
    """
    Claim lifecycle operations over an injected ClaimStore.

    Usage:
        service = ClaimService(ClaimStore(Path("data/claims.db")))
        claim = service.create_claim("j.smith", notification_text)
        service.update_progress(claim.id, "j.smith", "Survey Appointed")
    """

    def __init__(
        self,
        store: ClaimStore,
        pipeline: Optional[ClaimPipeline] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.pipeline = pipeline or ClaimPipeline(settings=self.settings)
        self.finance = FinanceReconciler()

    @contextmanager
    def _editing(self, claim_id: str) -> Iterator[Claim]:
        """Load a claim inside a write transaction and store it back on success."""
        with self.store.transaction() as session:
            claim = self._load(session, claim_id)
            yield claim
            session.upsert(claim)

    @staticmethod
    def _load(session: ClaimStoreSession, claim_id: str) -> Claim:
        claim = session.get(claim_id)
        if claim is None:
            raise ClaimNotFoundError(claim_id)
        return claim

    @staticmethod
    def _action(claim: Claim, action_id: str) -> Action:
        action = claim.get_action(action_id)
        if action is None:
            raise ActionNotFoundError(claim.id, action_id)
        return action

    # ------------------------------------------------------------------
    # Creation and reads
    # ------------------------------------------------------------------

    def create_claim(self, created_by: Optional[str], first_notification_text: Optional[str]) -> Claim:
        """
        Create and store a claim from a first notification.

        Understanding (including any oracle call) runs before the write lock
        is taken; number allocation and insert happen in one transaction.

        Raises:
            ClaimValidationError: Missing creator or empty notification text
        """
        created_by = (created_by or "").strip()
        if not created_by:
            raise ClaimValidationError("created_by is required")
        validate_notification_text(first_notification_text)

        extraction, classification = self.pipeline.understand(first_notification_text)

        with self.store.transaction() as session:
            created_at = utc_now()
            claim_number = allocate(session.claim_numbers(), created_at.year, self.settings.company_code)
            claim = self.pipeline.assemble(created_by, extraction, classification, claim_number, created_at)
            session.upsert(claim)

        logger.info(
            f"Created claim {claim.claim_number} ({claim.id}): "
            f"vessel={claim.extraction.vessel_name!r}, covers={claim.cover_types()}"
        )
        return claim

    def list_claims(self) -> List[ClaimSummary]:
        """Claim summaries, newest first."""
        return [ClaimSummary.from_claim(c) for c in self.store.list_all()]

    def get_claim(self, claim_id: str) -> Claim:
        claim = self.store.get(claim_id)
        if claim is None:
            raise ClaimNotFoundError(claim_id)
        return claim

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_progress(self, claim_id: str, by: Optional[str], progress_status: Optional[str]) -> Claim:
        """Set the progress status; appends to the status log and audit trail."""
        by = _require_by(by)
        progress_status = (progress_status or "").strip()
        if not progress_status:
            raise ClaimValidationError("progress_status is required")

        with self._editing(claim_id) as claim:
            now = utc_now()
            claim.progress_status = progress_status
            claim.updated_at = now
            claim.status_log.append(StatusLogEntry(at=now, by=by, status=progress_status, note="Progress updated"))
            claim.add_audit(by, "STATUS_UPDATED", f"Progress set to: {progress_status}", at=now)

        logger.info(f"Progress of {claim.claim_number} set to {progress_status!r} by {by}")
        return claim

    def update_action(
        self,
        claim_id: str,
        action_id: str,
        by: Optional[str],
        status: Union[ActionStatus, str, None] = None,
        notes: Optional[str] = None,
        reminder_at: Union[datetime, str, None] = UNSET,
    ) -> Action:
        """
        Update one action.

        Args:
            status: OPEN or DONE (None leaves it unchanged)
            notes: Replacement notes (None leaves them unchanged)
            reminder_at: None clears the reminder; a datetime or ISO string
                sets it; an unparsable string is ignored

        Raises:
            ClaimValidationError: Missing 'by' or unknown status
            ClaimNotFoundError / ActionNotFoundError: Unknown ids
        """
        by = _require_by(by)
        new_status = None
        if status is not None:
            try:
                new_status = ActionStatus(str(getattr(status, "value", status)).strip().upper())
            except ValueError:
                raise ClaimValidationError(f"Invalid action status: {status!r}")

        with self._editing(claim_id) as claim:
            action = self._action(claim, action_id)
            now = utc_now()

            if new_status is not None:
                action.status = new_status
            if isinstance(notes, str):
                action.notes = notes
            if reminder_at is None:
                action.reminder_at = None
            elif reminder_at is not UNSET:
                parsed = parse_datetime(reminder_at)
                if parsed is not None:
                    action.reminder_at = parsed
                else:
                    logger.debug(f"Ignoring unparsable reminder_at: {reminder_at!r}")

            action.updated_at = now
            claim.updated_at = now
            claim.add_audit(by, "ACTION_UPDATED", f"Action updated: {action.title} (status={action.status.value})", at=now)

        return action

    def update_finance(self, claim_id: str, by: Optional[str], patch: Optional[Mapping[str, Any]]) -> FinanceState:
        """Reconcile a finance patch into the claim."""
        by = _require_by(by)
        if patch is None:
            raise ClaimValidationError("finance patch is required")

        with self._editing(claim_id) as claim:
            finance = self.finance.apply(claim, patch, by)
        return finance

    def replan_actions(self, claim_id: str, by: Optional[str]) -> List[Action]:
        """
        Add planned actions missing from the claim's list.

        Existing actions are never removed or changed.

        Returns:
            The newly added actions
        """
        by = _require_by(by)

        with self._editing(claim_id) as claim:
            now = utc_now()
            present = {a.title.casefold() for a in claim.actions}
            added = [a for a in plan(claim.classification, now) if a.title.casefold() not in present]
            claim.actions.extend(added)
            claim.updated_at = now
            claim.add_audit(by, "ACTIONS_REPLANNED", f"Added {len(added)} planned action(s)", at=now)

        logger.info(f"Replanned {claim.claim_number}: {len(added)} action(s) added")
        return added

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    def get_due_reminders(
        self,
        before: Union[datetime, str, None] = None,
        days_ahead: Optional[float] = None,
    ) -> List[ReminderItem]:
        """
        OPEN actions with a reminder at or before the cutoff, soonest first.

        Args:
            before: Explicit cutoff
            days_ahead: Cutoff as now + days (default: reminder window setting)
        """
        if before is not None:
            cutoff = parse_datetime(before)
            if cutoff is None:
                raise ClaimValidationError(f"Invalid 'before' date: {before!r}")
        else:
            window = _window_days(self.settings.reminder_window_days if days_ahead is None else days_ahead)
            cutoff = utc_now() + timedelta(days=window)

        items = []
        for claim in self.store.list_all():
            for action in claim.actions:
                if action.status != ActionStatus.OPEN or action.reminder_at is None:
                    continue
                reminder_at = as_utc(action.reminder_at)
                if reminder_at > cutoff:
                    continue
                items.append(ReminderItem(
                    claim_id=claim.id,
                    claim_number=claim.claim_number,
                    vessel_name=claim.extraction.vessel_name,
                    progress_status=claim.progress_status,
                    cover_types=claim.cover_types(),
                    action_id=action.id,
                    action_title=action.title,
                    owner_role=action.owner_role.value,
                    reminder_at=reminder_at,
                    due_at=action.due_at,
                ))

        items.sort(key=lambda item: item.reminder_at)
        return items

    def snooze_action_reminder(self, claim_id: str, action_id: str, by: Optional[str], snooze_days: Any) -> Action:
        """Push the action's reminder (or now, if unset) forward by `snooze_days`."""
        by = _require_by(by)
        days = _snooze_days(snooze_days)

        with self._editing(claim_id) as claim:
            action = self._action(claim, action_id)
            now = utc_now()
            base = as_utc(action.reminder_at) if action.reminder_at else now
            try:
                action.reminder_at = base + timedelta(days=days)
            except OverflowError:
                raise ClaimValidationError(f"Reminder cannot be snoozed past {base.isoformat()}") from None
            action.updated_at = now
            claim.updated_at = now
            claim.add_audit(
                by, "REMINDER_SNOOZED",
                f"Reminder snoozed by {days:g} day(s) for action: {action.title}",
                at=now,
            )

        return action
