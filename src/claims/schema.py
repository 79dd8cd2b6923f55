"""
Canonical claim schema for marine incident claims.

Defines Pydantic models for the first-notification extraction, the cover
classification, the task list, the finance exposure and the claim's
status/audit history.
"""

import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator


def utc_now() -> datetime:
    """Timezone-aware current time (UTC)."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes (legacy documents) are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


# ============================================================================
# Enums
# ============================================================================


class ExtractionSource(str, Enum):
    """Which path produced an extraction or classification."""
    RULES = "rules"
    ORACLE = "oracle"


class CoverType(str, Enum):
    """Insurance covers a marine incident can fall under."""
    PI = "P&I"
    HM = "H&M"
    CHARTERERS_LIABILITY = "Charterers' Liability"
    CARGO = "Cargo"
    FDD = "FD&D"
    UNCLEAR = "Unclear / Needs Review"


# Tie-break order when two covers share a confidence.
COVER_PRIORITY = [
    CoverType.PI,
    CoverType.HM,
    CoverType.CHARTERERS_LIABILITY,
    CoverType.CARGO,
    CoverType.FDD,
    CoverType.UNCLEAR,
]

COVER_ALIASES = {
    "p&i": CoverType.PI,
    "p and i": CoverType.PI,
    "protection & indemnity": CoverType.PI,
    "protection and indemnity": CoverType.PI,
    "h&m": CoverType.HM,
    "h&m (hull)": CoverType.HM,
    "hull & machinery": CoverType.HM,
    "hull and machinery": CoverType.HM,
    "charterers' liability": CoverType.CHARTERERS_LIABILITY,
    "charterers liability": CoverType.CHARTERERS_LIABILITY,
    "charterer's liability": CoverType.CHARTERERS_LIABILITY,
    "charterer liability": CoverType.CHARTERERS_LIABILITY,
    "cargo": CoverType.CARGO,
    "fd&d": CoverType.FDD,
    "fdd": CoverType.FDD,
    "freight, demurrage & defence": CoverType.FDD,
    "unclear": CoverType.UNCLEAR,
    "unclear / needs review": CoverType.UNCLEAR,
}


def normalize_cover_type(name) -> Optional[CoverType]:
    """Map a free-form cover name ("Charterers Liability", "H&M (Hull)") to a CoverType."""
    key = " ".join(str(name or "").lower().replace("’", "'").split())
    return COVER_ALIASES.get(key)


class BusinessRole(str, Enum):
    """Capacity in which the operator is involved with the vessel."""
    VESSEL_OWNER = "vessel_owner"
    CHARTERER = "charterer"


class OwnerRole(str, Enum):
    """Team responsible for an action."""
    CLAIMS = "Claims"
    OPS = "Ops"
    FINANCE = "Finance"
    TECHNICAL = "Technical"
    CHARTERING = "Chartering"


class ActionStatus(str, Enum):
    OPEN = "OPEN"
    DONE = "DONE"


# ============================================================================
# Extraction
# ============================================================================


_IMO_RE = re.compile(r"(?:IMO\s*(?:No\.?)?\s*[:#\-]?\s*)?(\d{7})", re.IGNORECASE)


class Extraction(BaseModel):
    """
    Structured facts derived from a first notification.

    Immutable once created. Every optional text field is either a stripped,
    non-empty string or None, whichever path produced it.
    """

    model_config = ConfigDict(frozen=True)

    raw_text: str = Field(default="", description="Normalized notification text")
    summary: str = Field(default="", description="Bounded summary of the notification")

    vessel_name: Optional[str] = Field(None, description="Vessel name as written (e.g. 'MV Nova Star')")
    imo: Optional[str] = Field(None, description="7-digit IMO number")
    event_date_text: Optional[str] = Field(None, description="Event date as written, never parsed")
    location_text: Optional[str] = Field(None, description="Position, port or place as written")
    counterparty_text: Optional[str] = Field(None, description="Labeled counterparty line")

    incident_keywords: List[str] = Field(default_factory=list, description="Canonical lower-case incident tags")

    source: ExtractionSource = Field(default=ExtractionSource.RULES)
    confidence: float = Field(default=0.45, ge=0.0, le=1.0)
    warnings: List[str] = Field(default_factory=list)

    @field_validator(
        "vessel_name", "imo", "event_date_text", "location_text", "counterparty_text",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v):
        """Collapse whitespace; empty strings become None."""
        if v is None:
            return None
        v = " ".join(str(v).split())
        return v or None

    @field_validator("imo")
    @classmethod
    def validate_imo(cls, v: Optional[str]) -> Optional[str]:
        """Keep only a well-formed 7-digit IMO number."""
        if v is None:
            return None
        match = _IMO_RE.fullmatch(v)
        return match.group(1) if match else None

    @field_validator("incident_keywords", mode="before")
    @classmethod
    def normalize_keywords(cls, v) -> List[str]:
        """Lower-case, strip and de-duplicate tags, keeping first-seen order."""
        tags: List[str] = []
        for item in v or []:
            tag = " ".join(str(item).lower().split())
            if tag and tag not in tags:
                tags.append(tag)
        return tags


# ============================================================================
# Classification
# ============================================================================


class CoverAssessment(BaseModel):
    """One candidate cover with its confidence and the reasons behind it."""
    type: CoverType
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""


def rank_covers(covers: List[CoverAssessment], business_role: BusinessRole) -> List[CoverAssessment]:
    """
    De-duplicate by type (highest confidence wins) and sort.

    Order is descending confidence, ties broken by COVER_PRIORITY. When the
    operator acts as charterer, Charterers' Liability wins every tie.
    """
    best = {}
    for cover in covers:
        current = best.get(cover.type)
        if current is None or cover.confidence > current.confidence:
            best[cover.type] = cover

    def rank(cover: CoverAssessment) -> int:
        if business_role == BusinessRole.CHARTERER and cover.type == CoverType.CHARTERERS_LIABILITY:
            return -1
        return COVER_PRIORITY.index(cover.type)

    return sorted(best.values(), key=lambda c: (-c.confidence, rank(c)))


class Classification(BaseModel):
    """Ranked list of covers that plausibly apply to an incident."""

    covers: List[CoverAssessment] = Field(min_length=1)
    business_role: BusinessRole = Field(default=BusinessRole.VESSEL_OWNER)
    source: ExtractionSource = Field(default=ExtractionSource.RULES)

    @model_validator(mode="after")
    def order_covers(self) -> "Classification":
        self.covers = rank_covers(self.covers, self.business_role)
        return self

    def cover_types(self) -> List[str]:
        return [c.type.value for c in self.covers]

    def has_cover(self, cover_type: CoverType) -> bool:
        return any(c.type == cover_type for c in self.covers)


# ============================================================================
# Actions
# ============================================================================


class Action(BaseModel):
    """A task on the claim's working list."""
    id: str = Field(default_factory=new_id)
    title: str
    owner_role: OwnerRole
    due_at: datetime
    status: ActionStatus = Field(default=ActionStatus.OPEN)
    reminder_at: Optional[datetime] = None
    notes: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("title cannot be empty")
        return v.strip()


# ============================================================================
# Finance
# ============================================================================


class FinanceState(BaseModel):
    """
    Financial exposure of a claim.

    The recoverable and outstanding figures are computed from the inputs on
    every access and every dump; values for them in incoming data are ignored.
    """

    model_config = ConfigDict(frozen=True)

    currency: str = "USD"
    reserve_estimated: float = Field(default=0.0, description="Insurer-side exposure estimate")
    cash_out: float = Field(default=0.0, description="Cash paid out by the operator")
    deductible: float = 0.0
    recovered: float = Field(default=0.0, description="Recovered to date")
    notes: str = ""

    @computed_field
    @property
    def recoverable_expected(self) -> float:
        return max(0.0, self.cash_out - self.deductible)

    @computed_field
    @property
    def outstanding_recovery(self) -> float:
        return max(0.0, self.recoverable_expected - self.recovered)


# ============================================================================
# History
# ============================================================================


class StatusLogEntry(BaseModel):
    at: datetime = Field(default_factory=utc_now)
    by: str
    status: str
    note: str = ""


class AuditEntry(BaseModel):
    at: datetime = Field(default_factory=utc_now)
    by: str = "system"
    action: str
    note: str = ""


# ============================================================================
# Main Claim Schema
# ============================================================================


CLAIM_NUMBER_RE = re.compile(r"^MC-[A-Z0-9]+-\d{4}-\d{4,}$")

INITIAL_PROGRESS_STATUS = "Notification Received"


class Claim(BaseModel):
    """
    A marine incident claim.

    Built once by the pipeline from a first notification; afterwards only the
    progress status, actions, finance and history change.
    """

    id: str = Field(default_factory=new_id, frozen=True)
    claim_number: str = Field(frozen=True, description="MC-<ORG>-<YEAR>-<NNNN>")
    company: str = "Nova Carriers"

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    created_by: str = "system"

    progress_status: str = INITIAL_PROGRESS_STATUS

    extraction: Extraction
    classification: Classification
    actions: List[Action] = Field(default_factory=list)
    finance: FinanceState = Field(default_factory=FinanceState)

    status_log: List[StatusLogEntry] = Field(default_factory=list)
    audit_trail: List[AuditEntry] = Field(default_factory=list)

    schema_version: str = "1.0.0"

    @field_validator("claim_number")
    @classmethod
    def validate_claim_number(cls, v: str) -> str:
        v = (v or "").strip()
        if not CLAIM_NUMBER_RE.match(v):
            raise ValueError(f"Invalid claim number: {v!r}")
        return v

    def get_action(self, action_id: str) -> Optional[Action]:
        for action in self.actions:
            if action.id == action_id:
                return action
        return None

    def cover_types(self) -> List[str]:
        return self.classification.cover_types()

    def add_audit(self, by: Optional[str], action: str, note: str = "", at: Optional[datetime] = None) -> AuditEntry:
        entry = AuditEntry(at=at or utc_now(), by=by or "system", action=action, note=note)
        self.audit_trail.append(entry)
        return entry
