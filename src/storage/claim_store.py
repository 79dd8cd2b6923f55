"""
SQLite-based claim storage.

Each claim is one JSON document keyed by its internal id, with the claim
number held in a UNIQUE column. No external database setup required.

Documents written by older versions of the claims tool (camelCase keys,
`paid`/`cashOut`, stored `recoverable`/`outstanding` figures) are resolved to
the canonical Claim shape once, when they are loaded.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..claims.schema import (
    INITIAL_PROGRESS_STATUS,
    ActionStatus,
    Claim,
    CoverType,
    OwnerRole,
    as_utc,
    new_id,
    normalize_cover_type,
)
from ..utils.config import get_settings

logger = logging.getLogger(__name__)

LEGACY_RULE_CONFIDENCE = 0.45
LEGACY_UNCLEAR_CONFIDENCE = 0.25


# =============================================================================
# Legacy document resolution
# =============================================================================


def _pick(doc: Dict[str, Any], names: Sequence[str], default: Any = None) -> Any:
    """First non-null value among `names` (canonical name first, then aliases)."""
    for name in names:
        value = doc.get(name)
        if value is not None:
            return value
    return default


def _compact(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in doc.items() if v is not None}


def _resolve_extraction(ext: Dict[str, Any]) -> Dict[str, Any]:
    confidence = _pick(ext, ("confidence",), LEGACY_RULE_CONFIDENCE)
    source = _pick(ext, ("source",))
    if source is None:
        source = "oracle" if float(confidence) > LEGACY_RULE_CONFIDENCE else "rules"
    return _compact({
        "raw_text": _pick(ext, ("raw_text", "rawText"), ""),
        "summary": _pick(ext, ("summary",), ""),
        "vessel_name": _pick(ext, ("vessel_name", "vesselName")),
        "imo": _pick(ext, ("imo",)),
        "event_date_text": _pick(ext, ("event_date_text", "eventDateText")),
        "location_text": _pick(ext, ("location_text", "locationText")),
        "counterparty_text": _pick(ext, ("counterparty_text", "counterpartyText")),
        "incident_keywords": _pick(ext, ("incident_keywords", "incidentKeywords"), []),
        "source": source,
        "confidence": confidence,
        "warnings": _pick(ext, ("warnings",), []),
    })


def _resolve_classification(cls: Dict[str, Any]) -> Dict[str, Any]:
    covers = []
    for item in cls.get("covers") or []:
        cover_type = normalize_cover_type(item.get("type"))
        if cover_type is None:
            logger.debug(f"Dropping unknown legacy cover type: {item.get('type')!r}")
            continue
        covers.append({
            "type": cover_type,
            "confidence": max(0.0, min(1.0, float(_pick(item, ("confidence", "score"), 0.0)))),
            "reasoning": _pick(item, ("reasoning",), ""),
        })
    if not covers:
        covers = [{"type": CoverType.UNCLEAR, "confidence": LEGACY_UNCLEAR_CONFIDENCE, "reasoning": ""}]
    return _compact({
        "covers": covers,
        "business_role": _pick(cls, ("business_role", "businessRole")),
        "source": _pick(cls, ("source",)),
    })


def _resolve_action(action: Dict[str, Any], claim_created_at: Any) -> Dict[str, Any]:
    owner_role = _pick(action, ("owner_role", "ownerRole"), OwnerRole.CLAIMS.value)
    if owner_role not in {role.value for role in OwnerRole}:
        owner_role = OwnerRole.CLAIMS.value
    status = str(_pick(action, ("status",), ActionStatus.OPEN.value)).upper()
    if status not in {s.value for s in ActionStatus}:
        status = ActionStatus.OPEN.value
    return _compact({
        "id": _pick(action, ("id",)),
        "title": _pick(action, ("title",)),
        "owner_role": owner_role,
        "due_at": _pick(action, ("due_at", "dueAt"), claim_created_at),
        "status": status,
        "reminder_at": _pick(action, ("reminder_at", "reminderAt")),
        "notes": _pick(action, ("notes",), ""),
        "created_at": _pick(action, ("created_at", "createdAt"), claim_created_at),
        "updated_at": _pick(action, ("updated_at", "updatedAt"), claim_created_at),
    })


def _resolve_finance(fin: Dict[str, Any]) -> Dict[str, Any]:
    # Derived figures (recoverable/outstanding under any name) are recomputed.
    return _compact({
        "currency": _pick(fin, ("currency",)),
        "reserve_estimated": _pick(fin, ("reserve_estimated", "reserveEstimated")),
        "cash_out": _pick(fin, ("cash_out", "cashOut", "paid")),
        "deductible": _pick(fin, ("deductible",)),
        "recovered": _pick(fin, ("recovered",)),
        "notes": _pick(fin, ("notes",)),
    })


def is_legacy_document(doc: Dict[str, Any]) -> bool:
    return "claim_number" not in doc or "claimNumber" in doc


def resolve_legacy_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a legacy (camelCase) claim document to the canonical Claim shape.

    Args:
        doc: Claim document as stored by the earlier JSON-file tool

    Returns:
        Dict accepted by Claim.model_validate
    """
    created_at = _pick(doc, ("created_at", "createdAt"))
    extraction = _pick(doc, ("extraction",), {})
    if "vesselName" in doc and not _pick(extraction, ("vessel_name", "vesselName")):
        extraction = {**extraction, "vesselName": doc["vesselName"]}

    return _compact({
        "id": _pick(doc, ("id",), new_id()),
        "claim_number": _pick(doc, ("claim_number", "claimNumber")),
        "company": _pick(doc, ("company",)),
        "created_at": created_at,
        "updated_at": _pick(doc, ("updated_at", "updatedAt"), created_at),
        "created_by": _pick(doc, ("created_by", "createdBy")),
        "progress_status": _pick(doc, ("progress_status", "progressStatus"), INITIAL_PROGRESS_STATUS),
        "extraction": _resolve_extraction(extraction),
        "classification": _resolve_classification(_pick(doc, ("classification",), {})),
        "actions": [_resolve_action(a, created_at) for a in _pick(doc, ("actions",), [])],
        "finance": _resolve_finance(_pick(doc, ("finance",), {})),
        "status_log": _pick(doc, ("status_log", "statusLog"), []),
        "audit_trail": _pick(doc, ("audit_trail", "auditTrail"), []),
        "schema_version": _pick(doc, ("schema_version", "schemaVersion")),
    })


def load_claim_document(doc: Dict[str, Any]) -> Claim:
    if is_legacy_document(doc):
        doc = resolve_legacy_document(doc)
    return Claim.model_validate(doc)


# =============================================================================
# Store
# =============================================================================


class ClaimStoreSession:
    """Claim reads and writes over one open connection."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, claim_id: str) -> Optional[Claim]:
        row = self.conn.execute("SELECT data FROM claims WHERE id = ?", (claim_id,)).fetchone()
        return load_claim_document(json.loads(row["data"])) if row else None

    def get_by_number(self, claim_number: str) -> Optional[Claim]:
        row = self.conn.execute(
            "SELECT data FROM claims WHERE claim_number = ?", (claim_number,)
        ).fetchone()
        return load_claim_document(json.loads(row["data"])) if row else None

    def list_all(self) -> List[Claim]:
        rows = self.conn.execute("SELECT data FROM claims ORDER BY created_at DESC").fetchall()
        return [load_claim_document(json.loads(row["data"])) for row in rows]

    def claim_numbers(self) -> List[str]:
        return [row["claim_number"] for row in self.conn.execute("SELECT claim_number FROM claims")]

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM claims").fetchone()[0]

    def upsert(self, claim: Claim) -> Claim:
        self.conn.execute("""
            INSERT INTO claims (id, claim_number, created_at, updated_at, data)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                claim_number = excluded.claim_number,
                updated_at = excluded.updated_at,
                data = excluded.data
        """, (
            claim.id,
            claim.claim_number,
            as_utc(claim.created_at).isoformat(),
            as_utc(claim.updated_at).isoformat(),
            claim.model_dump_json(),
        ))
        return claim


class ClaimStore:
    """
    SQLite-based storage for marine claims.

    Usage:
        store = ClaimStore(Path("data/claims.db"))

        # Save a claim
        store.upsert(claim)

        # Retrieve
        claim = store.get(claim_id)

        # Allocate and insert atomically
        with store.transaction() as session:
            numbers = session.claim_numbers()
            session.upsert(new_claim)
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the claim store."""
        self.db_path = Path(db_path or get_settings().claims_db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Create tables if they don't exist."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS claims (
                    id TEXT PRIMARY KEY,
                    claim_number TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,

                    -- Canonical Claim document (JSON)
                    data TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_claims_created ON claims(created_at)")

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get a database connection (autocommit; transactions are explicit)."""
        conn = sqlite3.connect(self.db_path, timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[ClaimStoreSession]:
        """
        Serialize a read-modify-write against other writers.

        Takes the SQLite write lock up front (BEGIN IMMEDIATE); commits on
        success, rolls back if the block raises.
        """
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield ClaimStoreSession(conn)
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def get(self, claim_id: str) -> Optional[Claim]:
        """
        Retrieve a claim by id.

        Returns:
            Claim or None if not found
        """
        with self._get_connection() as conn:
            return ClaimStoreSession(conn).get(claim_id)

    def get_by_number(self, claim_number: str) -> Optional[Claim]:
        with self._get_connection() as conn:
            return ClaimStoreSession(conn).get_by_number(claim_number)

    def list_all(self) -> List[Claim]:
        """All claims, newest first."""
        with self._get_connection() as conn:
            return ClaimStoreSession(conn).list_all()

    def claim_numbers(self) -> List[str]:
        with self._get_connection() as conn:
            return ClaimStoreSession(conn).claim_numbers()

    def count(self) -> int:
        with self._get_connection() as conn:
            return ClaimStoreSession(conn).count()

    def upsert(self, claim: Claim) -> Claim:
        """Insert or replace a claim document."""
        with self._get_connection() as conn:
            ClaimStoreSession(conn).upsert(claim)
        logger.info(f"Saved claim {claim.claim_number} ({claim.id})")
        return claim

    def import_legacy_json(self, path: Path) -> int:
        """
        Import claims from the earlier JSON-file store.

        Args:
            path: File holding {"claims": [...]} (or a bare list)

        Returns:
            Number of claims imported; claims whose id or number already
            exists are skipped
        """
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        documents = data.get("claims", []) if isinstance(data, dict) else data

        imported = 0
        with self.transaction() as session:
            existing_numbers = set(session.claim_numbers())
            for doc in documents or []:
                claim = load_claim_document(doc)
                if claim.claim_number in existing_numbers or session.get(claim.id) is not None:
                    logger.warning(f"Skipping legacy claim {claim.claim_number}: already stored")
                    continue
                session.upsert(claim)
                existing_numbers.add(claim.claim_number)
                imported += 1

        logger.info(f"Imported {imported} legacy claim(s) from {path}")
        return imported


# =============================================================================
# Convenience Functions
# =============================================================================

@lru_cache
def get_claim_store() -> ClaimStore:
    """Get the default claim store (singleton, for scripts)."""
    return ClaimStore()
