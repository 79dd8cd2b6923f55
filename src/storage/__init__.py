"""
Storage module for persisting claims.

Provides SQLite-based storage for marine claim documents, including
import of the earlier JSON-file store.
"""

from .claim_store import (
    ClaimStore,
    ClaimStoreSession,
    get_claim_store,
    load_claim_document,
    resolve_legacy_document,
)

__all__ = [
    "ClaimStore",
    "ClaimStoreSession",
    "get_claim_store",
    "load_claim_document",
    "resolve_legacy_document",
]
