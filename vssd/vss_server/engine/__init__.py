"""
Engine module for VSS - optimistic concurrency and listings.

This module handles:
- Request validation and version preconditions (VersionGuard)
- Atomic PutObject transactions and idempotent deletes (TransactionEngine)
- Token-based ListKeyVersions paging (PaginationEngine)

Invariants:
    - Preconditions are checked in the same critical section that applies them
    - Listings are weakly consistent; Get/Put are strongly consistent
"""

from .guard import VersionGuard, validate_key, validate_store_id, validate_version
from .pagination import MAX_PAGE_SIZE_REQUEST, ListKeyVersionsResult, PageToken, PaginationEngine
from .service import VssService
from .transactions import TransactionEngine, next_version

__all__ = [
    "MAX_PAGE_SIZE_REQUEST",
    "ListKeyVersionsResult",
    "PageToken",
    "PaginationEngine",
    "TransactionEngine",
    "VersionGuard",
    "VssService",
    "next_version",
    "validate_key",
    "validate_store_id",
    "validate_version",
]
