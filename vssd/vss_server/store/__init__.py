"""
Store module for VSS - durable versioned key-value state.

This module handles:
- Per-store SQLite databases (global version + key/version/value rows)
- The per-store write critical section
- Strong point reads and weakly consistent ordered scans

Invariants:
    - Persistent state is only mutated through VersionedStore.commit/update_keys
    - All writes within one commit are atomic
    - SQLite uses WAL mode for concurrent reads during writes

How to change safely:
    - Test schema migrations thoroughly before deployment
    - Use transactions for all multi-statement operations
"""

from .locks import StoreLockRegistry
from .models import (
    BASELINE_VERSION,
    FIRST_VERSION,
    MAX_VERSION,
    UNCONDITIONAL_VERSION,
    DeleteItem,
    KeyValue,
    MutationPlan,
    StoreSnapshot,
    VersionedValue,
    WriteItem,
)
from .sqlite_store import StoreTransaction, VersionedStore

__all__ = [
    "BASELINE_VERSION",
    "FIRST_VERSION",
    "MAX_VERSION",
    "UNCONDITIONAL_VERSION",
    "DeleteItem",
    "KeyValue",
    "MutationPlan",
    "StoreLockRegistry",
    "StoreSnapshot",
    "StoreTransaction",
    "VersionedStore",
    "VersionedValue",
    "WriteItem",
]
