"""
VSS Server - Versioned Storage Service backend.

This package implements a multi-tenant key-value store built on:
- Stores (keyspaces) identified by an opaque store_id
- Per-key versions and a per-store global version
- Optimistic concurrency control for all writes
- SQLite as the durable, transactional backing store

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌─────────────────┐
    │   Client    │────▶│    HTTP     │────▶│  Version Guard  │
    │   (SDK)     │     │   Server    │     │ (preconditions) │
    └─────────────┘     └──────┬──────┘     └────────┬────────┘
                               │                     │
                               │                     ▼
                               │            ┌─────────────────┐
                               │            │   Transaction   │
                               │            │     Engine      │
                               │            └────────┬────────┘
                               ▼                     ▼
                        ┌─────────────┐     ┌─────────────────┐
                        │ Pagination  │────▶│  SQLite Store   │
                        │   Engine    │     │ (durable state) │
                        └─────────────┘     └─────────────────┘

Invariants:
    - global_version advances by exactly 1 per committed PutObject
    - Writes to one store_id are serialized; stores never share a lock
    - Reads never observe a partially applied transaction
    - A rejected request leaves the store unchanged

How to change safely:
    - Keep the wire field names and error codes fixed
    - Any new write path must run inside the per-store critical section
    - Listing and Get are separate read paths; do not merge them

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
