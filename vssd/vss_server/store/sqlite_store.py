"""
SQLite-backed versioned store for VSS.

This module manages one SQLite database per store_id that holds:
- The store's global version
- Every key with its version, value and timestamps

It is the only component that touches persistent state. Writers go through
commit() (advances the global version) or update_keys() (does not); both run
inside a per-store critical section and a single SQLite write transaction.

Invariants:
    - One SQLite file per store
    - A commit is one BEGIN IMMEDIATE ... COMMIT; failures roll back everything
    - Only one writer per store at a time (asyncio lock + SQLite write lock)
    - Readers take no lock and only ever observe committed transactions
    - A store with no database file reads as empty with global version 0
    - A store's file and schema only persist once its first commit succeeds

How to change safely:
    - Schema migrations must be backward compatible
    - New write paths must go through _run_exclusive
    - Keep get() and scan_key_versions() separate: the first is the strong
      read path, the second the weakly consistent listing path

Table schema:
    store_meta:
        - store_id TEXT PRIMARY KEY
        - global_version INTEGER
        - created_at INTEGER (Unix ms)
        - updated_at INTEGER (Unix ms)

    key_values:
        - store_id TEXT
        - key TEXT
        - version INTEGER
        - value BLOB
        - created_at INTEGER (Unix ms)
        - last_updated_at INTEGER (Unix ms)
        - PRIMARY KEY (store_id, key)
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ..errors import InternalServerError
from .locks import StoreLockRegistry
from .models import KeyValue, StoreSnapshot, VersionedValue

logger = logging.getLogger(__name__)


class StoreTransaction:
    """Access to one store inside an open write transaction.

    Handed out by VersionedStore only while the store's write lock is held
    and a BEGIN IMMEDIATE transaction is open, so every read made through it
    is consistent with every write made through it.

    Attributes:
        store_id: Keyspace identifier
        written: Number of keys written so far
        removed: Number of keys removed so far
    """

    def __init__(self, conn: sqlite3.Connection, store_id: str, now_ms: int) -> None:
        self._conn = conn
        self.store_id = store_id
        self._now_ms = now_ms
        self.written = 0
        self.removed = 0

    def global_version(self) -> int:
        """Current global version of the store (0 if never committed)."""
        row = self._conn.execute(
            "SELECT global_version FROM store_meta WHERE store_id = ?",
            (self.store_id,),
        ).fetchone()
        return row["global_version"] if row else 0

    def get(self, key: str) -> VersionedValue | None:
        """Current state of a key, or None if absent."""
        row = self._conn.execute(
            "SELECT version, value FROM key_values WHERE store_id = ? AND key = ?",
            (self.store_id, key),
        ).fetchone()
        if row is None:
            return None
        return VersionedValue(version=row["version"], value=bytes(row["value"]))

    def put(self, key: str, version: int, value: bytes) -> None:
        """Set a key's value and version, creating it if needed."""
        self._conn.execute(
            """
            INSERT INTO key_values (store_id, key, version, value, created_at, last_updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (store_id, key) DO UPDATE SET
                version = excluded.version,
                value = excluded.value,
                last_updated_at = excluded.last_updated_at
            """,
            (self.store_id, key, version, value, self._now_ms, self._now_ms),
        )
        self.written += 1

    def remove_key(self, key: str) -> bool:
        """Remove a key entirely.

        Returns:
            True if the key existed, False otherwise
        """
        cursor = self._conn.execute(
            "DELETE FROM key_values WHERE store_id = ? AND key = ?",
            (self.store_id, key),
        )
        removed = cursor.rowcount > 0
        if removed:
            self.removed += 1
        return removed

    def _advance_global_version(self) -> int:
        self._conn.execute(
            """
            INSERT INTO store_meta (store_id, global_version, created_at, updated_at)
            VALUES (?, 1, ?, ?)
            ON CONFLICT (store_id) DO UPDATE SET
                global_version = global_version + 1,
                updated_at = excluded.updated_at
            """,
            (self.store_id, self._now_ms, self._now_ms),
        )
        return self.global_version()


class VersionedStore:
    """Per-store SQLite storage for versioned key-values.

    This class manages SQLite databases for stores, providing:
    - Strongly consistent point reads (get)
    - Consistent whole-store snapshots
    - Weakly consistent ordered key scans for listings
    - Serialized, atomic commits

    Thread safety:
        Each database connection is created per-operation. Write work runs
        in a worker thread under the store's asyncio lock; SQLite WAL mode
        lets readers proceed while a writer is active.

    Example:
        >>> store = VersionedStore("/var/lib/vss")
        >>> def write(txn):
        ...     txn.put("k1", 0, b"hello")
        >>> await store.commit("store_1", write)
        1
    """

    # SQLite schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -64000,
    ) -> None:
        """Initialize the store.

        Args:
            data_dir: Directory for SQLite database files
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            cache_size_pages: SQLite cache size (negative = KB)
        """
        self.data_dir = Path(data_dir)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages
        self._locks = StoreLockRegistry()
        self._ready: set[str] = set()

    def _get_db_path(self, store_id: str) -> Path:
        """Get database file path for a store."""
        # store_id is opaque; hash it so any string maps to a safe, unique file name
        digest = hashlib.sha256(store_id.encode("utf-8")).hexdigest()
        return self.data_dir / f"store_{digest}.db"

    @contextmanager
    def _get_connection(self, store_id: str) -> Iterator[sqlite3.Connection]:
        """Get a database connection for a store.

        Args:
            store_id: Store identifier

        Yields:
            SQLite connection
        """
        db_path = self._get_db_path(store_id)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute(f"PRAGMA cache_size = {self.cache_size_pages}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            # Commits must be on disk before they are acknowledged
            conn.execute("PRAGMA synchronous = FULL")

            yield conn
        finally:
            conn.close()

    @contextmanager
    def _storage_errors(self, operation: str, store_id: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as e:
            logger.error(
                f"Storage failure during {operation}: {e}",
                extra={"store_id": store_id, "operation": operation},
                exc_info=True,
            )
            raise InternalServerError(
                f"Storage failure during {operation}",
                details={"store_id": store_id},
            ) from e

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema.

        Must run inside the caller's open transaction, so a rolled back first
        commit leaves no schema behind.
        """
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS key_values (
                store_id TEXT NOT NULL,
                key TEXT NOT NULL,
                version INTEGER NOT NULL,
                value BLOB NOT NULL,
                created_at INTEGER NOT NULL,
                last_updated_at INTEGER NOT NULL,
                PRIMARY KEY (store_id, key)
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS store_meta (
                store_id TEXT PRIMARY KEY,
                global_version INTEGER NOT NULL,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            )
        """)
        conn.execute(
            "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
            (self.SCHEMA_VERSION, int(time.time() * 1000)),
        )

    def _discard_store_files(self, store_id: str) -> None:
        """Remove the files of a store whose first commit did not go through."""
        db_path = self._get_db_path(store_id)
        for path in (db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
            path.unlink(missing_ok=True)

    def _store_ready(self, store_id: str) -> bool:
        """Whether the store's database exists with a committed schema."""
        if store_id in self._ready:
            return True
        if not self._get_db_path(store_id).exists():
            return False
        with self._get_connection(store_id) as conn:
            row = conn.execute(
                "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'store_meta'"
            ).fetchone()
        if row is None:
            return False
        self._ready.add(store_id)
        return True

    async def store_exists(self, store_id: str) -> bool:
        """Check if a store has ever been written to."""
        with self._storage_errors("store_exists", store_id):
            return self._store_ready(store_id)

    # --- Strong read path ---

    async def get(self, store_id: str, key: str) -> VersionedValue | None:
        """Get the latest committed state of a key.

        Args:
            store_id: Store identifier
            key: Key to read

        Returns:
            VersionedValue or None if the key does not exist
        """
        with self._storage_errors("get", store_id):
            if not self._store_ready(store_id):
                return None
            with self._get_connection(store_id) as conn:
                row = conn.execute(
                    "SELECT version, value FROM key_values WHERE store_id = ? AND key = ?",
                    (store_id, key),
                ).fetchone()

        if row is None:
            return None
        return VersionedValue(version=row["version"], value=bytes(row["value"]))

    async def snapshot(self, store_id: str) -> StoreSnapshot:
        """Read the global version and every key in one read transaction.

        Args:
            store_id: Store identifier

        Returns:
            StoreSnapshot with entries ordered by key
        """
        with self._storage_errors("snapshot", store_id):
            if not self._store_ready(store_id):
                return StoreSnapshot(store_id=store_id, global_version=0)
            with self._get_connection(store_id) as conn:
                conn.execute("BEGIN")
                try:
                    row = conn.execute(
                        "SELECT global_version FROM store_meta WHERE store_id = ?",
                        (store_id,),
                    ).fetchone()
                    rows = conn.execute(
                        "SELECT key, version, value FROM key_values WHERE store_id = ? ORDER BY key",
                        (store_id,),
                    ).fetchall()
                finally:
                    conn.execute("COMMIT")

        return StoreSnapshot(
            store_id=store_id,
            global_version=row["global_version"] if row else 0,
            entries=tuple(
                KeyValue(key=r["key"], version=r["version"], value=bytes(r["value"]))
                for r in rows
            ),
        )

    # --- Listing read path ---

    async def read_global_version(self, store_id: str) -> int:
        """Read the latest committed global version (0 for a new store)."""
        with self._storage_errors("read_global_version", store_id):
            if not self._store_ready(store_id):
                return 0
            with self._get_connection(store_id) as conn:
                row = conn.execute(
                    "SELECT global_version FROM store_meta WHERE store_id = ?",
                    (store_id,),
                ).fetchone()
        return row["global_version"] if row else 0

    async def scan_key_versions(
        self,
        store_id: str,
        key_prefix: str | None,
        after_key: str | None,
        limit: int,
    ) -> list[KeyValue]:
        """Scan keys and versions in key order.

        Each call is its own read; successive calls may observe commits made
        in between.

        Args:
            store_id: Store identifier
            key_prefix: Only return keys starting with this prefix
            after_key: Only return keys strictly greater than this one
            limit: Maximum number of keys to return

        Returns:
            KeyValues with empty values, ordered by key
        """
        clauses = ["store_id = ?"]
        params: list[Any] = [store_id]
        if key_prefix:
            clauses.append("key >= ? AND substr(key, 1, ?) = ?")
            params.extend([key_prefix, len(key_prefix), key_prefix])
        if after_key is not None:
            clauses.append("key > ?")
            params.append(after_key)
        params.append(limit)

        with self._storage_errors("scan_key_versions", store_id):
            if not self._store_ready(store_id):
                return []
            with self._get_connection(store_id) as conn:
                rows = conn.execute(
                    f"""
                    SELECT key, version FROM key_values
                    WHERE {" AND ".join(clauses)}
                    ORDER BY key
                    LIMIT ?
                    """,
                    params,
                ).fetchall()

        return [KeyValue(key=row["key"], version=row["version"]) for row in rows]

    # --- Write path ---

    async def commit(self, store_id: str, mutate: Callable[[StoreTransaction], None]) -> int:
        """Run a mutation and advance the global version, atomically.

        ``mutate`` runs inside the store's critical section and write
        transaction. If it raises, nothing is written and the exception
        propagates unchanged.

        Args:
            store_id: Store identifier
            mutate: Callable that validates and applies changes via the transaction

        Returns:
            The new global version

        Raises:
            InternalServerError: If SQLite fails
        """
        return await self._run_exclusive("commit", store_id, self._commit_sync, mutate)

    async def update_keys(self, store_id: str, mutate: Callable[[StoreTransaction], bool]) -> bool:
        """Run a key mutation without touching the global version.

        Used by the standalone delete path. A store that does not exist yet is
        left uncreated and ``mutate`` is not called.

        Returns:
            Whatever ``mutate`` returned, or False if the store does not exist
        """
        return await self._run_exclusive("update_keys", store_id, self._update_sync, mutate)

    async def _run_exclusive(
        self,
        operation: str,
        store_id: str,
        fn: Callable[..., Any],
        mutate: Callable[[StoreTransaction], Any],
    ) -> Any:
        await self._locks.acquire(store_id)

        # Once the worker thread starts the write runs to completion, even if
        # the caller is cancelled; the lock is held until it finishes.
        work = asyncio.ensure_future(asyncio.to_thread(fn, store_id, mutate))

        def finish(done: asyncio.Future[Any]) -> None:
            self._locks.release(store_id)
            # Retrieve the outcome here: a cancelled caller never will
            if not done.cancelled():
                done.exception()

        work.add_done_callback(finish)

        with self._storage_errors(operation, store_id):
            return await asyncio.shield(work)

    def _commit_sync(self, store_id: str, mutate: Callable[[StoreTransaction], None]) -> int:
        now = int(time.time() * 1000)
        creating = not self._store_ready(store_id)

        try:
            with self._get_connection(store_id) as conn:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    if creating:
                        self._create_schema(conn)
                    txn = StoreTransaction(conn, store_id, now)
                    mutate(txn)
                    new_version = txn._advance_global_version()
                    conn.execute("COMMIT")
                except Exception:
                    conn.execute("ROLLBACK")
                    raise
        except Exception:
            # A store only comes into existence with its first successful commit
            if creating:
                self._discard_store_files(store_id)
            raise

        self._ready.add(store_id)

        logger.debug(
            "Committed transaction",
            extra={
                "store_id": store_id,
                "global_version": new_version,
                "written": txn.written,
                "removed": txn.removed,
            },
        )
        return new_version

    def _update_sync(self, store_id: str, mutate: Callable[[StoreTransaction], bool]) -> bool:
        if not self._store_ready(store_id):
            return False

        with self._get_connection(store_id) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                changed = mutate(StoreTransaction(conn, store_id, int(time.time() * 1000)))
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

        return changed
