"""
Transaction engine for VSS.

This module applies PutObject transactions and standalone deletes:
- PutObject validates with the VersionGuard and applies every write and
  delete in one store commit, advancing the global version once
- DeleteObject is idempotent: an absent key or a version mismatch is a
  successful no-op, and the global version is left alone

Both delete paths use the same StoreTransaction.remove_key primitive; only
the preconditions around it differ.

Invariants:
    - A PutObject either applies every item or none
    - global_version advances by exactly 1 per successful PutObject
    - Conditional writes store previous version + 1 (0 for a first write)
    - Unconditional writes store the baseline version 1

How to change safely:
    - Keep the strict (batched) and lenient (standalone) delete paths separate
    - Never read outside the transaction when deciding what to write
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ..errors import ConflictError, NoSuchKeyError
from ..store import (
    BASELINE_VERSION,
    FIRST_VERSION,
    DeleteItem,
    KeyValue,
    MutationPlan,
    StoreTransaction,
    VersionedStore,
    VersionedValue,
    WriteItem,
)
from .guard import VersionGuard, validate_key, validate_store_id, validate_version

logger = logging.getLogger(__name__)


def next_version(item: WriteItem, current: VersionedValue | None) -> int:
    """Version a key will have after ``item`` is written."""
    if item.unconditional:
        return BASELINE_VERSION
    if current is None:
        return FIRST_VERSION
    return current.version + 1


class TransactionEngine:
    """Applies mutations to a VersionedStore.

    Attributes:
        store: Backing store
        guard: Precondition validator

    Example:
        >>> engine = TransactionEngine(store)
        >>> await engine.put_object("store_1", 0, [WriteItem("k1", 0, b"A")])
        1
        >>> (await engine.get_object("store_1", "k1")).version
        0
    """

    def __init__(self, store: VersionedStore, guard: VersionGuard | None = None) -> None:
        self.store = store
        self.guard = guard or VersionGuard()

    async def get_object(self, store_id: str, key: str) -> KeyValue:
        """Read the latest committed value of a key.

        Raises:
            InvalidRequestError: Missing store_id or key
            NoSuchKeyError: If the key does not exist
        """
        validate_store_id(store_id)
        validate_key(key)

        current = await self.store.get(store_id, key)
        if current is None:
            raise NoSuchKeyError(store_id, key)
        return KeyValue(key=key, version=current.version, value=current.value)

    async def put_object(
        self,
        store_id: str,
        global_version: int | None = None,
        transaction_items: Sequence[WriteItem] = (),
        delete_items: Sequence[DeleteItem] = (),
    ) -> int:
        """Atomically write and delete keys.

        Args:
            store_id: Store identifier
            global_version: Expected current global version, or None to skip the check
            transaction_items: Keys to write
            delete_items: Keys to delete

        Returns:
            The store's new global version

        Raises:
            InvalidRequestError: Malformed request or duplicate keys
            ConflictError: A global or key version precondition failed
            InternalServerError: The commit failed; nothing was written
        """
        plan = MutationPlan(
            store_id=store_id,
            global_version=global_version,
            writes=tuple(transaction_items),
            deletes=tuple(delete_items),
        )
        self.guard.validate_request(plan)

        def mutate(txn: StoreTransaction) -> None:
            current = self.guard.check(plan, txn)
            self._apply(plan, txn, current)

        try:
            new_global_version = await self.store.commit(store_id, mutate)
        except ConflictError as e:
            logger.info(
                f"Rejected PutObject: {e.message}",
                extra={"store_id": store_id, **e.details},
            )
            raise

        logger.debug(
            "Applied PutObject",
            extra={
                "store_id": store_id,
                "global_version": new_global_version,
                "writes": len(plan.writes),
                "deletes": len(plan.deletes),
            },
        )
        return new_global_version

    async def delete_object(self, store_id: str, key: str, version: int) -> None:
        """Delete a key if it exists and (unless version is -1) has that version.

        Never fails because the key is absent or at another version.

        Raises:
            InvalidRequestError: Missing store_id, key or bad version
            InternalServerError: The commit failed
        """
        validate_store_id(store_id)
        validate_key(key)
        validate_version(key, version)
        item = DeleteItem(key=key, expected_version=version)

        def mutate(txn: StoreTransaction) -> bool:
            current = txn.get(item.key)
            if current is None:
                return False
            if not item.unconditional and current.version != item.expected_version:
                return False
            return txn.remove_key(item.key)

        removed = await self.store.update_keys(store_id, mutate)
        logger.debug(
            "Applied DeleteObject",
            extra={"store_id": store_id, "key": key, "removed": removed},
        )

    def _apply(
        self,
        plan: MutationPlan,
        txn: StoreTransaction,
        current: dict[str, VersionedValue | None],
    ) -> None:
        for item in plan.writes:
            txn.put(item.key, next_version(item, current.get(item.key)), item.value)
        for item in plan.deletes:
            txn.remove_key(item.key)
