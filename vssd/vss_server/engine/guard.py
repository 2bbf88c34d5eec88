"""
Version guard for VSS - optimistic concurrency preconditions.

Two kinds of checks live here:
- Request shape checks (InvalidRequestError), run before the store is touched
- Version checks (ConflictError), run inside the store's write transaction

Invariants:
    - Version checks only ever see state through a StoreTransaction, so
      validation and application are linearized by the same critical section
    - All checks for a request run before any mutation is applied
    - Duplicate keys are an invalid request, never a conflict
"""

from __future__ import annotations

import logging

from ..errors import ConflictError, InvalidRequestError
from ..store import (
    FIRST_VERSION,
    MAX_VERSION,
    UNCONDITIONAL_VERSION,
    MutationPlan,
    StoreTransaction,
    VersionedValue,
)

logger = logging.getLogger(__name__)


def validate_store_id(store_id: str) -> None:
    """Raise InvalidRequestError unless store_id is a non-empty string."""
    if not isinstance(store_id, str) or not store_id:
        raise InvalidRequestError("store_id is required")


def validate_key(key: str) -> None:
    """Raise InvalidRequestError unless key is a non-empty string."""
    if not isinstance(key, str) or not key:
        raise InvalidRequestError("key is required")


def validate_version(key: str, version: int) -> None:
    """Raise InvalidRequestError unless version is an int64 >= -1."""
    if (
        isinstance(version, bool)
        or not isinstance(version, int)
        or not UNCONDITIONAL_VERSION <= version <= MAX_VERSION
    ):
        raise InvalidRequestError(
            f"Invalid version {version!r} for key '{key}': must be -1 or a non-negative int64",
            details={"key": key},
        )


class VersionGuard:
    """Validates PutObject preconditions.

    Example:
        >>> guard = VersionGuard()
        >>> guard.validate_request(plan)        # before the store is touched
        >>> current = guard.check(plan, txn)    # inside the write transaction
    """

    def validate_request(self, plan: MutationPlan) -> None:
        """Check request shape.

        Raises:
            InvalidRequestError: Missing store_id, empty key, bad version or
                a key repeated across transaction and delete items
        """
        validate_store_id(plan.store_id)

        if plan.global_version is not None:
            if isinstance(plan.global_version, bool) or not isinstance(plan.global_version, int):
                raise InvalidRequestError("global_version must be an integer")
            if not 0 <= plan.global_version <= MAX_VERSION:
                raise InvalidRequestError("global_version must be a non-negative int64")

        seen: set[str] = set()
        for item in (*plan.writes, *plan.deletes):
            validate_key(item.key)
            validate_version(item.key, item.expected_version)
            if item.key in seen:
                raise InvalidRequestError(
                    f"Duplicate key in request: {item.key}",
                    details={"key": item.key},
                )
            seen.add(item.key)

    def check(
        self,
        plan: MutationPlan,
        txn: StoreTransaction,
    ) -> dict[str, VersionedValue | None]:
        """Check every version precondition against the open transaction.

        Args:
            plan: The request's mutation plan
            txn: Open write transaction on plan.store_id

        Returns:
            Current state of every written key, for the engine to derive new
            versions from without re-reading

        Raises:
            ConflictError: On the first failed precondition
        """
        if plan.global_version is not None:
            current_global = txn.global_version()
            if current_global != plan.global_version:
                raise ConflictError(
                    f"Global version mismatch: expected {plan.global_version}, "
                    f"current {current_global}",
                    details={
                        "store_id": plan.store_id,
                        "expected_global_version": plan.global_version,
                        "global_version": current_global,
                    },
                )

        current: dict[str, VersionedValue | None] = {}
        for item in plan.writes:
            existing = txn.get(item.key)
            current[item.key] = existing
            if item.unconditional:
                continue
            if existing is None:
                # First write of a key
                if item.expected_version != FIRST_VERSION:
                    raise self._key_conflict(plan.store_id, item.key, item.expected_version, None)
            elif existing.version != item.expected_version:
                raise self._key_conflict(
                    plan.store_id, item.key, item.expected_version, existing.version
                )

        for item in plan.deletes:
            if item.unconditional:
                continue
            existing = txn.get(item.key)
            if existing is None or existing.version != item.expected_version:
                raise self._key_conflict(
                    plan.store_id,
                    item.key,
                    item.expected_version,
                    existing.version if existing else None,
                )

        return current

    @staticmethod
    def _key_conflict(
        store_id: str,
        key: str,
        expected: int,
        actual: int | None,
    ) -> ConflictError:
        if actual is None:
            message = f"Version conflict on key '{key}': expected {expected}, key does not exist"
        else:
            message = f"Version conflict on key '{key}': expected {expected}, current {actual}"
        return ConflictError(
            message,
            details={
                "store_id": store_id,
                "key": key,
                "expected_version": expected,
                "version": actual,
            },
        )
