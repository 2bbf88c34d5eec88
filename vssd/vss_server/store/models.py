"""
Value types shared by the store and the engine.

Invariants:
    - Versions are int64 (at most MAX_VERSION); -1 is reserved for "skip the version check"
    - A write skipping the version check stores BASELINE_VERSION
    - A first conditional write of a key stores FIRST_VERSION
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Sentinel expected_version meaning "do not check the key version"
UNCONDITIONAL_VERSION = -1

# Version stored after a write that skipped the version check
BASELINE_VERSION = 1

# Version stored by the first conditional write of a key
FIRST_VERSION = 0

# Versions and global versions are int64 on the wire
MAX_VERSION = 2**63 - 1


@dataclass(frozen=True)
class KeyValue:
    """A key with its version and (optionally) value.

    Listings reuse this type with an empty value.
    """

    key: str
    version: int
    value: bytes = b""


@dataclass(frozen=True)
class VersionedValue:
    """The stored state of one key."""

    version: int
    value: bytes


@dataclass(frozen=True)
class WriteItem:
    """A key to be written as part of a PutObject transaction.

    Attributes:
        key: Key to write
        expected_version: Version the key must currently have, or -1
        value: Opaque value bytes
    """

    key: str
    expected_version: int
    value: bytes = b""

    @property
    def unconditional(self) -> bool:
        return self.expected_version == UNCONDITIONAL_VERSION


@dataclass(frozen=True)
class DeleteItem:
    """A key to be deleted as part of a PutObject transaction."""

    key: str
    expected_version: int

    @property
    def unconditional(self) -> bool:
        return self.expected_version == UNCONDITIONAL_VERSION


@dataclass(frozen=True)
class MutationPlan:
    """Everything a single PutObject asks to change.

    Attributes:
        store_id: Target keyspace
        global_version: Expected store global version, or None to skip the check
        writes: Items to write
        deletes: Items to delete
    """

    store_id: str
    global_version: int | None = None
    writes: tuple[WriteItem, ...] = ()
    deletes: tuple[DeleteItem, ...] = ()


@dataclass(frozen=True)
class StoreSnapshot:
    """A consistent view of a whole store.

    Attributes:
        store_id: Keyspace identifier
        global_version: Store global version at the time of the read
        entries: Every key with version and value, ordered by key
    """

    store_id: str
    global_version: int
    entries: tuple[KeyValue, ...] = field(default_factory=tuple)

    @property
    def keys(self) -> list[str]:
        return [entry.key for entry in self.entries]
