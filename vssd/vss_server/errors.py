"""
Error types for the VSS server.

Every failure surfaced to a caller carries one of a fixed set of error codes:
- CONFLICT_EXCEPTION: key or global version mismatch
- INVALID_REQUEST_EXCEPTION: malformed request or duplicate keys
- INTERNAL_SERVER_EXCEPTION: storage failure during a read or commit
- NO_SUCH_KEY_EXCEPTION: GetObject against a missing key
- AUTH_EXCEPTION: raised by the authentication layer, never by the engine

Invariants:
    - All errors inherit from VssError
    - The code is machine-readable, the message is for humans only
    - A raised error means the store was left unchanged
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Wire error codes."""

    UNKNOWN = 0
    CONFLICT_EXCEPTION = 1
    INVALID_REQUEST_EXCEPTION = 2
    INTERNAL_SERVER_EXCEPTION = 3
    NO_SUCH_KEY_EXCEPTION = 4
    AUTH_EXCEPTION = 5


class VssError(Exception):
    """Base exception for all VSS errors.

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConflictError(VssError):
    """A version precondition failed.

    Raised when:
    - The expected global version differs from the store's
    - A conditional write or delete names a stale key version
    - A batched delete names a key that does not exist
    """

    code = ErrorCode.CONFLICT_EXCEPTION


class InvalidRequestError(VssError):
    """The request is malformed.

    Raised when:
    - A required field is missing or empty
    - A version is below -1
    - The same key appears twice in one PutObject
    - A page token cannot be decoded or belongs to another store
    """

    code = ErrorCode.INVALID_REQUEST_EXCEPTION


class NoSuchKeyError(VssError):
    """GetObject named a key that does not exist."""

    code = ErrorCode.NO_SUCH_KEY_EXCEPTION

    def __init__(self, store_id: str, key: str) -> None:
        super().__init__(
            f"Key not found: {key}",
            details={"store_id": store_id, "key": key},
        )
        self.store_id = store_id
        self.key = key


class InternalServerError(VssError):
    """The storage layer failed. Safe to retry with backoff."""

    code = ErrorCode.INTERNAL_SERVER_EXCEPTION


class AuthError(VssError):
    """Authentication or authorization failed."""

    code = ErrorCode.AUTH_EXCEPTION
