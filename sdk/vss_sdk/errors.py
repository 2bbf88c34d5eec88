"""
Error types for the VSS SDK.

This module defines all exception types raised by the SDK:
- VssClientError: Base exception
- ConnectionError: Server connection issues
- ConflictError: Key or global version mismatch (re-read and retry)
- InvalidRequestError: Malformed request
- NoSuchKeyError: GetObject on a missing key
- InternalServerError: Server-side failure (retry with backoff)
- AuthError: Authentication failure

Invariants:
    - All errors inherit from VssClientError
    - code always holds the server's error code string
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class VssClientError(Exception):
    """Base exception for all VSS SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "UNKNOWN"
        self.details = details or {}


class ConnectionError(VssClientError):
    """Failed to reach the VSS server.

    Raised when:
    - Server is unreachable
    - Connection times out
    """

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="CONNECTION_ERROR",
            details={"address": address},
        )
        self.address = address


class ConflictError(VssClientError):
    """A version precondition failed on the server."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFLICT_EXCEPTION")


class InvalidRequestError(VssClientError):
    """The server rejected the request as malformed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_REQUEST_EXCEPTION")


class NoSuchKeyError(VssClientError):
    """The requested key does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="NO_SUCH_KEY_EXCEPTION")


class InternalServerError(VssClientError):
    """The server failed; the request had no effect and can be retried."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INTERNAL_SERVER_EXCEPTION")


class AuthError(VssClientError):
    """Authentication or authorization failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="AUTH_EXCEPTION")


_ERRORS_BY_CODE = {
    "CONFLICT_EXCEPTION": ConflictError,
    "INVALID_REQUEST_EXCEPTION": InvalidRequestError,
    "NO_SUCH_KEY_EXCEPTION": NoSuchKeyError,
    "INTERNAL_SERVER_EXCEPTION": InternalServerError,
    "AUTH_EXCEPTION": AuthError,
}


def error_from_response(code: str, message: str) -> VssClientError:
    """Build the SDK exception matching a server error code."""
    error_cls = _ERRORS_BY_CODE.get(code)
    if error_cls is None:
        return VssClientError(message, code=code)
    return error_cls(message)
