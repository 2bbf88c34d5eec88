"""
VSS Python SDK - Client library for the Versioned Storage Service.

Example:
    >>> from sdk.vss_sdk import KeyValue, VssClient
    >>>
    >>> async with VssClient("http://localhost:8080") as vss:
    ...     await vss.put_object("store_1", [KeyValue("k1", -1, b"hello")])
    ...     listing = await vss.list_all_key_versions("store_1")

Invariants:
    - Writes are atomic per put_object()
    - Version conflicts surface as ConflictError
"""

__version__ = "0.1.0"

from .client import KeyValue, KeyVersionListing, ListPage, VssClient
from .config import ClientSettings
from .errors import (
    AuthError,
    ConflictError,
    ConnectionError,
    InternalServerError,
    InvalidRequestError,
    NoSuchKeyError,
    VssClientError,
)

__all__ = [
    "AuthError",
    "ClientSettings",
    "ConflictError",
    "ConnectionError",
    "InternalServerError",
    "InvalidRequestError",
    "KeyValue",
    "KeyVersionListing",
    "ListPage",
    "NoSuchKeyError",
    "VssClient",
    "VssClientError",
]
