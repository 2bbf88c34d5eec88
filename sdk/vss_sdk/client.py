"""
VSS Client for Python SDK.

This module provides the main client interface:
- VssClient: Connection to a VSS server
- KeyValue: Key, version and value as returned by the server
- ListPage / KeyVersionListing: ListKeyVersions results

Example:
    >>> from sdk.vss_sdk.client import KeyValue, VssClient
    >>>
    >>> async with VssClient("http://localhost:8080") as vss:
    ...     await vss.put_object("store_1", [KeyValue("k1", 0, b"A")], global_version=0)
    ...     kv = await vss.get_object("store_1", "k1")

Invariants:
    - Conflicts are raised, never retried; retrying is the caller's decision
    - list_all_key_versions stops only on an empty next_page_token
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx

from .config import ClientSettings
from .errors import ConnectionError, VssClientError, error_from_response

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyValue:
    """A key with its version and value.

    Attributes:
        key: Key
        version: Key version (-1 skips the version check on writes)
        value: Value bytes (empty in listings)
    """

    key: str
    version: int
    value: bytes = b""


@dataclass
class ListPage:
    """One page of ListKeyVersions."""

    key_versions: list[KeyValue]
    next_page_token: str = ""
    global_version: int | None = None


@dataclass
class KeyVersionListing:
    """All pages of a ListKeyVersions listing.

    Attributes:
        key_versions: Keys and versions from every page
        global_version: Global version from the first page; every listed key
            version was committed at or after it
        pages: Number of pages fetched
    """

    key_versions: list[KeyValue] = field(default_factory=list)
    global_version: int | None = None
    pages: int = 0


def _kv_to_json(kv: KeyValue, include_value: bool = True) -> dict[str, Any]:
    data: dict[str, Any] = {"key": kv.key, "version": kv.version}
    if include_value:
        data["value"] = base64.b64encode(kv.value).decode("ascii")
    return data


def _kv_from_json(data: dict[str, Any]) -> KeyValue:
    return KeyValue(
        key=data.get("key", ""),
        version=data.get("version", 0),
        value=base64.b64decode(data.get("value") or ""),
    )


class VssClient:
    """Client for connecting to a VSS server.

    Example:
        >>> async with VssClient("http://localhost:8080") as vss:
        ...     page = await vss.list_key_versions("store_1")
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        settings: ClientSettings | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize client.

        Args:
            base_url: Server URL (defaults to settings.base_url)
            settings: Client settings (loaded from VSS_* env vars if not provided)
            timeout: Request timeout in seconds (defaults to settings.timeout)
        """
        self.settings = settings or ClientSettings()
        self.base_url = (base_url or self.settings.base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else self.settings.timeout
        self._http: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Open the HTTP connection pool."""
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)

    async def close(self) -> None:
        """Close the connection pool."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> VssClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def get_object(self, store_id: str, key: str) -> KeyValue:
        """Fetch a key's value and version.

        Raises:
            NoSuchKeyError: If the key does not exist
        """
        data = await self._post("/vss/getObject", {"store_id": store_id, "key": key})
        return _kv_from_json(data.get("value") or {})

    async def put_object(
        self,
        store_id: str,
        transaction_items: Sequence[KeyValue] = (),
        delete_items: Sequence[KeyValue] = (),
        global_version: int | None = None,
    ) -> None:
        """Atomically write and delete keys.

        On success, callers tracking versions should bump the global version
        they sent by 1.

        Raises:
            ConflictError: A key or global version did not match
            InvalidRequestError: Duplicate keys or malformed items
        """
        body: dict[str, Any] = {
            "store_id": store_id,
            "transaction_items": [_kv_to_json(kv) for kv in transaction_items],
            "delete_items": [_kv_to_json(kv, include_value=False) for kv in delete_items],
        }
        if global_version is not None:
            body["global_version"] = global_version
        await self._post("/vss/putObjects", body)

    async def delete_object(self, store_id: str, key: str, version: int = -1) -> None:
        """Delete a key; succeeds even if it is absent or at another version."""
        await self._post(
            "/vss/deleteObject",
            {"store_id": store_id, "key_value": {"key": key, "version": version}},
        )

    async def list_key_versions(
        self,
        store_id: str,
        key_prefix: str | None = None,
        page_size: int | None = None,
        page_token: str | None = None,
    ) -> ListPage:
        """Fetch one page of keys and versions."""
        body: dict[str, Any] = {"store_id": store_id}
        if key_prefix is not None:
            body["key_prefix"] = key_prefix
        page_size = page_size if page_size is not None else self.settings.page_size
        if page_size is not None:
            body["page_size"] = page_size
        if page_token:
            body["page_token"] = page_token

        data = await self._post("/vss/listKeyVersions", body)
        return ListPage(
            key_versions=[_kv_from_json(kv) for kv in data.get("key_versions", [])],
            next_page_token=data.get("next_page_token") or "",
            global_version=data.get("global_version"),
        )

    async def list_all_key_versions(
        self,
        store_id: str,
        key_prefix: str | None = None,
        page_size: int | None = None,
    ) -> KeyVersionListing:
        """Follow page tokens until the listing is exhausted."""
        listing = KeyVersionListing()
        page_token: str | None = None

        while True:
            page = await self.list_key_versions(store_id, key_prefix, page_size, page_token)
            if listing.pages == 0:
                listing.global_version = page.global_version
            listing.pages += 1
            listing.key_versions.extend(page.key_versions)

            if not page.next_page_token:
                return listing
            page_token = page.next_page_token

    async def health(self) -> dict[str, Any]:
        """Fetch server health."""
        http = self._require_connection()
        try:
            response = await http.get("/health")
        except httpx.TransportError as e:
            raise ConnectionError(f"Failed to reach server: {e}", address=self.base_url) from e
        return response.json()

    def _require_connection(self) -> httpx.AsyncClient:
        if self._http is None:
            raise ConnectionError("Client is not connected", address=self.base_url)
        return self._http

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        http = self._require_connection()
        try:
            response = await http.post(path, json=body)
        except httpx.TransportError as e:
            raise ConnectionError(f"Failed to reach server: {e}", address=self.base_url) from e

        if response.status_code == 200:
            return response.json()

        try:
            error = response.json()
        except ValueError:
            raise VssClientError(
                f"Unexpected response {response.status_code} from {path}",
                details={"status": response.status_code},
            )

        logger.debug(
            "VSS request failed",
            extra={"path": path, "status": response.status_code, "error_code": error.get("error_code")},
        )
        raise error_from_response(error.get("error_code", "UNKNOWN"), error.get("message", ""))
