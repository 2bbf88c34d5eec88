"""
Pagination engine for ListKeyVersions.

Listings are served page by page straight from the store's ordered key scan.
They are deliberately weaker than Get/Put: pages are not a frozen snapshot,
so writes made between page fetches may or may not show up in later pages.

Invariants:
    - Keys are returned in ascending code-point order
    - global_version is only returned on the first page, and is read before
      any key version on that page, so it is a lower bound for every key
      version returned across the whole listing
    - next_page_token is empty exactly when the page was not full
    - A token resumes strictly after its last key, so a deleted resume key
      resumes at the next greater key
    - Page size never exceeds the configured maximum

How to change safely:
    - Tokens are opaque to clients but must stay decodable across releases
    - Never emit global_version on a page served from a token
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field

from ..errors import InvalidRequestError
from ..store import KeyValue, VersionedStore
from .guard import validate_store_id

logger = logging.getLogger(__name__)

# page_size is int32 on the wire
MAX_PAGE_SIZE_REQUEST = 2**31 - 1


@dataclass(frozen=True)
class PageToken:
    """Resume position of a listing.

    Attributes:
        store_id: Store the listing belongs to
        last_key: Last key returned on the previous page
        global_version: Global version reported on the first page
    """

    store_id: str
    last_key: str
    global_version: int

    def encode(self) -> str:
        """Serialize to an opaque, URL-safe string."""
        payload = json.dumps(
            {"s": self.store_id, "k": self.last_key, "v": self.global_version},
            separators=(",", ":"),
        )
        return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")

    @classmethod
    def decode(cls, token: str) -> PageToken:
        """Parse a token produced by encode().

        Raises:
            InvalidRequestError: If the token is malformed
        """
        try:
            padded = token + "=" * (-len(token) % 4)
            data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
            store_id, last_key, global_version = data["s"], data["k"], data["v"]
        except (binascii.Error, UnicodeError, ValueError, TypeError, KeyError) as e:
            raise InvalidRequestError("Malformed page_token") from e

        if (
            not isinstance(store_id, str)
            or not isinstance(last_key, str)
            or isinstance(global_version, bool)
            or not isinstance(global_version, int)
        ):
            raise InvalidRequestError("Malformed page_token")

        return cls(store_id=store_id, last_key=last_key, global_version=global_version)


@dataclass
class ListKeyVersionsResult:
    """One page of a ListKeyVersions listing.

    Attributes:
        key_versions: Keys and versions (values are never set)
        next_page_token: Token for the next page, empty on the last page
        global_version: Store global version, first page only
    """

    key_versions: list[KeyValue] = field(default_factory=list)
    next_page_token: str = ""
    global_version: int | None = None


class PaginationEngine:
    """Serves ListKeyVersions pages.

    Example:
        >>> pages = PaginationEngine(store, default_page_size=100, max_page_size=1000)
        >>> first = await pages.list_key_versions("store_1", key_prefix="photos/")
        >>> first.global_version
        7
        >>> nxt = await pages.list_key_versions("store_1", "photos/", page_token=first.next_page_token)
    """

    def __init__(
        self,
        store: VersionedStore,
        default_page_size: int = 100,
        max_page_size: int = 1000,
    ) -> None:
        self.store = store
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def effective_page_size(self, page_size: int | None) -> int:
        """Page size actually served for a requested one (None/0 = server default)."""
        if not page_size:
            return min(self.default_page_size, self.max_page_size)
        return min(page_size, self.max_page_size)

    async def list_key_versions(
        self,
        store_id: str,
        key_prefix: str | None = None,
        page_size: int | None = None,
        page_token: str | None = None,
    ) -> ListKeyVersionsResult:
        """Serve one page of keys and versions.

        Args:
            store_id: Store identifier
            key_prefix: Only list keys starting with this prefix ("" = all keys)
            page_size: Requested maximum number of results (None/0 = server default)
            page_token: next_page_token from the previous page, or None/"" for the first page

        Returns:
            ListKeyVersionsResult

        Raises:
            InvalidRequestError: Bad store_id, negative page_size, or a token
                that is malformed or belongs to another store
        """
        validate_store_id(store_id)
        if page_size is not None and (
            isinstance(page_size, bool)
            or not isinstance(page_size, int)
            or not 0 <= page_size <= MAX_PAGE_SIZE_REQUEST
        ):
            raise InvalidRequestError("page_size must be a non-negative int32")

        limit = self.effective_page_size(page_size)

        if page_token:
            token = PageToken.decode(page_token)
            if token.store_id != store_id:
                raise InvalidRequestError("page_token does not belong to this store")
            after_key: str | None = token.last_key
            first_page_version = token.global_version
            global_version = None
        else:
            # Must be read before any key version on this page
            global_version = await self.store.read_global_version(store_id)
            after_key = None
            first_page_version = global_version

        key_versions = await self.store.scan_key_versions(store_id, key_prefix, after_key, limit)

        next_page_token = ""
        if len(key_versions) == limit:
            next_page_token = PageToken(
                store_id=store_id,
                last_key=key_versions[-1].key,
                global_version=first_page_version,
            ).encode()

        logger.debug(
            "Served ListKeyVersions page",
            extra={
                "store_id": store_id,
                "count": len(key_versions),
                "first_page": not page_token,
                "has_next": bool(next_page_token),
            },
        )

        return ListKeyVersionsResult(
            key_versions=key_versions,
            next_page_token=next_page_token,
            global_version=global_version,
        )
