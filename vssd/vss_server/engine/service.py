"""
VSS service facade.

Binds one VersionedStore to the transaction and pagination engines and
exposes the four public operations. Transport adapters (the HTTP API) talk
only to this class.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ..config import ServerConfig
from ..store import DeleteItem, KeyValue, VersionedStore, WriteItem
from .pagination import ListKeyVersionsResult, PaginationEngine
from .transactions import TransactionEngine

logger = logging.getLogger(__name__)


class VssService:
    """The four VSS operations over one store backend.

    Attributes:
        store: Backing store
        transactions: Get/Put/Delete engine
        pagination: ListKeyVersions engine
    """

    def __init__(
        self,
        store: VersionedStore,
        default_page_size: int = 100,
        max_page_size: int = 1000,
    ) -> None:
        self.store = store
        self.transactions = TransactionEngine(store)
        self.pagination = PaginationEngine(
            store,
            default_page_size=default_page_size,
            max_page_size=max_page_size,
        )

    @classmethod
    def from_config(cls, config: ServerConfig) -> VssService:
        """Build the service and its store from server configuration."""
        store = VersionedStore(
            data_dir=config.storage.data_dir,
            wal_mode=config.storage.wal_mode,
            busy_timeout_ms=config.storage.busy_timeout_ms,
            cache_size_pages=config.storage.cache_size_pages,
        )
        return cls(
            store,
            default_page_size=config.listing.default_page_size,
            max_page_size=config.listing.max_page_size,
        )

    async def get_object(self, store_id: str, key: str) -> KeyValue:
        return await self.transactions.get_object(store_id, key)

    async def put_object(
        self,
        store_id: str,
        global_version: int | None = None,
        transaction_items: Sequence[WriteItem] = (),
        delete_items: Sequence[DeleteItem] = (),
    ) -> int:
        return await self.transactions.put_object(
            store_id,
            global_version=global_version,
            transaction_items=transaction_items,
            delete_items=delete_items,
        )

    async def delete_object(self, store_id: str, key: str, version: int) -> None:
        await self.transactions.delete_object(store_id, key, version)

    async def list_key_versions(
        self,
        store_id: str,
        key_prefix: str | None = None,
        page_size: int | None = None,
        page_token: str | None = None,
    ) -> ListKeyVersionsResult:
        return await self.pagination.list_key_versions(
            store_id,
            key_prefix=key_prefix,
            page_size=page_size,
            page_token=page_token,
        )

    async def health(self) -> dict[str, object]:
        """Report whether the data directory is usable."""
        data_dir = self.store.data_dir
        healthy = data_dir.is_dir()
        return {"healthy": healthy, "data_dir": str(data_dir)}
