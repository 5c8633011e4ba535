"""
Strategy Pattern: Storage Strategy Container

The configured store type selects one strategy at startup. A strategy
bundles the todo store and the attachment storage for one backend, so the
sync engine never branches on where records live.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import httpx

from todosync.models.config_models import AppConfig, StorageConfig, StoreConfig
from todosync.repositories import AttachmentStorage, TodoStore


class StorageStrategy(ABC):
    """Abstract base class for storage strategies."""

    @abstractmethod
    def get_todo_store(self) -> TodoStore:
        """Get the todo store implementation for this strategy."""

    @abstractmethod
    def get_attachment_storage(self) -> AttachmentStorage:
        """Get the attachment storage implementation for this strategy."""

    @property
    @abstractmethod
    def storage_type(self) -> str:
        """Get storage type identifier (for logging/debugging)."""

    async def close(self) -> None:
        """Release network resources held by the strategy."""


class LocalStorageStrategy(StorageStrategy):
    """
    Local storage strategy.

    Todos live in a SQLite vault and attachments in a local directory.
    """

    def __init__(self, db_path: str | None, attachments_dir: str | None = None):
        # Import here to avoid circular dependencies
        from todosync.adapters.local_storage import LocalAttachmentStorage
        from todosync.adapters.sqlite.todo_repository import SqliteTodoStore

        self.db_path = db_path
        self._todo_store = SqliteTodoStore(db_path=db_path)
        self._attachment_storage = LocalAttachmentStorage(attachments_dir)

    def get_todo_store(self) -> TodoStore:
        return self._todo_store

    def get_attachment_storage(self) -> AttachmentStorage:
        return self._attachment_storage

    @property
    def storage_type(self) -> str:
        return "local"


class RemoteStorageStrategy(StorageStrategy):
    """
    Remote storage strategy.

    Todos live in the hosted ``todos`` table and attachments in the hosted
    storage bucket, both reached through one HTTP client.
    """

    def __init__(
        self,
        store: StoreConfig,
        storage: StorageConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        from todosync.adapters.rest_api import (
            SupabaseAttachmentStorage,
            SupabaseTodoStore,
        )
        from todosync.services.api.client import APIClient

        self._client = APIClient(store, transport=transport)
        self._todo_store = SupabaseTodoStore(self._client, table=store.table)
        self._attachment_storage = SupabaseAttachmentStorage(
            self._client, bucket=storage.bucket
        )

    def get_todo_store(self) -> TodoStore:
        return self._todo_store

    def get_attachment_storage(self) -> AttachmentStorage:
        return self._attachment_storage

    @property
    def storage_type(self) -> str:
        return "remote"

    async def close(self) -> None:
        await self._client.close()


def build_strategy(config: AppConfig) -> StorageStrategy:
    """Create the storage strategy selected by the configuration."""
    if config.store.type == "remote":
        return RemoteStorageStrategy(config.store, config.storage)
    return LocalStorageStrategy(config.store.db_path, config.storage.local_dir)
