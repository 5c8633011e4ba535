"""Collaborator interfaces for todosync.

This module defines the abstract base classes (ports) the sync engine talks to:
the todo store holding the persisted records, the attachment storage resolving
file ids, and the notifier surfacing failures to the user.

Implementations (adapters) are in:
- todosync.adapters.sqlite (local vault)
- todosync.adapters.rest_api (Supabase/PostgREST)
- todosync.adapters.local_storage (attachments on disk)
- todosync.services.notification_service (notifiers)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from todosync.models import TodoRecord, TodoRecordUpdate


class TodoStore(ABC):
    """Abstract base class for todo record persistence.

    Every method raises ``StoreFailure`` (or one of its subclasses) on error.
    """

    @abstractmethod
    async def insert(self, record: TodoRecord) -> TodoRecord:
        """Insert a new record.

        Args:
            record: Record to insert

        Returns:
            The stored record, with ``updated_at`` as set by the store

        Raises:
            OwnershipConflict: If the id is already bound to another document
            StoreFailure: On any other backend error
        """
        raise NotImplementedError("TodoStore.insert() must be implemented by adapter")

    @abstractmethod
    async def update(self, todo_id: str, fields: TodoRecordUpdate) -> TodoRecord:
        """Apply a partial update.

        Args:
            todo_id: Record id
            fields: Fields to change

        Returns:
            The updated record

        Raises:
            RecordNotFound: If the record does not exist
            StoreFailure: On any other backend error
        """
        raise NotImplementedError("TodoStore.update() must be implemented by adapter")

    @abstractmethod
    async def delete(self, todo_id: str) -> bool:
        """Delete a record.

        Returns:
            True if a record was deleted, False if it did not exist
        """
        raise NotImplementedError("TodoStore.delete() must be implemented by adapter")

    @abstractmethod
    async def list_by_document(self, document_id: str) -> list[TodoRecord]:
        """List the records owned by a document."""
        raise NotImplementedError(
            "TodoStore.list_by_document() must be implemented by adapter"
        )

    @abstractmethod
    async def get(self, todo_id: str) -> TodoRecord | None:
        """Get a record by id regardless of owning document, or None."""
        raise NotImplementedError("TodoStore.get() must be implemented by adapter")


class AttachmentStorage(ABC):
    """Abstract base class for attachment file storage."""

    @abstractmethod
    async def upload(self, path: Path) -> str:
        """Upload a file and return its attachment id.

        Raises:
            StoreFailure: If the upload fails
        """
        raise NotImplementedError(
            "AttachmentStorage.upload() must be implemented by adapter"
        )

    @abstractmethod
    async def resolve(self, attachment_id: str) -> str | None:
        """Return a locator (URL or path) for an attachment, or None if unknown.

        Raises:
            StoreFailure: If storage cannot be reached
        """
        raise NotImplementedError(
            "AttachmentStorage.resolve() must be implemented by adapter"
        )


class Notifier(ABC):
    """Abstract base class for user-facing notifications."""

    @abstractmethod
    def notify(self, kind: str, message: str) -> None:
        """Surface a notification.

        Args:
            kind: ``error``, ``warning``, ``success`` or ``info``
            message: Human-readable message
        """
        raise NotImplementedError("Notifier.notify() must be implemented by adapter")
