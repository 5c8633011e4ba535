"""Custom exceptions for todosync.

The taxonomy mirrors how failures are treated by the sync engine:

- ``ValidationFailure``: malformed node attributes, recovered locally by defaulting
- ``StoreFailure``: backing store error on a single record, retried later
- ``ConflictDetected``: concurrent edit of the same field, resolved last-write-wins
- ``AttachmentUnresolved``: an attachment id the storage collaborator cannot resolve
- ``SchemaVersionMismatch``: a node written by an incompatible schema version
"""


class TodoSyncError(Exception):
    """Base exception for all todosync errors."""


class ValidationFailure(TodoSyncError):
    """Raised when node attributes cannot be interpreted."""


class StoreFailure(TodoSyncError):
    """Raised when a backing store call fails (network, backend, timeout)."""

    def __init__(self, message: str, todo_id: str | None = None):
        super().__init__(message)
        self.todo_id = todo_id


class RecordNotFound(StoreFailure):
    """Raised when a record does not exist in the backing store."""


class OwnershipConflict(StoreFailure):
    """Raised when a record id is already bound to a different document."""

    def __init__(
        self,
        message: str,
        todo_id: str | None = None,
        owner_document_id: str | None = None,
    ):
        super().__init__(message, todo_id)
        self.owner_document_id = owner_document_id


class ConflictDetected(TodoSyncError):
    """Raised when local and remote edits touched the same field."""


class AttachmentUnresolved(TodoSyncError):
    """Raised when an attachment id does not resolve in storage."""

    def __init__(self, attachment_id: str, message: str | None = None):
        super().__init__(message or f"Attachment not found: {attachment_id}")
        self.attachment_id = attachment_id


class SchemaVersionMismatch(TodoSyncError):
    """Raised when a node's schema version cannot be safely interpreted."""

    def __init__(self, todo_id: str, schema_version: str):
        super().__init__(
            f"Todo {todo_id} was written with incompatible schema {schema_version}"
        )
        self.todo_id = todo_id
        self.schema_version = schema_version
