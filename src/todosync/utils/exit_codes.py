"""
Exit codes for the todosync CLI.

Semantic exit codes so scripts driving the CLI can tell what happened and
react, for example retrying after a store failure.
"""

from todosync.errors import (
    AttachmentUnresolved,
    ConflictDetected,
    OwnershipConflict,
    RecordNotFound,
    SchemaVersionMismatch,
    StoreFailure,
    TodoSyncError,
    ValidationFailure,
)

# Success
SUCCESS = 0

# General error (unspecified)
ERROR_GENERAL = 1

# Invalid arguments or validation error
ERROR_INVALID_ARGS = 2

# Backing store unreachable or failed (will retry on next sync)
ERROR_STORE = 4

# Todo, record or attachment not found
ERROR_NOT_FOUND = 5

# Todo is read-only (incompatible schema or non-editable region)
ERROR_READ_ONLY = 6

# Sync finished but left conflicts or ownership clashes
ERROR_CONFLICT = 7


def get_exit_code_name(code: int) -> str:
    """Get the name of an exit code for display purposes."""
    code_names = {
        SUCCESS: "SUCCESS",
        ERROR_GENERAL: "ERROR_GENERAL",
        ERROR_INVALID_ARGS: "ERROR_INVALID_ARGS",
        ERROR_STORE: "ERROR_STORE",
        ERROR_NOT_FOUND: "ERROR_NOT_FOUND",
        ERROR_READ_ONLY: "ERROR_READ_ONLY",
        ERROR_CONFLICT: "ERROR_CONFLICT",
    }
    return code_names.get(code, f"UNKNOWN({code})")


def get_exit_code_description(code: int) -> str:
    """Get a human-readable description of an exit code."""
    descriptions = {
        SUCCESS: "Command executed successfully",
        ERROR_GENERAL: "A general error occurred",
        ERROR_INVALID_ARGS: "Invalid arguments or validation error",
        ERROR_STORE: "Todo store error - changes are kept and will be retried",
        ERROR_NOT_FOUND: "Todo, record or attachment not found",
        ERROR_READ_ONLY: "Todo is read-only",
        ERROR_CONFLICT: "Sync reported conflicts",
    }
    return descriptions.get(code, "Unknown error")


def exit_code_for(error: BaseException) -> int:
    """Map a todosync error to its exit code."""
    if isinstance(error, (RecordNotFound, AttachmentUnresolved)):
        return ERROR_NOT_FOUND
    if isinstance(error, (OwnershipConflict, ConflictDetected)):
        return ERROR_CONFLICT
    if isinstance(error, StoreFailure):
        return ERROR_STORE
    if isinstance(error, SchemaVersionMismatch):
        return ERROR_READ_ONLY
    if isinstance(error, ValidationFailure):
        return ERROR_INVALID_ARGS
    if isinstance(error, TodoSyncError):
        return ERROR_GENERAL
    return ERROR_GENERAL
