"""todosync domain models.

This package contains Pydantic models for the embedded todo nodes, the
persisted todo records, and the application configuration.
"""

from .config_models import (
    AppConfig,
    OutputConfig,
    StorageConfig,
    StoreConfig,
    SyncConfig,
)
from .core import (
    MERGEABLE_FIELDS,
    SYNCED_FIELDS,
    TodoNode,
    TodoRecord,
    TodoRecordUpdate,
    ensure_utc,
)

__all__ = [
    # Todo models
    "TodoNode",
    "TodoRecord",
    "TodoRecordUpdate",
    "SYNCED_FIELDS",
    "MERGEABLE_FIELDS",
    "ensure_utc",
    # Config models
    "AppConfig",
    "StoreConfig",
    "StorageConfig",
    "SyncConfig",
    "OutputConfig",
]
