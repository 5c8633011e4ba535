"""Database schema definitions for the local SQLite todo vault.

Column names match the hosted ``todos`` table so records move between the
local vault and the remote store unchanged.
"""

from __future__ import annotations

# Schema version tracking
SCHEMA_VERSION = 1

CREATE_TODOS_TABLE = """
CREATE TABLE IF NOT EXISTS todos (
    id TEXT PRIMARY KEY,
    document_id TEXT NOT NULL,
    content TEXT NOT NULL DEFAULT '',
    completed BOOLEAN NOT NULL DEFAULT 0,
    assigned_to TEXT,
    due_date DATETIME,
    attachment_ids TEXT NOT NULL DEFAULT '[]',
    project_id TEXT,
    version INTEGER NOT NULL DEFAULT 1,
    created_by TEXT,
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL
)
"""

ALL_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_todos_document ON todos(document_id)",
    "CREATE INDEX IF NOT EXISTS idx_todos_assigned_to ON todos(assigned_to)",
    "CREATE INDEX IF NOT EXISTS idx_todos_due_date ON todos(due_date)",
]

TODO_COLUMNS = (
    "id",
    "document_id",
    "content",
    "completed",
    "assigned_to",
    "due_date",
    "attachment_ids",
    "project_id",
    "version",
    "created_by",
    "created_at",
    "updated_at",
)
