"""SQLite implementation of TodoStore."""

from __future__ import annotations

import sqlite3

from todosync.adapters.sqlite.connection import get_connection
from todosync.adapters.sqlite.schema import TODO_COLUMNS
from todosync.adapters.sqlite.utils import (
    build_update_clause,
    now_iso,
    row_to_record,
    to_db_value,
)
from todosync.errors import OwnershipConflict, RecordNotFound, StoreFailure
from todosync.models import TodoRecord, TodoRecordUpdate
from todosync.repositories import TodoStore
from todosync.utils.logger import get_logger

logger = get_logger("adapters.sqlite")


class SqliteTodoStore(TodoStore):
    """SQLite implementation of the todo store."""

    def __init__(
        self,
        db_path: str | None = None,
        connection: sqlite3.Connection | None = None,
    ):
        """Initialize SQLite todo store.

        Args:
            db_path: Optional database file path. If None, uses default location.
            connection: Optional open connection (the schema must be applied)
        """
        self.db_path = db_path
        self._connection = connection

    @property
    def connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._connection is None:
            self._connection = get_connection(self.db_path)
        return self._connection

    def _fetch(self, todo_id: str) -> TodoRecord | None:
        row = self.connection.execute(
            "SELECT * FROM todos WHERE id = ?", (todo_id,)
        ).fetchone()
        return row_to_record(row)

    async def insert(self, record: TodoRecord) -> TodoRecord:
        """Insert a new todo record, stamping ``updated_at``."""
        existing = self._fetch(record.id)
        if existing is not None:
            if existing.document_id != record.document_id:
                raise OwnershipConflict(
                    f"Todo {record.id} belongs to document {existing.document_id}",
                    todo_id=record.id,
                    owner_document_id=existing.document_id,
                )
            raise StoreFailure(f"Todo {record.id} already exists", todo_id=record.id)

        data = record.model_dump()
        data["updated_at"] = now_iso()
        placeholders = ", ".join("?" for _ in TODO_COLUMNS)
        try:
            self.connection.execute(
                f"INSERT INTO todos ({', '.join(TODO_COLUMNS)}) VALUES ({placeholders})",
                tuple(to_db_value(col, data.get(col)) for col in TODO_COLUMNS),
            )
            self.connection.commit()
        except sqlite3.Error as e:
            self.connection.rollback()
            raise StoreFailure(f"Failed to insert todo: {e}", todo_id=record.id) from e

        logger.debug("Inserted todo %s for document %s", record.id, record.document_id)
        return self._fetch(record.id)

    async def update(self, todo_id: str, fields: TodoRecordUpdate) -> TodoRecord:
        """Apply a partial update, stamping ``updated_at``."""
        changes = fields.changes()
        changes["updated_at"] = now_iso()
        set_clause, params = build_update_clause(changes)
        try:
            cursor = self.connection.execute(
                f"UPDATE todos SET {set_clause} WHERE id = ?", (*params, todo_id)
            )
            self.connection.commit()
        except sqlite3.Error as e:
            self.connection.rollback()
            raise StoreFailure(f"Failed to update todo: {e}", todo_id=todo_id) from e

        if cursor.rowcount == 0:
            raise RecordNotFound(f"Todo not found: {todo_id}", todo_id=todo_id)
        return self._fetch(todo_id)

    async def delete(self, todo_id: str) -> bool:
        """Delete a todo record."""
        try:
            cursor = self.connection.execute("DELETE FROM todos WHERE id = ?", (todo_id,))
            self.connection.commit()
        except sqlite3.Error as e:
            self.connection.rollback()
            raise StoreFailure(f"Failed to delete todo: {e}", todo_id=todo_id) from e
        return cursor.rowcount > 0

    async def list_by_document(self, document_id: str) -> list[TodoRecord]:
        """List records owned by a document, oldest first."""
        try:
            rows = self.connection.execute(
                "SELECT * FROM todos WHERE document_id = ? ORDER BY created_at, id",
                (document_id,),
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreFailure(f"Failed to list todos: {e}") from e
        return [row_to_record(row) for row in rows]

    async def get(self, todo_id: str) -> TodoRecord | None:
        """Get a record by id."""
        try:
            return self._fetch(todo_id)
        except sqlite3.Error as e:
            raise StoreFailure(f"Failed to get todo: {e}", todo_id=todo_id) from e
