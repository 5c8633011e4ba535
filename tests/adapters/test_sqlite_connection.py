"""Unit tests for DatabaseConnection and the migration runner."""

from __future__ import annotations

import sqlite3

import pytest

from todosync.adapters.sqlite.connection import (
    DatabaseConnection,
    get_connection,
    open_connection,
)
from todosync.adapters.sqlite.migrations.m001_todos import MIGRATIONS
from todosync.adapters.sqlite.migrations.runner import Migration, MigrationRunner


@pytest.fixture(autouse=True)
def reset_singleton():
    """Reset DatabaseConnection singleton state around each test."""
    DatabaseConnection.close_connection()
    yield
    DatabaseConnection.close_connection()


class TestDatabaseConnection:
    def test_same_instance_returned_twice(self):
        assert DatabaseConnection() is DatabaseConnection()

    def test_reuses_connection_per_path(self, tmp_path):
        db_path = tmp_path / "vault" / "todos.db"
        first = get_connection(db_path)
        assert get_connection(db_path) is first
        assert db_path.exists()

    def test_new_file_is_private(self, tmp_path):
        db_path = tmp_path / "todos.db"
        get_connection(db_path)
        assert db_path.stat().st_mode & 0o777 == 0o600

    def test_wal_mode(self, tmp_path):
        connection = get_connection(tmp_path / "todos.db")
        mode = connection.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode == "wal"

    def test_switching_path_reopens(self, tmp_path):
        first = get_connection(tmp_path / "a.db")
        second = get_connection(tmp_path / "b.db")
        assert first is not second
        with pytest.raises(sqlite3.ProgrammingError):
            first.execute("SELECT 1")

    def test_exit_cleanup_registered_once(self, tmp_path, mocker):
        mocker.patch.object(DatabaseConnection, "_cleanup_registered", False)
        register = mocker.patch("todosync.adapters.sqlite.connection.atexit.register")

        get_connection(tmp_path / "a.db")
        get_connection(tmp_path / "b.db")
        get_connection(tmp_path / "a.db")

        register.assert_called_once_with(DatabaseConnection.close_connection)

    def test_memory_connections_are_private(self):
        first = get_connection(":memory:")
        second = get_connection(":memory:")
        assert first is not second
        first.close()
        second.close()


class _BrokenMigration(Migration):
    @property
    def version(self) -> int:
        return 2

    @property
    def description(self) -> str:
        return "Broken"

    def up(self, connection: sqlite3.Connection) -> None:
        connection.execute("CREATE TABLE todos (id TEXT)")


class TestMigrationRunner:
    def test_schema_is_applied_once(self):
        connection = open_connection(":memory:")
        runner = MigrationRunner(connection)

        assert runner.get_current_version() == 1
        assert runner.run_migrations(MIGRATIONS) == 0
        columns = {row[1] for row in connection.execute("PRAGMA table_info(todos)")}
        assert {"id", "document_id", "attachment_ids", "updated_at"} <= columns
        connection.close()

    def test_failed_migration_raises(self):
        connection = open_connection(":memory:")

        with pytest.raises(RuntimeError, match="Migration 2 failed"):
            MigrationRunner(connection).run_migrations(MIGRATIONS + [_BrokenMigration()])
        assert MigrationRunner(connection).get_current_version() == 1
        connection.close()
