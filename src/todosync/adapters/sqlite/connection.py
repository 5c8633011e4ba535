"""Database connection management for the SQLite todo vault.

This module provides a connection manager for the local SQLite database,
ensuring WAL mode, migrations, and connection reuse per database path.
"""

from __future__ import annotations

import atexit
import os
import sqlite3
from pathlib import Path

from platformdirs import user_data_dir

from todosync.adapters.sqlite.migrations.m001_todos import MIGRATIONS
from todosync.adapters.sqlite.migrations.runner import MigrationRunner


class DatabaseConnection:
    """Singleton connection manager for the local SQLite vault.

    Provides:
    - Single connection per process (connection reuse)
    - WAL mode for file-backed databases
    - Automatic directory creation
    - Owner-only file permissions
    - Cleanup on exit
    """

    _instance: DatabaseConnection | None = None
    _connection: sqlite3.Connection | None = None
    _db_path: Path | None = None
    _cleanup_registered = False

    def __new__(cls) -> DatabaseConnection:
        """Ensure singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def get_connection(cls, db_path: str | Path | None = None) -> sqlite3.Connection:
        """Get or create the database connection.

        Args:
            db_path: Path to database file. If None, uses default location.
                ``":memory:"`` opens a private in-memory database.
        """
        if db_path == ":memory:":
            return open_connection(":memory:")

        instance = cls()
        if db_path is None:
            db_path = Path(user_data_dir("todosync")) / "todos.db"
        else:
            db_path = Path(db_path)

        if instance._connection is not None and instance._db_path == db_path:
            return instance._connection

        if instance._connection is not None:
            instance._connection.close()

        db_path.parent.mkdir(parents=True, exist_ok=True)
        is_new_database = not db_path.exists()

        connection = open_connection(str(db_path))
        connection.execute("PRAGMA journal_mode = WAL")

        if is_new_database:
            os.chmod(db_path, 0o600)

        instance._connection = connection
        instance._db_path = db_path
        if not cls._cleanup_registered:
            atexit.register(cls.close_connection)
            cls._cleanup_registered = True
        return connection

    @classmethod
    def close_connection(cls) -> None:
        """Close database connection."""
        instance = cls()
        if instance._connection is not None:
            try:
                instance._connection.commit()
                instance._connection.close()
            finally:
                instance._connection = None
                instance._db_path = None


def open_connection(database: str) -> sqlite3.Connection:
    """Open a configured connection and bring its schema up to date."""
    connection = sqlite3.connect(database, check_same_thread=False, timeout=30.0)
    connection.row_factory = sqlite3.Row
    MigrationRunner(connection).run_migrations(MIGRATIONS)
    return connection


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """Helper function to get database connection."""
    return DatabaseConnection.get_connection(db_path)
