"""Migration framework for SQLite database schema evolution.

Sequential, forward-only migrations recorded in a ``schema_version`` table
and applied automatically when a connection is opened.
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from datetime import UTC, datetime

from todosync.utils.logger import get_logger

logger = get_logger("adapters.sqlite.migrations")


class Migration(ABC):
    """Base class for database migrations."""

    @property
    @abstractmethod
    def version(self) -> int:
        """Migration version number (sequential)."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of the migration."""

    @abstractmethod
    def up(self, connection: sqlite3.Connection) -> None:
        """Execute forward migration."""


class MigrationRunner:
    """Manages and executes database migrations."""

    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection
        self.connection.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                description TEXT NOT NULL,
                applied_at DATETIME NOT NULL
            )
        """)
        self.connection.commit()

    def get_current_version(self) -> int:
        """Get current database schema version (0 if none applied)."""
        result = self.connection.execute(
            "SELECT MAX(version) FROM schema_version"
        ).fetchone()[0]
        return result if result is not None else 0

    def run_migrations(self, migrations: list[Migration]) -> int:
        """Run all pending migrations in version order.

        Returns:
            Number of migrations applied

        Raises:
            RuntimeError: If a migration fails (it is rolled back)
        """
        current = self.get_current_version()
        pending = [
            m for m in sorted(migrations, key=lambda m: m.version) if m.version > current
        ]
        for migration in pending:
            try:
                migration.up(self.connection)
                self.connection.execute(
                    "INSERT INTO schema_version (version, description, applied_at) "
                    "VALUES (?, ?, ?)",
                    (
                        migration.version,
                        migration.description,
                        datetime.now(UTC).isoformat(),
                    ),
                )
                self.connection.commit()
            except sqlite3.Error as e:
                self.connection.rollback()
                raise RuntimeError(
                    f"Migration {migration.version} failed: {str(e)}"
                ) from e
            logger.info(
                "Applied migration %d: %s", migration.version, migration.description
            )
        return len(pending)
