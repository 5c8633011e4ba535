"""Initial vault schema: the ``todos`` table and its indexes."""

import sqlite3

from todosync.adapters.sqlite import schema
from .runner import Migration


class TodosTableMigration(Migration):
    """Migration 001: Create the todos table."""

    @property
    def version(self) -> int:
        return 1

    @property
    def description(self) -> str:
        return "Create todos table"

    def up(self, connection: sqlite3.Connection) -> None:
        connection.execute(schema.CREATE_TODOS_TABLE)
        for index_sql in schema.ALL_INDEXES:
            connection.execute(index_sql)


MIGRATIONS = [TodosTableMigration()]
