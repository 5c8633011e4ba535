"""SQLite adapter module - Local database storage implementation."""

from todosync.adapters.sqlite.connection import DatabaseConnection, get_connection
from todosync.adapters.sqlite.todo_repository import SqliteTodoStore

__all__ = [
    "SqliteTodoStore",
    "DatabaseConnection",
    "get_connection",
]
