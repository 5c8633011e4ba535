"""todosync - keeps todo items embedded in documents in sync with a task store."""

__version__ = "0.3.0"
