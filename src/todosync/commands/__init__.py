"""CLI commands for todosync."""
