"""Services module for todosync - application services around the sync engine."""
