"""Schema migrations for the local SQLite vault."""
