"""Row conversion helpers for the SQLite adapter."""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from typing import Any

from todosync.models import TodoRecord


def now_iso() -> str:
    """Get current timestamp in ISO format."""
    return datetime.now(UTC).isoformat()


def to_db_value(key: str, value: Any) -> Any:
    """Convert a record field into its column representation."""
    if value is None:
        return None
    if key == "attachment_ids":
        return json.dumps(list(value))
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC).isoformat()
    if isinstance(value, bool):
        return int(value)
    return value


def row_to_record(row: sqlite3.Row | None) -> TodoRecord | None:
    """Convert a ``todos`` row into a TodoRecord."""
    if row is None:
        return None
    data = dict(row)
    raw_ids = data.get("attachment_ids")
    try:
        data["attachment_ids"] = json.loads(raw_ids) if raw_ids else []
    except json.JSONDecodeError:
        data["attachment_ids"] = []
    data["completed"] = bool(data.get("completed"))
    return TodoRecord.model_validate(data)


def build_update_clause(updates: dict[str, Any]) -> tuple[str, list[Any]]:
    """Build SQL UPDATE SET clause from updates dictionary.

    Unlike a filter, ``None`` values are kept so fields can be cleared.
    """
    set_parts = []
    params = []

    for key, value in updates.items():
        set_parts.append(f"{key} = ?")
        params.append(to_db_value(key, value))

    return ", ".join(set_parts), params
