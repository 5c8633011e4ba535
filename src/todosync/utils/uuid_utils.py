"""UUID utility functions for todosync.

Provides UUID validation, short UUID display, and resolution of todo id
prefixes typed on the command line.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

# Relaxed UUID pattern (any version)
UUID_RELAXED_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def is_valid_uuid(value: str) -> bool:
    """Check if a string is a valid UUID.

    Args:
        value: String to validate

    Returns:
        True if value is a valid UUID
    """
    if not isinstance(value, str):
        return False
    return UUID_RELAXED_PATTERN.match(value) is not None


def shorten_uuid(uuid: str, length: int = 8) -> str:
    """Get shortened version of UUID (first N characters)."""
    return uuid[:length]


def resolve_todo_id(
    short_or_full_id: str, todo_ids: Iterable[str], min_length: int = 4
) -> str:
    """Resolve a todo id or id prefix against the ids present in a document.

    Args:
        short_or_full_id: Either a full id or a prefix of one
        todo_ids: Ids of the todos in the document
        min_length: Minimum length for prefixes

    Returns:
        Full todo id

    Raises:
        LookupError: If no todo matches
        ValueError: If the prefix is too short or ambiguous
    """
    wanted = short_or_full_id.strip().lower()
    ids = list(todo_ids)

    for todo_id in ids:
        if todo_id.lower() == wanted:
            return todo_id

    if len(wanted) < min_length:
        raise ValueError(
            f"ID must be at least {min_length} characters. "
            f"Got: {wanted} ({len(wanted)} chars)"
        )

    matches = [todo_id for todo_id in ids if todo_id.lower().startswith(wanted)]
    if not matches:
        raise LookupError(f"Todo not found: {short_or_full_id}")
    if len(matches) > 1:
        shown = ", ".join(shorten_uuid(m) for m in matches[:5])
        if len(matches) > 5:
            shown += f", ... ({len(matches)} total)"
        raise ValueError(
            f"Ambiguous ID '{short_or_full_id}' matches {len(matches)} todos: {shown}"
        )
    return matches[0]
