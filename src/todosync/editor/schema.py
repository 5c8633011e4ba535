"""Todo node schema.

Defines the ``todo`` node type: its attribute set, how it serializes to and
from markup, and how it renders as a node view. Attributes travel as
fragment-level ``data-*`` metadata on the node's element, never parsed out of
the visible text, so the content can be edited freely.

Deserialization is defensive. Missing or malformed attributes fall back to
defaults so externally authored documents and documents written by older
schema versions still load. Nodes written by an incompatible schema version are
kept verbatim and marked read-only.
"""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from typing import Any

from todosync.editor.grammar import INLINE_CONTENT, Node, NodeSpec, register_node
from todosync.models.core import TodoNode, TodoRecord, ensure_utc
from todosync.utils.logger import get_logger

TODO_NODE = "todo"
TODO_MARKUP_TYPE = "todo-item"
TODO_CSS_CLASS = "todo-item"

SCHEMA_VERSION = "2.3"
_SUPPORTED_MAJOR = 2
_SUPPORTED_MINOR = 3

_NULL_MARKERS = {"", "null", "undefined", "none"}


def _parse_schema_tag(tag: str) -> tuple[int, int] | None:
    parts = tag.strip().split(".")
    if len(parts) != 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


def is_compatible_schema(tag: str | None) -> bool:
    """Return True if nodes written with schema ``tag`` can be interpreted.

    A missing tag means the node predates schema tagging and is treated as
    compatible. Otherwise the major version must match and the minor version
    must not be newer than the current one.
    """
    if tag is None or not tag.strip():
        return True
    parsed = _parse_schema_tag(tag)
    if parsed is None:
        return False
    major, minor = parsed
    return major == _SUPPORTED_MAJOR and minor <= _SUPPORTED_MINOR


def generate_todo_id() -> str:
    """Generate a fresh todo id."""
    return str(uuid.uuid4())


def _optional_str(value: str | None) -> str | None:
    if value is None or value.strip().lower() in _NULL_MARKERS:
        return None
    return value.strip()


def _parse_bool(name: str, value: str | None) -> bool:
    if value is None:
        return False
    lowered = value.strip().lower()
    if lowered == "true":
        return True
    if lowered not in {"false", ""}:
        get_logger("editor.schema").debug(
            "defaulting malformed %s=%r to false", name, value
        )
    return False


def _parse_datetime(name: str, value: str | None) -> datetime | None:
    value = _optional_str(value)
    if value is None:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        get_logger("editor.schema").debug(
            "defaulting malformed %s=%r to null", name, value
        )
        return None


def _parse_version(value: str | None) -> int:
    value = _optional_str(value)
    if value is None:
        return 1
    try:
        version = int(value)
    except ValueError:
        get_logger("editor.schema").debug("defaulting malformed version=%r to 1", value)
        return 1
    return version if version >= 1 else 1


def _parse_id_list(value: str | None) -> list[str]:
    value = _optional_str(value)
    if value is None:
        return []
    if value.startswith("["):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list) and all(isinstance(v, str) for v in parsed):
            return parsed
        get_logger("editor.schema").debug(
            "defaulting malformed attachment ids %r to []", value
        )
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_todo_attrs(tag: str, raw: dict[str, str]) -> dict[str, Any]:
    """Convert markup attributes of a todo element into node attributes.

    Args:
        tag: Element tag name (unused, part of the parse hook signature)
        raw: Element attributes

    Returns:
        Node attribute dict. Incompatible nodes additionally carry
        ``read_only=True`` and the untouched markup attributes under ``raw``.
    """
    schema_tag = _optional_str(raw.get("data-schema-version")) or _optional_str(
        raw.get("version")
    )
    todo_id = _optional_str(raw.get("data-id"))
    if todo_id is None:
        todo_id = generate_todo_id()
        get_logger("editor.schema").debug("assigned fresh id %s to todo node", todo_id)

    if not is_compatible_schema(schema_tag):
        get_logger("editor.schema").warning(
            "todo %s uses incompatible schema %s; loading read-only",
            todo_id,
            schema_tag,
        )
        return {
            "id": todo_id,
            "schema_version": schema_tag,
            "read_only": True,
            "raw": dict(raw),
        }

    return {
        "id": todo_id,
        "completed": _parse_bool("completed", raw.get("data-completed")),
        "assigned_to": _optional_str(raw.get("data-assigned-to")),
        "project_id": _optional_str(raw.get("data-project-id")),
        "due_date": _parse_datetime("due date", raw.get("data-due-date")),
        "attachment_ids": _parse_id_list(raw.get("data-attachment-ids")),
        "version": _parse_version(raw.get("data-version")),
        "created_at": _parse_datetime("created at", raw.get("data-created-at")),
        "updated_at": _parse_datetime("updated at", raw.get("data-updated-at")),
        "schema_version": SCHEMA_VERSION,
    }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def render_todo_attrs(attrs: dict[str, Any]) -> dict[str, Any]:
    """Convert todo node attributes into markup attributes.

    Read-only nodes render their original markup attributes unchanged. ``None``
    values are omitted from the output.
    """
    if attrs.get("read_only") and attrs.get("raw") is not None:
        return dict(attrs["raw"])

    attachment_ids = attrs.get("attachment_ids") or []
    return {
        "data-type": TODO_MARKUP_TYPE,
        "class": TODO_CSS_CLASS,
        "data-id": attrs.get("id"),
        "data-completed": "true" if attrs.get("completed") else "false",
        "data-assigned-to": attrs.get("assigned_to"),
        "data-project-id": attrs.get("project_id"),
        "data-due-date": _iso(attrs.get("due_date")),
        "data-attachment-ids": json.dumps(attachment_ids) if attachment_ids else None,
        "data-version": str(attrs.get("version", 1)),
        "data-schema-version": SCHEMA_VERSION,
        "data-created-at": _iso(attrs.get("created_at")),
        "data-updated-at": _iso(attrs.get("updated_at")),
    }


TODO_SPEC = register_node(
    NodeSpec(
        TODO_NODE,
        group="block",
        content=INLINE_CONTENT,
        tag="div",
        match=lambda tag, attrs: tag == "div"
        and attrs.get("data-type") == TODO_MARKUP_TYPE,
        parse_attrs=parse_todo_attrs,
        render_attrs=render_todo_attrs,
        priority=51,
    )
)


def make_todo(
    content: str,
    *,
    todo_id: str | None = None,
    completed: bool = False,
    assigned_to: str | None = None,
    due_date: datetime | None = None,
    project_id: str | None = None,
    attachment_ids: list[str] | None = None,
    version: int = 1,
    now: datetime | None = None,
) -> Node:
    """Build a new todo node."""
    now = now or datetime.now(UTC)
    attrs = {
        "id": todo_id or generate_todo_id(),
        "completed": completed,
        "assigned_to": assigned_to,
        "project_id": project_id,
        "due_date": ensure_utc(due_date),
        "attachment_ids": list(attachment_ids or []),
        "version": version,
        "created_at": now,
        "updated_at": now,
        "schema_version": SCHEMA_VERSION,
    }
    children = [Node("text", text=content)] if content else []
    return Node(TODO_NODE, attrs=attrs, content=children)


def todo_from_record(record: TodoRecord) -> Node:
    """Build a todo node for a store record that is missing from the document."""
    node = make_todo(
        record.content,
        todo_id=record.id,
        completed=record.completed,
        assigned_to=record.assigned_to,
        due_date=record.due_date,
        project_id=record.project_id,
        attachment_ids=record.attachment_ids,
        version=record.version,
    )
    node.attrs["created_at"] = record.created_at
    node.attrs["updated_at"] = record.updated_at
    return node


def to_todo_node(node: Node) -> TodoNode:
    """Snapshot a document todo node as a ``TodoNode`` model."""
    attrs = node.attrs
    if attrs.get("read_only"):
        return TodoNode(
            id=attrs["id"],
            content=node.text_content(),
            schema_version=attrs.get("schema_version") or "",
            read_only=True,
        )
    return TodoNode(
        id=attrs["id"],
        content=node.text_content(),
        completed=bool(attrs.get("completed")),
        assigned_to=attrs.get("assigned_to"),
        due_date=attrs.get("due_date"),
        attachment_ids=list(attrs.get("attachment_ids") or []),
        version=attrs.get("version", 1),
        project_id=attrs.get("project_id"),
        created_at=attrs.get("created_at"),
        updated_at=attrs.get("updated_at"),
        schema_version=attrs.get("schema_version") or SCHEMA_VERSION,
    )


def render_todo_text(node: Node) -> str:
    """Render a todo node as a single line of plain text (the node view).

    Read-only nodes carry a visible warning instead of being hidden.
    """
    attrs = node.attrs
    text = node.text_content()
    if attrs.get("read_only"):
        return (
            f"[!] read-only (schema {attrs.get('schema_version') or 'unknown'}): {text}"
        )
    box = "[x]" if attrs.get("completed") else "[ ]"
    parts = [f"{box} {text}"]
    if attrs.get("assigned_to"):
        parts.append(f"@{attrs['assigned_to']}")
    if attrs.get("due_date"):
        parts.append(f"due {attrs['due_date'].date().isoformat()}")
    if attrs.get("attachment_ids"):
        parts.append(f"+{len(attrs['attachment_ids'])} file(s)")
    return "  ".join(parts)
