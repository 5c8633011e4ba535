"""Snapshot extraction of todo nodes from a document."""

from __future__ import annotations

from collections.abc import Iterable

from todosync.editor.document import Document
from todosync.editor.schema import TODO_NODE, to_todo_node
from todosync.models import TodoNode


def extract_todos(document: Document) -> list[TodoNode]:
    """Return a snapshot of every todo node in document order.

    Pure: the document is not modified and repeated calls on an unchanged
    document return equal lists.
    """
    return [
        to_todo_node(node)
        for node, _path in document.descendants()
        if node.type == TODO_NODE
    ]


def index_todos(nodes: Iterable[TodoNode]) -> dict[str, TodoNode]:
    """Index a snapshot by todo id."""
    return {node.id: node for node in nodes}
