"""Todo command surface.

The only operations allowed to mutate todo nodes. Each command runs inside one
document transaction (one undo step), bumps the node's ``version`` and stamps
``updated_at`` when it changes attributes, and reports success through a
``CommandResult`` rather than raising. Listeners receive a ``TodoEvent`` for
every successful mutation; the sync driver uses ``delete`` events to tell an
explicit delete apart from a todo that merely disappeared from the document.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from todosync.editor.document import Document, Transaction, find_todo_in
from todosync.editor.grammar import Node, Path
from todosync.editor.schema import TODO_NODE, make_todo, todo_from_record
from todosync.models.core import MERGEABLE_FIELDS, TodoRecord, ensure_utc
from todosync.utils.logger import get_logger

logger = get_logger("editor.commands")


# Failure reasons carried by CommandResult.
NOT_FOUND = "not_found"
READ_ONLY = "read_only"
INVALID = "invalid"
STORAGE = "storage"


@dataclass
class CommandResult:
    """Outcome of a command. Truthy when the command succeeded."""

    ok: bool
    todo_id: str | None = None
    error: str | None = None
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.ok


@dataclass
class TodoEvent:
    """A mutation made through the command surface.

    Attributes:
        kind: ``insert``, ``update``, ``delete``, ``remote`` or ``restore``
        todo_id: Affected todo
        fields: Attribute names that changed
    """

    kind: str
    todo_id: str
    fields: list[str] = field(default_factory=list)


TodoEventListener = Callable[[TodoEvent], None]


def _failure(
    todo_id: str | None, error: str, reason: str = INVALID
) -> CommandResult:
    logger.debug("command failed for %s: %s", todo_id, error)
    return CommandResult(ok=False, todo_id=todo_id, error=error, reason=reason)


class TodoCommands:
    """Commands operating on the todo nodes of one document."""

    def __init__(self, document: Document):
        self.document = document
        self._listeners: list[TodoEventListener] = []
        document.on_transaction(self._on_history)

    def _on_history(self, tr: Transaction) -> None:
        """Announce deletes again when redo re-applies a delete command."""
        if tr.origin != "history":
            return
        for todo_id in sorted(tr.deleted):
            if self.document.find_todo(todo_id) is None:
                self._emit(TodoEvent("delete", todo_id))

    def on_event(self, listener: TodoEventListener) -> Callable[[], None]:
        """Subscribe to command events. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: TodoEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("todo event listener failed for %s", event.todo_id)

    def _locate(self, todo_id: str) -> tuple[Node, Path] | CommandResult:
        found = self.document.find_todo(todo_id)
        if found is None:
            return _failure(todo_id, f"Todo not found: {todo_id}", NOT_FOUND)
        node, path = found
        if not self.document.is_editable(path):
            return _failure(todo_id, f"Todo is not editable: {todo_id}", READ_ONLY)
        return node, path

    def _mutate(self, todo_id: str, changes: dict[str, Any]) -> CommandResult:
        located = self._locate(todo_id)
        if isinstance(located, CommandResult):
            return located
        node, _path = located

        changed = [name for name, value in changes.items() if node.attrs.get(name) != value]
        if not changed:
            return CommandResult(ok=True, todo_id=todo_id)

        with self.document.transaction() as tr:
            for name in changed:
                node.attrs[name] = changes[name]
            _bump(node)
            tr.record(f"update {todo_id} {','.join(changed)}")
        self._emit(TodoEvent("update", todo_id, changed))
        return CommandResult(ok=True, todo_id=todo_id)

    # -- creation and removal -------------------------------------------------

    def insert_todo(
        self,
        position: Path,
        initial_content: str = "",
        *,
        assigned_to: str | None = None,
        due_date: datetime | None = None,
        project_id: str | None = None,
    ) -> CommandResult:
        """Insert a new todo node at ``position`` with a fresh id and version 1."""
        node = make_todo(
            initial_content,
            assigned_to=assigned_to,
            due_date=due_date,
            project_id=project_id,
        )
        todo_id = node.attrs["id"]
        if not self.document.insert_node(position, node):
            return _failure(todo_id, f"Cannot insert a todo at {list(position)}")
        self._emit(TodoEvent("insert", todo_id))
        return CommandResult(ok=True, todo_id=todo_id)

    def append_todo(self, initial_content: str = "", **kwargs: Any) -> CommandResult:
        """Insert a todo at the end of the document."""
        position = (len(self.document.root.content),)
        return self.insert_todo(position, initial_content, **kwargs)

    def delete_todo(self, todo_id: str) -> CommandResult:
        """Remove a todo and signal that its record should be deleted too."""
        located = self._locate(todo_id)
        if isinstance(located, CommandResult):
            return located
        _node, path = located
        with self.document.transaction() as tr:
            if self.document.delete_node(path) is None:
                return _failure(todo_id, f"Cannot delete todo: {todo_id}")
            tr.deleted.add(todo_id)
        self._emit(TodoEvent("delete", todo_id))
        return CommandResult(ok=True, todo_id=todo_id)

    # -- attribute commands ---------------------------------------------------

    def toggle_completed(self, todo_id: str) -> CommandResult:
        found = self.document.find_todo(todo_id)
        if found is None:
            return _failure(todo_id, f"Todo not found: {todo_id}", NOT_FOUND)
        return self._mutate(todo_id, {"completed": not found[0].attrs.get("completed")})

    def set_assignee(self, todo_id: str, user_id: str | None) -> CommandResult:
        return self._mutate(todo_id, {"assigned_to": user_id or None})

    def set_due_date(self, todo_id: str, due_date: datetime | None) -> CommandResult:
        return self._mutate(todo_id, {"due_date": ensure_utc(due_date)})

    def set_project(self, todo_id: str, project_id: str | None) -> CommandResult:
        return self._mutate(todo_id, {"project_id": project_id or None})

    def set_content(self, todo_id: str, text: str) -> CommandResult:
        """Replace the todo's inline text."""
        located = self._locate(todo_id)
        if isinstance(located, CommandResult):
            return located
        node, path = located
        if node.text_content() == text:
            return CommandResult(ok=True, todo_id=todo_id)
        with self.document.transaction():
            self.document.replace_text(path, text)
            _bump(node)
        self._emit(TodoEvent("update", todo_id, ["content"]))
        return CommandResult(ok=True, todo_id=todo_id)

    def attach_file(self, todo_id: str, attachment_id: str) -> CommandResult:
        """Append an attachment id. Attaching an id already present is a no-op."""
        found = self.document.find_todo(todo_id)
        if found is None:
            return _failure(todo_id, f"Todo not found: {todo_id}", NOT_FOUND)
        current = list(found[0].attrs.get("attachment_ids") or [])
        if attachment_id in current:
            return CommandResult(ok=True, todo_id=todo_id)
        return self._mutate(todo_id, {"attachment_ids": current + [attachment_id]})

    def detach_file(self, todo_id: str, attachment_id: str) -> CommandResult:
        """Remove an attachment id, preserving the order of the others."""
        found = self.document.find_todo(todo_id)
        if found is None:
            return _failure(todo_id, f"Todo not found: {todo_id}", NOT_FOUND)
        current = list(found[0].attrs.get("attachment_ids") or [])
        if attachment_id not in current:
            return _failure(
                todo_id, f"Attachment {attachment_id} is not attached", NOT_FOUND
            )
        current.remove(attachment_id)
        return self._mutate(todo_id, {"attachment_ids": current})

    # -- merge-back -----------------------------------------------------------

    def apply_remote(
        self, todo_id: str, fields: dict[str, Any], updated_at: datetime
    ) -> CommandResult:
        """Merge store values into a todo without recording an undo step.

        Only non-content fields are applied. The node's ``version`` is bumped
        and ``updated_at`` takes the store's timestamp so the merged state does
        not look like a newer local edit on the next cycle.
        """
        found = self.document.find_todo(todo_id)
        if found is None:
            return _failure(todo_id, f"Todo not found: {todo_id}", NOT_FOUND)
        node, _path = found
        if node.attrs.get("read_only"):
            return _failure(todo_id, f"Todo is read-only: {todo_id}", READ_ONLY)

        changes = {k: v for k, v in fields.items() if k in MERGEABLE_FIELDS}
        if not changes:
            return CommandResult(ok=True, todo_id=todo_id)
        updated_at = ensure_utc(updated_at)

        def replay(root: Node) -> None:
            located = find_todo_in(root, todo_id)
            if located is not None:
                located[0].attrs.update(changes)

        with self.document.transaction(origin="remote", add_to_history=False) as tr:
            node.attrs.update(changes)
            node.attrs["version"] = node.attrs.get("version", 1) + 1
            node.attrs["updated_at"] = updated_at
            tr.rebase.append(replay)
            tr.record(f"merge {todo_id} {','.join(changes)}")
        self._emit(TodoEvent("remote", todo_id, list(changes)))
        return CommandResult(ok=True, todo_id=todo_id)

    def restore_from_record(self, record: TodoRecord) -> CommandResult:
        """Append a todo node for a record that exists only in the store."""
        if self.document.find_todo(record.id) is not None:
            return _failure(record.id, f"Todo already present: {record.id}")
        node = todo_from_record(record)
        position = (len(self.document.root.content),)
        if not self.document.can_insert(position, TODO_NODE):
            return _failure(record.id, "Document does not accept new todos")
        with self.document.transaction(origin="remote", add_to_history=False) as tr:
            self.document.root.content.append(node)
            tr.record(f"restore {record.id}")
        self._emit(TodoEvent("restore", record.id))
        return CommandResult(ok=True, todo_id=record.id)


def _bump(node: Node) -> None:
    node.attrs["version"] = node.attrs.get("version", 1) + 1
    node.attrs["updated_at"] = datetime.now(UTC)
