"""Document tree with transactions and undo history.

A ``Document`` owns its node tree. All mutations happen inside a transaction;
a transaction is one undo step and, once committed, is announced to listeners
(the sync driver subscribes here). Remote transactions (merge-back) are not
added to the undo history and are rebased into the stored history snapshots so
that undoing a local edit never reverts a merged store change.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime

from todosync.editor.grammar import NODE_SPECS, Node, Path
from todosync.editor.markup import parse_html, serialize_html
from todosync.editor.schema import TODO_NODE, generate_todo_id
from todosync.utils.logger import get_logger

TransactionListener = Callable[["Transaction"], None]


@dataclass
class Transaction:
    """A group of document mutations committed as one step.

    Attributes:
        origin: ``"local"`` for user edits, ``"remote"`` for merge-back,
            ``"history"`` for undo/redo
        add_to_history: Whether the step can be undone
        changed: Set by mutators once the tree was modified
        steps: Short descriptions of the applied mutations
        rebase: Callables replaying a remote mutation onto a history snapshot
        deleted: Todo ids removed through the delete command
    """

    origin: str = "local"
    add_to_history: bool = True
    changed: bool = False
    steps: list[str] = field(default_factory=list)
    rebase: list[Callable[[Node], None]] = field(default_factory=list)
    deleted: set[str] = field(default_factory=set)

    def record(self, step: str) -> None:
        self.changed = True
        self.steps.append(step)


@dataclass
class _HistoryStep:
    """Tree snapshot on the undo or redo stack.

    ``deleted`` holds the todo ids the step's transaction deleted, so redoing
    it can announce the deletion again.
    """

    root: Node
    deleted: frozenset[str] = frozenset()


def iter_descendants(root: Node, base: Path = ()) -> Iterator[tuple[Node, Path]]:
    """Yield ``(node, path)`` for every block descendant in document order."""
    for index, child in enumerate(root.content):
        if child.is_text or child.type == "hard_break":
            continue
        path = base + (index,)
        yield child, path
        yield from iter_descendants(child, path)


def find_todo_in(root: Node, todo_id: str) -> tuple[Node, Path] | None:
    """Find a todo node by id under ``root``."""
    for node, path in iter_descendants(root):
        if node.type == TODO_NODE and node.attrs.get("id") == todo_id:
            return node, path
    return None


class Document:
    """A rich-text document identified by ``id``."""

    def __init__(self, root: Node | None = None, document_id: str | None = None):
        self.id = document_id or str(uuid.uuid4())
        self.root = root if root is not None else Node("doc", content=[Node("paragraph")])
        self._undo_stack: list[_HistoryStep] = []
        self._redo_stack: list[_HistoryStep] = []
        self._listeners: list[TransactionListener] = []
        self._active: Transaction | None = None
        self._ensure_unique_todo_ids()

    @classmethod
    def from_html(cls, markup: str, document_id: str | None = None) -> Document:
        """Load a document from HTML."""
        return cls(parse_html(markup), document_id=document_id)

    def to_html(self) -> str:
        """Serialize the document to HTML."""
        return serialize_html(self.root)

    def _ensure_unique_todo_ids(self) -> None:
        seen: set[str] = set()
        for node, _path in iter_descendants(self.root):
            if node.type != TODO_NODE:
                continue
            todo_id = node.attrs.get("id")
            if todo_id in seen:
                fresh = generate_todo_id()
                get_logger("editor.document").warning(
                    "duplicate todo id %s in document %s; reassigned %s",
                    todo_id,
                    self.id,
                    fresh,
                )
                node.attrs["id"] = fresh
                todo_id = fresh
            seen.add(todo_id)

    # -- navigation ------------------------------------------------------------

    def descendants(self) -> Iterator[tuple[Node, Path]]:
        return iter_descendants(self.root)

    def node_at(self, path: Path) -> Node | None:
        node = self.root
        for index in path:
            if not 0 <= index < len(node.content):
                return None
            node = node.content[index]
        return node

    def find_todo(self, todo_id: str) -> tuple[Node, Path] | None:
        return find_todo_in(self.root, todo_id)

    def is_editable(self, path: Path) -> bool:
        """Return True if the node at ``path`` and all its ancestors are editable."""
        node = self.root
        if not node.editable:
            return False
        for index in path:
            if not 0 <= index < len(node.content):
                return False
            node = node.content[index]
            if not node.editable:
                return False
        return True

    def can_insert(self, position: Path, node_type: str) -> bool:
        """Return True if a ``node_type`` node may be inserted at ``position``."""
        if not position:
            return False
        parent_path, index = position[:-1], position[-1]
        parent = self.node_at(parent_path)
        if parent is None or not self.is_editable(parent_path):
            return False
        if not 0 <= index <= len(parent.content):
            return False
        return NODE_SPECS[parent.type].accepts(node_type)

    # -- transactions ----------------------------------------------------------

    def on_transaction(self, listener: TransactionListener) -> Callable[[], None]:
        """Subscribe to committed transactions. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @contextmanager
    def transaction(
        self, *, origin: str = "local", add_to_history: bool = True
    ) -> Iterator[Transaction]:
        """Group mutations into one atomic step.

        Nested calls join the outer transaction. If the block raises, the tree
        is restored and nothing is committed.
        """
        if self._active is not None:
            yield self._active
            return

        before = self.root.copy()
        tr = Transaction(origin=origin, add_to_history=add_to_history)
        self._active = tr
        try:
            yield tr
        except BaseException:
            self.root = before
            raise
        finally:
            self._active = None

        if not tr.changed:
            return
        if tr.add_to_history:
            self._undo_stack.append(_HistoryStep(before, frozenset(tr.deleted)))
            self._redo_stack.clear()
        elif tr.rebase:
            for step in self._undo_stack + self._redo_stack:
                for replay in tr.rebase:
                    replay(step.root)
        self._emit(tr)

    def _emit(self, tr: Transaction) -> None:
        for listener in list(self._listeners):
            try:
                listener(tr)
            except Exception:
                get_logger("editor.document").exception(
                    "transaction listener failed for document %s", self.id
                )

    # -- generic editing -------------------------------------------------------

    def insert_node(self, position: Path, node: Node) -> bool:
        """Insert a block node at ``position``. Returns False if not allowed."""
        if not self.can_insert(position, node.type):
            return False
        with self.transaction() as tr:
            parent = self.node_at(position[:-1])
            parent.content.insert(position[-1], node)
            tr.record(f"insert {node.type} at {position}")
        return True

    def delete_node(self, path: Path) -> Node | None:
        """Remove the block at ``path`` (a plain structural delete).

        This is the path taken by cutting or deleting a selection. Removing a
        todo this way carries no deletion intent.
        """
        if not path or not self.is_editable(path[:-1]):
            return None
        parent = self.node_at(path[:-1])
        if parent is None or not 0 <= path[-1] < len(parent.content):
            return None
        with self.transaction() as tr:
            removed = parent.content.pop(path[-1])
            if not parent.content and parent.type == "doc":
                parent.content.append(Node("paragraph"))
            tr.record(f"delete {removed.type} at {path}")
        return removed

    def replace_text(self, path: Path, text: str) -> bool:
        """Replace the inline content of the text block at ``path``."""
        node = self.node_at(path)
        if node is None or not node.is_textblock or not self.is_editable(path):
            return False
        with self.transaction() as tr:
            node.content = [Node("text", text=text)] if text else []
            tr.record(f"replace text at {path}")
        return True

    # -- history ---------------------------------------------------------------

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    def undo(self) -> bool:
        """Revert the last local transaction."""
        if not self._undo_stack:
            return False
        step = self._undo_stack.pop()
        self._redo_stack.append(_HistoryStep(self.root, step.deleted))
        self._restore(step.root, "undo")
        return True

    def redo(self) -> bool:
        """Re-apply the last undone transaction.

        The redo transaction carries the ids the original step deleted.
        """
        if not self._redo_stack:
            return False
        step = self._redo_stack.pop()
        self._undo_stack.append(_HistoryStep(self.root, step.deleted))
        self._restore(step.root, "redo", step.deleted)
        return True

    def _restore(
        self, restored: Node, step: str, deleted: frozenset[str] = frozenset()
    ) -> None:
        _keep_versions_monotonic(self.root, restored)
        self.root = restored
        tr = Transaction(origin="history", add_to_history=False, deleted=set(deleted))
        tr.record(step)
        self._emit(tr)


def _todo_state(node: Node) -> tuple:
    attrs = {k: v for k, v in node.attrs.items() if k not in {"version", "updated_at"}}
    return tuple(sorted((k, repr(v)) for k, v in attrs.items())), node.text_content()


def _keep_versions_monotonic(current: Node, restored: Node) -> None:
    """Bump versions of todos whose state a history step changes.

    Restoring an older snapshot would otherwise move ``version`` backwards.
    """
    live = {
        node.attrs.get("id"): node
        for node, _ in iter_descendants(current)
        if node.type == TODO_NODE
    }
    now = datetime.now(UTC)
    for node, _ in iter_descendants(restored):
        if node.type != TODO_NODE or node.attrs.get("read_only"):
            continue
        other = live.get(node.attrs.get("id"))
        if other is None:
            continue
        live_version = other.attrs.get("version", 1)
        if _todo_state(node) != _todo_state(other):
            node.attrs["version"] = live_version + 1
            node.attrs["updated_at"] = now
        else:
            node.attrs["version"] = max(node.attrs.get("version", 1), live_version)
            node.attrs["updated_at"] = other.attrs.get("updated_at")
