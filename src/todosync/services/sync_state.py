"""Sync state manager for tracking what was last synced per document.

For every document the ledger keeps the last-synced snapshot of each todo,
the store ``updated_at`` observed when it was synced, the todos detached from
the document (with the store timestamp at detach time), and explicit deletes
that have not reached the store yet. State is persisted in
``<data dir>/sync-state.json``.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from platformdirs import user_data_dir
from pydantic import ValidationError

from todosync.models import TodoNode
from todosync.utils.logger import get_logger

logger = get_logger("services.sync_state")


def _parse_timestamp(value: str) -> datetime:
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


class SyncState:
    """Manages sync state persistence."""

    def __init__(self, state_dir: Path | None = None):
        """Initialize sync state manager.

        Args:
            state_dir: Optional directory for the state file. Defaults to the
                platform user data directory.
        """
        if state_dir is None:
            state_dir = Path(user_data_dir("todosync"))

        self.state_dir = Path(state_dir)
        self.state_file = self.state_dir / "sync-state.json"
        self._state: dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        """Load sync state from file."""
        if not self.state_file.exists():
            self._state = {"documents": {}}
            return

        try:
            with open(self.state_file, encoding="utf-8") as f:
                self._state = json.load(f) or {"documents": {}}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Sync state file %s unreadable, starting fresh: %s", self.state_file, e)
            self._state = {"documents": {}}

        if not isinstance(self._state.get("documents"), dict):
            self._state = {"documents": {}}

    def save(self) -> None:
        """Save sync state to file."""
        self.state_dir.mkdir(parents=True, exist_ok=True)

        with open(self.state_file, "w", encoding="utf-8") as f:
            json.dump(self._state, f, indent=2)

    def _document(self, document_id: str) -> dict[str, Any]:
        doc = self._state["documents"].setdefault(document_id, {})
        doc.setdefault("snapshot", {})
        doc.setdefault("synced_at", {})
        doc.setdefault("detached", {})
        doc.setdefault("pending_deletes", [])
        return doc

    # -- reads -----------------------------------------------------------------

    def get_snapshot(self, document_id: str) -> dict[str, TodoNode]:
        """Get the last-synced snapshot of a document, keyed by todo id."""
        snapshot: dict[str, TodoNode] = {}
        for todo_id, data in self._document(document_id)["snapshot"].items():
            try:
                snapshot[todo_id] = TodoNode.model_validate(data)
            except ValidationError as e:
                logger.warning("Dropping unreadable snapshot entry %s: %s", todo_id, e)
        return snapshot

    def get_synced_at(self, document_id: str) -> dict[str, datetime]:
        """Get the store ``updated_at`` observed at the last sync, per todo id."""
        return {
            todo_id: _parse_timestamp(value)
            for todo_id, value in self._document(document_id)["synced_at"].items()
        }

    def get_last_sync(self, document_id: str, todo_id: str) -> datetime | None:
        """Get the last sync timestamp for one todo, or None if never synced."""
        value = self._document(document_id)["synced_at"].get(todo_id)
        return _parse_timestamp(value) if value else None

    def get_detached(self, document_id: str) -> dict[str, datetime]:
        """Get the detached todo ids of a document with their detach timestamps."""
        return {
            todo_id: _parse_timestamp(value)
            for todo_id, value in self._document(document_id)["detached"].items()
        }

    def get_pending_deletes(self, document_id: str) -> set[str]:
        """Get ids deleted in the document but not yet deleted from the store."""
        return set(self._document(document_id)["pending_deletes"])

    def has_document(self, document_id: str) -> bool:
        return document_id in self._state["documents"]

    # -- writes ----------------------------------------------------------------

    def record_synced(
        self, document_id: str, node: TodoNode, updated_at: datetime
    ) -> None:
        """Record that a todo's state was written to (or read from) the store.

        Args:
            document_id: Owning document
            node: Todo state now matching the store
            updated_at: Store ``updated_at`` of the synced record
        """
        doc = self._document(document_id)
        doc["snapshot"][node.id] = node.model_dump(mode="json")
        doc["synced_at"][node.id] = _format_timestamp(updated_at)
        doc["detached"].pop(node.id, None)
        self.save()

    def mark_detached(
        self, document_id: str, todo_id: str, updated_at: datetime | None
    ) -> None:
        """Move a todo that left the document into the detached set."""
        doc = self._document(document_id)
        doc["snapshot"].pop(todo_id, None)
        synced = doc["synced_at"].pop(todo_id, None)
        if updated_at is not None:
            doc["detached"][todo_id] = _format_timestamp(updated_at)
        elif synced is not None:
            doc["detached"][todo_id] = synced
        else:
            doc["detached"][todo_id] = _format_timestamp(datetime.now(UTC))
        self.save()

    def add_pending_delete(self, document_id: str, todo_id: str) -> None:
        doc = self._document(document_id)
        if todo_id not in doc["pending_deletes"]:
            doc["pending_deletes"].append(todo_id)
            self.save()

    def discard_pending_delete(self, document_id: str, todo_id: str) -> None:
        doc = self._document(document_id)
        if todo_id in doc["pending_deletes"]:
            doc["pending_deletes"].remove(todo_id)
            self.save()

    def forget(self, document_id: str, todo_id: str) -> None:
        """Drop every trace of a todo (after its record was deleted)."""
        doc = self._document(document_id)
        doc["snapshot"].pop(todo_id, None)
        doc["synced_at"].pop(todo_id, None)
        doc["detached"].pop(todo_id, None)
        if todo_id in doc["pending_deletes"]:
            doc["pending_deletes"].remove(todo_id)
        self.save()

    def clear_document(self, document_id: str) -> None:
        """Clear all sync state for a document."""
        if document_id in self._state["documents"]:
            del self._state["documents"][document_id]
            self.save()
