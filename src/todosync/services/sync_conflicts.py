"""Sync conflict tracker for logging and managing sync conflicts.

Tracks conflicts found while reconciling a document with the todo store:
fields edited on both sides since the last sync, and todo ids already owned by
another document.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from platformdirs import user_data_dir

from todosync.utils.logger import get_logger

logger = get_logger("services.sync_conflicts")


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class SyncConflict:
    """Represents a single sync conflict."""

    def __init__(
        self,
        document_id: str,
        todo_id: str,
        field: str,
        local_value: Any,
        remote_value: Any,
        resolution: str,
        discarded_local: bool = False,
    ):
        """Initialize a sync conflict.

        Args:
            document_id: Document being synced
            todo_id: Id of the conflicting todo
            field: Conflicting field (``document_id`` for ownership conflicts)
            local_value: Document-side value
            remote_value: Store-side value
            resolution: How the conflict was resolved (local_wins, remote_wins,
                ownership)
            discarded_local: True if the resolution dropped a local edit
        """
        self.document_id = document_id
        self.todo_id = todo_id
        self.field = field
        self.local_value = local_value
        self.remote_value = remote_value
        self.resolution = resolution
        self.discarded_local = discarded_local
        self.detected_at = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        """Convert conflict to dictionary.

        Returns:
            Dictionary representation of conflict
        """
        return {
            "document_id": self.document_id,
            "todo_id": self.todo_id,
            "field": self.field,
            "local_value": _jsonable(self.local_value),
            "remote_value": _jsonable(self.remote_value),
            "resolution": self.resolution,
            "discarded_local": self.discarded_local,
            "detected_at": self.detected_at.isoformat(),
        }


class SyncConflictTracker:
    """Manages sync conflict logging and persistence."""

    def __init__(self, state_dir: Path | None = None):
        """Initialize conflict tracker.

        Args:
            state_dir: Optional directory for the conflict log. Defaults to the
                platform user data directory.
        """
        if state_dir is None:
            state_dir = Path(user_data_dir("todosync"))

        self.state_dir = Path(state_dir)
        self.conflicts_file = self.state_dir / "sync-conflicts.json"
        self._conflicts: list[SyncConflict] = []

    def add_conflict(self, conflict: SyncConflict) -> None:
        """Add a conflict to the tracker.

        Args:
            conflict: SyncConflict instance to track
        """
        self._conflicts.append(conflict)

    def _read_file(self) -> list[dict[str, Any]]:
        if not self.conflicts_file.exists():
            return []
        try:
            with open(self.conflicts_file, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Conflict log %s unreadable, starting fresh: %s", self.conflicts_file, e)
            return []
        return data if isinstance(data, list) else []

    def save(self) -> None:
        """Append tracked conflicts to the conflict log and clear them."""
        if not self._conflicts:
            return

        self.state_dir.mkdir(parents=True, exist_ok=True)
        all_conflicts = self._read_file() + [c.to_dict() for c in self._conflicts]

        with open(self.conflicts_file, "w", encoding="utf-8") as f:
            json.dump(all_conflicts, f, indent=2)
        self._conflicts.clear()

    def load_saved(self, document_id: str | None = None) -> list[dict[str, Any]]:
        """Read conflicts from the conflict log.

        Args:
            document_id: Only return conflicts for this document

        Returns:
            Saved conflict dictionaries, oldest first
        """
        saved = self._read_file()
        if document_id is not None:
            saved = [c for c in saved if c.get("document_id") == document_id]
        return saved

    def get_conflicts(self) -> list[SyncConflict]:
        """Get all tracked conflicts for current session.

        Returns:
            List of SyncConflict objects
        """
        return self._conflicts.copy()

    def clear(self) -> None:
        """Clear tracked conflicts from memory."""
        self._conflicts.clear()

    def count(self) -> int:
        """Get count of conflicts.

        Returns:
            Number of conflicts tracked
        """
        return len(self._conflicts)

    def has_conflicts(self) -> bool:
        """Check if any conflicts were tracked.

        Returns:
            True if conflicts exist, False otherwise
        """
        return len(self._conflicts) > 0
