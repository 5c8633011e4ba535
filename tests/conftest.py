"""Shared test fixtures and configuration.

Provides infrastructure to isolate tests from real filesystem/store state.
"""

from __future__ import annotations

import os
import tempfile
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

# Keep logs, config and data of the test run out of the real user directories.
_ISOLATED_HOME = tempfile.mkdtemp(prefix="todosync-tests-")
for _var in ("XDG_CONFIG_HOME", "XDG_DATA_HOME", "XDG_STATE_HOME", "XDG_CACHE_HOME"):
    os.environ[_var] = os.path.join(_ISOLATED_HOME, _var.lower())

from todosync.errors import OwnershipConflict, RecordNotFound, StoreFailure  # noqa: E402
from todosync.models import SyncConfig, TodoRecord, TodoRecordUpdate  # noqa: E402
from todosync.repositories import Notifier, TodoStore  # noqa: E402


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class FakeTodoStore(TodoStore):
    """In-memory todo store with a strictly increasing clock.

    ``fail_ids`` makes calls for those ids raise StoreFailure; ``fail_all``
    makes every call fail.
    """

    def __init__(self):
        self.records: dict[str, TodoRecord] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_ids: set[str] = set()
        self.fail_all = False
        self._last = datetime.now(UTC)

    def now(self) -> datetime:
        self._last = max(datetime.now(UTC), self._last + timedelta(microseconds=1))
        return self._last

    def _check(self, todo_id: str) -> None:
        if self.fail_all or todo_id in self.fail_ids:
            raise StoreFailure(f"store unavailable for {todo_id}", todo_id=todo_id)

    async def insert(self, record: TodoRecord) -> TodoRecord:
        self.calls.append(("insert", record.id))
        self._check(record.id)
        existing = self.records.get(record.id)
        if existing is not None:
            if existing.document_id != record.document_id:
                raise OwnershipConflict(
                    "owned elsewhere",
                    todo_id=record.id,
                    owner_document_id=existing.document_id,
                )
            raise StoreFailure("duplicate", todo_id=record.id)
        stored = record.model_copy(update={"updated_at": self.now()})
        self.records[record.id] = stored
        return stored.model_copy()

    async def update(self, todo_id: str, fields: TodoRecordUpdate) -> TodoRecord:
        self.calls.append(("update", todo_id))
        self._check(todo_id)
        if todo_id not in self.records:
            raise RecordNotFound(f"missing {todo_id}", todo_id=todo_id)
        changes = fields.changes()
        changes["updated_at"] = self.now()
        self.records[todo_id] = self.records[todo_id].model_copy(update=changes)
        return self.records[todo_id].model_copy()

    async def delete(self, todo_id: str) -> bool:
        self.calls.append(("delete", todo_id))
        self._check(todo_id)
        return self.records.pop(todo_id, None) is not None

    async def list_by_document(self, document_id: str) -> list[TodoRecord]:
        self.calls.append(("list", document_id))
        if self.fail_all:
            raise StoreFailure("store unavailable")
        return [
            record.model_copy()
            for record in sorted(self.records.values(), key=lambda r: r.created_at)
            if record.document_id == document_id
        ]

    async def get(self, todo_id: str) -> TodoRecord | None:
        self.calls.append(("get", todo_id))
        self._check(todo_id)
        record = self.records.get(todo_id)
        return record.model_copy() if record else None

    def edit_remotely(self, todo_id: str, **fields) -> TodoRecord:
        """Simulate another client changing a record."""
        fields["updated_at"] = self.now()
        self.records[todo_id] = self.records[todo_id].model_copy(update=fields)
        return self.records[todo_id]

    def count(self, kind: str) -> int:
        return sum(1 for call, _ in self.calls if call == kind)


class RecordingNotifier(Notifier):
    """Notifier that remembers what it was asked to show."""

    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    def notify(self, kind: str, message: str) -> None:
        self.messages.append((kind, message))

    def of_kind(self, kind: str) -> list[str]:
        return [message for k, message in self.messages if k == kind]


@pytest.fixture()
def fake_store():
    return FakeTodoStore()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def fast_sync_config():
    """Sync timings short enough for tests that wait on timers."""
    return SyncConfig(
        debounce_seconds=0.05,
        interval_seconds=60,
        initial_delay_seconds=60,
        max_consecutive_failures=3,
    )


# ---------------------------------------------------------------------------
# Config isolation helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def tmp_config(tmp_path):
    """Provide a real ConfigService backed by a temporary directory.

    Patches platform dirs so config/data files land in *tmp_path* only.
    Also clears the lru_cache so each test gets a fresh service instance.
    """
    from todosync.services.config_service import get_config_service

    tmpdir = str(tmp_path)
    get_config_service.cache_clear()
    with patch("todosync.services.config_service.user_config_dir", return_value=tmpdir):
        with patch("todosync.services.config_service.user_data_dir", return_value=tmpdir):
            from todosync.services.config_service import ConfigService

            svc = ConfigService()
            yield svc
    get_config_service.cache_clear()


@pytest.fixture()
def cli_env(tmp_path):
    """Point every on-disk location used by the CLI at *tmp_path*.

    Yields the ConfigService the commands will use; its store is a SQLite
    vault inside *tmp_path*.
    """
    from todosync.adapters.sqlite.connection import DatabaseConnection
    from todosync.services.config_service import ConfigService, get_config_service

    tmpdir = str(tmp_path / "data")
    get_config_service.cache_clear()
    with (
        patch("todosync.services.config_service.user_config_dir", return_value=tmpdir),
        patch("todosync.services.config_service.user_data_dir", return_value=tmpdir),
        patch("todosync.services.sync_state.user_data_dir", return_value=tmpdir),
        patch("todosync.services.sync_conflicts.user_data_dir", return_value=tmpdir),
    ):
        svc = ConfigService()
        svc.load_config()
        with patch(
            "todosync.services.document_service.get_config_service", return_value=svc
        ), patch("todosync.commands.config_command.get_config_service", return_value=svc):
            yield svc
    DatabaseConnection.close_connection()
    get_config_service.cache_clear()


@pytest.fixture()
def mock_config_service():
    """Provide a MagicMock that stands in for get_config_service()."""
    svc = MagicMock()
    svc.dump.return_value = {"store": {"type": "local"}, "user_id": None}
    return svc
