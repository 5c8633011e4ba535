"""Document sessions for hosts that edit one document file at a time.

A session loads an HTML document from disk, binds a sync driver to it, lets
the caller run commands, then disposes the sync handle (final sync) and
writes the document back.
"""

from __future__ import annotations

import uuid
from pathlib import Path

from todosync.editor.commands import TodoCommands
from todosync.editor.document import Document
from todosync.models import AppConfig
from todosync.models.storage_strategy import StorageStrategy, build_strategy
from todosync.repositories import Notifier, TodoStore
from todosync.services.attachment_linker import AttachmentLinker
from todosync.services.config_service import get_config_service
from todosync.services.notification_service import ConsoleNotifier
from todosync.services.sync_conflicts import SyncConflictTracker
from todosync.services.sync_state import SyncState
from todosync.sync.driver import SyncHandle, SyncManager, SyncResult
from todosync.utils.logger import get_logger

logger = get_logger("services.document")

# Namespace for deriving stable document ids from file paths.
DOCUMENT_NAMESPACE = uuid.UUID("6f1c1d2e-4b1a-4f5e-9a53-0d6c2f6b8a11")


def document_id_for(path: Path) -> str:
    """Derive a stable document id from a file's absolute path."""
    return str(uuid.uuid5(DOCUMENT_NAMESPACE, str(Path(path).resolve())))


def load_document(path: Path, document_id: str | None = None) -> Document:
    """Load a document file, or start an empty document if it does not exist."""
    path = Path(path)
    document_id = document_id or document_id_for(path)
    if not path.exists():
        return Document(document_id=document_id)
    return Document.from_html(path.read_text(encoding="utf-8"), document_id=document_id)


def save_document(document: Document, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(document.to_html() + "\n", encoding="utf-8")


class DocumentSession:
    """An open document bound to the sync engine.

    Usage::

        async with DocumentSession(path, strategy, config, notifier) as session:
            session.commands.toggle_completed(todo_id)
        session.result  # outcome of the final sync
    """

    def __init__(
        self,
        path: Path,
        strategy: StorageStrategy,
        config: AppConfig,
        notifier: Notifier,
        *,
        document_id: str | None = None,
        sync_state: SyncState | None = None,
        conflict_tracker: SyncConflictTracker | None = None,
        save: bool = True,
    ):
        self.path = Path(path)
        self.strategy = strategy
        self.config = config
        self.notifier = notifier
        self.document = load_document(self.path, document_id)
        self.commands = TodoCommands(self.document)
        self.linker = AttachmentLinker(
            self.commands, strategy.get_attachment_storage(), notifier
        )
        self.manager = SyncManager(
            self.store,
            sync_state=sync_state,
            conflict_tracker=conflict_tracker,
            notifier=notifier,
            config=config.sync,
        )
        self.save = save
        self.handle: SyncHandle | None = None
        self.result: SyncResult | None = None

    @property
    def store(self) -> TodoStore:
        return self.strategy.get_todo_store()

    @property
    def document_id(self) -> str:
        return self.document.id

    async def __aenter__(self) -> DocumentSession:
        self.handle = await self.manager.on_ready(
            self.document, self.config.user_id, self.commands
        )
        logger.debug("Opened %s as document %s", self.path, self.document_id)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            if self.handle is not None:
                self.result = await self.handle.dispose()
        finally:
            # Edits are written out even when the final sync failed.
            if self.save:
                save_document(self.document, self.path)
            await self.strategy.close()

    async def sync(self) -> SyncResult:
        """Force a sync of the open document."""
        return await self.manager.force_sync(self.document_id)


def open_session(
    path: Path,
    notifier: Notifier | None = None,
    *,
    save: bool = True,
) -> DocumentSession:
    """Create a session for ``path`` from the effective configuration."""
    config = get_config_service().effective_config()
    return DocumentSession(
        path,
        build_strategy(config),
        config,
        notifier or ConsoleNotifier(),
        save=save,
    )
