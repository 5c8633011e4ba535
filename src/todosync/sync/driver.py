"""Sync driver: schedules reconciliation and commits it to the todo store.

One ``SyncDriver`` is bound to one open document. It listens to document
transactions and command events, debounces bursts of edits into a single
sync, runs a periodic sync to pick up store-side changes, and applies each
reconciliation operation independently so a failing record never blocks the
others. ``SyncManager`` is the host-facing entry point: ``on_ready`` binds a
driver to a document and returns a ``SyncHandle`` whose disposal stops the
timers and makes one final sync attempt.

State machine::

    IDLE --edit--> PENDING --debounce/force--> SYNCING --ok--> IDLE
                                                       --failure/new edits--> PENDING
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum

from todosync.editor.commands import TodoCommands, TodoEvent
from todosync.editor.document import Document, Transaction
from todosync.errors import OwnershipConflict, RecordNotFound, StoreFailure
from todosync.models import SyncConfig, TodoNode, TodoRecord, TodoRecordUpdate
from todosync.repositories import Notifier, TodoStore
from todosync.services.notification_service import LogNotifier
from todosync.services.sync_conflicts import SyncConflict, SyncConflictTracker
from todosync.services.sync_state import SyncState
from todosync.sync.extractor import extract_todos, index_todos
from todosync.sync.reconciler import (
    DELETE,
    DETACH,
    INSERT,
    LOCAL_WINS,
    MERGE_BACK,
    OWNERSHIP,
    REMOTE_WINS,
    RESTORE,
    UPDATE,
    Conflict,
    Operation,
    reconcile,
)
from todosync.utils.logger import get_logger

logger = get_logger("sync.driver")


class SyncStatus(str, Enum):
    """Sync state of a bound document."""

    IDLE = "idle"
    PENDING = "pending"
    SYNCING = "syncing"
    DISPOSED = "disposed"


class SyncResult:
    """Result of a sync cycle."""

    def __init__(self):
        """Initialize sync result."""
        self.inserted = 0
        self.updated = 0
        self.deleted = 0
        self.merged = 0
        self.restored = 0
        self.detached = 0
        self.conflicts = 0
        self.flagged = 0
        self.failed: list[str] = []

        self.success = False
        self.error: str | None = None
        self.duration: float = 0.0

    @property
    def operations(self) -> int:
        return (
            self.inserted
            + self.updated
            + self.deleted
            + self.merged
            + self.restored
            + self.detached
        )

    def to_dict(self) -> dict:
        return {
            "inserted": self.inserted,
            "updated": self.updated,
            "deleted": self.deleted,
            "merged": self.merged,
            "restored": self.restored,
            "detached": self.detached,
            "conflicts": self.conflicts,
            "flagged": self.flagged,
            "failed": list(self.failed),
            "success": self.success,
            "error": self.error,
            "duration": round(self.duration, 3),
        }


class SyncDriver:
    """Keeps one document's todo nodes in sync with the todo store."""

    def __init__(
        self,
        document: Document,
        commands: TodoCommands,
        store: TodoStore,
        *,
        user_id: str | None = None,
        sync_state: SyncState | None = None,
        conflict_tracker: SyncConflictTracker | None = None,
        notifier: Notifier | None = None,
        config: SyncConfig | None = None,
    ):
        self.document = document
        self.commands = commands
        self.store = store
        self.user_id = user_id
        self.sync_state = sync_state or SyncState()
        self.conflict_tracker = conflict_tracker or SyncConflictTracker()
        self.notifier = notifier or LogNotifier()
        self.config = config or SyncConfig()

        self._status = SyncStatus.IDLE
        self._lock = asyncio.Lock()
        self._generation = 0
        self._last_seen: list[TodoNode] = extract_todos(document)
        self._failures: dict[str, int] = {}
        self._reported: set[str] = set()
        self._debounce: asyncio.TimerHandle | None = None
        self._initial: asyncio.TimerHandle | None = None
        self._interval_task: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe: list[Callable[[], None]] = []
        self._started = False
        self._stopped = False

    @property
    def document_id(self) -> str:
        return self.document.id

    @property
    def status(self) -> SyncStatus:
        return self._status

    # -- lifecycle -------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to the document and start the timers.

        Must be called from a running event loop.
        """
        if self._started:
            return
        self._started = True
        loop = asyncio.get_running_loop()
        self._unsubscribe.append(self.document.on_transaction(self._on_transaction))
        self._unsubscribe.append(self.commands.on_event(self._on_event))
        self._initial = loop.call_later(self.config.initial_delay_seconds, self._kick)
        self._interval_task = loop.create_task(self._interval_loop())
        logger.info("Sync started for document %s", self.document_id)

    def stop(self) -> None:
        """Stop the timers and stop listening. In-flight store calls finish."""
        if self._stopped:
            return
        self._stopped = True
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()
        for handle in (self._debounce, self._initial):
            if handle is not None:
                handle.cancel()
        self._debounce = None
        self._initial = None
        if self._interval_task is not None:
            self._interval_task.cancel()
            self._interval_task = None
        logger.info("Sync stopped for document %s", self.document_id)

    def mark_disposed(self) -> None:
        self._status = SyncStatus.DISPOSED

    async def wait_idle(self) -> None:
        """Wait for scheduled background syncs to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -- change detection ------------------------------------------------------

    def _on_transaction(self, tr: Transaction) -> None:
        if tr.origin == "remote":
            # Merge-back applied by this driver.
            self._last_seen = extract_todos(self.document)
            return
        current = extract_todos(self.document)
        if current != self._last_seen:
            self._last_seen = current
            self._mark_dirty()

    def _on_event(self, event: TodoEvent) -> None:
        if event.kind == "delete":
            self.sync_state.add_pending_delete(self.document_id, event.todo_id)
            self._mark_dirty()

    def _mark_dirty(self) -> None:
        if self._stopped:
            return
        self._generation += 1
        if self._status == SyncStatus.IDLE:
            self._status = SyncStatus.PENDING
        self._schedule_debounce()

    def _schedule_debounce(self) -> None:
        if self._debounce is not None:
            self._debounce.cancel()
        loop = asyncio.get_running_loop()
        self._debounce = loop.call_later(self.config.debounce_seconds, self._kick)

    def _kick(self) -> None:
        self._debounce = None
        if self._stopped:
            return
        task = asyncio.get_running_loop().create_task(self._run_cycle())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _interval_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.interval_seconds)
            self._kick()

    # -- sync ------------------------------------------------------------------

    async def force_sync(self) -> SyncResult:
        """Sync now, superseding a pending debounced sync.

        Waits behind a sync that is already running; in-flight store calls are
        never cancelled.
        """
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        return await self._run_cycle()

    async def _run_cycle(self) -> SyncResult:
        async with self._lock:
            if self._status == SyncStatus.DISPOSED:
                result = SyncResult()
                result.success = True
                return result
            generation = self._generation
            self._status = SyncStatus.SYNCING
            try:
                result = await self._sync_once()
            except Exception as e:
                # Sync failures never reach the editor.
                logger.exception("Sync cycle failed for document %s", self.document_id)
                result = SyncResult()
                result.error = str(e)

            if self._stopped:
                self._status = SyncStatus.PENDING if not result.success else SyncStatus.IDLE
            elif not result.success or generation != self._generation:
                self._status = SyncStatus.PENDING
                if generation != self._generation:
                    self._schedule_debounce()
            else:
                self._status = SyncStatus.IDLE
            return result

    async def _fetch_records(
        self, current: list[TodoNode], result: SyncResult
    ) -> list[TodoRecord] | None:
        try:
            records = await self.store.list_by_document(self.document_id)
        except StoreFailure as e:
            logger.warning("Listing todos of %s failed: %s", self.document_id, e)
            result.error = str(e)
            return None

        known = {record.id for record in records}
        for node in current:
            if node.id in known or node.read_only:
                continue
            # A record owned by another document is not listed above.
            try:
                record = await self.store.get(node.id)
            except StoreFailure as e:
                self._record_failure(node.id, e, result)
                continue
            if record is not None:
                records.append(record)
        return records

    async def _sync_once(self) -> SyncResult:
        loop = asyncio.get_running_loop()
        started = loop.time()
        result = SyncResult()
        document_id = self.document_id

        current = extract_todos(self.document)
        current_by_id = index_todos(current)
        pending_deletes = self.sync_state.get_pending_deletes(document_id)
        for todo_id in pending_deletes & current_by_id.keys():
            # Undo brought the todo back.
            self.sync_state.discard_pending_delete(document_id, todo_id)
        pending_deletes -= current_by_id.keys()

        records = await self._fetch_records(current, result)
        if records is None:
            result.duration = loop.time() - started
            return result
        records_by_id = {record.id: record for record in records}
        unresolved = set(result.failed)
        for todo_id in sorted(pending_deletes):
            record = records_by_id.get(todo_id)
            if record is None or record.document_id != document_id:
                # Never synced, or already gone from the store.
                self.sync_state.forget(document_id, todo_id)
                pending_deletes.discard(todo_id)

        operations = reconcile(
            self.sync_state.get_snapshot(document_id),
            current,
            records,
            document_id=document_id,
            user_id=self.user_id,
            last_synced=self.sync_state.get_synced_at(document_id),
            deleted_ids=pending_deletes,
            detached=self.sync_state.get_detached(document_id),
        )

        for conflict in operations.conflicts:
            self._handle_conflict(conflict)
        result.conflicts = len(operations.conflicts)
        for todo_id in operations.flagged:
            if todo_id not in self._reported:
                self._reported.add(todo_id)
                logger.warning("Todo %s has an incompatible schema; not synced", todo_id)
        result.flagged = len(operations.flagged)

        synced_at = {}
        for op in operations.operations:
            if op.todo_id in unresolved:
                # Ownership unknown until the store answers for this id.
                continue
            try:
                await self._apply(op, current_by_id, records_by_id, synced_at, result)
            except StoreFailure as e:
                self._record_failure(op.todo_id, e, result)
            else:
                self._failures.pop(op.todo_id, None)

        self.conflict_tracker.save()
        result.success = not result.failed and result.error is None
        result.duration = loop.time() - started
        if operations.operations or result.failed:
            logger.info(
                "Synced document %s: %d operations, %d failed",
                document_id,
                len(operations),
                len(result.failed),
            )
        return result

    async def _apply(
        self,
        op: Operation,
        current: dict[str, TodoNode],
        records: dict[str, TodoRecord],
        synced_at: dict,
        result: SyncResult,
    ) -> None:
        document_id = self.document_id

        if op.kind == INSERT:
            try:
                stored = await self.store.insert(op.record)
            except OwnershipConflict as e:
                self._handle_conflict(
                    Conflict(
                        op.todo_id,
                        "document_id",
                        document_id,
                        e.owner_document_id,
                        OWNERSHIP,
                        owner_document_id=e.owner_document_id,
                    )
                )
                result.conflicts += 1
                return
            synced_at[op.todo_id] = stored.updated_at
            self.sync_state.record_synced(document_id, current[op.todo_id], stored.updated_at)
            result.inserted += 1

        elif op.kind == UPDATE:
            try:
                stored = await self.store.update(op.todo_id, TodoRecordUpdate(**op.fields))
            except RecordNotFound:
                # Deleted in the store meanwhile: re-inserted on the next cycle.
                logger.info("Todo %s vanished from the store; will re-insert", op.todo_id)
                self._mark_dirty()
                return
            synced_at[op.todo_id] = stored.updated_at
            self.sync_state.record_synced(document_id, current[op.todo_id], stored.updated_at)
            result.updated += 1

        elif op.kind == DELETE:
            await self.store.delete(op.todo_id)
            self.sync_state.forget(document_id, op.todo_id)
            result.deleted += 1

        elif op.kind == MERGE_BACK:
            extracted = current[op.todo_id]
            live = index_todos(extract_todos(self.document)).get(op.todo_id)
            if live is None:
                # Removed while the store was being read.
                self._mark_dirty()
                return
            fields = {}
            for name, value in op.fields.items():
                if getattr(live, name) != getattr(extracted, name):
                    # Edited while the store was being read: the local edit is newer.
                    local_value = getattr(live, name)
                    self._handle_conflict(
                        Conflict(op.todo_id, name, local_value, value, LOCAL_WINS)
                    )
                    result.conflicts += 1
                    continue
                fields[name] = value
            if len(fields) < len(op.fields):
                self._mark_dirty()
            if fields:
                applied = self.commands.apply_remote(op.todo_id, fields, op.updated_at)
                if not applied:
                    logger.warning(
                        "Merge-back of %s skipped: %s", op.todo_id, applied.error
                    )
                    return
            # The snapshot holds the store values so kept local edits are pushed.
            merged = extracted.model_copy(update=op.fields)
            self.sync_state.record_synced(
                document_id, merged, synced_at.get(op.todo_id, op.updated_at)
            )
            result.merged += 1

        elif op.kind == RESTORE:
            restored = self.commands.restore_from_record(op.record)
            if not restored:
                logger.warning("Restore of %s skipped: %s", op.todo_id, restored.error)
                return
            node = TodoNode(
                id=op.record.id,
                content=op.record.content,
                completed=op.record.completed,
                assigned_to=op.record.assigned_to,
                due_date=op.record.due_date,
                attachment_ids=list(op.record.attachment_ids),
                version=op.record.version,
                project_id=op.record.project_id,
                created_at=op.record.created_at,
                updated_at=op.record.updated_at,
            )
            self.sync_state.record_synced(document_id, node, op.record.updated_at)
            result.restored += 1

        elif op.kind == DETACH:
            record = records.get(op.todo_id)
            self.sync_state.mark_detached(
                document_id, op.todo_id, record.updated_at if record else None
            )
            logger.info("Todo %s detached from document %s", op.todo_id, document_id)
            result.detached += 1

    def _record_failure(self, todo_id: str, error: StoreFailure, result: SyncResult) -> None:
        result.failed.append(todo_id)
        count = self._failures.get(todo_id, 0) + 1
        logger.warning("Sync of todo %s failed (%d in a row): %s", todo_id, count, error)
        if count >= self.config.max_consecutive_failures:
            self.notifier.notify(
                "error",
                f"Todo {todo_id} failed to sync {count} times: {error}. "
                "Your changes are kept and will be retried.",
            )
            count = 0
        self._failures[todo_id] = count

    def _handle_conflict(self, conflict: Conflict) -> None:
        self.conflict_tracker.add_conflict(
            SyncConflict(
                document_id=self.document_id,
                todo_id=conflict.todo_id,
                field=conflict.field,
                local_value=conflict.local_value,
                remote_value=conflict.remote_value,
                resolution=conflict.resolution,
                discarded_local=conflict.discarded_local,
            )
        )
        logger.info(
            "Conflict on todo %s field %s resolved %s",
            conflict.todo_id,
            conflict.field,
            conflict.resolution,
        )
        if conflict.resolution == OWNERSHIP:
            if conflict.todo_id not in self._reported:
                self._reported.add(conflict.todo_id)
                self.notifier.notify(
                    "warning",
                    f"Todo {conflict.todo_id} belongs to document "
                    f"{conflict.owner_document_id} and was not synced",
                )
        elif conflict.resolution == REMOTE_WINS and conflict.discarded_local:
            self.notifier.notify(
                "warning",
                f"Your change to {conflict.field} on todo {conflict.todo_id} was "
                "replaced by a newer change from the store",
            )


class SyncHandle:
    """Disposable binding between a document and its sync driver."""

    def __init__(self, manager: SyncManager, driver: SyncDriver):
        self._manager = manager
        self.driver = driver
        self._disposed = False
        self._final: asyncio.Task | None = None

    @property
    def document_id(self) -> str:
        return self.driver.document_id

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def dispose(self) -> SyncResult:
        """Stop syncing and make one final sync attempt."""
        if self._disposed:
            if self._final is not None:
                return await self._final
            result = SyncResult()
            result.success = True
            return result
        self._disposed = True
        self.driver.stop()
        self._manager._release(self)
        try:
            result = await self.driver.force_sync()
        finally:
            self.driver.mark_disposed()
        if not result.success:
            logger.warning(
                "Final sync of document %s incomplete: %s",
                self.document_id,
                result.error or ", ".join(result.failed),
            )
        return result

    def dispose_nowait(self) -> asyncio.Task:
        """Schedule disposal without waiting (for unload paths)."""
        if self._final is None:
            self._final = asyncio.get_running_loop().create_task(self.dispose())
        return self._final


class SyncManager:
    """Binds sync drivers to open documents for a host application."""

    def __init__(
        self,
        store: TodoStore,
        *,
        sync_state: SyncState | None = None,
        conflict_tracker: SyncConflictTracker | None = None,
        notifier: Notifier | None = None,
        config: SyncConfig | None = None,
    ):
        self.store = store
        self.sync_state = sync_state or SyncState()
        self.conflict_tracker = conflict_tracker or SyncConflictTracker()
        self.notifier = notifier or LogNotifier()
        self.config = config or SyncConfig()
        self._handles: dict[str, SyncHandle] = {}

    async def on_ready(
        self,
        document: Document,
        user_id: str | None,
        commands: TodoCommands | None = None,
    ) -> SyncHandle:
        """Begin syncing a document.

        Any previously bound document is cleaned up first (final sync
        included), so at most one driver is ever bound per document.
        """
        for handle in list(self._handles.values()):
            await handle.dispose()

        driver = SyncDriver(
            document,
            commands or TodoCommands(document),
            self.store,
            user_id=user_id,
            sync_state=self.sync_state,
            conflict_tracker=self.conflict_tracker,
            notifier=self.notifier,
            config=self.config,
        )
        handle = SyncHandle(self, driver)
        self._handles[document.id] = handle
        driver.start()
        return handle

    async def force_sync(self, document_id: str) -> SyncResult:
        """Sync a bound document now."""
        handle = self._handles.get(document_id)
        if handle is None:
            result = SyncResult()
            result.error = f"Document {document_id} is not bound"
            return result
        return await handle.driver.force_sync()

    def handle_for(self, document_id: str) -> SyncHandle | None:
        return self._handles.get(document_id)

    def _release(self, handle: SyncHandle) -> None:
        if self._handles.get(handle.document_id) is handle:
            del self._handles[handle.document_id]
