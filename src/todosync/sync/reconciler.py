"""Three-way reconciliation between a document and the todo store.

``reconcile`` compares the current document snapshot against the snapshot
last synced to the store and against the store's current records, and returns
the operations that bring both sides back in agreement:

- a node unknown to the store is inserted
- a node changed locally since the last sync is updated in the store
- a node removed by the delete command is deleted from the store
- a node that merely disappeared from the document is detached (no store call)
- a store record newer than the document is merged back into the node
- a store-only record is restored into the document

Conflicts are resolved per field, last-write-wins by ``updated_at``. Content
text is owned by the document and is never overwritten from the store.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from todosync.models import MERGEABLE_FIELDS, SYNCED_FIELDS, TodoNode, TodoRecord

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"
MERGE_BACK = "merge_back"
RESTORE = "restore"
DETACH = "detach"

LOCAL_WINS = "local_wins"
REMOTE_WINS = "remote_wins"
OWNERSHIP = "ownership"


@dataclass
class Operation:
    """A single reconciliation decision for one todo id.

    Attributes:
        kind: One of ``insert``, ``update``, ``delete``, ``merge_back``,
            ``restore`` or ``detach``
        todo_id: Affected todo
        fields: Field values to write (store fields for ``update``, node
            attributes for ``merge_back``)
        record: Full record for ``insert`` and ``restore``
        updated_at: Store timestamp carried by ``merge_back``
    """

    kind: str
    todo_id: str
    fields: dict[str, Any] = field(default_factory=dict)
    record: TodoRecord | None = None
    updated_at: datetime | None = None


@dataclass
class Conflict:
    """A same-field divergence or an ownership clash found while reconciling."""

    todo_id: str
    field: str
    local_value: Any
    remote_value: Any
    resolution: str
    discarded_local: bool = False
    owner_document_id: str | None = None


@dataclass
class OperationSet:
    """Result of a reconciliation run."""

    operations: list[Operation] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)
    flagged: list[str] = field(default_factory=list)

    def of_kind(self, kind: str) -> list[Operation]:
        return [op for op in self.operations if op.kind == kind]

    @property
    def inserts(self) -> list[Operation]:
        return self.of_kind(INSERT)

    @property
    def updates(self) -> list[Operation]:
        return self.of_kind(UPDATE)

    @property
    def deletes(self) -> list[Operation]:
        return self.of_kind(DELETE)

    @property
    def merge_backs(self) -> list[Operation]:
        return self.of_kind(MERGE_BACK)

    @property
    def restores(self) -> list[Operation]:
        return self.of_kind(RESTORE)

    @property
    def detaches(self) -> list[Operation]:
        return self.of_kind(DETACH)

    def is_empty(self) -> bool:
        return not self.operations

    def __len__(self) -> int:
        return len(self.operations)


def _changed(before: Mapping[str, Any], after: Mapping[str, Any]) -> set[str]:
    return {name for name in SYNCED_FIELDS if before.get(name) != after.get(name)}


def _reconcile_existing(
    node: TodoNode,
    record: TodoRecord,
    baseline: TodoNode | None,
    last_synced: datetime | None,
    result: OperationSet,
) -> None:
    local = node.synced_fields()
    remote = record.synced_fields()
    differing = _changed(local, remote)
    if not differing:
        return

    if baseline is None:
        # Nothing to diff against: every differing field changed on both sides.
        local_changed = set(differing)
        remote_changed = set(differing)
    else:
        base = baseline.synced_fields()
        local_changed = _changed(base, local)
        if last_synced is not None and record.updated_at <= last_synced:
            remote_changed = set()
        else:
            remote_changed = _changed(base, remote)

    store_newer = node.updated_at is None or record.updated_at > node.updated_at
    push: dict[str, Any] = {}
    pull: dict[str, Any] = {}

    for name in SYNCED_FIELDS:
        if name not in differing:
            continue
        by_local = name in local_changed
        by_remote = name in remote_changed
        if name not in MERGEABLE_FIELDS:
            # Content: the document copy always wins.
            push[name] = local[name]
            if by_remote:
                result.conflicts.append(
                    Conflict(node.id, name, local[name], remote[name], LOCAL_WINS)
                )
            continue
        if by_remote and not by_local:
            pull[name] = remote[name]
        elif by_local and not by_remote:
            push[name] = local[name]
        elif by_remote and by_local:
            if store_newer:
                pull[name] = remote[name]
                result.conflicts.append(
                    Conflict(
                        node.id,
                        name,
                        local[name],
                        remote[name],
                        REMOTE_WINS,
                        discarded_local=baseline is not None,
                    )
                )
            else:
                push[name] = local[name]
                result.conflicts.append(
                    Conflict(node.id, name, local[name], remote[name], LOCAL_WINS)
                )
        else:
            # Differs without either side recording a change: the baseline is
            # stale, repair the store from the document.
            push[name] = local[name]

    if push:
        push["version"] = max(node.version, record.version)
        result.operations.append(Operation(UPDATE, node.id, fields=push))
    if pull:
        result.operations.append(
            Operation(MERGE_BACK, node.id, fields=pull, updated_at=record.updated_at)
        )


def reconcile(
    previous: Mapping[str, TodoNode] | Iterable[TodoNode],
    current: Iterable[TodoNode],
    store_records: Iterable[TodoRecord],
    *,
    document_id: str,
    user_id: str | None = None,
    last_synced: Mapping[str, datetime] | None = None,
    deleted_ids: Iterable[str] = (),
    detached: Mapping[str, datetime] | None = None,
) -> OperationSet:
    """Compute the operations that reconcile a document with the store.

    Args:
        previous: Snapshot as of the last successful sync, per id
        current: Snapshot extracted from the document now, in document order
        store_records: Store records for the document, plus any record sharing
            an id with a current node regardless of its owner
        document_id: Document being reconciled
        user_id: Recorded as ``created_by`` on inserted records
        last_synced: Store ``updated_at`` observed at the last sync, per id
        deleted_ids: Ids removed through the delete command and not yet
            deleted from the store
        detached: Store ``updated_at`` at the time an id was detached, per id

    Returns:
        OperationSet with operations in document order, followed by detaches,
        deletes and restores
    """
    if not isinstance(previous, Mapping):
        previous = {node.id: node for node in previous}
    last_synced = last_synced or {}
    detached = detached or {}
    deleted = set(deleted_ids)
    records = {record.id: record for record in store_records}
    current = list(current)
    current_ids = {node.id for node in current}
    result = OperationSet()

    for node in current:
        if node.read_only:
            result.flagged.append(node.id)
            continue
        record = records.get(node.id)
        if record is not None and record.document_id != document_id:
            result.conflicts.append(
                Conflict(
                    node.id,
                    "document_id",
                    document_id,
                    record.document_id,
                    OWNERSHIP,
                    owner_document_id=record.document_id,
                )
            )
            continue
        if record is None:
            # New locally, or previously synced and gone from the store.
            result.operations.append(
                Operation(
                    INSERT,
                    node.id,
                    record=TodoRecord.from_node(node, document_id, user_id),
                )
            )
            continue
        _reconcile_existing(
            node, record, previous.get(node.id), last_synced.get(node.id), result
        )

    for todo_id in previous:
        if todo_id in current_ids or todo_id in deleted:
            continue
        if todo_id not in detached:
            result.operations.append(Operation(DETACH, todo_id))

    for todo_id in sorted(deleted - current_ids):
        record = records.get(todo_id)
        if record is not None and record.document_id == document_id:
            result.operations.append(Operation(DELETE, todo_id))

    for record in records.values():
        if record.document_id != document_id:
            continue
        if record.id in current_ids or record.id in deleted or record.id in previous:
            continue
        detached_at = detached.get(record.id)
        if detached_at is not None and record.updated_at <= detached_at:
            continue
        result.operations.append(Operation(RESTORE, record.id, record=record))

    return result
