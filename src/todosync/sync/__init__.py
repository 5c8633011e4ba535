"""Sync engine: snapshot extraction, reconciliation and the sync driver."""

from .driver import SyncDriver, SyncHandle, SyncManager, SyncResult, SyncStatus
from .extractor import extract_todos, index_todos
from .reconciler import Conflict, Operation, OperationSet, reconcile

__all__ = [
    "extract_todos",
    "index_todos",
    "reconcile",
    "Operation",
    "OperationSet",
    "Conflict",
    "SyncDriver",
    "SyncManager",
    "SyncHandle",
    "SyncResult",
    "SyncStatus",
]
