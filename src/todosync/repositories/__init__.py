"""Repository interfaces for todosync.

This package contains abstract base classes (ABCs) that define the contracts
for the sync engine's collaborators. These are the "Ports" in the Hexagonal
Architecture.
"""

from .repository import AttachmentStorage, Notifier, TodoStore

__all__ = [
    "TodoStore",
    "AttachmentStorage",
    "Notifier",
]
