"""Document editor layer.

Contains the document tree and its grammar, the HTML markup codec, the todo
node schema, and the command surface used to mutate todo nodes.
"""

from .commands import CommandResult, TodoCommands, TodoEvent
from .document import Document, Transaction
from .grammar import Node
from .schema import SCHEMA_VERSION, is_compatible_schema, render_todo_text

__all__ = [
    "Document",
    "Transaction",
    "Node",
    "TodoCommands",
    "CommandResult",
    "TodoEvent",
    "SCHEMA_VERSION",
    "is_compatible_schema",
    "render_todo_text",
]
