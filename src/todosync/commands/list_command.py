"""Command 'list' of todosync"""

from pathlib import Path

import typer

from todosync.services.document_service import load_document
from todosync.sync.extractor import extract_todos
from todosync.ui.formatters import format_output, format_todos

from .decorators import command_wrapper

app = typer.Typer()


@app.command("list")
@command_wrapper
def list_todos(
    document: Path = typer.Argument(..., help="Document file (HTML)"),
    output: str = typer.Option(
        "table", "--output", "-o", help="Output format (table/json)"
    ),
    wide: bool = typer.Option(False, "--wide", "-w", help="Show all columns"),
    pending: bool = typer.Option(
        False, "--pending", help="Only show todos that are not completed"
    ),
) -> None:
    """List the todos embedded in a document."""
    if not document.exists():
        raise LookupError(f"Document not found: {document}")

    todos = extract_todos(load_document(document))
    if pending:
        todos = [todo for todo in todos if not todo.completed]

    if output == "json":
        format_output([todo.model_dump(mode="json") for todo in todos], "json")
    else:
        format_todos(todos, wide=wide)
