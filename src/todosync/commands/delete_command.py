"""Command 'delete' of todosync"""

from pathlib import Path

import typer

from todosync.services.document_service import load_document
from todosync.sync.extractor import extract_todos
from todosync.ui.formatters import format_info, format_success

from .decorators import command_wrapper
from .edit_command import run_todo_command

app = typer.Typer()


@app.command("delete")
@command_wrapper
async def delete(
    document: Path = typer.Argument(..., help="Document file (HTML)"),
    todo_id: str = typer.Argument(..., help="Todo ID or prefix"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
) -> None:
    """
    Delete a todo from the document and from the store.

    Removing a todo by editing the file by hand only detaches it; the store
    record is kept.
    """
    if not force:
        if not document.exists():
            raise LookupError(f"Document not found: {document}")
        todos = extract_todos(load_document(document))
        matching = [todo for todo in todos if todo.id.startswith(todo_id.lower())]
        label = matching[0].content if len(matching) == 1 else todo_id
        if not typer.confirm(f"Delete todo '{label}'?"):
            format_info("Cancelled")
            raise typer.Exit(0)

    resolved = await run_todo_command(
        document, todo_id, lambda commands, tid: commands.delete_todo(tid)
    )
    format_success(f"Deleted todo {resolved[:8]}")
