"""Command 'add' of todosync"""

from datetime import datetime
from pathlib import Path

import typer

from todosync.services.document_service import open_session
from todosync.ui.formatters import console, format_success, format_warning

from .decorators import check_result, command_wrapper

app = typer.Typer()

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M"]


@app.command("add")
@command_wrapper
async def add(
    document: Path = typer.Argument(..., help="Document file (HTML)"),
    text: str = typer.Argument(..., help="Todo text"),
    assign: str | None = typer.Option(None, "--assign", "-a", help="Assignee user ID"),
    due: datetime | None = typer.Option(
        None, "--due", "-d", formats=DATE_FORMATS, help="Due date (UTC)"
    ),
    project: str | None = typer.Option(None, "--project", "-p", help="Project ID"),
) -> None:
    """
    Append a todo to a document and sync it.

    Examples:
      todosync add notes.html "Review PR" --assign alice --due 2026-11-02
    """
    text = text.strip()
    if not text:
        raise ValueError("Todo text cannot be empty")

    async with open_session(document) as session:
        todo_id = check_result(
            session.commands.append_todo(
                text, assigned_to=assign, due_date=due, project_id=project
            )
        )

    format_success(f"Added todo {todo_id[:8]}")
    console.print(f"[dim]{todo_id}[/dim]")
    if session.result is not None and not session.result.success:
        format_warning("Saved to the document; the store will be updated on the next sync.")
