"""Commands that change a single todo: toggle, assign, due, project and edit."""

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import typer

from todosync.editor.commands import CommandResult, TodoCommands
from todosync.services.document_service import open_session
from todosync.sync.extractor import extract_todos
from todosync.ui.formatters import format_success, format_warning
from todosync.utils.uuid_utils import resolve_todo_id

from .add_command import DATE_FORMATS
from .decorators import check_result, command_wrapper

app = typer.Typer()


async def run_todo_command(
    document: Path,
    todo_id: str,
    action: Callable[[TodoCommands, str], CommandResult],
) -> str:
    """Open a session, resolve ``todo_id`` and run ``action`` on it."""
    if not document.exists():
        raise LookupError(f"Document not found: {document}")

    async with open_session(document) as session:
        resolved = resolve_todo_id(
            todo_id, [todo.id for todo in extract_todos(session.document)]
        )
        check_result(action(session.commands, resolved))

    if session.result is not None and not session.result.success:
        format_warning("Saved to the document; the store will be updated on the next sync.")
    return resolved


@app.command("toggle")
@command_wrapper
async def toggle(
    document: Path = typer.Argument(..., help="Document file (HTML)"),
    todo_id: str = typer.Argument(..., help="Todo ID or prefix"),
) -> None:
    """Toggle a todo between open and completed."""
    resolved = await run_todo_command(
        document, todo_id, lambda commands, tid: commands.toggle_completed(tid)
    )
    format_success(f"Toggled todo {resolved[:8]}")


@app.command("assign")
@command_wrapper
async def assign(
    document: Path = typer.Argument(..., help="Document file (HTML)"),
    todo_id: str = typer.Argument(..., help="Todo ID or prefix"),
    user: str | None = typer.Argument(None, help="Assignee user ID (omit to unassign)"),
) -> None:
    """Assign a todo to a user, or clear the assignee."""
    resolved = await run_todo_command(
        document, todo_id, lambda commands, tid: commands.set_assignee(tid, user)
    )
    if user:
        format_success(f"Assigned todo {resolved[:8]} to {user}")
    else:
        format_success(f"Unassigned todo {resolved[:8]}")


@app.command("due")
@command_wrapper
async def due(
    document: Path = typer.Argument(..., help="Document file (HTML)"),
    todo_id: str = typer.Argument(..., help="Todo ID or prefix"),
    date: datetime | None = typer.Argument(
        None, formats=DATE_FORMATS, help="Due date (UTC)"
    ),
    clear: bool = typer.Option(False, "--clear", help="Remove the due date"),
) -> None:
    """Set or clear a todo's due date."""
    if date is None and not clear:
        raise ValueError("Provide a due date or --clear")
    value = None if clear else date
    resolved = await run_todo_command(
        document, todo_id, lambda commands, tid: commands.set_due_date(tid, value)
    )
    if value is None:
        format_success(f"Cleared due date of todo {resolved[:8]}")
    else:
        format_success(f"Todo {resolved[:8]} due {value:%Y-%m-%d}")


@app.command("project")
@command_wrapper
async def project(
    document: Path = typer.Argument(..., help="Document file (HTML)"),
    todo_id: str = typer.Argument(..., help="Todo ID or prefix"),
    project_id: str | None = typer.Argument(None, help="Project ID (omit to clear)"),
) -> None:
    """Move a todo to a project, or clear its project."""
    resolved = await run_todo_command(
        document, todo_id, lambda commands, tid: commands.set_project(tid, project_id)
    )
    format_success(f"Updated project of todo {resolved[:8]}")


@app.command("edit")
@command_wrapper
async def edit(
    document: Path = typer.Argument(..., help="Document file (HTML)"),
    todo_id: str = typer.Argument(..., help="Todo ID or prefix"),
    text: str = typer.Argument(..., help="New todo text"),
) -> None:
    """Replace a todo's text."""
    text = text.strip()
    if not text:
        raise ValueError("Todo text cannot be empty")
    resolved = await run_todo_command(
        document, todo_id, lambda commands, tid: commands.set_content(tid, text)
    )
    format_success(f"Updated todo {resolved[:8]}")
