"""Commands 'attach' and 'detach' of todosync"""

from pathlib import Path

import typer

from todosync.services.document_service import open_session
from todosync.sync.extractor import extract_todos
from todosync.ui.formatters import format_success, format_warning
from todosync.utils.uuid_utils import resolve_todo_id

from .decorators import check_result, command_wrapper

app = typer.Typer()


@app.command("attach")
@command_wrapper
async def attach(
    document: Path = typer.Argument(..., help="Document file (HTML)"),
    todo_id: str = typer.Argument(..., help="Todo ID or prefix"),
    target: str = typer.Argument(..., help="File to upload, or an attachment ID"),
    by_id: bool = typer.Option(
        False, "--id", help="Treat TARGET as an existing attachment ID"
    ),
) -> None:
    """
    Attach a file to a todo.

    A path to an existing file is uploaded first; anything else is taken as
    the ID of an already stored attachment and must resolve in storage.
    """
    if not document.exists():
        raise LookupError(f"Document not found: {document}")

    async with open_session(document) as session:
        resolved = resolve_todo_id(
            todo_id, [todo.id for todo in extract_todos(session.document)]
        )
        path = Path(target)
        if not by_id and path.is_file():
            check_result(
                await session.linker.upload_and_attach(resolved, path), quiet=True
            )
            attachment_id = session.document.find_todo(resolved)[0].attrs[
                "attachment_ids"
            ][-1]
        else:
            check_result(
                await session.linker.attach_file(resolved, target), quiet=True
            )
            attachment_id = target

    format_success(f"Attached {attachment_id} to todo {resolved[:8]}")
    if session.result is not None and not session.result.success:
        format_warning("Saved to the document; the store will be updated on the next sync.")


@app.command("detach")
@command_wrapper
async def detach(
    document: Path = typer.Argument(..., help="Document file (HTML)"),
    todo_id: str = typer.Argument(..., help="Todo ID or prefix"),
    attachment_id: str = typer.Argument(..., help="Attachment ID"),
) -> None:
    """Remove an attachment from a todo. The stored file is kept."""
    if not document.exists():
        raise LookupError(f"Document not found: {document}")

    async with open_session(document) as session:
        resolved = resolve_todo_id(
            todo_id, [todo.id for todo in extract_todos(session.document)]
        )
        check_result(session.linker.detach_file(resolved, attachment_id))

    format_success(f"Detached {attachment_id} from todo {resolved[:8]}")
