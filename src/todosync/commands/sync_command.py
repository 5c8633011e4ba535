"""Sync commands for todosync.

``sync`` reconciles a document with the todo store right away;
``conflicts`` shows the conflicts recorded by earlier syncs.
"""

from pathlib import Path

import typer
from rich.table import Table

from todosync.services.document_service import document_id_for, open_session
from todosync.services.sync_conflicts import SyncConflictTracker
from todosync.sync.driver import SyncResult
from todosync.ui.formatters import (
    console,
    format_info,
    format_output,
    format_success,
    format_warning,
)
from todosync.utils import exit_codes

from .decorators import AppError, command_wrapper

app = typer.Typer()


@app.command("sync")
@command_wrapper
async def sync(
    document: Path = typer.Argument(..., help="Document file (HTML)"),
    output: str = typer.Option("table", "--output", "-o", help="Output format (table/json)"),
) -> None:
    """Sync a document's todos with the todo store now."""
    if not document.exists():
        raise LookupError(f"Document not found: {document}")

    async with open_session(document) as session:
        result = await session.sync()

    if output == "json":
        format_output(result.to_dict(), "json")
    else:
        _display_sync_result(result)

    if result.error is not None or result.failed:
        raise AppError(
            result.error or f"{len(result.failed)} todo(s) failed to sync",
            exit_codes.ERROR_STORE,
        )


def _display_sync_result(result: SyncResult) -> None:
    if result.operations == 0 and not result.conflicts and not result.flagged:
        format_info("Already in sync")
        return

    table = Table(show_header=False, box=None)
    table.add_column("Operation", style="cyan")
    table.add_column("Count", justify="right")
    for label, count in (
        ("Inserted", result.inserted),
        ("Updated", result.updated),
        ("Deleted", result.deleted),
        ("Merged from store", result.merged),
        ("Restored", result.restored),
        ("Detached", result.detached),
    ):
        if count:
            table.add_row(label, str(count))
    console.print(table)

    if result.conflicts:
        format_warning(
            f"{result.conflicts} conflict(s) resolved; run 'todosync conflicts' for details"
        )
    if result.flagged:
        format_warning(f"{result.flagged} todo(s) use an incompatible schema and were skipped")
    if result.success:
        format_success(f"Synced in {result.duration:.2f}s")


@app.command("conflicts")
@command_wrapper
def conflicts(
    document: Path = typer.Argument(..., help="Document file (HTML)"),
    output: str = typer.Option("table", "--output", "-o", help="Output format (table/json)"),
) -> None:
    """Show conflicts recorded while syncing a document."""
    saved = SyncConflictTracker().load_saved(document_id_for(document))
    if not saved:
        format_info("No conflicts recorded")
        return

    if output == "json":
        format_output(saved, "json")
        return

    rows = [
        {
            "todo": conflict["todo_id"][:8],
            "field": conflict["field"],
            "local": conflict["local_value"],
            "store": conflict["remote_value"],
            "resolution": conflict["resolution"],
            "detected_at": conflict["detected_at"],
        }
        for conflict in saved
    ]
    format_output(rows, "table")
