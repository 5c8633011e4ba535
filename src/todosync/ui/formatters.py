"""Output formatters for the todosync CLI."""

import json
from datetime import datetime
from typing import Any

from rich.console import Console
from rich.table import Table

from todosync.models import TodoNode

console = Console()


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "✓" if value else "✗"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value) or "-"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if value is None:
        return "-"
    return str(value)


def format_output(data: Any, output_format: str = "table") -> None:
    """Format and display output based on format."""
    if output_format == "json":
        print(json.dumps(data, indent=2, default=str))
    elif isinstance(data, list):
        format_dict_table(data)
    elif isinstance(data, dict):
        format_single_item(data)
    else:
        console.print(data)


def format_dict_table(items: list[dict]) -> None:
    """Format a list of dictionaries as a table."""
    if not items:
        console.print("[yellow]No items found[/yellow]")
        return

    columns = list(items[0].keys())
    table = Table(show_header=True, header_style="bold magenta")
    for col in columns:
        table.add_column(col.replace("_", " ").title())
    for item in items:
        table.add_row(*(_format_value(item.get(col)) for col in columns))

    console.print(table)


def format_single_item(item: dict) -> None:
    """Format a single item as key-value pairs."""
    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")

    for key, value in item.items():
        table.add_row(key.replace("_", " ").title(), _format_value(value))

    console.print(table)


def format_todos(todos: list[TodoNode], wide: bool = False) -> None:
    """Display the todos of a document in document order."""
    if not todos:
        console.print("[yellow]No todos in this document[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", style="dim")
    table.add_column("ID", style="cyan")
    table.add_column("Done")
    table.add_column("Content")
    table.add_column("Assignee")
    table.add_column("Due")
    table.add_column("Files", justify="right")
    if wide:
        table.add_column("Project")
        table.add_column("Version", justify="right")
        table.add_column("Updated")

    for index, todo in enumerate(todos, start=1):
        if todo.read_only:
            content = f"[yellow]read-only (schema {todo.schema_version})[/yellow] {todo.content}"
        elif todo.completed:
            content = f"[strike]{todo.content}[/strike]"
        else:
            content = todo.content
        row = [
            str(index),
            todo.id if wide else todo.id[:8],
            _format_value(todo.completed),
            content,
            _format_value(todo.assigned_to),
            todo.due_date.strftime("%Y-%m-%d") if todo.due_date else "-",
            str(len(todo.attachment_ids)) if todo.attachment_ids else "-",
        ]
        if wide:
            row.extend(
                [
                    _format_value(todo.project_id),
                    str(todo.version),
                    _format_value(todo.updated_at),
                ]
            )
        table.add_row(*row)

    console.print(table)


def format_error(message: str) -> None:
    """Format and display an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def format_success(message: str) -> None:
    """Format and display a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def format_warning(message: str) -> None:
    """Format and display a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def format_info(message: str) -> None:
    """Format and display an info message."""
    console.print(f"[bold blue]Info:[/bold blue] {message}")
