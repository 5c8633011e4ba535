"""Main entry point for the todosync CLI."""

import typer

from todosync import __version__
from todosync.commands import (
    add_command,
    attach_command,
    config_command,
    delete_command,
    edit_command,
    list_command,
    sync_command,
)
from todosync.ui.formatters import console

app = typer.Typer(
    name="todosync",
    help="Keep todo items embedded in rich-text documents in sync with a todo store",
    no_args_is_help=True,
)

# Top-level commands
for command_app in (
    add_command.app,
    list_command.app,
    edit_command.app,
    attach_command.app,
    delete_command.app,
    sync_command.app,
):
    app.registered_commands.extend(command_app.registered_commands)

app.add_typer(config_command.app, name="config", help="Configuration management")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[bold]todosync[/bold] version [cyan]{__version__}[/cyan]")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
