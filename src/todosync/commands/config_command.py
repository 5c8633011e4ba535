"""Configuration management commands."""

import typer

from todosync.services.config_service import get_config_service
from todosync.ui.formatters import format_info, format_output, format_success
from todosync.utils import exit_codes

from .decorators import AppError, command_wrapper

app = typer.Typer(help="Configuration management commands")


@app.command("show")
@command_wrapper
def show_config(
    output: str = typer.Option("table", "--output", "-o", help="Output format"),
    reveal: bool = typer.Option(False, "--reveal", help="Show the API key"),
) -> None:
    """Show the effective configuration."""
    config_service = get_config_service()
    data = config_service.dump(redact=not reveal)
    if output == "json":
        format_output(data, "json")
        return

    flat = {}
    for section, values in data.items():
        if isinstance(values, dict):
            for key, value in values.items():
                flat[f"{section}.{key}"] = value
        else:
            flat[section] = values
    format_output(flat, "table")
    format_info(f"Config file: {config_service.config_path}")


@app.command("set")
@command_wrapper
def set_config(
    key: str = typer.Argument(..., help="Configuration key (e.g., sync.debounce_seconds)"),
    value: str = typer.Argument(..., help="Configuration value ('none' to clear)"),
) -> None:
    """Set a configuration value."""
    config_service = get_config_service()

    # Try to convert value to appropriate type
    parsed_value: str | int | bool | None = value
    if value.lower() in ("true", "false"):
        parsed_value = value.lower() == "true"
    elif value.lower() in ("none", "null"):
        parsed_value = None
    elif value.isdigit():
        parsed_value = int(value)

    try:
        config_service.set(key, parsed_value)
    except KeyError as e:
        raise AppError(
            f"Unknown configuration key '{key}'", exit_codes.ERROR_INVALID_ARGS
        ) from e

    format_success(f"Configuration '{key}' set to '{parsed_value}'")
