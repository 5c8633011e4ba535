"""Decorators and helpers for command functions."""

import asyncio
import functools
import time
import traceback
from collections.abc import Callable

import typer

from todosync.editor.commands import NOT_FOUND, READ_ONLY, STORAGE, CommandResult
from todosync.errors import TodoSyncError
from todosync.ui.formatters import format_error
from todosync.utils import exit_codes
from todosync.utils.logger import get_logger

_REASON_EXIT_CODES = {
    NOT_FOUND: exit_codes.ERROR_NOT_FOUND,
    READ_ONLY: exit_codes.ERROR_READ_ONLY,
    STORAGE: exit_codes.ERROR_STORE,
}


class AppError(Exception):
    """Custom application error with exit code."""

    def __init__(self, message: str, exit_code: int = exit_codes.ERROR_GENERAL):
        super().__init__(message)
        self.exit_code = exit_code


def check_result(result: CommandResult, quiet: bool = False) -> str:
    """Raise for a failed command result, else return its todo id.

    With ``quiet`` the failure is assumed to be reported already (by a
    notifier) and only the exit code is set.
    """
    if not result:
        code = _REASON_EXIT_CODES.get(result.reason, exit_codes.ERROR_GENERAL)
        if quiet:
            raise typer.Exit(code=code)
        raise AppError(result.error or "Command failed", code)
    return result.todo_id


def command_wrapper(_func: Callable | None = None):
    """Decorator to wrap command functions with common functionality.

    Runs coroutine commands with ``asyncio.run``, logs start and finish, and
    turns errors into a printed message plus a semantic exit code.
    """

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger()
            cmd = func.__name__
            start = time.monotonic()
            logger.info("command started: %s", cmd)
            try:
                if asyncio.iscoroutinefunction(func):
                    result = asyncio.run(func(*args, **kwargs))
                else:
                    result = func(*args, **kwargs)

                elapsed = time.monotonic() - start
                logger.info("command completed: %s (%.3fs)", cmd, elapsed)
                return result

            except AppError as e:
                elapsed = time.monotonic() - start
                logger.error("command failed: %s (%.3fs) - %s", cmd, elapsed, str(e))
                format_error(str(e))
                raise typer.Exit(code=e.exit_code) from e

            except TodoSyncError as e:
                elapsed = time.monotonic() - start
                logger.error("command failed: %s (%.3fs) - %s", cmd, elapsed, str(e))
                format_error(str(e))
                raise typer.Exit(code=exit_codes.exit_code_for(e)) from e

            except LookupError as e:
                format_error(str(e.args[0]) if e.args else str(e))
                raise typer.Exit(code=exit_codes.ERROR_NOT_FOUND) from e

            except ValueError as e:
                format_error(str(e))
                raise typer.Exit(code=exit_codes.ERROR_INVALID_ARGS) from e

            except typer.Exit:
                # Re-raise Typer's own exits (like --help or explicit Exit(0))
                raise

            except Exception as e:
                elapsed = time.monotonic() - start
                logger.error(
                    "command failed: %s (%.3fs) - %s\n%s",
                    cmd,
                    elapsed,
                    str(e),
                    traceback.format_exc(),
                )
                # Generic fallback for unexpected crashes
                format_error(f"An unexpected error occurred: {str(e)}")
                raise typer.Exit(code=exit_codes.ERROR_GENERAL) from e

        return wrapper

    if _func is None:
        return decorator
    return decorator(_func)
