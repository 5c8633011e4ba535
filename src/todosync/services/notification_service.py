"""Notifiers surfacing sync and attachment failures to the user."""

from __future__ import annotations

from todosync.repositories import Notifier
from todosync.ui.formatters import (
    format_error,
    format_info,
    format_success,
    format_warning,
)
from todosync.utils.logger import get_logger

logger = get_logger("services.notifications")

_FORMATTERS = {
    "error": format_error,
    "warning": format_warning,
    "success": format_success,
    "info": format_info,
}


class ConsoleNotifier(Notifier):
    """Prints notifications to the terminal and logs them."""

    def notify(self, kind: str, message: str) -> None:
        logger.info("notify[%s]: %s", kind, message)
        _FORMATTERS.get(kind, format_info)(message)


class LogNotifier(Notifier):
    """Writes notifications to the application log only.

    Used where nothing may be printed, e.g. background syncs.
    """

    def notify(self, kind: str, message: str) -> None:
        if kind == "error":
            logger.error(message)
        elif kind == "warning":
            logger.warning(message)
        else:
            logger.info(message)
