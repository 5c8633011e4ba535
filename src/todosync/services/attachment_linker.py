"""Links stored files to todo nodes.

The linker owns no upload mechanics: it asks the storage collaborator to
resolve an attachment id before the command surface records it, so a todo
never points at a file that does not exist. Failures are returned as failed
command results and surfaced through the notifier right away.
"""

from __future__ import annotations

from pathlib import Path

from todosync.editor.commands import NOT_FOUND, STORAGE, CommandResult, TodoCommands
from todosync.errors import AttachmentUnresolved, StoreFailure
from todosync.repositories import AttachmentStorage, Notifier
from todosync.utils.logger import get_logger

logger = get_logger("services.attachment_linker")


class AttachmentLinker:
    """Attach and detach stored files on todo nodes."""

    def __init__(
        self,
        commands: TodoCommands,
        storage: AttachmentStorage,
        notifier: Notifier,
    ):
        self.commands = commands
        self.storage = storage
        self.notifier = notifier

    def _fail(self, todo_id: str, message: str, reason: str) -> CommandResult:
        logger.warning("attach failed for %s: %s", todo_id, message)
        self.notifier.notify("error", message)
        return CommandResult(ok=False, todo_id=todo_id, error=message, reason=reason)

    async def attach_file(self, todo_id: str, attachment_id: str) -> CommandResult:
        """Attach an already stored file after checking that it resolves."""
        try:
            locator = await self.storage.resolve(attachment_id)
        except StoreFailure as e:
            return self._fail(
                todo_id, f"Could not check attachment {attachment_id}: {e}", STORAGE
            )
        if locator is None:
            return self._fail(todo_id, str(AttachmentUnresolved(attachment_id)), NOT_FOUND)

        result = self.commands.attach_file(todo_id, attachment_id)
        if not result:
            self.notifier.notify("error", result.error or "Attach failed")
        return result

    async def upload_and_attach(self, todo_id: str, path: Path) -> CommandResult:
        """Upload a file through the storage collaborator and attach it."""
        if self.commands.document.find_todo(todo_id) is None:
            return self._fail(todo_id, f"Todo not found: {todo_id}", NOT_FOUND)
        try:
            attachment_id = await self.storage.upload(Path(path))
        except StoreFailure as e:
            return self._fail(todo_id, f"Upload failed: {e}", STORAGE)
        return await self.attach_file(todo_id, attachment_id)

    def detach_file(self, todo_id: str, attachment_id: str) -> CommandResult:
        """Remove an attachment reference. The stored file is left in place."""
        return self.commands.detach_file(todo_id, attachment_id)
