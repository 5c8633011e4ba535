"""Attachment storage on the local filesystem.

Files are copied into a directory under the platform data dir and identified
by a generated file name, mirroring how the hosted bucket names uploads.
"""

from __future__ import annotations

import shutil
import uuid
from pathlib import Path

from platformdirs import user_data_dir

from todosync.errors import StoreFailure
from todosync.repositories import AttachmentStorage
from todosync.utils.logger import get_logger

logger = get_logger("adapters.local_storage")


class LocalAttachmentStorage(AttachmentStorage):
    """Attachment storage backed by a local directory."""

    def __init__(self, root: str | Path | None = None):
        if root is None:
            root = Path(user_data_dir("todosync")) / "attachments"
        self.root = Path(root)

    async def upload(self, path: Path) -> str:
        """Copy a file into storage and return its attachment id."""
        path = Path(path)
        if not path.is_file():
            raise StoreFailure(f"File not found: {path}")

        attachment_id = uuid.uuid4().hex + path.suffix
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(path, self.root / attachment_id)
        except OSError as e:
            raise StoreFailure(f"Failed to store {path.name}: {e}") from e

        logger.info("Stored %s as %s", path.name, attachment_id)
        return attachment_id

    async def resolve(self, attachment_id: str) -> str | None:
        """Return the stored file path, or None if the id is unknown."""
        if not attachment_id or Path(attachment_id).name != attachment_id:
            return None
        target = self.root / attachment_id
        return str(target) if target.is_file() else None
