"""REST API adapters - collaborator implementations over a Supabase project.

``SupabaseTodoStore`` talks to the PostgREST endpoint of the ``todos`` table
and ``SupabaseAttachmentStorage`` to the storage API of the attachment bucket.
Both wrap the shared ``APIClient`` (retry with backoff on server and network
errors) and translate HTTP failures into ``StoreFailure``.
"""

from __future__ import annotations

import mimetypes
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import httpx

from todosync.errors import OwnershipConflict, RecordNotFound, StoreFailure
from todosync.models import TodoRecord, TodoRecordUpdate
from todosync.repositories import AttachmentStorage, TodoStore
from todosync.services.api.client import APIClient
from todosync.utils.logger import get_logger

logger = get_logger("adapters.rest_api")

_RETURN_REPRESENTATION = {"Prefer": "return=representation"}


def _describe(error: httpx.HTTPError) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        return f"HTTP {error.response.status_code}: {error.response.text[:200]}"
    return str(error) or error.__class__.__name__


class SupabaseTodoStore(TodoStore):
    """Todo store implementation using the PostgREST API."""

    def __init__(self, client: APIClient, table: str = "todos"):
        self.client = client
        self.path = f"/rest/v1/{table}"

    @staticmethod
    def _rows(response: httpx.Response) -> list[dict[str, Any]]:
        data = response.json()
        if isinstance(data, dict):
            return [data]
        return data or []

    async def insert(self, record: TodoRecord) -> TodoRecord:
        """Insert a todo row; ``updated_at`` is set to the time of the write."""
        payload = record.model_dump(mode="json")
        payload["updated_at"] = datetime.now(UTC).isoformat()
        try:
            response = await self.client.post(
                self.path, json=payload, headers=_RETURN_REPRESENTATION
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 409:
                existing = await self.get(record.id)
                if existing is not None and existing.document_id != record.document_id:
                    raise OwnershipConflict(
                        f"Todo {record.id} belongs to document {existing.document_id}",
                        todo_id=record.id,
                        owner_document_id=existing.document_id,
                    ) from e
            raise StoreFailure(
                f"Failed to insert todo: {_describe(e)}", todo_id=record.id
            ) from e
        except httpx.HTTPError as e:
            raise StoreFailure(
                f"Failed to insert todo: {_describe(e)}", todo_id=record.id
            ) from e

        rows = self._rows(response)
        if not rows:
            raise StoreFailure("Insert returned no row", todo_id=record.id)
        return TodoRecord.model_validate(rows[0])

    async def update(self, todo_id: str, fields: TodoRecordUpdate) -> TodoRecord:
        """Patch a todo row."""
        payload = fields.model_dump(mode="json", exclude_unset=True)
        payload["updated_at"] = datetime.now(UTC).isoformat()
        try:
            response = await self.client.patch(
                self.path,
                json=payload,
                params={"id": f"eq.{todo_id}"},
                headers=_RETURN_REPRESENTATION,
            )
        except httpx.HTTPError as e:
            raise StoreFailure(
                f"Failed to update todo: {_describe(e)}", todo_id=todo_id
            ) from e

        rows = self._rows(response)
        if not rows:
            raise RecordNotFound(f"Todo not found: {todo_id}", todo_id=todo_id)
        return TodoRecord.model_validate(rows[0])

    async def delete(self, todo_id: str) -> bool:
        """Delete a todo row."""
        try:
            response = await self.client.delete(
                self.path,
                params={"id": f"eq.{todo_id}"},
                headers=_RETURN_REPRESENTATION,
            )
        except httpx.HTTPError as e:
            raise StoreFailure(
                f"Failed to delete todo: {_describe(e)}", todo_id=todo_id
            ) from e
        return bool(self._rows(response))

    async def list_by_document(self, document_id: str) -> list[TodoRecord]:
        """List rows owned by a document, oldest first."""
        try:
            response = await self.client.get(
                self.path,
                params={
                    "document_id": f"eq.{document_id}",
                    "order": "created_at.asc",
                },
            )
        except httpx.HTTPError as e:
            raise StoreFailure(f"Failed to list todos: {_describe(e)}") from e
        return [TodoRecord.model_validate(row) for row in self._rows(response)]

    async def get(self, todo_id: str) -> TodoRecord | None:
        """Get a row by id."""
        try:
            response = await self.client.get(self.path, params={"id": f"eq.{todo_id}"})
        except httpx.HTTPError as e:
            raise StoreFailure(
                f"Failed to get todo: {_describe(e)}", todo_id=todo_id
            ) from e
        rows = self._rows(response)
        return TodoRecord.model_validate(rows[0]) if rows else None


class SupabaseAttachmentStorage(AttachmentStorage):
    """Attachment storage implementation using the Supabase storage API."""

    def __init__(self, client: APIClient, bucket: str = "todo-attachments"):
        self.client = client
        self.bucket = bucket

    def public_url(self, attachment_id: str) -> str:
        return (
            f"{self.client.base_url}/storage/v1/object/public/"
            f"{self.bucket}/{attachment_id}"
        )

    async def upload(self, path: Path) -> str:
        """Upload a file under a unique name and return that name as its id."""
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise StoreFailure(f"Cannot read {path}: {e}") from e

        suffix = path.suffix.lstrip(".")
        attachment_id = uuid.uuid4().hex + (f".{suffix}" if suffix else "")
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        try:
            await self.client.request(
                "POST",
                f"/storage/v1/object/{self.bucket}/{attachment_id}",
                content=data,
                headers={"Content-Type": content_type, "x-upsert": "false"},
            )
        except httpx.HTTPError as e:
            raise StoreFailure(f"Failed to upload {path.name}: {_describe(e)}") from e

        logger.info("Uploaded %s as %s", path.name, attachment_id)
        return attachment_id

    async def resolve(self, attachment_id: str) -> str | None:
        """Return the public URL of an attachment, or None if it does not exist."""
        try:
            await self.client.request(
                "HEAD", f"/storage/v1/object/{self.bucket}/{attachment_id}"
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (400, 404):
                return None
            raise StoreFailure(
                f"Failed to resolve attachment {attachment_id}: {_describe(e)}"
            ) from e
        except httpx.HTTPError as e:
            raise StoreFailure(
                f"Failed to resolve attachment {attachment_id}: {_describe(e)}"
            ) from e
        return self.public_url(attachment_id)
