"""Tests for filesystem attachment storage."""

import pytest

from todosync.adapters.local_storage import LocalAttachmentStorage
from todosync.errors import StoreFailure


@pytest.mark.asyncio
async def test_upload_copies_file(tmp_path):
    source = tmp_path / "report.pdf"
    source.write_bytes(b"%PDF")
    storage = LocalAttachmentStorage(tmp_path / "store")

    attachment_id = await storage.upload(source)

    assert attachment_id.endswith(".pdf")
    assert (tmp_path / "store" / attachment_id).read_bytes() == b"%PDF"
    assert await storage.resolve(attachment_id) == str(tmp_path / "store" / attachment_id)


@pytest.mark.asyncio
async def test_upload_missing_file(tmp_path):
    storage = LocalAttachmentStorage(tmp_path / "store")
    with pytest.raises(StoreFailure, match="File not found"):
        await storage.upload(tmp_path / "nope.txt")


@pytest.mark.asyncio
async def test_resolve_rejects_unknown_and_path_like_ids(tmp_path):
    storage = LocalAttachmentStorage(tmp_path / "store")
    (tmp_path / "secret.txt").write_text("x", encoding="utf-8")

    assert await storage.resolve("unknown.png") is None
    assert await storage.resolve("../secret.txt") is None
    assert await storage.resolve("") is None
