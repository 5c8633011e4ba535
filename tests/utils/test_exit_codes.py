"""Unit tests for todosync.utils.exit_codes."""

from __future__ import annotations

import pytest

from todosync.errors import (
    AttachmentUnresolved,
    OwnershipConflict,
    RecordNotFound,
    SchemaVersionMismatch,
    StoreFailure,
    TodoSyncError,
    ValidationFailure,
)
from todosync.utils.exit_codes import (
    ERROR_CONFLICT,
    ERROR_GENERAL,
    ERROR_INVALID_ARGS,
    ERROR_NOT_FOUND,
    ERROR_READ_ONLY,
    ERROR_STORE,
    SUCCESS,
    exit_code_for,
    get_exit_code_description,
    get_exit_code_name,
)


def test_codes_are_distinct():
    codes = [
        SUCCESS,
        ERROR_GENERAL,
        ERROR_INVALID_ARGS,
        ERROR_STORE,
        ERROR_NOT_FOUND,
        ERROR_READ_ONLY,
        ERROR_CONFLICT,
    ]
    assert len(set(codes)) == len(codes)
    assert SUCCESS == 0


@pytest.mark.parametrize(
    "error,expected",
    [
        (RecordNotFound("gone"), ERROR_NOT_FOUND),
        (AttachmentUnresolved("a.png"), ERROR_NOT_FOUND),
        (OwnershipConflict("taken", owner_document_id="doc-2"), ERROR_CONFLICT),
        (StoreFailure("down"), ERROR_STORE),
        (SchemaVersionMismatch("t1", "3.0"), ERROR_READ_ONLY),
        (ValidationFailure("bad"), ERROR_INVALID_ARGS),
        (TodoSyncError("other"), ERROR_GENERAL),
        (RuntimeError("boom"), ERROR_GENERAL),
    ],
)
def test_exit_code_for(error, expected):
    assert exit_code_for(error) == expected


def test_names_and_descriptions():
    assert get_exit_code_name(ERROR_STORE) == "ERROR_STORE"
    assert get_exit_code_name(42) == "UNKNOWN(42)"
    assert "retried" in get_exit_code_description(ERROR_STORE)
    assert get_exit_code_description(42) == "Unknown error"
