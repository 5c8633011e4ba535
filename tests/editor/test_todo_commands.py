"""Tests for the todo command surface."""

import random
from datetime import UTC, datetime

import pytest

from todosync.editor import Document, TodoCommands
from todosync.editor.commands import INVALID, NOT_FOUND, READ_ONLY
from todosync.models import TodoRecord
from todosync.sync.extractor import extract_todos


@pytest.fixture
def document():
    return Document.from_html(
        "<p>Notes</p>"
        '<div data-type="todo-item" data-id="t1">Write tests</div>'
        '<blockquote data-editable="false">'
        '<div data-type="todo-item" data-id="locked">Locked</div></blockquote>'
        '<div data-type="todo-item" data-id="future" data-schema-version="3.0">Later</div>',
        document_id="doc-1",
    )


@pytest.fixture
def commands(document):
    return TodoCommands(document)


@pytest.fixture
def events(commands):
    received = []
    commands.on_event(received.append)
    return received


def _todo(document, todo_id):
    return next(todo for todo in extract_todos(document) if todo.id == todo_id)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestInsert:
    """insert_todo / append_todo."""

    def test_insert_todo(self, commands, document, events):
        result = commands.insert_todo((1,), "New task", assigned_to="alice")

        assert result
        todo = _todo(document, result.todo_id)
        assert todo.content == "New task"
        assert todo.assigned_to == "alice"
        assert todo.version == 1
        assert [e.kind for e in events] == ["insert"]

    def test_insert_into_text_block_fails(self, commands):
        result = commands.insert_todo((0, 0), "Nope")

        assert not result
        assert result.reason == INVALID

    def test_append_todo_goes_last(self, commands, document):
        result = commands.append_todo("Last")
        assert extract_todos(document)[-1].id == result.todo_id


# ---------------------------------------------------------------------------
# Attribute commands
# ---------------------------------------------------------------------------


class TestAttributeCommands:
    """toggle, assignee, due date and content."""

    def test_toggle_bumps_version_and_timestamp(self, commands, document):
        before = _todo(document, "t1")

        assert commands.toggle_completed("t1")
        after = _todo(document, "t1")
        assert after.completed is True
        assert after.version == before.version + 1
        assert after.updated_at is not None

        commands.toggle_completed("t1")
        assert _todo(document, "t1").version == before.version + 2

    def test_unchanged_value_is_a_no_op(self, commands, document):
        commands.set_assignee("t1", None)
        assert _todo(document, "t1").version == 1

    def test_missing_todo(self, commands):
        result = commands.toggle_completed("nope")

        assert not result
        assert result.reason == NOT_FOUND
        assert "nope" in result.error

    def test_non_editable_region_rejects_edits(self, commands, document):
        result = commands.set_assignee("locked", "bob")

        assert not result
        assert result.reason == READ_ONLY
        assert _todo(document, "locked").assigned_to is None

    def test_incompatible_todo_rejects_edits(self, commands):
        result = commands.toggle_completed("future")

        assert not result
        assert result.reason == READ_ONLY

    def test_empty_assignee_clears(self, commands, document):
        commands.set_assignee("t1", "alice")
        commands.set_assignee("t1", "")
        assert _todo(document, "t1").assigned_to is None

    def test_due_date_is_normalised_to_utc(self, commands, document):
        commands.set_due_date("t1", datetime(2026, 11, 2, 9, 0))
        assert _todo(document, "t1").due_date == datetime(2026, 11, 2, 9, 0, tzinfo=UTC)

    def test_set_content(self, commands, document):
        assert commands.set_content("t1", "Write more tests")
        todo = _todo(document, "t1")
        assert todo.content == "Write more tests"
        assert todo.version == 2


class TestAttachments:
    def test_attach_is_idempotent_and_detach_keeps_order(self, commands, document):
        for attachment_id in ("a", "b", "c", "b"):
            assert commands.attach_file("t1", attachment_id)
        assert _todo(document, "t1").attachment_ids == ["a", "b", "c"]

        assert commands.detach_file("t1", "b")
        assert _todo(document, "t1").attachment_ids == ["a", "c"]

    def test_detach_unknown_attachment_fails(self, commands):
        result = commands.detach_file("t1", "zzz")
        assert not result
        assert result.reason == NOT_FOUND


# ---------------------------------------------------------------------------
# Deletion and history
# ---------------------------------------------------------------------------


class TestDelete:
    """delete_todo versus structural removal, with undo/redo."""

    def test_delete_todo_emits_delete_event(self, commands, document, events):
        assert commands.delete_todo("t1")

        assert document.find_todo("t1") is None
        assert [(e.kind, e.todo_id) for e in events] == [("delete", "t1")]

    def test_structural_delete_emits_no_event(self, document, events):
        _node, path = document.find_todo("t1")
        document.delete_node(path)

        assert events == []

    def test_delete_is_one_undo_step(self, commands, document):
        commands.delete_todo("t1")

        assert document.undo()
        assert document.find_todo("t1") is not None

    def test_undo_of_delete_emits_no_event(self, commands, document, events):
        commands.delete_todo("t1")
        events.clear()

        document.undo()

        assert events == []

    def test_redo_of_delete_emits_delete_again(self, commands, document, events):
        commands.delete_todo("t1")
        document.undo()
        events.clear()

        assert document.redo()

        assert document.find_todo("t1") is None
        assert [(e.kind, e.todo_id) for e in events] == [("delete", "t1")]

    def test_redo_of_structural_delete_emits_no_event(self, document, events):
        _node, path = document.find_todo("t1")
        document.delete_node(path)
        document.undo()

        document.redo()

        assert document.find_todo("t1") is None
        assert events == []


# ---------------------------------------------------------------------------
# Merge-back and restore
# ---------------------------------------------------------------------------


class TestRemoteChanges:
    def test_apply_remote_skips_content_and_history(self, commands, document):
        stamp = datetime(2026, 6, 1, 8, 0, tzinfo=UTC)
        can_undo = document.can_undo
        origins = []
        document.on_transaction(lambda tr: origins.append(tr.origin))

        result = commands.apply_remote(
            "t1", {"completed": True, "content": "Hijacked"}, stamp
        )

        assert result
        todo = _todo(document, "t1")
        assert todo.completed is True
        assert todo.content == "Write tests"
        assert todo.updated_at == stamp
        assert todo.version == 2
        assert document.can_undo == can_undo
        assert origins == ["remote"]

    def test_apply_remote_refuses_read_only(self, commands):
        result = commands.apply_remote("future", {"completed": True}, datetime.now(UTC))
        assert result.reason == READ_ONLY

    def test_restore_from_record(self, commands, document):
        stamp = datetime(2026, 4, 1, tzinfo=UTC)
        record = TodoRecord(
            id="r1",
            document_id="doc-1",
            content="From the store",
            assigned_to="carol",
            version=5,
            created_at=stamp,
            updated_at=stamp,
        )

        assert commands.restore_from_record(record)
        todo = extract_todos(document)[-1]
        assert todo.id == "r1"
        assert todo.assigned_to == "carol"
        assert todo.version == 5

        assert not commands.restore_from_record(record)


# ---------------------------------------------------------------------------
# Command replay
# ---------------------------------------------------------------------------


class TestCommandReplay:
    """Extraction after a sequence of commands matches the surviving todos."""

    @pytest.mark.parametrize("seed", [1, 7, 42])
    def test_create_toggle_delete_sequence(self, seed):
        rng = random.Random(seed)
        document = Document.from_html("<p>Plan</p>", document_id="doc-replay")
        commands = TodoCommands(document)
        expected: dict[str, tuple[str, bool]] = {}

        for step in range(60):
            action = rng.choice(["create", "toggle", "delete"]) if expected else "create"
            if action == "create":
                content = f"Task {step}"
                expected[commands.append_todo(content).todo_id] = (content, False)
            elif action == "toggle":
                todo_id = rng.choice(sorted(expected))
                assert commands.toggle_completed(todo_id)
                content, completed = expected[todo_id]
                expected[todo_id] = (content, not completed)
            else:
                todo_id = rng.choice(sorted(expected))
                assert commands.delete_todo(todo_id)
                del expected[todo_id]

        extracted = [
            (todo.id, todo.content, todo.completed) for todo in extract_todos(document)
        ]
        assert extracted == [
            (todo_id, content, completed)
            for todo_id, (content, completed) in expected.items()
        ]
