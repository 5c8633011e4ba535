"""Tests for the sync driver and its host API."""

# pylint: disable=redefined-outer-name

import asyncio
from datetime import UTC, datetime

import pytest

from todosync.editor import Document, TodoCommands
from todosync.models import TodoRecord
from todosync.services.sync_conflicts import SyncConflictTracker
from todosync.services.sync_state import SyncState
from todosync.sync import SyncManager, SyncStatus
from todosync.sync.extractor import extract_todos

DOC = "doc-1"


@pytest.fixture
def document():
    return Document.from_html("<p>Plan</p>", document_id=DOC)


@pytest.fixture
def commands(document):
    return TodoCommands(document)


@pytest.fixture
def sync_state(tmp_path):
    return SyncState(tmp_path)


@pytest.fixture
def tracker(tmp_path):
    return SyncConflictTracker(tmp_path)


@pytest.fixture
def manager(fake_store, sync_state, tracker, notifier, fast_sync_config):
    return SyncManager(
        fake_store,
        sync_state=sync_state,
        conflict_tracker=tracker,
        notifier=notifier,
        config=fast_sync_config,
    )


# ---------------------------------------------------------------------------
# Inserts, updates and scheduling
# ---------------------------------------------------------------------------


class TestSyncCycle:
    """Insert/update round trips and debouncing."""

    @pytest.mark.asyncio
    async def test_insert_then_update(self, manager, document, commands, fake_store):
        handle = await manager.on_ready(document, "me", commands)
        todo_id = commands.append_todo("Ship release").todo_id

        result = await handle.driver.force_sync()
        assert result.success
        assert result.inserted == 1
        record = fake_store.records[todo_id]
        assert record.document_id == DOC
        assert record.created_by == "me"
        assert record.completed is False

        commands.toggle_completed(todo_id)
        result = await handle.driver.force_sync()
        assert result.updated == 1
        assert fake_store.records[todo_id].completed is True
        assert fake_store.records[todo_id].version == 2
        assert fake_store.count("update") == 1

        await handle.dispose()

    @pytest.mark.asyncio
    async def test_second_sync_without_edits_does_nothing(
        self, manager, document, commands, fake_store
    ):
        handle = await manager.on_ready(document, "me", commands)
        commands.append_todo("Once")
        await handle.driver.force_sync()

        result = await handle.driver.force_sync()

        assert result.success
        assert result.operations == 0
        assert fake_store.count("insert") == 1
        assert fake_store.count("update") == 0
        await handle.dispose()

    @pytest.mark.asyncio
    async def test_rapid_content_edits_are_debounced_into_one_update(
        self, manager, document, commands, fake_store
    ):
        handle = await manager.on_ready(document, "me", commands)
        todo_id = commands.append_todo("Draft").todo_id
        await handle.driver.force_sync()

        for text in ("Draft 1", "Draft 2", "Draft 3", "Draft 4", "Final draft"):
            commands.set_content(todo_id, text)
        assert handle.driver.status == SyncStatus.PENDING

        await asyncio.sleep(0.2)
        await handle.driver.wait_idle()

        assert fake_store.count("update") == 1
        assert fake_store.records[todo_id].content == "Final draft"
        assert handle.driver.status == SyncStatus.IDLE
        await handle.dispose()


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    @pytest.mark.asyncio
    async def test_failures_notify_after_three_attempts(
        self, manager, document, commands, fake_store, notifier
    ):
        handle = await manager.on_ready(document, "me", commands)
        todo_id = commands.append_todo("Unlucky").todo_id
        fake_store.fail_ids.add(todo_id)

        for _ in range(2):
            result = await handle.driver.force_sync()
            assert not result.success
            assert result.failed == [todo_id]
        assert notifier.of_kind("error") == []

        await handle.driver.force_sync()
        assert len(notifier.of_kind("error")) == 1
        assert todo_id in notifier.of_kind("error")[0]

        fake_store.fail_ids.clear()
        result = await handle.driver.force_sync()
        assert result.success
        assert todo_id in fake_store.records
        assert extract_todos(document)[0].content == "Unlucky"
        await handle.dispose()

    @pytest.mark.asyncio
    async def test_one_failing_record_does_not_block_others(
        self, manager, document, commands, fake_store
    ):
        handle = await manager.on_ready(document, "me", commands)
        bad = commands.append_todo("Bad").todo_id
        good = commands.append_todo("Good").todo_id
        fake_store.fail_ids.add(bad)

        result = await handle.driver.force_sync()

        assert result.failed == [bad]
        assert good in fake_store.records
        await handle.dispose()

    @pytest.mark.asyncio
    async def test_store_outage_never_raises(self, manager, document, commands, fake_store):
        handle = await manager.on_ready(document, "me", commands)
        commands.append_todo("Offline")
        fake_store.fail_all = True

        result = await handle.driver.force_sync()

        assert not result.success
        assert result.error
        assert handle.driver.status == SyncStatus.PENDING
        await handle.dispose()


# ---------------------------------------------------------------------------
# Host API
# ---------------------------------------------------------------------------


class TestSyncManager:
    """on_ready / force_sync / dispose."""

    @pytest.mark.asyncio
    async def test_dispose_performs_a_final_sync(
        self, manager, document, commands, fake_store
    ):
        handle = await manager.on_ready(document, "me", commands)
        todo_id = commands.append_todo("Last minute").todo_id

        result = await handle.dispose()

        assert result.success
        assert todo_id in fake_store.records
        assert handle.driver.status == SyncStatus.DISPOSED
        assert manager.handle_for(DOC) is None

        calls = len(fake_store.calls)
        commands.toggle_completed(todo_id)
        await asyncio.sleep(0.1)
        assert len(fake_store.calls) == calls

        again = await handle.dispose()
        assert again.success

    @pytest.mark.asyncio
    async def test_on_ready_cleans_up_the_previous_binding(self, manager, fake_store):
        first = Document.from_html("", document_id="doc-a")
        first_commands = TodoCommands(first)
        first_handle = await manager.on_ready(first, "me", first_commands)
        todo_id = first_commands.append_todo("Pending").todo_id

        second = Document.from_html("", document_id="doc-b")
        second_handle = await manager.on_ready(second, "me")

        assert first_handle.disposed
        assert todo_id in fake_store.records
        assert manager.handle_for("doc-b") is second_handle
        await second_handle.dispose()

    @pytest.mark.asyncio
    async def test_force_sync_of_unbound_document(self, manager):
        result = await manager.force_sync("nowhere")
        assert not result.success
        assert "not bound" in result.error


# ---------------------------------------------------------------------------
# Merge-back
# ---------------------------------------------------------------------------


class TestMergeBack:
    """Store changes flowing back into the document."""

    @pytest.mark.asyncio
    async def test_remote_change_is_merged_into_the_document(
        self, manager, document, commands, fake_store
    ):
        handle = await manager.on_ready(document, "me", commands)
        todo_id = commands.append_todo("Shared").todo_id
        await handle.driver.force_sync()
        undo_depth = len(document._undo_stack)

        fake_store.edit_remotely(todo_id, completed=True, assigned_to="bob")
        result = await handle.driver.force_sync()

        assert result.merged == 1
        todo = extract_todos(document)[0]
        assert todo.completed is True
        assert todo.assigned_to == "bob"
        assert len(document._undo_stack) == undo_depth

        result = await handle.driver.force_sync()
        assert result.operations == 0
        await handle.dispose()

    @pytest.mark.asyncio
    async def test_remote_content_change_is_overwritten(
        self, manager, document, commands, fake_store, tracker
    ):
        handle = await manager.on_ready(document, "me", commands)
        todo_id = commands.append_todo("Mine").todo_id
        await handle.driver.force_sync()

        fake_store.edit_remotely(todo_id, content="Theirs")
        result = await handle.driver.force_sync()

        assert result.updated == 1
        assert fake_store.records[todo_id].content == "Mine"
        assert extract_todos(document)[0].content == "Mine"
        assert tracker.load_saved(DOC)[0]["resolution"] == "local_wins"
        await handle.dispose()

    @pytest.mark.asyncio
    async def test_edit_made_while_the_store_is_read_is_kept(
        self, manager, document, commands, fake_store, tracker, monkeypatch
    ):
        handle = await manager.on_ready(document, "me", commands)
        todo_id = commands.append_todo("Shared").todo_id
        await handle.driver.force_sync()
        fake_store.edit_remotely(todo_id, assigned_to="bob")

        listing = asyncio.Event()
        release = asyncio.Event()
        list_by_document = fake_store.list_by_document

        async def slow_list(document_id):
            records = await list_by_document(document_id)
            listing.set()
            await release.wait()
            return records

        monkeypatch.setattr(fake_store, "list_by_document", slow_list)

        sync = asyncio.create_task(handle.driver.force_sync())
        await listing.wait()
        commands.set_assignee(todo_id, "alice")
        release.set()
        await sync

        assert extract_todos(document)[0].assigned_to == "alice"
        conflicts = tracker.load_saved(DOC)
        assert any(
            c["field"] == "assigned_to" and c["resolution"] == "local_wins"
            for c in conflicts
        )

        await handle.driver.force_sync()
        await handle.driver.wait_idle()

        assert fake_store.records[todo_id].assigned_to == "alice"
        assert extract_todos(document)[0].assigned_to == "alice"
        await handle.dispose()


# ---------------------------------------------------------------------------
# Deletes and detaches
# ---------------------------------------------------------------------------


class TestRemovals:
    """Explicit deletes, structural removal and undo/redo."""

    @pytest.mark.asyncio
    async def test_delete_command_deletes_the_record(
        self, manager, document, commands, fake_store, sync_state
    ):
        handle = await manager.on_ready(document, "me", commands)
        todo_id = commands.append_todo("Temporary").todo_id
        await handle.driver.force_sync()

        commands.delete_todo(todo_id)
        result = await handle.driver.force_sync()

        assert result.deleted == 1
        assert todo_id not in fake_store.records
        assert sync_state.get_pending_deletes(DOC) == set()
        await handle.dispose()

    @pytest.mark.asyncio
    async def test_structural_removal_only_detaches(
        self, manager, document, commands, fake_store
    ):
        handle = await manager.on_ready(document, "me", commands)
        todo_id = commands.append_todo("Cut me").todo_id
        await handle.driver.force_sync()

        _node, path = document.find_todo(todo_id)
        document.delete_node(path)
        result = await handle.driver.force_sync()

        assert result.detached == 1
        assert todo_id in fake_store.records
        assert fake_store.count("delete") == 0

        result = await handle.driver.force_sync()
        assert result.restored == 0
        assert document.find_todo(todo_id) is None

        fake_store.edit_remotely(todo_id, completed=True)
        result = await handle.driver.force_sync()
        assert result.restored == 1
        assert document.find_todo(todo_id) is not None
        await handle.dispose()

    @pytest.mark.asyncio
    async def test_undo_of_delete_cancels_it(self, manager, document, commands, fake_store):
        handle = await manager.on_ready(document, "me", commands)
        todo_id = commands.append_todo("Keep me").todo_id
        await handle.driver.force_sync()

        commands.delete_todo(todo_id)
        document.undo()
        await handle.driver.force_sync()

        assert fake_store.count("delete") == 0
        assert todo_id in fake_store.records
        await handle.dispose()

    @pytest.mark.asyncio
    async def test_redo_after_sync_deletes_the_record(
        self, manager, document, commands, fake_store, sync_state
    ):
        handle = await manager.on_ready(document, "me", commands)
        todo_id = commands.append_todo("Flip-flop").todo_id
        await handle.driver.force_sync()

        commands.delete_todo(todo_id)
        document.undo()
        await handle.driver.force_sync()
        assert todo_id in fake_store.records

        document.redo()
        result = await handle.driver.force_sync()

        assert result.deleted == 1
        assert result.detached == 0
        assert todo_id not in fake_store.records
        assert sync_state.get_pending_deletes(DOC) == set()
        await handle.dispose()

    @pytest.mark.asyncio
    async def test_redo_before_sync_deletes_the_record(
        self, manager, document, commands, fake_store
    ):
        handle = await manager.on_ready(document, "me", commands)
        todo_id = commands.append_todo("Flip-flop").todo_id
        await handle.driver.force_sync()

        commands.delete_todo(todo_id)
        document.undo()
        document.redo()
        result = await handle.driver.force_sync()

        assert result.deleted == 1
        assert todo_id not in fake_store.records
        await handle.dispose()

    @pytest.mark.asyncio
    async def test_delete_of_unsynced_todo_clears_pending_delete(
        self, manager, document, commands, fake_store, sync_state
    ):
        handle = await manager.on_ready(document, "me", commands)
        todo_id = commands.append_todo("Never stored").todo_id
        commands.delete_todo(todo_id)
        assert sync_state.get_pending_deletes(DOC) == {todo_id}

        await handle.driver.force_sync()
        await handle.driver.force_sync()
        await handle.dispose()

        assert sync_state.get_pending_deletes(DOC) == set()
        assert fake_store.count("delete") == 0
        assert fake_store.count("insert") == 0


# ---------------------------------------------------------------------------
# Ownership, restore and flagged nodes
# ---------------------------------------------------------------------------


class TestOwnershipAndRestore:
    @pytest.mark.asyncio
    async def test_ownership_conflict_is_reported_once(
        self, manager, fake_store, notifier, tracker
    ):
        other = Document.from_html("", document_id="doc-other")
        other_commands = TodoCommands(other)
        other_handle = await manager.on_ready(other, "me", other_commands)
        todo_id = other_commands.append_todo("Mine").todo_id
        await other_handle.dispose()

        pasted = Document.from_html(
            f'<div data-type="todo-item" data-id="{todo_id}">Mine</div>',
            document_id=DOC,
        )
        handle = await manager.on_ready(pasted, "me")
        first = await handle.driver.force_sync()
        await handle.driver.force_sync()

        assert first.conflicts == 1
        assert fake_store.records[todo_id].document_id == "doc-other"
        assert len(notifier.of_kind("warning")) == 1
        assert all(c["resolution"] == "ownership" for c in tracker.load_saved(DOC))
        await handle.dispose()

    @pytest.mark.asyncio
    async def test_store_only_record_is_restored(
        self, manager, document, commands, fake_store
    ):
        now = datetime.now(UTC)
        fake_store.records["r1"] = TodoRecord(
            id="r1",
            document_id=DOC,
            content="Made on another device",
            created_at=now,
            updated_at=now,
        )
        handle = await manager.on_ready(document, "me", commands)

        result = await handle.driver.force_sync()

        assert result.restored == 1
        assert extract_todos(document)[-1].content == "Made on another device"
        await handle.dispose()

    @pytest.mark.asyncio
    async def test_incompatible_nodes_are_not_synced(self, manager, fake_store):
        document = Document.from_html(
            '<div data-type="todo-item" data-id="old" data-schema-version="3.0">Old</div>',
            document_id=DOC,
        )
        handle = await manager.on_ready(document, "me")

        result = await handle.driver.force_sync()

        assert result.flagged == 1
        assert fake_store.records == {}
        await handle.dispose()
