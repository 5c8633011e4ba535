"""Tests for snapshot extraction."""

from todosync.editor import Document
from todosync.sync.extractor import extract_todos, index_todos


class TestExtractTodos:
    def test_extracts_todos_in_document_order(self):
        document = Document.from_html(
            '<div data-type="todo-item" data-id="b">Second in id order</div>'
            "<ul><li><p>item</p>"
            '<div data-type="todo-item" data-id="a">Nested</div></li></ul>'
            '<div data-type="todo-item" data-id="c" data-schema-version="4.0">Odd</div>'
        )

        todos = extract_todos(document)

        assert [todo.id for todo in todos] == ["b", "a", "c"]
        assert todos[2].read_only is True
        assert todos[2].schema_version == "4.0"

    def test_extraction_is_pure(self):
        document = Document.from_html(
            '<div data-type="todo-item" data-id="t1">Task</div>'
        )
        before = document.to_html()

        assert extract_todos(document) == extract_todos(document)
        assert document.to_html() == before


class TestIndexTodos:
    def test_index_todos(self):
        document = Document.from_html(
            '<div data-type="todo-item" data-id="t1">One</div>'
            '<div data-type="todo-item" data-id="t2">Two</div>'
        )
        index = index_todos(extract_todos(document))
        assert set(index) == {"t1", "t2"}
        assert index["t2"].content == "Two"
