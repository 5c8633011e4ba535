"""HTML markup codec for documents.

Parses document HTML into a ``Node`` tree according to the grammar and
serializes it back. Unknown container elements are transparent (their children
are kept), loose inline content inside block containers is wrapped in an
implicit paragraph, and block elements nested inside a text block are
flattened into it.
"""

from __future__ import annotations

import html
from typing import Any

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

# Registers the todo node type with the grammar.
from todosync.editor import schema as _schema  # noqa: F401
from todosync.editor.grammar import NODE_SPECS, Node, NodeSpec, spec_for_tag

MARK_TAGS = {
    "strong": "bold",
    "b": "bold",
    "em": "italic",
    "i": "italic",
    "u": "underline",
    "s": "strike",
    "strike": "strike",
    "del": "strike",
    "code": "code",
    "a": "link",
}
MARK_RENDER = {"bold": "strong", "italic": "em", "underline": "u", "strike": "s",
               "code": "code", "link": "a"}
SKIPPED_TAGS = {"script", "style", "head", "title"}
VOID_TAGS = {"br", "hr", "img", "input", "meta", "link"}


class _TreeBuilder:
    """Builds a ``doc`` node from a parsed soup."""

    def __init__(self) -> None:
        self.root = Node("doc")
        # Entries are (tag, node or None); None marks a transparent element.
        self._stack: list[tuple[str, Node | None]] = [("#root", self.root)]
        self._marks: list[tuple[str, dict[str, Any]]] = []

    # -- helpers -----------------------------------------------------------

    def _current(self) -> Node:
        for _tag, node in reversed(self._stack):
            if node is not None:
                return node
        return self.root

    def _textblock(self) -> Node:
        """Return the text block receiving inline content, creating one if needed."""
        current = self._current()
        if current.is_textblock:
            return current
        spec = NODE_SPECS[current.type]
        if spec.accepts("paragraph"):
            paragraph = Node("paragraph")
            current.content.append(paragraph)
            self._stack.append(("#implicit", paragraph))
            return paragraph
        # A list holding loose inline content: wrap it in an item first.
        item = Node("list_item")
        current.content.append(item)
        self._stack.append(("#implicit", item))
        paragraph = Node("paragraph")
        item.content.append(paragraph)
        self._stack.append(("#implicit", paragraph))
        return paragraph

    def _current_marks(self) -> list[dict[str, Any]]:
        marks: list[dict[str, Any]] = []
        for name, attrs in self._marks:
            mark: dict[str, Any] = {"type": name}
            if attrs:
                mark["attrs"] = dict(attrs)
            if mark not in marks:
                marks.append(mark)
        return marks

    # -- tree walk ---------------------------------------------------------

    def walk(self, parent: Tag) -> None:
        for child in parent.children:
            if isinstance(child, Tag):
                self._element(child)
            elif isinstance(child, NavigableString) and not isinstance(
                child, PreformattedString
            ):
                self._text(str(child))

    def _element(self, element: Tag) -> None:
        tag = element.name
        attrs = {k: (v if v is not None else "") for k, v in element.attrs.items()}

        if tag in SKIPPED_TAGS:
            return

        if tag in MARK_TAGS:
            mark_attrs = {"href": attrs["href"]} if tag == "a" and "href" in attrs else {}
            self._marks.append((MARK_TAGS[tag], mark_attrs))
            self.walk(element)
            self._marks.pop()
            return

        if tag == "br":
            self._textblock().content.append(Node("hard_break"))
            return
        if tag in VOID_TAGS:
            return

        depth = len(self._stack)
        spec = spec_for_tag(tag, attrs)
        if spec is None or spec.group == "inline":
            self._stack.append((tag, None))
        else:
            self._open_block(tag, spec, attrs)
        self.walk(element)
        # Closing an element also closes the implicit blocks opened inside it.
        del self._stack[depth:]

    def _open_block(self, tag: str, spec: NodeSpec, attrs: dict[str, str]) -> None:
        current = self._current()
        if current.is_textblock and (
            current.type == "todo" or self._stack[-1][0] != "#implicit"
        ):
            # Blocks inside a text block are flattened into it.
            self._stack.append((tag, None))
            return
        while self._stack[-1][0] == "#implicit":
            implicit = self._stack[-1][1]
            if implicit is not None and NODE_SPECS[implicit.type].accepts(spec.name):
                break
            self._stack.pop()
        current = self._current()

        node_attrs = spec.parse_attrs(tag, attrs) if spec.parse_attrs else {}
        if attrs.get("data-editable") == "false":
            node_attrs["editable"] = False
        node = Node(spec.name, attrs=node_attrs)

        parent_spec = NODE_SPECS[current.type]
        if not parent_spec.accepts(spec.name):
            if spec.name == "list_item":
                # Orphan list item: give it a list.
                wrapper = Node("bullet_list")
                current.content.append(wrapper)
                self._stack.append(("#implicit", wrapper))
                current = wrapper
            elif parent_spec.content == "list_item":
                item = Node("list_item")
                current.content.append(item)
                self._stack.append(("#implicit", item))
                current = item
        current.content.append(node)
        self._stack.append((tag, node))

    def _text(self, data: str) -> None:
        if not data:
            return
        current = self._current()
        if not current.is_textblock and not data.strip():
            return
        block = self._textblock()
        marks = self._current_marks()
        previous = block.content[-1] if block.content else None
        if previous is not None and previous.is_text and previous.marks == marks:
            previous.text = (previous.text or "") + data
        else:
            block.content.append(Node("text", text=data, marks=marks))


def parse_html(markup: str) -> Node:
    """Parse document HTML into a ``doc`` node."""
    # Attribute values stay plain strings (``class`` is not split).
    soup = BeautifulSoup(markup or "", "html.parser", multi_valued_attributes=None)
    builder = _TreeBuilder()
    builder.walk(soup)
    root = builder.root
    if not root.content:
        root.content.append(Node("paragraph"))
    return root


def _render_attrs(attrs: dict[str, Any]) -> str:
    parts = []
    for key, value in attrs.items():
        if value is None:
            continue
        parts.append(f' {key}="{html.escape(str(value), quote=True)}"')
    return "".join(parts)


def _render_text(node: Node) -> str:
    text = html.escape(node.text or "", quote=False)
    for mark in reversed(node.marks):
        tag = MARK_RENDER.get(mark.get("type", ""))
        if tag is None:
            continue
        mark_attrs = _render_attrs(mark.get("attrs") or {})
        text = f"<{tag}{mark_attrs}>{text}</{tag}>"
    return text


def serialize_node(node: Node) -> str:
    """Serialize a node (and its subtree) to HTML."""
    if node.is_text:
        return _render_text(node)
    if node.type == "hard_break":
        return "<br>"
    inner = "".join(serialize_node(child) for child in node.content)
    if node.type == "doc":
        return inner
    spec = NODE_SPECS[node.type]
    if spec.render_attrs is not None:
        attrs = spec.render_attrs(node.attrs)
    else:
        attrs = {}
    if node.attrs.get("editable") is False and not node.attrs.get("read_only"):
        attrs["data-editable"] = "false"
    tag = spec.render_tag(node.attrs)
    return f"<{tag}{_render_attrs(attrs)}>{inner}</{tag}>"


def serialize_html(root: Node) -> str:
    """Serialize a ``doc`` node to HTML."""
    return serialize_node(root)
