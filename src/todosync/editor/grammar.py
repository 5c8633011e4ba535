"""Structural grammar of the document tree.

Every node type that may appear in a document is described by a ``NodeSpec``:
which group it belongs to, what it may contain, and how it maps onto markup.
The todo node registers itself here from ``todosync.editor.schema`` so that it
is a first-class node type rather than styled text.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

Path = tuple[int, ...]

# Content expressions understood by ``NodeSpec.accepts``.
BLOCK_CONTENT = "block"
INLINE_CONTENT = "inline"
LIST_CONTENT = "list_item"


@dataclass
class Node:
    """A node in the document tree.

    Block and inline nodes hold children in ``content``; text nodes carry
    ``text`` and their formatting ``marks`` (``{"type": ..., "attrs": {...}}``).
    """

    type: str
    attrs: dict[str, Any] = field(default_factory=dict)
    content: list[Node] = field(default_factory=list)
    text: str | None = None
    marks: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_text(self) -> bool:
        return self.type == "text"

    @property
    def is_textblock(self) -> bool:
        spec = NODE_SPECS.get(self.type)
        return spec is not None and spec.content == INLINE_CONTENT

    @property
    def editable(self) -> bool:
        return bool(self.attrs.get("editable", True)) and not self.attrs.get(
            "read_only", False
        )

    def text_content(self) -> str:
        """Concatenated text of this node and its descendants."""
        if self.is_text:
            return self.text or ""
        if self.type == "hard_break":
            return "\n"
        return "".join(child.text_content() for child in self.content)

    def copy(self) -> Node:
        """Deep copy of this subtree."""
        return copy.deepcopy(self)


@dataclass
class NodeSpec:
    """Grammar entry for a node type.

    Attributes:
        name: Node type name
        group: ``"block"`` or ``"inline"``
        content: Content expression (``"block"``, ``"inline"``, ``"list_item"``
            or ``""`` for leaf nodes)
        tag: Markup tag the node serializes to
        match: Optional predicate deciding whether a markup element parses as
            this node type (receives tag name and attribute dict)
        parse_attrs: Converts markup attributes into node attributes
        render_attrs: Converts node attributes into markup attributes
        tag_for: Chooses the markup tag from node attributes when it varies
        priority: Higher priority specs are tried first when parsing
    """

    name: str
    group: str
    content: str
    tag: str | None = None
    match: Callable[[str, dict[str, str]], bool] | None = None
    parse_attrs: Callable[[str, dict[str, str]], dict[str, Any]] | None = None
    render_attrs: Callable[[dict[str, Any]], dict[str, Any]] | None = None
    tag_for: Callable[[dict[str, Any]], str] | None = None
    priority: int = 50

    def render_tag(self, attrs: dict[str, Any]) -> str:
        if self.tag_for is not None:
            return self.tag_for(attrs)
        return self.tag or "div"

    def accepts(self, child_type: str) -> bool:
        """Return True if a node of ``child_type`` may be a direct child."""
        child = NODE_SPECS.get(child_type)
        if child is None:
            return False
        if self.content == BLOCK_CONTENT:
            return child.group == "block"
        if self.content == INLINE_CONTENT:
            return child.group == "inline"
        if self.content == LIST_CONTENT:
            return child.name == "list_item"
        return False

    def matches(self, tag: str, attrs: dict[str, str]) -> bool:
        if self.match is not None:
            return self.match(tag, attrs)
        return tag == self.tag


NODE_SPECS: dict[str, NodeSpec] = {}


def register_node(spec: NodeSpec) -> NodeSpec:
    """Add a node type to the grammar (replacing any previous definition)."""
    NODE_SPECS[spec.name] = spec
    return spec


def spec_for_tag(tag: str, attrs: dict[str, str]) -> NodeSpec | None:
    """Find the node spec that parses a markup element."""
    candidates = sorted(NODE_SPECS.values(), key=lambda s: s.priority, reverse=True)
    for spec in candidates:
        if spec.name == "text":
            continue
        if spec.matches(tag, attrs):
            return spec
    return None


def _heading_attrs(tag: str, attrs: dict[str, str]) -> dict[str, Any]:
    return {"level": int(tag[1])}


def _heading_tag(attrs: dict[str, Any]) -> str:
    level = attrs.get("level", 1)
    if not isinstance(level, int) or not 1 <= level <= 6:
        level = 1
    return f"h{level}"


register_node(NodeSpec("doc", group="", content=BLOCK_CONTENT))
register_node(NodeSpec("paragraph", group="block", content=INLINE_CONTENT, tag="p"))
register_node(
    NodeSpec(
        "heading",
        group="block",
        content=INLINE_CONTENT,
        match=lambda tag, attrs: tag in {"h1", "h2", "h3", "h4", "h5", "h6"},
        parse_attrs=_heading_attrs,
        render_attrs=lambda attrs: {},
        tag_for=_heading_tag,
    )
)
register_node(
    NodeSpec("blockquote", group="block", content=BLOCK_CONTENT, tag="blockquote")
)
register_node(NodeSpec("bullet_list", group="block", content=LIST_CONTENT, tag="ul"))
register_node(NodeSpec("ordered_list", group="block", content=LIST_CONTENT, tag="ol"))
register_node(NodeSpec("list_item", group="", content=BLOCK_CONTENT, tag="li"))
register_node(NodeSpec("text", group="inline", content=""))
register_node(NodeSpec("hard_break", group="inline", content="", tag="br"))
