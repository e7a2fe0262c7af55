"""Rendered document tree: a BeautifulSoup page with boundary-point ranges.

Nodes are bs4 ``Tag`` and ``NavigableString`` objects. A selection is a pair
of ``(node, offset)`` points, the offset being a character index inside a
string or a child index inside a tag, as in a browser DOM.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Union

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

CONTENT_ID = "markdown-content"
PARSER = "html.parser"

Node = Union[Tag, NavigableString]


def is_text(node: Any) -> bool:
    """True for character data (comments, doctypes and CDATA excluded)."""
    return isinstance(node, NavigableString) and not isinstance(node, PreformattedString)


def node_path(node: Node) -> tuple[int, ...]:
    """Child indexes from the root down to ``node`` (document order key)."""
    indexes: list[int] = []
    while node.parent is not None:
        indexes.append(node.parent.index(node))
        node = node.parent
    return tuple(reversed(indexes))


def contains(ancestor: Node, node: Node) -> bool:
    return node is ancestor or any(p is ancestor for p in node.parents)


def text_nodes(tag: Tag) -> Iterator[NavigableString]:
    for node in tag.descendants:
        if is_text(node):
            yield node


def text_of(node: Node) -> str:
    if isinstance(node, Tag):
        return "".join(text_nodes(node))
    return str(node)


def closest(node: Node, class_name: str) -> Tag | None:
    """Nearest tag (``node`` included) carrying ``class_name``."""
    tag = node if isinstance(node, Tag) else node.parent
    while tag is not None:
        if class_name in tag.get_attribute_list("class"):
            return tag
        tag = tag.parent
    return None


def soup_of(node: Node) -> BeautifulSoup | None:
    root = node
    while root.parent is not None:
        root = root.parent
    return root if isinstance(root, BeautifulSoup) else None


@dataclass(frozen=True, eq=False)
class Point:
    """A boundary point: a character offset in a string or a child index in a tag."""

    node: Node
    offset: int

    def key(self) -> tuple[int, ...]:
        return node_path(self.node) + (self.offset,)


@dataclass
class Range:
    start: Point
    end: Point

    @property
    def collapsed(self) -> bool:
        return self.start.node is self.end.node and self.start.offset == self.end.offset

    def ordered(self) -> Range:
        """Return a range whose start does not come after its end."""
        if self.start.key() > self.end.key():
            return Range(self.end, self.start)
        return self

    def common_ancestor(self) -> Node:
        start_chain = [self.start.node, *self.start.node.parents]
        for node in [self.end.node, *self.end.node.parents]:
            if any(node is n for n in start_chain):
                return node
        return start_chain[-1]

    def intersects_node(self, node: Node) -> bool:
        parent = node.parent
        if parent is None:
            return True
        i = parent.index(node)
        before_end = Point(parent, i).key() < self.end.key()
        after_start = Point(parent, i + 1).key() > self.start.key()
        return before_end and after_start

    def text_pieces(self) -> Iterator[tuple[NavigableString, int, int]]:
        """Yield ``(string, start, end)`` for every selected piece of text."""
        root = self.common_ancestor()
        nodes = [root] if is_text(root) else list(text_nodes(root))
        start_key = self.start.key()
        end_key = self.end.key()
        for text in nodes:
            p = node_path(text)
            if self.start.node is text:
                s = self.start.offset
            elif start_key <= p:
                s = 0
            else:
                continue
            if self.end.node is text:
                e = self.end.offset
            elif end_key > p:
                e = len(text)
            else:
                continue
            if s < e:
                yield text, s, e

    def text(self) -> str:
        return "".join(str(t)[s:e] for t, s, e in self.text_pieces())


@dataclass
class Document:
    """One render: the annotatable content element inside a parsed page."""

    soup: BeautifulSoup
    meta: dict[str, Any] = field(default_factory=dict)
    content: Tag = field(init=False)

    def __post_init__(self) -> None:
        content = self.soup.find(id=CONTENT_ID)
        if content is None:
            raise ValueError(f"page has no #{CONTENT_ID} element")
        self.content = content

    @classmethod
    def from_fragment(cls, fragment: str, meta: dict[str, Any] | None = None) -> Document:
        """Parse an HTML fragment as the content element of a fresh page."""
        page = f'<html><body><div id="{CONTENT_ID}">{fragment}</div></body></html>'
        return cls(BeautifulSoup(page, PARSER), dict(meta or {}))

    @property
    def body(self) -> Tag:
        return self.soup.body

    def text(self) -> str:
        return text_of(self.content)

    def html(self) -> str:
        return str(self.content)
