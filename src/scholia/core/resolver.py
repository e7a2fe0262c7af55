"""Re-resolve stored anchors into live ranges by line-scoped text search."""

from bs4.element import Tag

from .dom import Point, Range, text_nodes
from .line_index import LineIndex
from .model import Anchor, Comment


class AnchorResolver:
    def __init__(self, index: LineIndex):
        self.index = index

    def candidates(self, anchor: Anchor) -> list[Tag]:
        """
        Elements to search, in document order.

        With both line bounds present the search is limited to the blocks
        overlapping them; otherwise the whole content element is searched.
        """
        if anchor.line_start is None or anchor.line_end is None:
            return [self.index.document.content]
        blocks = self.index.blocks_overlapping(anchor.line_start, anchor.line_end)
        return [b.element for b in blocks]

    def resolve(self, target: Comment | Anchor) -> Range | None:
        """
        Find the first occurrence of the anchor text in the candidate blocks.

        The first text node containing the text wins, at its first occurrence.
        Returns None when no candidate contains it.
        """
        anchor = target.anchor if isinstance(target, Comment) else target
        text = anchor.text
        if not text:
            return None
        for element in self.candidates(anchor):
            for node in text_nodes(element):
                i = str(node).find(text)
                if i != -1:
                    return Range(Point(node, i), Point(node, i + len(text)))
        return None
