"""Line-addressed view over the blocks of one render."""

import logging

from .dom import Document, Range
from .model import LINE_END_ATTR, LINE_START_ATTR, Block

logger = logging.getLogger(__name__)


class LineIndex:
    def __init__(self, document: Document):
        self.document = document
        self.blocks: list[Block] = []
        for el in document.content.find_all(True):
            start = el.get(LINE_START_ATTR)
            end = el.get(LINE_END_ATTR)
            if start is None or end is None:
                continue
            try:
                block = Block(el, int(start), int(end))
            except ValueError:
                logger.debug("Skipping block with bad line attributes: %r", el)
                continue
            self.blocks.append(block)

    def blocks_overlapping(self, line_start: int, line_end: int) -> list[Block]:
        """Blocks whose line range overlaps ``[line_start, line_end]``, in document order."""
        return [
            b for b in self.blocks if b.line_start <= line_end and b.line_end >= line_start
        ]

    def blocks_intersecting_selection(self, rng: Range) -> list[Block]:
        """Blocks whose span intersects the live range, in document order."""
        return [b for b in self.blocks if rng.intersects_node(b.element)]
