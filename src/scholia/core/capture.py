"""Turn a live selection into a portable anchor."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass

from bs4.element import Tag

from .dom import Document, Point, Range, closest, contains, text_nodes
from .errors import CaptureRejected
from .line_index import LineIndex
from .model import HIGHLIGHT_CLASS, Anchor, BoundingBox
from .ports import Layout

logger = logging.getLogger(__name__)

_tokens = itertools.count(1)


@dataclass(frozen=True)
class CapturedSelection:
    anchor: Anchor
    raw_text: str
    range: Range
    token: int  # distinguishes successive captures of identical text


class AnchorCapture:
    """
    Owns the transient current selection. Every call to capture() replaces
    it; discard() clears it. Nothing else mutates it.
    """

    def __init__(self, document: Document, index: LineIndex, layout: Layout | None = None):
        self.document = document
        self.index = index
        self.layout = layout
        self._current: CapturedSelection | None = None
        self.last_rejection: CaptureRejected | None = None

    @property
    def current(self) -> CapturedSelection | None:
        return self._current

    def capture(self, start: Point, end: Point) -> CapturedSelection | None:
        """
        Capture the selection between two boundary points.

        Returns None (and clears the current selection) when the selection is
        rejected: empty after trimming, not wholly inside the content element,
        or already inside a highlight.
        """
        self._current = None
        rng = Range(start, end).ordered()
        raw_text = rng.text()
        text = raw_text.strip()

        if not text:
            return self._reject("empty selection")

        content = self.document.content
        if not (contains(content, rng.start.node) and contains(content, rng.end.node)):
            return self._reject("selection outside the document content")

        if closest(rng.common_ancestor(), HIGHLIGHT_CLASS) is not None:
            return self._reject("selection inside an existing highlight")

        blocks = self.index.blocks_intersecting_selection(rng)
        line_start = min((b.line_start for b in blocks), default=None)
        line_end = max((b.line_end for b in blocks), default=None)

        self._current = CapturedSelection(
            anchor=Anchor(line_start=line_start, line_end=line_end, text=text),
            raw_text=raw_text,
            range=rng,
            token=next(_tokens),
        )
        self.last_rejection = None
        return self._current

    def discard(self) -> None:
        self._current = None

    def release(self, selection: CapturedSelection) -> bool:
        """Clear the current selection only if it is still ``selection``."""
        if self._current is not None and self._current.token == selection.token:
            self._current = None
            return True
        return False

    def bounding_box(self) -> BoundingBox | None:
        if self._current is None or self.layout is None:
            return None
        return self.layout.rect(self._current.range)

    def _reject(self, reason: str) -> None:
        self.last_rejection = CaptureRejected(reason)
        logger.debug("Selection ignored: %s", reason)
        return None


def select_text(element: Tag, text: str, occurrence: int = 0) -> tuple[Point, Point] | None:
    """
    Boundary points spanning ``text`` inside a single text node of ``element``.

    Helper for building selections programmatically (CLI, tests).
    """
    seen = 0
    for node in text_nodes(element):
        data = str(node)
        pos = data.find(text)
        while pos != -1:
            if seen == occurrence:
                return Point(node, pos), Point(node, pos + len(text))
            seen += 1
            pos = data.find(text, pos + 1)
    return None
