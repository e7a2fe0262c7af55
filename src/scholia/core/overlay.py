"""Overlay manager: the live set of highlights and its aggregate view."""

from __future__ import annotations

import logging

from .dom import Document, node_path
from .errors import PreconditionViolation, ResolutionNotFound, WrapFailed
from .line_index import LineIndex
from .model import (
    AnnotationEntry,
    Comment,
    CommentId,
    CommentState,
    Diagnostic,
    Highlight,
)
from .ports import Wrapper
from .resolver import AnchorResolver

logger = logging.getLogger(__name__)


class OverlayManager:
    """
    Owns every highlight materialized in the current render.

    None of the methods awaits, so under asyncio each one completes before
    any other task observes the highlight set.
    """

    def __init__(self, document: Document, wrapper: Wrapper):
        self.wrapper = wrapper
        self.diagnostics: list[Diagnostic] = []
        self._bind(document)

    def _bind(self, document: Document) -> None:
        self.document = document
        self.index = LineIndex(document)
        self.resolver = AnchorResolver(self.index)
        self._comments: dict[CommentId, Comment] = {}
        self._highlights: dict[CommentId, Highlight] = {}
        self._states: dict[CommentId, CommentState] = {}

    def state(self, id: CommentId) -> CommentState | None:
        return self._states.get(id)

    def highlight(self, id: CommentId) -> Highlight | None:
        return self._highlights.get(id)

    @property
    def comments(self) -> list[Comment]:
        return list(self._comments.values())

    def __len__(self) -> int:
        return len(self._highlights)

    def materialize(self, comment: Comment) -> Highlight | None:
        """
        Resolve and wrap a comment. Idempotent per comment id.

        On failure the comment stays UNRESOLVED, a diagnostic is recorded and
        None is returned; nothing is raised.
        """
        existing = self._highlights.get(comment.id)
        if existing is not None:
            return existing

        self._comments[comment.id] = comment
        self._states[comment.id] = CommentState.UNRESOLVED

        rng = self.resolver.resolve(comment)
        if rng is None:
            self._record(
                "warn",
                ResolutionNotFound(
                    f"Text {comment.selected_text!r} not found "
                    f"for lines {comment.line_start}-{comment.line_end}"
                ),
                comment.id,
            )
            return None

        try:
            highlight = self.wrapper.wrap(rng, comment)
        except WrapFailed as e:
            self._record("warn", e, comment.id)
            return None

        self._highlights[comment.id] = highlight
        self._states[comment.id] = CommentState.HIGHLIGHTED
        return highlight

    def update(self, id: CommentId, comment_text: str) -> bool:
        """Change the displayed comment text of an existing highlight."""
        highlight = self._highlights.get(id)
        if highlight is None:
            self._record("error", PreconditionViolation(f"update: no highlight for comment {id}"), id)
            return False
        highlight.comment = highlight.comment.with_text(comment_text)
        self._comments[id] = highlight.comment
        self.wrapper.relabel(highlight, comment_text)
        return True

    def remove(self, id: CommentId) -> bool:
        """Unwrap an existing highlight and forget its comment."""
        highlight = self._highlights.get(id)
        if highlight is None:
            self._record("error", PreconditionViolation(f"remove: no highlight for comment {id}"), id)
            return False
        self.wrapper.unwrap(highlight)
        del self._highlights[id]
        self._comments.pop(id, None)
        self._states[id] = CommentState.REMOVED
        return True

    def forget(self, id: CommentId) -> bool:
        """Drop a comment that never resolved; it has nothing to unwrap."""
        if self._states.get(id) is not CommentState.UNRESOLVED:
            return False
        self._comments.pop(id, None)
        self._states[id] = CommentState.REMOVED
        return True

    def snapshot(self) -> list[AnnotationEntry]:
        """The aggregate annotation list in document appearance order."""
        ordered = sorted(self._highlights.values(), key=lambda h: node_path(h.element))
        return [
            AnnotationEntry(
                id=h.comment.id,
                line_start=h.comment.line_start,
                line_end=h.comment.line_end,
                selected_text=h.comment.selected_text,
                comment_text=h.comment.comment_text,
            )
            for h in ordered
        ]

    def reset(self, document: Document) -> None:
        """Tear down every highlight and bind a fresh render."""
        for highlight in sorted(
            self._highlights.values(), key=lambda h: node_path(h.element), reverse=True
        ):
            self.wrapper.unwrap(highlight)
        self.diagnostics.clear()
        self._bind(document)

    def _record(self, severity: str, error: Exception, comment_id: CommentId | None) -> None:
        self.diagnostics.append(Diagnostic(severity, str(error), comment_id, error))
        if severity == "error":
            logger.error("%s: %s", type(error).__name__, error)
        else:
            logger.warning("Comment %s not highlighted: %s", comment_id, error)
