"""Review session: capture, store, and overlay wired together for one document."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable

from .adapters.span_wrapper import SpanWrapper
from .core.capture import AnchorCapture, CapturedSelection
from .core.dom import Document, Point
from .core.errors import CommentNotFound
from .core.model import AnnotationEntry, Comment, CommentId, CommentState
from .core.overlay import OverlayManager
from .core.ports import CommentStore, DocumentLoader, Layout, Wrapper
from .events import COMMENTS_RESOLVED, CONNECTED, FILE_UPDATED, LiveEvent

logger = logging.getLogger(__name__)


class PopupController:
    """
    Handlers for the comment popup. Each open() replaces every handler
    registered by the previous one, so only the latest open is live.
    """

    def __init__(self) -> None:
        self.mode: str | None = None
        self._handlers: dict[str, Callable[..., Any]] = {}

    @property
    def is_open(self) -> bool:
        return self.mode is not None

    def open(self, mode: str, **handlers: Callable[..., Any]) -> None:
        self.mode = mode
        self._handlers = dict(handlers)

    def close(self) -> None:
        self.mode = None
        self._handlers = {}

    def trigger(self, action: str, *args: Any) -> Any:
        handler = self._handlers.get(action)
        if handler is None:
            logger.debug("No %r handler for popup mode %r", action, self.mode)
            return None
        return handler(*args)


@dataclass
class _IdLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


@dataclass
class _Journal:
    """Store changes that complete while a rebuild is waiting for list()."""

    created: dict[CommentId, Comment] = field(default_factory=dict)
    updated: dict[CommentId, Comment] = field(default_factory=dict)
    deleted: set[CommentId] = field(default_factory=set)

    def apply(self, comments: list[Comment]) -> list[Comment]:
        merged = [
            self.updated.get(c.id, c) for c in comments if c.id not in self.deleted
        ]
        listed = {c.id for c in merged}
        merged.extend(
            c for id, c in self.created.items() if id not in listed and id not in self.deleted
        )
        return merged


class ReviewSession:
    """
    Per-comment operations on the same id run one at a time in issue order
    (a FIFO lock per id); operations on different ids may interleave.

    A rebuild replays the creates, updates and deletes that completed while
    it was fetching comments, so a stale listing never drops a new highlight
    or brings back a deleted one.
    """

    def __init__(
        self,
        loader: DocumentLoader,
        store: CommentStore,
        wrapper: Wrapper | None = None,
        layout: Layout | None = None,
    ):
        self.loader = loader
        self.store = store
        self.layout = layout
        self.popup = PopupController()
        document = loader.load()
        self.overlay = OverlayManager(document, wrapper or SpanWrapper())
        self.capture = AnchorCapture(document, self.overlay.index, layout)
        self._locks: dict[CommentId, _IdLock] = {}
        self._journals: list[_Journal] = []

    @property
    def document(self) -> Document:
        return self.overlay.document

    @asynccontextmanager
    async def _serialized(self, id: CommentId) -> AsyncIterator[None]:
        entry = self._locks.get(id)
        if entry is None:
            entry = self._locks[id] = _IdLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[id]

    # Loading

    def load(self, comments: Iterable[Comment]) -> int:
        """Materialize stored comments; returns how many were highlighted. Replies are skipped."""
        count = 0
        for comment in comments:
            if comment.is_reply:
                continue
            if self.overlay.materialize(comment) is not None:
                count += 1
        return count

    async def rebuild(self) -> int:
        """Re-render the document, re-fetch comments and materialize from scratch."""
        journal = _Journal()
        self._journals.append(journal)
        try:
            listed = await self.store.list()
        finally:
            self._journals.remove(journal)
        comments = journal.apply(listed)
        document = self.loader.load()
        self.popup.close()
        self.overlay.reset(document)
        self.capture = AnchorCapture(document, self.overlay.index, self.layout)
        count = self.load(comments)
        logger.info("Rebuilt overlay: %d of %d comments highlighted", count, len(comments))
        return count

    async def handle_event(self, event: LiveEvent) -> None:
        if event.name in (FILE_UPDATED, COMMENTS_RESOLVED):
            await self.rebuild()
        elif event.name != CONNECTED:
            logger.debug("Ignoring event %s", event.name)

    # Selection

    def select(self, start: Point, end: Point) -> CapturedSelection | None:
        self.popup.close()
        return self.capture.capture(start, end)

    def cancel_selection(self) -> None:
        self.capture.discard()
        self.popup.close()

    # Comment actions

    async def create(self, comment_text: str) -> Comment | None:
        """
        Store a comment for the current selection and highlight it.

        Returns None when there is no current selection. Store failures
        propagate; the selection is kept so the action can be retried.
        """
        text = comment_text.strip()
        if not text:
            raise ValueError("Comment text must not be empty")
        selection = self.capture.current
        if selection is None:
            logger.debug("create() without a current selection")
            return None

        anchor = selection.anchor
        comment = await self.store.create(anchor.line_start, anchor.line_end, anchor.text, text)
        for journal in self._journals:
            journal.created[comment.id] = comment

        # The selection may have been discarded or replaced meanwhile; the
        # comment exists in the store either way and must be shown.
        async with self._serialized(comment.id):
            self.overlay.materialize(comment)
        if self.capture.release(selection):
            self.popup.close()
        return comment

    async def update(self, id: CommentId, comment_text: str) -> Comment | None:
        """
        Change a comment's text in the store, then in its highlight.

        Returns None when the store succeeded but the highlight had already
        gone (recorded as a PreconditionViolation diagnostic).
        """
        text = comment_text.strip()
        if not text:
            raise ValueError("Comment text must not be empty")
        async with self._serialized(id):
            updated = await self.store.update(id, text)
            for journal in self._journals:
                journal.updated[id] = updated
                if id in journal.created:
                    journal.created[id] = updated
            if not self.overlay.update(id, updated.comment_text):
                return None
        self.popup.close()
        return updated

    async def delete(self, id: CommentId) -> bool:
        async with self._serialized(id):
            try:
                await self.store.delete(id)
            except CommentNotFound:
                logger.info("Comment %s already gone from the store", id)
            for journal in self._journals:
                journal.deleted.add(id)
            if self.overlay.state(id) is CommentState.UNRESOLVED:
                removed = self.overlay.forget(id)
            else:
                removed = self.overlay.remove(id)
        self.popup.close()
        return removed

    # Popup wiring

    def open_create_popup(self) -> bool:
        if self.capture.current is None:
            return False
        self.popup.open("create", save=self.create, cancel=self.cancel_selection)
        return True

    def open_edit_popup(self, id: CommentId) -> bool:
        if self.overlay.highlight(id) is None:
            return False
        self.popup.open(
            "edit",
            save=partial(self.update, id),
            delete=partial(self.delete, id),
            cancel=self.popup.close,
        )
        return True

    # Aggregate view

    def annotations(self) -> list[AnnotationEntry]:
        return self.overlay.snapshot()

    def panel(self) -> list[dict[str, Any]]:
        return [
            {
                "id": entry.id,
                "lines": entry.line_label,
                "selected_text": entry.selected_text,
                "comment_text": entry.comment_text,
            }
            for entry in self.overlay.snapshot()
        ]
