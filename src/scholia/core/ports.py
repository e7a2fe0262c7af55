from __future__ import annotations

from typing import Protocol

from .dom import Document, Range
from .model import BoundingBox, Comment, CommentId, Highlight


class Renderer(Protocol):
    """
    Render source text into a line-addressed document. Every block element
    that maps to source lines carries data-line-start / data-line-end.
    """

    def render(self, source: str) -> Document:
        pass


class DocumentLoader(Protocol):
    """
    Produce a fresh render of the document under review.
    """

    def load(self) -> Document:
        pass


class Wrapper(Protocol):
    """
    Materialize highlights in the live document. wrap() raises WrapFailed
    when the range cannot be wrapped; unwrap() must restore the exact
    node structure that wrap() replaced.
    """

    def wrap(self, rng: Range, comment: Comment) -> Highlight:
        pass

    def unwrap(self, highlight: Highlight) -> None:
        pass

    def relabel(self, highlight: Highlight, comment_text: str) -> None:
        pass


class Layout(Protocol):
    def rect(self, rng: Range) -> BoundingBox | None:
        pass


class CommentStore(Protocol):
    """
    Asynchronous annotation store. Every call may raise StoreRequestFailed;
    delete/update raise CommentNotFound for unknown ids.
    """

    async def create(
        self,
        line_start: int | None,
        line_end: int | None,
        selected_text: str,
        comment_text: str,
    ) -> Comment:
        pass

    async def update(self, id: CommentId, comment_text: str) -> Comment:
        pass

    async def delete(self, id: CommentId) -> None:
        pass

    async def list(self) -> list[Comment]:
        pass
