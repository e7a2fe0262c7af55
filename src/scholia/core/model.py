from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any

from bs4.element import Tag

from .dom import text_of

CommentId = int

HIGHLIGHT_CLASS = "comment-highlight"
LINE_START_ATTR = "data-line-start"
LINE_END_ATTR = "data-line-end"


@dataclass(frozen=True)
class Block:
    element: Tag
    line_start: int
    line_end: int

    @property
    def text(self) -> str:
        return text_of(self.element)


@dataclass(frozen=True)
class Anchor:
    line_start: int | None  # None when the selection touched no block
    line_end: int | None
    text: str  # search key, not guaranteed unique


@dataclass(frozen=True)
class Comment:
    id: CommentId
    line_start: int | None
    line_end: int | None
    selected_text: str
    comment_text: str
    project_directory: str = ""
    file_path: str = ""
    created_at: str | None = None
    resolved_at: str | None = None
    root_id: CommentId | None = None
    author: str = "user"

    @property
    def is_reply(self) -> bool:
        return self.root_id is not None

    @property
    def anchor(self) -> Anchor:
        return Anchor(self.line_start, self.line_end, self.selected_text)

    def with_text(self, comment_text: str) -> Comment:
        return replace(self, comment_text=comment_text)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_directory": self.project_directory,
            "file_path": self.file_path,
            "line_start": self.line_start,
            "line_end": self.line_end,
            "selected_text": self.selected_text,
            "comment_text": self.comment_text,
            "created_at": self.created_at,
            "resolved_at": self.resolved_at,
            "root_id": self.root_id,
            "author": self.author,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Comment:
        return cls(
            id=data["id"],
            line_start=data.get("line_start"),
            line_end=data.get("line_end"),
            selected_text=data.get("selected_text") or "",
            comment_text=data.get("comment_text") or "",
            project_directory=data.get("project_directory") or "",
            file_path=data.get("file_path") or "",
            created_at=data.get("created_at"),
            resolved_at=data.get("resolved_at"),
            root_id=data.get("root_id"),
            author=data.get("author") or "user",
        )


@dataclass
class Highlight:
    """A comment wrapped around its resolved range in the live document."""

    comment: Comment
    element: Tag

    @property
    def id(self) -> CommentId:
        return self.comment.id


class CommentState(enum.Enum):
    UNRESOLVED = "unresolved"
    HIGHLIGHTED = "highlighted"
    REMOVED = "removed"


@dataclass(frozen=True)
class AnnotationEntry:
    """One row of the aggregate annotation list."""

    id: CommentId
    line_start: int | None
    line_end: int | None
    selected_text: str
    comment_text: str

    @property
    def line_label(self) -> str:
        if self.line_start is None:
            return ""
        if self.line_start == self.line_end:
            return f"L{self.line_start}"
        return f"L{self.line_start}-{self.line_end}"


@dataclass(frozen=True)
class BoundingBox:
    left: float
    top: float
    right: float
    bottom: float


@dataclass
class Diagnostic:
    severity: str  # "info" | "warn" | "error"
    message: str
    comment_id: CommentId | None = None
    error: Exception | None = None
