from __future__ import annotations

from datetime import datetime, timezone

from ..core.errors import CommentNotFound
from ..core.model import Comment, CommentId
from ..core.ports import CommentStore


class MemoryCommentStore(CommentStore):
    """In-process store for one file; ids are assigned sequentially from 1."""

    def __init__(self, project_directory: str = "", file_path: str = ""):
        self.project_directory = project_directory
        self.file_path = file_path
        self._comments: dict[CommentId, Comment] = {}
        self._next_id = 1

    async def create(
        self,
        line_start: int | None,
        line_end: int | None,
        selected_text: str,
        comment_text: str,
    ) -> Comment:
        comment = Comment(
            id=self._next_id,
            line_start=line_start,
            line_end=line_end,
            selected_text=selected_text,
            comment_text=comment_text,
            project_directory=self.project_directory,
            file_path=self.file_path,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._comments[comment.id] = comment
        self._next_id += 1
        return comment

    async def update(self, id: CommentId, comment_text: str) -> Comment:
        comment = self._comments.get(id)
        if comment is None:
            raise CommentNotFound(id)
        comment = comment.with_text(comment_text)
        self._comments[id] = comment
        return comment

    async def delete(self, id: CommentId) -> None:
        if self._comments.pop(id, None) is None:
            raise CommentNotFound(id)

    async def list(self) -> list[Comment]:
        return sorted(self._comments.values(), key=lambda c: c.id)

    def seed(self, comments: list[Comment]) -> None:
        for comment in comments:
            self._comments[comment.id] = comment
            self._next_id = max(self._next_id, comment.id + 1)
