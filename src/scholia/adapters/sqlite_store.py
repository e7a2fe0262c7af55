"""SQLite persistence for review comments (server side)."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from ..core.model import Comment, CommentId

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, project_directory, file_path, line_start, line_end, selected_text, "
    "comment_text, created_at, resolved_at, root_id, author"
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_comment(row: tuple) -> Comment:
    return Comment(
        id=row[0],
        project_directory=row[1],
        file_path=row[2],
        line_start=row[3],
        line_end=row[4],
        selected_text=row[5] or "",
        comment_text=row[6],
        created_at=row[7],
        resolved_at=row[8],
        root_id=row[9],
        author=row[10] or "user",
    )


@dataclass
class SQLiteCommentStore:
    """
    Comments keyed by (project_directory, file_path).

    Open comments have ``resolved_at IS NULL``; resolving hides them from the
    default listing without deleting them.
    """

    db_path: Path

    def __post_init__(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _init_schema(self) -> None:
        conn = self._conn()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS projects (
                    directory TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS comments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    project_directory TEXT NOT NULL,
                    file_path TEXT NOT NULL,
                    line_start INTEGER,
                    line_end INTEGER,
                    selected_text TEXT,
                    comment_text TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    resolved_at TEXT,
                    root_id INTEGER REFERENCES comments(id) ON DELETE CASCADE,
                    author TEXT CHECK(author IN ('user', 'agent')),
                    resolved_by TEXT,
                    FOREIGN KEY (project_directory) REFERENCES projects(directory)
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS comments_lookup_idx
                ON comments(project_directory, file_path, resolved_at, created_at)
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS comments_thread_idx ON comments(root_id, created_at)")
            conn.commit()
        finally:
            conn.close()

    # Projects

    def register_project(self, directory: str) -> None:
        conn = self._conn()
        try:
            conn.execute(
                "INSERT OR IGNORE INTO projects (directory, created_at) VALUES (?, ?)",
                (directory, _now()),
            )
            conn.commit()
        finally:
            conn.close()

    def projects(self) -> list[str]:
        conn = self._conn()
        try:
            rows = conn.execute("SELECT directory FROM projects ORDER BY created_at DESC").fetchall()
            return [r[0] for r in rows]
        finally:
            conn.close()

    # Comments

    def create_comment(
        self,
        project_directory: str,
        file_path: str,
        line_start: int | None,
        line_end: int | None,
        selected_text: str,
        comment_text: str,
        author: str = "user",
        root_id: CommentId | None = None,
    ) -> Comment:
        self.register_project(project_directory)
        conn = self._conn()
        try:
            cur = conn.execute(
                """
                INSERT INTO comments (project_directory, file_path, line_start, line_end,
                                      selected_text, comment_text, root_id, author, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    project_directory,
                    file_path,
                    line_start,
                    line_end,
                    selected_text,
                    comment_text,
                    root_id,
                    author,
                    _now(),
                ),
            )
            conn.commit()
            comment_id = cur.lastrowid
        finally:
            conn.close()
        logger.debug("Created comment %s for %s/%s", comment_id, project_directory, file_path)
        comment = self.get(comment_id)
        assert comment is not None
        return comment

    def get(self, comment_id: CommentId) -> Comment | None:
        conn = self._conn()
        try:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM comments WHERE id = ?", (comment_id,)
            ).fetchone()
        finally:
            conn.close()
        return _row_to_comment(row) if row else None

    def list_comments(
        self, project_directory: str, file_path: str, resolved: bool = False
    ) -> list[Comment]:
        condition = "IS NOT NULL" if resolved else "IS NULL"
        conn = self._conn()
        try:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM comments
                WHERE project_directory = ? AND file_path = ? AND resolved_at {condition}
                ORDER BY COALESCE(root_id, id) ASC, created_at ASC, id ASC
                """,
                (project_directory, file_path),
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_comment(r) for r in rows]

    def update_comment(self, comment_id: CommentId, comment_text: str) -> Comment | None:
        conn = self._conn()
        try:
            cur = conn.execute(
                "UPDATE comments SET comment_text = ? WHERE id = ?", (comment_text, comment_id)
            )
            conn.commit()
            changed = cur.rowcount
        finally:
            conn.close()
        return self.get(comment_id) if changed else None

    def delete_comment(self, comment_id: CommentId) -> bool:
        conn = self._conn()
        try:
            cur = conn.execute("DELETE FROM comments WHERE id = ?", (comment_id,))
            conn.commit()
            return cur.rowcount > 0
        finally:
            conn.close()

    def resolve_all(self, project_directory: str, file_path: str, resolved_by: str = "user") -> int:
        """Mark every open comment of a file resolved; returns how many changed."""
        conn = self._conn()
        try:
            cur = conn.execute(
                """
                UPDATE comments SET resolved_at = ?, resolved_by = ?
                WHERE project_directory = ? AND file_path = ? AND resolved_at IS NULL
                """,
                (_now(), resolved_by, project_directory, file_path),
            )
            conn.commit()
            return cur.rowcount
        finally:
            conn.close()

    # Threads

    def reply(self, root_id: CommentId, comment_text: str, author: str = "agent") -> Comment:
        """
        Add a reply to a root comment. Threads are two levels deep, so
        replying to a reply raises ValueError, as does an unknown root.
        """
        root = self.get(root_id)
        if root is None:
            raise ValueError(f"Comment {root_id} not found")
        if root.is_reply:
            raise ValueError(
                f"Comment {root_id} is a reply; can only reply to root comments "
                f"(use {root.root_id})"
            )
        return self.create_comment(
            project_directory=root.project_directory,
            file_path=root.file_path,
            line_start=None,
            line_end=None,
            selected_text="",
            comment_text=comment_text,
            author=author,
            root_id=root_id,
        )

    def has_replies(self, comment_id: CommentId) -> bool:
        conn = self._conn()
        try:
            row = conn.execute(
                "SELECT COUNT(*) FROM comments WHERE root_id = ?", (comment_id,)
            ).fetchone()
        finally:
            conn.close()
        return row[0] > 0

    def resolve_thread(self, root_id: CommentId, resolved_by: str = "user") -> int:
        """Resolve a root comment together with its replies; returns how many changed."""
        conn = self._conn()
        try:
            cur = conn.execute(
                """
                UPDATE comments SET resolved_at = ?, resolved_by = ?
                WHERE (id = ? OR root_id = ?) AND resolved_at IS NULL
                """,
                (_now(), resolved_by, root_id, root_id),
            )
            conn.commit()
            return cur.rowcount
        finally:
            conn.close()


def group_threads(comments: list[Comment]) -> list[tuple[Comment, list[Comment]]]:
    """Pair each root comment with its replies, both in listing order."""
    roots: dict[CommentId, tuple[Comment, list[Comment]]] = {}
    orphans: list[Comment] = []
    for comment in comments:
        if comment.is_reply:
            thread = roots.get(comment.root_id)
            if thread is None:
                orphans.append(comment)
            else:
                thread[1].append(comment)
        else:
            roots[comment.id] = (comment, [])
    if orphans:
        logger.debug("%d replies without an open root comment", len(orphans))
    return list(roots.values())
