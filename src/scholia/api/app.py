"""FastAPI application: comments API, rendered documents and live events."""

from __future__ import annotations

import asyncio
import secrets
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Query, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from ..events import COMMENTS_RESOLVED, CONNECTED, FILE_UPDATED, LiveEvent, format_sse


class CommentCreate(BaseModel):
    project_directory: str
    file_path: str
    line_start: int | None = None
    line_end: int | None = None
    selected_text: str = ""
    comment_text: str
    author: str = "user"
    root_id: int | None = None


class CommentUpdate(BaseModel):
    comment_text: str


class FileRef(BaseModel):
    project_directory: str
    file_path: str


class BroadcastRequest(FileRef):
    event: str


def _markdown_path(project_directory: str, file_path: str) -> Path:
    """Resolve a Markdown file inside a project, refusing paths that escape it."""
    root = Path(project_directory).resolve()
    path = (root / file_path).resolve()
    if root != path and root not in path.parents:
        raise HTTPException(status_code=400, detail="File path escapes the project directory")
    if path.suffix.lower() != ".md" or not path.is_file():
        raise HTTPException(status_code=404, detail=f"Markdown file {file_path} not found")
    return path


def publish_file_changes(hub: Any, project_directory: str, changed: set[str], deleted: set[str]) -> int:
    """Tell the viewers of every changed or deleted file to reload; returns deliveries."""
    return sum(
        hub.publish(project_directory, rel, FILE_UPDATED) for rel in sorted(changed | deleted)
    )


def create_app(
    runtime: Any,
    token: str | None = None,
    enable_cors: bool = False,
    watch: bool = False,
) -> FastAPI:
    """
    Create FastAPI application with runtime injected.

    Args:
        runtime: Runtime instance with store, renderer and event hub
        token: Bearer token for authentication (None to disable auth)
        enable_cors: Enable CORS middleware
        watch: Watch the configured project and push file_updated events

    Returns:
        FastAPI application instance
    """
    store = runtime.store
    hub = runtime.hub

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        watcher = None
        if watch:
            from ..watch import ProjectWatcher

            loop = asyncio.get_running_loop()
            project = runtime.project_directory

            def on_batch(changed: set[str], deleted: set[str]) -> None:
                loop.call_soon_threadsafe(publish_file_changes, hub, project, changed, deleted)

            watcher = ProjectWatcher(
                Path(project), on_batch, debounce_ms=runtime.config.watch.debounce_ms
            )
            watcher.start()
        try:
            yield
        finally:
            if watcher is not None:
                watcher.stop()

    app = FastAPI(
        title="Scholia API",
        description="Review comments anchored to rendered Markdown",
        version="0.1.0",
        docs_url="/docs" if token is None else None,
        redoc_url="/redoc" if token is None else None,
        lifespan=lifespan,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    if token:
        security_scheme = HTTPBearer(auto_error=False)

        async def verify_token(
            credentials: HTTPAuthorizationCredentials | None = Security(security_scheme),  # noqa: B008
        ) -> None:
            """Verify bearer token."""
            if credentials is None or credentials.credentials != token:
                raise HTTPException(status_code=401, detail="Invalid or missing token")
    else:

        async def verify_token() -> None:
            """No-op when auth is disabled."""
            return None

    @app.get("/health")
    async def health(auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/api/comments")
    async def list_comments(
        project_directory: str = Query(..., description="Project directory"),
        file_path: str = Query(..., description="File path relative to the project"),
        resolved: bool = Query(False, description="List resolved instead of open comments"),
        auth: None = Depends(verify_token),
    ) -> list[dict[str, Any]]:
        """Comments of one file."""
        return [c.to_dict() for c in store.list_comments(project_directory, file_path, resolved)]

    @app.post("/api/comments", status_code=201)
    async def create_comment(
        body: CommentCreate, auth: None = Depends(verify_token)
    ) -> dict[str, Any]:
        """Create a comment."""
        if body.author not in ("user", "agent"):
            raise HTTPException(status_code=400, detail="author must be 'user' or 'agent'")
        if not body.comment_text.strip():
            raise HTTPException(status_code=400, detail="comment_text must not be empty")
        if body.root_id is not None:
            root = store.get(body.root_id)
            if root is None:
                raise HTTPException(status_code=404, detail=f"Comment {body.root_id} not found")
            if root.is_reply:
                raise HTTPException(status_code=400, detail="can only reply to root comments")
        comment = store.create_comment(
            project_directory=body.project_directory,
            file_path=body.file_path,
            line_start=body.line_start,
            line_end=body.line_end,
            selected_text=body.selected_text,
            comment_text=body.comment_text,
            author=body.author,
            root_id=body.root_id,
        )
        return comment.to_dict()

    @app.patch("/api/comments/{comment_id}")
    async def update_comment(
        comment_id: int, body: CommentUpdate, auth: None = Depends(verify_token)
    ) -> dict[str, Any]:
        """Change a comment's text. Comments that already have replies are frozen."""
        if store.has_replies(comment_id):
            raise HTTPException(status_code=400, detail="Cannot edit a comment that has replies")
        comment = store.update_comment(comment_id, body.comment_text)
        if comment is None:
            raise HTTPException(status_code=404, detail=f"Comment {comment_id} not found")
        return comment.to_dict()

    @app.delete("/api/comments/{comment_id}")
    async def delete_comment(comment_id: int, auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Delete a comment."""
        if not store.delete_comment(comment_id):
            raise HTTPException(status_code=404, detail=f"Comment {comment_id} not found")
        return {"status": "deleted"}

    @app.post("/api/comments/resolve")
    async def resolve_comments(body: FileRef, auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Resolve every open comment of a file and notify its viewers."""
        count = store.resolve_all(body.project_directory, body.file_path)
        hub.publish(body.project_directory, body.file_path, COMMENTS_RESOLVED)
        return {"resolved": count}

    @app.patch("/api/comments/{comment_id}/resolve")
    async def resolve_thread(comment_id: int, auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Resolve a root comment and its replies."""
        comment = store.get(comment_id)
        if comment is None:
            raise HTTPException(status_code=404, detail=f"Comment {comment_id} not found")
        count = store.resolve_thread(comment.root_id or comment.id)
        hub.publish(comment.project_directory, comment.file_path, COMMENTS_RESOLVED)
        return {"resolved": count}

    @app.get("/api/document")
    async def document(
        project_directory: str = Query(..., description="Project directory"),
        file_path: str = Query(..., description="File path relative to the project"),
        auth: None = Depends(verify_token),
    ) -> dict[str, Any]:
        """Rendered document with its open comments embedded."""
        path = _markdown_path(project_directory, file_path)
        doc = runtime.renderer.render(path.read_text(encoding="utf-8"))
        comments = store.list_comments(project_directory, file_path)
        return {
            "project_directory": project_directory,
            "file_path": file_path,
            "meta": doc.meta,
            "html": doc.html(),
            "comments": [c.to_dict() for c in comments],
        }

    @app.post("/api/events")
    async def broadcast(body: BroadcastRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Push an event to every viewer of a file."""
        delivered = hub.publish(body.project_directory, body.file_path, body.event)
        return {"status": "broadcast", "delivered": delivered}

    @app.get("/events")
    async def events(
        project_directory: str = Query(..., description="Project directory"),
        file_path: str = Query(..., description="File path relative to the project"),
        auth: None = Depends(verify_token),
    ) -> StreamingResponse:
        """Server-Sent Events stream for one file."""
        sub = hub.subscribe(project_directory, file_path)

        async def stream() -> AsyncIterator[str]:
            try:
                yield format_sse(LiveEvent(CONNECTED, {"status": "ok"}))
                while True:
                    event = await sub.queue.get()
                    yield format_sse(event)
            finally:
                hub.unsubscribe(sub)

        return StreamingResponse(
            stream(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    return app


def generate_token() -> str:
    """Generate a random bearer token."""
    return secrets.token_urlsafe(32)
