"""Comment store client for the scholia comments API, over httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.errors import CommentNotFound, StoreRequestFailed
from ..core.model import Comment, CommentId
from ..core.ports import CommentStore

logger = logging.getLogger(__name__)


class HttpCommentStore(CommentStore):
    """
    Bound to one (project_directory, file_path) pair.

    Transport errors and non-2xx responses raise StoreRequestFailed; a 404 on
    update/delete raises CommentNotFound.
    """

    def __init__(
        self,
        base_url: str,
        project_directory: str,
        file_path: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.project_directory = project_directory
        self.file_path = file_path
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> HttpCommentStore:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def create(
        self,
        line_start: int | None,
        line_end: int | None,
        selected_text: str,
        comment_text: str,
    ) -> Comment:
        payload = {
            "project_directory": self.project_directory,
            "file_path": self.file_path,
            "line_start": line_start,
            "line_end": line_end,
            "selected_text": selected_text,
            "comment_text": comment_text,
        }
        response = await self._send("POST", "/api/comments", json=payload)
        return Comment.from_dict(response.json())

    async def update(self, id: CommentId, comment_text: str) -> Comment:
        response = await self._send(
            "PATCH", f"/api/comments/{id}", json={"comment_text": comment_text}, comment_id=id
        )
        return Comment.from_dict(response.json())

    async def delete(self, id: CommentId) -> None:
        await self._send("DELETE", f"/api/comments/{id}", comment_id=id)

    async def list(self) -> list[Comment]:
        params = {"project_directory": self.project_directory, "file_path": self.file_path}
        response = await self._send("GET", "/api/comments", params=params)
        return [Comment.from_dict(item) for item in response.json()]

    async def _send(
        self, method: str, url: str, comment_id: CommentId | None = None, **kwargs: Any
    ) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise StoreRequestFailed(f"{method} {url} failed: {e}") from e

        if response.status_code == 404 and comment_id is not None:
            raise CommentNotFound(comment_id)
        if response.is_error:
            logger.error("%s %s returned HTTP %s", method, url, response.status_code)
            raise StoreRequestFailed(
                f"{method} {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response
