"""Tests for the comment store implementations."""

import asyncio
import json
import tempfile
from pathlib import Path

import httpx
import pytest

from scholia.adapters.http_store import HttpCommentStore
from scholia.adapters.memory_store import MemoryCommentStore
from scholia.adapters.sqlite_store import SQLiteCommentStore, group_threads
from scholia.core.errors import CommentNotFound, StoreRequestFailed
from scholia.core.model import Comment


@pytest.fixture
def sqlite_store():
    """Create a SQLite store in a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield SQLiteCommentStore(db_path=Path(tmpdir) / "data" / "comments.db")


# Memory store


def test_memory_store_lifecycle():
    """Test create/update/delete/list on the in-process store."""
    store = MemoryCommentStore("/proj", "doc.md")

    async def scenario():
        a = await store.create(1, 2, "alpha", "first")
        b = await store.create(None, None, "beta", "second")
        await store.update(a.id, "changed")
        await store.delete(b.id)
        return a, b, await store.list()

    a, b, remaining = asyncio.run(scenario())
    assert (a.id, b.id) == (1, 2)
    assert a.file_path == "doc.md"
    assert [(c.id, c.comment_text) for c in remaining] == [(1, "changed")]


def test_memory_store_unknown_id():
    """Test update/delete of a missing id raise CommentNotFound."""
    store = MemoryCommentStore()
    with pytest.raises(CommentNotFound):
        asyncio.run(store.update(5, "x"))
    with pytest.raises(CommentNotFound):
        asyncio.run(store.delete(5))


def test_memory_store_seed_advances_ids():
    """Test seeded comments keep their ids and new ids follow them."""
    store = MemoryCommentStore()
    store.seed([Comment(10, 1, 1, "a", "b")])
    created = asyncio.run(store.create(1, 1, "c", "d"))
    assert created.id == 11


# SQLite store


def test_sqlite_create_and_list(sqlite_store):
    """Test comments are listed per file, in thread order."""
    a = sqlite_store.create_comment("/proj", "a.md", 3, 4, "text", "first")
    sqlite_store.create_comment("/proj", "b.md", 1, 1, "other", "elsewhere")
    reply = sqlite_store.create_comment("/proj", "a.md", None, None, "", "reply", author="agent", root_id=a.id)
    c = sqlite_store.create_comment("/proj", "a.md", 9, 9, "later", "third")

    comments = sqlite_store.list_comments("/proj", "a.md")
    assert [x.id for x in comments] == [a.id, reply.id, c.id]
    assert comments[0].line_start == 3
    assert comments[0].created_at is not None
    assert comments[1].author == "agent"
    assert comments[1].root_id == a.id
    assert sqlite_store.projects() == ["/proj"]


def test_sqlite_update_and_delete(sqlite_store):
    """Test changing and deleting a comment."""
    a = sqlite_store.create_comment("/proj", "a.md", 1, 1, "x", "old")

    updated = sqlite_store.update_comment(a.id, "new")
    assert updated.comment_text == "new"
    assert sqlite_store.update_comment(999, "nope") is None

    assert sqlite_store.delete_comment(a.id) is True
    assert sqlite_store.delete_comment(a.id) is False
    assert sqlite_store.get(a.id) is None


def test_sqlite_resolve_all(sqlite_store):
    """Test resolving hides comments from the open listing."""
    sqlite_store.create_comment("/proj", "a.md", 1, 1, "x", "one")
    sqlite_store.create_comment("/proj", "a.md", 2, 2, "y", "two")
    sqlite_store.create_comment("/proj", "b.md", 2, 2, "z", "untouched")

    assert sqlite_store.resolve_all("/proj", "a.md") == 2
    assert sqlite_store.resolve_all("/proj", "a.md") == 0
    assert sqlite_store.list_comments("/proj", "a.md") == []

    resolved = sqlite_store.list_comments("/proj", "a.md", resolved=True)
    assert len(resolved) == 2
    assert all(c.resolved_at for c in resolved)
    assert len(sqlite_store.list_comments("/proj", "b.md")) == 1


def test_sqlite_threads(sqlite_store):
    """Test replies, thread grouping and resolving a single thread."""
    first = sqlite_store.create_comment("/proj", "a.md", 1, 1, "x", "first")
    second = sqlite_store.create_comment("/proj", "a.md", 2, 2, "y", "second")
    reply = sqlite_store.reply(first.id, "answer")

    assert (reply.root_id, reply.author, reply.file_path) == (first.id, "agent", "a.md")
    assert sqlite_store.has_replies(first.id)
    assert not sqlite_store.has_replies(second.id)

    threads = group_threads(sqlite_store.list_comments("/proj", "a.md"))
    assert [(root.id, [r.id for r in replies]) for root, replies in threads] == [
        (first.id, [reply.id]),
        (second.id, []),
    ]

    with pytest.raises(ValueError, match="root comments"):
        sqlite_store.reply(reply.id, "nested")
    with pytest.raises(ValueError, match="not found"):
        sqlite_store.reply(999, "nobody")

    assert sqlite_store.resolve_thread(first.id) == 2
    assert [c.id for c in sqlite_store.list_comments("/proj", "a.md")] == [second.id]


# HTTP store


def make_http_store(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://scholia.test")
    return HttpCommentStore("http://scholia.test", "/proj", "doc.md", client=client)


def comment_json(id, text="note", **extra):
    data = {
        "id": id,
        "project_directory": "/proj",
        "file_path": "doc.md",
        "line_start": 2,
        "line_end": 3,
        "selected_text": "sel",
        "comment_text": text,
        "created_at": "2024-01-01T00:00:00+00:00",
        "resolved_at": None,
        "root_id": None,
        "author": "user",
    }
    data.update(extra)
    return data


def test_http_create_posts_payload():
    """Test create sends the anchor and file identity."""
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=comment_json(4, "hello"))

    store = make_http_store(handler)
    comment = asyncio.run(store.create(2, 3, "sel", "hello"))

    assert comment.id == 4
    assert comment.comment_text == "hello"
    assert seen["method"] == "POST"
    assert seen["path"] == "/api/comments"
    assert seen["body"] == {
        "project_directory": "/proj",
        "file_path": "doc.md",
        "line_start": 2,
        "line_end": 3,
        "selected_text": "sel",
        "comment_text": "hello",
    }


def test_http_list_sends_file_query():
    """Test list filters by project and file."""

    def handler(request):
        assert request.url.params["project_directory"] == "/proj"
        assert request.url.params["file_path"] == "doc.md"
        return httpx.Response(200, json=[comment_json(1), comment_json(2, root_id=1)])

    comments = asyncio.run(make_http_store(handler).list())
    assert [c.id for c in comments] == [1, 2]
    assert comments[1].root_id == 1


def test_http_update_and_delete():
    """Test PATCH and DELETE paths."""
    requests = []

    def handler(request):
        requests.append((request.method, request.url.path))
        if request.method == "PATCH":
            return httpx.Response(200, json=comment_json(3, json.loads(request.content)["comment_text"]))
        return httpx.Response(200, json={"status": "deleted"})

    store = make_http_store(handler)

    async def scenario():
        updated = await store.update(3, "edited")
        await store.delete(3)
        return updated

    updated = asyncio.run(scenario())
    assert updated.comment_text == "edited"
    assert requests == [("PATCH", "/api/comments/3"), ("DELETE", "/api/comments/3")]


def test_http_not_found():
    """Test a 404 on a comment becomes CommentNotFound."""
    store = make_http_store(lambda request: httpx.Response(404, json={"detail": "missing"}))
    with pytest.raises(CommentNotFound) as exc:
        asyncio.run(store.delete(8))
    assert exc.value.comment_id == 8
    assert exc.value.status_code == 404


def test_http_server_error():
    """Test non-2xx responses raise StoreRequestFailed with the status."""
    store = make_http_store(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(StoreRequestFailed) as exc:
        asyncio.run(store.list())
    assert exc.value.status_code == 500
    assert not isinstance(exc.value, CommentNotFound)


def test_http_transport_error():
    """Test connection failures raise StoreRequestFailed."""

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    store = make_http_store(handler)
    with pytest.raises(StoreRequestFailed) as exc:
        asyncio.run(store.create(1, 1, "a", "b"))
    assert exc.value.status_code is None
