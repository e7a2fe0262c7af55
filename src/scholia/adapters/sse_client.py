"""Consume the server's /events stream with httpx."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator

import httpx

from ..events import LiveEvent

logger = logging.getLogger(__name__)


async def parse_sse(lines: AsyncIterable[str]) -> AsyncIterator[LiveEvent]:
    """Turn Server-Sent Events lines into LiveEvents (JSON data payloads)."""
    name = "message"
    data: list[str] = []
    async for line in lines:
        line = line.rstrip("\r\n")
        if not line:
            if data:
                yield LiveEvent(name, _decode("\n".join(data)))
            name, data = "message", []
            continue
        if line.startswith(":"):
            continue
        key, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if key == "event":
            name = value
        elif key == "data":
            data.append(value)
    if data:
        yield LiveEvent(name, _decode("\n".join(data)))


def _decode(payload: str) -> dict[str, Any]:
    try:
        value = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("Ignoring non-JSON event payload: %r", payload)
        return {}
    return value if isinstance(value, dict) else {"value": value}


async def iter_events(
    client: httpx.AsyncClient, project_directory: str, file_path: str
) -> AsyncIterator[LiveEvent]:
    params = {"project_directory": project_directory, "file_path": file_path}
    async with client.stream("GET", "/events", params=params, timeout=None) as response:
        response.raise_for_status()
        async for event in parse_sse(response.aiter_lines()):
            yield event


async def follow_events(
    session: Any,
    client: httpx.AsyncClient,
    project_directory: str,
    file_path: str,
    retry_delay: float = 5.0,
    reconnect: bool = True,
) -> int:
    """
    Feed live events into ``session.handle_event``.

    The stream is reopened after it ends or fails unless ``reconnect`` is
    false. Returns the number of events handled.
    """
    handled = 0
    while True:
        try:
            async for event in iter_events(client, project_directory, file_path):
                await session.handle_event(event)
                handled += 1
        except httpx.HTTPError as e:
            logger.error("Event stream error: %s", e)
        if not reconnect:
            return handled
        await asyncio.sleep(retry_delay)
