"""Live-update events: an in-process hub and Server-Sent Events framing."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

FILE_UPDATED = "file_updated"
COMMENTS_RESOLVED = "comments_resolved"
CONNECTED = "connected"


@dataclass(frozen=True)
class LiveEvent:
    name: str
    data: dict[str, Any] = field(default_factory=dict)


def format_sse(event: LiveEvent) -> str:
    return f"event: {event.name}\ndata: {json.dumps(event.data)}\n\n"


@dataclass(eq=False)
class Subscription:
    project_directory: str
    file_path: str
    queue: asyncio.Queue


class EventHub:
    """
    Fan out events to subscribers of one (project_directory, file_path).

    Each subscriber has a bounded queue; a subscriber that can't keep up
    misses events rather than blocking the publisher.
    """

    def __init__(self, maxsize: int = 10):
        self.maxsize = maxsize
        self._subscriptions: set[Subscription] = set()

    def subscribe(self, project_directory: str, file_path: str) -> Subscription:
        sub = Subscription(project_directory, file_path, asyncio.Queue(maxsize=self.maxsize))
        self._subscriptions.add(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        self._subscriptions.discard(sub)

    def __len__(self) -> int:
        return len(self._subscriptions)

    def publish(
        self,
        project_directory: str,
        file_path: str,
        name: str,
        data: dict[str, Any] | None = None,
    ) -> int:
        """Queue an event for matching subscribers; returns how many received it."""
        event = LiveEvent(name, data if data is not None else {"file_path": file_path})
        delivered = 0
        for sub in list(self._subscriptions):
            if sub.project_directory != project_directory or sub.file_path != file_path:
                continue
            try:
                sub.queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.debug("Dropping %s for a slow subscriber of %s", name, file_path)
        return delivered
