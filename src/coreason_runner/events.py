# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import asyncio
from typing import Protocol, runtime_checkable

from loguru import logger

from coreason_runner.models import ServerEvent


@runtime_checkable
class EventSink(Protocol):
    """
    Destination for events addressed to a client.
    """

    async def emit(self, client_id: str, event: ServerEvent) -> None:
        """
        Deliver an event. Must not raise for clients that have gone away.
        """
        ...


class EventOutbox:
    """Buffers events per client until the transport collects them.

    A client's queue exists only while it holds undelivered events or a poll is
    waiting on it. Each queue keeps at most ``max_pending`` events; once full, the
    oldest event is dropped to make room.
    """

    def __init__(self, max_pending: int = 1000) -> None:
        self.max_pending = max_pending
        self._queues: dict[str, asyncio.Queue[ServerEvent]] = {}
        self._waiters: dict[str, int] = {}

    def _queue(self, client_id: str) -> asyncio.Queue[ServerEvent]:
        queue = self._queues.get(client_id)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[client_id] = queue
        return queue

    def pending(self, client_id: str) -> int:
        queue = self._queues.get(client_id)
        return queue.qsize() if queue is not None else 0

    async def emit(self, client_id: str, event: ServerEvent) -> None:
        queue = self._queue(client_id)
        if queue.qsize() >= self.max_pending:
            dropped = queue.get_nowait()
            logger.warning(f"Outbox for {client_id} is full; dropping {dropped.name.value} event")
        queue.put_nowait(event)

    async def drain(self, client_id: str, timeout: float = 0.0) -> list[ServerEvent]:
        """Return all buffered events, waiting up to ``timeout`` seconds for the first one."""
        events: list[ServerEvent] = []
        queue = self._queues.get(client_id)
        if (queue is None or queue.empty()) and timeout > 0:
            queue = self._queue(client_id)
            self._waiters[client_id] = self._waiters.get(client_id, 0) + 1
            try:
                events.append(await asyncio.wait_for(queue.get(), timeout=timeout))
            except asyncio.TimeoutError:
                pass
            finally:
                self._waiters[client_id] -= 1
                if not self._waiters[client_id]:
                    del self._waiters[client_id]
        if queue is None:
            return events
        while not queue.empty():
            events.append(queue.get_nowait())
        if client_id not in self._waiters and self._queues.get(client_id) is queue:
            del self._queues[client_id]
        return events

    def discard(self, client_id: str) -> None:
        queue = self._queues.pop(client_id, None)
        if queue is not None and not queue.empty():
            logger.debug(f"Discarding {queue.qsize()} undelivered events for {client_id}")


class LoggingSink:
    """Writes events to the log instead of a client."""

    def __init__(self) -> None:
        self.events: list[tuple[str, ServerEvent]] = []

    async def emit(self, client_id: str, event: ServerEvent) -> None:
        self.events.append((client_id, event))
        logger.info(f"[{client_id}] {event.name.value}: {event.data!r}")
