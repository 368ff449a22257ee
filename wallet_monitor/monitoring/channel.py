"""
Subscriber adapters for MonitoringService.

Both are plain callables, so they plug into MonitoringService.on_event:

- EventLog: capped ring buffer of recent events, newest first on read.
- EventChannel: bounded asyncio queue for consumers that prefer pulling
  events (``async for event in channel``). When full, the oldest queued
  event is dropped so the newest state always gets through.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import AsyncIterator

from wallet_monitor.config.env import DEFAULT_MAX_EVENTS
from wallet_monitor.monitor_logging import get_logger
from wallet_monitor.monitoring.models import MonitoringEvent

logger = get_logger(__name__)

DEFAULT_CHANNEL_SIZE = 100


class EventLog:
    """Keeps the last max_events events."""

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        if max_events < 1:
            raise ValueError("max_events must be >= 1")
        self._events: deque[MonitoringEvent] = deque(maxlen=max_events)

    def __call__(self, event: MonitoringEvent) -> None:
        self._events.append(event)

    def __len__(self) -> int:
        return len(self._events)

    @property
    def max_events(self) -> int:
        return self._events.maxlen or 0

    def recent(self, limit: int | None = None) -> list[MonitoringEvent]:
        """Events newest first, at most limit of them."""
        out = list(reversed(self._events))
        if limit is not None:
            out = out[: max(0, limit)]
        return out

    def clear(self) -> None:
        self._events.clear()


class EventChannel:
    """
    Bounded queue of events with drop-oldest backpressure.

    Attach with channel.attach(monitor); consume with ``await channel.get()``
    or ``async for``. dropped counts events evicted because the consumer
    fell behind.
    """

    def __init__(self, maxsize: int = DEFAULT_CHANNEL_SIZE) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self._queue: asyncio.Queue[MonitoringEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def __call__(self, event: MonitoringEvent) -> None:
        self.put_nowait(event)

    def put_nowait(self, event: MonitoringEvent) -> None:
        if self._queue.full():
            try:
                evicted = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                evicted = None
            if evicted is not None:
                self.dropped += 1
                logger.debug("event_channel_full_dropped", kind=evicted.type.value, dropped=self.dropped)
        self._queue.put_nowait(event)

    def attach(self, monitor) -> None:
        monitor.on_event(self)

    def detach(self, monitor) -> None:
        monitor.remove_event_listener(self)

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()

    async def get(self) -> MonitoringEvent:
        return await self._queue.get()

    def get_nowait(self) -> MonitoringEvent:
        return self._queue.get_nowait()

    async def __aiter__(self) -> AsyncIterator[MonitoringEvent]:
        while True:
            yield await self._queue.get()
