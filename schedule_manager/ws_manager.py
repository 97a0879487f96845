"""Event channel: fans schedule events out to WebSocket and in-process consumers."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Hashable

from fastapi import WebSocket

logger = logging.getLogger("schedule_manager.ws_manager")

Deliver = Callable[[dict], Awaitable[None]]


class ConnectionManager:
    """Tracks subscribers by opaque handle and publishes events to all of them.

    Delivery is best-effort. Each consumer gets its own task with a timeout,
    and nothing is queued for absent consumers.
    """

    def __init__(self, delivery_timeout: float = 5.0):
        self.delivery_timeout = delivery_timeout
        self._subscribers: dict[Hashable, Deliver] = {}
        self._sockets: set[Hashable] = set()
        self._inflight: set[asyncio.Task] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, handle: Hashable, deliver: Deliver) -> None:
        self._subscribers[handle] = deliver
        logger.info("Consumer subscribed (%d total)", len(self._subscribers))

    def unsubscribe(self, handle: Hashable) -> bool:
        self._sockets.discard(handle)
        removed = self._subscribers.pop(handle, None) is not None
        if removed:
            logger.info("Consumer unsubscribed (%d total)", len(self._subscribers))
        return removed

    async def connect(self, ws: WebSocket):
        await ws.accept()

        async def _send(message: dict) -> None:
            await ws.send_text(json.dumps(message, default=str))

        self._sockets.add(ws)
        self.subscribe(ws, _send)

    def disconnect(self, ws: WebSocket):
        self.unsubscribe(ws)

    def publish(self, event_type: str, data: Any) -> int:
        """Schedule delivery to every current subscriber without waiting."""
        message = {"event": event_type, "data": data}
        loop = asyncio.get_running_loop()
        for handle, deliver in list(self._subscribers.items()):
            task = loop.create_task(self._deliver(handle, deliver, message))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
        return len(self._subscribers)

    async def broadcast(self, event_type: str, data: Any):
        """Publish and wait until every delivery finished or timed out."""
        self.publish(event_type, data)
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def drain(self) -> None:
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _deliver(self, handle: Hashable, deliver: Deliver, message: dict) -> None:
        try:
            await asyncio.wait_for(deliver(message), timeout=self.delivery_timeout)
        except Exception as exc:
            logger.warning("Dropped '%s' event for a consumer: %r", message["event"], exc)
            # A socket that failed once is gone; in-process consumers stay subscribed.
            if handle in self._sockets:
                self.unsubscribe(handle)
