# app/events/bus.py
from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Optional

from services.metrics import increment_events_dropped


logger = logging.getLogger("payoutdist.events")

PAYOUTS_UPDATED = "payouts-updated"
TRADERS_UPDATED = "traders-updated"
SETTINGS_UPDATED = "settings-updated"
LIMITS_UPDATED = "limits-updated"


@dataclass(frozen=True)
class ServerEvent:
    type: str
    message: Optional[str] = None

    @classmethod
    def payouts_updated(cls, source: str) -> "ServerEvent":
        return cls(PAYOUTS_UPDATED, f"source={source}")

    @classmethod
    def traders_updated(cls) -> "ServerEvent":
        return cls(TRADERS_UPDATED)

    @classmethod
    def settings_updated(cls) -> "ServerEvent":
        return cls(SETTINGS_UPDATED)

    @classmethod
    def limits_updated(cls) -> "ServerEvent":
        return cls(LIMITS_UPDATED)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message}


class Subscription:
    """
    One subscriber's bounded mailbox. When full, the oldest event is
    overwritten so a slow reader never blocks a publisher.

    Thread readers use `get()`. An event-loop reader calls `bind_loop()`
    once and then awaits `aget()`, which holds no worker thread while idle.
    """

    def __init__(self, bus: "EventBus", capacity: int):
        self._bus = bus
        self._queue: deque[ServerEvent] = deque()
        self._capacity = capacity
        self._cond = threading.Condition()
        self._closed = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wakeup: Optional[asyncio.Event] = None
        self.dropped = 0

    def _offer(self, event: ServerEvent) -> bool:
        with self._cond:
            if self._closed:
                return False
            lagged = len(self._queue) >= self._capacity
            if lagged:
                self._queue.popleft()
                self.dropped += 1
            self._queue.append(event)
            self._cond.notify()
        self._wake()
        if lagged:
            increment_events_dropped()
        return not lagged

    def _wake(self) -> None:
        loop, wakeup = self._loop, self._wakeup
        if loop is None or wakeup is None:
            return
        try:
            loop.call_soon_threadsafe(wakeup.set)
        except RuntimeError:
            # the reader's loop is gone
            logger.debug("Event subscriber loop closed; wake-up skipped")

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        with self._cond:
            self._loop = loop
            self._wakeup = asyncio.Event()

    def get(self, timeout: Optional[float] = None) -> Optional[ServerEvent]:
        """Next event, or None when the timeout expires or the subscription is closed."""
        with self._cond:
            if not self._queue and not self._closed:
                self._cond.wait(timeout)
            if self._queue:
                return self._queue.popleft()
            return None

    async def aget(self, timeout: float) -> Optional[ServerEvent]:
        """`get()` for a reader bound with `bind_loop()`."""
        if self._wakeup is None:
            raise RuntimeError("subscription is not bound to an event loop")
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            with self._cond:
                if self._queue:
                    return self._queue.popleft()
                if self._closed:
                    return None
                self._wakeup.clear()
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            try:
                await asyncio.wait_for(self._wakeup.wait(), remaining)
            except asyncio.TimeoutError:
                return None

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._queue.clear()
            self._cond.notify_all()
        self._wake()
        self._bus._unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class EventBus:
    def __init__(self, buffer_size: int = 100):
        self._buffer_size = max(1, int(buffer_size))
        self._lock = threading.Lock()
        self._subscribers: list[Subscription] = []

    def subscribe(self) -> Subscription:
        sub = Subscription(self, self._buffer_size)
        with self._lock:
            self._subscribers.append(sub)
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            try:
                self._subscribers.remove(sub)
            except ValueError:
                pass

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: ServerEvent) -> int:
        """Fan out without waiting on anyone; returns the number of live subscribers reached."""
        with self._lock:
            targets = list(self._subscribers)

        delivered = 0
        for sub in targets:
            accepted = sub._offer(event)
            if sub.closed:
                continue
            if not accepted:
                logger.warning("Event subscriber lagged; dropped oldest event type=%s", event.type)
            delivered += 1
        return delivered
