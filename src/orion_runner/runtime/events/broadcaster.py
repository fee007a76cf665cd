"""In-process fan-out of progress events to live observers."""

from __future__ import annotations

import asyncio
import itertools
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from loguru import logger

from ..domain.events import ProgressEvent, _Event

Deliver = Callable[[dict[str, Any]], None]


@dataclass(frozen=True)
class Subscription:
    id: int
    deliver: Deliver
    label: str = ""


class ProgressBroadcaster:
    """Thread-safe publish/subscribe registry.

    ``publish`` serialises an event once and hands the same payload to every
    current subscriber. A subscriber whose callable raises is dropped; the
    rest still receive the event and the publisher never sees the error.
    """

    def __init__(self) -> None:
        self._subscribers: dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, deliver: Deliver, *, label: str = "") -> Subscription:
        with self._lock:
            subscription = Subscription(id=next(self._ids), deliver=deliver, label=label)
            self._subscribers[subscription.id] = subscription
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.pop(subscription.id, None)

    def publish(self, event: Union[ProgressEvent, dict[str, Any]]) -> dict[str, Any]:
        payload = event.to_wire() if isinstance(event, _Event) else dict(event)
        with self._lock:
            snapshot = list(self._subscribers.values())

        stale: list[Subscription] = []
        for subscription in snapshot:
            try:
                subscription.deliver(payload)
            except Exception as exc:
                logger.debug("Dropping subscriber {} after delivery failure: {}", subscription.label or subscription.id, exc)
                stale.append(subscription)

        if stale:
            with self._lock:
                for subscription in stale:
                    self._subscribers.pop(subscription.id, None)
        return payload


class QueueSubscriber:
    """Bridges published events into an ``asyncio.Queue`` owned by one event loop.

    Publishers run on worker threads, so events are handed to the loop with
    ``call_soon_threadsafe``. When the queue is full the event is dropped for
    this subscriber only.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, *, maxsize: int = 256) -> None:
        self.loop = loop
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        self._subscription: Optional[Subscription] = None

    def _put(self, payload: dict[str, Any]) -> None:
        try:
            self.queue.put_nowait(payload)
        except asyncio.QueueFull:
            self.dropped += 1

    def __call__(self, payload: dict[str, Any]) -> None:
        if self.loop.is_closed():
            raise RuntimeError("subscriber event loop is closed")
        self.loop.call_soon_threadsafe(self._put, payload)

    def attach(self, broadcaster: ProgressBroadcaster, *, label: str = "") -> "QueueSubscriber":
        self._subscription = broadcaster.subscribe(self, label=label)
        return self

    def detach(self, broadcaster: ProgressBroadcaster) -> None:
        if self._subscription is not None:
            broadcaster.unsubscribe(self._subscription)
            self._subscription = None
