from __future__ import annotations

import asyncio
import threading
from typing import Any

from orion_runner.runtime.domain.events import PhaseStart
from orion_runner.runtime.events import ProgressBroadcaster, QueueSubscriber


def test_failing_subscriber_is_dropped_without_affecting_others() -> None:
    broadcaster = ProgressBroadcaster()
    first: list[dict[str, Any]] = []
    last: list[dict[str, Any]] = []

    def _broken(_payload: dict[str, Any]) -> None:
        raise ConnectionResetError("client went away")

    broadcaster.subscribe(first.append)
    broadcaster.subscribe(_broken, label="broken")
    broadcaster.subscribe(last.append)

    payload = broadcaster.publish(PhaseStart(phase=1, phase_name="Discovery", task_count=2))
    broadcaster.publish({"type": "phase_done", "phase": 1, "phase_name": "Discovery"})

    assert payload == {"type": "phase_start", "phase": 1, "phase_name": "Discovery", "task_count": 2}
    assert [event["type"] for event in first] == ["phase_start", "phase_done"]
    assert [event["type"] for event in last] == ["phase_start", "phase_done"]
    assert broadcaster.subscriber_count == 2


def test_unsubscribe_stops_delivery() -> None:
    broadcaster = ProgressBroadcaster()
    received: list[dict[str, Any]] = []
    subscription = broadcaster.subscribe(received.append)

    broadcaster.publish({"type": "a"})
    broadcaster.unsubscribe(subscription)
    broadcaster.publish({"type": "b"})

    assert received == [{"type": "a"}]
    assert broadcaster.subscriber_count == 0


def test_subscriber_may_unsubscribe_during_publish() -> None:
    broadcaster = ProgressBroadcaster()
    received: list[str] = []
    holder: dict[str, Any] = {}

    def _once(payload: dict[str, Any]) -> None:
        received.append(payload["type"])
        broadcaster.unsubscribe(holder["sub"])

    holder["sub"] = broadcaster.subscribe(_once)
    broadcaster.publish({"type": "first"})
    broadcaster.publish({"type": "second"})

    assert received == ["first"]


def test_queue_subscriber_receives_events_from_worker_thread() -> None:
    async def _run() -> None:
        broadcaster = ProgressBroadcaster()
        subscriber = QueueSubscriber(asyncio.get_running_loop()).attach(broadcaster)

        worker = threading.Thread(target=lambda: broadcaster.publish({"type": "task_start", "taskId": "t1"}))
        worker.start()
        worker.join(timeout=2)

        event = await asyncio.wait_for(subscriber.queue.get(), timeout=2)
        assert event == {"type": "task_start", "taskId": "t1"}

        subscriber.detach(broadcaster)
        assert broadcaster.subscriber_count == 0

    asyncio.run(_run())


def test_queue_subscriber_drops_when_full() -> None:
    async def _run() -> None:
        broadcaster = ProgressBroadcaster()
        subscriber = QueueSubscriber(asyncio.get_running_loop(), maxsize=1).attach(broadcaster)

        broadcaster.publish({"type": "one"})
        broadcaster.publish({"type": "two"})
        await asyncio.sleep(0)

        assert subscriber.queue.qsize() == 1
        assert subscriber.dropped == 1

    asyncio.run(_run())
