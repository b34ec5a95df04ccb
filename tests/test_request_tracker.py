from __future__ import annotations

import asyncio

from core.services.request_tracker import CancellationHandle, RequestTracker


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


async def _sleeper() -> None:
    await asyncio.sleep(30)


async def test_cancel_all_only_touches_matching_component():
    tracker = RequestTracker()
    mine, theirs = CancellationHandle(), CancellationHandle()
    tracker.register("GET-a-", mine, "OrganizationsPage", "a")
    tracker.register("GET-b-", theirs, "SalesPage", "b")

    assert tracker.cancel_all("OrganizationsPage") == 1

    assert mine.cancelled and mine.reason == "component_closed"
    assert not theirs.cancelled
    assert [e["id"] for e in tracker.snapshot()] == ["GET-b-"]


async def test_cancel_propagates_to_the_bound_task():
    tracker = RequestTracker()
    task = asyncio.create_task(_sleeper())
    tracker.register("GET-a-", CancellationHandle(task), "X", "a")

    tracker.cancel_all("X")
    await asyncio.sleep(0)

    assert task.cancelled()


def test_prune_stale_waits_until_max_age_is_exceeded():
    clock = FakeClock()
    tracker = RequestTracker(clock=clock)
    old, fresh = CancellationHandle(), CancellationHandle()
    tracker.register("old", old, "X", "a")
    clock.now += 20
    tracker.register("fresh", fresh, "X", "b")

    clock.now += 10  # old tiene exactamente 30s
    assert tracker.prune_stale(30) == 0
    assert not old.cancelled

    clock.now += 0.5
    assert tracker.prune_stale(30) == 1
    assert old.cancelled and old.reason == "stale"
    assert not fresh.cancelled
    assert tracker.active_count == 1


def test_unregister_ignores_a_replaced_handle():
    tracker = RequestTracker()
    first, second = CancellationHandle(), CancellationHandle()
    tracker.register("GET-a-", first, "X", "a")
    tracker.register("GET-a-", second, "X", "a")

    tracker.unregister("GET-a-", first)
    assert tracker.active_count == 1

    tracker.unregister("GET-a-", second)
    assert tracker.active_count == 0
    tracker.unregister("GET-a-")


def test_snapshot_reports_duration():
    clock = FakeClock()
    tracker = RequestTracker(clock=clock)
    tracker.register("GET-a-", CancellationHandle(), "X", "http://a")
    clock.now += 4

    (entry,) = tracker.snapshot()
    assert entry == {"id": "GET-a-", "url": "http://a", "component_name": "X", "duration": 4}


async def test_handle_cancelled_before_bind_cancels_on_bind():
    handle = CancellationHandle()
    handle.cancel("timeout")
    task = asyncio.create_task(_sleeper())

    handle.bind(task)
    await asyncio.sleep(0)

    assert task.cancelled()
    assert handle.reason == "timeout"
