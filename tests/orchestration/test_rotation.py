from __future__ import annotations

import asyncio

import pytest

from conftest import NOW, FakeFleetClient, make_manager, make_summary
from igor.errors import TimeoutExceededError
from igor.fleet.models import FilterSpec
from igor.orchestration.cancellation import CancellationToken
from igor.orchestration.conductor import Conductor
from igor.orchestration.rotation import watch_rotation


def _fleet(count: int = 10) -> FakeFleetClient:
    summaries = [make_summary(index) for index in range(1, count + 1)]
    managers = {index: [make_manager(index, f"s_{index}_v1", manager_id=index)] for index in range(1, count + 1)}
    return FakeFleetClient(summaries, managers=managers)


class FakeClock:
    """Drives the poll loop without real sleeping."""

    def __init__(self) -> None:
        self.elapsed = 0.0
        self.sleeps: list[float] = []
        self.on_sleep: list = []

    def monotonic(self) -> float:
        return self.elapsed

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.elapsed += seconds
        if self.on_sleep:
            self.on_sleep.pop(0)()


async def _collect(stream) -> list:
    return [event async for event in stream]


@pytest.mark.asyncio
async def test_headless_watch_stops_after_first_rotation() -> None:
    client = _fleet()
    clock = FakeClock()

    def rotate_runner_seven() -> None:
        client.managers[7] = (make_manager(7, "s_7_v2", manager_id=70),)

    clock.on_sleep = [lambda: None, rotate_runner_seven]
    conductor = Conductor(client, clock=lambda: NOW)

    events = await _collect(
        watch_rotation(
            conductor,
            interval=30,
            headless=True,
            cancel=CancellationToken(),
            filters=FilterSpec(),
            sleep=clock.sleep,
            monotonic=clock.monotonic,
        )
    )

    assert len(events) == 1
    assert events[0].runner_ids == (7,)
    assert clock.sleeps == [30, 30]


@pytest.mark.asyncio
async def test_manager_added_during_rotation_is_detected() -> None:
    client = _fleet(3)
    clock = FakeClock()

    def add_manager() -> None:
        client.managers[2] = client.managers[2] + (make_manager(2, "s_2_v2", manager_id=20),)

    clock.on_sleep = [add_manager]
    conductor = Conductor(client, clock=lambda: NOW)

    events = await _collect(
        watch_rotation(
            conductor,
            interval=30,
            headless=True,
            cancel=CancellationToken(),
            filters=FilterSpec(),
            sleep=clock.sleep,
            monotonic=clock.monotonic,
        )
    )

    assert [event.runner_ids for event in events] == [(2,)]


@pytest.mark.asyncio
async def test_watch_times_out_without_rotation() -> None:
    clock = FakeClock()
    conductor = Conductor(_fleet(2), clock=lambda: NOW)

    with pytest.raises(TimeoutExceededError):
        await _collect(
            watch_rotation(
                conductor,
                interval=30,
                headless=True,
                cancel=CancellationToken(),
                filters=FilterSpec(),
                timeout=90,
                sleep=clock.sleep,
                monotonic=clock.monotonic,
            )
        )
    assert clock.sleeps == [30, 30, 30]


@pytest.mark.asyncio
async def test_cancel_ends_stream_quietly() -> None:
    clock = FakeClock()
    token = CancellationToken()
    clock.on_sleep = [token.cancel]
    conductor = Conductor(_fleet(2), clock=lambda: NOW)

    events = await _collect(
        watch_rotation(
            conductor,
            interval=30,
            headless=False,
            cancel=token,
            filters=FilterSpec(),
            sleep=clock.sleep,
            monotonic=clock.monotonic,
        )
    )

    assert events == []


@pytest.mark.asyncio
async def test_runner_appearing_between_polls_is_not_a_rotation() -> None:
    client = _fleet(2)
    clock = FakeClock()

    def add_runner_then_cancel() -> None:
        client.runners.append(make_summary(3))
        client.managers[3] = (make_manager(3, "s_3", manager_id=3),)

    token = CancellationToken()
    clock.on_sleep = [add_runner_then_cancel, token.cancel]
    conductor = Conductor(client, clock=lambda: NOW)

    events = await _collect(
        watch_rotation(
            conductor,
            interval=5,
            headless=False,
            cancel=token,
            filters=FilterSpec(),
            sleep=clock.sleep,
            monotonic=clock.monotonic,
        )
    )

    assert events == []


@pytest.mark.asyncio
async def test_cancel_during_real_sleep_ends_stream_quietly() -> None:
    token = CancellationToken()
    conductor = Conductor(_fleet(2), clock=lambda: NOW)
    asyncio.get_running_loop().call_later(0.05, token.cancel)

    events = await asyncio.wait_for(
        _collect(
            watch_rotation(
                conductor,
                interval=5,
                headless=False,
                cancel=token,
                filters=FilterSpec(),
            )
        ),
        timeout=2,
    )

    assert events == []
