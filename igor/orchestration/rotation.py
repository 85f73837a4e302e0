"""Polling loop that detects manager rotation across consecutive samples."""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TYPE_CHECKING

from igor.errors import QueryCancelledError, TimeoutExceededError
from igor.fleet.classification import detect_rotation, take_sample
from igor.fleet.models import FilterSpec, RotationEvent, RotationSample
from igor.orchestration.cancellation import CancellationToken

if TYPE_CHECKING:
    from igor.orchestration.conductor import Conductor

logger = logging.getLogger("igor.orchestration.rotation")


async def watch_rotation(
    conductor: Conductor,
    *,
    interval: float,
    headless: bool,
    cancel: CancellationToken,
    filters: FilterSpec,
    timeout: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    monotonic: Callable[[], float] = time.monotonic,
) -> AsyncIterator[RotationEvent]:
    """Yield a :class:`RotationEvent` whenever a runner's manager set changes.

    Only the immediately preceding sample is kept. In headless mode the first
    event ends the stream; otherwise polling continues until *cancel* fires.
    Raises :class:`TimeoutExceededError` once *timeout* seconds have elapsed
    without the stream ending.
    """

    previous: RotationSample | None = None
    started = monotonic()
    tick = 0

    while True:
        tick += 1
        try:
            snapshot = await conductor.collect(filters, cancel=cancel)
        except QueryCancelledError:
            logger.info("Rotation watch cancelled", extra={"tick": tick})
            return

        current = take_sample(snapshot.records, conductor.now())
        logger.info(
            "Rotation sample taken",
            extra={
                "tick": tick,
                "tracked_runners": len(current.fingerprints),
                "enrichment_failures": snapshot.diagnostics.enrichment_failures,
            },
        )

        if previous is not None:
            changed = detect_rotation(previous, current)
            if changed:
                logger.info("Rotation detected", extra={"tick": tick, "runner_ids": list(changed)})
                yield RotationEvent(runner_ids=changed, detected_at=current.taken_at)
                if headless:
                    return
        previous = current

        elapsed = monotonic() - started
        if timeout is not None and elapsed >= timeout:
            raise TimeoutExceededError(
                message=f"No rotation detected within {timeout:.0f} seconds.",
                remediation="Increase poll_timeout_seconds or confirm the rotation was started.",
            )

        try:
            await cancel.guard(sleep(interval))
        except QueryCancelledError:
            logger.info("Rotation watch cancelled", extra={"tick": tick})
            return


__all__ = ["watch_rotation"]
