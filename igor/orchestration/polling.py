"""Headless polling that re-runs a report command on every interval."""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from igor.errors import QueryCancelledError, RetryExhaustedError, TransientNetworkError
from igor.fleet.models import FilterSpec
from igor.orchestration.cancellation import CancellationToken
from igor.orchestration.commands import Command

if TYPE_CHECKING:
    from igor.orchestration.conductor import Conductor, ConductorResult

logger = logging.getLogger("igor.orchestration.polling")


@dataclass(frozen=True)
class PollUpdate:
    """One poll of a report command.

    ``result`` is ``None`` when the poll hit a network failure; ``error``
    then carries its message and polling carries on.
    """

    iteration: int
    elapsed_seconds: float
    command: Command
    result: ConductorResult | None = None
    error: str | None = None

    @property
    def matched(self) -> int:
        return len(self.result.rows) if self.result is not None else 0


async def poll_command(
    conductor: Conductor,
    command: Command | str,
    *,
    interval: float,
    timeout: float | None,
    cancel: CancellationToken,
    filters: FilterSpec,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    monotonic: Callable[[], float] = time.monotonic,
) -> AsyncIterator[PollUpdate]:
    """Yield one :class:`PollUpdate` per poll until *timeout* or cancellation.

    Reaching the timeout ends the stream normally. Network failures are
    reported in the update and the next poll proceeds; every other error
    propagates.
    """

    command = Command(command)
    started = monotonic()
    iteration = 0

    while True:
        iteration += 1
        try:
            result = await conductor.run(command, filters, cancel)
        except QueryCancelledError:
            logger.info("Polling cancelled", extra={"iteration": iteration})
            return
        except (TransientNetworkError, RetryExhaustedError) as exc:
            logger.warning("Poll failed", extra={"iteration": iteration, "error": exc.message})
            yield PollUpdate(
                iteration=iteration,
                elapsed_seconds=monotonic() - started,
                command=command,
                error=exc.message,
            )
        else:
            yield PollUpdate(
                iteration=iteration,
                elapsed_seconds=monotonic() - started,
                command=command,
                result=result,
            )

        if timeout is not None and monotonic() - started >= timeout:
            logger.info("Poll timeout reached", extra={"iteration": iteration, "timeout": timeout})
            return

        try:
            await cancel.guard(sleep(interval))
        except QueryCancelledError:
            logger.info("Polling cancelled", extra={"iteration": iteration})
            return


__all__ = ["PollUpdate", "poll_command"]
