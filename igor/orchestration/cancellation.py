"""Cancellation tokens tagged with a query generation."""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from igor.errors import QueryCancelledError

T = TypeVar("T")


class CancellationToken:
    """Signals that the query of a given generation should stop.

    Every network call of a query runs through :meth:`guard`, so firing the
    token abandons in-flight requests instead of waiting for them to finish.
    """

    def __init__(self, generation: int = 0) -> None:
        self.generation = generation
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise QueryCancelledError(
                message=f"Query generation {self.generation} was cancelled.",
                generation=self.generation,
            )

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable* unless the token fires first."""

        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        abandoned = False
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                abandoned = True
                task.cancel()
                # cancel() only requests it; the task is done once it has unwound.
                await asyncio.gather(task, return_exceptions=True)
        if abandoned or task.cancelled():
            self.raise_if_cancelled()
        return task.result()

    def __repr__(self) -> str:
        return f"CancellationToken(generation={self.generation}, cancelled={self.cancelled})"


__all__ = ["CancellationToken"]
