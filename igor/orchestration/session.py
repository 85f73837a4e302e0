"""Caller-side query lifecycle: one live query, stale generations discarded."""
from __future__ import annotations

import logging

from igor.errors import IgorError, QueryCancelledError
from igor.fleet.models import FilterSpec
from igor.orchestration.cancellation import CancellationToken
from igor.orchestration.commands import Command
from igor.orchestration.conductor import Conductor, ConductorResult

logger = logging.getLogger("igor.orchestration.session")


class QuerySession:
    """Tracks the displayed result set for an interactive consumer.

    Submitting a new query cancels the one in flight. A result only replaces
    :attr:`displayed` when its generation is still the latest one issued.
    """

    def __init__(self, conductor: Conductor) -> None:
        self._conductor = conductor
        self._generation = 0
        self._token: CancellationToken | None = None
        self.displayed: ConductorResult | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def busy(self) -> bool:
        return self._token is not None and not self._token.cancelled

    def cancel(self) -> None:
        """Cancel the query in flight, if any."""

        if self._token is not None:
            self._token.cancel()

    async def submit(self, command: Command | str, filters: FilterSpec) -> ConductorResult | None:
        """Run a query, returning its result or ``None`` if it was superseded."""

        self.cancel()
        self._generation += 1
        token = CancellationToken(self._generation)
        self._token = token

        try:
            result = await self._conductor.run(command, filters, token)
        except QueryCancelledError:
            logger.info("Discarding cancelled query", extra={"generation": token.generation})
            return None
        except IgorError:
            if not self.is_current(token.generation):
                logger.info("Discarding stale query failure", extra={"generation": token.generation})
                return None
            raise
        finally:
            if self._token is token:
                self._token = None

        if not self.is_current(result.generation) or token.cancelled:
            logger.info("Discarding stale query result", extra={"generation": result.generation})
            return None

        self.displayed = result
        return result

    def is_current(self, generation: int) -> bool:
        return generation == self._generation


__all__ = ["QuerySession"]
