"""Report commands and the classifier plan each one applies."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

from igor.fleet import classification
from igor.fleet.models import EnrichedRunner

RunnerPredicate = Callable[[EnrichedRunner, datetime, timedelta], bool]


class Command(str, Enum):
    """Closed set of report commands understood by the conductor."""

    FETCH = "fetch"
    LIGHTS = "lights"
    SWITCH = "switch"
    WORKERS = "workers"
    FLAMES = "flames"
    EMPTY = "empty"
    ROTATE = "rotate"

    def __str__(self) -> str:
        return self.value


class ResultView(str, Enum):
    """Shape of the rows a command produces."""

    RUNNERS = "runners"
    HEALTH = "health"
    MANAGERS = "managers"


@dataclass(frozen=True)
class CommandPlan:
    """How a command selects and presents the filtered runner set."""

    description: str
    view: ResultView
    requires_enrichment: bool
    predicate: RunnerPredicate | None = None

    def select(
        self,
        runners: tuple[EnrichedRunner, ...],
        *,
        now: datetime,
        stale_threshold: timedelta,
    ) -> tuple[EnrichedRunner, ...]:
        candidates = runners
        if self.requires_enrichment:
            candidates = tuple(runner for runner in candidates if runner.enriched)
        if self.predicate is None:
            return candidates
        return tuple(
            runner for runner in candidates if self.predicate(runner, now, stale_threshold)
        )


def _degraded(runner: EnrichedRunner, now: datetime, threshold: timedelta) -> bool:
    return classification.is_degraded(runner)


def _stale(runner: EnrichedRunner, now: datetime, threshold: timedelta) -> bool:
    return classification.is_stale(runner, now, threshold)


def _unmanaged(runner: EnrichedRunner, now: datetime, threshold: timedelta) -> bool:
    return classification.is_unmanaged(runner)


def _rotating(runner: EnrichedRunner, now: datetime, threshold: timedelta) -> bool:
    return classification.is_rotating(runner)


COMMAND_PLANS: dict[Command, CommandPlan] = {
    Command.FETCH: CommandPlan(
        description="List every runner matching the filters.",
        view=ResultView.RUNNERS,
        requires_enrichment=False,
    ),
    Command.LIGHTS: CommandPlan(
        description="Health check: runners whose managers are all online.",
        view=ResultView.HEALTH,
        requires_enrichment=True,
    ),
    Command.SWITCH: CommandPlan(
        description="Runners whose managers are all offline.",
        view=ResultView.RUNNERS,
        requires_enrichment=True,
        predicate=_degraded,
    ),
    Command.WORKERS: CommandPlan(
        description="One row per runner manager.",
        view=ResultView.MANAGERS,
        requires_enrichment=True,
    ),
    Command.FLAMES: CommandPlan(
        description="Runners whose managers have not made contact recently.",
        view=ResultView.RUNNERS,
        requires_enrichment=True,
        predicate=_stale,
    ),
    Command.EMPTY: CommandPlan(
        description="Runners without any registered manager.",
        view=ResultView.RUNNERS,
        requires_enrichment=True,
        predicate=_unmanaged,
    ),
    Command.ROTATE: CommandPlan(
        description="Runners mid-rotation with more than one manager.",
        view=ResultView.RUNNERS,
        requires_enrichment=True,
        predicate=_rotating,
    ),
}


def plan_for(command: Command) -> CommandPlan:
    return COMMAND_PLANS[Command(command)]


__all__ = ["COMMAND_PLANS", "Command", "CommandPlan", "ResultView", "plan_for"]
