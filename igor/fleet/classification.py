"""Health and rotation classification derived from runner manager data.

Every predicate here answers ``False`` for a runner whose enrichment failed:
without manager data the runner cannot be called healthy, degraded, unmanaged
or stale, and it is reported through query diagnostics instead.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta

from igor.fleet.models import EnrichedRunner, HealthSummary, RotationSample

DEFAULT_STALE_THRESHOLD = timedelta(hours=1)


@dataclass(frozen=True)
class HealthFacts:
    """Derived facts for a single enriched runner at evaluation time."""

    runner_id: int
    healthy: bool
    degraded: bool
    unmanaged: bool
    stale: bool
    rotating: bool


def is_fully_healthy(runner: EnrichedRunner) -> bool:
    """Return True when the runner has managers and every one of them is online."""

    if not runner.enriched or not runner.managers:
        return False
    return all(manager.is_online for manager in runner.managers)


def is_degraded(runner: EnrichedRunner) -> bool:
    """Return True when the runner has managers but none of them is online."""

    if not runner.enriched or not runner.managers:
        return False
    return not any(manager.is_online for manager in runner.managers)


def is_unmanaged(runner: EnrichedRunner) -> bool:
    """Return True when enrichment succeeded and reported no managers."""

    return runner.enriched and not runner.managers


def is_stale(
    runner: EnrichedRunner,
    now: datetime,
    threshold: timedelta = DEFAULT_STALE_THRESHOLD,
) -> bool:
    """Return True when every manager last made contact before ``now - threshold``."""

    if not runner.enriched or not runner.managers:
        return False
    cutoff = now - threshold
    return all(
        manager.contacted_at is None or manager.contacted_at < cutoff
        for manager in runner.managers
    )


def is_rotating(runner: EnrichedRunner) -> bool:
    """Return True while more than one manager is registered for the runner."""

    return runner.enriched and len(runner.managers) > 1


def assess(
    runner: EnrichedRunner,
    now: datetime,
    threshold: timedelta = DEFAULT_STALE_THRESHOLD,
) -> HealthFacts | None:
    """Compute all facts for *runner*, or ``None`` when it cannot be classified."""

    if not runner.enriched:
        return None
    return HealthFacts(
        runner_id=runner.id,
        healthy=is_fully_healthy(runner),
        degraded=is_degraded(runner),
        unmanaged=is_unmanaged(runner),
        stale=is_stale(runner, now, threshold),
        rotating=is_rotating(runner),
    )


def summarize_health(runners: Iterable[EnrichedRunner]) -> HealthSummary:
    classified = [runner for runner in runners if runner.enriched]
    healthy = sum(1 for runner in classified if is_fully_healthy(runner))
    return HealthSummary(healthy_count=healthy, total_count=len(classified))


def fingerprint(runner: EnrichedRunner) -> frozenset[str]:
    """Identity of the runner's manager set."""

    return frozenset(manager.system_id for manager in runner.managers)


def take_sample(runners: Iterable[EnrichedRunner], now: datetime) -> RotationSample:
    """Snapshot manager fingerprints for every successfully enriched runner."""

    fingerprints = {runner.id: fingerprint(runner) for runner in runners if runner.enriched}
    return RotationSample(fingerprints=fingerprints, taken_at=now)


def detect_rotation(previous: RotationSample, current: RotationSample) -> tuple[int, ...]:
    """Return runner IDs tracked in both samples whose fingerprint changed."""

    return _changed_ids(previous.fingerprints, current.fingerprints)


def _changed_ids(
    before: Mapping[int, frozenset[str]],
    after: Mapping[int, frozenset[str]],
) -> tuple[int, ...]:
    changed = [
        runner_id
        for runner_id, current in after.items()
        if runner_id in before and before[runner_id] != current
    ]
    return tuple(sorted(changed))


__all__ = [
    "DEFAULT_STALE_THRESHOLD",
    "HealthFacts",
    "assess",
    "detect_rotation",
    "fingerprint",
    "is_degraded",
    "is_fully_healthy",
    "is_rotating",
    "is_stale",
    "is_unmanaged",
    "summarize_health",
    "take_sample",
]
