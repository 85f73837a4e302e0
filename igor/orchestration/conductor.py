"""Conductor façade sequencing pagination, enrichment, filtering and classification."""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Tuple

from igor.client import FleetClient
from igor.fleet.classification import DEFAULT_STALE_THRESHOLD, summarize_health
from igor.fleet.filters import apply_filters, validate_filters
from igor.fleet.models import (
    EnrichedRunner,
    FilterSpec,
    HealthSummary,
    ManagerRow,
    RotationEvent,
)
from igor.orchestration.cancellation import CancellationToken
from igor.orchestration.commands import Command, ResultView, plan_for
from igor.orchestration.enrichment import DEFAULT_MAX_CONCURRENCY, EnrichmentPool
from igor.orchestration.pagination import fetch_all_pages
from igor.orchestration.rotation import watch_rotation
from igor.utils import utc_now

logger = logging.getLogger("igor.orchestration.conductor")


@dataclass(frozen=True)
class QueryDiagnostics:
    """Accounting for everything a query could not fully deliver."""

    enrichment_failures: int = 0
    failed_ids: Tuple[int, ...] = ()
    pagination_truncated: bool = False
    pages_fetched: int = 0
    total_fetched: int = 0


@dataclass(frozen=True)
class FleetSnapshot:
    """Filtered, enriched runners in API order with their diagnostics."""

    records: Tuple[EnrichedRunner, ...]
    diagnostics: QueryDiagnostics


@dataclass(frozen=True)
class ConductorResult:
    """Outcome of one query, owned by the caller until the next query replaces it."""

    command: Command
    generation: int
    records: Tuple[EnrichedRunner, ...]
    diagnostics: QueryDiagnostics
    manager_rows: Tuple[ManagerRow, ...] = ()
    health: HealthSummary | None = None
    completed_at: datetime | None = field(default=None, compare=False)

    @property
    def view(self) -> ResultView:
        return plan_for(self.command).view

    @property
    def rows(self) -> Tuple[EnrichedRunner, ...] | Tuple[ManagerRow, ...]:
        """Return manager rows for manager-centric commands, runners otherwise."""

        if self.view is ResultView.MANAGERS:
            return self.manager_rows
        return self.records


class Conductor:
    """Turns paginated fleet API data into classified, ordered query results.

    The conductor keeps configuration only; every call to :meth:`run` starts
    from a fresh fetch and computes classifications anew.
    """

    def __init__(
        self,
        client: FleetClient,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        max_pages: int | None = None,
        stale_threshold: timedelta = DEFAULT_STALE_THRESHOLD,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._client = client
        self._pool = EnrichmentPool(client, max_concurrency=max_concurrency)
        self.max_pages = max_pages
        self.stale_threshold = stale_threshold
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    async def run(
        self,
        command: Command | str,
        filters: FilterSpec,
        cancel: CancellationToken | None = None,
    ) -> ConductorResult:
        """Execute *command* against the fleet; fatal API errors propagate."""

        command = Command(command)
        plan = plan_for(command)
        validate_filters(filters)
        token = cancel or CancellationToken()

        logger.info(
            "Starting query",
            extra={"command": command.value, "generation": token.generation},
        )
        snapshot = await self.collect(filters, cancel=token)
        token.raise_if_cancelled()

        now = self.now()
        selected = plan.select(snapshot.records, now=now, stale_threshold=self.stale_threshold)
        health = summarize_health(selected) if plan.view is ResultView.HEALTH else None
        rows = flatten_managers(selected) if plan.view is ResultView.MANAGERS else ()

        logger.info(
            "Query complete",
            extra={
                "command": command.value,
                "generation": token.generation,
                "selected": len(selected),
                "enrichment_failures": snapshot.diagnostics.enrichment_failures,
            },
        )
        return ConductorResult(
            command=command,
            generation=token.generation,
            records=selected,
            diagnostics=snapshot.diagnostics,
            manager_rows=rows,
            health=health,
            completed_at=now,
        )

    async def collect(self, filters: FilterSpec, *, cancel: CancellationToken) -> FleetSnapshot:
        """Paginate, enrich and filter without applying any command plan."""

        validate_filters(filters)
        pages = await fetch_all_pages(
            self._client,
            filters,
            cancel=cancel,
            max_pages=self.max_pages,
        )
        enrichment = await self._pool.enrich(pages.summaries, cancel=cancel)
        records = apply_filters(enrichment.records, filters)

        diagnostics = QueryDiagnostics(
            enrichment_failures=enrichment.failures,
            failed_ids=enrichment.failed_ids,
            pagination_truncated=pages.truncated,
            pages_fetched=pages.pages_fetched,
            total_fetched=len(pages.summaries),
        )
        return FleetSnapshot(records=records, diagnostics=diagnostics)

    def start_rotation_watch(
        self,
        interval: float,
        *,
        headless: bool,
        cancel: CancellationToken,
        filters: FilterSpec | None = None,
        timeout: float | None = None,
    ) -> AsyncIterator[RotationEvent]:
        """Poll the fleet every *interval* seconds and stream rotation events."""

        return watch_rotation(
            self,
            interval=interval,
            headless=headless,
            cancel=cancel,
            filters=filters or FilterSpec(),
            timeout=timeout,
        )


def flatten_managers(runners: Iterable[EnrichedRunner]) -> Tuple[ManagerRow, ...]:
    """One row per manager, keeping runner order and each runner's manager order."""

    return tuple(
        ManagerRow(runner_id=runner.id, runner_tags=runner.summary.tag_list, manager=manager)
        for runner in runners
        for manager in runner.managers
    )


__all__ = [
    "Conductor",
    "ConductorResult",
    "FleetSnapshot",
    "QueryDiagnostics",
    "flatten_managers",
]
