"""Bounded concurrent enrichment of runner summaries."""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, replace
from typing import Sequence, Tuple

from igor.client import FleetClient
from igor.errors import ConfigurationError, IgorError, MalformedResponseError
from igor.fleet.models import EnrichedRunner, RunnerSummary
from igor.orchestration.cancellation import CancellationToken

logger = logging.getLogger("igor.orchestration.enrichment")

DEFAULT_MAX_CONCURRENCY = 8

_DETAIL_FIELDS = ("description", "tag_list", "version", "name", "ip_address", "created_at")


@dataclass(frozen=True)
class EnrichmentResult:
    """Enriched runners in pagination order plus failure accounting."""

    records: Tuple[EnrichedRunner, ...]
    failed_ids: Tuple[int, ...]

    @property
    def failures(self) -> int:
        return len(self.failed_ids)


class EnrichmentPool:
    """Fetch detail and managers for each runner with a fixed concurrency bound.

    A single coordinating coroutine owns dispatch: it keeps at most
    ``max_concurrency`` runners in flight and starts the next queued runner as
    each one completes. Results land in a slot per pagination index, so the
    output order never depends on completion order.
    """

    def __init__(self, client: FleetClient, *, max_concurrency: int = DEFAULT_MAX_CONCURRENCY) -> None:
        if max_concurrency < 1:
            raise ConfigurationError(
                message=f"Enrichment concurrency must be at least 1, got {max_concurrency}.",
                remediation="Set max_concurrency to a small positive number such as 8.",
            )
        self._client = client
        self.max_concurrency = max_concurrency

    async def enrich(
        self,
        summaries: Sequence[RunnerSummary],
        *,
        cancel: CancellationToken,
    ) -> EnrichmentResult:
        slots: list[EnrichedRunner | None] = [None] * len(summaries)
        queue: deque[tuple[int, RunnerSummary]] = deque(enumerate(summaries))
        in_flight: set[asyncio.Future[tuple[int, EnrichedRunner]]] = set()
        cancel_waiter = asyncio.ensure_future(cancel.wait())

        logger.info(
            "Starting enrichment",
            extra={"runner_count": len(summaries), "max_concurrency": self.max_concurrency},
        )

        try:
            while queue or in_flight:
                while queue and len(in_flight) < self.max_concurrency:
                    cancel.raise_if_cancelled()
                    index, summary = queue.popleft()
                    in_flight.add(asyncio.ensure_future(self._enrich_one(index, summary)))

                done, _ = await asyncio.wait(
                    {*in_flight, cancel_waiter},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if cancel_waiter in done:
                    logger.info(
                        "Enrichment cancelled",
                        extra={"generation": cancel.generation, "in_flight": len(in_flight)},
                    )
                    cancel.raise_if_cancelled()

                for task in done:
                    in_flight.discard(task)
                    index, record = task.result()
                    slots[index] = record
        finally:
            cancel_waiter.cancel()
            for task in in_flight:
                task.cancel()
            if in_flight:
                await asyncio.gather(*in_flight, return_exceptions=True)

        records = tuple(record for record in slots if record is not None)
        failed_ids = tuple(record.id for record in records if not record.enriched)
        if failed_ids:
            logger.warning(
                "Enrichment failed for some runners",
                extra={"failure_count": len(failed_ids), "failed_ids": list(failed_ids)},
            )
        return EnrichmentResult(records=records, failed_ids=failed_ids)

    async def _enrich_one(self, index: int, summary: RunnerSummary) -> tuple[int, EnrichedRunner]:
        try:
            detail = await self._client.fetch_detail(summary.id)
            if detail.id != summary.id:
                raise MalformedResponseError(
                    message=f"Detail for runner {summary.id} describes runner {detail.id}.",
                )
            managers = await self._client.fetch_managers(summary.id)
            return index, EnrichedRunner(summary=merge_detail(summary, detail), managers=managers)
        except (IgorError, ValueError) as exc:
            logger.debug(
                "Runner enrichment failed",
                extra={"runner_id": summary.id, "error": str(exc)},
            )
            return index, EnrichedRunner(summary=summary, enrichment_error=str(exc))


def merge_detail(summary: RunnerSummary, detail: RunnerSummary) -> RunnerSummary:
    """Overlay fields the list endpoint omits with their detail values."""

    updates = {
        name: getattr(detail, name)
        for name in _DETAIL_FIELDS
        if getattr(detail, name) not in (None, ())
    }
    return replace(summary, **updates)


__all__ = ["DEFAULT_MAX_CONCURRENCY", "EnrichmentPool", "EnrichmentResult", "merge_detail"]
