"""Full pagination over the runner list endpoint."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

from igor.client import FleetClient
from igor.errors import RetryExhaustedError, TransientNetworkError
from igor.fleet.models import FilterSpec, RunnerPage, RunnerSummary
from igor.orchestration.cancellation import CancellationToken

logger = logging.getLogger("igor.orchestration.pagination")


@dataclass(frozen=True)
class PageFetchResult:
    """Runner summaries in API order plus pagination bookkeeping."""

    summaries: Tuple[RunnerSummary, ...]
    pages_fetched: int
    truncated: bool = False


async def fetch_all_pages(
    client: FleetClient,
    filters: FilterSpec,
    *,
    cancel: CancellationToken,
    max_pages: int | None = None,
) -> PageFetchResult:
    """Request pages until the API reports no next page or *max_pages* is reached.

    Only the server-side subset of *filters* is sent upstream. Results are
    concatenated in the order returned and never deduplicated.
    """

    server_side = filters.server_side()
    summaries: list[RunnerSummary] = []
    page_token: str | None = None
    pages = 0

    while True:
        if max_pages is not None and pages >= max_pages:
            logger.warning(
                "Pagination stopped at page limit",
                extra={"max_pages": max_pages, "runner_count": len(summaries)},
            )
            return PageFetchResult(summaries=tuple(summaries), pages_fetched=pages, truncated=True)

        page = await _fetch_with_retry(client, server_side, page_token, cancel=cancel)
        pages += 1
        summaries.extend(page.items)
        page_token = page.next_page_token
        if page_token is None:
            break

    logger.info(
        "Pagination complete",
        extra={"pages": pages, "runner_count": len(summaries)},
    )
    return PageFetchResult(summaries=tuple(summaries), pages_fetched=pages)


async def _fetch_with_retry(
    client: FleetClient,
    server_side: dict[str, str],
    page_token: str | None,
    *,
    cancel: CancellationToken,
) -> RunnerPage:
    """Fetch a page, retrying a single transient failure immediately."""

    try:
        return await cancel.guard(client.fetch_page(server_side, page_token))
    except TransientNetworkError as exc:
        logger.warning(
            "Transient error fetching runner page; retrying",
            extra={"page_token": page_token, "error": exc.message},
        )

    try:
        return await cancel.guard(client.fetch_page(server_side, page_token))
    except TransientNetworkError as exc:
        raise RetryExhaustedError(
            message=f"Fetching runner page failed twice: {exc.message}",
            remediation=exc.remediation or "Retry on a stable network connection.",
            status_code=exc.status_code,
        ) from exc


__all__ = ["PageFetchResult", "fetch_all_pages"]
