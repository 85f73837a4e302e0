from __future__ import annotations

import pytest

from conftest import FakeFleetClient, make_summary
from igor.errors import AuthenticationError, RetryExhaustedError, TransientNetworkError
from igor.fleet.models import FilterSpec
from igor.orchestration.cancellation import CancellationToken
from igor.orchestration.pagination import fetch_all_pages


@pytest.mark.asyncio
async def test_concatenates_pages_in_api_order() -> None:
    client = FakeFleetClient([make_summary(index) for index in range(1, 131)], page_size=50)

    result = await fetch_all_pages(client, FilterSpec(), cancel=CancellationToken())

    assert [summary.id for summary in result.summaries] == list(range(1, 131))
    assert result.pages_fetched == 3
    assert not result.truncated
    assert [token for _, token in client.page_calls] == [None, "2", "3"]


@pytest.mark.asyncio
async def test_sends_only_server_side_filters() -> None:
    client = FakeFleetClient([make_summary(1)])
    spec = FilterSpec(tags=frozenset({"alm"}), version_prefix="17.", status="offline", paused=True)

    await fetch_all_pages(client, spec, cancel=CancellationToken())

    assert client.page_calls[0][0] == {"status": "offline", "paused": "true"}


@pytest.mark.asyncio
async def test_max_pages_truncates() -> None:
    client = FakeFleetClient([make_summary(index) for index in range(1, 11)], page_size=3)

    result = await fetch_all_pages(client, FilterSpec(), cancel=CancellationToken(), max_pages=2)

    assert len(result.summaries) == 6
    assert result.pages_fetched == 2
    assert result.truncated


@pytest.mark.asyncio
async def test_single_transient_failure_is_retried() -> None:
    client = FakeFleetClient(
        [make_summary(1), make_summary(2)],
        page_errors=[TransientNetworkError(message="reset")],
    )

    result = await fetch_all_pages(client, FilterSpec(), cancel=CancellationToken())

    assert [summary.id for summary in result.summaries] == [1, 2]
    assert len(client.page_calls) == 2


@pytest.mark.asyncio
async def test_second_transient_failure_aborts() -> None:
    client = FakeFleetClient(
        [make_summary(1)],
        page_errors=[TransientNetworkError(message="reset"), TransientNetworkError(message="reset again")],
    )

    with pytest.raises(RetryExhaustedError):
        await fetch_all_pages(client, FilterSpec(), cancel=CancellationToken())


@pytest.mark.asyncio
async def test_fatal_error_is_not_retried() -> None:
    client = FakeFleetClient([make_summary(1)], page_errors=[AuthenticationError(message="401")])

    with pytest.raises(AuthenticationError):
        await fetch_all_pages(client, FilterSpec(), cancel=CancellationToken())
    assert len(client.page_calls) == 1
