from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone

import pytest

from igor.errors import IgorError, TransientNetworkError
from igor.fleet.models import GitLabUser, ManagerRecord, RunnerPage, RunnerSummary

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_summary(runner_id: int, **overrides: object) -> RunnerSummary:
    values: dict[str, object] = {
        "id": runner_id,
        "runner_type": "instance_type",
        "status": "online",
        "paused": False,
        "description": f"runner-{runner_id}",
        "tag_list": ("linux",),
        "version": "16.11.0",
    }
    values.update(overrides)
    return RunnerSummary(**values)  # type: ignore[arg-type]


def make_manager(
    runner_id: int,
    system_id: str,
    *,
    status: str = "online",
    contacted_at: datetime | None = NOW,
    manager_id: int | None = None,
) -> ManagerRecord:
    return ManagerRecord(
        id=manager_id if manager_id is not None else abs(hash((runner_id, system_id))) % 100_000,
        system_id=system_id,
        runner_id=runner_id,
        status=status,
        contacted_at=contacted_at,
        version="16.11.0",
        ip_address="10.0.0.1",
    )


class FakeFleetClient:
    """In-memory fleet API with controllable latency and failures."""

    def __init__(
        self,
        runners: Sequence[RunnerSummary],
        *,
        managers: Mapping[int, Sequence[ManagerRecord]] | None = None,
        page_size: int = 100,
        failing_ids: Iterable[int] = (),
        delays: Mapping[int, float] | None = None,
        page_errors: Sequence[IgorError] = (),
        page_delay: float = 0.0,
    ) -> None:
        self.runners = list(runners)
        self.managers = {key: tuple(value) for key, value in (managers or {}).items()}
        self.page_size = page_size
        self.failing_ids = set(failing_ids)
        self.delays = dict(delays or {})
        self.page_errors = list(page_errors)
        self.page_delay = page_delay
        self.pages_completed = 0
        self.page_calls: list[tuple[dict[str, str], str | None]] = []
        self.detail_calls: list[int] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def __aenter__(self) -> FakeFleetClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.closed = True

    async def fetch_page(self, server_side_filters: Mapping[str, str], page_token: str | None) -> RunnerPage:
        self.page_calls.append((dict(server_side_filters), page_token))
        await asyncio.sleep(self.page_delay)
        if self.page_errors:
            raise self.page_errors.pop(0)
        page = int(page_token or 1)
        start = (page - 1) * self.page_size
        items = self.runners[start : start + self.page_size]
        has_more = start + self.page_size < len(self.runners)
        self.pages_completed += 1
        return RunnerPage(items=tuple(items), next_page_token=str(page + 1) if has_more else None)

    async def fetch_detail(self, runner_id: int) -> RunnerSummary:
        self.detail_calls.append(runner_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(runner_id, 0))
            if runner_id in self.failing_ids:
                raise TransientNetworkError(message=f"detail for {runner_id} timed out")
            return next(runner for runner in self.runners if runner.id == runner_id)
        finally:
            self.in_flight -= 1

    async def fetch_managers(self, runner_id: int) -> tuple[ManagerRecord, ...]:
        await asyncio.sleep(0)
        return self.managers.get(runner_id, ())

    async def fetch_current_user(self) -> GitLabUser:
        return GitLabUser(username="fleet-bot", name="Fleet Bot", state="active", bot=True)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Point config discovery and the environment at an empty temporary home."""

    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("GITLAB_HOST", raising=False)
    monkeypatch.delenv("GITLAB_TOKEN", raising=False)
    return tmp_path
