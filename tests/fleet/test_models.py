from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import make_manager, make_summary
from igor.errors import MalformedResponseError
from igor.fleet.models import (
    EnrichedRunner,
    FilterSpec,
    GitLabUser,
    HealthSummary,
    ManagerRecord,
    RunnerSummary,
)


def _runner_payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": 42,
        "description": "shared-runner-42",
        "ip_address": "10.0.0.42",
        "active": True,
        "paused": False,
        "is_shared": True,
        "runner_type": "instance_type",
        "name": "gitlab-runner",
        "online": True,
        "status": "online",
        "tag_list": ["docker", "linux"],
        "version": "16.11.0",
    }
    payload.update(overrides)
    return payload


def test_runner_summary_from_api_reads_core_fields() -> None:
    summary = RunnerSummary.from_api(_runner_payload())

    assert summary.id == 42
    assert summary.runner_type == "instance_type"
    assert summary.status == "online"
    assert summary.tag_list == ("docker", "linux")
    assert summary.tag_set == frozenset({"docker", "linux"})
    assert summary.is_shared is True


def test_runner_summary_tolerates_missing_optional_fields() -> None:
    payload = {"id": 7, "runner_type": "group_type", "status": "never_contacted"}

    summary = RunnerSummary.from_api(payload)

    assert summary.tag_list == ()
    assert summary.version is None
    assert summary.paused is False


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "a", "mapping"],
        _runner_payload(id="42"),
        _runner_payload(status=None),
        _runner_payload(tag_list="docker,linux"),
        _runner_payload(paused="no"),
    ],
)
def test_runner_summary_rejects_schema_violations(payload: object) -> None:
    with pytest.raises(MalformedResponseError):
        RunnerSummary.from_api(payload)


def test_manager_record_parses_timestamps() -> None:
    record = ManagerRecord.from_api(
        {
            "id": 9,
            "system_id": "s_abc123",
            "status": "online",
            "created_at": "2024-04-30T10:00:00.000Z",
            "contacted_at": "2024-05-01T11:59:30.123Z",
            "platform": "linux",
            "architecture": "amd64",
        },
        runner_id=42,
    )

    assert record.runner_id == 42
    assert record.is_online
    assert record.contacted_at == datetime(2024, 5, 1, 11, 59, 30, 123000, tzinfo=timezone.utc)


def test_manager_record_rejects_bad_timestamp() -> None:
    with pytest.raises(MalformedResponseError):
        ManagerRecord.from_api(
            {"id": 1, "system_id": "s_1", "status": "online", "contacted_at": "yesterday"},
            runner_id=1,
        )


def test_enriched_runner_rejects_foreign_manager() -> None:
    with pytest.raises(ValueError):
        EnrichedRunner(summary=make_summary(1), managers=(make_manager(2, "s_x"),))


def test_failed_runner_cannot_carry_managers() -> None:
    with pytest.raises(ValueError):
        EnrichedRunner(
            summary=make_summary(1),
            managers=(make_manager(1, "s_x"),),
            enrichment_error="boom",
        )


def test_failed_runner_is_not_enriched() -> None:
    runner = EnrichedRunner(summary=make_summary(3), enrichment_error="timeout")

    assert runner.id == 3
    assert not runner.enriched


def test_filter_spec_server_side_subset() -> None:
    spec = FilterSpec(
        tags=frozenset({"docker"}),
        version_prefix="16.",
        status="online",
        runner_type="group_type",
        paused=False,
    )

    assert spec.server_side() == {"status": "online", "type": "group_type", "paused": "false"}
    assert not spec.is_empty
    assert FilterSpec().is_empty
    assert FilterSpec().server_side() == {}


def test_health_summary_percentage() -> None:
    assert HealthSummary(healthy_count=3, total_count=4).percentage == pytest.approx(75.0)
    assert HealthSummary(healthy_count=0, total_count=0).percentage == 0.0
    assert not HealthSummary(healthy_count=0, total_count=0).is_healthy
    assert HealthSummary(healthy_count=2, total_count=2).is_healthy


def test_gitlab_user_from_api() -> None:
    user = GitLabUser.from_api(
        {"username": "root", "name": "Administrator", "state": "active", "bot": False}
    )

    assert user.username == "root"
    assert user.state == "active"
    assert user.locked is False
