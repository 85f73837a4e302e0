from __future__ import annotations

from datetime import timedelta

from conftest import NOW, make_manager, make_summary
from igor.fleet.classification import (
    assess,
    detect_rotation,
    is_degraded,
    is_fully_healthy,
    is_rotating,
    is_stale,
    is_unmanaged,
    summarize_health,
    take_sample,
)
from igor.fleet.models import EnrichedRunner, RotationSample


def _runner(runner_id: int, *statuses: str, contacted_ago: timedelta = timedelta(0)) -> EnrichedRunner:
    managers = tuple(
        make_manager(
            runner_id,
            f"s_{runner_id}_{index}",
            status=status,
            contacted_at=NOW - contacted_ago,
            manager_id=runner_id * 10 + index,
        )
        for index, status in enumerate(statuses)
    )
    return EnrichedRunner(summary=make_summary(runner_id), managers=managers)


def _failed(runner_id: int) -> EnrichedRunner:
    return EnrichedRunner(summary=make_summary(runner_id), enrichment_error="timeout")


def test_fully_healthy_requires_all_managers_online() -> None:
    assert is_fully_healthy(_runner(1, "online", "online"))
    assert not is_fully_healthy(_runner(2, "online", "offline"))
    assert not is_fully_healthy(_runner(3))


def test_degraded_when_no_manager_is_online() -> None:
    assert is_degraded(_runner(1, "offline", "stale"))
    assert not is_degraded(_runner(2, "offline", "online"))
    assert not is_degraded(_runner(3))


def test_unmanaged_only_for_enriched_runner_without_managers() -> None:
    assert is_unmanaged(_runner(1))
    assert not is_unmanaged(_runner(2, "online"))
    assert not is_unmanaged(_failed(3))


def test_stale_uses_threshold() -> None:
    threshold = timedelta(hours=1)

    assert is_stale(_runner(1, "online", contacted_ago=timedelta(hours=2)), NOW, threshold)
    assert not is_stale(_runner(2, "online", contacted_ago=timedelta(minutes=10)), NOW, threshold)
    assert not is_stale(_runner(3), NOW, threshold)


def test_stale_counts_never_contacted_managers() -> None:
    manager = make_manager(5, "s_5", contacted_at=None)
    runner = EnrichedRunner(summary=make_summary(5), managers=(manager,))

    assert is_stale(runner, NOW, timedelta(hours=1))


def test_rotating_needs_more_than_one_manager() -> None:
    assert is_rotating(_runner(1, "online", "online"))
    assert not is_rotating(_runner(2, "online"))


def test_failed_runner_matches_no_predicate() -> None:
    runner = _failed(9)

    assert not is_fully_healthy(runner)
    assert not is_degraded(runner)
    assert not is_unmanaged(runner)
    assert not is_stale(runner, NOW)
    assert not is_rotating(runner)
    assert assess(runner, NOW) is None


def test_assess_reports_all_facts() -> None:
    facts = assess(_runner(4, "offline", "offline", contacted_ago=timedelta(days=1)), NOW)

    assert facts is not None
    assert facts.degraded and facts.stale and facts.rotating
    assert not facts.healthy and not facts.unmanaged


def test_summarize_health_ignores_failed_runners() -> None:
    runners = [_runner(1, "online"), _runner(2, "offline"), _failed(3), _runner(4)]

    summary = summarize_health(runners)

    assert summary.healthy_count == 1
    assert summary.total_count == 3


def test_detect_rotation_reports_changed_fingerprints_in_id_order() -> None:
    previous = RotationSample(
        fingerprints={7: frozenset({"a"}), 3: frozenset({"x"}), 5: frozenset({"m"})},
        taken_at=NOW,
    )
    current = RotationSample(
        fingerprints={7: frozenset({"b"}), 3: frozenset({"x", "y"}), 5: frozenset({"m"}), 8: frozenset()},
        taken_at=NOW + timedelta(seconds=30),
    )

    assert detect_rotation(previous, current) == (3, 7)


def test_take_sample_skips_failed_runners() -> None:
    sample = take_sample([_runner(1, "online"), _failed(2)], NOW)

    assert set(sample.fingerprints) == {1}
    assert sample.fingerprints[1] == frozenset({"s_1_0"})
