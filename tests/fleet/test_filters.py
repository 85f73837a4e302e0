from __future__ import annotations

import pytest

from conftest import make_summary
from igor.errors import FilterValidationError
from igor.fleet.filters import apply_filters, build_filter_spec, matches, parse_tags, validate_filters
from igor.fleet.models import EnrichedRunner, FilterSpec


def _runner(runner_id: int, **overrides: object) -> EnrichedRunner:
    return EnrichedRunner(summary=make_summary(runner_id, **overrides))


def test_tags_require_superset() -> None:
    runner = _runner(1, tag_list=("alm", "production", "linux"))

    assert matches(runner, FilterSpec(tags=frozenset({"alm", "production"})))
    assert not matches(runner, FilterSpec(tags=frozenset({"alm", "staging"})))


def test_version_prefix_is_case_sensitive_and_skips_missing_versions() -> None:
    assert matches(_runner(1, version="17.2.1"), FilterSpec(version_prefix="17."))
    assert not matches(_runner(2, version="16.11.0"), FilterSpec(version_prefix="17."))
    assert not matches(_runner(3, version=None), FilterSpec(version_prefix="17."))
    assert not matches(_runner(4, version="v17.0"), FilterSpec(version_prefix="V17"))


def test_filters_are_a_conjunction() -> None:
    spec = FilterSpec(status="online", runner_type="instance_type", paused=False)

    assert matches(_runner(1), spec)
    assert not matches(_runner(2, paused=True), spec)
    assert not matches(_runner(3, status="offline"), spec)
    assert not matches(_runner(4, runner_type="project_type"), spec)


def test_apply_filters_preserves_order() -> None:
    runners = [_runner(index, tag_list=("a",) if index % 2 else ("b",)) for index in range(1, 7)]

    filtered = apply_filters(runners, FilterSpec(tags=frozenset({"a"})))

    assert [runner.id for runner in filtered] == [1, 3, 5]


def test_empty_spec_returns_input_unchanged() -> None:
    runners = [_runner(3), _runner(1), _runner(2)]

    assert apply_filters(runners, FilterSpec()) == tuple(runners)


def test_parse_tags_strips_and_deduplicates() -> None:
    assert parse_tags(" alm, production ,alm") == ("alm", "production")
    assert parse_tags(None) == ()
    assert parse_tags("   ") == ()


def test_parse_tags_rejects_empty_items() -> None:
    with pytest.raises(FilterValidationError):
        parse_tags("alm,,production")


@pytest.mark.parametrize(
    "spec",
    [
        FilterSpec(tags=frozenset({""})),
        FilterSpec(tags=frozenset({"a,b"})),
        FilterSpec(version_prefix="  "),
        FilterSpec(status="running"),
        FilterSpec(runner_type="shared"),
    ],
)
def test_validate_filters_rejects_unsupported_values(spec: FilterSpec) -> None:
    with pytest.raises(FilterValidationError):
        validate_filters(spec)


def test_build_filter_spec_normalizes_case() -> None:
    spec = build_filter_spec(tags="docker", status="ONLINE", runner_type="Group_Type", paused=True)

    assert spec == FilterSpec(
        tags=frozenset({"docker"}),
        status="online",
        runner_type="group_type",
        paused=True,
    )


def test_filtering_is_idempotent_and_never_grows() -> None:
    runners = [
        _runner(1, version="17.1.0", tag_list=("alm",)),
        _runner(2, version="16.9.0", tag_list=("alm",)),
        _runner(3, version="17.0.1", tag_list=("ops",)),
    ]
    spec = FilterSpec(tags=frozenset({"alm"}), version_prefix="17.")

    once = apply_filters(runners, spec)
    twice = apply_filters(once, spec)

    assert once == twice
    assert [runner.id for runner in once] == [1]
    assert len(once) <= len(runners)
