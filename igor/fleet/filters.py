"""Client-side filtering of enriched runners."""
from __future__ import annotations

from collections.abc import Iterable, Sequence

from igor.errors import FilterValidationError
from igor.fleet.models import RUNNER_STATUSES, RUNNER_TYPES, EnrichedRunner, FilterSpec


def apply_filters(
    runners: Sequence[EnrichedRunner],
    spec: FilterSpec,
) -> tuple[EnrichedRunner, ...]:
    """Return the runners matching every predicate present in *spec*, in order."""

    if spec.is_empty:
        return tuple(runners)
    return tuple(runner for runner in runners if matches(runner, spec))


def matches(runner: EnrichedRunner, spec: FilterSpec) -> bool:
    """Evaluate the conjunction of *spec* predicates against a single runner."""

    summary = runner.summary
    if spec.tags and not spec.tags <= summary.tag_set:
        return False
    if spec.version_prefix is not None:
        if summary.version is None or not summary.version.startswith(spec.version_prefix):
            return False
    if spec.status is not None and summary.status != spec.status:
        return False
    if spec.runner_type is not None and summary.runner_type != spec.runner_type:
        return False
    if spec.paused is not None and summary.paused != spec.paused:
        return False
    return True


def validate_filters(spec: FilterSpec) -> FilterSpec:
    """Reject unsupported or malformed filter values before any network call."""

    for tag in spec.tags:
        if not isinstance(tag, str) or not tag.strip():
            raise FilterValidationError(
                message="Tag filters cannot contain empty values.",
                remediation="Pass tags as a comma-separated list, e.g. --tags alm,production.",
            )
        if "," in tag or tag != tag.strip():
            raise FilterValidationError(
                message=f"Tag filter '{tag}' is malformed.",
                remediation="Split tags on commas and strip surrounding whitespace.",
            )

    if spec.version_prefix is not None:
        if not isinstance(spec.version_prefix, str) or not spec.version_prefix.strip():
            raise FilterValidationError(
                message="Version prefix filter cannot be empty.",
                remediation="Pass a prefix such as --version-prefix 17. or omit the option.",
            )

    if spec.status is not None and spec.status not in RUNNER_STATUSES:
        raise FilterValidationError(
            message=f"Unsupported runner status '{spec.status}'.",
            remediation=f"Use one of: {', '.join(RUNNER_STATUSES)}.",
        )

    if spec.runner_type is not None and spec.runner_type not in RUNNER_TYPES:
        raise FilterValidationError(
            message=f"Unsupported runner type '{spec.runner_type}'.",
            remediation=f"Use one of: {', '.join(RUNNER_TYPES)}.",
        )

    if spec.paused is not None and not isinstance(spec.paused, bool):
        raise FilterValidationError(
            message="Paused filter must be true or false.",
            remediation="Use --paused or --active, or omit both.",
        )

    return spec


def build_filter_spec(
    *,
    tags: str | Iterable[str] | None = None,
    version_prefix: str | None = None,
    status: str | None = None,
    runner_type: str | None = None,
    paused: bool | None = None,
) -> FilterSpec:
    """Build and validate a filter from raw user input."""

    spec = FilterSpec(
        tags=frozenset(parse_tags(tags)),
        version_prefix=version_prefix,
        status=status.strip().lower() if isinstance(status, str) else status,
        runner_type=runner_type.strip().lower() if isinstance(runner_type, str) else runner_type,
        paused=paused,
    )
    return validate_filters(spec)


def parse_tags(raw: str | Iterable[str] | None) -> tuple[str, ...]:
    """Split a comma-separated tag string, dropping surrounding whitespace."""

    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return ()
    chunks = raw.split(",") if isinstance(raw, str) else [
        part for item in raw for part in item.split(",")
    ]
    tags = tuple(chunk.strip() for chunk in chunks)
    if any(not tag for tag in tags):
        raise FilterValidationError(
            message="Tag filters cannot contain empty values.",
            remediation="Remove stray commas from the --tags value.",
        )
    return tuple(dict.fromkeys(tags))


__all__ = [
    "apply_filters",
    "build_filter_spec",
    "matches",
    "parse_tags",
    "validate_filters",
]
