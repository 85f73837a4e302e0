"""Runner fleet data model, filtering and classification."""
from __future__ import annotations

from .classification import (
    DEFAULT_STALE_THRESHOLD,
    HealthFacts,
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
from .filters import apply_filters, build_filter_spec, parse_tags, validate_filters
from .models import (
    EnrichedRunner,
    FilterSpec,
    GitLabUser,
    HealthSummary,
    ManagerRecord,
    ManagerRow,
    RotationEvent,
    RotationSample,
    RunnerPage,
    RunnerSummary,
)

__all__ = [
    "DEFAULT_STALE_THRESHOLD",
    "EnrichedRunner",
    "FilterSpec",
    "GitLabUser",
    "HealthFacts",
    "HealthSummary",
    "ManagerRecord",
    "ManagerRow",
    "RotationEvent",
    "RotationSample",
    "RunnerPage",
    "RunnerSummary",
    "apply_filters",
    "assess",
    "build_filter_spec",
    "detect_rotation",
    "is_degraded",
    "is_fully_healthy",
    "is_rotating",
    "is_stale",
    "is_unmanaged",
    "parse_tags",
    "summarize_health",
    "take_sample",
    "validate_filters",
]
