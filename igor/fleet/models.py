"""Dataclasses describing runners, managers and query inputs for Igor."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Mapping, Tuple

from igor.errors import MalformedResponseError
from igor.utils import parse_timestamp

RunnerStatus = Literal["online", "offline", "stale", "never_contacted"]
RunnerType = Literal["instance_type", "group_type", "project_type"]

RUNNER_STATUSES: tuple[str, ...] = ("online", "offline", "stale", "never_contacted")
RUNNER_TYPES: tuple[str, ...] = ("instance_type", "group_type", "project_type")
ONLINE_STATUS = "online"


@dataclass(frozen=True)
class RunnerSummary:
    """A runner as listed by the fleet API, optionally refreshed from its detail."""

    id: int
    runner_type: str
    status: str
    paused: bool
    description: str | None = None
    tag_list: Tuple[str, ...] = ()
    version: str | None = None
    active: bool = True
    is_shared: bool = False
    ip_address: str | None = None
    name: str | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:  # pragma: no cover - simple normalization
        object.__setattr__(self, "tag_list", tuple(self.tag_list))

    @property
    def tag_set(self) -> frozenset[str]:
        """Return the runner tags as a set for membership checks."""

        return frozenset(self.tag_list)

    @classmethod
    def from_api(cls, payload: object) -> RunnerSummary:
        """Build a summary from a ``/runners`` payload, validating its schema."""

        data = _require_mapping(payload, "runner")
        runner_id = _require_int(data, "id", "runner")
        context = f"runner {runner_id}"
        tags = data.get("tag_list") or []
        if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
            raise MalformedResponseError(
                message=f"Field 'tag_list' of {context} must be a list of strings.",
            )

        return cls(
            id=runner_id,
            runner_type=_require_str(data, "runner_type", context),
            status=_require_str(data, "status", context),
            paused=_optional_bool(data, "paused", context, default=False),
            description=_optional_str(data, "description", context),
            tag_list=tuple(tags),
            version=_optional_str(data, "version", context),
            active=_optional_bool(data, "active", context, default=True),
            is_shared=_optional_bool(data, "is_shared", context, default=False),
            ip_address=_optional_str(data, "ip_address", context),
            name=_optional_str(data, "name", context),
            created_at=_optional_timestamp(data, "created_at", context),
        )


@dataclass(frozen=True)
class ManagerRecord:
    """A runner manager process, referencing its runner by ID only."""

    id: int
    system_id: str
    runner_id: int
    status: str
    created_at: datetime | None = None
    contacted_at: datetime | None = None
    ip_address: str | None = None
    version: str | None = None
    revision: str | None = None
    platform: str | None = None
    architecture: str | None = None

    @property
    def is_online(self) -> bool:
        return self.status == ONLINE_STATUS

    @classmethod
    def from_api(cls, payload: object, *, runner_id: int) -> ManagerRecord:
        """Build a manager from a ``/runners/:id/managers`` payload entry."""

        context = f"manager of runner {runner_id}"
        data = _require_mapping(payload, context)
        return cls(
            id=_require_int(data, "id", context),
            system_id=_require_str(data, "system_id", context),
            runner_id=runner_id,
            status=_require_str(data, "status", context),
            created_at=_optional_timestamp(data, "created_at", context),
            contacted_at=_optional_timestamp(data, "contacted_at", context),
            ip_address=_optional_str(data, "ip_address", context),
            version=_optional_str(data, "version", context),
            revision=_optional_str(data, "revision", context),
            platform=_optional_str(data, "platform", context),
            architecture=_optional_str(data, "architecture", context),
        )


@dataclass(frozen=True)
class EnrichedRunner:
    """A runner summary merged with its managers, or marked as failed to enrich."""

    summary: RunnerSummary
    managers: Tuple[ManagerRecord, ...] = ()
    enrichment_error: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "managers", tuple(self.managers))
        if self.enrichment_error is not None and self.managers:
            raise ValueError(f"Runner {self.summary.id} failed enrichment but carries managers.")
        for manager in self.managers:
            if manager.runner_id != self.summary.id:
                raise ValueError(
                    f"Manager {manager.id} belongs to runner {manager.runner_id}, "
                    f"not runner {self.summary.id}."
                )

    @property
    def id(self) -> int:
        return self.summary.id

    @property
    def enriched(self) -> bool:
        """Return True when detail and manager data were fetched successfully."""

        return self.enrichment_error is None


@dataclass(frozen=True)
class FilterSpec:
    """Optional predicates applied to a query; absent fields are unconstrained."""

    tags: frozenset[str] = frozenset()
    version_prefix: str | None = None
    status: str | None = None
    runner_type: str | None = None
    paused: bool | None = None

    def __post_init__(self) -> None:  # pragma: no cover - simple normalization
        object.__setattr__(self, "tags", frozenset(self.tags))

    @property
    def is_empty(self) -> bool:
        return (
            not self.tags
            and self.version_prefix is None
            and self.status is None
            and self.runner_type is None
            and self.paused is None
        )

    def server_side(self) -> dict[str, str]:
        """Return the query parameters the API can evaluate natively."""

        params: dict[str, str] = {}
        if self.status is not None:
            params["status"] = self.status
        if self.runner_type is not None:
            params["type"] = self.runner_type
        if self.paused is not None:
            params["paused"] = "true" if self.paused else "false"
        return params


@dataclass(frozen=True)
class RunnerPage:
    """One page of runner summaries and the token for the next page, if any."""

    items: Tuple[RunnerSummary, ...]
    next_page_token: str | None = None

    def __post_init__(self) -> None:  # pragma: no cover - simple normalization
        object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class ManagerRow:
    """Flattened runner/manager pair for manager-centric reports."""

    runner_id: int
    runner_tags: Tuple[str, ...]
    manager: ManagerRecord


@dataclass(frozen=True)
class HealthSummary:
    """Count of fully healthy runners among those that could be classified."""

    healthy_count: int
    total_count: int

    @property
    def percentage(self) -> float:
        if self.total_count == 0:
            return 0.0
        return self.healthy_count / self.total_count * 100.0

    @property
    def is_healthy(self) -> bool:
        return self.total_count > 0 and self.healthy_count == self.total_count


@dataclass(frozen=True)
class RotationSample:
    """Manager identity fingerprints per runner at a single poll tick."""

    fingerprints: Mapping[int, frozenset[str]]
    taken_at: datetime


@dataclass(frozen=True)
class RotationEvent:
    """Runners whose manager set changed between two consecutive samples."""

    runner_ids: Tuple[int, ...]
    detected_at: datetime


@dataclass(frozen=True)
class GitLabUser:
    """Owner of the access token, reported by the connectivity check."""

    username: str
    name: str
    state: str
    bot: bool = False
    locked: bool = False
    avatar_url: str | None = None
    last_sign_in_at: datetime | None = None

    @classmethod
    def from_api(cls, payload: object) -> GitLabUser:
        data = _require_mapping(payload, "user")
        return cls(
            username=_require_str(data, "username", "user"),
            name=_require_str(data, "name", "user"),
            state=_require_str(data, "state", "user"),
            bot=_optional_bool(data, "bot", "user", default=False),
            locked=_optional_bool(data, "locked", "user", default=False),
            avatar_url=_optional_str(data, "avatar_url", "user"),
            last_sign_in_at=_optional_timestamp(data, "last_sign_in_at", "user"),
        )


def _require_mapping(payload: object, context: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise MalformedResponseError(
            message=f"Expected a JSON object for {context}, got {type(payload).__name__}.",
        )
    return payload


def _require_int(data: Mapping[str, Any], key: str, context: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedResponseError(message=f"Field '{key}' of {context} must be an integer.")
    return value


def _require_str(data: Mapping[str, Any], key: str, context: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise MalformedResponseError(message=f"Field '{key}' of {context} must be a string.")
    return value


def _optional_str(data: Mapping[str, Any], key: str, context: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedResponseError(message=f"Field '{key}' of {context} must be a string.")
    return value


def _optional_bool(data: Mapping[str, Any], key: str, context: str, *, default: bool) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise MalformedResponseError(message=f"Field '{key}' of {context} must be a boolean.")
    return value


def _optional_timestamp(data: Mapping[str, Any], key: str, context: str) -> datetime | None:
    try:
        return parse_timestamp(data.get(key))
    except ValueError as exc:
        raise MalformedResponseError(
            message=f"Field '{key}' of {context} is not a valid timestamp.",
        ) from exc


__all__ = [
    "ONLINE_STATUS",
    "RUNNER_STATUSES",
    "RUNNER_TYPES",
    "EnrichedRunner",
    "FilterSpec",
    "GitLabUser",
    "HealthSummary",
    "ManagerRecord",
    "ManagerRow",
    "RotationEvent",
    "RotationSample",
    "RunnerPage",
    "RunnerStatus",
    "RunnerSummary",
    "RunnerType",
]
