"""Online connectivity check against the configured GitLab host."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Protocol, Tuple

from igor.errors import TimeoutExceededError
from igor.fleet.models import GitLabUser
from igor.orchestration.diagnostics import (
    HealthCheck,
    check_host,
    check_proxy_configuration,
    check_token,
    format_python_version,
)
from igor.configuration import AppConfig

logger = logging.getLogger("igor.orchestration.connectivity")

_DEFAULT_BUDGET_SECONDS = 30.0


class UserLookup(Protocol):
    async def fetch_current_user(self) -> GitLabUser: ...


@dataclass(frozen=True)
class ConnectivityResult:
    """Aggregated outcome of the connectivity workflow."""

    python_version: str
    gitlab_host: str
    user: GitLabUser
    duration_seconds: float
    checks: Tuple[HealthCheck, ...]

    @property
    def overall_status(self) -> str:
        return "PASS" if all(check.status == "PASS" for check in self.checks) else "FAIL"


async def run_connectivity_check(
    client: UserLookup,
    config: AppConfig,
    *,
    max_duration_seconds: float = _DEFAULT_BUDGET_SECONDS,
) -> ConnectivityResult:
    """Authenticate against ``/user`` and report who the token belongs to.

    API failures propagate as Igor errors so the CLI can map them onto exit
    codes exactly as it does for queries.
    """

    start = time.perf_counter()
    logger.info("Starting connectivity check", extra={"gitlab_host": config.gitlab_host})

    host_check = check_host(config)
    token_check = check_token(config)
    proxy_check = check_proxy_configuration()

    user = await client.fetch_current_user()
    duration = time.perf_counter() - start
    logger.info("Connectivity check duration", extra={"seconds": duration})

    if duration > max_duration_seconds:
        raise TimeoutExceededError(
            message=(
                f"Connectivity check exceeded the {max_duration_seconds:.0f}-second budget with "
                f"{duration:.2f} seconds elapsed."
            ),
            remediation="Retry on a faster connection or verify proxy settings.",
        )

    checks = (
        host_check,
        token_check,
        proxy_check,
        _build_user_check(user),
        HealthCheck(
            name="API latency",
            status="PASS",
            detail=f"Responded in {duration:.2f} seconds (budget {max_duration_seconds:.0f}s).",
        ),
    )
    return ConnectivityResult(
        python_version=format_python_version(),
        gitlab_host=config.gitlab_host,
        user=user,
        duration_seconds=duration,
        checks=checks,
    )


def _build_user_check(user: GitLabUser) -> HealthCheck:
    """Translate the token owner into a diagnostics check."""

    if user.state != "active" or user.locked:
        return HealthCheck(
            name="Token owner",
            status="FAIL",
            detail=f"Token belongs to @{user.username}, whose account is {user.state}.",
            remediation="Use a token from an active, unlocked account.",
        )

    kind = "bot" if user.bot else "user"
    return HealthCheck(
        name="Token owner",
        status="PASS",
        detail=f"Authenticated as @{user.username} ({user.name}, {kind}).",
    )


__all__ = ["ConnectivityResult", "UserLookup", "run_connectivity_check"]
