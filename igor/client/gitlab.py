"""Async HTTP client for the GitLab runners API."""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

import httpx

from igor.errors import (
    ApiRequestError,
    AuthenticationError,
    ConfigurationError,
    HostUnreachableError,
    MalformedResponseError,
    TransientNetworkError,
)
from igor.fleet.models import GitLabUser, ManagerRecord, RunnerPage, RunnerSummary

logger = logging.getLogger("igor.client.gitlab")

DEFAULT_HOST = "https://gitlab.com"
DEFAULT_PER_PAGE = 100
DEFAULT_TIMEOUT_SECONDS = 10.0
_API_PREFIX = "/api/v4"
_NEXT_PAGE_HEADER = "x-next-page"


class FleetClient(Protocol):
    """Operations the orchestration layer needs from the fleet API."""

    async def fetch_page(
        self,
        server_side_filters: Mapping[str, str],
        page_token: str | None,
    ) -> RunnerPage: ...

    async def fetch_detail(self, runner_id: int) -> RunnerSummary: ...

    async def fetch_managers(self, runner_id: int) -> tuple[ManagerRecord, ...]: ...


class GitLabClient:
    """Thin async wrapper around ``/api/v4`` runner endpoints.

    Transport failures are translated into the Igor error taxonomy so callers
    can decide between aborting, retrying and recording a per-runner failure.
    """

    def __init__(
        self,
        host: str,
        token: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        per_page: int = DEFAULT_PER_PAGE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.host = _normalize_host(host)
        if not token or not token.strip():
            raise ConfigurationError(
                message="No GitLab access token configured.",
                remediation="Set GITLAB_TOKEN, pass --token, or add gitlab_token to config.yaml.",
            )
        if per_page < 1:
            raise ConfigurationError(
                message=f"Page size must be positive, got {per_page}.",
                remediation="Set per_page to a value between 1 and 100.",
            )

        self.per_page = per_page
        self._client = httpx.AsyncClient(
            base_url=f"{self.host}{_API_PREFIX}",
            headers={"PRIVATE-TOKEN": token.strip(), "Accept": "application/json"},
            timeout=timeout_seconds,
            transport=transport,
            follow_redirects=True,
            trust_env=True,
        )

    async def __aenter__(self) -> GitLabClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_page(
        self,
        server_side_filters: Mapping[str, str],
        page_token: str | None,
    ) -> RunnerPage:
        """Fetch one page of ``/runners/all``; a ``None`` token means the first page."""

        page = _parse_page_token(page_token)
        params: dict[str, str | int] = {"per_page": self.per_page, "page": page}
        params.update(server_side_filters)

        response = await self._get("/runners/all", params=params)
        payload = _decode(response, "runner list")
        if not isinstance(payload, list):
            raise MalformedResponseError(message="Runner list response must be a JSON array.")

        items = tuple(RunnerSummary.from_api(item) for item in payload)
        next_token = _next_page_token(response, page=page, count=len(items), per_page=self.per_page)
        logger.debug(
            "Fetched runner page",
            extra={"page": page, "count": len(items), "next_page": next_token},
        )
        return RunnerPage(items=items, next_page_token=next_token)

    async def fetch_detail(self, runner_id: int) -> RunnerSummary:
        response = await self._get(f"/runners/{runner_id}")
        return RunnerSummary.from_api(_decode(response, f"runner {runner_id} detail"))

    async def fetch_managers(self, runner_id: int) -> tuple[ManagerRecord, ...]:
        """Fetch the managers of a runner; a 404 means it has none."""

        response = await self._get(f"/runners/{runner_id}/managers", allow_not_found=True)
        if response is None:
            return ()
        payload = _decode(response, f"runner {runner_id} managers")
        if not isinstance(payload, list):
            raise MalformedResponseError(
                message=f"Manager list for runner {runner_id} must be a JSON array.",
            )
        return tuple(ManagerRecord.from_api(item, runner_id=runner_id) for item in payload)

    async def fetch_current_user(self) -> GitLabUser:
        response = await self._get("/user")
        return GitLabUser.from_api(_decode(response, "current user"))

    async def _get(
        self,
        path: str,
        *,
        params: Mapping[str, str | int] | None = None,
        allow_not_found: bool = False,
    ) -> httpx.Response | None:
        try:
            response = await self._client.get(path, params=params)
        except httpx.ConnectError as exc:
            raise HostUnreachableError(
                message=f"Unable to reach GitLab host {self.host}.",
                remediation="Verify GITLAB_HOST, DNS resolution and HTTPS_PROXY settings.",
            ) from exc
        except httpx.TimeoutException as exc:
            raise TransientNetworkError(
                message=f"Request to {path} timed out.",
                remediation="Retry on a stable connection or raise request_timeout_seconds.",
            ) from exc
        except httpx.TransportError as exc:
            raise TransientNetworkError(
                message=f"Network error while requesting {path}: {exc}.",
                remediation="Retry on a stable connection.",
            ) from exc

        status = response.status_code
        if status in (401, 403):
            raise AuthenticationError(
                message=f"GitLab rejected the access token ({status}).",
                remediation="Check that GITLAB_TOKEN is valid and has the read_api scope.",
                status_code=status,
            )
        if status == 404 and allow_not_found:
            return None
        if status >= 500:
            raise TransientNetworkError(
                message=f"GitLab responded with status {status} for {path}.",
                remediation="Check https://status.gitlab.com/ or retry shortly.",
                status_code=status,
            )
        if status >= 400:
            raise ApiRequestError(
                message=f"GitLab responded with status {status} for {path}.",
                remediation="Verify the filter values and token permissions.",
                status_code=status,
            )
        return response


def _normalize_host(host: str) -> str:
    value = (host or "").strip().rstrip("/")
    if not value.startswith(("http://", "https://")):
        raise ConfigurationError(
            message=f"GitLab host '{host}' must start with http:// or https://.",
            remediation="Set GITLAB_HOST to a full URL such as https://gitlab.example.com.",
        )
    return value


def _parse_page_token(page_token: str | None) -> int:
    if page_token is None:
        return 1
    try:
        page = int(page_token)
    except ValueError as exc:
        raise MalformedResponseError(message=f"Invalid page token '{page_token}'.") from exc
    if page < 1:
        raise MalformedResponseError(message=f"Invalid page token '{page_token}'.")
    return page


def _next_page_token(response: httpx.Response, *, page: int, count: int, per_page: int) -> str | None:
    header = response.headers.get(_NEXT_PAGE_HEADER)
    if header is not None:
        return header.strip() or None
    # Without pagination headers a full page implies there may be more.
    if count >= per_page:
        return str(page + 1)
    return None


def _decode(response: httpx.Response, context: str) -> object:
    try:
        return response.json()
    except ValueError as exc:
        raise MalformedResponseError(
            message=f"GitLab returned invalid JSON for {context}.",
            remediation="Verify GITLAB_HOST points at the API server rather than a proxy page.",
            status_code=response.status_code,
        ) from exc


__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_PER_PAGE",
    "DEFAULT_TIMEOUT_SECONDS",
    "FleetClient",
    "GitLabClient",
]
