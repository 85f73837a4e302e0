"""Offline diagnostics helpers for the Igor CLI."""
from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Mapping, Tuple
from urllib.parse import urlparse

from igor.configuration import AppConfig

_PROXY_VARIABLES = ("HTTPS_PROXY", "HTTP_PROXY", "NO_PROXY")


@dataclass(frozen=True)
class HealthCheck:
    """Represents the outcome of an individual health validation."""

    name: str
    status: str
    detail: str
    remediation: str | None = None


@dataclass(frozen=True)
class HealthReport:
    """Aggregated offline diagnostics for the Igor CLI."""

    python_version: str
    gitlab_host: str
    checks: Tuple[HealthCheck, ...]

    @property
    def overall_status(self) -> str:
        """Summarise overall readiness based on individual checks."""

        return "PASS" if all(check.status == "PASS" for check in self.checks) else "FAIL"


def collect_health_report(config: AppConfig) -> HealthReport:
    """Gather diagnostics without contacting the GitLab host."""

    checks = (
        check_python_version(),
        check_config_file(config),
        check_host(config),
        check_token(config),
        check_proxy_configuration(),
    )
    return HealthReport(
        python_version=format_python_version(),
        gitlab_host=config.gitlab_host,
        checks=checks,
    )


def check_python_version() -> HealthCheck:
    version = format_python_version()
    if sys.version_info >= (3, 10):
        return HealthCheck(
            name="Python runtime",
            status="PASS",
            detail=f"Detected Python {version}; compatible with Igor requirements.",
        )

    return HealthCheck(
        name="Python runtime",
        status="FAIL",
        detail=f"Detected Python {version}; Igor requires 3.10 or newer.",
        remediation="Install Python 3.10+ and recreate the virtual environment.",
    )


def check_config_file(config: AppConfig) -> HealthCheck:
    if config.source is not None:
        return HealthCheck(
            name="Configuration file",
            status="PASS",
            detail=f"Loaded settings from {config.source}.",
        )
    return HealthCheck(
        name="Configuration file",
        status="PASS",
        detail="No config.yaml found; using built-in defaults and environment variables.",
    )


def check_host(config: AppConfig) -> HealthCheck:
    parsed = urlparse(config.gitlab_host)
    if parsed.scheme in {"http", "https"} and parsed.netloc:
        detail = f"GitLab host set to {config.gitlab_host}."
        if parsed.scheme == "http":
            detail += " Plain HTTP will send the token unencrypted."
        return HealthCheck(name="GitLab host", status="PASS", detail=detail)

    return HealthCheck(
        name="GitLab host",
        status="FAIL",
        detail=f"GitLab host {config.gitlab_host!r} is not an http(s) URL.",
        remediation="Set GITLAB_HOST or gitlab_host to e.g. https://gitlab.example.com.",
    )


def check_token(config: AppConfig) -> HealthCheck:
    token = config.gitlab_token or ""
    if token.strip():
        return HealthCheck(
            name="GitLab token",
            status="PASS",
            detail=f"Access token configured ({len(token.strip())} characters).",
        )

    return HealthCheck(
        name="GitLab token",
        status="FAIL",
        detail="No GitLab access token is configured.",
        remediation=(
            "Export GITLAB_TOKEN with a token that has the read_api scope "
            "and administrator access to instance runners."
        ),
    )


def check_proxy_configuration(environ: Mapping[str, str] | None = None) -> HealthCheck:
    configured = [name for name, value in get_proxy_environment(environ).items() if value]
    if configured:
        detail = f"Proxy variables detected: {', '.join(configured)}."
    else:
        detail = "No proxy environment variables detected; direct access assumed."
    return HealthCheck(name="Proxy configuration", status="PASS", detail=detail)


def get_proxy_environment(environ: Mapping[str, str] | None = None) -> dict[str, str | None]:
    """Return the proxy-related environment variables, upper or lower case."""

    env = os.environ if environ is None else environ
    return {name: env.get(name) or env.get(name.lower()) for name in _PROXY_VARIABLES}


def format_python_version() -> str:
    return f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"


__all__ = [
    "HealthCheck",
    "HealthReport",
    "check_config_file",
    "check_host",
    "check_proxy_configuration",
    "check_python_version",
    "check_token",
    "collect_health_report",
    "format_python_version",
    "get_proxy_environment",
]
