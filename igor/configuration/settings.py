"""Application settings loaded from YAML and the environment."""
from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml

from igor.errors import ConfigurationError

CONFIG_FILENAME = "config.yaml"
_ENV_OVERRIDES = {
    "GITLAB_HOST": "gitlab_host",
    "GITLAB_TOKEN": "gitlab_token",
}
_POSITIVE_INT_FIELDS = ("poll_timeout_seconds", "max_concurrency", "per_page", "stale_threshold_seconds")
_POSITIVE_FLOAT_FIELDS = ("poll_interval_seconds", "request_timeout_seconds")


@dataclass(frozen=True)
class AppConfig:
    """Resolved settings; CLI flags override environment, which overrides the file."""

    gitlab_host: str = "https://gitlab.com"
    gitlab_token: str | None = None
    poll_interval_seconds: float = 30.0
    poll_timeout_seconds: int = 1800
    request_timeout_seconds: float = 10.0
    max_concurrency: int = 8
    per_page: int = 100
    max_pages: int | None = None
    stale_threshold_seconds: int = 3600
    source: Path | None = None

    def with_overrides(self, **overrides: object) -> AppConfig:
        """Return a copy with every non-``None`` override applied and validated."""

        applied = {key: value for key, value in overrides.items() if value is not None}
        if not applied:
            return self
        updated = replace(self, **applied)
        _validate(updated, origin="command line")
        return updated


def default_config_paths(cwd: Path | None = None, home: Path | None = None) -> tuple[Path, ...]:
    """Candidate configuration files, highest priority first."""

    working_dir = cwd or Path.cwd()
    config_home = os.getenv("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else (home or Path.home()) / ".config"
    return (working_dir / CONFIG_FILENAME, base / "igor" / CONFIG_FILENAME)


def load_config(
    paths: Sequence[Path] | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load the first existing config file and apply environment overrides."""

    env = os.environ if environ is None else environ
    config = AppConfig()

    for path in paths if paths is not None else default_config_paths():
        candidate = path.expanduser()
        if candidate.is_file():
            config = _config_from_file(candidate)
            break

    env_values = {
        field_name: env[variable].strip()
        for variable, field_name in _ENV_OVERRIDES.items()
        if env.get(variable, "").strip()
    }
    if env_values:
        config = replace(config, **env_values)
        _validate(config, origin="environment")
    return config


def _config_from_file(path: Path) -> AppConfig:
    try:
        raw_text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(
            message=f"Unable to read configuration file {path}.",
            remediation="Check file permissions and retry.",
        ) from exc

    try:
        loaded = yaml.safe_load(raw_text) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            message=f"Configuration file {path} contains invalid YAML.",
            remediation="Fix the YAML syntax or remove the file to use defaults.",
        ) from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(
            message=f"Configuration file {path} must define a mapping at the root level.",
            remediation="Use 'key: value' pairs such as 'poll_interval_seconds: 30'.",
        )

    known = {item.name for item in fields(AppConfig)} - {"source"}
    unknown = sorted(str(key) for key in loaded if key not in known)
    if unknown:
        raise ConfigurationError(
            message=f"Configuration file {path} has unknown keys: {', '.join(unknown)}.",
            remediation=f"Supported keys: {', '.join(sorted(known))}.",
        )

    config = replace(AppConfig(), source=path, **loaded)
    _validate(config, origin=str(path))
    return config


def _validate(config: AppConfig, *, origin: str) -> None:
    if not isinstance(config.gitlab_host, str) or not config.gitlab_host.strip():
        raise ConfigurationError(
            message=f"gitlab_host from {origin} must be a non-empty URL.",
            remediation="Set gitlab_host to e.g. https://gitlab.example.com.",
        )
    if config.gitlab_token is not None and not isinstance(config.gitlab_token, str):
        raise ConfigurationError(
            message=f"gitlab_token from {origin} must be a string.",
            remediation="Quote the token value in config.yaml.",
        )

    for name in _POSITIVE_INT_FIELDS:
        value = getattr(config, name)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigurationError(
                message=f"{name} from {origin} must be a positive integer, got {value!r}.",
                remediation=f"Set {name} to a whole number greater than zero.",
            )

    for name in _POSITIVE_FLOAT_FIELDS:
        value = getattr(config, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigurationError(
                message=f"{name} from {origin} must be a positive number, got {value!r}.",
                remediation=f"Set {name} to a number of seconds greater than zero.",
            )

    if config.max_pages is not None and (
        isinstance(config.max_pages, bool) or not isinstance(config.max_pages, int) or config.max_pages <= 0
    ):
        raise ConfigurationError(
            message=f"max_pages from {origin} must be a positive integer, got {config.max_pages!r}.",
            remediation="Remove max_pages to fetch every page, or set a limit above zero.",
        )


__all__ = ["AppConfig", "CONFIG_FILENAME", "default_config_paths", "load_config"]
