from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Optional

import typer
from rich.logging import RichHandler

from . import IgorError, __version__
from .client import GitLabClient
from .configuration import AppConfig, load_config
from .exit_codes import ExitCode
from .fleet import FilterSpec, build_filter_spec
from .orchestration import (
    Command,
    Conductor,
    ConnectivityResult,
    ExecutionOutcome,
    HealthReport,
    PollUpdate,
    collect_health_report,
    execute_poll,
    execute_query,
    execute_watch,
    handle_domain_error,
    run_connectivity_check,
)
from .reporting import render_poll_update, render_query_result, render_rotation_event
from .utils import utc_now

APP_NAME = "igor"
_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

app = typer.Typer(
    name=APP_NAME,
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
logger = logging.getLogger("igor.cli")


def configure_logging(*, quiet: bool = False) -> None:
    """Initialise application-wide logging."""

    level = logging.WARNING if quiet else logging.INFO
    root = logging.getLogger()

    if getattr(configure_logging, "_configured", False):
        root.setLevel(level)
        for handler in root.handlers:
            handler.setLevel(level)
        configure_logging._level = level
        return

    handler = RichHandler(
        rich_tracebacks=True,
        show_path=False,
        markup=False,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))

    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    configure_logging._configured = True
    configure_logging._level = level


def build_client(config: AppConfig) -> GitLabClient:
    """Create the API client for *config*; tests replace this factory."""

    return GitLabClient(
        config.gitlab_host,
        config.gitlab_token or "",
        timeout_seconds=config.request_timeout_seconds,
        per_page=config.per_page,
    )


def build_conductor(client: GitLabClient, config: AppConfig) -> Conductor:
    return Conductor(
        client,
        max_concurrency=config.max_concurrency,
        max_pages=config.max_pages,
        stale_threshold=timedelta(seconds=config.stale_threshold_seconds),
    )


def _is_quiet_mode() -> bool:
    """Determine if the CLI is currently running in quiet mode."""

    return getattr(configure_logging, "_level", logging.INFO) == logging.WARNING


def _exit_for_error(error: IgorError) -> typer.Exit:
    outcome = handle_domain_error(error)
    return typer.Exit(code=int(outcome.exit_code))


def _resolve_settings(**overrides: object) -> AppConfig:
    return load_config().with_overrides(**overrides)


def _run_async(coroutine) -> ExecutionOutcome:
    try:
        return asyncio.run(coroutine)
    except KeyboardInterrupt:
        logger.warning("Interrupted; abandoning in-flight requests.")
        return ExecutionOutcome(exit_code=ExitCode.CANCELLED, status="cancelled")


def _render_health_report(report: HealthReport) -> None:
    """Pretty-print the offline diagnostics to the console."""

    typer.echo("Igor environment diagnostics")
    typer.echo(f"Python runtime : {report.python_version}")
    typer.echo(f"GitLab host    : {report.gitlab_host}")
    typer.echo("")
    for check in report.checks:
        typer.echo(f"[{check.status}] {check.name} - {check.detail}")
        if check.remediation:
            typer.echo(f"    Remediation: {check.remediation}")
    typer.echo("")
    typer.echo(f"Overall status: {report.overall_status}")


def _render_connectivity_result(result: ConnectivityResult, *, quiet: bool) -> None:
    if quiet:
        typer.echo(
            f"Connectivity {result.overall_status} in {result.duration_seconds:.2f}s "
            f"as @{result.user.username}"
        )
        for check in result.checks:
            typer.echo(f"[{check.status}] {check.name}")
        return

    typer.echo("Igor connectivity check")
    typer.echo(f"Python runtime : {result.python_version}")
    typer.echo(f"GitLab host    : {result.gitlab_host}")
    typer.echo(f"Duration       : {result.duration_seconds:.2f}s")
    typer.echo("")
    for check in result.checks:
        typer.echo(f"[{check.status}] {check.name} - {check.detail}")
        if check.remediation:
            typer.echo(f"    Remediation: {check.remediation}")
    typer.echo("")
    typer.echo(f"Overall status: {result.overall_status}")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    quiet: bool = typer.Option(
        False,
        "--quiet",
        help="Reduce log output to warnings and errors.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the Igor version and exit.",
    ),
    health: bool = typer.Option(
        False,
        "--health",
        help="Run offline diagnostics without contacting GitLab.",
    ),
) -> None:
    """Query and monitor a GitLab runner fleet."""

    configure_logging(quiet=quiet)

    if version:
        typer.echo(__version__)
        raise typer.Exit(code=int(ExitCode.SUCCESS))

    if health:
        try:
            config = load_config()
        except IgorError as exc:
            raise _exit_for_error(exc) from exc
        _render_health_report(collect_health_report(config))
        raise typer.Exit(code=int(ExitCode.SUCCESS))

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=int(ExitCode.SUCCESS))


@app.command("query")
def query(
    command: Command = typer.Argument(..., case_sensitive=False, help="Report to run."),
    tags: Optional[str] = typer.Option(None, "--tags", "-t", help="Comma-separated tags; all must match."),
    version_prefix: Optional[str] = typer.Option(
        None, "--version-prefix", "-v", help="Only runners whose version starts with this prefix."
    ),
    status: Optional[str] = typer.Option(
        None, "--status", "-s", help="online, offline, stale or never_contacted."
    ),
    runner_type: Optional[str] = typer.Option(
        None, "--type", help="instance_type, group_type or project_type."
    ),
    paused: Optional[bool] = typer.Option(
        None, "--paused/--active", help="Restrict to paused or active runners."
    ),
    max_pages: Optional[int] = typer.Option(None, "--max-pages", help="Stop paginating after N pages."),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-c", help="Maximum in-flight enrichment requests."
    ),
    host: Optional[str] = typer.Option(None, "--host", help="GitLab base URL."),
    token: Optional[str] = typer.Option(None, "--token", help="GitLab access token."),
) -> None:
    """Run a one-shot fleet report."""

    try:
        filters = build_filter_spec(
            tags=tags,
            version_prefix=version_prefix,
            status=status,
            runner_type=runner_type,
            paused=paused,
        )
        config = _resolve_settings(
            gitlab_host=host,
            gitlab_token=token,
            max_pages=max_pages,
            max_concurrency=concurrency,
        )
        client = build_client(config)
    except IgorError as exc:
        raise _exit_for_error(exc) from exc

    async def _query() -> ExecutionOutcome:
        async with client:
            return await execute_query(build_conductor(client, config), command, filters)

    outcome = _run_async(_query())
    if outcome.result is not None:
        typer.echo(render_query_result(outcome.result, now=utc_now()))
    if outcome.message and outcome.result is not None:
        logger.info(outcome.message)
    raise typer.Exit(code=int(outcome.exit_code))


@app.command("watch")
def watch(
    command: Optional[Command] = typer.Option(
        None,
        "--command",
        case_sensitive=False,
        help="Re-run this report on every poll until the timeout instead of waiting for a rotation.",
    ),
    interval: Optional[float] = typer.Option(None, "--interval", "-i", help="Seconds between polls."),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Give up after this many seconds."),
    tags: Optional[str] = typer.Option(None, "--tags", "-t", help="Comma-separated tags; all must match."),
    version_prefix: Optional[str] = typer.Option(None, "--version-prefix", "-v"),
    runner_type: Optional[str] = typer.Option(None, "--type"),
    host: Optional[str] = typer.Option(None, "--host", help="GitLab base URL."),
    token: Optional[str] = typer.Option(None, "--token", help="GitLab access token."),
) -> None:
    """Poll until a runner's manager set rotates, or re-run a report on every poll."""

    try:
        filters = build_filter_spec(tags=tags, version_prefix=version_prefix, runner_type=runner_type)
        config = _resolve_settings(
            gitlab_host=host,
            gitlab_token=token,
            poll_interval_seconds=interval,
            poll_timeout_seconds=timeout,
        )
        client = build_client(config)
    except IgorError as exc:
        raise _exit_for_error(exc) from exc

    if command is not None:
        _poll_report(client, config, command, filters)

    logger.info(
        "Watching for rotation",
        extra={"interval": config.poll_interval_seconds, "timeout": config.poll_timeout_seconds},
    )

    async def _watch() -> ExecutionOutcome:
        async with client:
            return await execute_watch(
                build_conductor(client, config),
                interval=config.poll_interval_seconds,
                timeout=config.poll_timeout_seconds,
                filters=filters,
            )

    outcome = _run_async(_watch())
    if outcome.rotation is not None:
        typer.echo(render_rotation_event(outcome.rotation))
    raise typer.Exit(code=int(outcome.exit_code))


def _poll_report(client: GitLabClient, config: AppConfig, command: Command, filters: FilterSpec) -> None:
    logger.info(
        "Polling report",
        extra={
            "command": str(command),
            "interval": config.poll_interval_seconds,
            "timeout": config.poll_timeout_seconds,
        },
    )

    def _show(update: PollUpdate) -> None:
        typer.echo(render_poll_update(update, now=utc_now()))

    async def _poll() -> ExecutionOutcome:
        async with client:
            return await execute_poll(
                build_conductor(client, config),
                command,
                interval=config.poll_interval_seconds,
                timeout=config.poll_timeout_seconds,
                filters=filters,
                on_update=_show,
            )

    outcome = _run_async(_poll())
    if outcome.message and outcome.exit_code == ExitCode.SUCCESS:
        typer.echo(outcome.message)
    raise typer.Exit(code=int(outcome.exit_code))


@app.command("check")
def check(
    host: Optional[str] = typer.Option(None, "--host", help="GitLab base URL."),
    token: Optional[str] = typer.Option(None, "--token", help="GitLab access token."),
) -> None:
    """Verify the host is reachable and the token authenticates."""

    try:
        config = _resolve_settings(gitlab_host=host, gitlab_token=token)
        client = build_client(config)
    except IgorError as exc:
        raise _exit_for_error(exc) from exc

    async def _check() -> ConnectivityResult:
        async with client:
            return await run_connectivity_check(client, config)

    try:
        result = asyncio.run(_check())
    except IgorError as exc:
        raise _exit_for_error(exc) from exc
    except KeyboardInterrupt as exc:
        raise typer.Exit(code=int(ExitCode.CANCELLED)) from exc

    _render_connectivity_result(result, quiet=_is_quiet_mode())
    raise typer.Exit(code=int(ExitCode.SUCCESS))


def entrypoint() -> None:
    """Execute the Typer application."""

    app()


__all__ = ["app", "build_client", "configure_logging", "entrypoint", "ExitCode"]
