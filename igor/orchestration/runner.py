"""Execution orchestrator for Igor CLI commands."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from igor.errors import (
    ApiRequestError,
    AuthenticationError,
    ConfigurationError,
    HostUnreachableError,
    IgorError,
    InputValidationError,
    MalformedResponseError,
    QueryCancelledError,
    RetryExhaustedError,
    TimeoutExceededError,
    TransientNetworkError,
)
from igor.exit_codes import ExitCode
from igor.fleet.models import FilterSpec, RotationEvent
from igor.orchestration.cancellation import CancellationToken
from igor.orchestration.commands import Command
from igor.orchestration.conductor import Conductor, ConductorResult
from igor.orchestration.polling import PollUpdate, poll_command

logger = logging.getLogger("igor.orchestration.runner")


@dataclass(frozen=True)
class ExecutionOutcome:
    """Result of invoking a query or watch through the orchestration layer."""

    exit_code: ExitCode
    status: str
    message: str | None = None
    remediation: str | None = None
    result: ConductorResult | None = None
    rotation: RotationEvent | None = None


_ERROR_MAPPINGS: tuple[
    tuple[type[IgorError], ExitCode, str, str | None],
    ...,
] = (
    (
        InputValidationError,
        ExitCode.INVALID_INPUT,
        "Input validation failed.",
        "Check the filter values; run `igor query --help` for accepted options.",
    ),
    (
        ConfigurationError,
        ExitCode.INVALID_INPUT,
        "Configuration is incomplete or invalid.",
        "Review config.yaml and the GITLAB_HOST/GITLAB_TOKEN environment variables.",
    ),
    (
        AuthenticationError,
        ExitCode.AUTH_ERROR,
        "GitLab rejected the access token.",
        "Use a token with the read_api scope and administrator access.",
    ),
    (
        HostUnreachableError,
        ExitCode.HOST_ERROR,
        "The GitLab host could not be reached.",
        "Verify GITLAB_HOST and proxy configuration.",
    ),
    (
        RetryExhaustedError,
        ExitCode.NETWORK_ERROR,
        "A page request kept failing after its retry.",
        "Retry on a stable connection.",
    ),
    (
        TransientNetworkError,
        ExitCode.NETWORK_ERROR,
        "A network error interrupted the request.",
        "Retry on a stable connection.",
    ),
    (
        MalformedResponseError,
        ExitCode.API_ERROR,
        "GitLab returned a response Igor could not understand.",
        "Confirm GITLAB_HOST points at a supported GitLab version.",
    ),
    (
        ApiRequestError,
        ExitCode.API_ERROR,
        "The GitLab API reported an error.",
        "Verify the filter values and token permissions.",
    ),
    (
        TimeoutExceededError,
        ExitCode.TIMEOUT,
        "The operation timed out.",
        "Increase the configured timeout or retry later.",
    ),
    (
        QueryCancelledError,
        ExitCode.CANCELLED,
        "The query was cancelled.",
        None,
    ),
)


async def execute_query(
    conductor: Conductor,
    command: Command | str,
    filters: FilterSpec,
    *,
    cancel: CancellationToken | None = None,
) -> ExecutionOutcome:
    """Run one report command and translate failures into exit codes."""

    try:
        result = await conductor.run(command, filters, cancel)
    except IgorError as error:
        return handle_domain_error(error)
    except Exception as error:  # pragma: no cover - defensive
        return _unexpected(error)

    diagnostics = result.diagnostics
    message = f"{len(result.rows)} row(s) for '{result.command}' from {diagnostics.total_fetched} runner(s)."
    return ExecutionOutcome(
        exit_code=ExitCode.SUCCESS,
        status="success",
        message=message,
        result=result,
    )


async def execute_watch(
    conductor: Conductor,
    *,
    interval: float,
    timeout: float | None,
    filters: FilterSpec,
    cancel: CancellationToken | None = None,
) -> ExecutionOutcome:
    """Poll until the first rotation event, the deadline, or cancellation."""

    token = cancel or CancellationToken()
    stream = conductor.start_rotation_watch(
        interval,
        headless=True,
        cancel=token,
        filters=filters,
        timeout=timeout,
    )
    event: RotationEvent | None = None
    try:
        async for event in stream:
            break
    except IgorError as error:
        return handle_domain_error(error)
    except Exception as error:  # pragma: no cover - defensive
        return _unexpected(error)
    finally:
        await stream.aclose()

    if event is None:
        return handle_domain_error(QueryCancelledError(message="Rotation watch cancelled."))

    ids = ", ".join(str(runner_id) for runner_id in event.runner_ids)
    return ExecutionOutcome(
        exit_code=ExitCode.SUCCESS,
        status="success",
        message=f"Rotation detected for runner(s) {ids}.",
        rotation=event,
    )


async def execute_poll(
    conductor: Conductor,
    command: Command | str,
    *,
    interval: float,
    timeout: float | None,
    filters: FilterSpec,
    on_update: Callable[[PollUpdate], None],
    cancel: CancellationToken | None = None,
) -> ExecutionOutcome:
    """Re-run *command* every *interval* seconds until the deadline, reporting each poll."""

    token = cancel or CancellationToken()
    polls = 0
    stream = poll_command(
        conductor,
        command,
        interval=interval,
        timeout=timeout,
        cancel=token,
        filters=filters,
    )
    try:
        async for update in stream:
            polls += 1
            on_update(update)
    except IgorError as error:
        return handle_domain_error(error)
    except Exception as error:  # pragma: no cover - defensive
        return _unexpected(error)
    finally:
        await stream.aclose()

    if token.cancelled:
        return handle_domain_error(QueryCancelledError(message="Polling cancelled."))

    return ExecutionOutcome(
        exit_code=ExitCode.SUCCESS,
        status="success",
        message=f"Poll timeout reached after {polls} poll(s).",
    )


def handle_domain_error(error: IgorError) -> ExecutionOutcome:
    """Translate a domain error into an execution outcome and log remediation hints."""

    exit_code, default_message, default_remediation = _map_error(error)
    message = error.message or default_message
    remediation = error.remediation or default_remediation

    logger.error(message, extra={"exit_code": int(exit_code)})
    if remediation:
        logger.error("Remediation: %s", remediation)

    return ExecutionOutcome(
        exit_code=exit_code,
        status="failure",
        message=message,
        remediation=remediation,
    )


def _map_error(error: IgorError) -> tuple[ExitCode, str, str | None]:
    """Match an error instance to its configured exit code and remediation."""

    for error_type, exit_code, message, remediation in _ERROR_MAPPINGS:
        if isinstance(error, error_type):
            return exit_code, message, remediation

    return (
        ExitCode.UNEXPECTED_ERROR,
        "An unexpected error occurred while querying the fleet.",
        "Enable debug logging and retry. If the issue persists, open a bug ticket with the logs.",
    )


def _unexpected(error: Exception) -> ExecutionOutcome:
    logger.exception("Unexpected error occurred during orchestration.")
    return ExecutionOutcome(
        exit_code=ExitCode.UNEXPECTED_ERROR,
        status="failure",
        message=str(error) or "An unexpected error occurred while querying the fleet.",
        remediation="Re-run without --quiet and inspect the logs before retrying.",
    )


__all__ = ["ExecutionOutcome", "execute_poll", "execute_query", "execute_watch", "handle_domain_error"]
