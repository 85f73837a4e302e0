"""Domain-specific exception hierarchy for Igor."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass
class IgorError(Exception):
    """Base exception for Igor-specific errors with optional remediation text."""

    message: str
    remediation: str | None = None

    def __post_init__(self) -> None:  # pragma: no cover - dataclass validation hook
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class InputValidationError(IgorError):
    """Raised when the CLI receives invalid or missing input."""


class FilterValidationError(InputValidationError):
    """Raised when a filter value is rejected before any network call is made."""


class ConfigurationError(IgorError):
    """Raised when the configuration file or environment cannot be used."""


@dataclass
class ApiError(IgorError):
    """Raised when the fleet API cannot satisfy a request."""

    status_code: int | None = None


class FatalQueryError(ApiError):
    """An API failure that aborts the whole query."""


class AuthenticationError(FatalQueryError):
    """Raised when the API rejects the access token."""


class HostUnreachableError(FatalQueryError):
    """Raised when the API host cannot be resolved or connected to."""


class MalformedResponseError(FatalQueryError):
    """Raised when an API payload does not match the expected schema."""


class ApiRequestError(FatalQueryError):
    """Raised for non-transient HTTP failures not covered by a narrower type."""


class RetryExhaustedError(FatalQueryError):
    """Raised when a transient page failure recurs after its retry."""


class TransientNetworkError(ApiError):
    """Raised for timeouts, resets and server-side hiccups worth one retry."""


@dataclass
class QueryCancelledError(IgorError):
    """Raised inside a query once its cancellation token has fired."""

    generation: int | None = None


class TimeoutExceededError(IgorError):
    """Raised when an operation exceeds its allotted execution time."""


__all__ = [
    "IgorError",
    "InputValidationError",
    "FilterValidationError",
    "ConfigurationError",
    "ApiError",
    "FatalQueryError",
    "AuthenticationError",
    "HostUnreachableError",
    "MalformedResponseError",
    "ApiRequestError",
    "RetryExhaustedError",
    "TransientNetworkError",
    "QueryCancelledError",
    "TimeoutExceededError",
]
