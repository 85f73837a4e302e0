"""Shared exit code definitions for Igor CLI operations."""
from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Deterministic exit codes reported by every command."""

    SUCCESS = 0
    UNEXPECTED_ERROR = 1
    INVALID_INPUT = 2
    AUTH_ERROR = 3
    HOST_ERROR = 4
    API_ERROR = 5
    NETWORK_ERROR = 6
    TIMEOUT = 7
    CANCELLED = 8


__all__ = ["ExitCode"]
