"""Fleet API client helpers."""
from __future__ import annotations

from .gitlab import DEFAULT_HOST, FleetClient, GitLabClient

__all__ = ["DEFAULT_HOST", "FleetClient", "GitLabClient"]
