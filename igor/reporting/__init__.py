"""Reporting utilities for Igor query output."""
from __future__ import annotations

from .renderer import (
    render_diagnostics,
    render_health_line,
    render_poll_update,
    render_query_result,
    render_rotation_event,
    render_runner_table,
    render_workers_table,
)

__all__ = [
    "render_diagnostics",
    "render_health_line",
    "render_poll_update",
    "render_query_result",
    "render_rotation_event",
    "render_runner_table",
    "render_workers_table",
]
