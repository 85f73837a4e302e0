"""Orchestration layer for Igor."""
from __future__ import annotations

from .cancellation import CancellationToken
from .commands import COMMAND_PLANS, Command, CommandPlan, ResultView, plan_for
from .conductor import Conductor, ConductorResult, FleetSnapshot, QueryDiagnostics, flatten_managers
from .connectivity import ConnectivityResult, run_connectivity_check
from .diagnostics import HealthCheck, HealthReport, collect_health_report
from .enrichment import EnrichmentPool, EnrichmentResult
from .pagination import PageFetchResult, fetch_all_pages
from .polling import PollUpdate, poll_command
from .rotation import watch_rotation
from .runner import ExecutionOutcome, execute_poll, execute_query, execute_watch, handle_domain_error
from .session import QuerySession

__all__ = [
    "COMMAND_PLANS",
    "CancellationToken",
    "Command",
    "CommandPlan",
    "Conductor",
    "ConductorResult",
    "ConnectivityResult",
    "EnrichmentPool",
    "EnrichmentResult",
    "ExecutionOutcome",
    "FleetSnapshot",
    "HealthCheck",
    "HealthReport",
    "PageFetchResult",
    "PollUpdate",
    "QueryDiagnostics",
    "QuerySession",
    "ResultView",
    "collect_health_report",
    "execute_poll",
    "execute_query",
    "execute_watch",
    "fetch_all_pages",
    "flatten_managers",
    "handle_domain_error",
    "plan_for",
    "poll_command",
    "run_connectivity_check",
    "watch_rotation",
]
