"""Plain-text rendering for query results and rotation events."""
from __future__ import annotations

import unicodedata
from datetime import datetime
from typing import Sequence

from igor.fleet.models import EnrichedRunner, HealthSummary, ManagerRow, RotationEvent
from igor.orchestration.commands import ResultView
from igor.orchestration.conductor import ConductorResult, QueryDiagnostics
from igor.orchestration.polling import PollUpdate
from igor.utils import format_age

Column = tuple[str, int, str]

_RUNNER_COLUMNS: Sequence[Column] = (
    ("ID", 8, "right"),
    ("Status", 15, "left"),
    ("Type", 13, "left"),
    ("Paused", 6, "left"),
    ("Version", 10, "left"),
    ("Tags", 30, "left"),
    ("Managers", 8, "right"),
    ("Description", 28, "left"),
)
_WORKER_COLUMNS: Sequence[Column] = (
    ("Runner", 8, "right"),
    ("Tags", 26, "left"),
    ("System ID", 24, "left"),
    ("Status", 15, "left"),
    ("Version", 10, "left"),
    ("IP Address", 15, "left"),
    ("Last Contact", 12, "right"),
)
_EMPTY_RUNNERS = "-- no runners matched --"
_EMPTY_WORKERS = "-- no managers found --"
_FAILED_MARKER = "!"
_MAX_LISTED_FAILURES = 20


def render_query_result(result: ConductorResult, *, now: datetime) -> str:
    """Render the table appropriate for the command plus the diagnostics footer."""

    lines: list[str] = [f"igor {result.command}"]
    if result.view is ResultView.HEALTH:
        lines.append(render_health_line(result.health))
        lines.append("")
        lines.extend(render_runner_table(result.records))
    elif result.view is ResultView.MANAGERS:
        lines.extend(render_workers_table(result.manager_rows, now=now))
    else:
        lines.extend(render_runner_table(result.records))

    footer = render_diagnostics(result.diagnostics)
    if footer:
        lines.append("")
        lines.extend(footer)
    return "\n".join(lines)


def render_runner_table(runners: Sequence[EnrichedRunner]) -> list[str]:
    rows = [_format_row(_runner_values(runner), _RUNNER_COLUMNS) for runner in runners]
    return _assemble(_RUNNER_COLUMNS, rows, _EMPTY_RUNNERS)


def render_workers_table(rows: Sequence[ManagerRow], *, now: datetime) -> list[str]:
    formatted = [_format_row(_worker_values(row, now=now), _WORKER_COLUMNS) for row in rows]
    return _assemble(_WORKER_COLUMNS, formatted, _EMPTY_WORKERS)


def render_health_line(health: HealthSummary | None) -> str:
    if health is None or health.total_count == 0:
        return "Health: no enriched runners to assess."
    verdict = "healthy" if health.is_healthy else "degraded"
    return (
        f"Health: {health.healthy_count}/{health.total_count} runners fully online "
        f"({health.percentage:.1f}%, {verdict})."
    )


def render_poll_update(update: PollUpdate, *, now: datetime) -> str:
    """Poll header line followed by the report, or the failure for that poll."""

    minutes, seconds = divmod(int(update.elapsed_seconds), 60)
    stamp = f"[{minutes:02d}:{seconds:02d}] poll #{update.iteration}"
    if update.result is None:
        return f"{stamp}: failed ({update.error})"
    header = f"{stamp}: {update.matched} row(s) matched (command: {update.command})"
    return "\n".join([header, render_query_result(update.result, now=now)])


def render_rotation_event(event: RotationEvent) -> str:
    ids = ", ".join(str(runner_id) for runner_id in event.runner_ids)
    return f"{event.detected_at.isoformat(timespec='seconds')} rotation detected: runner(s) {ids}"


def render_diagnostics(diagnostics: QueryDiagnostics) -> list[str]:
    """Footer lines; empty when the query delivered everything it fetched."""

    lines: list[str] = []
    if diagnostics.enrichment_failures:
        listed = diagnostics.failed_ids[:_MAX_LISTED_FAILURES]
        ids = ", ".join(str(runner_id) for runner_id in listed)
        if len(diagnostics.failed_ids) > len(listed):
            ids += ", ..."
        lines.append(
            f"{_FAILED_MARKER} {diagnostics.enrichment_failures} runner(s) could not be enriched: {ids}"
        )
    if diagnostics.pagination_truncated:
        lines.append(
            f"{_FAILED_MARKER} Results truncated after {diagnostics.pages_fetched} page(s); "
            "raise --max-pages to fetch the rest."
        )
    return lines


def _runner_values(runner: EnrichedRunner) -> dict[str, str]:
    summary = runner.summary
    managers = str(len(runner.managers)) if runner.enriched else _FAILED_MARKER
    return {
        "ID": str(summary.id),
        "Status": summary.status,
        "Type": summary.runner_type,
        "Paused": "yes" if summary.paused else "no",
        "Version": summary.version or "--",
        "Tags": ",".join(summary.tag_list) or "--",
        "Managers": managers,
        "Description": summary.description or "",
    }


def _worker_values(row: ManagerRow, *, now: datetime) -> dict[str, str]:
    manager = row.manager
    return {
        "Runner": str(row.runner_id),
        "Tags": ",".join(row.runner_tags) or "--",
        "System ID": manager.system_id,
        "Status": manager.status,
        "Version": manager.version or "--",
        "IP Address": manager.ip_address or "--",
        "Last Contact": format_age(manager.contacted_at, now=now),
    }


def _assemble(columns: Sequence[Column], rows: list[str], placeholder: str) -> list[str]:
    if not rows:
        rows = [_placeholder_row(columns, placeholder)]
    return [_format_header(columns), _format_separator(columns), *rows]


def _format_header(columns: Sequence[Column]) -> str:
    return " | ".join(_pad_text(title.upper(), width) for title, width, _ in columns)


def _format_separator(columns: Sequence[Column]) -> str:
    return "-+-".join("-" * width for _, width, _ in columns)


def _format_row(values: dict[str, str], columns: Sequence[Column]) -> str:
    return " | ".join(
        _pad_text(values.get(title, ""), width, align=alignment) for title, width, alignment in columns
    ).rstrip()


def _placeholder_row(columns: Sequence[Column], placeholder: str) -> str:
    return _pad_text(placeholder, sum(width for _, width, _ in columns)).rstrip()


def _pad_text(value: str, width: int, *, align: str = "left") -> str:
    text = _truncate(_normalize_text(value), width)
    if align == "right":
        return text.rjust(width)
    return text.ljust(width)


def _truncate(value: str, width: int) -> str:
    if len(value) <= width:
        return value
    if width <= 3:
        return value[:width]
    return value[: width - 3] + "..."


def _normalize_text(value: str) -> str:
    collapsed = " ".join(str(value).split())
    normalized = unicodedata.normalize("NFKD", collapsed)
    return normalized.encode("ascii", "ignore").decode("ascii")


__all__ = [
    "render_diagnostics",
    "render_health_line",
    "render_query_result",
    "render_rotation_event",
    "render_runner_table",
    "render_workers_table",
]
