from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from conductor_client.domain.catalog import Stats, Template
from conductor_client.domain.logs import LogRecord
from conductor_client.domain.runs import Budget, Run
from conductor_client.services.log_accumulator import LogSnapshot

_LEVEL_MARKERS = {"info": " ", "warning": "!", "error": "x"}


def format_cost(value: Optional[float], places: int = 4) -> str:
    return f"${(value or 0.0):.{places}f}"


def format_log_line(record: LogRecord) -> str:
    line = f"[{record.timestamp}] {record.level.upper()}: {record.message}"
    if record.tokens:
        line += f" ({record.tokens} tokens)"
    return line


def export_logs(snapshot: LogSnapshot) -> str:
    """Plain-text export of every visible record, one line each."""
    return "\n".join(format_log_line(record) for record in snapshot.records)


def format_started(started_at: str) -> str:
    if not started_at:
        return "-"
    try:
        parsed = datetime.fromisoformat(started_at.replace("Z", "+00:00"))
    except ValueError:
        return started_at
    return parsed.strftime("%Y-%m-%d %H:%M:%S")


def format_budget(budget: Optional[Budget]) -> str:
    if budget is None:
        return "no budget"
    parts: List[str] = []
    if budget.max_usd is not None:
        parts.append(f"max {format_cost(budget.max_usd, places=2)}")
    if budget.max_tokens is not None:
        parts.append(f"max {budget.max_tokens} tokens")
    return ", ".join(parts) or "no budget"


def format_run_row(run: Run, live: bool = False) -> str:
    status = run.status + (" (live)" if live else "")
    return f"{run.run_id:<24} {run.display_name:<28} {status:<18} {format_started(run.started_at)}"


def format_run_table(runs: Iterable[Run], live_ids: Iterable[str] = ()) -> str:
    live = set(live_ids)
    rows = [format_run_row(run, live=run.run_id in live) for run in runs]
    if not rows:
        return "No runs."
    header = f"{'RUN':<24} {'TEMPLATE':<28} {'STATUS':<18} STARTED"
    return "\n".join([header] + rows)


def format_run_summary(run: Run, snapshot: Optional[LogSnapshot] = None) -> str:
    lines = [
        f"Run:       {run.run_id}",
        f"Template:  {run.display_name}",
        f"Status:    {run.status}",
        f"Started:   {format_started(run.started_at)}",
        f"Budget:    {format_budget(run.budget)}",
    ]
    if snapshot is not None:
        lines.append(f"Cost:      {format_cost(snapshot.cumulative_cost)}")
        lines.append(f"Tokens:    {snapshot.total_tokens}")
        lines.append(f"Records:   {len(snapshot.records)} ({snapshot.error_count} errors)")
    return "\n".join(lines)


def format_stats(stats: Optional[Stats]) -> str:
    stats = stats or Stats()
    lines = [
        f"Active runs:     {stats.active_runs}",
        f"Templates:       {stats.total_templates}",
        f"Today's cost:    {format_cost(stats.today_cost, places=2)}",
    ]
    if stats.recent_activity:
        lines.append("Recent activity:")
        lines.extend(f"  {item.time}  {item.name}" for item in stats.recent_activity)
    return "\n".join(lines)


def format_template_row(template: Template) -> str:
    name = template.display_name or template.name
    version = f" v{template.version}" if template.version else ""
    return f"{template.template_id:<24} {name}{version}"
