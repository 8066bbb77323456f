from conductor_client.presentation.formatter import (
    export_logs,
    format_cost,
    format_log_line,
    format_run_summary,
    format_run_table,
    format_stats,
)

__all__ = [
    "export_logs",
    "format_cost",
    "format_log_line",
    "format_run_summary",
    "format_run_table",
    "format_stats",
]
