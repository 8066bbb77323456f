import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

from conductor_client.app_container import ConductorApp, build_conductor_app
from conductor_client.config import DEFAULT_CONFIG_DIR, ClientConfig, load_config
from conductor_client.domain.runs import Budget
from conductor_client.errors import ConductorError
from conductor_client.events.event_bus import KIND_CLOSED, KIND_ERRORED, KIND_RECORD, StreamEvent
from conductor_client.presentation.formatter import (
    export_logs,
    format_cost,
    format_log_line,
    format_run_summary,
    format_run_table,
    format_stats,
    format_template_row,
)
from conductor_client.services.error_codes import describe_error


def _configure_logging(level: str) -> None:
    level = (level or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _print_config(config: ClientConfig) -> None:
    print(f"Config dir: {config.config_dir}")
    print(f"Env file: {config.env_path}")
    print(f"API base: {config.api_base}")
    print(f"Session token present: {'yes' if config.session_token else 'no'}")
    print(f"Runs poll: {config.runs_poll_sec:.1f}s")
    print(f"Stats poll: {config.stats_poll_sec:.1f}s")


def _parse_run_config(raw: Optional[str]) -> Any:
    if not raw:
        return {}
    if raw.startswith("@"):
        raw = Path(raw[1:]).expanduser().read_text(encoding="utf-8")
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise SystemExit(f"--config is not valid JSON: {exc}")


def _budget_from_args(args: argparse.Namespace) -> Optional[Budget]:
    if args.max_usd is None and args.max_tokens is None:
        return None
    return Budget(max_usd=args.max_usd, max_tokens=args.max_tokens)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Supervise conductor agent runs from the terminal")
    parser.add_argument(
        "--config-dir",
        default=str(DEFAULT_CONFIG_DIR),
        help="Directory holding the .env config (default: ~/.config/conductor-client)",
    )
    parser.add_argument("--print-config", action="store_true", help="Print active config summary")
    parser.add_argument("--log-level", default=os.environ.get("LOG_LEVEL", "INFO"))

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("runs", help="List known runs")

    show = sub.add_parser("show", help="Show one run")
    show.add_argument("run_id")

    start = sub.add_parser("start", help="Start a run from a template")
    start.add_argument("template_id")
    start.add_argument("--config", help="Run configuration as JSON, or @path to a JSON file")
    start.add_argument("--max-usd", type=float, default=None)
    start.add_argument("--max-tokens", type=int, default=None)
    start.add_argument("--secrets-ref", default=None)
    start.add_argument("--schedule", default=None)
    start.add_argument("--watch", action="store_true", help="Stream the run's logs after starting it")

    stop = sub.add_parser("stop", help="Stop a running run")
    stop.add_argument("run_id")

    watch = sub.add_parser("watch", help="Stream a run's logs until it completes")
    watch.add_argument("run_id")
    watch.add_argument("--export", help="Write the collected log lines to this file on exit")

    sub.add_parser("stats", help="Show dashboard aggregates")
    sub.add_parser("templates", help="List installed templates")
    sub.add_parser("health", help="Query the service health endpoint")
    return parser


async def _watch(app: ConductorApp, run_id: str, export_path: Optional[str] = None) -> int:
    await app.registry.refresh()
    stream = app.streams.watch(run_id)
    if stream is None:
        print(f"Run {run_id} is {app.registry.get(run_id).status}; no live logs.")
        return 0

    def _on_event(event: StreamEvent) -> None:
        if event.run_id != run_id:
            return
        if event.kind == KIND_RECORD and event.record is not None:
            print(format_log_line(event.record), flush=True)
        elif event.kind == KIND_CLOSED:
            print(f"-- stream closed ({event.detail})", flush=True)
        elif event.kind == KIND_ERRORED and event.error is not None:
            print(f"-- {describe_error(event.error)}", file=sys.stderr, flush=True)

    unsubscribe = app.bus.subscribe(_on_event)
    await app.start_polling()
    try:
        await stream.wait_closed()
    finally:
        unsubscribe()
    snapshot = app.logs.snapshot(run_id)
    if snapshot is not None:
        print(f"Total cost: {format_cost(snapshot.cumulative_cost)} ({snapshot.total_tokens} tokens)")
        if export_path:
            Path(export_path).expanduser().write_text(export_logs(snapshot) + "\n", encoding="utf-8")
    return 1 if stream.error is not None else 0


async def run_command(app: ConductorApp, args: argparse.Namespace) -> int:
    command = args.command
    if command == "runs":
        if not await app.registry.refresh():
            print("Could not reach the conductor service.", file=sys.stderr)
            return 1
        print(format_run_table(app.registry.list_runs()))
        return 0
    if command == "show":
        run = await app.api.get_run(args.run_id)
        print(format_run_summary(run))
        return 0
    if command == "start":
        run = await app.controller.start(
            args.template_id,
            _parse_run_config(args.config),
            budget=_budget_from_args(args),
            secrets_ref=args.secrets_ref,
            schedule=args.schedule,
        )
        print(f"Started run {run.run_id} ({run.display_name})")
        if args.watch:
            return await _watch(app, run.run_id)
        return 0
    if command == "stop":
        await app.registry.refresh()
        await app.controller.stop(args.run_id)
        print(f"Stopped run {args.run_id}")
        return 0
    if command == "watch":
        return await _watch(app, args.run_id, export_path=args.export)
    if command == "stats":
        if not await app.stats.refresh():
            print("Could not reach the conductor service.", file=sys.stderr)
            return 1
        print(format_stats(app.stats.stats))
        return 0
    if command == "templates":
        templates = await app.api.list_templates()
        print("\n".join(format_template_row(t) for t in templates) or "No templates installed.")
        return 0
    if command == "health":
        print(json.dumps(await app.api.get_health(), indent=2, sort_keys=True))
        return 0
    raise ValueError(f"unknown command {command!r}")


async def _amain(config: ClientConfig, args: argparse.Namespace) -> int:
    app = build_conductor_app(config)
    try:
        return await run_command(app, args)
    except ConductorError as exc:
        print(describe_error(exc), file=sys.stderr)
        return 1
    finally:
        await app.shutdown()


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    _configure_logging(args.log_level)
    config = load_config(Path(args.config_dir).expanduser().resolve())

    if args.print_config:
        _print_config(config)
        return
    if not args.command:
        parser.print_help()
        return

    try:
        code = asyncio.run(_amain(config, args))
    except KeyboardInterrupt:
        code = 130
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
