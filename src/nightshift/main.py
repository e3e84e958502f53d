"""Entry point for the Nightshift maintenance runner."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from nightshift.checks.catalog import all_checks, get_default_prompt
from nightshift.config import settings
from nightshift.runs.store import RunStore

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)

_STATUS_STYLES = {
    "completed": "green",
    "partially_completed": "yellow",
    "failed": "red",
    "cancelled": "dim",
    "running": "cyan",
    "pending": "cyan",
}


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting Nightshift API Server", style="bold green"))
    uvicorn.run(
        "nightshift.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def show_checks() -> None:
    table = Table(title="Nightshift checks")
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Cost")
    table.add_column("Cooldown", justify="right")
    table.add_column("Default")

    for check in all_checks():
        table.add_row(
            check.id,
            check.name,
            check.category.value,
            check.cost_tier.value,
            f"{check.cooldown_hours}h",
            "yes" if check.default_enabled else "no",
        )
    console.print(table)


def show_runs(project_id: str, limit: int | None) -> None:
    runs = RunStore(data_dir=settings.data_dir).list_runs(project_id, limit=limit)
    if not runs:
        console.print(f"[dim]No runs recorded for {project_id}[/dim]")
        return

    table = Table(title=f"Runs for {project_id}")
    table.add_column("Run", style="bold")
    table.add_column("Trigger")
    table.add_column("Started")
    table.add_column("Status")
    table.add_column("Checks", justify="right")

    for run in runs:
        style = _STATUS_STYLES.get(run.status.value, "")
        failed = sum(1 for r in run.check_results if r.status.value == "failed")
        table.add_row(
            run.id[:8],
            run.trigger.value,
            datetime.fromtimestamp(run.started_at).strftime("%Y-%m-%d %H:%M"),
            f"[{style}]{run.status.value}[/{style}]" if style else run.status.value,
            f"{len(run.check_results)} ({failed} failed)" if failed else str(len(run.check_results)),
        )
    console.print(table)


def show_prompt(check_id: str) -> None:
    prompt = get_default_prompt(check_id)
    if prompt is None:
        console.print(f"[red]Unknown check: {check_id}[/red]")
        sys.exit(1)
    console.print(Panel(prompt, title=check_id, style="blue"))


def main() -> None:
    parser = argparse.ArgumentParser(description="Nightshift maintenance runner")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server and scheduler")
    sub.add_parser("checks", help="List the built-in checks")

    runs_parser = sub.add_parser("runs", help="Show run history for a project")
    runs_parser.add_argument("project_id", help="Project id from projects.yaml")
    runs_parser.add_argument("--limit", type=int, default=None, help="Max runs to show")

    prompt_parser = sub.add_parser("prompt", help="Print a check's default prompt")
    prompt_parser.add_argument("check_id", help="Check id, e.g. lint-fix")

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "checks":
        show_checks()
    elif args.command == "runs":
        show_runs(args.project_id, args.limit)
    elif args.command == "prompt":
        show_prompt(args.check_id)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
