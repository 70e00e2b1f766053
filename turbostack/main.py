"""Entry point for the Turbo stack pages."""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from turbostack.config import settings
from turbostack.health.aggregator import HealthAggregator, HealthReport

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)

_STATUS_STYLE = {
    "connected": "green",
    "error": "red",
    "extension_missing": "yellow",
    "disconnected": "dim",
}


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting Turbo stack pages", style="bold green"))
    uvicorn.run(
        "turbostack.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def render_report(report: HealthReport) -> Table:
    table = Table(title=f"Stack health: {report.overall_status.value}")
    table.add_column("Service")
    table.add_column("Status")
    table.add_column("Latency", justify="right")
    table.add_column("Detail")
    for r in report.services:
        style = _STATUS_STYLE.get(r.status.value, "")
        detail = ", ".join(f"{k}={v}" for k, v in (r.details or {}).items()) or r.message
        table.add_row(
            r.name + (" *" if r.critical else ""),
            f"[{style}]{r.status.value}[/{style}]" if style else r.status.value,
            f"{r.latency_ms:.1f} ms",
            detail,
        )
    return table


def run_check() -> int:
    """Run the full health check once. Exit code 0 = healthy, 1 = degraded."""
    aggregator = HealthAggregator(settings)
    try:
        report = aggregator.collect_sync()
    finally:
        aggregator.close()

    console.print(render_report(report))
    disk = report.disk.to_dict()
    memory = report.memory.to_dict()
    console.print(
        f"[dim]Disk: {disk['free_gb']} / {disk['total_gb']} GB free "
        f"({disk['used_percent']}% used) | Memory: {memory['used_mb']} MB "
        f"(peak {memory['peak_mb']} MB) | Python {report.runtime_version}[/dim]"
    )
    return 0 if report.healthy else 1


def main() -> None:
    parser = argparse.ArgumentParser(description="Turbo stack dev pages")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the web server")
    sub.add_parser("check", help="Run the full health check once")

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "check":
        sys.exit(run_check())
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
