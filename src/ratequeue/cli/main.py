"""
Rich CLI interface for ratequeue.

Inspect queue settings and simulate workloads against a rate-limited queue.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ratequeue import __version__
from ratequeue.core.config import Settings, get_settings
from ratequeue.core.errors import QueueClearedError, QueueConfigurationError
from ratequeue.queue.request_queue import RequestQueue, QueueStats
from ratequeue.utils.logging import setup_logging

app = typer.Typer(
    name="ratequeue",
    help="Rate-limited request queue - inspect settings and simulate workloads",
    no_args_is_help=True,
)
console = Console()


class SimulatedFailure(Exception):
    """Failure injected by the simulate command."""


def _load_settings(config_file: Optional[Path]) -> Settings:
    if config_file is not None:
        return Settings.from_yaml(config_file)
    return get_settings()


def _stats_table(stats: QueueStats, title: str = "Queue Statistics") -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in stats.to_dict().items():
        table.add_row(key, str(value))
    return table


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold cyan]ratequeue[/bold cyan] v{__version__}")


@app.command()
def config(
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML settings file"
    ),
):
    """Show the effective queue settings."""
    settings = _load_settings(config_file)

    table = Table(title="Queue Settings", show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green", justify="right")

    table.add_row("concurrency", str(settings.queue.concurrency))
    table.add_row("window_length_ms", f"{settings.queue.window_length_ms:,}")
    table.add_row("window_cap", str(settings.queue.window_cap))
    table.add_row("log_level", settings.logging.log_level)
    table.add_row("log_format", settings.logging.log_format)
    table.add_row("environment", settings.environment)
    table.add_row("debug", str(settings.debug))

    console.print(table)


@app.command()
def simulate(
    tasks: int = typer.Option(5, "--tasks", "-n", help="Number of tasks to submit"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", help="Max parallel tasks"),
    window_ms: Optional[int] = typer.Option(None, "--window-ms", help="Window length (ms)"),
    cap: Optional[int] = typer.Option(None, "--cap", help="Max admissions per window"),
    work_ms: int = typer.Option(50, "--work-ms", help="Duration of each task (ms)"),
    fail_every: int = typer.Option(0, "--fail-every", help="Fail every Nth task (0 = never)"),
    clear_after_ms: int = typer.Option(
        0, "--clear-after-ms", help="Clear the queue after this many ms (0 = never)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show queue debug logs"),
):
    """Run synthetic tasks through a queue and report admission timing."""
    setup_logging(level="DEBUG" if verbose else "WARNING", json_format=False)

    settings = get_settings()
    try:
        limits = settings.queue.model_dump()
        overrides = {"concurrency": concurrency, "window_length_ms": window_ms, "window_cap": cap}
        limits.update({k: v for k, v in overrides.items() if v is not None})
        queue = RequestQueue(name="simulate", **limits)
    except QueueConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    async def run() -> list[tuple[int, float | None, str]]:
        started = time.monotonic()
        admitted_at: dict[int, float] = {}

        def make_work(index: int):
            async def work() -> int:
                admitted_at[index] = time.monotonic() - started
                await asyncio.sleep(work_ms / 1000)
                if fail_every and index % fail_every == 0:
                    raise SimulatedFailure(f"task {index} failed")
                return index

            return work

        futures = [queue.submit(make_work(i)) for i in range(1, tasks + 1)]

        if clear_after_ms:
            await asyncio.sleep(clear_after_ms / 1000)
            queue.clear()

        outcomes = await asyncio.gather(*futures, return_exceptions=True)
        await queue.join()

        rows = []
        for index, outcome in enumerate(outcomes, start=1):
            if isinstance(outcome, QueueClearedError):
                status = "[yellow]cleared[/yellow]"
            elif isinstance(outcome, Exception):
                status = f"[red]failed: {outcome}[/red]"
            else:
                status = "[green]ok[/green]"
            rows.append((index, admitted_at.get(index), status))
        return rows

    rows = asyncio.run(run())

    table = Table(title="Task Admissions", show_header=True, header_style="bold magenta")
    table.add_column("Task", justify="right", style="cyan")
    table.add_column("Admitted at (ms)", justify="right")
    table.add_column("Outcome")
    for index, offset, status in rows:
        table.add_row(
            str(index),
            f"{offset * 1000:.0f}" if offset is not None else "-",
            status,
        )

    console.print(table)
    console.print(_stats_table(queue.get_stats()))


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
