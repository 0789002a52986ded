#!/usr/bin/env python3
"""
Peitho CLI - PeithoTest Run Tooling

Usage:
    peitho wait <url> [OPTIONS]
    peitho health [OPTIONS]
    peitho summary [RESULTS_DIR] [OPTIONS]
    peitho validate <peitho.yaml>
    peitho --version
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import DEFAULT_RESULTS_DIR, load_settings, settings_from_dict
from .reporting import load_results, status_icon
from .service import ServiceUnavailableError, ensure_healthy, wait_for_service

# Exit codes for `peitho wait`
EXIT_READY = 0
EXIT_TIMEOUT = 2
EXIT_UNEXPECTED = 3

app = typer.Typer(
    name="peitho",
    help="PeithoTest run tooling: service readiness and Allure results",
    add_completion=False,
)
console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"Peitho v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True,
        help="Show version and exit"
    ),
    log_level: str = typer.Option(
        "INFO", "--log-level",
        help="Logging level: DEBUG, INFO, WARNING or ERROR"
    ),
):
    """
    PeithoTest run tooling.

    Wait for the application under test and inspect Allure results.
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(levelname)s  %(message)s",
    )


@app.command()
def wait(
    url: str = typer.Argument(..., help="URL that must answer with a 2xx status"),
    timeout_ms: int = typer.Option(
        120_000, "--timeout-ms", "-t",
        help="Give up after this many milliseconds"
    ),
    interval_ms: int = typer.Option(
        5_000, "--interval-ms", "-i",
        help="Pause between attempts in milliseconds"
    ),
):
    """
    Wait until a service is reachable.

    Exits 0 when ready, 2 on timeout and 3 on an unexpected error.
    """
    try:
        result = asyncio.run(wait_for_service(url, timeout_ms, interval_ms))
    except Exception as e:
        console.print(f"[red]❌ Unexpected error while waiting for {url}:[/red] {type(e).__name__}: {e}")
        raise typer.Exit(code=EXIT_UNEXPECTED)

    if result.ready:
        console.print(f"[green]✅ Service at {url} is reachable (status {result.status}).[/green]")
        raise typer.Exit(code=EXIT_READY)

    console.print(f"[red]❌ Service at {url} did not become ready within {timeout_ms}ms.[/red]")
    raise typer.Exit(code=EXIT_TIMEOUT)


@app.command()
def health(
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="peitho.yaml with a 'service' section"
    ),
):
    """
    Check the API health endpoint a bounded number of times.
    """
    if config_file is not None:
        settings, validation = load_settings(config_file)
    else:
        settings, validation = settings_from_dict({})
    if settings is None:
        console.print(f"\n[red]❌ Invalid settings:[/red]")
        console.print(str(validation))
        raise typer.Exit(code=1)

    service_config = settings.service

    try:
        result = asyncio.run(ensure_healthy(service_config))
    except ServiceUnavailableError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(
        f"[green]✅ {result.url} healthy[/green] after {result.attempts} attempt(s)"
    )


@app.command()
def summary(
    results_dir: Path = typer.Argument(
        Path(DEFAULT_RESULTS_DIR),
        help="Allure results directory to summarize",
    ),
    output: str = typer.Option(
        "text", "--output", "-o",
        help="Output format: text, table or json"
    ),
):
    """
    Summarize an Allure results directory.

    Exits 1 when any test failed or broke.
    """
    try:
        results = load_results(results_dir)
    except FileNotFoundError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1)

    if output == "json":
        console.print_json(data=results.to_dict())
    elif output == "table":
        table = Table(title=f"Results: {results_dir}")
        table.add_column("Test", style="cyan")
        table.add_column("Status", style="magenta")
        table.add_column("Duration", justify="right")

        for record in results.records:
            table.add_row(
                record.full_name,
                f"{status_icon(record.status)} {record.status.value}",
                f"{record.duration}ms",
            )
        console.print(table)
    else:
        console.print(results.summary())

    raise typer.Exit(code=1 if results.has_failures else 0)


@app.command()
def validate(
    config_file: Path = typer.Argument(
        ...,
        help="Path to the peitho.yaml settings file",
        exists=True,
        readable=True,
    ),
):
    """
    Validate a peitho.yaml settings file.
    """
    console.print(f"\n📄 Validating: {config_file}")

    settings, validation = load_settings(config_file)

    if settings is None:
        console.print(f"\n[red]❌ Validation failed:[/red]")
        console.print(str(validation))
        raise typer.Exit(code=1)

    console.print(f"\n[green]✅ Valid settings[/green]")
    table = Table(title="Effective settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("reporting.results_dir", str(settings.reporting.resolve_results_dir()))
    table.add_row("reporting.host", settings.reporting.host)
    table.add_row("reporting.report_name", settings.reporting.report_name)
    table.add_row("service.healthcheck_url", settings.service.healthcheck_url)
    table.add_row("service.max_attempts", str(settings.service.max_attempts))
    table.add_row("service.interval_ms", str(settings.service.interval_ms))
    console.print()
    console.print(table)


@app.command()
def info():
    """
    Show information about Peitho.
    """
    console.print(f"""
[bold]Peitho[/bold] v{__version__}

Test run tooling for PeithoTest

[bold]Features:[/bold]
  • Allure results writer with a pytest plugin
  • Screenshot, trace and log attachments
  • CI build metadata (GitHub Actions)
  • Service readiness checks

[bold]Quick Start:[/bold]
  peitho wait http://localhost:8000/health
  pytest --allure-results-dir allure-results
  peitho summary allure-results
""")


if __name__ == "__main__":
    app()
