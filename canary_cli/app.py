"""Tweety CLI application -- Typer-based operator interface.

Runs canary checks against the Kapable platform from a terminal or a
scheduler, lists registered checks, and serves the HTTP host.  Human-readable
output goes to *stderr* via Rich; ``--json`` emits the result on *stdout*.

Exit codes: 0 no failing check, 1 at least one failing check, 2 another run
holds the lock, 3 usage error or unknown check.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import typer
from rich.console import Console

from canary_cli.display import display_check_detail, display_check_names, display_report
from canary_engine.config import CanarySettings, load_settings
from canary_engine.errors import CanaryBusyError, CheckNotFoundError
from canary_engine.http import HttpExecutor, create_executor
from canary_engine.lock import RunLock
from canary_engine.logging_config import configure_logging
from canary_engine.models import CheckResult, CheckStatus, Report
from canary_engine.runner import create_default_registry, create_default_runner
from canary_engine.service import CanaryService

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="tweety",
    help="Tweety - continuous canary verification of the Kapable platform API",
    no_args_is_help=True,
)
console = Console(stderr=True)

T = TypeVar("T")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_BUSY = 2
EXIT_USAGE = 3

# Mutable global options populated by the Typer callback.
_json_output: bool = False


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit structured JSON to stdout instead of human-readable output.",
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Log level for engine diagnostics (DEBUG, INFO, WARNING, ERROR).",
        envvar="KAPABLE_LOG_LEVEL",
    ),
) -> None:
    """Global options applied to every command."""
    global _json_output  # noqa: PLW0603
    _json_output = json_mode
    configure_logging(log_level)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings() -> CanarySettings:
    try:
        return load_settings()
    except Exception as exc:
        console.print(f"[red]Invalid configuration: {exc}[/red]")
        raise typer.Exit(code=EXIT_USAGE) from exc


def _emit_json(payload: dict[str, Any] | list[Any]) -> None:
    sys.stdout.write(json.dumps(payload, indent=2) + "\n")


def _service(settings: CanarySettings, http: HttpExecutor) -> CanaryService:
    lock = RunLock(stale_after_ms=settings.lock_stale_after_ms)
    return CanaryService(create_default_runner(settings, http), lock)


async def _run_all(settings: CanarySettings) -> Report:
    async with create_executor(settings) as http:
        return await _service(settings, http).run_all_checks()


async def _run_one(settings: CanarySettings, name: str) -> CheckResult | None:
    async with create_executor(settings) as http:
        return await _service(settings, http).run_check(name)


def _execute(run: Callable[[], Coroutine[Any, Any, T]]) -> T:
    """Run *run* to completion, mapping lock contention to ``EXIT_BUSY``."""
    try:
        return asyncio.run(run())
    except CanaryBusyError as exc:
        console.print(f"[yellow]{exc}[/yellow]")
        raise typer.Exit(code=EXIT_BUSY) from exc


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@app.command()
def run() -> None:
    """Run every registered check and print the report."""
    settings = _load_settings()
    missing = settings.missing_credentials()
    if missing:
        console.print(f"[yellow]Missing configuration: {', '.join(missing)}[/yellow]")

    report = _execute(lambda: _run_all(settings))

    if _json_output:
        _emit_json(report.to_dict())
    else:
        display_report(console, report)

    raise typer.Exit(code=EXIT_FAILED if report.has_failures else EXIT_OK)


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


@app.command()
def check(
    name: str = typer.Argument(..., help="Name of the check to run (see `tweety list`)."),
) -> None:
    """Run a single check by name."""
    settings = _load_settings()
    result = _execute(lambda: _run_one(settings, name))

    if result is None:
        available = create_default_registry(settings).names()
        error = CheckNotFoundError(name, available)
        if _json_output:
            _emit_json({"error": str(error)})
        console.print(f"[red]{error}[/red]")
        raise typer.Exit(code=EXIT_USAGE)

    if _json_output:
        _emit_json(result.to_dict())
    else:
        display_check_detail(console, result)

    raise typer.Exit(code=EXIT_FAILED if result.status == CheckStatus.FAIL else EXIT_OK)


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------


@app.command(name="list")
def list_checks() -> None:
    """List registered checks in execution order."""
    settings = _load_settings()
    names = create_default_registry(settings).names()

    if _json_output:
        _emit_json({"checks": names})
    else:
        display_check_names(console, names)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address."),
    port: int = typer.Option(3000, "--port", help="Bind port.", envvar="PORT"),
) -> None:
    """Serve the canary HTTP endpoints with uvicorn."""
    import uvicorn

    from canary_api.main import create_app

    settings = _load_settings()
    console.print(f"[bold]Tweety canary running on {host}:{port}[/bold]")
    uvicorn.run(create_app(settings), host=host, port=port, log_level=settings.log_level.lower())
