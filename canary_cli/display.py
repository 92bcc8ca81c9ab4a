"""Rich output formatting for the Tweety CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*) so that JSON output on *stdout* is never polluted with
human-readable decoration.
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from canary_engine.models import CheckResult, CheckStatus, Report

# ---------------------------------------------------------------------------
# Status colour mapping
# ---------------------------------------------------------------------------

_STATUS_COLOURS: dict[CheckStatus, str] = {
    CheckStatus.PASS: "green",
    CheckStatus.FAIL: "red",
    CheckStatus.WARN: "yellow",
    CheckStatus.SKIP: "dim",
}


def _coloured_status(status: CheckStatus) -> str:
    """Return a Rich markup string with the status colour-coded."""
    colour = _STATUS_COLOURS.get(status, "white")
    label = status.value.upper()
    return f"[{colour}]{label}[/{colour}]"


# ---------------------------------------------------------------------------
# Check results
# ---------------------------------------------------------------------------


def display_check_detail(console: Console, check: CheckResult) -> None:
    """Render the steps of one check, one line per step."""
    console.print(f"\n  [bold]{check.name}[/bold]  {_coloured_status(check.status)}  ({check.duration_ms}ms)")
    if check.error:
        console.print(f"    [red]{check.error}[/red]")
    for step in check.steps:
        line = f"    {_coloured_status(step.status)} {step.name} [dim]({step.duration_ms}ms)[/dim]"
        console.print(line)
        if step.error:
            console.print(f"      [red]{step.error}[/red]")
        if step.detail:
            console.print(f"      [dim]{step.detail}[/dim]")


def display_report(console: Console, report: Report) -> None:
    """Render a full-run report: summary panel, check table, failing details.

    Parameters
    ----------
    console:
        Rich console to write to (typically stderr).
    report:
        The report of a completed run.
    """
    summary = report.summary
    header_lines = [
        f"[bold]Run at:[/bold]   {report.timestamp.isoformat()}",
        f"[bold]Duration:[/bold] {report.total_duration_ms}ms",
        f"[bold]Checks:[/bold]   {summary.total}  "
        f"([green]{summary.passed} pass[/green], [red]{summary.failed} fail[/red], "
        f"[yellow]{summary.warned} warn[/yellow], [dim]{summary.skipped} skip[/dim])",
    ]
    border = "red" if report.has_failures else "green"
    console.print(Panel("\n".join(header_lines), title="Canary Report", border_style=border))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Steps", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Error")
    for check in report.checks:
        table.add_row(
            check.name,
            _coloured_status(check.status),
            str(len(check.steps)),
            f"{check.duration_ms}ms",
            check.error or "",
        )
    console.print(table)

    for check in report.checks:
        if check.status != CheckStatus.PASS:
            display_check_detail(console, check)


def display_check_names(console: Console, names: list[str]) -> None:
    """Render the registered check names in execution order."""
    for position, name in enumerate(names, start=1):
        console.print(f"  {position}. {name}")
