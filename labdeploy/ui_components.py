"""
labdeploy CLI - UI Components
Standardized headers and run summary tables
"""

from typing import Optional

from rich.console import Console
from rich.table import Table

from labdeploy.models.host import Host
from labdeploy.models.results import RunStatus, RunSummary, TaskOutcome

# Color scheme
BRAND_COLOR = "cyan"
SUCCESS_COLOR = "green"
WARNING_COLOR = "yellow"
ERROR_COLOR = "red"

OUTCOME_STYLES = {
    TaskOutcome.SUCCESS: SUCCESS_COLOR,
    TaskOutcome.FAILED: ERROR_COLOR,
    TaskOutcome.SKIPPED: "dim",
    TaskOutcome.PENDING: WARNING_COLOR,
}

STATUS_STYLES = {
    RunStatus.SUCCESS: SUCCESS_COLOR,
    RunStatus.DEGRADED: WARNING_COLOR,
    RunStatus.FAILED: ERROR_COLOR,
}


def show_header(
    title: str,
    subtitle: Optional[str] = None,
    details: Optional[dict] = None,
    console: Optional[Console] = None,
):
    """
    Display a standardized labdeploy command header.

    Args:
        title: Main title (e.g., "Bootstrap Cluster")
        subtitle: Optional subtitle line
        details: Additional key-value pairs to display
        console: Rich Console instance (creates new if None)

    Example:
        show_header(
            title="Deploy",
            details={"Action": "run-container", "Hosts": "w1, w2"}
        )
    """
    if console is None:
        console = Console()

    console.print(
        f" [bold color(214)]labdeploy[/bold color(214)] [dim]›[/dim] [bold white]{title}[/bold white]"
    )

    if subtitle:
        console.print(
            f" [bold color(214)]labdeploy[/bold color(214)] [dim]›[/dim] [dim]{subtitle}[/dim]"
        )

    if details:
        for key, value in details.items():
            console.print(
                f" [bold color(214)]labdeploy[/bold color(214)] [dim]›[/dim] {key}: [cyan]{value}[/cyan]"
            )

    console.print()


def show_summary(summary: RunSummary, console: Optional[Console] = None):
    """Print a run summary: per-host table, counts, notes and status."""
    if console is None:
        console = Console()

    if summary.tasks:
        table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
        table.add_column("Host")
        table.add_column("Action")
        table.add_column("Outcome")
        table.add_column("Attempts", justify="right")
        table.add_column("Reason", style="dim")

        for task in summary.tasks:
            style = OUTCOME_STYLES[task.outcome]
            table.add_row(
                task.host_id,
                task.action,
                f"[{style}]{task.outcome.value}[/{style}]",
                str(task.attempt),
                task.reason or "",
            )
        console.print(table)
        console.print()

    console.print(
        f"[dim]total[/dim] {summary.total}  "
        f"[dim]succeeded[/dim] [green]{summary.succeeded}[/green]  "
        f"[dim]failed[/dim] [red]{summary.failed}[/red]  "
        f"[dim]skipped[/dim] {summary.skipped}"
    )

    for note in summary.notes:
        console.print(f"[yellow]⚠[/yellow] [dim]{note}[/dim]")

    if summary.failed_stage:
        console.print(f"[red]✗ Failed at stage:[/red] {summary.failed_stage}")
        if summary.error:
            console.print(f"  [color(208)]{summary.error}[/color(208)]")

    style = STATUS_STYLES[summary.status]
    console.print(f"\n[bold {style}]{summary.status.value.upper()}[/bold {style}]\n")


def show_hosts(
    hosts: list[Host], title: str, console: Optional[Console] = None
):
    """Print hosts as a table."""
    if console is None:
        console = Console()

    table = Table(title=title, title_style="bold white", header_style="bold cyan")
    table.add_column("Id")
    table.add_column("Address")
    table.add_column("Role")
    table.add_column("Port", justify="right")
    table.add_column("Reachable")

    for host in hosts:
        reachable = "[green]yes[/green]" if host.reachable else "[red]no[/red]"
        table.add_row(host.id, host.address, host.role.value, str(host.port), reachable)

    console.print(table)
