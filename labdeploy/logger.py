"""
Logging system for labdeploy
Provides real-time logging to files with clean console output
"""

import re
import threading
from pathlib import Path
from datetime import datetime
from typing import Callable, Optional, TextIO, TypeVar
from rich.console import Console
from rich.live import Live
from rich.spinner import Spinner
from rich.text import Text
from rich.padding import Padding

from labdeploy.constants import LOG_DATE_FORMAT

console = Console()

T = TypeVar("T")

ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


class DeployLogger:
    """
    Manages logging for orchestration runs
    - Writes all output to log files in real-time
    - Shows clean progress UI in console (unless verbose)
    - Safe to call from concurrent per-host tasks
    """

    def __init__(
        self,
        scope: str,
        operation: str,
        verbose: bool = False,
        log_dir: Optional[Path] = None,
    ):
        """
        Initialize logger

        Args:
            scope: Inventory name or other grouping for the log tree
            operation: Operation name (e.g., 'bootstrap', 'deploy')
            verbose: If True, show all output in console
            log_dir: Root logs directory (defaults to $LABDEPLOY_HOME/logs)
        """
        self.scope = scope
        self.operation = operation
        self.verbose = verbose
        self.log_file: Optional[TextIO] = None
        self.log_path: Optional[Path] = None
        self.current_step = ""
        self.has_errors = False
        self._lock = threading.Lock()

        if log_dir is None:
            from labdeploy.utils import get_logs_dir

            log_dir = get_logs_dir()

        # Structure: logs/{scope}/{date}/{time}_{operation}.log
        now = datetime.now()
        date_str = now.strftime(LOG_DATE_FORMAT)
        time_str = now.strftime("%H-%M-%S")

        scope_logs_dir = Path(log_dir) / scope / date_str
        scope_logs_dir.mkdir(parents=True, exist_ok=True)

        self.log_path = scope_logs_dir / f"{time_str}_{operation}.log"

        # Line buffered for real-time tailing
        self.log_file = open(self.log_path, "w", buffering=1)

        self._write_log_header()

    def _write_log_header(self):
        """Write log file header"""
        header = f"""
{"=" * 80}
labdeploy Run Log
{"=" * 80}
Scope: {self.scope}
Operation: {self.operation}
Started: {datetime.now().isoformat()}
{"=" * 80}

"""
        self._write(header)

    def _write(self, text: str) -> None:
        with self._lock:
            if self.log_file:
                self.log_file.write(text)
                self.log_file.flush()

    def log(self, message: str, level: str = "INFO"):
        """
        Log a message to file and optionally console

        Args:
            message: Message to log
            level: Log level (INFO, WARNING, ERROR, DEBUG)
        """
        timestamp = datetime.now().strftime("%H:%M:%S")
        self._write(f"[{timestamp}] [{level}] {message}\n")

        if self.verbose:
            if level == "ERROR":
                console.print(f"[red]{message}[/red]")
            elif level == "WARNING":
                console.print(f"[yellow]{message}[/yellow]")
            elif level == "DEBUG":
                console.print(f"[dim]{message}[/dim]")
            else:
                console.print(message)

    def log_command(self, host_id: str, command: str):
        """Log a (redacted) command being executed on a host"""
        self.log(f"[{host_id}] Executing: {command}", "DEBUG")

    def log_output(self, host_id: str, output: str, stream: str = "stdout"):
        """
        Log command output

        Always written to the log file, shown in console only if verbose.

        Args:
            host_id: Host that produced the output
            output: Command output (single line or multiline)
            stream: Stream name (stdout, stderr)
        """
        if not output:
            return

        clean_output = ANSI_ESCAPE.sub("", output)
        lines = "".join(
            f"  [{host_id}] [{stream}] {line}\n" for line in clean_output.splitlines()
        )
        self._write(lines)

        if self.verbose:
            console.print(Text.from_ansi(output))

    def log_error(self, error: str, context: Optional[str] = None):
        """
        Log an error with context

        Args:
            error: Error message
            context: Additional context (e.g., command that failed)
        """
        self.has_errors = True

        error_block = f"""
{"!" * 80}
ERROR OCCURRED
{"!" * 80}
{error}
"""
        if context:
            error_block += f"\nContext: {context}\n"

        error_block += f"{'!' * 80}\n\n"
        self._write(error_block)

        if not self.verbose:
            console.print()

        console.print(f"[bold red]✗ {error}[/bold red]")
        if context:
            console.print(f"  [color(208)]{context}[/color(208)]")

    def step(self, step_name: str):
        """
        Start a new step

        Args:
            step_name: Name of the step
        """
        if self.current_step and not self.verbose:
            console.print()

        self.current_step = step_name
        self.log(f"Step: {step_name}", "INFO")

        if not self.verbose:
            console.print(f"[color(214)]▶[/color(214)] [white]{step_name}[/white]")

    def host_result(self, host_id: str, ok: bool, message: str):
        """Record a per-host outcome line"""
        self.log(f"[{host_id}] {message}", "INFO" if ok else "WARNING")

        if not self.verbose:
            mark = "[dim]✓[/dim]" if ok else "[red]✗[/red]"
            console.print(f"  {mark} [dim]{host_id}: {message}[/dim]")

    def success(self, message: str):
        """Log a success message"""
        self.log(message, "INFO")

        if not self.verbose:
            console.print(f"  [dim]✓ {message}[/dim]")

    def warning(self, message: str):
        """Log a warning message"""
        self.log(message, "WARNING")

        if not self.verbose:
            console.print(f"  [yellow]⚠[/yellow] [dim]{message}[/dim]")

    def close(self):
        """Close log file"""
        with self._lock:
            if self.log_file:
                footer = f"""
{"=" * 80}
Completed: {datetime.now().isoformat()}
Status: {"FAILED" if self.has_errors else "SUCCESS"}
{"=" * 80}
"""
                self.log_file.write(footer)
                self.log_file.close()
                self.log_file = None

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, _exc_tb):
        """Context manager exit"""
        if exc_type is not None and exc_type != SystemExit:
            self.log_error(
                str(exc_val) if exc_val else "Operation failed",
                context=f"{exc_type.__name__}",
            )
        self.close()
        return False  # Don't suppress exceptions


def run_with_progress(
    logger: Optional[DeployLogger],
    description: str,
    func: Callable[[], T],
    succeeded: Optional[Callable[[T], bool]] = None,
) -> T:
    """
    Run a callable with a spinner, then mark it done or failed.

    Args:
        logger: DeployLogger instance (None or verbose runs skip the spinner)
        description: Description for progress indicator
        func: Work to run
        succeeded: Predicate deciding the final mark from the result

    Returns:
        Whatever func returns
    """
    if logger is None or logger.verbose:
        return func()

    spinner = Spinner("dots", text=f"[cyan]{description}...[/cyan]")
    padded_spinner = Padding(spinner, (0, 0, 0, 2))

    with Live(padded_spinner, console=console, refresh_per_second=10) as live:
        try:
            result = func()
        except BaseException:
            x_mark = Text("  ✗ ", style="red")
            x_mark.append(description, style="dim")
            live.update(x_mark)
            raise

        ok = succeeded(result) if succeeded else True
        if ok:
            checkmark = Text("  ✓ ", style="dim")
            checkmark.append(description, style="dim")
            live.update(checkmark)
        else:
            x_mark = Text("  ✗ ", style="red")
            x_mark.append(description, style="dim")
            live.update(x_mark)

    return result
