"""
Base Command Class

Abstract base for all labdeploy CLI commands.
Provides common functionality and structure.
"""

import json
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from rich.console import Console

from labdeploy.constants import CANCELLED_EXIT_CODE
from labdeploy.exceptions import LabDeployError
from labdeploy.logger import DeployLogger
from labdeploy.models.results import RunSummary
from labdeploy.ui_components import show_header, show_summary


class BaseCommand(ABC):
    """
    Abstract base command class.

    Provides:
    - Logger initialization
    - Header display
    - Error handling and exit codes
    - Run summary reporting
    - JSON output support
    - Cancellation signal for concurrent work
    """

    def __init__(self, verbose: bool = False, json_output: bool = False):
        self.verbose = verbose
        self.json_output = json_output
        self.console = Console()
        self.logger: Optional[DeployLogger] = None
        self.cancel_event = threading.Event()

    def init_logger(self, scope: str, command_name: str) -> Optional[DeployLogger]:
        """
        Initialize command logger (skip in JSON mode).

        Args:
            scope: Log grouping (inventory name)
            command_name: Command name

        Returns:
            DeployLogger instance or None if JSON mode
        """
        if self.json_output:
            return None
        self.logger = DeployLogger(scope, command_name, verbose=self.verbose)
        return self.logger

    def output_json(self, data: Dict[str, Any], exit_code: int = 0) -> None:
        """
        Output data as JSON, exiting when exit_code is non-zero.

        Args:
            data: Data to output as JSON
            exit_code: Exit code (0 for success, non-zero for error)
        """
        print(json.dumps(data, indent=2))
        if exit_code != 0:
            raise SystemExit(exit_code)

    def output_json_error(
        self, error: str, details: Optional[Dict[str, Any]] = None, exit_code: int = 1
    ) -> None:
        error_data: Dict[str, Any] = {"error": error}
        if details:
            error_data["details"] = details
        self.output_json(error_data, exit_code=exit_code)

    def show_header(
        self,
        title: str,
        subtitle: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Show command header (skip in JSON or verbose mode)."""
        if not self.verbose and not self.json_output:
            show_header(
                title=title,
                subtitle=subtitle,
                details=details,
                console=self.console,
            )

    def print_warning(self, message: str) -> None:
        """Print warning message (skip in JSON mode)."""
        if not self.json_output:
            self.console.print(f"[yellow]⚠ {message}[/yellow]")

    def print_dim(self, message: str) -> None:
        """Print dim message (skip in JSON mode)."""
        if not self.json_output:
            self.console.print(f"[dim]{message}[/dim]")

    def confirm(self, question: str, default: bool = False) -> bool:
        """
        Ask for user confirmation.

        Args:
            question: Question to ask
            default: Default answer

        Returns:
            True if confirmed
        """
        default_str = "y" if default else "n"
        self.console.print(
            f"{question} [bold bright_white]\\[y/n][/bold bright_white] [dim]({default_str})[/dim]: ",
            end="",
        )
        answer = input().strip().lower()

        if not answer:
            return default

        return answer in ["y", "yes"]

    def report(self, summary: RunSummary) -> None:
        """
        Print the run summary and exit non-zero on failure.

        A run stopped by Ctrl-C still reports its summary, then exits 130.

        Args:
            summary: Completed run summary
        """
        cancelled = self.cancel_event.is_set()
        exit_code = CANCELLED_EXIT_CODE if cancelled else summary.exit_code

        if self.json_output:
            self.output_json(summary.to_dict(), exit_code=exit_code)
            return

        self.console.print()
        show_summary(summary, console=self.console)
        if self.logger:
            self.logger.log(repr(summary))
            self.console.print(f"[dim]Logs saved to:[/dim] {self.logger.log_path}\n")
            if exit_code != 0:
                self.logger.has_errors = True

        if cancelled:
            self.console.print("[yellow]⚠️  Operation cancelled by user[/yellow]")
            if self.logger:
                self.logger.log_error("Cancelled by user")
        if exit_code != 0:
            raise SystemExit(exit_code)

    def _show_logs_hint(self) -> None:
        if self.logger:
            self.console.print(f"[dim]Logs saved to:[/dim] {self.logger.log_path}\n")

    @abstractmethod
    def execute(self, **kwargs) -> None:
        """
        Execute command logic.

        Must be implemented by subclasses.
        """
        pass

    def run(self, **kwargs) -> None:
        """
        Run command with error handling.

        Args:
            **kwargs: Command arguments
        """
        try:
            self.execute(**kwargs)
        except KeyboardInterrupt:
            # let in-flight remote calls finish, start nothing new
            self.cancel_event.set()
            self.console.print("\n[yellow]⚠️  Operation cancelled by user[/yellow]")
            if self.logger:
                self.logger.log_error("Cancelled by user")
            self._show_logs_hint()
            raise SystemExit(CANCELLED_EXIT_CODE)
        except SystemExit:
            raise
        except LabDeployError as e:
            if self.json_output:
                details = {"context": e.context} if e.context else None
                self.output_json_error(e.message, details=details)
            if self.logger:
                self.logger.log_error(e.message, context=e.context)
            else:
                self.console.print(f"\n[bold red]✗ {e.message}[/bold red]")
                if e.context:
                    self.console.print(f"  [color(208)]{e.context}[/color(208)]")
                self.console.print()
            self._show_logs_hint()
            raise SystemExit(1)
        except PermissionError as e:
            self.console.print(f"\n[bold red]✗ Permission denied:[/bold red] {e}\n")
            self.console.print("[dim]Try running with appropriate permissions[/dim]\n")
            if self.logger:
                self.logger.log_error(f"Permission error: {e}")
            self._show_logs_hint()
            raise SystemExit(1)
        except FileNotFoundError as e:
            self.console.print(f"\n[bold red]✗ File not found:[/bold red] {e}\n")
            if self.logger:
                self.logger.log_error(f"File not found: {e}")
            self._show_logs_hint()
            raise SystemExit(1)
        finally:
            if self.logger:
                self.logger.close()
