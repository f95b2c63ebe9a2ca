#!/usr/bin/env python3
"""labdeploy CLI - Main entry point"""

import functools
import os
import sys

from rich.console import Console

import rich_click as click
from click.exceptions import ClickException, MissingParameter, UsageError

from labdeploy import __version__

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = False
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.MAX_WIDTH = 100

# COMMANDS / OPTIONS
click.rich_click.STYLE_COMMAND = "bold cyan"
click.rich_click.STYLE_OPTION = "bold magenta"
click.rich_click.STYLE_SWITCH = "bold green"
click.rich_click.STYLE_ARGUMENT = "bold yellow"

# HEADERS / HELP TEXT
click.rich_click.STYLE_HEADER_TEXT = "bold cyan"
click.rich_click.STYLE_USAGE = "bold yellow"
click.rich_click.STYLE_USAGE_COMMAND = "bold cyan"
click.rich_click.STYLE_HELPTEXT_FIRST_LINE = "bold white"
click.rich_click.STYLE_HELPTEXT = ""
click.rich_click.STYLE_OPTION_DEFAULT = "dim cyan"
click.rich_click.STYLE_OPTIONS_PANEL_BORDER = "cyan"
click.rich_click.STYLE_COMMANDS_PANEL_BORDER = "cyan"
click.rich_click.ALIGN_ERRORS_PANEL = "left"
click.rich_click.ERRORS_EPILOGUE = ""

from labdeploy.commands.balancer import balancer_configure, balancer_render
from labdeploy.commands.bootstrap import bootstrap
from labdeploy.commands.credentials import credentials_list
from labdeploy.commands.deploy import deploy
from labdeploy.commands.hosts import hosts_list
from labdeploy.commands.state import state_reset

console = Console()

BANNER = """
[bold cyan]╔═══════════════════════════════════════════════════════╗[/bold cyan]
[bold cyan]║[/bold cyan]  [bold white]labdeploy[/bold white] - cluster bootstrap & fan-out over SSH  [bold cyan]║[/bold cyan]
[bold cyan]╚═══════════════════════════════════════════════════════╝[/bold cyan]
"""


def handle_cli_errors(func):
    """Decorator to handle CLI errors gracefully."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (MissingParameter, UsageError) as e:
            console.print(f"\n[bold red]✗ Error:[/bold red] {e.format_message()}\n")
            if e.ctx and e.ctx.command:
                console.print(
                    f"[dim]Run[/dim] [cyan]labdeploy {e.ctx.command.name} --help[/cyan] [dim]for usage information[/dim]\n"
                )
            sys.exit(2)
        except ClickException as e:
            e.show()
            sys.exit(e.exit_code)
        except KeyboardInterrupt:
            console.print("\n\n[yellow]⚠️  Operation cancelled by user[/yellow]")
            sys.exit(130)
        except Exception as e:
            console.print(f"\n[bold red]✗ Unexpected error:[/bold red] {e}\n")
            console.print("[dim]If this persists, please report this issue.[/dim]\n")

            if os.environ.get("DEBUG") or os.environ.get("VERBOSE"):
                import traceback

                console.print("[dim]Traceback:[/dim]")
                traceback.print_exc()
            sys.exit(1)

    return wrapper


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """
    labdeploy - Bootstrap clusters and deploy containers across lab hosts.

    \b
    Quick Start:
      labdeploy hosts:list                    # Check the inventory
      labdeploy bootstrap -n calico           # Control plane + workers
      labdeploy balancer:configure            # Point HAProxy at workers
      labdeploy state:reset                   # Forget this inventory's state

    \b
    Deploy:
      labdeploy deploy run-container --image nginx -H w1 -H w2
      labdeploy deploy compose-up -f /srv/app/compose.yml --role worker
      labdeploy deploy install-docker --role worker --retries 2

    \b
    Every run ends with a per-host summary and exits non-zero if any
    host failed. Add --dry-run to print commands without running them.
    """
    if ctx.invoked_subcommand is None:
        console.print(BANNER)
        console.print("[yellow]Run 'labdeploy --help' for usage[/yellow]\n")


cli.add_command(bootstrap)
cli.add_command(deploy)
# Balancer commands (colon-namespaced)
cli.add_command(balancer_configure)
cli.add_command(balancer_render)
cli.add_command(hosts_list)
cli.add_command(credentials_list)
cli.add_command(state_reset)


@handle_cli_errors
def main():
    """Main entry point with error handling."""
    cli()


if __name__ == "__main__":
    main()
