"""
State Commands

Forget the topology and credentials saved for one inventory.
"""

from typing import Optional

import click

from labdeploy.base import InventoryCommand
from labdeploy.exceptions import ValidationError


class StateResetCommand(InventoryCommand):
    """
    Delete an inventory's saved state.

    The next bootstrap of this inventory starts from an empty topology
    and mints a fresh join credential. Other inventories are untouched.
    """

    def __init__(
        self,
        yes: bool = False,
        inventory_path: Optional[str] = None,
        json_output: bool = False,
    ):
        super().__init__(inventory_path, json_output=json_output)
        self.yes = yes

    def execute(self) -> None:
        """Execute state:reset command."""
        state_dir = self.state_service.state_dir
        self.show_header(title="Reset State", details={"State": str(state_dir)})

        if not self.state_service.files():
            if self.json_output:
                self.output_json({"state_dir": str(state_dir), "removed": []})
                return
            self.print_dim("No saved state for this inventory")
            return

        if not self.yes:
            if self.json_output:
                raise ValidationError(
                    "Refusing to reset state without confirmation",
                    context="Pass --yes together with --json",
                )
            if not self.confirm(
                f"[bold red]Forget topology and credentials for '{self.scope}'?[/bold red]",
                default=False,
            ):
                self.print_dim("Cancelled")
                return

        removed = self.state_service.clear()

        if self.json_output:
            self.output_json(
                {"state_dir": str(state_dir), "removed": [p.name for p in removed]}
            )
            return
        for path in removed:
            self.console.print(f"[green]✓[/green] Removed {path}")


@click.command(name="state:reset")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.option("--inventory", "-i", help="Inventory file (default: ./labdeploy.yml)")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def state_reset(yes, inventory, json_output):
    """
    Forget saved topology and credentials

    Only the selected inventory's state is removed. Nothing runs on the
    hosts; a cluster that is already up stays up.

    Examples:
        labdeploy state:reset
        labdeploy state:reset -i staging.yml --yes
    """
    cmd = StateResetCommand(yes=yes, inventory_path=inventory, json_output=json_output)
    cmd.run()
