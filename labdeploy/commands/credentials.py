"""
Credentials Command

Show issued join credentials by redacted id. Secrets are never printed.
"""

import click
from rich.table import Table

from labdeploy.base import InventoryCommand


class CredentialsListCommand(InventoryCommand):
    """List the inventory's persisted credentials in redacted form."""

    def execute(self) -> None:
        exported = self.load_credentials().export()

        if self.json_output:
            self.output_json({"credentials": exported})
            return

        self.show_header(title="Credentials")
        if not exported:
            self.print_dim("No credentials issued yet. Run: labdeploy bootstrap")
            return

        table = Table(header_style="bold cyan")
        table.add_column("Kind")
        table.add_column("Id")
        table.add_column("Issued by")
        table.add_column("Issued at", style="dim")
        for item in exported:
            table.add_row(item["kind"], item["id"], item["issued_by"], item["issued_at"])
        self.console.print(table)


@click.command(name="credentials:list")
@click.option("--inventory", "-i", help="Inventory file (default: ./labdeploy.yml)")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def credentials_list(inventory, json_output):
    """
    List join credentials (redacted)

    Examples:
        labdeploy credentials:list
        labdeploy credentials:list -i staging.yml --json
    """
    cmd = CredentialsListCommand(inventory_path=inventory, json_output=json_output)
    cmd.run()
