"""
Hosts Command

Show inventory hosts next to the topology left by earlier runs.
"""

import click

from labdeploy.base import InventoryCommand
from labdeploy.ui_components import show_hosts


class HostsListCommand(InventoryCommand):
    """List inventory hosts and persisted topology."""

    def execute(self) -> None:
        config = self.load_inventory()
        registry = self.load_topology()

        if self.json_output:
            self.output_json(
                {
                    "inventory": [host.to_dict() for host in config.hosts],
                    "topology": registry.to_dict()["hosts"],
                }
            )
            return

        self.show_header(
            title="Hosts", details={"Inventory": self.config_service.inventory_path}
        )
        show_hosts(config.hosts, "Inventory", console=self.console)

        if len(registry):
            self.console.print()
            show_hosts(registry.hosts(), "Topology (last run)", console=self.console)
            if not registry.all_reachable():
                self.print_warning("Some hosts did not answer on the last run")
        else:
            self.print_dim("\nNo topology recorded yet. Run: labdeploy bootstrap")


@click.command(name="hosts:list")
@click.option("--inventory", "-i", help="Inventory file (default: ./labdeploy.yml)")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def hosts_list(inventory, json_output):
    """
    List hosts

    Examples:
        labdeploy hosts:list
        labdeploy hosts:list --json
    """
    cmd = HostsListCommand(inventory_path=inventory, json_output=json_output)
    cmd.run()
