"""
Balancer Commands

Render and publish the load-balancer config for the current workers.
"""

from typing import Optional

import click

from labdeploy.base import InventoryCommand
from labdeploy.constants import DEFAULT_BALANCER_CONFIG_PATH
from labdeploy.core.balancer import LoadBalancerSynthesizer
from labdeploy.logger import run_with_progress


class BalancerConfigureCommand(InventoryCommand):
    """
    Publish the balancer config.

    Features:
    - Renders backends from the worker hosts
    - Publishes to every balancer host (or the one selected)
    - Records "no balancer configured" when the topology has none
    """

    def __init__(
        self,
        balancer_ids: Optional[list[str]] = None,
        config_path: str = DEFAULT_BALANCER_CONFIG_PATH,
        inventory_path: Optional[str] = None,
        verbose: bool = False,
        json_output: bool = False,
        dry_run: bool = False,
    ):
        super().__init__(
            inventory_path, verbose=verbose, json_output=json_output, dry_run=dry_run
        )
        self.balancer_ids = balancer_ids or []
        self.config_path = config_path

    def execute(self) -> None:
        """Execute balancer:configure command."""
        for host_id in self.balancer_ids:
            self.config_service.get_host(host_id)

        self.show_header(
            title="Configure Load Balancer",
            subtitle="Dry run, no remote commands" if self.dry_run else None,
            details={"Config": self.config_path},
        )

        logger = self.init_logger(self.scope, "balancer-configure")
        if logger:
            logger.step("Publishing balancer config")

        registry = self.load_merged_topology()
        synthesizer = LoadBalancerSynthesizer(
            self.create_executor(),
            config_path=self.config_path,
            timeout=self.load_inventory().defaults.timeout,
            logger=logger,
        )
        summary = run_with_progress(
            logger,
            "Rendering and publishing",
            lambda: synthesizer.configure(registry, self.balancer_ids),
            succeeded=lambda s: s.exit_code == 0,
        )
        self.report(summary)


class BalancerRenderCommand(InventoryCommand):
    """Print the rendered balancer config without publishing it."""

    def execute(self) -> None:
        registry = self.load_merged_topology()
        synthesizer = LoadBalancerSynthesizer(self.create_executor())
        text = synthesizer.render(registry)
        if self.json_output:
            self.output_json({"config": text})
            return
        click.echo(text)


@click.command(name="balancer:configure")
@click.option("--balancer", "-b", "balancers", multiple=True, help="Balancer host id (repeatable)")
@click.option(
    "--config-path",
    default=DEFAULT_BALANCER_CONFIG_PATH,
    show_default=True,
    help="Config file path on the balancer",
)
@click.option("--inventory", "-i", help="Inventory file (default: ./labdeploy.yml)")
@click.option("--dry-run", is_flag=True, help="Show commands without running them")
@click.option("--verbose", "-v", is_flag=True, help="Show all command output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def balancer_configure(balancers, config_path, inventory, dry_run, verbose, json_output):
    """
    Publish load-balancer config

    Renders an HAProxy config whose backends are the worker hosts, writes
    it on each balancer host and reloads HAProxy. Without a balancer host
    nothing is published.

    Examples:
        labdeploy balancer:configure
        labdeploy balancer:configure -b lb1 --dry-run
    """
    cmd = BalancerConfigureCommand(
        balancer_ids=list(balancers),
        config_path=config_path,
        inventory_path=inventory,
        verbose=verbose,
        json_output=json_output,
        dry_run=dry_run,
    )
    cmd.run()


@click.command(name="balancer:render")
@click.option("--inventory", "-i", help="Inventory file (default: ./labdeploy.yml)")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def balancer_render(inventory, json_output):
    """
    Print the load-balancer config

    Examples:
        labdeploy balancer:render > haproxy.cfg
    """
    cmd = BalancerRenderCommand(
        inventory_path=inventory, json_output=json_output, dry_run=True
    )
    cmd.run()
