"""
Deploy Command

Apply one action to many hosts concurrently.
"""

from dataclasses import dataclass, field
from typing import Optional

import click

from labdeploy.base import InventoryCommand
from labdeploy.core.actions import ACTIONS, build_action
from labdeploy.core.fanout import FanoutDeployer
from labdeploy.exceptions import ValidationError
from labdeploy.models.host import HostRole


@dataclass
class DeployOptions:
    """Options for deploy command."""

    action: str
    hosts: list[str] = field(default_factory=list)
    role: Optional[str] = None
    params: dict = field(default_factory=dict)
    parallel: Optional[int] = None
    retries: Optional[int] = None
    timeout: Optional[float] = None


class DeployCommand(InventoryCommand):
    """
    Fan-out deployment.

    Features:
    - Host selection by id or declared role
    - Bounded parallelism with per-host isolation
    - Retries for unreachable or timed-out hosts
    """

    def __init__(
        self,
        options: DeployOptions,
        inventory_path: Optional[str] = None,
        verbose: bool = False,
        json_output: bool = False,
        dry_run: bool = False,
    ):
        super().__init__(
            inventory_path, verbose=verbose, json_output=json_output, dry_run=dry_run
        )
        self.options = options

    def execute(self) -> None:
        """Execute deploy command."""
        action = build_action(self.options.action, **self.options.params)
        defaults = self.load_inventory().defaults

        role = HostRole(self.options.role) if self.options.role else None
        hosts = self.config_service.select_hosts(self.options.hosts, role)
        if not hosts:
            raise ValidationError(
                "No hosts selected",
                context="Pass --host ID or --role ROLE matching the inventory",
            )

        self.show_header(
            title="Deploy",
            subtitle="Dry run, no remote commands" if self.dry_run else None,
            details={
                "Action": action.name,
                "Payload": action.payload or "-",
                "Hosts": ", ".join(h.id for h in hosts),
            },
        )

        logger = self.init_logger(self.scope, f"deploy-{action.name}")
        if logger:
            logger.step(f"Running {action.name} on {len(hosts)} hosts")

        registry = self.load_topology()
        deployer = FanoutDeployer(
            self.create_executor(),
            max_workers=self.options.parallel or defaults.parallelism,
            timeout=self.options.timeout or defaults.timeout,
            retries=(
                self.options.retries
                if self.options.retries is not None
                else defaults.retries
            ),
            registry=registry,
            logger=logger,
            cancel_event=self.cancel_event,
        )
        summary = deployer.deploy(hosts, action)

        if len(registry):
            self.save_state(registry)
        self.report(summary)


@click.command()
@click.argument("action", type=click.Choice(sorted(ACTIONS)))
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
@click.option("--host", "-H", "hosts", multiple=True, help="Target host id (repeatable)")
@click.option(
    "--role",
    "-r",
    type=click.Choice([role.value for role in HostRole]),
    help="Target every host declared with this role",
)
@click.option("--image", help="Container image (run-container, pull-image)")
@click.option("--name", help="Container name (run-container, stop-container)")
@click.option("--ports", help="Port mappings, comma separated (e.g. 80:8080,443:8443)")
@click.option("--file", "-f", "compose_file", help="Compose file path on the host")
@click.option("--project", help="Compose project name")
@click.option("--service", help="systemd service name (start-service)")
@click.option("--manifest", help="Manifest path or URL (kubectl-apply)")
@click.option("--parallel", "-p", type=click.IntRange(min=1), help="Concurrent hosts")
@click.option("--retries", type=click.IntRange(min=0), help="Retries for unreachable/timeout")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    help="Per-command timeout in seconds",
)
@click.option("--inventory", "-i", help="Inventory file (default: ./labdeploy.yml)")
@click.option("--dry-run", is_flag=True, help="Show commands without running them")
@click.option("--verbose", "-v", is_flag=True, help="Show all command output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def deploy(
    action,
    command,
    hosts,
    role,
    image,
    name,
    ports,
    compose_file,
    project,
    service,
    manifest,
    parallel,
    retries,
    timeout,
    inventory,
    dry_run,
    verbose,
    json_output,
):
    """
    Apply an action to many hosts

    Runs the action on every selected host concurrently. A failing host
    never stops the others; the run summary lists each host's outcome.

    Examples:
        # Run a container on two hosts
        labdeploy deploy run-container --image nginx:1.27 --name web -H w1 -H w2

        # Install Docker on every worker
        labdeploy deploy install-docker --role worker

        # Arbitrary command
        labdeploy deploy run-command -H w1 -- uptime
    """
    options = DeployOptions(
        action=action,
        hosts=list(hosts),
        role=role,
        params={
            "image": image,
            "name": name,
            "ports": ports,
            "file": compose_file,
            "project": project,
            "service": service,
            "manifest": manifest,
            "argv": list(command),
        },
        parallel=parallel,
        retries=retries,
        timeout=timeout,
    )
    cmd = DeployCommand(
        options,
        inventory_path=inventory,
        verbose=verbose,
        json_output=json_output,
        dry_run=dry_run,
    )
    cmd.run()
