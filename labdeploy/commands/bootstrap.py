"""
Bootstrap Command

Initialize a control plane, issue join credentials and join workers.
"""

from dataclasses import dataclass, field
from typing import Optional

import click

from labdeploy.base import InventoryCommand
from labdeploy.core.bootstrap import BootstrapOrchestrator
from labdeploy.core.runtimes import RUNTIMES, get_runtime
from labdeploy.exceptions import ConfigurationError
from labdeploy.models.host import HostRole
from labdeploy.models.requests import BootstrapRequest
from labdeploy.services import CredentialManager, TopologyRegistry


@dataclass
class BootstrapOptions:
    """Options for bootstrap command."""

    control: Optional[str] = None
    workers: list[str] = field(default_factory=list)
    runtime: Optional[str] = None
    network_plugin: Optional[str] = None
    pod_cidr: Optional[str] = None
    timeout: Optional[float] = None
    parallel: Optional[int] = None
    resume: bool = False


class BootstrapCommand(InventoryCommand):
    """
    Bootstrap a cluster across inventory hosts.

    Features:
    - Control plane from --control or the inventory's control-plane host
    - Workers from --worker or every inventory worker
    - Network plugin applied once after the control plane is up
    - Parallel worker joins with per-host outcomes
    - Starts from empty topology and credentials unless resuming this
      inventory's saved state
    """

    def __init__(
        self,
        options: BootstrapOptions,
        inventory_path: Optional[str] = None,
        verbose: bool = False,
        json_output: bool = False,
        dry_run: bool = False,
    ):
        super().__init__(
            inventory_path, verbose=verbose, json_output=json_output, dry_run=dry_run
        )
        self.options = options

    def build_request(self) -> BootstrapRequest:
        """
        Resolve options against inventory defaults.

        Raises:
            ConfigurationError: No control plane selectable
            HostNotFoundError: Unknown host id
        """
        config = self.load_inventory()
        defaults = config.defaults

        if self.options.control:
            control = self.config_service.get_host(self.options.control)
        else:
            candidates = config.hosts_with_role(HostRole.CONTROL_PLANE)
            if not candidates:
                raise ConfigurationError(
                    "No control-plane host selected",
                    context="Pass --control ID or mark a host 'role: control-plane'",
                )
            control = candidates[0]

        if self.options.workers:
            workers = self.config_service.select_hosts(self.options.workers)
        else:
            workers = config.hosts_with_role(HostRole.WORKER)

        return BootstrapRequest(
            control_host=control,
            worker_hosts=workers,
            network_plugin=self.options.network_plugin or defaults.network_plugin,
            runtime=self.options.runtime or defaults.runtime,
            pod_cidr=self.options.pod_cidr or defaults.pod_cidr,
            timeout=self.options.timeout or defaults.timeout,
        )

    def execute(self) -> None:
        """Execute bootstrap command."""
        request = self.build_request()
        runtime = get_runtime(request.runtime)
        parallel = self.options.parallel or self.load_inventory().defaults.parallelism

        self.show_header(
            title="Bootstrap Cluster",
            subtitle="Dry run, no remote commands" if self.dry_run else None,
            details={
                "Runtime": runtime.name,
                "Control plane": request.control_host.id,
                "Workers": ", ".join(w.id for w in request.worker_hosts) or "none",
                "Network plugin": request.network_plugin or "none",
            },
        )

        logger = self.init_logger(self.scope, "bootstrap")
        if self.options.resume:
            registry = self.load_topology()
            credentials = self.load_credentials()
        else:
            if self.state_service.has_state():
                self.print_dim(
                    "Saved state for this inventory will be replaced "
                    "(pass --resume to continue it)"
                )
            registry = TopologyRegistry()
            credentials = CredentialManager()

        orchestrator = BootstrapOrchestrator(
            self.create_executor(),
            registry,
            credentials,
            runtime,
            max_workers=parallel,
            logger=logger,
            cancel_event=self.cancel_event,
            resume=self.options.resume,
        )
        summary = orchestrator.run(request)

        self.save_state(registry, credentials)
        self.report(summary)


@click.command()
@click.option("--control", "-c", help="Control-plane host id")
@click.option("--worker", "-w", "workers", multiple=True, help="Worker host id (repeatable)")
@click.option(
    "--runtime",
    type=click.Choice(sorted(RUNTIMES)),
    help="Cluster runtime (default from inventory)",
)
@click.option("--network-plugin", "-n", help="Network plugin (calico, flannel, weave, ...)")
@click.option("--pod-cidr", help="Pod network CIDR")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    help="Per-command timeout in seconds",
)
@click.option("--parallel", "-p", type=click.IntRange(min=1), help="Concurrent worker joins")
@click.option(
    "--resume",
    is_flag=True,
    help="Continue from this inventory's saved topology and credentials",
)
@click.option("--inventory", "-i", help="Inventory file (default: ./labdeploy.yml)")
@click.option("--dry-run", is_flag=True, help="Show commands without running them")
@click.option("--verbose", "-v", is_flag=True, help="Show all command output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def bootstrap(
    control,
    workers,
    runtime,
    network_plugin,
    pod_cidr,
    timeout,
    parallel,
    resume,
    inventory,
    dry_run,
    verbose,
    json_output,
):
    """
    Bootstrap a cluster

    Initializes the control plane, applies the network plugin, issues the
    join credential and joins every worker in parallel. A worker that fails
    to join leaves the cluster degraded; a control-plane failure is fatal.

    Examples:
        # Bootstrap from inventory roles
        labdeploy bootstrap -n calico

        # Explicit hosts, k3s runtime
        labdeploy bootstrap -c cp1 -w w1 -w w2 --runtime k3s

        # Rejoin workers after an interrupted run
        labdeploy bootstrap --resume -w w2

        # Preview commands only
        labdeploy bootstrap --dry-run
    """
    options = BootstrapOptions(
        control=control,
        workers=list(workers),
        runtime=runtime,
        network_plugin=network_plugin,
        pod_cidr=pod_cidr,
        timeout=timeout,
        parallel=parallel,
        resume=resume,
    )
    cmd = BootstrapCommand(
        options,
        inventory_path=inventory,
        verbose=verbose,
        json_output=json_output,
        dry_run=dry_run,
    )
    cmd.run()
