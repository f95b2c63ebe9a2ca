"""
Inventory Command Base Class

Base class for commands that act on the hosts of an inventory file.
Provides automatic service initialization.
"""

from dataclasses import replace
from typing import Optional

from labdeploy.base.base_command import BaseCommand
from labdeploy.models.host import HostRole
from labdeploy.models.inventory import InventoryConfig
from labdeploy.services import (
    ConfigService,
    CredentialManager,
    DryRunTransport,
    RemoteExecutor,
    SSHTransport,
    StateService,
    TopologyRegistry,
    Transport,
)
from labdeploy.utils import get_state_dir, resolve_inventory_path


class InventoryCommand(BaseCommand):
    """
    Base class for inventory-driven commands.

    Provides:
    - Inventory loading through ConfigService
    - Persisted topology and credentials through StateService, one
      state directory per inventory
    - Transport and executor construction (real or dry-run)
    """

    # Swapped out in tests
    transport_factory = SSHTransport

    def __init__(
        self,
        inventory_path: Optional[str] = None,
        verbose: bool = False,
        json_output: bool = False,
        dry_run: bool = False,
    ):
        super().__init__(verbose=verbose, json_output=json_output)
        self.dry_run = dry_run
        self.config_service = ConfigService(resolve_inventory_path(inventory_path))
        self.state_service = StateService(get_state_dir(self.scope))
        self.transport: Optional[Transport] = None

    @property
    def scope(self) -> str:
        """Log and state grouping derived from the inventory file name."""
        return self.config_service.inventory_path.stem or "default"

    def load_inventory(self) -> InventoryConfig:
        """
        Load the inventory.

        Raises:
            ConfigurationError: Missing or invalid inventory
        """
        return self.config_service.load()

    def create_transport(self) -> Transport:
        if self.dry_run:
            return DryRunTransport()
        return self.transport_factory(self.load_inventory().ssh)

    def create_executor(self) -> RemoteExecutor:
        """Executor over the command's transport, logging to the run log."""
        if self.transport is None:
            self.transport = self.create_transport()
        return RemoteExecutor(self.transport, self.logger)

    def load_topology(self) -> TopologyRegistry:
        """Topology left by earlier runs (empty on first use)."""
        return self.state_service.load_topology()

    def load_merged_topology(self) -> TopologyRegistry:
        """
        Persisted topology plus inventory hosts it does not know yet.

        Inventory hosts keep their declared role, except a second
        control plane, which is added as standalone.
        """
        registry = self.load_topology()
        for host in self.load_inventory().hosts:
            if host.id in registry:
                continue
            if host.role == HostRole.CONTROL_PLANE and registry.control_plane:
                host = replace(host, role=HostRole.STANDALONE)
            registry.add_host(host)
        return registry

    def load_credentials(self) -> CredentialManager:
        return self.state_service.load_credentials()

    def save_state(
        self,
        registry: TopologyRegistry,
        credentials: Optional[CredentialManager] = None,
    ) -> None:
        """
        Persist topology and credentials (never in dry-run mode).

        Args:
            registry: Topology after the run
            credentials: Issued credentials, if the command issues any
        """
        if self.dry_run:
            self.print_dim("Dry run: state not saved")
            return
        self.state_service.save_topology(registry)
        if credentials is not None:
            self.state_service.save_credentials(credentials)
        if self.logger:
            self.logger.log(f"State saved to {self.state_service.state_dir}")
