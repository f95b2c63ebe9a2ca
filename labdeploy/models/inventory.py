"""
Inventory Models

Dataclass models for the loaded inventory file.
"""

from dataclasses import dataclass, field
from typing import Optional

from labdeploy.constants import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_PARALLELISM,
    DEFAULT_RETRIES,
    DEFAULT_RUNTIME,
    DEFAULT_POD_NETWORK_CIDR,
)
from labdeploy.models.host import Host, HostRole
from labdeploy.models.ssh import SSHConfig


@dataclass
class Defaults:
    """Run defaults that CLI options can override."""

    timeout: float = DEFAULT_COMMAND_TIMEOUT
    parallelism: int = DEFAULT_PARALLELISM
    retries: int = DEFAULT_RETRIES
    runtime: str = DEFAULT_RUNTIME
    network_plugin: Optional[str] = None
    pod_cidr: str = DEFAULT_POD_NETWORK_CIDR


@dataclass
class InventoryConfig:
    """A loaded and validated inventory."""

    ssh: SSHConfig = field(default_factory=SSHConfig)
    defaults: Defaults = field(default_factory=Defaults)
    hosts: list[Host] = field(default_factory=list)

    def get_host(self, host_id: str) -> Optional[Host]:
        """Get host by id."""
        for host in self.hosts:
            if host.id == host_id:
                return host
        return None

    def hosts_with_role(self, role: HostRole) -> list[Host]:
        """Hosts declared with a role, in file order."""
        return [host for host in self.hosts if host.role == role]

    @property
    def host_ids(self) -> list[str]:
        return [host.id for host in self.hosts]

    def __repr__(self) -> str:
        return f"InventoryConfig(hosts={len(self.hosts)}, user={self.ssh.user})"
