"""
Request Models

Explicit inputs consumed by the orchestration core.
"""

from dataclasses import dataclass, field
from typing import Optional

from labdeploy.constants import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_POD_NETWORK_CIDR,
    DEFAULT_RUNTIME,
)
from labdeploy.exceptions import ValidationError
from labdeploy.models.host import Host


@dataclass
class BootstrapRequest:
    """Everything a cluster bootstrap needs, decided up front."""

    control_host: Host
    worker_hosts: list[Host] = field(default_factory=list)
    network_plugin: Optional[str] = None
    runtime: str = DEFAULT_RUNTIME
    pod_cidr: str = DEFAULT_POD_NETWORK_CIDR
    timeout: float = DEFAULT_COMMAND_TIMEOUT

    def validate(self) -> None:
        """
        Check the request is self-consistent.

        Raises:
            ValidationError: On duplicate hosts or a worker that is also the control plane
        """
        seen = {self.control_host.id}
        for worker in self.worker_hosts:
            if worker.id in seen:
                raise ValidationError(
                    f"Host '{worker.id}' appears more than once in the bootstrap request"
                )
            seen.add(worker.id)
        if self.timeout <= 0:
            raise ValidationError("Timeout must be positive")

    @property
    def host_ids(self) -> list[str]:
        return [self.control_host.id] + [w.id for w in self.worker_hosts]
