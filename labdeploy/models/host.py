"""
Host Models

Dataclass models for deployment targets and their roles.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any

from labdeploy.constants import DEFAULT_BACKEND_PORT


class HostRole(Enum):
    """Role of a host within one orchestration run."""

    CONTROL_PLANE = "control-plane"
    WORKER = "worker"
    BALANCER = "balancer"
    STANDALONE = "standalone"


@dataclass
class Host:
    """A deployment target."""

    id: str
    address: str
    role: HostRole = HostRole.STANDALONE
    reachable: bool = True
    port: int = DEFAULT_BACKEND_PORT
    user: Optional[str] = None

    @property
    def is_control_plane(self) -> bool:
        """Check if host is the control plane."""
        return self.role == HostRole.CONTROL_PLANE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: Dict[str, Any] = {
            "id": self.id,
            "address": self.address,
            "role": self.role.value,
            "reachable": self.reachable,
            "port": self.port,
        }
        if self.user:
            data["user"] = self.user
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Host":
        """Create from dictionary."""
        return cls(
            id=str(data["id"]),
            address=str(data["address"]),
            role=HostRole(data.get("role", HostRole.STANDALONE.value)),
            reachable=bool(data.get("reachable", True)),
            port=int(data.get("port", DEFAULT_BACKEND_PORT)),
            user=data.get("user"),
        )

    def __repr__(self) -> str:
        return f"Host(id={self.id}, address={self.address}, role={self.role.value})"
