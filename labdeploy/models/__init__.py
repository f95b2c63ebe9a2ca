"""
labdeploy Domain Models

Clean dataclass-based models for type-safe data handling.
"""

from .host import Host, HostRole
from .credential import Credential, CredentialKind
from .command import Command
from .results import (
    ExecResult,
    DeploymentTask,
    TaskOutcome,
    RunStatus,
    RunSummary,
)
from .requests import BootstrapRequest
from .ssh import SSHConfig, SSHConnection
from .inventory import InventoryConfig, Defaults

__all__ = [
    # Topology
    "Host",
    "HostRole",
    # Credentials
    "Credential",
    "CredentialKind",
    # Commands
    "Command",
    # Results
    "ExecResult",
    "DeploymentTask",
    "TaskOutcome",
    "RunStatus",
    "RunSummary",
    # Requests
    "BootstrapRequest",
    # SSH
    "SSHConfig",
    "SSHConnection",
    # Inventory
    "InventoryConfig",
    "Defaults",
]
