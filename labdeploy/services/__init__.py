"""
labdeploy Services Layer

Transport, execution, credentials, topology, and configuration.
"""

from .ssh_service import Transport, Session, SSHTransport, DryRunTransport
from .remote_executor import RemoteExecutor
from .credential_service import CredentialManager
from .topology_service import TopologyRegistry, RoleView
from .config_service import ConfigService
from .state_service import StateService

__all__ = [
    "Transport",
    "Session",
    "SSHTransport",
    "DryRunTransport",
    "RemoteExecutor",
    "CredentialManager",
    "TopologyRegistry",
    "RoleView",
    "ConfigService",
    "StateService",
]
