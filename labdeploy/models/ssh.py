"""
SSH Configuration Models

Dataclass models for SSH operations.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from labdeploy.constants import (
    DEFAULT_SSH_KEY_PATH,
    DEFAULT_SSH_USER,
    DEFAULT_SSH_PORT,
    SSH_CONNECTION_TIMEOUT,
)


@dataclass
class SSHConfig:
    """SSH configuration for connecting to hosts."""

    user: str = DEFAULT_SSH_USER
    key_path: Optional[str] = DEFAULT_SSH_KEY_PATH
    port: int = DEFAULT_SSH_PORT
    connect_timeout: int = SSH_CONNECTION_TIMEOUT
    strict_host_key_checking: bool = False

    @property
    def key_path_expanded(self) -> Optional[Path]:
        """Get expanded key path (resolves ~)."""
        if self.key_path:
            return Path(self.key_path).expanduser()
        return None

    @property
    def key_exists(self) -> bool:
        """Check if private key file exists."""
        key = self.key_path_expanded
        return key is not None and key.exists()

    def __repr__(self) -> str:
        return f"SSHConfig(user={self.user}, key={self.key_path})"


@dataclass
class SSHConnection:
    """SSH connection details for a specific address."""

    address: str
    config: SSHConfig
    user: Optional[str] = None

    @property
    def connection_string(self) -> str:
        """Get SSH connection string (user@host)."""
        return f"{self.user or self.config.user}@{self.address}"

    @property
    def ssh_command_prefix(self) -> list[str]:
        """Get SSH command prefix for subprocess."""
        prefix = [
            "ssh",
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={self.config.connect_timeout}",
            "-o",
            "LogLevel=QUIET",
            "-p",
            str(self.config.port),
        ]
        if not self.config.strict_host_key_checking:
            prefix += ["-o", "StrictHostKeyChecking=no"]
        if self.config.key_exists:
            prefix += ["-i", str(self.config.key_path_expanded)]
        prefix.append(self.connection_string)
        return prefix

    def build_command(self, remote_command: str) -> list[str]:
        """Build full SSH command with remote command."""
        return self.ssh_command_prefix + [remote_command]

    def __repr__(self) -> str:
        return f"SSHConnection(address={self.address}, user={self.user or self.config.user})"
