"""SSH transport for executing commands on remote hosts."""

import socket
import subprocess
import threading
import time
from abc import ABC, abstractmethod
from typing import Optional

from labdeploy.constants import SSH_TRANSPORT_ERROR_CODE
from labdeploy.models.command import Command
from labdeploy.models.results import ExecResult
from labdeploy.models.ssh import SSHConfig, SSHConnection


class Session(ABC):
    """An open channel to one host."""

    address: str

    @abstractmethod
    def run(self, command: Command, timeout: float) -> ExecResult:
        """
        Run command and wait for it.

        Raises:
            ConnectionError: If the host could not be reached
            TimeoutError: If the command exceeded timeout
        """
        pass

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class Transport(ABC):
    """Factory for sessions to remote addresses."""

    dry_run = False

    @abstractmethod
    def connect(self, address: str, user: Optional[str] = None) -> Session:
        """
        Open a session to address.

        Raises:
            ConnectionError: If the address cannot be resolved or reached
        """
        pass


class SSHSession(Session):
    """Session backed by the system ssh client, one process per command."""

    def __init__(self, connection: SSHConnection):
        self.connection = connection
        self.address = connection.address

    def run(self, command: Command, timeout: float) -> ExecResult:
        ssh_cmd = self.connection.build_command(command.remote_string())
        start_time = time.time()

        try:
            result = subprocess.run(
                ssh_cmd,
                input=command.stdin,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            raise TimeoutError(
                f"SSH command timed out after {timeout}s on {self.address}"
            )
        except FileNotFoundError:
            raise ConnectionError("ssh client not found on PATH")

        duration = time.time() - start_time

        if result.returncode == SSH_TRANSPORT_ERROR_CODE:
            detail = result.stderr.strip() or "ssh connection failed"
            raise ConnectionError(detail)

        return ExecResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            host=self.address,
            command=command.display(),
            duration_seconds=duration,
        )


class SSHTransport(Transport):
    """Service for SSH connections."""

    def __init__(self, config: SSHConfig):
        """
        Initialize SSH transport.

        Args:
            config: SSH configuration
        """
        self.config = config

    def connect(self, address: str, user: Optional[str] = None) -> SSHSession:
        try:
            socket.getaddrinfo(address, self.config.port)
        except socket.gaierror as e:
            raise ConnectionError(f"Cannot resolve {address}: {e}")
        return SSHSession(SSHConnection(address=address, config=self.config, user=user))

    def test_connection(self, address: str, user: Optional[str] = None) -> bool:
        """
        Test SSH connection to host.

        Args:
            address: Host IP or hostname

        Returns:
            True if connection successful
        """
        try:
            with self.connect(address, user) as session:
                result = session.run(Command.of("true"), timeout=self.config.connect_timeout + 5)
            return result.is_success
        except (ConnectionError, TimeoutError):
            return False


class DryRunSession(Session):
    def __init__(self, transport: "DryRunTransport", address: str):
        self.transport = transport
        self.address = address

    def run(self, command: Command, timeout: float) -> ExecResult:
        self.transport.record(self.address, command)
        return ExecResult(
            returncode=0,
            host=self.address,
            command=command.display(),
        )


class DryRunTransport(Transport):
    """Records every command and reports success without contacting hosts."""

    dry_run = True

    def __init__(self):
        self.executed: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def connect(self, address: str, user: Optional[str] = None) -> DryRunSession:
        return DryRunSession(self, address)

    def record(self, address: str, command: Command) -> None:
        with self._lock:
            self.executed.append((address, command.display()))
