"""
Remote Executor

Runs one command on one host and classifies the failure. Retry policy
belongs to callers.
"""

import time
from typing import Optional

from labdeploy.exceptions import (
    ValidationError,
    UnreachableError,
    CommandFailedError,
    CommandTimeoutError,
)
from labdeploy.logger import DeployLogger
from labdeploy.models.command import Command
from labdeploy.models.host import Host
from labdeploy.models.results import ExecResult
from labdeploy.services.ssh_service import Transport


class RemoteExecutor:
    """
    Execute commands on hosts through a transport.

    Responsibilities:
    - Input validation
    - Session lifecycle per call
    - Mapping transport failures to ExecError subclasses
    - Logging the redacted command and its output
    """

    def __init__(self, transport: Transport, logger: Optional[DeployLogger] = None):
        """
        Initialize executor.

        Args:
            transport: Transport used to reach hosts
            logger: Optional run logger
        """
        self.transport = transport
        self.logger = logger

    @property
    def dry_run(self) -> bool:
        return self.transport.dry_run

    def execute(self, host: Host, command: Command, timeout: float) -> ExecResult:
        """
        Execute command on host.

        Args:
            host: Target host
            command: Structured command
            timeout: Seconds before the call is abandoned

        Returns:
            ExecResult with captured output and exit status 0

        Raises:
            ValidationError: Invalid host address, command or timeout
            UnreachableError: Transport could not connect
            CommandFailedError: Remote command exited non-zero
            CommandTimeoutError: Command ran longer than timeout
        """
        if not host.address or not host.address.strip():
            raise ValidationError(f"Host '{host.id}' has no address")
        if not isinstance(command, Command):
            raise ValidationError("Remote commands must be Command values")
        if timeout <= 0:
            raise ValidationError("Timeout must be positive")

        display = command.display()
        if self.logger:
            self.logger.log_command(host.id, display)

        start_time = time.time()
        try:
            with self.transport.connect(host.address, host.user) as session:
                result = session.run(command, timeout)
        except TimeoutError:
            raise CommandTimeoutError(host.id, timeout, display)
        except (ConnectionError, OSError) as e:
            raise UnreachableError(host.id, host.address, str(e))

        result.host = host.id
        result.duration_seconds = result.duration_seconds or (time.time() - start_time)

        if self.logger and not command.sensitive_output:
            self.logger.log_output(host.id, result.stdout, "stdout")
        if self.logger:
            self.logger.log_output(host.id, result.stderr, "stderr")

        if result.is_failure:
            raise CommandFailedError(host.id, result.returncode, display, result.stderr)

        return result
