"""
labdeploy Exception Hierarchy

Clean exception hierarchy for consistent error handling across the CLI
and the orchestration core.
"""

from typing import Optional


class LabDeployError(Exception):
    """Base exception for all labdeploy errors."""

    def __init__(self, message: str, context: Optional[str] = None):
        self.message = message
        self.context = context
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with optional context."""
        if self.context:
            return f"{self.message}\nContext: {self.context}"
        return self.message


class ConfigurationError(LabDeployError):
    """Raised when the inventory file is invalid or missing."""

    pass


class ValidationError(LabDeployError):
    """Raised when a request or action fails validation."""

    pass


class StateError(LabDeployError):
    """Raised when persisted state or a task lifecycle is inconsistent."""

    pass


class OrchestrationError(LabDeployError):
    """Raised when a bootstrap stage cannot proceed."""

    pass


class HostNotFoundError(ConfigurationError):
    """Raised when a host id is not part of the topology."""

    def __init__(self, host_id: str, available_hosts: list[str]):
        self.host_id = host_id
        self.available_hosts = available_hosts
        message = f"Host '{host_id}' not found"
        context = f"Available hosts: {', '.join(available_hosts) or 'none'}"
        super().__init__(message, context)


class ExecError(LabDeployError):
    """Base for failures of a single remote command."""

    reason = "exec-error"

    def __init__(self, host_id: str, message: str, context: Optional[str] = None):
        self.host_id = host_id
        super().__init__(message, context)


class UnreachableError(ExecError):
    """Raised when the transport cannot reach the host."""

    reason = "unreachable"

    def __init__(self, host_id: str, address: str, detail: str = ""):
        self.address = address
        message = f"Host '{host_id}' ({address}) is unreachable"
        super().__init__(host_id, message, detail or None)


class CommandFailedError(ExecError):
    """Raised when the remote command exits non-zero."""

    reason = "command-failed"

    def __init__(self, host_id: str, code: int, command: str, stderr: str = ""):
        self.code = code
        self.command = command
        self.stderr = stderr
        message = f"Command failed on '{host_id}' with exit code {code}"
        context = f"Command: {command}"
        if stderr.strip():
            context += f"\n{stderr.strip().splitlines()[-1]}"
        super().__init__(host_id, message, context)


class CommandTimeoutError(ExecError):
    """Raised when the remote command exceeds its timeout."""

    reason = "timeout"

    def __init__(self, host_id: str, timeout: float, command: str):
        self.timeout = timeout
        self.command = command
        message = f"Command timed out on '{host_id}' after {timeout:g}s"
        super().__init__(host_id, message, f"Command: {command}")


class RoleConflictError(LabDeployError):
    """Raised when a topology invariant would be violated."""

    pass


class CredentialConflictError(RoleConflictError):
    """Raised when a credential kind was already issued by another host."""

    def __init__(self, kind: str, existing_issuer: str, new_issuer: str):
        self.kind = kind
        self.existing_issuer = existing_issuer
        self.new_issuer = new_issuer
        message = (
            f"Credential '{kind}' already issued by '{existing_issuer}', "
            f"refusing reissue from '{new_issuer}'"
        )
        super().__init__(message, "One control plane issues credentials per run")


class CredentialMissingError(LabDeployError):
    """Raised when a join is attempted before the credential exists."""

    def __init__(self, kind: str, host_id: str):
        self.kind = kind
        self.host_id = host_id
        message = f"No '{kind}' credential issued, cannot join '{host_id}'"
        super().__init__(message, "Bootstrap the control plane first")
