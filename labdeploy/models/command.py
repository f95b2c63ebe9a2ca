"""
Command Model

Structured remote command: an argument vector instead of an interpolated
shell string, with the values that must never be shown in cleartext.
"""

import shlex
from dataclasses import dataclass, field
from typing import Optional, Sequence

REDACTED = "***"


@dataclass(frozen=True)
class Command:
    """Argument vector executed on a remote host."""

    argv: tuple[str, ...]
    stdin: Optional[str] = field(default=None, repr=False)
    secrets: tuple[str, ...] = field(default=(), repr=False)
    # stdout carries a secret (token reads); never logged
    sensitive_output: bool = False

    def __post_init__(self):
        argv = tuple(str(arg) for arg in self.argv)
        if not argv or not argv[0].strip():
            raise ValueError("Command requires a non-empty argument vector")
        object.__setattr__(self, "argv", argv)
        object.__setattr__(self, "secrets", tuple(s for s in self.secrets if s))

    @classmethod
    def of(
        cls,
        *argv: str,
        stdin: Optional[str] = None,
        secrets: Sequence[str] = (),
        sensitive_output: bool = False,
    ) -> "Command":
        """Build a command from positional arguments."""
        return cls(
            argv=tuple(argv),
            stdin=stdin,
            secrets=tuple(secrets),
            sensitive_output=sensitive_output,
        )

    @classmethod
    def shell(
        cls, script: str, secrets: Sequence[str] = (), sensitive_output: bool = False
    ) -> "Command":
        """Wrap a script that needs pipes or redirection in `sh -c`."""
        return cls(
            argv=("sh", "-c", script),
            secrets=tuple(secrets),
            sensitive_output=sensitive_output,
        )

    def with_sudo(self) -> "Command":
        """Return the same command prefixed with non-interactive sudo."""
        if self.argv[0] == "sudo":
            return self
        return Command(
            argv=("sudo", "-n") + self.argv,
            stdin=self.stdin,
            secrets=self.secrets,
            sensitive_output=self.sensitive_output,
        )

    def remote_string(self) -> str:
        """Quoted command line handed to the remote shell."""
        return shlex.join(self.argv)

    def display(self) -> str:
        """Command line safe for logs and console output."""
        text = self.remote_string()
        for secret in self.secrets:
            text = text.replace(shlex.quote(secret), REDACTED)
            text = text.replace(secret, REDACTED)
        return text

    def __str__(self) -> str:
        return self.display()
