"""
Credential Models

Join credentials minted by a control-plane bootstrap. The secret never
appears in repr, logs, or redacted exports.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any


class CredentialKind(Enum):
    """Kind of join credential."""

    CLUSTER_JOIN = "cluster-join"
    SWARM_WORKER = "swarm-worker"
    SWARM_MANAGER = "swarm-manager"


@dataclass(frozen=True)
class Credential:
    """A join credential issued by a control-plane host."""

    kind: CredentialKind
    secret: str = field(repr=False)
    issued_by: str
    issued_at: str
    params: Dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def redacted_id(self) -> str:
        """Stable identifier safe to log (kind + short digest of the secret)."""
        digest = hashlib.sha256(self.secret.encode()).hexdigest()[:8]
        return f"{self.kind.value}:{digest}"

    def to_dict(self, redact: bool = False) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: Dict[str, Any] = {
            "kind": self.kind.value,
            "issued_by": self.issued_by,
            "issued_at": self.issued_at,
            "params": dict(self.params),
        }
        if redact:
            data["id"] = self.redacted_id
        else:
            data["secret"] = self.secret
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credential":
        """Create from dictionary."""
        return cls(
            kind=CredentialKind(data["kind"]),
            secret=data["secret"],
            issued_by=data["issued_by"],
            issued_at=data.get("issued_at") or datetime.now().isoformat(),
            params=dict(data.get("params") or {}),
        )

    def __repr__(self) -> str:
        return f"Credential(id={self.redacted_id}, issued_by={self.issued_by})"
