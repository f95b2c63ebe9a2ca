"""
Credential Management Service

Issues join credentials once per (kind, issuer), hands them out read-only,
and optionally persists them to an owner-only file.
"""

import secrets
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

import yaml

from labdeploy.exceptions import (
    CredentialConflictError,
    CredentialMissingError,
    StateError,
)
from labdeploy.models.credential import Credential, CredentialKind
from labdeploy.models.host import Host
from labdeploy.utils import write_private_file

# (kind, issuer) -> (secret, non-secret join params)
CredentialFetcher = Callable[[CredentialKind, Host], Tuple[str, Dict[str, str]]]


def generate_token(kind: CredentialKind, issuer: Host) -> Tuple[str, Dict[str, str]]:
    """Mint a random token locally when no runtime fetcher is supplied."""
    return secrets.token_hex(24), {}


class CredentialManager:
    """
    Run-scoped store of join credentials.

    Writes are serialized; reads go to an immutable snapshot so concurrent
    join tasks never block each other.
    """

    def __init__(self, fetcher: Optional[CredentialFetcher] = None):
        """
        Initialize credential manager.

        Args:
            fetcher: Callable reading the secret from the issuing host
        """
        self.fetcher = fetcher or generate_token
        self._credentials: Dict[CredentialKind, Credential] = {}
        self._write_lock = threading.Lock()

    def issue(
        self,
        kind: CredentialKind,
        issuer: Host,
        fetcher: Optional[CredentialFetcher] = None,
    ) -> Credential:
        """
        Issue a credential of kind from issuer.

        Repeating the call with the same issuer returns the credential
        already issued. A different issuer for an issued kind is refused.

        Args:
            kind: Credential kind
            issuer: Control-plane host
            fetcher: Override for this call

        Returns:
            The issued Credential

        Raises:
            CredentialConflictError: kind already issued by another host
        """
        with self._write_lock:
            existing = self._credentials.get(kind)
            if existing is not None:
                if existing.issued_by == issuer.id:
                    return existing
                raise CredentialConflictError(kind.value, existing.issued_by, issuer.id)

            secret, params = (fetcher or self.fetcher)(kind, issuer)
            if not secret:
                raise StateError(
                    f"Empty '{kind.value}' credential returned by '{issuer.id}'"
                )

            credential = Credential(
                kind=kind,
                secret=secret,
                issued_by=issuer.id,
                issued_at=datetime.now().isoformat(),
                params=dict(params),
            )
            updated = dict(self._credentials)
            updated[kind] = credential
            self._credentials = updated
            return credential

    def get(self, kind: CredentialKind) -> Optional[Credential]:
        """
        Get credential of kind.

        Returns:
            Credential, or None when the control plane is not ready yet
        """
        return self._credentials.get(kind)

    def require(self, kind: CredentialKind, host_id: str) -> Credential:
        """
        Get credential of kind or fail fast.

        Raises:
            CredentialMissingError: No credential of kind issued
        """
        credential = self.get(kind)
        if credential is None:
            raise CredentialMissingError(kind.value, host_id)
        return credential

    def all(self) -> list[Credential]:
        """All issued credentials."""
        return list(self._credentials.values())

    def export(self) -> list[dict]:
        """Human-readable form with secrets replaced by redacted ids."""
        return [c.to_dict(redact=True) for c in self._credentials.values()]

    def save(self, path: Path) -> None:
        """
        Persist credentials to an owner-read-only YAML file.

        Args:
            path: Destination file
        """
        data = {
            "credentials": [c.to_dict() for c in self._credentials.values()]
        }
        write_private_file(Path(path), yaml.safe_dump(data, sort_keys=False))

    @classmethod
    def load(
        cls, path: Path, fetcher: Optional[CredentialFetcher] = None
    ) -> "CredentialManager":
        """
        Load persisted credentials.

        Args:
            path: Credentials file (missing file yields an empty manager)

        Raises:
            StateError: If the file is malformed
        """
        manager = cls(fetcher=fetcher)
        path = Path(path)
        if not path.exists():
            return manager

        try:
            data = yaml.safe_load(path.read_text()) or {}
            for item in data.get("credentials", []):
                credential = Credential.from_dict(item)
                manager._credentials[credential.kind] = credential
        except (yaml.YAMLError, KeyError, ValueError, TypeError) as e:
            raise StateError(f"Invalid credentials file: {path}", context=str(e))

        return manager

    def __len__(self) -> int:
        return len(self._credentials)

    def __repr__(self) -> str:
        ids = ", ".join(c.redacted_id for c in self._credentials.values())
        return f"CredentialManager([{ids}])"
