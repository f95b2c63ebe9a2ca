"""
State Management Service

Persisted topology and credentials between runs. Both files are written
owner-read-only.
"""

from pathlib import Path
from typing import Optional

from labdeploy.constants import TOPOLOGY_STATE_FILE, CREDENTIALS_STATE_FILE
from labdeploy.services.credential_service import CredentialManager
from labdeploy.services.topology_service import TopologyRegistry


class StateService:
    """
    Centralized persisted-state service.

    Responsibilities:
    - Load and cache the last run's topology
    - Persist topology and credentials at the end of a run
    """

    def __init__(self, state_dir: Path):
        """
        Initialize state service.

        Args:
            state_dir: Directory holding state files
        """
        self.state_dir = Path(state_dir)
        self._topology_cache: Optional[TopologyRegistry] = None

    @property
    def topology_path(self) -> Path:
        return self.state_dir / TOPOLOGY_STATE_FILE

    @property
    def credentials_path(self) -> Path:
        return self.state_dir / CREDENTIALS_STATE_FILE

    def has_state(self) -> bool:
        """Check if a previous run left a topology behind."""
        return self.topology_path.exists()

    def load_topology(self, force_reload: bool = False) -> TopologyRegistry:
        """
        Load persisted topology with caching.

        Returns:
            TopologyRegistry (empty when no run happened yet)
        """
        if self._topology_cache is None or force_reload:
            self._topology_cache = TopologyRegistry.load(self.topology_path)
        return self._topology_cache

    def save_topology(self, registry: TopologyRegistry) -> None:
        registry.save(self.topology_path)
        self._topology_cache = registry

    def load_credentials(self) -> CredentialManager:
        return CredentialManager.load(self.credentials_path)

    def save_credentials(self, credentials: CredentialManager) -> None:
        """Persist credentials; an empty manager removes a stale file."""
        if len(credentials) == 0:
            self.credentials_path.unlink(missing_ok=True)
            return
        credentials.save(self.credentials_path)

    def invalidate_cache(self) -> None:
        """Invalidate the topology cache to force reload on next access."""
        self._topology_cache = None

    def files(self) -> list[Path]:
        """State files currently on disk."""
        return [p for p in (self.topology_path, self.credentials_path) if p.exists()]

    def clear(self) -> list[Path]:
        """
        Delete persisted topology and credentials.

        Returns:
            Paths that were removed
        """
        removed = self.files()
        for path in removed:
            path.unlink()
        self._topology_cache = None
        return removed
