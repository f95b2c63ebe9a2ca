"""
Topology Registry Service

Hosts participating in one orchestration run, their roles and
reachability. Enforces a single control plane per run.
"""

import threading
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterator, Optional

import yaml

from labdeploy.exceptions import HostNotFoundError, RoleConflictError, StateError
from labdeploy.models.host import Host, HostRole
from labdeploy.utils import write_private_file


class RoleView:
    """
    Lazy view of the hosts holding a role.

    Every iteration starts over from the registry's current insertion
    order, so fan-out and reporting see the same deterministic sequence.
    """

    def __init__(self, registry: "TopologyRegistry", role: HostRole):
        self._registry = registry
        self.role = role

    def __iter__(self) -> Iterator[Host]:
        for host in self._registry._snapshot().values():
            if host.role == self.role:
                yield host

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __bool__(self) -> bool:
        return any(True for _ in self)

    def ids(self) -> list[str]:
        return [host.id for host in self]

    def __repr__(self) -> str:
        return f"RoleView(role={self.role.value}, hosts={self.ids()})"


class TopologyRegistry:
    """
    In-memory topology with optional YAML persistence.

    Responsibilities:
    - Host registration in insertion order
    - Role assignment and the single control-plane invariant
    - Reachability tracking
    """

    def __init__(self, hosts: Optional[list[Host]] = None):
        self._hosts: Dict[str, Host] = {}
        self._write_lock = threading.Lock()
        for host in hosts or []:
            self.add_host(host)

    def _snapshot(self) -> Dict[str, Host]:
        return self._hosts

    def _control_plane_id(self, hosts: Dict[str, Host]) -> Optional[str]:
        for host in hosts.values():
            if host.role == HostRole.CONTROL_PLANE:
                return host.id
        return None

    def add_host(self, host: Host) -> Host:
        """
        Register a host.

        Args:
            host: Host to add (stored as a copy)

        Raises:
            RoleConflictError: Duplicate id, or a second control plane
        """
        with self._write_lock:
            if host.id in self._hosts:
                raise RoleConflictError(f"Host '{host.id}' is already registered")
            if host.role == HostRole.CONTROL_PLANE:
                current = self._control_plane_id(self._hosts)
                if current is not None:
                    raise RoleConflictError(
                        f"Cannot add '{host.id}' as control-plane",
                        context=f"'{current}' already holds the control-plane role",
                    )
            updated = dict(self._hosts)
            updated[host.id] = replace(host)
            self._hosts = updated
            return updated[host.id]

    def set_role(self, host_id: str, role: HostRole) -> Host:
        """
        Assign role to a registered host.

        Raises:
            HostNotFoundError: Unknown host id
            RoleConflictError: Another host already is the control plane
        """
        with self._write_lock:
            host = self._require(host_id)
            if role == HostRole.CONTROL_PLANE:
                current = self._control_plane_id(self._hosts)
                if current is not None and current != host_id:
                    raise RoleConflictError(
                        f"Cannot make '{host_id}' the control-plane",
                        context=f"'{current}' already holds the control-plane role",
                    )
            return self._update(host_id, replace(host, role=role))

    def mark_reachable(self, host_id: str, reachable: bool) -> Host:
        """Record whether the last contact with a host succeeded."""
        with self._write_lock:
            host = self._require(host_id)
            return self._update(host_id, replace(host, reachable=reachable))

    def _update(self, host_id: str, host: Host) -> Host:
        updated = dict(self._hosts)
        updated[host_id] = host
        self._hosts = updated
        return host

    def _require(self, host_id: str) -> Host:
        host = self._hosts.get(host_id)
        if host is None:
            raise HostNotFoundError(host_id, list(self._hosts))
        return host

    def get(self, host_id: str) -> Host:
        """
        Get host by id.

        Raises:
            HostNotFoundError: Unknown host id
        """
        return self._require(host_id)

    def __contains__(self, host_id: str) -> bool:
        return host_id in self._hosts

    def hosts(self) -> list[Host]:
        """All hosts in insertion order."""
        return list(self._snapshot().values())

    def hosts_by_role(self, role: HostRole) -> RoleView:
        """Hosts holding role, in insertion order."""
        return RoleView(self, role)

    @property
    def control_plane(self) -> Optional[Host]:
        for host in self.hosts_by_role(HostRole.CONTROL_PLANE):
            return host
        return None

    def all_reachable(self) -> bool:
        """Check every registered host answered its last contact."""
        return all(host.reachable for host in self._snapshot().values())

    def __len__(self) -> int:
        return len(self._hosts)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {"hosts": [host.to_dict() for host in self.hosts()]}

    @classmethod
    def from_dict(cls, data: dict) -> "TopologyRegistry":
        """Create from dictionary."""
        return cls([Host.from_dict(item) for item in data.get("hosts", [])])

    def save(self, path: Path) -> None:
        """Persist topology to an owner-read-only YAML file."""
        write_private_file(Path(path), yaml.safe_dump(self.to_dict(), sort_keys=False))

    @classmethod
    def load(cls, path: Path) -> "TopologyRegistry":
        """
        Load persisted topology.

        Args:
            path: Topology file (missing file yields an empty registry)

        Raises:
            StateError: If the file is malformed
        """
        path = Path(path)
        if not path.exists():
            return cls()
        try:
            data = yaml.safe_load(path.read_text()) or {}
            return cls.from_dict(data)
        except (yaml.YAMLError, KeyError, ValueError, TypeError) as e:
            raise StateError(f"Invalid topology file: {path}", context=str(e))
        except RoleConflictError as e:
            raise StateError(f"Inconsistent topology file: {path}", context=e.message)

    def __repr__(self) -> str:
        return f"TopologyRegistry(hosts={len(self)}, control_plane={self._control_plane_id(self._hosts)})"
