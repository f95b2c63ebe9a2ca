"""
Configuration Management Service

Inventory loading, validation, and host queries.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from labdeploy.constants import (
    DEFAULT_SSH_KEY_PATH,
    DEFAULT_SSH_USER,
    DEFAULT_SSH_PORT,
    SSH_CONNECTION_TIMEOUT,
    DEFAULT_BACKEND_PORT,
)
from labdeploy.exceptions import ConfigurationError, HostNotFoundError
from labdeploy.models.host import Host, HostRole
from labdeploy.models.inventory import Defaults, InventoryConfig
from labdeploy.models.ssh import SSHConfig

VALID_ROLES = [role.value for role in HostRole]


class ConfigService:
    """
    Inventory file service.

    Responsibilities:
    - Load and cache the inventory YAML
    - Validate hosts, roles and defaults
    - Host lookups for commands
    """

    def __init__(self, inventory_path: Path):
        self.inventory_path = Path(inventory_path)
        self._config_cache: Optional[InventoryConfig] = None

    def load(self, force_reload: bool = False) -> InventoryConfig:
        """
        Load inventory with caching.

        Returns:
            InventoryConfig object

        Raises:
            ConfigurationError: If file missing or invalid
        """
        if self._config_cache is None or force_reload:
            if not self.inventory_path.exists():
                raise ConfigurationError(
                    f"Inventory file not found: {self.inventory_path}",
                    context="Create labdeploy.yml or pass --inventory PATH",
                )
            try:
                raw = yaml.safe_load(self.inventory_path.read_text()) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Invalid YAML in {self.inventory_path}", context=str(e)
                )
            self._config_cache = self.parse(raw)

        return self._config_cache

    @classmethod
    def parse(cls, raw: Dict[str, Any]) -> InventoryConfig:
        """
        Build an InventoryConfig from a raw mapping.

        Raises:
            ConfigurationError: On any invalid field
        """
        if not isinstance(raw, dict):
            raise ConfigurationError("Inventory must be a mapping")

        ssh_raw = raw.get("ssh") or {}
        defaults_raw = raw.get("defaults") or {}
        hosts_raw = raw.get("hosts")

        if not isinstance(hosts_raw, list) or not hosts_raw:
            raise ConfigurationError(
                "Missing required field: 'hosts'",
                context="Example:\nhosts:\n  - {id: cp1, address: 10.0.0.10, role: control-plane}",
            )

        try:
            ssh = SSHConfig(
                user=str(ssh_raw.get("user", DEFAULT_SSH_USER)),
                key_path=ssh_raw.get("key_path", DEFAULT_SSH_KEY_PATH),
                port=int(ssh_raw.get("port", DEFAULT_SSH_PORT)),
                connect_timeout=int(
                    ssh_raw.get("connect_timeout", SSH_CONNECTION_TIMEOUT)
                ),
                strict_host_key_checking=bool(
                    ssh_raw.get("strict_host_key_checking", False)
                ),
            )
            defaults = Defaults(**defaults_raw)
            defaults.timeout = float(defaults.timeout)
            defaults.parallelism = int(defaults.parallelism)
            defaults.retries = int(defaults.retries)
        except TypeError as e:
            raise ConfigurationError("Unknown key in 'defaults'", context=str(e))
        except ValueError as e:
            raise ConfigurationError("Invalid value in inventory", context=str(e))

        if defaults.parallelism < 1:
            raise ConfigurationError("'defaults.parallelism' must be at least 1")
        if defaults.timeout <= 0:
            raise ConfigurationError("'defaults.timeout' must be positive")

        hosts = [cls._parse_host(item, index) for index, item in enumerate(hosts_raw)]

        seen: set[str] = set()
        for host in hosts:
            if host.id in seen:
                raise ConfigurationError(f"Duplicate host id: '{host.id}'")
            seen.add(host.id)

        control_planes = [h.id for h in hosts if h.role == HostRole.CONTROL_PLANE]
        if len(control_planes) > 1:
            raise ConfigurationError(
                "More than one control-plane host declared",
                context=f"Control planes: {', '.join(control_planes)}",
            )

        return InventoryConfig(ssh=ssh, defaults=defaults, hosts=hosts)

    @staticmethod
    def _parse_host(item: Any, index: int) -> Host:
        if not isinstance(item, dict):
            raise ConfigurationError(f"Host entry #{index + 1} must be a mapping")

        for key in ("id", "address"):
            if not item.get(key):
                raise ConfigurationError(
                    f"Host entry #{index + 1} is missing '{key}'"
                )

        role = item.get("role", HostRole.STANDALONE.value)
        if role not in VALID_ROLES:
            raise ConfigurationError(
                f"Invalid role '{role}' for host '{item['id']}'",
                context=f"Valid roles: {', '.join(VALID_ROLES)}",
            )

        try:
            port = int(item.get("port", DEFAULT_BACKEND_PORT))
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid port for host '{item['id']}'")

        return Host(
            id=str(item["id"]),
            address=str(item["address"]),
            role=HostRole(role),
            port=port,
            user=item.get("user"),
        )

    def get_host(self, host_id: str) -> Host:
        """
        Get host by id.

        Raises:
            HostNotFoundError: If id not in inventory
        """
        config = self.load()
        host = config.get_host(host_id)
        if host is None:
            raise HostNotFoundError(host_id, config.host_ids)
        return host

    def select_hosts(
        self, host_ids: Optional[list[str]] = None, role: Optional[HostRole] = None
    ) -> list[Host]:
        """
        Select hosts by explicit ids or by declared role.

        Args:
            host_ids: Ids in the order requested
            role: Declared role filter

        Returns:
            Hosts in request order (ids) or inventory order (role/all)
        """
        config = self.load()
        if host_ids:
            return [self.get_host(host_id) for host_id in host_ids]
        if role is not None:
            return config.hosts_with_role(role)
        return list(config.hosts)
