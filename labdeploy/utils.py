"""
CLI Utilities

Core utility functions for locating labdeploy's working directories and
writing operator-private files.
"""

import os
from pathlib import Path
from typing import Optional

from labdeploy.constants import (
    HOME_ENV_VAR,
    DEFAULT_HOME_DIR,
    STATE_DIR_NAME,
    LOGS_DIR_NAME,
    INVENTORY_ENV_VAR,
    DEFAULT_INVENTORY_FILE,
    STATE_FILE_PERMISSIONS,
    STATE_DIR_PERMISSIONS,
)


class PathUtils:
    """Utilities for labdeploy's on-disk layout."""

    @staticmethod
    def get_home_dir() -> Path:
        """
        Get labdeploy home directory.

        Returns:
            $LABDEPLOY_HOME if set, else ~/.labdeploy
        """
        return Path(os.environ.get(HOME_ENV_VAR, DEFAULT_HOME_DIR)).expanduser()

    @staticmethod
    def get_state_dir(scope: Optional[str] = None) -> Path:
        """
        Directory holding persisted topology and credentials.

        Args:
            scope: Inventory name; each inventory keeps its own state

        Returns:
            $LABDEPLOY_HOME/state, or $LABDEPLOY_HOME/state/<scope>
        """
        state_dir = PathUtils.get_home_dir() / STATE_DIR_NAME
        return state_dir / scope if scope else state_dir

    @staticmethod
    def get_logs_dir() -> Path:
        """Directory holding per-run log files."""
        return PathUtils.get_home_dir() / LOGS_DIR_NAME

    @staticmethod
    def resolve_inventory_path(path: Optional[str] = None) -> Path:
        """
        Resolve the inventory file location.

        Args:
            path: Explicit path from the command line

        Returns:
            Explicit path, $LABDEPLOY_INVENTORY, or ./labdeploy.yml
        """
        if path:
            return Path(path).expanduser()
        env_path = os.environ.get(INVENTORY_ENV_VAR)
        if env_path:
            return Path(env_path).expanduser()
        return Path.cwd() / DEFAULT_INVENTORY_FILE


def get_home_dir() -> Path:
    """Get labdeploy home directory (convenience function)."""
    return PathUtils.get_home_dir()


def get_state_dir(scope: Optional[str] = None) -> Path:
    """Get state directory (convenience function)."""
    return PathUtils.get_state_dir(scope)


def get_logs_dir() -> Path:
    """Get logs directory (convenience function)."""
    return PathUtils.get_logs_dir()


def resolve_inventory_path(path: Optional[str] = None) -> Path:
    """Resolve inventory file location (convenience function)."""
    return PathUtils.resolve_inventory_path(path)


def write_private_file(path: Path, content: str) -> None:
    """
    Write a file readable only by the owning operator.

    The file is created with 0600 before any content is written, then
    moved into place so a reader never sees a partially written file.

    Args:
        path: Destination path
        content: File content
    """
    path = Path(path)
    if not path.parent.exists():
        path.parent.mkdir(mode=STATE_DIR_PERMISSIONS, parents=True)

    tmp_path = path.with_name(f".{path.name}.tmp")
    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, STATE_FILE_PERMISSIONS)
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    os.chmod(tmp_path, STATE_FILE_PERMISSIONS)
    os.replace(tmp_path, path)
