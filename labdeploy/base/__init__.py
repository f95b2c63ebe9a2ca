"""
labdeploy CLI Base Command Classes

Abstract base classes for consistent command structure.
"""

from .base_command import BaseCommand
from .inventory_command import InventoryCommand

__all__ = [
    "BaseCommand",
    "InventoryCommand",
]
