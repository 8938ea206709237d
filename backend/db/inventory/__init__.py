"""
Inventory (per-location stock for OrderFlow warehouses).

Models:
- InventoryItem (simple | composite | service) and its bill of materials
- Location (warehouse / shelf)
- InventoryStock (quantity per item per location, zero rows are removed)
- InventoryMovement (append-only deltas that update stock)
"""

from .item import InventoryItem, InventoryItemComponent
from .location import Location
from .movement import InventoryMovement
from .stock import InventoryStock

__all__ = [
    "InventoryItem",
    "InventoryItemComponent",
    "InventoryMovement",
    "InventoryStock",
    "Location",
]
