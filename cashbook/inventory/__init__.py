"""Inventory purchases, sales and their cashbook linkage."""

from cashbook.inventory.service import InventoryService

__all__ = ["InventoryService"]
