"""Warehouse capacity sizing and inventory policy."""

from .capacity_sizing import (
    AreaRequirement,
    PerformanceMetrics,
    SizingStatus,
    WarehouseCapacityOptimizer,
    WarehousePlan,
    WarehouseYearResult,
)
from .inventory import InventoryOptimizer, InventoryPlan, SKUInventoryPolicy

__all__ = [
    "AreaRequirement",
    "PerformanceMetrics",
    "SizingStatus",
    "WarehouseCapacityOptimizer",
    "WarehousePlan",
    "WarehouseYearResult",
    "InventoryOptimizer",
    "InventoryPlan",
    "SKUInventoryPolicy",
]
