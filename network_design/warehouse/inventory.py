"""Inventory policy per SKU.

Safety stock follows the normal approximation
``z(service_level) * sigma_daily * sqrt(lead_time_days)`` with
``sigma_daily = demand_cv * daily_demand``. Cycle stock is half of one
review period's demand; the review period defaults to the lead time.
"""

from typing import Dict, List, Optional, Sequence, Union
import logging
import math

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field
from scipy.stats import norm

from ..config import InventoryConfig, OptimizationConfig
from ..errors import InputValidationError
from ..models.forecast import SKU

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365


class SKUInventoryPolicy(BaseModel):
    """Stocking policy and KPIs for one SKU."""
    sku_id: str
    annual_demand: float = Field(..., ge=0)
    daily_demand: float = Field(..., ge=0)
    safety_stock: float = Field(..., ge=0)
    cycle_stock: float = Field(..., ge=0)
    reorder_point: float = Field(..., ge=0)
    max_stock: float = Field(..., ge=0)
    average_inventory: float = Field(..., ge=0)
    average_pallets: float = Field(..., ge=0)
    holding_cost_annual: float = Field(..., ge=0)
    inventory_turns: float = Field(..., ge=0)
    days_of_supply: float = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


class InventoryPlan(BaseModel):
    """Policies for all SKUs plus network totals."""
    policies: List[SKUInventoryPolicy]
    service_level: float
    z_score: float
    total_safety_stock: float
    total_average_inventory: float
    total_holding_cost: float
    inventory_turns: float
    days_of_supply: float

    model_config = ConfigDict(frozen=True)

    def by_sku(self) -> Dict[str, SKUInventoryPolicy]:
        return {p.sku_id: p for p in self.policies}

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([p.model_dump() for p in self.policies]).set_index('sku_id')


class InventoryOptimizer:
    """
    Computes safety stock, cycle stock and holding cost per SKU.

    Example:
        plan = InventoryOptimizer(config.inventory).optimize(skus, demand_factor=1.2)
        print(plan.total_holding_cost, plan.inventory_turns)
    """

    def __init__(self, config: Union[InventoryConfig, OptimizationConfig, None] = None):
        if isinstance(config, OptimizationConfig):
            config = config.inventory
        self.config = config or InventoryConfig()

    @property
    def z_score(self) -> float:
        return float(norm.ppf(self.config.service_level))

    def policy_for(self, sku: SKU, demand_factor: float = 1.0) -> SKUInventoryPolicy:
        c = self.config
        annual = sku.annual_volume * demand_factor
        daily = annual / DAYS_PER_YEAR
        review_days = c.cycle_stock_days if c.cycle_stock_days is not None else c.lead_time_days

        safety = self.z_score * c.demand_cv * daily * math.sqrt(c.lead_time_days)
        safety = max(0.0, safety)
        cycle = daily * review_days / 2
        reorder_point = daily * c.lead_time_days + safety
        average = safety + cycle

        return SKUInventoryPolicy(
            sku_id=sku.id,
            annual_demand=annual,
            daily_demand=daily,
            safety_stock=safety,
            cycle_stock=cycle,
            reorder_point=reorder_point,
            max_stock=reorder_point + daily * review_days,
            average_inventory=average,
            average_pallets=average / sku.units_per_pallet,
            holding_cost_annual=average * c.holding_cost_per_unit_per_year,
            inventory_turns=annual / average if average > 0 else 0.0,
            days_of_supply=average / daily if daily > 0 else 0.0,
        )

    def optimize(self, skus: Sequence[SKU], demand_factor: float = 1.0) -> InventoryPlan:
        """
        Inventory policy for every SKU at ``demand_factor`` times its annual volume.

        Raises:
            InputValidationError: If no SKUs are given or demand_factor is not positive
        """
        if not skus:
            raise InputValidationError("At least one SKU is required for inventory optimization")
        if demand_factor <= 0:
            raise InputValidationError(f"demand_factor must be positive, got {demand_factor}")

        policies = [self.policy_for(s, demand_factor) for s in skus]
        annual = sum(p.annual_demand for p in policies)
        average = sum(p.average_inventory for p in policies)
        plan = InventoryPlan(
            policies=policies,
            service_level=self.config.service_level,
            z_score=self.z_score,
            total_safety_stock=sum(p.safety_stock for p in policies),
            total_average_inventory=average,
            total_holding_cost=sum(p.holding_cost_annual for p in policies),
            inventory_turns=annual / average if average > 0 else 0.0,
            days_of_supply=average / (annual / DAYS_PER_YEAR) if annual > 0 else 0.0,
        )
        logger.info(
            f"Inventory plan for {len(policies)} SKUs: holding ${plan.total_holding_cost:,.0f}/yr, "
            f"{plan.inventory_turns:.1f} turns"
        )
        return plan

    def optimize_for_units(self, skus: Sequence[SKU], annual_units: float) -> InventoryPlan:
        """Inventory policy with SKU volumes scaled so their total equals ``annual_units``."""
        base = sum(s.annual_volume for s in skus) if skus else 0.0
        if base <= 0:
            raise InputValidationError("At least one SKU is required for inventory optimization")
        return self.optimize(skus, annual_units / base)
