"""Verified baseline transportation cost."""

from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class BaselineCost(BaseModel):
    """
    Verified total historical transportation spend.

    Produced by the external cost-aggregation collaborator and used as the
    comparison anchor for savings and multi-year projections.

    Attributes:
        total_cost: Verified total annual transportation cost ($)
        year: Year the spend was incurred (the projection baseline year)
        mode_breakdown: Cost by transport mode (e.g. {"LTL": ..., "TL": ..., "parcel": ...})
        source: Label of the data source
    """
    total_cost: float = Field(..., gt=0, description="Verified annual transportation cost")
    year: Optional[int] = Field(None, description="Baseline year")
    mode_breakdown: Dict[str, float] = Field(default_factory=dict, description="Cost by mode")
    source: str = Field("verified", description="Data source label")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode='after')
    def breakdown_matches_total(self):
        """If a mode breakdown is given it must sum to the total (0.5% tolerance)."""
        if self.mode_breakdown:
            if any(v < 0 for v in self.mode_breakdown.values()):
                raise ValueError("mode_breakdown values must be non-negative")
            component_sum = sum(self.mode_breakdown.values())
            if abs(component_sum - self.total_cost) > 0.005 * self.total_cost:
                raise ValueError(
                    f"mode_breakdown sums to {component_sum:,.2f}, "
                    f"expected total_cost {self.total_cost:,.2f}"
                )
        return self

    def mode_share(self, mode: str) -> float:
        """Fraction of total spend for ``mode`` (0 if absent)."""
        return self.mode_breakdown.get(mode, 0.0) / self.total_cost
