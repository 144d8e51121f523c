"""Pydantic schemas for facility location results.

These models are the contract between the optimizer and its consumers
(reporting, persistence, the scenario orchestrator). They validate their
own totals at construction, so an inconsistent result fails fast instead
of reaching a report.
"""

from typing import Any, Dict, List, Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.provenance import DataProvenance

# Absolute tolerance for reported totals
TOTAL_TOLERANCE = 1e-6


class Assignment(BaseModel):
    """Volume of one destination served by one facility."""
    facility_id: str = Field(..., description="Serving facility")
    destination_id: str = Field(..., description="Served destination")
    volume: float = Field(..., gt=0, description="Units per year")
    unit_cost: float = Field(..., ge=0, description="Transport cost per unit")
    distance_miles: float = Field(..., ge=0, description="Lane distance")

    model_config = ConfigDict(frozen=True)

    @property
    def cost(self) -> float:
        return self.volume * self.unit_cost

    def as_triple(self):
        return (self.facility_id, self.destination_id, self.volume)


class FacilityMetrics(BaseModel):
    """Per open facility summary."""
    facility_id: str
    volume: float = Field(..., ge=0)
    capacity: float = Field(..., ge=0)
    utilization: float = Field(..., ge=0, description="Volume / capacity")
    destinations_served: int = Field(..., ge=0)
    average_distance_miles: float = Field(..., ge=0, description="Volume-weighted")
    fixed_cost: float = Field(..., ge=0)
    transport_cost: float = Field(..., ge=0)
    cost_per_unit: float = Field(..., ge=0, description="(fixed + transport) / volume")

    model_config = ConfigDict(frozen=True)

    @property
    def total_cost(self) -> float:
        return self.fixed_cost + self.transport_cost


class NetworkMetrics(BaseModel):
    """Network-wide summary."""
    total_demand: float = Field(..., ge=0)
    facilities_open: int = Field(..., ge=0)
    weighted_average_distance_miles: float = Field(..., ge=0)
    average_utilization: float = Field(..., ge=0)
    network_utilization: float = Field(..., ge=0, description="Total volume / total open capacity")
    max_utilization: float = Field(..., ge=0)
    average_cost_per_unit: float = Field(..., ge=0)
    demand_beyond_max_distance: float = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


class OptimizationResult(BaseModel):
    """
    Validated facility location result.

    Attributes:
        open_facilities: Open facility ids (input order)
        assignments: (facility, destination, volume) with lane cost and distance
        total_fixed_cost: Sum of fixed costs of open facilities
        total_assignment_cost: Sum of volume x unit cost
        total_transportation_cost: total_fixed_cost + total_assignment_cost
        total_distance: Volume-weighted miles (sum of volume x distance)
        service_level_achievement: Fraction of demand served within max distance
        service_level_requirement: Configured target
        provenance: RealData, FallbackData (estimated inputs) or Approximate
        data_provenance: Provenance of the inputs alone (RealData or FallbackData)
        objective_value: Weighted objective value
        solver_name: Solver that produced the result
        proven_optimal: False for timeouts and heuristics
        solve_time_seconds: Solver wall time
        gap: Relative MIP gap if known
    """
    open_facilities: List[str] = Field(..., min_length=1)
    assignments: List[Assignment] = Field(default_factory=list)
    total_fixed_cost: float = Field(..., ge=0)
    total_assignment_cost: float = Field(..., ge=0)
    total_transportation_cost: float = Field(..., ge=0)
    total_distance: float = Field(..., ge=0)
    service_level_achievement: float = Field(..., ge=0, le=1)
    service_level_requirement: float = Field(0.0, ge=0, le=1)
    provenance: DataProvenance = DataProvenance.REAL_DATA
    data_provenance: DataProvenance = DataProvenance.REAL_DATA
    objective_value: float
    solver_name: str
    proven_optimal: bool = True
    solve_time_seconds: float = Field(0.0, ge=0)
    gap: Optional[float] = None
    facility_metrics: List[FacilityMetrics] = Field(default_factory=list)
    network_metrics: Optional[NetworkMetrics] = None
    warnings: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode='after')
    def validate_totals(self):
        """Reported totals must equal their recomputation from the assignments."""
        assignment_cost = sum(a.cost for a in self.assignments)
        if abs(assignment_cost - self.total_assignment_cost) > TOTAL_TOLERANCE * max(1.0, assignment_cost):
            raise ValueError(
                f"total_assignment_cost ({self.total_assignment_cost}) does not match "
                f"assignments ({assignment_cost})"
            )
        expected = self.total_fixed_cost + self.total_assignment_cost
        if abs(expected - self.total_transportation_cost) > TOTAL_TOLERANCE * max(1.0, expected):
            raise ValueError(
                f"total_transportation_cost ({self.total_transportation_cost}) must equal "
                f"fixed ({self.total_fixed_cost}) + assignment ({self.total_assignment_cost})"
            )
        open_set = set(self.open_facilities)
        stray = sorted({a.facility_id for a in self.assignments} - open_set)
        if stray:
            raise ValueError(f"Assignments reference closed facilities: {stray}")
        return self

    @property
    def total_cost(self) -> float:
        return self.total_transportation_cost

    @property
    def is_approximate(self) -> bool:
        return self.provenance == DataProvenance.APPROXIMATE

    @property
    def uses_fallback_data(self) -> bool:
        return self.data_provenance == DataProvenance.FALLBACK_DATA

    @property
    def service_level_met(self) -> bool:
        return self.service_level_achievement + 1e-12 >= self.service_level_requirement

    def volume_by_facility(self) -> Dict[str, float]:
        totals = {f: 0.0 for f in self.open_facilities}
        for a in self.assignments:
            totals[a.facility_id] += a.volume
        return totals

    def volume_by_destination(self) -> Dict[str, float]:
        totals: Dict[str, float] = {}
        for a in self.assignments:
            totals[a.destination_id] = totals.get(a.destination_id, 0.0) + a.volume
        return totals

    def assignment_triples(self):
        return [a.as_triple() for a in self.assignments]

    def to_assignments_frame(self) -> pd.DataFrame:
        """Assignments as rows with volume, unit cost, distance and lane cost."""
        columns = ["facility_id", "destination_id", "volume", "unit_cost", "distance_miles", "cost"]
        rows = [{**a.model_dump(), "cost": a.cost} for a in self.assignments]
        return pd.DataFrame(rows, columns=columns)

    def __str__(self) -> str:
        return (
            f"OptimizationResult: open={self.open_facilities} "
            f"cost=${self.total_transportation_cost:,.2f} "
            f"service={self.service_level_achievement:.1%} [{self.provenance.value}]"
        )
