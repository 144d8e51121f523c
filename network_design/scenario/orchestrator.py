"""Scenario orchestration.

A scenario run sizes warehouses and optimizes transport for the same
forecast, then joins both yearly series:

    total_annual_cost = warehouse_cost + transport_cost     (per year)
    savings           = baseline_cost - optimized_cost
    savings_pct       = savings / baseline_cost

Warehouse sizing and transport optimization share nothing mutable, so they
run in parallel and the join waits for both. Independent scenarios can also
run in parallel through ``run_scenarios()``.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence
import logging
import time

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from ..config import OptimizationConfig
from ..costs.cost_matrix_generator import generate_cost_matrix
from ..errors import DataSourceError, InputValidationError, RunOutcome, capture
from ..models.baseline import BaselineCost
from ..models.cost_matrix import CapacityMap, CostMatrix
from ..models.facility import DemandPoint, FacilityCandidate
from ..models.forecast import SKU, VolumeForecast
from ..models.provenance import DataProvenance, combine_provenance
from ..optimization.facility_location import FacilityLocationOptimizer, FixedNetworkPlan, MultiYearPlan
from ..optimization.result_schema import OptimizationResult
from ..optimization.solver_config import SolverConfig
from ..optimization.solvers import Solver
from ..projection.multi_year import MultiYearProjector, Projection
from ..warehouse.capacity_sizing import SizingStatus, WarehouseCapacityOptimizer, WarehousePlan
from ..warehouse.inventory import InventoryOptimizer, InventoryPlan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScenarioInputs:
    """
    Immutable input snapshot for one scenario.

    Attributes:
        name: Scenario label (unique within a batch)
        facilities: Candidate facilities
        destinations: Demand points at baseline-year volume
        forecast: Multi-year volume forecast
        skus: SKUs for warehouse sizing
        baseline: Verified baseline transport cost
        cost_matrix: Unit costs; generated when None
        cost_per_mile: Rate used to generate the matrix (otherwise the baseline is distributed)
        capacities: Facility capacity overrides
        config: Scenario configuration (orchestrator default when None)
        fixed_network: Keep one facility set open across all years
        per_year_optimization: Re-optimize transport independently for every year
        demand_by_year: Explicit year -> destination demand maps (per-year or
            fixed-network runs; other years scale the baseline shares)
        include_inventory: Also compute the inventory policy for the baseline year
        end_year: Last projected year (default: last forecast year)
    """
    name: str
    facilities: Sequence[FacilityCandidate]
    destinations: Sequence[DemandPoint]
    forecast: Optional[VolumeForecast]
    skus: Sequence[SKU]
    baseline: Optional[BaselineCost]
    cost_matrix: Optional[CostMatrix] = None
    cost_per_mile: Optional[float] = None
    capacities: Optional[CapacityMap] = None
    config: Optional[OptimizationConfig] = None
    fixed_network: bool = False
    per_year_optimization: bool = False
    demand_by_year: Optional[Mapping[int, Mapping[str, float]]] = None
    include_inventory: bool = False
    end_year: Optional[int] = None


class YearRow(BaseModel):
    """Warehouse and transport results joined for one year."""
    year: int
    warehouse_cost: float = Field(..., ge=0)
    transport_cost: float = Field(..., ge=0)
    total_annual_cost: float = Field(..., ge=0)
    facilities_needed: int = Field(..., ge=1)
    open_facilities: int = Field(..., ge=1)
    gross_area_sqft: float = Field(..., ge=0)
    utilization_pct: float = Field(..., ge=0, le=100)
    thirdparty_sqft_required: float = Field(..., ge=0)
    warehouse_status: SizingStatus
    transport_data_source: str

    model_config = ConfigDict(frozen=True)


class BaselineIntegration(BaseModel):
    """Optimized transport cost compared with the verified baseline."""
    baseline_cost: float = Field(..., gt=0)
    optimized_cost: float = Field(..., ge=0)
    savings: float
    savings_pct: float

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_costs(cls, baseline_cost: float, optimized_cost: float) -> "BaselineIntegration":
        savings = baseline_cost - optimized_cost
        return cls(
            baseline_cost=baseline_cost,
            optimized_cost=optimized_cost,
            savings=savings,
            savings_pct=savings / baseline_cost,
        )


class IntegratedRunResult(BaseModel):
    """
    Output of one scenario run.

    Attributes:
        scenario_name: Label from the inputs
        rows: Joined yearly rows in ascending year order
        baseline_integration: Savings versus the verified baseline
        transport: Facility location result at baseline-year demand
        warehouse: Warehouse sizing plan
        projection: Transport projection (None for fixed-network and per-year runs)
        fixed_network_years: Year -> result over the fixed facility set
        per_year_results: Year -> independently re-optimized result
        weighted_service_level: Demand-weighted service level over per-year results
        inventory: Inventory policy (when requested)
        provenance: Weakest provenance of the inputs and results
        warnings: Year mismatches, capacity exceedances, approximations
        run_time_seconds: Wall-clock time of the run
    """
    scenario_name: str
    rows: List[YearRow]
    baseline_integration: BaselineIntegration
    transport: OptimizationResult
    warehouse: WarehousePlan
    projection: Optional[Projection] = None
    fixed_network_years: Dict[int, OptimizationResult] = Field(default_factory=dict)
    per_year_results: Dict[int, OptimizationResult] = Field(default_factory=dict)
    weighted_service_level: Optional[float] = Field(None, ge=0, le=1)
    inventory: Optional[InventoryPlan] = None
    provenance: DataProvenance = DataProvenance.REAL_DATA
    warnings: List[str] = Field(default_factory=list)
    run_time_seconds: float = Field(0.0, ge=0)

    model_config = ConfigDict(frozen=True)

    @property
    def years(self) -> List[int]:
        return [r.year for r in self.rows]

    def total_cost_by_year(self) -> Dict[int, float]:
        return {r.year: r.total_annual_cost for r in self.rows}

    def to_frame(self) -> pd.DataFrame:
        """Yearly rows as a DataFrame indexed by year."""
        if not self.rows:
            return pd.DataFrame(columns=list(YearRow.model_fields)).set_index('year')
        return pd.DataFrame([r.model_dump(mode='json') for r in self.rows]).set_index('year')

    def summary(self) -> Dict[str, object]:
        b = self.baseline_integration
        return {
            "scenario": self.scenario_name,
            "open_facilities": ", ".join(self.transport.open_facilities),
            "baseline_cost": b.baseline_cost,
            "optimized_cost": b.optimized_cost,
            "savings": b.savings,
            "savings_pct": b.savings_pct,
            "first_year": self.years[0] if self.years else None,
            "last_year": self.years[-1] if self.years else None,
            "provenance": self.provenance.value,
            "warnings": len(self.warnings),
        }


@dataclass
class _TransportOutcome:
    result: OptimizationResult
    cost_by_year: Dict[int, float]
    source_by_year: Dict[int, str]
    projection: Optional[Projection] = None
    fixed_plan: Optional[FixedNetworkPlan] = None
    yearly_plan: Optional[MultiYearPlan] = None
    open_by_year: Dict[int, int] = field(default_factory=dict)


class ScenarioOrchestrator:
    """
    Runs warehouse sizing and transport optimization and joins them by year.

    Example:
        orchestrator = ScenarioOrchestrator(config)
        result = orchestrator.run(inputs)
        print(result.baseline_integration.savings_pct)

        outcomes = orchestrator.run_scenarios([inputs_a, inputs_b], max_workers=2)
        ranking = orchestrator.compare(outcomes)
    """

    def __init__(
        self,
        config: Optional[OptimizationConfig] = None,
        solver: Optional[Solver] = None,
        solver_config: Optional[SolverConfig] = None,
        assumed_growth_rate: Optional[float] = None,
    ):
        """
        Args:
            config: Default configuration for inputs without their own
            solver: Solver passed to the facility location optimizer
            solver_config: Solver discovery passed to the facility location optimizer
            assumed_growth_rate: Explicit growth for years without forecast
                volume; such rows are tagged "assumption"
        """
        self.config = config or OptimizationConfig()
        self.solver = solver
        self.solver_config = solver_config
        self.projector = MultiYearProjector(assumed_growth_rate)

    def run(self, inputs: ScenarioInputs) -> IntegratedRunResult:
        """
        Run one scenario.

        Raises:
            DataSourceError: Baseline cost or forecast missing
            InputValidationError: Malformed inputs
            InfeasibleError: Transport constraints cannot be satisfied
            SolveTimeoutError: Transport solve produced no solution in time
        """
        start = time.time()
        config = inputs.config or self.config
        if inputs.baseline is None:
            raise DataSourceError(
                f"Scenario '{inputs.name}' has no verified baseline cost", missing=["baseline_cost"]
            )
        if inputs.forecast is None:
            raise DataSourceError(
                f"Scenario '{inputs.name}' has no volume forecast", missing=["forecast"]
            )
        if inputs.fixed_network and inputs.per_year_optimization:
            raise InputValidationError("fixed_network and per_year_optimization are mutually exclusive")
        if inputs.demand_by_year and not (inputs.fixed_network or inputs.per_year_optimization):
            raise InputValidationError("demand_by_year needs fixed_network or per_year_optimization")

        cost_matrix = inputs.cost_matrix or self._generate_matrix(inputs, config)
        logger.info(f"Running scenario '{inputs.name}' ({inputs.forecast})")

        with ThreadPoolExecutor(max_workers=2) as executor:
            warehouse_future = executor.submit(self._size_warehouses, inputs, config)
            transport_future = executor.submit(self._optimize_transport, inputs, config, cost_matrix)
            warehouse = warehouse_future.result()
            transport = transport_future.result()

        rows, warnings = self._join(warehouse, transport)
        warnings = list(transport.result.warnings) + warnings
        for y in warehouse.exceeded_years:
            warnings.append(f"Warehouse capacity exceeded in {y}")

        inventory = None
        if inputs.include_inventory:
            base_units = inputs.forecast.get_units(self._baseline_year(inputs))
            inventory = InventoryOptimizer(config).optimize_for_units(inputs.skus, base_units)

        tags = [transport.result.provenance]
        if transport.projection is not None and transport.projection.has_assumptions:
            tags.append(DataProvenance.FALLBACK_DATA)
            warnings.append("Projection includes years computed from an assumed growth rate")

        result = IntegratedRunResult(
            scenario_name=inputs.name,
            rows=rows,
            baseline_integration=BaselineIntegration.from_costs(
                inputs.baseline.total_cost, transport.result.total_transportation_cost
            ),
            transport=transport.result,
            warehouse=warehouse,
            projection=transport.projection,
            fixed_network_years=(
                dict(transport.fixed_plan.results_by_year) if transport.fixed_plan is not None else {}
            ),
            per_year_results=(
                dict(transport.yearly_plan.results_by_year) if transport.yearly_plan is not None else {}
            ),
            weighted_service_level=(
                transport.yearly_plan.weighted_service_level if transport.yearly_plan is not None else None
            ),
            inventory=inventory,
            provenance=combine_provenance(tags),
            warnings=warnings,
            run_time_seconds=time.time() - start,
        )
        b = result.baseline_integration
        logger.info(
            f"Scenario '{inputs.name}' done: baseline ${b.baseline_cost:,.0f} -> "
            f"${b.optimized_cost:,.0f} (savings {b.savings_pct:.1%}), {len(rows)} years joined"
        )
        return result

    def run_outcome(self, inputs: ScenarioInputs) -> RunOutcome[IntegratedRunResult]:
        """Same as run() but returns a tagged RunOutcome instead of raising."""
        return capture(self.run, inputs)

    def run_scenarios(
        self,
        scenarios: Sequence[ScenarioInputs],
        max_workers: Optional[int] = None,
    ) -> Dict[str, RunOutcome[IntegratedRunResult]]:
        """
        Run independent scenarios in parallel.

        Returns:
            Scenario name -> RunOutcome, in input order

        Raises:
            InputValidationError: If scenario names are not unique
        """
        names = [s.name for s in scenarios]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise InputValidationError(f"Duplicate scenario names: {duplicates}")

        outcomes: Dict[str, RunOutcome[IntegratedRunResult]] = {}
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {executor.submit(self.run_outcome, s): s.name for s in scenarios}
            for future in as_completed(futures):
                name = futures[future]
                outcomes[name] = future.result()
                logger.info(f"Scenario '{name}' finished: {outcomes[name]}")

        failed = [n for n, o in outcomes.items() if not o.success]
        if failed:
            logger.warning(f"{len(failed)} of {len(scenarios)} scenarios failed: {failed}")
        return {n: outcomes[n] for n in names}

    def compare(self, outcomes) -> pd.DataFrame:
        """Rank ``run_scenarios()`` outcomes with this orchestrator's objective weights."""
        from .comparison import compare_scenarios

        return compare_scenarios(outcomes, self.config.weights)

    def _generate_matrix(self, inputs: ScenarioInputs, config: OptimizationConfig) -> CostMatrix:
        if inputs.cost_per_mile is not None:
            return generate_cost_matrix(
                inputs.facilities, inputs.destinations,
                cost_per_mile=inputs.cost_per_mile,
                transport_config=config.transportation,
            )
        return generate_cost_matrix(
            inputs.facilities, inputs.destinations,
            baseline=inputs.baseline,
            transport_config=config.transportation,
        )

    @staticmethod
    def _baseline_year(inputs: ScenarioInputs) -> int:
        if inputs.baseline.year is not None:
            return inputs.baseline.year
        return inputs.forecast.first_year

    def _size_warehouses(self, inputs: ScenarioInputs, config: OptimizationConfig) -> WarehousePlan:
        return WarehouseCapacityOptimizer(config).size(inputs.forecast, inputs.skus)

    def _optimize_transport(
        self,
        inputs: ScenarioInputs,
        config: OptimizationConfig,
        cost_matrix: CostMatrix,
    ) -> _TransportOutcome:
        optimizer = FacilityLocationOptimizer(config, self.solver, self.solver_config)
        baseline_year = self._baseline_year(inputs)

        if inputs.fixed_network or inputs.per_year_optimization:
            multi_year = (
                optimizer.optimize_multi_year_fixed if inputs.fixed_network else optimizer.optimize_multi_year
            )
            plan = multi_year(
                inputs.facilities,
                inputs.destinations,
                cost_matrix,
                inputs.forecast,
                baseline_units=inputs.forecast.get_units(baseline_year),
                capacities=inputs.capacities,
                demand_by_year=inputs.demand_by_year,
            )
            result = plan.results_by_year.get(baseline_year)
            if result is None:
                result = optimizer.optimize(
                    inputs.facilities, inputs.destinations, cost_matrix, inputs.capacities
                )
            costs = plan.transport_cost_by_year()
            if inputs.fixed_network:
                return _TransportOutcome(
                    result=result,
                    cost_by_year=costs,
                    source_by_year={y: "fixed_network" for y in costs},
                    fixed_plan=plan,
                    open_by_year={y: len(plan.open_facilities) for y in costs},
                )
            return _TransportOutcome(
                result=result,
                cost_by_year=costs,
                source_by_year={y: "per_year" for y in costs},
                yearly_plan=plan,
                open_by_year={y: len(r.open_facilities) for y, r in plan.results_by_year.items()},
            )

        result = optimizer.optimize(inputs.facilities, inputs.destinations, cost_matrix, inputs.capacities)
        projection = self.projector.project(
            inputs.forecast,
            inputs.baseline,
            result.total_transportation_cost,
            baseline_year=baseline_year,
            end_year=inputs.end_year,
        )
        return _TransportOutcome(
            result=result,
            cost_by_year=projection.cost_by_year(),
            source_by_year={r.year: r.data_source for r in projection.rows},
            projection=projection,
            open_by_year={r.year: len(result.open_facilities) for r in projection.rows},
        )

    @staticmethod
    def _join(warehouse: WarehousePlan, transport: _TransportOutcome):
        by_year = warehouse.by_year()
        warehouse_years = set(by_year)
        transport_years = set(transport.cost_by_year)

        warnings = []
        only_warehouse = sorted(warehouse_years - transport_years)
        only_transport = sorted(transport_years - warehouse_years)
        if only_warehouse:
            warnings.append(f"Years with warehouse results only (not joined): {only_warehouse}")
        if only_transport:
            warnings.append(f"Years with transport results only (not joined): {only_transport}")
        for w in warnings:
            logger.warning(w)

        rows = []
        for year in sorted(warehouse_years & transport_years):
            w = by_year[year]
            t = transport.cost_by_year[year]
            rows.append(YearRow(
                year=year,
                warehouse_cost=w.total_cost_annual,
                transport_cost=t,
                total_annual_cost=w.total_cost_annual + t,
                facilities_needed=w.facilities_needed,
                open_facilities=transport.open_by_year[year],
                gross_area_sqft=w.gross_area_sqft,
                utilization_pct=w.utilization_pct,
                thirdparty_sqft_required=w.thirdparty_sqft_required,
                warehouse_status=w.status,
                transport_data_source=transport.source_by_year[year],
            ))
        if not rows:
            warnings.append("No overlapping years between warehouse and transport results")
            logger.warning(warnings[-1])
        return rows, warnings
