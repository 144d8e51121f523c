"""Facility location optimizer.

Selects which candidate facilities to open and how to split each
destination's demand among them. The workflow for one run is:

1. validate inputs (InputValidationError on malformed data)
2. freeze a FacilityLocationProblem snapshot
3. reject provably infeasible constraint combinations (InfeasibleError with shortfall)
4. solve with the configured Solver, optionally in a hard-timeout process
5. assemble an OptimizationResult with metrics and provenance
6. re-check every invariant before returning

``optimize()`` raises engine errors; ``run()`` returns a RunOutcome instead.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence
import logging
import time

from ..config import OptimizationConfig
from ..errors import InputValidationError, RunOutcome, capture
from ..models.cost_matrix import CapacityMap, CostMatrix
from ..models.facility import DemandPoint, FacilityCandidate
from ..models.forecast import VolumeForecast
from ..models.provenance import DataProvenance, combine_provenance
from ..projection.multi_year import scale_destinations
from ..validation.input_validator import validate_location_inputs
from ..validation.solution_validator import assert_valid_solution
from .execution import solve_with_hard_timeout
from .problem import FacilityLocationProblem, LocationSolution
from .result_schema import Assignment, FacilityMetrics, NetworkMetrics, OptimizationResult
from .solver_config import SolverConfig
from .solvers import Solver, create_solver

logger = logging.getLogger(__name__)


@dataclass
class FixedNetworkPlan:
    """
    One facility set kept open across all forecast years.

    Attributes:
        open_facilities: Facilities chosen for the design year
        design_year: Year whose demand chose the facility set (peak volume)
        results_by_year: Year -> assignment of that year's demand over the fixed set
        demand_factor_by_year: Year -> multiplier applied to baseline demand
    """
    open_facilities: List[str]
    design_year: int
    results_by_year: Dict[int, OptimizationResult] = field(default_factory=dict)
    demand_factor_by_year: Dict[int, float] = field(default_factory=dict)

    @property
    def years(self) -> List[int]:
        return sorted(self.results_by_year)

    def transport_cost_by_year(self) -> Dict[int, float]:
        return {y: r.total_transportation_cost for y, r in sorted(self.results_by_year.items())}


@dataclass
class MultiYearPlan:
    """
    Transport re-optimized independently for every forecast year.

    Attributes:
        results_by_year: Year -> optimization result for that year's demand
        demand_by_year: Year -> destination demand that was optimized
    """
    results_by_year: Dict[int, OptimizationResult] = field(default_factory=dict)
    demand_by_year: Dict[int, Dict[str, float]] = field(default_factory=dict)

    @property
    def years(self) -> List[int]:
        return sorted(self.results_by_year)

    def transport_cost_by_year(self) -> Dict[int, float]:
        return {y: r.total_transportation_cost for y, r in sorted(self.results_by_year.items())}

    def open_facilities_by_year(self) -> Dict[int, List[str]]:
        return {y: list(r.open_facilities) for y, r in sorted(self.results_by_year.items())}

    @property
    def total_transportation_cost(self) -> float:
        return sum(r.total_transportation_cost for r in self.results_by_year.values())

    @property
    def total_demand(self) -> float:
        return sum(r.network_metrics.total_demand for r in self.results_by_year.values())

    @property
    def weighted_service_level(self) -> float:
        """Service level of each year weighted by that year's demand."""
        total = self.total_demand
        if total <= 0:
            return 0.0
        weighted = sum(
            r.service_level_achievement * r.network_metrics.total_demand
            for r in self.results_by_year.values()
        )
        return min(1.0, weighted / total)

    @property
    def average_cost_per_unit(self) -> float:
        total = self.total_demand
        return self.total_transportation_cost / total if total > 0 else 0.0


class FacilityLocationOptimizer:
    """
    Runs facility location solves against one immutable configuration.

    Example:
        optimizer = FacilityLocationOptimizer(config)
        result = optimizer.optimize(facilities, destinations, cost_matrix)
        print(result.open_facilities, result.total_transportation_cost)

        outcome = optimizer.run(facilities, destinations, cost_matrix)
        if not outcome.success:
            print(outcome.error_kind, outcome.error)
    """

    def __init__(
        self,
        config: Optional[OptimizationConfig] = None,
        solver: Optional[Solver] = None,
        solver_config: Optional[SolverConfig] = None,
    ):
        """
        Args:
            config: Run configuration (defaults if None)
            solver: Solver to use; if None one is chosen from config.solver
            solver_config: Solver discovery used by the MIP solver
        """
        self.config = config or OptimizationConfig()
        self.solver = solver
        self.solver_config = solver_config

    def build_problem(
        self,
        facilities: Sequence[FacilityCandidate],
        destinations: Sequence[DemandPoint],
        cost_matrix: CostMatrix,
        capacities: Optional[CapacityMap] = None,
    ) -> FacilityLocationProblem:
        """
        Validate inputs and freeze a problem snapshot.

        Args:
            capacities: Optional facility_id -> capacity overrides

        Raises:
            InputValidationError: If inputs are malformed
        """
        validate_location_inputs(facilities, destinations, cost_matrix, self.config)
        if capacities:
            unknown = sorted(set(capacities) - {f.id for f in facilities})
            if unknown:
                raise InputValidationError(f"Capacity given for unknown facilities: {unknown}")
            negative = sorted(f for f, c in capacities.items() if c < 0)
            if negative:
                raise InputValidationError(f"Negative capacity for facilities: {negative}")
            facilities = [
                f.model_copy(update={"capacity": float(capacities[f.id])}) if f.id in capacities else f
                for f in facilities
            ]
        return FacilityLocationProblem.build(facilities, destinations, cost_matrix, self.config)

    def _solver_for(self, problem: FacilityLocationProblem) -> Solver:
        if self.solver is not None:
            return self.solver
        return create_solver(self.config.solver, len(problem.facility_ids), self.solver_config)

    def solve_problem(self, problem: FacilityLocationProblem) -> OptimizationResult:
        """
        Solve an already built problem snapshot.

        Raises:
            InfeasibleError: If constraints cannot be jointly satisfied
            SolveTimeoutError: If the time budget ran out without any solution
        """
        problem.check_feasibility()

        solver = self._solver_for(problem)
        settings = self.config.solver
        logger.info(f"Solving {problem} with {solver.name} solver")
        start = time.time()
        if settings.hard_timeout_seconds is not None:
            solution = solve_with_hard_timeout(
                solver,
                problem,
                settings.hard_timeout_seconds,
                time_limit_seconds=settings.time_limit_seconds,
            )
        else:
            solution = solver.solve(problem, settings.time_limit_seconds)
        elapsed = time.time() - start

        result = self._build_result(problem, solution)
        assert_valid_solution(problem, result)
        logger.info(
            f"Facility location solved in {elapsed:.2f}s: open={result.open_facilities} "
            f"cost=${result.total_transportation_cost:,.2f} "
            f"service={result.service_level_achievement:.1%} [{result.provenance.value}]"
        )
        return result

    def optimize(
        self,
        facilities: Sequence[FacilityCandidate],
        destinations: Sequence[DemandPoint],
        cost_matrix: CostMatrix,
        capacities: Optional[CapacityMap] = None,
    ) -> OptimizationResult:
        """
        Choose open facilities and assign all demand.

        Args:
            facilities: Candidate facilities
            destinations: Demand points
            cost_matrix: Unit cost (and optionally distance) per facility/destination
            capacities: Optional capacity overrides

        Returns:
            Validated OptimizationResult

        Raises:
            InputValidationError: Malformed inputs
            InfeasibleError: Constraints cannot be jointly satisfied (with shortfall)
            SolveTimeoutError: Time budget exhausted with no incumbent
            DataSourceError: No distance source available
        """
        problem = self.build_problem(facilities, destinations, cost_matrix, capacities)
        return self.solve_problem(problem)

    def run(
        self,
        facilities: Sequence[FacilityCandidate],
        destinations: Sequence[DemandPoint],
        cost_matrix: CostMatrix,
        capacities: Optional[CapacityMap] = None,
    ) -> RunOutcome[OptimizationResult]:
        """Same as optimize() but returns a tagged RunOutcome instead of raising."""
        return capture(self.optimize, facilities, destinations, cost_matrix, capacities)

    def optimize_multi_year(
        self,
        facilities: Sequence[FacilityCandidate],
        destinations: Sequence[DemandPoint],
        cost_matrix: CostMatrix,
        forecast: VolumeForecast,
        baseline_units: Optional[float] = None,
        capacities: Optional[CapacityMap] = None,
        demand_by_year: Optional[Mapping[int, Mapping[str, float]]] = None,
    ) -> MultiYearPlan:
        """
        Re-optimize the network independently for every forecast year.

        Args:
            baseline_units: Units the destination demands represent (default:
                their sum)
            demand_by_year: Explicit year -> destination demand maps; years
                without one scale the baseline shares to the forecast units

        Raises:
            InfeasibleError: If some year's demand cannot be covered
        """
        problem = self.build_problem(facilities, destinations, cost_matrix, capacities)
        yearly = self._yearly_demand(problem, destinations, forecast, baseline_units, demand_by_year)

        plan = MultiYearPlan(demand_by_year=yearly)
        for year, demand in yearly.items():
            logger.info(f"Optimizing {year} transport for {sum(demand.values()):,.0f} units")
            plan.results_by_year[year] = self.solve_problem(problem.with_demand(demand))
        logger.info(
            f"Multi-year transport: total ${plan.total_transportation_cost:,.2f}, "
            f"weighted service {plan.weighted_service_level:.1%}"
        )
        return plan

    def optimize_multi_year_fixed(
        self,
        facilities: Sequence[FacilityCandidate],
        destinations: Sequence[DemandPoint],
        cost_matrix: CostMatrix,
        forecast: VolumeForecast,
        baseline_units: Optional[float] = None,
        capacities: Optional[CapacityMap] = None,
        demand_by_year: Optional[Mapping[int, Mapping[str, float]]] = None,
    ) -> FixedNetworkPlan:
        """
        Choose one facility set for the peak year and re-assign every year over it.

        Each destination keeps its baseline share of total demand; a year's
        demand is that share times the year's forecast units unless an
        explicit map is given for that year.

        Args:
            baseline_units: Units the destination demands represent (default:
                their sum)
            demand_by_year: Explicit year -> destination demand maps

        Raises:
            InfeasibleError: If some year's demand exceeds the fixed set's capacity
        """
        problem = self.build_problem(facilities, destinations, cost_matrix, capacities)
        yearly = self._yearly_demand(problem, destinations, forecast, baseline_units, demand_by_year)

        base_total = problem.total_demand
        factors = {
            year: sum(demand.values()) / base_total if base_total > 0 else 0.0
            for year, demand in yearly.items()
        }
        design_year = max(yearly, key=lambda y: (sum(yearly[y].values()), -y))
        design = self.solve_problem(problem.with_demand(yearly[design_year]))
        logger.info(f"Fixed network chosen for {design_year}: {design.open_facilities}")

        plan = FixedNetworkPlan(
            open_facilities=list(design.open_facilities),
            design_year=design_year,
            demand_factor_by_year=factors,
        )
        for year, demand in yearly.items():
            fixed = problem.with_demand(demand).with_fixed_open(design.open_facilities)
            plan.results_by_year[year] = self.solve_problem(fixed)
        return plan

    @staticmethod
    def _yearly_demand(
        problem: FacilityLocationProblem,
        destinations: Sequence[DemandPoint],
        forecast: VolumeForecast,
        baseline_units: Optional[float],
        demand_by_year: Optional[Mapping[int, Mapping[str, float]]],
    ) -> Dict[int, Dict[str, float]]:
        """Destination demand for every forecast year, in forecast order."""
        explicit = dict(demand_by_year or {})
        extra_years = sorted(set(explicit) - set(forecast.years))
        if extra_years:
            raise InputValidationError(f"Demand given for years outside the forecast: {extra_years}")

        base = baseline_units if baseline_units is not None else problem.total_demand
        if base <= 0:
            raise InputValidationError("baseline_units must be positive")

        yearly = {}
        for row in forecast.rows:
            given = explicit.get(row.year)
            if given is None:
                scaled = scale_destinations(destinations, row.annual_units * problem.total_demand / base)
                yearly[row.year] = {d.id: d.demand for d in scaled}
                continue
            unknown = sorted(set(given) - set(problem.destination_ids))
            if unknown:
                raise InputValidationError(f"{row.year} demand names unknown destinations: {unknown}")
            negative = sorted(d for d, v in given.items() if v < 0)
            if negative:
                raise InputValidationError(f"{row.year} demand is negative for: {negative}")
            yearly[row.year] = {d: float(given.get(d, 0.0)) for d in problem.destination_ids}
        return yearly

    def _build_result(self, problem: FacilityLocationProblem, solution: LocationSolution) -> OptimizationResult:
        tc = self.config.transportation
        open_facilities = list(problem.order(solution.open_facilities))

        assignments = [
            Assignment(
                facility_id=f,
                destination_id=d,
                volume=solution.flows[(f, d)],
                unit_cost=problem.unit_cost[(f, d)],
                distance_miles=problem.distance[(f, d)],
            )
            for f in open_facilities for d in problem.destination_ids
            if (f, d) in solution.flows
        ]

        total_fixed = sum(problem.fixed_cost[f] for f in open_facilities)
        total_assignment = sum(a.cost for a in assignments)
        total_distance = sum(a.volume * a.distance_miles for a in assignments)
        demand = problem.total_demand
        beyond = sum(a.volume for a in assignments if a.distance_miles > problem.max_distance_miles)
        service_level = (demand - beyond) / demand if demand > 0 else 1.0
        service_level = min(1.0, max(0.0, service_level))

        facility_metrics = self._facility_metrics(problem, open_facilities, assignments)
        utilizations = [m.utilization for m in facility_metrics]
        open_capacity = sum(problem.capacity[f] for f in open_facilities)
        total_cost = total_fixed + total_assignment
        network_metrics = NetworkMetrics(
            total_demand=demand,
            facilities_open=len(open_facilities),
            weighted_average_distance_miles=total_distance / demand if demand > 0 else 0.0,
            average_utilization=sum(utilizations) / len(utilizations) if utilizations else 0.0,
            network_utilization=demand / open_capacity if open_capacity > 0 else 0.0,
            max_utilization=max(utilizations, default=0.0),
            average_cost_per_unit=total_cost / demand if demand > 0 else 0.0,
            demand_beyond_max_distance=beyond,
        )

        tags = [problem.provenance]
        warnings = []
        if solution.is_approximate:
            tags.append(DataProvenance.APPROXIMATE)
            warnings.append(
                f"Solution is approximate ({solution.termination}); optimality not proven"
            )
        if problem.provenance != DataProvenance.REAL_DATA:
            warnings.append(f"Inputs include estimated data (distances from {problem.distance_source})")
        if service_level + 1e-12 < tc.service_level_requirement:
            warnings.append(
                f"Service level {service_level:.1%} below requirement {tc.service_level_requirement:.1%}"
            )
        for w in warnings:
            logger.warning(w)

        return OptimizationResult(
            open_facilities=open_facilities,
            assignments=assignments,
            total_fixed_cost=total_fixed,
            total_assignment_cost=total_assignment,
            total_transportation_cost=total_cost,
            total_distance=total_distance,
            service_level_achievement=service_level,
            service_level_requirement=tc.service_level_requirement,
            provenance=combine_provenance(tags),
            data_provenance=problem.provenance,
            objective_value=solution.objective_value,
            solver_name=solution.solver_name,
            proven_optimal=solution.proven_optimal,
            solve_time_seconds=solution.solve_time_seconds,
            gap=solution.gap,
            facility_metrics=facility_metrics,
            network_metrics=network_metrics,
            warnings=warnings,
            metadata=dict(solution.metadata),
        )

    @staticmethod
    def _facility_metrics(
        problem: FacilityLocationProblem,
        open_facilities: Sequence[str],
        assignments: Sequence[Assignment],
    ) -> List[FacilityMetrics]:
        by_facility: Mapping[str, List[Assignment]] = {f: [] for f in open_facilities}
        for a in assignments:
            by_facility[a.facility_id].append(a)

        metrics = []
        for f in open_facilities:
            lanes = by_facility[f]
            volume = sum(a.volume for a in lanes)
            capacity = problem.capacity[f]
            transport = sum(a.cost for a in lanes)
            fixed = problem.fixed_cost[f]
            metrics.append(FacilityMetrics(
                facility_id=f,
                volume=volume,
                capacity=capacity,
                utilization=volume / capacity if capacity > 0 else 0.0,
                destinations_served=len(lanes),
                average_distance_miles=(
                    sum(a.volume * a.distance_miles for a in lanes) / volume if volume > 0 else 0.0
                ),
                fixed_cost=fixed,
                transport_cost=transport,
                cost_per_unit=(fixed + transport) / volume if volume > 0 else 0.0,
            ))
        return metrics
