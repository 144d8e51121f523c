"""Facility location problem snapshot and solution representation.

``FacilityLocationProblem`` freezes everything a solver needs (ids,
demand, capacities, fixed costs, unit costs, distances, cardinality bounds
and objective weights) so every solver sees the same immutable input.

Objective (minimized):

    w_cost * (sum fixed_cost[f] * open[f] + sum unit_cost[f,d] * assign[f,d])
  + w_service * penalty_per_mile * sum max(0, distance[f,d] - max_distance) * assign[f,d]
  + w_util * idle_cost_per_unit * (sum capacity[f] * open[f] - total_demand)

Ties on the objective are broken by fewer open facilities, then lower peak
utilization, then lower total distance, then sorted facility ids.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging

from ..config import ObjectiveWeights, OptimizationConfig
from ..errors import DataSourceError, InfeasibleError, InputValidationError
from ..models.cost_matrix import CostMatrix
from ..models.facility import DemandPoint, FacilityCandidate
from ..models.provenance import DataProvenance
from ..network.distance import haversine_miles

logger = logging.getLogger(__name__)

Pair = Tuple[str, str]

# Flows below this are treated as zero
FLOW_EPSILON = 1e-9

# Relative tolerance when comparing objective values of two solutions
OBJECTIVE_RTOL = 1e-9


@dataclass
class LocationSolution:
    """
    Solver output before metrics are attached.

    Attributes:
        open_facilities: Open facility ids, in problem order
        flows: (facility_id, destination_id) -> units assigned (positive entries only)
        objective_value: Weighted objective of this solution
        solver_name: Solver that produced it
        proven_optimal: True if optimality (including tie-break) was proven
        termination: 'optimal', 'time_limit' or 'heuristic'
        solve_time_seconds: Wall time spent in the solver
        gap: Relative MIP gap if known
        metadata: Solver-specific details
    """
    open_facilities: Tuple[str, ...]
    flows: Dict[Pair, float]
    objective_value: float
    solver_name: str
    proven_optimal: bool = True
    termination: str = "optimal"
    solve_time_seconds: float = 0.0
    gap: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_approximate(self) -> bool:
        return not self.proven_optimal


@dataclass(frozen=True)
class FacilityLocationProblem:
    """Immutable input for one facility location solve."""
    facility_ids: Tuple[str, ...]
    destination_ids: Tuple[str, ...]
    demand: Mapping[str, float]
    capacity: Mapping[str, float]
    fixed_cost: Mapping[str, float]
    unit_cost: Mapping[Pair, float]
    distance: Mapping[Pair, float]
    mandatory: FrozenSet[str]
    min_open: int
    max_open: int
    weights: ObjectiveWeights
    max_distance_miles: float
    service_penalty_per_mile: float
    idle_capacity_cost_per_unit: float
    provenance: DataProvenance = DataProvenance.REAL_DATA
    distance_source: str = "matrix"

    @classmethod
    def build(
        cls,
        facilities: Sequence[FacilityCandidate],
        destinations: Sequence[DemandPoint],
        cost_matrix: CostMatrix,
        config: OptimizationConfig,
    ) -> "FacilityLocationProblem":
        """
        Assemble a problem from validated inputs.

        Distances come from the cost matrix when present, otherwise from
        coordinates (Haversine), otherwise they are derived from unit cost
        divided by the per-mile rate and tagged FallbackData.

        Raises:
            DataSourceError: If no distance source is available
        """
        tc = config.transportation
        facility_ids = tuple(f.id for f in facilities)
        destination_ids = tuple(d.id for d in destinations)

        unit_cost = {(f, d): cost_matrix.cost(f, d) for f in facility_ids for d in destination_ids}
        provenance = cost_matrix.provenance
        distance_source = "matrix"

        if cost_matrix.has_distances():
            distance = {(f, d): cost_matrix.distance(f, d) for f in facility_ids for d in destination_ids}
        elif all(f.coordinates for f in facilities) and all(d.coordinates for d in destinations):
            distance_source = "coordinates"
            distance = {
                (f.id, d.id): 0.0 if f.id == d.id else haversine_miles(f.coordinates, d.coordinates)
                for f in facilities for d in destinations
            }
        elif tc.cost_per_mile > 0:
            distance_source = "derived_from_cost"
            logger.warning("No distances available; deriving distance from unit cost / cost_per_mile")
            distance = {pair: c / tc.cost_per_mile for pair, c in unit_cost.items()}
            if provenance == DataProvenance.REAL_DATA:
                provenance = DataProvenance.FALLBACK_DATA
        else:
            raise DataSourceError(
                "Distances are unavailable: the cost matrix has none, coordinates are "
                "incomplete and cost_per_mile is 0",
                missing=["distances"],
            )

        mandatory = frozenset(tc.mandatory_facilities) | frozenset(f.id for f in facilities if f.mandatory)

        return cls(
            facility_ids=facility_ids,
            destination_ids=destination_ids,
            demand={d.id: float(d.demand) for d in destinations},
            capacity={
                f.id: float(f.capacity) if f.capacity is not None else tc.max_capacity_per_facility
                for f in facilities
            },
            fixed_cost={
                f.id: float(f.fixed_cost) if f.fixed_cost is not None else tc.fixed_cost_per_facility
                for f in facilities
            },
            unit_cost=unit_cost,
            distance=distance,
            mandatory=mandatory,
            min_open=tc.required_facilities,
            max_open=min(tc.max_facilities, len(facility_ids)),
            weights=config.weights,
            max_distance_miles=tc.max_distance_miles,
            service_penalty_per_mile=tc.service_penalty_per_mile,
            idle_capacity_cost_per_unit=tc.idle_capacity_cost_per_unit,
            provenance=provenance,
            distance_source=distance_source,
        )

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def total_demand(self) -> float:
        return sum(self.demand.values())

    @property
    def pairs(self) -> List[Pair]:
        return [(f, d) for f in self.facility_ids for d in self.destination_ids]

    def open_weight(self, facility_id: str) -> float:
        """Objective contribution of opening ``facility_id``."""
        w = self.weights
        return (
            w.cost * self.fixed_cost[facility_id]
            + w.utilization * self.idle_capacity_cost_per_unit * self.capacity[facility_id]
        )

    def excess_miles(self, facility_id: str, destination_id: str) -> float:
        return max(0.0, self.distance[(facility_id, destination_id)] - self.max_distance_miles)

    def flow_weight(self, facility_id: str, destination_id: str) -> float:
        """Objective contribution per unit shipped on (facility, destination)."""
        w = self.weights
        return (
            w.cost * self.unit_cost[(facility_id, destination_id)]
            + w.service_level * self.service_penalty_per_mile * self.excess_miles(facility_id, destination_id)
        )

    @property
    def objective_constant(self) -> float:
        return -self.weights.utilization * self.idle_capacity_cost_per_unit * self.total_demand

    def objective_value(self, open_facilities: Iterable[str], flows: Mapping[Pair, float]) -> float:
        """Weighted objective of a candidate solution."""
        total = sum(self.open_weight(f) for f in open_facilities)
        total += sum(v * self.flow_weight(f, d) for (f, d), v in flows.items())
        return total + self.objective_constant

    def utilization(self, facility_id: str, flows: Mapping[Pair, float]) -> float:
        """Assigned volume / capacity (0 for a zero-capacity facility)."""
        cap = self.capacity[facility_id]
        if cap <= 0:
            return 0.0
        return sum(v for (f, _), v in flows.items() if f == facility_id) / cap

    def total_distance(self, flows: Mapping[Pair, float]) -> float:
        return sum(v * self.distance[pair] for pair, v in flows.items())

    def order(self, facility_ids: Iterable[str]) -> Tuple[str, ...]:
        """Facility ids sorted into problem (input) order."""
        chosen = set(facility_ids)
        return tuple(f for f in self.facility_ids if f in chosen)

    def tie_break_key(self, open_facilities: Sequence[str], flows: Mapping[Pair, float]) -> tuple:
        """Secondary ordering among solutions with equal objective."""
        ordered = self.order(open_facilities)
        peak = max((self.utilization(f, flows) for f in ordered), default=0.0)
        return (len(ordered), round(peak, 6), round(self.total_distance(flows), 6), tuple(sorted(ordered)))

    def objectives_equal(self, a: float, b: float) -> bool:
        return abs(a - b) <= OBJECTIVE_RTOL * max(1.0, abs(a), abs(b))

    def is_better(
        self,
        objective: float,
        key: tuple,
        incumbent_objective: Optional[float],
        incumbent_key: Optional[tuple],
    ) -> bool:
        """True if (objective, key) beats the incumbent under the tie-break order."""
        if incumbent_objective is None:
            return True
        if self.objectives_equal(objective, incumbent_objective):
            return key < incumbent_key
        return objective < incumbent_objective

    # ------------------------------------------------------------------
    # Variants
    # ------------------------------------------------------------------

    def with_demand(self, demand: Mapping[str, float]) -> "FacilityLocationProblem":
        """Same network with a different demand map (same destination ids)."""
        missing = set(self.destination_ids) - set(demand)
        if missing:
            raise InputValidationError(f"Demand missing for destinations: {sorted(missing)}")
        return replace(self, demand={d: float(demand[d]) for d in self.destination_ids})

    def with_fixed_open(self, facility_ids: Iterable[str]) -> "FacilityLocationProblem":
        """Same problem with exactly ``facility_ids`` open (all others closed)."""
        fixed = frozenset(facility_ids)
        unknown = fixed - set(self.facility_ids)
        if unknown:
            raise InputValidationError(f"Unknown facility ids: {sorted(unknown)}")
        return replace(self, mandatory=fixed, min_open=len(fixed), max_open=len(fixed))

    # ------------------------------------------------------------------
    # Feasibility
    # ------------------------------------------------------------------

    def best_case_capacity(self) -> float:
        """Largest capacity reachable with the mandatory set plus the biggest optional facilities."""
        mandatory = [f for f in self.facility_ids if f in self.mandatory]
        slots = max(0, self.max_open - len(mandatory))
        optional = sorted(
            (self.capacity[f] for f in self.facility_ids if f not in self.mandatory),
            reverse=True,
        )
        return sum(self.capacity[f] for f in mandatory) + sum(optional[:slots])

    def check_feasibility(self) -> None:
        """
        Reject problems whose constraints cannot be jointly satisfied.

        Every facility can reach every destination, so aggregate capacity of
        the best admissible facility set decides capacity feasibility.

        Raises:
            InfeasibleError: With the shortfall in facilities or demand units
        """
        mandatory_count = len(self.mandatory)
        if mandatory_count > self.max_open:
            raise InfeasibleError(
                f"{mandatory_count} mandatory facilities exceed the maximum of {self.max_open} open facilities",
                shortfall=float(mandatory_count - self.max_open),
            )
        if self.min_open > len(self.facility_ids):
            raise InfeasibleError(
                f"At least {self.min_open} facilities must open but only "
                f"{len(self.facility_ids)} candidates exist",
                shortfall=float(self.min_open - len(self.facility_ids)),
            )
        if self.min_open > self.max_open:
            raise InfeasibleError(
                f"Minimum open facilities ({self.min_open}) exceeds maximum ({self.max_open})",
                shortfall=float(self.min_open - self.max_open),
            )

        demand = self.total_demand
        capacity = self.best_case_capacity()
        if capacity + FLOW_EPSILON * max(1.0, demand) < demand:
            shortfall = demand - capacity
            raise InfeasibleError(
                f"Total demand {demand:,.0f} exceeds best achievable capacity {capacity:,.0f} "
                f"with at most {self.max_open} open facilities (shortfall {shortfall:,.0f})",
                shortfall=shortfall,
            )

    # ------------------------------------------------------------------
    # Flow cleanup
    # ------------------------------------------------------------------

    def normalize_flows(self, flows: Mapping[Pair, float], min_share: float = 0.0) -> Dict[Pair, float]:
        """
        Drop numerical noise and make each destination's flows sum exactly to its demand.

        Args:
            min_share: Lanes carrying less than this share of their
                destination's demand are dropped as solver noise

        The residual is absorbed by the destination's largest flow whose
        facility has room for it (the largest flow if none has).
        """
        clean = {
            pair: float(v) for pair, v in flows.items()
            if v > max(FLOW_EPSILON, min_share * self.demand[pair[1]])
        }
        load: Dict[str, float] = {}
        for (f, _), v in clean.items():
            load[f] = load.get(f, 0.0) + v
        for d in self.destination_ids:
            lanes = [(pair, v) for pair, v in clean.items() if pair[1] == d]
            if not lanes:
                continue
            residual = self.demand[d] - sum(v for _, v in lanes)
            if residual == 0.0:
                continue
            lanes.sort(key=lambda item: (-item[1], self.facility_ids.index(item[0][0])))
            roomy = [pair for pair, _ in lanes if load[pair[0]] + residual <= self.capacity[pair[0]]]
            target = roomy[0] if roomy else lanes[0][0]
            clean[target] += residual
            load[target[0]] += residual
        return {pair: v for pair, v in clean.items() if v > FLOW_EPSILON}

    def __str__(self) -> str:
        return (
            f"FacilityLocationProblem({len(self.facility_ids)} facilities, "
            f"{len(self.destination_ids)} destinations, open {self.min_open}..{self.max_open}, "
            f"demand {self.total_demand:,.0f})"
        )
