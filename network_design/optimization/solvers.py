"""Interchangeable facility location solvers.

- MIPSolver: Pyomo model solved by an installed MIP solver (HiGHS preferred)
- EnumerationSolver: exact search over facility subsets; each subset is
  assigned by a min-cost flow (networkx network simplex)
- GreedySolver: add/drop heuristic; results are always Approximate

``create_solver`` picks one from the solver settings.
"""

from abc import ABC, abstractmethod
from itertools import combinations
from typing import Dict, Iterable, Mapping, Optional, Tuple
import logging
import math
import time

import networkx as nx

from ..config import SolverSettings
from ..errors import InfeasibleError, InputValidationError, SolveTimeoutError
from .facility_location_model import FacilityLocationModel
from .problem import FLOW_EPSILON, FacilityLocationProblem, LocationSolution, Pair
from .solver_config import SolverConfig, get_global_config

logger = logging.getLogger(__name__)

# Fixed-point scales for the integer min-cost flow
FLOW_SCALE = 10 ** 6
COST_SCALE = 10 ** 4
DISTANCE_SCALE = 10

# Bisection stops once the peak utilization cap is known to this precision
PEAK_TOLERANCE = 1e-7


class Solver(ABC):
    """Capability: solve a FacilityLocationProblem."""

    name = "solver"

    @abstractmethod
    def solve(
        self,
        problem: FacilityLocationProblem,
        time_limit_seconds: Optional[float] = None,
    ) -> LocationSolution:
        """
        Solve ``problem``.

        Returns:
            LocationSolution (proven_optimal False when approximate)

        Raises:
            InfeasibleError: If no feasible solution exists
            SolveTimeoutError: If the budget ran out before any feasible solution
        """
        raise NotImplementedError


def _solve_flow(
    problem: FacilityLocationProblem,
    chosen: Tuple[str, ...],
    demand_int: Mapping[str, int],
    capacity_int: Mapping[str, int],
    weights: Mapping[Pair, int],
) -> Optional[Tuple[int, dict]]:
    """Integer min-cost flow source -> facility -> destination; None if infeasible."""
    graph = nx.DiGraph()
    graph.add_node("source", demand=-sum(demand_int.values()))
    for d in problem.destination_ids:
        graph.add_node(("d", d), demand=demand_int[d])
    for f in chosen:
        graph.add_edge("source", ("f", f), capacity=capacity_int[f], weight=0)
        for d in problem.destination_ids:
            if demand_int[d] > 0:
                graph.add_edge(("f", f), ("d", d), weight=weights[(f, d)])
    try:
        return nx.network_simplex(graph)
    except nx.NetworkXUnfeasible:
        return None


def _balanced_capacities(
    problem: FacilityLocationProblem,
    chosen: Tuple[str, ...],
    demand_int: Mapping[str, int],
    capacity_int: Mapping[str, int],
    cost_int: Mapping[Pair, int],
    min_cost: int,
) -> Dict[str, int]:
    """
    Tightest uniform utilization cap that keeps the assignment at minimum cost.

    Every facility is limited to ``u * capacity``; ``u`` is bisected between
    the network's average utilization and 1.
    """
    def capped(u: float) -> Dict[str, int]:
        return {f: min(c, int(math.ceil(u * c))) for f, c in capacity_int.items()}

    def keeps_cost(u: float) -> bool:
        solved = _solve_flow(problem, chosen, demand_int, capped(u), cost_int)
        return solved is not None and solved[0] == min_cost

    low = sum(demand_int.values()) / sum(capacity_int.values())
    if keeps_cost(low):
        return capped(low)
    high = 1.0
    while high - low > PEAK_TOLERANCE:
        mid = (low + high) / 2
        if keeps_cost(mid):
            high = mid
        else:
            low = mid
    return capped(high)


def min_cost_assignment(
    problem: FacilityLocationProblem,
    open_facilities: Iterable[str],
    balance_peak: bool = True,
) -> Optional[Dict[Pair, float]]:
    """
    Cheapest assignment of all demand to a fixed set of open facilities.

    Ties on cost are broken by the lowest peak facility utilization and then
    by total distance. Quantities are solved in fixed point (1e-6 units) and
    then made exact by ``normalize_flows``.

    Args:
        balance_peak: Minimize peak utilization among cheapest assignments;
            without it only distance breaks cost ties

    Returns:
        Flows, or None if the open set cannot cover demand
    """
    chosen = problem.order(open_facilities)
    if not chosen:
        return None
    demand = problem.total_demand
    if sum(problem.capacity[f] for f in chosen) + FLOW_EPSILON * max(1.0, demand) < demand:
        return None

    demand_int = {d: int(round(problem.demand[d] * FLOW_SCALE)) for d in problem.destination_ids}
    total_int = sum(demand_int.values())
    if total_int == 0:
        return {}

    pairs = [(f, d) for f in chosen for d in problem.destination_ids]
    cost_int = {(f, d): int(round(problem.flow_weight(f, d) * COST_SCALE)) for f, d in pairs}

    capacity_int = None
    for round_capacity in (math.floor, math.ceil):
        rounded = {f: int(round_capacity(problem.capacity[f] * FLOW_SCALE)) for f in chosen}
        solved = _solve_flow(problem, chosen, demand_int, rounded, cost_int)
        if solved is not None:
            capacity_int, min_cost = rounded, solved[0]
            break
    if capacity_int is None:
        return None

    if balance_peak and len(chosen) > 1:
        capacity_int = _balanced_capacities(problem, chosen, demand_int, capacity_int, cost_int, min_cost)

    distance_int = {pair: int(round(problem.distance[pair] * DISTANCE_SCALE)) for pair in pairs}
    # Distance only breaks ties between equal-cost assignments
    cost_multiplier = total_int * (max(distance_int.values(), default=0) + 1)
    weights = {pair: cost_int[pair] * cost_multiplier + distance_int[pair] for pair in pairs}
    _, flow_dict = _solve_flow(problem, chosen, demand_int, capacity_int, weights)
    flows = {
        (node[1], dest[1]): amount / FLOW_SCALE
        for node, targets in flow_dict.items() if node != "source"
        for dest, amount in targets.items() if amount > 0
    }
    return problem.normalize_flows(flows)


class MIPSolver(Solver):
    """Exact solver backed by a Pyomo MIP."""

    name = "mip"

    def __init__(self, settings: Optional[SolverSettings] = None, solver_config: Optional[SolverConfig] = None):
        self.settings = settings or SolverSettings()
        self.solver_config = solver_config or get_global_config()

    @staticmethod
    def is_available(solver_config: Optional[SolverConfig] = None) -> bool:
        return (solver_config or get_global_config()).has_mip_solver()

    def solve(
        self,
        problem: FacilityLocationProblem,
        time_limit_seconds: Optional[float] = None,
    ) -> LocationSolution:
        limit = time_limit_seconds or self.settings.time_limit_seconds
        solver_name = self.solver_config.get_best_available_solver()
        model = FacilityLocationModel(problem, self.solver_config)
        start = time.time()
        solution = model.solve_lexicographic(
            solver_name=solver_name,
            time_limit_seconds=limit,
            mip_gap=self.settings.mip_gap,
            threads=self.settings.threads,
            tee=self.settings.tee,
        )
        if solution is None:
            elapsed = time.time() - start
            if model.result is not None and model.result.hit_time_limit():
                raise SolveTimeoutError(
                    f"MIP solver found no feasible solution within {limit:.1f}s",
                    elapsed_seconds=elapsed,
                )
            message = model.result.infeasibility_message if model.result else "no result"
            raise InfeasibleError(f"Facility location model is infeasible: {message}")
        solution.solver_name = f"mip:{solver_name}"
        return solution


class EnumerationSolver(Solver):
    """
    Exact search over open-facility subsets.

    Subsets are visited in increasing size and input order. A subset is
    skipped when a lower bound on its objective already exceeds the
    incumbent. If the time budget runs out, the incumbent is returned as
    approximate.
    """

    name = "enumeration"

    def __init__(self, settings: Optional[SolverSettings] = None):
        self.settings = settings or SolverSettings()

    def solve(
        self,
        problem: FacilityLocationProblem,
        time_limit_seconds: Optional[float] = None,
    ) -> LocationSolution:
        limit = time_limit_seconds or self.settings.time_limit_seconds
        start = time.time()
        deadline = start + limit

        mandatory = problem.order(problem.mandatory)
        optional = [f for f in problem.facility_ids if f not in problem.mandatory]
        smallest = max(0, problem.min_open - len(mandatory))
        largest = problem.max_open - len(mandatory)

        best: Optional[Tuple[float, tuple, Tuple[str, ...], Dict[Pair, float]]] = None
        evaluated = 0
        timed_out = False

        for k in range(smallest, largest + 1):
            for extra in combinations(optional, k):
                if time.time() > deadline:
                    timed_out = True
                    break
                open_set = mandatory + extra
                if not open_set:
                    continue
                if best is not None and self._lower_bound(problem, open_set) > best[0] + abs(best[0]) * 1e-9 + 1e-9:
                    continue
                flows = min_cost_assignment(problem, open_set, balance_peak=False)
                evaluated += 1
                if flows is None:
                    continue
                ordered = problem.order(open_set)
                objective = problem.objective_value(ordered, flows)
                if best is not None and objective > best[0] and not problem.objectives_equal(objective, best[0]):
                    continue
                # Cost is unchanged by balancing; only the tie-break key moves
                flows = min_cost_assignment(problem, open_set)
                key = problem.tie_break_key(ordered, flows)
                if problem.is_better(objective, key, best[0] if best else None, best[1] if best else None):
                    best = (objective, key, ordered, flows)
            if timed_out:
                break

        elapsed = time.time() - start
        if best is None:
            if timed_out:
                raise SolveTimeoutError(
                    f"Enumeration found no feasible facility set within {limit:.1f}s",
                    elapsed_seconds=elapsed,
                )
            raise InfeasibleError("No admissible facility set can cover demand")

        logger.info(
            f"Enumeration evaluated {evaluated} facility sets in {elapsed:.2f}s"
            + (" (time limit reached)" if timed_out else "")
        )
        return LocationSolution(
            open_facilities=best[2],
            flows=best[3],
            objective_value=best[0],
            solver_name=self.name,
            proven_optimal=not timed_out,
            termination="time_limit" if timed_out else "optimal",
            solve_time_seconds=elapsed,
            metadata={"sets_evaluated": evaluated},
        )

    @staticmethod
    def _lower_bound(problem: FacilityLocationProblem, open_set: Tuple[str, ...]) -> float:
        bound = sum(problem.open_weight(f) for f in open_set) + problem.objective_constant
        for d in problem.destination_ids:
            bound += problem.demand[d] * min(problem.flow_weight(f, d) for f in open_set)
        return bound


class GreedySolver(Solver):
    """
    Add/drop heuristic.

    Starting from the mandatory facilities, adds the largest facilities until
    demand is covered and the minimum count is met, then repeatedly applies
    the single add or drop that most improves the objective.
    """

    name = "greedy"

    def __init__(self, settings: Optional[SolverSettings] = None):
        self.settings = settings or SolverSettings()

    def solve(
        self,
        problem: FacilityLocationProblem,
        time_limit_seconds: Optional[float] = None,
    ) -> LocationSolution:
        limit = time_limit_seconds or self.settings.time_limit_seconds
        start = time.time()
        deadline = start + limit

        current = list(problem.order(problem.mandatory))
        by_capacity = sorted(
            (f for f in problem.facility_ids if f not in problem.mandatory),
            key=lambda f: (-problem.capacity[f], problem.facility_ids.index(f)),
        )
        demand = problem.total_demand
        for f in by_capacity:
            covered = sum(problem.capacity[g] for g in current) + FLOW_EPSILON * max(1.0, demand) >= demand
            if covered and len(current) >= problem.min_open:
                break
            current.append(f)

        flows = min_cost_assignment(problem, current)
        if flows is None or len(current) > problem.max_open:
            raise InfeasibleError("Greedy construction could not cover demand within the facility limit")
        objective = problem.objective_value(problem.order(current), flows)

        iterations = 0
        improved = True
        while improved and time.time() < deadline:
            improved = False
            iterations += 1
            best_move = None
            for candidate in self._neighbours(problem, current):
                candidate_flows = min_cost_assignment(problem, candidate, balance_peak=False)
                if candidate_flows is None:
                    continue
                candidate_obj = problem.objective_value(problem.order(candidate), candidate_flows)
                reference = best_move[1] if best_move else objective
                if candidate_obj < reference and not problem.objectives_equal(candidate_obj, reference):
                    best_move = (candidate, candidate_obj, candidate_flows)
            if best_move is not None:
                current, objective, flows = list(best_move[0]), best_move[1], best_move[2]
                improved = True

        flows = min_cost_assignment(problem, current)
        elapsed = time.time() - start
        logger.info(f"Greedy search finished after {iterations} iterations in {elapsed:.2f}s")
        return LocationSolution(
            open_facilities=problem.order(current),
            flows=flows,
            objective_value=objective,
            solver_name=self.name,
            proven_optimal=False,
            termination="heuristic",
            solve_time_seconds=elapsed,
            metadata={"iterations": iterations},
        )

    @staticmethod
    def _neighbours(problem: FacilityLocationProblem, current):
        current_set = set(current)
        if len(current) < problem.max_open:
            for f in problem.facility_ids:
                if f not in current_set:
                    yield problem.order(current_set | {f})
        if len(current) > max(problem.min_open, 1):
            for f in current:
                if f not in problem.mandatory:
                    yield problem.order(current_set - {f})


def create_solver(
    settings: SolverSettings,
    candidate_count: int,
    solver_config: Optional[SolverConfig] = None,
) -> Solver:
    """
    Solver named by ``settings.name``.

    'auto' uses the MIP when a MIP solver is installed, enumeration when
    the candidate set is small enough, and the greedy heuristic otherwise.

    Raises:
        InputValidationError: If 'mip' is requested but no MIP solver is installed
    """
    name = settings.name
    if name == "auto":
        if MIPSolver.is_available(solver_config):
            name = "mip"
        elif candidate_count <= settings.max_enumeration_candidates:
            name = "enumeration"
        else:
            name = "greedy"
        logger.debug(f"Solver 'auto' resolved to '{name}' for {candidate_count} candidates")

    if name == "mip":
        if not MIPSolver.is_available(solver_config):
            raise InputValidationError("Solver 'mip' requested but no MIP solver is installed")
        return MIPSolver(settings, solver_config)
    if name == "enumeration":
        return EnumerationSolver(settings)
    return GreedySolver(settings)
