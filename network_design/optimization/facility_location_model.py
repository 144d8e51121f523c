"""Capacitated facility location MIP.

Decision variables:
- open[f] in {0, 1}: facility f is open
- assign[f, d] >= 0: units shipped from facility f to destination d

Constraints:
- demand_coverage[d]: sum_f assign[f, d] == demand[d]
- linking[f, d]: assign[f, d] <= demand[d] * open[f]
- capacity[f]: sum_d assign[f, d] <= capacity[f] * open[f]
- min_open / max_open: cardinality bounds on sum_f open[f]
- mandatory facilities are fixed open

Ties are resolved lexicographically by re-solving the same model:
1. minimize the weighted objective
2. objective <= optimum: minimize open facilities
3. open count fixed: minimize peak utilization
4. peak utilization <= optimum: minimize total distance
"""

from typing import Optional
import logging
import time

from pyomo.environ import (
    Binary,
    ConcreteModel,
    Constraint,
    NonNegativeReals,
    Objective,
    Set,
    Var,
    minimize,
    value,
)

from .base_model import BaseOptimizationModel, SolveResult
from .problem import FacilityLocationProblem, LocationSolution
from .solver_config import SolverConfig

logger = logging.getLogger(__name__)

# Slack allowed on a previous stage's optimum when adding it as a constraint
STAGE_RTOL = 1e-7

# Lanes below this share of a destination's demand are stage-slack leakage
LEAK_SHARE = 1e-6


class FacilityLocationModel(BaseOptimizationModel):
    """
    Pyomo model for one facility location problem.

    Example:
        model = FacilityLocationModel(problem)
        solution = model.solve_lexicographic(solver_name='appsi_highs', time_limit_seconds=60)
        print(solution.open_facilities)
    """

    def __init__(self, problem: FacilityLocationProblem, solver_config: Optional[SolverConfig] = None):
        super().__init__(solver_config)
        self.problem = problem
        self.stages_completed = 0

    def build_model(self) -> ConcreteModel:
        p = self.problem
        model = ConcreteModel(name="FacilityLocation")

        model.facilities = Set(initialize=list(p.facility_ids), ordered=True)
        model.destinations = Set(initialize=list(p.destination_ids), ordered=True)

        model.open = Var(model.facilities, within=Binary)
        model.assign = Var(model.facilities, model.destinations, within=NonNegativeReals)

        def demand_coverage_rule(m, d):
            return sum(m.assign[f, d] for f in m.facilities) == p.demand[d]
        model.demand_coverage = Constraint(model.destinations, rule=demand_coverage_rule)

        def linking_rule(m, f, d):
            return m.assign[f, d] <= p.demand[d] * m.open[f]
        model.linking = Constraint(model.facilities, model.destinations, rule=linking_rule)

        def capacity_rule(m, f):
            return sum(m.assign[f, d] for d in m.destinations) <= p.capacity[f] * m.open[f]
        model.capacity = Constraint(model.facilities, rule=capacity_rule)

        model.min_open = Constraint(expr=sum(model.open[f] for f in model.facilities) >= p.min_open)
        model.max_open = Constraint(expr=sum(model.open[f] for f in model.facilities) <= p.max_open)

        for f in p.mandatory:
            model.open[f].fix(1)

        model.weighted_cost = (
            sum(p.open_weight(f) * model.open[f] for f in model.facilities)
            + sum(
                p.flow_weight(f, d) * model.assign[f, d]
                for f in model.facilities for d in model.destinations
            )
            + p.objective_constant
        )
        model.obj = Objective(expr=model.weighted_cost, sense=minimize)

        return model

    def extract_solution(self, model: ConcreteModel) -> LocationSolution:
        p = self.problem
        open_facilities = p.order(f for f in model.facilities if value(model.open[f]) > 0.5)
        raw = {
            (f, d): value(model.assign[f, d])
            for f in model.facilities for d in model.destinations
            if f in open_facilities
        }
        flows = p.normalize_flows({pair: v for pair, v in raw.items() if v is not None}, min_share=LEAK_SHARE)
        return LocationSolution(
            open_facilities=open_facilities,
            flows=flows,
            objective_value=p.objective_value(open_facilities, flows),
            solver_name=self.result.solver_name if self.result else "mip",
        )

    def _tolerance(self, optimum: float) -> float:
        return STAGE_RTOL * max(1.0, abs(optimum))

    def solve_lexicographic(
        self,
        solver_name: Optional[str] = None,
        time_limit_seconds: Optional[float] = None,
        mip_gap: float = 0.0,
        threads: int = 1,
        tee: bool = False,
    ) -> Optional[LocationSolution]:
        """
        Solve with the full tie-break sequence.

        A time limit reached in stage 1 returns the incumbent marked as not
        proven optimal. A time limit in a later stage keeps the best
        solution found so far; the primary objective is still proven.

        Returns:
            LocationSolution, or None if no feasible solution was found
        """
        start = time.time()
        p = self.problem

        def remaining() -> Optional[float]:
            if time_limit_seconds is None:
                return None
            return max(0.01, time_limit_seconds - (time.time() - start))

        kwargs = dict(solver_name=solver_name, mip_gap=mip_gap, threads=threads, tee=tee)

        result = self.solve(time_limit_seconds=remaining(), **kwargs)
        if not result.is_feasible() or self.solution is None:
            logger.info(f"Facility location MIP found no solution: {result}")
            return None

        best = self.solution
        best.gap = result.gap
        if not result.is_optimal():
            best.proven_optimal = False
            best.termination = "time_limit"
            best.solve_time_seconds = time.time() - start
            logger.warning(f"MIP stopped at time limit with incumbent (gap={result.gap})")
            return best
        self.stages_completed = 1

        model = self.model
        optimum = value(model.weighted_cost)
        model.obj.deactivate()
        model.objective_bound = Constraint(expr=model.weighted_cost <= optimum + self._tolerance(optimum))
        model.open_count = Objective(expr=sum(model.open[f] for f in model.facilities), sense=minimize)
        best = self._next_stage(best, remaining, kwargs)
        if self.stages_completed < 2:
            return self._finish(best, start)

        n_open = int(round(sum(value(model.open[f]) for f in model.facilities)))
        model.open_count.deactivate()
        model.fixed_count = Constraint(expr=sum(model.open[f] for f in model.facilities) == n_open)
        model.peak_utilization = Var(within=NonNegativeReals)

        def peak_rule(m, f):
            if p.capacity[f] <= 0:
                return Constraint.Skip
            return m.peak_utilization >= sum(m.assign[f, d] for d in m.destinations) / p.capacity[f]
        model.peak_definition = Constraint(model.facilities, rule=peak_rule)
        model.peak_obj = Objective(expr=model.peak_utilization, sense=minimize)
        best = self._next_stage(best, remaining, kwargs)
        if self.stages_completed < 3:
            return self._finish(best, start)

        peak = value(model.peak_utilization)
        model.peak_obj.deactivate()
        model.peak_bound = Constraint(expr=model.peak_utilization <= peak + STAGE_RTOL)
        model.distance_obj = Objective(
            expr=sum(
                p.distance[(f, d)] * model.assign[f, d]
                for f in model.facilities for d in model.destinations
            ),
            sense=minimize,
        )
        best = self._next_stage(best, remaining, kwargs)
        return self._finish(best, start)

    def _next_stage(self, best: LocationSolution, remaining, kwargs) -> LocationSolution:
        result: SolveResult = self.resolve(time_limit_seconds=remaining(), **kwargs)
        if result.is_optimal() and self.solution is not None:
            self.stages_completed += 1
            return self.solution
        logger.info(f"Tie-break stage {self.stages_completed + 1} incomplete ({result}); keeping stage result")
        if result.is_feasible() and self.solution is not None:
            return self.solution
        return best

    def _finish(self, best: LocationSolution, start: float) -> LocationSolution:
        best.solve_time_seconds = time.time() - start
        best.metadata["tie_break_stages_completed"] = self.stages_completed
        best.metadata["model_statistics"] = self.get_model_statistics()
        logger.info(
            f"MIP solved: open={list(best.open_facilities)} objective={best.objective_value:,.2f} "
            f"stages={self.stages_completed} time={best.solve_time_seconds:.2f}s"
        )
        return best
