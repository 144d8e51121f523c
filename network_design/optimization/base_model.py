"""Base class for Pyomo optimization models.

This module provides an abstract base class that MIP models inherit from,
providing common functionality for model building, solving, and result
extraction.

Subclasses return a ``LocationSolution`` from extract_solution(). Solutions
are loaded manually after the termination condition has been checked, so a
time limit without an incumbent never raises inside Pyomo.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, TYPE_CHECKING
import logging
import math
import time

from pyomo.environ import ConcreteModel, Objective, Var, value
from pyomo.opt import SolverStatus, TerminationCondition

from .solver_config import SolverConfig

if TYPE_CHECKING:
    from .problem import LocationSolution

logger = logging.getLogger(__name__)


@dataclass
class SolveResult:
    """
    Results from one Pyomo solve.

    Attributes:
        success: Whether a usable solution was found
        objective_value: Objective value of the incumbent
        solver_status: Pyomo solver status
        termination_condition: Pyomo termination condition
        solve_time_seconds: Time taken to solve (seconds)
        solver_name: Name of solver used
        gap: MIP gap (if applicable)
        num_variables: Number of decision variables
        num_constraints: Number of constraints
        num_integer_vars: Number of integer/binary variables
        infeasibility_message: Message explaining why the solve failed (if applicable)
        metadata: Additional result metadata
    """
    success: bool
    objective_value: Optional[float] = None
    solver_status: Optional[SolverStatus] = None
    termination_condition: Optional[TerminationCondition] = None
    solve_time_seconds: Optional[float] = None
    solver_name: Optional[str] = None
    gap: Optional[float] = None
    num_variables: int = 0
    num_constraints: int = 0
    num_integer_vars: int = 0
    infeasibility_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_optimal(self) -> bool:
        """Check if solution is optimal."""
        return (
            self.success
            and self.termination_condition == TerminationCondition.optimal
        )

    def is_feasible(self) -> bool:
        """Check if a valid solution exists (optimal, feasible, or time limit with incumbent)."""
        if not self.success:
            return False
        return self.termination_condition in [
            TerminationCondition.optimal,
            TerminationCondition.feasible,
            TerminationCondition.maxTimeLimit,
        ]

    def is_infeasible(self) -> bool:
        """Check if model is infeasible."""
        return self.termination_condition == TerminationCondition.infeasible

    def hit_time_limit(self) -> bool:
        return self.termination_condition == TerminationCondition.maxTimeLimit

    def __str__(self) -> str:
        if self.is_optimal():
            status = "OPTIMAL"
        elif self.is_feasible():
            status = "FEASIBLE"
        elif self.is_infeasible():
            status = "INFEASIBLE"
        else:
            status = f"{self.termination_condition}"

        result = f"SolveResult: {status}"
        if self.objective_value is not None:
            result += f", objective = {self.objective_value:,.2f}"
        if self.solve_time_seconds is not None:
            result += f", time = {self.solve_time_seconds:.2f}s"
        return result


class BaseOptimizationModel(ABC):
    """
    Abstract base class for optimization models.

    Subclasses implement:
    - build_model(): Construct the Pyomo model
    - extract_solution(): Extract solution from solved model

    This base class provides:
    - Solver configuration and option mapping
    - Build-then-solve workflow, plus re-solving an already built model
    - Result processing and model statistics

    Example:
        model = FacilityLocationModel(problem)
        result = model.solve(solver_name='appsi_highs', time_limit_seconds=60)
        if result.is_optimal():
            solution = model.get_solution()
    """

    def __init__(self, solver_config: Optional[SolverConfig] = None):
        """
        Initialize optimization model.

        Args:
            solver_config: SolverConfig instance. If None, uses a default config.
        """
        self.solver_config = solver_config or SolverConfig()
        self.model: Optional[ConcreteModel] = None
        self.result: Optional[SolveResult] = None
        self.solution: Optional['LocationSolution'] = None
        self._build_time: Optional[float] = None

    @abstractmethod
    def build_model(self) -> ConcreteModel:
        """
        Build and return the Pyomo optimization model.

        Returns:
            ConcreteModel: Pyomo model with variables, constraints, and objective
        """
        raise NotImplementedError("Subclass must implement build_model()")

    @abstractmethod
    def extract_solution(self, model: ConcreteModel) -> 'LocationSolution':
        """
        Extract solution values from the solved model.

        Args:
            model: Solved Pyomo ConcreteModel with values loaded

        Returns:
            LocationSolution
        """
        raise NotImplementedError("Subclass must implement extract_solution()")

    def solve(
        self,
        solver_name: Optional[str] = None,
        solver_options: Optional[Dict[str, Any]] = None,
        tee: bool = False,
        time_limit_seconds: Optional[float] = None,
        mip_gap: Optional[float] = None,
        threads: int = 1,
    ) -> SolveResult:
        """
        Build and solve the optimization model.

        Args:
            solver_name: Name of solver to use (None = best available)
            solver_options: Additional solver options
            tee: If True, print solver output
            time_limit_seconds: Maximum solve time in seconds
            mip_gap: Relative MIP gap tolerance (0 = prove optimality)
            threads: Solver threads

        Returns:
            SolveResult with solve status and objective value
        """
        build_start = time.time()
        self.model = self.build_model()
        self._build_time = time.time() - build_start
        logger.debug(f"Model built in {self._build_time:.3f}s: {self.get_model_statistics()}")

        return self.resolve(
            solver_name=solver_name,
            solver_options=solver_options,
            tee=tee,
            time_limit_seconds=time_limit_seconds,
            mip_gap=mip_gap,
            threads=threads,
        )

    def resolve(
        self,
        solver_name: Optional[str] = None,
        solver_options: Optional[Dict[str, Any]] = None,
        tee: bool = False,
        time_limit_seconds: Optional[float] = None,
        mip_gap: Optional[float] = None,
        threads: int = 1,
    ) -> SolveResult:
        """
        Solve the already built model (after a subclass modified it).

        Raises:
            RuntimeError: If build_model() has not been run
        """
        if self.model is None:
            raise RuntimeError("Model has not been built; call solve() first")

        if solver_name is None:
            solver_name = self.solver_config.get_best_available_solver()

        if solver_name == 'appsi_highs':
            return self._solve_with_appsi_highs(
                time_limit_seconds=time_limit_seconds,
                mip_gap=mip_gap,
                threads=threads,
                tee=tee,
            )

        options = dict(solver_options or {})
        options.update(self._solver_options(solver_name, time_limit_seconds, mip_gap, threads))

        try:
            solver = self.solver_config.create_solver(solver_name, options)
        except RuntimeError as e:
            return SolveResult(
                success=False,
                infeasibility_message=str(e),
                solver_name=solver_name,
                num_variables=self.model.nvariables(),
                num_constraints=self.model.nconstraints(),
            )

        solve_start = time.time()
        # load_solutions=False: a time limit without incumbent must not raise
        results = solver.solve(
            self.model,
            tee=tee,
            symbolic_solver_labels=False,
            load_solutions=False,
        )
        solve_time = time.time() - solve_start

        result = self._process_results(results, solver_name, solve_time)
        self.result = result

        if result.is_feasible():
            self.model.solutions.load_from(results)
            if result.objective_value is None or math.isinf(result.objective_value):
                result.objective_value = value(self._active_objective())
            self.solution = self.extract_solution(self.model)

        return result

    @staticmethod
    def _solver_options(
        solver_name: str,
        time_limit_seconds: Optional[float],
        mip_gap: Optional[float],
        threads: int,
    ) -> Dict[str, Any]:
        """Translate generic limits into solver-specific option names."""
        options: Dict[str, Any] = {}
        if solver_name in ['cbc', 'asl:cbc']:
            if time_limit_seconds is not None:
                options['seconds'] = time_limit_seconds
            if mip_gap is not None:
                options['ratio'] = mip_gap
            options['threads'] = threads
        elif solver_name == 'gurobi':
            if time_limit_seconds is not None:
                options['TimeLimit'] = time_limit_seconds
            if mip_gap is not None:
                options['MIPGap'] = mip_gap
            options['Threads'] = threads
        elif solver_name == 'cplex':
            if time_limit_seconds is not None:
                options['timelimit'] = time_limit_seconds
            if mip_gap is not None:
                options['mip_tolerances_mipgap'] = mip_gap
            options['threads'] = threads
        elif solver_name == 'highs':
            options['presolve'] = 'on'
            options['threads'] = threads
            if time_limit_seconds is not None:
                options['time_limit'] = time_limit_seconds
            if mip_gap is not None:
                options['mip_rel_gap'] = mip_gap
        elif solver_name == 'glpk':
            if time_limit_seconds is not None:
                options['tmlim'] = int(math.ceil(time_limit_seconds))
            if mip_gap is not None:
                options['mipgap'] = mip_gap
        return options

    def _solve_with_appsi_highs(
        self,
        time_limit_seconds: Optional[float] = None,
        mip_gap: Optional[float] = None,
        threads: int = 1,
        tee: bool = False,
    ) -> SolveResult:
        """
        Solve model using the APPSI HiGHS interface.

        Args:
            time_limit_seconds: Maximum solve time
            mip_gap: Relative MIP gap tolerance
            threads: HiGHS threads (1 keeps runs reproducible)
            tee: Show solver output

        Returns:
            SolveResult
        """
        from pyomo.contrib.appsi.base import TerminationCondition as AppsiTC
        from pyomo.contrib.appsi.solvers import Highs

        solver = Highs()
        solver.config.load_solution = False
        if time_limit_seconds is not None:
            solver.config.time_limit = time_limit_seconds
        if mip_gap is not None:
            solver.config.mip_gap = mip_gap
        if tee:
            solver.config.stream_solver = True

        solver.highs_options['presolve'] = 'on'
        solver.highs_options['threads'] = threads
        solver.highs_options['random_seed'] = 0

        solve_start = time.time()
        results = solver.solve(self.model)
        solve_time = time.time() - solve_start

        # Map APPSI termination conditions onto the legacy enum
        appsi_tc = results.termination_condition
        best = getattr(results, 'best_feasible_objective', None)
        has_incumbent = best is not None and math.isfinite(best)
        if appsi_tc == AppsiTC.optimal:
            legacy_tc = TerminationCondition.optimal
            success = True
        elif appsi_tc == AppsiTC.infeasible:
            legacy_tc = TerminationCondition.infeasible
            success = False
        elif appsi_tc == AppsiTC.unbounded:
            legacy_tc = TerminationCondition.unbounded
            success = False
        elif appsi_tc == AppsiTC.maxTimeLimit:
            legacy_tc = TerminationCondition.maxTimeLimit
            success = has_incumbent
        else:
            legacy_tc = TerminationCondition.unknown
            success = False

        gap = None
        bound = getattr(results, 'best_objective_bound', None)
        if has_incumbent and bound is not None and math.isfinite(bound):
            gap = abs(best - bound) / max(abs(best), 1e-10)

        result = SolveResult(
            success=success,
            objective_value=best if has_incumbent else None,
            solver_status=None,  # APPSI has no solver_status
            termination_condition=legacy_tc,
            solve_time_seconds=solve_time,
            solver_name='appsi_highs',
            gap=gap,
            num_variables=self.model.nvariables(),
            num_constraints=self.model.nconstraints(),
            num_integer_vars=self._count_integer_vars(),
        )
        if not success:
            result.infeasibility_message = f"HiGHS terminated with {appsi_tc}"
        self.result = result

        if success:
            results.solution_loader.load_vars()
            self.solution = self.extract_solution(self.model)

        return result

    def _process_results(
        self,
        results,
        solver_name: Optional[str],
        solve_time: float
    ) -> SolveResult:
        """
        Process legacy solver results into a SolveResult.

        Args:
            results: Pyomo solver results
            solver_name: Name of solver used
            solve_time: Time taken to solve

        Returns:
            SolveResult
        """
        solver_status = results.solver.status if hasattr(results, 'solver') else None
        termination_condition = results.solver.termination_condition if hasattr(results, 'solver') else None

        has_solution = len(getattr(results, 'solution', [])) > 0
        success = (
            solver_status in [SolverStatus.ok, SolverStatus.warning, SolverStatus.aborted]
            and (
                termination_condition in [TerminationCondition.optimal, TerminationCondition.feasible]
                or (termination_condition == TerminationCondition.maxTimeLimit and has_solution)
            )
        )

        # For minimization, upper_bound is the objective value
        objective_value = None
        if hasattr(results.problem, 'upper_bound'):
            objective_value = results.problem.upper_bound
            if objective_value is not None and math.isinf(objective_value):
                objective_value = None

        gap = None
        if hasattr(results.problem, 'upper_bound') and hasattr(results.problem, 'lower_bound'):
            ub = results.problem.upper_bound
            lb = results.problem.lower_bound
            if (ub is not None and lb is not None and
                    math.isfinite(ub) and math.isfinite(lb) and
                    abs(ub) > 1e-10):
                gap = abs((ub - lb) / ub)

        infeasibility_message = None
        if termination_condition == TerminationCondition.infeasible:
            infeasibility_message = (
                "Model is infeasible. Constraints cannot all be satisfied simultaneously."
            )
        elif not success:
            error_details = f"Status: {solver_status}, Termination: {termination_condition}"
            if hasattr(results.solver, 'message') and results.solver.message:
                error_details += f", Message: {results.solver.message}"
            infeasibility_message = f"Solver failed - {error_details}"

        return SolveResult(
            success=success,
            objective_value=objective_value,
            solver_status=solver_status,
            termination_condition=termination_condition,
            solve_time_seconds=solve_time,
            solver_name=solver_name,
            gap=gap,
            num_variables=self.model.nvariables() if self.model else 0,
            num_constraints=self.model.nconstraints() if self.model else 0,
            num_integer_vars=self._count_integer_vars(),
            infeasibility_message=infeasibility_message,
        )

    def _active_objective(self):
        return next(self.model.component_data_objects(Objective, active=True))

    def _count_integer_vars(self) -> int:
        if self.model is None:
            return 0
        return sum(
            1 for var in self.model.component_data_objects(Var, active=True)
            if var.is_integer() or var.is_binary()
        )

    def get_solution(self) -> Optional['LocationSolution']:
        """Solution extracted by the last successful solve (None otherwise)."""
        return self.solution

    def get_model_statistics(self) -> Dict[str, Any]:
        """
        Get statistics about the model.

        Returns:
            Dictionary with model statistics
        """
        if self.model is None:
            return {
                'built': False,
                'num_variables': 0,
                'num_constraints': 0,
                'num_integer_vars': 0,
            }

        return {
            'built': True,
            'build_time_seconds': self._build_time,
            'num_variables': self.model.nvariables(),
            'num_constraints': self.model.nconstraints(),
            'num_integer_vars': self._count_integer_vars(),
        }
