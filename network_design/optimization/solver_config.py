"""Solver configuration and discovery.

Detects which MIP solvers Pyomo can reach on this machine, optionally tests
them on a trivial model, and creates configured solver instances.

Preference order: Gurobi, CPLEX, HiGHS (APPSI), HiGHS, CBC, GLPK.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional
import logging

from pyomo.environ import ConcreteModel, Constraint, NonNegativeReals, Objective, Var, minimize, value
from pyomo.opt import SolverFactory, TerminationCondition

logger = logging.getLogger(__name__)


class SolverType(str, Enum):
    """Solvers the engine knows how to configure."""
    GUROBI = "gurobi"
    CPLEX = "cplex"
    APPSI_HIGHS = "appsi_highs"
    HIGHS = "highs"
    CBC = "cbc"
    GLPK = "glpk"


PREFERENCE_ORDER = [
    SolverType.GUROBI,
    SolverType.CPLEX,
    SolverType.APPSI_HIGHS,
    SolverType.HIGHS,
    SolverType.CBC,
    SolverType.GLPK,
]


@dataclass
class SolverInfo:
    """
    Availability information for one solver.

    Attributes:
        name: Solver name as understood by SolverFactory
        available: Pyomo reports the solver as available
        version: Version string if known
        path: Executable path if known
        tested: A test solve was attempted
        works: The test solve succeeded
    """
    name: str
    available: bool
    version: Optional[str] = None
    path: Optional[str] = None
    tested: bool = False
    works: bool = False

    def __str__(self) -> str:
        if not self.available:
            return f"{self.name.upper()}: ✗ unavailable"
        suffix = " (tested)" if self.tested and self.works else ""
        if self.tested and not self.works:
            suffix = " (test failed)"
        return f"{self.name.upper()}: ✓ available{suffix}"


class SolverConfig:
    """
    Cross-platform solver detection and creation.

    Example:
        config = SolverConfig()
        name = config.get_best_available_solver()
        solver = config.create_solver(name, {'time_limit': 60})
    """

    def __init__(self):
        self._solver_info: Dict[str, SolverInfo] = {}
        self._detect_solvers()

    def _detect_solvers(self) -> None:
        for solver_type in PREFERENCE_ORDER:
            name = solver_type.value
            try:
                solver = SolverFactory(name)
                available = bool(solver.available(exception_flag=False))
            except Exception as e:
                logger.debug(f"Solver {name} detection failed: {e}")
                available = False
            self._solver_info[name] = SolverInfo(name=name, available=available)

    def get_available_solvers(self) -> List[str]:
        """Names of available solvers, in preference order."""
        return [
            t.value for t in PREFERENCE_ORDER
            if self._solver_info.get(t.value) and self._solver_info[t.value].available
        ]

    def get_solver_info(self, name: str) -> Optional[SolverInfo]:
        return self._solver_info.get(name)

    def test_solver(self, name: str) -> bool:
        """
        Solve a one-variable model to confirm the solver actually runs.

        Args:
            name: Solver name

        Returns:
            True if the test model solved to optimality
        """
        info = self._solver_info.setdefault(name, SolverInfo(name=name, available=False))
        model = ConcreteModel()
        model.x = Var(within=NonNegativeReals)
        model.obj = Objective(expr=model.x, sense=minimize)
        model.con = Constraint(expr=model.x >= 1)
        try:
            solver = SolverFactory(name)
            results = solver.solve(model)
            works = (
                results.solver.termination_condition == TerminationCondition.optimal
                and abs(value(model.x) - 1.0) < 1e-6
            )
        except Exception as e:
            logger.warning(f"Solver {name} test failed: {e}")
            works = False
        info.tested = True
        info.works = works
        return works

    def get_best_available_solver(self, test_if_needed: bool = True) -> str:
        """
        Best available solver name.

        Args:
            test_if_needed: Run a test solve and skip solvers that fail it

        Raises:
            RuntimeError: If no optimization solver is available
        """
        for name in self.get_available_solvers():
            if not test_if_needed:
                return name
            info = self._solver_info[name]
            if info.tested and info.works:
                return name
            if not info.tested and self.test_solver(name):
                return name
        raise RuntimeError(
            "No optimization solver available. Install HiGHS (pip install highspy) "
            "or another Pyomo-compatible MIP solver."
        )

    def has_mip_solver(self) -> bool:
        return bool(self.get_available_solvers())

    def create_solver(self, solver_name: Optional[str] = None, options: Optional[Dict[str, Any]] = None):
        """
        Create a configured Pyomo solver.

        Args:
            solver_name: Solver to create (None = best available)
            options: Solver options applied to ``solver.options``

        Raises:
            RuntimeError: If the solver is not available
        """
        name = solver_name or self.get_best_available_solver()
        solver = SolverFactory(name)
        if not solver.available(exception_flag=False):
            raise RuntimeError(f"Solver '{name}' is not available")
        for key, val in (options or {}).items():
            solver.options[key] = val
        return solver

    def summary(self) -> str:
        return "\n".join(str(info) for info in self._solver_info.values())


_global_config: Optional[SolverConfig] = None


def get_global_config() -> SolverConfig:
    """Process-wide SolverConfig (detected once)."""
    global _global_config
    if _global_config is None:
        _global_config = SolverConfig()
    return _global_config


def get_solver(solver_name: Optional[str] = None, options: Optional[Dict[str, Any]] = None):
    """Create a solver using the global configuration."""
    return get_global_config().create_solver(solver_name, options)
