"""Optimization module for facility location.

Key components:
- SolverConfig: Solver discovery and creation
- BaseOptimizationModel / FacilityLocationModel: Pyomo MIP
- Solver, MIPSolver, EnumerationSolver, GreedySolver: interchangeable search methods
- FacilityLocationOptimizer: validated end-to-end facility location runs
- OptimizationResult: validated result schema
"""

from .solver_config import (
    SolverConfig,
    SolverType,
    SolverInfo,
    get_global_config,
    get_solver,
)
from .base_model import BaseOptimizationModel, SolveResult
from .problem import FacilityLocationProblem, LocationSolution
from .facility_location_model import FacilityLocationModel
from .solvers import Solver, MIPSolver, EnumerationSolver, GreedySolver, create_solver, min_cost_assignment
from .result_schema import Assignment, FacilityMetrics, NetworkMetrics, OptimizationResult
from .execution import solve_with_hard_timeout
from .facility_location import FacilityLocationOptimizer, FixedNetworkPlan, MultiYearPlan

__all__ = [
    'SolverConfig',
    'SolverType',
    'SolverInfo',
    'get_global_config',
    'get_solver',
    'BaseOptimizationModel',
    'SolveResult',
    'FacilityLocationProblem',
    'LocationSolution',
    'FacilityLocationModel',
    'Solver',
    'MIPSolver',
    'EnumerationSolver',
    'GreedySolver',
    'create_solver',
    'min_cost_assignment',
    'Assignment',
    'FacilityMetrics',
    'NetworkMetrics',
    'OptimizationResult',
    'solve_with_hard_timeout',
    'FacilityLocationOptimizer',
    'FixedNetworkPlan',
    'MultiYearPlan',
]
