"""Supply-chain network design engine.

Facility location, warehouse capacity sizing, multi-year cost projection
and scenario orchestration.
"""

from .config import OptimizationConfig
from .errors import (
    DataSourceError,
    InfeasibleError,
    InputValidationError,
    NetworkDesignError,
    RunOutcome,
    SolveTimeoutError,
)
from .models import (
    SKU,
    BaselineCost,
    Coordinates,
    CostMatrix,
    DataProvenance,
    DemandPoint,
    FacilityCandidate,
    FallbackData,
    ForecastRow,
    RealData,
    VolumeForecast,
)
from .costs import CostMatrixGenerator, generate_cost_matrix
from .network import DistanceCalculator, haversine_miles
from .optimization import FacilityLocationOptimizer, OptimizationResult
from .projection import MultiYearProjector
from .scenario import IntegratedRunResult, ScenarioInputs, ScenarioOrchestrator
from .warehouse import InventoryOptimizer, WarehouseCapacityOptimizer

__version__ = "0.1.0"

__all__ = [
    "OptimizationConfig",
    "NetworkDesignError",
    "InputValidationError",
    "InfeasibleError",
    "SolveTimeoutError",
    "DataSourceError",
    "RunOutcome",
    "Coordinates",
    "FacilityCandidate",
    "DemandPoint",
    "CostMatrix",
    "BaselineCost",
    "ForecastRow",
    "VolumeForecast",
    "SKU",
    "DataProvenance",
    "RealData",
    "FallbackData",
    "DistanceCalculator",
    "haversine_miles",
    "CostMatrixGenerator",
    "generate_cost_matrix",
    "FacilityLocationOptimizer",
    "OptimizationResult",
    "WarehouseCapacityOptimizer",
    "InventoryOptimizer",
    "MultiYearProjector",
    "ScenarioOrchestrator",
    "ScenarioInputs",
    "IntegratedRunResult",
]
