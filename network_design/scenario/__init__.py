"""Scenario orchestration: warehouse plus transport, joined by year."""

from .orchestrator import (
    BaselineIntegration,
    IntegratedRunResult,
    ScenarioInputs,
    ScenarioOrchestrator,
    YearRow,
)
from .comparison import compare_scenarios

__all__ = [
    "BaselineIntegration",
    "IntegratedRunResult",
    "ScenarioInputs",
    "ScenarioOrchestrator",
    "YearRow",
    "compare_scenarios",
]
