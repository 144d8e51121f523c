"""Shared helpers for tests that need a solver choice or a small config."""

import pytest
from pyomo.opt import SolverFactory

from network_design.config import OptimizationConfig


def highs_available() -> bool:
    """True if the APPSI HiGHS interface can be used."""
    try:
        return bool(SolverFactory('appsi_highs').available(exception_flag=False))
    except Exception:
        return False


HIGHS_AVAILABLE = highs_available()

requires_highs = pytest.mark.skipif(not HIGHS_AVAILABLE, reason="HiGHS solver not installed")


def solver_config_dict(name: str = "enumeration", **transportation) -> dict:
    return {
        "optimization": {"solver": {"name": name, "time_limit_seconds": 60}},
        "transportation": transportation,
    }


def enumeration_config(**transportation) -> OptimizationConfig:
    """Config that uses the exact enumeration solver (no MIP solver needed)."""
    return OptimizationConfig.from_dict(solver_config_dict("enumeration", **transportation))
