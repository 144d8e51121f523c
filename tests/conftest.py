"""Pytest configuration and shared fixtures."""

import pytest

from network_design.models import (
    SKU,
    BaselineCost,
    Coordinates,
    CostMatrix,
    DemandPoint,
    FacilityCandidate,
    VolumeForecast,
)
from tests.fixtures.helpers import enumeration_config
from tests.fixtures.solver_mocks import create_mock_solver_config


@pytest.fixture
def scenario_a_facilities():
    """Three candidates A/B/C, capacity 100 and fixed cost 1000 each."""
    return [
        FacilityCandidate(id=f, name=f"Facility {f}", capacity=100, fixed_cost=1000)
        for f in ("A", "B", "C")
    ]


@pytest.fixture
def scenario_a_destinations():
    """Destinations X and Y with 80 units each."""
    return [
        DemandPoint(id="X", name="Destination X", demand=80),
        DemandPoint(id="Y", name="Destination Y", demand=80),
    ]


@pytest.fixture
def scenario_a_costs():
    """
    Unit costs where A is cheap to X and B is cheap to Y.

    With A mandatory and two facilities allowed, {A, B} costs
    2000 fixed + 80*1 + 80*1 = 2160 and {A, C} costs 2000 + 80*1 + 80*2 = 2240.
    """
    costs = {
        ("A", "X"): 1.0, ("A", "Y"): 3.0,
        ("B", "X"): 3.0, ("B", "Y"): 1.0,
        ("C", "X"): 2.0, ("C", "Y"): 2.0,
    }
    distances = {
        ("A", "X"): 100.0, ("A", "Y"): 300.0,
        ("B", "X"): 300.0, ("B", "Y"): 100.0,
        ("C", "X"): 200.0, ("C", "Y"): 200.0,
    }
    return CostMatrix.from_pairs(costs, distances)


@pytest.fixture
def scenario_a_config():
    """max_facilities=2 with A mandatory."""
    return enumeration_config(max_facilities=2, mandatory_facilities=["A"])


@pytest.fixture
def scenario_b_destinations():
    """Three destinations totalling 300 units."""
    return [DemandPoint(id=d, demand=100) for d in ("X", "Y", "Z")]


@pytest.fixture
def scenario_b_costs():
    costs = {(f, d): 1.0 for f in ("A", "B", "C") for d in ("X", "Y", "Z")}
    distances = {(f, d): 50.0 for f in ("A", "B", "C") for d in ("X", "Y", "Z")}
    return CostMatrix.from_pairs(costs, distances)


@pytest.fixture
def located_facilities():
    """Candidates with coordinates (Chicago, Dallas, Atlanta)."""
    return [
        FacilityCandidate(id="CHI", name="Chicago", coordinates=Coordinates(latitude=41.8781, longitude=-87.6298),
                          capacity=600_000, fixed_cost=250_000),
        FacilityCandidate(id="DAL", name="Dallas", coordinates=Coordinates(latitude=32.7767, longitude=-96.7970),
                          capacity=600_000, fixed_cost=200_000),
        FacilityCandidate(id="ATL", name="Atlanta", coordinates=Coordinates(latitude=33.7490, longitude=-84.3880),
                          capacity=600_000, fixed_cost=220_000),
    ]


@pytest.fixture
def located_destinations():
    """Destinations with coordinates and 1,000,000 units of demand in total."""
    return [
        DemandPoint(id="NYC", name="New York", coordinates=Coordinates(latitude=40.7128, longitude=-74.0060),
                    demand=400_000),
        DemandPoint(id="HOU", name="Houston", coordinates=Coordinates(latitude=29.7604, longitude=-95.3698),
                    demand=350_000),
        DemandPoint(id="MIA", name="Miami", coordinates=Coordinates(latitude=25.7617, longitude=-80.1918),
                    demand=250_000),
    ]


@pytest.fixture
def sample_skus():
    """Two SKUs totalling 1,000,000 units/year."""
    return [
        SKU(id="SKU-1", annual_volume=600_000, units_per_case=12, cases_per_pallet=50),
        SKU(id="SKU-2", annual_volume=400_000, units_per_case=6, cases_per_pallet=40),
    ]


@pytest.fixture
def scenario_c_forecast():
    """2025 baseline volume and 20% growth in 2026."""
    return VolumeForecast.from_pairs([(2025, 1_000_000), (2026, 1_200_000)])


@pytest.fixture
def scenario_c_baseline():
    """Verified 2025 transport spend of $500,000."""
    return BaselineCost(
        total_cost=500_000,
        year=2025,
        mode_breakdown={"LTL": 200_000, "TL": 250_000, "parcel": 50_000},
    )


@pytest.fixture
def mock_solver_config():
    """
    Fixture for mock solver configuration.

    Provides a mock SolverConfig that bypasses actual solver installation
    and testing. Useful for optimization model tests that don't need
    actual solver execution.

    Returns:
        Mock SolverConfig object with create_solver() method
    """
    return create_mock_solver_config()
