"""Tests for cost matrix generation."""

import pytest

from network_design.config import TransportationConfig
from network_design.costs import CostMatrixGenerator, generate_cost_matrix
from network_design.errors import DataSourceError, InputValidationError
from network_design.models import BaselineCost, DataProvenance, DemandPoint, FacilityCandidate
from network_design.network import DistanceCalculator, FixedDistanceEstimator, haversine_miles


class TestRateBasedMatrix:
    """Tests for rate-based generation."""

    def test_cost_is_distance_times_rate(self, located_facilities, located_destinations):
        matrix = generate_cost_matrix(located_facilities, located_destinations, cost_per_mile=2.0)
        chi = located_facilities[0]
        nyc = located_destinations[0]
        miles = haversine_miles(chi.coordinates, nyc.coordinates)
        assert matrix.distance("CHI", "NYC") == pytest.approx(miles)
        assert matrix.cost("CHI", "NYC") == pytest.approx(miles * 2.0)
        assert matrix.provenance == DataProvenance.REAL_DATA

    def test_handling_fee_and_surcharge(self, located_facilities, located_destinations):
        config = TransportationConfig(handling_fee_per_unit=1.5, fuel_surcharge_per_mile=0.1)
        generator = CostMatrixGenerator(config)
        assert generator.unit_cost_for_distance(100, cost_per_mile=2.0) == pytest.approx(100 * 2.0 + 10 + 1.5)
        assert generator.unit_cost_for_distance(0, cost_per_mile=2.0) == 0.0

    def test_zone_multiplier_applies_to_linehaul(self):
        config = TransportationConfig(zone_multipliers=[{"max_miles": 250, "multiplier": 1.5}])
        generator = CostMatrixGenerator(config)
        assert generator.unit_cost_for_distance(200, cost_per_mile=1.0) == pytest.approx(300.0)

    def test_default_rate_from_config(self, located_facilities, located_destinations):
        generator = CostMatrixGenerator(TransportationConfig(cost_per_mile=3.0))
        matrix = generator.from_rate(located_facilities, located_destinations)
        assert matrix.cost("DAL", "HOU") == pytest.approx(matrix.distance("DAL", "HOU") * 3.0)

    def test_estimated_distances_are_fallback(self, located_destinations):
        facilities = [FacilityCandidate(id="NEW", region="midwest")]
        calc = DistanceCalculator(estimator=FixedDistanceEstimator(500))
        matrix = CostMatrixGenerator(distance_calculator=calc).from_rate(
            facilities, located_destinations, cost_per_mile=1.0
        )
        assert matrix.provenance == DataProvenance.FALLBACK_DATA
        assert matrix.is_estimated("NEW", "NYC")
        assert matrix.cost("NEW", "MIA") == pytest.approx(500.0)

    def test_missing_coordinates_without_estimator(self, located_destinations):
        with pytest.raises(DataSourceError):
            generate_cost_matrix([FacilityCandidate(id="NEW")], located_destinations, cost_per_mile=1.0)

    def test_negative_rate_rejected(self, located_facilities, located_destinations):
        with pytest.raises(InputValidationError):
            generate_cost_matrix(located_facilities, located_destinations, cost_per_mile=-1.0)


class TestBaselineDistribution:
    """Tests for baseline-distributed generation."""

    def test_reproduces_baseline_total(self, located_facilities, located_destinations):
        baseline = BaselineCost(total_cost=2_000_000)
        matrix = generate_cost_matrix(located_facilities, located_destinations, baseline=baseline)
        total = sum(
            d.demand * sum(matrix.cost(f.id, d.id) for f in located_facilities) / len(located_facilities)
            for d in located_destinations
        )
        assert total == pytest.approx(2_000_000)

    def test_nearer_facility_is_cheaper(self, located_facilities, located_destinations):
        matrix = generate_cost_matrix(located_facilities, located_destinations, baseline=1_000_000)
        assert matrix.cost("DAL", "HOU") < matrix.cost("CHI", "HOU")

    def test_flat_split_without_coordinates(self):
        facilities = [FacilityCandidate(id="A"), FacilityCandidate(id="B")]
        destinations = [DemandPoint(id="X", demand=300), DemandPoint(id="Y", demand=100)]
        matrix = generate_cost_matrix(facilities, destinations, baseline=4000)
        assert matrix.has_distances() is False
        assert all(matrix.cost(f, d) == pytest.approx(10.0) for f, d in matrix.pairs())

    def test_same_location_costs_zero(self):
        facilities = [FacilityCandidate(id="A"), FacilityCandidate(id="B")]
        destinations = [DemandPoint(id="A", demand=100), DemandPoint(id="Y", demand=100)]
        matrix = generate_cost_matrix(facilities, destinations, baseline=1000)
        assert matrix.cost("A", "A") == 0.0

    def test_non_positive_baseline(self, located_facilities, located_destinations):
        with pytest.raises(DataSourceError) as exc_info:
            CostMatrixGenerator().from_baseline(located_facilities, located_destinations, 0)
        assert exc_info.value.missing == ["baseline_cost"]

    def test_zero_demand_rejected(self, located_facilities):
        with pytest.raises(InputValidationError):
            generate_cost_matrix(located_facilities, [DemandPoint(id="X", demand=0)], baseline=1000)


class TestGenerateCostMatrix:
    """Tests for the generate_cost_matrix entry point."""

    def test_requires_exactly_one_source(self, located_facilities, located_destinations):
        with pytest.raises(InputValidationError):
            generate_cost_matrix(located_facilities, located_destinations)
        with pytest.raises(InputValidationError):
            generate_cost_matrix(located_facilities, located_destinations, cost_per_mile=1.0, baseline=1000)

    def test_requires_locations(self, located_destinations):
        with pytest.raises(InputValidationError):
            generate_cost_matrix([], located_destinations, cost_per_mile=1.0)
