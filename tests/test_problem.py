"""Tests for the facility location problem snapshot."""

import pytest

from network_design.errors import DataSourceError, InfeasibleError, InputValidationError
from network_design.models import CostMatrix, DataProvenance, FacilityCandidate
from network_design.optimization import FacilityLocationProblem
from tests.fixtures import enumeration_config


@pytest.fixture
def scenario_a_problem(scenario_a_facilities, scenario_a_destinations, scenario_a_costs, scenario_a_config):
    return FacilityLocationProblem.build(
        scenario_a_facilities, scenario_a_destinations, scenario_a_costs, scenario_a_config
    )


class TestBuild:
    """Tests for FacilityLocationProblem.build()."""

    def test_snapshot_contents(self, scenario_a_problem):
        p = scenario_a_problem
        assert p.facility_ids == ("A", "B", "C")
        assert p.destination_ids == ("X", "Y")
        assert p.mandatory == frozenset({"A"})
        assert (p.min_open, p.max_open) == (1, 2)
        assert p.total_demand == 160
        assert p.distance_source == "matrix"
        assert p.unit_cost[("C", "Y")] == 2.0

    def test_config_defaults_fill_missing_values(self, scenario_a_destinations, scenario_a_costs):
        facilities = [FacilityCandidate(id=f) for f in ("A", "B", "C")]
        config = enumeration_config(fixed_cost_per_facility=500, max_capacity_per_facility=90)
        p = FacilityLocationProblem.build(facilities, scenario_a_destinations, scenario_a_costs, config)
        assert p.fixed_cost["B"] == 500
        assert p.capacity["C"] == 90

    def test_mandatory_flag_on_candidate(self, scenario_a_destinations, scenario_a_costs):
        facilities = [
            FacilityCandidate(id="A", capacity=100),
            FacilityCandidate(id="B", capacity=100, mandatory=True),
            FacilityCandidate(id="C", capacity=100),
        ]
        p = FacilityLocationProblem.build(facilities, scenario_a_destinations, scenario_a_costs, enumeration_config())
        assert p.mandatory == frozenset({"B"})

    def test_distances_derived_from_cost(self, scenario_a_facilities, scenario_a_destinations):
        matrix = CostMatrix.from_pairs({(f, d): 5.0 for f in ("A", "B", "C") for d in ("X", "Y")})
        config = enumeration_config(cost_per_mile=2.5)
        p = FacilityLocationProblem.build(scenario_a_facilities, scenario_a_destinations, matrix, config)
        assert p.distance_source == "derived_from_cost"
        assert p.distance[("A", "X")] == pytest.approx(2.0)
        assert p.provenance == DataProvenance.FALLBACK_DATA

    def test_no_distance_source(self, scenario_a_facilities, scenario_a_destinations):
        matrix = CostMatrix.from_pairs({(f, d): 5.0 for f in ("A", "B", "C") for d in ("X", "Y")})
        config = enumeration_config(cost_per_mile=0)
        with pytest.raises(DataSourceError):
            FacilityLocationProblem.build(scenario_a_facilities, scenario_a_destinations, matrix, config)

    def test_distances_from_coordinates(self, located_facilities, located_destinations):
        matrix = CostMatrix.from_pairs({
            (f.id, d.id): 1.0 for f in located_facilities for d in located_destinations
        })
        p = FacilityLocationProblem.build(located_facilities, located_destinations, matrix, enumeration_config())
        assert p.distance_source == "coordinates"
        assert p.distance[("CHI", "NYC")] == pytest.approx(712, abs=10)


class TestObjective:
    """Tests for objective evaluation and tie-breaking."""

    def test_objective_value(self, scenario_a_problem):
        flows = {("A", "X"): 80.0, ("B", "Y"): 80.0}
        # Default weights: cost 0.6, no service penalty within 1000 miles, no idle cost
        assert scenario_a_problem.objective_value(("A", "B"), flows) == pytest.approx(0.6 * 2160)

    def test_service_penalty_beyond_max_distance(self, scenario_a_facilities, scenario_a_destinations, scenario_a_costs):
        config = enumeration_config(max_distance_miles=150, service_penalty_per_mile=2)
        p = FacilityLocationProblem.build(scenario_a_facilities, scenario_a_destinations, scenario_a_costs, config)
        assert p.excess_miles("A", "Y") == 150
        assert p.flow_weight("A", "Y") == pytest.approx(0.6 * 3.0 + 0.3 * 2 * 150)

    def test_tie_break_key(self, scenario_a_problem):
        flows = {("A", "X"): 80.0, ("B", "Y"): 80.0}
        key = scenario_a_problem.tie_break_key(("B", "A"), flows)
        assert key[0] == 2
        assert key[1] == pytest.approx(0.8)
        assert key[2] == pytest.approx(80 * 100 + 80 * 100)
        assert key[3] == ("A", "B")

    def test_is_better_uses_tie_break_on_equal_objective(self, scenario_a_problem):
        p = scenario_a_problem
        assert p.is_better(10.0, (2,), None, None)
        assert p.is_better(10.0, (1,), 10.0 + 1e-12, (2,))
        assert not p.is_better(10.0, (3,), 10.0, (2,))
        assert p.is_better(9.0, (3,), 10.0, (2,))


class TestVariants:
    """Tests for with_demand() and with_fixed_open()."""

    def test_with_fixed_open(self, scenario_a_problem):
        fixed = scenario_a_problem.with_fixed_open(["A", "C"])
        assert fixed.mandatory == frozenset({"A", "C"})
        assert (fixed.min_open, fixed.max_open) == (2, 2)
        assert scenario_a_problem.max_open == 2

    def test_with_fixed_open_unknown(self, scenario_a_problem):
        with pytest.raises(InputValidationError):
            scenario_a_problem.with_fixed_open(["Z"])

    def test_with_demand(self, scenario_a_problem):
        scaled = scenario_a_problem.with_demand({"X": 90, "Y": 10})
        assert scaled.total_demand == 100
        with pytest.raises(InputValidationError):
            scenario_a_problem.with_demand({"X": 90})


class TestFeasibility:
    """Tests for check_feasibility()."""

    def test_feasible(self, scenario_a_problem):
        scenario_a_problem.check_feasibility()

    def test_capacity_shortfall(self, scenario_a_facilities, scenario_b_destinations, scenario_b_costs):
        p = FacilityLocationProblem.build(
            scenario_a_facilities, scenario_b_destinations, scenario_b_costs,
            enumeration_config(max_facilities=2),
        )
        assert p.best_case_capacity() == 200
        with pytest.raises(InfeasibleError) as exc_info:
            p.check_feasibility()
        assert exc_info.value.shortfall == pytest.approx(100)

    def test_too_many_mandatory(self, scenario_a_facilities, scenario_a_destinations, scenario_a_costs):
        config = enumeration_config(max_facilities=1, mandatory_facilities=["A", "B"])
        p = FacilityLocationProblem.build(scenario_a_facilities, scenario_a_destinations, scenario_a_costs, config)
        with pytest.raises(InfeasibleError) as exc_info:
            p.check_feasibility()
        assert exc_info.value.shortfall == 1

    def test_too_few_candidates(self, scenario_a_destinations):
        facilities = [FacilityCandidate(id="A", capacity=500)]
        matrix = CostMatrix.from_pairs({("A", "X"): 1.0, ("A", "Y"): 1.0}, {("A", "X"): 1.0, ("A", "Y"): 1.0})
        config = enumeration_config(required_facilities=2, max_facilities=3)
        p = FacilityLocationProblem.build(facilities, scenario_a_destinations, matrix, config)
        with pytest.raises(InfeasibleError):
            p.check_feasibility()


class TestNormalizeFlows:
    """Tests for flow cleanup."""

    def test_drops_noise_and_fixes_residual(self, scenario_a_problem):
        flows = {("A", "X"): 79.9999999, ("B", "X"): 1e-12, ("A", "Y"): 30.0, ("B", "Y"): 50.00001}
        clean = scenario_a_problem.normalize_flows(flows)
        assert ("B", "X") not in clean
        assert clean[("A", "X")] == pytest.approx(80.0, abs=1e-12)
        assert clean[("A", "Y")] + clean[("B", "Y")] == pytest.approx(80.0, abs=1e-12)
        assert clean[("A", "Y")] == 30.0

    def test_min_share_drops_small_lanes(self, scenario_a_problem):
        flows = {("A", "X"): 80.0, ("A", "Y"): 9.99e-06, ("B", "Y"): 80.0 - 9.99e-06}
        assert scenario_a_problem.normalize_flows(flows)[("A", "Y")] == pytest.approx(9.99e-06)

        clean = scenario_a_problem.normalize_flows(flows, min_share=1e-6)
        assert clean.keys() == {("A", "X"), ("B", "Y")}
        assert clean[("B", "Y")] == pytest.approx(80.0, abs=1e-12)

    def test_residual_goes_to_facility_with_room(self, scenario_a_problem):
        # A is full, so the short Y lane absorbs the residual instead of the largest one
        flows = {("A", "X"): 40.0, ("B", "X"): 40.0, ("A", "Y"): 60.0, ("B", "Y"): 19.99}
        clean = scenario_a_problem.normalize_flows(flows, min_share=1e-6)
        assert clean[("A", "Y")] == 60.0
        assert clean[("B", "Y")] == pytest.approx(20.0)
        assert sum(v for (f, _), v in clean.items() if f == "A") == pytest.approx(100.0)


def test_str(scenario_a_problem):
    assert "3 facilities" in str(scenario_a_problem)
