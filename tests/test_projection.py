"""Tests for multi-year transport cost projection."""

import pytest

from network_design.errors import DataSourceError, InputValidationError
from network_design.models import BaselineCost, DemandPoint, VolumeForecast
from network_design.projection import MultiYearProjector, scale_destinations
from network_design.scenario import BaselineIntegration


class TestScenarioC:
    """Verified 2025 baseline of $500,000 and 20% volume growth in 2026."""

    @pytest.fixture
    def projection(self, scenario_c_forecast, scenario_c_baseline):
        return MultiYearProjector().project(scenario_c_forecast, scenario_c_baseline, optimized_cost=450_000)

    def test_baseline_year_keeps_verified_cost(self, projection):
        row = projection.row(2025)
        assert row.transport_cost == 500_000
        assert row.optimized_cost == 450_000
        assert row.volume_multiplier == 1.0
        assert row.data_source == "verified_baseline"

    def test_growth_year_scales_optimized_cost(self, projection):
        row = projection.row(2026)
        assert row.volume_multiplier == pytest.approx(1.2)
        assert row.transport_cost == 540_000
        assert row.data_source == "forecast"
        assert not projection.has_assumptions

    def test_savings(self):
        integration = BaselineIntegration.from_costs(500_000, 450_000)
        assert integration.savings == 50_000
        assert integration.savings_pct == pytest.approx(0.10)

    def test_frame(self, projection):
        frame = projection.to_frame()
        assert list(frame.index) == [2025, 2026]
        assert frame.loc[2026, "transport_cost"] == 540_000
        assert projection.cost_by_year() == {2025: 500_000, 2026: 540_000}


class TestScenarioD:
    """Forecast with a gap year and no explicit growth assumption."""

    @pytest.fixture
    def gapped_forecast(self):
        return VolumeForecast.from_pairs([(2025, 1_000_000), (2027, 1_210_000)])

    def test_missing_year_raises(self, gapped_forecast, scenario_c_baseline):
        with pytest.raises(DataSourceError) as exc_info:
            MultiYearProjector().project(gapped_forecast, scenario_c_baseline, 450_000)
        assert exc_info.value.missing == ["volume_2026"]

    def test_assumed_rate_fills_gap_with_tagged_rows(self, gapped_forecast, scenario_c_baseline):
        projection = MultiYearProjector(assumed_growth_rate=0.05).project(
            gapped_forecast, scenario_c_baseline, 450_000
        )
        row = projection.row(2026)
        assert row.data_source == "assumption"
        assert row.is_assumption
        assert row.assumed_growth_rate == 0.05
        assert row.annual_units == pytest.approx(1_050_000)
        assert row.transport_cost == round(450_000 * 1.05)
        assert projection.row(2027).data_source == "forecast"
        assert projection.has_assumptions

    def test_assumed_rate_extends_past_forecast(self, scenario_c_forecast, scenario_c_baseline):
        projection = MultiYearProjector(assumed_growth_rate=0.1).project(
            scenario_c_forecast, scenario_c_baseline, 450_000, end_year=2027
        )
        assert projection.years == [2025, 2026, 2027]
        assert projection.row(2027).annual_units == pytest.approx(1_320_000)
        assert projection.row(2027).transport_cost == pytest.approx(594_000)

    def test_end_year_past_forecast_without_rate(self, scenario_c_forecast, scenario_c_baseline):
        with pytest.raises(DataSourceError) as exc_info:
            MultiYearProjector().project(scenario_c_forecast, scenario_c_baseline, 450_000, end_year=2028)
        assert exc_info.value.missing == ["volume_2027", "volume_2028"]


class TestMissingData:
    """Financial projections never proceed on invented data."""

    def test_missing_baseline(self, scenario_c_forecast):
        with pytest.raises(DataSourceError) as exc_info:
            MultiYearProjector().project(scenario_c_forecast, None, 450_000)
        assert exc_info.value.missing == ["baseline_cost"]

    def test_baseline_year_not_forecast(self, scenario_c_forecast):
        baseline = BaselineCost(total_cost=500_000, year=2024)
        with pytest.raises(DataSourceError) as exc_info:
            MultiYearProjector().project(scenario_c_forecast, baseline, 450_000)
        assert exc_info.value.missing == ["volume_2024"]

    def test_single_year_forecast(self, scenario_c_baseline):
        forecast = VolumeForecast.from_pairs([(2025, 1_000_000)])
        with pytest.raises(DataSourceError, match="No volume growth data beyond baseline year"):
            MultiYearProjector().project(forecast, scenario_c_baseline, 450_000)

    def test_baseline_year_defaults_to_first_forecast_year(self, scenario_c_forecast):
        projection = MultiYearProjector().project(scenario_c_forecast, 500_000, 450_000)
        assert projection.baseline_year == 2025

    def test_invalid_arguments(self, scenario_c_forecast, scenario_c_baseline):
        with pytest.raises(InputValidationError):
            MultiYearProjector().project(scenario_c_forecast, scenario_c_baseline, -1)
        with pytest.raises(InputValidationError):
            MultiYearProjector().project(scenario_c_forecast, scenario_c_baseline, 450_000, end_year=2020)
        with pytest.raises(InputValidationError):
            MultiYearProjector(assumed_growth_rate=-1.0)


def test_scale_destinations():
    destinations = [DemandPoint(id="X", demand=30), DemandPoint(id="Y", demand=10)]
    scaled = scale_destinations(destinations, 400)
    assert [d.demand for d in scaled] == [300, 100]
    with pytest.raises(InputValidationError):
        scale_destinations([DemandPoint(id="X", demand=0)], 100)
