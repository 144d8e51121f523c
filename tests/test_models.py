"""Tests for network design data models."""

import pytest
from pydantic import ValidationError

from network_design.models import (
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
    combine_provenance,
)


class TestFacilityCandidate:
    """Tests for FacilityCandidate model."""

    def test_create_minimal(self):
        facility = FacilityCandidate(id="CHI")
        assert facility.capacity is None
        assert facility.fixed_cost is None
        assert facility.mandatory is False
        assert facility.display_name == "CHI"

    def test_negative_capacity_rejected(self):
        with pytest.raises(ValidationError):
            FacilityCandidate(id="CHI", capacity=-1)

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            FacilityCandidate(id="")

    def test_is_immutable(self):
        facility = FacilityCandidate(id="CHI", capacity=100)
        with pytest.raises(ValidationError):
            facility.capacity = 200

    def test_str_marks_mandatory(self):
        facility = FacilityCandidate(id="CHI", name="Chicago", mandatory=True)
        assert "Chicago (CHI)" in str(facility)
        assert "[mandatory]" in str(facility)


class TestDemandPoint:
    """Tests for DemandPoint model."""

    def test_scaled_returns_copy(self):
        point = DemandPoint(id="NYC", demand=100)
        scaled = point.scaled(1.5)
        assert scaled.demand == 150
        assert point.demand == 100

    def test_negative_demand_rejected(self):
        with pytest.raises(ValidationError):
            DemandPoint(id="NYC", demand=-5)


class TestCoordinates:
    """Tests for Coordinates model."""

    def test_latitude_bounds(self):
        with pytest.raises(ValidationError):
            Coordinates(latitude=91, longitude=0)

    def test_str(self):
        assert str(Coordinates(latitude=41.5, longitude=-87.25)) == "(41.5000, -87.2500)"


class TestCostMatrix:
    """Tests for CostMatrix model."""

    def test_from_pairs(self):
        matrix = CostMatrix.from_pairs({("A", "X"): 1.5, ("A", "Y"): 2.0, ("B", "X"): 3.0, ("B", "Y"): 0.5})
        assert matrix.facility_ids == ["A", "B"]
        assert matrix.destination_ids == ["X", "Y"]
        assert matrix.cost("B", "Y") == 0.5
        assert matrix.has_distances() is False
        assert matrix.distance("A", "X") is None

    def test_pairs_row_major(self):
        matrix = CostMatrix.from_pairs({("A", "X"): 1, ("A", "Y"): 1, ("B", "X"): 1, ("B", "Y"): 1})
        assert list(matrix.pairs()) == [("A", "X"), ("A", "Y"), ("B", "X"), ("B", "Y")]

    def test_missing_entry_rejected(self):
        with pytest.raises(ValidationError, match="missing cost"):
            CostMatrix.from_pairs({("A", "X"): 1.0, ("A", "Y"): 1.0, ("B", "X"): 1.0})

    def test_negative_cost_rejected(self):
        with pytest.raises(ValidationError, match="invalid cost"):
            CostMatrix.from_pairs({("A", "X"): -1.0})

    def test_distances_must_be_complete(self):
        with pytest.raises(ValidationError, match="distance"):
            CostMatrix.from_pairs(
                {("A", "X"): 1.0, ("A", "Y"): 1.0},
                distances={("A", "X"): 10.0},
            )

    def test_estimated_pair_lookup(self):
        matrix = CostMatrix(
            facility_ids=["A"],
            destination_ids=["X"],
            costs={"A": {"X": 1.0}},
            estimated_pairs=["A|X"],
            provenance=DataProvenance.FALLBACK_DATA,
        )
        assert matrix.is_estimated("A", "X")
        assert "FallbackData" in str(matrix)


class TestVolumeForecast:
    """Tests for VolumeForecast model."""

    def test_years_strictly_increasing(self):
        with pytest.raises(ValidationError, match="strictly increasing"):
            VolumeForecast.from_pairs([(2026, 100), (2025, 120)])

    def test_duplicate_years_rejected(self):
        with pytest.raises(ValidationError):
            VolumeForecast.from_pairs([(2025, 100), (2025, 120)])

    def test_units_must_be_positive(self):
        with pytest.raises(ValidationError):
            ForecastRow(year=2025, annual_units=0)

    def test_lookups(self):
        forecast = VolumeForecast.from_pairs([(2025, 100), (2027, 150), (2028, 140)])
        assert forecast.years == [2025, 2027, 2028]
        assert forecast.first_year == 2025
        assert forecast.last_year == 2028
        assert forecast.get_units(2027) == 150
        assert forecast.get_units(2026) is None
        assert forecast.missing_years() == [2026]
        assert forecast.peak_row().year == 2027
        assert len(forecast) == 3

    def test_peak_row_prefers_earliest_on_tie(self):
        forecast = VolumeForecast.from_pairs([(2025, 200), (2026, 200)])
        assert forecast.peak_row().year == 2025


class TestSKU:
    """Tests for SKU model."""

    def test_units_per_pallet(self):
        sku = SKU(id="S1", annual_volume=6000, units_per_case=12, cases_per_pallet=50)
        assert sku.units_per_pallet == 600
        assert sku.annual_pallets() == pytest.approx(10)
        assert sku.annual_pallets(1.5) == pytest.approx(15)

    @pytest.mark.parametrize("field", ["annual_volume", "units_per_case", "cases_per_pallet"])
    def test_fields_must_be_positive(self, field):
        params = {"id": "S1", "annual_volume": 100, "units_per_case": 1, "cases_per_pallet": 1}
        params[field] = 0
        with pytest.raises(ValidationError):
            SKU(**params)


class TestBaselineCost:
    """Tests for BaselineCost model."""

    def test_mode_share(self):
        baseline = BaselineCost(total_cost=1000, mode_breakdown={"LTL": 600, "TL": 400})
        assert baseline.mode_share("LTL") == pytest.approx(0.6)
        assert baseline.mode_share("parcel") == 0.0

    def test_breakdown_must_match_total(self):
        with pytest.raises(ValidationError, match="mode_breakdown"):
            BaselineCost(total_cost=1000, mode_breakdown={"LTL": 500})

    def test_total_must_be_positive(self):
        with pytest.raises(ValidationError):
            BaselineCost(total_cost=0)


class TestProvenance:
    """Tests for provenance tags."""

    def test_tagged_values(self):
        real = RealData(12.5)
        fallback = FallbackData(800.0, "no coordinates")
        assert real.provenance == DataProvenance.REAL_DATA
        assert not real.is_fallback
        assert fallback.is_fallback
        assert fallback.reason == "no coordinates"

    def test_combine_takes_weakest(self):
        assert combine_provenance([]) == DataProvenance.REAL_DATA
        assert combine_provenance([DataProvenance.REAL_DATA, DataProvenance.FALLBACK_DATA]) == DataProvenance.FALLBACK_DATA
        assert combine_provenance([DataProvenance.APPROXIMATE, DataProvenance.FALLBACK_DATA]) == DataProvenance.APPROXIMATE
