"""Tests for warehouse capacity sizing.

The small design area (5,000 sq ft) makes facility counts sensitive to
volume so the sample SKUs exercise the multi-facility and overflow paths.
"""

import pytest

from network_design.config import OptimizationConfig, WarehouseConfig
from network_design.errors import InputValidationError
from network_design.models import SKU, VolumeForecast
from network_design.warehouse import SizingStatus, WarehouseCapacityOptimizer


def small_site_config(**overrides) -> WarehouseConfig:
    params = dict(
        operating_days=250,
        days_on_hand=25,
        pallet_length_inches=48,
        pallet_width_inches=40,
        ceiling_height_inches=432,
        rack_height_inches=96,
        aisle_factor=0.5,
        outbound_pallets_per_door_per_day=40,
        inbound_pallets_per_door_per_day=40,
        outbound_area_per_door=1000,
        inbound_area_per_door=1000,
        min_office=2000,
        min_battery=500,
        min_packing=1500,
        max_utilization=0.8,
        facility_design_area=5000,
        cost_per_sqft_annual=8,
        thirdparty_cost_per_sqft=12,
        max_facilities=3,
    )
    params.update(overrides)
    return WarehouseConfig(**params)


class TestAreaRequirement:
    """Tests for the pallet and area build-up."""

    def test_area_build_up(self, sample_skus):
        area = WarehouseCapacityOptimizer(small_site_config()).area_requirement(1_000_000, sample_skus)

        # 1,000 pallets of SKU-1 and 1,666.7 of SKU-2
        assert area.demand_factor == pytest.approx(1.0)
        assert area.annual_pallets == pytest.approx(2666.667, rel=1e-6)
        assert area.daily_pallets == pytest.approx(10.6667, rel=1e-4)
        assert area.storage_pallets == pytest.approx(266.667, rel=1e-5)
        assert area.rack_levels == 4
        assert area.storage_sqft == pytest.approx(266.667 * (48 * 40 / 144) / 4 / 0.5, rel=1e-5)
        assert (area.outbound_doors, area.inbound_doors) == (1, 1)
        assert area.support_sqft == 4000
        assert area.net_area(1) == pytest.approx(area.storage_sqft + 2000 + 4000)

    def test_scales_with_volume(self, sample_skus):
        optimizer = WarehouseCapacityOptimizer(small_site_config())
        base = optimizer.area_requirement(1_000_000, sample_skus)
        doubled = optimizer.area_requirement(2_000_000, sample_skus)
        assert doubled.storage_pallets == pytest.approx(2 * base.storage_pallets)

    def test_door_overflow_area(self, sample_skus):
        config = small_site_config(max_outbound_doors=0, max_inbound_doors=0)
        area = WarehouseCapacityOptimizer(config).area_requirement(1_000_000, sample_skus)
        assert area.outbound_doors == 0
        assert area.dock_overflow_sqft == 2000


class TestSizeYear:
    """Tests for choosing the facility count for one year."""

    def test_cheapest_count_without_overflow(self, sample_skus):
        # Gross need ~9,722 sq ft: one site + 4,722 overflow costs $96,667, two sites $80,000
        result = WarehouseCapacityOptimizer(small_site_config()).size_year(2025, 1_000_000, sample_skus)

        assert result.status == SizingStatus.OK
        assert result.facilities_needed == 2
        assert result.gross_area_sqft == pytest.approx(9722.22, rel=1e-5)
        assert result.thirdparty_sqft_required == 0
        assert result.total_cost_annual == pytest.approx(80_000)
        assert result.utilization_pct == pytest.approx(77.78, rel=1e-3)
        assert result.cost_per_unit == pytest.approx(0.08)

    def test_overflow_when_cheaper(self, sample_skus):
        config = small_site_config(thirdparty_cost_per_sqft=4)
        result = WarehouseCapacityOptimizer(config).size_year(2025, 1_000_000, sample_skus)

        assert result.facilities_needed == 1
        assert result.thirdparty_sqft_required == pytest.approx(4722.22, rel=1e-5)
        assert result.thirdparty_cost_annual == pytest.approx(4722.22 * 4, rel=1e-5)
        assert any("third-party" in a for a in result.recommended_actions)

    def test_capacity_exceeded(self, sample_skus):
        config = small_site_config(max_facilities=1, thirdparty_cost_per_sqft=None)
        result = WarehouseCapacityOptimizer(config).size_year(2025, 1_000_000, sample_skus)

        assert result.status == SizingStatus.CAPACITY_EXCEEDED
        assert result.capacity_exceeded
        assert result.facilities_needed == 1
        assert result.utilization_pct <= 80.0

    def test_overflow_cap(self, sample_skus):
        config = small_site_config(max_facilities=1, max_thirdparty_sqft=1000)
        result = WarehouseCapacityOptimizer(config).size_year(2025, 1_000_000, sample_skus)
        assert result.status == SizingStatus.CAPACITY_EXCEEDED


class TestSizeForecast:
    """Tests for sizing a whole forecast."""

    def test_facility_count_never_decreases(self, sample_skus):
        forecast = VolumeForecast.from_pairs([(2025, 3_000_000), (2026, 1_000_000)])
        plan = WarehouseCapacityOptimizer(small_site_config()).size(forecast, sample_skus)

        counts = [r.facilities_needed for r in plan.years]
        assert counts == [3, 3]

    def test_reduction_allowed(self, sample_skus):
        forecast = VolumeForecast.from_pairs([(2025, 3_000_000), (2026, 1_000_000)])
        config = small_site_config(allow_facility_reduction=True)
        plan = WarehouseCapacityOptimizer(config).size(forecast, sample_skus)

        assert [r.facilities_needed for r in plan.years] == [3, 2]

    def test_growth_adds_facilities(self, sample_skus):
        forecast = VolumeForecast.from_pairs([(2025, 1_000_000), (2026, 3_000_000)])
        plan = WarehouseCapacityOptimizer(small_site_config()).size(forecast, sample_skus)

        assert plan.by_year()[2026].facilities_added == 1
        assert plan.performance.facilities_added == 1
        assert plan.exceeded_years == []
        assert plan.performance.volume_cagr == pytest.approx(2.0)

    def test_plan_frame(self, sample_skus):
        forecast = VolumeForecast.from_pairs([(2025, 1_000_000), (2026, 1_200_000)])
        plan = WarehouseCapacityOptimizer(OptimizationConfig()).size(forecast, sample_skus)
        frame = plan.to_frame()

        assert list(frame.index) == [2025, 2026]
        assert frame.loc[2026, "status"] == "OK"
        assert plan.cost_by_year()[2025] == frame.loc[2025, "total_cost_annual"]

    def test_requires_skus(self):
        forecast = VolumeForecast.from_pairs([(2025, 1_000_000)])
        with pytest.raises(InputValidationError):
            WarehouseCapacityOptimizer().size(forecast, [])

    def test_duplicate_sku_ids(self):
        forecast = VolumeForecast.from_pairs([(2025, 1_000_000)])
        skus = [SKU(id="S", annual_volume=1, units_per_case=1, cases_per_pallet=1)] * 2
        with pytest.raises(InputValidationError, match="Duplicate SKU ids"):
            WarehouseCapacityOptimizer().size(forecast, skus)


class TestExistingFacility:
    """Sizing on top of an existing building."""

    def test_owned_area(self):
        assert small_site_config().owned_area(2) == 10_000
        brownfield = small_site_config(initial_facility_area=8000)
        assert brownfield.is_brownfield
        assert brownfield.owned_area(1) == 8000
        assert brownfield.owned_area(3) == 18_000

    def test_existing_building_covers_need(self, sample_skus):
        config = small_site_config(initial_facility_area=12_000)
        result = WarehouseCapacityOptimizer(config).size_year(2025, 1_000_000, sample_skus)

        assert result.facilities_needed == 1
        assert result.owned_sqft == 12_000
        assert result.thirdparty_sqft_required == 0
        assert result.total_cost_annual == pytest.approx(96_000)
        assert result.utilization_pct == pytest.approx(100 * 9722.22 * 0.8 / 12_000, rel=1e-5)

    def test_growth_on_existing_building(self, sample_skus):
        # 2026 gross need ~14,167 sq ft: the existing 8,000 plus one 5,000 site and ~1,167 overflow
        forecast = VolumeForecast.from_pairs([(2025, 1_000_000), (2026, 3_000_000)])
        config = small_site_config(initial_facility_area=8000)
        plan = WarehouseCapacityOptimizer(config).size(forecast, sample_skus)
        first, second = plan.years

        assert first.facilities_needed == 1
        assert first.facilities_added == 0
        assert first.thirdparty_sqft_required == pytest.approx(1722.22, rel=1e-5)
        assert second.facilities_needed == 2
        assert second.facilities_added == 1
        assert second.owned_sqft == 13_000
        assert second.thirdparty_sqft_required == pytest.approx(1166.67, rel=1e-5)
        assert plan.performance.facilities_added == 1

    def test_config_key(self):
        config = OptimizationConfig.from_dict({"warehouse": {"initial_facility_area": 40_000}})
        assert config.warehouse.initial_facility_area == 40_000
        assert OptimizationConfig().warehouse.is_brownfield is False
