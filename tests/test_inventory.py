"""Tests for SKU inventory policy."""

import math

import pytest
from scipy.stats import norm

from network_design.config import InventoryConfig
from network_design.errors import InputValidationError
from network_design.models import SKU
from network_design.warehouse import InventoryOptimizer


@pytest.fixture
def sku():
    return SKU(id="S1", annual_volume=36_500, units_per_case=10, cases_per_pallet=10)


class TestPolicy:
    """Tests for one SKU's policy."""

    def test_safety_and_cycle_stock(self, sku):
        config = InventoryConfig(service_level=0.95, lead_time_days=4, demand_cv=0.5, holding_cost_per_unit_per_year=2)
        policy = InventoryOptimizer(config).policy_for(sku)

        z = 1.6448536
        assert policy.daily_demand == pytest.approx(100)
        assert policy.safety_stock == pytest.approx(z * 0.5 * 100 * math.sqrt(4), rel=1e-6)
        assert policy.cycle_stock == pytest.approx(200)
        assert policy.reorder_point == pytest.approx(400 + policy.safety_stock)
        assert policy.average_inventory == pytest.approx(policy.safety_stock + 200)
        assert policy.average_pallets == pytest.approx(policy.average_inventory / 100)
        assert policy.holding_cost_annual == pytest.approx(policy.average_inventory * 2)

    def test_review_period(self, sku):
        config = InventoryConfig(lead_time_days=4, cycle_stock_days=14)
        policy = InventoryOptimizer(config).policy_for(sku)
        assert policy.cycle_stock == pytest.approx(700)
        assert policy.max_stock == pytest.approx(policy.reorder_point + 1400)

    def test_no_variability_no_safety_stock(self, sku):
        policy = InventoryOptimizer(InventoryConfig(demand_cv=0)).policy_for(sku)
        assert policy.safety_stock == 0

    @pytest.mark.parametrize("service_level, expected", [(0.5, 0.0), (0.95, 1.6448536), (0.99, 2.3263479)])
    def test_z_score(self, service_level, expected):
        z = InventoryOptimizer(InventoryConfig(service_level=service_level)).z_score
        assert isinstance(z, float)
        assert z == pytest.approx(expected, abs=1e-6)
        assert z == pytest.approx(norm.ppf(service_level))


class TestPlan:
    """Tests for network inventory plans."""

    def test_totals(self, sample_skus):
        plan = InventoryOptimizer().optimize(sample_skus)
        assert plan.total_safety_stock == pytest.approx(sum(p.safety_stock for p in plan.policies))
        assert plan.inventory_turns == pytest.approx(1_000_000 / plan.total_average_inventory)
        assert set(plan.by_sku()) == {"SKU-1", "SKU-2"}
        assert list(plan.to_frame().index) == ["SKU-1", "SKU-2"]

    def test_optimize_for_units(self, sample_skus):
        plan = InventoryOptimizer().optimize_for_units(sample_skus, 1_200_000)
        assert sum(p.annual_demand for p in plan.policies) == pytest.approx(1_200_000)

    def test_higher_service_level_needs_more_stock(self, sample_skus):
        low = InventoryOptimizer(InventoryConfig(service_level=0.9)).optimize(sample_skus)
        high = InventoryOptimizer(InventoryConfig(service_level=0.99)).optimize(sample_skus)
        assert high.total_safety_stock > low.total_safety_stock

    def test_invalid_inputs(self, sample_skus):
        with pytest.raises(InputValidationError):
            InventoryOptimizer().optimize([])
        with pytest.raises(InputValidationError):
            InventoryOptimizer().optimize(sample_skus, demand_factor=0)
