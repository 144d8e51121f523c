"""Warehouse capacity sizing.

For each forecast year, converts SKU volumes into stored pallets and then
into floor area, and chooses the facility count that covers the area at the
lowest annual cost:

    demand_factor     = year_units / sum(SKU annual_volume)
    annual_pallets    = sum(annual_volume * demand_factor / (units_per_case * cases_per_pallet))
    daily_pallets     = annual_pallets / operating_days
    storage_pallets   = daily_pallets * days_on_hand
    storage_area      = storage_pallets * pallet_footprint / rack_levels / (1 - aisle_factor)
    dock doors        = ceil(daily_pallets / pallets_per_door_per_day), capped at the
                        door limit; area for doors beyond the cap is still required
    net_area          = storage + docks + support (office, battery, packing)
                        + facilities * (case pick + each pick + conveyor)
    gross_area        = net_area / max_utilization

Owned space is facilities x facility_design_area. With an existing building
(initial_facility_area) that building is the first facility and each added
facility brings facility_design_area on top of it. Area beyond owned space
goes to third-party overflow at the configured rate. A year whose need
cannot be met by max_facilities plus allowed overflow is CAPACITY_EXCEEDED.
"""

from enum import Enum
from typing import Dict, List, Optional, Sequence, Union
import logging
import math

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from ..config import OptimizationConfig, WarehouseConfig
from ..errors import InputValidationError
from ..models.forecast import SKU, VolumeForecast

logger = logging.getLogger(__name__)


class SizingStatus(str, Enum):
    """Outcome of sizing one year."""
    OK = "OK"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"


class AreaRequirement(BaseModel):
    """Area build-up for one year's volume (before choosing a facility count)."""
    annual_units: float
    demand_factor: float
    annual_pallets: float
    daily_pallets: float
    storage_pallets: float
    rack_levels: int
    storage_sqft: float
    outbound_doors: int
    inbound_doors: int
    outbound_dock_sqft: float
    inbound_dock_sqft: float
    dock_overflow_sqft: float
    support_sqft: float
    per_facility_sqft: float

    model_config = ConfigDict(frozen=True)

    def net_area(self, facilities: int) -> float:
        return (
            self.storage_sqft
            + self.outbound_dock_sqft
            + self.inbound_dock_sqft
            + self.dock_overflow_sqft
            + self.support_sqft
            + facilities * self.per_facility_sqft
        )


class WarehouseYearResult(BaseModel):
    """
    Sizing result for one forecast year.

    Attributes:
        year: Forecast year
        facilities_needed: Facilities operated in the year
        gross_area_sqft: Net area / max_utilization
        owned_sqft: Existing building plus facility_design_area per facility built
        thirdparty_sqft_required: Gross area not covered by owned space
        total_cost_annual: Owned space cost + third-party cost
        utilization_pct: Share of owned space used (never above max_utilization)
        status: OK or CAPACITY_EXCEEDED
        recommended_actions: Facility additions and overflow decisions
    """
    year: int
    annual_units: float = Field(..., gt=0)
    demand_factor: float = Field(..., gt=0)
    storage_pallets: float = Field(..., ge=0)
    storage_sqft: float = Field(..., ge=0)
    outbound_doors: int = Field(..., ge=0)
    inbound_doors: int = Field(..., ge=0)
    dock_sqft: float = Field(..., ge=0)
    support_sqft: float = Field(..., ge=0)
    pick_and_conveyor_sqft: float = Field(..., ge=0)
    net_area_sqft: float = Field(..., ge=0)
    gross_area_sqft: float = Field(..., ge=0)
    facilities_needed: int = Field(..., ge=1)
    facilities_added: int = Field(0, ge=0)
    owned_sqft: float = Field(..., ge=0)
    thirdparty_sqft_required: float = Field(..., ge=0)
    internal_cost_annual: float = Field(..., ge=0)
    thirdparty_cost_annual: float = Field(..., ge=0)
    total_cost_annual: float = Field(..., ge=0)
    cost_per_unit: float = Field(..., ge=0)
    utilization_pct: float = Field(..., ge=0, le=100)
    status: SizingStatus = SizingStatus.OK
    recommended_actions: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def capacity_exceeded(self) -> bool:
        return self.status == SizingStatus.CAPACITY_EXCEEDED


class PerformanceMetrics(BaseModel):
    """Horizon-level warehouse metrics."""
    volume_cagr: float
    cost_cagr: float
    average_utilization_pct: float = Field(..., ge=0)
    average_cost_per_unit: float = Field(..., ge=0)
    thirdparty_dependency: float = Field(..., ge=0, le=1, description="Overflow share of total space")
    total_internal_sqft: float = Field(..., ge=0)
    total_thirdparty_sqft: float = Field(..., ge=0)
    facilities_added: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


class WarehousePlan(BaseModel):
    """Per-year sizing results plus horizon metrics."""
    years: List[WarehouseYearResult] = Field(..., min_length=1)
    performance: PerformanceMetrics

    model_config = ConfigDict(frozen=True)

    def by_year(self) -> Dict[int, WarehouseYearResult]:
        return {r.year: r for r in self.years}

    def cost_by_year(self) -> Dict[int, float]:
        return {r.year: r.total_cost_annual for r in self.years}

    @property
    def exceeded_years(self) -> List[int]:
        return [r.year for r in self.years if r.capacity_exceeded]

    def to_frame(self) -> pd.DataFrame:
        """One row per year (status and actions flattened to strings)."""
        rows = []
        for r in self.years:
            row = r.model_dump(mode='json')
            row['recommended_actions'] = "; ".join(r.recommended_actions)
            rows.append(row)
        return pd.DataFrame(rows).set_index('year')


def _cagr(first: float, last: float, span: int) -> float:
    if span <= 0 or first <= 0:
        return 0.0
    return (last / first) ** (1.0 / span) - 1.0


class WarehouseCapacityOptimizer:
    """
    Sizes warehouse space for every forecast year.

    Example:
        optimizer = WarehouseCapacityOptimizer(config.warehouse)
        plan = optimizer.size(forecast, skus)
        for row in plan.years:
            print(row.year, row.facilities_needed, row.status.value)
    """

    def __init__(self, config: Union[WarehouseConfig, OptimizationConfig, None] = None):
        if isinstance(config, OptimizationConfig):
            config = config.warehouse
        self.config = config or WarehouseConfig()

    def area_requirement(self, annual_units: float, skus: Sequence[SKU]) -> AreaRequirement:
        """Area build-up for ``annual_units`` spread over ``skus`` by their volume mix."""
        c = self.config
        base_units = sum(s.annual_volume for s in skus)
        demand_factor = annual_units / base_units
        annual_pallets = sum(s.annual_pallets(demand_factor) for s in skus)
        daily_pallets = annual_pallets / c.operating_days
        storage_pallets = daily_pallets * c.days_on_hand

        levels = c.rack_levels
        storage_sqft = storage_pallets * c.pallet_footprint_sqft / levels / (1 - c.aisle_factor)

        out_needed = math.ceil(daily_pallets / c.outbound_pallets_per_door_per_day)
        in_needed = math.ceil(daily_pallets / c.inbound_pallets_per_door_per_day)
        out_doors = min(out_needed, c.max_outbound_doors)
        in_doors = min(in_needed, c.max_inbound_doors)
        overflow = (
            max(0, out_needed - c.max_outbound_doors) * c.outbound_area_per_door
            + max(0, in_needed - c.max_inbound_doors) * c.inbound_area_per_door
        )
        if overflow > 0:
            logger.info(f"Dock doors exceed door limits; {overflow:,.0f} sq ft of overflow dock area added")

        return AreaRequirement(
            annual_units=annual_units,
            demand_factor=demand_factor,
            annual_pallets=annual_pallets,
            daily_pallets=daily_pallets,
            storage_pallets=storage_pallets,
            rack_levels=levels,
            storage_sqft=storage_sqft,
            outbound_doors=out_doors,
            inbound_doors=in_doors,
            outbound_dock_sqft=out_doors * c.outbound_area_per_door,
            inbound_dock_sqft=in_doors * c.inbound_area_per_door,
            dock_overflow_sqft=overflow,
            support_sqft=c.support_area,
            per_facility_sqft=c.per_facility_area,
        )

    def _option(self, area: AreaRequirement, facilities: int):
        """(feasible, gross, owned, overflow, internal_cost, thirdparty_cost) for a facility count."""
        c = self.config
        gross = area.net_area(facilities) / c.max_utilization
        owned = c.owned_area(facilities)
        overflow = max(0.0, gross - owned)
        internal = owned * c.cost_per_sqft_annual
        if overflow <= 0:
            return True, gross, owned, 0.0, internal, 0.0
        if not c.overflow_enabled:
            return False, gross, owned, overflow, internal, 0.0
        third_cost = overflow * c.thirdparty_cost_per_sqft
        within_cap = c.max_thirdparty_sqft is None or overflow <= c.max_thirdparty_sqft
        return within_cap, gross, owned, overflow, internal, third_cost

    def size_year(
        self,
        year: int,
        annual_units: float,
        skus: Sequence[SKU],
        min_facilities: int = 1,
        previous_facilities: Optional[int] = None,
    ) -> WarehouseYearResult:
        """
        Size one year.

        Chooses the facility count in [min_facilities, max_facilities] with
        the lowest annual cost among counts that meet the need (fewer
        facilities on ties). If no count meets the need, uses max_facilities
        and flags CAPACITY_EXCEEDED.
        """
        c = self.config
        area = self.area_requirement(annual_units, skus)
        lowest = max(1, min(min_facilities, c.max_facilities))

        best = None
        for n in range(lowest, c.max_facilities + 1):
            feasible, gross, owned, overflow, internal, third = self._option(area, n)
            if not feasible:
                continue
            cost = internal + third
            if best is None or cost < best[1] - 1e-9:
                best = (n, cost)

        status = SizingStatus.OK
        if best is None:
            n = c.max_facilities
            status = SizingStatus.CAPACITY_EXCEEDED
        else:
            n = best[0]
        feasible, gross, owned, overflow, internal, third = self._option(area, n)

        net = area.net_area(n)
        used_owned = min(gross, owned) * c.max_utilization
        utilization_pct = min(100.0 * c.max_utilization, 100.0 * used_owned / owned) if owned > 0 else 0.0
        total = internal + third

        added = 0 if previous_facilities is None else max(0, n - previous_facilities)
        actions = []
        if added:
            actions.append(f"Add {added} facilit{'y' if added == 1 else 'ies'} of {c.facility_design_area:,.0f} sq ft")
        if overflow > 0 and c.overflow_enabled:
            actions.append(f"Lease {overflow:,.0f} sq ft of third-party space")
        if status == SizingStatus.CAPACITY_EXCEEDED:
            actions.append(
                f"Need of {gross:,.0f} sq ft exceeds {c.max_facilities} facilities "
                f"({owned:,.0f} sq ft) plus allowed overflow"
            )
            logger.warning(f"{year}: capacity exceeded ({gross:,.0f} sq ft needed, {owned:,.0f} owned)")

        return WarehouseYearResult(
            year=year,
            annual_units=annual_units,
            demand_factor=area.demand_factor,
            storage_pallets=area.storage_pallets,
            storage_sqft=area.storage_sqft,
            outbound_doors=area.outbound_doors,
            inbound_doors=area.inbound_doors,
            dock_sqft=area.outbound_dock_sqft + area.inbound_dock_sqft + area.dock_overflow_sqft,
            support_sqft=area.support_sqft,
            pick_and_conveyor_sqft=n * area.per_facility_sqft,
            net_area_sqft=net,
            gross_area_sqft=gross,
            facilities_needed=n,
            facilities_added=added,
            owned_sqft=owned,
            thirdparty_sqft_required=overflow,
            internal_cost_annual=internal,
            thirdparty_cost_annual=third,
            total_cost_annual=total,
            cost_per_unit=total / annual_units,
            utilization_pct=utilization_pct,
            status=status,
            recommended_actions=actions,
        )

    def size(self, forecast: VolumeForecast, skus: Sequence[SKU]) -> WarehousePlan:
        """
        Size every forecast year.

        Facility counts never decrease from one year to the next unless
        ``allow_facility_reduction`` is set.

        Raises:
            InputValidationError: If the SKU list is empty or has duplicate ids
        """
        skus = list(skus or [])
        if not skus:
            raise InputValidationError("At least one SKU is required for warehouse sizing")
        ids = [s.id for s in skus]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise InputValidationError(f"Duplicate SKU ids: {duplicates}")

        logger.info(f"Sizing warehouses for {len(forecast)} years and {len(skus)} SKUs")
        results: List[WarehouseYearResult] = []
        # An existing building is already operated before the first year
        previous: Optional[int] = 1 if self.config.is_brownfield else None
        for row in forecast.rows:
            floor = 1 if (previous is None or self.config.allow_facility_reduction) else previous
            result = self.size_year(row.year, row.annual_units, skus, floor, previous)
            results.append(result)
            previous = result.facilities_needed

        return WarehousePlan(years=results, performance=self._performance(results))

    def _performance(self, rows: List[WarehouseYearResult]) -> PerformanceMetrics:
        first, last = rows[0], rows[-1]
        span = last.year - first.year
        total_third = sum(r.thirdparty_sqft_required for r in rows)
        total_internal = last.owned_sqft
        return PerformanceMetrics(
            volume_cagr=_cagr(first.annual_units, last.annual_units, span),
            cost_cagr=_cagr(first.total_cost_annual, last.total_cost_annual, span),
            average_utilization_pct=sum(r.utilization_pct for r in rows) / len(rows),
            average_cost_per_unit=sum(r.cost_per_unit for r in rows) / len(rows),
            thirdparty_dependency=total_third / (total_internal + total_third) if total_internal + total_third > 0 else 0.0,
            total_internal_sqft=total_internal,
            total_thirdparty_sqft=total_third,
            facilities_added=sum(r.facilities_added for r in rows),
        )
