"""Multi-year transport cost projection.

For every year in the horizon:

    volume_multiplier = year_units / baseline_year_units
    transport_cost    = verified baseline cost                  (baseline year)
                      = round(optimized_cost * volume_multiplier) (later years)

Growth is never invented. A year without forecast volume raises
DataSourceError unless the caller supplies an explicit assumed growth rate,
in which case those rows carry ``data_source = "assumption"``.
"""

from typing import Dict, List, Literal, Optional, Sequence, Union
import logging

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from ..errors import DataSourceError, InputValidationError
from ..models.baseline import BaselineCost
from ..models.facility import DemandPoint
from ..models.forecast import VolumeForecast

logger = logging.getLogger(__name__)

DataSource = Literal["verified_baseline", "forecast", "assumption"]


class ProjectionRow(BaseModel):
    """
    Projected transport cost for one year.

    Attributes:
        year: Calendar year
        annual_units: Forecast (or assumed) volume
        volume_multiplier: annual_units / baseline-year units
        transport_cost: Verified baseline for the baseline year, projected otherwise
        optimized_cost: Optimized baseline cost scaled by the multiplier
        data_source: verified_baseline, forecast, or assumption
        assumed_growth_rate: Rate used when data_source is assumption
    """
    year: int
    annual_units: float = Field(..., gt=0)
    volume_multiplier: float = Field(..., gt=0)
    transport_cost: float = Field(..., ge=0)
    optimized_cost: float = Field(..., ge=0)
    data_source: DataSource
    assumed_growth_rate: Optional[float] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_assumption(self) -> bool:
        return self.data_source == "assumption"


class Projection(BaseModel):
    """Projected rows plus the anchors they were computed from."""
    baseline_year: int
    baseline_cost: float = Field(..., gt=0)
    optimized_baseline_cost: float = Field(..., ge=0)
    rows: List[ProjectionRow] = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    @property
    def years(self) -> List[int]:
        return [r.year for r in self.rows]

    @property
    def has_assumptions(self) -> bool:
        return any(r.is_assumption for r in self.rows)

    def cost_by_year(self) -> Dict[int, float]:
        return {r.year: r.transport_cost for r in self.rows}

    def row(self, year: int) -> Optional[ProjectionRow]:
        for r in self.rows:
            if r.year == year:
                return r
        return None

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([r.model_dump() for r in self.rows]).set_index('year')


class MultiYearProjector:
    """
    Scales an optimized baseline cost forward by forecast volume.

    Example:
        projector = MultiYearProjector()
        projection = projector.project(forecast, baseline, optimized_cost=450_000)
        projection.row(2026).transport_cost   # 540000.0 for 1.2x volume

        # Explicit, labeled assumption instead of an error:
        MultiYearProjector(assumed_growth_rate=0.05).project(
            forecast, baseline, 450_000, end_year=2028)
    """

    def __init__(self, assumed_growth_rate: Optional[float] = None):
        """
        Args:
            assumed_growth_rate: Annual growth used for years without forecast
                volume (e.g. 0.05). None means such years raise DataSourceError.
        """
        if assumed_growth_rate is not None and assumed_growth_rate <= -1:
            raise InputValidationError("assumed_growth_rate must be greater than -1")
        self.assumed_growth_rate = assumed_growth_rate

    def project(
        self,
        forecast: Optional[VolumeForecast],
        baseline: Union[BaselineCost, float, None],
        optimized_cost: float,
        baseline_year: Optional[int] = None,
        end_year: Optional[int] = None,
    ) -> Projection:
        """
        Project transport cost for each year from the baseline year to ``end_year``.

        Args:
            forecast: Volume forecast; must include the baseline year
            baseline: Verified baseline cost (BaselineCost or amount)
            optimized_cost: Optimized transport cost at baseline-year volume
            baseline_year: Defaults to baseline.year, else the first forecast year
            end_year: Defaults to the last forecast year

        Raises:
            DataSourceError: Baseline cost missing, baseline-year volume missing,
                or growth data missing without an assumed rate
            InputValidationError: optimized_cost negative or end_year before baseline year
        """
        baseline_cost = baseline.total_cost if isinstance(baseline, BaselineCost) else baseline
        if baseline_cost is None or baseline_cost <= 0:
            raise DataSourceError("Verified baseline cost is required for projection", missing=["baseline_cost"])
        if optimized_cost is None or optimized_cost < 0:
            raise InputValidationError(f"optimized_cost must be non-negative, got {optimized_cost}")

        if baseline_year is None and isinstance(baseline, BaselineCost):
            baseline_year = baseline.year
        if baseline_year is None:
            if forecast is None:
                raise DataSourceError("No forecast or baseline year supplied", missing=["forecast"])
            baseline_year = forecast.first_year

        units = forecast.units_by_year() if forecast is not None else {}
        if baseline_year not in units:
            raise DataSourceError(
                f"No forecast volume for baseline year {baseline_year}",
                missing=[f"volume_{baseline_year}"],
            )

        last = end_year if end_year is not None else max(units)
        if last < baseline_year:
            raise InputValidationError(f"end_year {last} precedes baseline year {baseline_year}")
        if last == baseline_year:
            raise DataSourceError(
                f"No volume growth data beyond baseline year {baseline_year}",
                missing=[f"volume_{baseline_year + 1}"],
            )

        missing = [y for y in range(baseline_year + 1, last + 1) if y not in units]
        if missing and self.assumed_growth_rate is None:
            raise DataSourceError(
                f"Missing volume growth data for {missing}; supply forecast rows or an explicit assumed growth rate",
                missing=[f"volume_{y}" for y in missing],
            )
        if missing:
            logger.warning(
                f"Using assumed growth rate {self.assumed_growth_rate:.2%} for years {missing} "
                f"(rows tagged data_source='assumption')"
            )

        base_units = units[baseline_year]
        rows = [ProjectionRow(
            year=baseline_year,
            annual_units=base_units,
            volume_multiplier=1.0,
            transport_cost=float(baseline_cost),
            optimized_cost=float(round(optimized_cost)),
            data_source="verified_baseline",
        )]
        previous_units = base_units
        for year in range(baseline_year + 1, last + 1):
            if year in units:
                year_units = units[year]
                source, rate = "forecast", None
            else:
                year_units = previous_units * (1 + self.assumed_growth_rate)
                source, rate = "assumption", self.assumed_growth_rate
            multiplier = year_units / base_units
            projected = float(round(optimized_cost * multiplier))
            rows.append(ProjectionRow(
                year=year,
                annual_units=year_units,
                volume_multiplier=multiplier,
                transport_cost=projected,
                optimized_cost=projected,
                data_source=source,
                assumed_growth_rate=rate,
            ))
            previous_units = year_units

        return Projection(
            baseline_year=baseline_year,
            baseline_cost=float(baseline_cost),
            optimized_baseline_cost=float(optimized_cost),
            rows=rows,
        )


def scale_destinations(destinations: Sequence[DemandPoint], annual_units: float) -> List[DemandPoint]:
    """
    Scale destination demands so they total ``annual_units``, keeping each
    destination's share of the baseline demand.

    Raises:
        InputValidationError: If baseline demand is zero
    """
    total = sum(d.demand for d in destinations)
    if total <= 0:
        raise InputValidationError("Cannot scale destinations with zero total demand")
    factor = annual_units / total
    return [d.scaled(factor) for d in destinations]
