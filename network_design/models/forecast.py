"""Volume forecast and SKU data models for multi-year capacity planning."""

from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ForecastRow(BaseModel):
    """
    Annual volume forecast for a single year.

    Attributes:
        year: Calendar year
        annual_units: Forecast volume in units for the year
    """
    year: int = Field(..., ge=1900, le=2200, description="Calendar year")
    annual_units: float = Field(..., gt=0, description="Forecast annual units")

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"{self.year}: {self.annual_units:,.0f} units"


class VolumeForecast(BaseModel):
    """
    Multi-year volume forecast.

    Years are strictly increasing with no duplicates. Gaps between years are
    allowed; callers that need a contiguous horizon check ``missing_years()``.

    Attributes:
        rows: Forecast rows in ascending year order
        source: Label of the collaborator that produced the forecast
    """
    rows: List[ForecastRow] = Field(..., min_length=1, description="Forecast rows")
    source: str = Field("capacity_planning", description="Forecast source label")

    model_config = ConfigDict(frozen=True)

    @field_validator('rows')
    @classmethod
    def years_strictly_increasing(cls, v: List[ForecastRow]) -> List[ForecastRow]:
        """Years must be strictly increasing (sorted, no duplicates)."""
        for prev, cur in zip(v, v[1:]):
            if cur.year <= prev.year:
                raise ValueError(
                    f"Forecast years must be strictly increasing: {prev.year} followed by {cur.year}"
                )
        return v

    @classmethod
    def from_pairs(cls, pairs, source: str = "capacity_planning") -> "VolumeForecast":
        """Build from an iterable of (year, annual_units)."""
        return cls(rows=[ForecastRow(year=y, annual_units=u) for y, u in pairs], source=source)

    @property
    def years(self) -> List[int]:
        return [r.year for r in self.rows]

    @property
    def first_year(self) -> int:
        return self.rows[0].year

    @property
    def last_year(self) -> int:
        return self.rows[-1].year

    def units_by_year(self) -> Dict[int, float]:
        return {r.year: r.annual_units for r in self.rows}

    def get_units(self, year: int) -> Optional[float]:
        """Forecast units for ``year`` (None if the year is not forecast)."""
        for row in self.rows:
            if row.year == year:
                return row.annual_units
        return None

    def missing_years(self) -> List[int]:
        """Years between the first and last row that have no forecast."""
        present = set(self.years)
        return [y for y in range(self.first_year, self.last_year + 1) if y not in present]

    def peak_row(self) -> ForecastRow:
        """Row with the largest volume (earliest year on ties)."""
        return max(self.rows, key=lambda r: (r.annual_units, -r.year))

    def __len__(self) -> int:
        return len(self.rows)

    def __str__(self) -> str:
        return f"VolumeForecast {self.first_year}-{self.last_year} ({len(self.rows)} rows)"


class SKU(BaseModel):
    """
    Stock keeping unit used for warehouse storage sizing.

    Attributes:
        id: SKU identifier
        annual_volume: Annual volume in units
        units_per_case: Units packed per case
        cases_per_pallet: Cases stacked per pallet
    """
    id: str = Field(..., min_length=1, description="SKU identifier")
    annual_volume: float = Field(..., gt=0, description="Annual volume (units)")
    units_per_case: float = Field(..., gt=0, description="Units per case")
    cases_per_pallet: float = Field(..., gt=0, description="Cases per pallet")

    model_config = ConfigDict(frozen=True)

    @property
    def units_per_pallet(self) -> float:
        return self.units_per_case * self.cases_per_pallet

    def annual_pallets(self, demand_factor: float = 1.0) -> float:
        """Pallets moved per year with volume scaled by ``demand_factor``."""
        return self.annual_volume * demand_factor / self.units_per_pallet
