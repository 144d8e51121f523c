"""Facility and demand point data models for the distribution network."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class Coordinates(BaseModel):
    """
    GPS coordinates of a location.

    Attributes:
        latitude: Latitude in decimal degrees
        longitude: Longitude in decimal degrees
    """
    latitude: float = Field(..., description="GPS latitude", ge=-90, le=90)
    longitude: float = Field(..., description="GPS longitude", ge=-180, le=180)

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"({self.latitude:.4f}, {self.longitude:.4f})"


class FacilityCandidate(BaseModel):
    """
    A potential distribution-center location under consideration.

    Immutable for the duration of a run.

    Attributes:
        id: Unique facility identifier
        name: Human-readable name
        coordinates: Optional GPS coordinates (None = unknown, distance is estimated)
        region: Optional region label passed to distance estimators
        capacity: Maximum throughput in units/year (None = use configured default)
        fixed_cost: Fixed annual cost of operating the facility
        mandatory: True if the facility must remain open
    """
    id: str = Field(..., min_length=1, description="Unique facility identifier")
    name: str = Field("", description="Facility name")
    coordinates: Optional[Coordinates] = Field(None, description="GPS coordinates")
    region: Optional[str] = Field(None, description="Region label for distance estimation")
    capacity: Optional[float] = Field(None, ge=0, description="Throughput capacity (units/year)")
    fixed_cost: Optional[float] = Field(
        None,
        ge=0,
        description="Fixed annual cost (None = use transportation.fixed_cost_per_facility)",
    )
    mandatory: bool = Field(False, description="Facility forced open")

    model_config = ConfigDict(frozen=True)

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def __str__(self) -> str:
        flag = " [mandatory]" if self.mandatory else ""
        return f"{self.display_name} ({self.id}){flag}"


class DemandPoint(BaseModel):
    """
    A geographic destination with a required annual shipment volume.

    Attributes:
        id: Unique destination identifier
        name: Human-readable name
        coordinates: Optional GPS coordinates
        region: Optional region label passed to distance estimators
        demand: Required volume in units/year
    """
    id: str = Field(..., min_length=1, description="Unique destination identifier")
    name: str = Field("", description="Destination name")
    coordinates: Optional[Coordinates] = Field(None, description="GPS coordinates")
    region: Optional[str] = Field(None, description="Region label for distance estimation")
    demand: float = Field(..., ge=0, description="Annual demand (units/year)")

    model_config = ConfigDict(frozen=True)

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def scaled(self, factor: float) -> "DemandPoint":
        """Return a copy with demand multiplied by ``factor``."""
        return self.model_copy(update={"demand": self.demand * factor})

    def __str__(self) -> str:
        return f"{self.display_name} ({self.id}): {self.demand:,.0f} units/yr"
