"""Data models for the network design engine."""

from .facility import Coordinates, FacilityCandidate, DemandPoint
from .cost_matrix import CostMatrix, CapacityMap, DemandMap
from .forecast import ForecastRow, VolumeForecast, SKU
from .baseline import BaselineCost
from .provenance import DataProvenance, RealData, FallbackData, Tagged, combine_provenance

__all__ = [
    # Network entities
    "Coordinates",
    "FacilityCandidate",
    "DemandPoint",
    # Cost structures
    "CostMatrix",
    "CapacityMap",
    "DemandMap",
    "BaselineCost",
    # Forecast and SKUs
    "ForecastRow",
    "VolumeForecast",
    "SKU",
    # Provenance
    "DataProvenance",
    "RealData",
    "FallbackData",
    "Tagged",
    "combine_provenance",
]
