"""Distance calculation for the distribution network."""

from .distance import (
    DistanceCalculator,
    DistanceEstimator,
    DistanceResult,
    FixedDistanceEstimator,
    RegionCentroidEstimator,
    TableDistanceEstimator,
    haversine_miles,
)

__all__ = [
    "DistanceCalculator",
    "DistanceEstimator",
    "DistanceResult",
    "FixedDistanceEstimator",
    "RegionCentroidEstimator",
    "TableDistanceEstimator",
    "haversine_miles",
]
