"""
Distance calculation between network locations.

Great-circle (Haversine) distance is used whenever both coordinates are
known. When a coordinate is missing, a pluggable estimator is consulted and
the result is tagged as ``FallbackData`` so it can never be mistaken for a
measured distance.
"""

from typing import Dict, Optional, Protocol, Tuple, Union
import logging
import math

from ..errors import DataSourceError
from ..models.facility import Coordinates, DemandPoint, FacilityCandidate
from ..models.provenance import FallbackData, RealData

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3959.0

DistanceResult = Union[RealData[float], FallbackData[float]]


def haversine_miles(a: Coordinates, b: Coordinates) -> float:
    """
    Great-circle distance in miles between two coordinates.

    Args:
        a: Origin coordinates
        b: Destination coordinates

    Returns:
        Distance in statute miles
    """
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)
    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * math.atan2(math.sqrt(h), math.sqrt(1 - h))


class DistanceEstimator(Protocol):
    """Capability used when coordinates are unavailable."""

    def estimate_distance(self, origin_region: Optional[str], dest_region: Optional[str]) -> float:
        ...


class FixedDistanceEstimator:
    """
    Returns the same configured distance for every unknown pair.

    Same-region pairs are estimated at ``same_region_miles``.
    """

    def __init__(self, miles: float, same_region_miles: Optional[float] = None):
        if miles < 0:
            raise ValueError("miles must be non-negative")
        self.miles = miles
        self.same_region_miles = same_region_miles

    def estimate_distance(self, origin_region: Optional[str], dest_region: Optional[str]) -> float:
        if (
            self.same_region_miles is not None
            and origin_region is not None
            and origin_region == dest_region
        ):
            return self.same_region_miles
        return self.miles


class RegionCentroidEstimator:
    """
    Estimates distance between region centroids.

    Attributes:
        centroids: Region label -> representative coordinates
        circuity_factor: Multiplier converting straight-line to road miles
    """

    def __init__(self, centroids: Dict[str, Coordinates], circuity_factor: float = 1.0):
        if circuity_factor <= 0:
            raise ValueError("circuity_factor must be positive")
        self.centroids = dict(centroids)
        self.circuity_factor = circuity_factor

    def estimate_distance(self, origin_region: Optional[str], dest_region: Optional[str]) -> float:
        missing = [r for r in (origin_region, dest_region) if r not in self.centroids]
        if missing:
            raise DataSourceError(
                f"No centroid for region(s) {missing}; cannot estimate distance",
                missing=[str(r) for r in missing],
            )
        return haversine_miles(self.centroids[origin_region], self.centroids[dest_region]) * self.circuity_factor


class TableDistanceEstimator:
    """
    Looks up known region-to-region distances.

    Attributes:
        table: (origin_region, dest_region) -> miles
        symmetric: If True, (b, a) answers a lookup for (a, b)
    """

    def __init__(self, table: Dict[Tuple[str, str], float], symmetric: bool = True):
        self.table = dict(table)
        self.symmetric = symmetric

    def estimate_distance(self, origin_region: Optional[str], dest_region: Optional[str]) -> float:
        if origin_region is not None and origin_region == dest_region:
            return 0.0
        key = (origin_region, dest_region)
        if key in self.table:
            return self.table[key]
        if self.symmetric and (dest_region, origin_region) in self.table:
            return self.table[(dest_region, origin_region)]
        raise DataSourceError(
            f"No distance on record for {origin_region} -> {dest_region}",
            missing=[f"{origin_region}->{dest_region}"],
        )


class DistanceCalculator:
    """
    Computes tagged distances between network locations.

    Example:
        calc = DistanceCalculator(estimator=FixedDistanceEstimator(800))
        result = calc.between(facility, destination)
        if result.is_fallback:
            print(f"estimated: {result.value:.0f} mi ({result.reason})")
    """

    def __init__(self, estimator: Optional[DistanceEstimator] = None):
        """
        Args:
            estimator: Used when a coordinate is missing. If None, a missing
                coordinate raises DataSourceError.
        """
        self.estimator = estimator

    def distance(
        self,
        origin: Optional[Coordinates],
        destination: Optional[Coordinates],
        origin_region: Optional[str] = None,
        dest_region: Optional[str] = None,
    ) -> DistanceResult:
        """
        Distance in miles between two points.

        Args:
            origin: Origin coordinates (None if unknown)
            destination: Destination coordinates (None if unknown)
            origin_region: Region label used for estimation
            dest_region: Region label used for estimation

        Returns:
            RealData(miles) for Haversine results, FallbackData(miles) for estimates

        Raises:
            DataSourceError: If a coordinate is missing and no estimator is configured
        """
        if origin is not None and destination is not None:
            return RealData(haversine_miles(origin, destination))

        if self.estimator is None:
            raise DataSourceError(
                "Coordinates missing and no distance estimator configured",
                missing=["coordinates"],
            )

        miles = float(self.estimator.estimate_distance(origin_region, dest_region))
        side = "origin" if origin is None else "destination"
        reason = f"{side} coordinates unavailable; estimated {origin_region} -> {dest_region}"
        return FallbackData(miles, reason)

    def between(self, facility: FacilityCandidate, destination: DemandPoint) -> DistanceResult:
        """Distance from a facility to a demand point (0 when they are the same place)."""
        if facility.id == destination.id:
            return RealData(0.0)
        result = self.distance(
            facility.coordinates,
            destination.coordinates,
            origin_region=facility.region,
            dest_region=destination.region,
        )
        if result.is_fallback:
            logger.debug(f"Estimated distance {facility.id} -> {destination.id}: {result.value:.1f} mi")
        return result
