"""Cost matrix generation.

Produces a per (facility, destination) unit-cost table in one of two ways:

- Rate-based: unit_cost = distance x cost_per_mile x zone multiplier
  + distance x fuel surcharge + handling fee.
- Baseline distribution: a verified total spend is spread over destinations
  in proportion to their demand, so the demand-weighted average unit cost
  reproduces the baseline. When distances are known the destination's unit
  cost is further split across facilities in proportion to relative distance.

A pair whose origin and destination are the same place costs 0.
"""

from typing import Dict, List, Optional, Sequence, Union
import logging

from ..config import TransportationConfig
from ..errors import DataSourceError, InputValidationError
from ..models.baseline import BaselineCost
from ..models.cost_matrix import CostMatrix
from ..models.facility import DemandPoint, FacilityCandidate
from ..models.provenance import DataProvenance
from ..network.distance import DistanceCalculator

logger = logging.getLogger(__name__)


class CostMatrixGenerator:
    """
    Builds CostMatrix objects from locations and a rate or a baseline total.

    Example:
        generator = CostMatrixGenerator(config.transportation, DistanceCalculator())
        matrix = generator.from_rate(facilities, destinations)
        print(matrix.cost("CHI", "NYC"))
    """

    def __init__(
        self,
        transport_config: Optional[TransportationConfig] = None,
        distance_calculator: Optional[DistanceCalculator] = None,
    ):
        self.transport_config = transport_config or TransportationConfig()
        self.distance_calculator = distance_calculator or DistanceCalculator()

    def _distance_table(
        self,
        facilities: Sequence[FacilityCandidate],
        destinations: Sequence[DemandPoint],
    ):
        distances: Dict[str, Dict[str, float]] = {}
        estimated: List[str] = []
        for f in facilities:
            row = distances.setdefault(f.id, {})
            for d in destinations:
                result = self.distance_calculator.between(f, d)
                row[d.id] = result.value
                if result.is_fallback:
                    estimated.append(f"{f.id}|{d.id}")
        if estimated:
            logger.warning(
                f"{len(estimated)} of {len(facilities) * len(destinations)} distances are estimates"
            )
        return distances, estimated

    def unit_cost_for_distance(self, miles: float, cost_per_mile: Optional[float] = None) -> float:
        """Rate-based unit cost for a lane of ``miles`` (0 for a zero-length lane)."""
        if miles <= 0:
            return 0.0
        tc = self.transport_config
        rate = tc.cost_per_mile if cost_per_mile is None else cost_per_mile
        linehaul = miles * rate * tc.zone_multiplier(miles)
        return linehaul + miles * tc.fuel_surcharge_per_mile + tc.handling_fee_per_unit

    def from_rate(
        self,
        facilities: Sequence[FacilityCandidate],
        destinations: Sequence[DemandPoint],
        cost_per_mile: Optional[float] = None,
    ) -> CostMatrix:
        """
        Generate a rate-based cost matrix.

        Args:
            facilities: Candidate facilities (rows)
            destinations: Demand points (columns)
            cost_per_mile: Per-mile rate (default: transportation.cost_per_mile)

        Returns:
            CostMatrix with distances; FallbackData provenance if any distance
            was estimated

        Raises:
            InputValidationError: If there are no facilities or destinations
            DataSourceError: If a distance cannot be measured or estimated
        """
        _require_locations(facilities, destinations)
        if cost_per_mile is not None and cost_per_mile < 0:
            raise InputValidationError(f"cost_per_mile must be non-negative, got {cost_per_mile}")

        distances, estimated = self._distance_table(facilities, destinations)
        costs = {
            f.id: {
                d.id: self.unit_cost_for_distance(distances[f.id][d.id], cost_per_mile)
                for d in destinations
            }
            for f in facilities
        }

        return CostMatrix(
            facility_ids=[f.id for f in facilities],
            destination_ids=[d.id for d in destinations],
            costs=costs,
            distances=distances,
            estimated_pairs=estimated,
            provenance=DataProvenance.FALLBACK_DATA if estimated else DataProvenance.REAL_DATA,
        )

    def from_baseline(
        self,
        facilities: Sequence[FacilityCandidate],
        destinations: Sequence[DemandPoint],
        baseline: Union[BaselineCost, float],
        distance_weighted: bool = True,
    ) -> CostMatrix:
        """
        Distribute a verified baseline total into a cost matrix.

        Each destination's share of the baseline is proportional to its
        demand. With ``distance_weighted`` and known distances, the
        destination's average unit cost is scaled per facility by
        distance / mean distance over facilities, which keeps the
        facility-averaged cost of every destination equal to its share.

        Args:
            facilities: Candidate facilities (rows)
            destinations: Demand points (columns)
            baseline: Verified total annual cost (BaselineCost or amount)
            distance_weighted: Split by relative distance when distances are known

        Returns:
            CostMatrix (distances included when they could be computed)

        Raises:
            InputValidationError: If locations are missing or total demand is zero
            DataSourceError: If the baseline amount is missing or not positive
        """
        _require_locations(facilities, destinations)
        total = baseline.total_cost if isinstance(baseline, BaselineCost) else baseline
        if total is None or total <= 0:
            raise DataSourceError("A positive verified baseline cost is required", missing=["baseline_cost"])

        total_demand = sum(d.demand for d in destinations)
        if total_demand <= 0:
            raise InputValidationError("Total destination demand must be positive to distribute a baseline")

        avg_unit = total / total_demand

        distances = None
        estimated: List[str] = []
        try:
            distances, estimated = self._distance_table(facilities, destinations)
        except DataSourceError as e:
            logger.warning(f"Distances unavailable, distributing baseline without distance weighting: {e}")

        costs: Dict[str, Dict[str, float]] = {f.id: {} for f in facilities}
        for d in destinations:
            mean_distance = None
            if distance_weighted and distances is not None:
                mean_distance = sum(distances[f.id][d.id] for f in facilities) / len(facilities)
            for f in facilities:
                if f.id == d.id:
                    costs[f.id][d.id] = 0.0
                elif mean_distance:
                    costs[f.id][d.id] = avg_unit * distances[f.id][d.id] / mean_distance
                else:
                    costs[f.id][d.id] = avg_unit

        logger.info(
            f"Distributed baseline ${total:,.0f} over {len(destinations)} destinations "
            f"(avg ${avg_unit:,.4f}/unit)"
        )

        return CostMatrix(
            facility_ids=[f.id for f in facilities],
            destination_ids=[d.id for d in destinations],
            costs=costs,
            distances=distances,
            estimated_pairs=estimated,
            provenance=DataProvenance.FALLBACK_DATA if estimated else DataProvenance.REAL_DATA,
        )


def generate_cost_matrix(
    facilities: Sequence[FacilityCandidate],
    destinations: Sequence[DemandPoint],
    cost_per_mile: Optional[float] = None,
    baseline: Optional[Union[BaselineCost, float]] = None,
    transport_config: Optional[TransportationConfig] = None,
    distance_calculator: Optional[DistanceCalculator] = None,
) -> CostMatrix:
    """
    Generate a cost matrix from exactly one of a per-mile rate or a baseline total.

    Raises:
        InputValidationError: If both or neither of rate and baseline are given
    """
    if (cost_per_mile is None) == (baseline is None):
        raise InputValidationError("Supply exactly one of cost_per_mile or baseline")
    generator = CostMatrixGenerator(transport_config, distance_calculator)
    if cost_per_mile is not None:
        return generator.from_rate(facilities, destinations, cost_per_mile)
    return generator.from_baseline(facilities, destinations, baseline)


def _require_locations(facilities, destinations) -> None:
    if not facilities:
        raise InputValidationError("At least one facility is required")
    if not destinations:
        raise InputValidationError("At least one destination is required")
