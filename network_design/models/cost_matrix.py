"""Cost matrix and capacity map data models."""

from typing import Dict, Iterator, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .provenance import DataProvenance

# facility_id -> maximum throughput (units/year)
CapacityMap = Dict[str, float]

# destination_id -> demand (units/year)
DemandMap = Dict[str, float]


class CostMatrix(BaseModel):
    """
    Per (facility, destination) unit transportation cost table.

    Costs and distances are stored as nested dictionaries keyed by string ids
    (facility -> destination -> value) so the matrix serializes cleanly.

    Attributes:
        facility_ids: Row ids, in input order
        destination_ids: Column ids, in input order
        costs: Unit cost ($/unit) per facility and destination
        distances: Miles per facility and destination (optional)
        estimated_pairs: "facility|destination" keys whose distance is an estimate
        provenance: RealData, or FallbackData if any entry relies on an estimate
    """
    facility_ids: List[str] = Field(..., description="Facility ids (rows)")
    destination_ids: List[str] = Field(..., description="Destination ids (columns)")
    costs: Dict[str, Dict[str, float]] = Field(..., description="Unit cost by facility, destination")
    distances: Optional[Dict[str, Dict[str, float]]] = Field(None, description="Miles by facility, destination")
    estimated_pairs: List[str] = Field(default_factory=list, description="Pairs with estimated distance")
    provenance: DataProvenance = Field(DataProvenance.REAL_DATA, description="Data provenance")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode='after')
    def validate_entries(self):
        """Every pair must have a finite non-negative cost."""
        problems = []
        for f in self.facility_ids:
            row = self.costs.get(f)
            if row is None:
                problems.append(f"missing cost row for facility '{f}'")
                continue
            for d in self.destination_ids:
                c = row.get(d)
                if c is None:
                    problems.append(f"missing cost for ({f}, {d})")
                elif c != c or c < 0 or c == float("inf"):
                    problems.append(f"invalid cost {c} for ({f}, {d})")
        if self.distances is not None:
            for f in self.facility_ids:
                for d in self.destination_ids:
                    dist = self.distances.get(f, {}).get(d)
                    if dist is None or dist < 0:
                        problems.append(f"missing or negative distance for ({f}, {d})")
        if problems:
            shown = "; ".join(problems[:5])
            more = f" (+{len(problems) - 5} more)" if len(problems) > 5 else ""
            raise ValueError(f"Cost matrix is incomplete: {shown}{more}")
        return self

    @classmethod
    def from_pairs(
        cls,
        costs: Dict[Tuple[str, str], float],
        distances: Optional[Dict[Tuple[str, str], float]] = None,
        provenance: DataProvenance = DataProvenance.REAL_DATA,
    ) -> "CostMatrix":
        """Build a matrix from ``{(facility_id, destination_id): cost}``."""
        facility_ids: List[str] = []
        destination_ids: List[str] = []
        nested: Dict[str, Dict[str, float]] = {}
        for (f, d), c in costs.items():
            if f not in nested:
                nested[f] = {}
                facility_ids.append(f)
            if d not in destination_ids:
                destination_ids.append(d)
            nested[f][d] = float(c)

        nested_dist = None
        if distances is not None:
            nested_dist = {}
            for (f, d), miles in distances.items():
                nested_dist.setdefault(f, {})[d] = float(miles)

        return cls(
            facility_ids=facility_ids,
            destination_ids=destination_ids,
            costs=nested,
            distances=nested_dist,
            provenance=provenance,
        )

    def cost(self, facility_id: str, destination_id: str) -> float:
        return self.costs[facility_id][destination_id]

    def distance(self, facility_id: str, destination_id: str) -> Optional[float]:
        if self.distances is None:
            return None
        return self.distances[facility_id][destination_id]

    def has_distances(self) -> bool:
        return self.distances is not None

    def is_estimated(self, facility_id: str, destination_id: str) -> bool:
        return f"{facility_id}|{destination_id}" in self.estimated_pairs

    def pairs(self) -> Iterator[Tuple[str, str]]:
        """Iterate (facility_id, destination_id) in row-major input order."""
        for f in self.facility_ids:
            for d in self.destination_ids:
                yield f, d

    def __str__(self) -> str:
        return (
            f"CostMatrix {len(self.facility_ids)}x{len(self.destination_ids)} "
            f"[{self.provenance.value}]"
        )
