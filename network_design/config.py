"""Engine configuration.

All tunable values, including the regional defaults the engine previously
carried as scattered constants, live in one immutable ``OptimizationConfig``
object that is passed explicitly to every component.

Recognized option keys (nested mapping, see ``OptimizationConfig.from_dict``):

    optimization.weights.{cost, service_level, utilization}
    optimization.solver.{name, time_limit_seconds, mip_gap, hard_timeout_seconds, threads, tee}
    transportation.{fixed_cost_per_facility, cost_per_mile, service_level_requirement,
                    max_distance_miles, required_facilities, max_facilities,
                    mandatory_facilities[], handling_fee_per_unit, fuel_surcharge_per_mile,
                    zone_multipliers[], service_penalty_per_mile,
                    idle_capacity_cost_per_unit, max_capacity_per_facility}
    warehouse.{operating_days, days_on_hand, pallet_dimensions, ceiling_height, rack_height,
               aisle_factor, door_throughput, max_utilization, facility_design_area,
               initial_facility_area,
               cost_per_sqft_annual, thirdparty_cost_per_sqft, max_facilities, ...}
    inventory.{service_level, lead_time_days, holding_cost_per_unit_per_year, demand_cv,
               cycle_stock_days}
"""

from typing import Any, Dict, List, Literal, Mapping, Optional
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import InputValidationError

logger = logging.getLogger(__name__)


class ObjectiveWeights(BaseModel):
    """Relative objective weights (need not sum to 1)."""
    cost: float = Field(0.6, ge=0, description="Weight on fixed + transport cost")
    service_level: float = Field(0.3, ge=0, description="Weight on beyond-distance penalty")
    utilization: float = Field(0.1, ge=0, description="Weight on idle open capacity")

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode='after')
    def at_least_one_positive(self):
        if self.cost + self.service_level + self.utilization <= 0:
            raise ValueError("At least one objective weight must be positive")
        return self


class SolverSettings(BaseModel):
    """Solver selection and limits.

    Attributes:
        name: 'auto' (MIP if a MIP solver is installed, else enumeration for
            small candidate sets, else greedy), 'mip', 'enumeration' or 'greedy'
        time_limit_seconds: Search budget; exceeding it yields an Approximate
            incumbent or a timeout
        mip_gap: Relative MIP gap (0 = prove optimality)
        hard_timeout_seconds: If set, the solve runs in a separate process that
            is terminated after this many seconds
        threads: Solver threads (1 keeps HiGHS runs reproducible)
        max_enumeration_candidates: Largest candidate set 'auto' will enumerate
        tee: Stream solver output
    """
    name: Literal["auto", "mip", "enumeration", "greedy"] = "auto"
    time_limit_seconds: float = Field(300.0, gt=0)
    mip_gap: float = Field(0.0, ge=0, le=1)
    hard_timeout_seconds: Optional[float] = Field(None, gt=0)
    threads: int = Field(1, ge=1)
    max_enumeration_candidates: int = Field(20, ge=1)
    tee: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")


class OptimizationSettings(BaseModel):
    """The ``optimization`` section: objective weights and solver settings."""
    weights: ObjectiveWeights = Field(default_factory=ObjectiveWeights)
    solver: SolverSettings = Field(default_factory=SolverSettings)

    model_config = ConfigDict(frozen=True, extra="forbid")


class ZoneBand(BaseModel):
    """Distance band multiplier for zone-based pricing (applies up to ``max_miles``)."""
    max_miles: float = Field(..., gt=0)
    multiplier: float = Field(..., gt=0)

    model_config = ConfigDict(frozen=True, extra="forbid")


class TransportationConfig(BaseModel):
    """Facility location and transport cost parameters.

    Attributes:
        fixed_cost_per_facility: Fixed annual cost for facilities without their own
        cost_per_mile: Per-mile rate used by rate-based cost matrices
        handling_fee_per_unit: Fixed handling fee added to every non-zero unit cost
        fuel_surcharge_per_mile: Per-mile surcharge added after zone pricing
        zone_multipliers: Ascending distance bands; the first band whose
            max_miles covers the distance scales the linehaul cost
        service_level_requirement: Target fraction of demand within max distance
            (reported as met/not met)
        max_distance_miles: Service distance threshold
        required_facilities: Minimum open facilities
        max_facilities: Maximum open facilities
        mandatory_facilities: Facility ids forced open
        service_penalty_per_mile: $/unit/mile beyond max_distance_miles in the objective
        idle_capacity_cost_per_unit: $/unit of open but unused capacity in the objective
        max_capacity_per_facility: Capacity for facilities without their own
    """
    fixed_cost_per_facility: float = Field(100_000.0, ge=0)
    cost_per_mile: float = Field(2.5, ge=0)
    handling_fee_per_unit: float = Field(0.0, ge=0)
    fuel_surcharge_per_mile: float = Field(0.0, ge=0)
    zone_multipliers: List[ZoneBand] = Field(default_factory=list)
    service_level_requirement: float = Field(0.95, ge=0, le=1)
    max_distance_miles: float = Field(1000.0, gt=0)
    required_facilities: int = Field(1, ge=0)
    max_facilities: int = Field(5, ge=1)
    mandatory_facilities: List[str] = Field(default_factory=list)
    service_penalty_per_mile: float = Field(10.0, ge=0)
    idle_capacity_cost_per_unit: float = Field(0.0, ge=0)
    max_capacity_per_facility: float = Field(1_000_000.0, gt=0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode='after')
    def validate_bounds(self):
        if self.required_facilities > self.max_facilities:
            raise ValueError(
                f"required_facilities ({self.required_facilities}) exceeds "
                f"max_facilities ({self.max_facilities})"
            )
        bands = [b.max_miles for b in self.zone_multipliers]
        if bands != sorted(bands) or len(set(bands)) != len(bands):
            raise ValueError("zone_multipliers must have strictly ascending max_miles")
        return self

    @property
    def min_facilities(self) -> int:
        return self.required_facilities

    def zone_multiplier(self, miles: float) -> float:
        """Multiplier for ``miles`` (1.0 without zone pricing; last band beyond range)."""
        if not self.zone_multipliers:
            return 1.0
        for band in self.zone_multipliers:
            if miles <= band.max_miles:
                return band.multiplier
        return self.zone_multipliers[-1].multiplier


class WarehouseConfig(BaseModel):
    """Warehouse design parameters for capacity sizing.

    Areas are square feet, heights and pallet dimensions are inches and
    costs are $/sq ft/year.
    """
    operating_days: int = Field(260, gt=0, le=366)
    days_on_hand: float = Field(30.0, gt=0)
    pallet_length_inches: float = Field(48.0, gt=0)
    pallet_width_inches: float = Field(40.0, gt=0)
    ceiling_height_inches: float = Field(432.0, gt=0)
    rack_height_inches: float = Field(96.0, gt=0)
    aisle_factor: float = Field(0.5, ge=0, lt=1)

    outbound_pallets_per_door_per_day: float = Field(40.0, gt=0)
    inbound_pallets_per_door_per_day: float = Field(40.0, gt=0)
    max_outbound_doors: int = Field(20, ge=0)
    max_inbound_doors: int = Field(20, ge=0)
    outbound_area_per_door: float = Field(1_000.0, ge=0)
    inbound_area_per_door: float = Field(1_000.0, ge=0)

    min_office: float = Field(2_000.0, ge=0)
    min_battery: float = Field(500.0, ge=0)
    min_packing: float = Field(1_500.0, ge=0)
    case_pick_area_fixed: float = Field(0.0, ge=0)
    each_pick_area_fixed: float = Field(0.0, ge=0)
    min_conveyor: float = Field(0.0, ge=0)

    max_utilization: float = Field(0.85, gt=0, le=1)
    facility_design_area: float = Field(250_000.0, gt=0)
    initial_facility_area: Optional[float] = Field(
        None, ge=0, description="Existing building counted as the first facility; None = greenfield"
    )
    cost_per_sqft_annual: float = Field(8.0, ge=0)
    thirdparty_cost_per_sqft: Optional[float] = Field(12.0, ge=0, description="None disables overflow")
    max_thirdparty_sqft: Optional[float] = Field(None, ge=0, description="None = unlimited overflow")
    max_facilities: int = Field(8, ge=1)
    allow_facility_reduction: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode='before')
    @classmethod
    def expand_option_aliases(cls, data: Any) -> Any:
        """Map the short option names onto the detailed fields."""
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        dims = data.pop("pallet_dimensions", None)
        if dims is not None:
            if isinstance(dims, Mapping):
                length, width = dims.get("length"), dims.get("width")
            else:
                length, width = list(dims)
            data.setdefault("pallet_length_inches", length)
            data.setdefault("pallet_width_inches", width)
        if "ceiling_height" in data:
            data.setdefault("ceiling_height_inches", data.pop("ceiling_height"))
        if "rack_height" in data:
            data.setdefault("rack_height_inches", data.pop("rack_height"))
        if "door_throughput" in data:
            throughput = data.pop("door_throughput")
            data.setdefault("outbound_pallets_per_door_per_day", throughput)
            data.setdefault("inbound_pallets_per_door_per_day", throughput)
        if "DOH" in data:
            data.setdefault("days_on_hand", data.pop("DOH"))
        return data

    @property
    def pallet_footprint_sqft(self) -> float:
        return (self.pallet_length_inches / 12.0) * (self.pallet_width_inches / 12.0)

    @property
    def rack_levels(self) -> int:
        return max(1, int(self.ceiling_height_inches // self.rack_height_inches))

    @property
    def support_area(self) -> float:
        return self.min_office + self.min_battery + self.min_packing

    @property
    def per_facility_area(self) -> float:
        return self.case_pick_area_fixed + self.each_pick_area_fixed + self.min_conveyor

    @property
    def overflow_enabled(self) -> bool:
        return self.thirdparty_cost_per_sqft is not None

    @property
    def is_brownfield(self) -> bool:
        return self.initial_facility_area is not None

    def owned_area(self, facilities: int) -> float:
        """Owned space for a facility count; an existing building is the first facility."""
        if self.initial_facility_area is None:
            return facilities * self.facility_design_area
        return self.initial_facility_area + max(0, facilities - 1) * self.facility_design_area


class InventoryConfig(BaseModel):
    """Inventory policy parameters."""
    service_level: float = Field(0.95, gt=0, lt=1)
    lead_time_days: float = Field(7.0, gt=0)
    holding_cost_per_unit_per_year: float = Field(2.0, ge=0)
    demand_cv: float = Field(0.3, ge=0)
    cycle_stock_days: Optional[float] = Field(None, gt=0)

    model_config = ConfigDict(frozen=True, extra="forbid")


class OptimizationConfig(BaseModel):
    """
    Single immutable configuration object for a run.

    Example:
        config = OptimizationConfig.from_dict({
            "optimization": {"weights": {"cost": 1.0, "service_level": 0.0}},
            "transportation": {"max_facilities": 2, "mandatory_facilities": ["A"]},
        })
    """
    optimization: OptimizationSettings = Field(default_factory=OptimizationSettings)
    transportation: TransportationConfig = Field(default_factory=TransportationConfig)
    warehouse: WarehouseConfig = Field(default_factory=WarehouseConfig)
    inventory: InventoryConfig = Field(default_factory=InventoryConfig)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def weights(self) -> ObjectiveWeights:
        return self.optimization.weights

    @property
    def solver(self) -> SolverSettings:
        return self.optimization.solver

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]] = None) -> "OptimizationConfig":
        """
        Build a config from a nested mapping of recognized options.

        Args:
            data: Nested mapping (missing keys take defaults)

        Returns:
            Validated OptimizationConfig

        Raises:
            InputValidationError: If any option is unknown or out of range
        """
        try:
            return cls.model_validate(dict(data or {}))
        except ValidationError as e:
            problems = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            ]
            raise InputValidationError(
                f"Invalid configuration ({len(problems)} problem(s)): {problems[0]}",
                problems=problems,
            ) from e

    @classmethod
    def from_flat(cls, flat: Mapping[str, Any]) -> "OptimizationConfig":
        """Build a config from dotted keys (e.g. ``{"warehouse.max_utilization": 0.8}``)."""
        return cls.from_dict(unflatten(flat))

    def with_overrides(self, overrides: Mapping[str, Any]) -> "OptimizationConfig":
        """Return a new config with nested ``overrides`` merged over this one."""
        merged = _deep_merge(self.model_dump(), overrides)
        return OptimizationConfig.from_dict(merged)


def unflatten(flat: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert dotted keys into a nested dictionary."""
    nested: Dict[str, Any] = {}
    for key, value in flat.items():
        parts = str(key).split(".")
        node = nested
        for part in parts[:-1]:
            node = node.setdefault(part, {})
            if not isinstance(node, dict):
                raise InputValidationError(f"Conflicting configuration key: {key}")
        node[parts[-1]] = value
    return nested


def _deep_merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
