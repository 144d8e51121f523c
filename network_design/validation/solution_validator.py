"""Solution validation - mandatory checks that fail loudly on incorrect solutions.

Runs after a result is assembled and re-checks the invariants every valid
facility location result must satisfy, independently of the solver that
produced it:

- every destination's demand is covered exactly
- no facility ships more than its capacity
- mandatory facilities are open
- the open count is within the cardinality bounds
- the reported total transportation cost matches its recomputation

If validation fails, the result is invalid and must not be used.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from ..optimization.problem import FacilityLocationProblem
    from ..optimization.result_schema import OptimizationResult

COVERAGE_TOLERANCE = 1e-6
CAPACITY_TOLERANCE = 1e-6
COST_RTOL = 1e-9


@dataclass
class InvariantViolation:
    """One broken invariant (the result is invalid)."""
    category: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.category}: {self.message}"


class SolutionValidator:
    """Validates a facility location result against its problem."""

    def __init__(self, problem: 'FacilityLocationProblem', result: 'OptimizationResult'):
        self.problem = problem
        self.result = result

    def validate(self) -> Tuple[bool, List[InvariantViolation]]:
        """Run all mandatory checks.

        Returns:
            Tuple of (is_valid, list of violations)
        """
        errors: List[InvariantViolation] = []
        errors.extend(self._validate_coverage())
        errors.extend(self._validate_capacity())
        errors.extend(self._validate_mandatory())
        errors.extend(self._validate_cardinality())
        errors.extend(self._validate_total_cost())
        return (len(errors) == 0, errors)

    def _validate_coverage(self) -> List[InvariantViolation]:
        errors = []
        served = self.result.volume_by_destination()
        for d in self.problem.destination_ids:
            demand = self.problem.demand[d]
            got = served.get(d, 0.0)
            if abs(got - demand) > COVERAGE_TOLERANCE:
                errors.append(InvariantViolation(
                    category="Demand Coverage",
                    message=f"Destination {d}: assigned {got} != demand {demand}",
                    details={"destination": d, "assigned": got, "demand": demand},
                ))
        return errors

    def _validate_capacity(self) -> List[InvariantViolation]:
        errors = []
        for f, volume in self.result.volume_by_facility().items():
            cap = self.problem.capacity[f]
            if volume > cap + CAPACITY_TOLERANCE * max(1, len(self.problem.destination_ids)):
                errors.append(InvariantViolation(
                    category="Capacity",
                    message=f"Facility {f}: assigned {volume} exceeds capacity {cap}",
                    details={"facility": f, "assigned": volume, "capacity": cap},
                ))
        return errors

    def _validate_mandatory(self) -> List[InvariantViolation]:
        missing = sorted(self.problem.mandatory - set(self.result.open_facilities))
        if not missing:
            return []
        return [InvariantViolation(
            category="Mandatory Facilities",
            message=f"Mandatory facilities not open: {missing}",
            details={"missing": missing},
        )]

    def _validate_cardinality(self) -> List[InvariantViolation]:
        n = len(self.result.open_facilities)
        if self.problem.min_open <= n <= self.problem.max_open:
            return []
        return [InvariantViolation(
            category="Cardinality",
            message=f"{n} open facilities outside [{self.problem.min_open}, {self.problem.max_open}]",
            details={"open": n},
        )]

    def _validate_total_cost(self) -> List[InvariantViolation]:
        p = self.problem
        fixed = sum(p.fixed_cost[f] for f in self.result.open_facilities)
        variable = sum(
            a.volume * p.unit_cost[(a.facility_id, a.destination_id)] for a in self.result.assignments
        )
        expected = fixed + variable
        reported = self.result.total_transportation_cost
        if abs(expected - reported) <= COST_RTOL * max(1.0, abs(expected)):
            return []
        return [InvariantViolation(
            category="Total Cost",
            message=f"Reported total {reported} != recomputed {expected}",
            details={"reported": reported, "expected": expected},
        )]


def assert_valid_solution(problem: 'FacilityLocationProblem', result: 'OptimizationResult') -> None:
    """
    Raise if ``result`` breaks any invariant.

    Raises:
        RuntimeError: Listing the violations (an engine defect, not bad input)
    """
    is_valid, errors = SolutionValidator(problem, result).validate()
    if not is_valid:
        details = "; ".join(str(e) for e in errors[:5])
        raise RuntimeError(f"Facility location result violates {len(errors)} invariant(s): {details}")
