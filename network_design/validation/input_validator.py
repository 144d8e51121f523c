"""Pre-flight validation of facility location inputs.

Checks run before any model is built. Errors abort the run with an
InputValidationError listing every problem found; warnings are returned to
the caller and logged.
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence
import logging

from ..config import OptimizationConfig
from ..errors import InputValidationError
from ..models.cost_matrix import CostMatrix
from ..models.facility import DemandPoint, FacilityCandidate

logger = logging.getLogger(__name__)


class ValidationSeverity(Enum):
    """Severity levels for validation issues."""
    WARNING = "warning"
    ERROR = "error"


@dataclass
class ValidationIssue:
    """A single validation finding.

    Attributes:
        category: Check that produced it (e.g. "Completeness", "Identifiers")
        severity: WARNING or ERROR
        message: Human-readable description
    """
    category: str
    severity: ValidationSeverity
    message: str

    def __str__(self) -> str:
        return f"[{self.severity.value.upper()}] {self.category}: {self.message}"


class InputValidator:
    """Validates facilities, destinations, cost matrix and constraints together.

    Validates:
    - Completeness: non-empty candidate and destination sets, positive demand
    - Identifiers: unique, non-blank ids
    - Cost matrix: covers every (facility, destination) pair
    - Constraints: mandatory facilities exist among the candidates
    """

    def __init__(
        self,
        facilities: Sequence[FacilityCandidate],
        destinations: Sequence[DemandPoint],
        cost_matrix: Optional[CostMatrix] = None,
        config: Optional[OptimizationConfig] = None,
    ):
        self.facilities = list(facilities or [])
        self.destinations = list(destinations or [])
        self.cost_matrix = cost_matrix
        self.config = config or OptimizationConfig()
        self.issues: List[ValidationIssue] = []

    def _add(self, category: str, severity: ValidationSeverity, message: str) -> None:
        self.issues.append(ValidationIssue(category, severity, message))

    def validate_all(self) -> List[ValidationIssue]:
        """Run all checks and return the issues found."""
        self.issues = []
        self.check_completeness()
        self.check_identifiers()
        self.check_cost_matrix()
        self.check_constraints()
        return self.issues

    def check_completeness(self) -> None:
        if not self.facilities:
            self._add("Completeness", ValidationSeverity.ERROR, "Candidate facility set is empty")
        if not self.destinations:
            self._add("Completeness", ValidationSeverity.ERROR, "Destination set is empty")
            return
        total = sum(d.demand for d in self.destinations)
        if total <= 0:
            self._add("Completeness", ValidationSeverity.ERROR, "Total demand must be positive")
        zero = [d.id for d in self.destinations if d.demand == 0]
        if zero and total > 0:
            self._add("Completeness", ValidationSeverity.WARNING, f"Destinations with zero demand: {zero}")
        no_capacity = [f.id for f in self.facilities if f.capacity == 0]
        if no_capacity:
            self._add("Completeness", ValidationSeverity.WARNING, f"Facilities with zero capacity: {no_capacity}")

    def check_identifiers(self) -> None:
        for label, items in (("facility", self.facilities), ("destination", self.destinations)):
            counts = Counter(item.id for item in items)
            duplicates = sorted(i for i, n in counts.items() if n > 1)
            if duplicates:
                self._add("Identifiers", ValidationSeverity.ERROR, f"Duplicate {label} ids: {duplicates}")
            blank = [i for i in counts if not str(i).strip()]
            if blank:
                self._add("Identifiers", ValidationSeverity.ERROR, f"Blank {label} id")

    def check_cost_matrix(self) -> None:
        if self.cost_matrix is None:
            self._add("Cost Matrix", ValidationSeverity.ERROR, "Cost matrix is missing")
            return
        rows = set(self.cost_matrix.facility_ids)
        cols = set(self.cost_matrix.destination_ids)
        missing_rows = [f.id for f in self.facilities if f.id not in rows]
        missing_cols = [d.id for d in self.destinations if d.id not in cols]
        if missing_rows:
            self._add("Cost Matrix", ValidationSeverity.ERROR, f"No cost row for facilities {missing_rows}")
        if missing_cols:
            self._add("Cost Matrix", ValidationSeverity.ERROR, f"No cost column for destinations {missing_cols}")
        if self.cost_matrix.estimated_pairs:
            self._add(
                "Cost Matrix",
                ValidationSeverity.WARNING,
                f"{len(self.cost_matrix.estimated_pairs)} lane distance(s) are estimates",
            )

    def check_constraints(self) -> None:
        known = {f.id for f in self.facilities}
        unknown = [m for m in self.config.transportation.mandatory_facilities if m not in known]
        if unknown:
            self._add(
                "Constraints",
                ValidationSeverity.ERROR,
                f"Mandatory facilities not among candidates: {unknown}",
            )

    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationSeverity.ERROR]

    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationSeverity.WARNING]

    def raise_if_invalid(self) -> List[ValidationIssue]:
        """
        Run all checks; raise on errors, return warnings otherwise.

        Raises:
            InputValidationError: Listing every error found
        """
        self.validate_all()
        errors = self.errors()
        if errors:
            problems = [i.message for i in errors]
            raise InputValidationError(
                f"Invalid facility location input ({len(problems)} problem(s)): {problems[0]}",
                problems=problems,
            )
        for issue in self.warnings():
            logger.warning(str(issue))
        return self.warnings()


def validate_location_inputs(
    facilities: Sequence[FacilityCandidate],
    destinations: Sequence[DemandPoint],
    cost_matrix: Optional[CostMatrix],
    config: Optional[OptimizationConfig] = None,
) -> List[ValidationIssue]:
    """Validate inputs, raising InputValidationError on errors; returns warnings."""
    return InputValidator(facilities, destinations, cost_matrix, config).raise_if_invalid()
