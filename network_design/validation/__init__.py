"""Input and solution validation."""

from .input_validator import InputValidator, ValidationIssue, ValidationSeverity, validate_location_inputs
from .solution_validator import InvariantViolation, SolutionValidator, assert_valid_solution

__all__ = [
    "InputValidator",
    "ValidationIssue",
    "ValidationSeverity",
    "validate_location_inputs",
    "InvariantViolation",
    "SolutionValidator",
    "assert_valid_solution",
]
