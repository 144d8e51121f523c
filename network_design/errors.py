"""Error taxonomy and tagged run outcomes for the network design engine.

Every engine failure is one of four kinds:

- InputValidationError: malformed or missing facility, destination, demand or
  cost data. The run is aborted and no partial result is returned.
- InfeasibleError: constraints cannot be jointly satisfied. Carries a
  diagnostic ``shortfall`` value.
- SolveTimeoutError: the search exceeded its time budget without an incumbent.
- DataSourceError: a baseline cost or growth figure that affects financial
  projections is missing.

Hosts that prefer values over exceptions use ``RunOutcome``, which wraps
either a result or one of the errors above. The engine never retries.
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NetworkDesignError(Exception):
    """Base class for all engine errors."""

    kind = "error"

    def to_dict(self) -> dict:
        """Serializable form for reporting collaborators."""
        return {"kind": self.kind, "message": str(self)}


class InputValidationError(NetworkDesignError, ValueError):
    """Malformed or missing input data.

    Attributes:
        problems: Individual validation messages (may be empty)
    """

    kind = "input_validation"

    def __init__(self, message: str, problems: Optional[List[str]] = None):
        super().__init__(message)
        self.problems = list(problems or [])

    def __reduce__(self):
        return (self.__class__, (str(self), self.problems))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["problems"] = self.problems
        return data


class InfeasibleError(NetworkDesignError):
    """Constraints cannot be jointly satisfied.

    Attributes:
        shortfall: Diagnostic quantity by which the constraints miss
            (units of demand for capacity shortfalls, facility count for
            cardinality conflicts)
    """

    kind = "infeasible"

    def __init__(self, message: str, shortfall: float = 0.0):
        super().__init__(message)
        self.shortfall = shortfall

    def __reduce__(self):
        return (self.__class__, (str(self), self.shortfall))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["shortfall"] = self.shortfall
        return data


class SolveTimeoutError(NetworkDesignError, TimeoutError):
    """Search exceeded its time budget and no incumbent was available."""

    kind = "timeout"

    def __init__(self, message: str, elapsed_seconds: Optional[float] = None):
        super().__init__(message)
        self.elapsed_seconds = elapsed_seconds

    def __reduce__(self):
        return (self.__class__, (str(self), self.elapsed_seconds))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["elapsed_seconds"] = self.elapsed_seconds
        return data


class DataSourceError(NetworkDesignError):
    """Required baseline cost or growth data is missing.

    Attributes:
        missing: Names of the missing inputs (e.g. ``["volume_2027"]``)
    """

    kind = "data_source"

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = list(missing or [])

    def __reduce__(self):
        return (self.__class__, (str(self), self.missing))

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["missing"] = self.missing
        return data


@dataclass
class RunOutcome(Generic[T]):
    """Tagged success/error result of an engine call.

    Attributes:
        success: True when ``value`` holds a result
        value: The result (None on failure)
        error: The engine error (None on success)
    """
    success: bool
    value: Optional[T] = None
    error: Optional[NetworkDesignError] = None

    @classmethod
    def ok(cls, value: T) -> "RunOutcome[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: NetworkDesignError) -> "RunOutcome[T]":
        return cls(success=False, error=error)

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value, or raise the wrapped error."""
        if not self.success:
            raise self.error
        return self.value

    def __str__(self) -> str:
        if self.success:
            return f"RunOutcome: OK ({type(self.value).__name__})"
        return f"RunOutcome: {self.error_kind.upper()} - {self.error}"


def capture(func: Callable[..., T], *args: Any, **kwargs: Any) -> RunOutcome[T]:
    """Call ``func`` and wrap its result or engine error in a RunOutcome.

    Only NetworkDesignError subclasses are captured; programming errors
    propagate.
    """
    try:
        return RunOutcome.ok(func(*args, **kwargs))
    except NetworkDesignError as e:
        logger.warning(f"{func.__qualname__} failed ({e.kind}): {e}")
        return RunOutcome.fail(e)
