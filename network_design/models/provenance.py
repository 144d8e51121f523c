"""Provenance tags for engine data and results.

Fallback data is never merged silently with genuine data: anything derived
from an estimate or substitute is wrapped in ``FallbackData`` and anything
measured or supplied is wrapped in ``RealData``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Iterable, TypeVar, Union

T = TypeVar("T")


class DataProvenance(str, Enum):
    """Where a value or result came from."""
    REAL_DATA = "RealData"
    FALLBACK_DATA = "FallbackData"
    APPROXIMATE = "Approximate"


# Later entries dominate when provenances are combined
_PRECEDENCE = [DataProvenance.REAL_DATA, DataProvenance.FALLBACK_DATA, DataProvenance.APPROXIMATE]


def combine_provenance(tags: Iterable[DataProvenance]) -> DataProvenance:
    """Return the weakest provenance among ``tags`` (RealData if empty)."""
    worst = DataProvenance.REAL_DATA
    for tag in tags:
        if _PRECEDENCE.index(DataProvenance(tag)) > _PRECEDENCE.index(worst):
            worst = DataProvenance(tag)
    return worst


@dataclass(frozen=True)
class RealData(Generic[T]):
    """A value taken from genuine input data."""
    value: T

    @property
    def provenance(self) -> DataProvenance:
        return DataProvenance.REAL_DATA

    @property
    def is_fallback(self) -> bool:
        return False


@dataclass(frozen=True)
class FallbackData(Generic[T]):
    """A substituted value, with the reason it was substituted."""
    value: T
    reason: str

    @property
    def provenance(self) -> DataProvenance:
        return DataProvenance.FALLBACK_DATA

    @property
    def is_fallback(self) -> bool:
        return True


Tagged = Union[RealData[T], FallbackData[T]]
