"""Multi-year cost projection."""

from .multi_year import MultiYearProjector, Projection, ProjectionRow, scale_destinations

__all__ = [
    "MultiYearProjector",
    "Projection",
    "ProjectionRow",
    "scale_destinations",
]
