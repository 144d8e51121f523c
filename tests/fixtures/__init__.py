"""Test fixtures for optimization model testing."""

from .helpers import HIGHS_AVAILABLE, enumeration_config, requires_highs
from .solver_mocks import create_mock_solver_config

__all__ = [
    'HIGHS_AVAILABLE',
    'enumeration_config',
    'requires_highs',
    'create_mock_solver_config',
]
