"""Cost calculation module.

Key components:
- CostMatrixGenerator: Build unit-cost tables from distances and a rate, or
  by distributing a verified baseline total
- generate_cost_matrix: Convenience wrapper choosing between the two
"""

from .cost_matrix_generator import CostMatrixGenerator, generate_cost_matrix

__all__ = [
    "CostMatrixGenerator",
    "generate_cost_matrix",
]
