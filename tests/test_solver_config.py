"""Tests for solver configuration module.

Tests cross-platform solver detection, configuration, and selection.
"""

import pytest
from unittest.mock import Mock, patch

from network_design.optimization.solver_config import (
    PREFERENCE_ORDER,
    SolverConfig,
    SolverType,
    SolverInfo,
)


def _factory(available_names):
    """SolverFactory replacement reporting ``available_names`` as installed."""
    def make(name):
        solver = Mock()
        solver.available = Mock(return_value=name in available_names)
        solver.options = {}
        return solver
    return make


class TestSolverInfo:
    """Tests for SolverInfo dataclass."""

    def test_create_unavailable_solver_info(self):
        """Test creating solver info for unavailable solver."""
        info = SolverInfo(name="cbc", available=False)

        assert info.name == "cbc"
        assert info.available is False
        assert info.tested is False
        assert info.works is False

    def test_solver_info_str_unavailable(self):
        """Test string representation of unavailable solver."""
        info = SolverInfo(name="cbc", available=False)
        assert "CBC: ✗ unavailable" in str(info)

    def test_solver_info_str_tested(self):
        """Test string representation of tested solver."""
        info = SolverInfo(name="appsi_highs", available=True, tested=True, works=True)
        assert "APPSI_HIGHS: ✓ available (tested)" in str(info)

    def test_solver_info_str_test_failed(self):
        """Test string representation of a solver whose test solve failed."""
        info = SolverInfo(name="glpk", available=True, tested=True, works=False)
        assert "(test failed)" in str(info)


class TestSolverConfig:
    """Tests for SolverConfig class."""

    def test_highs_preferred_over_cbc(self):
        """Test that APPSI HiGHS ranks ahead of CBC and GLPK."""
        order = [t.value for t in PREFERENCE_ORDER]
        assert order.index(SolverType.APPSI_HIGHS.value) < order.index(SolverType.CBC.value)
        assert order.index(SolverType.CBC.value) < order.index(SolverType.GLPK.value)

    def test_get_available_solvers_none_available(self):
        """Test getting available solvers when none are available."""
        with patch('network_design.optimization.solver_config.SolverFactory', side_effect=_factory(set())):
            config = SolverConfig()

        assert config.get_available_solvers() == []
        assert config.has_mip_solver() is False

    def test_get_available_solvers_in_preference_order(self):
        """Test that available solvers are listed in preference order."""
        with patch('network_design.optimization.solver_config.SolverFactory',
                   side_effect=_factory({"glpk", "cbc", "appsi_highs"})):
            config = SolverConfig()

        assert config.get_available_solvers() == ["appsi_highs", "cbc", "glpk"]

    def test_detection_failure_marks_unavailable(self):
        """Test that a solver raising during detection is treated as unavailable."""
        with patch('network_design.optimization.solver_config.SolverFactory', side_effect=RuntimeError("boom")):
            config = SolverConfig()

        assert config.get_available_solvers() == []
        assert config.get_solver_info("cbc").available is False

    def test_best_available_without_testing(self):
        """Test best solver selection without a test solve."""
        with patch('network_design.optimization.solver_config.SolverFactory',
                   side_effect=_factory({"cbc", "glpk"})):
            config = SolverConfig()

        assert config.get_best_available_solver(test_if_needed=False) == "cbc"

    def test_best_available_skips_failing_solver(self):
        """Test that a solver failing its test solve is skipped."""
        with patch('network_design.optimization.solver_config.SolverFactory',
                   side_effect=_factory({"cbc", "glpk"})):
            config = SolverConfig()

        with patch.object(config, 'test_solver', side_effect=lambda name: name == "glpk"):
            assert config.get_best_available_solver() == "glpk"

    def test_best_available_raises_when_none(self):
        """Test that requesting a solver with none installed raises."""
        with patch('network_design.optimization.solver_config.SolverFactory', side_effect=_factory(set())):
            config = SolverConfig()

        with pytest.raises(RuntimeError, match="No optimization solver available"):
            config.get_best_available_solver()

    def test_create_solver_applies_options(self):
        """Test that options are copied onto the created solver."""
        with patch('network_design.optimization.solver_config.SolverFactory',
                   side_effect=_factory({"cbc"})):
            config = SolverConfig()
            solver = config.create_solver("cbc", {"seconds": 30})

        assert solver.options["seconds"] == 30

    def test_create_unavailable_solver_raises(self):
        """Test creating a solver that is not installed."""
        with patch('network_design.optimization.solver_config.SolverFactory',
                   side_effect=_factory({"cbc"})):
            config = SolverConfig()
            with pytest.raises(RuntimeError, match="not available"):
                config.create_solver("gurobi")

    def test_summary_lists_every_solver(self):
        """Test that the summary has one line per known solver."""
        with patch('network_design.optimization.solver_config.SolverFactory', side_effect=_factory({"cbc"})):
            config = SolverConfig()

        assert len(config.summary().splitlines()) == len(PREFERENCE_ORDER)
