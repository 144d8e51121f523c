"""Tests for hard-timeout solve execution."""

from concurrent.futures import ThreadPoolExecutor
import logging
import threading
import time

import pytest

from network_design.errors import InfeasibleError, SolveTimeoutError
from network_design.optimization import (
    EnumerationSolver,
    FacilityLocationOptimizer,
    FacilityLocationProblem,
    Solver,
    solve_with_hard_timeout,
)


class SleepingSolver(Solver):
    """Solver that never finishes within a short hard timeout."""

    name = "sleeping"

    def solve(self, problem, time_limit_seconds=None):
        time.sleep(30)


class FailingSolver(Solver):
    """Solver that reports infeasibility."""

    name = "failing"

    def solve(self, problem, time_limit_seconds=None):
        raise InfeasibleError("nothing fits", shortfall=7.0)


class CrashingSolver(Solver):
    """Solver with a programming error."""

    name = "crashing"

    def solve(self, problem, time_limit_seconds=None):
        raise ZeroDivisionError("division by zero")


@pytest.fixture
def scenario_a_problem(scenario_a_facilities, scenario_a_destinations, scenario_a_costs, scenario_a_config):
    return FacilityLocationProblem.build(
        scenario_a_facilities, scenario_a_destinations, scenario_a_costs, scenario_a_config
    )


class TestSolveWithHardTimeout:
    """Tests for solve_with_hard_timeout()."""

    def test_returns_solution(self, scenario_a_problem):
        solution = solve_with_hard_timeout(EnumerationSolver(), scenario_a_problem, 30, time_limit_seconds=20)
        assert solution.open_facilities == ("A", "B")
        assert solution.proven_optimal

    def test_terminates_runaway_solve(self, scenario_a_problem):
        start = time.time()
        with pytest.raises(SolveTimeoutError) as exc_info:
            solve_with_hard_timeout(SleepingSolver(), scenario_a_problem, 0.5)
        assert time.time() - start < 20
        assert exc_info.value.elapsed_seconds >= 0.4

    def test_engine_error_crosses_process_boundary(self, scenario_a_problem):
        with pytest.raises(InfeasibleError) as exc_info:
            solve_with_hard_timeout(FailingSolver(), scenario_a_problem, 30)
        assert exc_info.value.shortfall == 7.0

    def test_crash_raises_runtime_error(self, scenario_a_problem):
        with pytest.raises(RuntimeError, match="ZeroDivisionError"):
            solve_with_hard_timeout(CrashingSolver(), scenario_a_problem, 30)

    def test_from_worker_thread_while_logging(self, scenario_a_problem):
        stop = threading.Event()

        def chatter():
            while not stop.is_set():
                logging.getLogger("network_design").debug("warehouse sizing")

        noisy = threading.Thread(target=chatter, daemon=True)
        noisy.start()
        try:
            with ThreadPoolExecutor(max_workers=1) as executor:
                future = executor.submit(solve_with_hard_timeout, EnumerationSolver(), scenario_a_problem, 60, 30)
                solution = future.result()
        finally:
            stop.set()
            noisy.join()
        assert solution.open_facilities == ("A", "B")


def test_optimizer_uses_hard_timeout(
    scenario_a_facilities, scenario_a_destinations, scenario_a_costs, scenario_a_config
):
    config = scenario_a_config.with_overrides({"optimization": {"solver": {"hard_timeout_seconds": 0.5}}})
    optimizer = FacilityLocationOptimizer(config, solver=SleepingSolver())
    outcome = optimizer.run(scenario_a_facilities, scenario_a_destinations, scenario_a_costs)
    assert outcome.error_kind == "timeout"


def test_child_is_not_forked():
    """The worker starts from a clean interpreter even when other threads are running."""
    from network_design.optimization.execution import _mp_context

    assert _mp_context().get_start_method() in ("forkserver", "spawn")
