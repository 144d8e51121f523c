"""Hard-timeout execution of a solve in a separate process.

The solver is an opaque capability, so a runaway solve cannot be cancelled
from inside. When a hard timeout is configured the solve runs in a child
process that is terminated once the timeout expires, and the caller gets a
SolveTimeoutError instead of a hang.
"""

from typing import Optional
import logging
import multiprocessing
import time

from ..errors import NetworkDesignError, SolveTimeoutError
from .problem import FacilityLocationProblem, LocationSolution
from .solvers import Solver

logger = logging.getLogger(__name__)

# Time allowed for a terminated child to exit
JOIN_GRACE_SECONDS = 5.0


# Never fork: callers may be multithreaded
START_METHODS = ("forkserver", "spawn")


def _mp_context():
    available = multiprocessing.get_all_start_methods()
    method = next(m for m in START_METHODS if m in available)
    return multiprocessing.get_context(method)


def _solve_in_child(connection, solver: Solver, problem: FacilityLocationProblem, time_limit: Optional[float]):
    try:
        connection.send(("ok", solver.solve(problem, time_limit)))
    except NetworkDesignError as e:
        connection.send(("error", e))
    except Exception as e:
        connection.send(("crash", f"{type(e).__name__}: {e}"))
    finally:
        connection.close()


def solve_with_hard_timeout(
    solver: Solver,
    problem: FacilityLocationProblem,
    hard_timeout_seconds: float,
    time_limit_seconds: Optional[float] = None,
) -> LocationSolution:
    """
    Run ``solver.solve(problem)`` in a child process with a wall-clock limit.

    Args:
        solver: Solver to run (must be picklable and importable by the child)
        problem: Immutable problem snapshot
        hard_timeout_seconds: Child is terminated after this many seconds
        time_limit_seconds: Cooperative limit passed to the solver

    Returns:
        The solver's LocationSolution

    Raises:
        SolveTimeoutError: If the child produced nothing in time
        NetworkDesignError: Whatever engine error the solver raised
        RuntimeError: If the child crashed
    """
    ctx = _mp_context()
    receiver, sender = ctx.Pipe(duplex=False)
    process = ctx.Process(
        target=_solve_in_child,
        args=(sender, solver, problem, time_limit_seconds),
        daemon=True,
    )
    start = time.time()
    process.start()
    sender.close()

    try:
        if not receiver.poll(hard_timeout_seconds):
            elapsed = time.time() - start
            logger.warning(f"Solve exceeded hard timeout of {hard_timeout_seconds:.1f}s; terminating worker")
            process.terminate()
            process.join(JOIN_GRACE_SECONDS)
            raise SolveTimeoutError(
                f"Solve did not finish within {hard_timeout_seconds:.1f}s",
                elapsed_seconds=elapsed,
            )
        try:
            status, payload = receiver.recv()
        except EOFError:
            raise RuntimeError(f"Solver process exited unexpectedly (exit code {process.exitcode})")
    finally:
        receiver.close()
        process.join(JOIN_GRACE_SECONDS)

    if status == "ok":
        return payload
    if status == "error":
        raise payload
    raise RuntimeError(f"Solver process failed: {payload}")
