"""Side-by-side comparison and ranking of scenario runs.

Each successful run is reduced to three figures and scored with the
objective weights:

    cost        = sum of total annual cost over the joined years
    service     = demand-weighted service level (per-year runs) or the
                  baseline-year service level
    efficiency  = network utilization (demand / open capacity)

    score = w_cost    * (1 - cost / max_cost)
          + w_service * service / max_service
          + w_util    * efficiency / max_efficiency

Higher scores rank first. Deltas are reported against the first scenario.
"""

from typing import List, Mapping, Optional, Sequence, Union
import logging

import pandas as pd

from ..config import ObjectiveWeights
from ..errors import InputValidationError, RunOutcome
from .orchestrator import IntegratedRunResult

logger = logging.getLogger(__name__)

ScenarioRuns = Union[
    Mapping[str, RunOutcome[IntegratedRunResult]],
    Sequence[IntegratedRunResult],
]


def _successful(runs: ScenarioRuns) -> List[IntegratedRunResult]:
    if not isinstance(runs, Mapping):
        return list(runs)
    results = []
    for name, outcome in runs.items():
        if outcome.success:
            results.append(outcome.value)
        else:
            logger.info(f"Scenario '{name}' left out of comparison: {outcome.error_kind}")
    return results


def _share(value: float, largest: float) -> float:
    return value / largest if largest > 0 else 0.0


def compare_scenarios(runs: ScenarioRuns, weights: Optional[ObjectiveWeights] = None) -> pd.DataFrame:
    """
    Compare scenario runs and rank them by weighted score.

    Args:
        runs: ``run_scenarios()`` outcomes (failed runs are skipped) or results
        weights: Objective weights (defaults if None)

    Returns:
        DataFrame indexed by scenario name, sorted by rank

    Raises:
        InputValidationError: If no successful run is given
    """
    weights = weights or ObjectiveWeights()
    results = _successful(runs)
    if not results:
        raise InputValidationError("No successful scenario runs to compare")

    rows = []
    for r in results:
        cost = sum(row.total_annual_cost for row in r.rows)
        service = (
            r.weighted_service_level
            if r.weighted_service_level is not None
            else r.transport.service_level_achievement
        )
        rows.append({
            "scenario": r.scenario_name,
            "open_facilities": ", ".join(r.transport.open_facilities),
            "years": len(r.rows),
            "total_cost": cost,
            "savings_pct": r.baseline_integration.savings_pct,
            "service_level": service,
            "efficiency": r.transport.network_metrics.network_utilization,
            "provenance": r.provenance.value,
            "data_provenance": r.transport.data_provenance.value,
        })

    df = pd.DataFrame(rows).set_index("scenario")
    max_cost = df["total_cost"].max()
    df["cost_score"] = [(1 - _share(c, max_cost)) * weights.cost for c in df["total_cost"]]
    df["service_score"] = [
        _share(s, df["service_level"].max()) * weights.service_level for s in df["service_level"]
    ]
    df["efficiency_score"] = [
        _share(e, df["efficiency"].max()) * weights.utilization for e in df["efficiency"]
    ]
    df["score"] = df["cost_score"] + df["service_score"] + df["efficiency_score"]

    reference = df.iloc[0]
    df["cost_delta"] = df["total_cost"] - reference["total_cost"]
    df["cost_delta_pct"] = [
        d / reference["total_cost"] if reference["total_cost"] > 0 else 0.0 for d in df["cost_delta"]
    ]
    df["service_delta"] = df["service_level"] - reference["service_level"]

    df = df.sort_values("score", ascending=False, kind="stable")
    df["rank"] = range(1, len(df) + 1)
    logger.info(f"Compared {len(df)} scenarios; best is '{df.index[0]}' (score {df['score'].iloc[0]:.3f})")
    return df
