"""
Command-line entry point: run one network design scenario from a workbook.

Usage:
    network-design network.xlsx [--output results.xlsx]

Examples:
    # Base case with the solver chosen automatically
    network-design "data/Network Scenario.xlsx"

    # Keep one facility set for every year, greedy heuristic, 60 s budget
    network-design network.xlsx --fixed-network --solver greedy --time-limit 60

    # Re-optimize every forecast year on its own (DemandByYear sheet honored)
    network-design network.xlsx --per-year

    # Years without forecast volume use an explicit, labeled 5% growth
    network-design network.xlsx --assumed-growth-rate 0.05 --end-year 2030
"""

import argparse
from dataclasses import replace
import logging
import sys
from pathlib import Path

import pandas as pd

from .errors import NetworkDesignError
from .parsers import WorkbookParser
from .scenario import ScenarioOrchestrator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="network-design",
        description="Optimize facility locations, size warehouses and project costs for one scenario",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    network-design network.xlsx
    network-design network.xlsx --output results.xlsx
    network-design inputs_dir/ --fixed-network --solver enumeration
        """,
    )
    parser.add_argument("input", type=str, help="Workbook (.xlsx/.xlsm) or directory of CSV files")
    parser.add_argument("--name", type=str, default=None, help="Scenario name (default: file name)")
    parser.add_argument("--output", type=str, default=None, help="Write yearly results to .xlsx or .csv")
    parser.add_argument(
        "--solver",
        choices=["auto", "mip", "enumeration", "greedy"],
        default=None,
        help="Search method (default: from the Config sheet, else auto)",
    )
    parser.add_argument("--time-limit", type=float, default=None, help="Solver time budget in seconds")
    parser.add_argument(
        "--hard-timeout",
        type=float,
        default=None,
        help="Terminate the solve process after this many seconds",
    )
    parser.add_argument("--fixed-network", action="store_true", help="Keep one facility set for all years")
    parser.add_argument("--per-year", action="store_true", help="Re-optimize transport independently for every year")
    parser.add_argument("--inventory", action="store_true", help="Also compute inventory policy")
    parser.add_argument(
        "--assumed-growth-rate",
        type=float,
        default=None,
        help="Growth for years without forecast volume (rows tagged 'assumption')",
    )
    parser.add_argument("--end-year", type=int, default=None, help="Last projected year")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None) -> int:
    """Main entry point. Returns a process exit code."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s:%(name)s:%(message)s",
    )

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"❌ Error: Input not found: {input_path}", file=sys.stderr)
        return 1

    try:
        inputs = WorkbookParser(input_path).to_scenario_inputs(
            args.name,
            fixed_network=args.fixed_network,
            per_year_optimization=args.per_year,
            include_inventory=args.inventory,
            end_year=args.end_year,
        )
        solver_overrides = {}
        if args.solver is not None:
            solver_overrides["name"] = args.solver
        if args.time_limit is not None:
            solver_overrides["time_limit_seconds"] = args.time_limit
        if args.hard_timeout is not None:
            solver_overrides["hard_timeout_seconds"] = args.hard_timeout
        config = inputs.config
        if solver_overrides:
            config = config.with_overrides({"optimization": {"solver": solver_overrides}})

        orchestrator = ScenarioOrchestrator(config, assumed_growth_rate=args.assumed_growth_rate)
        outcome = orchestrator.run_outcome(replace(inputs, config=config))
    except (NetworkDesignError, ValueError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1

    if not outcome.success:
        print(f"❌ {outcome.error_kind}: {outcome.error}", file=sys.stderr)
        return 2

    result = outcome.value
    b = result.baseline_integration
    print(f"\n✅ Scenario '{result.scenario_name}' [{result.provenance.value}]")
    print(f"   Open facilities: {', '.join(result.transport.open_facilities)}")
    print(f"   Baseline cost:   ${b.baseline_cost:,.0f}")
    print(f"   Optimized cost:  ${b.optimized_cost:,.0f}")
    print(f"   Savings:         ${b.savings:,.0f} ({b.savings_pct:.1%})")
    print()
    with pd.option_context("display.width", 160, "display.max_columns", 20):
        print(result.to_frame())
    for w in result.warnings:
        print(f"⚠️  {w}")

    if args.output:
        _write_output(result, Path(args.output))
        print(f"\n💾 Results written to {args.output}")
    return 0


def _write_output(result, path: Path) -> None:
    frame = result.to_frame()
    if path.suffix.lower() == ".csv":
        frame.to_csv(path)
        return
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name="Yearly")
        result.transport.to_assignments_frame().to_excel(writer, sheet_name="Assignments", index=False)
        result.warehouse.to_frame().to_excel(writer, sheet_name="Warehouse")
        pd.DataFrame([result.summary()]).to_excel(writer, sheet_name="Summary", index=False)


if __name__ == "__main__":
    sys.exit(main())
