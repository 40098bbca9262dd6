"""
CLI entry point for the money-market stress simulation.

Usage:
    python run_simulation.py --seed 7 --runs 3 --min-ticks 50 --max-ticks 200
"""

import argparse
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

from config.params import load_params
from models.simulation import SimulationReport, run_seed


def print_report(report: SimulationReport, show_trace: bool) -> None:
    print("=" * 70)
    status = "ABORTED" if report.aborted else "COMPLETED"
    print(f"  Seed {report.seed}: {status} {report.completed_ticks}/{report.n_ticks} ticks"
          f" | liquidations={report.liquidations} | skipped={report.skipped_actions}")
    print("=" * 70)
    if report.aborted:
        print(f"  [ERROR] {report.abort_reason}")

    if show_trace:
        for row in report.trace:
            print(f"  {row['description']}")
        print()

    series = report.series
    if report.completed_ticks:
        print("SOLVENCY METRICS (last tick)")
        print("-" * 40)
        print(f"  TVL:                     ${series['tvl'][-1]:,.2f}")
        print(f"  Total debt:              ${series['total_debt'][-1]:,.2f}")
        print(f"  Avg health factor:       {series['avg_health_factor'][-1]:.4f}")
        print(f"  Under-collateralized:    ${series['under_collateralized_debt'][-1]:,.2f}")
        print(f"  Cumulative liquidated:   ${series['cumulative_liquidated_usd'][-1]:,.2f}")
        print()

    print("FINAL USER POSITIONS")
    print("-" * 40)
    for account, pos in report.final_positions.items():
        hf = "inf" if pos["health_factor"] is None else f"{pos['health_factor']:.4f}"
        print(f"  User {account}: Coll {pos['collateral']:.4f}, Debt {pos['debt']:.4f},"
              f" HF {hf}, BP {pos['borrowing_power']:.4f}")
    print()


def main():
    params = load_params()
    defaults = params["sim_config"]

    parser = argparse.ArgumentParser(
        description="Stochastic stress test for a collateralized lending market"
    )
    parser.add_argument("--seed", type=int, default=defaults.seed,
                        help=f"Random seed of the first run (default: {defaults.seed})")
    parser.add_argument("--runs", type=int, default=1,
                        help="Number of independent runs, seeds seed..seed+runs-1 (default: 1)")
    parser.add_argument("--min-ticks", type=int, default=defaults.min_ticks,
                        help=f"Minimum ticks per run (default: {defaults.min_ticks})")
    parser.add_argument("--max-ticks", type=int, default=defaults.max_ticks,
                        help=f"Maximum ticks per run (default: {defaults.max_ticks})")
    parser.add_argument("--users", type=int, default=defaults.n_users,
                        help=f"General user accounts (default: {defaults.n_users})")
    parser.add_argument("--liquidators", type=int, default=defaults.n_liquidators,
                        help=f"Liquidator accounts (default: {defaults.n_liquidators})")
    parser.add_argument("--trace", action="store_true",
                        help="Print every tick's trace line in the text report")
    parser.add_argument("--json", action="store_true",
                        help="Output raw JSON instead of formatted text")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (default: WARNING)")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = replace(
            defaults,
            seed=args.seed,
            min_ticks=args.min_ticks,
            max_ticks=args.max_ticks,
            n_users=args.users,
            n_liquidators=args.liquidators,
        )
    except ValueError as e:
        parser.error(str(e))

    start = time.time()
    reports = []
    for offset in range(max(args.runs, 1)):
        reports.append(run_seed(
            config.seed + offset,
            config=config,
            setup=params["market_setup"],
            params=params["money_market"],
            bounds=params["sampling"],
        ))
    elapsed = time.time() - start

    if args.json:
        if len(reports) == 1:
            print(reports[0].to_json())
        else:
            print("[" + ",\n".join(r.to_json() for r in reports) + "]")
    else:
        for report in reports:
            print_report(report, show_trace=args.trace)
        print(f"Completed in {elapsed:.2f}s")

    if any(r.aborted for r in reports):
        sys.exit(1)


if __name__ == "__main__":
    main()
