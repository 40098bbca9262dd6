"""
Simulation driver: runs the tick loop and assembles the run report.

Each tick: scenario generator -> action executor (liquidation scanner on
liquidate) -> metrics aggregator. Ticks are strictly sequential and every
run owns its state and RNG stream, so several runs can share a process.
A ledger failure or invariant violation aborts the run with
SimulationAborted, which carries the partial state.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Iterable, Sequence

import numpy as np

from config.params import (
    MARKET_SETUP, MONEY_MARKET, SAMPLING, SIM_CONFIG,
    MarketSetup, MoneyMarketParams, SamplingBounds, SimulationConfig,
)
from models.errors import InvariantViolation, LedgerCallFailed, SimulationAborted, require
from models.executor import ActionExecutor, TraceRecord
from models.fixed_point import from_wad
from models.ledger_client import LedgerClient, UserPosition
from models.liquidation_scanner import LiquidationScanner
from models.metrics import MetricsAggregator, SolvencyTimeSeries
from models.money_market import MAX_UINT256, bootstrap_market
from models.scenario import ScenarioGenerator

LOGGER = logging.getLogger(__name__)


@dataclass
class SimulationState:
    """Mutable per-run state, touched only by the driver loop."""
    seed: int | None
    n_ticks: int
    rng: np.random.Generator
    tick: int = 0
    series: SolvencyTimeSeries = field(default_factory=SolvencyTimeSeries)
    trace: list[TraceRecord] = field(default_factory=list)

    @property
    def cumulative_liquidated_usd(self) -> int:
        return self.series.last_cumulative_liquidated_usd


class Simulation:
    """Drives one run against a ledger client."""

    def __init__(
        self,
        client: LedgerClient,
        users: Sequence[str],
        liquidators: Sequence[str],
        funder: str,
        config: SimulationConfig = SIM_CONFIG,
        bounds: SamplingBounds = SAMPLING,
    ):
        self.client = client
        self.users = tuple(users)
        self.liquidators = tuple(liquidators)
        self.funder = funder
        self.config = config
        self.bounds = bounds

    def new_state(self, seed: int | None = None, n_ticks: int | None = None) -> SimulationState:
        rng = np.random.default_rng(seed)
        if n_ticks is None:
            n_ticks = int(rng.integers(self.config.min_ticks, self.config.max_ticks + 1))
        if n_ticks < 0:
            raise ValueError(f"n_ticks must be non-negative, got {n_ticks}")
        return SimulationState(seed=seed, n_ticks=n_ticks, rng=rng)

    def run(self, seed: int | None = None, n_ticks: int | None = None) -> SimulationState:
        """
        Execute a full run.

        The tick count is drawn from [min_ticks, max_ticks] with the run's
        own generator unless n_ticks is given.
        """
        state = self.new_state(seed, n_ticks)
        generator = ScenarioGenerator(
            self.client, self.users, self.liquidators, state.rng, self.bounds
        )
        executor = ActionExecutor(
            self.client, LiquidationScanner(self.client, self.users), self.funder
        )
        aggregator = MetricsAggregator(self.client, self.users)

        LOGGER.info("Starting simulation with %d transactions (seed=%s)", state.n_ticks, seed)
        for tick in range(1, state.n_ticks + 1):
            action = None
            record = None
            try:
                action = generator.next_action()
                record = executor.execute(tick, action)
                aggregator.record(state.series, tick, record.liquidated_usd)
                require(len(state.series) == tick, f"series length {len(state.series)} != tick {tick}")
            except (LedgerCallFailed, InvariantViolation) as exc:
                kind = action.kind.value if action is not None else None
                LOGGER.error("Tick %d (%s) failed: %s", tick, kind or "n/a", exc)
                raise SimulationAborted(state, tick, kind, exc, record=record) from exc

            state.tick = tick
            state.trace.append(record)
            if tick % self.config.progress_every == 0:
                LOGGER.info("--- Progress: %d/%d ---", tick, state.n_ticks)

        return state

    def final_positions(self) -> dict[str, UserPosition]:
        return {user: self.client.get_user_position(user) for user in self.users}


def _health_factor_float(value: int) -> float | None:
    # No-debt accounts report MAX_UINT256; None keeps the JSON finite.
    return None if value == MAX_UINT256 else from_wad(value)


@dataclass
class SimulationReport:
    """Everything the report renderer needs from one run."""
    seed: int | None
    n_ticks: int
    completed_ticks: int
    series: dict
    final_positions: dict
    trace: list
    liquidations: int
    skipped_actions: int
    aborted: bool = False
    abort_reason: str | None = None

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(asdict(self), indent=indent, default=_json_default)


def _json_default(obj):
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def build_report(
    state: SimulationState,
    final_positions: dict[str, UserPosition],
    abort: SimulationAborted | None = None,
) -> SimulationReport:
    positions = {
        account: {
            "collateral": from_wad(pos.collateral),
            "debt": from_wad(pos.debt),
            "health_factor": _health_factor_float(pos.health_factor),
            "borrowing_power": from_wad(pos.borrowing_power),
        }
        for account, pos in final_positions.items()
    }
    records = list(state.trace)
    if abort is not None and abort.record is not None:
        # Executed on the ledger but never sampled; its tick is past completed_ticks.
        records.append(abort.record)
    trace = [
        {
            "tick": r.tick,
            "kind": r.kind.value,
            "description": r.description,
            "skipped": r.skipped,
            "liquidated_usd": from_wad(r.liquidated_usd),
            "price_delta": from_wad(r.price_delta),
        }
        for r in records
    ]
    return SimulationReport(
        seed=state.seed,
        n_ticks=state.n_ticks,
        completed_ticks=state.tick,
        series=state.series.as_arrays(),
        final_positions=positions,
        trace=trace,
        liquidations=sum(1 for r in records if r.liquidated_usd > 0),
        skipped_actions=sum(1 for r in records if r.skipped),
        aborted=abort is not None,
        abort_reason=str(abort) if abort is not None else None,
    )


def run_seed(
    seed: int | None,
    config: SimulationConfig = SIM_CONFIG,
    setup: MarketSetup = MARKET_SETUP,
    params: MoneyMarketParams = MONEY_MARKET,
    bounds: SamplingBounds = SAMPLING,
) -> SimulationReport:
    """Run one seed against a freshly bootstrapped in-memory market."""
    market, accounts = bootstrap_market(config.n_users, config.n_liquidators, setup, params)
    client = LedgerClient(market)
    sim = Simulation(
        client, accounts.users, accounts.liquidators, accounts.owner,
        config=config, bounds=bounds,
    )
    try:
        state = sim.run(seed)
    except SimulationAborted as exc:
        try:
            positions = sim.final_positions()
        except LedgerCallFailed:
            LOGGER.warning("Final positions unavailable after abort")
            positions = {}
        return build_report(exc.state, positions, abort=exc)
    return build_report(state, sim.final_positions())


def run_batch(seeds: Iterable[int], **kwargs) -> list[SimulationReport]:
    """Independent runs, one isolated market and RNG stream per seed."""
    return [run_seed(seed, **kwargs) for seed in seeds]

