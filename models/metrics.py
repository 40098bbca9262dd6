"""
Per-tick solvency metrics over the tracked general accounts.

One MetricsSample is produced after every tick, including skipped ones,
and appended to an append-only SolvencyTimeSeries. Values are WAD integers;
as_arrays() converts to float numpy arrays for reporting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from models.errors import require
from models.fixed_point import WAD, from_wad
from models.ledger_client import LedgerClient

NO_DEBT_HEALTH_FACTOR = 100 * WAD
# Placeholder average when no tracked account has debt

SERIES_NAMES = (
    "tvl",
    "total_debt",
    "avg_health_factor",
    "under_collateralized_debt",
    "cumulative_liquidated_usd",
)


@dataclass(frozen=True)
class MetricsSample:
    """Aggregate solvency state after one tick (WAD)."""
    tick: int
    tvl: int
    total_debt: int
    avg_health_factor: int
    under_collateralized_debt: int
    cumulative_liquidated_usd: int


@dataclass
class SolvencyTimeSeries:
    """Index-aligned metric series; entry i belongs to tick i + 1."""
    tvl: list[int] = field(default_factory=list)
    total_debt: list[int] = field(default_factory=list)
    avg_health_factor: list[int] = field(default_factory=list)
    under_collateralized_debt: list[int] = field(default_factory=list)
    cumulative_liquidated_usd: list[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.tvl)

    @property
    def last_cumulative_liquidated_usd(self) -> int:
        return self.cumulative_liquidated_usd[-1] if self.cumulative_liquidated_usd else 0

    def append(self, sample: MetricsSample) -> None:
        require(
            sample.tick == len(self) + 1,
            f"sample for tick {sample.tick} appended after {len(self)} samples",
        )
        require(
            sample.cumulative_liquidated_usd >= self.last_cumulative_liquidated_usd,
            "cumulative liquidated USD decreased",
        )
        for name in SERIES_NAMES:
            getattr(self, name).append(getattr(sample, name))
        require(
            all(len(getattr(self, name)) == sample.tick for name in SERIES_NAMES),
            f"metric series misaligned at tick {sample.tick}",
        )

    def as_arrays(self) -> dict[str, np.ndarray]:
        return {
            name: np.asarray([from_wad(v) for v in getattr(self, name)], dtype=float)
            for name in SERIES_NAMES
        }


class MetricsAggregator:
    """Recomputes aggregates from fresh ledger reads after every tick."""

    def __init__(self, client: LedgerClient, accounts: Sequence[str]):
        self.client = client
        self.accounts = tuple(accounts)

    def sample(self, tick: int, liquidated_usd: int, previous_cumulative: int) -> MetricsSample:
        require(liquidated_usd >= 0, f"negative liquidated value {liquidated_usd} at tick {tick}")

        tvl = 0
        total_debt = 0
        under_collateralized_debt = 0
        health_factors: list[int] = []

        for account in self.accounts:
            collateral_value = self.client.get_collateral_value(account)
            debt_value = self.client.get_debt_value(account)
            require(collateral_value >= 0, f"negative collateral value for {account}")
            require(debt_value >= 0, f"negative debt value for {account}")
            tvl += collateral_value
            total_debt += debt_value

            if self.client.get_debt_balance(account) > 0:
                hf = self.client.get_health_factor(account)
                require(hf >= 0, f"negative health factor for {account}")
                health_factors.append(hf)
                if hf < WAD:
                    under_collateralized_debt += debt_value

        if health_factors:
            avg_health_factor = sum(health_factors) // len(health_factors)
        else:
            avg_health_factor = NO_DEBT_HEALTH_FACTOR

        return MetricsSample(
            tick=tick,
            tvl=tvl,
            total_debt=total_debt,
            avg_health_factor=avg_health_factor,
            under_collateralized_debt=under_collateralized_debt,
            cumulative_liquidated_usd=previous_cumulative + liquidated_usd,
        )

    def record(self, series: SolvencyTimeSeries, tick: int, liquidated_usd: int = 0) -> MetricsSample:
        sample = self.sample(tick, liquidated_usd, series.last_cumulative_liquidated_usd)
        series.append(sample)
        return sample
