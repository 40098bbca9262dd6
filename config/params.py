"""
Simulation parameters for the money-market stress harness.

Sampling bounds are policy: they define the documented envelope of every
randomized action and must not drift between runs. Market and protocol
values mirror the reference deployment (VL collateral token, SB stable
debt token, mock price oracle, MoneyMarket).
"""

import os
from dataclasses import dataclass, field, fields, replace

from models.fixed_point import to_wad


@dataclass(frozen=True)
class FractionRange:
    """Half-open sampling interval [low, high)."""
    low: float
    high: float

    def __post_init__(self):
        if not 0.0 <= self.low < self.high:
            raise ValueError(f"invalid fraction range [{self.low}, {self.high})")


@dataclass(frozen=True)
class SamplingBounds:
    """Per-action fraction intervals for the scenario generator."""
    deposit: FractionRange = field(default_factory=lambda: FractionRange(0.10, 0.50))
    # Share of the wallet's collateral-token balance
    borrow: FractionRange = field(default_factory=lambda: FractionRange(0.20, 1.00))
    # Share of current borrowing power (USD)
    repay: FractionRange = field(default_factory=lambda: FractionRange(0.20, 1.00))
    # Share of current debt balance
    crash: FractionRange = field(default_factory=lambda: FractionRange(0.30, 0.60))
    # Price drop; worst case leaves 40% of the previous price
    gain: FractionRange = field(default_factory=lambda: FractionRange(0.20, 0.80))
    # Price gain; worst case reaches 180% of the previous price


@dataclass(frozen=True)
class MoneyMarketParams:
    """Protocol risk parameters of the in-memory MoneyMarket backend (WAD)."""
    ltv: int = to_wad("0.75")
    # Borrowing power = collateral value * ltv
    liquidation_threshold: int = to_wad("0.80")
    # HF = collateral value * liquidation_threshold / debt value
    close_factor: int = to_wad("0.50")
    # Max share of debt repaid per liquidation call
    liquidation_bonus: int = to_wad("0.05")
    # Collateral premium paid to liquidators


@dataclass(frozen=True)
class MarketSetup:
    """Initial prices, token distribution and reserves (WAD)."""
    collateral_price: int = to_wad(100)
    # VL token, USD
    debt_price: int = to_wad(1)
    # SB token, USD
    account_allocation: int = to_wad(1000)
    # Each user and liquidator receives this much of both tokens
    funding_reserve: int = to_wad(10 ** 12)
    # SB held by the owner to top up repayers and liquidators
    market_liquidity: int = to_wad(10 ** 12)
    # SB lendable by the market


@dataclass(frozen=True)
class SimulationConfig:
    """Default driver-loop configuration."""
    min_ticks: int = 50
    max_ticks: int = 200
    # Tick count N is drawn uniformly from [min_ticks, max_ticks]
    seed: int = 42
    n_users: int = 10
    n_liquidators: int = 5
    progress_every: int = 10

    def __post_init__(self):
        if self.min_ticks < 1 or self.max_ticks < self.min_ticks:
            raise ValueError(
                f"tick range must satisfy 1 <= min <= max, got [{self.min_ticks}, {self.max_ticks}]"
            )
        if self.n_users < 1:
            raise ValueError("at least one general user is required")
        if self.n_liquidators < 1:
            raise ValueError("at least one liquidator is required")
        if self.progress_every < 1:
            raise ValueError("progress_every must be positive")


ENV_PREFIX = "LENDSIM_"


def _env_overrides(cls, prefix: str) -> dict:
    """Collect int overrides for dataclass fields from environment variables."""
    overrides = {}
    for f in fields(cls):
        raw = os.getenv(f"{prefix}{f.name.upper()}")
        if raw is None or raw == "":
            continue
        try:
            overrides[f.name] = int(raw)
        except ValueError as exc:
            raise ValueError(f"{prefix}{f.name.upper()} must be an integer, got {raw!r}") from exc
    return overrides


def load_params() -> dict:
    """
    Resolve parameters with environment overrides.

    Recognized variables: LENDSIM_SEED, LENDSIM_MIN_TICKS, LENDSIM_MAX_TICKS,
    LENDSIM_N_USERS, LENDSIM_N_LIQUIDATORS, LENDSIM_PROGRESS_EVERY.
    Protocol values are WAD integers: LENDSIM_MM_LTV, LENDSIM_MM_CLOSE_FACTOR, ...
    """
    sim_config = replace(SIM_CONFIG, **_env_overrides(SimulationConfig, ENV_PREFIX))
    money_market = replace(MONEY_MARKET, **_env_overrides(MoneyMarketParams, f"{ENV_PREFIX}MM_"))
    return {
        "sim_config": sim_config,
        "money_market": money_market,
        "market_setup": MARKET_SETUP,
        "sampling": SAMPLING,
    }


# Convenient default instances (used throughout codebase)
SAMPLING = SamplingBounds()
MONEY_MARKET = MoneyMarketParams()
MARKET_SETUP = MarketSetup()
SIM_CONFIG = SimulationConfig()
