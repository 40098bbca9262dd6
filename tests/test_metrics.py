"""Tests for the per-tick solvency metrics aggregator."""

import numpy as np
import pytest

from models.errors import InvariantViolation
from models.fixed_point import to_wad
from models.ledger_client import LedgerClient
from models.metrics import (
    NO_DEBT_HEALTH_FACTOR,
    SERIES_NAMES,
    MetricsAggregator,
    MetricsSample,
    SolvencyTimeSeries,
)
from models.money_market import bootstrap_market


def _setup():
    market, accounts = bootstrap_market(n_users=3, n_liquidators=1)
    client = LedgerClient(market)
    return client, accounts, MetricsAggregator(client, accounts.users)


def _sample(tick, cumulative=0):
    return MetricsSample(
        tick=tick, tvl=0, total_debt=0, avg_health_factor=NO_DEBT_HEALTH_FACTOR,
        under_collateralized_debt=0, cumulative_liquidated_usd=cumulative,
    )


def test_sentinel_when_nobody_has_debt():
    client, accounts, aggregator = _setup()
    client.deposit(accounts.users[0], to_wad(10))
    sample = aggregator.sample(tick=1, liquidated_usd=0, previous_cumulative=0)
    assert sample.avg_health_factor == to_wad(100)
    assert sample.tvl == to_wad(1000)
    assert sample.total_debt == 0


def test_aggregates_over_tracked_accounts():
    client, accounts, aggregator = _setup()
    a, b, _ = accounts.users
    client.deposit(a, to_wad(10))
    client.borrow(a, to_wad(500))
    client.deposit(b, to_wad(5))

    sample = aggregator.sample(tick=1, liquidated_usd=0, previous_cumulative=0)
    assert sample.tvl == to_wad(1500)
    assert sample.total_debt == to_wad(500)
    # only the indebted account contributes: HF 1.6
    assert sample.avg_health_factor == to_wad("1.6")
    assert sample.under_collateralized_debt == 0


def test_average_over_indebted_accounts_only():
    client, accounts, aggregator = _setup()
    a, b, c = accounts.users
    for user in (a, b, c):
        client.deposit(user, to_wad(10))
    client.borrow(a, to_wad(500))  # HF 1.6
    client.borrow(b, to_wad(400))  # HF 2.0
    sample = aggregator.sample(tick=1, liquidated_usd=0, previous_cumulative=0)
    assert sample.avg_health_factor == to_wad("1.8")


def test_under_collateralized_debt_after_crash():
    client, accounts, aggregator = _setup()
    a, b, _ = accounts.users
    client.deposit(a, to_wad(10))
    client.borrow(a, to_wad(500))
    client.deposit(b, to_wad(10))
    client.borrow(b, to_wad(100))
    client.set_asset_price(client.collateral_asset, to_wad(50), sender=accounts.owner)

    sample = aggregator.sample(tick=1, liquidated_usd=0, previous_cumulative=0)
    # a: 400 / 500 = 0.8 (under), b: 400 / 100 = 4.0
    assert sample.under_collateralized_debt == to_wad(500)
    assert sample.avg_health_factor == to_wad("2.4")


def test_record_accumulates_liquidated_usd():
    client, _, aggregator = _setup()
    series = SolvencyTimeSeries()
    aggregator.record(series, 1, liquidated_usd=to_wad(10))
    aggregator.record(series, 2)
    aggregator.record(series, 3, liquidated_usd=to_wad(5))
    assert series.cumulative_liquidated_usd == [to_wad(10), to_wad(10), to_wad(15)]
    assert len(series) == 3
    for name in SERIES_NAMES:
        assert len(getattr(series, name)) == 3


def test_negative_liquidated_value_is_invariant_violation():
    _, _, aggregator = _setup()
    with pytest.raises(InvariantViolation):
        aggregator.sample(tick=1, liquidated_usd=-1, previous_cumulative=0)


class TestSolvencyTimeSeries:
    def test_rejects_skipped_tick(self):
        series = SolvencyTimeSeries()
        series.append(_sample(1))
        with pytest.raises(InvariantViolation):
            series.append(_sample(3))

    def test_rejects_decreasing_cumulative(self):
        series = SolvencyTimeSeries()
        series.append(_sample(1, cumulative=to_wad(5)))
        with pytest.raises(InvariantViolation):
            series.append(_sample(2, cumulative=to_wad(4)))

    def test_as_arrays(self):
        series = SolvencyTimeSeries()
        series.append(_sample(1))
        series.append(_sample(2, cumulative=to_wad("2.5")))
        arrays = series.as_arrays()
        assert set(arrays) == set(SERIES_NAMES)
        assert np.allclose(arrays["avg_health_factor"], [100.0, 100.0])
        assert np.allclose(arrays["cumulative_liquidated_usd"], [0.0, 2.5])
