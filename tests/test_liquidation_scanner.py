"""Tests for first-match liquidation scanning and close-amount computation."""

from types import SimpleNamespace

import pytest

from models.errors import InvariantViolation
from models.fixed_point import WAD, to_wad
from models.ledger_client import LedgerClient
from models.liquidation_scanner import LiquidationScanner, close_amount
from models.money_market import bootstrap_market


def _distressed_market():
    """Three users at 1000 USD collateral each, borrowed 700/600/740, then VL halves."""
    market, accounts = bootstrap_market(n_users=4, n_liquidators=1)
    client = LedgerClient(market)
    for user, debt in zip(accounts.users[:3], (700, 600, 740)):
        client.deposit(user, to_wad(10))
        client.borrow(user, to_wad(debt))
    client.set_asset_price(client.collateral_asset, to_wad(50), sender=accounts.owner)
    return client, accounts


def _fake_client(rows, close_factor=to_wad("0.5")):
    """rows: account -> (health_factor, debt_balance)."""
    return SimpleNamespace(
        get_health_factor=lambda account: rows[account][0],
        get_debt_balance=lambda account: rows[account][1],
        get_close_factor=lambda: close_factor,
    )


def test_first_match_not_most_distressed():
    client, accounts = _distressed_market()
    hfs = [client.get_health_factor(u) for u in accounts.users[:3]]
    assert all(hf < WAD for hf in hfs)
    assert min(hfs) == hfs[2]

    target = LiquidationScanner(client, accounts.users).scan()
    assert target.index == 0
    assert target.account == accounts.users[0]
    assert target.debt_balance == to_wad(700)
    assert target.close_amount == to_wad(350)


def test_scan_is_stable_across_calls():
    client, accounts = _distressed_market()
    scanner = LiquidationScanner(client, accounts.users)
    assert scanner.scan() == scanner.scan()


def test_none_when_everyone_healthy():
    market, accounts = bootstrap_market(n_users=3, n_liquidators=1)
    client = LedgerClient(market)
    client.deposit(accounts.users[0], to_wad(10))
    client.borrow(accounts.users[0], to_wad(100))
    assert LiquidationScanner(client, accounts.users).scan() is None


def test_low_health_factor_without_debt_is_ignored():
    client = _fake_client({
        "a": (to_wad("0.5"), 0),
        "b": (to_wad("1.2"), to_wad(100)),
        "c": (to_wad("0.9"), to_wad(400)),
    })
    target = LiquidationScanner(client, ["a", "b", "c"]).scan()
    assert target.account == "c"
    assert target.index == 2
    assert target.close_amount == to_wad(200)


def test_health_factor_exactly_one_is_not_liquidatable():
    client = _fake_client({"a": (WAD, to_wad(100))})
    assert LiquidationScanner(client, ["a"]).scan() is None


class TestCloseAmount:
    def test_half_close_factor(self):
        assert close_amount(to_wad(400), to_wad("0.5")) == to_wad(200)

    def test_clamped_to_debt_when_close_factor_exceeds_one(self):
        assert close_amount(to_wad(400), to_wad("1.5")) == to_wad(400)

    def test_never_exceeds_debt_times_close_factor(self):
        for debt in (1, 3, 999, to_wad(123), to_wad("0.000001")):
            amount = close_amount(debt, to_wad("0.5"))
            assert amount <= debt * to_wad("0.5") // WAD
            assert amount <= debt

    def test_negative_debt_is_invariant_violation(self):
        with pytest.raises(InvariantViolation):
            close_amount(-1, to_wad("0.5"))
