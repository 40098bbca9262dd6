"""Tests for the in-memory MoneyMarket backend and its bootstrap."""

import pytest

from config.params import MarketSetup
from models.fixed_point import WAD, to_wad
from models.money_market import (
    COLLATERAL_SYMBOL,
    DEBT_SYMBOL,
    MAX_UINT256,
    LedgerRevert,
    bootstrap_market,
)


class TestBootstrap:
    def setup_method(self):
        self.market, self.accounts = bootstrap_market(n_users=10, n_liquidators=5)

    def test_account_roles_in_registration_order(self):
        assert len(self.accounts.users) == 10
        assert len(self.accounts.liquidators) == 5
        assert self.accounts.users[0] == "0x" + "0" * 39 + "1"
        assert self.accounts.owner not in self.accounts.users
        assert not set(self.accounts.users) & set(self.accounts.liquidators)

    def test_initial_prices(self):
        assert self.market.get_asset_price(COLLATERAL_SYMBOL) == to_wad(100)
        assert self.market.get_asset_price(DEBT_SYMBOL) == to_wad(1)

    def test_token_distribution_and_approvals(self):
        for account in self.accounts.users + self.accounts.liquidators:
            assert self.market.balance_of(COLLATERAL_SYMBOL, account) == to_wad(1000)
            assert self.market.balance_of(DEBT_SYMBOL, account) == to_wad(1000)
            token = self.market.tokens[COLLATERAL_SYMBOL]
            assert token.allowance(account, self.market.market_address) == MAX_UINT256

    def test_custom_setup(self):
        market, _ = bootstrap_market(
            n_users=2, n_liquidators=1,
            setup=MarketSetup(collateral_price=to_wad(2)),
        )
        assert market.get_asset_price(COLLATERAL_SYMBOL) == to_wad(2)


class TestMarketActions:
    def setup_method(self):
        self.market, self.accounts = bootstrap_market(n_users=3, n_liquidators=1)
        self.user = self.accounts.users[0]
        self.owner = self.accounts.owner

    def test_deposit_borrow_health_factor(self):
        self.market.deposit(to_wad(10), sender=self.user)
        assert self.market.collateral_value(self.user) == to_wad(1000)
        assert self.market.borrowing_power(self.user) == to_wad(750)
        assert self.market.health_factor(self.user) == MAX_UINT256

        self.market.borrow(to_wad(500), sender=self.user)
        assert self.market.debt_value(self.user) == to_wad(500)
        # 1000 * 0.80 / 500
        assert self.market.health_factor(self.user) == to_wad("1.6")
        assert self.market.balance_of(DEBT_SYMBOL, self.user) == to_wad(1500)

    def test_unbounded_allowance_not_decremented(self):
        self.market.deposit(to_wad(10), sender=self.user)
        token = self.market.tokens[COLLATERAL_SYMBOL]
        assert token.allowance(self.user, self.market.market_address) == MAX_UINT256

    def test_borrow_above_power_reverts(self):
        self.market.deposit(to_wad(10), sender=self.user)
        with pytest.raises(LedgerRevert, match="borrowing power"):
            self.market.borrow(to_wad(751), sender=self.user)

    def test_repay_more_than_debt_reverts(self):
        self.market.deposit(to_wad(10), sender=self.user)
        self.market.borrow(to_wad(100), sender=self.user)
        with pytest.raises(LedgerRevert, match="exceeds debt"):
            self.market.repay(to_wad(101), sender=self.user)

    def test_repay_consumes_exact_allowance(self):
        self.market.deposit(to_wad(10), sender=self.user)
        self.market.borrow(to_wad(100), sender=self.user)
        self.market.approve(DEBT_SYMBOL, self.market.market_address, to_wad(40), sender=self.user)
        self.market.repay(to_wad(40), sender=self.user)
        assert self.market.debt_balance(self.user) == to_wad(60)
        with pytest.raises(LedgerRevert, match="allowance"):
            self.market.repay(to_wad(1), sender=self.user)

    def test_only_owner_sets_prices(self):
        with pytest.raises(LedgerRevert, match="owner"):
            self.market.set_asset_price(COLLATERAL_SYMBOL, to_wad(1), sender=self.user)

    def test_liquidation_of_healthy_position_reverts(self):
        self.market.deposit(to_wad(10), sender=self.user)
        self.market.borrow(to_wad(500), sender=self.user)
        liquidator = self.accounts.liquidators[0]
        with pytest.raises(LedgerRevert, match="healthy"):
            self.market.liquidate(self.user, to_wad(100), sender=liquidator)

    def test_liquidation_seizes_collateral_with_bonus(self):
        self.market.deposit(to_wad(10), sender=self.user)
        self.market.borrow(to_wad(700), sender=self.user)
        self.market.set_asset_price(COLLATERAL_SYMBOL, to_wad(50), sender=self.owner)
        assert self.market.health_factor(self.user) < WAD

        liquidator = self.accounts.liquidators[0]
        self.market.liquidate(self.user, to_wad(350), sender=liquidator)

        # 350 USD * 1.05 / 50 USD = 7.35 VL
        assert self.market.debt_balance(self.user) == to_wad(350)
        assert self.market.collateral_balance(self.user) == to_wad("2.65")
        assert self.market.balance_of(COLLATERAL_SYMBOL, liquidator) == to_wad("1007.35")
        assert self.market.balance_of(DEBT_SYMBOL, liquidator) == to_wad(650)

    def test_liquidation_above_close_factor_reverts(self):
        self.market.deposit(to_wad(10), sender=self.user)
        self.market.borrow(to_wad(700), sender=self.user)
        self.market.set_asset_price(COLLATERAL_SYMBOL, to_wad(50), sender=self.owner)
        with pytest.raises(LedgerRevert, match="close factor"):
            self.market.liquidate(self.user, to_wad(351), sender=self.accounts.liquidators[0])

    def test_user_position_tuple(self):
        self.market.deposit(to_wad(10), sender=self.user)
        self.market.borrow(to_wad(500), sender=self.user)
        assert self.market.user_position(self.user) == (
            to_wad(10), to_wad(500), to_wad("1.6"), to_wad(750),
        )
