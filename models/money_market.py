"""
In-memory MoneyMarket backend: two ERC-20 tokens, a mock price oracle and a
single-collateral lending market.

Implements the LedgerBackend protocol with contract semantics so the
simulation can run without a chain:

- Collateral value = collateral * collateral price
- Borrowing power  = collateral value * LTV
- Health factor    = collateral value * liquidation threshold / debt value
                     (MAX_UINT256 when the account has no debt)
- Liquidation: only when HF < 1, repays at most debt * close factor, seizes
  repaid value * (1 + bonus) of collateral, capped at the account's balance

Failed preconditions raise LedgerRevert, the analogue of a reverted tx.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field

from config.params import MARKET_SETUP, MONEY_MARKET, MarketSetup, MoneyMarketParams
from models.fixed_point import WAD, wad_div, wad_mul

MAX_UINT256 = 2 ** 256 - 1

COLLATERAL_SYMBOL = "VL"
DEBT_SYMBOL = "SB"


class LedgerRevert(Exception):
    """A call violated a market or token precondition."""


def account_address(index: int) -> str:
    return f"0x{index:040x}"


@dataclass
class Token:
    """Minimal ERC-20 ledger; an allowance of MAX_UINT256 is never decremented."""
    symbol: str
    owner: str
    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[tuple[str, str], int] = field(default_factory=dict)

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def mint(self, account: str, amount: int, sender: str) -> None:
        if sender != self.owner:
            raise LedgerRevert(f"{self.symbol}: only owner can mint")
        if amount < 0:
            raise LedgerRevert(f"{self.symbol}: negative mint")
        self.balances[account] = self.balance_of(account) + amount

    def transfer(self, sender: str, to: str, amount: int) -> None:
        if amount < 0:
            raise LedgerRevert(f"{self.symbol}: negative transfer")
        balance = self.balance_of(sender)
        if balance < amount:
            raise LedgerRevert(f"{self.symbol}: transfer amount exceeds balance")
        self.balances[sender] = balance - amount
        self.balances[to] = self.balance_of(to) + amount

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise LedgerRevert(f"{self.symbol}: negative approval")
        self.allowances[(owner, spender)] = amount

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise LedgerRevert(f"{self.symbol}: insufficient allowance")
        self.transfer(owner, to, amount)
        if allowed != MAX_UINT256:
            self.allowances[(owner, spender)] = allowed - amount


class InMemoryMoneyMarket:
    """Single-collateral money market with its own tokens and oracle."""

    def __init__(
        self,
        owner: str,
        params: MoneyMarketParams = MONEY_MARKET,
        market_address: str = "0x" + "4d4d" * 10,
    ):
        self.owner = owner
        self.params = params
        self.market_address = market_address
        self.collateral_asset = COLLATERAL_SYMBOL
        self.debt_asset = DEBT_SYMBOL
        self.tokens = {
            COLLATERAL_SYMBOL: Token(COLLATERAL_SYMBOL, owner),
            DEBT_SYMBOL: Token(DEBT_SYMBOL, owner),
        }
        self.prices: dict[str, int] = {}
        self.collateral_balances: dict[str, int] = {}
        self.debt_balances: dict[str, int] = {}
        self._tx_counter = itertools.count(1)

    def _tx(self) -> str:
        return f"0x{next(self._tx_counter):064x}"

    def _token(self, asset: str) -> Token:
        try:
            return self.tokens[asset]
        except KeyError:
            raise LedgerRevert(f"unknown asset {asset!r}") from None

    def _price(self, asset: str) -> int:
        price = self.prices.get(asset, 0)
        if price <= 0:
            raise LedgerRevert(f"oracle: no price for {asset}")
        return price

    # -- oracle ---------------------------------------------------------

    def set_asset_price(self, asset: str, price: int, *, sender: str) -> str:
        if sender != self.owner:
            raise LedgerRevert("oracle: caller is not the owner")
        self._token(asset)
        if price < 0:
            raise LedgerRevert("oracle: negative price")
        self.prices[asset] = price
        return self._tx()

    def get_asset_price(self, asset: str) -> int:
        self._token(asset)
        return self.prices.get(asset, 0)

    # -- tokens ---------------------------------------------------------

    def balance_of(self, asset: str, account: str) -> int:
        return self._token(asset).balance_of(account)

    def transfer(self, asset: str, to: str, amount: int, *, sender: str) -> str:
        self._token(asset).transfer(sender, to, amount)
        return self._tx()

    def approve(self, asset: str, spender: str, amount: int, *, sender: str) -> str:
        self._token(asset).approve(sender, spender, amount)
        return self._tx()

    def mint(self, asset: str, account: str, amount: int, *, sender: str) -> str:
        self._token(asset).mint(account, amount, sender)
        return self._tx()

    # -- views ----------------------------------------------------------

    def collateral_balance(self, account: str) -> int:
        return self.collateral_balances.get(account, 0)

    def debt_balance(self, account: str) -> int:
        return self.debt_balances.get(account, 0)

    def collateral_value(self, account: str) -> int:
        return wad_mul(self.collateral_balance(account), self._price(self.collateral_asset))

    def debt_value(self, account: str) -> int:
        return wad_mul(self.debt_balance(account), self._price(self.debt_asset))

    def borrowing_power(self, account: str) -> int:
        return wad_mul(self.collateral_value(account), self.params.ltv)

    def health_factor(self, account: str) -> int:
        debt_value = self.debt_value(account)
        if debt_value == 0:
            return MAX_UINT256
        adjusted = wad_mul(self.collateral_value(account), self.params.liquidation_threshold)
        return wad_div(adjusted, debt_value)

    def close_factor(self) -> int:
        return self.params.close_factor

    def user_position(self, account: str) -> tuple[int, int, int, int]:
        return (
            self.collateral_balance(account),
            self.debt_balance(account),
            self.health_factor(account),
            self.borrowing_power(account),
        )

    # -- market actions -------------------------------------------------

    def deposit(self, amount: int, *, sender: str) -> str:
        if amount <= 0:
            raise LedgerRevert("deposit: amount must be positive")
        self._token(self.collateral_asset).transfer_from(
            self.market_address, sender, self.market_address, amount
        )
        self.collateral_balances[sender] = self.collateral_balance(sender) + amount
        return self._tx()

    def borrow(self, amount: int, *, sender: str) -> str:
        if amount <= 0:
            raise LedgerRevert("borrow: amount must be positive")
        new_debt_value = self.debt_value(sender) + wad_mul(amount, self._price(self.debt_asset))
        if new_debt_value > self.borrowing_power(sender):
            raise LedgerRevert("borrow: insufficient borrowing power")
        self._token(self.debt_asset).transfer(self.market_address, sender, amount)
        self.debt_balances[sender] = self.debt_balance(sender) + amount
        return self._tx()

    def repay(self, amount: int, *, sender: str) -> str:
        if amount <= 0:
            raise LedgerRevert("repay: amount must be positive")
        if amount > self.debt_balance(sender):
            raise LedgerRevert("repay: amount exceeds debt")
        self._token(self.debt_asset).transfer_from(
            self.market_address, sender, self.market_address, amount
        )
        self.debt_balances[sender] = self.debt_balance(sender) - amount
        return self._tx()

    def liquidate(self, target: str, amount: int, *, sender: str) -> str:
        if amount <= 0:
            raise LedgerRevert("liquidate: amount must be positive")
        if self.health_factor(target) >= WAD:
            raise LedgerRevert("liquidate: position is healthy")
        debt = self.debt_balance(target)
        if amount > wad_mul(debt, self.params.close_factor) or amount > debt:
            raise LedgerRevert("liquidate: amount exceeds close factor")

        repaid_usd = wad_mul(amount, self._price(self.debt_asset))
        seized_usd = wad_mul(repaid_usd, WAD + self.params.liquidation_bonus)
        seized = wad_div(seized_usd, self._price(self.collateral_asset))
        seized = min(seized, self.collateral_balance(target))

        self._token(self.debt_asset).transfer_from(
            self.market_address, sender, self.market_address, amount
        )
        self.debt_balances[target] = debt - amount
        self.collateral_balances[target] = self.collateral_balance(target) - seized
        self._token(self.collateral_asset).transfer(self.market_address, sender, seized)
        return self._tx()


@dataclass(frozen=True)
class MarketAccounts:
    """Account roles created by bootstrap_market, in registration order."""
    owner: str
    users: tuple[str, ...]
    liquidators: tuple[str, ...]


def bootstrap_market(
    n_users: int = 10,
    n_liquidators: int = 5,
    setup: MarketSetup = MARKET_SETUP,
    params: MoneyMarketParams = MONEY_MARKET,
) -> tuple[InMemoryMoneyMarket, MarketAccounts]:
    """
    Deploy and seed a market the way the reference setup script does.

    Account 0 is the owner; the next n_users are general users, followed by
    n_liquidators liquidators. Every non-owner account receives
    setup.account_allocation of both tokens and grants the market an
    unbounded allowance.
    """
    owner = account_address(0)
    users = tuple(account_address(i) for i in range(1, n_users + 1))
    liquidators = tuple(
        account_address(i) for i in range(n_users + 1, n_users + n_liquidators + 1)
    )
    market = InMemoryMoneyMarket(owner=owner, params=params)

    market.set_asset_price(COLLATERAL_SYMBOL, setup.collateral_price, sender=owner)
    market.set_asset_price(DEBT_SYMBOL, setup.debt_price, sender=owner)

    market.mint(DEBT_SYMBOL, owner, setup.funding_reserve, sender=owner)
    market.mint(DEBT_SYMBOL, market.market_address, setup.market_liquidity, sender=owner)

    for account in users + liquidators:
        market.mint(COLLATERAL_SYMBOL, account, setup.account_allocation, sender=owner)
        market.mint(DEBT_SYMBOL, account, setup.account_allocation, sender=owner)
        market.approve(COLLATERAL_SYMBOL, market.market_address, MAX_UINT256, sender=account)
        market.approve(DEBT_SYMBOL, market.market_address, MAX_UINT256, sender=account)

    return market, MarketAccounts(owner=owner, users=users, liquidators=liquidators)
