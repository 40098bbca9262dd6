"""
Scenario generator: one randomized action per tick.

Each call picks one of six action kinds uniformly, then samples the
action's parameters from the configured half-open fraction intervals.
Amounts are computed from fresh ledger reads and whole-percent fractions
(see models/fixed_point.whole_percent). Actions whose amount comes out as
zero, or that would breach borrowing power, are returned already marked
as skipped so the executor records them without touching the ledger.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np

from config.params import SAMPLING, FractionRange, SamplingBounds
from models.errors import require
from models.fixed_point import WAD, percent_of, wad_mul, whole_percent
from models.ledger_client import LedgerClient
from models.price_shock import ShockKind, apply_price_shock


class ActionKind(str, Enum):
    DEPOSIT = "deposit"
    BORROW = "borrow"
    REPAY = "repay"
    LIQUIDATE = "liquidate"
    CRASH = "crash"
    GAIN = "gain"


ACTION_KINDS: tuple[ActionKind, ...] = tuple(ActionKind)


@dataclass(frozen=True)
class Action:
    """A generated action with its sampled parameters (amounts and prices in WAD)."""
    kind: ActionKind
    account: str | None = None
    fraction: float | None = None
    percent: int | None = None
    amount: int = 0
    price_before: int | None = None
    price_after: int | None = None
    skip_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None


class ScenarioGenerator:
    """Samples actions against the current ledger state."""

    def __init__(
        self,
        client: LedgerClient,
        users: Sequence[str],
        liquidators: Sequence[str],
        rng: np.random.Generator,
        bounds: SamplingBounds = SAMPLING,
    ):
        if not users:
            raise ValueError("ScenarioGenerator needs at least one general account")
        if not liquidators:
            raise ValueError("ScenarioGenerator needs at least one liquidator account")
        self.client = client
        self.users = tuple(users)
        self.liquidators = tuple(liquidators)
        self.rng = rng
        self.bounds = bounds

    def _pick(self, accounts: Sequence[str]) -> str:
        return accounts[int(self.rng.integers(len(accounts)))]

    def _fraction(self, interval: FractionRange) -> float:
        return float(self.rng.uniform(interval.low, interval.high))

    def next_action(self) -> Action:
        kind = ACTION_KINDS[int(self.rng.integers(len(ACTION_KINDS)))]

        if kind is ActionKind.DEPOSIT:
            account = self._pick(self.users)
            return self.deposit_action(account, self._fraction(self.bounds.deposit))
        if kind is ActionKind.BORROW:
            account = self._pick(self.users)
            return self.borrow_action(account, self._fraction(self.bounds.borrow))
        if kind is ActionKind.REPAY:
            account = self._pick(self.users)
            return self.repay_action(account, self._fraction(self.bounds.repay))
        if kind is ActionKind.LIQUIDATE:
            return self.liquidate_action(self._pick(self.liquidators))
        if kind is ActionKind.CRASH:
            return self.price_action(ShockKind.CRASH, self._fraction(self.bounds.crash))
        return self.price_action(ShockKind.GAIN, self._fraction(self.bounds.gain))

    def deposit_action(self, account: str, fraction: float) -> Action:
        percent = whole_percent(fraction)
        balance = self.client.balance_of(self.client.collateral_asset, account)
        amount = percent_of(balance, percent)
        require(amount >= 0, f"negative deposit amount {amount} for {account}")
        return Action(
            kind=ActionKind.DEPOSIT,
            account=account,
            fraction=fraction,
            percent=percent,
            amount=amount,
            skip_reason=None if amount > 0 else "low balance",
        )

    def borrow_action(self, account: str, fraction: float) -> Action:
        """
        Borrow a share of borrowing power, converted to whole debt tokens.

        USD power is divided by the debt price before rescaling to WAD, so
        the amount is truncated to whole tokens.
        """
        percent = whole_percent(fraction)
        borrowing_power = self.client.get_borrowing_power(account)
        price = self.client.get_asset_price(self.client.debt_asset)
        require(price >= 0, f"negative debt-asset price {price}")

        amount = 0
        skip_reason = None
        if price == 0:
            skip_reason = "no debt-asset price"
        else:
            amount = percent_of(borrowing_power, percent) // price * WAD
            require(amount >= 0, f"negative borrow amount {amount} for {account}")
            projected_debt = self.client.get_debt_value(account) + wad_mul(amount, price)
            if amount == 0 or projected_debt > borrowing_power:
                skip_reason = "no power"

        return Action(
            kind=ActionKind.BORROW,
            account=account,
            fraction=fraction,
            percent=percent,
            amount=amount,
            skip_reason=skip_reason,
        )

    def repay_action(self, account: str, fraction: float) -> Action:
        percent = whole_percent(fraction)
        debt = self.client.get_debt_balance(account)
        amount = percent_of(debt, percent)
        require(amount >= 0, f"negative repay amount {amount} for {account}")
        return Action(
            kind=ActionKind.REPAY,
            account=account,
            fraction=fraction,
            percent=percent,
            amount=amount,
            skip_reason=None if amount > 0 else "no debt",
        )

    def liquidate_action(self, liquidator: str) -> Action:
        # Target and amount are resolved by the scanner at execution time.
        return Action(kind=ActionKind.LIQUIDATE, account=liquidator)

    def price_action(self, kind: ShockKind, fraction: float) -> Action:
        asset = self.client.collateral_asset
        current = self.client.get_asset_price(asset)
        new_price = apply_price_shock(current, kind, fraction)
        return Action(
            kind=ActionKind(kind.value),
            fraction=fraction,
            percent=whole_percent(fraction),
            price_before=current,
            price_after=new_price,
        )
