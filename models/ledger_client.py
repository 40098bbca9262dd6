"""
Typed client over the external lending ledger, its price oracle and tokens.

The client owns no state. It forwards each request to a backend (a deployed
market or the in-memory model in models/money_market.py), normalizes
results to WAD integers and re-raises any backend failure as
LedgerCallFailed so the driver can abort the run with context.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from models.errors import LedgerCallFailed


@dataclass(frozen=True)
class TxReceipt:
    """Acknowledgement of a state-changing ledger call."""
    call: str
    tx_id: str
    args: dict = field(default_factory=dict)


@dataclass(frozen=True)
class UserPosition:
    """Snapshot of one account as reported by the ledger (WAD)."""
    collateral: int
    debt: int
    health_factor: int
    borrowing_power: int


class LedgerBackend(Protocol):
    """Raw calls the client needs from a money-market deployment."""

    market_address: str
    collateral_asset: str
    debt_asset: str

    def deposit(self, amount: int, *, sender: str) -> str: ...
    def borrow(self, amount: int, *, sender: str) -> str: ...
    def repay(self, amount: int, *, sender: str) -> str: ...
    def liquidate(self, target: str, amount: int, *, sender: str) -> str: ...

    def health_factor(self, account: str) -> int: ...
    def borrowing_power(self, account: str) -> int: ...
    def collateral_value(self, account: str) -> int: ...
    def debt_value(self, account: str) -> int: ...
    def debt_balance(self, account: str) -> int: ...
    def collateral_balance(self, account: str) -> int: ...
    def close_factor(self) -> int: ...
    def user_position(self, account: str) -> tuple[int, int, int, int]: ...

    def balance_of(self, asset: str, account: str) -> int: ...
    def transfer(self, asset: str, to: str, amount: int, *, sender: str) -> str: ...
    def approve(self, asset: str, spender: str, amount: int, *, sender: str) -> str: ...
    def mint(self, asset: str, account: str, amount: int, *, sender: str) -> str: ...

    def set_asset_price(self, asset: str, price: int, *, sender: str) -> str: ...
    def get_asset_price(self, asset: str) -> int: ...


class LedgerClient:
    """Request/response wrapper used by every simulation component."""

    def __init__(self, backend: LedgerBackend):
        self.backend = backend

    @property
    def market_address(self) -> str:
        return self.backend.market_address

    @property
    def collateral_asset(self) -> str:
        return self.backend.collateral_asset

    @property
    def debt_asset(self) -> str:
        return self.backend.debt_asset

    def _call(self, name: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            return fn(*args, **kwargs)
        except Exception as exc:
            raise LedgerCallFailed(name, exc) from exc

    def _transact(self, name: str, fn: Callable[..., Any], *args, sender: str, **receipt_args) -> TxReceipt:
        tx_id = self._call(name, fn, *args, sender=sender)
        return TxReceipt(call=name, tx_id=str(tx_id), args={"sender": sender, **receipt_args})

    def _query(self, name: str, fn: Callable[..., Any], *args) -> int:
        return int(self._call(name, fn, *args))

    # -- market actions -------------------------------------------------

    def deposit(self, account: str, amount: int) -> TxReceipt:
        return self._transact("deposit", self.backend.deposit, amount, sender=account, amount=amount)

    def borrow(self, account: str, amount: int) -> TxReceipt:
        return self._transact("borrow", self.backend.borrow, amount, sender=account, amount=amount)

    def repay(self, account: str, amount: int) -> TxReceipt:
        return self._transact("repay", self.backend.repay, amount, sender=account, amount=amount)

    def liquidate(self, liquidator: str, target: str, amount: int) -> TxReceipt:
        return self._transact(
            "liquidate", self.backend.liquidate, target, amount,
            sender=liquidator, target=target, amount=amount,
        )

    # -- market queries -------------------------------------------------

    def get_health_factor(self, account: str) -> int:
        return self._query("getHealthFactor", self.backend.health_factor, account)

    def get_borrowing_power(self, account: str) -> int:
        return self._query("getBorrowingPower", self.backend.borrowing_power, account)

    def get_collateral_value(self, account: str) -> int:
        return self._query("getCollateralValue", self.backend.collateral_value, account)

    def get_debt_value(self, account: str) -> int:
        return self._query("getDebtValue", self.backend.debt_value, account)

    def get_debt_balance(self, account: str) -> int:
        return self._query("debtBalances", self.backend.debt_balance, account)

    def get_collateral_balance(self, account: str) -> int:
        return self._query("collateralBalances", self.backend.collateral_balance, account)

    def get_close_factor(self) -> int:
        return self._query("closeFactor", self.backend.close_factor)

    def get_user_position(self, account: str) -> UserPosition:
        raw = self._call("getUserPosition", self.backend.user_position, account)
        collateral, debt, health_factor, borrowing_power = (int(v) for v in raw)
        return UserPosition(
            collateral=collateral,
            debt=debt,
            health_factor=health_factor,
            borrowing_power=borrowing_power,
        )

    # -- tokens ---------------------------------------------------------

    def balance_of(self, asset: str, account: str) -> int:
        return self._query("balanceOf", self.backend.balance_of, asset, account)

    def transfer(self, asset: str, to: str, amount: int, sender: str) -> TxReceipt:
        return self._transact(
            "transfer", self.backend.transfer, asset, to, amount,
            sender=sender, asset=asset, to=to, amount=amount,
        )

    def approve(self, asset: str, spender: str, amount: int, sender: str) -> TxReceipt:
        return self._transact(
            "approve", self.backend.approve, asset, spender, amount,
            sender=sender, asset=asset, spender=spender, amount=amount,
        )

    def mint(self, asset: str, account: str, amount: int, sender: str) -> TxReceipt:
        return self._transact(
            "mint", self.backend.mint, asset, account, amount,
            sender=sender, asset=asset, account=account, amount=amount,
        )

    # -- oracle ---------------------------------------------------------

    def set_asset_price(self, asset: str, price: int, sender: str) -> TxReceipt:
        return self._transact(
            "setAssetPrice", self.backend.set_asset_price, asset, price,
            sender=sender, asset=asset, price=price,
        )

    def get_asset_price(self, asset: str) -> int:
        return self._query("getAssetPrice", self.backend.get_asset_price, asset)
