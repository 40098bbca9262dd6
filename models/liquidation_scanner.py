"""
Liquidation eligibility scan.

First-match policy: accounts are visited in registration order and the
first one with HF < 1 and outstanding debt is selected, even when a later
account is more distressed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from models.errors import require
from models.fixed_point import WAD, wad_mul
from models.ledger_client import LedgerClient


@dataclass(frozen=True)
class LiquidationTarget:
    """Selected account and the amount of debt a liquidator may close (WAD)."""
    account: str
    index: int
    health_factor: int
    debt_balance: int
    close_factor: int
    close_amount: int


def close_amount(debt_balance: int, close_factor: int) -> int:
    """min(debt, debt * close_factor); the clamp guards a close factor above 1."""
    require(debt_balance >= 0, f"negative debt balance {debt_balance}")
    require(close_factor >= 0, f"negative close factor {close_factor}")
    return min(debt_balance, wad_mul(debt_balance, close_factor))


class LiquidationScanner:
    """Finds the first liquidatable account in a fixed account order."""

    def __init__(self, client: LedgerClient, accounts: Sequence[str]):
        self.client = client
        self.accounts = tuple(accounts)

    def scan(self) -> LiquidationTarget | None:
        for index, account in enumerate(self.accounts):
            hf = self.client.get_health_factor(account)
            if hf >= WAD:
                continue
            debt = self.client.get_debt_balance(account)
            if debt <= 0:
                continue
            close_factor = self.client.get_close_factor()
            return LiquidationTarget(
                account=account,
                index=index,
                health_factor=hf,
                debt_balance=debt,
                close_factor=close_factor,
                close_amount=close_amount(debt, close_factor),
            )
        return None
