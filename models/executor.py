"""
Action executor: turns one generated action into ledger calls.

Skipped actions produce a trace line and no calls. Repay and liquidate
first top up the acting account with the debt asset from the funding
account and approve the market, since simulated accounts are not assumed
to hold repayment capital. Any failing call propagates as LedgerCallFailed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from models.errors import require
from models.fixed_point import from_wad, wad_mul
from models.ledger_client import LedgerClient, TxReceipt
from models.liquidation_scanner import LiquidationScanner, LiquidationTarget
from models.price_shock import price_delta
from models.scenario import Action, ActionKind

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class TraceRecord:
    """Outcome of one tick's action."""
    tick: int
    kind: ActionKind
    description: str
    skipped: bool
    liquidated_usd: int = 0
    liquidation: LiquidationTarget | None = None
    tx_ids: tuple[str, ...] = ()
    price_delta: int = 0
    # Signed collateral price change (WAD), set on crash and gain only


class ActionExecutor:
    """Executes actions sequentially against a single ledger client."""

    def __init__(self, client: LedgerClient, scanner: LiquidationScanner, funder: str):
        self.client = client
        self.scanner = scanner
        self.funder = funder

    def execute(self, tick: int, action: Action) -> TraceRecord:
        if action.kind is ActionKind.LIQUIDATE:
            record = self._liquidate(tick, action)
        elif action.skipped:
            record = TraceRecord(
                tick=tick,
                kind=action.kind,
                description=f"Tx {tick}: User {action.account} {action.kind.value} skipped ({action.skip_reason})",
                skipped=True,
            )
        elif action.kind is ActionKind.DEPOSIT:
            record = self._deposit(tick, action)
        elif action.kind is ActionKind.BORROW:
            record = self._borrow(tick, action)
        elif action.kind is ActionKind.REPAY:
            record = self._repay(tick, action)
        else:
            record = self._set_price(tick, action)
        LOGGER.info(record.description)
        return record

    def _fund_and_approve(self, account: str, amount: int) -> list[TxReceipt]:
        asset = self.client.debt_asset
        return [
            self.client.transfer(asset, account, amount, sender=self.funder),
            self.client.approve(asset, self.client.market_address, amount, sender=account),
        ]

    def _deposit(self, tick: int, action: Action) -> TraceRecord:
        receipt = self.client.deposit(action.account, action.amount)
        return TraceRecord(
            tick=tick,
            kind=action.kind,
            description=f"Tx {tick}: User {action.account} deposited {from_wad(action.amount)} VL",
            skipped=False,
            tx_ids=(receipt.tx_id,),
        )

    def _borrow(self, tick: int, action: Action) -> TraceRecord:
        receipt = self.client.borrow(action.account, action.amount)
        return TraceRecord(
            tick=tick,
            kind=action.kind,
            description=f"Tx {tick}: User {action.account} borrowed {from_wad(action.amount)} SB",
            skipped=False,
            tx_ids=(receipt.tx_id,),
        )

    def _repay(self, tick: int, action: Action) -> TraceRecord:
        receipts = self._fund_and_approve(action.account, action.amount)
        receipts.append(self.client.repay(action.account, action.amount))
        return TraceRecord(
            tick=tick,
            kind=action.kind,
            description=f"Tx {tick}: User {action.account} repaid {from_wad(action.amount)} SB",
            skipped=False,
            tx_ids=tuple(r.tx_id for r in receipts),
        )

    def _liquidate(self, tick: int, action: Action) -> TraceRecord:
        """Scan and liquidate as one step; nothing else runs in between."""
        liquidator = action.account
        target = self.scanner.scan()
        if target is None or target.close_amount == 0:
            reason = "no liquidations" if target is None else "dust debt"
            return TraceRecord(
                tick=tick,
                kind=action.kind,
                description=f"Tx {tick}: Liq {liquidator} scanned, {reason}",
                skipped=True,
                liquidation=target,
            )

        require(
            target.close_amount <= target.debt_balance,
            f"close amount {target.close_amount} exceeds debt {target.debt_balance}",
        )
        receipts = self._fund_and_approve(liquidator, target.close_amount)
        receipts.append(self.client.liquidate(liquidator, target.account, target.close_amount))

        debt_price = self.client.get_asset_price(self.client.debt_asset)
        liquidated_usd = wad_mul(target.close_amount, debt_price)
        require(liquidated_usd >= 0, f"negative liquidated value {liquidated_usd}")
        return TraceRecord(
            tick=tick,
            kind=action.kind,
            description=(
                f"Tx {tick}: Liq {liquidator} liquidated {from_wad(target.close_amount)}"
                f" of user {target.account}"
            ),
            skipped=False,
            liquidated_usd=liquidated_usd,
            liquidation=target,
            tx_ids=tuple(r.tx_id for r in receipts),
        )

    def _set_price(self, tick: int, action: Action) -> TraceRecord:
        receipt = self.client.set_asset_price(
            self.client.collateral_asset, action.price_after, sender=self.funder
        )
        verb = "crashed" if action.kind is ActionKind.CRASH else "gained"
        share = 100 - action.percent if action.kind is ActionKind.CRASH else 100 + action.percent
        return TraceRecord(
            tick=tick,
            kind=action.kind,
            description=(
                f"Tx {tick}: Owner {verb} VL price to {from_wad(action.price_after)} USD"
                f" ({share}% of prev)"
            ),
            skipped=False,
            tx_ids=(receipt.tx_id,),
            price_delta=price_delta(action.price_before, action.price_after),
        )
