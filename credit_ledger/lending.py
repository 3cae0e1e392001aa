"""
lending.py - Stateful facade over the credit facility and voucher wrapper.

LendingDesk binds a Ledger to one credit facility unit (and optionally one
voucher wrapper unit). Each mutating call builds a PendingTransaction with
the matching compute_* function and executes it; a transaction the ledger
rejects surfaces as TransferFailed and leaves the ledger unchanged.

Usage:
    desk = LendingDesk(ledger, "CLENDING", voucher_symbol="WRAPPER")
    desk.add_collateral("alice", "CORE", Decimal("20"))
    desk.borrow("alice", Decimal("5500"))
    desk.user_total_debt("alice")
"""

from __future__ import annotations
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from .asset_registry import collaterability_of
from .core import ExecuteResult, PendingTransaction, Transaction, TransferFailed
from .ledger import Ledger
from .units.credit_facility import (
    AccountSummary,
    FacilityState,
    load_credit_facility,
    calculate_account_summary,
    compute_add_collateral,
    compute_add_collateral_and_borrow,
    compute_borrow,
    compute_change_loan_terms,
    compute_liquidation,
    compute_reclaim_all_collateral,
    compute_reclaim_collateral,
    compute_repay_loan,
    compute_set_collaterability,
    compute_set_treasury,
)
from .units.voucher_wrapper import compute_wrap_voucher

logger = logging.getLogger(__name__)


class LendingDesk:
    """
    Caller-facing operations of a credit facility.

    Caller identity is always an explicit argument; privileged operations
    compare it against the facility's admin wallet.
    """

    def __init__(self, ledger: Ledger, facility_symbol: str, voucher_symbol: Optional[str] = None):
        self.ledger = ledger
        self.facility_symbol = facility_symbol
        self.voucher_symbol = voucher_symbol

    def _submit(self, pending: PendingTransaction, operation: str) -> Transaction:
        result = self.ledger.execute(pending)
        if result == ExecuteResult.REJECTED:
            reason = self.ledger.last_rejection
            logger.warning("%s on %s rejected: %s", operation, self.facility_symbol, reason)
            raise TransferFailed(f"{operation} rejected by ledger: {reason}")

        tx = next(t for t in reversed(self.ledger.transaction_log) if t.intent_id == pending.intent_id)
        if result == ExecuteResult.ALREADY_APPLIED:
            logger.info("%s already applied as %s", operation, tx.exec_id)
        else:
            logger.info("%s applied as %s (%d moves)", operation, tx.exec_id, len(tx.moves))
        return tx

    # ------------------------------------------------------------------
    # Borrower operations
    # ------------------------------------------------------------------

    def add_collateral(self, user: str, asset: str, amount: Any) -> Transaction:
        pending = compute_add_collateral(self.ledger, self.facility_symbol, user, asset, amount)
        return self._submit(pending, "add_collateral")

    def add_collateral_and_borrow(
        self, user: str, asset: str, collateral_amount: Any, borrow_amount: Any
    ) -> Transaction:
        pending = compute_add_collateral_and_borrow(
            self.ledger, self.facility_symbol, user, asset, collateral_amount, borrow_amount
        )
        return self._submit(pending, "add_collateral_and_borrow")

    def borrow(self, user: str, amount: Any) -> Transaction:
        pending = compute_borrow(self.ledger, self.facility_symbol, user, amount)
        return self._submit(pending, "borrow")

    def repay_loan(self, user: str, asset: str, amount: Any) -> Transaction:
        pending = compute_repay_loan(self.ledger, self.facility_symbol, user, asset, amount)
        return self._submit(pending, "repay_loan")

    def reclaim_collateral(self, user: str, asset: str, amount: Any) -> Transaction:
        pending = compute_reclaim_collateral(self.ledger, self.facility_symbol, user, asset, amount)
        return self._submit(pending, "reclaim_collateral")

    def reclaim_all_collateral(self, user: str) -> Transaction:
        pending = compute_reclaim_all_collateral(self.ledger, self.facility_symbol, user)
        return self._submit(pending, "reclaim_all_collateral")

    def wrap_voucher(self, user: str, kind: str, amount: Any) -> Transaction:
        if self.voucher_symbol is None:
            raise ValueError(f"No voucher wrapper attached to {self.facility_symbol}")
        pending = compute_wrap_voucher(self.ledger, self.voucher_symbol, user, kind, amount)
        return self._submit(pending, "wrap_voucher")

    # ------------------------------------------------------------------
    # Privileged operations
    # ------------------------------------------------------------------

    def liquidate(self, caller: str, target: str) -> Transaction:
        pending = compute_liquidation(self.ledger, self.facility_symbol, caller, target)
        return self._submit(pending, "liquidate")

    def set_collaterability(self, caller: str, asset: str, rate: Any, accepted: bool = True) -> Transaction:
        pending = compute_set_collaterability(
            self.ledger, self.facility_symbol, caller, asset, rate, accepted
        )
        return self._submit(pending, "set_collaterability")

    def change_loan_terms(
        self, caller: str, yearly_interest_rate_percent: Any, default_threshold_percent: Any
    ) -> Transaction:
        pending = compute_change_loan_terms(
            self.ledger, self.facility_symbol, caller,
            yearly_interest_rate_percent, default_threshold_percent,
        )
        return self._submit(pending, "change_loan_terms")

    def set_treasury(self, caller: str, wallet: str) -> Transaction:
        pending = compute_set_treasury(self.ledger, self.facility_symbol, caller, wallet)
        return self._submit(pending, "set_treasury")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def state(self) -> FacilityState:
        return load_credit_facility(self.ledger, self.facility_symbol)

    def account_summary(self, user: str) -> AccountSummary:
        summary = calculate_account_summary(self.state, user, self.ledger.current_time)
        logger.debug("summary %s at %s: %s", user, self.ledger.current_time, summary)
        return summary

    def user_collateral_value(self, user: str) -> Decimal:
        return self.account_summary(user).collateral_value

    def user_total_debt(self, user: str) -> Decimal:
        return self.account_summary(user).total_debt

    def accrued_interest(self, user: str) -> Decimal:
        return self.account_summary(user).accrued_interest

    def is_in_default(self, user: str) -> bool:
        return self.account_summary(user).in_default

    def collaterability_of_token(self, asset: str) -> Decimal:
        """Raises AssetNotAccepted for unknown, delisted or zero-rate assets."""
        return collaterability_of(self.state.assets, asset)

    def user_collaterals(self, user: str) -> Dict[str, Decimal]:
        return dict(self.state.account(user).collateral)
