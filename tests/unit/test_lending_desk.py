"""
test_lending_desk.py - Tests for LendingDesk operations on a real ledger

Tests:
- Collateral deposit, borrowing and the capacity ceiling
- Interest accrual, repayment split and interest forgiveness
- Default lockout and liquidation
- Reclaiming collateral
- Privileged configuration
- Ledger rejections surfacing as TransferFailed
- Voucher wrapping through the desk
"""

import logging
import pytest
from datetime import timedelta
from decimal import Decimal

from credit_ledger import (
    LendingDesk, ExecuteResult, BURN_WALLET,
    compute_reclaim_collateral,
    AssetNotAccepted, InvalidAmount, OverBorrow, InsufficientLiquidity,
    UserInDefault, OutstandingDebt, OverRepayment, InsufficientCollateral,
    TransferFailed, Unauthorized, AccountNotInDefault, WalletNotRegistered,
)
from tests.lending_setup import START, build_lending_ledger, lending_config, ledger_state_equals


ONE_YEAR = timedelta(days=365)
HALF_YEAR = timedelta(seconds=365 * 24 * 60 * 60 // 2)


def _borrow_at_capacity(desk):
    """alice deposits 20 CORE (5500 DAI) and borrows all of it."""
    desk.add_collateral_and_borrow("alice", "CORE", Decimal("20"), Decimal("5500"))


def _dai_collateral_desk():
    """1000 DAI pool; carol posts 500 DAI as collateral, bob posts 100 CORE."""
    ledger = build_lending_ledger(reserve_dai=Decimal("1000"))
    ledger.set_balance("carol", "DAI", Decimal("500"))
    desk = LendingDesk(ledger, "CLENDING")
    desk.add_collateral("carol", "DAI", Decimal("500"))
    desk.add_collateral("bob", "CORE", Decimal("100"))
    return ledger, desk


class TestCollateral:
    """Depositing collateral."""

    def test_collateral_value(self, desk, lending_ledger):
        """20 CORE at 275 is worth 5500 DAI."""
        desk.add_collateral("alice", "CORE", Decimal("20"))
        assert desk.user_collateral_value("alice") == Decimal("5500")
        assert desk.user_collaterals("alice") == {"CORE": Decimal("20")}
        assert lending_ledger.get_balance("alice", "CORE") == Decimal("80")
        assert lending_ledger.get_balance("reserve", "CORE") == Decimal("20")

    def test_several_assets(self, desk):
        """Values of different assets add up."""
        desk.add_collateral("alice", "CORE", Decimal("20"))
        desk.add_collateral("alice", "WETH", Decimal("2"))
        assert desk.user_collateral_value("alice") == Decimal("9500")

    def test_repeated_deposits_are_distinct(self, desk, lending_ledger):
        """Two identical deposits at the same instant both apply."""
        desk.add_collateral("alice", "CORE", Decimal("10"))
        desk.add_collateral("alice", "CORE", Decimal("10"))
        assert desk.user_collaterals("alice") == {"CORE": Decimal("20")}
        assert len(lending_ledger.transaction_log) == 2

    def test_unlisted_asset(self, desk, lending_ledger):
        """Assets missing from the registry cannot be deposited."""
        before = lending_ledger.clone()
        with pytest.raises(AssetNotAccepted):
            desk.add_collateral("alice", "COREDAO", Decimal("1"))
        assert ledger_state_equals(before, lending_ledger)

    def test_more_than_held(self, desk, lending_ledger, caplog):
        """The ledger refuses to overdraw the user and nothing changes."""
        before = lending_ledger.clone()
        with caplog.at_level(logging.WARNING, logger="credit_ledger.lending"):
            with pytest.raises(TransferFailed, match="min"):
                desk.add_collateral("alice", "CORE", Decimal("101"))
        assert "add_collateral on CLENDING rejected" in caplog.text
        assert ledger_state_equals(before, lending_ledger)
        assert desk.user_collaterals("alice") == {}


class TestBorrow:
    """Borrowing against collateral."""

    def test_borrow_full_value(self, desk, lending_ledger):
        """Borrowing exactly the collateral value succeeds."""
        desk.add_collateral("alice", "CORE", Decimal("20"))
        desk.borrow("alice", Decimal("5500"))
        assert lending_ledger.get_balance("alice", "DAI") == Decimal("5500")
        assert lending_ledger.get_balance("reserve", "DAI") == Decimal("994500")
        summary = desk.account_summary("alice")
        assert summary.loan_to_value_percent == Decimal("100")
        assert summary.borrowing_capacity == Decimal("0")

    def test_borrow_one_wei_more(self, desk, lending_ledger):
        """Anything above the collateral value is refused."""
        desk.add_collateral("alice", "CORE", Decimal("20"))
        desk.borrow("alice", Decimal("5500"))
        before = lending_ledger.clone()
        with pytest.raises(OverBorrow):
            desk.borrow("alice", Decimal("1e-18"))
        assert ledger_state_equals(before, lending_ledger)

    def test_borrow_without_collateral(self, desk):
        """No collateral, no credit."""
        with pytest.raises(OverBorrow):
            desk.borrow("carol", Decimal("1"))

    def test_invalid_amounts(self, desk):
        """Zero and over-precise amounts are rejected before anything is built."""
        desk.add_collateral("alice", "CORE", Decimal("20"))
        with pytest.raises(InvalidAmount):
            desk.borrow("alice", Decimal("0"))
        with pytest.raises(InvalidAmount):
            desk.borrow("alice", Decimal("1e-19"))

    def test_insufficient_liquidity(self):
        """The reserve cannot lend more than it holds."""
        ledger = build_lending_ledger(reserve_dai=Decimal("100"))
        desk = LendingDesk(ledger, "CLENDING")
        desk.add_collateral("alice", "CORE", Decimal("20"))
        with pytest.raises(InsufficientLiquidity):
            desk.borrow("alice", Decimal("500"))

    def test_credit_collateral_is_not_lendable(self):
        """DAI posted as collateral stays out of the lending pool."""
        ledger, desk = _dai_collateral_desk()
        assert ledger.get_balance("reserve", "DAI") == Decimal("1500")
        with pytest.raises(InsufficientLiquidity):
            desk.borrow("bob", Decimal("1001"))
        desk.borrow("bob", Decimal("1000"))
        assert ledger.get_balance("reserve", "DAI") == Decimal("500")

    def test_own_credit_deposit_does_not_fund_loan(self):
        """Depositing DAI and borrowing DAI in one step needs pool liquidity."""
        ledger = build_lending_ledger(reserve_dai=Decimal("0"))
        ledger.set_balance("carol", "DAI", Decimal("500"))
        desk = LendingDesk(ledger, "CLENDING")
        with pytest.raises(InsufficientLiquidity):
            desk.add_collateral_and_borrow("carol", "DAI", Decimal("500"), Decimal("500"))
        assert ledger.get_balance("carol", "DAI") == Decimal("500")

    def test_deposit_and_borrow_together(self, desk, lending_ledger):
        """One transaction carries the deposit and the loan."""
        tx = desk.add_collateral_and_borrow("alice", "CORE", Decimal("20"), Decimal("5000"))
        assert len(tx.moves) == 2
        assert lending_ledger.get_balance("alice", "DAI") == Decimal("5000")
        assert desk.user_total_debt("alice") == Decimal("5000")


class TestInterestAndRepayment:
    """Interest accrual and repayment."""

    def test_one_year_of_interest(self, desk, lending_ledger):
        """10000 borrowed at 20% owes 12000 after a year."""
        desk.set_collaterability("admin", "CORE", Decimal("5500"))
        desk.add_collateral_and_borrow("alice", "CORE", Decimal("20"), Decimal("10000"))
        lending_ledger.advance_time(START + ONE_YEAR)
        assert desk.accrued_interest("alice") == Decimal("2000")
        assert desk.user_total_debt("alice") == Decimal("12000")

    def test_repay_with_collateral_asset(self, desk, lending_ledger):
        """1 CORE worth 5500 pays the interest and 3500 of principal."""
        desk.set_collaterability("admin", "CORE", Decimal("5500"))
        desk.add_collateral_and_borrow("alice", "CORE", Decimal("20"), Decimal("10000"))
        lending_ledger.advance_time(START + ONE_YEAR)

        desk.repay_loan("alice", "CORE", Decimal("1"))

        assert desk.user_total_debt("alice") == Decimal("6500")
        assert desk.user_total_debt("alice") >= Decimal("4500")
        assert lending_ledger.get_balance("treasury", "CORE") == Decimal("0.363636363636363636")
        assert lending_ledger.get_balance("reserve", "CORE") == Decimal("20.636363636363636364")
        assert lending_ledger.get_balance("alice", "CORE") == Decimal("79")
        assert desk.state.total_interest_paid == Decimal("2000")

    def test_partial_repayment_forgives_rest_of_interest(self, desk, lending_ledger):
        """Paying 100 of 500 accrued interest restarts the clock on the principal."""
        desk.add_collateral_and_borrow("alice", "CORE", Decimal("20"), Decimal("5000"))
        lending_ledger.advance_time(START + HALF_YEAR)
        assert desk.user_total_debt("alice") == Decimal("5500")

        desk.repay_loan("alice", "DAI", Decimal("100"))

        assert desk.user_total_debt("alice") == Decimal("5000")
        assert lending_ledger.get_balance("treasury", "DAI") == Decimal("100")
        assert desk.state.account("alice").debt_clock == START + HALF_YEAR

    def test_full_repayment_clears_debt(self, desk):
        """Repaying the principal at once leaves nothing owed."""
        desk.add_collateral_and_borrow("alice", "CORE", Decimal("20"), Decimal("100"))
        desk.repay_loan("alice", "DAI", Decimal("100"))
        account = desk.state.account("alice")
        assert account.principal == Decimal("0")
        assert account.debt_clock is None

    def test_over_repayment(self, desk, lending_ledger):
        """Paying more than is owed is rejected."""
        desk.add_collateral_and_borrow("alice", "CORE", Decimal("20"), Decimal("100"))
        before = lending_ledger.clone()
        with pytest.raises(OverRepayment):
            desk.repay_loan("alice", "CORE", Decimal("1"))
        assert ledger_state_equals(before, lending_ledger)

    def test_repay_with_unlisted_asset(self, desk):
        """Only accepted assets repay."""
        desk.add_collateral_and_borrow("alice", "CORE", Decimal("20"), Decimal("100"))
        with pytest.raises(AssetNotAccepted):
            desk.repay_loan("alice", "LP1", Decimal("1"))

    def test_interest_follows_treasury(self, desk, lending_ledger):
        """A new treasury receives subsequent interest."""
        desk.set_treasury("admin", "carol")
        desk.add_collateral_and_borrow("alice", "CORE", Decimal("20"), Decimal("5000"))
        lending_ledger.advance_time(START + HALF_YEAR)
        desk.repay_loan("alice", "DAI", Decimal("100"))
        assert lending_ledger.get_balance("carol", "DAI") == Decimal("100")
        assert lending_ledger.get_balance("treasury", "DAI") == Decimal("0")


class TestReclaim:
    """Reclaiming collateral."""

    def test_reclaim_without_debt(self, desk, lending_ledger):
        """Collateral comes back when nothing is owed."""
        desk.add_collateral("alice", "CORE", Decimal("20"))
        desk.reclaim_collateral("alice", "CORE", Decimal("5"))
        assert desk.user_collaterals("alice") == {"CORE": Decimal("15")}
        assert lending_ledger.get_balance("alice", "CORE") == Decimal("85")

    def test_any_debt_blocks_reclaim(self, desk):
        """Even a tiny loan locks all collateral."""
        desk.add_collateral("alice", "CORE", Decimal("20"))
        desk.add_collateral("alice", "WETH", Decimal("1"))
        desk.borrow("alice", Decimal("1"))
        with pytest.raises(OutstandingDebt):
            desk.reclaim_collateral("alice", "WETH", Decimal("1"))

    def test_reclaim_more_than_deposited(self, desk):
        """Reclaims are limited to the deposited balance."""
        desk.add_collateral("alice", "CORE", Decimal("20"))
        with pytest.raises(InsufficientCollateral):
            desk.reclaim_collateral("alice", "CORE", Decimal("21"))

    def test_reclaim_all_after_repayment(self, desk, lending_ledger):
        """Once repaid, every deposit comes back in one transaction."""
        desk.add_collateral("alice", "WETH", Decimal("1"))
        desk.add_collateral_and_borrow("alice", "CORE", Decimal("20"), Decimal("100"))
        desk.repay_loan("alice", "DAI", Decimal("100"))

        tx = desk.reclaim_all_collateral("alice")

        assert len(tx.moves) == 2
        assert desk.user_collaterals("alice") == {}
        assert lending_ledger.get_balance("alice", "CORE") == Decimal("100")
        assert lending_ledger.get_balance("alice", "WETH") == Decimal("10")

    def test_reclaim_all_nothing_deposited(self, desk):
        """Nothing to reclaim is invalid."""
        with pytest.raises(InvalidAmount):
            desk.reclaim_all_collateral("bob")

    def test_stale_reclaim_rejected(self, desk, lending_ledger):
        """A reclaim built before a borrow cannot execute after it."""
        desk.add_collateral("alice", "CORE", Decimal("20"))
        pending = compute_reclaim_collateral(lending_ledger, "CLENDING", "alice", "CORE", Decimal("20"))
        desk.borrow("alice", Decimal("100"))

        assert lending_ledger.execute(pending) == ExecuteResult.REJECTED
        assert "stale" in lending_ledger.last_rejection
        assert lending_ledger.get_balance("reserve", "CORE") == Decimal("20")


    def test_credit_collateral_reclaimable_after_pool_drained(self):
        """A DAI depositor with no debt gets the deposit back after others borrow the pool."""
        ledger, desk = _dai_collateral_desk()
        desk.borrow("bob", Decimal("1000"))

        desk.reclaim_collateral("carol", "DAI", Decimal("500"))
        assert ledger.get_balance("carol", "DAI") == Decimal("500")
        assert ledger.get_balance("reserve", "DAI") == Decimal("0")
        assert desk.user_collaterals("carol") == {}


class TestDefault:
    """Default lockout and liquidation."""

    def _default_alice(self, desk, ledger):
        _borrow_at_capacity(desk)
        ledger.advance_time(START + ONE_YEAR)  # 6600 owed against 5500
        assert desk.is_in_default("alice")

    def test_not_in_default_at_threshold(self, desk, lending_ledger):
        """Debt at exactly 110% of collateral value is still healthy."""
        _borrow_at_capacity(desk)
        lending_ledger.advance_time(START + HALF_YEAR)
        assert desk.user_total_debt("alice") == Decimal("6050")
        assert not desk.is_in_default("alice")
        lending_ledger.advance_time(START + HALF_YEAR + timedelta(seconds=1))
        assert desk.is_in_default("alice")

    def test_defaulted_account_is_locked(self, desk, lending_ledger):
        """Borrow, repay and reclaim all refuse a defaulted account."""
        self._default_alice(desk, lending_ledger)
        with pytest.raises(UserInDefault):
            desk.borrow("alice", Decimal("1"))
        with pytest.raises(UserInDefault):
            desk.repay_loan("alice", "DAI", Decimal("100"))
        with pytest.raises(UserInDefault):
            desk.reclaim_collateral("alice", "CORE", Decimal("1"))
        with pytest.raises(UserInDefault):
            desk.reclaim_all_collateral("alice")

    def test_delisting_pushes_into_default(self, desk):
        """Collateral rated zero is worth nothing."""
        _borrow_at_capacity(desk)
        desk.set_collaterability("admin", "CORE", Decimal("0"))
        assert desk.user_collateral_value("alice") == Decimal("0")
        assert desk.is_in_default("alice")

    def test_stricter_terms_push_into_default(self, desk, lending_ledger):
        """Lowering the threshold to 100% defaults a fully drawn account once interest accrues."""
        _borrow_at_capacity(desk)
        desk.change_loan_terms("admin", Decimal("20"), Decimal("100"))
        lending_ledger.advance_time(START + timedelta(days=1))
        assert desk.is_in_default("alice")

    def test_liquidation(self, desk, lending_ledger):
        """Collateral goes to the treasury and the debt is written off."""
        self._default_alice(desk, lending_ledger)
        desk.liquidate("admin", "alice")

        assert lending_ledger.get_balance("treasury", "CORE") == Decimal("20")
        assert lending_ledger.get_balance("reserve", "CORE") == Decimal("0")
        assert desk.user_total_debt("alice") == Decimal("0")
        assert desk.user_collaterals("alice") == {}
        assert desk.state.total_liquidated_debt == Decimal("6600")
        # alice keeps the borrowed DAI
        assert lending_ledger.get_balance("alice", "DAI") == Decimal("5500")

    def test_liquidation_to_dedicated_wallet(self):
        """A configured liquidation wallet receives the seized collateral."""
        ledger = build_lending_ledger(config=lending_config(liquidation_wallet="carol"))
        desk = LendingDesk(ledger, "CLENDING")
        self._default_alice(desk, ledger)
        desk.liquidate("admin", "alice")
        assert ledger.get_balance("carol", "CORE") == Decimal("20")

    def test_liquidation_requires_admin(self, desk, lending_ledger):
        """Only the admin wallet may liquidate."""
        self._default_alice(desk, lending_ledger)
        with pytest.raises(Unauthorized):
            desk.liquidate("bob", "alice")

    def test_healthy_account_cannot_be_liquidated(self, desk):
        """Liquidation needs a default."""
        _borrow_at_capacity(desk)
        with pytest.raises(AccountNotInDefault):
            desk.liquidate("admin", "alice")

    def test_liquidate_credit_collateral_after_pool_drained(self):
        """Seizing DAI collateral works when the rest of the pool is lent out."""
        ledger, desk = _dai_collateral_desk()
        desk.borrow("carol", Decimal("500"))
        desk.borrow("bob", Decimal("500"))
        assert ledger.get_balance("reserve", "DAI") == Decimal("500")

        ledger.advance_time(START + ONE_YEAR)  # 600 owed against 500
        assert desk.is_in_default("carol")
        desk.liquidate("admin", "carol")

        assert ledger.get_balance("treasury", "DAI") == Decimal("500")
        assert ledger.get_balance("reserve", "DAI") == Decimal("0")
        assert desk.state.total_liquidated_debt == Decimal("600")

    def test_account_usable_after_liquidation(self, desk, lending_ledger):
        """A liquidated account starts over from zero."""
        self._default_alice(desk, lending_ledger)
        desk.liquidate("admin", "alice")
        desk.add_collateral_and_borrow("alice", "CORE", Decimal("10"), Decimal("1000"))
        assert desk.user_total_debt("alice") == Decimal("1000")


class TestAdministration:
    """Privileged configuration."""

    def test_non_admin_rejected(self, desk, lending_ledger):
        """Configuration changes need the admin wallet."""
        before = lending_ledger.clone()
        with pytest.raises(Unauthorized):
            desk.set_collaterability("alice", "CORE", Decimal("100000"))
        with pytest.raises(Unauthorized):
            desk.change_loan_terms("alice", Decimal("0"), Decimal("1000"))
        with pytest.raises(Unauthorized):
            desk.set_treasury("alice", "alice")
        assert ledger_state_equals(before, lending_ledger)

    def test_list_new_asset(self, desk):
        """A newly listed asset becomes acceptable collateral."""
        with pytest.raises(AssetNotAccepted):
            desk.collaterability_of_token("COREDAO")
        desk.set_collaterability("admin", "COREDAO", Decimal("3"))
        assert desk.collaterability_of_token("COREDAO") == Decimal("3")

    def test_delist_asset(self, desk):
        """A delisted asset is refused but deposited balances stay reclaimable."""
        desk.add_collateral("alice", "WETH", Decimal("1"))
        desk.set_collaterability("admin", "WETH", Decimal("2000"), accepted=False)
        with pytest.raises(AssetNotAccepted):
            desk.add_collateral("alice", "WETH", Decimal("1"))
        desk.reclaim_collateral("alice", "WETH", Decimal("1"))
        assert desk.user_collaterals("alice") == {}

    def test_change_loan_terms(self, desk, lending_ledger):
        """A new rate applies to open debt clocks."""
        desk.add_collateral_and_borrow("alice", "CORE", Decimal("20"), Decimal("1000"))
        desk.change_loan_terms("admin", Decimal("10"), Decimal("150"))
        lending_ledger.advance_time(START + ONE_YEAR)
        assert desk.accrued_interest("alice") == Decimal("100")
        assert desk.state.config.default_threshold_percent == Decimal("150")

    def test_invalid_loan_terms(self, desk):
        """Negative rates are invalid."""
        with pytest.raises(InvalidAmount):
            desk.change_loan_terms("admin", Decimal("-1"), Decimal("110"))

    def test_set_treasury_unknown_wallet(self, desk):
        """The treasury must be a registered wallet."""
        with pytest.raises(WalletNotRegistered):
            desk.set_treasury("admin", "ghost")

    def test_collaterability_reads(self, desk):
        """Accepted assets report their rate."""
        assert desk.collaterability_of_token("CORE") == Decimal("275")
        assert desk.collaterability_of_token("WETH") == Decimal("2000")


class TestVouchers:
    """Voucher wrapping through the desk."""

    def test_wrap(self, desk, lending_ledger):
        """1 LP2 becomes 9250 governance tokens."""
        desk.wrap_voucher("alice", "LP2", Decimal("1"))
        assert lending_ledger.get_balance("alice", "COREDAO") == Decimal("9250")
        assert lending_ledger.get_balance(BURN_WALLET, "LP2") == Decimal("1")

    def test_no_wrapper_attached(self, lending_ledger):
        """Without a wrapper symbol the desk cannot wrap."""
        desk = LendingDesk(lending_ledger, "CLENDING")
        with pytest.raises(ValueError):
            desk.wrap_voucher("alice", "LP1", Decimal("1"))

    def test_wrap_is_independent_of_lending(self, desk):
        """Wrapping does not touch the facility state."""
        before = desk.state
        desk.wrap_voucher("alice", "LP1", Decimal("1"))
        assert desk.state == before
