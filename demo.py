#!/usr/bin/env python3
"""
demo.py - Walkthrough: A Collateralized Loan Step by Step

Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL SEE:
  1-3:  Setup         - Tokens, wallets, the credit facility, issuance
  4-6:  Borrowing     - Collateral value, the 100% ceiling, a loan
  7-9:  Time          - Interest accrual, repayment split, forgiveness
  10-11: Default      - Lockout and liquidation
  12:   Vouchers      - Burning LP vouchers into the governance token
  13:   Conservation  - Every unit still sums to zero

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
    python demo.py --log     # Also show the desk's INFO log lines
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import logging
import sys

from credit_ledger import (
    Ledger, LendingDesk, LendingConfig, Move,
    build_transaction, create_token, create_voucher_token,
    create_credit_facility, create_voucher_wrapper,
    SYSTEM_WALLET, BURN_WALLET,
    OverBorrow, UserInDefault,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Parameters of the walkthrough. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1)

    reserve_dai: Decimal = Decimal("1000000")
    alice_core: Decimal = Decimal("100")
    bob_core: Decimal = Decimal("100")
    alice_lp1: Decimal = Decimal("10")

    core_rate: Decimal = Decimal("5500")
    yearly_interest_rate_percent: Decimal = Decimal("20")
    default_threshold_percent: Decimal = Decimal("110")


CONFIG = DemoConfig()
QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with its objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def show_account(desk: LendingDesk, user: str):
    summary = desk.account_summary(user)
    print(f"  {user}: collateral {desk.user_collaterals(user)}")
    print(f"    value {summary.collateral_value:,.2f}  principal {summary.principal:,.2f}  "
          f"interest {summary.accrued_interest:,.2f}  debt {summary.total_debt:,.2f}")
    print(f"    LTV {summary.loan_to_value_percent:.2f}%  in default: {summary.in_default}")


# ============================================================================
# SETUP (Steps 1-3)
# ============================================================================

def step_01_units_and_wallets() -> Ledger:
    step_header(1, "Tokens and Wallets",
        "Register the credit asset, the collateral, the vouchers and every participant.")

    ledger = Ledger("lending", CONFIG.start_time, verbose=False)
    for unit in (
        create_token("DAI", "Dai Stablecoin"),
        create_token("CORE", "cVault.finance"),
        create_token("COREDAO", "CoreDAO governance token"),
        create_voucher_token("LP1", "LP1 voucher"),
    ):
        ledger.register_unit(unit)
    for wallet in ("alice", "bob", "reserve", "treasury", "admin"):
        ledger.register_wallet(wallet)

    print(f"Units:   {ledger.list_units()}")
    print(f"Wallets: {sorted(ledger.list_wallets())}")
    return ledger


def step_02_facility(ledger: Ledger) -> LendingDesk:
    step_header(2, "The Credit Facility",
        "A facility is a unit whose state is the asset registry and the account table.")

    config = LendingConfig(
        credit_asset="DAI",
        reserve_wallet="reserve",
        treasury_wallet="treasury",
        admin_wallet="admin",
        yearly_interest_rate_percent=CONFIG.yearly_interest_rate_percent,
        default_threshold_percent=CONFIG.default_threshold_percent,
    )
    ledger.register_unit(create_credit_facility(
        "CLENDING", "Core Lending", config, {"CORE": CONFIG.core_rate, "DAI": Decimal("1")}
    ))
    ledger.register_unit(create_voucher_wrapper("WRAPPER", "CoreDAO voucher wrapper", "COREDAO"))

    desk = LendingDesk(ledger, "CLENDING", voucher_symbol="WRAPPER")
    print(f"1 CORE is worth {desk.collaterability_of_token('CORE')} DAI")
    print(f"Interest {config.yearly_interest_rate_percent}% a year, "
          f"default above {config.default_threshold_percent}% of collateral value")
    return desk


def step_03_issuance(ledger: Ledger):
    step_header(3, "Issuance",
        "Value enters through SYSTEM_WALLET, so every unit's total supply stays zero.")

    ledger.execute(build_transaction(ledger, [
        Move(CONFIG.reserve_dai, "DAI", SYSTEM_WALLET, "reserve", "seed_reserve"),
        Move(CONFIG.alice_core, "CORE", SYSTEM_WALLET, "alice", "seed_alice"),
        Move(CONFIG.bob_core, "CORE", SYSTEM_WALLET, "bob", "seed_bob"),
        Move(CONFIG.alice_lp1, "LP1", SYSTEM_WALLET, "alice", "seed_vouchers"),
    ]))
    for unit in ("DAI", "CORE", "LP1"):
        print(f"  {unit:5} circulating {ledger.circulating_supply(unit):>12,}  total {ledger.total_supply(unit)}")


# ============================================================================
# BORROWING (Steps 4-6)
# ============================================================================

def step_04_collateral(desk: LendingDesk):
    step_header(4, "Posting Collateral",
        "Deposited assets move to the reserve and are valued at their fixed rate.")
    desk.add_collateral("alice", "CORE", Decimal("20"))
    show_account(desk, "alice")


def step_05_ceiling(desk: LendingDesk):
    step_header(5, "The Borrowing Ceiling",
        "Debt may reach 100% of collateral value at borrow time, never more.")
    limit = desk.user_collateral_value("alice")
    try:
        desk.borrow("alice", limit + 1)
    except OverBorrow as e:
        print(f"  borrow({limit + 1}) refused: {e}")


def step_06_borrow(desk: LendingDesk):
    step_header(6, "Borrowing",
        "The loan is paid out of the reserve and the debt clock starts.")
    desk.borrow("alice", Decimal("10000"))
    print(f"  alice DAI: {desk.ledger.get_balance('alice', 'DAI'):,}")
    show_account(desk, "alice")


# ============================================================================
# TIME (Steps 7-9)
# ============================================================================

def step_07_interest(desk: LendingDesk):
    step_header(7, "Interest Accrual",
        "Interest is simple and computed lazily from the logical clock.")
    desk.ledger.advance_time(CONFIG.start_time + timedelta(days=365))
    print(f"  one year later: {desk.ledger.current_time}")
    show_account(desk, "alice")


def step_08_repay(desk: LendingDesk):
    step_header(8, "Repayment",
        "Repayment value pays interest first (to the treasury), then principal (to the reserve).")
    tx = desk.repay_loan("alice", "CORE", Decimal("1"))
    for move in tx.moves:
        print(f"  {move.quantity} {move.unit_symbol}: {move.source} -> {move.dest} ({move.contract_id})")
    show_account(desk, "alice")


def step_09_forgiveness(desk: LendingDesk):
    step_header(9, "Partial Repayment",
        "Every repayment restarts the debt clock; interest it did not cover is forgiven.")
    desk.ledger.advance_time(CONFIG.start_time + timedelta(days=365 * 2))
    show_account(desk, "alice")
    desk.repay_loan("alice", "DAI", Decimal("100"))
    print("  after repaying 100 DAI:")
    show_account(desk, "alice")


# ============================================================================
# DEFAULT (Steps 10-11)
# ============================================================================

def step_10_default(desk: LendingDesk):
    step_header(10, "Default",
        "Above the threshold an account is locked out of borrow, repay and reclaim.")
    desk.add_collateral_and_borrow("bob", "CORE", Decimal("1"), Decimal("5500"))
    desk.ledger.advance_time(desk.ledger.current_time + timedelta(days=365))
    show_account(desk, "bob")
    try:
        desk.repay_loan("bob", "DAI", Decimal("100"))
    except UserInDefault as e:
        print(f"  repay refused: {e}")


def step_11_liquidation(desk: LendingDesk):
    step_header(11, "Liquidation",
        "The admin seizes the collateral; the debt is written off.")
    desk.liquidate("admin", "bob")
    show_account(desk, "bob")
    print(f"  treasury CORE: {desk.ledger.get_balance('treasury', 'CORE')}")
    print(f"  written off so far: {desk.state.total_liquidated_debt:,.2f}")


# ============================================================================
# VOUCHERS AND CONSERVATION (Steps 12-13)
# ============================================================================

def step_12_vouchers(desk: LendingDesk):
    step_header(12, "Voucher Wrapping",
        "Vouchers are burned and governance tokens issued at a fixed ratio.")
    desk.wrap_voucher("alice", "LP1", Decimal("2"))
    ledger = desk.ledger
    print(f"  alice COREDAO: {ledger.get_balance('alice', 'COREDAO')}")
    print(f"  burned LP1:    {ledger.get_balance(BURN_WALLET, 'LP1')}")


def step_13_conservation(ledger: Ledger):
    step_header(13, "Conservation",
        "Lending only redistributes value; every unit still sums to zero.")
    result = ledger.verify_double_entry({u: Decimal("0") for u in ("DAI", "CORE", "COREDAO", "LP1")})
    for unit, supply in sorted(result["supplies"].items()):
        print(f"  {unit:9} total supply {supply}")
    print(f"\n  valid: {result['valid']}  transactions: {len(ledger.transaction_log)}")


def main():
    """Run the complete walkthrough."""
    if "--log" in sys.argv:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 70)
    print("       CREDIT LEDGER - LENDING WALKTHROUGH")
    print("=" * 70)
    wait_for_enter()

    ledger = step_01_units_and_wallets()
    wait_for_enter()
    desk = step_02_facility(ledger)
    wait_for_enter()
    step_03_issuance(ledger)
    wait_for_enter()

    for step in (step_04_collateral, step_05_ceiling, step_06_borrow,
                 step_07_interest, step_08_repay, step_09_forgiveness,
                 step_10_default, step_11_liquidation, step_12_vouchers):
        step(desk)
        wait_for_enter()

    step_13_conservation(ledger)


if __name__ == "__main__":
    main()
