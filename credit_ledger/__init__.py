"""
credit_ledger - Collateralized Credit Ledger

Users deposit accepted assets as collateral, borrow a single credit asset
against it, accrue simple interest, repay with any accepted asset and
reclaim collateral once the debt is cleared. Legacy vouchers convert into a
governance token at fixed ratios.

Usage:
    from credit_ledger import (
        Ledger, LendingConfig, LendingDesk, Move, SYSTEM_WALLET,
        build_transaction, create_credit_facility, create_token,
    )

    ledger = Ledger("main")
    for token in (create_token("DAI", "Dai"), create_token("CORE", "Core")):
        ledger.register_unit(token)
    for wallet in ("alice", "reserve", "treasury", "admin"):
        ledger.register_wallet(wallet)

    config = LendingConfig(credit_asset="DAI", reserve_wallet="reserve",
                           treasury_wallet="treasury", admin_wallet="admin")
    ledger.register_unit(create_credit_facility("CLENDING", "Core Lending", config,
                                                {"CORE": Decimal("275")}))

    # Fund the reserve and the borrower via SYSTEM_WALLET (proper issuance)
    ledger.execute(build_transaction(ledger, [
        Move(Decimal("100000"), "DAI", SYSTEM_WALLET, "reserve", "seed_reserve"),
        Move(Decimal("20"), "CORE", SYSTEM_WALLET, "alice", "seed_alice"),
    ]))

    desk = LendingDesk(ledger, "CLENDING")
    desk.add_collateral_and_borrow("alice", "CORE", Decimal("20"), Decimal("5500"))
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    Unit,
    UnitStateChange,
    ExecuteResult,
    create_token,
    create_voucher_token,
    SYSTEM_WALLET,
    BURN_WALLET,
    UNIT_TYPE_TOKEN,
    UNIT_TYPE_VOUCHER,
    UNIT_TYPE_CREDIT_FACILITY,
    UNIT_TYPE_VOUCHER_WRAPPER,
    # Exceptions
    LedgerError,
    InsufficientFunds,
    UnitNotRegistered,
    WalletNotRegistered,
    LendingError,
    AssetNotAccepted,
    InvalidAmount,
    OverBorrow,
    InsufficientLiquidity,
    UserInDefault,
    OutstandingDebt,
    OverRepayment,
    InsufficientCollateral,
    UnknownVoucherKind,
    TransferFailed,
    Unauthorized,
    AccountNotInDefault,
)

# Ledger
from .ledger import Ledger

# Configuration and asset registry
from .config import LendingConfig, AssetListing
from .asset_registry import collaterability_of, is_accepted, effective_rate, list_asset

# Units
from .units import (
    SECONDS_PER_YEAR,
    Account,
    AccountSummary,
    FacilityState,
    RepaymentSplit,
    load_credit_facility,
    calculate_collateral_value,
    calculate_accrued_interest,
    calculate_total_debt,
    calculate_is_in_default,
    calculate_account_summary,
    create_credit_facility,
    compute_add_collateral,
    compute_borrow,
    compute_add_collateral_and_borrow,
    compute_reclaim_collateral,
    compute_reclaim_all_collateral,
    compute_repay_loan,
    compute_liquidation,
    compute_set_collaterability,
    compute_change_loan_terms,
    compute_set_treasury,
    credit_facility_transact,
    DEFAULT_VOUCHER_RATIOS,
    WrapperState,
    load_voucher_wrapper,
    calculate_wrap_amount,
    create_voucher_wrapper,
    compute_wrap_voucher,
    voucher_wrapper_transact,
)

# Facade
from .lending import LendingDesk

__all__ = [
    # Core
    'LedgerView', 'Move', 'Transaction', 'PendingTransaction', 'TransactionOrigin', 'OriginType',
    'build_transaction', 'Unit', 'UnitStateChange', 'ExecuteResult',
    'create_token', 'create_voucher_token',
    'SYSTEM_WALLET', 'BURN_WALLET',
    'UNIT_TYPE_TOKEN', 'UNIT_TYPE_VOUCHER',
    'UNIT_TYPE_CREDIT_FACILITY', 'UNIT_TYPE_VOUCHER_WRAPPER',
    # Exceptions
    'LedgerError', 'InsufficientFunds', 'UnitNotRegistered', 'WalletNotRegistered',
    'LendingError', 'AssetNotAccepted', 'InvalidAmount', 'OverBorrow', 'InsufficientLiquidity',
    'UserInDefault', 'OutstandingDebt', 'OverRepayment', 'InsufficientCollateral',
    'UnknownVoucherKind', 'TransferFailed', 'Unauthorized', 'AccountNotInDefault',
    # Ledger
    'Ledger',
    # Configuration
    'LendingConfig', 'AssetListing',
    'collaterability_of', 'is_accepted', 'effective_rate', 'list_asset',
    # Credit facility - Pure Function Architecture
    'SECONDS_PER_YEAR', 'Account', 'AccountSummary', 'FacilityState', 'RepaymentSplit',
    'load_credit_facility',
    'calculate_collateral_value', 'calculate_accrued_interest', 'calculate_total_debt',
    'calculate_is_in_default', 'calculate_account_summary',
    'create_credit_facility',
    'compute_add_collateral', 'compute_borrow', 'compute_add_collateral_and_borrow',
    'compute_reclaim_collateral', 'compute_reclaim_all_collateral', 'compute_repay_loan',
    'compute_liquidation', 'compute_set_collaterability', 'compute_change_loan_terms',
    'compute_set_treasury', 'credit_facility_transact',
    # Voucher wrapper
    'DEFAULT_VOUCHER_RATIOS', 'WrapperState', 'load_voucher_wrapper', 'calculate_wrap_amount',
    'create_voucher_wrapper', 'compute_wrap_voucher', 'voucher_wrapper_transact',
    # Facade
    'LendingDesk',
]

__version__ = '1.0.0'
