"""
Units module - Stateful lending units.

- Credit facility: collateral deposits, borrowing, interest, repayment,
  reclaim and liquidation
- Voucher wrapper: burns legacy vouchers for governance tokens

All unit factories and related functions are re-exported here for convenience.
"""

# Credit facility
from .credit_facility import (
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
    parse_amount,
    apply_deposit,
    apply_borrow,
    apply_reclaim,
    apply_repayment,
    apply_liquidation,
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
    transact as credit_facility_transact,
)

# Voucher wrapper
from .voucher_wrapper import (
    DEFAULT_VOUCHER_RATIOS,
    WrapperState,
    load_voucher_wrapper,
    calculate_wrap_amount,
    create_voucher_wrapper,
    compute_wrap_voucher,
    transact as voucher_wrapper_transact,
)
