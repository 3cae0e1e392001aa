"""
credit_facility.py - Collateralized Credit Facility Unit

This module implements the lending engine: users deposit accepted assets as
collateral, borrow a single credit asset against the value of that
collateral, accrue simple interest, repay with any accepted asset at its
fixed rate, and reclaim collateral once the debt is cleared. Accounts whose
debt exceeds the default threshold are locked out until liquidated.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES (explicit inputs):
   - Account: one user's collateral, principal and debt clock
   - FacilityState: config + asset registry + account table + counters

2. PURE CALCULATION FUNCTIONS (calculate_*):
   - Valuation, interest, default test, account summary
   - No LedgerView, no hidden state

3. PURE STATE TRANSITIONS (apply_*):
   - Validate one operation and return the next FacilityState
   - Raise a LendingError before anything is built

4. ADAPTER FUNCTIONS (load_credit_facility / to_state_dict):
   - The ONLY place that touches LedgerView for facility state reads

5. TRANSACTION BUILDERS (compute_*):
   - Load, apply, and return a PendingTransaction whose state change and
     transfers the ledger applies atomically

Key Formulas:
    collateral_value = sum(collateral[asset] * rate(asset)), rounded down
    accrued_interest = principal * rate% / 100 * elapsed_seconds / SECONDS_PER_YEAR, rounded down
    total_debt = principal + accrued_interest
    in_default = total_debt * 100 > collateral_value * default_threshold_percent
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Dict, Any, List, Optional, Tuple, Mapping

from ..asset_registry import collaterability_of, effective_rate, list_asset
from ..config import AssetListing, LendingConfig
from ..core import (
    LedgerView, Move, PendingTransaction, Unit, UnitStateChange,
    TransactionOrigin, OriginType,
    UNIT_TYPE_CREDIT_FACILITY,
    build_transaction, _freeze_state,
    UnitNotRegistered, WalletNotRegistered,
    InvalidAmount, OverBorrow, InsufficientLiquidity,
    UserInDefault, OutstandingDebt, OverRepayment, InsufficientCollateral,
    Unauthorized, AccountNotInDefault,
)


SECONDS_PER_YEAR = Decimal(365 * 24 * 60 * 60)

# Type aliases
CollateralBalances = Dict[str, Decimal]  # asset_symbol -> quantity deposited


def _dec(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


# ============================================================================
# FROZEN DATACLASSES - Explicit Inputs for Pure Functions
# ============================================================================

@dataclass(frozen=True, slots=True)
class Account:
    """
    One borrower's position.

    debt_clock marks the start of the current interest period and is only
    meaningful while principal is positive.
    """
    collateral: Mapping[str, Decimal] = field(default_factory=dict)
    principal: Decimal = Decimal("0")
    debt_clock: Optional[datetime] = None

    def __post_init__(self):
        """Convert float values to Decimal and drop empty collateral rows."""
        if not isinstance(self.principal, Decimal):
            object.__setattr__(self, 'principal', _dec(self.principal))
        object.__setattr__(
            self, 'collateral',
            {asset: _dec(qty) for asset, qty in self.collateral.items() if _dec(qty) != 0}
        )

    def balance_of(self, asset: str) -> Decimal:
        return self.collateral.get(asset, Decimal("0"))

    def to_state_dict(self) -> Dict[str, Any]:
        return {
            'collateral': dict(self.collateral),
            'principal': self.principal,
            'debt_clock': self.debt_clock,
        }

    @classmethod
    def from_state(cls, raw: Mapping[str, Any]) -> Account:
        return cls(
            collateral=dict(raw.get('collateral', {})),
            principal=raw.get('principal', Decimal("0")),
            debt_clock=raw.get('debt_clock'),
        )


@dataclass(frozen=True, slots=True)
class FacilityState:
    """
    Immutable snapshot of a credit facility.

    Each operation produces a NEW instance (value semantics). Accounts are
    created on first interaction and never removed.
    """
    config: LendingConfig
    assets: Mapping[str, AssetListing]
    accounts: Mapping[str, Account]
    op_count: int = 0
    total_interest_paid: Decimal = Decimal("0")
    total_principal_repaid: Decimal = Decimal("0")
    total_liquidated_debt: Decimal = Decimal("0")

    def __post_init__(self):
        """Convert float values to Decimal to ensure type consistency."""
        if not isinstance(self.total_interest_paid, Decimal):
            object.__setattr__(self, 'total_interest_paid', _dec(self.total_interest_paid))
        if not isinstance(self.total_principal_repaid, Decimal):
            object.__setattr__(self, 'total_principal_repaid', _dec(self.total_principal_repaid))
        if not isinstance(self.total_liquidated_debt, Decimal):
            object.__setattr__(self, 'total_liquidated_debt', _dec(self.total_liquidated_debt))

    def account(self, user: str) -> Account:
        """The user's account, or an all-zero one if the user never interacted."""
        return self.accounts.get(user) or Account()

    def total_collateral(self, asset: str) -> Decimal:
        """Sum of every account's deposited balance of asset."""
        return sum(
            (account.collateral.get(asset, Decimal("0")) for account in self.accounts.values()),
            Decimal("0"),
        )

    def lendable(self, reserve_balance: Decimal) -> Decimal:
        """Credit asset in the reserve that is not owed back as collateral."""
        return reserve_balance - self.total_collateral(self.config.credit_asset)

    def with_account(self, user: str, account: Account) -> FacilityState:
        accounts = dict(self.accounts)
        accounts[user] = account
        return replace(self, accounts=accounts)


@dataclass(frozen=True, slots=True)
class AccountSummary:
    """All valuation figures for one account at one point in time."""
    collateral_value: Decimal
    principal: Decimal
    accrued_interest: Decimal
    total_debt: Decimal
    loan_to_value_percent: Decimal
    borrowing_capacity: Decimal
    in_default: bool


@dataclass(frozen=True, slots=True)
class RepaymentSplit:
    """
    How one repayment was applied.

    value, interest_* and principal_paid are credit-asset amounts;
    to_treasury and to_reserve are quantities of the repaid asset and sum to
    the repaid amount.
    """
    value: Decimal
    interest_paid: Decimal
    principal_paid: Decimal
    interest_forgiven: Decimal
    to_treasury: Decimal
    to_reserve: Decimal


# ============================================================================
# ADAPTER FUNCTIONS - Bridge Between LedgerView and Pure Functions
# ============================================================================

def load_credit_facility(view: LedgerView, symbol: str) -> FacilityState:
    """
    Load a credit facility from ledger state as a typed frozen snapshot.

    Example:
        state = load_credit_facility(view, "CLENDING")
        value = calculate_collateral_value(state.account("alice").collateral, state.assets, ...)
    """
    return facility_from_state(view.get_unit_state(symbol))


def facility_from_state(raw: Mapping[str, Any]) -> FacilityState:
    """Build a FacilityState from a raw unit-state dictionary."""
    return FacilityState(
        config=LendingConfig.from_state(raw),
        assets={asset: AssetListing.from_state(row) for asset, row in raw.get('assets', {}).items()},
        accounts={user: Account.from_state(row) for user, row in raw.get('accounts', {}).items()},
        op_count=raw.get('op_count', 0),
        total_interest_paid=raw.get('total_interest_paid', Decimal("0")),
        total_principal_repaid=raw.get('total_principal_repaid', Decimal("0")),
        total_liquidated_debt=raw.get('total_liquidated_debt', Decimal("0")),
    )


def to_state_dict(state: FacilityState) -> Dict[str, Any]:
    """
    Convert a FacilityState back to the dictionary stored in the unit.

    This is the inverse of facility_from_state().
    """
    return {
        **state.config.to_state_dict(),
        'assets': {asset: listing.to_state_dict() for asset, listing in state.assets.items()},
        'accounts': {user: account.to_state_dict() for user, account in state.accounts.items()},
        'op_count': state.op_count,
        'total_interest_paid': state.total_interest_paid,
        'total_principal_repaid': state.total_principal_repaid,
        'total_liquidated_debt': state.total_liquidated_debt,
    }


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def _round_down(value: Decimal, quantizer: Optional[Decimal]) -> Decimal:
    if quantizer is None:
        return value
    return value.quantize(quantizer, rounding=ROUND_DOWN)


def _elapsed_seconds(start: datetime, end: datetime) -> Decimal:
    """Exact seconds between two datetimes, including microseconds."""
    delta = end - start
    whole = Decimal(delta.days * 86400 + delta.seconds)
    return whole + Decimal(delta.microseconds) / Decimal(1_000_000)


def calculate_collateral_value(
    collateral: Mapping[str, Decimal],
    assets: Mapping[str, AssetListing],
    quantizer: Optional[Decimal] = None,
) -> Decimal:
    """
    Value of deposited collateral in credit-asset units.

    PURE FUNCTION - All inputs explicit.

    Assets that are delisted or rated zero contribute nothing. The total is
    rounded down so collateral is never overvalued.
    """
    total = Decimal("0")
    for asset in sorted(collateral):
        total += collateral[asset] * effective_rate(assets, asset)
    return _round_down(total, quantizer)


def calculate_accrued_interest(
    principal: Decimal,
    debt_clock: Optional[datetime],
    current_time: datetime,
    yearly_interest_rate_percent: Decimal,
    quantizer: Optional[Decimal] = None,
) -> Decimal:
    """
    Simple, non-compounding interest accrued since the debt clock.

    PURE FUNCTION - All inputs explicit.

    Returns 0 when there is no principal or no elapsed time.

    Example:
        # 10000 at 20% for exactly one year
        calculate_accrued_interest(Decimal("10000"), t0, t0 + timedelta(days=365), Decimal("20"))
        # -> Decimal("2000")
    """
    if principal <= 0 or debt_clock is None or current_time <= debt_clock:
        return Decimal("0")
    elapsed = _elapsed_seconds(debt_clock, current_time)
    interest = principal * yearly_interest_rate_percent * elapsed / (Decimal(100) * SECONDS_PER_YEAR)
    return _round_down(interest, quantizer)


def calculate_total_debt(config: LendingConfig, account: Account, current_time: datetime) -> Decimal:
    """Principal plus interest accrued up to current_time."""
    return account.principal + calculate_accrued_interest(
        account.principal,
        account.debt_clock,
        current_time,
        config.yearly_interest_rate_percent,
        config.credit_quantizer,
    )


def calculate_is_in_default(
    total_debt: Decimal,
    collateral_value: Decimal,
    default_threshold_percent: Decimal,
) -> bool:
    """Cross-multiplied so no division rounds the comparison."""
    return total_debt * 100 > collateral_value * default_threshold_percent


def calculate_account_summary(
    state: FacilityState,
    user: str,
    current_time: datetime,
) -> AccountSummary:
    """
    Compute every valuation figure of one account.

    PURE FUNCTION - All inputs explicit.
    """
    config = state.config
    account = state.account(user)
    collateral_value = calculate_collateral_value(account.collateral, state.assets, config.credit_quantizer)
    interest = calculate_accrued_interest(
        account.principal,
        account.debt_clock,
        current_time,
        config.yearly_interest_rate_percent,
        config.credit_quantizer,
    )
    total_debt = account.principal + interest

    if collateral_value > 0:
        ltv = total_debt * 100 / collateral_value
    elif total_debt > 0:
        ltv = Decimal("Infinity")
    else:
        ltv = Decimal("0")

    return AccountSummary(
        collateral_value=collateral_value,
        principal=account.principal,
        accrued_interest=interest,
        total_debt=total_debt,
        loan_to_value_percent=ltv,
        borrowing_capacity=max(collateral_value - total_debt, Decimal("0")),
        in_default=calculate_is_in_default(total_debt, collateral_value, config.default_threshold_percent),
    )


def parse_amount(amount: Any, unit: Optional[Unit] = None, name: str = "amount") -> Decimal:
    """
    Coerce an operation amount to Decimal.

    Raises:
        InvalidAmount: If amount is not a number, not finite, not positive,
            or has more decimal places than unit can hold.
    """
    if isinstance(amount, bool):
        raise InvalidAmount(f"{name} must be numeric, got {amount!r}")
    if not isinstance(amount, Decimal):
        try:
            amount = Decimal(str(amount))
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidAmount(f"{name} must be numeric, got {amount!r}")
    if not amount.is_finite():
        raise InvalidAmount(f"{name} must be finite, got {amount}")
    if amount <= 0:
        raise InvalidAmount(f"{name} must be positive, got {amount}")
    if unit is not None and not unit.is_representable(amount):
        raise InvalidAmount(
            f"{name} {amount} has more than {unit.decimal_places} decimal places for {unit.symbol}"
        )
    return amount


# ============================================================================
# PURE STATE TRANSITIONS
# ============================================================================

def _require_not_in_default(state: FacilityState, user: str, current_time: datetime) -> None:
    if calculate_account_summary(state, user, current_time).in_default:
        raise UserInDefault(f"{user} is in default")


def _require_admin(state: FacilityState, caller: str) -> None:
    if caller != state.config.admin_wallet:
        raise Unauthorized(f"{caller} is not the facility admin")


def apply_deposit(state: FacilityState, user: str, asset: str, amount: Decimal) -> FacilityState:
    """
    Add collateral to an account.

    Raises:
        AssetNotAccepted: If the asset is unlisted, delisted or rated zero.
    """
    collaterability_of(state.assets, asset)
    account = state.account(user)
    collateral = dict(account.collateral)
    collateral[asset] = account.balance_of(asset) + amount
    return state.with_account(user, replace(account, collateral=collateral))


def apply_borrow(
    state: FacilityState,
    user: str,
    amount: Decimal,
    current_time: datetime,
    reserve_balance: Decimal,
) -> FacilityState:
    """
    Add amount to the account's principal.

    Interest already accrued counts against the ceiling: the account may
    owe at most 100% of its collateral value after borrowing.

    reserve_balance is the reserve's credit asset holding once any deposit
    in the same transaction has landed. Credit asset posted as collateral
    stays in the reserve but is never lent out.

    Raises:
        UserInDefault: If the account is in default.
        OverBorrow: If total debt plus amount exceeds collateral value.
        InsufficientLiquidity: If the lendable part of the reserve is below amount.
    """
    summary = calculate_account_summary(state, user, current_time)
    if summary.in_default:
        raise UserInDefault(f"{user} is in default")
    if summary.total_debt + amount > summary.collateral_value:
        raise OverBorrow(
            f"{user} owes {summary.total_debt} against {summary.collateral_value} of collateral, "
            f"cannot borrow {amount} more"
        )
    lendable = state.lendable(reserve_balance)
    if lendable < amount:
        raise InsufficientLiquidity(
            f"Reserve can lend {lendable} {state.config.credit_asset}, cannot lend {amount}"
        )

    account = state.account(user)
    debt_clock = account.debt_clock if account.principal > 0 else current_time
    return state.with_account(
        user, replace(account, principal=account.principal + amount, debt_clock=debt_clock)
    )


def apply_reclaim(
    state: FacilityState,
    user: str,
    asset: str,
    amount: Decimal,
    current_time: datetime,
) -> FacilityState:
    """
    Remove collateral from an account. Works for delisted assets too.

    Raises:
        InsufficientCollateral: If amount exceeds the deposited balance.
        OutstandingDebt: If any debt, interest included, remains.
    """
    account = state.account(user)
    balance = account.balance_of(asset)
    if amount > balance:
        raise InsufficientCollateral(f"{user} has {balance} {asset} deposited, cannot reclaim {amount}")
    total_debt = calculate_total_debt(state.config, account, current_time)
    if total_debt > 0:
        raise OutstandingDebt(f"{user} still owes {total_debt}")

    collateral = dict(account.collateral)
    collateral[asset] = balance - amount
    return state.with_account(user, replace(account, collateral=collateral))


def apply_repayment(
    state: FacilityState,
    user: str,
    asset: str,
    amount: Decimal,
    current_time: datetime,
    asset_quantizer: Optional[Decimal] = None,
) -> Tuple[FacilityState, RepaymentSplit]:
    """
    Apply a repayment of amount units of asset.

    The value pays accrued interest first and principal second. The debt
    clock restarts at current_time whatever the value covered, so interest
    left unpaid by a partial repayment is forgiven. A fully repaid account
    has its clock cleared.

    Raises:
        AssetNotAccepted: If the asset cannot be used for repayment.
        InvalidAmount: If the repayment is worth nothing after rounding.
        OverRepayment: If the value exceeds total debt.
    """
    config = state.config
    rate = collaterability_of(state.assets, asset)
    value = _round_down(amount * rate, config.credit_quantizer)
    if value <= 0:
        raise InvalidAmount(f"{amount} {asset} is worth nothing in {config.credit_asset}")

    account = state.account(user)
    interest_due = calculate_accrued_interest(
        account.principal,
        account.debt_clock,
        current_time,
        config.yearly_interest_rate_percent,
        config.credit_quantizer,
    )
    total_debt = account.principal + interest_due
    if value > total_debt:
        raise OverRepayment(f"Repayment worth {value} exceeds {user}'s total debt of {total_debt}")

    interest_paid = min(value, interest_due)
    principal_paid = value - interest_paid
    new_principal = account.principal - principal_paid

    to_treasury = _round_down(interest_paid / rate, asset_quantizer)
    split = RepaymentSplit(
        value=value,
        interest_paid=interest_paid,
        principal_paid=principal_paid,
        interest_forgiven=interest_due - interest_paid,
        to_treasury=to_treasury,
        to_reserve=amount - to_treasury,
    )

    new_state = state.with_account(
        user,
        replace(
            account,
            principal=new_principal,
            debt_clock=current_time if new_principal > 0 else None,
        ),
    )
    new_state = replace(
        new_state,
        total_interest_paid=state.total_interest_paid + interest_paid,
        total_principal_repaid=state.total_principal_repaid + principal_paid,
    )
    return new_state, split


def apply_liquidation(
    state: FacilityState,
    caller: str,
    target: str,
    current_time: datetime,
) -> Tuple[FacilityState, CollateralBalances, Decimal]:
    """
    Seize a defaulted account.

    Returns:
        (new_state, seized collateral by asset, debt written off)

    Raises:
        Unauthorized: If caller is not the admin wallet.
        AccountNotInDefault: If target is not in default.
    """
    _require_admin(state, caller)
    summary = calculate_account_summary(state, target, current_time)
    if not summary.in_default:
        raise AccountNotInDefault(f"{target} is not in default")

    seized = dict(state.account(target).collateral)
    new_state = state.with_account(target, Account())
    new_state = replace(
        new_state,
        total_liquidated_debt=state.total_liquidated_debt + summary.total_debt,
    )
    return new_state, seized, summary.total_debt


# ============================================================================
# UNIT CREATION
# ============================================================================

def create_credit_facility(
    symbol: str,
    name: str,
    config: LendingConfig,
    assets: Optional[Mapping[str, Any]] = None,
) -> Unit:
    """
    Create a credit facility unit.

    The unit is never held by any wallet (min and max balance are zero); it
    exists to carry the asset registry, the account table and the global
    parameters in its state.

    Args:
        symbol: Facility identifier (e.g. "CLENDING")
        name: Human-readable name
        config: Global lending parameters
        assets: Initial registry, asset -> AssetListing or collaterability

    Raises:
        ValueError: If symbol or name is empty or a listing is invalid.

    Example:
        config = LendingConfig(credit_asset="DAI", reserve_wallet="reserve",
                               treasury_wallet="treasury", admin_wallet="admin")
        ledger.register_unit(create_credit_facility(
            "CLENDING", "Core Lending", config, {"CORE": Decimal("5500")}
        ))
    """
    if not symbol or not symbol.strip():
        raise ValueError("symbol cannot be empty")
    if not name or not name.strip():
        raise ValueError("name cannot be empty")

    listings = {}
    for asset, listing in (assets or {}).items():
        listings[asset] = listing if isinstance(listing, AssetListing) else AssetListing(collaterability=listing)

    state = FacilityState(config=config, assets=listings, accounts={})
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_CREDIT_FACILITY,
        min_balance=Decimal("0"),
        max_balance=Decimal("0"),
        decimal_places=0,
        transfer_rule=None,
        _frozen_state=_freeze_state(to_state_dict(state)),
    )


# ============================================================================
# TRANSACTION BUILDERS
# ============================================================================

def _unit_or_none(view: LedgerView, symbol: str) -> Optional[Unit]:
    try:
        return view.get_unit(symbol)
    except UnitNotRegistered:
        return None


def _build(
    view: LedgerView,
    symbol: str,
    old_raw: Dict[str, Any],
    new_state: FacilityState,
    moves: List[Move],
    origin_type: OriginType,
    source_id: str,
    event_type: str,
) -> PendingTransaction:
    new_state = replace(new_state, op_count=new_state.op_count + 1)
    changes = [UnitStateChange(unit=symbol, old_state=old_raw, new_state=to_state_dict(new_state))]
    origin = TransactionOrigin(
        origin_type=origin_type,
        source_id=source_id,
        unit_symbol=symbol,
        event_type=event_type,
    )
    return build_transaction(view, moves, changes, origin)


def compute_add_collateral(
    view: LedgerView,
    symbol: str,
    user: str,
    asset: str,
    amount: Any,
) -> PendingTransaction:
    """
    Deposit collateral: user -> reserve, and credit the account.

    Raises:
        AssetNotAccepted, InvalidAmount
    """
    raw = view.get_unit_state(symbol)
    state = facility_from_state(raw)
    collaterability_of(state.assets, asset)
    amount = parse_amount(amount, view.get_unit(asset))

    new_state = apply_deposit(state, user, asset, amount)
    moves = [Move(amount, asset, user, state.config.reserve_wallet, f"{symbol}:add_collateral")]
    return _build(view, symbol, raw, new_state, moves, OriginType.USER_ACTION, user, "ADD_COLLATERAL")


def compute_borrow(
    view: LedgerView,
    symbol: str,
    user: str,
    amount: Any,
) -> PendingTransaction:
    """
    Lend amount of the credit asset from the reserve to user.

    Raises:
        InvalidAmount, UserInDefault, OverBorrow, InsufficientLiquidity
    """
    raw = view.get_unit_state(symbol)
    state = facility_from_state(raw)
    config = state.config
    amount = parse_amount(amount, view.get_unit(config.credit_asset))

    reserve_balance = view.get_balance(config.reserve_wallet, config.credit_asset)
    new_state = apply_borrow(state, user, amount, view.current_time, reserve_balance)
    moves = [Move(amount, config.credit_asset, config.reserve_wallet, user, f"{symbol}:borrow")]
    return _build(view, symbol, raw, new_state, moves, OriginType.USER_ACTION, user, "BORROW")


def compute_add_collateral_and_borrow(
    view: LedgerView,
    symbol: str,
    user: str,
    asset: str,
    collateral_amount: Any,
    borrow_amount: Any,
) -> PendingTransaction:
    """
    Deposit and borrow in one transaction.

    The deposit's value counts towards the capacity check of the borrow.
    """
    raw = view.get_unit_state(symbol)
    state = facility_from_state(raw)
    config = state.config
    collaterability_of(state.assets, asset)
    collateral_amount = parse_amount(collateral_amount, view.get_unit(asset), "collateral_amount")
    borrow_amount = parse_amount(borrow_amount, view.get_unit(config.credit_asset), "borrow_amount")

    reserve_balance = view.get_balance(config.reserve_wallet, config.credit_asset)
    if asset == config.credit_asset:
        reserve_balance += collateral_amount

    new_state = apply_deposit(state, user, asset, collateral_amount)
    new_state = apply_borrow(new_state, user, borrow_amount, view.current_time, reserve_balance)
    moves = [
        Move(collateral_amount, asset, user, config.reserve_wallet, f"{symbol}:add_collateral"),
        Move(borrow_amount, config.credit_asset, config.reserve_wallet, user, f"{symbol}:borrow"),
    ]
    return _build(
        view, symbol, raw, new_state, moves, OriginType.USER_ACTION, user, "ADD_COLLATERAL_AND_BORROW"
    )


def compute_reclaim_collateral(
    view: LedgerView,
    symbol: str,
    user: str,
    asset: str,
    amount: Any,
) -> PendingTransaction:
    """
    Return amount of deposited asset from the reserve to user.

    Raises:
        UserInDefault, InvalidAmount, InsufficientCollateral, OutstandingDebt
    """
    raw = view.get_unit_state(symbol)
    state = facility_from_state(raw)
    now = view.current_time
    _require_not_in_default(state, user, now)
    amount = parse_amount(amount, _unit_or_none(view, asset))

    new_state = apply_reclaim(state, user, asset, amount, now)
    moves = [Move(amount, asset, state.config.reserve_wallet, user, f"{symbol}:reclaim_collateral")]
    return _build(view, symbol, raw, new_state, moves, OriginType.USER_ACTION, user, "RECLAIM_COLLATERAL")


def compute_reclaim_all_collateral(
    view: LedgerView,
    symbol: str,
    user: str,
) -> PendingTransaction:
    """
    Return every deposited balance of user in one transaction.

    Raises:
        UserInDefault, OutstandingDebt, InvalidAmount (nothing deposited)
    """
    raw = view.get_unit_state(symbol)
    state = facility_from_state(raw)
    now = view.current_time
    _require_not_in_default(state, user, now)

    collateral = state.account(user).collateral
    if not collateral:
        raise InvalidAmount(f"{user} has no collateral to reclaim")

    new_state = state
    moves = []
    for asset in sorted(collateral):
        new_state = apply_reclaim(new_state, user, asset, collateral[asset], now)
        moves.append(
            Move(collateral[asset], asset, state.config.reserve_wallet, user, f"{symbol}:reclaim_collateral")
        )
    return _build(
        view, symbol, raw, new_state, moves, OriginType.USER_ACTION, user, "RECLAIM_ALL_COLLATERAL"
    )


def compute_repay_loan(
    view: LedgerView,
    symbol: str,
    user: str,
    asset: str,
    amount: Any,
) -> PendingTransaction:
    """
    Repay debt with amount units of any accepted asset.

    Returns:
        PendingTransaction with:
        - moves: the interest share of amount to the treasury, the rest to
          the reserve (a zero leg is omitted)
        - state_changes: reduced principal, restarted debt clock

    Raises:
        UserInDefault, AssetNotAccepted, InvalidAmount, OverRepayment

    Example:
        # 1 CORE worth 5500 DAI against 10000 DAI borrowed a year ago at 20%
        pending = compute_repay_loan(view, "CLENDING", "alice", "CORE", Decimal("1"))
        # 2000 of interest -> 4/11 CORE to treasury, 7/11 CORE to reserve
    """
    raw = view.get_unit_state(symbol)
    state = facility_from_state(raw)
    config = state.config
    now = view.current_time
    _require_not_in_default(state, user, now)
    collaterability_of(state.assets, asset)
    unit = view.get_unit(asset)
    amount = parse_amount(amount, unit)

    new_state, split = apply_repayment(state, user, asset, amount, now, unit.quantizer())
    moves = []
    if split.to_treasury > 0:
        moves.append(Move(split.to_treasury, asset, user, config.treasury_wallet, f"{symbol}:repay_interest"))
    if split.to_reserve > 0:
        moves.append(Move(split.to_reserve, asset, user, config.reserve_wallet, f"{symbol}:repay_principal"))
    return _build(view, symbol, raw, new_state, moves, OriginType.USER_ACTION, user, "REPAY_LOAN")


def compute_liquidation(
    view: LedgerView,
    symbol: str,
    caller: str,
    target: str,
) -> PendingTransaction:
    """
    Seize all of a defaulted account's collateral.

    Collateral moves from the reserve to the liquidation wallet (the
    treasury unless configured otherwise); principal and collateral are
    zeroed and the written-off debt is added to total_liquidated_debt.

    Raises:
        Unauthorized, AccountNotInDefault
    """
    raw = view.get_unit_state(symbol)
    state = facility_from_state(raw)
    config = state.config

    new_state, seized, _ = apply_liquidation(state, caller, target, view.current_time)
    moves = [
        Move(seized[asset], asset, config.reserve_wallet, config.seizure_wallet, f"{symbol}:liquidate")
        for asset in sorted(seized)
    ]
    return _build(view, symbol, raw, new_state, moves, OriginType.LIQUIDATION, caller, "LIQUIDATE")


# ============================================================================
# PRIVILEGED CONFIGURATION
# ============================================================================

def compute_set_collaterability(
    view: LedgerView,
    symbol: str,
    caller: str,
    asset: str,
    rate: Any,
    accepted: bool = True,
) -> PendingTransaction:
    """
    List, re-rate or delist an asset. A rate of zero stops new deposits and
    repayments in the asset; existing deposits stay reclaimable.

    Raises:
        Unauthorized, InvalidAmount
    """
    raw = view.get_unit_state(symbol)
    state = facility_from_state(raw)
    _require_admin(state, caller)

    new_state = replace(state, assets=list_asset(state.assets, asset, rate, accepted))
    return _build(view, symbol, raw, new_state, [], OriginType.ADMIN, caller, "SET_COLLATERABILITY")


def compute_change_loan_terms(
    view: LedgerView,
    symbol: str,
    caller: str,
    yearly_interest_rate_percent: Any,
    default_threshold_percent: Any,
) -> PendingTransaction:
    """
    Change the interest rate and default threshold.

    The new rate applies to all elapsed time of open debt clocks, as interest
    is always derived from the current parameters.

    Raises:
        Unauthorized, InvalidAmount
    """
    raw = view.get_unit_state(symbol)
    state = facility_from_state(raw)
    _require_admin(state, caller)

    try:
        config = replace(
            state.config,
            yearly_interest_rate_percent=yearly_interest_rate_percent,
            default_threshold_percent=default_threshold_percent,
        )
    except ValueError as e:
        raise InvalidAmount(str(e)) from e
    new_state = replace(state, config=config)
    return _build(view, symbol, raw, new_state, [], OriginType.ADMIN, caller, "CHANGE_LOAN_TERMS")


def compute_set_treasury(
    view: LedgerView,
    symbol: str,
    caller: str,
    wallet: str,
) -> PendingTransaction:
    """
    Redirect future interest payments to wallet.

    Raises:
        Unauthorized
        WalletNotRegistered: If wallet does not exist in the ledger.
        ValueError: If wallet is empty or is the reserve wallet.
    """
    raw = view.get_unit_state(symbol)
    state = facility_from_state(raw)
    _require_admin(state, caller)
    if wallet and wallet not in view.list_wallets():
        raise WalletNotRegistered(f"Wallet {wallet} not registered")

    new_state = replace(state, config=replace(state.config, treasury_wallet=wallet))
    return _build(view, symbol, raw, new_state, [], OriginType.ADMIN, caller, "SET_TREASURY")


# ============================================================================
# TRANSACTION INTERFACE
# ============================================================================

def _require(kwargs: Dict[str, Any], name: str, event_type: str, symbol: str) -> Any:
    value = kwargs.get(name)
    if value is None:
        raise ValueError(f"Missing '{name}' parameter for {event_type} event on {symbol}")
    return value


def transact(
    view: LedgerView,
    symbol: str,
    event_type: str,
    event_date: datetime,
    **kwargs
) -> PendingTransaction:
    """
    Build the transaction for one credit facility event.

    Args:
        view: Read-only ledger access
        symbol: Credit facility symbol
        event_type: Type of event:
            - ADD_COLLATERAL: requires 'user', 'asset', 'amount'
            - ADD_COLLATERAL_AND_BORROW: requires 'user', 'asset',
              'collateral_amount', 'borrow_amount'
            - BORROW: requires 'user', 'amount'
            - REPAY_LOAN: requires 'user', 'asset', 'amount'
            - RECLAIM_COLLATERAL: requires 'user', 'asset', 'amount'
            - RECLAIM_ALL_COLLATERAL: requires 'user'
            - LIQUIDATE: requires 'caller', 'target'
            - SET_COLLATERABILITY: requires 'caller', 'asset', 'rate'
              (optional 'accepted')
            - CHANGE_LOAN_TERMS: requires 'caller',
              'yearly_interest_rate_percent', 'default_threshold_percent'
            - SET_TREASURY: requires 'caller', 'wallet'
        event_date: When the event occurs; must not be after the ledger time.
            It only guards against events from the ledger's future: the
            transaction is always built as of view.current_time, which
            also drives interest accrual.
        **kwargs: Event-specific parameters

    Raises:
        ValueError: If event_type is unknown, a parameter is missing, or
            event_date is in the ledger's future.

    Example:
        pending = transact(view, "CLENDING", "BORROW", view.current_time,
                           user="alice", amount=Decimal("5500"))
    """
    if event_date > view.current_time:
        raise ValueError(f"event_date {event_date} is after ledger time {view.current_time}")

    def arg(name):
        return _require(kwargs, name, event_type, symbol)

    if event_type == 'ADD_COLLATERAL':
        return compute_add_collateral(view, symbol, arg('user'), arg('asset'), arg('amount'))

    elif event_type == 'ADD_COLLATERAL_AND_BORROW':
        return compute_add_collateral_and_borrow(
            view, symbol, arg('user'), arg('asset'), arg('collateral_amount'), arg('borrow_amount')
        )

    elif event_type == 'BORROW':
        return compute_borrow(view, symbol, arg('user'), arg('amount'))

    elif event_type == 'REPAY_LOAN':
        return compute_repay_loan(view, symbol, arg('user'), arg('asset'), arg('amount'))

    elif event_type == 'RECLAIM_COLLATERAL':
        return compute_reclaim_collateral(view, symbol, arg('user'), arg('asset'), arg('amount'))

    elif event_type == 'RECLAIM_ALL_COLLATERAL':
        return compute_reclaim_all_collateral(view, symbol, arg('user'))

    elif event_type == 'LIQUIDATE':
        return compute_liquidation(view, symbol, arg('caller'), arg('target'))

    elif event_type == 'SET_COLLATERABILITY':
        return compute_set_collaterability(
            view, symbol, arg('caller'), arg('asset'), arg('rate'), kwargs.get('accepted', True)
        )

    elif event_type == 'CHANGE_LOAN_TERMS':
        return compute_change_loan_terms(
            view, symbol, arg('caller'),
            arg('yearly_interest_rate_percent'), arg('default_threshold_percent'),
        )

    elif event_type == 'SET_TREASURY':
        return compute_set_treasury(view, symbol, arg('caller'), arg('wallet'))

    else:
        raise ValueError(f"Unknown event type '{event_type}' for credit facility {symbol}")
