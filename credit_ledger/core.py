"""
Core types and pure functions for the collateralized credit ledger.

This module provides the foundational data structures shared by the transfer
ledger and the lending units built on top of it:
1. Protocols: LedgerView for read-only ledger access
2. Immutable data structures: Move, PendingTransaction, Transaction, Unit
3. Exceptions: LedgerError for transfer failures, LendingError for the
   accounting engine
4. Type alias: UnitState
5. Unit factories: credit assets, collateral tokens, voucher tokens

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_EVEN, ROUND_DOWN, getcontext
from enum import Enum
import copy
import hashlib
from typing import (
    Dict, List, Set, Optional, Callable, Any, Protocol,
    Tuple, FrozenSet, runtime_checkable
)


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Collateral values are products of token quantities (18 decimals) and
# collaterability rates, and interest multiplies principal by a rate and an
# elapsed time in seconds. prec=50 keeps every intermediate exact before the
# explicit ROUND_DOWN quantization applied by the valuation functions.
#
# PRECONDITION: No other code should modify the global Decimal context.
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for issuance and redemption.
# The system wallet is exempt from balance validation and can hold any balance.
SYSTEM_WALLET = "system"

# Unspendable sink for burned tokens. Nothing can ever move out of it.
BURN_WALLET = "burn"

UNIT_TYPE_TOKEN = "TOKEN"
UNIT_TYPE_VOUCHER = "VOUCHER"
UNIT_TYPE_CREDIT_FACILITY = "CREDIT_FACILITY"
UNIT_TYPE_VOUCHER_WRAPPER = "VOUCHER_WRAPPER"

# Default decimal precision of on-chain style tokens.
TOKEN_DECIMAL_PLACES = 18


# ============================================================================
# TYPE ALIAS
# ============================================================================

# Internal state for a unit (registry tables, accounts, parameters, ...).
UnitState = Dict[str, Any]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    The lending builders (compute_* functions) receive a LedgerView and
    declare through it that they never mutate anything. The Ledger class
    implements this protocol; tests use FakeView.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """Return the balance of a unit in a wallet (Decimal("0") if none)."""
        ...

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """Return a deep copy of the unit's internal state."""
        ...

    def list_wallets(self) -> Set[str]:
        """Return the set of all registered wallet IDs."""
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        """Return the Unit object for a given symbol."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was validated and applied to the ledger.
    ALREADY_APPLIED: Transaction intent was previously processed.
    REJECTED: Transaction failed validation (balances, stale state, ...).
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a transaction originated."""
    USER_ACTION = "user_action"           # Self-service borrower operation
    CONTRACT = "contract"                 # Built by a unit's compute_* function
    ADMIN = "admin"                       # Privileged configuration change
    LIQUIDATION = "liquidation"           # Seizure of a defaulted account
    SYSTEM = "system"                     # Issuance, initial funding


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class InsufficientFunds(LedgerError):
    """Raised when a move would cause a wallet balance to fall below the unit's minimum."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when attempting to operate on a unit that has not been registered with the ledger."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when attempting to operate on a wallet that has not been registered with the ledger."""
    pass


class LendingError(LedgerError):
    """Base class for accounting-engine failures. State is never changed when one is raised."""
    pass


class AssetNotAccepted(LendingError):
    """Asset is unknown, delisted, or has a collaterability of zero."""
    pass


class InvalidAmount(LendingError):
    """Amount is zero, negative, non-finite, or finer than the unit's precision."""
    pass


class OverBorrow(LendingError):
    """Requested debt would exceed the account's collateral value."""
    pass


class InsufficientLiquidity(LendingError):
    """The reserve does not hold enough of the credit asset to fund a borrow."""
    pass


class UserInDefault(LendingError):
    """Account is in default and may only be liquidated."""
    pass


class OutstandingDebt(LendingError):
    """Collateral cannot be reclaimed while any debt remains."""
    pass


class OverRepayment(LendingError):
    """Repayment value exceeds the account's total debt."""
    pass


class InsufficientCollateral(LendingError):
    """Reclaim amount exceeds the deposited balance."""
    pass


class UnknownVoucherKind(LendingError):
    """Voucher kind is not configured in the wrapper."""
    pass


class TransferFailed(LendingError):
    """The ledger rejected the transfers of an otherwise valid operation."""
    pass


class Unauthorized(LendingError):
    """Caller is not the privileged wallet required by the operation."""
    pass


class AccountNotInDefault(LendingError):
    """Liquidation was requested for an account that is not in default."""
    pass


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source
        source_id: Wallet or component that initiated the transaction
        unit_symbol: Unit whose compute_* function built the transaction
        event_type: Operation name (e.g. "BORROW", "REPAY_LOAN")
    """
    origin_type: OriginType
    source_id: str
    unit_symbol: Optional[str] = None
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.unit_symbol:
            parts.append(f"unit={self.unit_symbol}")
        if self.event_type:
            parts.append(f"event={self.event_type}")
        return f"Origin({', '.join(parts)})"


# ============================================================================
# UNIT STATE CHANGE
# ============================================================================

@dataclass(frozen=True, slots=True)
class UnitStateChange:
    """
    Before/after snapshot of a unit's state.

    old_state is what the builder read; the ledger refuses to apply the
    change if the unit has moved on since (optimistic concurrency).
    """
    unit: str
    old_state: Any
    new_state: Any

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """Return {field: (old, new)} for every field that differs."""
        old = self.old_state if isinstance(self.old_state, dict) else {}
        new = self.new_state if isinstance(self.new_state, dict) else {}
        return {
            key: (old.get(key), new.get(key))
            for key in set(old) | set(new)
            if old.get(key) != new.get(key)
        }


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: The amount to transfer (positive, finite Decimal).
        unit_symbol: The unit being transferred (e.g., "DAI", "CORE").
        source: The wallet ID debited.
        dest: The wallet ID credited.
        contract_id: Identifier of the operation generating this move.
        metadata: Optional additional information about the move.
    """
    quantity: Decimal
    unit_symbol: str
    source: str
    dest: str
    contract_id: str
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if not isinstance(self.quantity, Decimal):
            raise ValueError(f"Move quantity must be Decimal, got {type(self.quantity)}")
        if self.quantity.is_infinite() or self.quantity.is_nan():
            raise ValueError(f"Move quantity must be finite, got {self.quantity}")
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")
        if self.source == BURN_WALLET:
            raise ValueError("Nothing can be moved out of the burn wallet")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


def _normalize_decimal(d: Decimal) -> str:
    """Canonical string for a Decimal: Decimal("1.0") and Decimal("1.00") both give "1"."""
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


def _canonicalize(value: Any) -> str:
    """
    Deterministic serialization of nested state for hashing.

    Independent of dict insertion order and of Decimal representation.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return f"D:{_normalize_decimal(value)}"
    if isinstance(value, (int, float)):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, datetime):
        return f"T:{value.isoformat()}"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        return f"[{','.join(_canonicalize(item) for item in value)}]"
    return f"R:{repr(value)}"


def _compute_intent_id(
    moves: Tuple[Move, ...],
    state_changes: Tuple[UnitStateChange, ...],
    origin: TransactionOrigin,
) -> str:
    """
    Content hash of a transaction's intent, used for idempotency.

    Same moves, state changes and origin always give the same id. Lending
    units bump an operation counter in their state, so two genuinely
    separate operations never collide.
    """
    sorted_moves = sorted(
        moves,
        key=lambda m: (_normalize_decimal(m.quantity), m.unit_symbol, m.source, m.dest, m.contract_id)
    )

    content_parts = [f"origin:{origin.origin_type.value}:{origin.source_id}"]
    if origin.unit_symbol:
        content_parts.append(f"unit:{origin.unit_symbol}")
    if origin.event_type:
        content_parts.append(f"event:{origin.event_type}")

    for m in sorted_moves:
        qty = _normalize_decimal(m.quantity)
        content_parts.append(f"move:{qty}|{m.unit_symbol}|{m.source}|{m.dest}|{m.contract_id}")

    for sc in sorted(state_changes, key=lambda s: s.unit):
        content_parts.append(
            f"state_change:{sc.unit}|{_canonicalize(sc.old_state)}|{_canonicalize(sc.new_state)}"
        )

    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction specification before execution - represents INTENT.

    Built by compute_* functions and submitted to Ledger.execute(), which
    either applies all of it or none of it.

    Attributes:
        moves: Value transfers between wallets
        state_changes: Unit state changes (with old_state and new_state)
        origin: Who/what created this transaction and why
        timestamp: Ledger time when the intent was built
        intent_id: Content-addressable hash of the intent (auto-computed)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            object.__setattr__(
                self, 'intent_id',
                _compute_intent_id(self.moves, self.state_changes, self.origin)
            )

    def is_empty(self) -> bool:
        """Return True if there are no moves and no state changes."""
        return not self.moves and not self.state_changes

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {len(self.state_changes)} deltas, {self.origin})"


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    state_changes: Optional[List[UnitStateChange]] = None,
    origin: Optional[TransactionOrigin] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction from moves and state changes.

    State snapshots are deep-copied so later mutation by the caller cannot
    alter the recorded intent.

    Example:
        old_state = view.get_unit_state("CLENDING")
        new_state = {**old_state, "op_count": old_state["op_count"] + 1}
        changes = [UnitStateChange("CLENDING", old_state, new_state)]
        pending = build_transaction(view, [Move(amount, "DAI", reserve, user, "borrow")], changes)
    """
    if origin is None:
        origin = TransactionOrigin(
            origin_type=OriginType.CONTRACT,
            source_id="contract",
        )

    copied_changes: Tuple[UnitStateChange, ...] = ()
    if state_changes:
        copied_changes = tuple(
            UnitStateChange(
                unit=sc.unit,
                old_state=copy.deepcopy(sc.old_state),
                new_state=copy.deepcopy(sc.new_state),
            )
            for sc in state_changes
        )

    return PendingTransaction(
        moves=tuple(moves),
        state_changes=copied_changes,
        origin=origin,
        timestamp=view.current_time,
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Attributes:
        moves: Value transfers that were applied
        state_changes: Unit state changes that were applied
        origin: Who/what created this transaction and why
        timestamp: When the PendingTransaction was built
        intent_id: Content hash (from PendingTransaction)
        exec_id: Unique execution identifier
        ledger_name: Name of the ledger that executed this
        execution_time: Ledger time at execution
        sequence_number: Monotonic sequence within the ledger
        contract_ids: Contract IDs of the moves (auto-populated)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime
    intent_id: str
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if not self.moves and not self.state_changes:
            raise ValueError("Transaction must have moves or state_changes")
        if self.contract_ids is None:
            object.__setattr__(
                self, 'contract_ids',
                frozenset(m.contract_id for m in self.moves)
            )

    def __repr__(self) -> str:
        lines = [
            f"Transaction {self.exec_id} [{self.origin}]",
            f"  intent_id={self.intent_id} seq={self.sequence_number} at {self.execution_time}",
        ]
        for i, move in enumerate(self.moves):
            lines.append(f"  [{i}] {move.quantity} {move.unit_symbol}: {move.source} → {move.dest}")
        for sc in self.state_changes:
            changed = sorted(sc.changed_fields())
            lines.append(f"  state[{sc.unit}] changed: {', '.join(changed) or '-'}")
        return "\n".join(lines)


# Transfer rules validate moves and raise InsufficientFunds-style LedgerErrors.
TransferRule = Callable[[LedgerView, Move], None]


def _freeze_state(state: Optional[UnitState]) -> Tuple[Tuple[str, Any], ...]:
    """Convert a state dict into a sorted tuple of (key, value) pairs."""
    if not state:
        return ()
    return tuple(sorted(state.items()))


def _thaw_state(frozen_state: Tuple[Tuple[str, Any], ...]) -> UnitState:
    """Inverse of _freeze_state."""
    return dict(frozen_state)


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a unit (asset type or stateful contract) in the ledger.

    Attributes:
        symbol: Short identifier for the unit (e.g., "DAI", "CORE", "CLENDING").
        name: Human-readable name for the unit.
        unit_type: Category of the unit (TOKEN, VOUCHER, CREDIT_FACILITY, ...).
        min_balance: Minimum allowed balance in any wallet.
        max_balance: Maximum allowed balance in any wallet.
        decimal_places: Number of decimal places for rounding (None = no rounding).
        transfer_rule: Optional function to validate moves involving this unit.
        _frozen_state: Internal frozen state representation.
    """
    symbol: str
    name: str
    unit_type: str
    min_balance: Decimal = Decimal("0")
    max_balance: Decimal = Decimal("Infinity")
    decimal_places: Optional[int] = None
    transfer_rule: Optional[TransferRule] = None
    _frozen_state: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    @property
    def state(self) -> UnitState:
        """A fresh mutable copy of the unit's state."""
        return _thaw_state(self._frozen_state)

    def quantizer(self) -> Optional[Decimal]:
        """Smallest representable quantity, or None if unrounded."""
        if self.decimal_places is None:
            return None
        return Decimal(10) ** -self.decimal_places

    def is_representable(self, value: Decimal) -> bool:
        """True if value has no digits finer than this unit's precision."""
        if self.decimal_places is None:
            return True
        return value == value.quantize(self.quantizer(), rounding=ROUND_DOWN)


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def _validate_factory_args(symbol: str, name: str, decimal_places: int) -> None:
    if not symbol or not symbol.strip():
        raise ValueError("symbol cannot be empty")
    if not name or not name.strip():
        raise ValueError("name cannot be empty")
    if decimal_places < 0:
        raise ValueError(f"decimal_places cannot be negative, got {decimal_places}")


def create_token(symbol: str, name: str, decimal_places: int = TOKEN_DECIMAL_PLACES) -> Unit:
    """
    Create a fungible token (collateral asset, credit asset or governance token).

    Args:
        symbol: Token ticker (e.g., "CORE", "DAI").
        name: Full name of the token.
        decimal_places: Token precision (default: 18, like ERC-20 tokens).

    Returns:
        A non-negative-balance Unit that rounds quantities down.

    Example:
        ledger.register_unit(create_token("CORE", "cVault.finance"))
    """
    _validate_factory_args(symbol, name, decimal_places)
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_TOKEN,
        decimal_places=decimal_places,
        _frozen_state=_freeze_state({'issuer': SYSTEM_WALLET}),
    )


def create_voucher_token(symbol: str, name: str, decimal_places: int = TOKEN_DECIMAL_PLACES) -> Unit:
    """Create a legacy voucher token that can only be burned into the governance token."""
    _validate_factory_args(symbol, name, decimal_places)
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_VOUCHER,
        decimal_places=decimal_places,
        _frozen_state=_freeze_state({'issuer': SYSTEM_WALLET}),
    )
