"""
voucher_wrapper.py - Legacy Voucher -> Governance Token Conversion

Each configured voucher kind converts into the governance token at a ratio
fixed when the wrapper is created. Wrapping burns the vouchers (they move to
the unspendable BURN_WALLET) and issues governance tokens from
SYSTEM_WALLET. The wrapper shares no state with any credit facility.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal, ROUND_DOWN
from typing import Dict, Any, Mapping, Optional

from ..core import (
    LedgerView, Move, PendingTransaction, Unit, UnitStateChange,
    TransactionOrigin, OriginType,
    SYSTEM_WALLET, BURN_WALLET, UNIT_TYPE_VOUCHER_WRAPPER,
    build_transaction, _freeze_state,
    InvalidAmount, UnknownVoucherKind,
)
from .credit_facility import parse_amount


# Ratios of the legacy LP voucher deployment, governance tokens per voucher.
DEFAULT_VOUCHER_RATIOS: Dict[str, Decimal] = {
    "LP1": Decimal("2250"),
    "LP2": Decimal("9250"),
    "LP3": Decimal("45"),
}


@dataclass(frozen=True, slots=True)
class WrapperState:
    """Immutable snapshot of a voucher wrapper."""
    governance_token: str
    ratios: Mapping[str, Decimal]
    total_wrapped: Mapping[str, Decimal]
    total_minted: Decimal = Decimal("0")
    op_count: int = 0

    def ratio_of(self, kind: str) -> Decimal:
        """
        Raises:
            UnknownVoucherKind: If kind is not configured.
        """
        if kind not in self.ratios:
            raise UnknownVoucherKind(f"Unknown voucher kind {kind}")
        return self.ratios[kind]


def load_voucher_wrapper(view: LedgerView, symbol: str) -> WrapperState:
    raw = view.get_unit_state(symbol)
    return WrapperState(
        governance_token=raw['governance_token'],
        ratios=dict(raw.get('ratios', {})),
        total_wrapped=dict(raw.get('total_wrapped', {})),
        total_minted=raw.get('total_minted', Decimal("0")),
        op_count=raw.get('op_count', 0),
    )


def to_state_dict(state: WrapperState) -> Dict[str, Any]:
    return {
        'governance_token': state.governance_token,
        'ratios': dict(state.ratios),
        'total_wrapped': dict(state.total_wrapped),
        'total_minted': state.total_minted,
        'op_count': state.op_count,
    }


def calculate_wrap_amount(
    amount: Decimal,
    ratio: Decimal,
    quantizer: Optional[Decimal] = None,
) -> Decimal:
    """Governance tokens issued for amount vouchers, rounded down to the token's precision."""
    minted = amount * ratio
    if quantizer is not None:
        minted = minted.quantize(quantizer, rounding=ROUND_DOWN)
    return minted


def create_voucher_wrapper(
    symbol: str,
    name: str,
    governance_token: str,
    ratios: Optional[Mapping[str, Any]] = None,
) -> Unit:
    """
    Create a voucher wrapper unit.

    Args:
        symbol: Wrapper identifier (e.g. "WRAPPER")
        name: Human-readable name
        governance_token: Unit symbol of the token issued on wrap
        ratios: voucher unit symbol -> governance tokens per voucher
            (default: DEFAULT_VOUCHER_RATIOS)

    Raises:
        ValueError: If a name is empty or a ratio is not positive.
    """
    if not symbol or not symbol.strip():
        raise ValueError("symbol cannot be empty")
    if not name or not name.strip():
        raise ValueError("name cannot be empty")
    if not governance_token or not governance_token.strip():
        raise ValueError("governance_token cannot be empty")

    configured = {}
    for kind, ratio in (DEFAULT_VOUCHER_RATIOS if ratios is None else ratios).items():
        ratio = ratio if isinstance(ratio, Decimal) else Decimal(str(ratio))
        if not ratio.is_finite() or ratio <= 0:
            raise ValueError(f"ratio for {kind} must be positive, got {ratio}")
        configured[kind] = ratio
    if not configured:
        raise ValueError("at least one voucher kind is required")

    state = WrapperState(
        governance_token=governance_token,
        ratios=configured,
        total_wrapped={kind: Decimal("0") for kind in configured},
    )
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_VOUCHER_WRAPPER,
        min_balance=Decimal("0"),
        max_balance=Decimal("0"),
        decimal_places=0,
        _frozen_state=_freeze_state(to_state_dict(state)),
    )


def compute_wrap_voucher(
    view: LedgerView,
    symbol: str,
    user: str,
    kind: str,
    amount: Any,
) -> PendingTransaction:
    """
    Burn amount vouchers of kind and issue amount * ratio governance tokens.

    Raises:
        UnknownVoucherKind, InvalidAmount

    Example:
        pending = compute_wrap_voucher(view, "WRAPPER", "alice", "LP1", Decimal("2"))
        # 2 LP1 -> burn, 4500 governance tokens -> alice
    """
    raw = view.get_unit_state(symbol)
    state = load_voucher_wrapper(view, symbol)
    ratio = state.ratio_of(kind)
    amount = parse_amount(amount, view.get_unit(kind))

    governance = view.get_unit(state.governance_token)
    minted = calculate_wrap_amount(amount, ratio, governance.quantizer())
    if minted <= 0:
        raise InvalidAmount(f"{amount} {kind} converts to no {state.governance_token}")

    total_wrapped = dict(state.total_wrapped)
    total_wrapped[kind] = total_wrapped.get(kind, Decimal("0")) + amount
    new_state = replace(
        state,
        total_wrapped=total_wrapped,
        total_minted=state.total_minted + minted,
        op_count=state.op_count + 1,
    )

    moves = [
        Move(amount, kind, user, BURN_WALLET, f"{symbol}:wrap_burn"),
        Move(minted, state.governance_token, SYSTEM_WALLET, user, f"{symbol}:wrap_mint"),
    ]
    changes = [UnitStateChange(unit=symbol, old_state=raw, new_state=to_state_dict(new_state))]
    origin = TransactionOrigin(
        origin_type=OriginType.USER_ACTION,
        source_id=user,
        unit_symbol=symbol,
        event_type="WRAP_VOUCHER",
    )
    return build_transaction(view, moves, changes, origin)


def transact(
    view: LedgerView,
    symbol: str,
    event_type: str,
    event_date: datetime,
    **kwargs
) -> PendingTransaction:
    """
    Build the transaction for a voucher wrapper event.

    Supported events:
        - WRAP_VOUCHER: requires 'user', 'kind', 'amount'

    event_date may not be after the ledger time; the transaction itself is
    stamped with view.current_time.
    """
    if event_date > view.current_time:
        raise ValueError(f"event_date {event_date} is after ledger time {view.current_time}")

    if event_type == 'WRAP_VOUCHER':
        for name in ('user', 'kind', 'amount'):
            if kwargs.get(name) is None:
                raise ValueError(f"Missing '{name}' parameter for WRAP_VOUCHER event on {symbol}")
        return compute_wrap_voucher(view, symbol, kwargs['user'], kwargs['kind'], kwargs['amount'])

    raise ValueError(f"Unknown event type '{event_type}' for voucher wrapper {symbol}")
