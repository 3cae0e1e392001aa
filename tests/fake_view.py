"""
fake_view.py - Test Helper for LedgerView

Provides a minimal LedgerView implementation for testing compute_* functions
without requiring a full Ledger instance.
"""

from __future__ import annotations
import copy
from datetime import datetime
from decimal import Decimal
from typing import Dict, Set, Optional, Any

from credit_ledger import Unit, UnitNotRegistered


# Type alias (matching core.py)
UnitState = Dict[str, Any]


class FakeView:
    """
    Minimal LedgerView implementation for testing compute_* functions.

    Example:
        view = FakeView(
            balances={'reserve': {'DAI': Decimal("100000")}},
            states={'CLENDING': facility.state},
            time=datetime(2025, 1, 1),
            units={'DAI': dai, 'CORE': core},
        )
    """

    def __init__(
        self,
        balances: Dict[str, Dict[str, Decimal]],
        states: Optional[Dict[str, UnitState]] = None,
        time: Optional[datetime] = None,
        units: Optional[Dict[str, Unit]] = None
    ):
        self._balances = balances
        self._states = states or {}
        self._time = time or datetime(2025, 1, 1)
        self._units = units or {}

    @property
    def current_time(self) -> datetime:
        return self._time

    def get_balance(self, wallet: str, unit: str) -> Decimal:
        return self._balances.get(wallet, {}).get(unit, Decimal("0"))

    def get_unit_state(self, unit: str) -> UnitState:
        return copy.deepcopy(self._states.get(unit, {}))

    def list_wallets(self) -> Set[str]:
        return set(self._balances.keys())

    def get_unit(self, symbol: str) -> Unit:
        if symbol not in self._units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self._units[symbol]
