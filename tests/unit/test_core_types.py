"""
test_core_types.py - Unit tests for core data structures

Tests:
- Move validation
- PendingTransaction intent ids
- build_transaction snapshot isolation
- Unit precision and representability
- Unit factories
"""

import pytest
from datetime import datetime
from decimal import Decimal

from credit_ledger import (
    Move, PendingTransaction, TransactionOrigin, OriginType, UnitStateChange,
    build_transaction, create_token, create_voucher_token,
    SYSTEM_WALLET, BURN_WALLET, UNIT_TYPE_TOKEN, UNIT_TYPE_VOUCHER,
)
from tests.fake_view import FakeView


class TestMove:
    """Tests for Move validation."""

    def test_valid_move(self):
        """A positive Decimal move between two wallets is accepted."""
        move = Move(Decimal("1.5"), "DAI", "alice", "bob", "pay")
        assert move.quantity == Decimal("1.5")
        assert "alice" in repr(move)

    def test_zero_quantity_rejected(self):
        """Zero quantity moves are malformed."""
        with pytest.raises(ValueError, match="positive"):
            Move(Decimal("0"), "DAI", "alice", "bob", "pay")

    def test_negative_quantity_rejected(self):
        """Negative quantity moves are malformed."""
        with pytest.raises(ValueError, match="positive"):
            Move(Decimal("-1"), "DAI", "alice", "bob", "pay")

    def test_float_quantity_rejected(self):
        """Quantities must already be Decimal."""
        with pytest.raises(ValueError, match="Decimal"):
            Move(1.5, "DAI", "alice", "bob", "pay")

    def test_non_finite_quantity_rejected(self):
        """NaN and infinity are rejected."""
        with pytest.raises(ValueError, match="finite"):
            Move(Decimal("Infinity"), "DAI", "alice", "bob", "pay")
        with pytest.raises(ValueError, match="finite"):
            Move(Decimal("NaN"), "DAI", "alice", "bob", "pay")

    def test_self_transfer_rejected(self):
        """Source and dest must differ."""
        with pytest.raises(ValueError, match="different"):
            Move(Decimal("1"), "DAI", "alice", "alice", "pay")

    def test_empty_fields_rejected(self):
        """Wallets, unit and contract id cannot be blank."""
        with pytest.raises(ValueError):
            Move(Decimal("1"), "DAI", "", "bob", "pay")
        with pytest.raises(ValueError):
            Move(Decimal("1"), "DAI", "alice", "  ", "pay")
        with pytest.raises(ValueError):
            Move(Decimal("1"), "", "alice", "bob", "pay")
        with pytest.raises(ValueError):
            Move(Decimal("1"), "DAI", "alice", "bob", "")

    def test_move_out_of_burn_wallet_rejected(self):
        """Burned tokens can never leave the burn wallet."""
        with pytest.raises(ValueError, match="burn"):
            Move(Decimal("1"), "LP1", BURN_WALLET, "alice", "unburn")

    def test_move_into_burn_wallet_allowed(self):
        """Burning is an ordinary move into the burn wallet."""
        move = Move(Decimal("1"), "LP1", "alice", BURN_WALLET, "burn")
        assert move.dest == BURN_WALLET


class TestIntentId:
    """Tests for content-addressed intent ids."""

    def _origin(self):
        return TransactionOrigin(OriginType.USER_ACTION, "alice", "CLENDING", "BORROW")

    def test_same_content_same_id(self):
        """Identical intents hash identically."""
        moves = (Move(Decimal("1"), "DAI", "reserve", "alice", "borrow"),)
        t = datetime(2025, 1, 1)
        a = PendingTransaction(moves, (), self._origin(), t)
        b = PendingTransaction(moves, (), self._origin(), t)
        assert a.intent_id == b.intent_id

    def test_decimal_representation_does_not_matter(self):
        """1.0 and 1.00 are the same quantity."""
        t = datetime(2025, 1, 1)
        a = PendingTransaction((Move(Decimal("1.0"), "DAI", "a", "b", "x"),), (), self._origin(), t)
        b = PendingTransaction((Move(Decimal("1.00"), "DAI", "a", "b", "x"),), (), self._origin(), t)
        assert a.intent_id == b.intent_id

    def test_state_change_changes_id(self):
        """Different new_state yields a different id."""
        t = datetime(2025, 1, 1)
        a = PendingTransaction((), (UnitStateChange("U", {"op_count": 0}, {"op_count": 1}),), self._origin(), t)
        b = PendingTransaction((), (UnitStateChange("U", {"op_count": 1}, {"op_count": 2}),), self._origin(), t)
        assert a.intent_id != b.intent_id

    def test_dict_order_does_not_matter(self):
        """State dictionaries hash independently of insertion order."""
        t = datetime(2025, 1, 1)
        a = PendingTransaction((), (UnitStateChange("U", {}, {"x": 1, "y": 2}),), self._origin(), t)
        b = PendingTransaction((), (UnitStateChange("U", {}, {"y": 2, "x": 1}),), self._origin(), t)
        assert a.intent_id == b.intent_id

    def test_is_empty(self):
        """No moves and no state changes is empty."""
        pending = PendingTransaction((), (), self._origin(), datetime(2025, 1, 1))
        assert pending.is_empty()


class TestBuildTransaction:
    """Tests for build_transaction."""

    def test_uses_view_time_and_default_origin(self):
        """Timestamp comes from the view; origin defaults to CONTRACT."""
        view = FakeView(balances={}, time=datetime(2025, 3, 1))
        pending = build_transaction(view, [Move(Decimal("1"), "DAI", "a", "b", "x")])
        assert pending.timestamp == datetime(2025, 3, 1)
        assert pending.origin.origin_type == OriginType.CONTRACT

    def test_state_snapshots_are_copied(self):
        """Mutating the caller's dict afterwards does not alter the intent."""
        view = FakeView(balances={})
        new_state = {"accounts": {"alice": {"principal": Decimal("1")}}}
        pending = build_transaction(view, [], [UnitStateChange("U", {}, new_state)])
        new_state["accounts"]["alice"]["principal"] = Decimal("999")
        assert pending.state_changes[0].new_state["accounts"]["alice"]["principal"] == Decimal("1")

    def test_changed_fields(self):
        """changed_fields lists only differing keys."""
        sc = UnitStateChange("U", {"a": 1, "b": 2}, {"a": 1, "b": 3, "c": 4})
        assert sc.changed_fields() == {"b": (2, 3), "c": (None, 4)}


class TestUnits:
    """Tests for unit factories and precision."""

    def test_create_token_defaults(self):
        """Tokens have 18 decimals and cannot go negative."""
        token = create_token("CORE", "cVault.finance")
        assert token.unit_type == UNIT_TYPE_TOKEN
        assert token.decimal_places == 18
        assert token.min_balance == Decimal("0")
        assert token.state == {"issuer": SYSTEM_WALLET}

    def test_voucher_token(self):
        """Voucher tokens are their own unit type."""
        assert create_voucher_token("LP1", "LP1 voucher").unit_type == UNIT_TYPE_VOUCHER

    def test_is_representable(self):
        """Quantities finer than the precision are not representable."""
        token = create_token("X", "X token", decimal_places=2)
        assert token.is_representable(Decimal("1.25"))
        assert not token.is_representable(Decimal("1.255"))

    def test_factory_validation(self):
        """Empty symbols and negative precision are rejected."""
        with pytest.raises(ValueError):
            create_token("", "name")
        with pytest.raises(ValueError):
            create_token("X", " ")
        with pytest.raises(ValueError):
            create_token("X", "X", decimal_places=-1)
