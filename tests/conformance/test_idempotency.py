"""
Idempotency Conformance Tests

INVARIANT: Executing the same PendingTransaction twice has the effect of
executing it once.

    execute(T) = APPLIED ⟹ execute(T) = ALREADY_APPLIED, state unchanged

Distinct operations never share an intent: each facility operation bumps
op_count, so two identical requests at the same instant are two intents.
"""

from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal

from credit_ledger import (
    ExecuteResult,
    compute_add_collateral, compute_wrap_voucher,
)

from tests.lending_setup import build_lending_ledger, ledger_state_equals


class TestIdempotencyProperties:
    """Property-based idempotency tests."""

    @given(st.decimals(min_value=Decimal("0.01"), max_value=Decimal("100"), places=2))
    @settings(max_examples=30, deadline=None)
    def test_replayed_deposit_applies_once(self, amount):
        """
        PROPERTY: Replaying a deposit is ALREADY_APPLIED and moves nothing.
        """
        ledger = build_lending_ledger()
        pending = compute_add_collateral(ledger, "CLENDING", "alice", "CORE", amount)

        assert ledger.execute(pending) == ExecuteResult.APPLIED
        after_first = ledger.clone()
        assert ledger.execute(pending) == ExecuteResult.ALREADY_APPLIED
        assert ledger_state_equals(after_first, ledger)
        assert ledger.get_balance("reserve", "CORE") == amount

    @given(st.integers(min_value=2, max_value=6))
    @settings(max_examples=10, deadline=None)
    def test_identical_requests_are_distinct_intents(self, n):
        """
        PROPERTY: n identical wraps at one instant have n distinct intent ids.
        """
        ledger = build_lending_ledger()
        intents = set()
        for _ in range(n):
            pending = compute_wrap_voucher(ledger, "WRAPPER", "alice", "LP1", Decimal("1"))
            intents.add(pending.intent_id)
            assert ledger.execute(pending) == ExecuteResult.APPLIED

        assert len(intents) == n
        assert ledger.get_balance("alice", "COREDAO") == Decimal("2250") * n


class TestIdempotencyExamples:
    """Specific idempotency scenarios."""

    def test_rejected_intent_can_be_retried(self):
        """A rejection does not mark the intent as seen."""
        ledger = build_lending_ledger()
        ledger.set_balance("alice", "CORE", Decimal("0"))
        pending = compute_add_collateral(ledger, "CLENDING", "alice", "CORE", Decimal("5"))

        assert ledger.execute(pending) == ExecuteResult.REJECTED
        ledger.set_balance("alice", "CORE", Decimal("5"))
        assert ledger.execute(pending) == ExecuteResult.APPLIED
        assert ledger.execute(pending) == ExecuteResult.ALREADY_APPLIED
