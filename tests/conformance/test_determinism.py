"""
Determinism Conformance Tests

INVARIANT: The same operation sequence on the same initial ledger yields
the same balances, the same unit states and the same intent ids.

    replay(ops, L0) = replay(ops, L0')   when L0 = L0'

No wall clock, randomness or iteration over unordered containers leaks
into the result.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from credit_ledger import LendingDesk

from tests.lending_setup import (
    build_lending_ledger, operation, run_operation, compare_ledger_states,
)


def _replay(ops):
    ledger = build_lending_ledger()
    desk = LendingDesk(ledger, "CLENDING", voucher_symbol="WRAPPER")
    outcomes = [run_operation(desk, op) for op in ops]
    return ledger, outcomes


class TestDeterminismProperties:
    """Property-based determinism tests."""

    @given(st.lists(operation(), min_size=1, max_size=15))
    @settings(max_examples=30, deadline=None)
    def test_replay_is_identical(self, ops):
        """
        PROPERTY: Two replays agree on outcomes, state and transaction log.
        """
        ledger1, outcomes1 = _replay(ops)
        ledger2, outcomes2 = _replay(ops)

        assert outcomes1 == outcomes2
        diff = compare_ledger_states(ledger1, ledger2)
        assert diff["equal"], diff
        assert [t.intent_id for t in ledger1.transaction_log] == \
            [t.intent_id for t in ledger2.transaction_log]
        assert [t.exec_id for t in ledger1.transaction_log] == \
            [t.exec_id for t in ledger2.transaction_log]

    @given(st.lists(operation(), min_size=1, max_size=10))
    @settings(max_examples=20, deadline=None)
    def test_clone_continues_identically(self, ops):
        """
        PROPERTY: A clone taken midway evolves exactly like the original.
        """
        ledger, _ = _replay(ops[: len(ops) // 2])
        clone = ledger.clone()
        desk = LendingDesk(ledger, "CLENDING", voucher_symbol="WRAPPER")
        clone_desk = LendingDesk(clone, "CLENDING", voucher_symbol="WRAPPER")

        for op in ops[len(ops) // 2:]:
            assert run_operation(desk, op) == run_operation(clone_desk, op)

        assert compare_ledger_states(ledger, clone)["equal"]
