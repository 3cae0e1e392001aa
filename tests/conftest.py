"""
conftest.py - Shared pytest fixtures for credit ledger tests

Provides common fixtures used across unit, functional and conformance tests:
- Basic ledgers (empty, funded)
- A lending ledger with a credit facility and a voucher wrapper
- A LendingDesk bound to it
"""

import pytest
from decimal import Decimal

from credit_ledger import Ledger, LendingDesk, create_token

from tests.lending_setup import START, build_lending_ledger


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh ledger with no registrations."""
    return Ledger("test", verbose=False, test_mode=True)


@pytest.fixture
def basic_ledger():
    """Ledger with a two-decimal DAI and two wallets."""
    ledger = Ledger("test", START, verbose=False, test_mode=True)
    ledger.register_unit(create_token("DAI", "Dai Stablecoin", decimal_places=2))
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")
    return ledger


@pytest.fixture
def funded_ledger(basic_ledger):
    """Basic ledger with alice holding 10,000 DAI."""
    basic_ledger.set_balance("alice", "DAI", Decimal("10000"))
    return basic_ledger


# =============================================================================
# LENDING FIXTURES
# =============================================================================

@pytest.fixture
def lending_ledger():
    """Ledger with the CLENDING facility and the WRAPPER voucher converter."""
    return build_lending_ledger()


@pytest.fixture
def desk(lending_ledger):
    """LendingDesk over the lending ledger."""
    return LendingDesk(lending_ledger, "CLENDING", voucher_symbol="WRAPPER")
