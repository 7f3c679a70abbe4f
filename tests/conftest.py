"""
conftest.py - Shared pytest fixtures for token sale tests

Provides common fixtures used across unit, functional and conformance tests:
- A quiet host with a fixed genesis time
- Deployed tokens in each lifecycle phase
- Funded buyers
"""

import pytest
from datetime import datetime

from tokensale import Host, SaleToken, State

from tests.mocks import ETH, OWNER, deploy_token


GENESIS = datetime(2018, 1, 1)


# =============================================================================
# HOST FIXTURES
# =============================================================================

@pytest.fixture
def host():
    """Fresh host, silent, starting at the genesis time."""
    return Host(initial_time=GENESIS, verbose=False, name="test")


@pytest.fixture
def buyers(host):
    """Three buyers with 10 ETH each."""
    names = ["alice", "bob", "carol"]
    for name in names:
        host.fund(name, 10 * ETH)
    return names


# =============================================================================
# TOKEN FIXTURES
# =============================================================================

@pytest.fixture
def raw_token(host):
    """Deployed but not yet initialized."""
    return SaleToken(host, owner=OWNER)


@pytest.fixture
def token(host):
    """Initialized token in PreSale, bank set to BANK."""
    return deploy_token(host)


@pytest.fixture
def sale_token(token, buyers):
    """Initialized token in Sale, opened at the genesis time."""
    token.set_state(OWNER, State.SALE)
    return token


@pytest.fixture
def public_token(sale_token):
    """Token that went through Sale and is now in PublicUse."""
    sale_token.set_state(OWNER, State.PUBLIC_USE)
    return sale_token
