"""Pytest configuration and fixtures."""

import pytest

from cpmm.config import SessionConfig
from cpmm.gateway.memory import InMemoryLedgerGateway
from cpmm.models.pool import TokenRef
from cpmm.pair import canonicalize
from cpmm.session import PoolSession
from tests.helpers import HIGH, LOW, TOKEN_DECIMALS, make_gateway


@pytest.fixture
def low_token() -> TokenRef:
    return TokenRef(address=LOW, decimals=TOKEN_DECIMALS[LOW])


@pytest.fixture
def high_token() -> TokenRef:
    return TokenRef(address=HIGH, decimals=TOKEN_DECIMALS[HIGH])


@pytest.fixture
def canonical_pair(low_token, high_token):
    """LOW/HIGH pair entered in canonical order."""
    return canonicalize(low_token, high_token)


@pytest.fixture
def swapped_pair(low_token, high_token):
    """LOW/HIGH pair entered as (HIGH, LOW)."""
    return canonicalize(high_token, low_token)


@pytest.fixture
def gateway() -> InMemoryLedgerGateway:
    """In-memory ledger with a seeded LOW/HIGH pool."""
    return make_gateway()


@pytest.fixture
def empty_gateway() -> InMemoryLedgerGateway:
    """In-memory ledger with the test tokens but no pool."""
    return make_gateway(with_pool=False)


@pytest.fixture
def session_config() -> SessionConfig:
    """Session config with a short debounce window for tests."""
    return SessionConfig(quote_debounce_seconds=0.01)


@pytest.fixture
def session(gateway, session_config) -> PoolSession:
    return PoolSession(gateway, config=session_config)


@pytest.fixture
def empty_session(empty_gateway, session_config) -> PoolSession:
    return PoolSession(empty_gateway, config=session_config)
