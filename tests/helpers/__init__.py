"""Test helpers module for shared test utilities.

- constants: Token addresses, decimals and seeded pool amounts
- factories: Gateway, pool snapshot and trade event factories
"""

from tests.helpers.constants import (
    HIGH,
    HOUR,
    LOW,
    OTHER,
    OTHER_USER,
    POOL_RESERVE_HIGH,
    POOL_RESERVE_LOW,
    T0,
    TOKEN_DECIMALS,
    USER,
    USER_BALANCE_HIGH,
    USER_BALANCE_LOW,
)
from tests.helpers.factories import make_gateway, make_pool_state, make_trade

__all__ = [
    # Constants
    "LOW",
    "HIGH",
    "OTHER",
    "USER",
    "OTHER_USER",
    "TOKEN_DECIMALS",
    "POOL_RESERVE_LOW",
    "POOL_RESERVE_HIGH",
    "USER_BALANCE_LOW",
    "USER_BALANCE_HIGH",
    "HOUR",
    "T0",
    # Factories
    "make_gateway",
    "make_pool_state",
    "make_trade",
]
