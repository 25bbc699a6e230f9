"""Network and session configuration.

The active network is an explicit value handed to the gateway constructor.
There is no module-level "current network", so two sessions against
different networks cannot see each other's contract addresses.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from cpmm.constants import (
    DEFAULT_SLIPPAGE_BPS,
    MAX_CANDLES,
    POOL_MANAGER_MAINNET,
    POOL_MANAGER_TESTNET,
    TOKEN_PRIORITY,
)
from cpmm.models.types import normalize_address


@dataclass(frozen=True)
class NetworkConfig:
    """Ledger endpoint and contract addresses for one network.

    Attributes:
        name: Network name ("mainnet", "testnet")
        chain_id: EVM chain id
        rpc_url: JSON-RPC endpoint
        pool_manager: Pool manager contract address
        pool_fee_bps: Swap fee applied by the pool, used by the local
            display estimate only
        history_from_block: First block scanned for Swap events
    """

    name: str
    chain_id: int
    rpc_url: str
    pool_manager: str
    pool_fee_bps: int = 0
    history_from_block: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.pool_fee_bps < 10_000:
            raise ValueError(f"pool_fee_bps must be in [0, 10000), got {self.pool_fee_bps}")
        if self.history_from_block < 0:
            raise ValueError(f"history_from_block cannot be negative: {self.history_from_block}")

    def with_rpc_url(self, rpc_url: str) -> NetworkConfig:
        """Copy of this config pointing at another RPC endpoint."""
        return NetworkConfig(
            name=self.name,
            chain_id=self.chain_id,
            rpc_url=rpc_url,
            pool_manager=self.pool_manager,
            pool_fee_bps=self.pool_fee_bps,
            history_from_block=self.history_from_block,
        )

    @classmethod
    def from_env(cls) -> NetworkConfig:
        """Build the config from environment variables.

        - CPMM_NETWORK: Known network name (default: mainnet)
        - CPMM_RPC_URL: Overrides the network's default RPC endpoint
        """
        name = os.environ.get("CPMM_NETWORK", "mainnet")
        if name not in NETWORKS:
            raise ValueError(f"Unknown network {name!r}, expected one of {sorted(NETWORKS)}")
        config = NETWORKS[name]
        rpc_url = os.environ.get("CPMM_RPC_URL")
        if rpc_url:
            config = config.with_rpc_url(rpc_url)
        return config


MAINNET = NetworkConfig(
    name="mainnet",
    chain_id=0x2F147,
    rpc_url="https://rpc.zanjir.xyz",
    pool_manager=POOL_MANAGER_MAINNET,
)

TESTNET = NetworkConfig(
    name="testnet",
    chain_id=0x2F148,
    rpc_url="https://rpc-testnet.zanjir.xyz:443",
    pool_manager=POOL_MANAGER_TESTNET,
)

NETWORKS = {config.name: config for config in (MAINNET, TESTNET)}


@dataclass(frozen=True)
class SessionConfig:
    """Per-session behaviour of the pool facade.

    Attributes:
        default_slippage_bps: Slippage used when a quote does not pass one
        quote_debounce_seconds: Quiet period before a typed amount is quoted
        recent_trades_limit: Rows in the recent trades list
        token_priority: Quote-currency preference used to orient charts.
            Accepts a mapping of address to priority and is stored as
            sorted (lowercase address, priority) pairs so the config stays
            hashable and immutable
        max_candles: Most hourly candles returned by a history query
    """

    default_slippage_bps: int = DEFAULT_SLIPPAGE_BPS
    quote_debounce_seconds: float = 0.3
    recent_trades_limit: int = 5
    token_priority: Mapping[str, int] | tuple[tuple[str, int], ...] = tuple(sorted(TOKEN_PRIORITY.items()))
    max_candles: int = MAX_CANDLES

    def __post_init__(self) -> None:
        if isinstance(self.token_priority, Mapping):
            pairs = ((normalize_address(token), value) for token, value in self.token_priority.items())
            object.__setattr__(self, "token_priority", tuple(sorted(pairs)))
        if not 0 <= self.default_slippage_bps <= 10_000:
            raise ValueError(
                f"default_slippage_bps must be in [0, 10000], got {self.default_slippage_bps}"
            )
        if self.quote_debounce_seconds < 0:
            raise ValueError("quote_debounce_seconds cannot be negative")
        if self.max_candles < 1:
            raise ValueError(f"max_candles must be positive, got {self.max_candles}")

    @property
    def priority(self) -> dict[str, int]:
        """Token priority table keyed by lowercase address."""
        return dict(self.token_priority)


# Default configuration instance
DEFAULT_SESSION_CONFIG = SessionConfig()
