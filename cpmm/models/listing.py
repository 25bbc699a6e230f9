"""Token metadata and pool discovery models."""

from __future__ import annotations

from dataclasses import dataclass

from cpmm.models.history import PriceChange
from cpmm.models.pool import TokenRef
from cpmm.models.types import normalize_address


@dataclass(frozen=True)
class TokenInfo:
    """ERC20 metadata read from the token contract."""

    address: str
    symbol: str
    name: str
    decimals: int

    @property
    def ref(self) -> TokenRef:
        """TokenRef for pairing; rejects decimals outside 0..77."""
        return TokenRef(address=normalize_address(self.address), decimals=self.decimals)


@dataclass(frozen=True)
class PoolCreated:
    """A PoolCreated log of the pool manager.

    ``token_a``/``token_b`` are in the order the creator passed them.
    """

    token_a: str
    token_b: str
    pool: str
    block_number: int
    block_timestamp: int


@dataclass(frozen=True)
class PoolListing:
    """A discovered pool with its tokens, reserves and recent price move.

    Reserves follow the ``token_a``/``token_b`` order of the creation log.
    ``price_change`` is None when the pool has fewer than two trades.
    """

    pool: str
    token_a: TokenInfo
    token_b: TokenInfo
    created_at: int
    is_new: bool
    reserve_a: int
    reserve_b: int
    price_change: PriceChange | None = None
