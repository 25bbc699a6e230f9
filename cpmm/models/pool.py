"""Pool, pair and quote models.

Canonical-side values use ``low``/``high`` names (the pool's token A/B in
sorted address order). Values returned to a caller use ``a``/``b`` names and
are already mapped back to the caller's own token order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from cpmm.models.types import normalize_address

T = TypeVar("T")


class Direction(str, Enum):
    """Swap direction on the canonical pair."""

    LOW_TO_HIGH = "low_to_high"
    HIGH_TO_LOW = "high_to_low"


class OperationStatus(str, Enum):
    """Progress of a mutating operation, reported through ``on_status``."""

    APPROVING = "approving"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class TokenRef:
    """A token address with its on-chain decimals."""

    address: str
    decimals: int

    def __post_init__(self) -> None:
        if not 0 <= self.decimals <= 77:
            raise ValueError(f"Token decimals out of range: {self.decimals}")

    @property
    def key(self) -> str:
        """Lowercase address used for ordering and lookups."""
        return normalize_address(self.address)


@dataclass(frozen=True)
class CanonicalPair:
    """Order-independent identity of a two-token pool.

    ``input_was_swapped`` is True when the caller's (A, B) order is the
    reverse of (low, high).
    """

    low: TokenRef
    high: TokenRef
    input_was_swapped: bool

    def __post_init__(self) -> None:
        if not self.low.key < self.high.key:
            raise ValueError(f"Pair not in canonical order: {self.low.address}, {self.high.address}")

    @property
    def token_a(self) -> TokenRef:
        """The caller's first token."""
        return self.high if self.input_was_swapped else self.low

    @property
    def token_b(self) -> TokenRef:
        """The caller's second token."""
        return self.low if self.input_was_swapped else self.high

    def to_canonical(self, a_value: T, b_value: T) -> tuple[T, T]:
        """Map caller-labeled (a, b) values to (low, high)."""
        if self.input_was_swapped:
            return b_value, a_value
        return a_value, b_value

    def from_canonical(self, low_value: T, high_value: T) -> tuple[T, T]:
        """Map (low, high) values back to the caller's (a, b) labeling."""
        if self.input_was_swapped:
            return high_value, low_value
        return low_value, high_value

    def direction_for(self, a_to_b: bool) -> Direction:
        """Canonical direction of a caller's A->B (or B->A) swap."""
        low_to_high = a_to_b != self.input_was_swapped
        return Direction.LOW_TO_HIGH if low_to_high else Direction.HIGH_TO_LOW

    def tokens_for(self, direction: Direction) -> tuple[TokenRef, TokenRef]:
        """(token_in, token_out) for a canonical direction."""
        if direction is Direction.LOW_TO_HIGH:
            return self.low, self.high
        return self.high, self.low


@dataclass(frozen=True)
class PoolState:
    """Snapshot of a pool read from the ledger.

    ``pair_address is None`` means the pool does not exist; every numeric
    field is then zero.
    """

    pair_address: str | None
    reserve_low: int
    reserve_high: int
    total_shares: int

    def __post_init__(self) -> None:
        if min(self.reserve_low, self.reserve_high, self.total_shares) < 0:
            raise ValueError("Pool reserves and shares cannot be negative")
        if self.pair_address is None and (self.reserve_low or self.reserve_high or self.total_shares):
            raise ValueError("A missing pool cannot hold reserves or shares")

    @classmethod
    def absent(cls) -> PoolState:
        return cls(pair_address=None, reserve_low=0, reserve_high=0, total_shares=0)

    @property
    def exists(self) -> bool:
        return self.pair_address is not None

    @property
    def has_liquidity(self) -> bool:
        return self.exists and self.reserve_low > 0 and self.reserve_high > 0

    def reserves_for(self, direction: Direction) -> tuple[int, int]:
        """(reserve_in, reserve_out) for a canonical direction."""
        if direction is Direction.LOW_TO_HIGH:
            return self.reserve_low, self.reserve_high
        return self.reserve_high, self.reserve_low


@dataclass(frozen=True)
class SwapQuote:
    """Ledger-sourced swap preview with its slippage bound."""

    amount_in: int
    amount_out_estimate: int
    min_amount_out: int
    direction: Direction
    token_in: str
    token_out: str

    def __post_init__(self) -> None:
        if not 0 <= self.min_amount_out <= self.amount_out_estimate:
            raise ValueError(
                f"min_amount_out {self.min_amount_out} outside [0, {self.amount_out_estimate}]"
            )

    @classmethod
    def zero(cls, direction: Direction, token_in: str, token_out: str) -> SwapQuote:
        return cls(
            amount_in=0,
            amount_out_estimate=0,
            min_amount_out=0,
            direction=direction,
            token_in=token_in,
            token_out=token_out,
        )


@dataclass(frozen=True)
class DisplayEstimate:
    """Locally computed, non-authoritative output estimate.

    Only for instant UI feedback; a minimum output is never derived from it.
    """

    amount_in: int
    amount_out: int
    direction: Direction
    price_impact_bps: int = 0


@dataclass(frozen=True)
class LiquidityQuote:
    """Deposit preview in the caller's token order."""

    amount_a: int
    amount_b: int
    lp_tokens_estimate: int


@dataclass(frozen=True)
class RemovalQuote:
    """Withdrawal preview in the caller's token order."""

    lp_tokens_in: int
    amount_a_out: int
    amount_b_out: int


@dataclass(frozen=True)
class TxReceipt:
    """Outcome of a mined transaction."""

    tx_hash: str
    status: int = 1
    block_number: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


@dataclass(frozen=True)
class PoolView:
    """Pool snapshot plus the owner's position, in the caller's token order."""

    pair: CanonicalPair
    state: PoolState
    reserve_a: int
    reserve_b: int
    balance_a: int = 0
    balance_b: int = 0
    lp_balance: int = 0

    @property
    def exists(self) -> bool:
        return self.state.exists
