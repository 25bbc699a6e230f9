"""Ledger gateway protocol.

The gateway is the narrow RPC boundary between the pool layer and the
ledger. Every method is a coroutine so callers can await it without
blocking a UI loop and cancel it when the request is superseded.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from cpmm.models.history import TradeEvent
from cpmm.models.listing import PoolCreated, TokenInfo
from cpmm.models.pool import CanonicalPair, Direction, PoolState, TxReceipt


@runtime_checkable
class LedgerGateway(Protocol):
    """Read/write operations the pool layer needs from the ledger.

    Pair-taking methods expect a CanonicalPair: the ledger keys pools by
    the sorted pair too.

    Error contract:
        - Transport failures surface as GatewayUnavailable (after the
          adapter's own retries for reads)
        - A rejected transaction, or a read the contract rejects, surfaces
          as OperationReverted
        - A failed allowance grant surfaces as ApprovalFailed
    """

    account: str | None

    async def resolve_pool(self, pair: CanonicalPair) -> str | None:
        """Pool address for the pair, or None when no pool exists."""
        ...

    async def create_pool_if_absent(self, pair: CanonicalPair) -> str:
        """Create the pool when missing and return its address."""
        ...

    async def read_reserves(self, pair_address: str) -> PoolState:
        """Current reserves and LP supply of a pool."""
        ...

    async def read_decimals(self, token: str) -> int:
        """On-chain decimals of a token."""
        ...

    async def read_token_info(self, token: str) -> TokenInfo:
        """ERC20 symbol, name and decimals.

        Raises OperationReverted when the address does not answer as an ERC20.
        """
        ...

    async def read_balance(self, token: str, owner: str) -> int:
        """Token balance of ``owner``."""
        ...

    async def read_share_balance(self, pair_address: str, owner: str) -> int:
        """LP share balance of ``owner`` in a pool."""
        ...

    async def approx_output(self, pair_address: str, amount_in: int, direction: Direction) -> int:
        """The pool's own output approximation for an exact input."""
        ...

    async def approve(self, token: str, spender: str, amount: int) -> TxReceipt:
        """Grant ``spender`` an allowance of exactly ``amount``."""
        ...

    async def submit_swap(
        self,
        pair_address: str,
        amount_in: int,
        min_amount_out: int,
        direction: Direction,
    ) -> TxReceipt:
        """Swap an exact input, reverting below ``min_amount_out``."""
        ...

    async def submit_add_liquidity(
        self,
        pair_address: str,
        amount_low: int,
        amount_high: int,
    ) -> TxReceipt:
        """Deposit both reserves."""
        ...

    async def submit_remove_liquidity(self, pair_address: str, lp_amount: int) -> tuple[int, int]:
        """Burn LP shares; returns (amount_low, amount_high) paid out."""
        ...

    async def fetch_trade_events(
        self,
        pair_address: str,
        from_block: int,
        to_block: int | None = None,
    ) -> list[TradeEvent]:
        """Swap events of a pool; ``to_block=None`` means the latest block."""
        ...

    async def list_pools(self, from_block: int = 0) -> list[PoolCreated]:
        """Pools created by the pool manager since ``from_block``, oldest first."""
        ...


__all__ = ["LedgerGateway"]
