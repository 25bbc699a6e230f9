"""Swap quoting.

Two paths with different trust levels:

1. ``preview_output`` / ``quote`` ask the pool's own approximation
   entrypoint. This is the only source for ``min_amount_out``.
2. ``display_estimate`` replicates the constant product formula locally for
   instant feedback while the user types. It is never used to build an
   execution parameter.
"""

from __future__ import annotations

import structlog

from cpmm.amm.constant_product import ConstantProduct
from cpmm.constants import BPS_DENOMINATOR
from cpmm.errors import PoolNotFound
from cpmm.gateway.base import LedgerGateway
from cpmm.models.pool import CanonicalPair, Direction, DisplayEstimate, PoolState, SwapQuote
from cpmm.safe_int import S

logger = structlog.get_logger()


def check_slippage(slippage_bps: int) -> None:
    if not 0 <= slippage_bps <= BPS_DENOMINATOR:
        raise ValueError(f"slippage_bps must be in [0, {BPS_DENOMINATOR}], got {slippage_bps}")


def compute_min_output(estimate: int, slippage_bps: int) -> int:
    """Minimum acceptable output for a slippage tolerance.

    ``estimate * (10000 - slippage_bps) // 10000``, floor rounded so the
    bound never exceeds the estimate.

    Raises:
        ValueError: If slippage_bps is outside [0, 10000] or estimate is negative
    """
    check_slippage(slippage_bps)
    if estimate < 0:
        raise ValueError(f"Output estimate cannot be negative: {estimate}")
    return (S(estimate) * S(BPS_DENOMINATOR - slippage_bps) // S(BPS_DENOMINATOR)).value


class QuoteEngine:
    """Builds swap previews against a pool snapshot."""

    def __init__(self, gateway: LedgerGateway, amm: ConstantProduct | None = None) -> None:
        self.gateway = gateway
        self.amm = amm if amm is not None else ConstantProduct()

    async def preview_output(
        self,
        pool: PoolState,
        amount_in: int,
        direction: Direction,
        pair: CanonicalPair | None = None,
    ) -> int:
        """Ledger-sourced output estimate for ``amount_in``.

        Returns 0 without touching the ledger for a non-positive input.

        Raises:
            PoolNotFound: If the pool does not exist
        """
        if amount_in <= 0:
            return 0
        if pool.pair_address is None:
            if pair is not None:
                raise PoolNotFound(pair.low.key, pair.high.key)
            raise PoolNotFound()
        return await self.gateway.approx_output(pool.pair_address, amount_in, direction)

    async def quote(
        self,
        pool: PoolState,
        pair: CanonicalPair,
        amount_in: int,
        direction: Direction,
        slippage_bps: int,
    ) -> SwapQuote:
        """Full swap quote with the minimum output for ``slippage_bps``.

        Raises:
            ValueError: If slippage_bps is out of range
            PoolNotFound: If the pool does not exist
        """
        check_slippage(slippage_bps)

        token_in, token_out = pair.tokens_for(direction)
        if amount_in <= 0:
            return SwapQuote.zero(direction, token_in.key, token_out.key)

        estimate = await self.preview_output(pool, amount_in, direction, pair=pair)
        min_out = compute_min_output(estimate, slippage_bps)

        logger.debug(
            "swap_quoted",
            pool=pool.pair_address,
            direction=direction.value,
            amount_in=amount_in,
            amount_out=estimate,
            min_amount_out=min_out,
            slippage_bps=slippage_bps,
        )

        return SwapQuote(
            amount_in=amount_in,
            amount_out_estimate=estimate,
            min_amount_out=min_out,
            direction=direction,
            token_in=token_in.key,
            token_out=token_out.key,
        )

    def display_estimate(
        self,
        pool: PoolState,
        amount_in: int,
        direction: Direction,
    ) -> DisplayEstimate | None:
        """Local constant product estimate for display.

        Returns None for a missing pool or empty reserves.
        """
        if not pool.has_liquidity:
            return None
        reserve_in, reserve_out = pool.reserves_for(direction)
        return DisplayEstimate(
            amount_in=amount_in,
            amount_out=self.amm.get_amount_out(amount_in, reserve_in, reserve_out),
            direction=direction,
            price_impact_bps=self.amm.price_impact_bps(amount_in, reserve_in, reserve_out),
        )


__all__ = ["QuoteEngine", "check_slippage", "compute_min_output"]
