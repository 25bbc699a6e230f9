"""LP share accounting: mint and burn estimation.

Mirrors the pool's share rules:

- First deposit (no shares outstanding): shares = sqrt(amount_low * amount_high),
  taken as an exact integer square root with LP shares carried at 18 decimals.
- Later deposits: shares = min(amount_low * total / reserve_low,
  amount_high * total / reserve_high). The minimum of the two ratios keeps a
  depositor from minting more than the scarcer side of the deposit supports.
- Withdrawals pay out ``lp / total`` of each reserve, floor rounded.

All arithmetic is integer (SafeInt) so estimates match the ledger's rounding
and never overstate what the caller receives.
"""

from __future__ import annotations

from decimal import Decimal

import structlog

from cpmm.amounts import DECIMAL_HIGH_PREC_CONTEXT, rate
from cpmm.constants import SHARE_DECIMALS
from cpmm.errors import ReserveInvariantViolation
from cpmm.models.pool import PoolState
from cpmm.safe_int import S

logger = structlog.get_logger()


def bootstrap_shares(
    amount_low: int,
    amount_high: int,
    decimals_low: int = SHARE_DECIMALS,
    decimals_high: int = SHARE_DECIMALS,
    share_decimals: int = SHARE_DECIMALS,
) -> int:
    """Shares minted by the first deposit into an empty pool.

    Computes ``floor(sqrt(low_units * high_units))`` expressed in share
    units, where ``*_units`` are the human amounts. In integers this is
    ``isqrt(amount_low * amount_high * 10**(2*share_decimals - decimals_low
    - decimals_high))``; a negative exponent divides the product instead.

    With every decimals argument equal this reduces to
    ``isqrt(amount_low * amount_high)``.
    """
    if amount_low < 0 or amount_high < 0:
        raise ValueError("Deposit amounts cannot be negative")

    product = S(amount_low) * S(amount_high)
    exponent = 2 * share_decimals - decimals_low - decimals_high
    if exponent >= 0:
        product = product * (S(10) ** exponent)
    else:
        product = product // (S(10) ** -exponent)
    return product.sqrt().value


def estimate_minted_shares(
    pool: PoolState,
    amount_low: int,
    amount_high: int,
    decimals_low: int = SHARE_DECIMALS,
    decimals_high: int = SHARE_DECIMALS,
    share_decimals: int = SHARE_DECIMALS,
) -> int:
    """LP shares a deposit of (amount_low, amount_high) will mint.

    Args:
        pool: Current pool snapshot (may be absent: first deposit)
        amount_low: Deposit of the canonical low token
        amount_high: Deposit of the canonical high token
        decimals_low: Decimals of the low token (bootstrap case only)
        decimals_high: Decimals of the high token (bootstrap case only)
        share_decimals: Decimals of the LP share token (bootstrap case only)

    Returns:
        Estimated shares, floor rounded

    Raises:
        ValueError: If an amount is negative
        ReserveInvariantViolation: If shares exist but a reserve is zero
    """
    if amount_low < 0 or amount_high < 0:
        raise ValueError("Deposit amounts cannot be negative")

    if pool.total_shares == 0:
        return bootstrap_shares(amount_low, amount_high, decimals_low, decimals_high, share_decimals)

    if pool.reserve_low == 0 or pool.reserve_high == 0:
        logger.warning(
            "zero_reserve_with_shares",
            pool=pool.pair_address,
            reserve_low=pool.reserve_low,
            reserve_high=pool.reserve_high,
            total_shares=pool.total_shares,
        )
        raise ReserveInvariantViolation(
            f"Pool {pool.pair_address} has {pool.total_shares} shares but a zero reserve "
            f"({pool.reserve_low}, {pool.reserve_high})"
        )

    total = S(pool.total_shares)
    from_low = S(amount_low) * total // S(pool.reserve_low)
    from_high = S(amount_high) * total // S(pool.reserve_high)
    return from_low.min(from_high).value


def preview_removal(pool: PoolState, lp_amount: int) -> tuple[int, int]:
    """Reserves paid out for burning ``lp_amount`` shares.

    Returns:
        (amount_low, amount_high), floor rounded; each never exceeds its
        reserve for ``lp_amount <= total_shares``

    Raises:
        ValueError: If lp_amount is negative or exceeds the share supply
        ReserveInvariantViolation: If the pool has no shares outstanding
    """
    if lp_amount < 0:
        raise ValueError(f"LP amount cannot be negative: {lp_amount}")
    if pool.total_shares == 0:
        raise ReserveInvariantViolation(f"Pool {pool.pair_address} has no shares outstanding")
    if lp_amount > pool.total_shares:
        raise ValueError(f"LP amount {lp_amount} exceeds total shares {pool.total_shares}")

    lp = S(lp_amount)
    total = S(pool.total_shares)
    amount_low = lp * S(pool.reserve_low) // total
    amount_high = lp * S(pool.reserve_high) // total
    return amount_low.value, amount_high.value


def implied_price(
    amount_low: int,
    amount_high: int,
    decimals_low: int = SHARE_DECIMALS,
    decimals_high: int = SHARE_DECIMALS,
) -> Decimal:
    """High-token units per low-token unit set by a deposit ratio.

    For the bootstrap deposit this is the pool's initial price.

    Raises:
        ReserveInvariantViolation: If amount_low is zero
    """
    if amount_low == 0:
        raise ReserveInvariantViolation("Price undefined for a zero low-side amount")
    return rate(amount_high, decimals_high, amount_low, decimals_low)


def pool_share_pct(lp_balance: int, total_shares: int) -> Decimal:
    """Percentage of the pool owned by ``lp_balance`` shares (0 when empty)."""
    if lp_balance <= 0 or total_shares <= 0:
        return Decimal(0)
    ctx = DECIMAL_HIGH_PREC_CONTEXT
    return ctx.divide(ctx.multiply(Decimal(lp_balance), Decimal(100)), Decimal(total_shares))


__all__ = [
    "bootstrap_shares",
    "estimate_minted_shares",
    "preview_removal",
    "implied_price",
    "pool_share_pct",
]
