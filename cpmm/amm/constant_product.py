"""Local constant product math: x * y = k.

This replicates the pool's pricing rule for instant, non-committing display.
Execution-facing numbers (minimum outputs) come from the ledger's own
approximation entrypoint instead, since the contract's rounding is
authoritative.
"""

from __future__ import annotations

from dataclasses import dataclass

from cpmm.constants import BPS_DENOMINATOR
from cpmm.safe_int import S


@dataclass(frozen=True)
class ConstantProduct:
    """Constant product formula with an optional input fee.

    Attributes:
        fee_bps: Fee on the input amount in basis points (0 = fee-less)
    """

    fee_bps: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.fee_bps < BPS_DENOMINATOR:
            raise ValueError(f"fee_bps must be in [0, {BPS_DENOMINATOR}), got {self.fee_bps}")

    @property
    def fee_multiplier(self) -> int:
        """10000 - fee_bps; 9970 for a 0.3% fee."""
        return BPS_DENOMINATOR - self.fee_bps

    def get_amount_out(self, amount_in: int, reserve_in: int, reserve_out: int) -> int:
        """Output amount for an exact input.

        Formula: out = (in * fee * R_out) / (R_in * 10000 + in * fee)

        The result is floor-rounded and always strictly below ``reserve_out``.
        Returns 0 for non-positive input or empty reserves.
        """
        if amount_in <= 0:
            return 0
        if reserve_in <= 0 or reserve_out <= 0:
            return 0

        amount_in_with_fee = S(amount_in) * S(self.fee_multiplier)
        numerator = amount_in_with_fee * S(reserve_out)
        denominator = S(reserve_in) * S(BPS_DENOMINATOR) + amount_in_with_fee

        return (numerator // denominator).value

    def price_impact_bps(self, amount_in: int, reserve_in: int, reserve_out: int) -> int:
        """Shortfall of the execution rate against the spot rate, in bps.

        Compares ``out / in`` with ``R_out / R_in`` by cross-multiplication,
        rounded up so the displayed impact is never understated.
        """
        amount_out = self.get_amount_out(amount_in, reserve_in, reserve_out)
        if amount_out == 0:
            return 0
        # spot_out is what the input would buy at the unchanged spot rate
        spot_out = S(amount_in) * S(reserve_out)
        actual = S(amount_out) * S(reserve_in)
        shortfall = spot_out.value - actual.value
        if shortfall <= 0:
            return 0
        return (S(shortfall) * S(BPS_DENOMINATOR)).ceiling_div(spot_out).value


__all__ = ["ConstantProduct"]
