"""Trade event and candle models."""

from __future__ import annotations

from dataclasses import dataclass

from cpmm.models.types import normalize_address


@dataclass(frozen=True)
class TradeEvent:
    """A Swap event emitted by the pool.

    Amounts are raw integers scaled by the decimals of ``token_in`` and
    ``token_out`` respectively.
    """

    user: str
    amount_in: int
    amount_out: int
    token_in: str
    token_out: str
    block_timestamp: int
    tx_hash: str
    block_number: int | None = None
    log_index: int | None = None

    @property
    def position(self) -> tuple[int, int] | None:
        """(block_number, log_index), or None when either is unknown."""
        if self.block_number is None or self.log_index is None:
            return None
        return self.block_number, self.log_index

    def involves(self, token_x: str, token_y: str) -> bool:
        tokens = {normalize_address(self.token_in), normalize_address(self.token_out)}
        return tokens == {normalize_address(token_x), normalize_address(token_y)}


@dataclass(frozen=True)
class Candle:
    """Hourly OHLC summary of trade rates (quote units per base unit)."""

    bucket_start: int
    open: float
    high: float
    low: float
    close: float

    @property
    def is_flat(self) -> bool:
        return self.open == self.high == self.low == self.close


@dataclass(frozen=True)
class PriceChange:
    """Change between the first and last close of a candle series."""

    first_price: float
    last_price: float
    change: float
    change_pct: float

    @property
    def is_positive(self) -> bool:
        return self.change >= 0
