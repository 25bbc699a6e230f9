"""Data models for pool interaction."""

from cpmm.models.history import Candle, PriceChange, TradeEvent
from cpmm.models.listing import PoolCreated, PoolListing, TokenInfo
from cpmm.models.pool import (
    CanonicalPair,
    Direction,
    DisplayEstimate,
    LiquidityQuote,
    OperationStatus,
    PoolState,
    PoolView,
    RemovalQuote,
    SwapQuote,
    TokenRef,
    TxReceipt,
)
from cpmm.models.types import (
    ZERO_ADDRESS,
    Address,
    Uint256,
    is_valid_address,
    is_zero_address,
    normalize_address,
)

__all__ = [
    # Pool models
    "TokenRef",
    "CanonicalPair",
    "Direction",
    "PoolState",
    "PoolView",
    "SwapQuote",
    "DisplayEstimate",
    "LiquidityQuote",
    "RemovalQuote",
    "TxReceipt",
    "OperationStatus",
    # History models
    "TradeEvent",
    "Candle",
    "PriceChange",
    # Discovery models
    "TokenInfo",
    "PoolCreated",
    "PoolListing",
    # Types
    "Address",
    "Uint256",
    "ZERO_ADDRESS",
    "normalize_address",
    "is_valid_address",
    "is_zero_address",
]
