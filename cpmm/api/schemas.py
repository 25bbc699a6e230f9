"""Request and response models for the HTTP surface.

Amounts travel as decimal strings so 256-bit values survive JSON clients
that parse numbers as doubles.
"""

from pydantic import BaseModel, Field

from cpmm.models.history import Candle, PriceChange, TradeEvent
from cpmm.models.listing import PoolListing, TokenInfo
from cpmm.models.pool import LiquidityQuote, PoolView, RemovalQuote, SwapQuote
from cpmm.models.types import Address, Uint256


class PairRequest(BaseModel):
    """Base for requests naming a pair in the caller's order."""

    token_a: Address = Field(alias="tokenA")
    token_b: Address = Field(alias="tokenB")

    model_config = {"populate_by_name": True}


class QuoteRequest(PairRequest):
    amount_in: Uint256 = Field(alias="amountIn")
    a_to_b: bool = Field(default=True, alias="aToB")
    slippage_bps: int | None = Field(default=None, alias="slippageBps", ge=0, le=10_000)


class QuoteResponse(BaseModel):
    """Ledger-sourced swap quote."""

    amount_in: Uint256 = Field(alias="amountIn")
    amount_out: Uint256 = Field(alias="amountOut")
    min_amount_out: Uint256 = Field(alias="minAmountOut")
    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_quote(cls, quote: SwapQuote) -> "QuoteResponse":
        return cls(
            amount_in=str(quote.amount_in),
            amount_out=str(quote.amount_out_estimate),
            min_amount_out=str(quote.min_amount_out),
            token_in=quote.token_in,
            token_out=quote.token_out,
        )


class LiquidityQuoteRequest(PairRequest):
    amount_a: Uint256 = Field(alias="amountA")
    amount_b: Uint256 = Field(alias="amountB")


class LiquidityQuoteResponse(BaseModel):
    amount_a: Uint256 = Field(alias="amountA")
    amount_b: Uint256 = Field(alias="amountB")
    lp_tokens_estimate: Uint256 = Field(alias="lpTokensEstimate")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_quote(cls, quote: LiquidityQuote) -> "LiquidityQuoteResponse":
        return cls(
            amount_a=str(quote.amount_a),
            amount_b=str(quote.amount_b),
            lp_tokens_estimate=str(quote.lp_tokens_estimate),
        )


class RemovalPreviewRequest(PairRequest):
    lp_amount: Uint256 = Field(alias="lpAmount")


class RemovalPreviewResponse(BaseModel):
    lp_tokens_in: Uint256 = Field(alias="lpTokensIn")
    amount_a_out: Uint256 = Field(alias="amountAOut")
    amount_b_out: Uint256 = Field(alias="amountBOut")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_quote(cls, quote: RemovalQuote) -> "RemovalPreviewResponse":
        return cls(
            lp_tokens_in=str(quote.lp_tokens_in),
            amount_a_out=str(quote.amount_a_out),
            amount_b_out=str(quote.amount_b_out),
        )


class PoolResponse(BaseModel):
    """Pool snapshot in the caller's token order.

    ``pool_share_pct`` is a decimal string percentage of the pool held by
    the session's account.
    """

    pool_address: Address | None = Field(alias="poolAddress")
    exists: bool
    reserve_a: Uint256 = Field(alias="reserveA")
    reserve_b: Uint256 = Field(alias="reserveB")
    total_shares: Uint256 = Field(alias="totalShares")
    balance_a: Uint256 = Field(alias="balanceA")
    balance_b: Uint256 = Field(alias="balanceB")
    lp_balance: Uint256 = Field(alias="lpBalance")
    pool_share_pct: str = Field(alias="poolSharePct")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_view(cls, view: PoolView, pool_share_pct: str) -> "PoolResponse":
        return cls(
            pool_address=view.state.pair_address,
            exists=view.exists,
            reserve_a=str(view.reserve_a),
            reserve_b=str(view.reserve_b),
            total_shares=str(view.state.total_shares),
            balance_a=str(view.balance_a),
            balance_b=str(view.balance_b),
            lp_balance=str(view.lp_balance),
            pool_share_pct=pool_share_pct,
        )


class CandleModel(BaseModel):
    bucket_start: int = Field(alias="bucketStart")
    open: float
    high: float
    low: float
    close: float

    model_config = {"populate_by_name": True}

    @classmethod
    def from_candle(cls, candle: Candle) -> "CandleModel":
        return cls(
            bucket_start=candle.bucket_start,
            open=candle.open,
            high=candle.high,
            low=candle.low,
            close=candle.close,
        )


class PriceChangeModel(BaseModel):
    first_price: float = Field(alias="firstPrice")
    last_price: float = Field(alias="lastPrice")
    change: float
    change_pct: float = Field(alias="changePct")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_change(cls, change: PriceChange) -> "PriceChangeModel":
        return cls(
            first_price=change.first_price,
            last_price=change.last_price,
            change=change.change,
            change_pct=change.change_pct,
        )


class TradeModel(BaseModel):
    user: Address
    amount_in: Uint256 = Field(alias="amountIn")
    amount_out: Uint256 = Field(alias="amountOut")
    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    timestamp: int
    tx_hash: str = Field(alias="txHash")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_event(cls, event: TradeEvent) -> "TradeModel":
        return cls(
            user=event.user,
            amount_in=str(event.amount_in),
            amount_out=str(event.amount_out),
            token_in=event.token_in,
            token_out=event.token_out,
            timestamp=event.block_timestamp,
            tx_hash=event.tx_hash,
        )


class HistoryResponse(BaseModel):
    """Hourly candles, their price change and the latest trades."""

    candles: list[CandleModel]
    price_change: PriceChangeModel | None = Field(default=None, alias="priceChange")
    recent_trades: list[TradeModel] = Field(default_factory=list, alias="recentTrades")

    model_config = {"populate_by_name": True}


class TokenInfoModel(BaseModel):
    address: Address
    symbol: str
    name: str
    decimals: int

    @classmethod
    def from_info(cls, info: TokenInfo) -> "TokenInfoModel":
        return cls(address=info.address, symbol=info.symbol, name=info.name, decimals=info.decimals)


class TokenValidityResponse(BaseModel):
    address: Address
    valid: bool


class PoolListingModel(BaseModel):
    """A discovered pool; reserves follow the tokenA/tokenB order."""

    pool_address: Address = Field(alias="poolAddress")
    token_a: TokenInfoModel = Field(alias="tokenA")
    token_b: TokenInfoModel = Field(alias="tokenB")
    created_at: int = Field(alias="createdAt")
    is_new: bool = Field(alias="isNew")
    reserve_a: Uint256 = Field(alias="reserveA")
    reserve_b: Uint256 = Field(alias="reserveB")
    price_change: PriceChangeModel | None = Field(default=None, alias="priceChange")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_listing(cls, listing: PoolListing) -> "PoolListingModel":
        change = listing.price_change
        return cls(
            pool_address=listing.pool,
            token_a=TokenInfoModel.from_info(listing.token_a),
            token_b=TokenInfoModel.from_info(listing.token_b),
            created_at=listing.created_at,
            is_new=listing.is_new,
            reserve_a=str(listing.reserve_a),
            reserve_b=str(listing.reserve_b),
            price_change=PriceChangeModel.from_change(change) if change is not None else None,
        )


class PoolListResponse(BaseModel):
    pools: list[PoolListingModel]
