"""API endpoints for pool quoting and history."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Path, Query

from cpmm.api.schemas import (
    CandleModel,
    HistoryResponse,
    LiquidityQuoteRequest,
    LiquidityQuoteResponse,
    PoolListingModel,
    PoolListResponse,
    PoolResponse,
    PriceChangeModel,
    QuoteRequest,
    QuoteResponse,
    RemovalPreviewRequest,
    RemovalPreviewResponse,
    TokenInfoModel,
    TokenValidityResponse,
    TradeModel,
)
from cpmm.history import price_change
from cpmm.liquidity import pool_share_pct
from cpmm.session import PoolSession, get_default_session

logger = structlog.get_logger()

router = APIRouter()

ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"

TokenA = Annotated[str, Query(alias="tokenA", pattern=ADDRESS_PATTERN)]
TokenB = Annotated[str, Query(alias="tokenB", pattern=ADDRESS_PATTERN)]
TokenAddress = Annotated[str, Path(pattern=ADDRESS_PATTERN)]


def get_session() -> PoolSession:
    """Dependency provider for the pool session.

    Override this in tests to inject a session over an in-memory ledger:
        app.dependency_overrides[get_session] = lambda: session

    Returns:
        The session used to serve requests.
    """
    return get_default_session()


@router.get("/pool")
async def get_pool(
    token_a: TokenA,
    token_b: TokenB,
    session: PoolSession = Depends(get_session),
) -> PoolResponse:
    """Pool reserves and the session account's position."""
    view = await session.refresh_pool(token_a, token_b)
    share = pool_share_pct(view.lp_balance, view.state.total_shares)
    return PoolResponse.from_view(view, pool_share_pct=str(share))


@router.post("/quote")
async def quote(
    request: QuoteRequest,
    session: PoolSession = Depends(get_session),
) -> QuoteResponse:
    """Swap quote with the slippage-bounded minimum output.

    Error Handling:
        - No pool for the pair: 404
        - Ledger unreachable: 503
    """
    swap_quote = await session.get_quote(
        request.token_a,
        request.token_b,
        int(request.amount_in),
        a_to_b=request.a_to_b,
        slippage_bps=request.slippage_bps,
    )
    logger.info(
        "quote_served",
        token_in=swap_quote.token_in,
        token_out=swap_quote.token_out,
        amount_in=swap_quote.amount_in,
        amount_out=swap_quote.amount_out_estimate,
    )
    return QuoteResponse.from_quote(swap_quote)


@router.post("/liquidity/quote")
async def liquidity_quote(
    request: LiquidityQuoteRequest,
    session: PoolSession = Depends(get_session),
) -> LiquidityQuoteResponse:
    """LP shares a deposit would mint (bootstrap rule for a new pool)."""
    result = await session.get_liquidity_quote(
        request.token_a,
        request.token_b,
        int(request.amount_a),
        int(request.amount_b),
    )
    return LiquidityQuoteResponse.from_quote(result)


@router.post("/liquidity/removal-preview")
async def removal_preview(
    request: RemovalPreviewRequest,
    session: PoolSession = Depends(get_session),
) -> RemovalPreviewResponse:
    """Token amounts paid out for burning LP shares."""
    result = await session.get_removal_preview(
        int(request.lp_amount),
        request.token_a,
        request.token_b,
    )
    return RemovalPreviewResponse.from_quote(result)


@router.get("/history", response_model_exclude_none=True)
async def history(
    token_a: TokenA,
    token_b: TokenB,
    until: Annotated[int | None, Query(ge=0)] = None,
    session: PoolSession = Depends(get_session),
) -> HistoryResponse:
    """Hourly candles and the most recent trades for a pair."""
    candles = await session.get_trade_history(token_a, token_b, until=until)
    trades = await session.get_recent_trades(token_a, token_b)
    change = price_change(candles)
    return HistoryResponse(
        candles=[CandleModel.from_candle(c) for c in candles],
        price_change=PriceChangeModel.from_change(change) if change is not None else None,
        recent_trades=[TradeModel.from_event(t) for t in trades],
    )


@router.get("/pools", response_model_exclude_none=True)
async def pools(session: PoolSession = Depends(get_session)) -> PoolListResponse:
    """Pools created on the pool manager, newest first."""
    listings = await session.list_pools()
    return PoolListResponse(pools=[PoolListingModel.from_listing(listing) for listing in listings])


@router.get("/tokens/{address}")
async def token_info(address: TokenAddress, session: PoolSession = Depends(get_session)) -> TokenInfoModel:
    """ERC20 metadata; 422 when the address is not an ERC20."""
    return TokenInfoModel.from_info(await session.token_info(address))


@router.get("/tokens/{address}/valid")
async def token_validity(
    address: TokenAddress,
    session: PoolSession = Depends(get_session),
) -> TokenValidityResponse:
    """Whether the address answers as an ERC20 usable in a pair."""
    return TokenValidityResponse(address=address, valid=await session.is_valid_token(address))
