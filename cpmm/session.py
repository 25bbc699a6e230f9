"""UI-facing pool session.

``PoolSession`` is the boundary between the caller's view of a pair, in
whichever (token_a, token_b) order it was entered, and the canonical pair
the ledger keys pools by. Every method canonicalizes once on the way in and
maps its results back to the caller's order once on the way out.

Mutating operations (swap, add/remove liquidity) are strictly sequential
per session: a second one while the first is pending raises
OperationInProgress instead of queueing behind it.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

import structlog

from cpmm.amm.constant_product import ConstantProduct
from cpmm.config import DEFAULT_SESSION_CONFIG, NetworkConfig, SessionConfig
from cpmm.constants import NEW_POOL_SECONDS
from cpmm.errors import InsufficientBalance, OperationInProgress, OperationReverted, PoolNotFound
from cpmm.gateway.base import LedgerGateway
from cpmm.history import TradeHistoryAggregator, recent_trades
from cpmm.liquidity import estimate_minted_shares, preview_removal
from cpmm.models.history import Candle, TradeEvent
from cpmm.models.listing import PoolCreated, PoolListing, TokenInfo
from cpmm.models.pool import (
    CanonicalPair,
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
from cpmm.models.types import normalize_address
from cpmm.pair import canonicalize
from cpmm.quote import QuoteEngine, check_slippage
from cpmm.refresh import QuoteDebouncer, SnapshotCache

logger = structlog.get_logger()

StatusCallback = Callable[[OperationStatus], None]


class PoolSession:
    """Async pool API for one user against one ledger.

    Args:
        gateway: Ledger access
        config: Session behaviour (slippage default, debounce window, ...)
        owner: Account whose balances are read (defaults to the gateway's)
        network: Network settings; supplies the display fee and the first
            block scanned for trade history
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        config: SessionConfig = DEFAULT_SESSION_CONFIG,
        owner: str | None = None,
        network: NetworkConfig | None = None,
    ) -> None:
        self.gateway = gateway
        self.config = config
        self.owner = normalize_address(owner) if owner else None
        self.network = network
        fee_bps = network.pool_fee_bps if network is not None else 0
        self.quotes = QuoteEngine(gateway, ConstantProduct(fee_bps=fee_bps))
        self._decimals: dict[str, int] = {}
        self._snapshots: SnapshotCache[PoolState] = SnapshotCache()
        self._debouncer = QuoteDebouncer(config.quote_debounce_seconds)
        self._lock = asyncio.Lock()
        self._last_pair: CanonicalPair | None = None

    @property
    def busy(self) -> bool:
        """True while a mutating operation is pending."""
        return self._lock.locked()

    @property
    def account(self) -> str | None:
        if self.owner is not None:
            return self.owner
        if self.gateway.account is not None:
            return normalize_address(self.gateway.account)
        return None

    # --- Pair and state resolution ---

    async def token(self, address: str) -> TokenRef:
        """TokenRef with decimals read once per session."""
        key = normalize_address(address, validate=True)
        if key not in self._decimals:
            self._decimals[key] = await self.gateway.read_decimals(key)
        return TokenRef(address=key, decimals=self._decimals[key])

    async def token_info(self, address: str) -> TokenInfo:
        """ERC20 symbol, name and decimals of a token.

        Raises:
            ValueError: If the address is malformed
            OperationReverted: If the address does not answer as an ERC20
        """
        key = normalize_address(address, validate=True)
        info = await self.gateway.read_token_info(key)
        self._decimals.setdefault(key, info.decimals)
        return info

    async def is_valid_token(self, address: str) -> bool:
        """True when the address is an ERC20 with usable decimals."""
        try:
            info = await self.token_info(address)
            ref = info.ref
        except (ValueError, OperationReverted) as e:
            logger.debug("token_rejected", token=address, error=str(e))
            return False
        logger.debug("token_accepted", token=ref.key, symbol=info.symbol)
        return True

    async def pair(self, token_a: str, token_b: str) -> CanonicalPair:
        if normalize_address(token_a) == normalize_address(token_b):
            raise ValueError(f"A pair needs two distinct tokens, got {token_a} twice")
        a, b = await asyncio.gather(self.token(token_a), self.token(token_b))
        return canonicalize(a, b)

    async def _read_pool(self, pair: CanonicalPair) -> PoolState:
        pair_address = await self.gateway.resolve_pool(pair)
        if pair_address is None:
            return PoolState.absent()
        return await self.gateway.read_reserves(pair_address)

    async def _pool_state(self, pair: CanonicalPair) -> PoolState:
        """Fresh snapshot through the refresh-ordering cache."""
        key = (pair.low.key, pair.high.key)
        return await self._snapshots.refresh(key, lambda: self._read_pool(pair))

    async def _cached_pool_state(self, pair: CanonicalPair) -> PoolState:
        cached = self._snapshots.get((pair.low.key, pair.high.key))
        if cached is not None:
            return cached
        return await self._pool_state(pair)

    def _invalidate(self, pair: CanonicalPair) -> None:
        self._snapshots.invalidate((pair.low.key, pair.high.key))

    async def _existing_pool(self, pair: CanonicalPair) -> tuple[str, PoolState]:
        """(pool address, snapshot), raising PoolNotFound for a missing pool."""
        state = await self._pool_state(pair)
        if state.pair_address is None:
            raise PoolNotFound(pair.low.key, pair.high.key)
        return state.pair_address, state

    @property
    def _from_block(self) -> int:
        """First block scanned for logs."""
        return self.network.history_from_block if self.network is not None else 0

    def _require_account(self) -> str:
        account = self.account
        if account is None:
            raise ValueError("No account configured for this session")
        return account

    # --- Reads ---

    async def refresh_pool(self, token_a: str, token_b: str) -> PoolView:
        """Pool snapshot plus the account's balances, in the caller's order."""
        pair = await self.pair(token_a, token_b)
        state = await self._pool_state(pair)
        self._last_pair = pair
        reserve_a, reserve_b = pair.from_canonical(state.reserve_low, state.reserve_high)

        balance_a = balance_b = lp_balance = 0
        account = self.account
        if account is not None:
            balance_a, balance_b = await asyncio.gather(
                self.gateway.read_balance(pair.token_a.key, account),
                self.gateway.read_balance(pair.token_b.key, account),
            )
            if state.pair_address is not None:
                lp_balance = await self.gateway.read_share_balance(state.pair_address, account)

        logger.info(
            "pool_refreshed",
            pool=state.pair_address,
            token_a=pair.token_a.key,
            token_b=pair.token_b.key,
            reserve_a=reserve_a,
            reserve_b=reserve_b,
            total_shares=state.total_shares,
        )
        return PoolView(
            pair=pair,
            state=state,
            reserve_a=reserve_a,
            reserve_b=reserve_b,
            balance_a=balance_a,
            balance_b=balance_b,
            lp_balance=lp_balance,
        )

    async def get_quote(
        self,
        token_a: str,
        token_b: str,
        amount_in: int,
        a_to_b: bool = True,
        slippage_bps: int | None = None,
    ) -> SwapQuote:
        """Ledger-sourced swap quote.

        A non-positive ``amount_in`` quotes zero without looking the pool up.

        Raises:
            PoolNotFound: If the pair has no pool
            ValueError: If slippage_bps is out of range
        """
        pair = await self.pair(token_a, token_b)
        if slippage_bps is None:
            slippage_bps = self.config.default_slippage_bps
        direction = pair.direction_for(a_to_b)
        if amount_in <= 0:
            check_slippage(slippage_bps)
            token_in, token_out = pair.tokens_for(direction)
            return SwapQuote.zero(direction, token_in.key, token_out.key)
        state = await self._pool_state(pair)
        return await self.quotes.quote(state, pair, amount_in, direction, slippage_bps)

    async def debounced_quote(
        self,
        token_a: str,
        token_b: str,
        amount_in: int,
        a_to_b: bool = True,
        slippage_bps: int | None = None,
    ) -> SwapQuote | None:
        """``get_quote`` after the debounce window; None when superseded."""
        return await self._debouncer.submit(
            lambda: self.get_quote(token_a, token_b, amount_in, a_to_b, slippage_bps)
        )

    async def get_display_estimate(
        self,
        token_a: str,
        token_b: str,
        amount_in: int,
        a_to_b: bool = True,
    ) -> DisplayEstimate | None:
        """Local estimate from the last known snapshot; None without liquidity."""
        pair = await self.pair(token_a, token_b)
        state = await self._cached_pool_state(pair)
        return self.quotes.display_estimate(state, amount_in, pair.direction_for(a_to_b))

    async def get_liquidity_quote(
        self,
        token_a: str,
        token_b: str,
        amount_a: int,
        amount_b: int,
    ) -> LiquidityQuote:
        """Shares a deposit would mint; a missing pool uses the bootstrap rule."""
        pair = await self.pair(token_a, token_b)
        state = await self._pool_state(pair)
        amount_low, amount_high = pair.to_canonical(amount_a, amount_b)
        shares = estimate_minted_shares(
            state,
            amount_low,
            amount_high,
            pair.low.decimals,
            pair.high.decimals,
        )
        return LiquidityQuote(amount_a=amount_a, amount_b=amount_b, lp_tokens_estimate=shares)

    async def get_removal_preview(
        self,
        lp_amount: int,
        token_a: str | None = None,
        token_b: str | None = None,
    ) -> RemovalQuote:
        """Payout for burning ``lp_amount`` shares.

        Defaults to the pair of the last ``refresh_pool`` call.

        Raises:
            ValueError: If no pair is given and none was refreshed yet
            PoolNotFound: If the pair has no pool
        """
        if token_a is not None and token_b is not None:
            pair = await self.pair(token_a, token_b)
        elif self._last_pair is not None:
            pair = self._last_pair
        else:
            raise ValueError("No pair given and no pool refreshed yet")

        _, state = await self._existing_pool(pair)
        amount_low, amount_high = preview_removal(state, lp_amount)
        amount_a, amount_b = pair.from_canonical(amount_low, amount_high)
        return RemovalQuote(lp_tokens_in=lp_amount, amount_a_out=amount_a, amount_b_out=amount_b)

    async def _trade_events(self, pair: CanonicalPair) -> list[TradeEvent] | None:
        pair_address = await self.gateway.resolve_pool(pair)
        if pair_address is None:
            return None
        return await self.gateway.fetch_trade_events(pair_address, self._from_block)

    async def get_trade_history(self, token_a: str, token_b: str, until: int | None = None) -> list[Candle]:
        """Hourly candles for the pair; empty when the pool does not exist."""
        pair = await self.pair(token_a, token_b)
        events = await self._trade_events(pair)
        if not events:
            return []
        aggregator = TradeHistoryAggregator.for_pair(
            pair.token_a.key,
            pair.token_b.key,
            {pair.low.key: pair.low.decimals, pair.high.key: pair.high.decimals},
            self.config.priority,
            self.config.max_candles,
        )
        candles = aggregator.aggregate(events, until=until)
        logger.debug(
            "trade_history_built",
            base=aggregator.base_token,
            quote=aggregator.quote_token,
            events=len(events),
            candles=len(candles),
        )
        return candles

    async def get_recent_trades(self, token_a: str, token_b: str, limit: int | None = None) -> list[TradeEvent]:
        """Latest trades on the pair, newest first."""
        pair = await self.pair(token_a, token_b)
        events = await self._trade_events(pair)
        if limit is None:
            limit = self.config.recent_trades_limit
        return recent_trades(events or [], limit)

    async def list_pools(self, now: int | None = None) -> list[PoolListing]:
        """Pools created on the pool manager, newest first.

        A pool whose token does not answer as an ERC20 is left out.

        Args:
            now: Reference time for ``is_new`` (defaults to the wall clock)
        """
        if now is None:
            now = int(time.time())
        created = await self.gateway.list_pools(self._from_block)
        listings = await asyncio.gather(*(self._listing(record, now) for record in created))
        found = [listing for listing in listings if listing is not None]
        found.sort(key=lambda listing: listing.created_at, reverse=True)
        logger.debug("pools_listed", created=len(created), listed=len(found))
        return found

    async def _listing(self, created: PoolCreated, now: int) -> PoolListing | None:
        try:
            info_a, info_b = await asyncio.gather(
                self.token_info(created.token_a),
                self.token_info(created.token_b),
            )
            pair = canonicalize(info_a.ref, info_b.ref)
        except (ValueError, OperationReverted) as e:
            logger.warning("pool_listing_skipped", pool=created.pool, error=str(e))
            return None

        state, events = await asyncio.gather(
            self.gateway.read_reserves(created.pool),
            self.gateway.fetch_trade_events(created.pool, max(self._from_block, created.block_number)),
        )
        reserve_a, reserve_b = pair.from_canonical(state.reserve_low, state.reserve_high)
        aggregator = TradeHistoryAggregator.for_pair(
            pair.token_a.key,
            pair.token_b.key,
            {pair.low.key: pair.low.decimals, pair.high.key: pair.high.decimals},
            self.config.priority,
        )
        return PoolListing(
            pool=created.pool,
            token_a=info_a,
            token_b=info_b,
            created_at=created.block_timestamp,
            is_new=now - created.block_timestamp < NEW_POOL_SECONDS,
            reserve_a=reserve_a,
            reserve_b=reserve_b,
            price_change=aggregator.rate_change(events),
        )

    # --- Mutations ---

    @asynccontextmanager
    async def _operation(self, name: str, on_status: StatusCallback | None) -> AsyncIterator[None]:
        """Hold the busy flag and report ERROR on failure."""
        if self._lock.locked():
            raise OperationInProgress(f"Cannot start {name}: another operation is pending")
        async with self._lock:
            try:
                yield
            except Exception as e:
                logger.warning("operation_failed", operation=name, error=str(e), error_type=type(e).__name__)
                _notify(on_status, OperationStatus.ERROR)
                raise

    async def _check_balance(self, token: TokenRef, required: int) -> None:
        available = await self.gateway.read_balance(token.key, self._require_account())
        if available < required:
            raise InsufficientBalance(token.key, required, available)

    async def swap(
        self,
        token_a: str,
        token_b: str,
        amount_in: int,
        min_amount_out: int,
        a_to_b: bool = True,
        on_status: StatusCallback | None = None,
    ) -> TxReceipt:
        """Approve exactly ``amount_in`` of the input token, then swap.

        ``min_amount_out`` should come from ``get_quote``.

        Raises:
            OperationInProgress: If another operation is pending
            PoolNotFound: If the pair has no pool
            InsufficientBalance: If the account holds less than amount_in
            ApprovalFailed: If the allowance grant fails (nothing submitted)
            OperationReverted: If the ledger rejects the swap
        """
        if amount_in <= 0:
            raise ValueError(f"Swap amount must be positive, got {amount_in}")
        if min_amount_out < 0:
            raise ValueError(f"min_amount_out cannot be negative, got {min_amount_out}")

        async with self._operation("swap", on_status):
            pair = await self.pair(token_a, token_b)
            pair_address, _ = await self._existing_pool(pair)
            direction = pair.direction_for(a_to_b)
            token_in, token_out = pair.tokens_for(direction)
            await self._check_balance(token_in, amount_in)

            _notify(on_status, OperationStatus.APPROVING)
            await self.gateway.approve(token_in.key, pair_address, amount_in)

            _notify(on_status, OperationStatus.SUBMITTING)
            receipt = await self.gateway.submit_swap(pair_address, amount_in, min_amount_out, direction)
            self._invalidate(pair)

            logger.info(
                "swap_completed",
                pool=pair_address,
                token_in=token_in.key,
                token_out=token_out.key,
                amount_in=amount_in,
                min_amount_out=min_amount_out,
                tx_hash=receipt.tx_hash,
            )
            _notify(on_status, OperationStatus.COMPLETED)
            return receipt

    async def add_liquidity(
        self,
        token_a: str,
        token_b: str,
        amount_a: int,
        amount_b: int,
        on_status: StatusCallback | None = None,
    ) -> TxReceipt:
        """Deposit both tokens, creating the pool first when it is missing.

        Each token is approved for exactly its deposit before the deposit is
        submitted.
        """
        if amount_a <= 0 or amount_b <= 0:
            raise ValueError(f"Deposit amounts must be positive, got ({amount_a}, {amount_b})")

        async with self._operation("add_liquidity", on_status):
            pair = await self.pair(token_a, token_b)
            await self._check_balance(pair.token_a, amount_a)
            await self._check_balance(pair.token_b, amount_b)

            pair_address = await self.gateway.create_pool_if_absent(pair)
            amount_low, amount_high = pair.to_canonical(amount_a, amount_b)

            _notify(on_status, OperationStatus.APPROVING)
            await self.gateway.approve(pair.low.key, pair_address, amount_low)
            await self.gateway.approve(pair.high.key, pair_address, amount_high)

            _notify(on_status, OperationStatus.SUBMITTING)
            receipt = await self.gateway.submit_add_liquidity(pair_address, amount_low, amount_high)
            self._invalidate(pair)

            logger.info(
                "liquidity_added",
                pool=pair_address,
                amount_a=amount_a,
                amount_b=amount_b,
                tx_hash=receipt.tx_hash,
            )
            _notify(on_status, OperationStatus.COMPLETED)
            return receipt

    async def remove_liquidity(
        self,
        token_a: str,
        token_b: str,
        lp_amount: int,
        on_status: StatusCallback | None = None,
    ) -> RemovalQuote:
        """Burn ``lp_amount`` shares and return the payout in the caller's order."""
        if lp_amount <= 0:
            raise ValueError(f"LP amount must be positive, got {lp_amount}")

        async with self._operation("remove_liquidity", on_status):
            pair = await self.pair(token_a, token_b)
            pair_address, _ = await self._existing_pool(pair)
            held = await self.gateway.read_share_balance(pair_address, self._require_account())
            if held < lp_amount:
                raise InsufficientBalance(pair_address, lp_amount, held)

            _notify(on_status, OperationStatus.SUBMITTING)
            amount_low, amount_high = await self.gateway.submit_remove_liquidity(pair_address, lp_amount)
            self._invalidate(pair)

            amount_a, amount_b = pair.from_canonical(amount_low, amount_high)
            logger.info(
                "liquidity_removed",
                pool=pair_address,
                lp_amount=lp_amount,
                amount_a=amount_a,
                amount_b=amount_b,
            )
            _notify(on_status, OperationStatus.COMPLETED)
            return RemovalQuote(lp_tokens_in=lp_amount, amount_a_out=amount_a, amount_b_out=amount_b)


def _notify(on_status: StatusCallback | None, status: OperationStatus) -> None:
    if on_status is not None:
        on_status(status)


def _create_default_session() -> PoolSession:
    """Session against the network selected by the environment.

    - CPMM_NETWORK / CPMM_RPC_URL: see ``NetworkConfig.from_env``
    - CPMM_ACCOUNT: Account used for balances and transactions (optional)
    """
    import os

    from cpmm.gateway.web3_gateway import Web3LedgerGateway

    network = NetworkConfig.from_env()
    account = os.environ.get("CPMM_ACCOUNT") or None
    logger.info("session_created", network=network.name, rpc_url=network.rpc_url, account=account)
    return PoolSession(Web3LedgerGateway(network, account=account), owner=account, network=network)


_default_session: PoolSession | None = None


def get_default_session() -> PoolSession:
    """Process-wide session, created on first use."""
    global _default_session
    if _default_session is None:
        _default_session = _create_default_session()
    return _default_session


__all__ = ["PoolSession", "StatusCallback", "get_default_session"]
