"""In-memory ledger implementing the LedgerGateway protocol.

Applies the pool's integer rules to local state so the pool layer can be
exercised without an RPC endpoint. Configure tokens, balances and pools,
then track ``calls`` for assertions.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field

import structlog

from cpmm.amm.constant_product import ConstantProduct
from cpmm.errors import ApprovalFailed, GatewayUnavailable, OperationReverted
from cpmm.liquidity import estimate_minted_shares, preview_removal
from cpmm.models.history import TradeEvent
from cpmm.models.listing import PoolCreated, TokenInfo
from cpmm.models.pool import CanonicalPair, Direction, PoolState, TxReceipt
from cpmm.models.types import normalize_address

logger = structlog.get_logger()


def _derive_address(*parts: str) -> str:
    digest = hashlib.sha256("/".join(parts).encode()).hexdigest()
    return "0x" + digest[:40]


@dataclass
class PoolRecord:
    """Ledger-side state of one pool."""

    address: str
    token_low: str
    token_high: str
    reserve_low: int = 0
    reserve_high: int = 0
    total_shares: int = 0
    shares: dict[str, int] = field(default_factory=dict)
    created_block: int = 0
    created_at: int = 0

    def snapshot(self) -> PoolState:
        return PoolState(
            pair_address=self.address,
            reserve_low=self.reserve_low,
            reserve_high=self.reserve_high,
            total_shares=self.total_shares,
        )


class InMemoryLedgerGateway:
    """Deterministic ledger for tests and local demos.

    Every transaction mines one block ``block_time`` seconds after the
    previous one. Allowances are consumed by the call that spends them.

    Failure injection:
        - ``unavailable``: every read raises GatewayUnavailable
        - ``failing_approvals``: tokens whose approval raises ApprovalFailed
    """

    def __init__(
        self,
        account: str | None = None,
        fee_bps: int = 0,
        start_timestamp: int = 1_700_000_000,
        block_time: int = 12,
    ) -> None:
        self.account = normalize_address(account) if account else None
        self.amm = ConstantProduct(fee_bps=fee_bps)
        self.decimals: dict[str, int] = {}
        self.metadata: dict[str, tuple[str, str]] = {}
        self.balances: dict[tuple[str, str], int] = {}
        self.allowances: dict[tuple[str, str, str], int] = {}
        self.pools: dict[tuple[str, str], PoolRecord] = {}
        self.events: list[TradeEvent] = []
        self.calls: list[tuple] = []
        self.block_number = 0
        self.timestamp = start_timestamp
        self.block_time = block_time
        self.unavailable = False
        self.failing_approvals: set[str] = set()

    # --- Setup helpers ---

    def add_token(
        self,
        address: str,
        decimals: int,
        balances: dict[str, int] | None = None,
        symbol: str | None = None,
        name: str | None = None,
    ) -> str:
        """Register an ERC20; symbol and name default to ones derived from the address."""
        token = normalize_address(address)
        self.decimals[token] = decimals
        symbol = symbol or "T" + token[2:6].upper()
        self.metadata[token] = (symbol, name or f"Token {symbol}")
        for owner, amount in (balances or {}).items():
            self.balances[(token, normalize_address(owner))] = amount
        return token

    def add_pool(
        self,
        token_x: str,
        token_y: str,
        reserve_x: int = 0,
        reserve_y: int = 0,
        total_shares: int | None = None,
    ) -> PoolRecord:
        """Register a pool created at the current block.

        Reserves are given in (token_x, token_y) order.
        """
        x, y = normalize_address(token_x), normalize_address(token_y)
        if x < y:
            low, high, reserve_low, reserve_high = x, y, reserve_x, reserve_y
        else:
            low, high, reserve_low, reserve_high = y, x, reserve_y, reserve_x
        if total_shares is None:
            total_shares = estimate_minted_shares(
                PoolState.absent(),
                reserve_low,
                reserve_high,
                self.decimals.get(low, 18),
                self.decimals.get(high, 18),
            )
        record = PoolRecord(
            address=_derive_address(low, high),
            token_low=low,
            token_high=high,
            reserve_low=reserve_low,
            reserve_high=reserve_high,
            total_shares=total_shares,
            created_block=self.block_number,
            created_at=self.timestamp,
        )
        self.pools[(low, high)] = record
        return record

    def balance_of(self, token: str, owner: str) -> int:
        return self.balances.get((normalize_address(token), normalize_address(owner)), 0)

    # --- Internals ---

    def _check_available(self, method: str) -> None:
        if self.unavailable:
            raise GatewayUnavailable(f"{method}: ledger unavailable")

    def _pool_by_address(self, pair_address: str) -> PoolRecord:
        address = normalize_address(pair_address)
        for record in self.pools.values():
            if record.address == address:
                return record
        raise OperationReverted("call", f"no contract at {pair_address}")

    def _sender(self) -> str:
        if self.account is None:
            raise ValueError("Gateway has no account configured for transactions")
        return self.account

    def _mine(self, label: str) -> TxReceipt:
        self.block_number += 1
        self.timestamp += self.block_time
        tx_hash = "0x" + hashlib.sha256(f"{label}/{self.block_number}".encode()).hexdigest()
        return TxReceipt(tx_hash=tx_hash, status=1, block_number=self.block_number)

    def _spend(self, label: str, token: str, spender: str, amount: int) -> None:
        owner = self._sender()
        allowance_key = (token, owner, spender)
        if self.allowances.get(allowance_key, 0) < amount:
            raise OperationReverted(label, f"allowance of {token} below {amount}")
        if self.balances.get((token, owner), 0) < amount:
            raise OperationReverted(label, f"balance of {token} below {amount}")
        self.allowances[allowance_key] -= amount
        self.balances[(token, owner)] -= amount

    def _credit(self, token: str, amount: int) -> None:
        key = (token, self._sender())
        self.balances[key] = self.balances.get(key, 0) + amount

    # --- Reads ---

    async def resolve_pool(self, pair: CanonicalPair) -> str | None:
        self.calls.append(("resolve_pool", pair.low.key, pair.high.key))
        self._check_available("resolve_pool")
        record = self.pools.get((pair.low.key, pair.high.key))
        return record.address if record else None

    async def read_reserves(self, pair_address: str) -> PoolState:
        self.calls.append(("read_reserves", pair_address))
        self._check_available("read_reserves")
        return self._pool_by_address(pair_address).snapshot()

    async def read_decimals(self, token: str) -> int:
        self.calls.append(("read_decimals", token))
        self._check_available("read_decimals")
        key = normalize_address(token)
        if key not in self.decimals:
            raise OperationReverted("decimals", f"no token at {token}")
        return self.decimals[key]

    async def read_token_info(self, token: str) -> TokenInfo:
        self.calls.append(("read_token_info", token))
        self._check_available("read_token_info")
        key = normalize_address(token)
        if key not in self.decimals:
            raise OperationReverted("tokenInfo", f"no token at {token}")
        symbol, name = self.metadata[key]
        return TokenInfo(address=key, symbol=symbol, name=name, decimals=self.decimals[key])

    async def read_balance(self, token: str, owner: str) -> int:
        self.calls.append(("read_balance", token, owner))
        self._check_available("read_balance")
        return self.balance_of(token, owner)

    async def read_share_balance(self, pair_address: str, owner: str) -> int:
        self.calls.append(("read_share_balance", pair_address, owner))
        self._check_available("read_share_balance")
        return self._pool_by_address(pair_address).shares.get(normalize_address(owner), 0)

    async def approx_output(self, pair_address: str, amount_in: int, direction: Direction) -> int:
        self.calls.append(("approx_output", pair_address, amount_in, direction))
        self._check_available("approx_output")
        record = self._pool_by_address(pair_address)
        reserve_in, reserve_out = record.snapshot().reserves_for(direction)
        return self.amm.get_amount_out(amount_in, reserve_in, reserve_out)

    async def fetch_trade_events(
        self,
        pair_address: str,
        from_block: int,
        to_block: int | None = None,
    ) -> list[TradeEvent]:
        self.calls.append(("fetch_trade_events", pair_address, from_block, to_block))
        self._check_available("fetch_trade_events")
        record = self._pool_by_address(pair_address)
        last = to_block if to_block is not None else self.block_number
        return [
            event
            for event in self.events
            if event.involves(record.token_low, record.token_high)
            and event.block_number is not None
            and from_block <= event.block_number <= last
        ]

    async def list_pools(self, from_block: int = 0) -> list[PoolCreated]:
        self.calls.append(("list_pools", from_block))
        self._check_available("list_pools")
        records = sorted(self.pools.values(), key=lambda record: record.created_block)
        return [
            PoolCreated(
                token_a=record.token_low,
                token_b=record.token_high,
                pool=record.address,
                block_number=record.created_block,
                block_timestamp=record.created_at,
            )
            for record in records
            if record.created_block >= from_block
        ]

    # --- Writes ---

    async def create_pool_if_absent(self, pair: CanonicalPair) -> str:
        self.calls.append(("create_pool_if_absent", pair.low.key, pair.high.key))
        record = self.pools.get((pair.low.key, pair.high.key))
        if record is None:
            self._mine("createPool")
            record = self.add_pool(pair.low.key, pair.high.key, total_shares=0)
            logger.info("pool_created", pool=record.address)
        return record.address

    async def approve(self, token: str, spender: str, amount: int) -> TxReceipt:
        self.calls.append(("approve", token, spender, amount))
        key = normalize_address(token)
        if key in self.failing_approvals:
            raise ApprovalFailed(token, spender, amount, "rejected")
        self.allowances[(key, self._sender(), normalize_address(spender))] = amount
        return self._mine("approve")

    async def submit_swap(
        self,
        pair_address: str,
        amount_in: int,
        min_amount_out: int,
        direction: Direction,
    ) -> TxReceipt:
        self.calls.append(("submit_swap", pair_address, amount_in, min_amount_out, direction))
        record = self._pool_by_address(pair_address)
        if direction is Direction.LOW_TO_HIGH:
            token_in, token_out = record.token_low, record.token_high
            reserve_in, reserve_out = record.reserve_low, record.reserve_high
        else:
            token_in, token_out = record.token_high, record.token_low
            reserve_in, reserve_out = record.reserve_high, record.reserve_low

        amount_out = self.amm.get_amount_out(amount_in, reserve_in, reserve_out)
        if amount_out == 0 or amount_out < min_amount_out:
            raise OperationReverted("swap", f"output {amount_out} below minimum {min_amount_out}")

        self._spend("swap", token_in, record.address, amount_in)
        self._credit(token_out, amount_out)
        if direction is Direction.LOW_TO_HIGH:
            record.reserve_low += amount_in
            record.reserve_high -= amount_out
        else:
            record.reserve_high += amount_in
            record.reserve_low -= amount_out

        receipt = self._mine("swap")
        self.events.append(
            TradeEvent(
                user=self._sender(),
                amount_in=amount_in,
                amount_out=amount_out,
                token_in=token_in,
                token_out=token_out,
                block_timestamp=self.timestamp,
                tx_hash=receipt.tx_hash,
                block_number=receipt.block_number,
                log_index=0,
            )
        )
        return receipt

    async def submit_add_liquidity(
        self,
        pair_address: str,
        amount_low: int,
        amount_high: int,
    ) -> TxReceipt:
        self.calls.append(("submit_add_liquidity", pair_address, amount_low, amount_high))
        record = self._pool_by_address(pair_address)
        minted = estimate_minted_shares(
            record.snapshot(),
            amount_low,
            amount_high,
            self.decimals.get(record.token_low, 18),
            self.decimals.get(record.token_high, 18),
        )
        if minted == 0:
            raise OperationReverted("addLiquidity", "insufficient liquidity minted")

        self._spend("addLiquidity", record.token_low, record.address, amount_low)
        self._spend("addLiquidity", record.token_high, record.address, amount_high)
        owner = self._sender()
        record.reserve_low += amount_low
        record.reserve_high += amount_high
        record.total_shares += minted
        record.shares[owner] = record.shares.get(owner, 0) + minted
        return self._mine("addLiquidity")

    async def submit_remove_liquidity(self, pair_address: str, lp_amount: int) -> tuple[int, int]:
        self.calls.append(("submit_remove_liquidity", pair_address, lp_amount))
        record = self._pool_by_address(pair_address)
        owner = self._sender()
        if record.shares.get(owner, 0) < lp_amount:
            raise OperationReverted("removeLiquidity", "share balance too low")

        amount_low, amount_high = preview_removal(record.snapshot(), lp_amount)
        record.shares[owner] -= lp_amount
        record.total_shares -= lp_amount
        record.reserve_low -= amount_low
        record.reserve_high -= amount_high
        self._credit(record.token_low, amount_low)
        self._credit(record.token_high, amount_high)
        self._mine("removeLiquidity")
        return amount_low, amount_high


__all__ = ["InMemoryLedgerGateway", "PoolRecord"]
