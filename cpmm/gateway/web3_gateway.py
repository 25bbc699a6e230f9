"""LedgerGateway backed by an async web3 provider."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

import structlog
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential
from web3 import AsyncWeb3
from web3.exceptions import (
    BadFunctionCallOutput,
    ContractLogicError,
    ProviderConnectionError,
    TimeExhausted,
    Web3Exception,
    Web3RPCError,
)

from cpmm.config import NetworkConfig
from cpmm.errors import ApprovalFailed, CpmmError, GatewayUnavailable, OperationReverted
from cpmm.gateway.abi import ERC20_ABI, POOL_ABI, POOL_MANAGER_ABI
from cpmm.gateway.events import POOL_CREATED_TOPIC, SWAP_TOPIC, decode_pool_created_log, decode_swap_log
from cpmm.models.history import TradeEvent
from cpmm.models.listing import PoolCreated, TokenInfo
from cpmm.models.pool import CanonicalPair, Direction, PoolState, TxReceipt
from cpmm.models.types import is_zero_address, normalize_address

logger = structlog.get_logger()

T = TypeVar("T")

# Errors worth retrying: connection drops, timeouts, socket errors
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    OSError,
    ProviderConnectionError,
)

# Contract-level rejections of a call; retrying cannot change the answer
CALL_REJECTIONS: tuple[type[BaseException], ...] = (ContractLogicError, BadFunctionCallOutput)


def _is_retryable(error: BaseException) -> bool:
    """Transport errors and JSON-RPC error responses, never a contract revert."""
    if isinstance(error, CALL_REJECTIONS):
        return False
    return isinstance(error, (*TRANSPORT_ERRORS, Web3RPCError))


class Web3LedgerGateway:
    """Gateway that talks to the pool contracts over JSON-RPC.

    Transactions are sent with ``transact({"from": account})`` and signed by
    the connected node or wallet provider.

    Reads are retried with exponential backoff on transport errors and
    JSON-RPC error responses, then surface as GatewayUnavailable. A read the
    contract rejects surfaces as OperationReverted without a retry. Writes
    are never retried: a transport error after submission would risk a
    double submit.
    """

    def __init__(
        self,
        network: NetworkConfig,
        account: str | None = None,
        w3: AsyncWeb3 | None = None,
        read_attempts: int = 3,
        retry_wait: float = 0.25,
        receipt_timeout: float = 120.0,
    ) -> None:
        """Initialize the gateway.

        Args:
            network: Network to talk to (endpoint and pool manager address)
            account: Sender of transactions and owner for balance reads
            w3: Pre-built AsyncWeb3 instance (defaults to an HTTP provider
                on ``network.rpc_url``)
            read_attempts: Attempts per read call before giving up
            retry_wait: First backoff between read attempts in seconds
            receipt_timeout: Seconds to wait for a transaction receipt
        """
        self.network = network
        self.w3 = w3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(network.rpc_url))
        self.account = AsyncWeb3.to_checksum_address(account) if account else None
        self.read_attempts = read_attempts
        self.retry_wait = retry_wait
        self.receipt_timeout = receipt_timeout
        self.pool_manager = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(network.pool_manager),
            abi=POOL_MANAGER_ABI,
        )
        # Pool address -> (tokenA, tokenB); pool tokens never change
        self._pool_tokens: dict[str, tuple[str, str]] = {}

    # --- Contract helpers ---

    def _pool(self, pair_address: str) -> Any:
        return self.w3.eth.contract(address=AsyncWeb3.to_checksum_address(pair_address), abi=POOL_ABI)

    def _token(self, token: str) -> Any:
        return self.w3.eth.contract(address=AsyncWeb3.to_checksum_address(token), abi=ERC20_ABI)

    def _require_account(self) -> str:
        if self.account is None:
            raise ValueError("Gateway has no account configured for transactions")
        return self.account

    async def _read(self, label: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run a read with retries and map provider errors to the error taxonomy."""
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_retryable),
                stop=stop_after_attempt(self.read_attempts),
                wait=wait_exponential(multiplier=self.retry_wait, min=self.retry_wait, max=4),
                reraise=True,
            ):
                with attempt:
                    result = await call()
        except CALL_REJECTIONS as e:
            raise OperationReverted(label, str(e)) from e
        except (*TRANSPORT_ERRORS, Web3Exception) as e:
            logger.warning("ledger_read_failed", call=label, network=self.network.name, error=str(e))
            raise GatewayUnavailable(f"{label} failed on {self.network.name}: {e}") from e
        return result

    async def _transact(self, label: str, fn: Any) -> TxReceipt:
        """Send a transaction and wait for its receipt."""
        sender = self._require_account()
        try:
            tx_hash = await fn.transact({"from": sender})
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout
            )
        except ContractLogicError as e:
            raise OperationReverted(label, str(e)) from e
        except TimeExhausted as e:
            raise GatewayUnavailable(f"{label}: no receipt after {self.receipt_timeout}s") from e
        except TRANSPORT_ERRORS as e:
            raise GatewayUnavailable(f"{label} failed on {self.network.name}: {e}") from e
        except Web3Exception as e:
            # The node refused the transaction (funds, nonce, signer)
            raise OperationReverted(label, str(e)) from e

        tx_hex = "0x" + bytes(receipt["transactionHash"]).hex()
        status = int(receipt["status"])
        if status != 1:
            raise OperationReverted(label, "transaction status 0", tx_hash=tx_hex)

        logger.info("transaction_confirmed", call=label, tx_hash=tx_hex, block=receipt["blockNumber"])
        return TxReceipt(tx_hash=tx_hex, status=status, block_number=int(receipt["blockNumber"]))

    async def _block_timestamps(self, block_numbers: Iterable[int]) -> dict[int, int]:
        """Timestamps of the given blocks, one fetch per distinct block."""
        numbers = sorted(set(block_numbers))
        blocks = await self._read(
            "getBlocks",
            lambda: asyncio.gather(*(self.w3.eth.get_block(n) for n in numbers)),
        )
        return {n: int(block["timestamp"]) for n, block in zip(numbers, blocks, strict=True)}

    # --- Reads ---

    async def resolve_pool(self, pair: CanonicalPair) -> str | None:
        low = AsyncWeb3.to_checksum_address(pair.low.address)
        high = AsyncWeb3.to_checksum_address(pair.high.address)
        address = await self._read(
            "getPool", lambda: self.pool_manager.functions.getPool(low, high).call()
        )
        if is_zero_address(address):
            return None
        return normalize_address(address)

    async def read_reserves(self, pair_address: str) -> PoolState:
        pool = self._pool(pair_address)
        reserve_a, reserve_b, total_supply = await self._read(
            "readReserves",
            lambda: asyncio.gather(
                pool.functions.reserveA().call(),
                pool.functions.reserveB().call(),
                pool.functions.totalSupply().call(),
            ),
        )
        return PoolState(
            pair_address=normalize_address(pair_address),
            reserve_low=int(reserve_a),
            reserve_high=int(reserve_b),
            total_shares=int(total_supply),
        )

    async def read_decimals(self, token: str) -> int:
        contract = self._token(token)
        return int(await self._read("decimals", lambda: contract.functions.decimals().call()))

    async def read_token_info(self, token: str) -> TokenInfo:
        contract = self._token(token)
        symbol, name, decimals = await self._read(
            "tokenInfo",
            lambda: asyncio.gather(
                contract.functions.symbol().call(),
                contract.functions.name().call(),
                contract.functions.decimals().call(),
            ),
        )
        return TokenInfo(
            address=normalize_address(token),
            symbol=str(symbol),
            name=str(name),
            decimals=int(decimals),
        )

    async def read_balance(self, token: str, owner: str) -> int:
        contract = self._token(token)
        holder = AsyncWeb3.to_checksum_address(owner)
        return int(await self._read("balanceOf", lambda: contract.functions.balanceOf(holder).call()))

    async def read_share_balance(self, pair_address: str, owner: str) -> int:
        pool = self._pool(pair_address)
        holder = AsyncWeb3.to_checksum_address(owner)
        return int(await self._read("lpBalanceOf", lambda: pool.functions.balanceOf(holder).call()))

    async def approx_output(self, pair_address: str, amount_in: int, direction: Direction) -> int:
        pool = self._pool(pair_address)
        if direction is Direction.LOW_TO_HIGH:
            fn = pool.functions.approxAForB(amount_in)
        else:
            fn = pool.functions.approxBForA(amount_in)
        return int(await self._read("approxOutput", fn.call))

    async def _read_pool_tokens(self, pair_address: str) -> tuple[str, str]:
        key = normalize_address(pair_address)
        if key not in self._pool_tokens:
            pool = self._pool(pair_address)
            token_a, token_b = await self._read(
                "poolTokens",
                lambda: asyncio.gather(pool.functions.tokenA().call(), pool.functions.tokenB().call()),
            )
            self._pool_tokens[key] = (normalize_address(token_a), normalize_address(token_b))
        return self._pool_tokens[key]

    async def fetch_trade_events(
        self,
        pair_address: str,
        from_block: int,
        to_block: int | None = None,
    ) -> list[TradeEvent]:
        token_a, token_b = await self._read_pool_tokens(pair_address)
        log_filter = {
            "address": AsyncWeb3.to_checksum_address(pair_address),
            "fromBlock": from_block,
            "toBlock": to_block if to_block is not None else "latest",
            "topics": [SWAP_TOPIC],
        }
        logs = await self._read("getLogs", lambda: self.w3.eth.get_logs(log_filter))
        timestamps = await self._block_timestamps(log["blockNumber"] for log in logs)

        events = []
        for log in logs:
            event = decode_swap_log(log, token_a, token_b, timestamps[log["blockNumber"]])
            if event is not None:
                events.append(event)

        logger.debug(
            "trade_events_fetched",
            pool=pair_address,
            from_block=from_block,
            to_block=to_block,
            count=len(events),
        )
        return events

    async def list_pools(self, from_block: int = 0) -> list[PoolCreated]:
        log_filter = {
            "address": AsyncWeb3.to_checksum_address(self.network.pool_manager),
            "fromBlock": from_block,
            "toBlock": "latest",
            "topics": [POOL_CREATED_TOPIC],
        }
        logs = await self._read("getPoolLogs", lambda: self.w3.eth.get_logs(log_filter))
        timestamps = await self._block_timestamps(log["blockNumber"] for log in logs)

        created = []
        for log in logs:
            record = decode_pool_created_log(log, timestamps[log["blockNumber"]])
            if record is not None:
                created.append(record)

        logger.debug("pools_listed", from_block=from_block, count=len(created))
        return created

    # --- Writes ---

    async def create_pool_if_absent(self, pair: CanonicalPair) -> str:
        existing = await self.resolve_pool(pair)
        if existing is not None:
            return existing

        low = AsyncWeb3.to_checksum_address(pair.low.address)
        high = AsyncWeb3.to_checksum_address(pair.high.address)
        await self._transact("createPool", self.pool_manager.functions.createPoolIfNotExists(low, high))

        created = await self.resolve_pool(pair)
        if created is None:
            raise OperationReverted("createPool", "pool still missing after creation")
        logger.info("pool_created", pool=created, token_low=pair.low.key, token_high=pair.high.key)
        return created

    async def approve(self, token: str, spender: str, amount: int) -> TxReceipt:
        contract = self._token(token)
        try:
            fn = contract.functions.approve(AsyncWeb3.to_checksum_address(spender), amount)
            return await self._transact("approve", fn)
        except (CpmmError, Web3Exception) as e:
            raise ApprovalFailed(token, spender, amount, str(e)) from e

    async def submit_swap(
        self,
        pair_address: str,
        amount_in: int,
        min_amount_out: int,
        direction: Direction,
    ) -> TxReceipt:
        pool = self._pool(pair_address)
        if direction is Direction.LOW_TO_HIGH:
            fn = pool.functions.swapAForB(amount_in, min_amount_out)
        else:
            fn = pool.functions.swapBForA(amount_in, min_amount_out)
        return await self._transact("swap", fn)

    async def submit_add_liquidity(
        self,
        pair_address: str,
        amount_low: int,
        amount_high: int,
    ) -> TxReceipt:
        pool = self._pool(pair_address)
        return await self._transact("addLiquidity", pool.functions.addLiquidity(amount_low, amount_high))

    async def submit_remove_liquidity(self, pair_address: str, lp_amount: int) -> tuple[int, int]:
        """Burn LP shares.

        The payout is taken from a simulation of the same call against the
        latest state immediately before sending it. The simulation is a read
        and follows the read error mapping.
        """
        sender = self._require_account()
        pool = self._pool(pair_address)
        fn = pool.functions.removeLiquidity(lp_amount)
        amount_a, amount_b = await self._read("removeLiquidity", lambda: fn.call({"from": sender}))
        await self._transact("removeLiquidity", fn)
        return int(amount_a), int(amount_b)


__all__ = ["CALL_REJECTIONS", "TRANSPORT_ERRORS", "Web3LedgerGateway"]
