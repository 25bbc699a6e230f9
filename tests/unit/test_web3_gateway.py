"""Tests for the web3 gateway against a mocked AsyncWeb3."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_abi import encode  # type: ignore[attr-defined]
from web3 import AsyncWeb3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, TimeExhausted, Web3RPCError

from cpmm.config import TESTNET
from cpmm.errors import ApprovalFailed, GatewayUnavailable, OperationReverted
from cpmm.gateway.base import LedgerGateway
from cpmm.gateway.events import POOL_CREATED_TOPIC, SWAP_TOPIC
from cpmm.gateway.web3_gateway import Web3LedgerGateway
from cpmm.models.pool import Direction
from tests.helpers import HIGH, LOW, OTHER, T0, USER

POOL = "0x" + "ab" * 20
TX_HASH = bytes.fromhex("cd" * 32)


def make_w3() -> MagicMock:
    """AsyncWeb3 stand-in: every contract is the same mock, every receipt succeeds."""
    w3 = MagicMock()
    w3.eth.wait_for_transaction_receipt = AsyncMock(
        return_value={"transactionHash": TX_HASH, "status": 1, "blockNumber": 7}
    )
    w3.eth.get_logs = AsyncMock(return_value=[])
    w3.eth.get_block = AsyncMock(side_effect=lambda number: {"timestamp": T0 + number})
    return w3


def returns(contract: MagicMock, function: str, value=None, side_effect=None) -> AsyncMock:
    """Make ``contract.functions.<function>(...).call()`` resolve to ``value``."""
    call = AsyncMock(return_value=value, side_effect=side_effect)
    getattr(contract.functions, function).return_value.call = call
    return call


def transacts(contract: MagicMock, function: str, side_effect=None) -> AsyncMock:
    transact = AsyncMock(return_value=TX_HASH, side_effect=side_effect)
    getattr(contract.functions, function).return_value.transact = transact
    return transact


def swap_log(block_number: int, log_index: int, is_a_to_b: bool, amount_in: int, amount_out: int) -> dict:
    return {
        "topics": [bytes.fromhex(SWAP_TOPIC.removeprefix("0x")), bytes(12) + bytes.fromhex(USER[2:])],
        "data": encode(["bool", "uint256", "uint256"], [is_a_to_b, amount_in, amount_out]),
        "blockNumber": block_number,
        "transactionHash": bytes([log_index]) * 32,
        "logIndex": log_index,
    }


def pool_created_log(block_number: int, token_a: str, token_b: str, pool: str) -> dict:
    return {
        "topics": [bytes.fromhex(POOL_CREATED_TOPIC.removeprefix("0x"))],
        "data": encode(["address", "address", "address"], [token_a, token_b, pool]),
        "blockNumber": block_number,
        "transactionHash": TX_HASH,
        "logIndex": 0,
    }


@pytest.fixture
def w3() -> MagicMock:
    return make_w3()


@pytest.fixture
def contract(w3) -> MagicMock:
    return w3.eth.contract.return_value


@pytest.fixture
def gateway(w3) -> Web3LedgerGateway:
    return Web3LedgerGateway(TESTNET, account=USER, w3=w3, read_attempts=3, retry_wait=0)


class TestReads:
    """Tests for reads, retries and read error mapping."""

    def test_satisfies_protocol(self, gateway):
        assert isinstance(gateway, LedgerGateway)

    @pytest.mark.asyncio
    async def test_read_decimals(self, gateway, contract):
        returns(contract, "decimals", 6)
        assert await gateway.read_decimals(HIGH) == 6

    @pytest.mark.asyncio
    async def test_rpc_error_is_retried(self, gateway, contract):
        call = returns(contract, "decimals", side_effect=[Web3RPCError("rate limited"), 18])
        assert await gateway.read_decimals(LOW) == 18
        assert call.await_count == 2

    @pytest.mark.asyncio
    async def test_transport_error_after_retries(self, gateway, contract):
        call = returns(contract, "decimals", side_effect=ConnectionError("connection reset"))
        with pytest.raises(GatewayUnavailable, match="decimals"):
            await gateway.read_decimals(LOW)
        assert call.await_count == 3

    @pytest.mark.asyncio
    async def test_persistent_rpc_error_is_unavailable(self, gateway, contract):
        call = returns(contract, "balanceOf", side_effect=Web3RPCError("header not found"))
        with pytest.raises(GatewayUnavailable):
            await gateway.read_balance(LOW, USER)
        assert call.await_count == 3

    @pytest.mark.asyncio
    async def test_contract_revert_is_not_retried(self, gateway, contract):
        call = returns(contract, "approxAForB", side_effect=ContractLogicError("execution reverted"))
        with pytest.raises(OperationReverted):
            await gateway.approx_output(POOL, 100, Direction.LOW_TO_HIGH)
        assert call.await_count == 1

    @pytest.mark.asyncio
    async def test_approx_output_direction(self, gateway, contract):
        returns(contract, "approxBForA", 42)
        assert await gateway.approx_output(POOL, 100, Direction.HIGH_TO_LOW) == 42
        contract.functions.approxBForA.assert_called_once_with(100)

    @pytest.mark.asyncio
    async def test_resolve_missing_pool(self, gateway, contract, canonical_pair):
        returns(contract, "getPool", "0x" + "00" * 20)
        assert await gateway.resolve_pool(canonical_pair) is None

    @pytest.mark.asyncio
    async def test_resolve_pool_lowercases(self, gateway, contract, canonical_pair):
        returns(contract, "getPool", AsyncWeb3.to_checksum_address(POOL))
        assert await gateway.resolve_pool(canonical_pair) == POOL

    @pytest.mark.asyncio
    async def test_read_reserves(self, gateway, contract):
        returns(contract, "reserveA", 10)
        returns(contract, "reserveB", 20)
        returns(contract, "totalSupply", 14)
        state = await gateway.read_reserves(POOL)
        assert (state.pair_address, state.reserve_low, state.reserve_high, state.total_shares) == (POOL, 10, 20, 14)

    @pytest.mark.asyncio
    async def test_read_token_info(self, gateway, contract):
        returns(contract, "symbol", "LOW")
        returns(contract, "name", "Low Token")
        returns(contract, "decimals", 18)
        info = await gateway.read_token_info(LOW)
        assert (info.address, info.symbol, info.name, info.decimals) == (LOW, "LOW", "Low Token", 18)

    @pytest.mark.asyncio
    async def test_token_info_of_non_contract(self, gateway, contract):
        """A call to an address without code returns empty data."""
        returns(contract, "symbol", side_effect=BadFunctionCallOutput("Could not decode contract function call"))
        returns(contract, "name", "x")
        returns(contract, "decimals", 18)
        with pytest.raises(OperationReverted, match="tokenInfo"):
            await gateway.read_token_info(OTHER)


class TestWrites:
    """Tests for transactions and write error mapping."""

    @pytest.mark.asyncio
    async def test_swap_confirmed(self, gateway, contract, w3):
        transact = transacts(contract, "swapAForB")
        receipt = await gateway.submit_swap(POOL, 100, 90, Direction.LOW_TO_HIGH)

        contract.functions.swapAForB.assert_called_once_with(100, 90)
        transact.assert_awaited_once_with({"from": AsyncWeb3.to_checksum_address(USER)})
        assert receipt.tx_hash == "0x" + "cd" * 32
        assert receipt.block_number == 7
        w3.eth.wait_for_transaction_receipt.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_swap_revert(self, gateway, contract):
        transacts(contract, "swapBForA", side_effect=ContractLogicError("execution reverted: slippage"))
        with pytest.raises(OperationReverted, match="slippage"):
            await gateway.submit_swap(POOL, 100, 90, Direction.HIGH_TO_LOW)

    @pytest.mark.asyncio
    async def test_node_rejection_is_reverted(self, gateway, contract):
        transacts(contract, "swapAForB", side_effect=Web3RPCError("insufficient funds for gas"))
        with pytest.raises(OperationReverted, match="insufficient funds"):
            await gateway.submit_swap(POOL, 100, 90, Direction.LOW_TO_HIGH)

    @pytest.mark.asyncio
    async def test_status_zero_is_reverted(self, gateway, contract, w3):
        transacts(contract, "swapAForB")
        w3.eth.wait_for_transaction_receipt.return_value = {"transactionHash": TX_HASH, "status": 0, "blockNumber": 7}
        with pytest.raises(OperationReverted) as exc_info:
            await gateway.submit_swap(POOL, 100, 90, Direction.LOW_TO_HIGH)
        assert exc_info.value.tx_hash == "0x" + "cd" * 32

    @pytest.mark.asyncio
    async def test_receipt_timeout_is_unavailable(self, gateway, contract, w3):
        transacts(contract, "addLiquidity")
        w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not mined")
        with pytest.raises(GatewayUnavailable, match="no receipt"):
            await gateway.submit_add_liquidity(POOL, 1, 2)

    @pytest.mark.asyncio
    async def test_transport_error_is_not_retried(self, gateway, contract):
        transact = transacts(contract, "swapAForB", side_effect=ConnectionError("connection reset"))
        with pytest.raises(GatewayUnavailable):
            await gateway.submit_swap(POOL, 100, 90, Direction.LOW_TO_HIGH)
        assert transact.await_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [ContractLogicError("execution reverted"), Web3RPCError("user rejected"), ConnectionError("down")],
    )
    async def test_approve_failures(self, gateway, contract, error):
        transacts(contract, "approve", side_effect=error)
        with pytest.raises(ApprovalFailed):
            await gateway.approve(LOW, POOL, 100)

    @pytest.mark.asyncio
    async def test_approve_exact_amount(self, gateway, contract):
        transacts(contract, "approve")
        await gateway.approve(LOW, POOL, 100)
        contract.functions.approve.assert_called_once_with(AsyncWeb3.to_checksum_address(POOL), 100)

    @pytest.mark.asyncio
    async def test_write_needs_account(self, w3):
        gateway = Web3LedgerGateway(TESTNET, w3=w3, retry_wait=0)
        with pytest.raises(ValueError, match="no account"):
            await gateway.submit_add_liquidity(POOL, 1, 2)

    @pytest.mark.asyncio
    async def test_remove_liquidity_returns_simulated_payout(self, gateway, contract):
        simulate = returns(contract, "removeLiquidity", [5, 7])
        transact = transacts(contract, "removeLiquidity")
        assert await gateway.submit_remove_liquidity(POOL, 3) == (5, 7)
        simulate.assert_awaited_once_with({"from": AsyncWeb3.to_checksum_address(USER)})
        transact.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_remove_liquidity_simulation_revert(self, gateway, contract):
        returns(contract, "removeLiquidity", side_effect=ContractLogicError("execution reverted"))
        transact = transacts(contract, "removeLiquidity")
        with pytest.raises(OperationReverted):
            await gateway.submit_remove_liquidity(POOL, 3)
        transact.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_remove_liquidity_rpc_outage(self, gateway, contract):
        returns(contract, "removeLiquidity", side_effect=Web3RPCError("header not found"))
        transact = transacts(contract, "removeLiquidity")
        with pytest.raises(GatewayUnavailable):
            await gateway.submit_remove_liquidity(POOL, 3)
        transact.assert_not_awaited()


class TestLogs:
    """Tests for Swap and PoolCreated log fetching."""

    @pytest.mark.asyncio
    async def test_fetch_trade_events(self, gateway, contract, w3):
        returns(contract, "tokenA", AsyncWeb3.to_checksum_address(LOW))
        returns(contract, "tokenB", AsyncWeb3.to_checksum_address(HIGH))
        w3.eth.get_logs.return_value = [
            swap_log(5, 0, True, 100, 200),
            swap_log(5, 1, False, 300, 140),
            swap_log(6, 0, True, 10, 20),
        ]

        events = await gateway.fetch_trade_events(POOL, from_block=3)

        assert [(e.token_in, e.token_out) for e in events] == [(LOW, HIGH), (HIGH, LOW), (LOW, HIGH)]
        assert [e.block_timestamp for e in events] == [T0 + 5, T0 + 5, T0 + 6]
        assert [e.position for e in events] == [(5, 0), (5, 1), (6, 0)]
        assert events[0].user == USER
        # One block fetch per distinct block
        assert w3.eth.get_block.await_count == 2
        log_filter = w3.eth.get_logs.await_args.args[0]
        assert log_filter["fromBlock"] == 3
        assert log_filter["toBlock"] == "latest"
        assert log_filter["topics"] == [SWAP_TOPIC]

    @pytest.mark.asyncio
    async def test_pool_tokens_read_once(self, gateway, contract):
        token_a = returns(contract, "tokenA", LOW)
        returns(contract, "tokenB", HIGH)
        await gateway.fetch_trade_events(POOL, 0)
        await gateway.fetch_trade_events(POOL, 0, to_block=10)
        assert token_a.await_count == 1

    @pytest.mark.asyncio
    async def test_list_pools(self, gateway, w3):
        w3.eth.get_logs.return_value = [
            pool_created_log(8, HIGH, LOW, POOL),
            pool_created_log(9, LOW, OTHER, "0x" + "cd" * 20),
        ]

        created = await gateway.list_pools(from_block=2)

        assert [(c.token_a, c.token_b) for c in created] == [(HIGH, LOW), (LOW, OTHER)]
        assert [c.pool for c in created] == [POOL, "0x" + "cd" * 20]
        assert [c.block_timestamp for c in created] == [T0 + 8, T0 + 9]
        log_filter = w3.eth.get_logs.await_args.args[0]
        assert log_filter["address"] == AsyncWeb3.to_checksum_address(TESTNET.pool_manager)
        assert log_filter["topics"] == [POOL_CREATED_TOPIC]

    @pytest.mark.asyncio
    async def test_log_fetch_outage(self, gateway, w3):
        w3.eth.get_logs.side_effect = TimeoutError()
        with pytest.raises(GatewayUnavailable):
            await gateway.list_pools()
        assert w3.eth.get_logs.await_count == 3
