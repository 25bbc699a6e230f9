"""Decoding of pool manager and pool logs."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog
from eth_abi import decode  # type: ignore[attr-defined]
from eth_utils import keccak

from cpmm.gateway.abi import POOL_CREATED_EVENT_SIGNATURE, SWAP_EVENT_SIGNATURE
from cpmm.models.history import TradeEvent
from cpmm.models.listing import PoolCreated
from cpmm.models.types import normalize_address

logger = structlog.get_logger()

SWAP_TOPIC = "0x" + keccak(text=SWAP_EVENT_SIGNATURE).hex()
POOL_CREATED_TOPIC = "0x" + keccak(text=POOL_CREATED_EVENT_SIGNATURE).hex()


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return bytes.fromhex(value.removeprefix("0x"))
    return bytes(value)


def _to_hex(value: Any) -> str:
    if isinstance(value, str):
        return value if value.startswith("0x") else "0x" + value
    return "0x" + bytes(value).hex()


def decode_swap_log(
    log: Mapping[str, Any],
    token_a: str,
    token_b: str,
    block_timestamp: int,
) -> TradeEvent | None:
    """Decode one Swap log.

    ``isAToB`` refers to the pool's own token A/B, which are the canonical
    (low, high) tokens.

    Args:
        log: Raw log entry (topics, data, blockNumber, transactionHash, logIndex)
        token_a: The pool's token A address
        token_b: The pool's token B address
        block_timestamp: Timestamp of the log's block

    Returns:
        TradeEvent, or None if the log is not a Swap event
    """
    topics = log.get("topics") or []
    if not topics or _to_hex(topics[0]).lower() != SWAP_TOPIC:
        return None
    if len(topics) < 2:
        logger.warning("swap_log_missing_user_topic", tx_hash=_to_hex(log.get("transactionHash", b"")))
        return None

    # Indexed address: last 20 bytes of the 32-byte topic
    user = "0x" + _to_bytes(topics[1])[-20:].hex()
    is_a_to_b, amount_in, amount_out = decode(["bool", "uint256", "uint256"], _to_bytes(log["data"]))

    token_in, token_out = (token_a, token_b) if is_a_to_b else (token_b, token_a)
    return TradeEvent(
        user=user,
        amount_in=int(amount_in),
        amount_out=int(amount_out),
        token_in=normalize_address(token_in),
        token_out=normalize_address(token_out),
        block_timestamp=block_timestamp,
        tx_hash=_to_hex(log.get("transactionHash", b"")),
        block_number=log.get("blockNumber"),
        log_index=log.get("logIndex"),
    )


def decode_pool_created_log(log: Mapping[str, Any], block_timestamp: int) -> PoolCreated | None:
    """Decode one PoolCreated log of the pool manager.

    All three addresses are non-indexed and travel in the log data.

    Returns:
        PoolCreated, or None if the log is not a PoolCreated event
    """
    topics = log.get("topics") or []
    if not topics or _to_hex(topics[0]).lower() != POOL_CREATED_TOPIC:
        return None

    token_a, token_b, pool = decode(["address", "address", "address"], _to_bytes(log["data"]))
    return PoolCreated(
        token_a=normalize_address(token_a),
        token_b=normalize_address(token_b),
        pool=normalize_address(pool),
        block_number=int(log["blockNumber"]),
        block_timestamp=block_timestamp,
    )


__all__ = ["POOL_CREATED_TOPIC", "SWAP_TOPIC", "decode_pool_created_log", "decode_swap_log"]
