"""Ledger access: the gateway protocol and its adapters."""

from cpmm.gateway.base import LedgerGateway
from cpmm.gateway.events import POOL_CREATED_TOPIC, SWAP_TOPIC, decode_pool_created_log, decode_swap_log
from cpmm.gateway.memory import InMemoryLedgerGateway
from cpmm.gateway.web3_gateway import Web3LedgerGateway

__all__ = [
    "LedgerGateway",
    "Web3LedgerGateway",
    "InMemoryLedgerGateway",
    "SWAP_TOPIC",
    "POOL_CREATED_TOPIC",
    "decode_swap_log",
    "decode_pool_created_log",
]
