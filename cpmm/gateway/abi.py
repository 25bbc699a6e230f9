"""Minimal ABIs for the pool manager, pool and ERC20 contracts."""


def _fn(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[tuple[str, str]],
    mutability: str = "view",
) -> dict:
    return {
        "name": name,
        "type": "function",
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
    }


POOL_MANAGER_ABI = [
    _fn("getPool", [("_tokenA", "address"), ("_tokenB", "address")], [("", "address")]),
    _fn(
        "createPoolIfNotExists",
        [("_tokenA", "address"), ("_tokenB", "address")],
        [("", "address")],
        "nonpayable",
    ),
    {
        "name": "PoolCreated",
        "type": "event",
        "anonymous": False,
        "inputs": [
            {"name": "tokenA", "type": "address", "indexed": False},
            {"name": "tokenB", "type": "address", "indexed": False},
            {"name": "pool", "type": "address", "indexed": False},
        ],
    },
]

POOL_ABI = [
    _fn(
        "addLiquidity",
        [("amountADesired", "uint256"), ("amountBDesired", "uint256")],
        [("", "uint256")],
        "nonpayable",
    ),
    _fn(
        "removeLiquidity",
        [("liquidity", "uint256")],
        [("amountA", "uint256"), ("amountB", "uint256")],
        "nonpayable",
    ),
    _fn(
        "swapAForB",
        [("amountAIn", "uint256"), ("minAmountBOut", "uint256")],
        [("", "uint256")],
        "nonpayable",
    ),
    _fn(
        "swapBForA",
        [("amountBIn", "uint256"), ("minAmountAOut", "uint256")],
        [("", "uint256")],
        "nonpayable",
    ),
    _fn("approxAForB", [("amountIn", "uint256")], [("amountOut", "uint256")]),
    _fn("approxBForA", [("amountIn", "uint256")], [("amountOut", "uint256")]),
    _fn("reserveA", [], [("", "uint256")]),
    _fn("reserveB", [], [("", "uint256")]),
    _fn("tokenA", [], [("", "address")]),
    _fn("tokenB", [], [("", "address")]),
    _fn("balanceOf", [("account", "address")], [("", "uint256")]),
    _fn("totalSupply", [], [("", "uint256")]),
    {
        "name": "Swap",
        "type": "event",
        "anonymous": False,
        "inputs": [
            {"name": "user", "type": "address", "indexed": True},
            {"name": "isAToB", "type": "bool", "indexed": False},
            {"name": "amountIn", "type": "uint256", "indexed": False},
            {"name": "amountOut", "type": "uint256", "indexed": False},
        ],
    },
]

ERC20_ABI = [
    _fn("balanceOf", [("owner", "address")], [("", "uint256")]),
    _fn("decimals", [], [("", "uint8")]),
    _fn("symbol", [], [("", "string")]),
    _fn("name", [], [("", "string")]),
    _fn(
        "approve",
        [("spender", "address"), ("amount", "uint256")],
        [("", "bool")],
        "nonpayable",
    ),
]

SWAP_EVENT_SIGNATURE = "Swap(address,bool,uint256,uint256)"
POOL_CREATED_EVENT_SIGNATURE = "PoolCreated(address,address,address)"


__all__ = [
    "POOL_MANAGER_ABI",
    "POOL_ABI",
    "ERC20_ABI",
    "SWAP_EVENT_SIGNATURE",
    "POOL_CREATED_EVENT_SIGNATURE",
]
