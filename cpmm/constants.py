"""Protocol constants for the CPMM pool client.

Centralizes well-known addresses and pool parameters.
"""

from cpmm.models.types import is_valid_address

# Basis point denominator for slippage and fees
BPS_DENOMINATOR = 10_000

# Default slippage tolerance (0.5%)
DEFAULT_SLIPPAGE_BPS = 50

# Candle bucket width in seconds
HOUR_SECONDS = 3600

# Most candles one series returns (90 days of hours); older hours are dropped
MAX_CANDLES = 90 * 24

# A pool created less than this many seconds ago is listed as new
NEW_POOL_SECONDS = 24 * HOUR_SECONDS

# LP share tokens are minted with 18 decimals by the pool contract
SHARE_DECIMALS = 18


def _validate_address(name: str, address: str) -> str:
    """Validate and return a lowercase address.

    Raises:
        ValueError: If the address is invalid
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid {name} address: {address} (must be 0x + 40 hex chars)")
    return address.lower()


# Pool manager deployments
POOL_MANAGER_MAINNET = _validate_address(
    "POOL_MANAGER_MAINNET", "0x7FB53Bc979C7bDd1a31797DEC8eAD92ca3469538"
)
POOL_MANAGER_TESTNET = _validate_address(
    "POOL_MANAGER_TESTNET", "0x32Cf1f3a98aeAF57b88b3740875D19912A522c1A"
)

# Well-known token addresses on mainnet (lowercase for consistency)
TOKEN_ADDRESSES = {
    "SOL": _validate_address("SOL", "0x36E6dc3CF44FDb8C62c5a11B457A28041f4C6eEF"),
    "ETH": _validate_address("ETH", "0x681E99A09Db2Be1da8dc54b1504eB81fD6F3724e"),
    "USDT": _validate_address("USDT", "0x9ac37093d6eF6cb5fC0944DCed3AA56eBCE050cb"),
    "IRT": _validate_address("IRT", "0x09E5DCF3872DD653c4CCA5378AbA77088457A8a9"),
    "DOGE": _validate_address("DOGE", "0xC7d2B19934594c43b6ec678507Df24D49e7e2F69"),
    "BTC": _validate_address("BTC", "0x3B05FB2fA2AE1447f61A0456f102350626A69f0b"),
    "AMOU": _validate_address("AMOU", "0xC9b4C81e4511b109Fb41eB9C055b619D102761d2"),
}

# Quote-currency preference for charts (higher = preferred as quote)
TOKEN_PRIORITY = {
    TOKEN_ADDRESSES["IRT"]: 5,
    TOKEN_ADDRESSES["BTC"]: 4,
    TOKEN_ADDRESSES["USDT"]: 4,
    TOKEN_ADDRESSES["ETH"]: 3,
    TOKEN_ADDRESSES["SOL"]: 2,
    TOKEN_ADDRESSES["DOGE"]: 0,
}
