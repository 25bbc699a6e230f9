"""Constant product pool client: quoting, liquidity accounting and trade history."""

from cpmm.pair import canonicalize
from cpmm.quote import QuoteEngine, compute_min_output
from cpmm.session import PoolSession, get_default_session

__version__ = "0.1.0"
__all__ = [
    "PoolSession",
    "QuoteEngine",
    "canonicalize",
    "compute_min_output",
    "get_default_session",
    "__version__",
]
