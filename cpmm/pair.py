"""Canonical ordering of token pairs.

Pools are keyed on the ledger by the pair sorted on lowercase address, so
every pool-aware call canonicalizes first and maps its results back with
``CanonicalPair.from_canonical`` at the exit.
"""

from __future__ import annotations

from cpmm.models.pool import CanonicalPair, TokenRef


def canonicalize(a: TokenRef, b: TokenRef) -> CanonicalPair:
    """Order two tokens into (low, high) by lowercase address.

    Args:
        a: Caller's first token
        b: Caller's second token

    Returns:
        CanonicalPair with ``input_was_swapped`` set when b sorts before a

    Raises:
        ValueError: If both tokens have the same address
    """
    if a.key == b.key:
        raise ValueError(f"A pair needs two distinct tokens, got {a.address} twice")
    if a.key < b.key:
        return CanonicalPair(low=a, high=b, input_was_swapped=False)
    return CanonicalPair(low=b, high=a, input_was_swapped=True)


__all__ = ["canonicalize"]
