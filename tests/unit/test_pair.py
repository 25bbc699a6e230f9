"""Tests for canonical pair ordering and the un-swap step."""

import pytest

from cpmm.models.pool import CanonicalPair, Direction, TokenRef
from cpmm.pair import canonicalize
from tests.helpers import HIGH, LOW


class TestCanonicalize:
    """Tests for canonicalize()."""

    def test_already_sorted(self, low_token, high_token):
        pair = canonicalize(low_token, high_token)
        assert pair.low == low_token
        assert pair.high == high_token
        assert pair.input_was_swapped is False

    def test_reverse_order_is_swapped(self, low_token, high_token):
        pair = canonicalize(high_token, low_token)
        assert pair.low == low_token
        assert pair.high == high_token
        assert pair.input_was_swapped is True

    def test_symmetry(self, low_token, high_token):
        """Both orders give the same (low, high) and opposite swap flags."""
        forward = canonicalize(low_token, high_token)
        backward = canonicalize(high_token, low_token)
        assert (forward.low, forward.high) == (backward.low, backward.high)
        assert forward.input_was_swapped != backward.input_was_swapped

    def test_ordering_ignores_case(self):
        """Mixed-case checksum addresses sort by their lowercase form."""
        upper = TokenRef(address="0xABCDEF0000000000000000000000000000000001", decimals=18)
        lower = TokenRef(address="0x1bcdef0000000000000000000000000000000001", decimals=18)
        pair = canonicalize(upper, lower)
        assert pair.low == lower
        assert pair.input_was_swapped is True

    def test_same_address_raises(self, low_token):
        same = TokenRef(address=LOW.upper().replace("0X", "0x"), decimals=18)
        with pytest.raises(ValueError, match="distinct"):
            canonicalize(low_token, same)

    def test_unsorted_pair_rejected(self, low_token, high_token):
        with pytest.raises(ValueError, match="canonical order"):
            CanonicalPair(low=high_token, high=low_token, input_was_swapped=False)


class TestUnswap:
    """Tests for the caller <-> canonical mapping."""

    def test_round_trip(self, swapped_pair, canonical_pair):
        for pair in (swapped_pair, canonical_pair):
            low, high = pair.to_canonical("a", "b")
            assert pair.from_canonical(low, high) == ("a", "b")

    def test_swapped_pair_maps_a_to_high(self, swapped_pair):
        assert swapped_pair.to_canonical(1, 2) == (2, 1)
        assert swapped_pair.token_a.key == HIGH
        assert swapped_pair.token_b.key == LOW

    def test_direction_for(self, canonical_pair, swapped_pair):
        assert canonical_pair.direction_for(a_to_b=True) is Direction.LOW_TO_HIGH
        assert canonical_pair.direction_for(a_to_b=False) is Direction.HIGH_TO_LOW
        # Caller's A is HIGH, so A->B is HIGH->LOW
        assert swapped_pair.direction_for(a_to_b=True) is Direction.HIGH_TO_LOW
        assert swapped_pair.direction_for(a_to_b=False) is Direction.LOW_TO_HIGH

    def test_tokens_for(self, canonical_pair):
        token_in, token_out = canonical_pair.tokens_for(Direction.HIGH_TO_LOW)
        assert token_in.key == HIGH
        assert token_out.key == LOW


class TestTokenRef:
    def test_decimals_range(self):
        with pytest.raises(ValueError):
            TokenRef(address=LOW, decimals=78)
        with pytest.raises(ValueError):
            TokenRef(address=LOW, decimals=-1)
