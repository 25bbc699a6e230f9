"""Tests for the local constant product formula."""

import pytest

from cpmm.amm.constant_product import ConstantProduct


class TestConstantProductMath:
    """Tests for get_amount_out."""

    def test_fee_less_amount_out(self):
        """100 in against (1000, 1000): 100*1000 / 1100 = 90."""
        assert ConstantProduct().get_amount_out(100, 1000, 1000) == 90

    def test_fee_reduces_output(self):
        """Same trade with a 0.3% fee: 99700*1000 / (10_000_000 + 997_000) = 90 (floor)."""
        amm = ConstantProduct(fee_bps=30)
        assert amm.fee_multiplier == 9970
        assert amm.get_amount_out(100, 1000, 1000) == (100 * 9970 * 1000) // (1000 * 10_000 + 100 * 9970)

    def test_realistic_amounts(self):
        """1 LOW into 1,000 LOW / 2,000,000 HIGH returns just under 2,000 HIGH."""
        amm = ConstantProduct()
        out = amm.get_amount_out(10**18, 1_000 * 10**18, 2_000_000 * 10**6)
        assert 1_997 * 10**6 < out < 2_000 * 10**6

    def test_zero_input_returns_zero(self):
        assert ConstantProduct().get_amount_out(0, 100, 100) == 0
        assert ConstantProduct().get_amount_out(-5, 100, 100) == 0

    def test_zero_reserves_return_zero(self):
        amm = ConstantProduct()
        assert amm.get_amount_out(100, 0, 100) == 0
        assert amm.get_amount_out(100, 100, 0) == 0

    @pytest.mark.parametrize("amount_in", [1, 10**3, 10**18, 10**30, 10**60])
    def test_output_strictly_below_reserve(self, amount_in):
        reserve_out = 10**21
        assert ConstantProduct(fee_bps=30).get_amount_out(amount_in, 10**21, reserve_out) < reserve_out

    def test_output_monotonic_in_input(self):
        amm = ConstantProduct(fee_bps=30)
        outputs = [amm.get_amount_out(x, 10**6, 5 * 10**6) for x in range(0, 50_000, 997)]
        assert outputs == sorted(outputs)

    def test_fee_out_of_range(self):
        with pytest.raises(ValueError):
            ConstantProduct(fee_bps=10_000)
        with pytest.raises(ValueError):
            ConstantProduct(fee_bps=-1)


class TestPriceHelpers:
    def test_price_impact_grows_with_size(self):
        amm = ConstantProduct()
        small = amm.price_impact_bps(10, 10**6, 10**6)
        large = amm.price_impact_bps(10**5, 10**6, 10**6)
        assert 0 < small <= large

    def test_price_impact_uses_floored_output(self):
        """Output 90 against 100 at the spot rate is a 1000 bps shortfall."""
        assert ConstantProduct().price_impact_bps(100, 1000, 1000) == 1000

    def test_price_impact_rounds_up(self):
        """Fractional basis points round up so impact is never understated."""
        # out = 10*1000 // 1010 = 9; shortfall = 1000; 1000*10000 / 10000 = 1000
        assert ConstantProduct().price_impact_bps(10, 1000, 1000) == 1000
        # out = 7*1000 // 1007 = 6; shortfall = 1000; 1000*10000 / 7000 = 1428.57 -> 1429
        assert ConstantProduct().price_impact_bps(7, 1000, 1000) == 1429

    def test_price_impact_zero_without_output(self):
        assert ConstantProduct().price_impact_bps(0, 1000, 1000) == 0
