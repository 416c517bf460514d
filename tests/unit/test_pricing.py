"""Unit tests for fill price, maker/taker split and order fees."""

from src.perp_common.decimal_math import mul_decimal
from src.perp_pricing.domain.pricing import (
    get_fill_price,
    get_minimum_credit,
    get_notional,
    get_order_fee,
    is_price_tolerance_exceeded,
    split_maker_taker,
)
from tests.helpers import bn

MAKER = bn("0.0002")
TAKER = bn("0.0006")


class TestFillPrice:
    def test_zero_skew_long_pays_half_the_impact(self) -> None:
        # pd before 0, after 10/1e6 -> avg premium 5e-6
        fill = get_fill_price(0, bn(1_000_000), bn(10), bn(2_000))
        assert fill == bn("2000.01")

    def test_short_against_long_skew_gets_premium(self) -> None:
        fill = get_fill_price(bn(100_000), bn(1_000_000), -bn(10), bn(2_000))
        assert fill > bn(2_000)

    def test_zero_skew_scale_disables_impact(self) -> None:
        assert get_fill_price(bn(5), 0, bn(10), bn(2_000)) == bn(2_000)


class TestMakerTakerSplit:
    def test_adding_to_skew_is_all_taker(self) -> None:
        assert split_maker_taker(bn(5), bn(3)) == (0, bn(3))

    def test_reducing_skew_is_all_maker(self) -> None:
        assert split_maker_taker(bn(5), -bn(3)) == (bn(3), 0)

    def test_crossing_zero_splits_at_the_crossing(self) -> None:
        # skew -S=-4 to +T=+6 with size 10: maker 4, taker 6
        maker, taker = split_maker_taker(-bn(4), bn(10))
        assert maker == bn(4)
        assert taker == bn(6)

    def test_from_zero_skew_is_taker(self) -> None:
        assert split_maker_taker(0, bn(10)) == (0, bn(10))
        assert split_maker_taker(0, -bn(10)) == (0, bn(10))

    def test_landing_exactly_on_zero_is_all_maker(self) -> None:
        assert split_maker_taker(-bn(4), bn(4)) == (bn(4), 0)


class TestOrderFee:
    def test_crossing_fee_charges_maker_then_taker(self) -> None:
        fill = bn(2_000)
        fee = get_order_fee(-bn(4), bn(10), fill, MAKER, TAKER)
        expected = mul_decimal(mul_decimal(bn(4), fill), MAKER) + mul_decimal(
            mul_decimal(bn(6), fill), TAKER
        )
        assert fee == expected
        assert fee == bn("8.8")  # 4*2000*0.0002 + 6*2000*0.0006

    def test_zero_size_has_no_fee(self) -> None:
        assert get_order_fee(bn(1), 0, bn(2_000), MAKER, TAKER) == 0


class TestTolerance:
    def test_long_exceeds_above_limit(self) -> None:
        assert is_price_tolerance_exceeded(bn(1), bn(2_001), bn(2_000))
        assert not is_price_tolerance_exceeded(bn(1), bn(2_000), bn(2_000))

    def test_short_exceeds_below_limit(self) -> None:
        assert is_price_tolerance_exceeded(-bn(1), bn(1_999), bn(2_000))
        assert not is_price_tolerance_exceeded(-bn(1), bn(2_001), bn(2_000))


class TestNotional:
    def test_notional_is_unsigned(self) -> None:
        assert get_notional(-bn(2), bn(1_500)) == bn(3_000)

    def test_minimum_credit(self) -> None:
        assert get_minimum_credit(bn(10), bn(2_000), bn("0.5")) == bn(10_000)
