"""Skew-aware fill price and maker/taker order fee."""

from src.perp_common.decimal_math import div_decimal, mul_decimal, same_side


def get_fill_price(skew: int, skew_scale: int, size_delta: int, price: int) -> int:
    """Average of the premium/discounted price before and after the trade.

    fill = (price * (1 + skew/ss) + price * (1 + (skew + size)/ss)) / 2
    A zero skew scale disables price impact.
    """
    if skew_scale == 0:
        return price
    pd_before = div_decimal(skew, skew_scale)
    pd_after = div_decimal(skew + size_delta, skew_scale)
    price_before = price + mul_decimal(price, pd_before)
    price_after = price + mul_decimal(price, pd_after)
    return (price_before + price_after) // 2


def split_maker_taker(skew: int, size_delta: int) -> tuple[int, int]:
    """Return (maker_size, taker_size), both unsigned, summing to |size_delta|.

    Same side before/after (zero counts as positive): the whole trade is
    taker when it adds to the skew, maker when it reduces it. A trade that
    crosses zero is maker up to the crossing and taker beyond it.
    """
    new_skew = skew + size_delta
    if same_side(new_skew, skew):
        if same_side(size_delta, skew):
            return 0, abs(size_delta)
        return abs(size_delta), 0
    return abs(skew), abs(new_skew)


def get_order_fee(
    skew: int, size_delta: int, fill_price: int, maker_fee: int, taker_fee: int
) -> int:
    """fee = maker_size * fill * maker_fee + taker_size * fill * taker_fee."""
    if size_delta == 0:
        return 0
    maker_size, taker_size = split_maker_taker(skew, size_delta)
    maker_notional = mul_decimal(maker_size, fill_price)
    taker_notional = mul_decimal(taker_size, fill_price)
    return mul_decimal(maker_notional, maker_fee) + mul_decimal(taker_notional, taker_fee)


def get_notional(size: int, price: int) -> int:
    return mul_decimal(abs(size), price)


def get_minimum_credit(size: int, price: int, min_credit_percent: int) -> int:
    """Credit the pool must keep delegated for this market: size * price * pct."""
    return mul_decimal(mul_decimal(size, price), min_credit_percent)


def is_price_tolerance_exceeded(size_delta: int, fill_price: int, limit_price: int) -> bool:
    """Longs may not fill above the limit, shorts may not fill below it."""
    if size_delta > 0:
        return fill_price > limit_price
    return fill_price < limit_price
