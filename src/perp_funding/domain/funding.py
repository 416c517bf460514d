"""Funding rate — velocity-driven, accrued continuously per unit of size.

The rate drifts by velocity * elapsed_days, where velocity is the clamped
proportional skew scaled by max_funding_velocity. What a position owes is
the accumulator delta since entry times its size; nothing is materialized
per block.
"""

from src.perp_common.decimal_math import UNIT, clamp, div_decimal, mul_decimal
from src.perp_market.domain.models import Market

SECONDS_PER_DAY = 86_400
_HALF = UNIT // 2


def proportional_skew(skew: int, skew_scale: int) -> int:
    if skew_scale == 0:
        return 0
    return clamp(div_decimal(skew, skew_scale), -UNIT, UNIT)


def current_funding_velocity(market: Market) -> int:
    cfg = market.config
    p_skew = proportional_skew(market.skew, cfg.skew_scale)
    if abs(p_skew) <= cfg.funding_velocity_clamp:
        return 0
    return mul_decimal(p_skew, cfg.max_funding_velocity)


def _elapsed_days(market: Market, now: int) -> int:
    return div_decimal(max(now - market.last_funding_time, 0), SECONDS_PER_DAY)


def current_funding_rate(market: Market, now: int) -> int:
    return market.current_funding_rate_computed + mul_decimal(
        current_funding_velocity(market), _elapsed_days(market, now)
    )


def unrecorded_funding(market: Market, now: int, price: int) -> int:
    """Per-unit funding since the last recompute, at the trapezoid average rate."""
    next_rate = current_funding_rate(market, now)
    avg_rate = mul_decimal(market.current_funding_rate_computed + next_rate, _HALF)
    return -mul_decimal(mul_decimal(avg_rate, _elapsed_days(market, now)), price)


def next_funding_accrued(market: Market, now: int, price: int) -> int:
    return market.current_funding_accrued_computed + unrecorded_funding(market, now, price)


def recompute_funding(market: Market, now: int, price: int) -> int:
    """Fold unrecorded funding into the accumulator. Returns the new rate."""
    rate = current_funding_rate(market, now)
    market.current_funding_accrued_computed += unrecorded_funding(market, now, price)
    market.current_funding_rate_computed = rate
    market.last_funding_time = now
    return rate


def accrued_funding(size: int, entry_funding_accrued: int, market: Market, now: int, price: int) -> int:
    """Funding a position has accrued since entry (negative means it pays)."""
    return mul_decimal(size, next_funding_accrued(market, now, price) - entry_funding_accrued)
