"""Rolling liquidation capacity.

Each market may liquidate at most liquidation_limit_scalar x OI within any
liquidation_window_duration; anything beyond that stays flagged until the
window rolls forward.
"""

from dataclasses import dataclass

from src.perp_common.decimal_math import div_decimal
from src.perp_margin.domain.margin import max_liquidatable_capacity
from src.perp_market.domain.models import GlobalMarketConfig, Market, PastLiquidation


@dataclass(frozen=True)
class LiquidationCapacity:
    max_liquidatable_capacity: int
    remaining_capacity: int
    last_liquidation_time: int


def _in_window(market: Market, entry: PastLiquidation, now: int) -> bool:
    return now - entry.timestamp <= market.config.liquidation_window_duration


def remaining_liquidatable_capacity(market: Market, now: int) -> LiquidationCapacity:
    max_capacity = max_liquidatable_capacity(market)
    liquidated = sum(p.size for p in market.past_liquidations if _in_window(market, p, now))
    return LiquidationCapacity(
        max_liquidatable_capacity=max_capacity,
        remaining_capacity=max(max_capacity - liquidated, 0),
        last_liquidation_time=market.last_liquidation_time,
    )


def record_liquidation(market: Market, now: int, size: int) -> None:
    """Drop entries outside the window, then add `size` at `now`."""
    market.past_liquidations = [p for p in market.past_liquidations if _in_window(market, p, now)]
    if market.past_liquidations and market.past_liquidations[-1].timestamp == now:
        market.past_liquidations[-1].size += size
    else:
        market.past_liquidations.append(PastLiquidation(timestamp=now, size=size))
    market.last_liquidation_time = now


def liquidation_size(
    market: Market,
    cfg: GlobalMarketConfig,
    now: int,
    position_size: int,
    keeper: str,
) -> int:
    """How much of |position_size| may be liquidated right now (0 = none).

    The endorsed keeper bypasses the cap. With the window exhausted, one more
    chunk of max capacity is allowed per block while the market is close to
    neutral (|skew| / skew_scale below liquidation_max_pd).
    """
    size = abs(position_size)
    if cfg.keeper_liquidation_endorsed is not None and keeper == cfg.keeper_liquidation_endorsed:
        return size
    capacity = remaining_liquidatable_capacity(market, now)
    if capacity.remaining_capacity > 0:
        return min(capacity.remaining_capacity, size)
    skew_scale = market.config.skew_scale
    if (
        skew_scale > 0
        and div_decimal(abs(market.skew), skew_scale) < market.config.liquidation_max_pd
        and market.last_liquidation_time != now
    ):
        return min(capacity.max_liquidatable_capacity, size)
    return 0
