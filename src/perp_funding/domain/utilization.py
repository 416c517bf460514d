"""Utilization interest — piecewise-linear in how much delegated credit the OI uses.

Unlike funding, the rate is only recomputed at explicit checkpoints
(settlement, liquidation, recompute_utilization); between checkpoints
the last computed rate keeps accruing.
"""

from collections.abc import Mapping

from src.perp_common.decimal_math import UNIT, div_decimal, mul_decimal
from src.perp_market.domain.models import GlobalMarketConfig, Market

SECONDS_PER_YEAR = 31_556_952
_HUNDRED = 100 * UNIT


def total_collateral_value_usd(market: Market, collateral_prices: Mapping[str, int]) -> int:
    return sum(
        mul_decimal(amount, collateral_prices.get(cid, 0))
        for cid, amount in market.deposited_collateral.items()
    )


def market_utilization(
    market: Market,
    price: int,
    withdrawable_usd: int,
    collateral_prices: Mapping[str, int],
) -> int:
    """OI notional / delegated credit, clamped to 1; 1 when nothing is delegated."""
    delegated = withdrawable_usd - total_collateral_value_usd(market, collateral_prices)
    if delegated <= 0:
        return UNIT
    return min(div_decimal(mul_decimal(market.size, price), delegated), UNIT)


def utilization_rate(utilization: int, cfg: GlobalMarketConfig) -> int:
    bp = cfg.utilization_breakpoint_percent
    low = cfg.low_utilization_slope_percent
    if utilization < bp:
        return mul_decimal(mul_decimal(low, utilization), _HUNDRED)
    below = mul_decimal(mul_decimal(low, bp), _HUNDRED)
    above = mul_decimal(mul_decimal(cfg.high_utilization_slope_percent, utilization - bp), _HUNDRED)
    return below + above


def unrecorded_utilization(market: Market, now: int, price: int) -> int:
    elapsed_years = div_decimal(max(now - market.last_utilization_time, 0), SECONDS_PER_YEAR)
    return mul_decimal(mul_decimal(market.current_utilization_rate_computed, elapsed_years), price)


def next_utilization_accrued(market: Market, now: int, price: int) -> int:
    return market.current_utilization_accrued_computed + unrecorded_utilization(market, now, price)


def recompute_utilization(
    market: Market,
    cfg: GlobalMarketConfig,
    now: int,
    price: int,
    withdrawable_usd: int,
    collateral_prices: Mapping[str, int],
) -> int:
    """Accrue at the old rate up to now, then store the new rate. Returns it."""
    market.current_utilization_accrued_computed += unrecorded_utilization(market, now, price)
    util = market_utilization(market, price, withdrawable_usd, collateral_prices)
    market.current_utilization_rate_computed = utilization_rate(util, cfg)
    market.last_utilization_time = now
    return market.current_utilization_rate_computed


def accrued_utilization(
    size: int, entry_utilization_accrued: int, market: Market, now: int, price: int
) -> int:
    """Utilization interest a position owes since entry (always >= 0)."""
    return mul_decimal(abs(size), next_utilization_accrued(market, now, price) - entry_utilization_accrued)
