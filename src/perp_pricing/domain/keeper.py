"""Keeper fee family — gas-cost based, bounded by the global keeper fee limits.

All fees share one base:
    base = max(cost * (1 + profit_margin_percent), cost + profit_margin_usd)
where cost = base_fee_per_gas * gas_units * eth_price / 1e18.
"""

from src.perp_common.decimal_math import UNIT, ceil_div, clamp, mul_decimal
from src.perp_market.domain.models import GlobalMarketConfig, MarketConfig
from src.perp_market.domain.snapshot import CallSnapshot


def gas_cost_usd(base_fee_per_gas: int, gas_units: int, eth_price: int) -> int:
    return base_fee_per_gas * gas_units * eth_price // UNIT


def _base_keeper_fee(cfg: GlobalMarketConfig, snap: CallSnapshot, gas_units: int) -> int:
    cost = gas_cost_usd(snap.base_fee_per_gas, gas_units, snap.eth_price)
    return max(
        cost + mul_decimal(cost, cfg.keeper_profit_margin_percent),
        cost + cfg.keeper_profit_margin_usd,
    )


def settlement_keeper_fee(
    cfg: GlobalMarketConfig, snap: CallSnapshot, keeper_fee_buffer_usd: int
) -> int:
    base = _base_keeper_fee(cfg, snap, cfg.keeper_settlement_gas_units)
    return clamp(base + keeper_fee_buffer_usd, cfg.min_keeper_fee_usd, cfg.max_keeper_fee_usd)


def cancellation_keeper_fee(cfg: GlobalMarketConfig, snap: CallSnapshot) -> int:
    base = _base_keeper_fee(cfg, snap, cfg.keeper_cancellation_gas_units)
    return clamp(base, cfg.min_keeper_fee_usd, cfg.max_keeper_fee_usd)


def flag_keeper_reward(
    cfg: GlobalMarketConfig,
    market_cfg: MarketConfig,
    snap: CallSnapshot,
    notional_usd: int,
    collateral_usd: int,
) -> int:
    """Gas base plus liquidation_reward_percent of max(notional, collateral)."""
    base = _base_keeper_fee(cfg, snap, cfg.keeper_flag_gas_units)
    bonus = mul_decimal(max(notional_usd, collateral_usd), market_cfg.liquidation_reward_percent)
    return min(base + bonus, cfg.max_keeper_fee_usd)


def liquidation_keeper_fee(
    cfg: GlobalMarketConfig,
    snap: CallSnapshot,
    size: int,
    max_liquidatable_capacity: int,
) -> int:
    """One gas base per liquidation chunk the size needs; 0 for no size."""
    size = abs(size)
    if size == 0:
        return 0
    iterations = ceil_div(size, max_liquidatable_capacity) if max_liquidatable_capacity > 0 else 1
    base = _base_keeper_fee(cfg, snap, cfg.keeper_liquidation_gas_units)
    return min(base * iterations, cfg.max_keeper_fee_usd)


def margin_liquidation_keeper_reward(
    cfg: GlobalMarketConfig,
    market_cfg: MarketConfig,
    snap: CallSnapshot,
    collateral_usd: int,
) -> int:
    base = _base_keeper_fee(cfg, snap, cfg.keeper_liquidate_margin_gas_units)
    bonus = mul_decimal(collateral_usd, market_cfg.liquidation_reward_percent)
    return min(base + bonus, cfg.max_keeper_fee_usd)
