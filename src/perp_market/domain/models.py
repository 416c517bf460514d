"""Domain models for perp_market — pure dataclasses, no business logic.

Every numeric field is 1e18 fixed point unless it is a time (unix seconds)
or a gas unit count.
"""

from dataclasses import dataclass, field
from typing import Any

from src.perp_common.decimal_math import to_fixed


@dataclass(frozen=True)
class GlobalMarketConfig:
    pyth_publish_time_min: int
    pyth_publish_time_max: int
    min_order_age: int
    max_order_age: int
    min_keeper_fee_usd: int
    max_keeper_fee_usd: int
    keeper_profit_margin_usd: int
    keeper_profit_margin_percent: int
    keeper_settlement_gas_units: int
    keeper_cancellation_gas_units: int
    keeper_flag_gas_units: int
    keeper_liquidation_gas_units: int
    keeper_liquidate_margin_gas_units: int
    keeper_liquidation_endorsed: str | None
    collateral_discount_scalar: int
    min_collateral_discount: int
    max_collateral_discount: int
    utilization_breakpoint_percent: int
    low_utilization_slope_percent: int
    high_utilization_slope_percent: int
    max_hooks_per_order: int
    endorsed_split_accounts: frozenset[str] = frozenset()

    @classmethod
    def from_settings(cls, s: Any) -> "GlobalMarketConfig":
        """Build from config.settings.Settings (human decimals -> fixed point)."""
        return cls(
            pyth_publish_time_min=s.PYTH_PUBLISH_TIME_MIN,
            pyth_publish_time_max=s.PYTH_PUBLISH_TIME_MAX,
            min_order_age=s.MIN_ORDER_AGE,
            max_order_age=s.MAX_ORDER_AGE,
            min_keeper_fee_usd=to_fixed(s.MIN_KEEPER_FEE_USD),
            max_keeper_fee_usd=to_fixed(s.MAX_KEEPER_FEE_USD),
            keeper_profit_margin_usd=to_fixed(s.KEEPER_PROFIT_MARGIN_USD),
            keeper_profit_margin_percent=to_fixed(s.KEEPER_PROFIT_MARGIN_PERCENT),
            keeper_settlement_gas_units=s.KEEPER_SETTLEMENT_GAS_UNITS,
            keeper_cancellation_gas_units=s.KEEPER_CANCELLATION_GAS_UNITS,
            keeper_flag_gas_units=s.KEEPER_FLAG_GAS_UNITS,
            keeper_liquidation_gas_units=s.KEEPER_LIQUIDATION_GAS_UNITS,
            keeper_liquidate_margin_gas_units=s.KEEPER_LIQUIDATE_MARGIN_GAS_UNITS,
            keeper_liquidation_endorsed=s.KEEPER_LIQUIDATION_ENDORSED,
            collateral_discount_scalar=to_fixed(s.COLLATERAL_DISCOUNT_SCALAR),
            min_collateral_discount=to_fixed(s.MIN_COLLATERAL_DISCOUNT),
            max_collateral_discount=to_fixed(s.MAX_COLLATERAL_DISCOUNT),
            utilization_breakpoint_percent=to_fixed(s.UTILIZATION_BREAKPOINT_PERCENT),
            low_utilization_slope_percent=to_fixed(s.LOW_UTILIZATION_SLOPE_PERCENT),
            high_utilization_slope_percent=to_fixed(s.HIGH_UTILIZATION_SLOPE_PERCENT),
            max_hooks_per_order=s.MAX_HOOKS_PER_ORDER,
            endorsed_split_accounts=frozenset(s.ENDORSED_SPLIT_ACCOUNTS),
        )


@dataclass(frozen=True)
class MarketConfig:
    maker_fee: int
    taker_fee: int
    max_market_size: int
    max_funding_velocity: int
    skew_scale: int
    funding_velocity_clamp: int
    min_credit_percent: int
    min_margin_usd: int
    min_margin_ratio: int
    incremental_margin_scalar: int
    maintenance_margin_scalar: int
    max_initial_margin_ratio: int
    liquidation_reward_percent: int
    liquidation_limit_scalar: int
    liquidation_window_duration: int  # seconds
    liquidation_max_pd: int
    oracle_node_id: str = ""
    pyth_price_feed_id: str = ""


@dataclass
class PastLiquidation:
    timestamp: int
    size: int


@dataclass
class Market:
    """Market aggregate. Only the Ledger mutates it, inside a transaction."""

    id: int
    name: str
    config: MarketConfig
    size: int = 0  # open interest, sum of |position size|
    skew: int = 0  # sum of signed position size
    total_trader_debt_usd: int = 0
    deposited_collateral: dict[str, int] = field(default_factory=dict)
    current_funding_rate_computed: int = 0
    current_funding_accrued_computed: int = 0
    last_funding_time: int = 0
    current_utilization_rate_computed: int = 0
    current_utilization_accrued_computed: int = 0
    last_utilization_time: int = 0
    past_liquidations: list[PastLiquidation] = field(default_factory=list)
    last_liquidation_time: int = 0
    flagged_positions: dict[int, str] = field(default_factory=dict)  # account -> flagger

    @property
    def long_open_interest(self) -> int:
        return (self.size + self.skew) // 2

    @property
    def short_open_interest(self) -> int:
        return (self.size - self.skew) // 2


@dataclass(frozen=True)
class CollateralConfig:
    collateral_id: str
    max_allowable: int
    skew_scale: int  # collateral discount curve, not the market skew scale
    reward_distributor: str = ""
