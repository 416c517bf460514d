"""Pydantic schemas for perp_market API. Every amount is a 1e18 fixed-point int."""

from dataclasses import asdict

from pydantic import BaseModel

from src.perp_common.decimal_math import to_display
from src.perp_liquidation.domain.capacity import LiquidationCapacity
from src.perp_market.application.service import MarketDigest, OrderFees
from src.perp_market.domain.models import GlobalMarketConfig, MarketConfig


class GlobalMarketConfigResponse(BaseModel):
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
    endorsed_split_accounts: list[str]

    @classmethod
    def from_result(cls, config: GlobalMarketConfig) -> "GlobalMarketConfigResponse":
        data = asdict(config)
        data["endorsed_split_accounts"] = sorted(config.endorsed_split_accounts)
        return cls(**data)


class MarketConfigResponse(BaseModel):
    market_id: int
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
    liquidation_window_duration: int
    liquidation_max_pd: int
    oracle_node_id: str
    pyth_price_feed_id: str

    @classmethod
    def from_result(cls, market_id: int, config: MarketConfig) -> "MarketConfigResponse":
        return cls(market_id=market_id, **asdict(config))


class MarketDigestResponse(BaseModel):
    market_id: int
    name: str
    size: int
    skew: int
    oracle_price: int
    oracle_price_display: str
    funding_rate: int
    funding_velocity: int
    utilization_rate: int
    total_trader_debt_usd: int
    total_collateral_value_usd: int
    last_liquidation_time: int
    remaining_liquidatable_size_capacity: int
    deposited_collaterals: dict[str, int]

    @classmethod
    def from_result(cls, digest: MarketDigest) -> "MarketDigestResponse":
        return cls(oracle_price_display=to_display(digest.oracle_price), **asdict(digest))


class FillPriceResponse(BaseModel):
    market_id: int
    size_delta: int
    fill_price: int


class OrderFeesResponse(BaseModel):
    order_fee: int
    keeper_fee: int

    @classmethod
    def from_result(cls, fees: OrderFees) -> "OrderFeesResponse":
        return cls(order_fee=fees.order_fee, keeper_fee=fees.keeper_fee)


class LiquidationCapacityResponse(BaseModel):
    market_id: int
    max_liquidatable_capacity: int
    remaining_capacity: int
    last_liquidation_time: int

    @classmethod
    def from_result(
        cls, market_id: int, capacity: LiquidationCapacity
    ) -> "LiquidationCapacityResponse":
        return cls(market_id=market_id, **asdict(capacity))


class MinimumCreditResponse(BaseModel):
    market_id: int
    minimum_credit_usd: int


class UtilizationResponse(BaseModel):
    market_id: int
    utilization_rate: int
