"""MarketService — market bootstrap/config and the market-level read surface."""

import logging
from dataclasses import asdict, dataclass

from src.perp_common.enums import EventType
from src.perp_engine.context import EngineContext
from src.perp_funding.domain.funding import current_funding_rate, current_funding_velocity, recompute_funding
from src.perp_funding.domain.utilization import total_collateral_value_usd
from src.perp_liquidation.domain.capacity import LiquidationCapacity, remaining_liquidatable_capacity
from src.perp_market.domain.models import GlobalMarketConfig, Market, MarketConfig
from src.perp_pricing.domain.keeper import settlement_keeper_fee
from src.perp_pricing.domain.pricing import get_fill_price, get_minimum_credit, get_order_fee

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketDigest:
    market_id: int
    name: str
    size: int
    skew: int
    oracle_price: int
    funding_rate: int
    funding_velocity: int
    utilization_rate: int
    total_trader_debt_usd: int
    total_collateral_value_usd: int
    last_liquidation_time: int
    remaining_liquidatable_size_capacity: int
    deposited_collaterals: dict[str, int]


@dataclass(frozen=True)
class OrderFees:
    order_fee: int
    keeper_fee: int


class MarketService:
    def __init__(self, ctx: EngineContext) -> None:
        self._ctx = ctx

    # ------------------------------------------------------------------
    # Admin bootstrap
    # ------------------------------------------------------------------

    def create_market(self, market_id: int, name: str, config: MarketConfig) -> Market:
        ledger = self._ctx.ledger
        with ledger.transaction():
            now = self._ctx.clock.now()
            market = Market(
                id=market_id,
                name=name,
                config=config,
                last_funding_time=now,
                last_utilization_time=now,
            )
            ledger.add_market(market)
            ledger.emit(EventType.MARKET_CREATED.value, market_id, None, now, name=name)
        logger.info("Market created: id=%s name=%s", market_id, name)
        return market

    def set_market_configuration_by_id(self, market_id: int, config: MarketConfig) -> None:
        """Replace a market's parameters; funding accrued so far uses the old ones."""
        ledger = self._ctx.ledger
        with ledger.transaction():
            market, snap, _ = self._ctx.load(None, market_id)
            recompute_funding(market, snap.now, snap.price)
            market.config = config
            ledger.emit(
                EventType.MARKET_CONFIGURED.value, market_id, None, snap.now, **asdict(config)
            )
        logger.info("Market configured: id=%s", market_id)

    def set_market_configuration(self, config: GlobalMarketConfig) -> None:
        ledger = self._ctx.ledger
        with ledger.transaction():
            ledger.set_global_config(config)
            payload = asdict(config)
            payload["endorsed_split_accounts"] = sorted(config.endorsed_split_accounts)
            ledger.emit(
                EventType.GLOBAL_MARKET_CONFIGURED.value, 0, None, self._ctx.clock.now(), **payload
            )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_market_configuration(self) -> GlobalMarketConfig:
        return self._ctx.ledger.global_config

    def get_market_configuration_by_id(self, market_id: int) -> MarketConfig:
        return self._ctx.ledger.require_market(market_id).config

    def get_market_digest(self, market_id: int) -> MarketDigest:
        market, snap, _ = self._ctx.load(None, market_id)
        capacity = remaining_liquidatable_capacity(market, snap.now)
        return MarketDigest(
            market_id=market.id,
            name=market.name,
            size=market.size,
            skew=market.skew,
            oracle_price=snap.price,
            funding_rate=current_funding_rate(market, snap.now),
            funding_velocity=current_funding_velocity(market),
            utilization_rate=market.current_utilization_rate_computed,
            total_trader_debt_usd=market.total_trader_debt_usd,
            total_collateral_value_usd=total_collateral_value_usd(market, snap.collateral_prices),
            last_liquidation_time=market.last_liquidation_time,
            remaining_liquidatable_size_capacity=capacity.remaining_capacity,
            deposited_collaterals=dict(market.deposited_collateral),
        )

    def get_fill_price(self, market_id: int, size_delta: int) -> int:
        market, snap, _ = self._ctx.load(None, market_id)
        return get_fill_price(market.skew, market.config.skew_scale, size_delta, snap.price)

    def get_order_fees(
        self, market_id: int, size_delta: int, keeper_fee_buffer_usd: int
    ) -> OrderFees:
        market, snap, _ = self._ctx.load(None, market_id)
        cfg = market.config
        fill_price = get_fill_price(market.skew, cfg.skew_scale, size_delta, snap.price)
        return OrderFees(
            order_fee=get_order_fee(market.skew, size_delta, fill_price, cfg.maker_fee, cfg.taker_fee),
            keeper_fee=settlement_keeper_fee(
                self._ctx.ledger.global_config, snap, keeper_fee_buffer_usd
            ),
        )

    def get_remaining_liquidatable_size_capacity(self, market_id: int) -> LiquidationCapacity:
        market, snap, _ = self._ctx.load(None, market_id)
        return remaining_liquidatable_capacity(market, snap.now)

    def minimum_credit(self, market_id: int) -> int:
        market, snap, _ = self._ctx.load(None, market_id)
        return get_minimum_credit(market.size, snap.price, market.config.min_credit_percent)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def recompute_utilization(self, market_id: int) -> int:
        """Explicit utilization checkpoint. Idempotent while state is unchanged."""
        ledger = self._ctx.ledger
        with ledger.transaction():
            market, snap, _ = self._ctx.load(None, market_id)
            rate = self._ctx.recompute_utilization(market, snap)
            ledger.emit(
                EventType.UTILIZATION_RECOMPUTED.value,
                market_id,
                None,
                snap.now,
                utilization_rate=rate,
            )
        return rate
