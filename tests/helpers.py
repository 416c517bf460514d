"""Shared builders for engine tests: a fixed-point helper and a seeded in-memory engine."""

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

from src.perp_common.decimal_math import to_fixed
from src.perp_engine.engine import InMemoryAdapters, PerpEngine, build_in_memory_engine
from src.perp_ledger.domain.store import Ledger
from src.perp_market.domain.collaborators import SUSD, PriceUpdate
from src.perp_market.domain.models import GlobalMarketConfig, Market, MarketConfig
from src.perp_market.infrastructure.in_memory import ManualClock
from src.perp_order.application.service import SettlementResult

MARKET_ID = 100
OWNER = "0xowner"
KEEPER = "0xkeeper"
START_TIME = 1_700_000_000
SETTLE_DELAY = 15  # inside [min_order_age, max_order_age]


def bn(value: Decimal | int | str) -> int:
    """Human number -> 1e18 fixed point: bn("0.5") == 5 * 10**17."""
    return to_fixed(value)


def make_global_config(**overrides: Any) -> GlobalMarketConfig:
    config = GlobalMarketConfig(
        pyth_publish_time_min=12,
        pyth_publish_time_max=60,
        min_order_age=12,
        max_order_age=60,
        min_keeper_fee_usd=bn(10),
        max_keeper_fee_usd=bn(100),
        keeper_profit_margin_usd=bn(5),
        keeper_profit_margin_percent=bn("0.1"),
        keeper_settlement_gas_units=1_200_000,
        keeper_cancellation_gas_units=600_000,
        keeper_flag_gas_units=1_200_000,
        keeper_liquidation_gas_units=1_200_000,
        keeper_liquidate_margin_gas_units=1_200_000,
        keeper_liquidation_endorsed=None,
        collateral_discount_scalar=bn(1),
        min_collateral_discount=bn("0.01"),
        max_collateral_discount=bn("0.05"),
        utilization_breakpoint_percent=bn("0.8"),
        low_utilization_slope_percent=bn("0.0002"),
        high_utilization_slope_percent=bn("0.01"),
        max_hooks_per_order=3,
        endorsed_split_accounts=frozenset({OWNER}),
    )
    return replace(config, **overrides)


def make_market_config(**overrides: Any) -> MarketConfig:
    config = MarketConfig(
        maker_fee=bn("0.0002"),
        taker_fee=bn("0.0006"),
        max_market_size=bn(100_000),
        max_funding_velocity=bn(9),
        skew_scale=bn(1_000_000),
        funding_velocity_clamp=0,
        min_credit_percent=bn(1),
        min_margin_usd=bn(50),
        min_margin_ratio=bn("0.05"),
        incremental_margin_scalar=bn(1),
        maintenance_margin_scalar=bn("0.5"),
        max_initial_margin_ratio=bn("0.9"),
        liquidation_reward_percent=bn("0.0001"),
        liquidation_limit_scalar=bn(1),
        liquidation_window_duration=30,
        liquidation_max_pd=0,
    )
    return replace(config, **overrides)


@dataclass
class Harness:
    engine: PerpEngine
    adapters: InMemoryAdapters
    clock: ManualClock

    @property
    def ledger(self) -> Ledger:
        return self.engine.ledger

    def market(self) -> Market:
        """Re-read the market; objects from before a rollback are stale."""
        return self.ledger.require_market(MARKET_ID)

    def set_price(self, price: int) -> None:
        self.adapters.oracle.set_price(MARKET_ID, price)

    def price(self) -> int:
        return self.adapters.oracle.get_price(MARKET_ID)

    def open_account(self, account_id: int, owner: str = OWNER, deposit: int = bn(2_000)) -> int:
        self.adapters.accounts.create_account(account_id, owner)
        if deposit > 0:
            self.adapters.wallet.mint(SUSD, owner, deposit)
            self.engine.accounts.modify_collateral(account_id, MARKET_ID, SUSD, deposit, owner)
        return account_id

    def commit(
        self,
        account_id: int,
        size_delta: int,
        limit_price: int | None = None,
        hooks: tuple[str, ...] = (),
        signer: str = OWNER,
    ) -> None:
        if limit_price is None:
            limit_price = bn(1_000_000) if size_delta > 0 else 0
        self.engine.orders.commit_order(
            account_id, MARKET_ID, size_delta, limit_price, 0, hooks, signer
        )

    def price_update(self, price: int | None = None) -> PriceUpdate:
        return PriceUpdate(price=price if price is not None else self.price(), publish_time=self.clock.now())

    def settle(self, account_id: int, price: int | None = None) -> SettlementResult:
        return self.engine.orders.settle_order(
            account_id, MARKET_ID, self.price_update(price), KEEPER
        )

    def trade(
        self,
        account_id: int,
        size_delta: int,
        hooks: tuple[str, ...] = (),
        signer: str = OWNER,
    ) -> SettlementResult:
        """Commit, wait until the order is ready, settle at the oracle price."""
        self.commit(account_id, size_delta, hooks=hooks, signer=signer)
        self.clock.advance(SETTLE_DELAY)
        return self.settle(account_id)

    def seed_debt(self, account_id: int, debt: int) -> None:
        with self.ledger.transaction():
            self.ledger.set_debt(account_id, MARKET_ID, debt)

    def events(self, event_type: str) -> list[dict[str, Any]]:
        return [e.to_dict() for e in self.ledger.events if e.event_type == event_type]


def build_harness(
    global_overrides: dict[str, Any] | None = None,
    market_overrides: dict[str, Any] | None = None,
    price: int = bn(2_000),
    credit: int = bn(1_000_000),
) -> Harness:
    clock = ManualClock(START_TIME)
    engine, adapters = build_in_memory_engine(
        make_global_config(**(global_overrides or {})), clock=clock
    )
    adapters.oracle.set_price(MARKET_ID, price)
    adapters.pool.set_credit(MARKET_ID, credit)
    engine.markets.create_market(MARKET_ID, "ETH-PERP", make_market_config(**(market_overrides or {})))
    return Harness(engine=engine, adapters=adapters, clock=clock)
