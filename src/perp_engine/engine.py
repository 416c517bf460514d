"""PerpEngine — one ledger, one set of collaborators, the four services on top."""

import logging
from dataclasses import dataclass

from config.settings import settings
from src.perp_account.application.service import AccountService
from src.perp_engine.context import EngineContext
from src.perp_ledger.domain.store import Ledger
from src.perp_liquidation.application.service import LiquidationService
from src.perp_market.application.service import MarketService
from src.perp_market.domain.models import GlobalMarketConfig
from src.perp_market.infrastructure.in_memory import (
    FixedGasPrice,
    InMemoryAccountRegistry,
    InMemoryCollateralRegistry,
    InMemoryHookRegistry,
    InMemoryOracle,
    InMemoryPool,
    InMemoryWallet,
    ManualClock,
    SystemClock,
)
from src.perp_order.application.service import OrderService

logger = logging.getLogger(__name__)


class PerpEngine:
    def __init__(self, ctx: EngineContext) -> None:
        self.ctx = ctx
        self.markets = MarketService(ctx)
        self.accounts = AccountService(ctx)
        self.orders = OrderService(ctx, self.accounts)
        self.liquidations = LiquidationService(ctx)

    @property
    def ledger(self) -> Ledger:
        return self.ctx.ledger


@dataclass
class InMemoryAdapters:
    """The concrete in-memory collaborators, kept so callers can seed them."""

    oracle: InMemoryOracle
    wallet: InMemoryWallet
    collaterals: InMemoryCollateralRegistry
    pool: InMemoryPool
    accounts: InMemoryAccountRegistry
    hooks: InMemoryHookRegistry
    clock: ManualClock | SystemClock
    gas: FixedGasPrice


def build_in_memory_engine(
    global_config: GlobalMarketConfig | None = None,
    clock: ManualClock | SystemClock | None = None,
) -> tuple[PerpEngine, InMemoryAdapters]:
    """Wire a PerpEngine over in-memory collaborators."""
    wallet = InMemoryWallet()
    collaterals = InMemoryCollateralRegistry()
    adapters = InMemoryAdapters(
        oracle=InMemoryOracle(),
        wallet=wallet,
        collaterals=collaterals,
        pool=InMemoryPool(collaterals, wallet),
        accounts=InMemoryAccountRegistry(),
        hooks=InMemoryHookRegistry(),
        clock=clock if clock is not None else SystemClock(),
        gas=FixedGasPrice(),
    )
    ledger = Ledger(global_config or GlobalMarketConfig.from_settings(settings))
    ctx = EngineContext(
        ledger=ledger,
        oracle=adapters.oracle,
        pool=adapters.pool,
        accounts=adapters.accounts,
        collaterals=adapters.collaterals,
        hooks=adapters.hooks,
        wallet=adapters.wallet,
        clock=adapters.clock,
        gas=adapters.gas,
    )
    logger.info("In-memory perp engine built")
    return PerpEngine(ctx), adapters
