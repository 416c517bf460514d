"""EngineContext — the ledger plus every collaborator, shared by all services."""

import logging

from src.perp_funding.domain.utilization import recompute_utilization
from src.perp_ledger.domain.invariants import verify_market_invariants
from src.perp_ledger.domain.store import Ledger
from src.perp_margin.domain.margin import RiskInputs
from src.perp_market.domain.collaborators import (
    AccountRegistryProtocol,
    ClockProtocol,
    CollateralRegistryProtocol,
    GasPriceProtocol,
    HookRegistryProtocol,
    OracleProtocol,
    PoolProtocol,
    WalletProtocol,
)
from src.perp_market.domain.models import Market
from src.perp_market.domain.snapshot import CallSnapshot, capture_snapshot
from src.perp_risk.rules.permission import check_account_exists

logger = logging.getLogger(__name__)


class EngineContext:
    def __init__(
        self,
        ledger: Ledger,
        oracle: OracleProtocol,
        pool: PoolProtocol,
        accounts: AccountRegistryProtocol,
        collaterals: CollateralRegistryProtocol,
        hooks: HookRegistryProtocol,
        wallet: WalletProtocol,
        clock: ClockProtocol,
        gas: GasPriceProtocol,
    ) -> None:
        self.ledger = ledger
        self.oracle = oracle
        self.pool = pool
        self.accounts = accounts
        self.collaterals = collaterals
        self.hooks = hooks
        self.wallet = wallet
        self.clock = clock
        self.gas = gas

    def snapshot(self, market_id: int, price: int | None = None) -> CallSnapshot:
        return capture_snapshot(
            market_id, self.oracle, self.clock, self.gas, self.collaterals, price_override=price
        )

    def risk_inputs(self, snap: CallSnapshot) -> RiskInputs:
        return RiskInputs(ledger=self.ledger, collaterals=self.collaterals, snap=snap)

    def load(
        self, account_id: int | None, market_id: int, price: int | None = None
    ) -> tuple[Market, CallSnapshot, RiskInputs]:
        """Not-found checks (account, then market), then capture the call snapshot."""
        if account_id is not None:
            check_account_exists(self.accounts, account_id)
        market = self.ledger.require_market(market_id)
        snap = self.snapshot(market_id, price)
        return market, snap, self.risk_inputs(snap)

    def recompute_utilization(self, market: Market, snap: CallSnapshot) -> int:
        return recompute_utilization(
            market,
            self.ledger.global_config,
            snap.now,
            snap.price,
            self.pool.withdrawable_market_usd(market.id),
            snap.collateral_prices,
        )

    def pay_keeper(self, market_id: int, keeper: str, amount: int) -> None:
        """Pool pays the keeper once the outermost transaction commits."""
        if amount <= 0:
            return
        self.ledger.after_commit(lambda: self.pool.withdraw_market_usd(market_id, keeper, amount))

    def check_invariants(self, market_id: int) -> None:
        verify_market_invariants(self.ledger, market_id)
