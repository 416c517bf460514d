"""Ledger — the single writer for positions, orders, collateral and debt.

Every mutation runs inside ``Ledger.transaction()``. A transaction snapshots
the whole state on entry; on exception the snapshot is restored and the
events/effects buffered since entry are dropped, then the error re-raises.
Transactions nest. When the outermost one commits, buffered events move to
the committed log and buffered collaborator effects (pool and wallet
transfers) run in order.

Objects read before a nested transaction that rolled back are stale and
must be re-read from the ledger.
"""

import copy
import logging
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from src.perp_common.errors import (
    AppError,
    InsufficientCollateralError,
    MarketAlreadyExistsError,
    MarketNotFoundError,
)
from src.perp_ledger.domain.models import Event, Order, Position
from src.perp_market.domain.models import GlobalMarketConfig, Market

logger = logging.getLogger(__name__)

AccountKey = tuple[int, int]  # (account_id, market_id)

_EVENT_LOG_SIZE = 10_000


@dataclass
class LedgerState:
    global_config: GlobalMarketConfig
    markets: dict[int, Market] = field(default_factory=dict)
    positions: dict[AccountKey, Position] = field(default_factory=dict)
    orders: dict[AccountKey, Order] = field(default_factory=dict)
    collateral: dict[AccountKey, dict[str, int]] = field(default_factory=dict)
    debt: dict[AccountKey, int] = field(default_factory=dict)


class Ledger:
    def __init__(self, global_config: GlobalMarketConfig) -> None:
        self._state = LedgerState(global_config=global_config)
        self._snapshots: list[tuple[LedgerState, int, int]] = []
        self._pending_events: list[Event] = []
        self._pending_effects: list[Callable[[], None]] = []
        self.events: deque[Event] = deque(maxlen=_EVENT_LOG_SIZE)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @property
    def in_transaction(self) -> bool:
        return bool(self._snapshots)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        self._snapshots.append(
            (
                copy.deepcopy(self._state),
                len(self._pending_events),
                len(self._pending_effects),
            )
        )
        try:
            yield
        except BaseException as exc:
            # includes CancelledError from an await inside the runner's transaction
            state, n_events, n_effects = self._snapshots.pop()
            self._state = state
            del self._pending_events[n_events:]
            del self._pending_effects[n_effects:]
            logger.warning(
                "Ledger rollback (depth=%d): %s",
                len(self._snapshots),
                exc.name if isinstance(exc, AppError) else type(exc).__name__,
            )
            raise
        self._snapshots.pop()
        if not self._snapshots:
            self._flush()

    def _flush(self) -> None:
        events, self._pending_events = self._pending_events, []
        effects, self._pending_effects = self._pending_effects, []
        self.events.extend(events)
        for effect in effects:
            effect()

    def _require_tx(self) -> None:
        if not self._snapshots:
            raise RuntimeError("Ledger mutation outside of a transaction")

    @property
    def pending_events(self) -> list[Event]:
        return list(self._pending_events)

    def emit(
        self,
        event_type: str,
        market_id: int,
        account_id: int | None,
        timestamp: int,
        **payload: Any,
    ) -> Event:
        self._require_tx()
        event = Event(event_type, market_id, account_id, timestamp, payload)
        self._pending_events.append(event)
        return event

    def after_commit(self, effect: Callable[[], None]) -> None:
        """Defer a collaborator side effect until the outermost commit."""
        self._require_tx()
        self._pending_effects.append(effect)

    # ------------------------------------------------------------------
    # Config & markets
    # ------------------------------------------------------------------

    @property
    def global_config(self) -> GlobalMarketConfig:
        return self._state.global_config

    def set_global_config(self, config: GlobalMarketConfig) -> None:
        self._require_tx()
        self._state.global_config = config

    def add_market(self, market: Market) -> None:
        self._require_tx()
        if market.id in self._state.markets:
            raise MarketAlreadyExistsError(market.id)
        self._state.markets[market.id] = market

    def get_market(self, market_id: int) -> Market | None:
        return self._state.markets.get(market_id)

    def require_market(self, market_id: int) -> Market:
        market = self._state.markets.get(market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        return market

    def market_ids(self) -> list[int]:
        return sorted(self._state.markets)

    # ------------------------------------------------------------------
    # Positions & orders
    # ------------------------------------------------------------------

    def get_position(self, account_id: int, market_id: int) -> Position | None:
        return self._state.positions.get((account_id, market_id))

    def set_position(self, account_id: int, market_id: int, position: Position | None) -> None:
        """Store a position; a None or zero-size position is removed."""
        self._require_tx()
        key = (account_id, market_id)
        if position is None or position.size == 0:
            self._state.positions.pop(key, None)
        else:
            self._state.positions[key] = position

    def positions_in_market(self, market_id: int) -> dict[int, Position]:
        return {a: p for (a, m), p in self._state.positions.items() if m == market_id}

    def get_order(self, account_id: int, market_id: int) -> Order | None:
        return self._state.orders.get((account_id, market_id))

    def set_order(self, account_id: int, market_id: int, order: Order) -> None:
        self._require_tx()
        self._state.orders[(account_id, market_id)] = order

    def remove_order(self, account_id: int, market_id: int) -> Order | None:
        self._require_tx()
        return self._state.orders.pop((account_id, market_id), None)

    # ------------------------------------------------------------------
    # Collateral & debt (keep market aggregates in step)
    # ------------------------------------------------------------------

    def get_collateral(self, account_id: int, market_id: int) -> dict[str, int]:
        return dict(self._state.collateral.get((account_id, market_id), {}))

    def get_collateral_amount(self, account_id: int, market_id: int, collateral_id: str) -> int:
        return self._state.collateral.get((account_id, market_id), {}).get(collateral_id, 0)

    def credit_collateral(
        self, account_id: int, market_id: int, collateral_id: str, amount: int
    ) -> None:
        self._require_tx()
        if amount == 0:
            return
        if amount < 0:
            raise ValueError(f"credit_collateral amount must be positive, got {amount}")
        balances = self._state.collateral.setdefault((account_id, market_id), {})
        balances[collateral_id] = balances.get(collateral_id, 0) + amount
        market = self.require_market(market_id)
        market.deposited_collateral[collateral_id] = (
            market.deposited_collateral.get(collateral_id, 0) + amount
        )

    def debit_collateral(
        self, account_id: int, market_id: int, collateral_id: str, amount: int
    ) -> None:
        self._require_tx()
        if amount == 0:
            return
        key = (account_id, market_id)
        balances = self._state.collateral.get(key, {})
        available = balances.get(collateral_id, 0)
        if amount < 0 or amount > available:
            raise InsufficientCollateralError(collateral_id, available, amount)
        remaining = available - amount
        if remaining == 0:
            balances.pop(collateral_id, None)
            if not balances:
                self._state.collateral.pop(key, None)
        else:
            balances[collateral_id] = remaining
        market = self.require_market(market_id)
        market.deposited_collateral[collateral_id] -= amount
        if market.deposited_collateral[collateral_id] == 0:
            del market.deposited_collateral[collateral_id]

    def clear_collateral(self, account_id: int, market_id: int) -> dict[str, int]:
        """Remove and return every collateral balance of the account."""
        seized = self.get_collateral(account_id, market_id)
        for collateral_id, amount in seized.items():
            self.debit_collateral(account_id, market_id, collateral_id, amount)
        return seized

    def get_debt(self, account_id: int, market_id: int) -> int:
        return self._state.debt.get((account_id, market_id), 0)

    def set_debt(self, account_id: int, market_id: int, debt: int) -> None:
        self._require_tx()
        if debt < 0:
            raise ValueError(f"debt cannot be negative, got {debt}")
        key = (account_id, market_id)
        market = self.require_market(market_id)
        market.total_trader_debt_usd += debt - self._state.debt.get(key, 0)
        if debt == 0:
            self._state.debt.pop(key, None)
        else:
            self._state.debt[key] = debt

    def accounts_in_market(self, market_id: int) -> set[int]:
        accounts: set[int] = set()
        for container in (
            self._state.positions,
            self._state.orders,
            self._state.collateral,
            self._state.debt,
        ):
            accounts.update(a for (a, m) in container if m == market_id)
        return accounts
