"""OrderService — the commit -> settle / cancel state machine.

Every entry point runs inside one ledger transaction: a raised AppError
leaves positions, orders, collateral, debt and market aggregates untouched.
Settlement hooks run last, each in its own nested transaction, and can
never fail the settlement itself.
"""

import logging
from dataclasses import dataclass

from src.perp_account.application.service import AccountService
from src.perp_common.enums import Capability, EventType, OrderStatus
from src.perp_common.errors import (
    AppError,
    InvalidHookError,
    InvalidPriceError,
    NilOrderError,
    OrderFoundError,
    OrderNotFoundError,
    OrderNotReadyError,
    OrderNotStaleError,
    OrderStaleError,
    PositionFlaggedError,
    PriceToleranceExceededError,
    PriceToleranceNotExceededError,
)
from src.perp_engine.context import EngineContext
from src.perp_engine.hooks import SettlementHookContext
from src.perp_funding.domain.funding import accrued_funding, recompute_funding
from src.perp_funding.domain.utilization import accrued_utilization
from src.perp_ledger.domain.accounting import apply_realized_usd
from src.perp_ledger.domain.models import Order, Position
from src.perp_margin.domain.margin import position_pnl
from src.perp_market.domain.collaborators import PriceUpdate
from src.perp_market.domain.snapshot import CallSnapshot
from src.perp_order.domain.state import OrderDigest, order_expiration_time, order_status
from src.perp_pricing.domain.keeper import cancellation_keeper_fee, settlement_keeper_fee
from src.perp_pricing.domain.pricing import (
    get_fill_price,
    get_order_fee,
    is_price_tolerance_exceeded,
)
from src.perp_risk.rules.hooks import check_hooks
from src.perp_risk.rules.margin_check import check_trade
from src.perp_risk.rules.permission import check_permission
from src.perp_risk.rules.price_window import check_price_update

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementResult:
    account_id: int
    market_id: int
    size_delta: int
    new_size: int
    fill_price: int
    order_fee: int
    keeper_fee: int
    accrued_funding: int
    accrued_utilization: int
    pnl: int
    account_debt: int


class OrderService:
    def __init__(self, ctx: EngineContext, accounts: AccountService) -> None:
        self._ctx = ctx
        self._accounts = accounts

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_order_digest(self, account_id: int, market_id: int) -> OrderDigest:
        _, snap, _ = self._ctx.load(account_id, market_id)
        order = self._ctx.ledger.get_order(account_id, market_id)
        return OrderDigest.build(order, snap.now, self._ctx.ledger.global_config)

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def commit_order(
        self,
        account_id: int,
        market_id: int,
        size_delta: int,
        limit_price: int,
        keeper_fee_buffer_usd: int,
        hooks: tuple[str, ...] | list[str],
        signer: str,
    ) -> Order:
        ctx = self._ctx
        ledger = ctx.ledger
        with ledger.transaction():
            market, snap, inputs = ctx.load(account_id, market_id)
            check_permission(
                ctx.accounts, account_id, Capability.PERPS_COMMIT_ASYNC_ORDER.value, signer
            )
            cfg = ledger.global_config

            existing = ledger.get_order(account_id, market_id)
            if existing is not None:
                if order_status(existing, snap.now, cfg) != OrderStatus.STALE:
                    raise OrderFoundError(account_id)
                ledger.remove_order(account_id, market_id)
                ledger.emit(
                    EventType.ORDER_CANCELED.value,
                    market_id,
                    account_id,
                    snap.now,
                    keeper_fee=0,
                    commitment_time=existing.commitment_time,
                )

            if size_delta == 0:
                raise NilOrderError()
            hooks = tuple(hooks)
            check_hooks(hooks, ctx.hooks, cfg.max_hooks_per_order)
            if account_id in market.flagged_positions:
                raise PositionFlaggedError()

            position = ledger.get_position(account_id, market_id)
            fill_price = get_fill_price(market.skew, market.config.skew_scale, size_delta, snap.price)
            order_fee = get_order_fee(
                market.skew, size_delta, fill_price, market.config.maker_fee, market.config.taker_fee
            )
            keeper_fee = settlement_keeper_fee(cfg, snap, keeper_fee_buffer_usd)
            check_trade(
                inputs, account_id, market, position, size_delta, fill_price, order_fee, keeper_fee
            )

            order = Order(
                size_delta=size_delta,
                commitment_time=snap.now,
                limit_price=limit_price,
                keeper_fee_buffer_usd=keeper_fee_buffer_usd,
                hooks=hooks,
            )
            ledger.set_order(account_id, market_id, order)
            ledger.emit(
                EventType.ORDER_COMMITTED.value,
                market_id,
                account_id,
                snap.now,
                size_delta=size_delta,
                limit_price=limit_price,
                order_expiration_time=order_expiration_time(order, cfg),
                estimated_order_fee=order_fee,
                estimated_keeper_fee=keeper_fee,
                hooks=list(hooks),
            )
        logger.info(
            "Order committed: account=%s market=%s size_delta=%d", account_id, market_id, size_delta
        )
        return order

    # ------------------------------------------------------------------
    # Settle
    # ------------------------------------------------------------------

    def settle_order(
        self, account_id: int, market_id: int, price_update: PriceUpdate, keeper: str
    ) -> SettlementResult:
        ctx = self._ctx
        ledger = ctx.ledger
        with ledger.transaction():
            # One price for the whole settlement: the pulled price update.
            market, snap, inputs = ctx.load(account_id, market_id, price=price_update.price)
            cfg = ledger.global_config

            order = ledger.get_order(account_id, market_id)
            if order is None:
                raise OrderNotFoundError(account_id, market_id)
            status = order_status(order, snap.now, cfg)
            if status == OrderStatus.STALE:
                raise OrderStaleError()
            if status == OrderStatus.PENDING:
                raise OrderNotReadyError()
            check_price_update(price_update, order.commitment_time, cfg)

            size_delta = order.size_delta
            fill_price = get_fill_price(market.skew, market.config.skew_scale, size_delta, snap.price)
            if is_price_tolerance_exceeded(size_delta, fill_price, order.limit_price):
                raise PriceToleranceExceededError(size_delta, fill_price, order.limit_price)
            for hook in order.hooks:
                if not ctx.hooks.is_whitelisted(hook):
                    raise InvalidHookError(hook)

            position = ledger.get_position(account_id, market_id)
            order_fee = get_order_fee(
                market.skew, size_delta, fill_price, market.config.maker_fee, market.config.taker_fee
            )
            keeper_fee = settlement_keeper_fee(cfg, snap, order.keeper_fee_buffer_usd)
            check_trade(
                inputs, account_id, market, position, size_delta, fill_price, order_fee, keeper_fee
            )

            recompute_funding(market, snap.now, snap.price)
            old_size = 0
            funding = utilization = 0
            fees_to_date = 0
            if position is not None:
                old_size = position.size
                funding = accrued_funding(
                    position.size, position.entry_funding_accrued, market, snap.now, snap.price
                )
                utilization = accrued_utilization(
                    position.size, position.entry_utilization_accrued, market, snap.now, snap.price
                )
                fees_to_date = position.accrued_fees_usd
            pnl = position_pnl(position, fill_price)
            apply_realized_usd(
                ledger,
                account_id,
                market_id,
                pnl + funding - utilization - order_fee - keeper_fee,
            )

            new_size = old_size + size_delta
            market.size += abs(new_size) - abs(old_size)
            market.skew += size_delta
            ctx.recompute_utilization(market, snap)
            ledger.set_position(
                account_id,
                market_id,
                Position(
                    size=new_size,
                    entry_time=snap.now,
                    entry_price=fill_price,
                    entry_funding_accrued=market.current_funding_accrued_computed,
                    entry_utilization_accrued=market.current_utilization_accrued_computed,
                    accrued_fees_usd=fees_to_date + order_fee + keeper_fee,
                ),
            )
            ledger.remove_order(account_id, market_id)
            ctx.pay_keeper(market_id, keeper, keeper_fee)

            result = SettlementResult(
                account_id=account_id,
                market_id=market_id,
                size_delta=size_delta,
                new_size=new_size,
                fill_price=fill_price,
                order_fee=order_fee,
                keeper_fee=keeper_fee,
                accrued_funding=funding,
                accrued_utilization=utilization,
                pnl=pnl,
                account_debt=ledger.get_debt(account_id, market_id),
            )
            ledger.emit(
                EventType.ORDER_SETTLED.value,
                market_id,
                account_id,
                snap.now,
                size_delta=size_delta,
                fill_price=fill_price,
                order_fee=order_fee,
                keeper_fee=keeper_fee,
                accrued_funding=funding,
                accrued_utilization=utilization,
                pnl=pnl,
                account_debt=result.account_debt,
            )
            ctx.check_invariants(market_id)
            logger.info(
                "Order settled: account=%s market=%s size_delta=%d fill=%d fee=%d keeper_fee=%d",
                account_id,
                market_id,
                size_delta,
                fill_price,
                order_fee,
                keeper_fee,
            )
            self._run_hooks(order.hooks, result, snap)
        return result

    def _run_hooks(
        self, hooks: tuple[str, ...], result: SettlementResult, snap: CallSnapshot
    ) -> None:
        ledger = self._ctx.ledger
        for address in hooks:
            hook_ctx = SettlementHookContext(self._accounts, address, result, snap)
            try:
                with ledger.transaction():
                    self._ctx.hooks.get(address).on_settle(hook_ctx)
                    ledger.emit(
                        EventType.SETTLEMENT_HOOK_EXECUTED.value,
                        result.market_id,
                        result.account_id,
                        snap.now,
                        hook=address,
                    )
            except Exception as exc:
                # Hook failures are isolated: its own mutations were rolled back above.
                logger.exception(
                    "Settlement hook %s failed: account=%s market=%s",
                    address,
                    result.account_id,
                    result.market_id,
                )
                ledger.emit(
                    EventType.SETTLEMENT_HOOK_FAILED.value,
                    result.market_id,
                    result.account_id,
                    snap.now,
                    hook=address,
                    error=exc.name if isinstance(exc, AppError) else type(exc).__name__,
                    reason=str(exc),
                )

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    def cancel_order(
        self,
        account_id: int,
        market_id: int,
        price_update: PriceUpdate | None,
        signer: str,
    ) -> int:
        """Cancel a Ready order whose limit is breached, or any Stale order.

        A keeper (non-owner) cancelling a Ready order is paid the cancellation
        fee: sUSD collateral first, any shortfall becomes account debt.
        Returns the keeper fee charged.
        """
        ctx = self._ctx
        ledger = ctx.ledger
        with ledger.transaction():
            price = price_update.price if price_update is not None else None
            market, snap, _ = ctx.load(account_id, market_id, price=price)
            cfg = ledger.global_config

            order = ledger.get_order(account_id, market_id)
            if order is None:
                raise OrderNotFoundError(account_id, market_id)
            status = order_status(order, snap.now, cfg)
            if status == OrderStatus.PENDING:
                raise OrderNotReadyError()

            keeper_fee = 0
            if status == OrderStatus.READY:
                if price_update is None:
                    raise InvalidPriceError(0, 0)
                check_price_update(price_update, order.commitment_time, cfg)
                fill_price = get_fill_price(
                    market.skew, market.config.skew_scale, order.size_delta, snap.price
                )
                if not is_price_tolerance_exceeded(order.size_delta, fill_price, order.limit_price):
                    raise PriceToleranceNotExceededError(
                        order.size_delta, fill_price, order.limit_price
                    )
                if signer != ctx.accounts.owner_of(account_id):
                    keeper_fee = cancellation_keeper_fee(cfg, snap)
                    apply_realized_usd(ledger, account_id, market_id, -keeper_fee)
                    ctx.pay_keeper(market_id, signer, keeper_fee)

            ledger.remove_order(account_id, market_id)
            ledger.emit(
                EventType.ORDER_CANCELED.value,
                market_id,
                account_id,
                snap.now,
                keeper_fee=keeper_fee,
                commitment_time=order.commitment_time,
            )
            ctx.check_invariants(market_id)
        logger.info(
            "Order canceled: account=%s market=%s keeper_fee=%d", account_id, market_id, keeper_fee
        )
        return keeper_fee

    def cancel_stale_order(self, account_id: int, market_id: int) -> None:
        ctx = self._ctx
        ledger = ctx.ledger
        with ledger.transaction():
            _, snap, _ = ctx.load(account_id, market_id)
            order = ledger.get_order(account_id, market_id)
            if order is None:
                raise OrderNotFoundError(account_id, market_id)
            if order_status(order, snap.now, ledger.global_config) != OrderStatus.STALE:
                raise OrderNotStaleError()
            ledger.remove_order(account_id, market_id)
            ledger.emit(
                EventType.ORDER_CANCELED.value,
                market_id,
                account_id,
                snap.now,
                keeper_fee=0,
                commitment_time=order.commitment_time,
            )
        logger.info("Stale order canceled: account=%s market=%s", account_id, market_id)
