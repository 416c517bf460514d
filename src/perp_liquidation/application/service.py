"""LiquidationService — flag, liquidate (throttled) and margin-only liquidation.

Flagging seizes the account's collateral and debt into the pool; the
position itself is then closed in capacity-limited chunks by
liquidate_position. Margin-only liquidation handles accounts with no
position whose collateral no longer covers their debt.
"""

import logging
from dataclasses import dataclass, replace

from src.perp_common.decimal_math import sign
from src.perp_common.enums import EventType
from src.perp_common.errors import (
    CannotLiquidateMarginError,
    CannotLiquidatePositionError,
    LiquidationZeroCapacityError,
    PositionFlaggedError,
    PositionNotFlaggedError,
    PositionNotFoundError,
)
from src.perp_engine.context import EngineContext
from src.perp_funding.domain.funding import recompute_funding
from src.perp_liquidation.domain.capacity import (
    liquidation_size,
    record_liquidation,
    remaining_liquidatable_capacity,
)
from src.perp_margin.domain.margin import RiskInputs, collateral_usd, is_position_liquidatable
from src.perp_market.domain.collaborators import SUSD
from src.perp_market.domain.models import Market
from src.perp_market.domain.snapshot import CallSnapshot
from src.perp_pricing.domain.keeper import (
    flag_keeper_reward,
    liquidation_keeper_fee,
    margin_liquidation_keeper_reward,
)
from src.perp_pricing.domain.pricing import get_notional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiquidationResult:
    account_id: int
    market_id: int
    size_before: int
    liquidated_size: int
    remaining_size: int
    flagger: str
    liquidator: str
    keeper_fee: int
    price: int


class LiquidationService:
    def __init__(self, ctx: EngineContext) -> None:
        self._ctx = ctx

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def _cancel_order(self, account_id: int, market_id: int, now: int) -> None:
        order = self._ctx.ledger.remove_order(account_id, market_id)
        if order is not None:
            self._ctx.ledger.emit(
                EventType.ORDER_CANCELED.value,
                market_id,
                account_id,
                now,
                keeper_fee=0,
                commitment_time=order.commitment_time,
            )

    def _seize_collateral(self, account_id: int, market_id: int) -> tuple[dict[str, int], int]:
        """Clear the account's collateral and debt.

        sUSD is already pool credit. Every other collateral is handed to the
        pool's reward distributor once the call commits.
        """
        ledger = self._ctx.ledger
        pool = self._ctx.pool
        seized = ledger.clear_collateral(account_id, market_id)
        for collateral_id, amount in seized.items():
            if collateral_id != SUSD:
                ledger.after_commit(
                    lambda cid=collateral_id, amt=amount: pool.distribute_reward(market_id, cid, amt)
                )
        debt = ledger.get_debt(account_id, market_id)
        ledger.set_debt(account_id, market_id, 0)
        return seized, debt

    def _margin_liquidation_reward(
        self, inputs: RiskInputs, account_id: int, market: Market, snap: CallSnapshot
    ) -> int | None:
        """Keeper reward if the account is margin-liquidatable, else None."""
        ledger = inputs.ledger
        position = ledger.get_position(account_id, market.id)
        if position is not None and position.size != 0:
            return None
        collateral = ledger.get_collateral(account_id, market.id)
        if not any(amount > 0 for amount in collateral.values()):
            return None
        total, discounted = collateral_usd(collateral, inputs)
        reward = margin_liquidation_keeper_reward(
            ledger.global_config, market.config, snap, total
        )
        if discounted - ledger.get_debt(account_id, market.id) - reward > 0:
            return None
        return reward

    # ------------------------------------------------------------------
    # Flag
    # ------------------------------------------------------------------

    def flag_position(self, account_id: int, market_id: int, keeper: str) -> int:
        """Flag a liquidatable position. Returns the flag reward paid to the keeper."""
        ctx = self._ctx
        ledger = ctx.ledger
        with ledger.transaction():
            market, snap, inputs = ctx.load(account_id, market_id)
            position = ledger.get_position(account_id, market_id)
            if position is None:
                raise PositionNotFoundError(account_id, market_id)
            if account_id in market.flagged_positions:
                raise PositionFlaggedError()
            if not is_position_liquidatable(inputs, account_id, market):
                raise CannotLiquidatePositionError()

            recompute_funding(market, snap.now, snap.price)
            total, _ = collateral_usd(ledger.get_collateral(account_id, market_id), inputs)
            flag_reward = flag_keeper_reward(
                ledger.global_config,
                market.config,
                snap,
                get_notional(position.size, snap.price),
                total,
            )

            self._cancel_order(account_id, market_id, snap.now)
            seized, debt = self._seize_collateral(account_id, market_id)
            market.flagged_positions[account_id] = keeper
            ctx.pay_keeper(market_id, keeper, flag_reward)

            ledger.emit(
                EventType.POSITION_FLAGGED_LIQUIDATION.value,
                market_id,
                account_id,
                snap.now,
                flagger=keeper,
                flag_keeper_reward=flag_reward,
                seized_collateral=seized,
                cleared_debt=debt,
                price=snap.price,
            )
            ctx.check_invariants(market_id)
        logger.warning(
            "Position flagged: account=%s market=%s size=%d flagger=%s reward=%d",
            account_id,
            market_id,
            position.size,
            keeper,
            flag_reward,
        )
        return flag_reward

    # ------------------------------------------------------------------
    # Liquidate
    # ------------------------------------------------------------------

    def liquidate_position(self, account_id: int, market_id: int, keeper: str) -> LiquidationResult:
        """Close as much of a flagged position as the capacity window allows."""
        ctx = self._ctx
        ledger = ctx.ledger
        with ledger.transaction():
            market, snap, _ = ctx.load(account_id, market_id)
            cfg = ledger.global_config
            position = ledger.get_position(account_id, market_id)
            if position is None:
                raise PositionNotFoundError(account_id, market_id)
            flagger = market.flagged_positions.get(account_id)
            if flagger is None:
                raise PositionNotFlaggedError()

            recompute_funding(market, snap.now, snap.price)
            size = liquidation_size(market, cfg, snap.now, position.size, keeper)
            if size == 0:
                raise LiquidationZeroCapacityError()

            max_capacity = remaining_liquidatable_capacity(market, snap.now).max_liquidatable_capacity
            keeper_fee = liquidation_keeper_fee(cfg, snap, size, max_capacity)
            record_liquidation(market, snap.now, size)

            size_before = position.size
            signed = size * sign(size_before)
            remaining_size = size_before - signed
            market.size -= size
            market.skew -= signed
            if remaining_size == 0:
                ledger.set_position(account_id, market_id, None)
                del market.flagged_positions[account_id]
            else:
                ledger.set_position(account_id, market_id, replace(position, size=remaining_size))
            ctx.recompute_utilization(market, snap)
            ctx.pay_keeper(market_id, keeper, keeper_fee)

            result = LiquidationResult(
                account_id=account_id,
                market_id=market_id,
                size_before=size_before,
                liquidated_size=size,
                remaining_size=remaining_size,
                flagger=flagger,
                liquidator=keeper,
                keeper_fee=keeper_fee,
                price=snap.price,
            )
            ledger.emit(
                EventType.POSITION_LIQUIDATED.value,
                market_id,
                account_id,
                snap.now,
                size_before=size_before,
                remaining_size=remaining_size,
                flagger=flagger,
                liquidator=keeper,
                liq_keeper_fee=keeper_fee,
                price=snap.price,
            )
            ctx.check_invariants(market_id)
        logger.warning(
            "Position liquidated: account=%s market=%s %d -> %d keeper=%s",
            account_id,
            market_id,
            size_before,
            remaining_size,
            keeper,
        )
        return result

    # ------------------------------------------------------------------
    # Margin-only
    # ------------------------------------------------------------------

    def is_margin_liquidatable(self, account_id: int, market_id: int) -> bool:
        market, snap, inputs = self._ctx.load(account_id, market_id)
        return self._margin_liquidation_reward(inputs, account_id, market, snap) is not None

    def liquidate_margin_only(self, account_id: int, market_id: int, keeper: str) -> int:
        """Seize the collateral of a position-less account whose debt outweighs it."""
        ctx = self._ctx
        ledger = ctx.ledger
        with ledger.transaction():
            market, snap, inputs = ctx.load(account_id, market_id)
            reward = self._margin_liquidation_reward(inputs, account_id, market, snap)
            if reward is None:
                raise CannotLiquidateMarginError()

            self._cancel_order(account_id, market_id, snap.now)
            seized, debt = self._seize_collateral(account_id, market_id)
            ctx.pay_keeper(market_id, keeper, reward)
            ledger.emit(
                EventType.MARGIN_LIQUIDATED.value,
                market_id,
                account_id,
                snap.now,
                keeper=keeper,
                keeper_reward=reward,
                seized_collateral=seized,
                cleared_debt=debt,
            )
            ctx.check_invariants(market_id)
        logger.warning(
            "Margin liquidated: account=%s market=%s keeper=%s reward=%d",
            account_id,
            market_id,
            keeper,
            reward,
        )
        return reward
