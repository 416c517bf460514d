"""AccountService — digests, debt, collateral, split and merge.

Read-only views run without a transaction. Mutations run inside one ledger
transaction and re-check market invariants before committing.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.perp_common.decimal_math import UNIT, div_decimal, mul_decimal, sign
from src.perp_common.enums import Capability, EventType
from src.perp_common.errors import (
    AccountSplitProportionTooLargeError,
    AccountSplitProportionTooSmallError,
    CanLiquidatePositionError,
    CollateralFoundError,
    DebtFoundError,
    DuplicateAccountIdsError,
    InsufficientBalanceError,
    InsufficientMarginError,
    InvalidHookError,
    MaxCollateralExceededError,
    NilCollateralError,
    NoDebtError,
    OrderFoundError,
    PermissionDeniedError,
    PositionFlaggedError,
    PositionFoundError,
    PositionNotFoundError,
    PositionTooOldError,
    PositionsOppositeSideError,
    UnsupportedCollateralError,
    ZeroAmountError,
    ZeroProportionError,
)
from src.perp_engine.context import EngineContext
from src.perp_funding.domain.funding import accrued_funding, next_funding_accrued
from src.perp_funding.domain.utilization import accrued_utilization, next_utilization_accrued
from src.perp_ledger.domain.accounting import apply_realized_usd
from src.perp_ledger.domain.models import Position
from src.perp_margin.domain.margin import (
    LiquidationMargin,
    RiskInputs,
    account_health_factor,
    account_liquidation_margin,
    is_position_liquidatable,
    margin_values,
    position_pnl,
)
from src.perp_market.domain.collaborators import SUSD
from src.perp_market.domain.models import Market
from src.perp_pricing.domain.pricing import get_notional
from src.perp_risk.rules.permission import check_account_exists, check_permission

if TYPE_CHECKING:
    from src.perp_engine.hooks import SettlementHookContext

logger = logging.getLogger(__name__)

_MODIFY = Capability.PERPS_MODIFY_COLLATERAL.value


@dataclass(frozen=True)
class CollateralDigest:
    collateral_id: str
    available: int
    oracle_price: int


@dataclass(frozen=True)
class PositionDigest:
    account_id: int
    market_id: int
    size: int
    entry_price: int
    oracle_price: int
    notional_value_usd: int
    pnl: int
    accrued_funding: int
    accrued_utilization: int
    accrued_fees_usd: int
    remaining_margin_usd: int
    health_factor: int
    im: int
    mm: int


@dataclass(frozen=True)
class AccountDigest:
    account_id: int
    market_id: int
    collateral: list[CollateralDigest]
    collateral_usd: int
    debt_usd: int
    position: PositionDigest


class AccountService:
    def __init__(self, ctx: EngineContext) -> None:
        self._ctx = ctx

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def _position_digest(self, inputs: RiskInputs, account_id: int, market: Market) -> PositionDigest:
        position = inputs.ledger.get_position(account_id, market.id)
        values = margin_values(inputs, account_id, market, position)
        lm = account_liquidation_margin(inputs, account_id, market)
        price = inputs.snap.price
        return PositionDigest(
            account_id=account_id,
            market_id=market.id,
            size=position.size if position else 0,
            entry_price=position.entry_price if position else 0,
            oracle_price=price,
            notional_value_usd=get_notional(position.size, price) if position else 0,
            pnl=values.pnl,
            accrued_funding=values.accrued_funding,
            accrued_utilization=values.accrued_utilization,
            accrued_fees_usd=position.accrued_fees_usd if position else 0,
            remaining_margin_usd=max(values.margin_usd, 0),
            health_factor=account_health_factor(inputs, account_id, market),
            im=lm.im,
            mm=lm.mm,
        )

    def get_position_digest(self, account_id: int, market_id: int) -> PositionDigest:
        market, _, inputs = self._ctx.load(account_id, market_id)
        return self._position_digest(inputs, account_id, market)

    def get_account_digest(self, account_id: int, market_id: int) -> AccountDigest:
        market, snap, inputs = self._ctx.load(account_id, market_id)
        ledger = self._ctx.ledger
        collateral = ledger.get_collateral(account_id, market_id)
        values = margin_values(inputs, account_id, market)
        return AccountDigest(
            account_id=account_id,
            market_id=market_id,
            collateral=[
                CollateralDigest(cid, amount, snap.collateral_price(cid))
                for cid, amount in sorted(collateral.items())
            ],
            collateral_usd=values.collateral_usd,
            debt_usd=values.debt_usd,
            position=self._position_digest(inputs, account_id, market),
        )

    def get_health_factor(self, account_id: int, market_id: int) -> int:
        market, _, inputs = self._ctx.load(account_id, market_id)
        return account_health_factor(inputs, account_id, market)

    def get_liquidation_margin_usd(
        self, account_id: int, market_id: int, size_delta: int = 0
    ) -> LiquidationMargin:
        market, _, inputs = self._ctx.load(account_id, market_id)
        return account_liquidation_margin(inputs, account_id, market, size_delta)

    # ------------------------------------------------------------------
    # Debt
    # ------------------------------------------------------------------

    def pay_debt(self, account_id: int, market_id: int, amount: int, signer: str) -> int:
        """Repay up to `amount` of debt: sUSD collateral first, then the signer's wallet.

        Returns the new debt.
        """
        ctx = self._ctx
        ledger = ctx.ledger
        with ledger.transaction():
            _, snap, _ = ctx.load(account_id, market_id)
            check_permission(ctx.accounts, account_id, _MODIFY, signer)
            if amount <= 0:
                raise ZeroAmountError()
            old_debt = ledger.get_debt(account_id, market_id)
            if old_debt == 0:
                raise NoDebtError(account_id)

            amount = min(amount, old_debt)
            from_usd = min(amount, ledger.get_collateral_amount(account_id, market_id, SUSD))
            from_wallet = amount - from_usd
            if from_wallet > 0:
                balance = ctx.wallet.balance_of(SUSD, signer)
                if balance < from_wallet:
                    raise InsufficientBalanceError(from_wallet, balance)
                ledger.after_commit(
                    lambda: ctx.pool.deposit_market_usd(market_id, signer, from_wallet)
                )
            ledger.debit_collateral(account_id, market_id, SUSD, from_usd)
            new_debt = old_debt - amount
            ledger.set_debt(account_id, market_id, new_debt)
            ledger.emit(
                EventType.DEBT_PAID.value,
                market_id,
                account_id,
                snap.now,
                old_debt=old_debt,
                new_debt=new_debt,
                paid_from_usd_collateral=from_usd,
            )
            ctx.check_invariants(market_id)
        logger.info(
            "Debt paid: account=%s market=%s %d -> %d (sUSD collateral %d)",
            account_id,
            market_id,
            old_debt,
            new_debt,
            from_usd,
        )
        return new_debt

    # ------------------------------------------------------------------
    # Collateral
    # ------------------------------------------------------------------

    def modify_collateral(
        self,
        account_id: int,
        market_id: int,
        collateral_id: str,
        amount_delta: int,
        signer: str,
    ) -> None:
        """Deposit (amount_delta > 0) or withdraw (amount_delta < 0) collateral."""
        ctx = self._ctx
        ledger = ctx.ledger
        with ledger.transaction():
            market, snap, inputs = ctx.load(account_id, market_id)
            check_permission(ctx.accounts, account_id, _MODIFY, signer)
            if amount_delta == 0:
                raise ZeroAmountError()
            config = ctx.collaterals.get(collateral_id)
            if config is None:
                raise UnsupportedCollateralError(collateral_id)
            if ledger.get_order(account_id, market_id) is not None:
                raise OrderFoundError(account_id)
            if account_id in market.flagged_positions:
                raise PositionFlaggedError()

            if amount_delta > 0:
                amount = amount_delta
                total = market.deposited_collateral.get(collateral_id, 0) + amount
                if total > config.max_allowable:
                    raise MaxCollateralExceededError(collateral_id, total, config.max_allowable)
                balance = ctx.wallet.balance_of(collateral_id, signer)
                if balance < amount:
                    raise InsufficientBalanceError(amount, balance)
                ledger.credit_collateral(account_id, market_id, collateral_id, amount)
                self._defer_deposit(market_id, collateral_id, signer, amount)
                event_type = EventType.MARGIN_DEPOSIT
            else:
                amount = -amount_delta
                ledger.debit_collateral(account_id, market_id, collateral_id, amount)
                position = ledger.get_position(account_id, market_id)
                if position is None:
                    if ledger.get_debt(account_id, market_id) > 0:
                        raise DebtFoundError(account_id, market_id)
                else:
                    values = margin_values(inputs, account_id, market, position)
                    if values.margin_usd < account_liquidation_margin(inputs, account_id, market).im:
                        raise InsufficientMarginError()
                self._defer_withdraw(market_id, collateral_id, signer, amount)
                event_type = EventType.MARGIN_WITHDRAW

            ledger.emit(
                event_type.value,
                market_id,
                account_id,
                snap.now,
                collateral_id=collateral_id,
                amount=amount,
                signer=signer,
            )
            ctx.check_invariants(market_id)
        logger.info(
            "Collateral modified: account=%s market=%s %s %+d",
            account_id,
            market_id,
            collateral_id,
            amount_delta,
        )

    def withdraw_all_collateral(self, account_id: int, market_id: int, signer: str) -> dict[str, int]:
        ctx = self._ctx
        ledger = ctx.ledger
        with ledger.transaction():
            _, snap, _ = ctx.load(account_id, market_id)
            check_permission(ctx.accounts, account_id, _MODIFY, signer)
            if ledger.get_order(account_id, market_id) is not None:
                raise OrderFoundError(account_id)
            if ledger.get_position(account_id, market_id) is not None:
                raise PositionFoundError(account_id, market_id)
            if ledger.get_debt(account_id, market_id) > 0:
                raise DebtFoundError(account_id, market_id)
            withdrawn = ledger.clear_collateral(account_id, market_id)
            if not withdrawn:
                raise NilCollateralError()
            for collateral_id, amount in withdrawn.items():
                self._defer_withdraw(market_id, collateral_id, signer, amount)
                ledger.emit(
                    EventType.MARGIN_WITHDRAW.value,
                    market_id,
                    account_id,
                    snap.now,
                    collateral_id=collateral_id,
                    amount=amount,
                    signer=signer,
                )
            ctx.check_invariants(market_id)
        return withdrawn

    def _defer_deposit(self, market_id: int, collateral_id: str, src: str, amount: int) -> None:
        pool = self._ctx.pool
        if collateral_id == SUSD:
            self._ctx.ledger.after_commit(lambda: pool.deposit_market_usd(market_id, src, amount))
        else:
            self._ctx.ledger.after_commit(
                lambda: pool.deposit_market_collateral(market_id, collateral_id, src, amount)
            )

    def _defer_withdraw(self, market_id: int, collateral_id: str, to: str, amount: int) -> None:
        pool = self._ctx.pool
        if collateral_id == SUSD:
            self._ctx.ledger.after_commit(lambda: pool.withdraw_market_usd(market_id, to, amount))
        else:
            self._ctx.ledger.after_commit(
                lambda: pool.withdraw_market_collateral(market_id, collateral_id, to, amount)
            )

    # ------------------------------------------------------------------
    # Split
    # ------------------------------------------------------------------

    def split_account(
        self,
        from_account_id: int,
        to_account_id: int,
        market_id: int,
        proportion: int,
        signer: str,
    ) -> None:
        """Move proportion x {debt, collateral, size} from one account to an empty one.

        proportion == 1 moves everything exactly, leaving the source empty.
        """
        ctx = self._ctx
        ledger = ctx.ledger
        with ledger.transaction():
            market, snap, inputs = ctx.load(from_account_id, market_id)
            check_account_exists(ctx.accounts, to_account_id)
            if signer not in ledger.global_config.endorsed_split_accounts:
                raise PermissionDeniedError(from_account_id, "ENDORSED_SPLIT_ACCOUNT", signer)
            check_permission(ctx.accounts, from_account_id, _MODIFY, signer)
            check_permission(ctx.accounts, to_account_id, _MODIFY, signer)

            if from_account_id == to_account_id:
                raise DuplicateAccountIdsError()
            if proportion <= 0:
                raise ZeroProportionError()
            if proportion > UNIT:
                raise AccountSplitProportionTooLargeError(proportion)
            for account_id in (from_account_id, to_account_id):
                if ledger.get_order(account_id, market_id) is not None:
                    raise OrderFoundError(account_id)
            position = ledger.get_position(from_account_id, market_id)
            if position is None:
                raise PositionNotFoundError(from_account_id, market_id)
            if ledger.get_collateral(to_account_id, market_id) or ledger.get_debt(
                to_account_id, market_id
            ):
                raise CollateralFoundError(to_account_id)
            if ledger.get_position(to_account_id, market_id) is not None:
                raise PositionFoundError(to_account_id, market_id)
            if from_account_id in market.flagged_positions:
                raise PositionFlaggedError()
            if is_position_liquidatable(inputs, from_account_id, market):
                raise CanLiquidatePositionError()

            full = proportion == UNIT

            def portion(value: int) -> int:
                return value if full else mul_decimal(value, proportion)

            split_size = portion(position.size)
            if split_size == 0:
                raise AccountSplitProportionTooSmallError(proportion)

            debt = ledger.get_debt(from_account_id, market_id)
            moved_debt = portion(debt)
            ledger.set_debt(from_account_id, market_id, debt - moved_debt)
            ledger.set_debt(to_account_id, market_id, moved_debt)

            moved_collateral: dict[str, int] = {}
            for collateral_id, amount in ledger.get_collateral(from_account_id, market_id).items():
                moved = portion(amount)
                ledger.debit_collateral(from_account_id, market_id, collateral_id, moved)
                ledger.credit_collateral(to_account_id, market_id, collateral_id, moved)
                moved_collateral[collateral_id] = moved

            moved_fees = portion(position.accrued_fees_usd)
            remaining = Position(
                size=position.size - split_size,
                entry_time=position.entry_time,
                entry_price=position.entry_price,
                entry_funding_accrued=position.entry_funding_accrued,
                entry_utilization_accrued=position.entry_utilization_accrued,
                accrued_fees_usd=position.accrued_fees_usd - moved_fees,
            )
            ledger.set_position(from_account_id, market_id, remaining)
            ledger.set_position(
                to_account_id,
                market_id,
                Position(
                    size=split_size,
                    entry_time=position.entry_time,
                    entry_price=position.entry_price,
                    entry_funding_accrued=position.entry_funding_accrued,
                    entry_utilization_accrued=position.entry_utilization_accrued,
                    accrued_fees_usd=moved_fees,
                ),
            )

            if remaining.size != 0:
                values = margin_values(inputs, from_account_id, market)
                if values.margin_usd < account_liquidation_margin(inputs, from_account_id, market).im:
                    raise InsufficientMarginError()

            ledger.emit(
                EventType.ACCOUNT_SPLIT.value,
                market_id,
                from_account_id,
                snap.now,
                to_account_id=to_account_id,
                proportion=proportion,
                size=split_size,
                debt=moved_debt,
                collateral=moved_collateral,
            )
            ctx.check_invariants(market_id)
        logger.info(
            "Account split: %s -> %s market=%s proportion=%d",
            from_account_id,
            to_account_id,
            market_id,
            proportion,
        )

    # ------------------------------------------------------------------
    # Merge (settlement hooks only)
    # ------------------------------------------------------------------

    def merge_accounts(
        self,
        from_account_id: int,
        to_account_id: int,
        market_id: int,
        caller: str,
        hook_ctx: "SettlementHookContext | None" = None,
    ) -> None:
        """Fold from_account's position, collateral and debt into to_account.

        Only reachable from a settlement hook, right after from_account's
        order settled in the same call (the position must be brand new).
        to_account's position is realized at the current price first.
        """
        if hook_ctx is None or hook_ctx.hook != caller or hook_ctx.market_id != market_id:
            raise InvalidHookError(caller)
        ctx = self._ctx
        ledger = ctx.ledger
        snap = hook_ctx.snapshot
        with ledger.transaction():
            check_account_exists(ctx.accounts, from_account_id)
            check_account_exists(ctx.accounts, to_account_id)
            market = ledger.require_market(market_id)
            inputs = ctx.risk_inputs(snap)
            check_permission(ctx.accounts, from_account_id, _MODIFY, caller)
            check_permission(ctx.accounts, to_account_id, _MODIFY, caller)

            if from_account_id == to_account_id:
                raise DuplicateAccountIdsError()
            from_pos = ledger.get_position(from_account_id, market_id)
            if from_pos is None:
                raise PositionNotFoundError(from_account_id, market_id)
            if from_account_id in market.flagged_positions or to_account_id in market.flagged_positions:
                raise PositionFlaggedError()
            to_pos = ledger.get_position(to_account_id, market_id)
            if to_pos is not None and sign(to_pos.size) != sign(from_pos.size):
                raise PositionsOppositeSideError()
            if from_pos.entry_time != snap.now:
                raise PositionTooOldError()
            for account_id in (from_account_id, to_account_id):
                if ledger.get_order(account_id, market_id) is not None:
                    raise OrderFoundError(account_id)
            if to_pos is not None and is_position_liquidatable(inputs, to_account_id, market):
                raise CanLiquidatePositionError()

            price = snap.price
            now = snap.now
            to_size = 0
            to_fees = 0
            if to_pos is not None:
                funding = accrued_funding(to_pos.size, to_pos.entry_funding_accrued, market, now, price)
                utilization = accrued_utilization(
                    to_pos.size, to_pos.entry_utilization_accrued, market, now, price
                )
                apply_realized_usd(
                    ledger,
                    to_account_id,
                    market_id,
                    position_pnl(to_pos, price) + funding - utilization,
                )
                to_size = to_pos.size
                to_fees = to_pos.accrued_fees_usd

            for collateral_id, amount in ledger.get_collateral(from_account_id, market_id).items():
                ledger.debit_collateral(from_account_id, market_id, collateral_id, amount)
                ledger.credit_collateral(to_account_id, market_id, collateral_id, amount)
            from_debt = ledger.get_debt(from_account_id, market_id)
            ledger.set_debt(from_account_id, market_id, 0)
            ledger.set_debt(
                to_account_id, market_id, ledger.get_debt(to_account_id, market_id) + from_debt
            )

            merged_size = from_pos.size + to_size
            entry_price = div_decimal(
                mul_decimal(abs(from_pos.size), from_pos.entry_price) + mul_decimal(abs(to_size), price),
                abs(merged_size),
            )
            ledger.set_position(from_account_id, market_id, None)
            ledger.set_position(
                to_account_id,
                market_id,
                Position(
                    size=merged_size,
                    entry_time=now,
                    entry_price=entry_price,
                    entry_funding_accrued=next_funding_accrued(market, now, price),
                    entry_utilization_accrued=next_utilization_accrued(market, now, price),
                    accrued_fees_usd=from_pos.accrued_fees_usd + to_fees,
                ),
            )

            values = margin_values(inputs, to_account_id, market)
            if values.margin_usd < account_liquidation_margin(inputs, to_account_id, market).im:
                raise InsufficientMarginError()

            ledger.emit(
                EventType.ACCOUNTS_MERGED.value,
                market_id,
                to_account_id,
                now,
                from_account_id=from_account_id,
                size=merged_size,
                entry_price=entry_price,
            )
            ctx.check_invariants(market_id)
        logger.info(
            "Accounts merged: %s -> %s market=%s hook=%s",
            from_account_id,
            to_account_id,
            market_id,
            caller,
        )
