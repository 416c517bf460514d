"""Margin & health engine.

    imr = min(|size| / skew_scale * incremental_margin_scalar + min_margin_ratio,
              max_initial_margin_ratio)
    mmr = imr * maintenance_margin_scalar
    im  = notional * imr + min_margin_usd + liquidation_keeper_fee + flag_reward
    mm  = notional * mmr + min_margin_usd + liquidation_keeper_fee + flag_reward

margin_usd = discounted collateral + pnl + funding - utilization - debt.
health factor = max(margin_usd, 0) / mm; a position is liquidatable at <= 1.
"""

from dataclasses import dataclass

from src.perp_common.decimal_math import MAX_UINT256, UNIT, div_decimal, mul_decimal
from src.perp_funding.domain.funding import accrued_funding
from src.perp_funding.domain.utilization import accrued_utilization
from src.perp_ledger.domain.models import Position
from src.perp_ledger.domain.store import Ledger
from src.perp_market.domain.collaborators import SUSD, CollateralRegistryProtocol
from src.perp_market.domain.models import GlobalMarketConfig, Market
from src.perp_market.domain.snapshot import CallSnapshot
from src.perp_pricing.domain.keeper import flag_keeper_reward, liquidation_keeper_fee
from src.perp_pricing.domain.pricing import get_notional

MAX_HEALTH_FACTOR = MAX_UINT256


@dataclass(frozen=True)
class RiskInputs:
    """What every margin computation reads: ledger, collateral registry, call snapshot."""

    ledger: Ledger
    collaterals: CollateralRegistryProtocol
    snap: CallSnapshot

    @property
    def global_config(self) -> GlobalMarketConfig:
        return self.ledger.global_config


@dataclass(frozen=True)
class MarginValues:
    collateral_usd: int
    discounted_collateral_usd: int
    pnl: int
    accrued_funding: int
    accrued_utilization: int
    debt_usd: int

    @property
    def margin_usd(self) -> int:
        return (
            self.discounted_collateral_usd
            + self.pnl
            + self.accrued_funding
            - self.accrued_utilization
            - self.debt_usd
        )


@dataclass(frozen=True)
class LiquidationMargin:
    im: int
    mm: int


def discounted_collateral_price(
    collateral_id: str,
    amount: int,
    price: int,
    inputs: RiskInputs,
) -> int:
    """price * (1 - min(max(amount * scalar / collateral_skew_scale, min_d), max_d))."""
    if collateral_id == SUSD:
        return price
    cfg = inputs.global_config
    collateral = inputs.collaterals.get(collateral_id)
    skew_scale = collateral.skew_scale if collateral is not None else 0
    impact = (
        div_decimal(mul_decimal(amount, cfg.collateral_discount_scalar), skew_scale)
        if skew_scale > 0
        else 0
    )
    discount = min(max(impact, cfg.min_collateral_discount), cfg.max_collateral_discount)
    return mul_decimal(price, UNIT - discount)


def collateral_usd(collateral: dict[str, int], inputs: RiskInputs) -> tuple[int, int]:
    """Return (undiscounted_usd, discounted_usd) of a collateral bag."""
    total = 0
    discounted = 0
    for collateral_id, amount in collateral.items():
        price = inputs.snap.collateral_price(collateral_id)
        total += mul_decimal(amount, price)
        discounted += mul_decimal(
            amount, discounted_collateral_price(collateral_id, amount, price, inputs)
        )
    return total, discounted


def position_pnl(position: Position | None, price: int) -> int:
    if position is None:
        return 0
    return mul_decimal(position.size, price - position.entry_price)


def margin_values(
    inputs: RiskInputs,
    account_id: int,
    market: Market,
    position: Position | None = None,
    price: int | None = None,
) -> MarginValues:
    """Margin of an account in a market, optionally for a substitute position/price."""
    ledger = inputs.ledger
    if position is None:
        position = ledger.get_position(account_id, market.id)
    price = inputs.snap.price if price is None else price
    now = inputs.snap.now
    total, discounted = collateral_usd(ledger.get_collateral(account_id, market.id), inputs)
    funding = 0
    utilization = 0
    if position is not None and position.size != 0:
        funding = accrued_funding(position.size, position.entry_funding_accrued, market, now, price)
        utilization = accrued_utilization(
            position.size, position.entry_utilization_accrued, market, now, price
        )
    return MarginValues(
        collateral_usd=total,
        discounted_collateral_usd=discounted,
        pnl=position_pnl(position, price),
        accrued_funding=funding,
        accrued_utilization=utilization,
        debt_usd=ledger.get_debt(account_id, market.id),
    )


def max_liquidatable_capacity(market: Market, open_interest: int | None = None) -> int:
    """liquidation_limit_scalar x open interest (current OI unless one is given)."""
    oi = market.size if open_interest is None else open_interest
    return mul_decimal(market.config.liquidation_limit_scalar, oi)


def initial_margin_ratio(market: Market, size: int) -> int:
    cfg = market.config
    if cfg.skew_scale == 0:
        return min(cfg.min_margin_ratio, cfg.max_initial_margin_ratio)
    scaled = mul_decimal(div_decimal(abs(size), cfg.skew_scale), cfg.incremental_margin_scalar)
    return min(scaled + cfg.min_margin_ratio, cfg.max_initial_margin_ratio)


def liquidation_margin(
    inputs: RiskInputs,
    market: Market,
    size: int,
    price: int,
    collateral_usd_value: int,
    open_interest: int,
) -> LiquidationMargin:
    """IM/MM of a (possibly hypothetical) position of `size` at `price`."""
    if size == 0:
        return LiquidationMargin(im=0, mm=0)
    cfg = market.config
    notional = get_notional(size, price)
    imr = initial_margin_ratio(market, size)
    mmr = mul_decimal(imr, cfg.maintenance_margin_scalar)
    liq_fee = liquidation_keeper_fee(
        inputs.global_config,
        inputs.snap,
        size,
        max_liquidatable_capacity(market, open_interest),
    )
    flag_reward = flag_keeper_reward(
        inputs.global_config, cfg, inputs.snap, notional, collateral_usd_value
    )
    fixed = cfg.min_margin_usd + liq_fee + flag_reward
    return LiquidationMargin(
        im=mul_decimal(notional, imr) + fixed,
        mm=mul_decimal(notional, mmr) + fixed,
    )


def hypothetical_open_interest(market: Market, old_size: int, new_size: int) -> int:
    return market.size - abs(old_size) + abs(new_size)


def account_liquidation_margin(
    inputs: RiskInputs,
    account_id: int,
    market: Market,
    size_delta: int = 0,
    price: int | None = None,
) -> LiquidationMargin:
    """IM/MM for current size + size_delta; OI adjusted for the hypothetical size."""
    position = inputs.ledger.get_position(account_id, market.id)
    old_size = position.size if position is not None else 0
    new_size = old_size + size_delta
    price = inputs.snap.price if price is None else price
    total, _ = collateral_usd(inputs.ledger.get_collateral(account_id, market.id), inputs)
    return liquidation_margin(
        inputs, market, new_size, price, total, hypothetical_open_interest(market, old_size, new_size)
    )


def health_factor(margin_usd: int, mm: int) -> int:
    if mm <= 0:
        return MAX_HEALTH_FACTOR
    return div_decimal(max(margin_usd, 0), mm)


def account_health_factor(inputs: RiskInputs, account_id: int, market: Market) -> int:
    """MAX_HEALTH_FACTOR when there is no position; otherwise margin / mm."""
    position = inputs.ledger.get_position(account_id, market.id)
    if position is None or position.size == 0:
        return MAX_HEALTH_FACTOR
    values = margin_values(inputs, account_id, market, position)
    lm = account_liquidation_margin(inputs, account_id, market)
    return health_factor(values.margin_usd, lm.mm)


def is_position_liquidatable(inputs: RiskInputs, account_id: int, market: Market) -> bool:
    position = inputs.ledger.get_position(account_id, market.id)
    if position is None or position.size == 0:
        return False
    return account_health_factor(inputs, account_id, market) <= UNIT
