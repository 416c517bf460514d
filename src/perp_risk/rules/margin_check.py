"""Pre-trade margin checks shared by commit and settle."""

from src.perp_common.errors import CanLiquidatePositionError, InsufficientMarginError
from src.perp_common.decimal_math import mul_decimal, sign
from src.perp_ledger.domain.models import Position
from src.perp_margin.domain.margin import (
    RiskInputs,
    hypothetical_open_interest,
    is_position_liquidatable,
    liquidation_margin,
    margin_values,
)
from src.perp_market.domain.models import Market
from src.perp_risk.rules.market_size import check_max_market_size


def is_increasing(old_size: int, new_size: int) -> bool:
    """True when exposure grows or flips side."""
    if new_size == 0:
        return False
    if old_size != 0 and sign(old_size) != sign(new_size):
        return True
    return abs(new_size) > abs(old_size)


def check_trade(
    inputs: RiskInputs,
    account_id: int,
    market: Market,
    position: Position | None,
    size_delta: int,
    fill_price: int,
    order_fee: int,
    keeper_fee: int,
) -> int:
    """Validate a trade of size_delta at fill_price. Returns the post-trade margin.

    1. current position must not already be liquidatable
    2. side open interest must stay under max_market_size
    3. exposure-increasing trades need margin (after fees) >= IM of the new position
    4. the new position must not be liquidatable the moment it opens
    """
    old_size = position.size if position is not None else 0
    new_size = old_size + size_delta

    if position is not None and is_position_liquidatable(inputs, account_id, market):
        raise CanLiquidatePositionError()

    check_max_market_size(market, old_size, new_size)

    values = margin_values(inputs, account_id, market, position, price=fill_price)
    new_margin = values.margin_usd - order_fee - keeper_fee
    if new_size == 0:
        return new_margin

    oi = hypothetical_open_interest(market, old_size, new_size)
    at_fill = liquidation_margin(inputs, market, new_size, fill_price, values.collateral_usd, oi)
    if is_increasing(old_size, new_size) and new_margin < at_fill.im:
        raise InsufficientMarginError()

    price = inputs.snap.price
    at_oracle = liquidation_margin(inputs, market, new_size, price, values.collateral_usd, oi)
    if new_margin + mul_decimal(new_size, price - fill_price) <= at_oracle.mm:
        raise CanLiquidatePositionError()
    return new_margin
