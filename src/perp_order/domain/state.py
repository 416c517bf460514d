"""Order status — a pure function of commitment age, never stored.

    age <  min_order_age            -> PENDING
    age >  max_order_age            -> STALE
    otherwise                       -> READY

Age only grows, so once an order is STALE it stays STALE until it is
replaced by a new commitment.
"""

from dataclasses import dataclass

from src.perp_common.enums import OrderStatus
from src.perp_ledger.domain.models import Order
from src.perp_market.domain.models import GlobalMarketConfig


def order_status(order: Order | None, now: int, cfg: GlobalMarketConfig) -> OrderStatus:
    if order is None:
        return OrderStatus.NONE
    age = now - order.commitment_time
    if age < cfg.min_order_age:
        return OrderStatus.PENDING
    if age > cfg.max_order_age:
        return OrderStatus.STALE
    return OrderStatus.READY


def order_expiration_time(order: Order, cfg: GlobalMarketConfig) -> int:
    return order.commitment_time + cfg.max_order_age


@dataclass(frozen=True)
class OrderDigest:
    size_delta: int
    commitment_time: int
    limit_price: int
    keeper_fee_buffer_usd: int
    hooks: tuple[str, ...]
    is_ready: bool
    is_stale: bool

    @classmethod
    def build(cls, order: Order | None, now: int, cfg: GlobalMarketConfig) -> "OrderDigest":
        if order is None:
            return cls(0, 0, 0, 0, (), False, False)
        status = order_status(order, now, cfg)
        return cls(
            size_delta=order.size_delta,
            commitment_time=order.commitment_time,
            limit_price=order.limit_price,
            keeper_fee_buffer_usd=order.keeper_fee_buffer_usd,
            hooks=order.hooks,
            is_ready=status == OrderStatus.READY,
            is_stale=status == OrderStatus.STALE,
        )
