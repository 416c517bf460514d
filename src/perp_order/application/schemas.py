"""Pydantic schemas for perp_order API."""

from dataclasses import asdict

from pydantic import BaseModel, Field

from src.perp_ledger.domain.models import Order
from src.perp_market.domain.collaborators import PriceUpdate
from src.perp_order.application.service import SettlementResult
from src.perp_order.domain.state import OrderDigest

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CommitOrderRequest(BaseModel):
    account_id: int
    market_id: int
    size_delta: int = Field(..., description="Signed size change, 1e18 fixed point")
    limit_price: int = Field(..., ge=0, description="Worst acceptable fill price")
    keeper_fee_buffer_usd: int = Field(0, ge=0)
    hooks: list[str] = Field(default_factory=list, description="Settlement hook addresses")


class PriceUpdateRequest(BaseModel):
    price: int = Field(..., gt=0, description="Pulled oracle price, 1e18 fixed point")
    publish_time: int = Field(..., description="Unix seconds the price was published")

    def to_domain(self) -> PriceUpdate:
        return PriceUpdate(price=self.price, publish_time=self.publish_time)


class SettleOrderRequest(BaseModel):
    account_id: int
    market_id: int
    price_update: PriceUpdateRequest


class CancelOrderRequest(BaseModel):
    account_id: int
    market_id: int
    price_update: PriceUpdateRequest | None = None


class CancelStaleOrderRequest(BaseModel):
    account_id: int
    market_id: int


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class OrderResponse(BaseModel):
    account_id: int
    market_id: int
    size_delta: int
    commitment_time: int
    limit_price: int
    keeper_fee_buffer_usd: int
    hooks: list[str]

    @classmethod
    def from_result(cls, account_id: int, market_id: int, order: Order) -> "OrderResponse":
        return cls(
            account_id=account_id,
            market_id=market_id,
            size_delta=order.size_delta,
            commitment_time=order.commitment_time,
            limit_price=order.limit_price,
            keeper_fee_buffer_usd=order.keeper_fee_buffer_usd,
            hooks=list(order.hooks),
        )


class OrderDigestResponse(BaseModel):
    account_id: int
    market_id: int
    size_delta: int
    commitment_time: int
    limit_price: int
    keeper_fee_buffer_usd: int
    hooks: list[str]
    is_ready: bool
    is_stale: bool

    @classmethod
    def from_result(
        cls, account_id: int, market_id: int, digest: OrderDigest
    ) -> "OrderDigestResponse":
        data = asdict(digest)
        data["hooks"] = list(digest.hooks)
        return cls(account_id=account_id, market_id=market_id, **data)


class SettlementResponse(BaseModel):
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

    @classmethod
    def from_result(cls, result: SettlementResult) -> "SettlementResponse":
        return cls(**asdict(result))


class CancelOrderResponse(BaseModel):
    account_id: int
    market_id: int
    keeper_fee: int
