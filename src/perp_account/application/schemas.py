"""Pydantic schemas for perp_account API."""

from dataclasses import asdict

from pydantic import BaseModel, Field

from src.perp_account.application.service import AccountDigest, PositionDigest
from src.perp_common.decimal_math import MAX_UINT256
from src.perp_margin.domain.margin import LiquidationMargin

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PayDebtRequest(BaseModel):
    amount: int = Field(..., description="sUSD to repay, 1e18 fixed point")


class ModifyCollateralRequest(BaseModel):
    collateral_id: str
    amount_delta: int = Field(..., description="Positive deposits, negative withdraws")


class SplitAccountRequest(BaseModel):
    to_account_id: int
    proportion: int = Field(..., description="Share to move, 1e18 = 100%")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class CollateralItem(BaseModel):
    collateral_id: str
    available: int
    oracle_price: int


class PositionDigestResponse(BaseModel):
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

    @classmethod
    def from_result(cls, digest: PositionDigest) -> "PositionDigestResponse":
        return cls(**asdict(digest))


class AccountDigestResponse(BaseModel):
    account_id: int
    market_id: int
    collateral: list[CollateralItem]
    collateral_usd: int
    debt_usd: int
    position: PositionDigestResponse

    @classmethod
    def from_result(cls, digest: AccountDigest) -> "AccountDigestResponse":
        return cls(
            account_id=digest.account_id,
            market_id=digest.market_id,
            collateral=[CollateralItem(**asdict(c)) for c in digest.collateral],
            collateral_usd=digest.collateral_usd,
            debt_usd=digest.debt_usd,
            position=PositionDigestResponse.from_result(digest.position),
        )


class HealthFactorResponse(BaseModel):
    account_id: int
    market_id: int
    health_factor: int
    has_position: bool

    @classmethod
    def from_result(cls, account_id: int, market_id: int, hf: int) -> "HealthFactorResponse":
        return cls(
            account_id=account_id,
            market_id=market_id,
            health_factor=hf,
            has_position=hf != MAX_UINT256,
        )


class LiquidationMarginResponse(BaseModel):
    account_id: int
    market_id: int
    im: int
    mm: int

    @classmethod
    def from_result(
        cls, account_id: int, market_id: int, margin: LiquidationMargin
    ) -> "LiquidationMarginResponse":
        return cls(account_id=account_id, market_id=market_id, im=margin.im, mm=margin.mm)


class PayDebtResponse(BaseModel):
    account_id: int
    market_id: int
    debt_usd: int


class WithdrawAllResponse(BaseModel):
    account_id: int
    market_id: int
    withdrawn: dict[str, int]
