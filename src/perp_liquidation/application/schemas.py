"""Pydantic schemas for perp_liquidation API."""

from dataclasses import asdict

from pydantic import BaseModel

from src.perp_liquidation.application.service import LiquidationResult


class FlagPositionResponse(BaseModel):
    account_id: int
    market_id: int
    flagger: str
    flag_keeper_reward: int


class LiquidationResponse(BaseModel):
    account_id: int
    market_id: int
    size_before: int
    liquidated_size: int
    remaining_size: int
    flagger: str
    liquidator: str
    keeper_fee: int
    price: int

    @classmethod
    def from_result(cls, result: LiquidationResult) -> "LiquidationResponse":
        return cls(**asdict(result))


class MarginLiquidationResponse(BaseModel):
    account_id: int
    market_id: int
    keeper_reward: int


class MarginLiquidatableResponse(BaseModel):
    account_id: int
    market_id: int
    is_margin_liquidatable: bool
