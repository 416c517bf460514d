"""perp_liquidation REST API — keeper endpoints. The Bearer signer is the keeper."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.perp_common.database import get_journal_session
from src.perp_common.response import ApiResponse, success_response
from src.perp_engine.dependencies import get_engine_runner
from src.perp_engine.runner import EngineRunner
from src.perp_gateway.auth.dependencies import get_signer
from src.perp_liquidation.application.schemas import (
    FlagPositionResponse,
    LiquidationResponse,
    MarginLiquidatableResponse,
    MarginLiquidationResponse,
)

router = APIRouter(prefix="/liquidations/{account_id}/markets/{market_id}", tags=["liquidations"])


@router.post("/flag")
async def flag_position(
    account_id: int,
    market_id: int,
    keeper: Annotated[str, Depends(get_signer)],
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    db: Annotated[AsyncSession | None, Depends(get_journal_session)],
    request: Request,
) -> ApiResponse:
    reward = await runner.execute(
        db, runner.engine.liquidations.flag_position, account_id, market_id, keeper
    )
    data = FlagPositionResponse(
        account_id=account_id, market_id=market_id, flagger=keeper, flag_keeper_reward=reward
    )
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/liquidate")
async def liquidate_position(
    account_id: int,
    market_id: int,
    keeper: Annotated[str, Depends(get_signer)],
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    db: Annotated[AsyncSession | None, Depends(get_journal_session)],
    request: Request,
) -> ApiResponse:
    result = await runner.execute(
        db, runner.engine.liquidations.liquidate_position, account_id, market_id, keeper
    )
    data = LiquidationResponse.from_result(result)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/liquidate-margin")
async def liquidate_margin_only(
    account_id: int,
    market_id: int,
    keeper: Annotated[str, Depends(get_signer)],
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    db: Annotated[AsyncSession | None, Depends(get_journal_session)],
    request: Request,
) -> ApiResponse:
    reward = await runner.execute(
        db, runner.engine.liquidations.liquidate_margin_only, account_id, market_id, keeper
    )
    data = MarginLiquidationResponse(
        account_id=account_id, market_id=market_id, keeper_reward=reward
    )
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/margin-liquidatable")
async def is_margin_liquidatable(
    account_id: int,
    market_id: int,
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    request: Request,
) -> ApiResponse:
    flag = await runner.read(
        runner.engine.liquidations.is_margin_liquidatable, account_id, market_id
    )
    data = MarginLiquidatableResponse(
        account_id=account_id, market_id=market_id, is_margin_liquidatable=flag
    )
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
