"""perp_market REST API — market configuration and market-level views."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.perp_common.database import get_journal_session
from src.perp_common.response import ApiResponse, success_response
from src.perp_engine.dependencies import get_engine_runner
from src.perp_engine.runner import EngineRunner
from src.perp_gateway.auth.dependencies import get_signer
from src.perp_market.application.schemas import (
    FillPriceResponse,
    GlobalMarketConfigResponse,
    LiquidationCapacityResponse,
    MarketConfigResponse,
    MarketDigestResponse,
    MinimumCreditResponse,
    OrderFeesResponse,
    UtilizationResponse,
)

router = APIRouter(prefix="/markets", tags=["markets"])


@router.get("/config")
async def get_market_configuration(
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    request: Request,
) -> ApiResponse:
    config = await runner.read(runner.engine.markets.get_market_configuration)
    data = GlobalMarketConfigResponse.from_result(config)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{market_id}")
async def get_market_digest(
    market_id: int,
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    request: Request,
) -> ApiResponse:
    digest = await runner.read(runner.engine.markets.get_market_digest, market_id)
    data = MarketDigestResponse.from_result(digest)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{market_id}/config")
async def get_market_configuration_by_id(
    market_id: int,
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    request: Request,
) -> ApiResponse:
    config = await runner.read(runner.engine.markets.get_market_configuration_by_id, market_id)
    data = MarketConfigResponse.from_result(market_id, config)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{market_id}/fill-price")
async def get_fill_price(
    market_id: int,
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    request: Request,
    size_delta: int = Query(..., description="Signed size, 1e18 fixed point"),
) -> ApiResponse:
    fill_price = await runner.read(runner.engine.markets.get_fill_price, market_id, size_delta)
    data = FillPriceResponse(market_id=market_id, size_delta=size_delta, fill_price=fill_price)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{market_id}/order-fees")
async def get_order_fees(
    market_id: int,
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    request: Request,
    size_delta: int = Query(..., description="Signed size, 1e18 fixed point"),
    keeper_fee_buffer_usd: int = Query(0, ge=0, description="Extra keeper fee, 1e18 fixed point"),
) -> ApiResponse:
    fees = await runner.read(
        runner.engine.markets.get_order_fees, market_id, size_delta, keeper_fee_buffer_usd
    )
    data = OrderFeesResponse.from_result(fees)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{market_id}/liquidation-capacity")
async def get_remaining_liquidatable_size_capacity(
    market_id: int,
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    request: Request,
) -> ApiResponse:
    capacity = await runner.read(
        runner.engine.markets.get_remaining_liquidatable_size_capacity, market_id
    )
    data = LiquidationCapacityResponse.from_result(market_id, capacity)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{market_id}/minimum-credit")
async def get_minimum_credit(
    market_id: int,
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    request: Request,
) -> ApiResponse:
    credit = await runner.read(runner.engine.markets.minimum_credit, market_id)
    data = MinimumCreditResponse(market_id=market_id, minimum_credit_usd=credit)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/{market_id}/recompute-utilization")
async def recompute_utilization(
    market_id: int,
    signer: Annotated[str, Depends(get_signer)],
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    db: Annotated[AsyncSession | None, Depends(get_journal_session)],
    request: Request,
) -> ApiResponse:
    rate = await runner.execute(db, runner.engine.markets.recompute_utilization, market_id)
    data = UtilizationResponse(market_id=market_id, utilization_rate=rate)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
