"""perp_order REST API — commit, settle, cancel. Mutations require a Bearer token."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.perp_common.database import get_journal_session
from src.perp_common.response import ApiResponse, success_response
from src.perp_engine.dependencies import get_engine_runner
from src.perp_engine.runner import EngineRunner
from src.perp_gateway.auth.dependencies import get_signer
from src.perp_order.application.schemas import (
    CancelOrderRequest,
    CancelOrderResponse,
    CancelStaleOrderRequest,
    CommitOrderRequest,
    OrderDigestResponse,
    OrderResponse,
    SettleOrderRequest,
    SettlementResponse,
)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def commit_order(
    body: CommitOrderRequest,
    signer: Annotated[str, Depends(get_signer)],
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    db: Annotated[AsyncSession | None, Depends(get_journal_session)],
    request: Request,
) -> ApiResponse:
    order = await runner.execute(
        db,
        runner.engine.orders.commit_order,
        body.account_id,
        body.market_id,
        body.size_delta,
        body.limit_price,
        body.keeper_fee_buffer_usd,
        body.hooks,
        signer,
    )
    data = OrderResponse.from_result(body.account_id, body.market_id, order)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/settle")
async def settle_order(
    body: SettleOrderRequest,
    keeper: Annotated[str, Depends(get_signer)],
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    db: Annotated[AsyncSession | None, Depends(get_journal_session)],
    request: Request,
) -> ApiResponse:
    result = await runner.execute(
        db,
        runner.engine.orders.settle_order,
        body.account_id,
        body.market_id,
        body.price_update.to_domain(),
        keeper,
    )
    data = SettlementResponse.from_result(result)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/cancel")
async def cancel_order(
    body: CancelOrderRequest,
    signer: Annotated[str, Depends(get_signer)],
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    db: Annotated[AsyncSession | None, Depends(get_journal_session)],
    request: Request,
) -> ApiResponse:
    price_update = body.price_update.to_domain() if body.price_update is not None else None
    keeper_fee = await runner.execute(
        db,
        runner.engine.orders.cancel_order,
        body.account_id,
        body.market_id,
        price_update,
        signer,
    )
    data = CancelOrderResponse(
        account_id=body.account_id, market_id=body.market_id, keeper_fee=keeper_fee
    )
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/cancel-stale")
async def cancel_stale_order(
    body: CancelStaleOrderRequest,
    signer: Annotated[str, Depends(get_signer)],
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    db: Annotated[AsyncSession | None, Depends(get_journal_session)],
    request: Request,
) -> ApiResponse:
    await runner.execute(
        db, runner.engine.orders.cancel_stale_order, body.account_id, body.market_id
    )
    data = CancelOrderResponse(account_id=body.account_id, market_id=body.market_id, keeper_fee=0)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/digest")
async def get_order_digest(
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    request: Request,
    account_id: int = Query(...),
    market_id: int = Query(...),
) -> ApiResponse:
    digest = await runner.read(runner.engine.orders.get_order_digest, account_id, market_id)
    data = OrderDigestResponse.from_result(account_id, market_id, digest)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
