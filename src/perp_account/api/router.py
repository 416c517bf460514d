"""perp_account REST API — digests, debt, collateral and split."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.perp_account.application.schemas import (
    AccountDigestResponse,
    HealthFactorResponse,
    LiquidationMarginResponse,
    ModifyCollateralRequest,
    PayDebtRequest,
    PayDebtResponse,
    PositionDigestResponse,
    SplitAccountRequest,
    WithdrawAllResponse,
)
from src.perp_common.database import get_journal_session
from src.perp_common.response import ApiResponse, success_response
from src.perp_engine.dependencies import get_engine_runner
from src.perp_engine.runner import EngineRunner
from src.perp_gateway.auth.dependencies import get_signer

router = APIRouter(prefix="/accounts/{account_id}/markets/{market_id}", tags=["accounts"])


@router.get("")
async def get_account_digest(
    account_id: int,
    market_id: int,
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    request: Request,
) -> ApiResponse:
    digest = await runner.read(runner.engine.accounts.get_account_digest, account_id, market_id)
    data = AccountDigestResponse.from_result(digest)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/position")
async def get_position_digest(
    account_id: int,
    market_id: int,
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    request: Request,
) -> ApiResponse:
    digest = await runner.read(runner.engine.accounts.get_position_digest, account_id, market_id)
    data = PositionDigestResponse.from_result(digest)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/health-factor")
async def get_health_factor(
    account_id: int,
    market_id: int,
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    request: Request,
) -> ApiResponse:
    hf = await runner.read(runner.engine.accounts.get_health_factor, account_id, market_id)
    data = HealthFactorResponse.from_result(account_id, market_id, hf)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/liquidation-margin")
async def get_liquidation_margin_usd(
    account_id: int,
    market_id: int,
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    request: Request,
    size_delta: int = Query(0, description="Hypothetical size change, 1e18 fixed point"),
) -> ApiResponse:
    margin = await runner.read(
        runner.engine.accounts.get_liquidation_margin_usd, account_id, market_id, size_delta
    )
    data = LiquidationMarginResponse.from_result(account_id, market_id, margin)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/pay-debt")
async def pay_debt(
    account_id: int,
    market_id: int,
    body: PayDebtRequest,
    signer: Annotated[str, Depends(get_signer)],
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    db: Annotated[AsyncSession | None, Depends(get_journal_session)],
    request: Request,
) -> ApiResponse:
    debt = await runner.execute(
        db, runner.engine.accounts.pay_debt, account_id, market_id, body.amount, signer
    )
    data = PayDebtResponse(account_id=account_id, market_id=market_id, debt_usd=debt)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/collateral")
async def modify_collateral(
    account_id: int,
    market_id: int,
    body: ModifyCollateralRequest,
    signer: Annotated[str, Depends(get_signer)],
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    db: Annotated[AsyncSession | None, Depends(get_journal_session)],
    request: Request,
) -> ApiResponse:
    await runner.execute(
        db,
        runner.engine.accounts.modify_collateral,
        account_id,
        market_id,
        body.collateral_id,
        body.amount_delta,
        signer,
    )
    digest = await runner.read(runner.engine.accounts.get_account_digest, account_id, market_id)
    data = AccountDigestResponse.from_result(digest)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/withdraw-all")
async def withdraw_all_collateral(
    account_id: int,
    market_id: int,
    signer: Annotated[str, Depends(get_signer)],
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    db: Annotated[AsyncSession | None, Depends(get_journal_session)],
    request: Request,
) -> ApiResponse:
    withdrawn = await runner.execute(
        db, runner.engine.accounts.withdraw_all_collateral, account_id, market_id, signer
    )
    data = WithdrawAllResponse(account_id=account_id, market_id=market_id, withdrawn=withdrawn)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/split")
async def split_account(
    account_id: int,
    market_id: int,
    body: SplitAccountRequest,
    signer: Annotated[str, Depends(get_signer)],
    runner: Annotated[EngineRunner, Depends(get_engine_runner)],
    db: Annotated[AsyncSession | None, Depends(get_journal_session)],
    request: Request,
) -> ApiResponse:
    await runner.execute(
        db,
        runner.engine.accounts.split_account,
        account_id,
        body.to_account_id,
        market_id,
        body.proportion,
        signer,
    )
    digest = await runner.read(
        runner.engine.accounts.get_account_digest, body.to_account_id, market_id
    )
    data = AccountDigestResponse.from_result(digest)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
