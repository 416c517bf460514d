"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from src.perp_account.api.router import router as account_router
from src.perp_common.database import engine, ping_database
from src.perp_common.errors import AppError
from src.perp_common.response import error_response
from src.perp_gateway.middleware.request_log import RequestLogMiddleware
from src.perp_liquidation.api.router import router as liquidation_router
from src.perp_market.api.router import router as market_router
from src.perp_order.api.router import router as order_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify the journal DB when journaling is on. Shutdown: dispose."""
    if settings.JOURNAL_ENABLED:
        await ping_database()
    else:
        logger.warning("Event journal disabled: engine events are kept in memory only")
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, {"error": exc.name, **exc.context})
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(market_router, prefix="/api/v1")
app.include_router(order_router, prefix="/api/v1")
app.include_router(account_router, prefix="/api/v1")
app.include_router(liquidation_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
