"""Tests for perp_common.errors and perp_common.response."""

from src.perp_common.errors import (
    AppError,
    InsufficientBalanceError,
    LiquidationZeroCapacityError,
    MarketNotFoundError,
    OrderNotFoundError,
    PermissionDeniedError,
    PriceToleranceExceededError,
)
from src.perp_common.response import ApiResponse, error_response, success_response


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500
        assert err.context == {}

    def test_is_exception(self) -> None:
        err = AppError(code=1001, message="test")
        assert isinstance(err, Exception)

    def test_name_drops_error_suffix(self) -> None:
        assert LiquidationZeroCapacityError().name == "LiquidationZeroCapacity"
        assert AppError(1, "x").name == "AppError"


class TestSpecificErrors:
    def test_insufficient_balance(self) -> None:
        err = InsufficientBalanceError(required=6500, available=3000)
        assert err.code == 2002
        assert err.http_status == 422
        assert "6500" in err.message
        assert err.context == {"required": 6500, "available": 3000}

    def test_market_not_found(self) -> None:
        err = MarketNotFoundError(7)
        assert err.code == 3001
        assert err.http_status == 404

    def test_order_not_found(self) -> None:
        err = OrderNotFoundError(1, 7)
        assert err.code == 4001
        assert err.http_status == 404
        assert err.context["market_id"] == 7

    def test_permission_denied(self) -> None:
        err = PermissionDeniedError(1, "PERPS_MODIFY_COLLATERAL", "0xabc")
        assert err.code == 1002
        assert err.http_status == 403
        assert err.name == "PermissionDenied"

    def test_price_tolerance_carries_prices(self) -> None:
        err = PriceToleranceExceededError(size_delta=1, fill_price=105, limit_price=100)
        assert err.context == {"size_delta": 1, "fill_price": 105, "limit_price": 100}


class TestApiResponse:
    def test_success(self) -> None:
        resp = success_response({"id": "abc"})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"id": "abc"}

    def test_error(self) -> None:
        resp = error_response(4005, "Order is stale", {"error": "OrderStale"})
        assert resp.code == 4005
        assert resp.data == {"error": "OrderStale"}

    def test_serialization(self) -> None:
        d = ApiResponse(data={"size": "1"}).model_dump()
        for key in ("code", "message", "data", "timestamp", "request_id"):
            assert key in d
