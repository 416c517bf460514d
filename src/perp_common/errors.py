"""Unified error codes and custom exceptions.

Every condition is a named subclass so callers can match on ``exc.name``;
the constructor arguments are kept in ``exc.context`` and rendered into the
error envelope.

Error code ranges:
  1xxx: Auth/Permission
  2xxx: Account / Collateral / Debt
  3xxx: Market / Price
  4xxx: Order
  5xxx: Position / Margin
  6xxx: Liquidation
  9xxx: System
"""

from typing import Any


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.context: dict[str, Any] = context or {}
        super().__init__(message)

    @property
    def name(self) -> str:
        cls_name = type(self).__name__
        return cls_name[: -len("Error")] if cls_name.endswith("Error") else cls_name


# --- 1xxx: Auth/Permission ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Invalid or expired token", 401)


class PermissionDeniedError(AppError):
    def __init__(self, account_id: int, capability: str, signer: str) -> None:
        super().__init__(
            1002,
            f"{signer} lacks {capability} on account {account_id}",
            403,
            {"account_id": account_id, "capability": capability, "signer": signer},
        )


# --- 2xxx: Account / Collateral / Debt ---

class AccountNotFoundError(AppError):
    def __init__(self, account_id: int) -> None:
        super().__init__(
            2001, f"Account not found: {account_id}", 404, {"account_id": account_id}
        )


class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2002,
            f"Insufficient balance: required {required}, available {available}",
            422,
            {"required": required, "available": available},
        )


class ZeroAmountError(AppError):
    def __init__(self) -> None:
        super().__init__(2003, "Amount must be non-zero", 422)


class NoDebtError(AppError):
    def __init__(self, account_id: int) -> None:
        super().__init__(
            2004, f"Account {account_id} has no debt", 422, {"account_id": account_id}
        )


class DebtFoundError(AppError):
    def __init__(self, account_id: int, market_id: int) -> None:
        super().__init__(
            2005,
            f"Account {account_id} has debt in market {market_id}",
            422,
            {"account_id": account_id, "market_id": market_id},
        )


class CollateralFoundError(AppError):
    def __init__(self, account_id: int) -> None:
        super().__init__(
            2006,
            f"Account {account_id} already holds collateral",
            422,
            {"account_id": account_id},
        )


class NilCollateralError(AppError):
    def __init__(self) -> None:
        super().__init__(2007, "No collateral to withdraw", 422)


class InsufficientCollateralError(AppError):
    def __init__(self, collateral_id: str, available: int, requested: int) -> None:
        super().__init__(
            2008,
            f"Insufficient {collateral_id} collateral: available {available}, requested {requested}",
            422,
            {"collateral_id": collateral_id, "available": available, "requested": requested},
        )


class UnsupportedCollateralError(AppError):
    def __init__(self, collateral_id: str) -> None:
        super().__init__(
            2009,
            f"Unsupported collateral: {collateral_id}",
            422,
            {"collateral_id": collateral_id},
        )


class MaxCollateralExceededError(AppError):
    def __init__(self, collateral_id: str, requested: int, max_allowable: int) -> None:
        super().__init__(
            2010,
            f"Max {collateral_id} collateral exceeded: {requested} > {max_allowable}",
            422,
            {"collateral_id": collateral_id, "requested": requested, "max_allowable": max_allowable},
        )


class DuplicateAccountIdsError(AppError):
    def __init__(self) -> None:
        super().__init__(2011, "Source and target accounts must differ", 422)


class ZeroProportionError(AppError):
    def __init__(self) -> None:
        super().__init__(2012, "Split proportion must be greater than zero", 422)


class AccountSplitProportionTooLargeError(AppError):
    def __init__(self, proportion: int) -> None:
        super().__init__(
            2013,
            f"Split proportion too large: {proportion}",
            422,
            {"proportion": proportion},
        )


class AccountSplitProportionTooSmallError(AppError):
    def __init__(self, proportion: int) -> None:
        super().__init__(
            2014,
            f"Split proportion too small: {proportion}",
            422,
            {"proportion": proportion},
        )


# --- 3xxx: Market / Price ---

class MarketNotFoundError(AppError):
    def __init__(self, market_id: int) -> None:
        super().__init__(
            3001, f"Market not found: {market_id}", 404, {"market_id": market_id}
        )


class MarketAlreadyExistsError(AppError):
    def __init__(self, market_id: int) -> None:
        super().__init__(
            3002, f"Market already exists: {market_id}", 409, {"market_id": market_id}
        )


class MaxMarketSizeExceededError(AppError):
    def __init__(self, side_size: int, max_market_size: int) -> None:
        super().__init__(
            3003,
            f"Max market size exceeded: {side_size} > {max_market_size}",
            422,
            {"side_size": side_size, "max_market_size": max_market_size},
        )


class InvalidPriceError(AppError):
    def __init__(self, price: int, publish_time: int) -> None:
        super().__init__(
            3004,
            f"Invalid price update: price={price} publish_time={publish_time}",
            422,
            {"price": price, "publish_time": publish_time},
        )


# --- 4xxx: Order ---

class OrderNotFoundError(AppError):
    def __init__(self, account_id: int, market_id: int) -> None:
        super().__init__(
            4001,
            f"No pending order for account {account_id} in market {market_id}",
            404,
            {"account_id": account_id, "market_id": market_id},
        )


class OrderFoundError(AppError):
    def __init__(self, account_id: int) -> None:
        super().__init__(
            4002,
            f"Account {account_id} already has a pending order",
            409,
            {"account_id": account_id},
        )


class NilOrderError(AppError):
    def __init__(self) -> None:
        super().__init__(4003, "Order size delta must be non-zero", 422)


class OrderNotReadyError(AppError):
    def __init__(self) -> None:
        super().__init__(4004, "Order is not ready for settlement", 422)


class OrderStaleError(AppError):
    def __init__(self) -> None:
        super().__init__(4005, "Order is stale", 422)


class OrderNotStaleError(AppError):
    def __init__(self) -> None:
        super().__init__(4006, "Order is not stale", 422)


class PriceToleranceExceededError(AppError):
    def __init__(self, size_delta: int, fill_price: int, limit_price: int) -> None:
        super().__init__(
            4007,
            f"Price tolerance exceeded: fill {fill_price} vs limit {limit_price}",
            422,
            {"size_delta": size_delta, "fill_price": fill_price, "limit_price": limit_price},
        )


class PriceToleranceNotExceededError(AppError):
    def __init__(self, size_delta: int, fill_price: int, limit_price: int) -> None:
        super().__init__(
            4008,
            f"Price tolerance not exceeded: fill {fill_price} vs limit {limit_price}",
            422,
            {"size_delta": size_delta, "fill_price": fill_price, "limit_price": limit_price},
        )


class InvalidHookError(AppError):
    def __init__(self, hook: str) -> None:
        super().__init__(4009, f"Invalid settlement hook: {hook}", 422, {"hook": hook})


class MaxHooksExceededError(AppError):
    def __init__(self, count: int, max_hooks: int) -> None:
        super().__init__(
            4010,
            f"Too many hooks: {count} > {max_hooks}",
            422,
            {"count": count, "max_hooks": max_hooks},
        )


# --- 5xxx: Position / Margin ---

class PositionNotFoundError(AppError):
    def __init__(self, account_id: int, market_id: int) -> None:
        super().__init__(
            5001,
            f"No position for account {account_id} in market {market_id}",
            404,
            {"account_id": account_id, "market_id": market_id},
        )


class PositionFoundError(AppError):
    def __init__(self, account_id: int, market_id: int) -> None:
        super().__init__(
            5002,
            f"Account {account_id} already has a position in market {market_id}",
            409,
            {"account_id": account_id, "market_id": market_id},
        )


class PositionFlaggedError(AppError):
    def __init__(self) -> None:
        super().__init__(5003, "Position is flagged for liquidation", 422)


class PositionNotFlaggedError(AppError):
    def __init__(self) -> None:
        super().__init__(5004, "Position is not flagged for liquidation", 422)


class CanLiquidatePositionError(AppError):
    def __init__(self) -> None:
        super().__init__(5005, "Position can be liquidated", 422)


class CannotLiquidatePositionError(AppError):
    def __init__(self) -> None:
        super().__init__(5006, "Position cannot be liquidated", 422)


class InsufficientMarginError(AppError):
    def __init__(self) -> None:
        super().__init__(5007, "Insufficient margin", 422)


class PositionsOppositeSideError(AppError):
    def __init__(self) -> None:
        super().__init__(5008, "Positions are on opposite sides", 422)


class PositionTooOldError(AppError):
    def __init__(self) -> None:
        super().__init__(5009, "Position was not opened in this call", 422)


# --- 6xxx: Liquidation ---

class LiquidationZeroCapacityError(AppError):
    def __init__(self) -> None:
        super().__init__(6001, "No liquidation capacity left in this window", 422)


class CannotLiquidateMarginError(AppError):
    def __init__(self) -> None:
        super().__init__(6002, "Margin cannot be liquidated", 422)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
