"""Global enums shared across perp modules."""

from enum import Enum


class OrderStatus(str, Enum):
    """Derived from commitment age; never stored."""
    NONE = "NONE"
    PENDING = "PENDING"
    READY = "READY"
    STALE = "STALE"


class Capability(str, Enum):
    """Account-scoped permissions granted to a signer."""
    PERPS_COMMIT_ASYNC_ORDER = "PERPS_COMMIT_ASYNC_ORDER"
    PERPS_MODIFY_COLLATERAL = "PERPS_MODIFY_COLLATERAL"


class EventType(str, Enum):
    """Must match the CHECK constraint on perp_events.event_type."""
    MARKET_CREATED = "MARKET_CREATED"
    MARKET_CONFIGURED = "MARKET_CONFIGURED"
    GLOBAL_MARKET_CONFIGURED = "GLOBAL_MARKET_CONFIGURED"
    ORDER_COMMITTED = "ORDER_COMMITTED"
    ORDER_SETTLED = "ORDER_SETTLED"
    ORDER_CANCELED = "ORDER_CANCELED"
    SETTLEMENT_HOOK_EXECUTED = "SETTLEMENT_HOOK_EXECUTED"
    SETTLEMENT_HOOK_FAILED = "SETTLEMENT_HOOK_FAILED"
    UTILIZATION_RECOMPUTED = "UTILIZATION_RECOMPUTED"
    MARGIN_DEPOSIT = "MARGIN_DEPOSIT"
    MARGIN_WITHDRAW = "MARGIN_WITHDRAW"
    DEBT_PAID = "DEBT_PAID"
    POSITION_FLAGGED_LIQUIDATION = "POSITION_FLAGGED_LIQUIDATION"
    POSITION_LIQUIDATED = "POSITION_LIQUIDATED"
    MARGIN_LIQUIDATED = "MARGIN_LIQUIDATED"
    ACCOUNT_SPLIT = "ACCOUNT_SPLIT"
    ACCOUNTS_MERGED = "ACCOUNTS_MERGED"
