"""Ledger records — pure dataclasses, no business logic."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Position:
    size: int  # signed, 1e18
    entry_time: int
    entry_price: int
    entry_funding_accrued: int = 0
    entry_utilization_accrued: int = 0
    accrued_fees_usd: int = 0

    @property
    def is_long(self) -> bool:
        return self.size > 0


@dataclass
class Order:
    size_delta: int
    commitment_time: int
    limit_price: int
    keeper_fee_buffer_usd: int = 0
    hooks: tuple[str, ...] = ()


@dataclass
class Event:
    event_type: str
    market_id: int
    account_id: int | None
    timestamp: int
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "market_id": self.market_id,
            "account_id": self.account_id,
            "timestamp": self.timestamp,
            **self.payload,
        }
