"""CallSnapshot — external inputs captured once at the start of a call."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from src.perp_market.domain.collaborators import (
    ClockProtocol,
    CollateralRegistryProtocol,
    GasPriceProtocol,
    OracleProtocol,
)


@dataclass(frozen=True)
class CallSnapshot:
    now: int
    base_fee_per_gas: int
    eth_price: int
    price: int  # market price for this call (oracle, or the settlement price update)
    collateral_prices: Mapping[str, int] = field(default_factory=dict)

    def collateral_price(self, collateral_id: str) -> int:
        return self.collateral_prices.get(collateral_id, 0)


def capture_snapshot(
    market_id: int,
    oracle: OracleProtocol,
    clock: ClockProtocol,
    gas: GasPriceProtocol,
    collaterals: CollateralRegistryProtocol,
    price_override: int | None = None,
) -> CallSnapshot:
    """Read clock, gas, ETH, market and collateral prices exactly once."""
    prices = {cid: collaterals.price_of(cid) for cid in collaterals.collateral_ids()}
    return CallSnapshot(
        now=clock.now(),
        base_fee_per_gas=gas.base_fee_per_gas(),
        eth_price=oracle.get_eth_price(),
        price=price_override if price_override is not None else oracle.get_price(market_id),
        collateral_prices=MappingProxyType(prices),
    )
