"""Collaborator Protocols — the narrow interfaces the engine consults.

Oracles, the liquidity pool, account/collateral registries, the settlement
hook whitelist and wallets live outside the engine. Tests and the demo app
inject the in-memory adapters from perp_market.infrastructure.in_memory.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from src.perp_market.domain.models import CollateralConfig

if TYPE_CHECKING:
    from src.perp_engine.hooks import SettlementHookContext

SUSD = "sUSD"


@dataclass(frozen=True)
class PriceUpdate:
    """Off-chain price pulled for settlement; signature checks happen upstream."""

    price: int
    publish_time: int


class OracleProtocol(Protocol):
    def get_price(self, market_id: int) -> int: ...

    def get_eth_price(self) -> int: ...


class PoolProtocol(Protocol):
    def withdrawable_market_usd(self, market_id: int) -> int: ...

    def deposit_market_usd(self, market_id: int, src: str, amount: int) -> None: ...

    def withdraw_market_usd(self, market_id: int, to: str, amount: int) -> None: ...

    def deposit_market_collateral(
        self, market_id: int, collateral_id: str, src: str, amount: int
    ) -> None: ...

    def withdraw_market_collateral(
        self, market_id: int, collateral_id: str, to: str, amount: int
    ) -> None: ...

    def distribute_reward(self, market_id: int, collateral_id: str, amount: int) -> None: ...


class AccountRegistryProtocol(Protocol):
    def exists(self, account_id: int) -> bool: ...

    def owner_of(self, account_id: int) -> str: ...

    def has_permission(self, account_id: int, capability: str, grantee: str) -> bool: ...


class CollateralRegistryProtocol(Protocol):
    def get(self, collateral_id: str) -> CollateralConfig | None: ...

    def price_of(self, collateral_id: str) -> int: ...

    def collateral_ids(self) -> list[str]: ...


class SettlementHook(Protocol):
    def on_settle(self, ctx: "SettlementHookContext") -> None: ...


class HookRegistryProtocol(Protocol):
    def is_whitelisted(self, address: str) -> bool: ...

    def get(self, address: str) -> SettlementHook: ...


class WalletProtocol(Protocol):
    def balance_of(self, collateral_id: str, address: str) -> int: ...

    def transfer(self, collateral_id: str, src: str, dst: str, amount: int) -> None: ...


class ClockProtocol(Protocol):
    def now(self) -> int: ...


class GasPriceProtocol(Protocol):
    def base_fee_per_gas(self) -> int: ...
