"""In-memory collaborator adapters.

Used by the test-suite and by the demo app in src/main.py. They hold
plain dicts; the engine defers every call that moves value until its
ledger transaction commits, so none of them need rollback support.
"""

import time
from collections import defaultdict

from src.perp_common.decimal_math import UNIT, mul_decimal
from src.perp_common.errors import InsufficientBalanceError
from src.perp_market.domain.collaborators import SUSD, SettlementHook
from src.perp_market.domain.models import CollateralConfig


class InMemoryOracle:
    def __init__(self, eth_price: int = 2_000 * UNIT) -> None:
        self._prices: dict[int, int] = {}
        self._eth_price = eth_price

    def set_price(self, market_id: int, price: int) -> None:
        self._prices[market_id] = price

    def set_eth_price(self, price: int) -> None:
        self._eth_price = price

    def get_price(self, market_id: int) -> int:
        return self._prices.get(market_id, 0)

    def get_eth_price(self) -> int:
        return self._eth_price


class InMemoryWallet:
    def __init__(self) -> None:
        self._balances: dict[tuple[str, str], int] = defaultdict(int)

    def mint(self, collateral_id: str, address: str, amount: int) -> None:
        self._balances[(collateral_id, address)] += amount

    def burn(self, collateral_id: str, address: str, amount: int) -> None:
        available = self._balances[(collateral_id, address)]
        if available < amount:
            raise InsufficientBalanceError(amount, available)
        self._balances[(collateral_id, address)] = available - amount

    def balance_of(self, collateral_id: str, address: str) -> int:
        return self._balances.get((collateral_id, address), 0)

    def transfer(self, collateral_id: str, src: str, dst: str, amount: int) -> None:
        self.burn(collateral_id, src, amount)
        self.mint(collateral_id, dst, amount)


class InMemoryCollateralRegistry:
    """sUSD is always present at price 1; other collaterals are registered with a price."""

    def __init__(self) -> None:
        self._configs: dict[str, CollateralConfig] = {
            SUSD: CollateralConfig(collateral_id=SUSD, max_allowable=10**12 * UNIT, skew_scale=0),
        }
        self._prices: dict[str, int] = {SUSD: UNIT}

    def register(self, config: CollateralConfig, price: int) -> None:
        self._configs[config.collateral_id] = config
        self._prices[config.collateral_id] = price

    def set_price(self, collateral_id: str, price: int) -> None:
        if collateral_id == SUSD:
            raise ValueError("sUSD price is fixed at 1")
        self._prices[collateral_id] = price

    def get(self, collateral_id: str) -> CollateralConfig | None:
        return self._configs.get(collateral_id)

    def price_of(self, collateral_id: str) -> int:
        return self._prices.get(collateral_id, 0)

    def collateral_ids(self) -> list[str]:
        return list(self._configs)


class InMemoryPool:
    """Shared liquidity pool: per-market sUSD credit plus deposited collateral."""

    def __init__(
        self,
        collaterals: InMemoryCollateralRegistry,
        wallet: InMemoryWallet,
        address: str = "pool",
    ) -> None:
        self.address = address
        self._collaterals = collaterals
        self._wallet = wallet
        self._credit: dict[int, int] = defaultdict(int)
        self._collateral: dict[tuple[int, str], int] = defaultdict(int)
        self.distributed: dict[tuple[int, str], int] = defaultdict(int)

    def set_credit(self, market_id: int, amount: int) -> None:
        """LP delegation backing the market (sUSD terms)."""
        self._credit[market_id] = amount

    def withdrawable_market_usd(self, market_id: int) -> int:
        total = self._credit[market_id]
        for (mid, cid), amount in self._collateral.items():
            if mid == market_id:
                total += mul_decimal(amount, self._collaterals.price_of(cid))
        return total

    def deposit_market_usd(self, market_id: int, src: str, amount: int) -> None:
        self._wallet.burn(SUSD, src, amount)
        self._credit[market_id] += amount

    def withdraw_market_usd(self, market_id: int, to: str, amount: int) -> None:
        self._credit[market_id] -= amount
        self._wallet.mint(SUSD, to, amount)

    def deposit_market_collateral(
        self, market_id: int, collateral_id: str, src: str, amount: int
    ) -> None:
        self._wallet.transfer(collateral_id, src, self.address, amount)
        self._collateral[(market_id, collateral_id)] += amount

    def withdraw_market_collateral(
        self, market_id: int, collateral_id: str, to: str, amount: int
    ) -> None:
        self._collateral[(market_id, collateral_id)] -= amount
        self._wallet.transfer(collateral_id, self.address, to, amount)

    def distribute_reward(self, market_id: int, collateral_id: str, amount: int) -> None:
        self._collateral[(market_id, collateral_id)] -= amount
        self.distributed[(market_id, collateral_id)] += amount


class InMemoryAccountRegistry:
    """Capabilities are a set of (account, capability, grantee); owners hold all."""

    def __init__(self) -> None:
        self._owners: dict[int, str] = {}
        self._permissions: set[tuple[int, str, str]] = set()

    def create_account(self, account_id: int, owner: str) -> None:
        self._owners[account_id] = owner

    def grant_permission(self, account_id: int, capability: str, grantee: str) -> None:
        self._permissions.add((account_id, capability, grantee))

    def revoke_permission(self, account_id: int, capability: str, grantee: str) -> None:
        self._permissions.discard((account_id, capability, grantee))

    def exists(self, account_id: int) -> bool:
        return account_id in self._owners

    def owner_of(self, account_id: int) -> str:
        return self._owners[account_id]

    def has_permission(self, account_id: int, capability: str, grantee: str) -> bool:
        if self._owners.get(account_id) == grantee:
            return True
        return (account_id, capability, grantee) in self._permissions


class InMemoryHookRegistry:
    def __init__(self) -> None:
        self._hooks: dict[str, SettlementHook] = {}

    def whitelist(self, address: str, hook: SettlementHook) -> None:
        self._hooks[address] = hook

    def remove(self, address: str) -> None:
        self._hooks.pop(address, None)

    def is_whitelisted(self, address: str) -> bool:
        return address in self._hooks

    def get(self, address: str) -> SettlementHook:
        return self._hooks[address]


class ManualClock:
    """Deterministic clock for tests: advance explicitly."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self._now = start

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        self._now = timestamp

    def advance(self, seconds: int) -> None:
        self._now += seconds


class SystemClock:
    def now(self) -> int:
        return int(time.time())


class FixedGasPrice:
    def __init__(self, base_fee_per_gas: int = 1_000_000_000) -> None:
        self._base_fee = base_fee_per_gas

    def set(self, base_fee_per_gas: int) -> None:
        self._base_fee = base_fee_per_gas

    def base_fee_per_gas(self) -> int:
        return self._base_fee
