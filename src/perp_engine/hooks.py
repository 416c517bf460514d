"""Capability-scoped context handed to settlement hooks.

A hook sees the settlement result and may call the operations exposed
here; it never gets the ledger itself, so it cannot bypass validation.
"""

from typing import TYPE_CHECKING

from src.perp_market.domain.snapshot import CallSnapshot

if TYPE_CHECKING:
    from src.perp_account.application.service import AccountService
    from src.perp_order.application.service import SettlementResult


class SettlementHookContext:
    def __init__(
        self,
        accounts: "AccountService",
        hook: str,
        settlement: "SettlementResult",
        snap: CallSnapshot,
    ) -> None:
        self._accounts = accounts
        self._snap = snap
        self.hook = hook
        self.settlement = settlement

    @property
    def account_id(self) -> int:
        return self.settlement.account_id

    @property
    def market_id(self) -> int:
        return self.settlement.market_id

    def merge_accounts(self, from_account_id: int, to_account_id: int) -> None:
        """Fold from_account's freshly settled position into to_account."""
        self._accounts.merge_accounts(
            from_account_id, to_account_id, self.market_id, self.hook, hook_ctx=self
        )

    @property
    def snapshot(self) -> CallSnapshot:
        return self._snap
