"""Realizing USD amounts against an account's debt and sUSD collateral."""

from src.perp_ledger.domain.store import Ledger
from src.perp_market.domain.collaborators import SUSD


def apply_realized_usd(ledger: Ledger, account_id: int, market_id: int, amount: int) -> None:
    """Book a realized gain (amount > 0) or loss (amount < 0).

    Gains repay debt first and the rest is credited as sUSD collateral.
    Losses consume sUSD collateral first and the rest becomes debt.
    """
    debt = ledger.get_debt(account_id, market_id)
    if amount > 0:
        repay = min(amount, debt)
        ledger.set_debt(account_id, market_id, debt - repay)
        ledger.credit_collateral(account_id, market_id, SUSD, amount - repay)
    elif amount < 0:
        loss = -amount
        usd = ledger.get_collateral_amount(account_id, market_id, SUSD)
        from_usd = min(loss, usd)
        ledger.debit_collateral(account_id, market_id, SUSD, from_usd)
        ledger.set_debt(account_id, market_id, debt + loss - from_usd)
