"""Market aggregate invariants, checked after every mutating call."""

import logging

from src.perp_ledger.domain.store import Ledger

logger = logging.getLogger(__name__)


def verify_market_invariants(ledger: Ledger, market_id: int) -> None:
    """Verify the market aggregate against per-account records. Raises AssertionError.

    INV-1: market.size == sum(|position.size|)
    INV-2: market.skew == sum(position.size)
    INV-3: market.total_trader_debt_usd == sum(account debt)
    INV-4: market.deposited_collateral == per-collateral sum of account collateral
    """
    market = ledger.require_market(market_id)
    positions = ledger.positions_in_market(market_id)
    accounts = ledger.accounts_in_market(market_id)

    oi = sum(abs(p.size) for p in positions.values())
    skew = sum(p.size for p in positions.values())
    assert market.size == oi, f"INV-1 violated: market.size={market.size} != sum|size|={oi}"
    assert market.skew == skew, f"INV-2 violated: market.skew={market.skew} != sum(size)={skew}"

    debt = sum(ledger.get_debt(a, market_id) for a in accounts)
    assert market.total_trader_debt_usd == debt, (
        f"INV-3 violated: total_trader_debt_usd={market.total_trader_debt_usd} != sum(debt)={debt}"
    )

    deposited: dict[str, int] = {}
    for account_id in accounts:
        for collateral_id, amount in ledger.get_collateral(account_id, market_id).items():
            deposited[collateral_id] = deposited.get(collateral_id, 0) + amount
    assert market.deposited_collateral == deposited, (
        f"INV-4 violated: deposited={market.deposited_collateral} != accounts={deposited}"
    )

    logger.debug(
        "Invariants OK: market=%s, size=%d, skew=%d, debt=%d",
        market_id,
        market.size,
        market.skew,
        market.total_trader_debt_usd,
    )
