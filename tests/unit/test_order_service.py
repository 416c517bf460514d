"""Unit tests for OrderService: commit, settle and cancel."""

import pytest

from src.perp_common.enums import Capability
from src.perp_common.errors import (
    InvalidHookError,
    InvalidPriceError,
    NilOrderError,
    OrderFoundError,
    OrderNotFoundError,
    OrderNotReadyError,
    OrderNotStaleError,
    OrderStaleError,
    PermissionDeniedError,
    PriceToleranceExceededError,
    PriceToleranceNotExceededError,
)
from src.perp_market.domain.collaborators import SUSD, PriceUpdate
from tests.helpers import KEEPER, MARKET_ID, OWNER, SETTLE_DELAY, START_TIME, Harness, bn

FILL_10 = bn("2000.01")  # 10 long against a neutral 1M skew scale at 2000
FEE_10 = bn("12.00006")  # 10 * 2000.01 * 0.0006 taker
KEEPER_FEE = bn(10)  # 1 gwei gas is clamped to min_keeper_fee_usd


class TestCommit:
    def test_commit_stores_order_and_emits(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.commit(1, bn(10))

        digest = harness.engine.orders.get_order_digest(1, MARKET_ID)
        assert digest.size_delta == bn(10)
        assert digest.commitment_time == START_TIME
        assert not digest.is_ready
        [event] = harness.events("ORDER_COMMITTED")
        assert event["estimated_order_fee"] == FEE_10
        assert event["estimated_keeper_fee"] == KEEPER_FEE
        assert event["order_expiration_time"] == START_TIME + 60

    def test_second_commit_while_live_raises(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.commit(1, bn(1))
        harness.clock.advance(SETTLE_DELAY)
        with pytest.raises(OrderFoundError):
            harness.commit(1, bn(2))

    def test_commit_replaces_stale_order(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.commit(1, bn(1))
        harness.clock.advance(61)

        harness.commit(1, -bn(2))

        order = harness.ledger.get_order(1, MARKET_ID)
        assert order is not None
        assert order.size_delta == -bn(2)
        assert order.commitment_time == START_TIME + 61
        [canceled] = harness.events("ORDER_CANCELED")
        assert canceled["keeper_fee"] == 0
        assert canceled["commitment_time"] == START_TIME

    def test_zero_size_raises(self, harness: Harness) -> None:
        harness.open_account(1)
        with pytest.raises(NilOrderError):
            harness.commit(1, 0)

    def test_unknown_hook_raises(self, harness: Harness) -> None:
        harness.open_account(1)
        with pytest.raises(InvalidHookError):
            harness.commit(1, bn(1), hooks=("0xunknown",))
        assert harness.ledger.get_order(1, MARKET_ID) is None

    def test_signer_without_capability_is_denied(self, harness: Harness) -> None:
        harness.open_account(1)
        with pytest.raises(PermissionDeniedError):
            harness.commit(1, bn(1), signer="0xstranger")

        harness.adapters.accounts.grant_permission(
            1, Capability.PERPS_COMMIT_ASYNC_ORDER.value, "0xstranger"
        )
        harness.commit(1, bn(1), signer="0xstranger")
        assert harness.ledger.get_order(1, MARKET_ID) is not None


class TestSettle:
    def test_settle_opens_position(self, harness: Harness) -> None:
        harness.open_account(1)
        result = harness.trade(1, bn(10))

        assert result.new_size == bn(10)
        assert result.fill_price == FILL_10
        assert result.order_fee == FEE_10
        assert result.keeper_fee == KEEPER_FEE
        assert result.pnl == 0

        position = harness.ledger.get_position(1, MARKET_ID)
        assert position is not None
        assert position.entry_price == FILL_10
        assert position.entry_time == START_TIME + SETTLE_DELAY
        assert position.accrued_fees_usd == FEE_10 + KEEPER_FEE
        assert harness.ledger.get_collateral_amount(1, MARKET_ID, SUSD) == (
            bn(2_000) - FEE_10 - KEEPER_FEE
        )
        market = harness.market()
        assert market.size == bn(10)
        assert market.skew == bn(10)
        assert harness.ledger.get_order(1, MARKET_ID) is None
        assert harness.adapters.wallet.balance_of(SUSD, KEEPER) == KEEPER_FEE
        assert len(harness.events("ORDER_SETTLED")) == 1

    def test_quoted_fees_match_settled_fees(self, harness: Harness) -> None:
        harness.open_account(1)
        quote = harness.engine.markets.get_order_fees(MARKET_ID, bn(10), 0)
        result = harness.trade(1, bn(10))
        assert quote.order_fee == result.order_fee
        assert quote.keeper_fee == result.keeper_fee

    def test_closing_realizes_pnl(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.trade(1, bn(10))
        harness.set_price(bn(2_100))

        result = harness.trade(1, -bn(10))

        # close fills at 2100.0105 as the long skew unwinds
        assert result.fill_price == bn("2100.0105")
        assert result.pnl == bn("1000.005")
        # fully maker: the trade reduces the skew to zero
        assert result.order_fee == bn("4.200021")
        assert result.new_size == 0
        assert harness.ledger.get_position(1, MARKET_ID) is None
        assert harness.market().size == 0

    def test_no_order_raises(self, harness: Harness) -> None:
        harness.open_account(1)
        with pytest.raises(OrderNotFoundError):
            harness.settle(1)

    def test_too_early_raises(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.commit(1, bn(1))
        harness.clock.advance(5)
        with pytest.raises(OrderNotReadyError):
            harness.settle(1)

    def test_stale_raises(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.commit(1, bn(1))
        harness.clock.advance(61)
        with pytest.raises(OrderStaleError):
            harness.settle(1)

    def test_price_published_outside_window_raises(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.commit(1, bn(1))
        harness.clock.advance(SETTLE_DELAY)
        update = PriceUpdate(price=bn(2_000), publish_time=START_TIME + 5)
        with pytest.raises(InvalidPriceError):
            harness.engine.orders.settle_order(1, MARKET_ID, update, KEEPER)

    def test_price_tolerance_failure_changes_nothing(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.commit(1, bn(1), limit_price=bn(1_990))
        harness.clock.advance(SETTLE_DELAY)
        collateral_before = harness.ledger.get_collateral(1, MARKET_ID)

        with pytest.raises(PriceToleranceExceededError):
            harness.settle(1)

        assert harness.ledger.get_order(1, MARKET_ID) is not None
        assert harness.ledger.get_position(1, MARKET_ID) is None
        assert harness.ledger.get_collateral(1, MARKET_ID) == collateral_before
        assert harness.market().size == 0
        assert harness.events("ORDER_SETTLED") == []
        assert harness.adapters.wallet.balance_of(SUSD, KEEPER) == 0

    def test_settles_at_the_pulled_price(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.commit(1, bn(1))
        harness.clock.advance(SETTLE_DELAY)

        result = harness.settle(1, price=bn(2_010))

        # fill 2010 * (1 + 0.5 / 1M)
        assert result.fill_price == bn("2010.001005")


class TestCancel:
    def _breached_order(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.commit(1, bn(1), limit_price=bn(1_990))
        harness.clock.advance(SETTLE_DELAY)

    def test_owner_cancel_is_free(self, harness: Harness) -> None:
        self._breached_order(harness)
        fee = harness.engine.orders.cancel_order(1, MARKET_ID, harness.price_update(), OWNER)
        assert fee == 0
        assert harness.ledger.get_order(1, MARKET_ID) is None
        assert harness.ledger.get_collateral_amount(1, MARKET_ID, SUSD) == bn(2_000)

    def test_keeper_cancel_charges_the_account(self, harness: Harness) -> None:
        self._breached_order(harness)
        fee = harness.engine.orders.cancel_order(1, MARKET_ID, harness.price_update(), KEEPER)
        assert fee == KEEPER_FEE
        assert harness.ledger.get_collateral_amount(1, MARKET_ID, SUSD) == bn(1_990)
        assert harness.adapters.wallet.balance_of(SUSD, KEEPER) == KEEPER_FEE
        [event] = harness.events("ORDER_CANCELED")
        assert event["keeper_fee"] == KEEPER_FEE

    def test_cancel_within_tolerance_raises(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.commit(1, bn(1))
        harness.clock.advance(SETTLE_DELAY)
        with pytest.raises(PriceToleranceNotExceededError):
            harness.engine.orders.cancel_order(1, MARKET_ID, harness.price_update(), KEEPER)

    def test_ready_cancel_needs_a_price(self, harness: Harness) -> None:
        self._breached_order(harness)
        with pytest.raises(InvalidPriceError):
            harness.engine.orders.cancel_order(1, MARKET_ID, None, KEEPER)

    def test_pending_cannot_be_canceled(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.commit(1, bn(1))
        with pytest.raises(OrderNotReadyError):
            harness.engine.orders.cancel_order(1, MARKET_ID, harness.price_update(), OWNER)

    def test_stale_cancel_is_free_without_price(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.commit(1, bn(1))
        harness.clock.advance(61)
        assert harness.engine.orders.cancel_order(1, MARKET_ID, None, KEEPER) == 0
        assert harness.ledger.get_order(1, MARKET_ID) is None

    def test_cancel_stale_order(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.commit(1, bn(1))
        harness.clock.advance(SETTLE_DELAY)
        with pytest.raises(OrderNotStaleError):
            harness.engine.orders.cancel_stale_order(1, MARKET_ID)

        harness.clock.advance(60)
        harness.engine.orders.cancel_stale_order(1, MARKET_ID)
        assert harness.ledger.get_order(1, MARKET_ID) is None
