"""Unit tests for LiquidationService: flag, throttled liquidation, margin-only."""

import pytest

from src.perp_common.errors import (
    CannotLiquidateMarginError,
    CannotLiquidatePositionError,
    LiquidationZeroCapacityError,
    PositionFlaggedError,
    PositionNotFlaggedError,
    PositionNotFoundError,
)
from src.perp_market.domain.collaborators import SUSD
from src.perp_market.domain.models import CollateralConfig
from tests.helpers import KEEPER, MARKET_ID, OWNER, Harness, bn, build_harness

FLAGGER = "0xflagger"
LIQUIDATOR = "0xliquidator"


def _underwater_long(harness: Harness) -> None:
    """10x long (20k notional on 2k margin), then an 11% drop."""
    harness.open_account(1)
    harness.trade(1, bn(10))
    harness.set_price(bn(1_780))


class TestFlag:
    def test_flag_seizes_collateral_and_pays_flagger(self, harness: Harness) -> None:
        _underwater_long(harness)
        assert harness.engine.accounts.get_health_factor(1, MARKET_ID) == 0

        reward = harness.engine.liquidations.flag_position(1, MARKET_ID, FLAGGER)

        # 7.4 gas base + 0.01% of 17,800 notional
        assert reward == bn("9.18")
        assert harness.adapters.wallet.balance_of(SUSD, FLAGGER) == reward
        assert harness.ledger.get_collateral(1, MARKET_ID) == {}
        assert harness.ledger.get_debt(1, MARKET_ID) == 0
        assert harness.market().flagged_positions == {1: FLAGGER}
        # the position itself stays open until liquidated
        assert harness.ledger.get_position(1, MARKET_ID) is not None
        [event] = harness.events("POSITION_FLAGGED_LIQUIDATION")
        assert event["flagger"] == FLAGGER
        assert event["price"] == bn(1_780)

    def test_healthy_position_cannot_be_flagged(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.trade(1, bn(10))
        with pytest.raises(CannotLiquidatePositionError):
            harness.engine.liquidations.flag_position(1, MARKET_ID, FLAGGER)
        assert harness.market().flagged_positions == {}

    def test_no_position(self, harness: Harness) -> None:
        harness.open_account(1)
        with pytest.raises(PositionNotFoundError):
            harness.engine.liquidations.flag_position(1, MARKET_ID, FLAGGER)

    def test_flag_twice_raises(self, harness: Harness) -> None:
        _underwater_long(harness)
        harness.engine.liquidations.flag_position(1, MARKET_ID, FLAGGER)
        with pytest.raises(PositionFlaggedError):
            harness.engine.liquidations.flag_position(1, MARKET_ID, FLAGGER)

    def test_flag_cancels_pending_order(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.trade(1, bn(10))
        harness.commit(1, -bn(1))
        harness.set_price(bn(1_780))

        harness.engine.liquidations.flag_position(1, MARKET_ID, FLAGGER)

        assert harness.ledger.get_order(1, MARKET_ID) is None
        [canceled] = harness.events("ORDER_CANCELED")
        assert canceled["keeper_fee"] == 0

    def test_flagged_account_is_frozen(self, harness: Harness) -> None:
        _underwater_long(harness)
        harness.engine.liquidations.flag_position(1, MARKET_ID, FLAGGER)
        harness.adapters.wallet.mint(SUSD, OWNER, bn(100))

        with pytest.raises(PositionFlaggedError):
            harness.commit(1, -bn(1))
        with pytest.raises(PositionFlaggedError):
            harness.engine.accounts.modify_collateral(1, MARKET_ID, SUSD, bn(100), OWNER)


class TestLiquidate:
    def test_full_liquidation_within_capacity(self, harness: Harness) -> None:
        _underwater_long(harness)
        harness.engine.liquidations.flag_position(1, MARKET_ID, FLAGGER)

        result = harness.engine.liquidations.liquidate_position(1, MARKET_ID, LIQUIDATOR)

        assert result.size_before == bn(10)
        assert result.liquidated_size == bn(10)
        assert result.remaining_size == 0
        assert result.flagger == FLAGGER
        assert result.keeper_fee == bn("7.4")
        assert harness.ledger.get_position(1, MARKET_ID) is None
        market = harness.market()
        assert market.size == 0
        assert market.skew == 0
        assert market.flagged_positions == {}
        assert harness.adapters.wallet.balance_of(SUSD, LIQUIDATOR) == bn("7.4")
        [event] = harness.events("POSITION_LIQUIDATED")
        assert event["remaining_size"] == 0

    def test_unflagged_position_raises(self, harness: Harness) -> None:
        _underwater_long(harness)
        with pytest.raises(PositionNotFlaggedError):
            harness.engine.liquidations.liquidate_position(1, MARKET_ID, LIQUIDATOR)

    def test_capacity_throttles_across_the_window(self) -> None:
        harness = build_harness(market_overrides={"liquidation_limit_scalar": bn("0.5")})
        _underwater_long(harness)
        harness.engine.liquidations.flag_position(1, MARKET_ID, FLAGGER)
        liquidations = harness.engine.liquidations

        first = liquidations.liquidate_position(1, MARKET_ID, LIQUIDATOR)
        assert first.liquidated_size == bn(5)
        assert first.remaining_size == bn(5)
        assert harness.market().flagged_positions == {1: FLAGGER}

        with pytest.raises(LiquidationZeroCapacityError):
            liquidations.liquidate_position(1, MARKET_ID, LIQUIDATOR)

        harness.clock.advance(31)
        second = liquidations.liquidate_position(1, MARKET_ID, LIQUIDATOR)
        # half of the 5 still open
        assert second.liquidated_size == bn("2.5")
        assert second.remaining_size == bn("2.5")

    def test_endorsed_keeper_ignores_capacity(self) -> None:
        harness = build_harness(
            global_overrides={"keeper_liquidation_endorsed": LIQUIDATOR},
            market_overrides={"liquidation_limit_scalar": bn("0.5")},
        )
        _underwater_long(harness)
        harness.engine.liquidations.flag_position(1, MARKET_ID, FLAGGER)

        result = harness.engine.liquidations.liquidate_position(1, MARKET_ID, LIQUIDATOR)

        assert result.remaining_size == 0


class TestMarginOnly:
    def test_debt_exceeding_collateral_is_liquidatable(self, harness: Harness) -> None:
        harness.open_account(1, deposit=bn(100))
        harness.seed_debt(1, bn(200))
        assert harness.engine.liquidations.is_margin_liquidatable(1, MARKET_ID)

        reward = harness.engine.liquidations.liquidate_margin_only(1, MARKET_ID, KEEPER)

        # 7.4 gas base + 0.01% of 100 collateral
        assert reward == bn("7.41")
        assert harness.ledger.get_collateral(1, MARKET_ID) == {}
        assert harness.ledger.get_debt(1, MARKET_ID) == 0
        assert harness.market().total_trader_debt_usd == 0
        [event] = harness.events("MARGIN_LIQUIDATED")
        assert event["cleared_debt"] == bn(200)

    def test_healthy_account_raises(self, harness: Harness) -> None:
        harness.open_account(1)
        assert not harness.engine.liquidations.is_margin_liquidatable(1, MARKET_ID)
        with pytest.raises(CannotLiquidateMarginError):
            harness.engine.liquidations.liquidate_margin_only(1, MARKET_ID, KEEPER)

    def test_account_with_position_is_not_margin_liquidatable(self, harness: Harness) -> None:
        _underwater_long(harness)
        assert not harness.engine.liquidations.is_margin_liquidatable(1, MARKET_ID)

    def test_non_usd_collateral_goes_to_reward_distribution(self, harness: Harness) -> None:
        harness.adapters.collaterals.register(
            CollateralConfig(collateral_id="sETH", max_allowable=bn(1_000), skew_scale=bn(1_000)),
            bn(2_000),
        )
        harness.open_account(1, deposit=0)
        harness.adapters.wallet.mint("sETH", OWNER, bn(1))
        harness.engine.accounts.modify_collateral(1, MARKET_ID, "sETH", bn(1), OWNER)
        harness.seed_debt(1, bn(5_000))

        harness.engine.liquidations.liquidate_margin_only(1, MARKET_ID, KEEPER)

        assert harness.adapters.pool.distributed[(MARKET_ID, "sETH")] == bn(1)
        assert harness.market().deposited_collateral == {}
