"""Unit tests for the keeper fee family."""

from src.perp_market.domain.snapshot import CallSnapshot
from src.perp_pricing.domain.keeper import (
    cancellation_keeper_fee,
    flag_keeper_reward,
    gas_cost_usd,
    liquidation_keeper_fee,
    margin_liquidation_keeper_reward,
    settlement_keeper_fee,
)
from tests.helpers import bn, make_global_config, make_market_config

GWEI = 1_000_000_000


def _snap(base_fee: int = GWEI, eth_price: int = bn(2_000)) -> CallSnapshot:
    return CallSnapshot(now=0, base_fee_per_gas=base_fee, eth_price=eth_price, price=bn(2_000))


class TestGasCost:
    def test_gas_cost_in_usd(self) -> None:
        # 1 gwei * 1.2M gas = 0.0012 ETH = $2.4 at $2000
        assert gas_cost_usd(GWEI, 1_200_000, bn(2_000)) == bn("2.4")


class TestSettlementFee:
    def test_cheap_gas_is_clamped_to_min_fee(self) -> None:
        cfg = make_global_config()
        assert settlement_keeper_fee(cfg, _snap(), 0) == bn(10)

    def test_buffer_is_added_before_clamping(self) -> None:
        cfg = make_global_config()
        # base max(2.4 * 1.1, 2.4 + 5) = 7.4, + 20 buffer
        assert settlement_keeper_fee(cfg, _snap(), bn(20)) == bn("27.4")

    def test_expensive_gas_is_capped(self) -> None:
        cfg = make_global_config()
        assert settlement_keeper_fee(cfg, _snap(base_fee=1_000 * GWEI), 0) == bn(100)

    def test_percent_margin_wins_when_gas_is_dear(self) -> None:
        cfg = make_global_config(max_keeper_fee_usd=bn(1_000))
        # cost = 24; max(24 * 1.1, 24 + 5) = 29
        assert settlement_keeper_fee(cfg, _snap(base_fee=10 * GWEI), 0) == bn(29)
        # cost = 240; max(264, 245) = 264
        assert settlement_keeper_fee(cfg, _snap(base_fee=100 * GWEI), 0) == bn(264)


class TestOtherFees:
    def test_cancellation_fee_uses_its_own_gas_units(self) -> None:
        cfg = make_global_config(min_keeper_fee_usd=0)
        # 600k gas -> $1.2; max(1.32, 6.2)
        assert cancellation_keeper_fee(cfg, _snap()) == bn("6.2")

    def test_flag_reward_scales_with_larger_of_notional_and_collateral(self) -> None:
        cfg = make_global_config()
        market_cfg = make_market_config(liquidation_reward_percent=bn("0.001"))
        by_notional = flag_keeper_reward(cfg, market_cfg, _snap(), bn(20_000), bn(1_000))
        by_collateral = flag_keeper_reward(cfg, market_cfg, _snap(), bn(1_000), bn(20_000))
        assert by_notional == by_collateral == bn("27.4")

    def test_liquidation_fee_charges_per_chunk(self) -> None:
        cfg = make_global_config()
        one_chunk = liquidation_keeper_fee(cfg, _snap(), bn(10), bn(10))
        three_chunks = liquidation_keeper_fee(cfg, _snap(), bn(25), bn(10))
        assert one_chunk == bn("7.4")
        assert three_chunks == bn("22.2")

    def test_liquidation_fee_zero_for_no_size(self) -> None:
        assert liquidation_keeper_fee(make_global_config(), _snap(), 0, bn(10)) == 0

    def test_margin_liquidation_reward(self) -> None:
        cfg = make_global_config()
        market_cfg = make_market_config(liquidation_reward_percent=bn("0.01"))
        assert margin_liquidation_keeper_reward(cfg, market_cfg, _snap(), bn(100)) == bn("8.4")
