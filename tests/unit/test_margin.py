"""Unit tests for margin, liquidation margin and health factor."""

from src.perp_common.decimal_math import UNIT
from src.perp_margin.domain.margin import (
    MAX_HEALTH_FACTOR,
    RiskInputs,
    discounted_collateral_price,
    health_factor,
    initial_margin_ratio,
    is_position_liquidatable,
    margin_values,
)
from src.perp_market.domain.collaborators import SUSD
from src.perp_market.domain.models import CollateralConfig
from tests.helpers import MARKET_ID, Harness, bn


def _inputs(harness: Harness) -> RiskInputs:
    ctx = harness.engine.ctx
    return ctx.risk_inputs(ctx.snapshot(MARKET_ID))


class TestHealthFactor:
    def test_no_maintenance_margin_is_sentinel(self) -> None:
        assert health_factor(bn(100), 0) == MAX_HEALTH_FACTOR

    def test_negative_margin_floors_at_zero(self) -> None:
        assert health_factor(-bn(100), bn(50)) == 0

    def test_ratio(self) -> None:
        assert health_factor(bn(150), bn(100)) == bn("1.5")

    def test_account_without_position_reports_sentinel(self, harness: Harness) -> None:
        harness.open_account(1)
        assert harness.engine.accounts.get_health_factor(1, MARKET_ID) == MAX_HEALTH_FACTOR

    def test_open_position_is_healthy_then_liquidatable(self, harness: Harness) -> None:
        harness.open_account(1)
        harness.trade(1, bn(10))
        assert harness.engine.accounts.get_health_factor(1, MARKET_ID) > UNIT

        harness.set_price(bn(1_780))
        assert harness.engine.accounts.get_health_factor(1, MARKET_ID) < UNIT
        assert is_position_liquidatable(_inputs(harness), 1, harness.market())


class TestMarginRatio:
    def test_imr_grows_with_size_and_is_capped(self, harness: Harness) -> None:
        market = harness.market()
        small = initial_margin_ratio(market, bn(10))
        large = initial_margin_ratio(market, bn(100_000))
        assert bn("0.05") < small < large
        assert initial_margin_ratio(market, bn(10_000_000)) == bn("0.9")

    def test_margin_subtracts_debt(self, harness: Harness) -> None:
        harness.open_account(1, deposit=bn(500))
        harness.seed_debt(1, bn(120))
        values = margin_values(_inputs(harness), 1, harness.market())
        assert values.collateral_usd == bn(500)
        assert values.debt_usd == bn(120)
        assert values.margin_usd == bn(380)


class TestCollateralDiscount:
    def test_susd_is_never_discounted(self, harness: Harness) -> None:
        price = discounted_collateral_price(SUSD, bn(1_000_000), UNIT, _inputs(harness))
        assert price == UNIT

    def test_discount_is_clamped_between_min_and_max(self, harness: Harness) -> None:
        harness.adapters.collaterals.register(
            CollateralConfig(collateral_id="sETH", max_allowable=bn(1_000), skew_scale=bn(1_000)),
            bn(2_000),
        )
        inputs = _inputs(harness)
        # 1/1000 impact -> min 1%
        assert discounted_collateral_price("sETH", bn(1), bn(2_000), inputs) == bn(1_980)
        # 30/1000 impact -> 3%
        assert discounted_collateral_price("sETH", bn(30), bn(2_000), inputs) == bn(1_940)
        # 500/1000 impact -> max 5%
        assert discounted_collateral_price("sETH", bn(500), bn(2_000), inputs) == bn(1_900)
