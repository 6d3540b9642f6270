import pytest

from src.lr_common.enums import AlertLevel, CreditTier, PriceStatus
from src.lr_common.errors import PriceUnavailableError
from src.lr_common.fixed_point import WAD, parse_wad, to_wad
from src.lr_config.domain.models import ConfigSnapshot
from src.lr_oracle.domain.models import PriceRead
from src.lr_risk.domain.health_factor import (
    HF_INFINITY,
    borrowing_power_of,
    compute_health_report,
    health_factor,
    liquidation_price,
    risk_adjusted_value,
    weighted_ltv,
)


def _available(asset_id: str, price: int) -> PriceRead:
    return PriceRead(asset_id=asset_id, status=PriceStatus.AVAILABLE, price=price,
                     last_good_price=price, staleness=0)


def _stale(asset_id: str, last_good: int) -> PriceRead:
    return PriceRead(asset_id=asset_id, status=PriceStatus.STALE,
                     last_good_price=last_good, staleness=999)


class TestFormulas:
    def test_risk_adjusted_value(self) -> None:
        assert risk_adjusted_value(to_wad(100_000), 8500, 500) == to_wad(80_750)

    def test_borrowing_power(self) -> None:
        assert borrowing_power_of(to_wad(20_000), 7500, 0) == to_wad(15_000)

    def test_zero_debt_is_infinite(self) -> None:
        assert health_factor(to_wad(1), 0) == HF_INFINITY


class TestHealthFactorBoundary:
    def test_exactly_one(self, snapshot: ConfigSnapshot) -> None:
        report = compute_health_report(
            "bob", {"TBILL": to_wad(100_000)}, [("USDC", "USDC", to_wad(80_750))],
            snapshot, {"TBILL": _available("TBILL", WAD), "USDC": _available("USDC", WAD)},
            CreditTier.DIAMOND, 0,
        )
        assert report.health_factor == WAD

    def test_one_dollar_less_debt_is_above_one(self, snapshot: ConfigSnapshot) -> None:
        report = compute_health_report(
            "bob", {"TBILL": to_wad(100_000)}, [("USDC", "USDC", to_wad(80_749))],
            snapshot, {"TBILL": _available("TBILL", WAD), "USDC": _available("USDC", WAD)},
            CreditTier.DIAMOND, 0,
        )
        assert report.health_factor > WAD


class TestComputeHealthReport:
    def test_cross_collateral(self, snapshot: ConfigSnapshot) -> None:
        prices = {
            "WETH": _available("WETH", to_wad(2000)),
            "TBILL": _available("TBILL", WAD),
            "USDC": _available("USDC", WAD),
        }
        report = compute_health_report(
            "bob", {"WETH": to_wad(1), "TBILL": to_wad(1000)},
            [("USDC", "USDC", to_wad(1000))], snapshot, prices, CreditTier.DIAMOND, 7,
        )
        # 2000 * 0.80 + 1000 * 0.85 * 0.95
        assert report.risk_adjusted_collateral == parse_wad("2407.5")
        assert report.collateral_value == to_wad(3000)
        assert report.health_factor == parse_wad("2.4075")
        assert [c.asset_id for c in report.collaterals] == ["TBILL", "WETH"]
        assert report.computed_at == 7
        assert report.config_version == snapshot.version
        assert report.alert_level is None

    def test_no_debt(self, snapshot: ConfigSnapshot) -> None:
        report = compute_health_report(
            "bob", {"WETH": to_wad(1)}, [], snapshot,
            {"WETH": _available("WETH", to_wad(2000))}, CreditTier.UNRATED, 0,
        )
        assert report.is_infinite
        assert not report.has_debt
        assert report.alert_level is None

    def test_unavailable_collateral_counts_zero(self, snapshot: ConfigSnapshot) -> None:
        report = compute_health_report(
            "bob", {"WETH": to_wad(1), "TBILL": to_wad(1000)},
            [("USDC", "USDC", to_wad(500))], snapshot,
            {"WETH": _stale("WETH", to_wad(2000)), "TBILL": _available("TBILL", WAD),
             "USDC": _available("USDC", WAD)},
            CreditTier.DIAMOND, 0,
        )
        assert report.unavailable_assets == ("WETH",)
        assert report.risk_adjusted_collateral == parse_wad("807.5")
        weth = next(c for c in report.collaterals if c.asset_id == "WETH")
        assert weth.value == 0
        assert weth.price_status == PriceStatus.STALE

    def test_debt_falls_back_to_last_good_price(self, snapshot: ConfigSnapshot) -> None:
        report = compute_health_report(
            "bob", {"TBILL": to_wad(1000)}, [("WETH", "WETH", to_wad(1))], snapshot,
            {"TBILL": _available("TBILL", WAD), "WETH": _stale("WETH", to_wad(500))},
            CreditTier.DIAMOND, 0,
        )
        assert report.debts[0].priced_at_last_good
        assert report.debt_value == to_wad(500)

    def test_unpriceable_debt_raises(self, snapshot: ConfigSnapshot) -> None:
        with pytest.raises(PriceUnavailableError):
            compute_health_report(
                "bob", {}, [("WETH", "WETH", to_wad(1))], snapshot,
                {"WETH": PriceRead(asset_id="WETH", status=PriceStatus.NO_PRICE)},
                CreditTier.DIAMOND, 0,
            )

    def test_borrowing_power_uses_tier_ltv_cap(self, snapshot: ConfigSnapshot) -> None:
        prices = {"WETH": _available("WETH", to_wad(2000))}
        unrated = compute_health_report("bob", {"WETH": to_wad(1)}, [], snapshot, prices,
                                        CreditTier.UNRATED, 0)
        diamond = compute_health_report("bob", {"WETH": to_wad(1)}, [], snapshot, prices,
                                        CreditTier.DIAMOND, 0)
        assert unrated.borrowing_power == to_wad(1000)
        assert diamond.borrowing_power == to_wad(1500)

    def test_alert_level_from_credit_tier(self, snapshot: ConfigSnapshot) -> None:
        report = compute_health_report(
            "bob", {"TBILL": to_wad(1000)}, [("USDC", "USDC", to_wad(700))], snapshot,
            {"TBILL": _available("TBILL", WAD), "USDC": _available("USDC", WAD)},
            CreditTier.DIAMOND, 0,
        )
        # 807.5 / 700 = 1.1535 -> DIAMOND danger band (1.10, 1.20]
        assert report.alert_level == AlertLevel.DANGER


class TestWeightedLtv:
    def test_debt_over_collateral(self) -> None:
        assert weighted_ltv(to_wad(5000), to_wad(20_000)) == parse_wad("0.25")

    def test_no_collateral(self) -> None:
        assert weighted_ltv(to_wad(5000), 0) == 0


class TestLiquidationPrice:
    def test_single_asset(self) -> None:
        # 14,000 / (10 * 0.80)
        assert liquidation_price(to_wad(14_000), to_wad(10), 8000, 0) == to_wad(1750)

    def test_other_collateral_lowers_price(self) -> None:
        assert liquidation_price(
            to_wad(14_000), to_wad(10), 8000, 0, other_risk_adjusted=to_wad(6000)
        ) == to_wad(1000)

    def test_haircut_applied(self) -> None:
        assert liquidation_price(to_wad(80_750), to_wad(100_000), 8500, 500) == WAD

    def test_covered_by_other_collateral(self) -> None:
        assert liquidation_price(
            to_wad(1000), to_wad(10), 8000, 0, other_risk_adjusted=to_wad(1000)
        ) == 0

    def test_zero_quantity(self) -> None:
        assert liquidation_price(to_wad(1000), 0, 8000, 0) == 0

    def test_rounds_down(self) -> None:
        # 100 / (3 * 0.80) = 41.666...
        assert liquidation_price(to_wad(100), to_wad(3), 8000, 0) == (
            to_wad(100) * WAD // (to_wad(3) * 8000 // 10_000)
        )

    def test_report_fields(self, snapshot: ConfigSnapshot) -> None:
        prices = {
            "WETH": _available("WETH", to_wad(2000)),
            "TBILL": _available("TBILL", WAD),
            "USDC": _available("USDC", WAD),
        }
        report = compute_health_report(
            "bob", {"WETH": to_wad(10), "TBILL": to_wad(10_000)},
            [("USDC", "USDC", to_wad(14_000))], snapshot, prices, CreditTier.DIAMOND, 0,
        )
        by_asset = {c.asset_id: c for c in report.collaterals}
        # (14,000 - 10,000 * 0.85 * 0.95) / (10 * 0.80)
        assert by_asset["WETH"].liquidation_price == parse_wad("740.625")
        assert by_asset["TBILL"].liquidation_price == 0
        assert report.weighted_ltv == to_wad(14_000) * WAD // to_wad(30_000)

    def test_no_debt_has_no_liquidation_price(self, snapshot: ConfigSnapshot) -> None:
        report = compute_health_report(
            "bob", {"WETH": to_wad(10)}, [], snapshot,
            {"WETH": _available("WETH", to_wad(2000))}, CreditTier.DIAMOND, 0,
        )
        assert report.collaterals[0].liquidation_price == 0
        assert report.weighted_ltv == 0
