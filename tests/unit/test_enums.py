from src.lr_common.enums import (
    BreakerState,
    CreditTier,
    LiquidationAction,
    LiquidationTier,
    PoolStatus,
    PriceStatus,
)


class TestEnums:
    def test_str_valued(self) -> None:
        assert PoolStatus.HALTED == "HALTED"
        assert BreakerState.HALF_OPEN.value == "HALF_OPEN"

    def test_liquidation_tiers_mildest_first(self) -> None:
        assert list(LiquidationTier) == [
            LiquidationTier.MARGIN_CALL,
            LiquidationTier.SOFT_LIQUIDATION,
            LiquidationTier.FORCED_LIQUIDATION,
            LiquidationTier.FULL_LIQUIDATION,
        ]

    def test_credit_tiers_closed_set(self) -> None:
        assert {t.value for t in CreditTier} == {
            "DIAMOND", "GOLD", "SILVER", "BRONZE", "UNRATED"
        }

    def test_price_status_members(self) -> None:
        assert len(PriceStatus) == 4

    def test_liquidation_actions(self) -> None:
        assert LiquidationAction("DEFERRED_COOLDOWN") is LiquidationAction.DEFERRED_COOLDOWN
