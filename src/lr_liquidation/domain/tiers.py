"""Liquidation tier lookup — the single place HF maps to a tier."""

from collections.abc import Sequence

from src.lr_common.fixed_point import WAD
from src.lr_config.domain.models import LiquidationTierParams


def select_tier(
    health_factor: int, tiers: Sequence[LiquidationTierParams]
) -> LiquidationTierParams | None:
    """First tier (mildest first) whose floor the HF reaches; None when HF >= 1.0.

    Default table:
      MARGIN_CALL        [0.95, 1.00)   0%
      SOFT_LIQUIDATION   [0.90, 0.95)  25%
      FORCED_LIQUIDATION [0.85, 0.90)  50%
      FULL_LIQUIDATION   < 0.85       100%
    """
    if health_factor >= WAD:
        return None
    for tier in tiers:
        if health_factor >= tier.hf_floor:
            return tier
    return tiers[-1]
