"""Jump-rate interest model — pure functions over WAD ints.

borrow rate:
  u <= kink: base + u * slope_below
  u >  kink: base + kink * slope_below + (u - kink) * slope_above
supply rate = borrow_rate * u * (1 - reserve_factor)
"""

from src.lr_common.fixed_point import WAD, wad_div, wad_mul
from src.lr_config.domain.models import RateCurveParams


def utilization(total_borrow: int, total_supply: int) -> int:
    """Borrowed fraction of supply, clamped to [0, WAD]. Zero supply -> 0."""
    if total_supply <= 0 or total_borrow <= 0:
        return 0
    return min(wad_div(total_borrow, total_supply), WAD)


def borrow_rate(util: int, params: RateCurveParams) -> int:
    if util <= params.kink:
        return params.base_rate + wad_mul(util, params.slope_below)
    return (
        params.base_rate
        + wad_mul(params.kink, params.slope_below)
        + wad_mul(util - params.kink, params.slope_above)
    )


def supply_rate(util: int, borrow_rate_wad: int, reserve_factor: int) -> int:
    return wad_mul(wad_mul(borrow_rate_wad, util), WAD - reserve_factor)
