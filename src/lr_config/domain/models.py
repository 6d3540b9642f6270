"""Typed, versioned risk configuration — frozen dataclasses, no I/O.

Rates are WAD-scaled ints (1e18 = 100%). Ratios are basis points.
A ConfigSnapshot is immutable: every health-factor computation reads all
of its parameters from exactly one snapshot.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field

from config.settings import settings
from src.lr_common.enums import CollateralTier, CreditTier, LiquidationTier
from src.lr_common.errors import PoolNotFoundError, UnknownAssetError


@dataclass(frozen=True)
class RateCurveParams:
    base_rate: int      # WAD
    slope_below: int    # WAD
    kink: int           # WAD utilization
    slope_above: int    # WAD
    reserve_factor: int  # WAD fraction of interest kept as reserves


@dataclass(frozen=True)
class PoolParams:
    pool_id: str
    asset_id: str  # priced through the oracle under this id
    rate_curve: RateCurveParams
    borrow_enabled: bool = True


@dataclass(frozen=True)
class CollateralParams:
    asset_id: str
    tier: CollateralTier
    ltv_bps: int
    liquidation_threshold_bps: int
    haircut_bps: int
    liquidation_penalty_bps: int
    collateral_enabled: bool = True


@dataclass(frozen=True)
class OracleParams:
    max_staleness_seconds: int
    deviation_bound_bps: int
    twap_window_seconds: int
    twap_max_samples: int
    min_confidence_bps: int


@dataclass(frozen=True)
class CreditTierParams:
    tier: CreditTier
    min_score: int
    discount_bps: int
    max_ltv_bps: int
    # (warning, danger, critical) health factor thresholds, WAD
    alert_thresholds: tuple[int, int, int]


@dataclass(frozen=True)
class LiquidationTierParams:
    tier: LiquidationTier
    hf_floor: int   # WAD, inclusive lower bound
    repay_bps: int
    severity: int   # 1 = mildest


@dataclass(frozen=True)
class CreditAssessment:
    owner_id: str
    score: int
    tier: CreditTier
    effective_from: int
    grace_until: int | None = None        # set on downgrade
    previous_tier: CreditTier | None = None


def default_oracle_params() -> OracleParams:
    return OracleParams(
        max_staleness_seconds=settings.ORACLE_MAX_STALENESS_SECONDS,
        deviation_bound_bps=settings.ORACLE_DEVIATION_BOUND_BPS,
        twap_window_seconds=settings.ORACLE_TWAP_WINDOW_SECONDS,
        twap_max_samples=settings.ORACLE_TWAP_MAX_SAMPLES,
        min_confidence_bps=settings.ORACLE_MIN_CONFIDENCE_BPS,
    )


@dataclass(frozen=True)
class ConfigSnapshot:
    version: int
    pools: Mapping[str, PoolParams]
    collateral: Mapping[str, CollateralParams]
    credit_tiers: Mapping[CreditTier, CreditTierParams]
    liquidation_tiers: tuple[LiquidationTierParams, ...]
    oracles: Mapping[str, OracleParams] = field(default_factory=dict)

    def pool_params(self, pool_id: str) -> PoolParams:
        params = self.pools.get(pool_id)
        if params is None:
            raise PoolNotFoundError(pool_id)
        return params

    def collateral_params(self, asset_id: str) -> CollateralParams:
        params = self.collateral.get(asset_id)
        if params is None:
            raise UnknownAssetError(asset_id)
        return params

    def oracle_params(self, asset_id: str) -> OracleParams:
        return self.oracles.get(asset_id) or default_oracle_params()

    def credit_tier_params(self, tier: CreditTier) -> CreditTierParams:
        return self.credit_tiers[tier]

    def is_known_asset(self, asset_id: str) -> bool:
        return asset_id in self.collateral or any(
            p.asset_id == asset_id for p in self.pools.values()
        )
