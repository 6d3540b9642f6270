"""Risk config document loading — pydantic validation, exact fixed-point conversion.

Every rate and ratio in the document is a decimal *string* ("0.02"), never a
JSON number, so nothing passes through float on the way in.
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from src.lr_common.enums import CollateralTier, CreditTier, LiquidationTier
from src.lr_common.fixed_point import BPS, WAD, parse_wad
from src.lr_config.domain.models import (
    CollateralParams,
    ConfigSnapshot,
    CreditTierParams,
    LiquidationTierParams,
    OracleParams,
    PoolParams,
    RateCurveParams,
    default_oracle_params,
)
from src.lr_config.infrastructure.defaults import DEFAULT_RISK_CONFIG

logger = logging.getLogger(__name__)


def _check_decimal(value: str) -> str:
    parse_wad(value)
    return value


def _to_bps(value: str) -> int:
    """'0.85' -> 8500. Rejects precision finer than one basis point."""
    wad = parse_wad(value)
    if wad * BPS % WAD:
        raise ValueError(f"{value!r} is finer than one basis point")
    return wad * BPS // WAD


def _check_ratio(value: str) -> str:
    bps = _to_bps(value)
    if bps > BPS:
        raise ValueError(f"ratio {value!r} exceeds 1")
    return value


# ---------------------------------------------------------------------------
# Document schemas
# ---------------------------------------------------------------------------


class RateCurveDoc(BaseModel):
    base_rate: str
    slope_below: str
    kink: str
    slope_above: str
    reserve_factor: str

    @field_validator("base_rate", "slope_below", "slope_above")
    @classmethod
    def check_rate(cls, value: str) -> str:
        return _check_decimal(value)

    @field_validator("kink", "reserve_factor")
    @classmethod
    def check_ratio(cls, value: str) -> str:
        return _check_ratio(value)

    def to_params(self) -> RateCurveParams:
        return RateCurveParams(
            base_rate=parse_wad(self.base_rate),
            slope_below=parse_wad(self.slope_below),
            kink=parse_wad(self.kink),
            slope_above=parse_wad(self.slope_above),
            reserve_factor=parse_wad(self.reserve_factor),
        )


class PoolDoc(BaseModel):
    asset_id: str
    rate_curve: RateCurveDoc
    borrow_enabled: bool = True


class CollateralDoc(BaseModel):
    tier: CollateralTier
    ltv: str
    liquidation_threshold: str
    haircut: str = "0"
    liquidation_penalty: str
    collateral_enabled: bool = True

    @field_validator("ltv", "liquidation_threshold", "haircut", "liquidation_penalty")
    @classmethod
    def check_ratio(cls, value: str) -> str:
        return _check_ratio(value)

    @model_validator(mode="after")
    def check_ltv_below_threshold(self) -> "CollateralDoc":
        if _to_bps(self.ltv) > _to_bps(self.liquidation_threshold):
            raise ValueError("ltv must not exceed liquidation_threshold")
        return self


class OracleDoc(BaseModel):
    max_staleness_seconds: int | None = Field(default=None, gt=0)
    deviation_bound: str | None = None
    twap_window_seconds: int | None = Field(default=None, gt=0)
    twap_max_samples: int | None = Field(default=None, gt=0)
    min_confidence: str | None = None

    @field_validator("deviation_bound", "min_confidence")
    @classmethod
    def check_ratio(cls, value: str | None) -> str | None:
        return None if value is None else _check_ratio(value)


class CreditTierDoc(BaseModel):
    min_score: int = Field(..., ge=0, le=1000)
    discount: str
    max_ltv: str
    alert_thresholds: tuple[str, str, str]

    @field_validator("discount", "max_ltv")
    @classmethod
    def check_ratio(cls, value: str) -> str:
        return _check_ratio(value)

    @field_validator("alert_thresholds")
    @classmethod
    def check_descending(cls, value: tuple[str, str, str]) -> tuple[str, str, str]:
        warning, danger, critical = (parse_wad(v) for v in value)
        if not warning >= danger >= critical:
            raise ValueError("alert thresholds must be warning >= danger >= critical")
        return value


class LiquidationTierDoc(BaseModel):
    tier: LiquidationTier
    hf_floor: str
    repay: str

    @field_validator("hf_floor")
    @classmethod
    def check_floor(cls, value: str) -> str:
        return _check_decimal(value)

    @field_validator("repay")
    @classmethod
    def check_repay(cls, value: str) -> str:
        return _check_ratio(value)


class RiskConfigDocument(BaseModel):
    version: int = Field(default=1, ge=1)
    pools: dict[str, PoolDoc]
    collateral: dict[str, CollateralDoc]
    credit_tiers: dict[CreditTier, CreditTierDoc]
    liquidation_tiers: list[LiquidationTierDoc]
    oracles: dict[str, OracleDoc] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_complete_tables(self) -> "RiskConfigDocument":
        missing = set(CreditTier) - set(self.credit_tiers)
        if missing:
            raise ValueError(f"credit tiers missing: {sorted(t.value for t in missing)}")
        tiers = [t.tier for t in self.liquidation_tiers]
        if tiers != list(LiquidationTier):
            raise ValueError("liquidation tiers must list every tier, mildest first")
        floors = [parse_wad(t.hf_floor) for t in self.liquidation_tiers]
        if floors != sorted(floors, reverse=True) or floors[0] >= WAD:
            raise ValueError("liquidation hf floors must descend and stay below 1.0")
        return self

    def to_snapshot(self) -> ConfigSnapshot:
        fallback = default_oracle_params()
        return ConfigSnapshot(
            version=self.version,
            pools={
                pool_id: PoolParams(
                    pool_id=pool_id,
                    asset_id=doc.asset_id,
                    rate_curve=doc.rate_curve.to_params(),
                    borrow_enabled=doc.borrow_enabled,
                )
                for pool_id, doc in self.pools.items()
            },
            collateral={
                asset_id: CollateralParams(
                    asset_id=asset_id,
                    tier=doc.tier,
                    ltv_bps=_to_bps(doc.ltv),
                    liquidation_threshold_bps=_to_bps(doc.liquidation_threshold),
                    haircut_bps=_to_bps(doc.haircut),
                    liquidation_penalty_bps=_to_bps(doc.liquidation_penalty),
                    collateral_enabled=doc.collateral_enabled,
                )
                for asset_id, doc in self.collateral.items()
            },
            credit_tiers={
                tier: CreditTierParams(
                    tier=tier,
                    min_score=doc.min_score,
                    discount_bps=_to_bps(doc.discount),
                    max_ltv_bps=_to_bps(doc.max_ltv),
                    alert_thresholds=(
                        parse_wad(doc.alert_thresholds[0]),
                        parse_wad(doc.alert_thresholds[1]),
                        parse_wad(doc.alert_thresholds[2]),
                    ),
                )
                for tier, doc in self.credit_tiers.items()
            },
            liquidation_tiers=tuple(
                LiquidationTierParams(
                    tier=doc.tier,
                    hf_floor=parse_wad(doc.hf_floor),
                    repay_bps=_to_bps(doc.repay),
                    severity=i + 1,
                )
                for i, doc in enumerate(self.liquidation_tiers)
            ),
            oracles={
                asset_id: OracleParams(
                    max_staleness_seconds=doc.max_staleness_seconds
                    or fallback.max_staleness_seconds,
                    deviation_bound_bps=_to_bps(doc.deviation_bound)
                    if doc.deviation_bound is not None
                    else fallback.deviation_bound_bps,
                    twap_window_seconds=doc.twap_window_seconds
                    or fallback.twap_window_seconds,
                    twap_max_samples=doc.twap_max_samples or fallback.twap_max_samples,
                    min_confidence_bps=_to_bps(doc.min_confidence)
                    if doc.min_confidence is not None
                    else fallback.min_confidence_bps,
                )
                for asset_id, doc in self.oracles.items()
            },
        )


def load_risk_config(path: str | None = None) -> ConfigSnapshot:
    """Load and validate the risk document. None -> built-in defaults.

    Raises pydantic.ValidationError on a malformed document.
    """
    if path is None:
        doc = RiskConfigDocument.model_validate(DEFAULT_RISK_CONFIG)
        source = "built-in defaults"
    else:
        doc = RiskConfigDocument.model_validate(json.loads(Path(path).read_text()))
        source = path
    snapshot = doc.to_snapshot()
    logger.info(
        "Risk config loaded from %s: version=%d, pools=%d, collateral assets=%d",
        source, snapshot.version, len(snapshot.pools), len(snapshot.collateral),
    )
    return snapshot
