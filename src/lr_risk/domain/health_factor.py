"""Cross-collateral health factor.

HF = sum(value_i * LT_i * (1 - haircut_i)) / total debt value

- value_i = quantity_i * price_i; an asset without a usable price contributes 0
- debt is valued at the usable price, else the last good price
- zero debt -> HF_INFINITY
- weighted LTV = total debt value / total collateral value
- liquidation price of asset i: the unit price at which HF reaches 1.0
  with every other asset held at its current risk-adjusted value
- every parameter comes from one ConfigSnapshot

Pure computation: callers pass debts already accrued to `now` and the
price reads taken for this evaluation.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace

from src.lr_common.enums import AlertLevel, CreditTier, PriceStatus
from src.lr_common.errors import PriceUnavailableError
from src.lr_common.fixed_point import BPS, WAD, wad_div, wad_mul
from src.lr_config.domain.models import ConfigSnapshot
from src.lr_oracle.domain.models import PriceRead
from src.lr_rates.domain.credit_pricer import effective_ltv_bps
from src.lr_risk.domain.alerts import alert_level

logger = logging.getLogger(__name__)

HF_INFINITY = 2**256 - 1


@dataclass(frozen=True)
class CollateralValuation:
    asset_id: str
    quantity: int
    price: int | None
    price_status: PriceStatus
    value: int
    risk_adjusted_value: int
    borrowing_power: int
    ltv_bps: int              # effective: min(asset LTV, credit tier max LTV)
    liquidation_threshold_bps: int
    haircut_bps: int
    penalty_bps: int
    liquidation_price: int = 0  # price at which HF reaches 1.0, others unchanged; 0 = none


@dataclass(frozen=True)
class DebtValuation:
    pool_id: str
    asset_id: str
    amount: int
    price: int
    priced_at_last_good: bool
    value: int


@dataclass(frozen=True)
class HealthFactorReport:
    owner_id: str
    health_factor: int
    collateral_value: int
    risk_adjusted_collateral: int
    borrowing_power: int
    debt_value: int
    collaterals: tuple[CollateralValuation, ...]
    debts: tuple[DebtValuation, ...]
    unavailable_assets: tuple[str, ...]
    credit_tier: CreditTier
    config_version: int
    alert_level: AlertLevel | None
    computed_at: int
    weighted_ltv: int = 0       # debt value / collateral value, WAD

    @property
    def has_debt(self) -> bool:
        return self.debt_value > 0

    @property
    def is_infinite(self) -> bool:
        return self.health_factor == HF_INFINITY


def risk_adjusted_value(value: int, liquidation_threshold_bps: int, haircut_bps: int) -> int:
    return value * liquidation_threshold_bps // BPS * (BPS - haircut_bps) // BPS


def borrowing_power_of(value: int, ltv_bps: int, haircut_bps: int) -> int:
    return value * ltv_bps // BPS * (BPS - haircut_bps) // BPS


def health_factor(risk_adjusted_collateral: int, debt_value: int) -> int:
    if debt_value == 0:
        return HF_INFINITY
    return wad_div(risk_adjusted_collateral, debt_value)


def weighted_ltv(debt_value: int, collateral_value: int) -> int:
    if collateral_value == 0:
        return 0
    return wad_div(debt_value, collateral_value)


def liquidation_price(
    debt_value: int,
    quantity: int,
    liquidation_threshold_bps: int,
    haircut_bps: int,
    other_risk_adjusted: int = 0,
) -> int:
    """Unit price of one collateral asset at which HF falls to 1.0.

    The other collateral keeps its current risk-adjusted value. Returns 0
    when that value alone covers the debt or the asset carries no weight.
    """
    uncovered = debt_value - other_risk_adjusted
    weight = quantity * liquidation_threshold_bps * (BPS - haircut_bps)
    if uncovered <= 0 or weight <= 0:
        return 0
    return uncovered * WAD * BPS * BPS // weight


def compute_health_report(
    owner_id: str,
    collateral: Mapping[str, int],
    debts: Sequence[tuple[str, str, int]],
    snapshot: ConfigSnapshot,
    prices: Mapping[str, PriceRead],
    credit_tier: CreditTier,
    now: int,
) -> HealthFactorReport:
    """Build the owner's health report.

    collateral: asset_id -> quantity
    debts: (pool_id, asset_id, current debt) already accrued to `now`
    prices: asset_id -> PriceRead for every asset involved
    Raises PriceUnavailableError when a debt asset has never had a good price.
    """
    tier_params = snapshot.credit_tier_params(credit_tier)

    valuations: list[CollateralValuation] = []
    unavailable: list[str] = []
    for asset_id in sorted(collateral):
        quantity = collateral[asset_id]
        if quantity <= 0:
            continue
        params = snapshot.collateral.get(asset_id)
        read = prices.get(asset_id)
        status = read.status if read is not None else PriceStatus.NO_PRICE
        if params is None:
            logger.warning("Collateral %s has no risk parameters in config v%d; valued at 0",
                           asset_id, snapshot.version)
            unavailable.append(asset_id)
            continue
        ltv = effective_ltv_bps(params.ltv_bps, tier_params)
        if read is None or not read.usable or read.price is None:
            unavailable.append(asset_id)
            valuations.append(CollateralValuation(
                asset_id=asset_id, quantity=quantity, price=None, price_status=status,
                value=0, risk_adjusted_value=0, borrowing_power=0, ltv_bps=ltv,
                liquidation_threshold_bps=params.liquidation_threshold_bps,
                haircut_bps=params.haircut_bps, penalty_bps=params.liquidation_penalty_bps,
            ))
            continue
        value = wad_mul(quantity, read.price)
        valuations.append(CollateralValuation(
            asset_id=asset_id,
            quantity=quantity,
            price=read.price,
            price_status=status,
            value=value,
            risk_adjusted_value=risk_adjusted_value(
                value, params.liquidation_threshold_bps, params.haircut_bps
            ),
            borrowing_power=borrowing_power_of(value, ltv, params.haircut_bps),
            ltv_bps=ltv,
            liquidation_threshold_bps=params.liquidation_threshold_bps,
            haircut_bps=params.haircut_bps,
            penalty_bps=params.liquidation_penalty_bps,
        ))

    debt_valuations: list[DebtValuation] = []
    for pool_id, asset_id, amount in debts:
        if amount <= 0:
            continue
        read = prices.get(asset_id)
        if read is not None and read.usable and read.price is not None:
            price, fallback = read.price, False
        elif read is not None and read.last_good_price is not None:
            price, fallback = read.last_good_price, True
        else:
            raise PriceUnavailableError(asset_id)
        debt_valuations.append(DebtValuation(
            pool_id=pool_id,
            asset_id=asset_id,
            amount=amount,
            price=price,
            priced_at_last_good=fallback,
            value=wad_mul(amount, price),
        ))

    risk_adjusted = sum(v.risk_adjusted_value for v in valuations)
    debt_value = sum(d.value for d in debt_valuations)
    hf = health_factor(risk_adjusted, debt_value)
    valuations = [
        replace(v, liquidation_price=liquidation_price(
            debt_value, v.quantity, v.liquidation_threshold_bps, v.haircut_bps,
            risk_adjusted - v.risk_adjusted_value,
        ))
        for v in valuations
    ]
    collateral_value = sum(v.value for v in valuations)
    return HealthFactorReport(
        owner_id=owner_id,
        health_factor=hf,
        collateral_value=collateral_value,
        risk_adjusted_collateral=risk_adjusted,
        borrowing_power=sum(v.borrowing_power for v in valuations),
        debt_value=debt_value,
        collaterals=tuple(valuations),
        debts=tuple(debt_valuations),
        unavailable_assets=tuple(unavailable),
        credit_tier=credit_tier,
        config_version=snapshot.version,
        alert_level=alert_level(hf, tier_params) if debt_value else None,
        computed_at=now,
        weighted_ltv=weighted_ltv(debt_value, collateral_value),
    )
