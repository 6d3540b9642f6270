"""Pydantic response schemas and cursor utilities for the lending engine."""

import base64
import json

from pydantic import BaseModel

from src.lr_common.datetime_utils import ts_to_iso
from src.lr_common.fixed_point import format_wad
from src.lr_liquidation.domain.models import LiquidationDecision, LiquidationEvent
from src.lr_pool.domain.models import CollateralReceipt, Pool, PoolReceipt
from src.lr_rates.domain.rate_curve import borrow_rate, supply_rate, utilization
from src.lr_risk.domain.health_factor import HF_INFINITY, HealthFactorReport

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode an event id into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


def hf_display(health_factor: int) -> str:
    """WAD health factor -> '1.0250', or 'inf' for no debt."""
    if health_factor == HF_INFINITY:
        return "inf"
    return format_wad(health_factor, places=4)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class CollateralValuationItem(BaseModel):
    asset_id: str
    quantity: int
    quantity_display: str
    price: int | None
    price_status: str
    value: int
    value_display: str
    risk_adjusted_value: int
    ltv_bps: int
    liquidation_threshold_bps: int
    haircut_bps: int
    liquidation_price: int
    liquidation_price_display: str


class DebtItem(BaseModel):
    pool_id: str
    asset_id: str
    amount: int
    amount_display: str
    value: int
    value_display: str
    priced_at_last_good: bool


class HealthFactorResponse(BaseModel):
    owner_id: str
    health_factor: int
    health_factor_display: str
    collateral_value: int
    collateral_value_display: str
    risk_adjusted_collateral: int
    borrowing_power: int
    borrowing_power_display: str
    debt_value: int
    debt_value_display: str
    weighted_ltv: int
    weighted_ltv_display: str
    alert_level: str | None
    credit_tier: str
    unavailable_assets: list[str]
    config_version: int
    collaterals: list[CollateralValuationItem]
    debts: list[DebtItem]

    @classmethod
    def from_report(cls, report: HealthFactorReport) -> "HealthFactorResponse":
        return cls(
            owner_id=report.owner_id,
            health_factor=report.health_factor,
            health_factor_display=hf_display(report.health_factor),
            collateral_value=report.collateral_value,
            collateral_value_display=format_wad(report.collateral_value, 2),
            risk_adjusted_collateral=report.risk_adjusted_collateral,
            borrowing_power=report.borrowing_power,
            borrowing_power_display=format_wad(report.borrowing_power, 2),
            debt_value=report.debt_value,
            debt_value_display=format_wad(report.debt_value, 2),
            weighted_ltv=report.weighted_ltv,
            weighted_ltv_display=f"{format_wad(report.weighted_ltv * 100, 2)}%",
            alert_level=report.alert_level.value if report.alert_level else None,
            credit_tier=report.credit_tier.value,
            unavailable_assets=list(report.unavailable_assets),
            config_version=report.config_version,
            collaterals=[
                CollateralValuationItem(
                    asset_id=c.asset_id,
                    quantity=c.quantity,
                    quantity_display=format_wad(c.quantity),
                    price=c.price,
                    price_status=c.price_status.value,
                    value=c.value,
                    value_display=format_wad(c.value, 2),
                    risk_adjusted_value=c.risk_adjusted_value,
                    ltv_bps=c.ltv_bps,
                    liquidation_threshold_bps=c.liquidation_threshold_bps,
                    haircut_bps=c.haircut_bps,
                    liquidation_price=c.liquidation_price,
                    liquidation_price_display=format_wad(c.liquidation_price, 2),
                )
                for c in report.collaterals
            ],
            debts=[
                DebtItem(
                    pool_id=d.pool_id,
                    asset_id=d.asset_id,
                    amount=d.amount,
                    amount_display=format_wad(d.amount),
                    value=d.value,
                    value_display=format_wad(d.value, 2),
                    priced_at_last_good=d.priced_at_last_good,
                )
                for d in report.debts
            ],
        )


class OperationResponse(BaseModel):
    """Result of any mutating call: snapshot, sequence and health factor."""

    subject_id: str           # pool id, or asset id for collateral operations
    owner_id: str
    operation: str
    amount: int
    amount_display: str
    position_value: int       # supply value / outstanding debt / collateral quantity
    position_value_display: str
    sequence: int
    timestamp: str            # ISO8601
    health_factor: int | None = None
    health_factor_display: str | None = None

    @classmethod
    def from_pool_receipt(
        cls, receipt: PoolReceipt, report: HealthFactorReport | None = None
    ) -> "OperationResponse":
        return cls(
            subject_id=receipt.pool_id,
            owner_id=receipt.owner_id,
            operation=receipt.operation.value,
            amount=receipt.amount,
            amount_display=format_wad(receipt.amount),
            position_value=receipt.position_value,
            position_value_display=format_wad(receipt.position_value),
            sequence=receipt.sequence,
            timestamp=ts_to_iso(receipt.timestamp),
            health_factor=report.health_factor if report else None,
            health_factor_display=hf_display(report.health_factor) if report else None,
        )

    @classmethod
    def from_collateral_receipt(
        cls, receipt: CollateralReceipt, report: HealthFactorReport | None = None
    ) -> "OperationResponse":
        return cls(
            subject_id=receipt.asset_id,
            owner_id=receipt.owner_id,
            operation=receipt.operation.value,
            amount=receipt.amount,
            amount_display=format_wad(receipt.amount),
            position_value=receipt.quantity,
            position_value_display=format_wad(receipt.quantity),
            sequence=receipt.sequence,
            timestamp=ts_to_iso(receipt.timestamp),
            health_factor=report.health_factor if report else None,
            health_factor_display=hf_display(report.health_factor) if report else None,
        )


class PoolResponse(BaseModel):
    pool_id: str
    asset_id: str
    status: str
    halt_reason: str | None
    total_supply: int
    total_supply_display: str
    total_borrow: int
    total_borrow_display: str
    reserves: int
    reserves_display: str
    available_liquidity: int
    bad_debt: int
    bad_debt_display: str
    utilization: int
    borrow_rate: int
    borrow_rate_display: str
    supply_rate: int
    supply_rate_display: str
    borrow_index: int
    supply_index: int
    last_accrual_at: str
    sequence: int

    @classmethod
    def from_pool(cls, pool: Pool) -> "PoolResponse":
        util = utilization(pool.total_borrow, pool.total_supply)
        b_rate = borrow_rate(util, pool.params.rate_curve)
        s_rate = supply_rate(util, b_rate, pool.params.rate_curve.reserve_factor)
        return cls(
            pool_id=pool.pool_id,
            asset_id=pool.asset_id,
            status=pool.status.value,
            halt_reason=pool.halt_reason,
            total_supply=pool.total_supply,
            total_supply_display=format_wad(pool.total_supply, 2),
            total_borrow=pool.total_borrow,
            total_borrow_display=format_wad(pool.total_borrow, 2),
            reserves=pool.reserves,
            reserves_display=format_wad(pool.reserves, 2),
            available_liquidity=pool.available_liquidity,
            bad_debt=pool.bad_debt,
            bad_debt_display=format_wad(pool.bad_debt, 2),
            utilization=util,
            borrow_rate=b_rate,
            borrow_rate_display=f"{format_wad(b_rate * 100, 3)}%",
            supply_rate=s_rate,
            supply_rate_display=f"{format_wad(s_rate * 100, 3)}%",
            borrow_index=pool.borrow_index,
            supply_index=pool.supply_index,
            last_accrual_at=ts_to_iso(pool.last_accrual_ts),
            sequence=pool.sequence,
        )


class LiquidationEventItem(BaseModel):
    event_id: int
    owner_id: str
    pool_id: str
    tier: str
    debt_repaid: int
    debt_repaid_display: str
    collateral_seized: dict[str, int]
    penalty: dict[str, int]
    health_factor_before: str
    health_factor_after: str
    shortfall: int
    reserves_absorbed: int
    bad_debt: int
    pool_sequence: int
    config_version: int
    created_at: str

    @classmethod
    def from_event(cls, event: LiquidationEvent) -> "LiquidationEventItem":
        return cls(
            event_id=event.event_id,
            owner_id=event.owner_id,
            pool_id=event.pool_id,
            tier=event.tier.value,
            debt_repaid=event.debt_repaid,
            debt_repaid_display=format_wad(event.debt_repaid),
            collateral_seized=dict(event.collateral_seized),
            penalty=dict(event.penalty),
            health_factor_before=hf_display(event.health_factor_before),
            health_factor_after=hf_display(event.health_factor_after),
            shortfall=event.shortfall,
            reserves_absorbed=event.reserves_absorbed,
            bad_debt=event.bad_debt,
            pool_sequence=event.pool_sequence,
            config_version=event.config_version,
            created_at=ts_to_iso(event.timestamp),
        )


class LiquidationEventPage(BaseModel):
    items: list[LiquidationEventItem]
    next_cursor: str | None
    has_more: bool


class LiquidationDecisionResponse(BaseModel):
    owner_id: str
    pool_id: str
    action: str
    tier: str | None
    health_factor_display: str
    reason: str
    event: LiquidationEventItem | None

    @classmethod
    def from_decision(cls, decision: LiquidationDecision) -> "LiquidationDecisionResponse":
        return cls(
            owner_id=decision.owner_id,
            pool_id=decision.pool_id,
            action=decision.action.value,
            tier=decision.tier.value if decision.tier else None,
            health_factor_display=hf_display(decision.health_factor),
            reason=decision.reason,
            event=LiquidationEventItem.from_event(decision.event) if decision.event else None,
        )
