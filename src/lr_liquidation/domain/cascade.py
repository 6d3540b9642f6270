"""LiquidationCascade — tier decision, cooldown bookkeeping and seizure planning.

evaluate() decides what should happen for one (owner, pool) pair and never
mutates anything. plan() sizes the seizure. mark_executed() starts the
cooldown once the engine has applied the plan through the ledger.

Decision order:
  no open debt                       -> NO_DEBT
  HF >= 1.0                          -> NONE
  debt price unavailable             -> DEFERRED_PRICE_UNAVAILABLE
  MARGIN_CALL                        -> ALERT (no cooldown, no event)
  in cooldown, not more severe       -> DEFERRED_COOLDOWN
  otherwise                          -> EXECUTED (engine executes the plan)

The engine defers an EXECUTED decision when the plan seizes nothing while
unpriced collateral is still held.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from config.settings import settings
from src.lr_common.enums import LiquidationAction, LiquidationTier
from src.lr_common.errors import InternalError
from src.lr_common.fixed_point import BPS, wad_div, wad_mul
from src.lr_config.domain.models import LiquidationTierParams
from src.lr_liquidation.domain.models import (
    LiquidationDecision,
    LiquidationPlan,
    SeizureLine,
)
from src.lr_liquidation.domain.tiers import select_tier
from src.lr_risk.domain.health_factor import CollateralValuation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cooldown:
    until: int
    severity: int


class LiquidationCascade:
    def __init__(self, cooldown_seconds: int | None = None) -> None:
        self.cooldown_seconds = (
            settings.LIQUIDATION_COOLDOWN_SECONDS if cooldown_seconds is None else cooldown_seconds
        )
        self._cooldowns: dict[tuple[str, str], _Cooldown] = {}

    def evaluate(
        self,
        owner_id: str,
        pool_id: str,
        health_factor: int,
        tiers: Sequence[LiquidationTierParams],
        now: int,
        has_debt: bool = True,
        prices_available: bool = True,
    ) -> LiquidationDecision:
        if not has_debt:
            return LiquidationDecision(owner_id, pool_id, LiquidationAction.NO_DEBT, health_factor)
        tier = select_tier(health_factor, tiers)
        if tier is None:
            return LiquidationDecision(owner_id, pool_id, LiquidationAction.NONE, health_factor)

        decision = dict(
            owner_id=owner_id,
            pool_id=pool_id,
            health_factor=health_factor,
            tier=tier.tier,
            severity=tier.severity,
            repay_bps=tier.repay_bps,
        )
        if not prices_available:
            logger.warning(
                "Liquidation deferred, price unavailable: owner=%s, pool=%s, hf=%d, tier=%s",
                owner_id, pool_id, health_factor, tier.tier.value,
            )
            return LiquidationDecision(
                action=LiquidationAction.DEFERRED_PRICE_UNAVAILABLE,
                reason="price unavailable",
                **decision,
            )
        if tier.tier == LiquidationTier.MARGIN_CALL or tier.repay_bps == 0:
            logger.warning(
                "Margin call: owner=%s, pool=%s, hf=%d", owner_id, pool_id, health_factor
            )
            return LiquidationDecision(action=LiquidationAction.ALERT, **decision)

        cooldown = self._cooldowns.get((owner_id, pool_id))
        if cooldown is not None and now < cooldown.until:
            if tier.severity <= cooldown.severity:
                logger.info(
                    "Liquidation deferred, cooldown until %d: owner=%s, pool=%s, tier=%s",
                    cooldown.until, owner_id, pool_id, tier.tier.value,
                )
                return LiquidationDecision(
                    action=LiquidationAction.DEFERRED_COOLDOWN,
                    reason=f"cooldown until {cooldown.until}",
                    **decision,
                )
            logger.warning(
                "Cooldown bypassed by more severe tier: owner=%s, pool=%s, tier=%s",
                owner_id, pool_id, tier.tier.value,
            )
        return LiquidationDecision(action=LiquidationAction.EXECUTED, **decision)

    def plan(
        self,
        decision: LiquidationDecision,
        debt: int,
        debt_price: int,
        collaterals: Sequence[CollateralValuation],
    ) -> LiquidationPlan:
        """Size repayment and seizure for an EXECUTED decision.

        Collateral is taken highest risk-adjusted value first (ties by asset id).
        Each line seizes enough to cover the remaining repay value plus that
        asset's penalty, or everything when it cannot. Unpriced collateral is
        never seized. While any is held, uncovered repay value stays on the
        position as debt; otherwise it becomes the shortfall.
        """
        if decision.tier is None:
            raise InternalError(
                f"Liquidation plan without a tier: {decision.owner_id}/{decision.pool_id}"
            )
        repay_amount = debt * decision.repay_bps // BPS
        repay_value = wad_mul(repay_amount, debt_price)
        remaining = repay_value

        lines: list[SeizureLine] = []
        unpriced = tuple(c.asset_id for c in collaterals if c.price is None and c.quantity > 0)
        ordered = sorted(collaterals, key=lambda c: (-c.risk_adjusted_value, c.asset_id))
        for col in ordered:
            if remaining == 0:
                break
            if col.price is None or col.quantity == 0 or col.price == 0:
                continue
            needed_value = remaining * (BPS + col.penalty_bps) // BPS
            needed_qty = wad_div(needed_value, col.price)
            if needed_qty <= col.quantity:
                quantity = needed_qty
                covered = remaining
            else:
                quantity = col.quantity
                covered = wad_mul(quantity, col.price) * BPS // (BPS + col.penalty_bps)
            base_qty = min(wad_div(covered, col.price), quantity)
            lines.append(SeizureLine(
                asset_id=col.asset_id,
                quantity=quantity,
                value=wad_mul(quantity, col.price),
                covered_value=covered,
                penalty_quantity=quantity - base_qty,
            ))
            remaining -= covered

        shortfall_amount = 0
        if remaining and unpriced:
            logger.warning(
                "Seizure limited to priced collateral: owner=%s, pool=%s, held=%s",
                decision.owner_id, decision.pool_id, ",".join(unpriced),
            )
            repay_value -= remaining
            repay_amount = min(wad_div(repay_value, debt_price), repay_amount)
        elif remaining:
            shortfall_amount = min(wad_div(remaining, debt_price), repay_amount)
        return LiquidationPlan(
            owner_id=decision.owner_id,
            pool_id=decision.pool_id,
            tier=decision.tier,
            severity=decision.severity,
            repay_amount=repay_amount,
            repay_value=repay_value,
            debt_price=debt_price,
            seizures=tuple(lines),
            shortfall_amount=shortfall_amount,
            health_factor_before=decision.health_factor,
            unpriced_assets=unpriced,
        )

    def mark_executed(self, owner_id: str, pool_id: str, severity: int, now: int) -> None:
        self._cooldowns[(owner_id, pool_id)] = _Cooldown(
            until=now + self.cooldown_seconds, severity=severity
        )

    def cooldown_until(self, owner_id: str, pool_id: str) -> int | None:
        cooldown = self._cooldowns.get((owner_id, pool_id))
        return None if cooldown is None else cooldown.until
