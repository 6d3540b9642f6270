"""Domain models for lr_liquidation."""

from dataclasses import dataclass

from src.lr_common.enums import LiquidationAction, LiquidationTier


@dataclass(frozen=True)
class SeizureLine:
    asset_id: str
    quantity: int           # total taken from the borrower
    value: int              # quantity * price at seizure
    covered_value: int      # debt value this line pays off
    penalty_quantity: int   # premium credited to the liquidator-reward bucket


@dataclass(frozen=True)
class LiquidationPlan:
    owner_id: str
    pool_id: str
    tier: LiquidationTier
    severity: int
    repay_amount: int       # debt units
    repay_value: int        # quote value of repay_amount
    debt_price: int
    seizures: tuple[SeizureLine, ...]
    shortfall_amount: int   # debt units not covered by seized collateral
    health_factor_before: int
    unpriced_assets: tuple[str, ...] = ()   # held collateral that could not be seized

    @property
    def seized(self) -> dict[str, int]:
        return {s.asset_id: s.quantity for s in self.seizures if s.quantity}

    @property
    def penalty_rewards(self) -> dict[str, int]:
        return {s.asset_id: s.penalty_quantity for s in self.seizures if s.penalty_quantity}


@dataclass(frozen=True)
class LiquidationEvent:
    """Immutable, append-only record of one executed liquidation."""

    event_id: int
    owner_id: str
    pool_id: str
    tier: LiquidationTier
    debt_repaid: int
    collateral_seized: tuple[tuple[str, int], ...]
    penalty: tuple[tuple[str, int], ...]
    health_factor_before: int
    health_factor_after: int
    shortfall: int
    reserves_absorbed: int
    bad_debt: int
    pool_sequence: int
    config_version: int
    timestamp: int
    unpriced_assets: tuple[str, ...] = ()   # held collateral that could not be seized


@dataclass(frozen=True)
class LiquidationDecision:
    owner_id: str
    pool_id: str
    action: LiquidationAction
    health_factor: int
    tier: LiquidationTier | None = None
    severity: int = 0
    repay_bps: int = 0
    reason: str = ""
    event: LiquidationEvent | None = None
