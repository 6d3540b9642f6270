"""Domain models for lr_pool — pure dataclasses, WAD-scaled ints throughout."""

from dataclasses import dataclass, field

from src.lr_common.enums import (
    AccrualOutcome,
    AccrualState,
    CreditTier,
    OperationType,
    PoolStatus,
)
from src.lr_common.fixed_point import WAD
from src.lr_config.domain.models import PoolParams


@dataclass
class BorrowBucket:
    """Borrow balances sharing one frozen credit discount; accrues at its own rate."""

    discount_bps: int
    index: int = WAD
    total_borrow: int = 0


@dataclass
class Pool:
    pool_id: str
    asset_id: str
    params: PoolParams
    total_supply: int = 0    # carried at current value
    reserves: int = 0
    cash: int = 0            # underlying held by the pool, reserves included
    bad_debt: int = 0        # unrecovered liquidation shortfall
    supply_index: int = WAD
    last_accrual_ts: int = 0
    status: PoolStatus = PoolStatus.ACTIVE
    accrual_state: AccrualState = AccrualState.IDLE
    halt_reason: str | None = None
    sequence: int = 0
    buckets: dict[int, BorrowBucket] = field(
        default_factory=lambda: {0: BorrowBucket(discount_bps=0)}
    )

    @property
    def borrow_index(self) -> int:
        """Undiscounted borrow index (the zero-discount bucket)."""
        return self.buckets[0].index

    @property
    def total_borrow(self) -> int:
        return sum(b.total_borrow for b in self.buckets.values())

    @property
    def available_liquidity(self) -> int:
        return max(self.cash - self.reserves, 0)

    def bucket(self, discount_bps: int) -> BorrowBucket:
        if discount_bps not in self.buckets:
            self.buckets[discount_bps] = BorrowBucket(discount_bps=discount_bps)
        return self.buckets[discount_bps]

    def next_sequence(self) -> int:
        self.sequence += 1
        return self.sequence


@dataclass
class SupplyPosition:
    pool_id: str
    owner_id: str
    principal: int = 0
    index_snapshot: int = WAD
    updated_at: int = 0

    def current_value(self, supply_index: int) -> int:
        return self.principal * supply_index // self.index_snapshot


@dataclass
class BorrowPosition:
    pool_id: str
    owner_id: str
    principal: int = 0
    index_snapshot: int = WAD
    opened_at: int = 0
    discount_bps: int = 0           # frozen at open time
    credit_tier: CreditTier = CreditTier.UNRATED
    updated_at: int = 0

    @property
    def is_open(self) -> bool:
        return self.principal > 0

    def current_debt(self, bucket_index: int) -> int:
        return self.principal * bucket_index // self.index_snapshot


@dataclass
class CollateralDeposit:
    owner_id: str
    asset_id: str
    quantity: int = 0
    updated_at: int = 0


@dataclass(frozen=True)
class AccrualResult:
    pool_id: str
    outcome: AccrualOutcome
    timestamp: int
    elapsed: int = 0
    utilization: int = 0
    borrow_rate: int = 0       # undiscounted
    interest: int = 0
    reserve_share: int = 0
    supplier_share: int = 0
    borrow_index: int = WAD
    supply_index: int = WAD
    sequence: int = 0


@dataclass(frozen=True)
class PoolReceipt:
    """Outcome of one pool-scoped mutation."""

    pool_id: str
    owner_id: str
    operation: OperationType
    amount: int
    sequence: int
    timestamp: int
    supply_position: SupplyPosition | None = None
    borrow_position: BorrowPosition | None = None
    position_value: int = 0  # supply value or outstanding debt after the operation


@dataclass(frozen=True)
class CollateralReceipt:
    owner_id: str
    asset_id: str
    operation: OperationType
    amount: int
    quantity: int          # deposit quantity after the operation
    sequence: int          # per-asset collateral sequence
    timestamp: int


@dataclass(frozen=True)
class LiquidationApplied:
    """Ledger-side effects of one executed liquidation."""

    pool_id: str
    owner_id: str
    debt_repaid: int
    shortfall: int
    reserves_absorbed: int
    bad_debt: int
    seized: dict[str, int]
    penalty_rewards: dict[str, int]
    debt_after: int
    sequence: int
