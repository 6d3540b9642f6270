"""PoolLedger — the only writer of pool aggregates and position records.

Every mutating method follows accrue-then-apply: the pool is accrued to
`now` (an idempotent no-op when already current), all preconditions are
checked, and only then is state changed. A failed precondition leaves the
pool exactly as the accrual left it.

Locking is the caller's job (LendingEngine holds the per-pool lock).
"""

import logging
from dataclasses import replace

from config.settings import settings
from src.lr_common.enums import AccrualOutcome, CreditTier, OperationType, PoolStatus
from src.lr_common.errors import (
    AccrualOutOfOrderError,
    BorrowNotEnabledError,
    IndexMonotonicityError,
    InsufficientCollateralError,
    InsufficientLiquidityError,
    InsufficientSupplyBalanceError,
    InternalError,
    InvalidAmountError,
    PoolHaltedError,
    PoolNotFoundError,
    PositionNotFoundError,
)
from src.lr_config.domain.models import PoolParams
from src.lr_pool.domain import accrual
from src.lr_pool.domain.invariants import verify_pool_invariants
from src.lr_pool.domain.models import (
    AccrualResult,
    BorrowPosition,
    CollateralDeposit,
    CollateralReceipt,
    LiquidationApplied,
    Pool,
    PoolReceipt,
    SupplyPosition,
)
from src.lr_pool.domain.repository import PositionStoreProtocol
from src.lr_risk.rules.pool_status import check_pool_active

logger = logging.getLogger(__name__)


class PoolLedger:
    def __init__(self, store: PositionStoreProtocol) -> None:
        self._store = store
        self._collateral_sequences: dict[str, int] = {}
        self._liquidator_rewards: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------

    def create_pool(self, params: PoolParams, now: int) -> Pool:
        existing = self._store.get_pool(params.pool_id)
        if existing is not None:
            return existing
        pool = Pool(
            pool_id=params.pool_id,
            asset_id=params.asset_id,
            params=params,
            last_accrual_ts=now,
        )
        self._store.save_pool(pool)
        logger.info("Pool created: pool=%s, asset=%s, ts=%d", pool.pool_id, pool.asset_id, now)
        return pool

    def refresh_params(self, pool_id: str, params: PoolParams) -> Pool:
        """Adopt the pool parameters of the current config snapshot.

        Applied before the next accrual, so the interval being accrued uses
        the new curve.
        """
        pool = self.get_pool(pool_id)
        if params == pool.params:
            return pool
        if params.pool_id != pool_id or params.asset_id != pool.asset_id:
            raise InternalError(
                f"Config for pool {pool_id} names {params.pool_id}/{params.asset_id}, "
                f"pool holds {pool.asset_id}"
            )
        pool.params = params
        logger.info(
            "Pool params updated: pool=%s, borrow_enabled=%s, base_rate=%d",
            pool_id, params.borrow_enabled, params.rate_curve.base_rate,
        )
        return pool

    def get_pool(self, pool_id: str) -> Pool:
        pool = self._store.get_pool(pool_id)
        if pool is None:
            raise PoolNotFoundError(pool_id)
        return pool

    def list_pools(self) -> list[Pool]:
        return self._store.list_pools()

    def pause_pool(self, pool_id: str) -> Pool:
        pool = self.get_pool(pool_id)
        if pool.status == PoolStatus.HALTED:
            raise PoolHaltedError(pool_id, pool.halt_reason or "")
        pool.status = PoolStatus.PAUSED
        logger.info("Pool paused: pool=%s", pool_id)
        return pool

    def resume_pool(self, pool_id: str) -> Pool:
        pool = self.get_pool(pool_id)
        if pool.status == PoolStatus.HALTED:
            raise PoolHaltedError(pool_id, pool.halt_reason or "")
        pool.status = PoolStatus.ACTIVE
        logger.info("Pool resumed: pool=%s", pool_id)
        return pool

    def clear_halt(self, pool_id: str) -> Pool:
        """Operator intervention after a fatal data-integrity signal."""
        pool = self.get_pool(pool_id)
        if pool.status != PoolStatus.HALTED:
            return pool
        logger.warning(
            "Pool halt cleared by operator: pool=%s, reason was: %s", pool_id, pool.halt_reason
        )
        pool.status = PoolStatus.ACTIVE
        pool.halt_reason = None
        return pool

    def _halt(self, pool: Pool, reason: str) -> None:
        pool.status = PoolStatus.HALTED
        pool.halt_reason = reason
        logger.critical("Pool HALTED: pool=%s, reason=%s", pool.pool_id, reason)

    def _after_mutation(self, pool: Pool) -> None:
        verify_pool_invariants(pool, settings.INVARIANT_TOLERANCE_WEI)

    # ------------------------------------------------------------------
    # Accrual
    # ------------------------------------------------------------------

    def accrue(self, pool_id: str, now: int) -> AccrualResult:
        """Accrue `pool_id` to `now`.

        A timestamp regression or an index decrease halts the pool and raises.
        Paused pools still accrue; halted pools refuse.
        """
        pool = self.get_pool(pool_id)
        if pool.status == PoolStatus.HALTED:
            raise PoolHaltedError(pool_id, pool.halt_reason or "")
        try:
            result = accrual.accrue(pool, now)
        except IndexMonotonicityError as e:
            self._halt(pool, e.message)
            raise
        if result.outcome == AccrualOutcome.REGRESSION:
            err = AccrualOutOfOrderError(pool_id, pool.last_accrual_ts, now)
            self._halt(pool, err.message)
            raise err
        if result.outcome == AccrualOutcome.ADVANCED:
            seq = pool.next_sequence()
            self._after_mutation(pool)
            return replace(result, sequence=seq)
        return result

    # ------------------------------------------------------------------
    # Supply side
    # ------------------------------------------------------------------

    def supply(self, pool_id: str, owner_id: str, amount: int, now: int) -> PoolReceipt:
        if amount <= 0:
            raise InvalidAmountError(amount)
        pool = self.get_pool(pool_id)
        check_pool_active(pool)
        self.accrue(pool_id, now)

        position = self._store.get_supply(pool_id, owner_id) or SupplyPosition(
            pool_id=pool_id, owner_id=owner_id
        )
        value = position.current_value(pool.supply_index) + amount
        position.principal = value
        position.index_snapshot = pool.supply_index
        position.updated_at = now
        self._store.save_supply(position)

        pool.total_supply += amount
        pool.cash += amount
        seq = pool.next_sequence()
        self._after_mutation(pool)
        logger.debug("Supply: pool=%s, owner=%s, amount=%d, seq=%d", pool_id, owner_id, amount, seq)
        return PoolReceipt(
            pool_id=pool_id,
            owner_id=owner_id,
            operation=OperationType.SUPPLY,
            amount=amount,
            sequence=seq,
            timestamp=now,
            supply_position=replace(position),
            position_value=value,
        )

    def withdraw(self, pool_id: str, owner_id: str, amount: int, now: int) -> PoolReceipt:
        if amount <= 0:
            raise InvalidAmountError(amount)
        pool = self.get_pool(pool_id)
        check_pool_active(pool)
        self.accrue(pool_id, now)

        position = self._store.get_supply(pool_id, owner_id)
        if position is None:
            raise PositionNotFoundError(f"supply {pool_id}/{owner_id}")
        value = position.current_value(pool.supply_index)
        if amount > value:
            raise InsufficientSupplyBalanceError(amount, value)
        if amount > pool.available_liquidity:
            raise InsufficientLiquidityError(pool_id, amount, pool.available_liquidity)

        position.principal = value - amount
        position.index_snapshot = pool.supply_index
        position.updated_at = now
        pool.total_supply = max(pool.total_supply - amount, 0)
        pool.cash -= amount
        seq = pool.next_sequence()
        self._after_mutation(pool)
        logger.debug("Withdraw: pool=%s, owner=%s, amount=%d, seq=%d", pool_id, owner_id, amount, seq)
        return PoolReceipt(
            pool_id=pool_id,
            owner_id=owner_id,
            operation=OperationType.WITHDRAW,
            amount=amount,
            sequence=seq,
            timestamp=now,
            supply_position=replace(position),
            position_value=position.principal,
        )

    # ------------------------------------------------------------------
    # Borrow side
    # ------------------------------------------------------------------

    def check_borrowable(self, pool_id: str, amount: int) -> Pool:
        """Pool-level borrow preconditions, no mutation."""
        if amount <= 0:
            raise InvalidAmountError(amount)
        pool = self.get_pool(pool_id)
        check_pool_active(pool)
        if not pool.params.borrow_enabled:
            raise BorrowNotEnabledError(pool_id)
        if amount > pool.available_liquidity:
            raise InsufficientLiquidityError(pool_id, amount, pool.available_liquidity)
        return pool

    def borrow(
        self,
        pool_id: str,
        owner_id: str,
        amount: int,
        now: int,
        credit_tier: CreditTier = CreditTier.UNRATED,
        discount_bps: int = 0,
    ) -> PoolReceipt:
        """Open or grow a borrow position.

        The credit tier and discount apply only when the position is opened;
        an open position keeps the terms it was opened with.
        """
        self.accrue(pool_id, now)
        pool = self.check_borrowable(pool_id, amount)

        position = self._store.get_borrow(pool_id, owner_id)
        if position is None or not position.is_open:
            position = BorrowPosition(
                pool_id=pool_id,
                owner_id=owner_id,
                opened_at=now,
                discount_bps=discount_bps,
                credit_tier=credit_tier,
            )
        bucket = pool.bucket(position.discount_bps)
        debt = (
            position.current_debt(bucket.index) if position.is_open else 0
        ) + amount
        position.principal = debt
        position.index_snapshot = bucket.index
        position.updated_at = now
        self._store.save_borrow(position)

        bucket.total_borrow += amount
        pool.cash -= amount
        seq = pool.next_sequence()
        self._after_mutation(pool)
        logger.debug(
            "Borrow: pool=%s, owner=%s, amount=%d, discount_bps=%d, seq=%d",
            pool_id, owner_id, amount, position.discount_bps, seq,
        )
        return PoolReceipt(
            pool_id=pool_id,
            owner_id=owner_id,
            operation=OperationType.BORROW,
            amount=amount,
            sequence=seq,
            timestamp=now,
            borrow_position=replace(position),
            position_value=debt,
        )

    def repay(self, pool_id: str, owner_id: str, amount: int, now: int) -> PoolReceipt:
        """Repay up to the outstanding debt. Overpayment is capped, not kept."""
        if amount <= 0:
            raise InvalidAmountError(amount)
        pool = self.get_pool(pool_id)
        check_pool_active(pool)
        self.accrue(pool_id, now)

        position = self._store.get_borrow(pool_id, owner_id)
        if position is None or not position.is_open:
            raise PositionNotFoundError(f"borrow {pool_id}/{owner_id}")
        bucket = pool.bucket(position.discount_bps)
        debt = position.current_debt(bucket.index)
        paid = min(amount, debt)

        position.principal = debt - paid
        position.index_snapshot = bucket.index
        position.updated_at = now
        bucket.total_borrow = max(bucket.total_borrow - paid, 0)
        pool.cash += paid
        seq = pool.next_sequence()
        self._after_mutation(pool)
        logger.debug("Repay: pool=%s, owner=%s, paid=%d, seq=%d", pool_id, owner_id, paid, seq)
        return PoolReceipt(
            pool_id=pool_id,
            owner_id=owner_id,
            operation=OperationType.REPAY,
            amount=paid,
            sequence=seq,
            timestamp=now,
            borrow_position=replace(position),
            position_value=position.principal,
        )

    def current_debt(self, pool_id: str, owner_id: str) -> int:
        position = self._store.get_borrow(pool_id, owner_id)
        if position is None or not position.is_open:
            return 0
        pool = self.get_pool(pool_id)
        return position.current_debt(pool.bucket(position.discount_bps).index)

    def current_supply_value(self, pool_id: str, owner_id: str) -> int:
        position = self._store.get_supply(pool_id, owner_id)
        if position is None:
            return 0
        return position.current_value(self.get_pool(pool_id).supply_index)

    def get_borrow_position(self, pool_id: str, owner_id: str) -> BorrowPosition | None:
        return self._store.get_borrow(pool_id, owner_id)

    def get_supply_position(self, pool_id: str, owner_id: str) -> SupplyPosition | None:
        return self._store.get_supply(pool_id, owner_id)

    def open_borrow_positions(
        self, pool_id: str | None = None, owner_id: str | None = None
    ) -> list[BorrowPosition]:
        return [p for p in self._store.list_borrows(pool_id, owner_id) if p.is_open]

    # ------------------------------------------------------------------
    # Collateral
    # ------------------------------------------------------------------

    def _next_collateral_sequence(self, asset_id: str) -> int:
        seq = self._collateral_sequences.get(asset_id, 0) + 1
        self._collateral_sequences[asset_id] = seq
        return seq

    def collateral_of(self, owner_id: str) -> list[CollateralDeposit]:
        return [d for d in self._store.list_collateral(owner_id) if d.quantity > 0]

    def collateral_quantity(self, owner_id: str, asset_id: str) -> int:
        deposit = self._store.get_collateral(owner_id, asset_id)
        return 0 if deposit is None else deposit.quantity

    def deposit_collateral(
        self, owner_id: str, asset_id: str, quantity: int, now: int
    ) -> CollateralReceipt:
        if quantity <= 0:
            raise InvalidAmountError(quantity)
        deposit = self._store.get_collateral(owner_id, asset_id) or CollateralDeposit(
            owner_id=owner_id, asset_id=asset_id
        )
        deposit.quantity += quantity
        deposit.updated_at = now
        self._store.save_collateral(deposit)
        seq = self._next_collateral_sequence(asset_id)
        logger.debug("Collateral in: owner=%s, asset=%s, qty=%d", owner_id, asset_id, quantity)
        return CollateralReceipt(
            owner_id=owner_id,
            asset_id=asset_id,
            operation=OperationType.ADD_COLLATERAL,
            amount=quantity,
            quantity=deposit.quantity,
            sequence=seq,
            timestamp=now,
        )

    def check_collateral_withdrawable(self, owner_id: str, asset_id: str, quantity: int) -> None:
        if quantity <= 0:
            raise InvalidAmountError(quantity)
        held = self.collateral_quantity(owner_id, asset_id)
        if held == 0:
            raise PositionNotFoundError(f"collateral {owner_id}/{asset_id}")
        if quantity > held:
            raise InsufficientCollateralError(quantity, held)

    def withdraw_collateral(
        self, owner_id: str, asset_id: str, quantity: int, now: int
    ) -> CollateralReceipt:
        self.check_collateral_withdrawable(owner_id, asset_id, quantity)
        deposit = self._store.get_collateral(owner_id, asset_id)
        if deposit is None:
            raise InternalError(f"Collateral deposit vanished: {owner_id}/{asset_id}")
        deposit.quantity -= quantity
        deposit.updated_at = now
        seq = self._next_collateral_sequence(asset_id)
        logger.debug("Collateral out: owner=%s, asset=%s, qty=%d", owner_id, asset_id, quantity)
        return CollateralReceipt(
            owner_id=owner_id,
            asset_id=asset_id,
            operation=OperationType.REMOVE_COLLATERAL,
            amount=quantity,
            quantity=deposit.quantity,
            sequence=seq,
            timestamp=now,
        )

    # ------------------------------------------------------------------
    # Liquidation
    # ------------------------------------------------------------------

    def apply_liquidation(
        self,
        pool_id: str,
        owner_id: str,
        debt_repaid: int,
        shortfall: int,
        seized: dict[str, int],
        penalty_rewards: dict[str, int],
        now: int,
    ) -> LiquidationApplied:
        """Apply an executed liquidation plan to the pool and the borrower.

        Pool receives debt_repaid - shortfall. Shortfall is charged to
        reserves first; what reserves cannot cover is recorded as bad debt.
        Supplier balances are never reduced here.
        """
        pool = self.get_pool(pool_id)
        if pool.status == PoolStatus.HALTED:
            raise PoolHaltedError(pool_id, pool.halt_reason or "")
        position = self._store.get_borrow(pool_id, owner_id)
        if position is None or not position.is_open:
            raise PositionNotFoundError(f"borrow {pool_id}/{owner_id}")
        bucket = pool.bucket(position.discount_bps)
        debt = position.current_debt(bucket.index)
        repaid = min(debt_repaid, debt)
        shortfall = min(shortfall, repaid)
        for asset_id, qty in seized.items():
            if qty > self.collateral_quantity(owner_id, asset_id):
                raise InsufficientCollateralError(qty, self.collateral_quantity(owner_id, asset_id))

        position.principal = debt - repaid
        position.index_snapshot = bucket.index
        position.updated_at = now
        bucket.total_borrow = max(bucket.total_borrow - repaid, 0)

        for asset_id, qty in seized.items():
            deposit = self._store.get_collateral(owner_id, asset_id)
            if deposit is None:
                raise InternalError(f"Collateral deposit vanished: {owner_id}/{asset_id}")
            deposit.quantity -= qty
            deposit.updated_at = now
            self._next_collateral_sequence(asset_id)
        for asset_id, qty in penalty_rewards.items():
            self._liquidator_rewards[asset_id] = self._liquidator_rewards.get(asset_id, 0) + qty

        absorbed = min(shortfall, pool.reserves)
        bad_debt = shortfall - absorbed
        pool.cash += repaid - shortfall
        pool.reserves -= absorbed
        pool.bad_debt += bad_debt
        seq = pool.next_sequence()
        self._after_mutation(pool)

        if bad_debt:
            logger.error(
                "Bad debt recorded: pool=%s, owner=%s, amount=%d, pool total=%d",
                pool_id, owner_id, bad_debt, pool.bad_debt,
            )
        elif absorbed:
            logger.warning(
                "Liquidation shortfall absorbed by reserves: pool=%s, owner=%s, amount=%d",
                pool_id, owner_id, absorbed,
            )
        return LiquidationApplied(
            pool_id=pool_id,
            owner_id=owner_id,
            debt_repaid=repaid,
            shortfall=shortfall,
            reserves_absorbed=absorbed,
            bad_debt=bad_debt,
            seized=dict(seized),
            penalty_rewards=dict(penalty_rewards),
            debt_after=position.principal,
            sequence=seq,
        )

    def liquidator_rewards(self) -> dict[str, int]:
        return dict(self._liquidator_rewards)

    def bad_debt_report(self) -> dict[str, int]:
        return {p.pool_id: p.bad_debt for p in self._store.list_pools() if p.bad_debt}
