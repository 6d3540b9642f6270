"""LendingEngine — stateful orchestrator: locks, accrue-then-apply, risk checks.

Lock discipline:
  - pool-scoped calls (accrue, supply, withdraw, pause...) take the pool lock
  - owner-scoped calls (borrow, repay, collateral, HF, liquidation) take the
    owner lock first, then every involved pool lock in sorted order
  - price ingestion takes the asset lock
No call takes a pool lock before an owner lock.

`now` is optional everywhere; when omitted it is read from the clock after
the locks are held, so timestamps seen by one pool never go backwards.
"""

import asyncio
import copy
import logging
from collections import defaultdict
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import replace

from config.settings import settings
from src.lr_common.datetime_utils import unix_now
from src.lr_common.enums import (
    BreakerState,
    CreditTier,
    LiquidationAction,
    RejectReason,
)
from src.lr_common.errors import (
    AppError,
    CircuitBreakerOpenError,
    InvalidObservationError,
    PoolNotFoundError,
    PriceUnavailableError,
    StaleOracleError,
    UnknownAssetError,
)
from src.lr_config.domain.models import ConfigSnapshot, CreditAssessment
from src.lr_config.domain.provider import ConfigProviderProtocol
from src.lr_liquidation.domain.cascade import LiquidationCascade
from src.lr_liquidation.domain.event_log import LiquidationEventLog
from src.lr_liquidation.domain.models import LiquidationDecision, LiquidationEvent
from src.lr_oracle.domain.gate import OracleGate
from src.lr_oracle.domain.models import IngestResult, PriceObservation, PriceRead
from src.lr_pool.domain.ledger import PoolLedger
from src.lr_pool.domain.models import AccrualResult, CollateralReceipt, Pool, PoolReceipt
from src.lr_pool.domain.repository import PositionStoreProtocol
from src.lr_pool.infrastructure.memory_store import InMemoryPositionStore
from src.lr_rates.domain.credit_pricer import assess, resolve_tier
from src.lr_risk.domain.health_factor import (
    HF_INFINITY,
    HealthFactorReport,
    compute_health_report,
)
from src.lr_risk.rules.borrow_capacity import check_borrow_capacity
from src.lr_risk.rules.collateral_eligibility import check_collateral_enabled
from src.lr_risk.rules.price_availability import check_prices_available

logger = logging.getLogger(__name__)


class LendingEngine:
    def __init__(
        self,
        config: ConfigProviderProtocol,
        store: PositionStoreProtocol | None = None,
        clock: Callable[[], int] | None = None,
        cascade: LiquidationCascade | None = None,
    ) -> None:
        self._config = config
        self._clock = clock or unix_now
        self.ledger = PoolLedger(store or InMemoryPositionStore())
        self.oracle = OracleGate(lambda asset_id: self._config.snapshot().oracle_params(asset_id))
        self.cascade = cascade or LiquidationCascade()
        self.events = LiquidationEventLog()
        self._pool_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._owner_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._asset_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _now(self, now: int | None) -> int:
        return self._clock() if now is None else now

    @asynccontextmanager
    async def _owner_scope(
        self, owner_id: str, extra_pools: Iterable[str] = ()
    ) -> AsyncIterator[list[str]]:
        """Owner lock, then the locks of every pool the owner borrows from (sorted)."""
        async with self._owner_locks[owner_id]:
            pool_ids = sorted(
                {p.pool_id for p in self.ledger.open_borrow_positions(owner_id=owner_id)}
                | set(extra_pools)
            )
            async with AsyncExitStack() as stack:
                for pool_id in pool_ids:
                    await stack.enter_async_context(self._pool_locks[pool_id])
                yield pool_ids

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------

    def bootstrap_pools(self, now: int | None = None) -> list[Pool]:
        """Create a pool for every pool in the current config snapshot."""
        ts = self._now(now)
        return [
            self.ledger.create_pool(params, ts)
            for params in self._config.snapshot().pools.values()
        ]

    async def create_pool(self, pool_id: str, now: int | None = None) -> Pool:
        async with self._pool_locks[pool_id]:
            params = self._config.get_pool_params(pool_id)
            return self.ledger.create_pool(params, self._now(now))

    def get_pool(self, pool_id: str) -> Pool:
        return copy.deepcopy(self.ledger.get_pool(pool_id))

    def list_pools(self) -> list[Pool]:
        return self.ledger.list_pools()

    async def accrue_pool(self, pool_id: str, now: int | None = None) -> AccrualResult:
        async with self._pool_locks[pool_id]:
            self._sync_params(pool_id)
            return self.ledger.accrue(pool_id, self._now(now))

    async def accrue_all(self, now: int | None = None) -> list[AccrualResult]:
        """Accrue every pool concurrently. Failing pools are logged and skipped."""
        pool_ids = [p.pool_id for p in self.ledger.list_pools()]
        outcomes = await asyncio.gather(
            *(self.accrue_pool(pool_id, now) for pool_id in pool_ids),
            return_exceptions=True,
        )
        results: list[AccrualResult] = []
        for pool_id, outcome in zip(pool_ids, outcomes):
            if isinstance(outcome, AppError):
                logger.error("Accrual failed: pool=%s, code=%d, %s",
                             pool_id, outcome.code, outcome.message)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append(outcome)
        return results

    async def pause_pool(self, pool_id: str) -> Pool:
        async with self._pool_locks[pool_id]:
            return copy.deepcopy(self.ledger.pause_pool(pool_id))

    async def resume_pool(self, pool_id: str) -> Pool:
        async with self._pool_locks[pool_id]:
            return copy.deepcopy(self.ledger.resume_pool(pool_id))

    async def clear_pool_halt(self, pool_id: str) -> Pool:
        async with self._pool_locks[pool_id]:
            return copy.deepcopy(self.ledger.clear_halt(pool_id))

    def bad_debt_report(self) -> dict[str, int]:
        return self.ledger.bad_debt_report()

    def liquidator_rewards(self) -> dict[str, int]:
        return self.ledger.liquidator_rewards()

    # ------------------------------------------------------------------
    # Supply side (pool lock only)
    # ------------------------------------------------------------------

    async def supply(
        self, pool_id: str, owner_id: str, amount: int, now: int | None = None
    ) -> PoolReceipt:
        async with self._pool_locks[pool_id]:
            self._sync_params(pool_id)
            return self.ledger.supply(pool_id, owner_id, amount, self._now(now))

    async def withdraw(
        self, pool_id: str, owner_id: str, amount: int, now: int | None = None
    ) -> PoolReceipt:
        async with self._pool_locks[pool_id]:
            self._sync_params(pool_id)
            return self.ledger.withdraw(pool_id, owner_id, amount, self._now(now))

    # ------------------------------------------------------------------
    # Borrow side (owner scope)
    # ------------------------------------------------------------------

    async def borrow(
        self, pool_id: str, owner_id: str, amount: int, now: int | None = None
    ) -> tuple[PoolReceipt, HealthFactorReport]:
        async with self._owner_scope(owner_id, [pool_id]) as pool_ids:
            ts = self._now(now)
            self._accrue_pools(pool_ids, ts)
            snapshot = self._config.snapshot()
            pool = self.ledger.check_borrowable(pool_id, amount)

            existing = self.ledger.get_borrow_position(pool_id, owner_id)
            tier = self._current_tier(owner_id, ts)
            if existing is not None and existing.is_open:
                position_tier, discount_bps = existing.credit_tier, existing.discount_bps
            else:
                position_tier = tier
                discount_bps = snapshot.credit_tier_params(tier).discount_bps

            prices = self._read_prices(self._assets_of(owner_id, [pool.asset_id]), ts)
            check_prices_available([prices[pool.asset_id]], self._max_staleness(snapshot, prices))
            check_prices_available(
                [prices[d.asset_id] for d in self.ledger.collateral_of(owner_id)],
                self._max_staleness(snapshot, prices),
            )
            projected = self._build_report(
                owner_id, snapshot, prices, tier, ts, debt_delta=(pool_id, amount)
            )
            check_borrow_capacity(projected, settings.MIN_BORROW_HEALTH_FACTOR)

            receipt = self.ledger.borrow(
                pool_id, owner_id, amount, ts, credit_tier=position_tier, discount_bps=discount_bps
            )
            report = self._build_report(owner_id, snapshot, prices, tier, ts)
            logger.info(
                "Borrow accepted: pool=%s, owner=%s, amount=%d, hf=%d, seq=%d",
                pool_id, owner_id, amount, report.health_factor, receipt.sequence,
            )
            return receipt, report

    async def repay(
        self, pool_id: str, owner_id: str, amount: int, now: int | None = None
    ) -> tuple[PoolReceipt, HealthFactorReport | None]:
        async with self._owner_scope(owner_id, [pool_id]) as pool_ids:
            ts = self._now(now)
            self._accrue_pools(pool_ids, ts)
            receipt = self.ledger.repay(pool_id, owner_id, amount, ts)
            return receipt, self._report_after_mutation(owner_id, ts)

    # ------------------------------------------------------------------
    # Collateral (owner scope)
    # ------------------------------------------------------------------

    async def add_collateral(
        self, owner_id: str, asset_id: str, quantity: int, now: int | None = None
    ) -> tuple[CollateralReceipt, HealthFactorReport | None]:
        async with self._owner_scope(owner_id) as pool_ids:
            ts = self._now(now)
            check_collateral_enabled(self._config.snapshot(), asset_id)
            self._accrue_pools(pool_ids, ts)
            receipt = self.ledger.deposit_collateral(owner_id, asset_id, quantity, ts)
            return receipt, self._report_after_mutation(owner_id, ts)

    async def remove_collateral(
        self, owner_id: str, asset_id: str, quantity: int, now: int | None = None
    ) -> tuple[CollateralReceipt, HealthFactorReport | None]:
        async with self._owner_scope(owner_id) as pool_ids:
            ts = self._now(now)
            self.ledger.check_collateral_withdrawable(owner_id, asset_id, quantity)
            self._accrue_pools(pool_ids, ts)
            if pool_ids:
                snapshot = self._config.snapshot()
                tier = self._current_tier(owner_id, ts)
                prices = self._read_prices(self._assets_of(owner_id), ts)
                check_prices_available(
                    [prices[d.asset_id] for d in self.ledger.collateral_of(owner_id)],
                    self._max_staleness(snapshot, prices),
                )
                projected = self._build_report(
                    owner_id, snapshot, prices, tier, ts, collateral_delta=(asset_id, -quantity)
                )
                check_borrow_capacity(projected, settings.MIN_BORROW_HEALTH_FACTOR)
            receipt = self.ledger.withdraw_collateral(owner_id, asset_id, quantity, ts)
            return receipt, self._report_after_mutation(owner_id, ts)

    async def assess_credit(
        self, owner_id: str, score: int, now: int | None = None
    ) -> CreditAssessment:
        """Record a new credit score. Open positions keep their frozen terms."""
        async with self._owner_locks[owner_id]:
            ts = self._now(now)
            assessment = assess(
                owner_id,
                score,
                ts,
                self._config.snapshot().credit_tiers,
                self._config.get_credit_assessment(owner_id),
                settings.CREDIT_DOWNGRADE_GRACE_SECONDS,
            )
            self._config.set_credit_assessment(assessment)
            logger.info("Credit assessed: owner=%s, score=%d, tier=%s",
                        owner_id, score, assessment.tier.value)
            return assessment

    async def get_health_factor(
        self, owner_id: str, now: int | None = None
    ) -> HealthFactorReport:
        async with self._owner_scope(owner_id) as pool_ids:
            ts = self._now(now)
            self._accrue_pools(pool_ids, ts)
            return self._report_now(owner_id, ts)

    # ------------------------------------------------------------------
    # Oracle (asset lock)
    # ------------------------------------------------------------------

    async def submit_price_observation(
        self,
        asset_id: str,
        price: int,
        confidence_bps: int,
        source_ts: int,
        now: int | None = None,
    ) -> IngestResult:
        """Gate one observation. Rejections are raised after being recorded.

        STALE -> StaleOracleError; DEVIATION / BREAKER_OPEN -> CircuitBreakerOpenError;
        anything else -> InvalidObservationError.
        """
        snapshot = self._config.snapshot()
        if not snapshot.is_known_asset(asset_id):
            raise UnknownAssetError(asset_id)
        async with self._asset_locks[asset_id]:
            ts = self._now(now)
            observation = PriceObservation(
                asset_id=asset_id,
                price=price,
                confidence_bps=confidence_bps,
                source_ts=source_ts,
                ingested_at=ts,
            )
            result = self.oracle.ingest(observation, ts)
        if result.accepted:
            return result
        if result.reason == RejectReason.STALE:
            raise StaleOracleError(
                asset_id,
                observation.staleness(ts),
                snapshot.oracle_params(asset_id).max_staleness_seconds,
            )
        if result.reason in (RejectReason.DEVIATION, RejectReason.BREAKER_OPEN):
            raise CircuitBreakerOpenError(asset_id, result.detail)
        raise InvalidObservationError(asset_id, result.detail)

    async def reset_circuit_breaker(
        self, asset_id: str, clear_history: bool = False
    ) -> BreakerState:
        async with self._asset_locks[asset_id]:
            return self.oracle.manual_reset(asset_id, clear_history=clear_history)

    def read_price(self, asset_id: str, now: int | None = None) -> PriceRead:
        return self.oracle.read_price(asset_id, self._now(now))

    # ------------------------------------------------------------------
    # Liquidation (owner scope)
    # ------------------------------------------------------------------

    def list_borrower_pairs(self) -> list[tuple[str, str]]:
        return [(p.owner_id, p.pool_id) for p in self.ledger.open_borrow_positions()]

    async def evaluate_liquidation(
        self, owner_id: str, pool_id: str, now: int | None = None
    ) -> LiquidationDecision:
        """Evaluate one (owner, pool) pair and execute the tier action if due.

        HF computation, seizure and repayment happen under the same locks, so
        no other mutation can interleave between decision and execution.

        Only the debt price has to be usable. Unpriced collateral counts as zero
        and is left with the borrower; the plan seizes priced collateral only.
        """
        async with self._owner_scope(owner_id, [pool_id]) as pool_ids:
            ts = self._now(now)
            self._accrue_pools(pool_ids, ts)
            snapshot = self._config.snapshot()
            debt = self.ledger.current_debt(pool_id, owner_id)
            if debt == 0:
                return LiquidationDecision(owner_id, pool_id, LiquidationAction.NO_DEBT, HF_INFINITY)

            pool = self.ledger.get_pool(pool_id)
            tier = self._current_tier(owner_id, ts)
            prices = self._read_prices(self._assets_of(owner_id, [pool.asset_id]), ts)
            try:
                report = self._build_report(owner_id, snapshot, prices, tier, ts)
            except PriceUnavailableError:
                logger.warning("Liquidation deferred, debt unpriceable: owner=%s, pool=%s",
                               owner_id, pool_id)
                return LiquidationDecision(
                    owner_id, pool_id, LiquidationAction.DEFERRED_PRICE_UNAVAILABLE, 0,
                    reason="debt asset has no price",
                )

            debt_read = prices[pool.asset_id]
            decision = self.cascade.evaluate(
                owner_id,
                pool_id,
                report.health_factor,
                snapshot.liquidation_tiers,
                ts,
                has_debt=True,
                prices_available=debt_read.usable,
            )
            if decision.action != LiquidationAction.EXECUTED:
                return decision

            plan = self.cascade.plan(decision, debt, debt_read.price or 0, report.collaterals)
            if plan.repay_amount == 0 and plan.unpriced_assets:
                logger.warning(
                    "Liquidation deferred, no priced collateral: owner=%s, pool=%s, unpriced=%s",
                    owner_id, pool_id, ",".join(plan.unpriced_assets),
                )
                return replace(
                    decision,
                    action=LiquidationAction.DEFERRED_PRICE_UNAVAILABLE,
                    reason=f"collateral unpriced: {', '.join(plan.unpriced_assets)}",
                )
            applied = self.ledger.apply_liquidation(
                pool_id,
                owner_id,
                plan.repay_amount,
                plan.shortfall_amount,
                plan.seized,
                plan.penalty_rewards,
                ts,
            )
            self.cascade.mark_executed(owner_id, pool_id, plan.severity, ts)
            after = self._build_report(owner_id, snapshot, prices, tier, ts)
            event = self.events.append(LiquidationEvent(
                event_id=0,
                owner_id=owner_id,
                pool_id=pool_id,
                tier=plan.tier,
                debt_repaid=applied.debt_repaid,
                collateral_seized=tuple(sorted(applied.seized.items())),
                penalty=tuple(sorted(applied.penalty_rewards.items())),
                health_factor_before=report.health_factor,
                health_factor_after=after.health_factor,
                shortfall=applied.shortfall,
                reserves_absorbed=applied.reserves_absorbed,
                bad_debt=applied.bad_debt,
                pool_sequence=applied.sequence,
                config_version=snapshot.version,
                timestamp=ts,
            ))
            logger.warning(
                "Liquidation executed: event=%d, owner=%s, pool=%s, tier=%s, repaid=%d, "
                "hf %d -> %d",
                event.event_id, owner_id, pool_id, plan.tier.value, applied.debt_repaid,
                report.health_factor, after.health_factor,
            )
            return replace(decision, event=event)

    def list_liquidation_events(
        self,
        owner_id: str | None = None,
        pool_id: str | None = None,
        before_id: int | None = None,
        limit: int = 20,
    ) -> tuple[list[LiquidationEvent], bool]:
        return self.events.query(owner_id, pool_id, before_id, limit)

    # ------------------------------------------------------------------
    # Internals (callers hold the relevant locks)
    # ------------------------------------------------------------------

    def _accrue_pools(self, pool_ids: Iterable[str], now: int) -> None:
        for pool_id in pool_ids:
            self._sync_params(pool_id)
            self.ledger.accrue(pool_id, now)

    def _sync_params(self, pool_id: str) -> None:
        """Adopt pool params published since the last touch.

        A pool dropped from the config keeps its last params.
        """
        try:
            params = self._config.get_pool_params(pool_id)
        except PoolNotFoundError:
            return
        self.ledger.refresh_params(pool_id, params)

    def _current_tier(self, owner_id: str, now: int) -> CreditTier:
        return resolve_tier(
            self._config.get_credit_assessment(owner_id),
            now,
            settings.DOWNGRADE_GRACE_APPLIES_TO_NEW_POSITIONS,
        )

    def _assets_of(self, owner_id: str, extra: Iterable[str] = ()) -> set[str]:
        assets = {d.asset_id for d in self.ledger.collateral_of(owner_id)}
        for position in self.ledger.open_borrow_positions(owner_id=owner_id):
            assets.add(self.ledger.get_pool(position.pool_id).asset_id)
        return assets | set(extra)

    def _read_prices(self, asset_ids: Iterable[str], now: int) -> dict[str, PriceRead]:
        return {a: self.oracle.read_price(a, now) for a in sorted(asset_ids)}

    @staticmethod
    def _max_staleness(
        snapshot: ConfigSnapshot, prices: Mapping[str, PriceRead]
    ) -> dict[str, int]:
        return {a: snapshot.oracle_params(a).max_staleness_seconds for a in prices}

    def _build_report(
        self,
        owner_id: str,
        snapshot: ConfigSnapshot,
        prices: Mapping[str, PriceRead],
        tier: CreditTier,
        now: int,
        debt_delta: tuple[str, int] | None = None,
        collateral_delta: tuple[str, int] | None = None,
    ) -> HealthFactorReport:
        collateral = {d.asset_id: d.quantity for d in self.ledger.collateral_of(owner_id)}
        if collateral_delta is not None:
            asset_id, delta = collateral_delta
            collateral[asset_id] = collateral.get(asset_id, 0) + delta

        debts: dict[str, tuple[str, int]] = {}
        for position in self.ledger.open_borrow_positions(owner_id=owner_id):
            pool = self.ledger.get_pool(position.pool_id)
            debts[pool.pool_id] = (
                pool.asset_id, self.ledger.current_debt(pool.pool_id, owner_id)
            )
        if debt_delta is not None:
            pool_id, delta = debt_delta
            asset_id, amount = debts.get(pool_id, (self.ledger.get_pool(pool_id).asset_id, 0))
            debts[pool_id] = (asset_id, amount + delta)

        return compute_health_report(
            owner_id,
            collateral,
            [(pool_id, asset_id, amount) for pool_id, (asset_id, amount) in sorted(debts.items())],
            snapshot,
            prices,
            tier,
            now,
        )

    def _report_now(self, owner_id: str, now: int) -> HealthFactorReport:
        prices = self._read_prices(self._assets_of(owner_id), now)
        return self._build_report(
            owner_id, self._config.snapshot(), prices, self._current_tier(owner_id, now), now
        )

    def _report_after_mutation(self, owner_id: str, now: int) -> HealthFactorReport | None:
        """Post-operation report; None when a debt asset has never been priced."""
        try:
            return self._report_now(owner_id, now)
        except PriceUnavailableError as e:
            logger.debug("No health report for owner=%s: %s", owner_id, e.message)
            return None
