"""Periodic accrual ticks and liquidation scans."""

import asyncio
import logging

from config.settings import settings
from src.lr_common.enums import LiquidationAction
from src.lr_common.errors import AppError
from src.lr_engine.engine import LendingEngine
from src.lr_liquidation.domain.models import LiquidationDecision
from src.lr_pool.domain.models import AccrualResult

logger = logging.getLogger(__name__)


class RiskScheduler:
    def __init__(
        self,
        engine: LendingEngine,
        accrual_interval: int | None = None,
        scan_interval: int | None = None,
    ) -> None:
        self._engine = engine
        self.accrual_interval = accrual_interval or settings.ACCRUAL_INTERVAL_SECONDS
        self.scan_interval = scan_interval or settings.LIQUIDATION_SCAN_INTERVAL_SECONDS
        self._tasks: list[asyncio.Task[None]] = []

    async def accrual_tick(self, now: int | None = None) -> list[AccrualResult]:
        results = await self._engine.accrue_all(now)
        logger.debug("Accrual tick: %d pools accrued", len(results))
        return results

    async def liquidation_scan(self, now: int | None = None) -> list[LiquidationDecision]:
        """Evaluate every open (owner, pool) pair, one at a time.

        Cancelling the scan stops it between pairs; an evaluation already
        running is shielded and completes its seizure.
        """
        decisions: list[LiquidationDecision] = []
        for owner_id, pool_id in self._engine.list_borrower_pairs():
            try:
                decision = await asyncio.shield(
                    self._engine.evaluate_liquidation(owner_id, pool_id, now)
                )
            except AppError as e:
                logger.error(
                    "Liquidation evaluation failed: owner=%s, pool=%s, code=%d, %s",
                    owner_id, pool_id, e.code, e.message,
                )
                continue
            decisions.append(decision)
        executed = sum(1 for d in decisions if d.action == LiquidationAction.EXECUTED)
        if executed:
            logger.info("Liquidation scan: %d pairs, %d executed", len(decisions), executed)
        return decisions

    async def _loop_accrual(self) -> None:
        while True:
            try:
                await self.accrual_tick()
            except Exception:
                logger.exception("Accrual tick failed")
            await asyncio.sleep(self.accrual_interval)

    async def _loop_scan(self) -> None:
        while True:
            try:
                await self.liquidation_scan()
            except Exception:
                logger.exception("Liquidation scan failed")
            await asyncio.sleep(self.scan_interval)

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._loop_accrual(), name="accrual"),
            asyncio.create_task(self._loop_scan(), name="liquidation-scan"),
        ]
        logger.info(
            "Scheduler started: accrual every %ds, scan every %ds",
            self.accrual_interval, self.scan_interval,
        )

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Scheduler stopped")
