"""RiskScheduler: accrual ticks, liquidation scans and task lifecycle."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.lr_common.enums import LiquidationAction
from src.lr_common.errors import AppError
from src.lr_common.fixed_point import BPS, to_wad
from src.lr_engine.engine import LendingEngine
from src.lr_engine.scheduler import RiskScheduler
from src.lr_liquidation.domain.models import LiquidationDecision
from tests.conftest import FakeClock


class TestAccrualTick:
    async def test_delegates_to_engine(self) -> None:
        engine = MagicMock()
        engine.accrue_all = AsyncMock(return_value=[])
        scheduler = RiskScheduler(engine)
        assert await scheduler.accrual_tick(123) == []
        engine.accrue_all.assert_awaited_once_with(123)

    async def test_accrues_every_pool(self, funded_engine: LendingEngine, clock: FakeClock) -> None:
        clock.advance(60)
        results = await RiskScheduler(funded_engine).accrual_tick()
        assert sorted(r.pool_id for r in results) == ["USDC", "WETH"]
        assert all(p.last_accrual_ts == clock.now for p in funded_engine.list_pools())


class TestLiquidationScan:
    async def test_failed_pair_is_skipped(self) -> None:
        healthy = LiquidationDecision("carol", "USDC", LiquidationAction.NONE, 2 * 10**18)
        engine = MagicMock()
        engine.list_borrower_pairs.return_value = [("bob", "USDC"), ("carol", "USDC")]
        engine.evaluate_liquidation = AsyncMock(
            side_effect=[AppError(3003, "No usable price for WETH"), healthy]
        )
        decisions = await RiskScheduler(engine).liquidation_scan(456)
        assert decisions == [healthy]
        assert engine.evaluate_liquidation.await_count == 2

    async def test_executes_due_liquidation(
        self, funded_engine: LendingEngine, clock: FakeClock
    ) -> None:
        await funded_engine.assess_credit("bob", 900)
        await funded_engine.add_collateral("bob", "WETH", to_wad(10))
        await funded_engine.borrow("USDC", "bob", to_wad(14_000))
        await funded_engine.submit_price_observation("WETH", to_wad(1610), BPS, clock.now)

        decisions = await RiskScheduler(funded_engine).liquidation_scan()
        assert [d.action for d in decisions] == [LiquidationAction.EXECUTED]
        assert len(funded_engine.events) == 1


class TestLifecycle:
    async def test_start_runs_first_ticks_and_stop_cancels(
        self, funded_engine: LendingEngine
    ) -> None:
        scheduler = RiskScheduler(funded_engine, accrual_interval=3600, scan_interval=3600)
        scheduler.start()
        scheduler.start()
        assert len(scheduler._tasks) == 2
        await asyncio.sleep(0)
        await scheduler.stop()
        assert scheduler._tasks == []

    async def test_accrual_loop_survives_unexpected_error(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        engine = MagicMock()
        engine.accrue_all = AsyncMock(side_effect=[RuntimeError("boom"), []])
        sleep = AsyncMock(side_effect=[None, asyncio.CancelledError()])
        with caplog.at_level(logging.ERROR), patch.object(asyncio, "sleep", sleep):
            with pytest.raises(asyncio.CancelledError):
                await RiskScheduler(engine)._loop_accrual()
        assert engine.accrue_all.await_count == 2
        assert "Accrual tick failed" in caplog.text

    async def test_scan_loop_survives_unexpected_error(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        engine = MagicMock()
        engine.list_borrower_pairs = MagicMock(side_effect=[RuntimeError("boom"), []])
        sleep = AsyncMock(side_effect=[None, asyncio.CancelledError()])
        with caplog.at_level(logging.ERROR), patch.object(asyncio, "sleep", sleep):
            with pytest.raises(asyncio.CancelledError):
                await RiskScheduler(engine)._loop_scan()
        assert engine.list_borrower_pairs.call_count == 2
        assert "Liquidation scan failed" in caplog.text

    def test_intervals_default_to_settings(self) -> None:
        scheduler = RiskScheduler(MagicMock())
        assert scheduler.accrual_interval == 300
        assert scheduler.scan_interval == 60
