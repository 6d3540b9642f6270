"""Liquidation cascade driven through price moves on a Diamond borrower.

bob: 10 WETH @ 2000 (LT 0.80), borrows 14,000 USDC -> HF 1.1428.
"""

import pytest

from config.settings import settings
from src.lr_common.enums import LiquidationAction, LiquidationTier
from src.lr_common.errors import CircuitBreakerOpenError
from src.lr_common.fixed_point import BPS, parse_wad, to_wad, wad_div
from src.lr_engine.application.service import LendingApplicationService
from src.lr_engine.engine import LendingEngine
from src.lr_pool.domain.invariants import verify_pool_invariants
from src.lr_risk.domain.health_factor import HF_INFINITY
from tests.conftest import FakeClock
from tests.integration.conftest import LoanOpener

pytestmark = pytest.mark.asyncio


async def _move_weth(engine: LendingEngine, clock: FakeClock, price: str) -> None:
    await engine.submit_price_observation("WETH", parse_wad(price), BPS, clock.now)


@pytest.fixture
async def bob_loan(funded_engine: LendingEngine, open_weth_loan: LoanOpener) -> LendingEngine:
    await open_weth_loan("bob", borrow=14_000, score=900)
    return funded_engine


class TestCascade:
    async def test_healthy(self, bob_loan: LendingEngine) -> None:
        decision = await bob_loan.evaluate_liquidation("bob", "USDC")
        assert decision.action == LiquidationAction.NONE
        assert decision.health_factor > parse_wad("1.14")

    async def test_no_debt(self, bob_loan: LendingEngine) -> None:
        decision = await bob_loan.evaluate_liquidation("alice", "USDC")
        assert decision.action == LiquidationAction.NO_DEBT
        assert decision.health_factor == HF_INFINITY

    async def test_soft_then_margin_call(self, bob_loan: LendingEngine, clock: FakeClock) -> None:
        await _move_weth(bob_loan, clock, "1610")

        soft = await bob_loan.evaluate_liquidation("bob", "USDC")
        assert soft.action == LiquidationAction.EXECUTED
        assert soft.tier == LiquidationTier.SOFT_LIQUIDATION
        assert soft.health_factor == parse_wad("0.92")
        assert soft.event is not None
        assert soft.event.event_id == 1
        assert soft.event.debt_repaid == to_wad(3500)
        seized = wad_div(to_wad(3675), to_wad(1610))
        assert soft.event.collateral_seized == (("WETH", seized),)
        assert soft.event.penalty == (("WETH", seized - wad_div(to_wad(3500), to_wad(1610))),)
        assert soft.event.shortfall == 0
        assert bob_loan.ledger.current_debt("USDC", "bob") == to_wad(10_500)
        assert bob_loan.ledger.collateral_quantity("bob", "WETH") == to_wad(10) - seized
        assert bob_loan.liquidator_rewards()["WETH"] > 0

        # ~0.9467 after the soft liquidation
        follow_up = await bob_loan.evaluate_liquidation("bob", "USDC")
        assert follow_up.action == LiquidationAction.ALERT
        assert follow_up.tier == LiquidationTier.MARGIN_CALL
        assert follow_up.event is None

    async def test_cooldown_then_full_bypass(
        self, bob_loan: LendingEngine, clock: FakeClock
    ) -> None:
        await _move_weth(bob_loan, clock, "1610")
        await bob_loan.evaluate_liquidation("bob", "USDC")

        clock.advance(1)
        await _move_weth(bob_loan, clock, "1560")
        deferred = await bob_loan.evaluate_liquidation("bob", "USDC")
        assert deferred.action == LiquidationAction.DEFERRED_COOLDOWN
        assert deferred.tier == LiquidationTier.SOFT_LIQUIDATION

        clock.advance(1)
        await _move_weth(bob_loan, clock, "1300")
        full = await bob_loan.evaluate_liquidation("bob", "USDC")
        assert full.action == LiquidationAction.EXECUTED
        assert full.tier == LiquidationTier.FULL_LIQUIDATION
        assert full.event is not None
        event = full.event
        assert event.shortfall > 0
        assert event.shortfall == event.reserves_absorbed + event.bad_debt
        assert event.bad_debt > 0
        assert event.health_factor_after == HF_INFINITY

        assert bob_loan.ledger.current_debt("USDC", "bob") == 0
        assert bob_loan.ledger.collateral_quantity("bob", "WETH") == 0
        pool = bob_loan.get_pool("USDC")
        assert pool.bad_debt == event.bad_debt
        assert bob_loan.bad_debt_report() == {"USDC": event.bad_debt}
        assert verify_pool_invariants(pool, settings.INVARIANT_TOLERANCE_WEI) == []

    async def test_cooldown_expires(self, bob_loan: LendingEngine, clock: FakeClock) -> None:
        await _move_weth(bob_loan, clock, "1610")
        await bob_loan.evaluate_liquidation("bob", "USDC")

        clock.advance(settings.LIQUIDATION_COOLDOWN_SECONDS)
        await bob_loan.submit_price_observation("USDC", to_wad(1), BPS, clock.now)
        await _move_weth(bob_loan, clock, "1560")
        decision = await bob_loan.evaluate_liquidation("bob", "USDC")
        assert decision.action == LiquidationAction.EXECUTED
        assert decision.tier == LiquidationTier.SOFT_LIQUIDATION

    async def test_stale_price_defers(self, bob_loan: LendingEngine, clock: FakeClock) -> None:
        clock.advance(400)
        decision = await bob_loan.evaluate_liquidation("bob", "USDC")
        assert decision.action == LiquidationAction.DEFERRED_PRICE_UNAVAILABLE
        assert decision.event is None
        assert bob_loan.ledger.current_debt("USDC", "bob") > to_wad(14_000)
        assert len(bob_loan.events) == 0

    async def test_unpriced_dust_collateral_does_not_block(
        self, bob_loan: LendingEngine, clock: FakeClock
    ) -> None:
        with pytest.raises(CircuitBreakerOpenError):
            await bob_loan.submit_price_observation("TBILL", to_wad(2), BPS, clock.now)
        await bob_loan.add_collateral("bob", "TBILL", 1)
        await _move_weth(bob_loan, clock, "1400")

        decision = await bob_loan.evaluate_liquidation("bob", "USDC")
        assert decision.action == LiquidationAction.EXECUTED
        assert decision.tier == LiquidationTier.FULL_LIQUIDATION
        assert decision.event is not None
        # 10 WETH @ 1400 covers 14,000 / 1.05 of the debt; the rest stays owed
        covered = to_wad(14_000) * BPS // (BPS + 500)
        assert decision.event.collateral_seized == (("WETH", to_wad(10)),)
        assert decision.event.debt_repaid == covered
        assert decision.event.shortfall == 0
        assert bob_loan.ledger.current_debt("USDC", "bob") == to_wad(14_000) - covered
        assert bob_loan.ledger.collateral_quantity("bob", "TBILL") == 1
        assert bob_loan.bad_debt_report() == {}

    async def test_only_unpriced_collateral_defers(
        self, bob_loan: LendingEngine, clock: FakeClock
    ) -> None:
        with pytest.raises(CircuitBreakerOpenError):
            await _move_weth(bob_loan, clock, "900")

        decision = await bob_loan.evaluate_liquidation("bob", "USDC")
        assert decision.action == LiquidationAction.DEFERRED_PRICE_UNAVAILABLE
        assert decision.tier == LiquidationTier.FULL_LIQUIDATION
        assert bob_loan.ledger.collateral_quantity("bob", "WETH") == to_wad(10)
        assert bob_loan.ledger.current_debt("USDC", "bob") == to_wad(14_000)
        assert bob_loan.cascade.cooldown_until("bob", "USDC") is None

    async def test_paused_pool_still_liquidates(
        self, bob_loan: LendingEngine, clock: FakeClock
    ) -> None:
        await bob_loan.pause_pool("USDC")
        await _move_weth(bob_loan, clock, "1610")
        decision = await bob_loan.evaluate_liquidation("bob", "USDC")
        assert decision.action == LiquidationAction.EXECUTED


class TestEventPages:
    async def test_cursor_pagination(self, bob_loan: LendingEngine, clock: FakeClock) -> None:
        await _move_weth(bob_loan, clock, "1610")
        await bob_loan.evaluate_liquidation("bob", "USDC")
        clock.advance(1)
        await _move_weth(bob_loan, clock, "1300")
        await bob_loan.evaluate_liquidation("bob", "USDC")

        service = LendingApplicationService(bob_loan)
        first = service.list_liquidation_events(owner_id="bob", limit=1)
        assert [i.tier for i in first.items] == ["FULL_LIQUIDATION"]
        assert first.has_more is True
        assert first.next_cursor is not None

        second = service.list_liquidation_events(owner_id="bob", cursor=first.next_cursor)
        assert [i.tier for i in second.items] == ["SOFT_LIQUIDATION"]
        assert second.items[0].health_factor_before == "0.9200"
        assert second.has_more is False
        assert second.next_cursor is None

    async def test_filters_and_limit_clamp(self, bob_loan: LendingEngine, clock: FakeClock) -> None:
        await _move_weth(bob_loan, clock, "1610")
        await bob_loan.evaluate_liquidation("bob", "USDC")

        service = LendingApplicationService(bob_loan)
        assert service.list_liquidation_events(owner_id="carol").items == []
        assert service.list_liquidation_events(pool_id="WETH").items == []
        clamped = service.list_liquidation_events(limit=0)
        assert len(clamped.items) == 1

    async def test_service_decision_response(
        self, bob_loan: LendingEngine, clock: FakeClock
    ) -> None:
        await _move_weth(bob_loan, clock, "1610")
        response = await LendingApplicationService(bob_loan).evaluate_liquidation("bob", "USDC")
        assert response.action == "EXECUTED"
        assert response.tier == "SOFT_LIQUIDATION"
        assert response.health_factor_display == "0.9200"
        assert response.event is not None
        assert response.event.collateral_seized["WETH"] > 0
