"""LendingApplicationService — thin composition layer over LendingEngine.

Every call delegates to the engine and converts the domain result into a
response schema with display strings. Amounts stay WAD ints on the way in.
"""

from config.settings import settings
from src.lr_config.domain.models import CreditAssessment
from src.lr_engine.application.schemas import (
    HealthFactorResponse,
    LiquidationDecisionResponse,
    LiquidationEventItem,
    LiquidationEventPage,
    OperationResponse,
    PoolResponse,
    cursor_decode,
    cursor_encode,
)
from src.lr_engine.engine import LendingEngine
from src.lr_oracle.domain.models import IngestResult, PriceRead


class LendingApplicationService:
    def __init__(self, engine: LendingEngine) -> None:
        self._engine = engine

    @property
    def engine(self) -> LendingEngine:
        return self._engine

    # --- pools ---

    def get_pool(self, pool_id: str) -> PoolResponse:
        return PoolResponse.from_pool(self._engine.get_pool(pool_id))

    def list_pools(self) -> list[PoolResponse]:
        return [PoolResponse.from_pool(p) for p in self._engine.list_pools()]

    async def accrue_pool(self, pool_id: str, now: int | None = None) -> PoolResponse:
        await self._engine.accrue_pool(pool_id, now)
        return self.get_pool(pool_id)

    async def pause_pool(self, pool_id: str) -> PoolResponse:
        return PoolResponse.from_pool(await self._engine.pause_pool(pool_id))

    async def resume_pool(self, pool_id: str) -> PoolResponse:
        return PoolResponse.from_pool(await self._engine.resume_pool(pool_id))

    async def clear_pool_halt(self, pool_id: str) -> PoolResponse:
        return PoolResponse.from_pool(await self._engine.clear_pool_halt(pool_id))

    # --- positions ---

    async def supply(
        self, pool_id: str, owner_id: str, amount: int, now: int | None = None
    ) -> OperationResponse:
        receipt = await self._engine.supply(pool_id, owner_id, amount, now)
        return OperationResponse.from_pool_receipt(receipt)

    async def withdraw(
        self, pool_id: str, owner_id: str, amount: int, now: int | None = None
    ) -> OperationResponse:
        receipt = await self._engine.withdraw(pool_id, owner_id, amount, now)
        return OperationResponse.from_pool_receipt(receipt)

    async def borrow(
        self, pool_id: str, owner_id: str, amount: int, now: int | None = None
    ) -> OperationResponse:
        receipt, report = await self._engine.borrow(pool_id, owner_id, amount, now)
        return OperationResponse.from_pool_receipt(receipt, report)

    async def repay(
        self, pool_id: str, owner_id: str, amount: int, now: int | None = None
    ) -> OperationResponse:
        receipt, report = await self._engine.repay(pool_id, owner_id, amount, now)
        return OperationResponse.from_pool_receipt(receipt, report)

    async def add_collateral(
        self, owner_id: str, asset_id: str, quantity: int, now: int | None = None
    ) -> OperationResponse:
        receipt, report = await self._engine.add_collateral(owner_id, asset_id, quantity, now)
        return OperationResponse.from_collateral_receipt(receipt, report)

    async def remove_collateral(
        self, owner_id: str, asset_id: str, quantity: int, now: int | None = None
    ) -> OperationResponse:
        receipt, report = await self._engine.remove_collateral(owner_id, asset_id, quantity, now)
        return OperationResponse.from_collateral_receipt(receipt, report)

    async def assess_credit(
        self, owner_id: str, score: int, now: int | None = None
    ) -> CreditAssessment:
        return await self._engine.assess_credit(owner_id, score, now)

    async def get_health_factor(
        self, owner_id: str, now: int | None = None
    ) -> HealthFactorResponse:
        report = await self._engine.get_health_factor(owner_id, now)
        return HealthFactorResponse.from_report(report)

    # --- oracle ---

    async def submit_price_observation(
        self,
        asset_id: str,
        price: int,
        confidence_bps: int,
        source_ts: int,
        now: int | None = None,
    ) -> IngestResult:
        return await self._engine.submit_price_observation(
            asset_id, price, confidence_bps, source_ts, now
        )

    def read_price(self, asset_id: str, now: int | None = None) -> PriceRead:
        return self._engine.read_price(asset_id, now)

    # --- liquidation ---

    async def evaluate_liquidation(
        self, owner_id: str, pool_id: str, now: int | None = None
    ) -> LiquidationDecisionResponse:
        decision = await self._engine.evaluate_liquidation(owner_id, pool_id, now)
        return LiquidationDecisionResponse.from_decision(decision)

    def list_liquidation_events(
        self,
        owner_id: str | None = None,
        pool_id: str | None = None,
        cursor: str | None = None,
        limit: int = 20,
    ) -> LiquidationEventPage:
        limit = max(1, min(limit, settings.EVENT_PAGE_MAX_LIMIT))
        before_id = cursor_decode(cursor)
        page, has_more = self._engine.list_liquidation_events(
            owner_id, pool_id, before_id, limit
        )
        items = [LiquidationEventItem.from_event(e) for e in page]
        next_cursor = cursor_encode(page[-1].event_id) if has_more and page else None
        return LiquidationEventPage(items=items, next_cursor=next_cursor, has_more=has_more)
