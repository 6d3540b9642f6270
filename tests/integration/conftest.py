"""Integration-test fixtures.

Tests drive the engine end to end with a manually advanced clock, so accrual
and oracle staleness are deterministic.
"""

from collections.abc import Awaitable, Callable

import pytest

from src.lr_common.fixed_point import to_wad
from src.lr_engine.application.service import LendingApplicationService
from src.lr_engine.engine import LendingEngine

LoanOpener = Callable[..., Awaitable[None]]


@pytest.fixture
def service(funded_engine: LendingEngine) -> LendingApplicationService:
    return LendingApplicationService(funded_engine)


@pytest.fixture
def open_weth_loan(funded_engine: LendingEngine) -> LoanOpener:
    """Deposit WETH collateral and borrow USDC against it."""

    async def _open(owner_id: str, borrow: int, weth: int = 10,
                    score: int | None = None) -> None:
        if score is not None:
            await funded_engine.assess_credit(owner_id, score)
        await funded_engine.add_collateral(owner_id, "WETH", to_wad(weth))
        await funded_engine.borrow("USDC", owner_id, to_wad(borrow))

    return _open
