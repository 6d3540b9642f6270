"""Shared test fixtures."""

import copy
from typing import Any

import pytest

from src.lr_common.fixed_point import WAD, to_wad
from src.lr_config.domain.models import ConfigSnapshot
from src.lr_config.infrastructure.defaults import DEFAULT_RISK_CONFIG
from src.lr_config.infrastructure.loader import RiskConfigDocument
from src.lr_config.infrastructure.static_provider import StaticConfigProvider
from src.lr_engine.engine import LendingEngine

START_TS = 1_700_000_000


class FakeClock:
    """Manually advanced unix-seconds clock."""

    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


@pytest.fixture
def risk_doc() -> dict[str, Any]:
    """Default document reduced to USDC / WETH pools with a 50% deviation bound."""
    doc = copy.deepcopy(DEFAULT_RISK_CONFIG)
    doc["pools"] = {
        "USDC": doc["pools"]["USDC"],
        "WETH": {"asset_id": "WETH", "rate_curve": doc["pools"]["wETH"]["rate_curve"]},
    }
    doc["collateral"] = {
        "USDC": doc["collateral"]["USDC"],
        "WETH": {"tier": "CRYPTO", "ltv": "0.75", "liquidation_threshold": "0.80",
                 "haircut": "0", "liquidation_penalty": "0.05"},
        "TBILL": {"tier": "RWA", "ltv": "0.80", "liquidation_threshold": "0.85",
                  "haircut": "0.05", "liquidation_penalty": "0.03"},
        "FROZEN": {"tier": "RECEIVABLE", "ltv": "0.50", "liquidation_threshold": "0.60",
                   "haircut": "0.20", "liquidation_penalty": "0.10",
                   "collateral_enabled": False},
    }
    doc["oracles"] = {
        asset_id: {"deviation_bound": "0.50"} for asset_id in ("USDC", "WETH", "TBILL")
    }
    return doc


@pytest.fixture
def snapshot(risk_doc: dict[str, Any]) -> ConfigSnapshot:
    return RiskConfigDocument.model_validate(risk_doc).to_snapshot()


@pytest.fixture
def provider(snapshot: ConfigSnapshot) -> StaticConfigProvider:
    return StaticConfigProvider(snapshot)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START_TS)


@pytest.fixture
def engine(provider: StaticConfigProvider, clock: FakeClock) -> LendingEngine:
    eng = LendingEngine(provider, clock=clock)
    eng.bootstrap_pools()
    return eng


@pytest.fixture
async def priced_engine(engine: LendingEngine, clock: FakeClock) -> LendingEngine:
    """USDC = 1, WETH = 2000, TBILL = 1, observed 10 seconds ago."""
    source_ts = clock.now - 10
    await engine.submit_price_observation("USDC", WAD, 10_000, source_ts)
    await engine.submit_price_observation("WETH", to_wad(2000), 10_000, source_ts)
    await engine.submit_price_observation("TBILL", WAD, 10_000, source_ts)
    return engine


@pytest.fixture
async def funded_engine(priced_engine: LendingEngine) -> LendingEngine:
    """Priced engine with 100,000 USDC supplied by alice."""
    await priced_engine.supply("USDC", "alice", to_wad(100_000))
    return priced_engine
