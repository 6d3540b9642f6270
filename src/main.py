"""Lending risk engine entry point.

Run with: python -m src.main
Loads the risk config (RISK_CONFIG_PATH or built-in defaults), opens every
configured pool and runs the accrual / liquidation scheduler until cancelled.
"""

import asyncio
import logging
from collections.abc import Callable

from config.settings import settings
from src.lr_config.infrastructure.loader import load_risk_config
from src.lr_config.infrastructure.static_provider import StaticConfigProvider
from src.lr_engine.application.service import LendingApplicationService
from src.lr_engine.engine import LendingEngine
from src.lr_engine.scheduler import RiskScheduler

logger = logging.getLogger(__name__)

_engine: LendingEngine | None = None


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_engine(
    path: str | None = None, clock: Callable[[], int] | None = None
) -> LendingEngine:
    """Build an engine from the risk config and open its pools."""
    snapshot = load_risk_config(path if path is not None else settings.RISK_CONFIG_PATH)
    engine = LendingEngine(StaticConfigProvider(snapshot), clock=clock)
    pools = engine.bootstrap_pools()
    logger.info(
        "%s started: config v%d, %d pools, %d collateral assets",
        settings.APP_NAME, snapshot.version, len(pools), len(snapshot.collateral),
    )
    return engine


def get_lending_engine() -> LendingEngine:
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = create_engine()
    return _engine


def create_service(engine: LendingEngine | None = None) -> LendingApplicationService:
    return LendingApplicationService(engine or get_lending_engine())


async def serve(engine: LendingEngine | None = None) -> None:
    scheduler = RiskScheduler(engine or get_lending_engine())
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()


if __name__ == "__main__":
    configure_logging()
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
