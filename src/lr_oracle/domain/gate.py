"""OracleGate — staleness and deviation gating with a per-asset circuit breaker.

Breaker: CLOSED -> OPEN (deviation trip) -> HALF_OPEN (manual reset)
         -> CLOSED (one fresh in-bound observation)
         HALF_OPEN -> OPEN again on an out-of-bound observation.

While OPEN or HALF_OPEN the asset's price is unavailable to readers.
Callers serialize ingestion per asset (LendingEngine holds an asset lock).
"""

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from config.settings import settings
from src.lr_common.enums import BreakerState, PriceStatus, RejectReason
from src.lr_common.fixed_point import BPS
from src.lr_config.domain.models import OracleParams
from src.lr_oracle.domain.models import (
    IngestResult,
    PriceObservation,
    PriceRead,
    RejectedObservation,
)
from src.lr_oracle.domain.twap import RollingTwap

logger = logging.getLogger(__name__)


@dataclass
class _AssetFeed:
    twap: RollingTwap
    rejected: deque[RejectedObservation]
    breaker: BreakerState = BreakerState.CLOSED
    last_price: int | None = None
    last_source_ts: int | None = None
    skip_reference: bool = False
    open_reason: str = ""


def exceeds_deviation(price: int, reference: int, bound_bps: int) -> bool:
    """|price - reference| / reference > bound, evaluated exactly in integers."""
    return abs(price - reference) * BPS > bound_bps * reference


class OracleGate:
    def __init__(
        self,
        params_for: Callable[[str], OracleParams],
        rejected_history: int | None = None,
    ) -> None:
        self._params_for = params_for
        self._rejected_history = rejected_history or settings.ORACLE_REJECTED_HISTORY
        self._feeds: dict[str, _AssetFeed] = {}

    def _feed(self, asset_id: str) -> _AssetFeed:
        feed = self._feeds.get(asset_id)
        if feed is None:
            params = self._params_for(asset_id)
            feed = _AssetFeed(
                twap=RollingTwap(params.twap_window_seconds, params.twap_max_samples),
                rejected=deque(maxlen=self._rejected_history),
            )
            self._feeds[asset_id] = feed
        return feed

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(self, observation: PriceObservation, now: int) -> IngestResult:
        asset_id = observation.asset_id
        params = self._params_for(asset_id)
        feed = self._feed(asset_id)
        feed.twap.window_seconds = params.twap_window_seconds

        if observation.price <= 0:
            return self._reject(feed, observation, RejectReason.INVALID_PRICE,
                                f"price {observation.price} is not positive")
        if observation.source_ts > now:
            return self._reject(feed, observation, RejectReason.FUTURE_TIMESTAMP,
                                f"source_ts {observation.source_ts} is after now {now}")
        staleness = observation.staleness(now)
        if staleness > params.max_staleness_seconds:
            return self._reject(feed, observation, RejectReason.STALE,
                                f"{staleness}s old, max {params.max_staleness_seconds}s")
        if observation.confidence_bps < params.min_confidence_bps:
            return self._reject(feed, observation, RejectReason.LOW_CONFIDENCE,
                                f"confidence {observation.confidence_bps} bps below "
                                f"{params.min_confidence_bps} bps")
        if feed.breaker == BreakerState.OPEN:
            return self._reject(feed, observation, RejectReason.BREAKER_OPEN,
                                feed.open_reason)
        if feed.last_source_ts is not None and observation.source_ts <= feed.last_source_ts:
            return self._reject(feed, observation, RejectReason.OUT_OF_ORDER,
                                f"source_ts {observation.source_ts} not after "
                                f"{feed.last_source_ts}")

        reference = None
        if not feed.skip_reference:
            reference = feed.twap.value(now)
            if reference is None:
                reference = feed.last_price
        if reference is not None and exceeds_deviation(
            observation.price, reference, params.deviation_bound_bps
        ):
            detail = (
                f"price {observation.price} deviates from reference {reference} "
                f"beyond {params.deviation_bound_bps} bps"
            )
            self._trip(feed, asset_id, detail)
            return self._reject(feed, observation, RejectReason.DEVIATION, detail, reference)

        feed.twap.add(observation.source_ts, observation.price)
        feed.last_price = observation.price
        feed.last_source_ts = observation.source_ts
        feed.skip_reference = False
        if feed.breaker == BreakerState.HALF_OPEN:
            feed.breaker = BreakerState.CLOSED
            feed.open_reason = ""
            logger.info("Circuit breaker CLOSED: asset=%s, price=%d", asset_id, observation.price)
        return IngestResult(
            asset_id=asset_id,
            accepted=True,
            breaker_state=feed.breaker,
            reference_price=reference,
        )

    def _reject(
        self,
        feed: _AssetFeed,
        observation: PriceObservation,
        reason: RejectReason,
        detail: str,
        reference: int | None = None,
    ) -> IngestResult:
        feed.rejected.append(RejectedObservation(observation, reason, detail))
        logger.warning(
            "Price observation rejected: asset=%s, reason=%s, %s",
            observation.asset_id, reason.value, detail,
        )
        return IngestResult(
            asset_id=observation.asset_id,
            accepted=False,
            breaker_state=feed.breaker,
            reason=reason,
            detail=detail,
            reference_price=reference,
        )

    def _trip(self, feed: _AssetFeed, asset_id: str, reason: str) -> None:
        feed.breaker = BreakerState.OPEN
        feed.open_reason = reason
        logger.warning("Circuit breaker OPEN: asset=%s, %s", asset_id, reason)

    # ------------------------------------------------------------------
    # Governance
    # ------------------------------------------------------------------

    def manual_reset(self, asset_id: str, clear_history: bool = False) -> BreakerState:
        """OPEN -> HALF_OPEN. Any other state is left as is.

        clear_history discards the TWAP samples and the deviation reference
        so the next fresh observation re-seeds the feed.
        """
        feed = self._feed(asset_id)
        if feed.breaker != BreakerState.OPEN:
            return feed.breaker
        feed.breaker = BreakerState.HALF_OPEN
        if clear_history:
            feed.twap.clear()
            feed.skip_reference = True
        logger.info(
            "Circuit breaker HALF_OPEN after manual reset: asset=%s, clear_history=%s",
            asset_id, clear_history,
        )
        return feed.breaker

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_price(self, asset_id: str, now: int) -> PriceRead:
        feed = self._feeds.get(asset_id)
        if feed is None or feed.last_price is None or feed.last_source_ts is None:
            return PriceRead(asset_id=asset_id, status=PriceStatus.NO_PRICE)
        staleness = now - feed.last_source_ts
        if feed.breaker != BreakerState.CLOSED:
            status = PriceStatus.BREAKER_OPEN
        elif staleness > self._params_for(asset_id).max_staleness_seconds:
            status = PriceStatus.STALE
        else:
            status = PriceStatus.AVAILABLE
        return PriceRead(
            asset_id=asset_id,
            status=status,
            price=feed.last_price if status == PriceStatus.AVAILABLE else None,
            last_good_price=feed.last_price,
            staleness=staleness,
            breaker_state=feed.breaker,
        )

    def breaker_state(self, asset_id: str) -> BreakerState:
        feed = self._feeds.get(asset_id)
        return BreakerState.CLOSED if feed is None else feed.breaker

    def twap(self, asset_id: str, now: int) -> int | None:
        feed = self._feeds.get(asset_id)
        return None if feed is None else feed.twap.value(now)

    def rejected_observations(self, asset_id: str) -> list[RejectedObservation]:
        feed = self._feeds.get(asset_id)
        return [] if feed is None else list(feed.rejected)
