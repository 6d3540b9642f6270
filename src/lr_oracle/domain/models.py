"""Domain models for lr_oracle."""

from dataclasses import dataclass

from src.lr_common.enums import BreakerState, PriceStatus, RejectReason


@dataclass(frozen=True)
class PriceObservation:
    asset_id: str
    price: int            # WAD, quote currency per unit
    confidence_bps: int   # 10000 = full confidence
    source_ts: int
    ingested_at: int

    def staleness(self, now: int) -> int:
        return now - self.source_ts


@dataclass(frozen=True)
class RejectedObservation:
    observation: PriceObservation
    reason: RejectReason
    detail: str


@dataclass(frozen=True)
class IngestResult:
    asset_id: str
    accepted: bool
    breaker_state: BreakerState
    reason: RejectReason | None = None
    detail: str = ""
    reference_price: int | None = None


@dataclass(frozen=True)
class PriceRead:
    asset_id: str
    status: PriceStatus
    price: int | None = None
    last_good_price: int | None = None
    staleness: int | None = None
    breaker_state: BreakerState = BreakerState.CLOSED

    @property
    def usable(self) -> bool:
        return self.status == PriceStatus.AVAILABLE
