from collections.abc import Iterable

from src.lr_common.enums import PriceStatus
from src.lr_common.errors import (
    CircuitBreakerOpenError,
    PriceUnavailableError,
    StaleOracleError,
)
from src.lr_oracle.domain.models import PriceRead


def check_prices_available(reads: Iterable[PriceRead], max_staleness: dict[str, int]) -> None:
    """Raise for the first read that is not AVAILABLE.

    BREAKER_OPEN -> CircuitBreakerOpenError
    STALE        -> StaleOracleError (with staleness detail)
    NO_PRICE     -> PriceUnavailableError
    """
    for read in reads:
        if read.status == PriceStatus.AVAILABLE:
            continue
        if read.status == PriceStatus.BREAKER_OPEN:
            raise CircuitBreakerOpenError(read.asset_id)
        if read.status == PriceStatus.STALE:
            raise StaleOracleError(
                read.asset_id, read.staleness or 0, max_staleness.get(read.asset_id, 0)
            )
        raise PriceUnavailableError(read.asset_id)
