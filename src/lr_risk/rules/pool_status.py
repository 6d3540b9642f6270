from src.lr_common.enums import PoolStatus
from src.lr_common.errors import PoolHaltedError, PoolInactiveError
from src.lr_pool.domain.models import Pool


def check_pool_active(pool: Pool) -> None:
    """Raise PoolHaltedError / PoolInactiveError unless the pool accepts mutations."""
    if pool.status == PoolStatus.HALTED:
        raise PoolHaltedError(pool.pool_id, pool.halt_reason or "")
    if pool.status == PoolStatus.PAUSED:
        raise PoolInactiveError(pool.pool_id)
