"""Pool invariant verification after each mutation."""

import logging

from src.lr_common.fixed_point import WAD
from src.lr_pool.domain.models import Pool

logger = logging.getLogger(__name__)


def verify_pool_invariants(pool: Pool, tolerance: int = 0) -> list[str]:
    """Check pool invariants. Returns list of violation strings (empty = OK).

    INV-1: cash + total_borrow + bad_debt == total_supply + reserves (within tolerance)
    INV-2: borrow indices and supply index never below 1.0
    INV-3: no negative totals
    """
    violations: list[str] = []
    assets = pool.cash + pool.total_borrow + pool.bad_debt
    liabilities = pool.total_supply + pool.reserves
    if abs(assets - liabilities) > tolerance:
        violations.append(
            f"INV-1 violated on {pool.pool_id}: cash({pool.cash}) + borrow({pool.total_borrow})"
            f" + bad_debt({pool.bad_debt}) = {assets} != supply({pool.total_supply})"
            f" + reserves({pool.reserves}) = {liabilities}"
        )
    for discount_bps, bucket in pool.buckets.items():
        if bucket.index < WAD:
            violations.append(
                f"INV-2 violated on {pool.pool_id}: borrow_index[{discount_bps}]={bucket.index} < 1.0"
            )
    if pool.supply_index < WAD:
        violations.append(
            f"INV-2 violated on {pool.pool_id}: supply_index={pool.supply_index} < 1.0"
        )
    for name in ("cash", "reserves", "total_supply", "bad_debt"):
        value = getattr(pool, name)
        if value < 0:
            violations.append(f"INV-3 violated on {pool.pool_id}: {name}={value} < 0")

    for msg in violations:
        logger.error(msg)
    if not violations:
        logger.debug("Invariants OK: pool=%s, supply=%d, borrow=%d", pool.pool_id,
                     pool.total_supply, pool.total_borrow)
    return violations
