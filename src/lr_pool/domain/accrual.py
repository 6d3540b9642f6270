"""AccrualIndex — advances a pool's borrow and supply indices in O(1).

One call does the same work whether the pool has one position or a million:
positions hold principal + index snapshot and are revalued lazily.

Steps for an ADVANCED call:
  1. utilization -> base borrow rate (jump-rate curve)
  2. per discount bucket: effective rate -> compound factor -> interest
  3. interest split into reserve share and supplier share
  4. borrow indices *= factor, supply index *= (1 + supplier_share / total_supply)
  5. totals and last_accrual_ts updated together, after monotonicity checks
"""

import logging

from config.settings import settings
from src.lr_common.enums import AccrualOutcome, AccrualState
from src.lr_common.errors import IndexMonotonicityError
from src.lr_common.fixed_point import WAD, compound_factor, wad_mul
from src.lr_pool.domain.models import AccrualResult, Pool
from src.lr_rates.domain.credit_pricer import effective_borrow_rate
from src.lr_rates.domain.rate_curve import borrow_rate, utilization

logger = logging.getLogger(__name__)


def accrue(
    pool: Pool,
    now: int,
    seconds_per_year: int | None = None,
    series_terms: int | None = None,
) -> AccrualResult:
    """Accrue interest up to `now`. Mutates `pool` only when ADVANCED.

    now == last_accrual_ts -> CURRENT (idempotent no-op).
    now <  last_accrual_ts -> REGRESSION (no-op; the caller decides severity).
    Raises IndexMonotonicityError before committing if any index would fall.
    """
    if now == pool.last_accrual_ts:
        return _unchanged(pool, now, AccrualOutcome.CURRENT)
    if now < pool.last_accrual_ts:
        return _unchanged(pool, now, AccrualOutcome.REGRESSION)

    year = seconds_per_year or settings.SECONDS_PER_YEAR
    terms = series_terms or settings.ACCRUAL_SERIES_TERMS
    elapsed = now - pool.last_accrual_ts

    pool.accrual_state = AccrualState.ACCRUING
    try:
        util = utilization(pool.total_borrow, pool.total_supply)
        base_rate = borrow_rate(util, pool.params.rate_curve)

        new_buckets: dict[int, tuple[int, int]] = {}
        interest = 0
        for discount_bps, bucket in pool.buckets.items():
            rate = effective_borrow_rate(base_rate, discount_bps)
            factor = compound_factor(rate, elapsed, year, terms)
            bucket_interest = wad_mul(bucket.total_borrow, factor - WAD)
            new_index = wad_mul(bucket.index, factor)
            if new_index < bucket.index:
                raise IndexMonotonicityError(
                    pool.pool_id, f"borrow_index[{discount_bps}]", bucket.index, new_index
                )
            new_buckets[discount_bps] = (new_index, bucket.total_borrow + bucket_interest)
            interest += bucket_interest

        reserve_share = wad_mul(interest, pool.params.rate_curve.reserve_factor)
        supplier_share = interest - reserve_share
        if pool.total_supply > 0:
            new_supply_index = (
                pool.supply_index + pool.supply_index * supplier_share // pool.total_supply
            )
        else:
            # nobody to pay; keep the balance identity by retaining it as reserves
            new_supply_index = pool.supply_index
            reserve_share, supplier_share = interest, 0
        if new_supply_index < pool.supply_index:
            raise IndexMonotonicityError(
                pool.pool_id, "supply_index", pool.supply_index, new_supply_index
            )

        for discount_bps, (index, total) in new_buckets.items():
            bucket = pool.buckets[discount_bps]
            bucket.index = index
            bucket.total_borrow = total
        pool.supply_index = new_supply_index
        pool.total_supply += supplier_share
        pool.reserves += reserve_share
        pool.last_accrual_ts = now
    finally:
        pool.accrual_state = AccrualState.IDLE

    logger.debug(
        "Accrued pool=%s: elapsed=%ds, util=%d, rate=%d, interest=%d, reserves+=%d",
        pool.pool_id, elapsed, util, base_rate, interest, reserve_share,
    )
    return AccrualResult(
        pool_id=pool.pool_id,
        outcome=AccrualOutcome.ADVANCED,
        timestamp=now,
        elapsed=elapsed,
        utilization=util,
        borrow_rate=base_rate,
        interest=interest,
        reserve_share=reserve_share,
        supplier_share=supplier_share,
        borrow_index=pool.borrow_index,
        supply_index=pool.supply_index,
    )


def _unchanged(pool: Pool, now: int, outcome: AccrualOutcome) -> AccrualResult:
    util = utilization(pool.total_borrow, pool.total_supply)
    return AccrualResult(
        pool_id=pool.pool_id,
        outcome=outcome,
        timestamp=now,
        utilization=util,
        borrow_rate=borrow_rate(util, pool.params.rate_curve),
        borrow_index=pool.borrow_index,
        supply_index=pool.supply_index,
    )
