"""Credit tier resolution and borrow-rate discounting.

A borrow position captures its tier and discount at open time; later
assessments never reprice it.
"""

import logging
from collections.abc import Mapping

from src.lr_common.enums import CreditTier
from src.lr_common.fixed_point import BPS
from src.lr_config.domain.models import CreditAssessment, CreditTierParams

logger = logging.getLogger(__name__)

MAX_CREDIT_SCORE = 1000


def effective_borrow_rate(base_rate: int, discount_bps: int) -> int:
    """base * (1 - discount_bps / 10000), rounded down."""
    return base_rate * (BPS - discount_bps) // BPS


def effective_ltv_bps(asset_ltv_bps: int, tier: CreditTierParams) -> int:
    return min(asset_ltv_bps, tier.max_ltv_bps)


def tier_for_score(score: int, tiers: Mapping[CreditTier, CreditTierParams]) -> CreditTier:
    """Highest tier whose min_score the score reaches; UNRATED otherwise."""
    if not (0 <= score <= MAX_CREDIT_SCORE):
        raise ValueError(f"Credit score must be between 0 and {MAX_CREDIT_SCORE}, got {score}")
    ranked = sorted(
        (p for p in tiers.values() if p.tier != CreditTier.UNRATED),
        key=lambda p: p.min_score,
        reverse=True,
    )
    for params in ranked:
        if score >= params.min_score:
            return params.tier
    return CreditTier.UNRATED


def assess(
    owner_id: str,
    score: int,
    now: int,
    tiers: Mapping[CreditTier, CreditTierParams],
    previous: CreditAssessment | None,
    grace_seconds: int,
) -> CreditAssessment:
    """Build a new assessment. A downgrade opens a grace window."""
    tier = tier_for_score(score, tiers)
    if previous is not None and tiers[tier].min_score < tiers[previous.tier].min_score:
        logger.info(
            "Credit downgrade: owner=%s, %s -> %s, grace until %d",
            owner_id, previous.tier.value, tier.value, now + grace_seconds,
        )
        return CreditAssessment(
            owner_id=owner_id,
            score=score,
            tier=tier,
            effective_from=now,
            grace_until=now + grace_seconds,
            previous_tier=previous.tier,
        )
    return CreditAssessment(owner_id=owner_id, score=score, tier=tier, effective_from=now)


def resolve_tier(
    assessment: CreditAssessment | None,
    now: int,
    grace_applies_to_new_positions: bool,
) -> CreditTier:
    """Tier that governs a position opened at `now`.

    With no assessment the owner is UNRATED. During a downgrade grace window
    the previous tier applies only if grace_applies_to_new_positions is set.
    """
    if assessment is None:
        return CreditTier.UNRATED
    in_grace = (
        assessment.previous_tier is not None
        and assessment.grace_until is not None
        and now < assessment.grace_until
    )
    if in_grace and grace_applies_to_new_positions:
        return assessment.previous_tier  # type: ignore[return-value]
    return assessment.tier
