"""In-process configuration provider holding the current snapshot."""

import logging
from dataclasses import replace

from src.lr_config.domain.models import (
    CollateralParams,
    ConfigSnapshot,
    CreditAssessment,
    PoolParams,
)

logger = logging.getLogger(__name__)


class StaticConfigProvider:
    """Serves one ConfigSnapshot at a time plus the credit assessments.

    publish() swaps in a new snapshot with the next version number.
    Computations already holding the previous snapshot keep using it.
    """

    def __init__(
        self,
        snapshot: ConfigSnapshot,
        assessments: dict[str, CreditAssessment] | None = None,
    ) -> None:
        self._snapshot = snapshot
        self._assessments: dict[str, CreditAssessment] = dict(assessments or {})

    def snapshot(self) -> ConfigSnapshot:
        return self._snapshot

    def get_pool_params(self, pool_id: str) -> PoolParams:
        return self._snapshot.pool_params(pool_id)

    def get_collateral_params(self, asset_id: str) -> CollateralParams:
        return self._snapshot.collateral_params(asset_id)

    def get_credit_assessment(self, owner_id: str) -> CreditAssessment | None:
        return self._assessments.get(owner_id)

    def set_credit_assessment(self, assessment: CreditAssessment) -> None:
        self._assessments[assessment.owner_id] = assessment

    def publish(self, snapshot: ConfigSnapshot) -> ConfigSnapshot:
        published = replace(snapshot, version=self._snapshot.version + 1)
        self._snapshot = published
        logger.info("Risk config published: version=%d", published.version)
        return published
